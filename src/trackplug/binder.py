"""Argument binding and track staging

Turns one (Argument, bound value) pair into command tokens. Text arguments
become one or more tokens; track arguments are staged: the track's features
in the query interval are encoded into a fresh temp file whose path becomes
the token. The column count written to each staged file is recorded in
`output_cols` so decoders can tell formats apart by width.

Temp files belong to a StagingArea and are deleted when it is cleaned up.
"""

import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, List, Optional, Any, Iterable, TextIO

from trackplug.argument import Argument, ArgumentType
from trackplug.codec.registry import CodecRegistry, default_registry
from trackplug.feature import Feature

logger = logging.getLogger(__name__)


class BindingError(ValueError):
    """A bound value does not fit its argument's type"""

    def __init__(self, argument: Argument, value: Any):
        super().__init__(
            f"Invalid value for {argument.type.value} argument '{argument.name}': {type(value).__name__}"
        )
        self.argument = argument
        self.value = value


class ColumnCountError(RuntimeError):
    """Encoded lines of one staged file disagree on their column count"""

    def __init__(self, expected: int, actual: int, line: str):
        super().__init__(
            f"Inconsistent column count while encoding: expected {expected}, got {actual} in {line!r}"
        )
        self.expected = expected
        self.actual = actual
        self.line = line


class StagingArea:
    """Owns the temp files staged for one query"""

    def __init__(self, tmp_dir: Optional[Path] = None, prefix: str = "features", suffix: str = ".tmp"):
        self.tmp_dir = Path(tmp_dir) if tmp_dir is not None else None
        self.prefix = prefix
        self.suffix = suffix
        self.paths: List[str] = []

    def create(self) -> str:
        """Create an empty temp file and return its absolute path"""
        if self.tmp_dir is not None:
            self.tmp_dir.mkdir(parents=True, exist_ok=True)
        fd, path = tempfile.mkstemp(
            prefix=self.prefix,
            suffix=self.suffix,
            dir=str(self.tmp_dir) if self.tmp_dir is not None else None,
        )
        os.close(fd)
        path = os.path.abspath(path)
        self.paths.append(path)
        return path

    def cleanup(self) -> None:
        """Delete every staged file; safe to call more than once"""
        while self.paths:
            path = self.paths.pop()
            try:
                os.remove(path)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning("Could not delete staged file %s: %s", path, e)

    def __enter__(self) -> "StagingArea":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cleanup()


def write_features(features: Optional[Iterable[Feature]], stream: TextIO, encoder) -> int:
    """Write the encoder's header and one line per feature

    Returns the column count shared by all written lines, or -1 if no line
    was written.

    Raises:
        ColumnCountError: If two lines report different column counts
    """
    all_num_cols = -1
    if features is None:
        return all_num_cols

    header = encoder.get_header()
    if header is not None:
        stream.write(header + "\n")

    for feature in features:
        line = encoder.encode(feature)
        if line is None:
            continue
        num_cols = encoder.get_num_cols(line)
        if all_num_cols < 0:
            all_num_cols = num_cols
        elif num_cols != all_num_cols:
            raise ColumnCountError(all_num_cols, num_cols, line)
        stream.write(line + "\n")

    return all_num_cols


class ArgumentBinder:
    """Computes the tokens of each argument for one query"""

    def __init__(
        self,
        staging: StagingArea,
        registry: Optional[CodecRegistry] = None,
    ):
        self.staging = staging
        self.registry = registry or default_registry()
        # staged file path -> column count, in staging order
        self.output_cols: Dict[str, int] = {}

    def bind(
        self,
        argument: Argument,
        value: Any,
        chr: str,
        start: int,
        end: int,
        zoom: int,
    ) -> Optional[List[str]]:
        """Tokens for one argument, or None if a text argument is blank

        Raises:
            BindingError: If the value is invalid for the argument type
            ColumnCountError: If staging hits inconsistent column counts
            CodecRegistryError: If the argument's encoding codec cannot be resolved
            OSError: If a temp file cannot be written
        """
        if not argument.is_valid_value(value):
            raise BindingError(argument, value)

        arg_type = argument.type
        if arg_type.is_text():
            if value is None or not value.strip():
                return None
            if arg_type == ArgumentType.LONGTEXT:
                return [value.strip()]
            return value.split()

        if arg_type == ArgumentType.MULTI_FEATURE_TRACK:
            return [self.stage_track(track, argument, chr, start, end, zoom) for track in value]

        return [self.stage_track(value, argument, chr, start, end, zoom)]

    def stage_track(self, track, argument: Argument, chr: str, start: int, end: int, zoom: int) -> str:
        """Write the track's features in the interval to a new temp file"""
        track_zoom = zoom if track.is_multi_resolution() else None
        features = track.get_features(chr, start, end, track_zoom)
        return self.stage_features(features, argument)

    def stage_features(self, features: Optional[Iterable[Feature]], argument: Argument) -> str:
        encoder = self.registry.resolve_encoder(argument.encoding_codec, argument.lib_paths)
        path = self.staging.create()
        with open(path, "w", encoding="utf-8", newline="\n") as stream:
            num_cols = write_features(features, stream, encoder)
        self.output_cols[path] = num_cols
        logger.debug("Staged %s (%d columns) for argument %s", path, num_cols, argument.name)
        return path
