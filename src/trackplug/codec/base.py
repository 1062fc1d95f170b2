"""Encoder and decoder capabilities

A codec is a pair of capabilities for one wire format:

- FeatureEncoder: Feature -> one line of text (used when staging tracks)
- FeatureDecoder: byte stream -> lazy sequence of Features (used on plugin stdout)

Custom codecs implement these ABCs and are exposed through a zero-argument
factory (usually the class itself); see codec.registry.
"""

import logging
from abc import ABC, abstractmethod
from types import MappingProxyType
from typing import Dict, List, Optional, Any, Iterator, Mapping, Sequence

from trackplug.feature import Feature

logger = logging.getLogger(__name__)


class CodecError(Exception):
    """Base error for codecs"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DecodeError(CodecError):
    """A line of plugin output could not be decoded"""

    def __init__(self, line_number: int, line: str, cause: Exception):
        shown = line if len(line) <= 80 else line[:80] + "..."
        super().__init__(f"Malformed record on line {line_number}: {cause} ({shown!r})")
        self.line_number = line_number
        self.line = line
        self.cause = cause


class FeatureEncoder(ABC):
    """Turns features into lines of a textual wire format"""

    def get_header(self) -> Optional[str]:
        """Header line written before any record, or None"""
        return None

    @abstractmethod
    def encode(self, feature: Feature) -> Optional[str]:
        """Encode one feature as a line (no trailing newline); None skips it"""
        ...

    @abstractmethod
    def get_num_cols(self, line: str) -> int:
        """Number of data columns in an encoded line"""
        ...


class FeatureDecoder(ABC):
    """Turns a plugin's output stream back into features"""

    def __init__(self):
        self.commands: List[str] = []
        self.arguments: Mapping[Any, Any] = MappingProxyType({})
        self.output_columns: Mapping[str, int] = MappingProxyType({})

    def set_inputs(self, commands: Sequence[str], arguments: Mapping[Any, Any]) -> None:
        """Receive the command prefix and argument bindings the plugin was run with"""
        self.commands = list(commands)
        self.arguments = arguments

    def set_output_columns(self, output_columns: Mapping[str, int]) -> None:
        """Receive the column count written to each staged file, keyed by path"""
        self.output_columns = output_columns

    @abstractmethod
    def decode_all(self, stream, strict: bool) -> Iterator[Feature]:
        """Lazily decode every record in `stream`

        The returned iterator is single-pass. With `strict`, the first malformed
        record raises DecodeError; otherwise malformed records are skipped.
        """
        ...


class LineDecoder(FeatureDecoder):
    """Decoder for line-oriented formats

    Subclasses implement decode_line. Blank lines and header lines
    (see is_header) never reach it.
    """

    HEADER_PREFIXES = ("#", "track", "browser")

    encoding = "utf-8"

    def is_header(self, line: str) -> bool:
        return line.startswith(self.HEADER_PREFIXES)

    @abstractmethod
    def decode_line(self, line: str) -> Optional[Feature]:
        """Decode one data line; raise ValueError (or IndexError) if malformed"""
        ...

    def decode_all(self, stream, strict: bool) -> Iterator[Feature]:
        # Invalid bytes are an error when strict, replaced otherwise
        errors = "strict" if strict else "replace"
        line_number = 0
        for raw in stream:
            line_number += 1
            try:
                if isinstance(raw, bytes):
                    raw = raw.decode(self.encoding, errors=errors)
                line = raw.rstrip("\r\n")
                if not line.strip() or self.is_header(line):
                    continue
                feature = self.decode_line(line)
            except (ValueError, IndexError) as e:
                # UnicodeDecodeError is a ValueError
                if isinstance(raw, bytes):
                    raw = raw.decode(self.encoding, errors="replace")
                error = DecodeError(line_number, raw.rstrip("\r\n"), e)
                if strict:
                    raise error from e
                logger.warning("Skipping %s", error.message)
                continue

            if feature is not None:
                yield feature


def first_output_columns(output_columns: Mapping[str, int]) -> Optional[int]:
    """Column count of the first staged file that received data"""
    for num_cols in output_columns.values():
        if num_cols > 0:
            return num_cols
    return None
