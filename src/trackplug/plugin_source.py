"""Plugin Source - feature source backed by an external command

A PluginSource answers "give me features for this interval" by running an
external command-line tool:

1. Stage: every track argument is written to a temp file in its wire format
2. Assemble: the fixed command prefix plus each output argument's tokens
3. Execute: the command runs with its stderr drained on a separate thread
4. Decode: the command's stdout is decoded lazily into Features

Usage:
```python
from trackplug import Argument, ArgumentType, PluginSource

a = Argument("Track A", ArgumentType.FEATURE_TRACK, cmd_arg="-a", id="a")
b = Argument("Track B", ArgumentType.FEATURE_TRACK, cmd_arg="-b", id="b")
source = PluginSource(["bedtools", "intersect"], {a: track_a, b: track_b})

with source.get_features("chr1", 1000, 2000, zoom=0) as features:
    for feature in features:
        ...
```

A source is reused across queries. Each query owns its temp files and its
process; both are released when the returned FeatureStream is exhausted or
closed.
"""

import logging
from types import MappingProxyType
from typing import Dict, List, Optional, Any, Iterator, Mapping, Sequence

from trackplug.argument import Argument, validate_arguments
from trackplug.binder import ArgumentBinder, BindingError, ColumnCountError, StagingArea
from trackplug.codec.base import CodecError
from trackplug.codec.registry import CodecRegistry, CodecRegistryError, default_registry
from trackplug.command import CommandAssembler, CommandLine
from trackplug.config import EngineConfig, ParsingConfig
from trackplug.feature import Feature
from trackplug.process import ExternalProcess, LogNotifier, Notifier, ProcessStartError, start_external_process

logger = logging.getLogger(__name__)


# =========================================================================
# Error types
# =========================================================================

class QueryError(Exception):
    """Base error for a failed feature query; `phase` names the failing step"""

    phase = "query"

    def __init__(self, message: str, phase: Optional[str] = None):
        if phase is not None:
            self.phase = phase
        super().__init__(f"Plugin {self.phase} failed: {message}")
        self.message = message


class StagingError(QueryError):
    """Track data could not be staged"""
    phase = "stage"


class ExecutionError(QueryError):
    """The plugin process could not be run"""
    phase = "execute"


class ProcessTimeoutError(ExecutionError):
    """The plugin process was killed by the watchdog"""

    def __init__(self, command: Sequence[str], timeout: Optional[float]):
        super().__init__(f"{' '.join(command)} did not finish within {timeout} seconds")
        self.command = list(command)
        self.timeout = timeout


class DecodingError(QueryError):
    """Plugin output could not be decoded"""
    phase = "decode"


# =========================================================================
# Query result
# =========================================================================

class FeatureStream:
    """Lazy, single-pass sequence of decoded features for one query

    Exhausting or closing the stream reaps the process and deletes the
    query's temp files.
    """

    def __init__(
        self,
        process: ExternalProcess,
        features: Iterator[Feature],
        staging: StagingArea,
        command: CommandLine,
        timeout: Optional[float] = None,
        decoder: Any = None,
    ):
        self.process = process
        self.command = command
        # Decoder configured with this query's output columns
        self.decoder = decoder
        self.timeout = timeout
        self._features = features
        self._staging = staging
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def returncode(self) -> Optional[int]:
        return self.process.returncode

    def __iter__(self) -> "FeatureStream":
        return self

    def __next__(self) -> Feature:
        if self._closed:
            raise StopIteration
        try:
            return next(self._features)
        except StopIteration:
            self._finish()
            raise
        except (CodecError, ValueError) as e:
            self.close()
            raise DecodingError(str(e)) from e
        except OSError as e:
            self.close()
            raise ExecutionError(f"reading plugin output failed: {e}") from e
        except BaseException:
            self.close()
            raise

    def _finish(self) -> None:
        try:
            self.process.wait()
            self.process.join_error_drain(timeout=5.0)
            self.process.check_exit()
            timed_out = self.process.timed_out
        finally:
            self.close()
        if timed_out:
            raise ProcessTimeoutError(self.command.tokens, self.timeout)

    def close(self) -> None:
        """Kill the process if still running and delete staged files"""
        if self._closed:
            return
        self._closed = True
        try:
            self.process.close()
        finally:
            self._staging.cleanup()

    def __enter__(self) -> "FeatureStream":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


# =========================================================================
# PluginSource
# =========================================================================

class PluginSource:
    """A feature source which derives its features from a command-line plugin"""

    def __init__(
        self,
        commands: Sequence[str],
        arguments: Mapping[Argument, Any],
        parsing: Optional[ParsingConfig] = None,
        registry: Optional[CodecRegistry] = None,
        notifier: Optional[Notifier] = None,
        env: Optional[Dict[str, str]] = None,
        cwd: Optional[str] = None,
        config: Optional[EngineConfig] = None,
    ):
        """Create a plugin source

        Args:
            commands: Invariant command prefix, e.g. ["/usr/bin/bedtools", "intersect"]
            arguments: Ordered argument bindings
            parsing: How stdout is decoded (BED, strict, by default)
            registry: Codec registry (process-wide default if None)
            notifier: Receives the first stderr "error" line of each run
            env: Environment for the plugin (inherited if None)
            cwd: Working directory for the plugin (inherited if None)
            config: Engine configuration (the registry's if None)
        """
        validate_arguments(arguments.keys())

        self.commands: List[str] = list(commands)
        self.arguments: Dict[Argument, Any] = dict(arguments)
        self.parsing = parsing or ParsingConfig()
        self.registry = registry or default_registry()
        self.config = config or self.registry.config
        self.notifier = notifier or LogNotifier()
        self.env = env
        self.cwd = cwd
        # Column counts of the most recent query's staged files
        self.output_cols: Dict[str, int] = {}
        self._assembler = CommandAssembler(self.commands, self.arguments)

    @classmethod
    def from_attributes(
        cls,
        commands: Sequence[str],
        arguments: Mapping[Argument, Any],
        parsing_attrs: Optional[Mapping[str, Any]],
        spec_path: Optional[str] = None,
        **kwargs,
    ) -> "PluginSource":
        """Create a plugin source from a raw decoding attribute map

        Recognized keys: decoding_codec, strict, format, libs. Relative
        library paths resolve against `spec_path`.
        """
        parsing = ParsingConfig.from_attributes(parsing_attrs, spec_path)
        return cls(commands, arguments, parsing=parsing, **kwargs)

    @property
    def strict(self) -> bool:
        return self.parsing.strict

    def gen_full_command(
        self,
        chr: str,
        start: int,
        end: int,
        zoom: int,
        staging: Optional[StagingArea] = None,
    ) -> CommandLine:
        """Stage track data and assemble the command for an interval

        The staged files belong to `staging`; when None, a new StagingArea is
        created and the caller must call `cleanup()` on the returned command.

        Raises:
            StagingError: If binding or writing temp files fails
            CodecRegistryError: If an encoding codec cannot be resolved
        """
        owned = staging is None
        if staging is None:
            staging = StagingArea(self.config.tmp_dir)
        binder = ArgumentBinder(staging, self.registry)

        try:
            command = self._assembler.assemble(binder, chr, start, end, zoom)
        except CodecRegistryError:
            staging.cleanup()
            raise
        except (BindingError, ColumnCountError, OSError) as e:
            staging.cleanup()
            raise StagingError(str(e)) from e
        except BaseException:
            staging.cleanup()
            raise

        if owned:
            command.staging = staging
        self.output_cols = dict(command.output_cols)
        logger.debug("Assembled plugin command %s", command.tokens)
        return command

    def get_decoding_codec(self, output_cols: Optional[Mapping[str, int]] = None):
        """Resolve and configure the decoder for this source

        Raises:
            CodecRegistryError: If the decoder cannot be resolved
        """
        codec = self.registry.resolve_decoder(
            self.parsing.decoding_codec,
            self.parsing.lib_paths,
            self.parsing.format,
        )
        if output_cols is None:
            output_cols = self.output_cols
        codec.set_inputs(list(self.commands), MappingProxyType(self.arguments))
        codec.set_output_columns(MappingProxyType(dict(output_cols)))
        return codec

    def get_features(
        self,
        chr: str,
        start: int,
        end: int,
        zoom: int = 0,
        timeout: Optional[float] = None,
    ) -> FeatureStream:
        """Run the plugin for an interval and decode its output lazily

        The plugin is re-run on every call. `timeout` (seconds, default from
        the engine config) kills a plugin that does not finish in time.

        Raises:
            StagingError: If track data cannot be staged
            CodecRegistryError: If an encoder or the decoder cannot be resolved
            ExecutionError: If the plugin cannot be started
        """
        if timeout is None:
            timeout = self.config.timeout

        staging = StagingArea(self.config.tmp_dir)
        command = self.gen_full_command(chr, start, end, zoom, staging)

        try:
            decoder = self.get_decoding_codec(command.output_cols)
        except BaseException:
            staging.cleanup()
            raise

        try:
            process = start_external_process(
                command.tokens,
                env=self.env,
                cwd=self.cwd,
                notifier=self.notifier,
                timeout=timeout,
            )
        except ProcessStartError as e:
            staging.cleanup()
            raise ExecutionError(str(e)) from e

        try:
            # Plugins read their inputs from the staged files
            if process.stdin is not None:
                process.stdin.close()
            features = iter(decoder.decode_all(process.stdout, self.parsing.strict))
        except BaseException:
            process.close()
            staging.cleanup()
            raise

        return FeatureStream(process, features, staging, command, timeout, decoder)

    def __repr__(self) -> str:
        return f"PluginSource(commands={self.commands!r}, arguments={len(self.arguments)})"
