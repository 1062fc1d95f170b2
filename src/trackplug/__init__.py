"""trackplug - External-plugin execution engine for genomic feature tracks

Delegates feature-level computation (interval intersection, overlap
statistics, ...) to external command-line tools. Track features are staged
to temp files in a pluggable wire format, substituted into a templated
command, the command is run with its error stream drained concurrently, and
its standard output is decoded back into features.
"""

from trackplug.feature import (
    Feature,
    Track,
    InMemoryTrack,
)

from trackplug.urn.format_urn import (
    FormatUrn,
    FormatUrnError,
    MEDIA_BED,
    MEDIA_BEDGRAPH,
    MEDIA_TEXT,
    format_urn_for_ext,
)

from trackplug.argument import (
    Argument,
    ArgumentType,
    ArgumentError,
    DuplicateArgumentIdError,
    UnresolvedPlaceholderError,
    validate_arguments,
)

from trackplug.config import (
    EngineConfig,
    ParsingConfig,
    ConfigError,
    parse_library_paths,
)

from trackplug.codec.base import (
    FeatureEncoder,
    FeatureDecoder,
    LineDecoder,
    CodecError,
    DecodeError,
)

from trackplug.codec.bed import BedCodec
from trackplug.codec.bedgraph import BedGraphCodec

from trackplug.codec.registry import (
    CodecRegistry,
    CodecRegistryError,
    CodecConfigurationError,
    CodecNotFoundError,
    CodecInstantiationError,
    UnsupportedFormatError,
    default_registry,
)

from trackplug.process import (
    ExternalProcess,
    Notifier,
    LogNotifier,
    ProcessError,
    ProcessStartError,
    start_external_process,
    execute_command,
)

from trackplug.binder import (
    ArgumentBinder,
    StagingArea,
    BindingError,
    ColumnCountError,
    write_features,
)

from trackplug.command import (
    CommandAssembler,
    CommandLine,
    substitute,
)

from trackplug.plugin_source import (
    PluginSource,
    FeatureStream,
    QueryError,
    StagingError,
    ExecutionError,
    DecodingError,
    ProcessTimeoutError,
)

__all__ = [
    # Features
    "Feature",
    "Track",
    "InMemoryTrack",
    # Format URNs
    "FormatUrn",
    "FormatUrnError",
    "MEDIA_BED",
    "MEDIA_BEDGRAPH",
    "MEDIA_TEXT",
    "format_urn_for_ext",
    # Arguments
    "Argument",
    "ArgumentType",
    "ArgumentError",
    "DuplicateArgumentIdError",
    "UnresolvedPlaceholderError",
    "validate_arguments",
    # Configuration
    "EngineConfig",
    "ParsingConfig",
    "ConfigError",
    "parse_library_paths",
    # Codecs
    "FeatureEncoder",
    "FeatureDecoder",
    "LineDecoder",
    "CodecError",
    "DecodeError",
    "BedCodec",
    "BedGraphCodec",
    "CodecRegistry",
    "CodecRegistryError",
    "CodecConfigurationError",
    "CodecNotFoundError",
    "CodecInstantiationError",
    "UnsupportedFormatError",
    "default_registry",
    # Processes
    "ExternalProcess",
    "Notifier",
    "LogNotifier",
    "ProcessError",
    "ProcessStartError",
    "start_external_process",
    "execute_command",
    # Binding and assembly
    "ArgumentBinder",
    "StagingArea",
    "BindingError",
    "ColumnCountError",
    "write_features",
    "CommandAssembler",
    "CommandLine",
    "substitute",
    # Plugin source
    "PluginSource",
    "FeatureStream",
    "QueryError",
    "StagingError",
    "ExecutionError",
    "DecodingError",
    "ProcessTimeoutError",
]

__version__ = "0.1.0"
