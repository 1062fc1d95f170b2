"""Engine and decoding configuration

EngineConfig supports configuration via:
1. Constructor / builder methods (highest priority)
2. Environment variables (TRACKPLUG_PLUGIN_DIR, TRACKPLUG_CACHE_DIR,
   TRACKPLUG_TMPDIR, TRACKPLUG_TIMEOUT)
3. Default values

ParsingConfig describes how a plugin's standard output is decoded.
"""

import os
from pathlib import Path
from typing import Dict, List, Optional, Any, Mapping
from dataclasses import dataclass, field

from trackplug.schema_validation import default_validator


DEFAULT_PLUGIN_DIR = Path.home() / ".trackplug" / "plugins"
DEFAULT_CACHE_DIR = Path.home() / ".cache" / "trackplug"
DEFAULT_FORMAT = "bed"
LIBRARY_SEPARATOR = ";"


class ConfigError(Exception):
    """Invalid configuration value"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


def _env_timeout() -> Optional[float]:
    raw = os.getenv("TRACKPLUG_TIMEOUT")
    if raw is None or not raw.strip():
        return None
    try:
        value = float(raw)
    except ValueError:
        raise ConfigError(f"TRACKPLUG_TIMEOUT must be a number of seconds, got '{raw}'")
    if value <= 0:
        return None
    return value


class EngineConfig:
    """Process-wide settings for codec loading and staging"""

    def __init__(
        self,
        plugin_dir: Optional[Path] = None,
        cache_dir: Optional[Path] = None,
        tmp_dir: Optional[Path] = None,
        timeout: Optional[float] = None,
    ):
        """Create engine configuration

        Args:
            plugin_dir: Built-in plugin directory, always searched last for codecs
            cache_dir: Where remote codec libraries are downloaded
            tmp_dir: Directory for staged track files (system default if None)
            timeout: Seconds before a plugin process is killed (None = wait forever)
        """
        if plugin_dir is None:
            plugin_dir = Path(os.getenv("TRACKPLUG_PLUGIN_DIR", str(DEFAULT_PLUGIN_DIR)))

        if cache_dir is None:
            cache_dir = Path(os.getenv("TRACKPLUG_CACHE_DIR", str(DEFAULT_CACHE_DIR)))

        if tmp_dir is None and os.getenv("TRACKPLUG_TMPDIR"):
            tmp_dir = Path(os.environ["TRACKPLUG_TMPDIR"])

        if timeout is None:
            timeout = _env_timeout()

        self.plugin_dir = Path(plugin_dir)
        self.cache_dir = Path(cache_dir)
        self.tmp_dir = Path(tmp_dir) if tmp_dir is not None else None
        self.timeout = timeout

    def with_plugin_dir(self, path) -> "EngineConfig":
        self.plugin_dir = Path(path)
        return self

    def with_cache_dir(self, path) -> "EngineConfig":
        self.cache_dir = Path(path)
        return self

    def with_tmp_dir(self, path) -> "EngineConfig":
        self.tmp_dir = Path(path)
        return self

    def with_timeout(self, seconds: Optional[float]) -> "EngineConfig":
        """Set the plugin process timeout; None or <= 0 disables it"""
        self.timeout = seconds if seconds and seconds > 0 else None
        return self

    def __repr__(self) -> str:
        return (
            f"EngineConfig(plugin_dir={str(self.plugin_dir)!r}, cache_dir={str(self.cache_dir)!r}, "
            f"tmp_dir={str(self.tmp_dir) if self.tmp_dir else None!r}, timeout={self.timeout!r})"
        )


def parse_library_paths(libs: Optional[str], spec_path: Optional[str] = None) -> List[str]:
    """Split a library string into an ordered list of locations

    Entries are separated by ';'. URLs (anything with a scheme such as
    http:// or file://) are kept as is; relative filesystem entries resolve
    against the directory containing `spec_path` when it is given.
    """
    if not libs:
        return []

    base_dir = None
    if spec_path:
        spec = Path(spec_path)
        base_dir = spec if spec.is_dir() else spec.parent

    locations = []
    for entry in libs.split(LIBRARY_SEPARATOR):
        entry = entry.strip()
        if not entry:
            continue
        if "://" in entry:
            if entry.startswith("file://"):
                entry = entry[len("file://"):]
            else:
                locations.append(entry)
                continue
        path = Path(entry).expanduser()
        if not path.is_absolute() and base_dir is not None:
            path = base_dir / path
        locations.append(str(path))
    return locations


def _parse_bool(value: Any) -> bool:
    # Anything but a case-insensitive "true" is False
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


@dataclass
class ParsingConfig:
    """How a plugin's standard output is decoded

    decoding_codec: codec name, or None to pick a built-in decoder by `format`
    lib_paths: library locations searched for `decoding_codec`
    strict: abort on the first malformed record instead of skipping it
    format: format name or URN used when no decoding codec is given
    """
    decoding_codec: Optional[str] = None
    lib_paths: List[str] = field(default_factory=list)
    strict: bool = True
    format: str = DEFAULT_FORMAT

    @classmethod
    def from_attributes(cls, attrs: Optional[Mapping[str, Any]], spec_path: Optional[str] = None) -> "ParsingConfig":
        """Build from the raw attribute map of a plugin command

        Recognized keys: decoding_codec, strict, format, libs.
        """
        attrs = dict(attrs or {})
        default_validator().validate_parsing_attributes(attrs)

        config = cls()
        config.decoding_codec = attrs.get("decoding_codec") or None
        if attrs.get("format"):
            config.format = attrs["format"]
        if attrs.get("strict") is not None:
            config.strict = _parse_bool(attrs["strict"])
        config.lib_paths = parse_library_paths(attrs.get("libs"), spec_path)
        return config

    def to_attributes(self) -> Dict[str, Any]:
        """Convert back to an attribute map"""
        result: Dict[str, Any] = {
            "strict": "true" if self.strict else "false",
            "format": self.format,
        }
        if self.decoding_codec is not None:
            result["decoding_codec"] = self.decoding_codec
        if self.lib_paths:
            result["libs"] = LIBRARY_SEPARATOR.join(self.lib_paths)
        return result
