"""Codec registry for resolving encoders and decoders

Maps names and format URNs to zero-argument codec factories:
- Built-in codecs (bed, bedgraph)
- Codecs advertised by installed distributions (entry point group `trackplug.codecs`)
- Codecs loaded on demand from library locations: directories, .py files,
  .zip archives, or http(s) URLs downloaded into the cache directory

Factories are cached; every resolve call constructs a fresh codec instance.
"""

import hashlib
import importlib
import importlib.machinery
import importlib.util
import logging
import sys
import threading
from dataclasses import dataclass
from importlib import metadata
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Any
from urllib.parse import urlparse

import httpx

from trackplug.codec.bed import BedCodec
from trackplug.codec.bedgraph import BedGraphCodec
from trackplug.config import EngineConfig, DEFAULT_FORMAT
from trackplug.urn.format_urn import FormatUrn, FormatUrnError, MEDIA_BED, MEDIA_BEDGRAPH

logger = logging.getLogger(__name__)


ENTRY_POINT_GROUP = "trackplug.codecs"
DEFAULT_ENCODER = "bed"

ENCODER_METHODS = ("get_header", "encode", "get_num_cols")
DECODER_METHODS = ("set_inputs", "set_output_columns", "decode_all")

CodecFactory = Callable[[], Any]


class CodecRegistryError(Exception):
    """Base exception for codec resolution errors"""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class CodecConfigurationError(CodecRegistryError):
    """The configured codec or format cannot be resolved"""
    pass


class CodecNotFoundError(CodecConfigurationError):
    """No codec with this name exists in any searched location"""
    def __init__(self, codec_name: str, reason: str):
        super().__init__(f"Codec '{codec_name}' not found: {reason}")
        self.codec_name = codec_name
        self.reason = reason


class UnsupportedFormatError(CodecConfigurationError):
    """No decoder is registered for a format"""
    def __init__(self, fmt: str):
        super().__init__(f"Unable to find codec for format {fmt}")
        self.format = fmt


class CodecInstantiationError(CodecRegistryError):
    """The codec was found but could not be loaded or constructed"""
    def __init__(self, codec_name: str, reason: str):
        super().__init__(f"Codec '{codec_name}' could not be instantiated: {reason}")
        self.codec_name = codec_name
        self.reason = reason


def split_codec_name(codec_name: str) -> Tuple[str, str]:
    """Split 'pkg.module:Attr' or 'pkg.module.Attr' into (module, attribute)"""
    if ":" in codec_name:
        module_name, _, attr = codec_name.partition(":")
    else:
        module_name, _, attr = codec_name.rpartition(".")
    if not module_name or not attr:
        raise CodecNotFoundError(
            codec_name, "expected a registered name, 'module:attribute' or 'module.Class'"
        )
    return module_name, attr


def _is_remote(location: str) -> bool:
    return location.startswith(("http://", "https://"))


def _missing_module(error: ModuleNotFoundError, module_name: str) -> bool:
    """True if the error is about module_name itself (or a parent package),
    not about something module_name imports"""
    if error.name is None:
        return False
    return module_name == error.name or module_name.startswith(error.name + ".")


@dataclass
class _DecoderEntry:
    """Maps a format URN to a decoder factory"""
    urn: FormatUrn
    factory: CodecFactory
    name: Optional[str]


class CodecRegistry:
    """Resolves codec names and formats to fresh codec instances"""

    def __init__(self, config: Optional[EngineConfig] = None, client: Optional[httpx.Client] = None):
        self.config = config or EngineConfig()
        self.client = client
        self._named: Dict[str, CodecFactory] = {}
        self._decoders: List[_DecoderEntry] = []
        self._loaded: Dict[Tuple[str, Tuple[str, ...]], CodecFactory] = {}
        self._lock = threading.Lock()

    @classmethod
    def with_builtins(cls, config: Optional[EngineConfig] = None, client: Optional[httpx.Client] = None) -> "CodecRegistry":
        """Create a registry holding the built-in codecs"""
        registry = cls(config, client)
        registry.register_decoder(MEDIA_BED, BedCodec, name="bed")
        registry.register_decoder(MEDIA_BEDGRAPH, BedGraphCodec, name="bedgraph")
        return registry

    # =========================================================================
    # Registration
    # =========================================================================

    def register_encoder(self, name: str, factory: CodecFactory) -> None:
        """Register an encoder factory under a name"""
        with self._lock:
            self._named[name] = factory

    def register_decoder(self, format_urn: str, factory: CodecFactory, name: Optional[str] = None) -> None:
        """Register a decoder factory for a format URN (and optionally a name)"""
        urn = FormatUrn.from_string(format_urn)
        with self._lock:
            self._decoders = [e for e in self._decoders if e.urn != urn]
            self._decoders.append(_DecoderEntry(urn=urn, factory=factory, name=name))
            if name is not None:
                self._named[name] = factory

    def names(self) -> List[str]:
        with self._lock:
            return sorted(self._named)

    def formats(self) -> List[str]:
        """Format URNs with a registered decoder"""
        with self._lock:
            return [entry.urn.to_string() for entry in self._decoders]

    def load_entry_points(self, group: str = ENTRY_POINT_GROUP) -> List[str]:
        """Register codecs advertised by installed distributions

        Each entry point's name becomes the codec name. Factories carrying a
        `media_urn` attribute and implementing the decoder methods are also
        registered for that format. Returns the names registered.
        """
        registered = []
        for entry_point in metadata.entry_points(group=group):
            try:
                factory = entry_point.load()
            except Exception as e:
                logger.warning("Failed to load codec entry point %s: %s", entry_point.name, e)
                continue

            media_urn = getattr(factory, "media_urn", None)
            is_decoder = all(callable(getattr(factory, m, None)) for m in DECODER_METHODS)
            if media_urn and is_decoder:
                try:
                    self.register_decoder(media_urn, factory, name=entry_point.name)
                except FormatUrnError as e:
                    logger.warning("Codec entry point %s has an invalid media_urn: %s", entry_point.name, e)
                    self.register_encoder(entry_point.name, factory)
            else:
                self.register_encoder(entry_point.name, factory)
            registered.append(entry_point.name)
        return registered

    # =========================================================================
    # Resolution
    # =========================================================================

    def resolve_encoder(self, codec_name: Optional[str] = None, lib_paths: Sequence[str] = ()) -> Any:
        """Construct an encoder; the default BED encoder when codec_name is None

        Raises:
            CodecNotFoundError: If the codec cannot be located
            CodecInstantiationError: If it is found but cannot be constructed
        """
        if codec_name is None:
            codec_name = DEFAULT_ENCODER
        factory = self.find_factory(codec_name, lib_paths)
        return self._instantiate(codec_name, factory, ENCODER_METHODS, "FeatureEncoder")

    def resolve_decoder(
        self,
        codec_name: Optional[str] = None,
        lib_paths: Sequence[str] = (),
        format: str = DEFAULT_FORMAT,
    ) -> Any:
        """Construct a decoder by codec name, or by format when codec_name is None

        Raises:
            UnsupportedFormatError: If no decoder is registered for the format
            CodecNotFoundError: If the named codec cannot be located
            CodecInstantiationError: If it is found but cannot be constructed
        """
        if codec_name is None:
            factory = self.find_decoder_for_format(format)
            codec_name = format
        else:
            factory = self.find_factory(codec_name, lib_paths)
        return self._instantiate(codec_name, factory, DECODER_METHODS, "FeatureDecoder")

    def find_decoder_for_format(self, fmt: str) -> CodecFactory:
        """Find the decoder factory for a format name or URN

        Exact URN match first, then URN-level matching where the requested
        format is the pattern; the most specific registration wins.
        """
        try:
            pattern = FormatUrn.for_format(fmt)
        except FormatUrnError as e:
            raise UnsupportedFormatError(fmt) from e

        with self._lock:
            for entry in self._decoders:
                if entry.urn == pattern:
                    return entry.factory

            matches = [entry for entry in self._decoders if pattern.accepts(entry.urn)]

        if not matches:
            raise UnsupportedFormatError(fmt)
        best = max(matches, key=lambda entry: entry.urn.specificity())
        return best.factory

    def find_factory(self, codec_name: str, lib_paths: Sequence[str] = ()) -> CodecFactory:
        """Find a factory by registered name or by loading it from a module"""
        with self._lock:
            if codec_name in self._named:
                return self._named[codec_name]

        key = (codec_name, tuple(lib_paths))
        with self._lock:
            if key in self._loaded:
                return self._loaded[key]

        factory = self.load_factory(codec_name, lib_paths)
        with self._lock:
            self._loaded[key] = factory
        return factory

    def load_instance(self, codec_name: str, lib_paths: Sequence[str] = ()) -> Any:
        """Load and construct any codec object by name, without a capability check"""
        factory = self.find_factory(codec_name, lib_paths)
        try:
            return factory()
        except Exception as e:
            raise CodecInstantiationError(codec_name, str(e)) from e

    # =========================================================================
    # Dynamic loading
    # =========================================================================

    def library_locations(self, lib_paths: Sequence[str] = ()) -> List[str]:
        """Explicit locations (remote ones downloaded) followed by the plugin directory"""
        locations = []
        for location in lib_paths:
            if _is_remote(location):
                location = self.fetch_library(location)
            locations.append(str(location))
        locations.append(str(self.config.plugin_dir))

        seen = set()
        ordered = []
        for location in locations:
            if location not in seen:
                seen.add(location)
                ordered.append(location)
        return ordered

    def load_factory(self, codec_name: str, lib_paths: Sequence[str] = ()) -> CodecFactory:
        """Import the module named by codec_name and return its factory attribute"""
        module_name, attr = split_codec_name(codec_name)
        module = self._import_module(codec_name, module_name, self.library_locations(lib_paths))

        factory: Any = module
        for part in attr.split("."):
            try:
                factory = getattr(factory, part)
            except AttributeError:
                raise CodecNotFoundError(codec_name, f"module '{module_name}' has no attribute '{attr}'")

        if not callable(factory):
            raise CodecInstantiationError(codec_name, f"'{attr}' is not callable")

        logger.debug("Loaded codec %s from %s", codec_name, getattr(module, "__file__", module_name))
        return factory

    def _import_module(self, codec_name: str, module_name: str, locations: List[str]):
        # Installed modules first
        try:
            return importlib.import_module(module_name)
        except ModuleNotFoundError as e:
            if not _missing_module(e, module_name):
                raise CodecInstantiationError(codec_name, f"importing '{module_name}' failed: {e}") from e
        except Exception as e:
            raise CodecInstantiationError(codec_name, f"importing '{module_name}' failed: {e}") from e

        return self._import_from_locations(codec_name, module_name, locations)

    def _import_from_locations(self, codec_name: str, module_name: str, locations: List[str]):
        search = []
        for location in locations:
            path = Path(location)
            if path.is_file() and path.suffix == ".py":
                path = path.parent
            if path.exists():
                search.append(str(path))

        parts = module_name.split(".")
        path_entries: Optional[List[str]] = search
        module = None
        for i in range(len(parts)):
            fullname = ".".join(parts[: i + 1])
            if fullname in sys.modules:
                module = sys.modules[fullname]
                path_entries = list(getattr(module, "__path__", []))
                continue

            spec = importlib.machinery.PathFinder.find_spec(fullname, path_entries)
            if spec is None or spec.loader is None:
                raise CodecNotFoundError(
                    codec_name,
                    f"module '{fullname}' not found in {', '.join(locations) or 'any location'}",
                )

            module = importlib.util.module_from_spec(spec)
            sys.modules[fullname] = module
            try:
                spec.loader.exec_module(module)
            except Exception as e:
                del sys.modules[fullname]
                raise CodecInstantiationError(codec_name, f"loading '{fullname}' failed: {e}") from e

            path_entries = list(spec.submodule_search_locations or [])

        return module

    def fetch_library(self, url: str) -> str:
        """Download a remote library into the cache directory and return its local path

        Files are keyed by the SHA-256 of the URL and reused once downloaded.
        """
        key = hashlib.sha256(url.encode("utf-8")).hexdigest()
        filename = Path(urlparse(url).path).name or "library.zip"
        target = self.config.cache_dir / "libs" / key / filename
        if target.exists():
            return str(target)

        target.parent.mkdir(parents=True, exist_ok=True)
        client = self.client or httpx.Client(follow_redirects=True, timeout=30.0)
        try:
            response = client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise CodecNotFoundError(url, f"fetching library failed: {e}") from e
        finally:
            if self.client is None:
                client.close()

        partial = target.with_name(target.name + ".part")
        partial.write_bytes(response.content)
        partial.replace(target)
        logger.debug("Cached codec library %s at %s", url, target)
        return str(target)

    @staticmethod
    def _instantiate(codec_name: str, factory: CodecFactory, methods: Tuple[str, ...], capability: str) -> Any:
        try:
            codec = factory()
        except Exception as e:
            raise CodecInstantiationError(codec_name, str(e)) from e

        missing = [m for m in methods if not callable(getattr(codec, m, None))]
        if missing:
            raise CodecInstantiationError(
                codec_name,
                f"{type(codec).__name__} is not a {capability} (missing {', '.join(missing)})",
            )
        return codec


_default_registry: Optional[CodecRegistry] = None
_default_lock = threading.Lock()


def default_registry() -> CodecRegistry:
    """Process-wide registry with built-ins and installed entry points"""
    global _default_registry
    with _default_lock:
        if _default_registry is None:
            registry = CodecRegistry.with_builtins()
            registry.load_entry_points()
            _default_registry = registry
        return _default_registry
