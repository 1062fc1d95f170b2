"""Tests for CodecRegistry"""

import textwrap
import uuid
from pathlib import Path

import httpx
import pytest
from trackplug import EngineConfig, Feature
from trackplug.codec.bed import BedCodec
from trackplug.codec.bedgraph import BedGraphCodec
from trackplug.codec.registry import (
    CodecConfigurationError,
    CodecInstantiationError,
    CodecNotFoundError,
    CodecRegistry,
    UnsupportedFormatError,
    split_codec_name,
)


ENCODER_SOURCE = textwrap.dedent('''
    from trackplug.codec.base import FeatureEncoder


    class UpperEncoder(FeatureEncoder):
        def encode(self, feature):
            return "\\t".join([feature.chr.upper(), str(feature.start), str(feature.end)])

        def get_num_cols(self, line):
            return len(line.split("\\t"))


    class NotACodec:
        pass


    def broken_factory():
        raise RuntimeError("license check failed")
''')


def _module_name(prefix="trk_codec"):
    return f"{prefix}_{uuid.uuid4().hex}"


def _write_module(directory: Path, name: str, source: str = ENCODER_SOURCE) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{name}.py"
    path.write_text(source)
    return path


@pytest.fixture
def config(tmp_path):
    return EngineConfig(plugin_dir=tmp_path / "plugins", cache_dir=tmp_path / "cache")


# TEST050: Test codec names split on ':' or the last '.'
def test_split_codec_name():
    assert split_codec_name("pkg.mod:Decoder") == ("pkg.mod", "Decoder")
    assert split_codec_name("pkg.mod.Decoder") == ("pkg.mod", "Decoder")
    with pytest.raises(CodecNotFoundError):
        split_codec_name("Decoder")


# TEST051: Test the default encoder is BED and every resolve returns a fresh instance
def test_default_encoder_fresh_instances(config):
    registry = CodecRegistry.with_builtins(config)

    first = registry.resolve_encoder()
    second = registry.resolve_encoder(None)
    assert isinstance(first, BedCodec)
    assert first is not second
    assert "bed" in registry.names()
    assert "bedgraph" in registry.names()


# TEST052: Test decoders resolve by format name, extension style and exact URN
def test_decoder_by_format(config):
    registry = CodecRegistry.with_builtins(config)

    assert isinstance(registry.resolve_decoder(format="bed"), BedCodec)
    assert isinstance(registry.resolve_decoder(format=".bedgraph"), BedGraphCodec)
    assert isinstance(registry.resolve_decoder(format="media:bedgraph;numeric;tabular;textable"), BedGraphCodec)


# TEST053: Test an unknown format is a configuration error naming the format
def test_unsupported_format(config):
    registry = CodecRegistry.with_builtins(config)

    with pytest.raises(UnsupportedFormatError, match="Unable to find codec for format gff") as exc_info:
        registry.resolve_decoder(format="gff")
    assert isinstance(exc_info.value, CodecConfigurationError)


# TEST054: Test a codec is loaded from an explicit library directory
def test_load_from_library_directory(tmp_path, config):
    name = _module_name()
    _write_module(tmp_path / "libs", name)
    registry = CodecRegistry.with_builtins(config)

    encoder = registry.resolve_encoder(f"{name}:UpperEncoder", [str(tmp_path / "libs")])
    assert encoder.encode(Feature("chrx", 1, 2)) == "CHRX\t1\t2"
    assert encoder.get_header() is None


# TEST055: Test a library location may name the .py file itself
def test_load_from_library_file(tmp_path, config):
    name = _module_name()
    path = _write_module(tmp_path / "single", name)
    registry = CodecRegistry.with_builtins(config)

    encoder = registry.resolve_encoder(f"{name}.UpperEncoder", [str(path)])
    assert type(encoder).__name__ == "UpperEncoder"


# TEST056: Test the built-in plugin directory is searched after explicit locations
def test_load_from_plugin_dir(config):
    name = _module_name()
    _write_module(config.plugin_dir, name)
    registry = CodecRegistry.with_builtins(config)

    encoder = registry.resolve_encoder(f"{name}:UpperEncoder", ["/nonexistent/libs"])
    assert type(encoder).__name__ == "UpperEncoder"
    assert registry.library_locations(["/nonexistent/libs"]) == [
        "/nonexistent/libs",
        str(config.plugin_dir),
    ]


# TEST057: Test factories are cached while instances are not
def test_factory_cache(tmp_path, config):
    name = _module_name()
    _write_module(tmp_path / "libs", name)
    registry = CodecRegistry.with_builtins(config)
    libs = [str(tmp_path / "libs")]

    factory = registry.find_factory(f"{name}:UpperEncoder", libs)
    assert registry.find_factory(f"{name}:UpperEncoder", libs) is factory
    assert registry.resolve_encoder(f"{name}:UpperEncoder", libs) is not registry.resolve_encoder(
        f"{name}:UpperEncoder", libs
    )


# TEST058: Test a missing module or attribute is reported as not found
def test_codec_not_found(tmp_path, config):
    name = _module_name()
    _write_module(tmp_path / "libs", name)
    registry = CodecRegistry.with_builtins(config)

    with pytest.raises(CodecNotFoundError, match="not found"):
        registry.resolve_encoder("trk_no_such_module:Encoder", [str(tmp_path / "libs")])

    with pytest.raises(CodecNotFoundError, match="no attribute"):
        registry.resolve_encoder(f"{name}:MissingEncoder", [str(tmp_path / "libs")])


# TEST059: Test a codec that is found but broken is an instantiation error
def test_codec_instantiation_errors(tmp_path, config):
    name = _module_name()
    _write_module(tmp_path / "libs", name)
    registry = CodecRegistry.with_builtins(config)
    libs = [str(tmp_path / "libs")]

    with pytest.raises(CodecInstantiationError, match="license check failed"):
        registry.resolve_encoder(f"{name}:broken_factory", libs)

    with pytest.raises(CodecInstantiationError, match="not a FeatureEncoder"):
        registry.resolve_encoder(f"{name}:NotACodec", libs)

    with pytest.raises(CodecInstantiationError, match="not a FeatureDecoder"):
        registry.resolve_decoder(f"{name}:UpperEncoder", libs)


# TEST060: Test a module that fails while importing is an instantiation error, not a miss
def test_codec_import_failure(tmp_path, config):
    name = _module_name()
    _write_module(tmp_path / "libs", name, "raise ImportError('needs a native library')\n")
    registry = CodecRegistry.with_builtins(config)

    with pytest.raises(CodecInstantiationError, match="needs a native library"):
        registry.resolve_encoder(f"{name}:Encoder", [str(tmp_path / "libs")])


# TEST061: Test remote libraries are downloaded once into the cache directory
def test_remote_library_cached(config):
    name = _module_name("trk_remote")
    url = f"https://codecs.example.org/lib/{name}.py"
    requests = []

    def handler(request):
        requests.append(str(request.url))
        return httpx.Response(200, content=ENCODER_SOURCE.encode("utf-8"))

    client = httpx.Client(transport=httpx.MockTransport(handler))
    registry = CodecRegistry.with_builtins(config, client=client)

    encoder = registry.resolve_encoder(f"{name}:UpperEncoder", [url])
    assert encoder.encode(Feature("chr1", 0, 1)) == "CHR1\t0\t1"

    local = Path(registry.fetch_library(url))
    assert local.name == f"{name}.py"
    assert local.is_relative_to(config.cache_dir)
    assert requests == [url]


# TEST062: Test a failed download is reported as codec not found
def test_remote_library_fetch_failure(config):
    client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(404)))
    registry = CodecRegistry.with_builtins(config, client=client)

    with pytest.raises(CodecNotFoundError, match="fetching library failed"):
        registry.resolve_encoder("trk_gone:Encoder", ["https://codecs.example.org/gone.zip"])


# TEST063: Test a registered decoder is found by a format name pattern
def test_register_custom_decoder(config):
    registry = CodecRegistry.with_builtins(config)
    registry.register_decoder("media:narrowpeak;tabular;textable", BedCodec, name="narrowpeak")

    assert "media:narrowpeak;tabular;textable" in registry.formats()
    assert isinstance(registry.resolve_decoder(format="narrowPeak"), BedCodec)
    assert isinstance(registry.resolve_decoder("narrowpeak"), BedCodec)
