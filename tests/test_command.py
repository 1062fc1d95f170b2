"""Tests for command assembly"""

import pytest
from trackplug import Argument, ArgumentType, EngineConfig, Feature, InMemoryTrack
from trackplug.binder import ArgumentBinder, StagingArea
from trackplug.codec.registry import CodecRegistry
from trackplug.command import CommandAssembler, substitute


@pytest.fixture
def binder(tmp_path):
    registry = CodecRegistry.with_builtins(EngineConfig(plugin_dir=tmp_path / "plugins"))
    staging = StagingArea(tmp_dir=tmp_path / "staged")
    yield ArgumentBinder(staging, registry)
    staging.cleanup()


def _track(name):
    return InMemoryTrack(name, [Feature("chr1", 10, 20, name=name)])


# TEST090: Test substitution uses the first token and replaces longer ids first
def test_substitute():
    values = {"a": ["/tmp/a.tmp", "ignored"], "ab": ["/tmp/ab.tmp"]}

    assert substitute("-a $a", values) == "-a /tmp/a.tmp"
    assert substitute("$ab,$a", values) == "/tmp/ab.tmp,/tmp/a.tmp"
    assert substitute("$a_sorted.bed", values) == "/tmp/a.tmp_sorted.bed"
    assert substitute("$zz", values) == "$zz"
    assert substitute("-x $e", {"e": []}) == "-x $e"


# TEST091: Test the bedtools-style command is prefix, then flag and path per track
def test_assemble_two_tracks(binder):
    a = Argument("A", ArgumentType.FEATURE_TRACK, cmd_arg="-a", id="a")
    b = Argument("B", ArgumentType.FEATURE_TRACK, cmd_arg="-b", id="b")
    assembler = CommandAssembler(["bedtools", "intersect"], {a: _track("x"), b: _track("y")})

    command = assembler.assemble(binder, "chr1", 0, 100, 0)
    tmp_a, tmp_b = binder.staging.paths
    assert command.tokens == ["bedtools", "intersect", "-a", tmp_a, "-b", tmp_b]
    assert list(command.output_cols) == [tmp_a, tmp_b]
    assert command.staged_paths == [tmp_a, tmp_b]


# TEST092: Test a hidden argument feeds a later template without emitting its own tokens
def test_assemble_hidden_argument_template(binder):
    hidden = Argument("A", ArgumentType.FEATURE_TRACK, id="a", is_output=False)
    script = Argument("Script", ArgumentType.LONGTEXT, cmd_arg="--in=$a --out $a.out")
    assembler = CommandAssembler(["tool"], {hidden: _track("x"), script: "-v"})

    command = assembler.assemble(binder, "chr1", 0, 100, 0)
    staged = binder.staging.paths[0]
    assert command.tokens == ["tool", f"--in={staged} --out {staged}.out", "-v"]


# TEST093: Test blank text arguments emit neither their template nor a token
def test_assemble_skips_blank_text(binder):
    opts = Argument("Options", ArgumentType.TEXT, cmd_arg="-opts")
    flags = Argument("Flags", ArgumentType.TEXT)
    assembler = CommandAssembler(["tool"], {opts: "  ", flags: "-s -u"})

    command = assembler.assemble(binder, "chr1", 0, 100, 0)
    assert command.tokens == ["tool", "-s", "-u"]
    assert command.output_cols == {}


# TEST094: Test a template sees an id bound by its own argument
def test_assemble_self_reference(binder):
    window = Argument("Window", ArgumentType.TEXT, cmd_arg="-w=$w", id="w", is_output=True)
    assembler = CommandAssembler(["tool"], {window: "500 ignored"})

    command = assembler.assemble(binder, "chr1", 0, 100, 0)
    assert command.tokens == ["tool", "-w=500", "500", "ignored"]


# TEST095: Test each assembly starts with empty output columns
def test_assemble_resets_output_cols(binder):
    a = Argument("A", ArgumentType.FEATURE_TRACK, id="a")
    assembler = CommandAssembler(["cat"], {a: _track("x")})

    first = assembler.assemble(binder, "chr1", 0, 100, 0)
    second = assembler.assemble(binder, "chr1", 0, 100, 0)
    assert len(first.output_cols) == 1
    assert len(second.output_cols) == 1
    assert set(first.output_cols) != set(second.output_cols)
