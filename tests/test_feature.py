"""Tests for Feature and InMemoryTrack"""

from trackplug import Feature, InMemoryTrack


# TEST001: Test overlap uses half-open coordinates and requires the same chromosome
def test_feature_overlaps():
    feature = Feature("chr1", 100, 200)

    assert feature.overlaps("chr1", 150, 160)
    assert feature.overlaps("chr1", 0, 101)
    assert feature.overlaps("chr1", 199, 300)
    assert not feature.overlaps("chr1", 200, 300), "end is exclusive"
    assert not feature.overlaps("chr1", 0, 100), "interval end is exclusive"
    assert not feature.overlaps("chr2", 150, 160)


# TEST002: Test to_dict omits unset fields and from_dict restores an equal feature
def test_feature_dict_roundtrip():
    feature = Feature("chr1", 10, 20, name="gene", score=5.0, strand="+", extras=("x", "y"))
    data = feature.to_dict()

    assert data == {
        "chr": "chr1",
        "start": 10,
        "end": 20,
        "name": "gene",
        "score": 5.0,
        "strand": "+",
        "extras": ["x", "y"],
    }
    assert Feature.from_dict(data) == feature


# TEST003: Test InMemoryTrack returns only features overlapping the query, sorted
def test_in_memory_track_query():
    track = InMemoryTrack("genes", [
        Feature("chr1", 500, 600, name="c"),
        Feature("chr1", 100, 200, name="a"),
        Feature("chr2", 100, 200, name="other"),
        Feature("chr1", 150, 400, name="b"),
    ])

    names = [f.name for f in track.get_features("chr1", 180, 550)]
    assert names == ["a", "b", "c"]
    assert not track.is_multi_resolution()


# TEST004: Test multi-resolution track picks the zoom level or the nearest coarser one
def test_in_memory_track_resolutions():
    base = [Feature("chr1", 0, 10, name="base")]
    track = InMemoryTrack("signal", base, resolutions={
        0: [Feature("chr1", 0, 1000, name="z0")],
        4: [Feature("chr1", 0, 100, name="z4")],
    })

    assert track.is_multi_resolution()
    assert [f.name for f in track.get_features("chr1", 0, 5, zoom=0)] == ["z0"]
    assert [f.name for f in track.get_features("chr1", 0, 5, zoom=4)] == ["z4"]
    assert [f.name for f in track.get_features("chr1", 0, 5, zoom=6)] == ["z4"]
    assert [f.name for f in track.get_features("chr1", 0, 5, zoom=2)] == ["z0"]
    assert [f.name for f in track.get_features("chr1", 0, 5)] == ["base"]
