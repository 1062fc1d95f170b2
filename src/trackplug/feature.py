"""Genomic features and the tracks that serve them

A Feature is one interval-associated record. A Track is any queryable source
of features; the engine only needs "features overlapping [start, end] at zoom Z"
and "is this a multi-resolution source".
"""

from typing import Dict, List, Optional, Any, Iterable, Protocol, Tuple
from dataclasses import dataclass, field


@dataclass
class Feature:
    """A genomic interval record

    Coordinates are 0-based, end-exclusive (BED convention). Optional fields
    follow BED column order. `extras` holds trailing columns a decoder did not
    map onto a field.
    """
    chr: str
    start: int
    end: int
    name: Optional[str] = None
    score: Optional[float] = None
    strand: Optional[str] = None
    thick_start: Optional[int] = None
    thick_end: Optional[int] = None
    item_rgb: Optional[str] = None
    extras: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def length(self) -> int:
        return self.end - self.start

    def overlaps(self, chr: str, start: int, end: int) -> bool:
        """Check if this feature overlaps the interval [start, end)"""
        return self.chr == chr and self.start < end and self.end > start

    def to_dict(self) -> Dict[str, Any]:
        """Convert to JSON-serializable dict"""
        result = {
            "chr": self.chr,
            "start": self.start,
            "end": self.end,
        }
        for key in ("name", "score", "strand", "thick_start", "thick_end", "item_rgb"):
            value = getattr(self, key)
            if value is not None:
                result[key] = value
        if self.extras:
            result["extras"] = list(self.extras)
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Feature":
        """Parse from dict"""
        return cls(
            chr=data["chr"],
            start=int(data["start"]),
            end=int(data["end"]),
            name=data.get("name"),
            score=data.get("score"),
            strand=data.get("strand"),
            thick_start=data.get("thick_start"),
            thick_end=data.get("thick_end"),
            item_rgb=data.get("item_rgb"),
            extras=tuple(data.get("extras", ())),
        )


class Track(Protocol):
    """A named, queryable source of features"""

    name: str

    def get_features(self, chr: str, start: int, end: int, zoom: Optional[int] = None) -> Iterable[Feature]:
        """Features overlapping [start, end) on chr.

        `zoom` is only meaningful for multi-resolution sources and is None otherwise.
        """
        ...

    def is_multi_resolution(self) -> bool:
        """Whether the features returned depend on the zoom level"""
        ...


class InMemoryTrack:
    """Track over features already held in memory

    With `resolutions`, the track is multi-resolution: each zoom level maps to
    its own feature list, and zoom levels without an entry fall back to the
    nearest coarser level that has one (or the base features).
    """

    def __init__(
        self,
        name: str,
        features: Iterable[Feature],
        resolutions: Optional[Dict[int, List[Feature]]] = None,
    ):
        self.name = name
        self.features: List[Feature] = sorted(features, key=lambda f: (f.chr, f.start, f.end))
        self.resolutions: Dict[int, List[Feature]] = dict(resolutions or {})

    def is_multi_resolution(self) -> bool:
        return bool(self.resolutions)

    def _features_for_zoom(self, zoom: Optional[int]) -> List[Feature]:
        if zoom is None or not self.resolutions:
            return self.features
        if zoom in self.resolutions:
            return self.resolutions[zoom]
        coarser = [z for z in self.resolutions if z < zoom]
        if coarser:
            return self.resolutions[max(coarser)]
        return self.features

    def get_features(self, chr: str, start: int, end: int, zoom: Optional[int] = None) -> Iterable[Feature]:
        return [f for f in self._features_for_zoom(zoom) if f.overlaps(chr, start, end)]

    def __repr__(self) -> str:
        return f"InMemoryTrack(name={self.name!r}, features={len(self.features)})"
