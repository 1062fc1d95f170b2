"""Format URN - Wire format identification using tagged URN format

Format URNs are tagged URNs with the "media" prefix that describe the textual
layout a codec reads or writes.

Format: `media:<format>[;tabular][;textable][;ext=<ext>][;...]`

Examples:
- `media:bed;tabular;textable`
- `media:bedgraph;numeric;tabular;textable`
- `media:ext=gff;textable`

A bare format name such as `bed` is shorthand for the pattern
`media:bed;textable`. Matching uses standard tagged URN semantics: a pattern
accepts every instance carrying all of the pattern's tags.
"""

from typing import Optional
from tagged_urn import TaggedUrn, TaggedUrnError


# =============================================================================
# STANDARD FORMAT URN CONSTANTS
# =============================================================================

# BED intervals, 3 to 12 tab-separated columns
MEDIA_BED = "media:bed;tabular;textable"
# bedGraph: chr, start, end, value
MEDIA_BEDGRAPH = "media:bedgraph;numeric;tabular;textable"
# Any line-oriented text
MEDIA_TEXT = "media:textable"


def format_urn_for_ext(ext: str) -> str:
    """Helper to build a text format URN from a file extension"""
    return f"media:ext={ext};textable"


def format_pattern(fmt: str) -> str:
    """Normalize a format string into a format URN string

    `media:` strings are returned untouched; anything else is treated as a
    format name, with a leading dot (file-extension style) stripped.
    """
    fmt = fmt.strip()
    if fmt.startswith(FormatUrn.PREFIX + ":"):
        return fmt
    name = fmt.lstrip(".").lower()
    if not name:
        raise FormatUrnError("Empty format name")
    return f"media:{name};textable"


# =============================================================================
# FORMAT URN TYPE
# =============================================================================

class FormatUrnError(Exception):
    """Base exception for format URN errors"""
    pass


class FormatUrn:
    """A format URN describing a codec's wire format

    Newtype wrapper around `TaggedUrn` that enforces the "media" prefix.
    """

    PREFIX = "media"

    def __init__(self, urn: TaggedUrn):
        """Create a new FormatUrn from a TaggedUrn

        Raises FormatUrnError if the TaggedUrn doesn't have the "media" prefix.
        """
        if urn.get_prefix() != self.PREFIX:
            raise FormatUrnError(
                f"Invalid prefix: expected '{self.PREFIX}', got '{urn.get_prefix()}'"
            )
        self._urn = urn

    @classmethod
    def from_string(cls, s: str) -> "FormatUrn":
        """Create a FormatUrn from a string representation"""
        try:
            urn = TaggedUrn.from_string(s)
        except TaggedUrnError as e:
            raise FormatUrnError(f"Invalid format URN '{s}': {e}")
        return cls(urn)

    @classmethod
    def for_format(cls, fmt: str) -> "FormatUrn":
        """Create a FormatUrn from a format name or URN string"""
        return cls.from_string(format_pattern(fmt))

    def get_tag(self, key: str) -> Optional[str]:
        """Get any tag value by key"""
        return self._urn.get_tag(key)

    def to_string(self) -> str:
        """Get the canonical string representation"""
        return self._urn.to_string()

    def accepts(self, instance: "FormatUrn") -> bool:
        """Check if this format URN (pattern) accepts the given instance"""
        return self._urn.accepts(instance._urn)

    def conforms_to(self, pattern: "FormatUrn") -> bool:
        """Check if this format URN (instance) satisfies the pattern's constraints"""
        return self._urn.conforms_to(pattern._urn)

    def specificity(self) -> int:
        return self._urn.specificity()

    def is_text(self) -> bool:
        """Check if this format is textable (line-oriented)"""
        return self._urn.get_tag("textable") is not None

    def is_tabular(self) -> bool:
        return self._urn.get_tag("tabular") is not None

    def extension(self) -> Optional[str]:
        """Get the extension tag value if present"""
        return self._urn.get_tag("ext")

    def __str__(self) -> str:
        return self.to_string()

    def __repr__(self) -> str:
        return f"FormatUrn('{self.to_string()}')"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FormatUrn):
            return False
        return self._urn == other._urn

    def __hash__(self) -> int:
        return hash(self._urn)
