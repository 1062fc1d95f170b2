"""BED codec - the default wire format

Encodes features as 3 to 9 tab-separated BED columns, stopping after the
last populated field:

    chrom  start  end  name  score  strand  thickStart  thickEnd  itemRgb

Unset fields before the last populated one are written as "." and read
back as unset.

Decoding accepts any line with at least 3 columns. When the column counts of
the staged input files are known and a line is wider than the first of them,
the surplus columns (an overlapping record appended by tools such as
`bedtools intersect -wa -wb`) are kept in Feature.extras.
"""

from typing import List, Optional

from trackplug.codec.base import FeatureEncoder, LineDecoder, first_output_columns
from trackplug.feature import Feature
from trackplug.urn.format_urn import MEDIA_BED


BED_MAX_FIELDS = 9
MISSING = "."


def format_number(value: float) -> str:
    """Integral values without a trailing '.0'"""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def _optional_str(value: str) -> Optional[str]:
    return None if value == MISSING else value


def _optional_int(value: str) -> Optional[int]:
    return None if value == MISSING else int(value)


class BedCodec(FeatureEncoder, LineDecoder):
    """Default encoder/decoder pair"""

    media_urn = MEDIA_BED
    separator = "\t"

    # Encoding

    def _fields(self, feature: Feature) -> List[str]:
        fields = [feature.chr, str(feature.start), str(feature.end)]

        optional = [
            feature.name,
            feature.score,
            feature.strand,
            feature.thick_start,
            feature.thick_end,
            feature.item_rgb,
        ]
        last = -1
        for i, value in enumerate(optional):
            if value is not None:
                last = i
        # thickStart and thickEnd travel together
        if last == 3:
            last = 4

        for i in range(last + 1):
            value = optional[i]
            if value is None:
                fields.append(MISSING)
            elif i == 1:
                fields.append(format_number(value))
            else:
                fields.append(str(value))
        return fields

    def encode(self, feature: Feature) -> Optional[str]:
        return self.separator.join(self._fields(feature))

    def get_num_cols(self, line: str) -> int:
        return len(line.split(self.separator))

    # Decoding

    def decode_line(self, line: str) -> Optional[Feature]:
        tokens = line.split(self.separator)
        if len(tokens) < 3:
            # Some tools emit space-separated BED
            tokens = line.split()
        if len(tokens) < 3:
            raise ValueError(f"expected at least 3 columns, found {len(tokens)}")

        width = len(tokens)
        staged_width = first_output_columns(self.output_columns)
        if staged_width is not None and 3 <= staged_width < width:
            width = staged_width
        width = min(width, BED_MAX_FIELDS)

        start = int(tokens[1])
        end = int(tokens[2])
        if end < start:
            raise ValueError(f"end {end} precedes start {start}")

        feature = Feature(chr=tokens[0], start=start, end=end)
        if width > 3:
            feature.name = _optional_str(tokens[3])
        if width > 4 and tokens[4] != MISSING:
            feature.score = float(tokens[4])
        if width > 5:
            strand = _optional_str(tokens[5])
            if strand is not None and strand not in ("+", "-"):
                raise ValueError(f"invalid strand '{strand}'")
            feature.strand = strand
        if width > 7:
            feature.thick_start = _optional_int(tokens[6])
            feature.thick_end = _optional_int(tokens[7])
        if width > 8:
            feature.item_rgb = _optional_str(tokens[8])
        feature.extras = tuple(tokens[width:])
        return feature
