"""bedGraph codec for numeric data tracks

    chrom  start  end  value

The value travels as Feature.score.
"""

from typing import Optional

from trackplug.codec.base import FeatureEncoder, LineDecoder
from trackplug.codec.bed import format_number
from trackplug.feature import Feature
from trackplug.urn.format_urn import MEDIA_BEDGRAPH


class BedGraphCodec(FeatureEncoder, LineDecoder):

    media_urn = MEDIA_BEDGRAPH
    header = "track type=bedGraph"

    def get_header(self) -> Optional[str]:
        return self.header

    def encode(self, feature: Feature) -> Optional[str]:
        if feature.score is None:
            return None
        return "\t".join([feature.chr, str(feature.start), str(feature.end), format_number(feature.score)])

    def get_num_cols(self, line: str) -> int:
        return len(line.split("\t"))

    def decode_line(self, line: str) -> Optional[Feature]:
        tokens = line.split()
        if len(tokens) < 4:
            raise ValueError(f"expected 4 columns, found {len(tokens)}")
        return Feature(
            chr=tokens[0],
            start=int(tokens[1]),
            end=int(tokens[2]),
            score=float(tokens[3]),
        )
