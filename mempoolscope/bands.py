"""Fee band classification for mempool visualization."""

from dataclasses import dataclass
from typing import Dict, Iterable, List
from .constants import LOW_FEE_MAX_SATVB, HIGH_FEE_MIN_SATVB


@dataclass(frozen=True)
class FeeBand:
    """Represents a fee band with name, label, half-open range, and synthetic generation range."""
    name: str           # short id, e.g., "medium"
    label: str          # human label, e.g., "Medium Fee"
    min_satvb: float    # inclusive
    max_satvb: float    # exclusive
    gen_min_satvb: float  # range used when synthesizing items for this band
    gen_max_satvb: float

    def contains(self, rate: float) -> bool:
        return self.min_satvb <= rate < self.max_satvb


FEE_BANDS = [
    FeeBand(
        name="low",
        label="Low Fee",
        min_satvb=float("-inf"),
        max_satvb=LOW_FEE_MAX_SATVB,
        gen_min_satvb=1.0,
        gen_max_satvb=2.9,
    ),
    FeeBand(
        name="medium",
        label="Medium Fee",
        min_satvb=LOW_FEE_MAX_SATVB,
        max_satvb=HIGH_FEE_MIN_SATVB,
        gen_min_satvb=3.0,
        gen_max_satvb=7.9,
    ),
    FeeBand(
        name="high",
        label="High Fee",
        min_satvb=HIGH_FEE_MIN_SATVB,
        max_satvb=float("inf"),
        gen_min_satvb=8.0,
        gen_max_satvb=20.0,
    ),
]

FEE_BANDS_BY_NAME = {band.name: band for band in FEE_BANDS}


def classify_fee_band(rate: float) -> FeeBand:
    """
    Map a fee rate into its band: low (< 3 sat/vB), medium (3-8), high (>= 8).

    Args:
        rate: Fee rate in sat/vB

    Returns:
        FeeBand instance matching the fee rate
    """
    for band in FEE_BANDS:
        if band.contains(rate):
            return band
    # NaN compares false everywhere
    return FEE_BANDS[0]


def count_by_band(rates: Iterable[float]) -> Dict[str, int]:
    """Count fee rates per band name."""
    counts = {band.name: 0 for band in FEE_BANDS}
    for rate in rates:
        counts[classify_fee_band(rate).name] += 1
    return counts


def filter_by_band(items: Iterable, band_name: str) -> List:
    """Keep the items (anything with a fee_rate attribute) that fall in a band. "all" keeps everything."""
    if band_name == "all":
        return list(items)
    band = FEE_BANDS_BY_NAME[band_name]
    return [item for item in items if band.contains(item.fee_rate)]
