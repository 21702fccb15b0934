"""
Population Frequency Data for Pharmacogenomic Variants

Approximate global alternate-allele frequencies for the variants the
engine knows about. They feed the rarity score of a pharmacogenomic
profile: rare variants (low frequency) yield a high rarity score.

Data sources:
- PharmGKB (https://www.pharmgkb.org)
- 1000 Genomes Project
- gnomAD

Note: These are coarse frequencies for illustration, not per-population
values.
"""

from types import MappingProxyType
from typing import Mapping

from .config import get_config


VARIANT_FREQUENCIES: Mapping[str, float] = MappingProxyType({
    "rs9923231": 0.35,   # VKORC1 -1639G>A (warfarin sensitivity)
    "rs4149056": 0.15,   # SLCO1B1 c.521T>C (simvastatin myopathy)
    "rs12248560": 0.18,  # CYP2C19*17
    "rs28371706": 0.01,  # CYP2D6 (reported as *4 in the record convention)
    "rs1057910": 0.07,   # CYP2C9*3
    "rs1799853": 0.12,   # CYP2C9*2
})


def get_variant_frequency(rsid: str) -> float:
    """Population frequency for an rsID, or the configured default."""
    return VARIANT_FREQUENCIES.get(rsid, get_config().default_variant_frequency)
