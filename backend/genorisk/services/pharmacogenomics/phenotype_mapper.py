"""
Phenotype Mapper - Diplotype and phenotype inference per gene.

Each supported gene has an ordered tuple of rules. The first rule whose
trigger matches the gene-relevant variants decides the diplotype, the
phenotype and the phenotype probability distribution. Genes without a
matching rule fall back to the wildtype default (*1/*1, NM).
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Mapping, Sequence, Tuple
import logging

from .models import DetectedVariant, Phenotype, PhenotypeCall, PhenotypeDistribution

logger = logging.getLogger(__name__)

VariantPredicate = Callable[[Sequence[DetectedVariant]], bool]

DEFAULT_DIPLOTYPE = "*1/*1"
DEFAULT_PHENOTYPE = Phenotype.NM
DEFAULT_DISTRIBUTION = PhenotypeDistribution(PM=0.05, IM=0.15, NM=0.70, RM=0.05, URM=0.05)


@dataclass(frozen=True)
class PhenotypeRule:
    """One (trigger, outcome) row of a gene's rule table."""
    trigger: str
    matches: VariantPredicate
    diplotype: str
    phenotype: Phenotype
    probabilities: PhenotypeDistribution


def has_star_allele(star: str) -> VariantPredicate:
    def _matches(variants: Sequence[DetectedVariant]) -> bool:
        return any(v.star_allele == star for v in variants)
    return _matches


def _slco1b1_c_allele(variants: Sequence[DetectedVariant]) -> bool:
    return any(v.rsid == "rs4149056" and "C" in v.genotype for v in variants)


def _slco1b1_homozygous_c(variants: Sequence[DetectedVariant]) -> bool:
    return _slco1b1_c_allele(variants) and any(v.genotype == "C/C" for v in variants)


def _dist(pm: float, im: float, nm: float, rm: float, urm: float) -> PhenotypeDistribution:
    return PhenotypeDistribution(PM=pm, IM=im, NM=nm, RM=rm, URM=urm)


PHENOTYPE_RULES: Mapping[str, Tuple[PhenotypeRule, ...]] = MappingProxyType({
    "CYP2D6": (
        PhenotypeRule("STAR=*4", has_star_allele("*4"), "*4/*4", Phenotype.PM, _dist(0.90, 0.08, 0.02, 0.0, 0.0)),
        PhenotypeRule("STAR=*1xN", has_star_allele("*1xN"), "*1/*1xN", Phenotype.URM, _dist(0.0, 0.0, 0.10, 0.20, 0.70)),
    ),
    "CYP2C19": (
        PhenotypeRule("STAR=*2", has_star_allele("*2"), "*2/*2", Phenotype.PM, _dist(0.85, 0.10, 0.05, 0.0, 0.0)),
        PhenotypeRule("STAR=*17", has_star_allele("*17"), "*17/*17", Phenotype.RM, _dist(0.0, 0.0, 0.15, 0.80, 0.05)),
    ),
    "CYP2C9": (
        PhenotypeRule("STAR=*3", has_star_allele("*3"), "*3/*3", Phenotype.PM, _dist(0.95, 0.04, 0.01, 0.0, 0.0)),
        PhenotypeRule("STAR=*2", has_star_allele("*2"), "*2/*2", Phenotype.IM, _dist(0.10, 0.80, 0.10, 0.0, 0.0)),
    ),
    "SLCO1B1": (
        # C/C must be tested before the general C-carrier row.
        PhenotypeRule("rs4149056 C/C", _slco1b1_homozygous_c, "C/C", Phenotype.PM, _dist(0.95, 0.05, 0.0, 0.0, 0.0)),
        PhenotypeRule("rs4149056 C carrier", _slco1b1_c_allele, "T/C", Phenotype.IM, _dist(0.10, 0.85, 0.05, 0.0, 0.0)),
    ),
    "TPMT": (
        PhenotypeRule("STAR=*3A", has_star_allele("*3A"), "*3A/*3A", Phenotype.PM, _dist(0.98, 0.02, 0.0, 0.0, 0.0)),
    ),
    "DPYD": (
        PhenotypeRule("STAR=*2A", has_star_allele("*2A"), "*2A/*2A", Phenotype.PM, _dist(0.99, 0.01, 0.0, 0.0, 0.0)),
    ),
})


def relevant_variants(gene: str, variants: Sequence[DetectedVariant]) -> Tuple[DetectedVariant, ...]:
    """
    Variants tagged with the gene, plus any whose rsID contains the gene
    symbol. The second match is loose on purpose so that records without
    a GENE= tag are not lost.
    """
    return tuple(v for v in variants if v.gene == gene or gene in v.rsid)


def rarity_score(variants: Sequence[DetectedVariant]) -> float:
    """1 - mean population frequency; 0.0 when there are no variants."""
    if not variants:
        return 0.0
    mean_frequency = sum(v.frequency for v in variants) / len(variants)
    return min(1.0, max(0.0, 1.0 - mean_frequency))


def infer(gene: str, variants: Sequence[DetectedVariant]) -> PhenotypeCall:
    """
    Reduce the variants relevant to ``gene`` to a diplotype, a phenotype,
    a probability distribution and a rarity score.
    """
    relevant = relevant_variants(gene, variants)
    rarity = rarity_score(relevant)

    for rule in PHENOTYPE_RULES.get(gene, ()):
        if rule.matches(relevant):
            logger.debug("%s rule '%s' matched -> %s", gene, rule.trigger, rule.phenotype.value)
            return PhenotypeCall(
                diplotype=rule.diplotype,
                phenotype=rule.phenotype,
                probabilities=rule.probabilities,
                rarity_score=rarity,
            )

    return PhenotypeCall(
        diplotype=DEFAULT_DIPLOTYPE,
        phenotype=DEFAULT_PHENOTYPE,
        probabilities=DEFAULT_DISTRIBUTION,
        rarity_score=rarity,
    )
