"""
Multi-Gene Interaction Detection.

Some drug responses depend on more than the drug's primary gene. Each
interaction rule inspects the full variant set for one drug and, when it
fires, reports the genes involved and a composite score. At most one rule
fires per drug (first match wins).
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import Callable, Mapping, Optional, Sequence, Tuple

from .models import DetectedVariant, Drug, MultiGeneInteraction


NO_INTERACTION_EFFECT = "No significant multi-gene interactions detected."

# VKORC1 -1639G>A, used as the warfarin sensitivity marker
VKORC1_MARKER_RSID = "rs9923231"


@dataclass(frozen=True)
class InteractionRule:
    """A secondary-gene check attached to a drug."""
    name: str
    detect: Callable[[Sequence[DetectedVariant]], bool]
    secondary_genes: Tuple[str, ...]
    effect: str
    composite_score: float


def _has_vkorc1_marker(variants: Sequence[DetectedVariant]) -> bool:
    return any(v.rsid == VKORC1_MARKER_RSID for v in variants)


def _has_dpyd_burden(variants: Sequence[DetectedVariant]) -> bool:
    return sum(1 for v in variants if v.gene == "DPYD") > 1


INTERACTION_RULES: Mapping[Drug, Tuple[InteractionRule, ...]] = MappingProxyType({
    Drug.WARFARIN: (
        InteractionRule(
            name="CYP2C9+VKORC1",
            detect=_has_vkorc1_marker,
            secondary_genes=("VKORC1",),
            effect=(
                "CYP2C9 metabolism combined with VKORC1 sensitivity "
                "significantly alters warfarin requirements."
            ),
            composite_score=0.85,
        ),
    ),
    Drug.FLUOROURACIL: (
        InteractionRule(
            name="DPYD variant burden",
            detect=_has_dpyd_burden,
            secondary_genes=(),
            effect="Multiple DPYD variants detected, increasing risk of severe toxicity.",
            composite_score=0.9,
        ),
    ),
})


def matching_interaction(drug: Drug, variants: Sequence[DetectedVariant]) -> Optional[InteractionRule]:
    for rule in INTERACTION_RULES.get(drug, ()):
        if rule.detect(variants):
            return rule
    return None


def detect_interaction(
    drug: Drug, primary_gene: str, variants: Sequence[DetectedVariant]
) -> MultiGeneInteraction:
    """Interaction summary for ``drug``; the primary gene is always listed first."""
    rule = matching_interaction(drug, variants)
    if rule is None:
        return MultiGeneInteraction(
            genes_involved=(primary_gene,),
            interaction_effect=NO_INTERACTION_EFFECT,
            composite_score=0.0,
        )

    genes = [primary_gene]
    genes.extend(g for g in rule.secondary_genes if g not in genes)
    return MultiGeneInteraction(
        genes_involved=tuple(genes),
        interaction_effect=rule.effect,
        composite_score=rule.composite_score,
    )
