"""
Confidence Scoring - fixed linear blend.

    confidence = w_level * level_weight
               + w_reliability * variant_reliability
               + w_completeness * annotation_completeness

Every term is clamped to [0, 1] and the weights sum to 1.0, so the score
stays in [0, 1]. This is a weighted heuristic, not a posterior.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Optional, Sequence

from .config import EngineConfig, get_config
from .models import CPICLevel, DetectedVariant


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


@dataclass(frozen=True)
class ConfidenceBreakdown:
    """Itemised terms of the confidence blend."""

    level_weight: float
    variant_reliability: float
    annotation_completeness: float
    final: float

    def to_dict(self) -> Dict[str, float]:
        return {
            "level_weight": round(self.level_weight, 4),
            "variant_reliability": round(self.variant_reliability, 4),
            "annotation_completeness": round(self.annotation_completeness, 4),
            "final": round(self.final, 4),
        }


class ConfidenceCalculator:
    """
    Deterministic confidence scoring.

    Usage::

        calc = ConfidenceCalculator()
        score = calc.calculate_confidence(CPICLevel.A, variant_count=1)
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or get_config()

    def variant_reliability(self, variant_count: int) -> float:
        return _clamp(variant_count / self.config.reliability_saturation)

    def breakdown(
        self,
        level: CPICLevel,
        variant_count: int,
        completeness: Optional[float] = None,
    ) -> ConfidenceBreakdown:
        weights = self.config.confidence_weights
        level_weight = _clamp(self.config.level_weights.weight_for(level))
        reliability = self.variant_reliability(variant_count)
        completeness = _clamp(
            self.config.annotation_completeness if completeness is None else completeness
        )

        final = (
            weights.guideline_level * level_weight
            + weights.variant_reliability * reliability
            + weights.annotation_completeness * completeness
        )
        return ConfidenceBreakdown(
            level_weight=level_weight,
            variant_reliability=reliability,
            annotation_completeness=completeness,
            final=_clamp(final),
        )

    def calculate_confidence(
        self,
        level: CPICLevel,
        variant_count: int,
        completeness: Optional[float] = None,
    ) -> float:
        return self.breakdown(level, variant_count, completeness).final


def count_primary_gene_variants(gene: str, variants: Sequence[DetectedVariant]) -> int:
    """Number of variants tagged with exactly this gene (duplicates counted)."""
    return sum(1 for v in variants if v.gene == gene)
