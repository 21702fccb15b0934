"""
Configuration for the pharmacogenomics service.
Centralizes the tunable constants used by phenotype inference and confidence
scoring. The configuration is built once at import time and is read-only.
"""

from pydantic import BaseModel, ConfigDict, Field

from .models import CPICLevel, EvidenceStrength


class ConfidenceWeights(BaseModel):
    """Linear blend weights for the confidence score."""
    model_config = ConfigDict(frozen=True)

    guideline_level: float = Field(
        default=0.4,
        ge=0.0,
        le=1.0,
        description="Weight of the CPIC guideline level term"
    )

    variant_reliability: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Weight of the variant reliability term"
    )

    annotation_completeness: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Weight of the annotation completeness term"
    )


class GuidelineLevelWeights(BaseModel):
    """Numeric weight assigned to each CPIC evidence tier."""
    model_config = ConfigDict(frozen=True)

    level_a: float = Field(default=1.0, ge=0.0, le=1.0)
    level_b: float = Field(default=0.7, ge=0.0, le=1.0)
    level_c: float = Field(default=0.4, ge=0.0, le=1.0)

    def weight_for(self, level: CPICLevel) -> float:
        return {
            CPICLevel.A: self.level_a,
            CPICLevel.B: self.level_b,
            CPICLevel.C: self.level_c,
        }[level]


class EngineConfig(BaseModel):
    """Main configuration for the pharmacogenomics service."""
    model_config = ConfigDict(frozen=True)

    confidence_weights: ConfidenceWeights = Field(
        default_factory=ConfidenceWeights,
        description="Confidence blend weights"
    )

    level_weights: GuidelineLevelWeights = Field(
        default_factory=GuidelineLevelWeights,
        description="CPIC level to weight mapping"
    )

    annotation_completeness: float = Field(
        default=0.9,
        ge=0.0,
        le=1.0,
        description="Fixed gene annotation completeness used by the confidence score"
    )

    reliability_saturation: int = Field(
        default=2,
        ge=1,
        description="Primary-gene variant count at which variant reliability reaches 1.0"
    )

    default_variant_frequency: float = Field(
        default=0.05,
        ge=0.0,
        le=1.0,
        description="Population frequency assumed for rsIDs missing from the frequency table"
    )

    # Placeholder: every drug is reported at the strongest tier until a
    # per-drug evidence table exists.
    guideline_level: CPICLevel = Field(default=CPICLevel.A)
    evidence_strength: EvidenceStrength = Field(default=EvidenceStrength.STRONG)

    guideline_reference: str = Field(
        default="CPIC Guidelines (Clinical Pharmacogenetics Implementation Consortium)"
    )


# Global configuration instance
_config: EngineConfig = EngineConfig()


def get_config() -> EngineConfig:
    """Get the global configuration instance."""
    return _config
