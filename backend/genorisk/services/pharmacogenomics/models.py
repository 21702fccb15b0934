"""
Internal data models for the pharmacogenomics service.

These models represent the values flowing between the extractor, the
phenotype engine and the risk rule engine. Every model is frozen: once a
value is produced it is never mutated, a changed value is a new instance.
"""

from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from genorisk.exceptions import UnsupportedDrugError


class Phenotype(str, Enum):
    """Metabolizer phenotype categories."""
    PM = "PM"    # Poor Metabolizer
    IM = "IM"    # Intermediate Metabolizer
    NM = "NM"    # Normal Metabolizer
    RM = "RM"    # Rapid Metabolizer
    URM = "URM"  # Ultra-rapid Metabolizer
    UNKNOWN = "Unknown"


class RiskLabel(str, Enum):
    SAFE = "Safe"
    ADJUST_DOSAGE = "Adjust Dosage"
    TOXIC = "Toxic"
    INEFFECTIVE = "Ineffective"
    UNKNOWN = "Unknown"


class Severity(str, Enum):
    NONE = "none"
    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    CRITICAL = "critical"


class CPICLevel(str, Enum):
    A = "A"
    B = "B"
    C = "C"


class EvidenceStrength(str, Enum):
    STRONG = "Strong"
    MODERATE = "Moderate"
    WEAK = "Weak"


class Drug(str, Enum):
    """Drugs covered by the rule engine."""
    CODEINE = "CODEINE"
    WARFARIN = "WARFARIN"
    CLOPIDOGREL = "CLOPIDOGREL"
    SIMVASTATIN = "SIMVASTATIN"
    AZATHIOPRINE = "AZATHIOPRINE"
    FLUOROURACIL = "FLUOROURACIL"

    @classmethod
    def parse(cls, name: str) -> "Drug":
        """Resolve a user-supplied drug name, ignoring case and whitespace."""
        key = (name or "").strip().upper()
        try:
            return cls(key)
        except ValueError:
            raise UnsupportedDrugError(key, [d.value for d in cls]) from None


class DetectedVariant(BaseModel):
    """A single variant record recognised in a patient record."""
    model_config = ConfigDict(frozen=True)

    rsid: str = Field(..., description="dbSNP reference ID (rs<digits>) or 'unknown'")
    gene: str = Field(..., description="Gene symbol from the GENE= tag")
    genotype: str = Field(..., description="REF/ALT as written in the record")
    star_allele: Optional[str] = Field(None, description="Star allele from the STAR= tag")
    frequency: float = Field(..., ge=0.0, le=1.0, description="Population allele frequency")


class PhenotypeDistribution(BaseModel):
    """Discrete prior over phenotype categories. Not renormalized."""
    model_config = ConfigDict(frozen=True)

    PM: float = Field(0.0, ge=0.0)
    IM: float = Field(0.0, ge=0.0)
    NM: float = Field(0.0, ge=0.0)
    RM: float = Field(0.0, ge=0.0)
    URM: float = Field(0.0, ge=0.0)

    @classmethod
    def one_hot(cls, phenotype: Phenotype) -> "PhenotypeDistribution":
        if phenotype == Phenotype.UNKNOWN:
            return cls()
        return cls(**{phenotype.value: 1.0})

    def total(self) -> float:
        return self.PM + self.IM + self.NM + self.RM + self.URM


class PhenotypeCall(BaseModel):
    """Result of phenotype inference for one gene."""
    model_config = ConfigDict(frozen=True)

    diplotype: str = Field(..., description="Diplotype (e.g., *4/*4)")
    phenotype: Phenotype = Field(..., description="Metabolizer phenotype")
    probabilities: PhenotypeDistribution = Field(..., description="Phenotype probability distribution")
    rarity_score: float = Field(..., ge=0.0, le=1.0, description="1 - mean frequency of relevant variants")


class RiskAssessment(BaseModel):
    """Risk assessment result for a drug-gene interaction."""
    model_config = ConfigDict(frozen=True)

    risk_label: RiskLabel = Field(..., description="Risk classification label")
    confidence_score: float = Field(..., ge=0.0, le=1.0, description="Confidence score (0-1)")
    severity: Severity = Field(..., description="Severity: none, low, moderate, high, critical")


class PharmacogenomicProfile(BaseModel):
    """Profile details for the report."""
    model_config = ConfigDict(frozen=True)

    primary_gene: str = Field(..., description="Gene symbol")
    diplotype: str = Field(..., description="Diplotype result")
    phenotype: Phenotype = Field(..., description="Phenotype category")
    detected_variants: Tuple[DetectedVariant, ...] = Field(default_factory=tuple, description="Gene-relevant variants")
    phenotype_probability: PhenotypeDistribution = Field(..., description="Phenotype probability distribution")
    variant_rarity_score: float = Field(..., ge=0.0, le=1.0)


class CPICAlignment(BaseModel):
    model_config = ConfigDict(frozen=True)

    guideline_level: CPICLevel = Field(..., description="CPIC evidence tier (A/B/C)")
    source: str = Field(..., description="Guideline source")
    evidence_strength: EvidenceStrength = Field(..., description="Evidence strength")


class MultiGeneInteraction(BaseModel):
    model_config = ConfigDict(frozen=True)

    genes_involved: Tuple[str, ...] = Field(..., description="Genes involved, primary gene first")
    interaction_effect: str = Field(..., description="Description of the interaction")
    composite_score: float = Field(..., ge=0.0, le=1.0)


class ClinicalRecommendation(BaseModel):
    """Clinical recommendation based on pharmacogenomic data."""
    model_config = ConfigDict(frozen=True)

    action: str = Field(..., description="Recommended clinical action")
    dosage_adjustment: Optional[str] = Field(None, description="Dosage guidance")
    alternatives: Optional[Tuple[str, ...]] = Field(None, min_length=1, description="Alternative therapies")
    guideline_reference: str = Field(..., description="Guideline the recommendation follows")


class DrugRiskEvaluation(BaseModel):
    """Everything the rule engine derives for one drug, before explanation."""
    model_config = ConfigDict(frozen=True)

    drug: Drug
    risk_assessment: RiskAssessment
    pharmacogenomic_profile: PharmacogenomicProfile
    cpic_alignment: CPICAlignment
    multi_gene_interaction: MultiGeneInteraction
    clinical_recommendation: ClinicalRecommendation

    def detected_rsids(self) -> Tuple[str, ...]:
        return tuple(v.rsid for v in self.pharmacogenomic_profile.detected_variants)
