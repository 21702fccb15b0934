from datetime import datetime
from enum import Enum
from typing import List, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from genorisk.services.pharmacogenomics.models import (
    ClinicalRecommendation,
    CPICAlignment,
    Drug,
    MultiGeneInteraction,
    PharmacogenomicProfile,
    Phenotype,
    RiskAssessment,
)


class HallucinationCheck(str, Enum):
    PASSED = "passed"
    FAILED = "failed"


class LLMGeneratedExplanation(BaseModel):
    model_config = ConfigDict(frozen=True)

    summary: str
    biological_mechanism: str = ""
    variant_citations: Tuple[str, ...] = ()
    confidence_reasoning: str = ""
    counterfactual_analysis: str = ""


class QualityMetrics(BaseModel):
    model_config = ConfigDict(frozen=True)

    vcf_parsing_success: bool = True
    variants_found: int = Field(0, ge=0)
    processing_time_ms: int = Field(0, ge=0)
    llm_hallucination_check: HallucinationCheck = HallucinationCheck.PASSED


class PGxResult(BaseModel):
    """One result record per (patient record, drug). Serialization contract."""
    model_config = ConfigDict(frozen=True)

    patient_id: str
    drug: Drug
    timestamp: str
    risk_assessment: RiskAssessment
    pharmacogenomic_profile: PharmacogenomicProfile
    cpic_alignment: CPICAlignment
    multi_gene_interaction: MultiGeneInteraction
    clinical_recommendation: ClinicalRecommendation
    llm_generated_explanation: LLMGeneratedExplanation
    quality_metrics: QualityMetrics
    simulated: bool = False

    @field_validator('timestamp')
    @classmethod
    def validate_timestamp(cls, v):
        try:
            datetime.fromisoformat(v.replace('Z', '+00:00'))
            return v
        except ValueError:
            raise ValueError("Timestamp must be a valid ISO 8601 string")


class SimulationRequest(BaseModel):
    result: PGxResult
    phenotype: Phenotype


class SupportedDrug(BaseModel):
    drug: Drug
    primary_gene: str


class SupportedDrugsResponse(BaseModel):
    drugs: List[SupportedDrug]
