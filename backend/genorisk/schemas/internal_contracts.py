from pydantic import BaseModel, ConfigDict, Field
from typing import Tuple


class ExplanationContext(BaseModel):
    """
    Internal contract between the risk rule engine and the explanation
    generator. It carries only verified patient findings; the generator may
    not cite anything outside ``detected_rsids``.
    """
    model_config = ConfigDict(frozen=True)

    drug: str = Field(..., description="Drug name (e.g., CODEINE)")
    gene: str = Field(..., description="The primary gene symbol (e.g., CYP2D6)")
    diplotype: str = Field(..., description="The inferred diplotype (e.g., *4/*4)")
    phenotype: str = Field(..., description="Phenotype code (e.g., PM)")
    risk_label: str = Field(..., description="Risk label (e.g., Ineffective)")
    severity: str = Field(..., description="Severity (e.g., moderate)")
    action: str = Field(..., description="Recommended clinical action")
    detected_rsids: Tuple[str, ...] = Field(
        default_factory=tuple,
        description="rsIDs of the detected gene-relevant variants"
    )
