import logging

from fastapi import APIRouter, HTTPException, status

from genorisk.schemas.pharma_schema import PGxResult, SimulationRequest
from genorisk.services.pipeline.analysis_pipeline import apply_override

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("", response_model=PGxResult, summary="Counterfactual phenotype simulation")
async def simulate_phenotype(req: SimulationRequest) -> PGxResult:
    """
    Re-apply the drug policy to a hypothetical phenotype. The submitted
    result is not re-derived from its record; only the phenotype changes.
    """
    try:
        return apply_override(req.result, req.phenotype)
    except ValueError as ve:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(ve))
