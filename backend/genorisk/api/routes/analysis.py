from typing import List, Optional
import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status

from genorisk.api.dependencies import explanation_generator, read_record, runtime_settings
from genorisk.core.settings import Settings
from genorisk.schemas.pharma_schema import PGxResult, SupportedDrug, SupportedDrugsResponse
from genorisk.services.llm.explanation_service import ExplanationGenerator
from genorisk.services.pharmacogenomics.models import Drug
from genorisk.services.pharmacogenomics.risk_engine import DRUG_GENE_MAP
from genorisk.services.pipeline.analysis_pipeline import (
    PatientRecord,
    patient_id_from_filename,
    run_analysis_pipeline,
    run_batch,
)

router = APIRouter()
logger = logging.getLogger(__name__)

PROCESSING_FAILED = "Processing failed."
NO_INPUT = "No input provided."
NO_DRUG = "No drugs provided."


def _parse_drug_list(drugs: str) -> List[Drug]:
    names = [d.strip() for d in (drugs or "").split(",") if d.strip()]
    if not names:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=NO_DRUG)
    return [Drug.parse(name) for name in names]


@router.get("/drugs", response_model=SupportedDrugsResponse, summary="List supported drugs")
async def list_supported_drugs() -> SupportedDrugsResponse:
    return SupportedDrugsResponse(
        drugs=[SupportedDrug(drug=drug, primary_gene=gene) for drug, gene in DRUG_GENE_MAP.items()]
    )


@router.post(
    "/analyze",
    response_model=PGxResult,
    status_code=status.HTTP_200_OK,
    summary="Analyze Pharmacogenomic Risk",
    description="Upload a variant record and specify a drug to receive a pharmacogenomic risk assessment."
)
async def analyze_pharmacogenomics(
    drug: Optional[str] = Form(None, description="The name of the drug to analyze (e.g., Codeine)"),
    file: Optional[UploadFile] = File(None, description="Patient's variant record"),
    patient_id: Optional[str] = Form(None, description="Optional patient identifier"),
    generator: Optional[ExplanationGenerator] = Depends(explanation_generator),
    settings: Settings = Depends(runtime_settings),
) -> PGxResult:
    """
    - **drug**: Target drug name
    - **file**: Variant record in the project annotation convention
    - **patient_id**: Optional identifier, defaults to the file name
    """
    if file is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=NO_INPUT)
    if not drug or not drug.strip():
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=NO_DRUG)

    try:
        record = await read_record(file, settings)
        return await run_analysis_pipeline(
            patient_id or patient_id_from_filename(file.filename),
            Drug.parse(drug),
            record,
            generator,
            timeout=settings.llm_timeout_seconds,
        )
    except HTTPException:
        raise
    except ValueError as ve:
        logger.error(f"Validation error in pipeline: {str(ve)}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(ve))
    except Exception as e:
        logger.exception(f"Unexpected error in analysis pipeline: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=PROCESSING_FAILED)


@router.post(
    "/analyze/batch",
    response_model=List[PGxResult],
    summary="Analyze several records against several drugs",
)
async def analyze_batch(
    files: Optional[List[UploadFile]] = File(None, description="One variant record per patient"),
    drugs: Optional[str] = Form(None, description="Comma-separated drug names"),
    generator: Optional[ExplanationGenerator] = Depends(explanation_generator),
    settings: Settings = Depends(runtime_settings),
) -> List[PGxResult]:
    """Results are sorted by (patient id, drug)."""
    if not files:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=NO_INPUT)

    try:
        target_drugs = _parse_drug_list(drugs)
        records = [
            PatientRecord(patient_id_from_filename(f.filename), await read_record(f, settings))
            for f in files
        ]
        return await run_batch(
            records,
            target_drugs,
            generator,
            max_concurrency=settings.llm_max_concurrency,
            timeout=settings.llm_timeout_seconds,
        )
    except HTTPException:
        raise
    except ValueError as ve:
        logger.error(f"Validation error in batch: {str(ve)}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(ve))
    except Exception as e:
        logger.exception(f"Unexpected error in batch pipeline: {str(e)}")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=PROCESSING_FAILED)
