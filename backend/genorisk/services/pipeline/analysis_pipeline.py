"""
Analysis Pipeline - Orchestrates record -> variants -> risk -> explanation -> result.

One unit of work is a (patient record, drug) pair. Units share no mutable
state, so a batch is dispatched concurrently, bounded by a semaphore that
stands in for the explanation generator's rate limit.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import PurePath
from typing import Iterable, List, Optional, Sequence, Union

from pydantic import TypeAdapter

from genorisk.schemas.pharma_schema import PGxResult, QualityMetrics
from genorisk.services.llm.explanation_service import (
    ExplanationGenerator,
    explain,
    fallback_explanation,
)
from genorisk.services.llm.guardrail import validate
from genorisk.services.pharmacogenomics.models import (
    DetectedVariant,
    Drug,
    DrugRiskEvaluation,
    Phenotype,
    PhenotypeDistribution,
    RiskAssessment,
)
from genorisk.services.pharmacogenomics.risk_engine import (
    build_recommendation,
    evaluate,
    evaluate_phenotype,
)
from genorisk.services.vcf.variant_extractor import extract

logger = logging.getLogger(__name__)

SIMULATED_DIPLOTYPE = "SIMULATED"
DEFAULT_TIMEOUT_SECONDS = 20.0
DEFAULT_MAX_CONCURRENCY = 4

_RESULT_LIST = TypeAdapter(List[PGxResult])


@dataclass(frozen=True)
class PatientRecord:
    """A raw uploaded record and the patient it belongs to."""
    patient_id: str
    content: Union[str, bytes]


def patient_id_from_filename(filename: str) -> str:
    """'patient_01.vcf' -> 'PATIENT_01'."""
    name = PurePath(filename or "anonymous").name
    for suffix in (".vcf.gz", ".vcf", ".txt"):
        if name.lower().endswith(suffix):
            name = name[: -len(suffix)]
            break
    return name.upper() or "ANONYMOUS"


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _elapsed_ms(started: float) -> int:
    return max(0, int(round((time.perf_counter() - started) * 1000)))


async def analyze_variants(
    patient_id: str,
    drug: Drug,
    variants: Sequence[DetectedVariant],
    generator: Optional[ExplanationGenerator] = None,
    *,
    timeout: Optional[float] = DEFAULT_TIMEOUT_SECONDS,
    started: Optional[float] = None,
) -> PGxResult:
    """Run the rule engine and the explanation step for one (record, drug) unit."""
    started = time.perf_counter() if started is None else started
    logger.info("Starting analysis for patient %s, drug %s", patient_id, drug.value)

    evaluation = evaluate(drug, variants)
    explanation, check = await explain(evaluation, generator, timeout=timeout)

    return PGxResult(
        patient_id=patient_id,
        drug=evaluation.drug,
        timestamp=_utc_now(),
        risk_assessment=evaluation.risk_assessment,
        pharmacogenomic_profile=evaluation.pharmacogenomic_profile,
        cpic_alignment=evaluation.cpic_alignment,
        multi_gene_interaction=evaluation.multi_gene_interaction,
        clinical_recommendation=evaluation.clinical_recommendation,
        llm_generated_explanation=explanation,
        quality_metrics=QualityMetrics(
            vcf_parsing_success=True,
            variants_found=len(variants),
            processing_time_ms=_elapsed_ms(started),
            llm_hallucination_check=check,
        ),
    )


async def run_analysis_pipeline(
    patient_id: str,
    drug: Union[Drug, str],
    record: Union[str, bytes],
    generator: Optional[ExplanationGenerator] = None,
    *,
    timeout: Optional[float] = DEFAULT_TIMEOUT_SECONDS,
) -> PGxResult:
    """
    Full pipeline for a single record and drug.
    Raises UnsupportedDrugError for an unknown drug name.
    """
    started = time.perf_counter()
    drug = drug if isinstance(drug, Drug) else Drug.parse(drug)
    variants = extract(record)
    result = await analyze_variants(
        patient_id, drug, variants, generator, timeout=timeout, started=started
    )
    logger.info("Pipeline execution time: %.2fs", time.perf_counter() - started)
    return result


def sort_results(results: Iterable[PGxResult]) -> List[PGxResult]:
    """Stable, reproducible order: (patient id, drug name)."""
    return sorted(results, key=lambda r: (r.patient_id, r.drug.value))


async def run_batch(
    records: Sequence[PatientRecord],
    drugs: Sequence[Union[Drug, str]],
    generator: Optional[ExplanationGenerator] = None,
    *,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    timeout: Optional[float] = DEFAULT_TIMEOUT_SECONDS,
) -> List[PGxResult]:
    """
    Analyse every record against every drug.

    Each record is parsed once. Units run concurrently with at most
    ``max_concurrency`` explanation calls in flight; a slow or failing
    explanation only degrades its own unit to the fallback text.
    """
    parsed_drugs = [d if isinstance(d, Drug) else Drug.parse(d) for d in drugs]
    semaphore = asyncio.Semaphore(max(1, max_concurrency))

    async def _unit(record: PatientRecord, variants: List[DetectedVariant], drug: Drug, parse_seconds: float):
        async with semaphore:
            # Clock starts after the semaphore wait; the record's parse time is charged to every unit.
            return await analyze_variants(
                record.patient_id, drug, variants, generator,
                timeout=timeout, started=time.perf_counter() - parse_seconds,
            )

    started = time.perf_counter()
    tasks = []
    for record in records:
        parse_started = time.perf_counter()
        variants = extract(record.content)
        parse_seconds = time.perf_counter() - parse_started
        for drug in parsed_drugs:
            tasks.append(_unit(record, variants, drug, parse_seconds))

    results = await asyncio.gather(*tasks)
    logger.info(
        "Batch of %d records x %d drugs finished in %.2fs",
        len(records), len(parsed_drugs), time.perf_counter() - started,
    )
    return sort_results(results)


def apply_override(result: PGxResult, new_phenotype: Union[Phenotype, str]) -> PGxResult:
    """
    Counterfactual view of ``result`` with the phenotype replaced.

    The drug policy is re-applied to the new phenotype; detected variants,
    rarity, interaction and confidence are carried over unchanged. The
    original result is not modified.
    """
    phenotype = Phenotype(new_phenotype)
    outcome = evaluate_phenotype(result.drug, phenotype)

    profile = result.pharmacogenomic_profile.model_copy(update={
        "diplotype": SIMULATED_DIPLOTYPE,
        "phenotype": phenotype,
        "phenotype_probability": PhenotypeDistribution.one_hot(phenotype),
    })
    risk = RiskAssessment(
        risk_label=outcome.risk_label,
        confidence_score=result.risk_assessment.confidence_score,
        severity=outcome.severity,
    )
    evaluation = DrugRiskEvaluation(
        drug=result.drug,
        risk_assessment=risk,
        pharmacogenomic_profile=profile,
        cpic_alignment=result.cpic_alignment,
        multi_gene_interaction=result.multi_gene_interaction,
        clinical_recommendation=build_recommendation(outcome),
    )
    explanation = fallback_explanation(evaluation)

    return result.model_copy(update={
        "timestamp": _utc_now(),
        "risk_assessment": risk,
        "pharmacogenomic_profile": profile,
        "clinical_recommendation": evaluation.clinical_recommendation,
        "llm_generated_explanation": explanation,
        "quality_metrics": result.quality_metrics.model_copy(update={
            "llm_hallucination_check": validate(profile.detected_variants, explanation.variant_citations),
        }),
        "simulated": True,
    })


def export_results(results: Sequence[PGxResult], indent: Optional[int] = 2) -> str:
    """Serialize results to the JSON export format."""
    return _RESULT_LIST.dump_json(list(results), indent=indent).decode("utf-8")


def load_results(text: Union[str, bytes]) -> List[PGxResult]:
    """Parse a JSON export back into result records."""
    return _RESULT_LIST.validate_json(text)
