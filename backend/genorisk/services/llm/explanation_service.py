import asyncio
import json
import logging
from typing import Optional, Protocol, Tuple

from pydantic import ValidationError

from genorisk.core.settings import Settings, get_settings
from genorisk.schemas.internal_contracts import ExplanationContext
from genorisk.schemas.pharma_schema import HallucinationCheck, LLMGeneratedExplanation
from genorisk.services.llm.groq_client import GroqClient
from genorisk.services.llm.guardrail import validate
from genorisk.services.llm.ollama_client import OllamaClient
from genorisk.services.llm.prompt_builder import build_prompt
from genorisk.services.pharmacogenomics.models import DrugRiskEvaluation

logger = logging.getLogger(__name__)


class ExplanationGenerator(Protocol):
    async def generate(self, context: ExplanationContext) -> Optional[LLMGeneratedExplanation]:
        ...


class LLMClient(Protocol):
    async def generate_json(self, prompt: str) -> Optional[str]:
        ...


def build_context(evaluation: DrugRiskEvaluation) -> ExplanationContext:
    """Grounding context built only from verified engine output."""
    profile = evaluation.pharmacogenomic_profile
    return ExplanationContext(
        drug=evaluation.drug.value,
        gene=profile.primary_gene,
        diplotype=profile.diplotype,
        phenotype=profile.phenotype.value,
        risk_label=evaluation.risk_assessment.risk_label.value,
        severity=evaluation.risk_assessment.severity.value,
        action=evaluation.clinical_recommendation.action,
        detected_rsids=evaluation.detected_rsids(),
    )


def fallback_explanation(evaluation: DrugRiskEvaluation) -> LLMGeneratedExplanation:
    """
    Deterministic template used whenever the generator cannot answer.
    Its citations are exactly the detected rsIDs, so it always passes the
    guardrail.
    """
    profile = evaluation.pharmacogenomic_profile
    risk = evaluation.risk_assessment
    return LLMGeneratedExplanation(
        summary=(
            f"The patient has a {profile.phenotype.value} phenotype for {profile.primary_gene}, "
            f"leading to a {risk.risk_label.value} risk for {evaluation.drug.value}."
        ),
        biological_mechanism=(
            "Genetic variations in metabolic enzymes can significantly alter drug clearance and efficacy."
        ),
        variant_citations=evaluation.detected_rsids(),
        confidence_reasoning="Score based on CPIC evidence levels and variant detection.",
        counterfactual_analysis=(
            "If the patient were a Normal Metabolizer, standard dosing would likely be safe."
        ),
    )


def parse_explanation(text: Optional[str]) -> Optional[LLMGeneratedExplanation]:
    """Parse generator JSON output. Empty, invalid or incomplete output -> None."""
    if not text or not text.strip():
        return None
    try:
        payload = json.loads(text)
        explanation = LLMGeneratedExplanation.model_validate(payload)
    except (ValueError, ValidationError) as e:
        logger.warning("Discarding unparseable explanation: %s", str(e).splitlines()[0])
        return None
    if not explanation.summary.strip():
        return None
    return explanation


class LLMExplanationGenerator:
    """Explanation generator backed by an LLM client returning JSON text."""

    def __init__(self, client: LLMClient):
        self.client = client

    async def generate(self, context: ExplanationContext) -> Optional[LLMGeneratedExplanation]:
        logger.info("Generating clinical explanation for %s / %s", context.gene, context.drug)
        text = await self.client.generate_json(build_prompt(context))
        return parse_explanation(text)


def get_explanation_generator(settings: Optional[Settings] = None) -> Optional[ExplanationGenerator]:
    """Generator for the configured LLM provider, or None when disabled."""
    settings = settings or get_settings()
    provider = settings.llm_provider.lower()
    if provider == "groq":
        return LLMExplanationGenerator(GroqClient())
    if provider == "ollama":
        return LLMExplanationGenerator(OllamaClient())
    if provider != "none":
        logger.warning("Unknown LLM_PROVIDER %r; explanations will use the fallback", provider)
    return None


async def explain(
    evaluation: DrugRiskEvaluation,
    generator: Optional[ExplanationGenerator],
    timeout: Optional[float] = None,
) -> Tuple[LLMGeneratedExplanation, HallucinationCheck]:
    """
    Obtain an explanation for one evaluation and run the guardrail on it.

    Generator failure, timeout or empty output is recovered locally with
    the deterministic fallback; it is never raised to the caller.
    """
    explanation = None
    if generator is not None:
        try:
            explanation = await asyncio.wait_for(generator.generate(build_context(evaluation)), timeout)
        except asyncio.TimeoutError:
            logger.warning("LLM fallback triggered: explanation timed out after %ss", timeout)
        except Exception as e:
            logger.warning("LLM fallback triggered: %s", e)

    if explanation is None:
        explanation = fallback_explanation(evaluation)

    check = validate(
        evaluation.pharmacogenomic_profile.detected_variants,
        explanation.variant_citations,
    )
    return explanation, check
