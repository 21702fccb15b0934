"""
Risk Engine - Evaluates pharmacogenomic risk for a drug from detected variants.

Flow for one drug:
- look up the drug's primary gene
- infer the phenotype for that gene
- apply the drug's policy table (first matching phenotype rule wins)
- detect multi-gene interactions
- compute the confidence score last

Everything here is a pure function of (drug, variants).
"""

from dataclasses import dataclass
from types import MappingProxyType
from typing import FrozenSet, Mapping, Optional, Sequence, Tuple
import logging

from .config import EngineConfig, get_config
from .confidence import ConfidenceCalculator, count_primary_gene_variants
from .models import (
    ClinicalRecommendation,
    CPICAlignment,
    DetectedVariant,
    Drug,
    DrugRiskEvaluation,
    PharmacogenomicProfile,
    Phenotype,
    RiskAssessment,
    RiskLabel,
    Severity,
)
from .multi_gene import detect_interaction
from .phenotype_mapper import infer, relevant_variants

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Drug -> primary gene mapping
# ---------------------------------------------------------------------------
DRUG_GENE_MAP: Mapping[Drug, str] = MappingProxyType({
    Drug.CODEINE:      "CYP2D6",
    Drug.WARFARIN:     "CYP2C9",
    Drug.CLOPIDOGREL:  "CYP2C19",
    Drug.SIMVASTATIN:  "SLCO1B1",
    Drug.AZATHIOPRINE: "TPMT",
    Drug.FLUOROURACIL: "DPYD",
})


def gene_for_drug(drug: Drug) -> str:
    return DRUG_GENE_MAP[drug]


# ---------------------------------------------------------------------------
# Per-drug policy tables
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class DrugOutcome:
    risk_label: RiskLabel
    severity: Severity
    action: str
    dosage_adjustment: Optional[str]
    alternatives: Tuple[str, ...] = ()


@dataclass(frozen=True)
class PolicyRule:
    phenotypes: FrozenSet[Phenotype]
    outcome: DrugOutcome


DEFAULT_OUTCOME = DrugOutcome(
    risk_label=RiskLabel.SAFE,
    severity=Severity.NONE,
    action="Standard dosing according to clinical standards.",
    dosage_adjustment="None",
)


def _rule(phenotypes, label, severity, action, dosage, alternatives) -> PolicyRule:
    return PolicyRule(
        phenotypes=frozenset(phenotypes),
        outcome=DrugOutcome(label, severity, action, dosage, tuple(alternatives)),
    )


DRUG_POLICIES: Mapping[Drug, Tuple[PolicyRule, ...]] = MappingProxyType({
    Drug.CODEINE: (
        _rule(
            [Phenotype.URM], RiskLabel.TOXIC, Severity.HIGH,
            "Avoid codeine use due to potential for toxicity.", "N/A",
            ["Morphine", "Non-opioid analgesics"],
        ),
        _rule(
            [Phenotype.PM], RiskLabel.INEFFECTIVE, Severity.MODERATE,
            "Avoid codeine use due to lack of efficacy.", "N/A",
            ["Morphine", "Oxycodone"],
        ),
    ),
    Drug.WARFARIN: (
        _rule(
            [Phenotype.PM], RiskLabel.ADJUST_DOSAGE, Severity.MODERATE,
            "Lower initial dose recommended.", "Decrease dose by 50-70%",
            ["DOACs (Apixaban, Rivaroxaban)"],
        ),
        _rule(
            [Phenotype.IM], RiskLabel.ADJUST_DOSAGE, Severity.MODERATE,
            "Lower initial dose recommended.", "Decrease dose by 20-30%",
            ["DOACs (Apixaban, Rivaroxaban)"],
        ),
    ),
    Drug.CLOPIDOGREL: (
        _rule(
            [Phenotype.PM, Phenotype.IM], RiskLabel.INEFFECTIVE, Severity.HIGH,
            "Avoid clopidogrel; consider alternative antiplatelet therapy.", "N/A",
            ["Prasugrel", "Ticagrelor"],
        ),
    ),
    Drug.SIMVASTATIN: (
        _rule(
            [Phenotype.PM, Phenotype.IM], RiskLabel.TOXIC, Severity.MODERATE,
            "Prescribe lower dose or consider alternative statin.", "Limit dose to 20mg/day or less.",
            ["Pravastatin", "Rosuvastatin"],
        ),
    ),
    Drug.AZATHIOPRINE: (
        _rule(
            [Phenotype.PM], RiskLabel.TOXIC, Severity.CRITICAL,
            "Drastically reduce dose or avoid use.", "Reduce dose by 10-fold and monitor closely.",
            ["Methotrexate", "Mycophenolate mofetil"],
        ),
    ),
    Drug.FLUOROURACIL: (
        _rule(
            [Phenotype.PM], RiskLabel.TOXIC, Severity.CRITICAL,
            "Avoid use or significantly reduce dose.", "Reduce dose by 50% or more.",
            ["Capecitabine", "Alternative chemotherapy"],
        ),
    ),
})


def evaluate_phenotype(drug: Drug, phenotype: Phenotype) -> DrugOutcome:
    """Apply the drug's policy table to a phenotype. No match -> Safe."""
    for rule in DRUG_POLICIES.get(drug, ()):
        if phenotype in rule.phenotypes:
            return rule.outcome
    return DEFAULT_OUTCOME


def build_recommendation(outcome: DrugOutcome, config: Optional[EngineConfig] = None) -> ClinicalRecommendation:
    config = config or get_config()
    return ClinicalRecommendation(
        action=outcome.action,
        dosage_adjustment=outcome.dosage_adjustment,
        alternatives=outcome.alternatives or None,
        guideline_reference=config.guideline_reference,
    )


def build_cpic_alignment(drug: Drug, config: Optional[EngineConfig] = None) -> CPICAlignment:
    config = config or get_config()
    return CPICAlignment(
        guideline_level=config.guideline_level,
        source=f"CPIC Guideline for {drug.value}",
        evidence_strength=config.evidence_strength,
    )


class RiskEngine:
    """Deterministic drug risk evaluation over detected variants."""

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or get_config()
        self.confidence_calc = ConfidenceCalculator(self.config)

    def evaluate(self, drug: Drug, variants: Sequence[DetectedVariant]) -> DrugRiskEvaluation:
        gene = gene_for_drug(drug)
        call = infer(gene, variants)
        outcome = evaluate_phenotype(drug, call.phenotype)
        interaction = detect_interaction(drug, gene, variants)
        cpic = build_cpic_alignment(drug, self.config)

        confidence = self.confidence_calc.calculate_confidence(
            cpic.guideline_level,
            variant_count=count_primary_gene_variants(gene, variants),
        )

        logger.info(
            "Computed risk for %s / %s / %s -> %s (%s)",
            drug.value, gene, call.phenotype.value, outcome.risk_label.value, outcome.severity.value,
        )

        return DrugRiskEvaluation(
            drug=drug,
            risk_assessment=RiskAssessment(
                risk_label=outcome.risk_label,
                confidence_score=confidence,
                severity=outcome.severity,
            ),
            pharmacogenomic_profile=PharmacogenomicProfile(
                primary_gene=gene,
                diplotype=call.diplotype,
                phenotype=call.phenotype,
                detected_variants=relevant_variants(gene, variants),
                phenotype_probability=call.probabilities,
                variant_rarity_score=call.rarity_score,
            ),
            cpic_alignment=cpic,
            multi_gene_interaction=interaction,
            clinical_recommendation=build_recommendation(outcome, self.config),
        )


def create_risk_engine(config: Optional[EngineConfig] = None) -> RiskEngine:
    """Factory for a RiskEngine instance."""
    return RiskEngine(config=config)


_default_engine = RiskEngine()


def evaluate(drug: Drug, variants: Sequence[DetectedVariant]) -> DrugRiskEvaluation:
    """Evaluate ``drug`` against ``variants`` with the default configuration."""
    return _default_engine.evaluate(drug, variants)
