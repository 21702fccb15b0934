"""
Pharmacogenomics Service

CPIC-style pharmacogenomic decision engine for drug risk assessment.
Provides deterministic, rule-based phenotype inference, drug policies,
multi-gene interaction checks and confidence scoring.
"""

from .models import (
    DetectedVariant,
    Drug,
    Phenotype,
    PhenotypeCall,
    PhenotypeDistribution,
    RiskLabel,
    Severity,
    RiskAssessment,
    ClinicalRecommendation,
    MultiGeneInteraction,
    PharmacogenomicProfile,
    DrugRiskEvaluation,
)
from .config import get_config
from .phenotype_mapper import infer, relevant_variants
from .risk_engine import (
    DRUG_GENE_MAP,
    RiskEngine,
    create_risk_engine,
    evaluate,
    evaluate_phenotype,
)

__all__ = [
    # Models
    'DetectedVariant',
    'Drug',
    'Phenotype',
    'PhenotypeCall',
    'PhenotypeDistribution',
    'RiskLabel',
    'Severity',
    'RiskAssessment',
    'ClinicalRecommendation',
    'MultiGeneInteraction',
    'PharmacogenomicProfile',
    'DrugRiskEvaluation',

    # Config
    'get_config',

    # Phenotype Mapping
    'infer',
    'relevant_variants',

    # Risk Engine
    'DRUG_GENE_MAP',
    'RiskEngine',
    'create_risk_engine',
    'evaluate',
    'evaluate_phenotype',
]
