"""
GenoRisk

Deterministic pharmacogenomic risk pipeline: variant extraction, phenotype
inference, CPIC-style drug rules and an explanation hallucination guardrail.
"""

__version__ = "1.0.0"
