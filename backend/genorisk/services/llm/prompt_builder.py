from genorisk.schemas.internal_contracts import ExplanationContext


def build_prompt(context: ExplanationContext) -> str:
    """
    Constructs the prompt asking the LLM for a structured JSON explanation.

    The detected rsIDs are listed explicitly; the guardrail later rejects
    any rsID citation outside that list.
    """
    detected = ", ".join(context.detected_rsids) if context.detected_rsids else "None"
    return f"""SYSTEM:
You are a clinical pharmacogeneticist.
Follow CPIC guidance strictly.

Rules:
- Only use provided context.
- Do NOT invent biology.
- Only cite genes and rsIDs listed under Detected Variants.
- Clinician tone only.

Drug={context.drug}
Gene={context.gene}
Diplotype={context.diplotype}
Phenotype={context.phenotype}
Risk={context.risk_label} ({context.severity} severity)
Recommendation={context.action}
Detected Variants={detected}

Respond with a single JSON object:
{{
  "summary": "A concise summary of the clinical significance.",
  "biological_mechanism": "How the variant affects drug metabolism or transport.",
  "variant_citations": ["rsIDs or star alleles supporting the explanation"],
  "confidence_reasoning": "Why the confidence score was assigned.",
  "counterfactual_analysis": "What would change with a Normal Metabolizer phenotype."
}}
"""
