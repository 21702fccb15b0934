"""
Hallucination guardrail for generated explanations.

A citation is a hallucination when it looks like an rsID (starts with
"rs", case-insensitive) and is not one of the detected rsIDs. Gene symbols
and star alleles are never checked.
"""

import logging
from typing import Iterable, Optional, Sequence, Set

from genorisk.schemas.pharma_schema import HallucinationCheck
from genorisk.services.pharmacogenomics.models import DetectedVariant

logger = logging.getLogger(__name__)

RSID_PREFIX = "rs"


def _detected_rsid_set(detected_variants: Iterable[DetectedVariant]) -> Set[str]:
    return {v.rsid.lower() for v in detected_variants}


def find_hallucinated_citations(
    detected_variants: Sequence[DetectedVariant],
    citations: Optional[Iterable[object]],
) -> list:
    """Return the rsID-shaped citations that are absent from the detected variants."""
    if not citations:
        return []
    detected = _detected_rsid_set(detected_variants)
    flagged = []
    for citation in citations:
        if not isinstance(citation, str):
            continue
        lowered = citation.lower()
        if lowered.startswith(RSID_PREFIX) and lowered not in detected:
            flagged.append(citation)
    return flagged


def validate(
    detected_variants: Sequence[DetectedVariant],
    citations: Optional[Iterable[object]],
) -> HallucinationCheck:
    """
    ``failed`` if any citation is an ungrounded rsID, else ``passed``.
    Total: empty or malformed citation lists pass vacuously.
    """
    flagged = find_hallucinated_citations(detected_variants, citations)
    if flagged:
        logger.warning("Explanation cites undetected variants: %s", ", ".join(flagged))
        return HallucinationCheck.FAILED
    return HallucinationCheck.PASSED
