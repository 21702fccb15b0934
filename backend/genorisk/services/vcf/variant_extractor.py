from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Union

from genorisk.services.pharmacogenomics.models import DetectedVariant
from genorisk.services.pharmacogenomics.population_data import get_variant_frequency

logger = logging.getLogger(__name__)


MIN_FIELDS = 8
MISSING_ID = "."
UNKNOWN_RSID = "unknown"
UNKNOWN_GENE = "Unknown"

_RS_IN_INFO = re.compile(r"RS=(rs\d+)")
_GENE_IN_INFO = re.compile(r"GENE=([^;]+)")
_STAR_IN_INFO = re.compile(r"STAR=([^;]+)")


@dataclass(frozen=True)
class RecordLine:
    """The eight leading tab-separated fields of a data line."""
    chrom: str
    pos: str
    id: str
    ref: str
    alt: str
    qual: str
    filter: str
    info: str


@dataclass
class ExtractionStats:
    data_lines: int = 0
    malformed_lines: int = 0
    unannotated_lines: int = 0
    variants: int = 0


def _normalize_to_lines(content: Union[str, bytes, Iterable[str]]) -> Iterator[str]:
    if isinstance(content, bytes):
        content = content.decode("utf-8", errors="replace")
    if isinstance(content, str):
        yield from content.split("\n")
        return
    for line in content:
        yield line


def split_record_line(line: str) -> Optional[RecordLine]:
    """Split a data line into its fields, or None when it has fewer than 8."""
    parts = line.split("\t")
    if len(parts) < MIN_FIELDS:
        return None
    return RecordLine(*parts[:MIN_FIELDS])


def resolve_rsid(record: RecordLine) -> str:
    """ID column first, then an RS= tag in INFO, else empty."""
    if record.id and record.id != MISSING_ID:
        return record.id
    match = _RS_IN_INFO.search(record.info)
    return match.group(1) if match else ""


def _info_tag(pattern: re.Pattern, info: str) -> Optional[str]:
    match = pattern.search(info)
    return match.group(1) if match else None


def iter_detected_variants(
    content: Union[str, bytes, Iterable[str]],
    stats: Optional[ExtractionStats] = None,
) -> Iterator[DetectedVariant]:
    """
    Yield a DetectedVariant for every annotated data line, in record order.

    Header/comment lines and blank lines are skipped. Lines with fewer than
    eight tab-separated fields are dropped. A line is kept only when it
    carries at least one of rsID, GENE= or STAR=.
    """
    stats = stats if stats is not None else ExtractionStats()

    for raw in _normalize_to_lines(content):
        if raw.startswith("#") or not raw.strip():
            continue
        stats.data_lines += 1

        record = split_record_line(raw.rstrip("\r"))
        if record is None:
            stats.malformed_lines += 1
            continue

        rsid = resolve_rsid(record)
        gene = _info_tag(_GENE_IN_INFO, record.info)
        star = _info_tag(_STAR_IN_INFO, record.info)

        if not (rsid or gene or star):
            stats.unannotated_lines += 1
            continue

        rsid = rsid or UNKNOWN_RSID
        stats.variants += 1
        yield DetectedVariant(
            rsid=rsid,
            gene=gene or UNKNOWN_GENE,
            genotype=f"{record.ref}/{record.alt}",
            star_allele=star,
            frequency=get_variant_frequency(rsid),
        )


def extract(record_text: Union[str, bytes, Iterable[str]]) -> List[DetectedVariant]:
    """
    Extract detected variants from a record.

    Never raises on text input: noisy or partial records degrade to a
    shorter (possibly empty) variant list.
    """
    stats = ExtractionStats()
    variants = list(iter_detected_variants(record_text, stats))
    if stats.malformed_lines or stats.unannotated_lines:
        logger.debug(
            "Dropped %d malformed and %d unannotated lines out of %d",
            stats.malformed_lines, stats.unannotated_lines, stats.data_lines,
        )
    return variants
