from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from typing import List, Optional

from genorisk.core import logging as _logging  # noqa: F401  (configures logging)
from genorisk.core.settings import get_settings
from genorisk.exceptions import UnsupportedDrugError
from genorisk.services.llm.explanation_service import get_explanation_generator
from genorisk.services.pharmacogenomics.models import Drug
from genorisk.services.pipeline.analysis_pipeline import (
    PatientRecord,
    export_results,
    patient_id_from_filename,
    run_batch,
)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="python -m genorisk",
        description="Run the pharmacogenomic risk pipeline over variant records and print JSON results.",
    )
    parser.add_argument("records", nargs="+", type=Path, help="Variant record file(s)")
    parser.add_argument(
        "--drug", action="append", dest="drugs",
        help="Drug to analyse (repeatable). Defaults to all supported drugs.",
    )
    parser.add_argument("--patient-id", help="Patient identifier (single record only)")
    parser.add_argument("--no-llm", action="store_true", help="Use the deterministic explanation only")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    missing = [p for p in args.records if not p.exists()]
    if missing:
        print(f"File not found: {missing[0]}", file=sys.stderr)
        return 2

    try:
        drugs = [Drug.parse(d) for d in args.drugs] if args.drugs else list(Drug)
    except UnsupportedDrugError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    records = []
    for path in args.records:
        patient_id = args.patient_id if args.patient_id and len(args.records) == 1 else patient_id_from_filename(path.name)
        records.append(PatientRecord(patient_id, path.read_text(encoding="utf-8", errors="replace")))

    settings = get_settings()
    generator = None if args.no_llm else get_explanation_generator(settings)
    results = asyncio.run(run_batch(
        records,
        drugs,
        generator,
        max_concurrency=settings.llm_max_concurrency,
        timeout=settings.llm_timeout_seconds,
    ))
    print(export_results(results))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
