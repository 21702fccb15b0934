"""
Tests for the analysis pipeline: single units, batches, the counterfactual
override and the JSON export.
"""

import asyncio
from datetime import datetime

import pytest

from genorisk.exceptions import UnsupportedDrugError
from genorisk.schemas.pharma_schema import HallucinationCheck, LLMGeneratedExplanation
from genorisk.services.pharmacogenomics.models import (
    Drug,
    Phenotype,
    PhenotypeDistribution,
    RiskLabel,
    Severity,
)
from genorisk.services.pipeline import analysis_pipeline
from genorisk.services.pipeline.analysis_pipeline import (
    PatientRecord,
    apply_override,
    export_results,
    load_results,
    patient_id_from_filename,
    run_analysis_pipeline,
    run_batch,
)

CODEINE_PM_RECORD = "1\t123\trs28371706\tC\tT\t.\t.\tGENE=CYP2D6;STAR=*4\n"

WARFARIN_RECORD = "\n".join([
    "##fileformat=VCFv4.2",
    "#CHROM\tPOS\tID\tREF\tALT\tQUAL\tFILTER\tINFO",
    "10\t94981296\trs1057910\tA\tC\t.\tPASS\tGENE=CYP2C9;STAR=*3",
    "16\t31096368\trs9923231\tC\tT\t.\tPASS\tGENE=VKORC1",
])


class StaticGenerator:
    """Returns the same explanation for every context."""

    def __init__(self, citations):
        self.calls = 0
        self.citations = citations

    async def generate(self, context):
        self.calls += 1
        return LLMGeneratedExplanation(
            summary=f"{context.gene} {context.phenotype} for {context.drug}.",
            variant_citations=tuple(self.citations),
        )


class SelectiveSlowGenerator:
    """Hangs for one drug only."""

    def __init__(self, slow_drug):
        self.slow_drug = slow_drug

    async def generate(self, context):
        if context.drug == self.slow_drug:
            await asyncio.sleep(5)
        return LLMGeneratedExplanation(summary=f"Explained {context.drug}.")


class SleepyGenerator:
    """Takes a fixed time per explanation."""

    def __init__(self, seconds):
        self.seconds = seconds

    async def generate(self, context):
        await asyncio.sleep(self.seconds)
        return LLMGeneratedExplanation(summary=f"Explained {context.drug}.")


class TestPatientId:

    @pytest.mark.parametrize("filename,expected", [
        ("patient_01.vcf", "PATIENT_01"),
        ("sample.VCF", "SAMPLE"),
        ("archive.vcf.gz", "ARCHIVE"),
        ("notes.txt", "NOTES"),
        ("/tmp/uploads/p7.vcf", "P7"),
        ("", "ANONYMOUS"),
    ])
    def test_patient_id_from_filename(self, filename, expected):
        assert patient_id_from_filename(filename) == expected


class TestSingleRun:

    @pytest.mark.asyncio
    async def test_codeine_poor_metabolizer_end_to_end(self):
        result = await run_analysis_pipeline("PATIENT_A", "codeine", CODEINE_PM_RECORD)

        assert result.patient_id == "PATIENT_A"
        assert result.drug == Drug.CODEINE
        assert result.pharmacogenomic_profile.phenotype == Phenotype.PM
        assert result.pharmacogenomic_profile.diplotype == "*4/*4"
        assert result.risk_assessment.risk_label == RiskLabel.INEFFECTIVE
        assert result.risk_assessment.severity == Severity.MODERATE
        assert result.quality_metrics.variants_found == 1
        assert result.quality_metrics.vcf_parsing_success is True
        assert result.quality_metrics.llm_hallucination_check == HallucinationCheck.PASSED
        assert result.llm_generated_explanation.variant_citations == ("rs28371706",)
        assert result.simulated is False
        datetime.fromisoformat(result.timestamp)

    @pytest.mark.asyncio
    async def test_empty_record_is_safe_default(self):
        result = await run_analysis_pipeline("EMPTY", Drug.SIMVASTATIN, "")

        assert result.quality_metrics.variants_found == 0
        assert result.pharmacogenomic_profile.phenotype == Phenotype.NM
        assert result.pharmacogenomic_profile.diplotype == "*1/*1"
        assert result.risk_assessment.risk_label == RiskLabel.SAFE
        assert result.risk_assessment.severity == Severity.NONE
        assert result.risk_assessment.confidence_score == pytest.approx(0.67)

    @pytest.mark.asyncio
    async def test_warfarin_vkorc1_interaction(self):
        result = await run_analysis_pipeline("W1", Drug.WARFARIN, WARFARIN_RECORD)

        interaction = result.multi_gene_interaction
        assert interaction.genes_involved == ("CYP2C9", "VKORC1")
        assert interaction.composite_score == pytest.approx(0.85)
        assert result.quality_metrics.variants_found == 2

    @pytest.mark.asyncio
    async def test_hallucinated_citation_is_flagged_not_raised(self):
        generator = StaticGenerator(["rs28371706", "rs9999999"])
        result = await run_analysis_pipeline("P", Drug.CODEINE, CODEINE_PM_RECORD, generator)

        assert generator.calls == 1
        assert result.quality_metrics.llm_hallucination_check == HallucinationCheck.FAILED
        assert result.risk_assessment.risk_label == RiskLabel.INEFFECTIVE

    @pytest.mark.asyncio
    async def test_unsupported_drug_raises(self):
        with pytest.raises(UnsupportedDrugError) as exc:
            await run_analysis_pipeline("P", "aspirin", CODEINE_PM_RECORD)
        assert "ASPIRIN" in str(exc.value)

    @pytest.mark.asyncio
    async def test_bytes_record_accepted(self):
        result = await run_analysis_pipeline("P", Drug.CODEINE, CODEINE_PM_RECORD.encode("utf-8"))
        assert result.pharmacogenomic_profile.phenotype == Phenotype.PM


class TestBatch:

    @pytest.mark.asyncio
    async def test_results_sorted_by_patient_then_drug(self):
        records = [
            PatientRecord("ZED", CODEINE_PM_RECORD),
            PatientRecord("ALPHA", WARFARIN_RECORD),
        ]
        results = await run_batch(records, [Drug.WARFARIN, "codeine"])

        assert [(r.patient_id, r.drug.value) for r in results] == [
            ("ALPHA", "CODEINE"),
            ("ALPHA", "WARFARIN"),
            ("ZED", "CODEINE"),
            ("ZED", "WARFARIN"),
        ]

    @pytest.mark.asyncio
    async def test_each_record_parsed_once(self, monkeypatch):
        calls = []
        original = analysis_pipeline.extract

        def counting_extract(content):
            calls.append(content)
            return original(content)

        monkeypatch.setattr(analysis_pipeline, "extract", counting_extract)
        records = [PatientRecord("A", CODEINE_PM_RECORD), PatientRecord("B", WARFARIN_RECORD)]
        results = await run_batch(records, list(Drug))

        assert len(calls) == 2
        assert len(results) == 2 * len(Drug)

    @pytest.mark.asyncio
    async def test_slow_unit_degrades_only_itself(self):
        records = [PatientRecord("A", WARFARIN_RECORD)]
        results = await run_batch(
            records,
            [Drug.CODEINE, Drug.WARFARIN],
            SelectiveSlowGenerator("WARFARIN"),
            timeout=0.05,
        )

        by_drug = {r.drug: r for r in results}
        assert by_drug[Drug.CODEINE].llm_generated_explanation.summary == "Explained CODEINE."
        assert by_drug[Drug.WARFARIN].llm_generated_explanation.summary.startswith("The patient has a PM phenotype for CYP2C9")

    @pytest.mark.asyncio
    async def test_processing_time_excludes_queueing(self):
        """With one slot, later units wait; their own timing must not include the wait"""
        drugs = [Drug.CODEINE, Drug.WARFARIN, Drug.CLOPIDOGREL, Drug.SIMVASTATIN]
        results = await run_batch(
            [PatientRecord("A", CODEINE_PM_RECORD)],
            drugs,
            SleepyGenerator(0.1),
            max_concurrency=1,
        )

        timings = [r.quality_metrics.processing_time_ms for r in results]
        assert all(90 <= ms < 300 for ms in timings), timings

    @pytest.mark.asyncio
    async def test_unsupported_drug_in_batch_raises(self):
        with pytest.raises(UnsupportedDrugError):
            await run_batch([PatientRecord("A", "")], ["CODEINE", "IBUPROFEN"])

    @pytest.mark.asyncio
    async def test_empty_batch(self):
        assert await run_batch([], list(Drug)) == []


class TestApplyOverride:

    @pytest.fixture
    def codeine_result(self):
        return asyncio.run(run_analysis_pipeline("P", Drug.CODEINE, CODEINE_PM_RECORD))

    def test_override_reapplies_policy(self, codeine_result):
        simulated = apply_override(codeine_result, Phenotype.URM)

        assert simulated.simulated is True
        assert simulated.pharmacogenomic_profile.phenotype == Phenotype.URM
        assert simulated.pharmacogenomic_profile.diplotype == "SIMULATED"
        assert simulated.pharmacogenomic_profile.phenotype_probability == PhenotypeDistribution.one_hot(Phenotype.URM)
        assert simulated.risk_assessment.risk_label == RiskLabel.TOXIC
        assert simulated.risk_assessment.severity == Severity.HIGH
        assert "toxicity" in simulated.clinical_recommendation.action

    def test_override_preserves_upstream_state(self, codeine_result):
        simulated = apply_override(codeine_result, "NM")

        assert simulated.risk_assessment.risk_label == RiskLabel.SAFE
        assert simulated.risk_assessment.confidence_score == codeine_result.risk_assessment.confidence_score
        assert simulated.pharmacogenomic_profile.detected_variants == codeine_result.pharmacogenomic_profile.detected_variants
        assert simulated.pharmacogenomic_profile.variant_rarity_score == codeine_result.pharmacogenomic_profile.variant_rarity_score
        assert simulated.multi_gene_interaction == codeine_result.multi_gene_interaction
        assert simulated.patient_id == codeine_result.patient_id

    def test_original_result_untouched(self, codeine_result):
        before = codeine_result.model_dump()
        apply_override(codeine_result, Phenotype.NM)

        assert codeine_result.model_dump() == before
        assert codeine_result.simulated is False

    def test_override_explanation_is_fallback(self, codeine_result):
        simulated = apply_override(codeine_result, Phenotype.NM)

        assert "NM phenotype for CYP2D6" in simulated.llm_generated_explanation.summary
        assert simulated.quality_metrics.llm_hallucination_check == HallucinationCheck.PASSED
        datetime.fromisoformat(simulated.timestamp)

    def test_invalid_phenotype_rejected(self, codeine_result):
        with pytest.raises(ValueError):
            apply_override(codeine_result, "SUPER")


class TestExport:

    @pytest.mark.asyncio
    async def test_export_and_load(self):
        results = await run_batch([PatientRecord("A", WARFARIN_RECORD)], [Drug.WARFARIN, Drug.CODEINE])
        text = export_results(results)

        assert '"patient_id": "A"' in text
        assert '"drug": "CODEINE"' in text
        assert load_results(text) == results

    def test_export_empty(self):
        assert load_results(export_results([])) == []
