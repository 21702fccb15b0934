"""
Tests for explanation generation, fallback and guardrail wiring.
The LLM is replaced by in-process fakes; no network access.
"""

import asyncio
import json
import logging

import httpx
import pytest

from genorisk.schemas.pharma_schema import HallucinationCheck, LLMGeneratedExplanation
from genorisk.services.llm.explanation_service import (
    LLMExplanationGenerator,
    build_context,
    explain,
    fallback_explanation,
    get_explanation_generator,
    parse_explanation,
)
from genorisk.core.settings import Settings
from genorisk.services.llm.groq_client import GroqClient
from genorisk.services.llm.ollama_client import OllamaClient
from genorisk.services.llm.prompt_builder import build_prompt
from genorisk.services.pharmacogenomics.models import Drug
from genorisk.services.pharmacogenomics.risk_engine import evaluate
from genorisk.services.vcf.variant_extractor import extract

RECORD = "\n".join([
    "1\t123\trs28371706\tC\tT\t.\t.\tGENE=CYP2D6;STAR=*4",
    "1\t456\trs1065852\tG\tA\t.\t.\tGENE=CYP2D6",
])


def explanation_json(citations):
    return json.dumps({
        "summary": "CYP2D6 poor metabolizer; codeine is unlikely to be effective.",
        "biological_mechanism": "Reduced CYP2D6 activity limits conversion of codeine to morphine.",
        "variant_citations": citations,
        "confidence_reasoning": "Level A guideline.",
        "counterfactual_analysis": "A normal metabolizer would respond to standard dosing.",
    })


class FakeClient:
    def __init__(self, text):
        self.text = text
        self.prompts = []

    async def generate_json(self, prompt):
        self.prompts.append(prompt)
        return self.text


class SlowGenerator:
    async def generate(self, context):
        await asyncio.sleep(5)


class BrokenGenerator:
    async def generate(self, context):
        raise RuntimeError("upstream exploded")


@pytest.fixture
def evaluation():
    return evaluate(Drug.CODEINE, extract(RECORD))


class TestContextAndFallback:

    def test_context_carries_verified_fields(self, evaluation):
        context = build_context(evaluation)

        assert context.drug == "CODEINE"
        assert context.gene == "CYP2D6"
        assert context.diplotype == "*4/*4"
        assert context.phenotype == "PM"
        assert context.risk_label == "Ineffective"
        assert context.severity == "moderate"
        assert context.detected_rsids == ("rs28371706", "rs1065852")

    def test_prompt_lists_detected_variants(self, evaluation):
        prompt = build_prompt(build_context(evaluation))

        assert "Detected Variants=rs28371706, rs1065852" in prompt
        assert "Drug=CODEINE" in prompt

    def test_fallback_cites_exactly_detected_rsids(self, evaluation):
        fallback = fallback_explanation(evaluation)

        assert fallback.variant_citations == ("rs28371706", "rs1065852")
        assert "PM phenotype for CYP2D6" in fallback.summary
        assert "Ineffective risk for CODEINE" in fallback.summary


class TestParseExplanation:

    def test_valid_json(self):
        parsed = parse_explanation(explanation_json(["rs28371706"]))
        assert parsed.variant_citations == ("rs28371706",)

    @pytest.mark.parametrize("text", [None, "", "   ", "not json", "[]", '{"summary": ""}', '{"variant_citations": []}'])
    def test_unusable_output_is_none(self, text):
        assert parse_explanation(text) is None

    def test_missing_optional_fields_default(self):
        parsed = parse_explanation('{"summary": "Short."}')
        assert parsed == LLMGeneratedExplanation(summary="Short.")


class TestExplain:

    @pytest.mark.asyncio
    async def test_grounded_llm_explanation_passes(self, evaluation):
        client = FakeClient(explanation_json(["rs28371706", "CYP2D6"]))
        explanation, check = await explain(evaluation, LLMExplanationGenerator(client))

        assert check == HallucinationCheck.PASSED
        assert explanation.summary.startswith("CYP2D6 poor metabolizer")
        assert len(client.prompts) == 1

    @pytest.mark.asyncio
    async def test_hallucinated_rsid_fails(self, evaluation):
        client = FakeClient(explanation_json(["rs28371706", "rs9999999"]))
        explanation, check = await explain(evaluation, LLMExplanationGenerator(client))

        assert check == HallucinationCheck.FAILED
        assert "rs9999999" in explanation.variant_citations

    @pytest.mark.asyncio
    async def test_no_generator_uses_fallback(self, evaluation):
        explanation, check = await explain(evaluation, None)

        assert explanation == fallback_explanation(evaluation)
        assert check == HallucinationCheck.PASSED

    @pytest.mark.asyncio
    async def test_empty_output_uses_fallback(self, evaluation):
        explanation, check = await explain(evaluation, LLMExplanationGenerator(FakeClient("")))

        assert explanation == fallback_explanation(evaluation)
        assert check == HallucinationCheck.PASSED

    @pytest.mark.asyncio
    async def test_timeout_uses_fallback(self, evaluation):
        explanation, check = await explain(evaluation, SlowGenerator(), timeout=0.01)

        assert explanation == fallback_explanation(evaluation)
        assert check == HallucinationCheck.PASSED

    @pytest.mark.asyncio
    async def test_generator_exception_uses_fallback(self, evaluation, caplog):
        with caplog.at_level(logging.WARNING, logger="genorisk.services.llm.explanation_service"):
            explanation, check = await explain(evaluation, BrokenGenerator())

        assert "LLM fallback triggered: upstream exploded" in caplog.text

        assert explanation == fallback_explanation(evaluation)
        assert check == HallucinationCheck.PASSED


class TestClients:

    @pytest.mark.asyncio
    async def test_groq_client_reads_message_content(self):
        seen = {}

        def handler(request):
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"choices": [{"message": {"content": '{"summary": "ok"}'}}]})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = GroqClient(api_key="test-key", model="m", http_client=http)
            text = await client.generate_json("prompt")

        assert text == '{"summary": "ok"}'
        assert seen["auth"] == "Bearer test-key"
        assert seen["body"]["response_format"] == {"type": "json_object"}

    @pytest.mark.asyncio
    async def test_groq_client_without_key_returns_none(self):
        def handler(request):
            raise AssertionError("no request expected without an API key")

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = GroqClient(http_client=http)
            client.api_key = ""
            assert not client.available
            assert await client.generate_json("p") is None

    @pytest.mark.asyncio
    async def test_groq_client_client_error_returns_none(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(401, json={"error": "bad key"}))
        async with httpx.AsyncClient(transport=transport) as http:
            assert await GroqClient(api_key="k", http_client=http).generate_json("p") is None

    @pytest.mark.asyncio
    async def test_ollama_client_reads_response_field(self):
        def handler(request):
            assert request.url.path == "/api/generate"
            assert json.loads(request.content)["format"] == "json"
            return httpx.Response(200, json={"response": '{"summary": "ok"}'})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = OllamaClient(base_url="http://ollama.test", model="llama3", http_client=http)
            assert await client.generate_json("prompt") == '{"summary": "ok"}'

    @pytest.mark.asyncio
    async def test_ollama_unreachable_returns_none(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = OllamaClient(base_url="http://ollama.test", http_client=http)
            assert await client.generate_json("prompt") is None


class TestGeneratorFactory:

    def test_none_provider(self):
        assert get_explanation_generator(Settings(llm_provider="none")) is None

    def test_unknown_provider(self):
        assert get_explanation_generator(Settings(llm_provider="gemini")) is None

    def test_groq_provider(self):
        generator = get_explanation_generator(Settings(llm_provider="groq"))
        assert isinstance(generator.client, GroqClient)

    def test_ollama_provider(self):
        generator = get_explanation_generator(Settings(llm_provider="OLLAMA"))
        assert isinstance(generator.client, OllamaClient)
