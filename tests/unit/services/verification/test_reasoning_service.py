"""Tests for the reasoning-service collaborator."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import pytest

from app.core.exceptions import APITimeoutError
from app.schemas.verification import (
    FieldStatus,
    RuleType,
    SupplierReference,
    VerificationField,
)
from app.services.verification.reasoning_service import (
    DEFAULT_INSTRUCTIONS,
    FieldReasoningService,
    field_instructions,
)


def completion(content):
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


@pytest.fixture
def client():
    return AsyncMock()


@pytest.fixture
def reasoning_service(client):
    return FieldReasoningService(client=client, model="test-model")


def llm_settings(**overrides):
    values = dict(
        api_key="secret",
        api_url="https://llm.example.com/v1/chat/completions",
        model="test-model",
        timeout_seconds=5,
        max_retries=1,
        retry_delay=0,
    )
    values.update(overrides)
    return SimpleNamespace(enabled=bool(values["api_key"]), **values)


@pytest.mark.asyncio
async def test_compare_fields_parses_fenced_json(reasoning_service, client):
    client.call_api.return_value = completion(
        '```json\n{"match": true, "reason": "Legal form abbreviations differ"}\n```'
    )

    verdict = await reasoning_service.compare_fields(
        "denominazione_ragione_sociale", "ROSSI SPA", "ROSSI S.P.A."
    )

    assert verdict == {"match": True, "reason": "Legal form abbreviations differ"}
    payload = client.call_api.call_args.kwargs["payload"]
    assert payload["model"] == "test-model"
    assert payload["max_tokens"] == 100
    assert "Company Name" in payload["messages"][1]["content"]
    assert "legal forms" in payload["messages"][1]["content"]


@pytest.mark.asyncio
async def test_compare_fields_returns_none_on_client_error(reasoning_service, client):
    client.call_api.side_effect = APITimeoutError("API Timeout after 3 attempts")

    assert await reasoning_service.compare_fields("sede_legale", "VIA ROMA 1", "Via Roma, 1") is None


@pytest.mark.asyncio
async def test_compare_fields_returns_none_on_unparseable_answer(reasoning_service, client):
    client.call_api.return_value = completion("I think they are probably the same")

    assert await reasoning_service.compare_fields("sede_legale", "a", "b") is None


@pytest.mark.asyncio
async def test_compare_fields_returns_none_on_unexpected_shape(reasoning_service, client):
    client.call_api.return_value = {"error": "overloaded"}

    assert await reasoning_service.compare_fields("sede_legale", "a", "b") is None


@pytest.mark.asyncio
async def test_unavailable_service_never_calls_out():
    service = FieldReasoningService(client=None, model="test-model")

    assert service.available is False
    assert await service.compare_fields("sede_legale", "a", "b") is None
    assert await service.generate_analysis("ctx", {}, SupplierReference(), []) is None


@pytest.mark.asyncio
async def test_generate_analysis_returns_narrative(reasoning_service, client):
    client.call_api.return_value = completion("  Same entity. Compliance risk: Low.  ")
    comparison = VerificationField(
        field_name="codice_fiscale",
        ocr_value="01234567890",
        api_value="01234567890",
        rule_type=RuleType.EXACT_MATCH,
        threshold=100,
        is_required=True,
        match_score=100,
        status=FieldStatus.MATCH,
    )

    analysis = await reasoning_service.generate_analysis(
        "DURC Document Verification",
        {"codice_fiscale": "01234567890", "risultato": None},
        SupplierReference(company_name="ROSSI SRL", address="VIA ROMA 1", city="VENEZIA"),
        [comparison],
    )

    assert analysis == "Same entity. Compliance risk: Low."
    prompt = client.call_api.call_args.kwargs["payload"]["messages"][1]["content"]
    assert "- risultato: N/A" in prompt
    assert "- Address: VIA ROMA 1, VENEZIA" in prompt
    assert "codice_fiscale: match (100% match)" in prompt


@pytest.mark.asyncio
async def test_generate_analysis_blank_answer_is_none(reasoning_service, client):
    client.call_api.return_value = completion("   ")

    assert await reasoning_service.generate_analysis("ctx", {}, SupplierReference(), []) is None


def test_from_settings_without_key_is_unavailable():
    service = FieldReasoningService.from_settings(llm_settings(api_key=""))
    assert service.available is False
    assert service.model == "test-model"


@pytest.mark.asyncio
async def test_from_settings_uses_shared_http_client():
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=completion('{"match": false, "reason": "Different VAT"}'))

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        service = FieldReasoningService.from_settings(llm_settings(), http_client=http_client)
        verdict = await service.compare_fields("partita_iva", "01234567890", "09876543210")
        await service.aclose()
        assert not http_client.is_closed

    assert verdict == {"match": False, "reason": "Different VAT"}
    assert len(requests) == 1
    assert requests[0].headers["Authorization"] == "Bearer secret"
    assert json.loads(requests[0].content)["temperature"] == 0.1


@pytest.mark.asyncio
async def test_from_settings_server_error_degrades_to_none():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503, text="unavailable")

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http_client:
        service = FieldReasoningService.from_settings(llm_settings(), http_client=http_client)
        assert await service.compare_fields("sede_legale", "a", "b") is None


def test_field_instructions_default():
    assert field_instructions("unknown_field") == DEFAULT_INSTRUCTIONS
