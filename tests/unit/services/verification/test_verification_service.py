"""Tests for the document verification service."""

from types import SimpleNamespace
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from app.core.exceptions import UnsupportedDocumentTypeError
from app.schemas.verification import (
    DocumentType,
    FieldStatus,
    OverallResult,
    RuleType,
    SupplierReference,
)
from app.services.verification.field_comparator import FALLBACK_NOTE
from app.services.verification.verification_service import (
    DocumentVerificationService,
    resolve_reference_value,
)


@pytest.fixture
def verification_service(today):
    return DocumentVerificationService(AsyncMock(), reasoning_service=None, today=lambda: today)


@pytest.fixture
def reference(supplier):
    return SupplierReference.from_supplier(supplier)


@pytest.mark.asyncio
async def test_regular_durc_matches(verification_service, reference, durc_fields):
    result = await verification_service.verify(DocumentType.DURC, durc_fields, reference)

    assert result.document_type == DocumentType.DURC
    assert result.overall_result == OverallResult.MATCH
    assert result.confidence_score == 100
    assert result.discrepancies == []
    assert [c.field_name for c in result.field_comparisons] == [
        "denominazione_ragione_sociale",
        "codice_fiscale",
        "sede_legale",
        "risultato",
        "scadenza_validita",
    ]
    assert result.field("risultato").match_score == 100
    assert result.field("scadenza_validita").match_score == 100
    assert result.used_fallback is True
    assert result.ai_analysis.startswith("Document Verification Analysis (Fallback):")


@pytest.mark.asyncio
async def test_expired_durc_is_mismatch(verification_service, reference, durc_fields):
    durc_fields["scadenza_validita"] = "01/01/2025"

    result = await verification_service.verify("DURC", durc_fields, reference)

    assert result.overall_result == OverallResult.MISMATCH
    assert result.confidence_score == 90
    assert result.discrepancies == [
        "scadenza_validita: mismatch (Document expired on 01/01/2025)"
    ]


@pytest.mark.asyncio
async def test_missing_required_field(verification_service, reference, durc_fields):
    del durc_fields["codice_fiscale"]

    result = await verification_service.verify("DURC", durc_fields, reference)

    assert result.overall_result == OverallResult.MISMATCH
    assert "codice_fiscale: missing (Required field missing from document)" in result.discrepancies


@pytest.mark.asyncio
async def test_structural_check_does_not_duplicate_rule_entry(
    verification_service, reference, visura_fields
):
    result = await verification_service.verify("VISURA", visura_fields, reference)

    names = [c.field_name for c in result.field_comparisons]
    assert len(names) == len(set(names)) == 5
    fiscal_code = result.field("codice_fiscale")
    assert fiscal_code.status == FieldStatus.MATCH
    assert fiscal_code.notes == "Invalid fiscal code format - must be 16 alphanumeric characters"
    assert result.overall_result == OverallResult.MATCH


@pytest.mark.asyncio
async def test_failing_status_check_note_is_appended(
    verification_service, reference, durc_fields
):
    durc_fields["risultato"] = "NON REGOLARE"

    result = await verification_service.verify("DURC", durc_fields, reference)

    status = result.field("risultato")
    assert status.status == FieldStatus.MISMATCH
    assert status.notes.endswith("; Invalid DURC status - must be RISULTA REGOLARE")


@pytest.mark.asyncio
async def test_structural_only_fields_are_appended(verification_service, reference):
    result = await verification_service.verify(
        "SOA",
        {
            "denominazione_ragione_sociale": "EDILIZIA ROSSI S.R.L.",
            "codice_fiscale": "01234567890",
            "categorie": "OG1 III",
            "data_scadenza_validita_triennale": "01/06/2027",
            "data_scadenza_validita_quinquennale": "01/06/2029",
            "ente_attestazione": "CQOP SOA",
        },
        reference,
    )

    entity = result.field("ente_attestazione")
    assert entity.rule_type == RuleType.DOCUMENT_SPECIFIC
    assert entity.is_required is False
    assert entity.status == FieldStatus.MATCH
    assert result.field("categorie").notes.startswith("Categories found in supplier data")
    assert result.overall_result == OverallResult.MATCH


@pytest.mark.asyncio
async def test_unreachable_reasoning_service_falls_back(today, reference, durc_fields):
    reasoning_service = AsyncMock()
    reasoning_service.compare_fields.return_value = None
    reasoning_service.generate_analysis.return_value = None
    service = DocumentVerificationService(AsyncMock(), reasoning_service, today=lambda: today)
    durc_fields["sede_legale"] = "Via Roma 1 - Venezia (VE)"

    result = await service.verify("DURC", durc_fields, reference)

    address = result.field("sede_legale")
    assert address.notes == FALLBACK_NOTE
    assert address.status == FieldStatus.MISMATCH
    assert address.used_fallback is True
    assert result.used_fallback is True
    assert result.ai_analysis.startswith("Document Verification Analysis (Fallback):")


@pytest.mark.asyncio
async def test_reasoning_service_narrative(today, reference, durc_fields):
    reasoning_service = AsyncMock()
    reasoning_service.compare_fields.return_value = {"match": True, "reason": "Equivalent"}
    reasoning_service.generate_analysis.return_value = "Same entity, document valid. Risk: Low."
    service = DocumentVerificationService(AsyncMock(), reasoning_service, today=lambda: today)

    result = await service.verify("DURC", durc_fields, reference)

    assert result.used_fallback is False
    assert result.ai_analysis == "Same entity, document valid. Risk: Low."
    assert result.field("sede_legale").notes == "AI: Equivalent"


@pytest.mark.asyncio
async def test_unsupported_type_rejected_before_comparison(verification_service, reference):
    verification_service.comparator = AsyncMock()

    with pytest.raises(UnsupportedDocumentTypeError):
        await verification_service.verify("PASSPORT", {}, reference)

    verification_service.comparator.compare.assert_not_awaited()


@pytest.mark.asyncio
async def test_verify_document_persists_result(verification_service, reference, durc_fields):
    verification_service.verification_repo = AsyncMock()
    analysis = SimpleNamespace(
        id=uuid4(),
        supplier_id=uuid4(),
        document_type="DURC",
        extracted_fields=durc_fields,
    )

    result = await verification_service.verify_document(analysis, reference)

    verification_service.verification_repo.save_result.assert_awaited_once()
    kwargs = verification_service.verification_repo.save_result.call_args.kwargs
    assert kwargs["analysis_id"] == analysis.id
    assert kwargs["supplier_id"] == analysis.supplier_id
    assert kwargs["doc_type"] == "DURC"
    assert kwargs["result"] is result
    assert kwargs["verification_model"] is None
    assert kwargs["processing_time_ms"] >= 0


def test_resolve_reference_value(reference):
    assert resolve_reference_value(reference, "address_combined") == "VIA ROMA 1, VENEZIA, VE"
    assert resolve_reference_value(reference, "soa_categories") == "OG1 III, OS30 II"
    assert resolve_reference_value(reference, None) is None


@pytest.mark.asyncio
async def test_iso_standard_checked_against_declared_certifications(verification_service, reference):
    fields = {
        "denominazione_ragione_sociale": "EDILIZIA ROSSI S.R.L.",
        "standard": "ISO 14001:2015",
        "data_scadenza": "30/06/2027",
    }

    result = await verification_service.verify(DocumentType.ISO, fields, reference)

    standard = result.field("standard")
    assert standard.rule_type == RuleType.FUZZY_MATCH
    assert standard.api_value == "ISO 9001:2015, ISO 14001:2015"
    assert standard.status == FieldStatus.MATCH
    assert standard.notes == "ISO standard found in certifications"
    assert [c.field_name for c in result.field_comparisons].count("standard") == 1
    assert result.overall_result == OverallResult.MATCH


@pytest.mark.asyncio
async def test_undeclared_iso_standard_is_mismatch(verification_service, reference):
    fields = {
        "denominazione_ragione_sociale": "EDILIZIA ROSSI S.R.L.",
        "standard": "ISO 45001:2018",
        "data_scadenza": "30/06/2027",
    }

    result = await verification_service.verify(DocumentType.ISO, fields, reference)

    assert result.field("standard").status == FieldStatus.MISMATCH
    assert result.discrepancies == ["standard: mismatch (ISO standard not found in certifications)"]
