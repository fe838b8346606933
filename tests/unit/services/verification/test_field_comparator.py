"""Tests for the field comparison engine."""

from datetime import date
from unittest.mock import AsyncMock

import pytest

from app.schemas.verification import FieldStatus, RuleType
from app.services.verification.field_comparator import (
    FALLBACK_NOTE,
    FieldComparator,
    categories_score,
    clean_text,
    iso_standard_score,
    parse_document_date,
)
from app.services.verification.strategies import ComparisonRule

TODAY = date(2026, 10, 17)

COMPANY = ComparisonRule("denominazione_ragione_sociale", RuleType.FUZZY_MATCH, 80, True)
FISCAL_CODE = ComparisonRule("codice_fiscale", RuleType.EXACT_MATCH, 100, True)
DURC_STATUS = ComparisonRule("risultato", RuleType.STATUS_CHECK, 100, True)
EXPIRY = ComparisonRule("scadenza_validita", RuleType.DATE_VALIDATION, 100, True)
CATEGORIES = ComparisonRule("categorie", RuleType.FUZZY_MATCH, 90, True)
STANDARD = ComparisonRule("standard", RuleType.FUZZY_MATCH, 90, True)


@pytest.fixture
def comparator():
    return FieldComparator(today=lambda: TODAY)


@pytest.fixture
def reasoning_service():
    service = AsyncMock()
    service.compare_fields.return_value = {"match": True, "reason": "Same company, legal form spelled differently"}
    return service


class TestExactMatch:

    @pytest.mark.asyncio
    async def test_identical_values_match(self, comparator):
        result = await comparator.compare(FISCAL_CODE, "01234567890", "01234567890")
        assert result.status == FieldStatus.MATCH
        assert result.match_score == 100
        assert result.notes is None

    @pytest.mark.asyncio
    async def test_different_values_mismatch(self, comparator):
        result = await comparator.compare(FISCAL_CODE, "01234567890", "09876543210")
        assert result.status == FieldStatus.MISMATCH
        assert result.match_score == 0
        assert result.notes == "Below threshold match"

    @pytest.mark.asyncio
    async def test_missing_reference_value(self, comparator):
        result = await comparator.compare(FISCAL_CODE, "01234567890", None)
        assert result.status == FieldStatus.MISSING
        assert result.notes == "No supplier data available for comparison"

    @pytest.mark.asyncio
    async def test_missing_extracted_value(self, comparator):
        result = await comparator.compare(FISCAL_CODE, None, "01234567890")
        assert result.status == FieldStatus.MISSING
        assert result.match_score == 0
        assert result.notes == "Required field missing from document"
        assert result.api_value == "01234567890"

    @pytest.mark.asyncio
    async def test_missing_optional_value(self, comparator):
        rule = ComparisonRule("stato_attivita", RuleType.STATUS_CHECK, 100, False)
        result = await comparator.compare(rule, None, None)
        assert result.notes == "Field missing from document"
        assert result.is_required is False


class TestFuzzyMatch:

    @pytest.mark.asyncio
    async def test_reasoning_verdict_is_used(self, reasoning_service):
        comparator = FieldComparator(reasoning_service, today=lambda: TODAY)

        result = await comparator.compare(COMPANY, "Edilizia Rossi SRL", "EDILIZIA ROSSI S.R.L.")

        assert result.status == FieldStatus.MATCH
        assert result.match_score == 100
        assert result.notes == "AI: Same company, legal form spelled differently"
        assert result.used_fallback is False
        reasoning_service.compare_fields.assert_awaited_once_with(
            "denominazione_ragione_sociale", "Edilizia Rossi SRL", "EDILIZIA ROSSI S.R.L."
        )

    @pytest.mark.asyncio
    async def test_negative_verdict(self, reasoning_service):
        reasoning_service.compare_fields.return_value = {"match": False, "reason": "Different company"}
        comparator = FieldComparator(reasoning_service, today=lambda: TODAY)

        result = await comparator.compare(COMPANY, "BIANCHI SPA", "EDILIZIA ROSSI S.R.L.")

        assert result.status == FieldStatus.MISMATCH
        assert result.match_score == 0

    @pytest.mark.asyncio
    async def test_unreachable_service_falls_back_to_exact_match(self, reasoning_service):
        reasoning_service.compare_fields.return_value = None
        comparator = FieldComparator(reasoning_service, today=lambda: TODAY)

        result = await comparator.compare(COMPANY, "Edilizia Rossi SRL", "EDILIZIA ROSSI S.R.L.")

        assert result.status == FieldStatus.MISMATCH
        assert result.match_score == 0
        assert result.notes == FALLBACK_NOTE
        assert result.used_fallback is True

    @pytest.mark.asyncio
    async def test_fallback_on_identical_values_matches(self, comparator):
        result = await comparator.compare(COMPANY, "EDILIZIA ROSSI S.R.L.", "EDILIZIA ROSSI S.R.L.")
        assert result.status == FieldStatus.MATCH
        assert result.used_fallback is True

    @pytest.mark.asyncio
    async def test_categories_checked_against_declared_list(self, reasoning_service):
        comparator = FieldComparator(reasoning_service, today=lambda: TODAY)

        found = await comparator.compare(CATEGORIES, "OG1 III", "OG1 III, OS30 II")
        missing = await comparator.compare(CATEGORIES, "OG11 IV", "OG1 III, OS30 II")

        assert found.status == FieldStatus.MATCH
        assert found.notes == "Categories found in supplier data"
        assert missing.status == FieldStatus.MISMATCH
        reasoning_service.compare_fields.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_iso_standard_checked_against_certifications(self, comparator):
        result = await comparator.compare(STANDARD, "ISO 14001:2015", "ISO 9001:2015, ISO 14001:2015")
        assert result.status == FieldStatus.MATCH
        assert result.notes == "ISO standard found in certifications"


class TestStatusCheck:

    @pytest.mark.asyncio
    async def test_expected_value_ignores_case_and_punctuation(self, comparator):
        result = await comparator.compare(DURC_STATUS, "Risulta Regolare.", None)
        assert result.status == FieldStatus.MATCH
        assert result.match_score == 100
        assert result.expected_values == ["RISULTA REGOLARE", "REGOLARE"]

    @pytest.mark.asyncio
    async def test_unexpected_value(self, comparator):
        result = await comparator.compare(DURC_STATUS, "NON RISULTA REGOLARE", None)
        assert result.status == FieldStatus.MISMATCH
        assert result.match_score == 0


class TestDateValidation:

    @pytest.mark.asyncio
    async def test_future_date_is_valid(self, comparator):
        result = await comparator.compare(EXPIRY, "31/12/2026", None)
        assert result.status == FieldStatus.MATCH
        assert result.match_score == 100
        assert result.notes == "Valid until 31/12/2026"

    @pytest.mark.asyncio
    async def test_today_is_still_valid(self, comparator):
        result = await comparator.compare(EXPIRY, "17/10/2026", None)
        assert result.status == FieldStatus.MATCH

    @pytest.mark.asyncio
    async def test_past_date_is_expired(self, comparator):
        result = await comparator.compare(EXPIRY, "01/01/2025", None)
        assert result.status == FieldStatus.MISMATCH
        assert result.match_score == 50
        assert result.notes == "Document expired on 01/01/2025"

    @pytest.mark.asyncio
    async def test_malformed_date_is_invalid(self, comparator):
        result = await comparator.compare(EXPIRY, "end of next year", None)
        assert result.status == FieldStatus.INVALID
        assert result.match_score == 0


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("31/12/2026", date(2026, 12, 31)),
        ("31.12.2026", date(2026, 12, 31)),
        ("31-12-2026", date(2026, 12, 31)),
        ("1 2 2027", date(2027, 2, 1)),
        ("2026-12-31", date(2026, 12, 31)),
        ("31/02/2026", None),
        ("31/12/1850", None),
        ("12/2026", None),
    ],
)
def test_parse_document_date(raw, expected):
    assert parse_document_date(raw) == expected


def test_clean_text():
    assert clean_text("  Risulta   REGOLARE! ") == "risulta regolare"


def test_list_scores():
    assert categories_score("OS30 II; OG1 III", "OG1 III, OS30 II") == 100
    assert categories_score("OS28 I", "OG1 III, OS30 II") == 0
    assert iso_standard_score("UNI EN ISO 9001:2015", "ISO 9001:2015, ISO 14001:2015") == 100
    assert iso_standard_score("ISO 45001", "ISO 9001:2015, ISO 14001:2015") == 0
