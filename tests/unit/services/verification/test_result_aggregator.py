"""Tests for verification result aggregation."""

from app.schemas.verification import (
    FieldStatus,
    OverallResult,
    RuleType,
    VerificationField,
)
from app.services.verification.result_aggregator import (
    aggregate,
    confidence_score,
    discrepancies,
    fallback_analysis,
    overall_result,
)


def make_field(name, status, score, required=True, notes=None):
    return VerificationField(
        field_name=name,
        ocr_value="x",
        api_value="x",
        rule_type=RuleType.EXACT_MATCH,
        threshold=100,
        is_required=required,
        match_score=score,
        status=status,
        notes=notes,
    )


def test_no_comparisons_means_no_data():
    assert aggregate([]) == (OverallResult.NO_DATA, 0, [])


def test_all_matching_is_match():
    comparisons = [
        make_field("a", FieldStatus.MATCH, 100),
        make_field("b", FieldStatus.MATCH, 100, required=False),
    ]
    assert overall_result(comparisons) == OverallResult.MATCH
    assert confidence_score(comparisons) == 100


def test_optional_mismatch_is_partial_match():
    comparisons = [
        make_field("a", FieldStatus.MATCH, 100),
        make_field("b", FieldStatus.MISMATCH, 0, required=False),
    ]
    assert overall_result(comparisons) == OverallResult.PARTIAL_MATCH


def test_required_mismatch_is_mismatch():
    comparisons = [
        make_field("a", FieldStatus.MATCH, 100),
        make_field("b", FieldStatus.INVALID, 0),
    ]
    assert overall_result(comparisons) == OverallResult.MISMATCH


def test_confidence_rounds_half_up():
    comparisons = [
        make_field("a", FieldStatus.MATCH, 100),
        make_field("b", FieldStatus.MISMATCH, 50),
        make_field("c", FieldStatus.MISMATCH, 0),
        make_field("d", FieldStatus.MATCH, 100),
    ]
    assert confidence_score(comparisons) == 63

    comparisons = [
        make_field("a", FieldStatus.MATCH, 100),
        make_field("b", FieldStatus.MATCH, 100),
        make_field("c", FieldStatus.MISMATCH, 50),
    ]
    assert confidence_score(comparisons) == 83


def test_discrepancies_list_mismatching_and_missing_fields():
    comparisons = [
        make_field("codice_fiscale", FieldStatus.MATCH, 100),
        make_field("sede_legale", FieldStatus.MISMATCH, 0, notes="Fallback: exact match comparison"),
        make_field("risultato", FieldStatus.MISSING, 0),
        make_field("scadenza_validita", FieldStatus.INVALID, 0, notes="Invalid date format"),
    ]
    assert discrepancies(comparisons) == [
        "sede_legale: mismatch (Fallback: exact match comparison)",
        "risultato: missing",
    ]


def test_fallback_analysis_sections():
    comparisons = [
        make_field("codice_fiscale", FieldStatus.MATCH, 100),
        make_field("sede_legale", FieldStatus.MISMATCH, 0, notes="Below threshold match"),
    ]

    text = fallback_analysis(comparisons)

    assert text.startswith("Document Verification Analysis (Fallback):")
    assert "Matched Fields (1):" in text
    assert "  - codice_fiscale: 100% match" in text
    assert "Issues Found (1):" in text
    assert "    Note: Below threshold match" in text
    assert "Overall Match Score: 50.0%" in text
    assert "Compliance Risk: High" in text


def test_fallback_analysis_low_risk():
    text = fallback_analysis([make_field("a", FieldStatus.MATCH, 100)])
    assert "Issues Found" not in text
    assert "Compliance Risk: Low" in text
