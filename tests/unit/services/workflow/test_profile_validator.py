"""Tests for supplier questionnaire validation."""

import pytest

from app.services.workflow.profile_validator import (
    EXACT_MATCH,
    NOT_EMPTY,
    PROFILE_RULES,
    ProfileRule,
    extract_simple_value,
    validate_field,
    validate_profile,
)


@pytest.fixture
def compliant_answers():
    answers = {
        rule.field: rule.expected_value
        for rule in PROFILE_RULES
        if rule.type == EXACT_MATCH
    }
    answers.update({
        "Q1_LEGALE_RAPPRESENTANTE": {"value": "Mario Rossi"},
        "Q1_DIMENSIONE_SOCIETARIA": {"label": "Piccola impresa"},
        "Q1_CAPITALE_SOCIALE": 50000,
        "Q1_CCIAA_ALLEGATO": {"values": [{"id": "att-1", "value": "visura.pdf"}]},
    })
    return answers


def test_compliant_profile(compliant_answers):
    summary = validate_profile(compliant_answers)

    assert summary.is_compliant is True
    assert summary.compliance_score == 100
    assert summary.valid_fields == summary.total_fields == len(PROFILE_RULES)


def test_invalid_answer_breaks_compliance(compliant_answers):
    compliant_answers["Q1_CONDANNE"] = "Si"
    del compliant_answers["Q1_CAPITALE_SOCIALE"]

    summary = validate_profile(compliant_answers)

    assert summary.is_compliant is False
    assert summary.valid_fields == 12
    assert summary.invalid_fields == 1
    assert summary.missing_fields == 1
    assert summary.compliance_score == 86
    failed = {r.field: r for r in summary.results if not r.is_valid}
    assert failed["Q1_CONDANNE"].message.startswith('Expected: "No, non sono stati condannati')
    assert failed["Q1_CAPITALE_SOCIALE"].message == "Field is missing or empty"


def test_empty_questionnaire():
    summary = validate_profile({})

    assert summary.is_compliant is False
    assert summary.compliance_score == 0
    assert summary.missing_fields == len(PROFILE_RULES)
    assert all(not r.is_valid for r in summary.results)


def test_to_dict_is_serializable(compliant_answers):
    data = validate_profile(compliant_answers).to_dict()
    assert data["compliance_score"] == 100
    assert data["results"][0]["field"] == "Q0_INFORMAZIONI"


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("text", "text"),
        (["only"], "only"),
        (["a", "b"], "a, b"),
        ([], ""),
        ({"values": ["file.pdf"]}, "file.pdf"),
        ({"values": [{"id": "att-9"}]}, "att-9"),
        ({"value": "No"}, "No"),
        ({"label": "Si"}, "Si"),
        ({"other": 1}, "Complex data structure present"),
    ],
)
def test_extract_simple_value(raw, expected):
    assert extract_simple_value(raw) == expected


def test_not_empty_rejects_whitespace():
    rule = ProfileRule("Q1_LEGALE_RAPPRESENTANTE", NOT_EMPTY, "Legal representative must be specified")
    result = validate_field(rule, "   ")
    assert result.is_valid is False
    assert result.message == "Field is empty or contains only whitespace"
