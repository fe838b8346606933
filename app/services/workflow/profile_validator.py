"""Supplier questionnaire (profile) validation."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

EXACT_MATCH = "exact_match"
NOT_EMPTY = "not_empty"


@dataclass(frozen=True)
class ProfileRule:
    field: str
    type: str
    description: str
    expected_value: Optional[str] = None


@dataclass
class ProfileFieldResult:
    field: str
    is_valid: bool
    current_value: Optional[str]
    expected_value: Optional[str]
    message: str
    type: str


@dataclass
class ProfileValidationSummary:
    is_compliant: bool
    total_fields: int
    valid_fields: int
    invalid_fields: int
    missing_fields: int
    compliance_score: int
    results: List[ProfileFieldResult] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_compliant": self.is_compliant,
            "total_fields": self.total_fields,
            "valid_fields": self.valid_fields,
            "invalid_fields": self.invalid_fields,
            "missing_fields": self.missing_fields,
            "compliance_score": self.compliance_score,
            "results": [vars(result) for result in self.results],
        }


PROFILE_RULES = (
    ProfileRule(
        "Q0_INFORMAZIONI", EXACT_MATCH,
        "Information declaration must be complete and truthful",
        "Si, dichiaro che le informazioni fornite sono complete e veritiere",
    ),
    ProfileRule("GRUPPO_IVA", EXACT_MATCH, "Must not be part of VAT group", "No, non fa parte di Gruppo IVA"),
    ProfileRule("Q1_LEGALE_RAPPRESENTANTE", NOT_EMPTY, "Legal representative must be specified"),
    ProfileRule("Q1_DIMENSIONE_SOCIETARIA", NOT_EMPTY, "Company size must be specified"),
    ProfileRule("Q1_CAPITALE_SOCIALE", NOT_EMPTY, "Share capital must be specified"),
    ProfileRule(
        "Q1_CCIAA", EXACT_MATCH,
        "Must be registered with Chamber of Commerce",
        "Si, è iscritta/dichiarazione sostitutiva",
    ),
    ProfileRule("Q1_PATENTE_CREDITI", EXACT_MATCH, "Credit license must be No", "No"),
    ProfileRule("Q1_CCIAA_ALLEGATO", NOT_EMPTY, "CCIAA attachment must be provided"),
    ProfileRule(
        "Q1_CONDANNE", EXACT_MATCH,
        "No final convictions allowed",
        "No, non sono stati condannati con sentenza definitiva",
    ),
    ProfileRule("Q1_CODICE_ETICO", EXACT_MATCH, "Must adopt ethical code", "Si, adotta un codice etico"),
    ProfileRule("Q1_LEGAMI_PARENTELA", EXACT_MATCH, "No family relationships allowed", "No, non esistono legami"),
    ProfileRule("Q1_EMBARGO_UE", EXACT_MATCH, "No EU embargo activities", "No, non ha attività"),
    ProfileRule(
        "Q1_PROCEDIMENTI_PENALI", EXACT_MATCH,
        "No criminal proceedings involvement",
        "No, non sono coinvolti",
    ),
    ProfileRule(
        "Q1_PUBBLICA_AMMINISTRAZIONE", EXACT_MATCH,
        "No prohibition with Public Administration",
        "No, non ha il divieto con la PA",
    ),
)


def extract_simple_value(value: Any) -> Any:
    """Flatten a nested questionnaire answer to a simple value.

    Lists are joined, attachment structures yield their first value, and
    ``{"value": ...}`` / ``{"label": ...}`` objects yield the inner value.
    """
    if isinstance(value, (str, int, float, bool)):
        return value

    if isinstance(value, (list, tuple)):
        if not value:
            return ""
        if len(value) == 1:
            return str(value[0])
        return ", ".join(str(item) for item in value)

    if isinstance(value, dict):
        values = value.get("values")
        if isinstance(values, list) and values:
            first = values[0]
            if isinstance(first, dict):
                return first.get("value") or first.get("id") or "Attachment present"
            return first or "Attachment present"
        if "value" in value:
            return value["value"]
        if "label" in value:
            return value["label"]
        return "Complex data structure present"

    return value


def _is_missing(value: Any) -> bool:
    return value is None or value == ""


def validate_field(rule: ProfileRule, value: Any) -> ProfileFieldResult:
    if _is_missing(value):
        return ProfileFieldResult(
            field=rule.field,
            is_valid=False,
            current_value=None,
            expected_value=rule.expected_value,
            message="Field is missing or empty",
            type=rule.type,
        )

    simple = extract_simple_value(value)
    text = "" if simple is None else str(simple).strip()

    if rule.type == EXACT_MATCH:
        is_valid = text == rule.expected_value
        message = "Matches required value" if is_valid \
            else f'Expected: "{rule.expected_value}", Got: "{text}"'
    elif rule.type == NOT_EMPTY:
        is_valid = len(text) > 0
        message = "Field is properly filled" if is_valid \
            else "Field is empty or contains only whitespace"
    else:
        is_valid, message = False, "Unknown validation type"

    return ProfileFieldResult(
        field=rule.field,
        is_valid=is_valid,
        current_value=text,
        expected_value=rule.expected_value,
        message=message,
        type=rule.type,
    )


def validate_profile(answers: Optional[Mapping[str, Any]]) -> ProfileValidationSummary:
    """Validate questionnaire answers against the supplier profile rules.

    Args:
        answers: Question code to submitted answer, or None

    Returns:
        ProfileValidationSummary; compliant only when every rule passes
    """
    total = len(PROFILE_RULES)

    if not answers:
        return ProfileValidationSummary(
            is_compliant=False,
            total_fields=total,
            valid_fields=0,
            invalid_fields=0,
            missing_fields=total,
            compliance_score=0,
            results=[
                ProfileFieldResult(
                    field=rule.field,
                    is_valid=False,
                    current_value=None,
                    expected_value=rule.expected_value,
                    message="No profile data available - questionnaire not filled",
                    type=rule.type,
                )
                for rule in PROFILE_RULES
            ],
        )

    results = []
    valid = invalid = missing = 0
    for rule in PROFILE_RULES:
        value = answers.get(rule.field)
        result = validate_field(rule, value)
        results.append(result)
        if result.is_valid:
            valid += 1
        elif _is_missing(value):
            missing += 1
        else:
            invalid += 1

    score = round(valid / total * 100)
    return ProfileValidationSummary(
        is_compliant=score >= 100,
        total_fields=total,
        valid_fields=valid,
        invalid_fields=invalid,
        missing_fields=missing,
        compliance_score=score,
        results=results,
    )
