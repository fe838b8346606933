"""Field Comparison Engine.

Executes one comparison rule against an extracted value and the matching
reference value, producing a scored ``VerificationField``.
"""

import re
from datetime import date
from typing import Callable, Optional, Tuple

from app.schemas.verification import FieldStatus, RuleType, VerificationField
from app.services.verification.reasoning_service import FieldReasoningService
from app.services.verification.strategies import ComparisonRule
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

EXPECTED_STATUS_VALUES = {
    "risultato": ("RISULTA REGOLARE", "REGOLARE"),
    "stato_attivita": ("ATTIVA", "ATTIVO", "ACTIVE"),
}

# Fuzzy fields holding lists on the supplier record
LIST_FIELDS = ("categorie", "standard")

EXPIRED_DATE_SCORE = 50

FALLBACK_NOTE = "Fallback: exact match comparison"

_DAY_FIRST_RE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
_YEAR_FIRST_RE = re.compile(r"^(\d{4})/(\d{1,2})/(\d{1,2})$")


def clean_text(value: str) -> str:
    """Lowercase, drop punctuation and collapse whitespace."""
    text = re.sub(r"[^\w\s]", "", value.strip().lower())
    return re.sub(r"\s+", " ", text).strip()


def exact_score(ocr_value: str, reference_value: str) -> int:
    return 100 if ocr_value.strip() == reference_value.strip() else 0


def parse_document_date(value: str) -> Optional[date]:
    """Parse a day-first or ISO-ordered date literal.

    Accepts ``/``, ``.``, ``-`` or whitespace separators. Returns None for
    malformed input, impossible dates, or years outside 1900-2100.
    """
    normalized = re.sub(r"\s+", "/", re.sub(r"[.\-]", "/", value.strip()))

    match = _DAY_FIRST_RE.match(normalized)
    if match:
        day, month, year = (int(part) for part in match.groups())
    else:
        match = _YEAR_FIRST_RE.match(normalized)
        if not match:
            return None
        year, month, day = (int(part) for part in match.groups())

    if not 1900 <= year <= 2100:
        return None

    try:
        return date(year, month, day)
    except ValueError:
        return None


def categories_score(ocr_categories: str, supplier_categories: str) -> int:
    """Score 100 when any extracted SOA category appears in the supplier's list."""
    ocr = [c.strip().upper() for c in re.split(r"[,;]", ocr_categories) if c.strip()]
    declared = [c.strip().upper() for c in re.split(r"[,;]", supplier_categories) if c.strip()]
    found = any(
        own in theirs or theirs in own
        for own in ocr
        for theirs in declared
    )
    return 100 if found else 0


def iso_standard_score(ocr_standard: str, supplier_certifications: str) -> int:
    """Score 100 when the extracted ISO standard is among the supplier's certifications."""
    certifications = supplier_certifications.upper()
    number = re.search(r"ISO\s*(\d+)", ocr_standard.upper())
    if number:
        iso = number.group(1)
        return 100 if f"ISO {iso}" in certifications or f"ISO{iso}" in certifications else 0

    cleaned = re.sub(r"[^\w\d]", "", ocr_standard).upper()
    return 100 if cleaned and cleaned in certifications else 0


class FieldComparator:
    """Scores extracted fields against reference values, one rule at a time."""

    def __init__(
        self,
        reasoning_service: Optional[FieldReasoningService] = None,
        today: Callable[[], date] = date.today,
    ):
        """Initialize the comparator.

        Args:
            reasoning_service: Collaborator for fuzzy comparisons; when None
                every fuzzy rule uses the exact-match fallback
            today: Clock used for date validation
        """
        self.reasoning_service = reasoning_service
        self.today = today

    async def compare(
        self,
        rule: ComparisonRule,
        ocr_value: Optional[str],
        reference_value: Optional[str],
    ) -> VerificationField:
        """Apply ``rule`` and build the resulting comparison entry."""
        expected = EXPECTED_STATUS_VALUES.get(rule.field) if rule.rule_type == RuleType.STATUS_CHECK else None
        used_fallback = False

        if not ocr_value:
            score, status = 0, FieldStatus.MISSING
            notes = "Required field missing from document" if rule.required else "Field missing from document"
        elif rule.rule_type == RuleType.EXACT_MATCH:
            score, status, notes = self._exact(rule, ocr_value, reference_value)
        elif rule.rule_type == RuleType.FUZZY_MATCH:
            score, status, notes, used_fallback = await self._fuzzy(rule, ocr_value, reference_value)
        elif rule.rule_type == RuleType.STATUS_CHECK:
            score, status, notes = self._status(rule, ocr_value, expected)
        elif rule.rule_type == RuleType.DATE_VALIDATION:
            score, status, notes = self._date(ocr_value)
        else:
            score, status, notes = 0, FieldStatus.INVALID, "Unknown rule type"

        return VerificationField(
            field_name=rule.field,
            ocr_value=ocr_value,
            api_value=reference_value,
            rule_type=rule.rule_type,
            threshold=rule.threshold,
            is_required=rule.required,
            expected_values=list(expected) if expected else None,
            match_score=score,
            status=status,
            notes=notes or None,
            used_fallback=used_fallback,
        )

    def _exact(
        self, rule: ComparisonRule, ocr_value: str, reference_value: Optional[str]
    ) -> Tuple[int, FieldStatus, str]:
        if not reference_value:
            return 0, FieldStatus.MISSING, "No supplier data available for comparison"

        score = exact_score(ocr_value, reference_value)
        if score >= rule.threshold:
            return score, FieldStatus.MATCH, ""
        return score, FieldStatus.MISMATCH, "Below threshold match"

    async def _fuzzy(
        self, rule: ComparisonRule, ocr_value: str, reference_value: Optional[str]
    ) -> Tuple[int, FieldStatus, str, bool]:
        if not reference_value:
            return 0, FieldStatus.MISSING, "No supplier data available for comparison", False

        if rule.field in LIST_FIELDS and "," in reference_value:
            if rule.field == "categorie":
                score = categories_score(ocr_value, reference_value)
                found, missing = "Categories found in supplier data", "Categories not found in supplier data"
            else:
                score = iso_standard_score(ocr_value, reference_value)
                found, missing = "ISO standard found in certifications", "ISO standard not found in certifications"
            matched = score >= rule.threshold
            return score, FieldStatus.MATCH if matched else FieldStatus.MISMATCH, found if matched else missing, False

        verdict = None
        if self.reasoning_service is not None:
            verdict = await self.reasoning_service.compare_fields(
                rule.field, ocr_value, reference_value
            )

        if verdict is None:
            LOGGER.warning(
                "Fuzzy comparison fell back to exact match",
                extra={"field_name": rule.field},
            )
            score = exact_score(ocr_value, reference_value)
            status = FieldStatus.MATCH if score >= rule.threshold else FieldStatus.MISMATCH
            return score, status, FALLBACK_NOTE, True

        score = 100 if verdict["match"] else 0
        status = FieldStatus.MATCH if score >= rule.threshold else FieldStatus.MISMATCH
        reason = verdict.get("reason")
        notes = f"AI: {reason}" if reason else f"AI verdict: {'match' if verdict['match'] else 'no_match'}"
        return score, status, notes, False

    def _status(
        self, rule: ComparisonRule, ocr_value: str, expected: Optional[Tuple[str, ...]]
    ) -> Tuple[int, FieldStatus, str]:
        if not expected:
            return 0, FieldStatus.MISMATCH, "No expected values configured"

        cleaned = clean_text(ocr_value)
        if any(clean_text(value) == cleaned for value in expected):
            return 100, FieldStatus.MATCH, f"Expected values: {', '.join(expected)}"
        return 0, FieldStatus.MISMATCH, f"Unexpected value, expected one of: {', '.join(expected)}"

    def _date(self, ocr_value: str) -> Tuple[int, FieldStatus, str]:
        parsed = parse_document_date(ocr_value)
        if parsed is None:
            return 0, FieldStatus.INVALID, "Invalid date format"

        display = parsed.strftime("%d/%m/%Y")
        if parsed < self.today():
            return EXPIRED_DATE_SCORE, FieldStatus.MISMATCH, f"Document expired on {display}"
        return 100, FieldStatus.MATCH, f"Valid until {display}"

