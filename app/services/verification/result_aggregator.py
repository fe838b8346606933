"""Result Aggregator: folds field comparisons into a verification verdict."""

import math
from typing import List, Tuple

from app.schemas.verification import FieldStatus, OverallResult, VerificationField


def confidence_score(comparisons: List[VerificationField]) -> int:
    """Mean match score over every comparison, rounded half up."""
    if not comparisons:
        return 0
    mean = sum(c.match_score for c in comparisons) / len(comparisons)
    return int(math.floor(mean + 0.5))


def overall_result(comparisons: List[VerificationField]) -> OverallResult:
    """Derive the overall verdict.

    ``match`` needs every entry to match, ``partial_match`` only the required
    ones. Any required entry that does not match gives ``mismatch``.
    """
    if not comparisons:
        return OverallResult.NO_DATA

    required_ok = all(c.status == FieldStatus.MATCH for c in comparisons if c.is_required)
    if not required_ok:
        return OverallResult.MISMATCH
    if all(c.status == FieldStatus.MATCH for c in comparisons):
        return OverallResult.MATCH
    return OverallResult.PARTIAL_MATCH


def discrepancies(comparisons: List[VerificationField]) -> List[str]:
    """One ``"<field>: <status> (<notes>)"`` line per mismatching or missing entry."""
    lines = []
    for c in comparisons:
        if c.status not in (FieldStatus.MISMATCH, FieldStatus.MISSING):
            continue
        if c.notes:
            lines.append(f"{c.field_name}: {c.status.value} ({c.notes})")
        else:
            lines.append(f"{c.field_name}: {c.status.value}")
    return lines


def aggregate(comparisons: List[VerificationField]) -> Tuple[OverallResult, int, List[str]]:
    return overall_result(comparisons), confidence_score(comparisons), discrepancies(comparisons)


def fallback_analysis(comparisons: List[VerificationField]) -> str:
    """Deterministic narrative used when the reasoning service is unavailable."""
    matches = [c for c in comparisons if c.status == FieldStatus.MATCH]
    issues = [c for c in comparisons if c.status in (FieldStatus.MISMATCH, FieldStatus.MISSING)]

    lines = ["Document Verification Analysis (Fallback):", ""]

    if matches:
        lines.append(f"Matched Fields ({len(matches)}):")
        lines.extend(f"  - {c.field_name}: {c.match_score}% match" for c in matches)
        lines.append("")

    if issues:
        lines.append(f"Issues Found ({len(issues)}):")
        for c in issues:
            lines.append(f"  - {c.field_name}: {c.status.value} ({c.match_score}%)")
            if c.notes:
                lines.append(f"    Note: {c.notes}")
        lines.append("")

    score = (
        sum(c.match_score for c in comparisons) / len(comparisons) if comparisons else 0.0
    )
    if score >= 80:
        risk = "Low"
    elif score >= 60:
        risk = "Medium"
    else:
        risk = "High"

    lines.append(f"Overall Match Score: {score:.1f}%")
    lines.append(f"Compliance Risk: {risk}")
    return "\n".join(lines) + "\n"
