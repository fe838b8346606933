"""Per-document-type verification strategies.

Each supported document type maps to one immutable ``VerificationStrategy``
record: which extracted fields correspond to which supplier attributes, the
ordered comparison rules, and a structural validation function that checks
the extracted data on its own. Selection is a plain dictionary lookup.
"""

import re
from dataclasses import dataclass
from datetime import date
from types import MappingProxyType
from typing import Any, Callable, List, Mapping, Optional, Tuple, Union

from app.core.exceptions import UnsupportedDocumentTypeError
from app.schemas.verification import DocumentType, FieldStatus, RuleType


@dataclass(frozen=True)
class ComparisonRule:
    """One rule applied to an extracted field."""
    field: str
    rule_type: RuleType
    threshold: int
    required: bool


@dataclass(frozen=True)
class DocumentCheck:
    """Outcome of a structural check that needs no reference data."""
    field: str
    status: FieldStatus
    notes: str


ValidateFn = Callable[[Mapping[str, Any], date], List[DocumentCheck]]


@dataclass(frozen=True)
class VerificationStrategy:
    """Immutable verification recipe for one document type."""
    document_type: DocumentType
    context: str
    field_mappings: Mapping[str, str]
    rules: Tuple[ComparisonRule, ...]
    validate: ValidateFn

    def reference_attribute(self, field: str) -> Optional[str]:
        return self.field_mappings.get(field)


def field_text(value: Any) -> Optional[str]:
    """Return an extracted value as stripped text, or None when blank."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


KNOWN_CERTIFIERS = ("DNV", "TÜV", "RINA", "SGS", "BUREAU VERITAS", "LLOYD", "CERTIQUALITY")

_SOA_CATEGORY_RE = re.compile(r"^(OG|OS|OG\d+|OS\d+)\s+(I{1,5}|V{1,3})", re.IGNORECASE)
_ISO_STANDARD_RE = re.compile(r"^ISO\s+\d{4,5}(:\d{4})?$", re.IGNORECASE)
_FISCAL_CODE_RE = re.compile(r"^[A-Z0-9]{16}$")
_VAT_NUMBER_RE = re.compile(r"^\d{11}$")
_REA_RE = re.compile(r"^[A-Z]{2}-\d{1,7}$")
_REGISTRATION_DATE_RE = re.compile(r"^(\d{2})/(\d{2})/(\d{4})$")


def _validate_durc(extracted: Mapping[str, Any], today: date) -> List[DocumentCheck]:
    checks = []
    outcome = field_text(extracted.get("risultato"))
    if outcome:
        regular = "RISULTA REGOLARE" in outcome.upper()
        checks.append(DocumentCheck(
            field="risultato",
            status=FieldStatus.MATCH if regular else FieldStatus.MISMATCH,
            notes="Valid DURC status" if regular
            else "Invalid DURC status - must be RISULTA REGOLARE",
        ))
    return checks


def _validate_visura(extracted: Mapping[str, Any], today: date) -> List[DocumentCheck]:
    checks = []

    activity = field_text(extracted.get("stato_attivita"))
    if activity:
        active = "ATTIVA" in activity.upper()
        checks.append(DocumentCheck(
            field="stato_attivita",
            status=FieldStatus.MATCH if active else FieldStatus.MISMATCH,
            notes="Company is active" if active else "Company status may be inactive",
        ))

    fiscal_code = field_text(extracted.get("codice_fiscale"))
    if fiscal_code and not _FISCAL_CODE_RE.match(re.sub(r"\s", "", fiscal_code)):
        checks.append(DocumentCheck(
            field="codice_fiscale",
            status=FieldStatus.INVALID,
            notes="Invalid fiscal code format - must be 16 alphanumeric characters",
        ))

    vat_number = field_text(extracted.get("partita_iva"))
    if vat_number and not _VAT_NUMBER_RE.match(re.sub(r"\s", "", vat_number)):
        checks.append(DocumentCheck(
            field="partita_iva",
            status=FieldStatus.INVALID,
            notes="Invalid VAT number format - must be 11 digits",
        ))

    return checks


def _validate_soa(extracted: Mapping[str, Any], today: date) -> List[DocumentCheck]:
    checks = []

    categories = field_text(extracted.get("categorie"))
    if categories:
        if _SOA_CATEGORY_RE.match(categories):
            checks.append(DocumentCheck(
                field="categorie",
                status=FieldStatus.MATCH,
                notes=f"Valid SOA categories: {categories}",
            ))
        else:
            checks.append(DocumentCheck(
                field="categorie",
                status=FieldStatus.INVALID,
                notes='Invalid SOA categories format - should be like "OG1 III" or "OS30 II"',
            ))

    if field_text(extracted.get("ente_attestazione")):
        checks.append(DocumentCheck(
            field="ente_attestazione",
            status=FieldStatus.MATCH,
            notes="Attestation entity present",
        ))

    return checks


def _validate_iso(extracted: Mapping[str, Any], today: date) -> List[DocumentCheck]:
    checks = []

    standard = field_text(extracted.get("standard"))
    if standard:
        if _ISO_STANDARD_RE.match(re.sub(r"\s+", " ", standard)):
            checks.append(DocumentCheck(
                field="standard",
                status=FieldStatus.MATCH,
                notes=f"Valid ISO standard: {standard}",
            ))
        else:
            checks.append(DocumentCheck(
                field="standard",
                status=FieldStatus.INVALID,
                notes='Invalid ISO standard format - should be like "ISO 9001:2015"',
            ))

    # Unknown certification bodies are recorded, never rejected
    certifier = field_text(extracted.get("ente_certificatore"))
    if certifier:
        recognized = any(name in certifier.upper() for name in KNOWN_CERTIFIERS)
        checks.append(DocumentCheck(
            field="ente_certificatore",
            status=FieldStatus.MATCH,
            notes="Recognized certification body" if recognized
            else "Captured certification body (not validated against whitelist)",
        ))

    number = field_text(extracted.get("numero_certificazione"))
    if number:
        valid_number = len(number) >= 5
        checks.append(DocumentCheck(
            field="numero_certificazione",
            status=FieldStatus.MATCH if valid_number else FieldStatus.INVALID,
            notes="Valid certificate number format" if valid_number
            else "Certificate number too short",
        ))

    return checks


def normalize_rea(value: Any) -> Optional[str]:
    """Normalize OCR variants of a REA number to ``AA-<digits>``.

    Accepts forms such as ``"N. REA: MI 1234567"``, ``"RM1234567"`` and
    ``"FR - 41256"``. Values that do not look like a REA number are returned
    with labels and separators cleaned but otherwise untouched.
    """
    text = field_text(value)
    if not text:
        return None

    text = text.upper()
    text = re.sub(r"\bN\.?\s*REA\b[:\-\s]*", "", text)
    text = re.sub(r"\bREA\b[:\-\s]*", "", text)
    text = re.sub(r"[._]", "", text)
    text = re.sub(r"[/\\:–—−]+", "-", text)
    text = re.sub(r"\s*-\s*", "-", text)
    text = re.sub(r"\s+", "", text)

    match = re.match(r"^([A-Z]{2})-?(\d{1,7})$", text)
    if match:
        return f"{match.group(1)}-{match.group(2)}"
    return text


def _validate_cciaa(extracted: Mapping[str, Any], today: date) -> List[DocumentCheck]:
    checks = []

    if field_text(extracted.get("rea")):
        normalized = normalize_rea(extracted.get("rea"))
        if normalized and _REA_RE.match(normalized):
            checks.append(DocumentCheck(
                field="rea",
                status=FieldStatus.MATCH,
                notes=f"Valid REA number (normalized): {normalized}",
            ))
        else:
            checks.append(DocumentCheck(
                field="rea",
                status=FieldStatus.INVALID,
                notes='Invalid REA format - expected like "MI-1234567"',
            ))

    registered = field_text(extracted.get("data_iscrizione"))
    if registered:
        checks.append(_check_registration_date(registered, today))

    return checks


def _check_registration_date(value: str, today: date) -> DocumentCheck:
    match = _REGISTRATION_DATE_RE.match(value)
    if not match:
        return DocumentCheck(
            field="data_iscrizione",
            status=FieldStatus.INVALID,
            notes="Invalid registration date format - should be DD/MM/YYYY",
        )

    day, month, year = (int(part) for part in match.groups())
    try:
        registered = date(year, month, day)
    except ValueError:
        return DocumentCheck(
            field="data_iscrizione",
            status=FieldStatus.INVALID,
            notes="Invalid date format",
        )

    if registered > today:
        notes, status = "Registration date cannot be in the future", FieldStatus.INVALID
    elif registered < date(1900, 1, 1):
        notes, status = "Registration date too old to be valid", FieldStatus.INVALID
    else:
        notes, status = "Valid registration date", FieldStatus.MATCH

    return DocumentCheck(field="data_iscrizione", status=status, notes=notes)


_COMPANY_RULE = ComparisonRule("denominazione_ragione_sociale", RuleType.FUZZY_MATCH, 80, True)
_FISCAL_CODE_RULE = ComparisonRule("codice_fiscale", RuleType.EXACT_MATCH, 100, True)
_ADDRESS_RULE = ComparisonRule("sede_legale", RuleType.FUZZY_MATCH, 70, True)


STRATEGIES: Mapping[DocumentType, VerificationStrategy] = MappingProxyType({
    DocumentType.DURC: VerificationStrategy(
        document_type=DocumentType.DURC,
        context="DURC Document Verification - Italian compliance document for supplier regularization.",
        field_mappings=MappingProxyType({
            "denominazione_ragione_sociale": "company_name",
            "codice_fiscale": "fiscal_code",
            "sede_legale": "address_combined",
        }),
        rules=(
            _COMPANY_RULE,
            _FISCAL_CODE_RULE,
            _ADDRESS_RULE,
            ComparisonRule("risultato", RuleType.STATUS_CHECK, 100, True),
            ComparisonRule("scadenza_validita", RuleType.DATE_VALIDATION, 100, True),
        ),
        validate=_validate_durc,
    ),
    DocumentType.VISURA: VerificationStrategy(
        document_type=DocumentType.VISURA,
        context="VISURA Document Verification - Italian business registry extract for company information validation.",
        field_mappings=MappingProxyType({
            "denominazione_ragione_sociale": "company_name",
            "codice_fiscale": "fiscal_code",
            "partita_iva": "vat_number",
            "sede_legale": "address_combined",
        }),
        rules=(
            _COMPANY_RULE,
            _FISCAL_CODE_RULE,
            ComparisonRule("partita_iva", RuleType.EXACT_MATCH, 100, True),
            _ADDRESS_RULE,
            ComparisonRule("stato_attivita", RuleType.STATUS_CHECK, 100, False),
        ),
        validate=_validate_visura,
    ),
    DocumentType.SOA: VerificationStrategy(
        document_type=DocumentType.SOA,
        context="SOA Document Verification - Italian qualification attestation for construction companies.",
        field_mappings=MappingProxyType({
            "denominazione_ragione_sociale": "company_name",
            "codice_fiscale": "fiscal_code",
            "categorie": "soa_categories",
        }),
        rules=(
            _COMPANY_RULE,
            _FISCAL_CODE_RULE,
            ComparisonRule("categorie", RuleType.FUZZY_MATCH, 90, True),
            ComparisonRule("data_scadenza_validita_triennale", RuleType.DATE_VALIDATION, 100, True),
            ComparisonRule("data_scadenza_validita_quinquennale", RuleType.DATE_VALIDATION, 100, True),
        ),
        validate=_validate_soa,
    ),
    DocumentType.ISO: VerificationStrategy(
        document_type=DocumentType.ISO,
        context="ISO Certificate Verification - International quality management system certification validation.",
        field_mappings=MappingProxyType({
            "denominazione_ragione_sociale": "company_name",
            "standard": "iso_certifications",
        }),
        rules=(
            _COMPANY_RULE,
            ComparisonRule("standard", RuleType.FUZZY_MATCH, 80, False),
            ComparisonRule("data_scadenza", RuleType.DATE_VALIDATION, 100, True),
        ),
        validate=_validate_iso,
    ),
    DocumentType.CCIAA: VerificationStrategy(
        document_type=DocumentType.CCIAA,
        context="CCIAA Document Verification - Italian Chamber of Commerce business registry certificate validation.",
        field_mappings=MappingProxyType({
            "denominazione_ragione_sociale": "company_name",
            "codice_fiscale": "fiscal_code",
            "sede_legale": "address_combined",
        }),
        rules=(
            _COMPANY_RULE,
            _FISCAL_CODE_RULE,
            _ADDRESS_RULE,
        ),
        validate=_validate_cciaa,
    ),
})


def get_strategy(document_type: Union[DocumentType, str]) -> VerificationStrategy:
    """Look up the strategy for a document type.

    Args:
        document_type: Document type enum member or its string value

    Returns:
        The registered VerificationStrategy

    Raises:
        UnsupportedDocumentTypeError: If the type has no registered strategy
    """
    try:
        key = DocumentType(str(getattr(document_type, "value", document_type)).upper())
    except ValueError as e:
        raise UnsupportedDocumentTypeError(str(document_type)) from e

    strategy = STRATEGIES.get(key)
    if strategy is None:
        raise UnsupportedDocumentTypeError(key.value)
    return strategy
