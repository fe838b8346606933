"""Tests for the per-document-type verification strategies."""

from datetime import date

import pytest

from app.core.exceptions import UnsupportedDocumentTypeError
from app.schemas.verification import DocumentType, FieldStatus, RuleType
from app.services.verification.strategies import (
    STRATEGIES,
    field_text,
    get_strategy,
    normalize_rea,
)

TODAY = date(2026, 10, 17)


def checks_by_field(checks):
    return {check.field: check for check in checks}


class TestStrategyLookup:
    """Strategy selection is a plain lookup on the document type."""

    def test_every_document_type_has_a_strategy(self):
        assert set(STRATEGIES) == set(DocumentType)
        for document_type, strategy in STRATEGIES.items():
            assert strategy.document_type == document_type
            assert strategy.rules

    def test_lookup_accepts_enum_and_string(self):
        assert get_strategy(DocumentType.DURC) is STRATEGIES[DocumentType.DURC]
        assert get_strategy("visura") is STRATEGIES[DocumentType.VISURA]

    def test_unknown_type_raises(self):
        with pytest.raises(UnsupportedDocumentTypeError, match="PASSPORT"):
            get_strategy("PASSPORT")

    def test_durc_rules_in_order(self):
        rules = get_strategy(DocumentType.DURC).rules
        assert [rule.field for rule in rules] == [
            "denominazione_ragione_sociale",
            "codice_fiscale",
            "sede_legale",
            "risultato",
            "scadenza_validita",
        ]
        assert rules[0].rule_type == RuleType.FUZZY_MATCH
        assert rules[0].threshold == 80
        assert rules[1].rule_type == RuleType.EXACT_MATCH
        assert rules[3].rule_type == RuleType.STATUS_CHECK
        assert rules[4].rule_type == RuleType.DATE_VALIDATION

    def test_visura_activity_status_is_optional(self):
        rules = {rule.field: rule for rule in get_strategy(DocumentType.VISURA).rules}
        assert rules["stato_attivita"].required is False
        assert rules["partita_iva"].required is True

    def test_address_maps_to_combined_reference(self):
        strategy = get_strategy(DocumentType.CCIAA)
        assert strategy.reference_attribute("sede_legale") == "address_combined"
        assert strategy.reference_attribute("rea") is None


class TestStructuralChecks:

    def test_durc_regular_status(self):
        checks = get_strategy("DURC").validate({"risultato": "Risulta regolare"}, TODAY)
        assert checks_by_field(checks)["risultato"].status == FieldStatus.MATCH

    def test_durc_irregular_status(self):
        checks = get_strategy("DURC").validate({"risultato": "NON REGOLARE"}, TODAY)
        check = checks_by_field(checks)["risultato"]
        assert check.status == FieldStatus.MISMATCH
        assert "RISULTA REGOLARE" in check.notes

    def test_durc_without_status_has_no_checks(self):
        assert get_strategy("DURC").validate({}, TODAY) == []

    def test_visura_identifier_formats(self):
        checks = checks_by_field(get_strategy("VISURA").validate(
            {
                "stato_attivita": "ATTIVA",
                "codice_fiscale": "01234567890",
                "partita_iva": "0123",
            },
            TODAY,
        ))
        assert checks["stato_attivita"].status == FieldStatus.MATCH
        assert checks["codice_fiscale"].status == FieldStatus.INVALID
        assert checks["partita_iva"].status == FieldStatus.INVALID

    def test_visura_valid_identifiers_produce_no_checks(self):
        checks = get_strategy("VISURA").validate(
            {"codice_fiscale": "RSSMRA80A01H501U", "partita_iva": "01234567890"},
            TODAY,
        )
        assert checks == []

    def test_soa_categories_format(self):
        valid = checks_by_field(get_strategy("SOA").validate({"categorie": "OG1 III"}, TODAY))
        invalid = checks_by_field(get_strategy("SOA").validate({"categorie": "edilizia"}, TODAY))
        assert valid["categorie"].status == FieldStatus.MATCH
        assert invalid["categorie"].status == FieldStatus.INVALID

    def test_soa_attestation_entity_recorded(self):
        checks = checks_by_field(get_strategy("SOA").validate(
            {"ente_attestazione": "CQOP SOA"}, TODAY
        ))
        assert checks["ente_attestazione"].status == FieldStatus.MATCH

    def test_iso_unknown_certifier_is_not_rejected(self):
        checks = checks_by_field(get_strategy("ISO").validate(
            {
                "standard": "ISO 9001:2015",
                "ente_certificatore": "Certificazioni Locali SRL",
                "numero_certificazione": "123",
            },
            TODAY,
        ))
        assert checks["standard"].status == FieldStatus.MATCH
        assert checks["ente_certificatore"].status == FieldStatus.MATCH
        assert "not validated" in checks["ente_certificatore"].notes
        assert checks["numero_certificazione"].status == FieldStatus.INVALID

    def test_iso_known_certifier(self):
        checks = checks_by_field(get_strategy("ISO").validate(
            {"ente_certificatore": "DNV GL Business Assurance"}, TODAY
        ))
        assert checks["ente_certificatore"].notes == "Recognized certification body"

    def test_cciaa_registration_date_in_future(self):
        checks = checks_by_field(get_strategy("CCIAA").validate(
            {"data_iscrizione": "01/01/2030"}, TODAY
        ))
        assert checks["data_iscrizione"].status == FieldStatus.INVALID
        assert "future" in checks["data_iscrizione"].notes

    def test_cciaa_registration_date_valid(self):
        checks = checks_by_field(get_strategy("CCIAA").validate(
            {"rea": "N. REA: MI 1234567", "data_iscrizione": "15/03/2001"}, TODAY
        ))
        assert checks["rea"].status == FieldStatus.MATCH
        assert checks["rea"].notes.endswith("MI-1234567")
        assert checks["data_iscrizione"].status == FieldStatus.MATCH

    def test_cciaa_bad_registration_date_format(self):
        checks = checks_by_field(get_strategy("CCIAA").validate(
            {"data_iscrizione": "2001-03-15"}, TODAY
        ))
        assert checks["data_iscrizione"].status == FieldStatus.INVALID


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("N. REA: MI 1234567", "MI-1234567"),
        ("RM1234567", "RM-1234567"),
        ("FR - 41256", "FR-41256"),
        ("rea: to/998877", "TO-998877"),
    ],
)
def test_normalize_rea(raw, expected):
    assert normalize_rea(raw) == expected


def test_normalize_rea_blank():
    assert normalize_rea("   ") is None
    assert normalize_rea(None) is None


def test_field_text():
    assert field_text("  value ") == "value"
    assert field_text("") is None
    assert field_text(None) is None
    assert field_text(2026) == "2026"
