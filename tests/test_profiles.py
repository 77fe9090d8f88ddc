"""
Tests for the per-profile rule sets.
"""

import pytest

from einvoice_engine.config import ProfileId
from einvoice_engine.mapper import to_canonical_invoice
from einvoice_engine.profiles import ALL_PROFILES, PROFILE_VALIDATORS, get_profile_validator
from einvoice_engine.profiles.ciusro import validate_ciusro_rules
from einvoice_engine.profiles.facturx import FacturXBasicValidator, FacturXEN16931Validator
from einvoice_engine.profiles.fatturapa import validate_fatturapa_rules
from einvoice_engine.profiles.ksef import nip_digits, validate_ksef_rules
from einvoice_engine.profiles.nlcius import validate_nlcius_rules
from einvoice_engine.profiles.peppol import validate_peppol_rules
from einvoice_engine.profiles.xrechnung import validate_xrechnung_rules


def ids(entries) -> list[str]:
    return [e.rule_id for e in entries]


# ============================================================================
# Registry
# ============================================================================

class TestRegistry:
    def test_every_profile_registered(self):
        assert set(PROFILE_VALIDATORS) == set(ALL_PROFILES)
        for profile, validator in PROFILE_VALIDATORS.items():
            assert validator.profile_id == profile

    def test_lookup_by_string(self):
        assert get_profile_validator("ksef").profile_id == ProfileId.KSEF

    def test_unknown_falls_back_to_base(self):
        assert get_profile_validator("xyz").profile_id == ProfileId.EN16931_BASE


# ============================================================================
# XRechnung
# ============================================================================

class TestXRechnung:
    def test_complete_invoice_passes(self, german_invoice):
        assert validate_xrechnung_rules(german_invoice) == []

    def test_missing_buyer_reference_warns_even_with_invoice_number(self, german_record):
        del german_record["buyerReference"]
        invoice = to_canonical_invoice(german_record, "xrechnung-cii")
        assert invoice.invoice_number == "RE-2024-0042"
        entries = validate_xrechnung_rules(invoice)
        assert ids(entries) == ["BR-DE-15"]
        assert entries[0].level == "warning"

    def test_missing_seller_contact(self, german_record):
        del german_record["seller"]["phone"]
        del german_record["seller"]["email"]
        german_record["seller"]["electronicAddress"] = "rechnung@muster.de"
        invoice = to_canonical_invoice(german_record, "xrechnung-cii")
        errors = validate_xrechnung_rules(invoice)
        assert ids(errors) == ["BR-DE-2"]
        assert "phone number" in errors[0].message
        assert "email address" in errors[0].message

    def test_missing_addresses(self, german_record):
        german_record["buyer"] = {"name": "Kunde AG", "email": "einkauf@kunde.de"}
        invoice = to_canonical_invoice(german_record, "xrechnung-cii")
        assert ids(validate_xrechnung_rules(invoice)) == ["BR-DE-6", "BR-DE-7", "BR-DE-8", "BR-DE-11"]

    def test_payment_rules(self, german_record):
        german_record["payment"] = {}
        invoice = to_canonical_invoice(german_record, "xrechnung-cii")
        assert ids(validate_xrechnung_rules(invoice)) == ["BR-DE-23-a", "BR-CO-25"]

    def test_due_date_satisfies_payment_terms(self, german_record):
        del german_record["payment"]["paymentTerms"]
        invoice = to_canonical_invoice(german_record, "xrechnung-cii")
        assert validate_xrechnung_rules(invoice) == []

    def test_missing_identifiers_and_addresses(self, german_record):
        del german_record["seller"]["vatId"]
        del german_record["buyer"]["email"]
        invoice = to_canonical_invoice(german_record, "xrechnung-cii")
        assert ids(validate_xrechnung_rules(invoice)) == ["BR-CO-26", "PEPPOL-EN16931-R010"]

    def test_tax_number_satisfies_identifier(self, german_record):
        german_record["seller"]["vatId"] = None
        german_record["seller"]["taxNumber"] = "12/345/67890"
        invoice = to_canonical_invoice(german_record, "xrechnung-cii")
        assert validate_xrechnung_rules(invoice) == []


# ============================================================================
# PEPPOL
# ============================================================================

class TestPeppol:
    def test_complete_invoice_passes(self, peppol_invoice):
        assert validate_peppol_rules(peppol_invoice) == []

    def test_missing_endpoints(self, peppol_record):
        for party in ("seller", "buyer"):
            del peppol_record[party]["electronicAddress"]
            del peppol_record[party]["electronicAddressScheme"]
        invoice = to_canonical_invoice(peppol_record, "peppol-bis")
        assert ids(validate_peppol_rules(invoice)) == ["PEPPOL-EN16931-R010", "PEPPOL-EN16931-R020"]

    def test_email_scheme_rejected(self, german_invoice):
        found = ids(validate_peppol_rules(german_invoice))
        assert "PEPPOL-EN16931-R010-SCHEME" in found
        assert "PEPPOL-EN16931-R020-SCHEME" in found

    def test_unknown_scheme_rejected(self, peppol_record):
        peppol_record["buyer"]["electronicAddressScheme"] = "1234"
        invoice = to_canonical_invoice(peppol_record, "peppol-bis")
        errors = validate_peppol_rules(invoice)
        assert ids(errors) == ["PEPPOL-EN16931-R010-SCHEME"]
        assert errors[0].actual == "1234"

    def test_reverse_charge_needs_both_vat_ids(self, peppol_record):
        del peppol_record["buyer"]["vatId"]
        for line in peppol_record["lineItems"]:
            line["taxCategoryCode"] = "AE"
            line["taxRate"] = 0
        invoice = to_canonical_invoice(peppol_record, "peppol-bis")
        errors = [e for e in validate_peppol_rules(invoice) if e.rule_id == "BR-AE-01"]
        assert [e.location for e in errors] == ["invoice.buyer.vatId"]

    def test_exempt_line_with_rate(self, peppol_record):
        peppol_record["lineItems"][0]["taxCategoryCode"] = "E"
        invoice = to_canonical_invoice(peppol_record, "peppol-bis")
        errors = validate_peppol_rules(invoice)
        assert ids(errors) == ["BR-E-01"]
        assert errors[0].location == "invoice.lineItems[0].taxRate"

    def test_peppol_allows_category_m(self, peppol_record):
        peppol_record["lineItems"][0]["taxCategoryCode"] = "M"
        invoice = to_canonical_invoice(peppol_record, "peppol-bis")
        assert "PEPPOL-EN16931-CL001" not in ids(validate_peppol_rules(invoice))

    def test_missing_seller_tax_identifier(self, peppol_record):
        del peppol_record["seller"]["vatId"]
        invoice = to_canonical_invoice(peppol_record, "peppol-bis")
        assert ids(validate_peppol_rules(invoice)) == ["PEPPOL-EN16931-R004"]


# ============================================================================
# NLCIUS & CIUS-RO
# ============================================================================

class TestNLCIUS:
    def test_valid_dutch_btw(self, peppol_invoice):
        assert validate_nlcius_rules(peppol_invoice) == []

    def test_malformed_dutch_btw(self, peppol_record):
        peppol_record["buyer"]["vatId"] = "NL12345678"
        invoice = to_canonical_invoice(peppol_record, "nlcius")
        errors = validate_nlcius_rules(invoice)
        assert ids(errors) == ["NLCIUS-BTW-FORMAT"]
        assert errors[0].location == "invoice.buyer.vatId"

    @pytest.mark.parametrize("scheme,address,rule_id", [
        ("0190", "1234", "NLCIUS-OIN-FORMAT"),
        ("0106", "123456789", "NLCIUS-KVK-FORMAT"),
    ])
    def test_dutch_endpoint_formats(self, peppol_record, scheme, address, rule_id):
        peppol_record["buyer"]["electronicAddress"] = address
        peppol_record["buyer"]["electronicAddressScheme"] = scheme
        invoice = to_canonical_invoice(peppol_record, "nlcius")
        assert ids(validate_nlcius_rules(invoice)) == [rule_id]

    def test_valid_kvk(self, peppol_record):
        peppol_record["buyer"]["electronicAddress"] = "12345678"
        peppol_record["buyer"]["electronicAddressScheme"] = "0106"
        invoice = to_canonical_invoice(peppol_record, "nlcius")
        assert validate_nlcius_rules(invoice) == []


class TestCIUSRO:
    def test_valid_romanian_ids(self, peppol_record):
        peppol_record["seller"]["vatId"] = "RO12345678"
        peppol_record["seller"]["taxNumber"] = "12345678"
        invoice = to_canonical_invoice(peppol_record, "cius-ro")
        assert validate_ciusro_rules(invoice) == []

    def test_malformed_cui_and_vat(self, peppol_record):
        peppol_record["seller"]["vatId"] = "RO1"
        peppol_record["seller"]["taxNumber"] = "RO12345678901"
        invoice = to_canonical_invoice(peppol_record, "cius-ro")
        assert ids(validate_ciusro_rules(invoice)) == ["CIUS-RO-CUI-FORMAT", "CIUS-RO-VAT-FORMAT"]


# ============================================================================
# Factur-X
# ============================================================================

class TestFacturX:
    def test_complete_invoice_passes(self, german_invoice):
        assert FacturXEN16931Validator().validate(german_invoice) == []

    def test_en16931_requires_payment_terms(self, german_record):
        german_record["payment"] = {"iban": "DE89370400440532013000"}
        invoice = to_canonical_invoice(german_record, "facturx-en16931")
        assert ids(FacturXEN16931Validator().validate(invoice)) == ["FX-EN16931-001"]
        assert FacturXBasicValidator().validate(invoice) == []

    def test_document_type_restricted(self, german_record):
        german_record["documentTypeCode"] = "384"
        invoice = to_canonical_invoice(german_record, "facturx-basic")
        assert ids(FacturXBasicValidator().validate(invoice)) == ["FX-COMMON-001"]

    def test_country_codes(self, german_record):
        german_record["buyer"]["countryCode"] = "Deutschland"
        del german_record["seller"]["countryCode"]
        del german_record["seller"]["address"]
        del german_record["seller"]["city"]
        invoice = to_canonical_invoice(german_record, "facturx-basic")
        found = ids(FacturXBasicValidator().validate(invoice))
        assert found == ["FX-COMMON-004", "FX-COMMON-006", "FX-COMMON-007a"]

    def test_credit_note_reference(self, german_record):
        german_record["documentTypeCode"] = "381"
        invoice = to_canonical_invoice(german_record, "facturx-basic")
        assert ids(FacturXBasicValidator().validate(invoice)) == ["FX-COMMON-010"]

        german_record["precedingInvoiceReference"] = "RE-2024-0001"
        invoice = to_canonical_invoice(german_record, "facturx-basic")
        assert FacturXBasicValidator().validate(invoice) == []


# ============================================================================
# FatturaPA
# ============================================================================

class TestFatturaPA:
    def test_complete_invoice_passes(self, italian_record):
        invoice = to_canonical_invoice(italian_record, "fatturapa")
        assert validate_fatturapa_rules(invoice) == []

    def test_missing_seller_vat(self, italian_record):
        del italian_record["seller"]["vatId"]
        invoice = to_canonical_invoice(italian_record, "fatturapa")
        assert ids(validate_fatturapa_rules(invoice)) == ["FPA-010"]

    def test_missing_buyer_identification(self, italian_record):
        del italian_record["buyer"]["vatId"]
        invoice = to_canonical_invoice(italian_record, "fatturapa")
        assert ids(validate_fatturapa_rules(invoice)) == ["FPA-020"]

    def test_codice_destinatario_format_is_warning(self, italian_record):
        italian_record["buyer"]["codiceDestinatario"] = "ABC"
        invoice = to_canonical_invoice(italian_record, "fatturapa")
        entries = validate_fatturapa_rules(invoice)
        assert ids(entries) == ["FPA-021"]
        assert entries[0].level == "warning"

    def test_invalid_regime(self, italian_record):
        italian_record["seller"]["taxRegime"] = "RF20"
        invoice = to_canonical_invoice(italian_record, "fatturapa")
        assert ids(validate_fatturapa_rules(invoice)) == ["FPA-036"]

    def test_zero_rate_needs_category(self, italian_record):
        line = italian_record["lineItems"][0]
        line["taxRate"] = 0
        line["taxCategoryCode"] = "AE"
        invoice = to_canonical_invoice(italian_record, "fatturapa")
        assert validate_fatturapa_rules(invoice) == []

    def test_reverse_charge_with_rate(self, italian_record):
        italian_record["lineItems"][0]["taxCategoryCode"] = "AE"
        invoice = to_canonical_invoice(italian_record, "fatturapa")
        assert ids(validate_fatturapa_rules(invoice)) == ["FPA-035"]

    def test_missing_lines(self, italian_record):
        italian_record["lineItems"] = []
        invoice = to_canonical_invoice(italian_record, "fatturapa")
        assert ids(validate_fatturapa_rules(invoice)) == ["FPA-030"]


# ============================================================================
# KSeF
# ============================================================================

class TestKSeF:
    def test_complete_invoice_passes(self, polish_record):
        invoice = to_canonical_invoice(polish_record, "ksef")
        assert validate_ksef_rules(invoice) == []

    def test_nip_digits(self, polish_record):
        invoice = to_canonical_invoice(polish_record, "ksef")
        assert nip_digits(invoice.seller) == "1234567890"
        assert nip_digits(invoice.buyer) == "9876543210"

    def test_missing_seller_nip(self, polish_record):
        del polish_record["seller"]["vatId"]
        invoice = to_canonical_invoice(polish_record, "ksef")
        errors = validate_ksef_rules(invoice)
        assert ids(errors) == ["KSEF-01"]
        assert errors[0].actual == "(empty)"

    def test_short_nip(self, polish_record):
        polish_record["seller"]["vatId"] = "PL12345"
        invoice = to_canonical_invoice(polish_record, "ksef")
        assert ids(validate_ksef_rules(invoice)) == ["KSEF-01"]

    def test_non_polish_rate_is_warning(self, polish_record):
        polish_record["lineItems"][1]["taxRate"] = 19
        invoice = to_canonical_invoice(polish_record, "ksef")
        entries = validate_ksef_rules(invoice)
        assert ids(entries) == ["KSEF-08"]
        assert entries[0].level == "warning"

    def test_missing_line_rate(self, polish_record):
        del polish_record["lineItems"][0]["taxRate"]
        invoice = to_canonical_invoice(polish_record, "ksef")
        errors = validate_ksef_rules(invoice)
        assert ids(errors) == ["KSEF-07"]
        assert errors[0].location == "invoice.lineItems[0].taxRate"

    def test_buyer_name_is_enough(self, polish_record):
        del polish_record["buyer"]["taxNumber"]
        invoice = to_canonical_invoice(polish_record, "ksef")
        assert validate_ksef_rules(invoice) == []
