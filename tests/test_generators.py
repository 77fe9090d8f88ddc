"""
Tests for the CII and UBL generators and the generator registry.
"""

import xml.etree.ElementTree as ET

import pytest

from einvoice_engine.config import OutputFormat, ProfileId
from einvoice_engine.errors import GenerationError, UnknownFormatError
from einvoice_engine.generators import (
    GENERATORS,
    STRUCT_PREFIX,
    get_available_formats,
    get_engine_versions,
    get_generator,
    parse_format,
)
from einvoice_engine.generators.cii import NAMESPACES as CII_NS
from einvoice_engine.generators.ubl import (
    CAC_NS,
    CBC_NS,
    CREDIT_NOTE_NS,
    INVOICE_NS,
    NLCIUS_CUSTOMIZATION_ID,
    PEPPOL_CUSTOMIZATION_ID,
)
from einvoice_engine.generators.xml_utils import format_date_cii, format_date_iso, sanitize_file_name
from einvoice_engine.generators.xrechnung_cii import XRECHNUNG_GUIDELINE
from einvoice_engine.mapper import to_canonical_invoice
from einvoice_engine.pipeline import validate_for_profile


UBL_NS = {"cac": CAC_NS, "cbc": CBC_NS}


def parse(xml: str) -> ET.Element:
    return ET.fromstring(xml.encode("utf-8"))


# ============================================================================
# XML Helpers
# ============================================================================

class TestXmlUtils:
    @pytest.mark.parametrize("value", ["2024-03-01", "01.03.2024", "20240301", "2024-03-01T10:00:00Z"])
    def test_accepted_date_formats(self, value):
        assert format_date_iso(value) == "2024-03-01"
        assert format_date_cii(value) == "20240301"

    @pytest.mark.parametrize("value", ["01/03/2024", "March 1st", "", None, "2024-13-01"])
    def test_rejected_date_formats(self, value):
        with pytest.raises(GenerationError):
            format_date_iso(value)

    def test_sanitize_file_name(self):
        assert sanitize_file_name("RE 2024/0042") == "RE_2024_0042"
        assert sanitize_file_name("") == "invoice"


# ============================================================================
# XRechnung CII
# ============================================================================

class TestXRechnungCII:
    @pytest.fixture
    def generator(self):
        return get_generator("xrechnung-cii")

    def test_valid_document(self, generator, german_invoice):
        result = generator.generate(german_invoice)
        assert result.validation_status == "valid"
        assert result.validation_errors == []
        assert result.file_name == "RE-2024-0042_xrechnung.xml"
        assert result.mime_type == "application/xml"
        assert result.file_size == len(result.xml_content.encode("utf-8"))
        assert result.xml_content.startswith('<?xml version="1.0" encoding="UTF-8"?>')

    def test_document_content(self, generator, german_invoice):
        root = parse(generator.generate(german_invoice).xml_content)
        ns = CII_NS
        assert root.find("rsm:ExchangedDocumentContext/ram:GuidelineSpecifiedDocumentContextParameter/ram:ID", ns).text == XRECHNUNG_GUIDELINE
        assert root.find("rsm:ExchangedDocument/ram:ID", ns).text == "RE-2024-0042"
        assert root.find("rsm:ExchangedDocument/ram:TypeCode", ns).text == "380"
        issue = root.find("rsm:ExchangedDocument/ram:IssueDateTime/udt:DateTimeString", ns)
        assert issue.text == "20240301"
        assert issue.get("format") == "102"

        transaction = root.find("rsm:SupplyChainTradeTransaction", ns)
        line = transaction.find("ram:IncludedSupplyChainTradeLineItem", ns)
        assert line.find("ram:SpecifiedLineTradeDelivery/ram:BilledQuantity", ns).get("unitCode") == "C62"
        assert line.find(".//ram:RateApplicablePercent", ns).text == "19.00"

        agreement = transaction.find("ram:ApplicableHeaderTradeAgreement", ns)
        assert agreement.find("ram:BuyerReference", ns).text == "04011000-12345-34"
        seller = agreement.find("ram:SellerTradeParty", ns)
        assert seller.find("ram:DefinedTradeContact/ram:TelephoneUniversalCommunication/ram:CompleteNumber", ns) is not None
        assert seller.find("ram:URIUniversalCommunication/ram:URIID", ns).get("schemeID") == "EM"
        assert seller.find("ram:SpecifiedTaxRegistration/ram:ID", ns).get("schemeID") == "VA"

        settlement = transaction.find("ram:ApplicableHeaderTradeSettlement", ns)
        assert settlement.find("ram:SpecifiedTradeSettlementPaymentMeans/ram:TypeCode", ns).text == "58"
        assert settlement.find(".//ram:IBANID", ns).text == "DE89370400440532013000"
        assert settlement.find("ram:ApplicableTradeTax/ram:CalculatedAmount", ns).text == "19.00"
        summation = settlement.find("ram:SpecifiedTradeSettlementHeaderMonetarySummation", ns)
        assert summation.find("ram:LineTotalAmount", ns).text == "100.00"
        assert summation.find("ram:TaxTotalAmount", ns).get("currencyID") == "EUR"
        assert summation.find("ram:GrandTotalAmount", ns).text == "119.00"
        assert summation.find("ram:DuePayableAmount", ns).text == "119.00"

    def test_missing_buyer_reference_falls_back_to_number(self, generator, german_record):
        del german_record["buyerReference"]
        invoice = to_canonical_invoice(german_record, "xrechnung-cii")
        result = generator.generate(invoice)
        assert result.validation_status == "warnings"
        assert result.validation_warnings[0].startswith("[BR-DE-15]")
        root = parse(result.xml_content)
        assert root.find(".//ram:BuyerReference", CII_NS).text == "RE-2024-0042"

    def test_no_iban_uses_credit_transfer(self, generator, german_record):
        german_record["payment"]["iban"] = None
        invoice = to_canonical_invoice(german_record, "xrechnung-cii")
        result = generator.generate(invoice)
        assert result.validation_status == "invalid"
        assert any(e.startswith("[BR-DE-23-a]") for e in result.validation_errors)
        root = parse(result.xml_content)
        assert root.find(".//ram:SpecifiedTradeSettlementPaymentMeans/ram:TypeCode", CII_NS).text == "30"

    def test_allowances_in_summation(self, generator, german_record):
        german_record["allowances"] = [{"amount": 10.0, "reason": "Rabatt"}]
        german_record["totals"] = {"subtotal": 90.0, "taxAmount": 17.1, "totalAmount": 107.1}
        invoice = to_canonical_invoice(german_record, "xrechnung-cii")
        result = generator.generate(invoice)
        assert result.validation_status == "valid"
        root = parse(result.xml_content)
        summation = root.find(".//ram:SpecifiedTradeSettlementHeaderMonetarySummation", CII_NS)
        assert summation.find("ram:AllowanceTotalAmount", CII_NS).text == "10.00"
        assert summation.find("ram:TaxBasisTotalAmount", CII_NS).text == "90.00"
        allowance = root.find(".//ram:SpecifiedTradeAllowanceCharge", CII_NS)
        assert allowance.find("ram:ChargeIndicator/udt:Indicator", CII_NS).text == "false"

    def test_passed_validation_is_used(self, generator, german_invoice):
        # The e-mail endpoints fail PEPPOL but pass XRechnung
        peppol_result = validate_for_profile(german_invoice, ProfileId.PEPPOL_BIS)
        result = generator.generate(german_invoice, peppol_result)
        assert result.validation_status == "invalid"
        assert any("R020-SCHEME" in e for e in result.validation_errors)

    def test_unsupported_date_raises(self, generator, german_record):
        german_record["invoiceDate"] = "03/01/2024"
        invoice = to_canonical_invoice(german_record, "xrechnung-cii")
        with pytest.raises(GenerationError):
            generator.generate(invoice)

    def test_control_characters_removed(self, generator, german_record):
        german_record["lineItems"][0]["description"] = "Bera\x01tung"
        invoice = to_canonical_invoice(german_record, "xrechnung-cii")
        root = parse(generator.generate(invoice).xml_content)
        assert root.find(".//ram:SpecifiedTradeProduct/ram:Name", CII_NS).text == "Beratung"

    def test_structural_check(self, generator):
        assert not generator.validate("<broken").valid
        check = generator.validate('<rsm:CrossIndustryInvoice xmlns:rsm="urn:x"/>')
        assert not check.valid
        assert "Missing required element: ExchangedDocument" in check.errors


# ============================================================================
# UBL (XRechnung UBL, PEPPOL, NLCIUS, CIUS-RO)
# ============================================================================

class TestUBL:
    def test_peppol_invoice(self, peppol_invoice):
        result = get_generator("peppol-bis").generate(peppol_invoice)
        assert result.validation_status == "valid"
        assert result.file_name == "INV-7001_peppol.xml"

        root = parse(result.xml_content)
        assert root.tag == f"{{{INVOICE_NS}}}Invoice"
        assert root.find("cbc:CustomizationID", UBL_NS).text == PEPPOL_CUSTOMIZATION_ID
        assert root.find("cbc:InvoiceTypeCode", UBL_NS).text == "380"
        assert root.find("cbc:DueDate", UBL_NS) is None
        endpoint = root.find("cac:AccountingSupplierParty/cac:Party/cbc:EndpointID", UBL_NS)
        assert endpoint.text == "7300010000001"
        assert endpoint.get("schemeID") == "0088"

        lines = root.findall("cac:InvoiceLine", UBL_NS)
        assert len(lines) == 2
        quantity = lines[0].find("cbc:InvoicedQuantity", UBL_NS)
        assert quantity.text == "10.0000"
        assert quantity.get("unitCode") == "BX"

        tax_total = root.find("cac:TaxTotal/cbc:TaxAmount", UBL_NS)
        assert tax_total.text == "25.00"
        assert tax_total.get("currencyID") == "EUR"
        totals = root.find("cac:LegalMonetaryTotal", UBL_NS)
        assert totals.find("cbc:TaxExclusiveAmount", UBL_NS).text == "100.00"
        assert totals.find("cbc:PayableAmount", UBL_NS).text == "125.00"

    def test_element_order(self, peppol_invoice):
        root = parse(get_generator("peppol-bis").generate(peppol_invoice).xml_content)
        names = [child.tag.rsplit("}", 1)[-1] for child in root]
        order = ["CustomizationID", "ProfileID", "ID", "IssueDate", "InvoiceTypeCode",
                 "DocumentCurrencyCode", "AccountingSupplierParty", "AccountingCustomerParty",
                 "PaymentMeans", "TaxTotal", "LegalMonetaryTotal", "InvoiceLine"]
        positions = [names.index(name) for name in order]
        assert positions == sorted(positions)

    def test_credit_note(self, peppol_record):
        peppol_record["documentTypeCode"] = "381"
        peppol_record["precedingInvoiceReference"] = "INV-7000"
        invoice = to_canonical_invoice(peppol_record, "peppol-bis")
        result = get_generator("peppol-bis").generate(invoice)
        assert result.validation_status == "valid"

        root = parse(result.xml_content)
        assert root.tag == f"{{{CREDIT_NOTE_NS}}}CreditNote"
        assert root.find("cbc:CreditNoteTypeCode", UBL_NS).text == "381"
        assert root.find("cac:BillingReference/cac:InvoiceDocumentReference/cbc:ID", UBL_NS).text == "INV-7000"
        assert len(root.findall("cac:CreditNoteLine", UBL_NS)) == 2
        assert root.find("cac:InvoiceLine", UBL_NS) is None

    def test_not_subject_to_vat_has_no_percent(self, peppol_record):
        for line in peppol_record["lineItems"]:
            line["taxRate"] = 0
            line["taxCategoryCode"] = "O"
        peppol_record["totals"] = {"subtotal": 100.0, "taxAmount": 0, "totalAmount": 100.0}
        invoice = to_canonical_invoice(peppol_record, "peppol-bis")
        root = parse(get_generator("peppol-bis").generate(invoice).xml_content)
        category = root.find("cac:TaxTotal/cac:TaxSubtotal/cac:TaxCategory", UBL_NS)
        assert category.find("cbc:ID", UBL_NS).text == "O"
        assert category.find("cbc:Percent", UBL_NS) is None
        assert category.find("cbc:TaxExemptionReasonCode", UBL_NS).text == "VATEX-EU-O"

    def test_xrechnung_ubl(self, german_invoice):
        result = get_generator("xrechnung-ubl").generate(german_invoice)
        assert result.validation_status == "valid"
        assert result.file_name == "RE-2024-0042_xrechnung_ubl.xml"
        root = parse(result.xml_content)
        contact = root.find("cac:AccountingSupplierParty/cac:Party/cac:Contact", UBL_NS)
        assert contact.find("cbc:Telephone", UBL_NS).text == "+49 30 1234567"
        assert root.find("cac:PaymentMeans/cbc:PaymentMeansCode", UBL_NS).text == "58"

    def test_email_endpoint_fails_peppol(self, german_record):
        invoice = to_canonical_invoice(german_record, "peppol-bis")
        result = get_generator("peppol-bis").generate(invoice)
        assert result.validation_status == "invalid"
        assert any("R020-SCHEME" in e for e in result.validation_errors)

    def test_missing_endpoint_is_structural_error(self, peppol_record):
        del peppol_record["buyer"]["electronicAddress"]
        invoice = to_canonical_invoice(peppol_record, "peppol-bis")
        result = get_generator("peppol-bis").generate(invoice)
        assert f"{STRUCT_PREFIX} Missing EndpointID in AccountingCustomerParty" in result.validation_errors

    def test_customization_checked(self, peppol_invoice):
        xml = get_generator("peppol-bis").build_xml(peppol_invoice)
        check = get_generator("nlcius").validate(xml)
        assert not check.valid
        assert f"CustomizationID must be {NLCIUS_CUSTOMIZATION_ID}" in check.errors

    def test_nlcius_and_ciusro_file_names(self, peppol_invoice):
        assert get_generator("nlcius").file_name(peppol_invoice) == "INV-7001_nlcius.xml"
        assert get_generator("cius-ro").file_name(peppol_invoice) == "INV-7001_ciusro.xml"


# ============================================================================
# Registry
# ============================================================================

class TestFactory:
    def test_every_format_registered(self):
        assert set(GENERATORS) == set(OutputFormat)
        for output_format, generator in GENERATORS.items():
            assert generator.format_id == output_format
            assert generator.profile.value == output_format.value

    def test_get_generator_returns_shared_instance(self):
        assert get_generator("ksef") is get_generator(OutputFormat.KSEF)

    def test_unknown_format(self):
        with pytest.raises(UnknownFormatError) as exc_info:
            parse_format("xrechnung-pdf")
        assert "supported: xrechnung-cii" in str(exc_info.value)
        assert isinstance(exc_info.value, ValueError)

    def test_available_formats(self):
        formats = get_available_formats()
        assert [f.format_id for f in formats] == [f.value for f in OutputFormat]
        ksef = next(f for f in formats if f.format_id == "ksef")
        assert ksef.spec_version == "FA(3)"
        assert not ksef.deprecated

    def test_engine_versions(self):
        versions = get_engine_versions()
        assert versions["ksef"] == "2.0.0"
        assert versions["xrechnung-cii"] == "1.0.0"
