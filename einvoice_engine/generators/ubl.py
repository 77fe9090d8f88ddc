"""
OASIS UBL 2.1 Invoice / CreditNote generators.

XRechnung UBL, PEPPOL BIS, NLCIUS and CIUS-RO share one document shape and
differ by CustomizationID (BT-24), validation profile and file name.
"""

import xml.etree.ElementTree as ET

from ..codelists import PAYMENT_MEANS_CREDIT_TRANSFER, PAYMENT_MEANS_SEPA_TRANSFER
from ..config import DEFAULT_DOCUMENT_TYPE, DEFAULT_UNIT_CODE, OutputFormat, ProfileId
from ..monetary import format_money, format_quantity, format_rate, sum_money
from ..schemas import CanonicalAllowanceCharge, CanonicalInvoice, CanonicalLineItem, PartyInfo
from ..taxes import allowance_total, charge_total, due_payable, group_by_tax_rate, line_total, tax_category
from .base import FormatGenerator
from .xml_utils import find_local, format_date_iso, opt_sub, root_element, sanitize_file_name, serialize, sub


INVOICE_NS = "urn:oasis:names:specification:ubl:schema:xsd:Invoice-2"
CREDIT_NOTE_NS = "urn:oasis:names:specification:ubl:schema:xsd:CreditNote-2"
CAC_NS = "urn:oasis:names:specification:ubl:schema:xsd:CommonAggregateComponents-2"
CBC_NS = "urn:oasis:names:specification:ubl:schema:xsd:CommonBasicComponents-2"

PEPPOL_PROFILE_ID = "urn:fdc:peppol.eu:2017:poacc:billing:01:1.0"
PEPPOL_CUSTOMIZATION_ID = "urn:cen.eu:en16931:2017#compliant#urn:fdc:peppol.eu:2017:poacc:billing:3.0"
XRECHNUNG_CUSTOMIZATION_ID = "urn:cen.eu:en16931:2017#compliant#urn:xeinkauf.de:kosit:xrechnung_3.0"
NLCIUS_CUSTOMIZATION_ID = "urn:cen.eu:en16931:2017#compliant#urn:fdc:nen.nl:nlcius:v1.0"
CIUS_RO_CUSTOMIZATION_ID = "urn:cen.eu:en16931:2017#compliant#urn:efactura.mfinante.ro:CIUS-RO:1.0.1"

UBL_REQUIRED_ELEMENTS = [
    "CustomizationID",
    "ProfileID",
    "ID",
    "IssueDate",
    "DocumentCurrencyCode",
    "AccountingSupplierParty",
    "AccountingCustomerParty",
    "PaymentMeans",
    "TaxTotal",
    "LegalMonetaryTotal",
]


class UBLDocumentBuilder:
    """Builds one UBL document; a fresh builder is used per invoice."""

    def __init__(self, invoice: CanonicalInvoice, customization_id: str, profile_id: str):
        self.invoice = invoice
        self.customization_id = customization_id
        self.profile_id = profile_id
        self.currency = invoice.currency
        self.credit_note = invoice.is_credit_note
        rates = [line.tax_rate for line in invoice.line_items if line.tax_rate is not None]
        self.fallback_rate = invoice.tax_rate if invoice.tax_rate is not None else (rates[0] if rates else 0.0)

    def amount(self, parent: ET.Element, tag: str, value: float) -> ET.Element:
        return sub(parent, tag, format_money(value), currencyID=self.currency)

    def tax_category(self, parent: ET.Element, tag: str, category: str, rate: float,
                     exemption: tuple = (None, None)) -> None:
        element = sub(parent, tag)
        sub(element, "cbc:ID", category)
        if category != "O":
            sub(element, "cbc:Percent", format_rate(rate))
        reason, code = exemption
        opt_sub(element, "cbc:TaxExemptionReasonCode", code)
        opt_sub(element, "cbc:TaxExemptionReason", reason)
        scheme = sub(element, "cac:TaxScheme")
        sub(scheme, "cbc:ID", "VAT")

    # ========================================================================
    # Header
    # ========================================================================

    def build(self) -> str:
        invoice = self.invoice
        if self.credit_note:
            root = root_element("CreditNote", {"": CREDIT_NOTE_NS, "cac": CAC_NS, "cbc": CBC_NS})
        else:
            root = root_element("Invoice", {"": INVOICE_NS, "cac": CAC_NS, "cbc": CBC_NS})

        sub(root, "cbc:CustomizationID", self.customization_id)
        sub(root, "cbc:ProfileID", self.profile_id)
        sub(root, "cbc:ID", invoice.invoice_number)
        sub(root, "cbc:IssueDate", format_date_iso(invoice.invoice_date))
        if self.credit_note:
            sub(root, "cbc:CreditNoteTypeCode", "381")
        else:
            if invoice.payment.due_date:
                sub(root, "cbc:DueDate", format_date_iso(invoice.payment.due_date))
            sub(root, "cbc:InvoiceTypeCode", invoice.document_type_code or DEFAULT_DOCUMENT_TYPE)
        opt_sub(root, "cbc:Note", invoice.notes)
        sub(root, "cbc:DocumentCurrencyCode", self.currency)
        sub(root, "cbc:BuyerReference", invoice.buyer_reference or invoice.invoice_number)

        if invoice.billing_period_start or invoice.billing_period_end:
            period = sub(root, "cac:InvoicePeriod")
            if invoice.billing_period_start:
                sub(period, "cbc:StartDate", format_date_iso(invoice.billing_period_start))
            if invoice.billing_period_end:
                sub(period, "cbc:EndDate", format_date_iso(invoice.billing_period_end))

        if invoice.preceding_invoice_reference:
            billing = sub(root, "cac:BillingReference")
            reference = sub(billing, "cac:InvoiceDocumentReference")
            sub(reference, "cbc:ID", invoice.preceding_invoice_reference)

        self.party(sub(root, "cac:AccountingSupplierParty"), invoice.seller, seller=True)
        self.party(sub(root, "cac:AccountingCustomerParty"), invoice.buyer, seller=False)
        self.payment(root)
        for ac in invoice.allowance_charges or []:
            self.allowance_charge(root, ac)
        self.tax_total(root)
        self.monetary_total(root)
        for index, line in enumerate(invoice.line_items):
            self.line(root, index, line)
        return serialize(root)

    # ========================================================================
    # Parties
    # ========================================================================

    def party(self, parent: ET.Element, info: PartyInfo, seller: bool) -> None:
        party = sub(parent, "cac:Party")
        if info.electronic_address:
            sub(party, "cbc:EndpointID", info.electronic_address, schemeID=info.electronic_address_scheme or "EM")

        name = sub(party, "cac:PartyName")
        sub(name, "cbc:Name", info.name)

        address = sub(party, "cac:PostalAddress")
        opt_sub(address, "cbc:StreetName", info.address)
        opt_sub(address, "cbc:CityName", info.city)
        opt_sub(address, "cbc:PostalZone", info.postal_code)
        country = sub(address, "cac:Country")
        sub(country, "cbc:IdentificationCode", info.country_code or "")

        vat_id = info.vat_id or (info.tax_id if not info.tax_number else None)
        if vat_id:
            scheme = sub(party, "cac:PartyTaxScheme")
            sub(scheme, "cbc:CompanyID", vat_id)
            tax_scheme = sub(scheme, "cac:TaxScheme")
            sub(tax_scheme, "cbc:ID", "VAT")
        if seller and info.tax_number:
            scheme = sub(party, "cac:PartyTaxScheme")
            sub(scheme, "cbc:CompanyID", info.tax_number)
            tax_scheme = sub(scheme, "cac:TaxScheme")
            sub(tax_scheme, "cbc:ID", "FC")

        legal = sub(party, "cac:PartyLegalEntity")
        sub(legal, "cbc:RegistrationName", info.name)

        if seller or info.email or info.phone:
            contact = sub(party, "cac:Contact")
            opt_sub(contact, "cbc:Name", info.contact_name or (info.name if seller else None))
            opt_sub(contact, "cbc:Telephone", info.phone)
            opt_sub(contact, "cbc:ElectronicMail", info.email)

    # ========================================================================
    # Payment, allowances, taxes
    # ========================================================================

    def payment(self, root: ET.Element) -> None:
        payment = self.invoice.payment
        means = sub(root, "cac:PaymentMeans")
        if payment.iban:
            sub(means, "cbc:PaymentMeansCode", PAYMENT_MEANS_SEPA_TRANSFER)
            sub(means, "cbc:PaymentID", self.invoice.invoice_number)
            account = sub(means, "cac:PayeeFinancialAccount")
            sub(account, "cbc:ID", payment.iban)
            opt_sub(account, "cbc:Name", payment.bank_name)
            if payment.bic:
                branch = sub(account, "cac:FinancialInstitutionBranch")
                sub(branch, "cbc:ID", payment.bic)
        else:
            sub(means, "cbc:PaymentMeansCode", PAYMENT_MEANS_CREDIT_TRANSFER)
            sub(means, "cbc:PaymentID", self.invoice.invoice_number)

        if payment.payment_terms or (payment.due_date and self.credit_note):
            terms = sub(root, "cac:PaymentTerms")
            note = payment.payment_terms or f"Due {format_date_iso(payment.due_date)}"
            sub(terms, "cbc:Note", note)

    def allowance_charge(self, root: ET.Element, ac: CanonicalAllowanceCharge) -> None:
        rate = ac.tax_rate if ac.tax_rate is not None else self.fallback_rate
        element = sub(root, "cac:AllowanceCharge")
        sub(element, "cbc:ChargeIndicator", "true" if ac.charge_indicator else "false")
        opt_sub(element, "cbc:AllowanceChargeReasonCode", ac.reason_code)
        sub(element, "cbc:AllowanceChargeReason", ac.reason or ("Surcharge" if ac.charge_indicator else "Discount"))
        if ac.percentage is not None:
            sub(element, "cbc:MultiplierFactorNumeric", format_rate(ac.percentage))
        self.amount(element, "cbc:Amount", ac.amount)
        if ac.base_amount is not None:
            self.amount(element, "cbc:BaseAmount", ac.base_amount)
        self.tax_category(element, "cac:TaxCategory", tax_category(ac.tax_category_code, rate), rate)

    def tax_total(self, root: ET.Element) -> None:
        groups = group_by_tax_rate(self.invoice)
        total = sub(root, "cac:TaxTotal")
        self.amount(total, "cbc:TaxAmount", sum_money(g.tax for g in groups))
        for group in groups:
            subtotal = sub(total, "cac:TaxSubtotal")
            self.amount(subtotal, "cbc:TaxableAmount", group.basis)
            self.amount(subtotal, "cbc:TaxAmount", group.tax)
            self.tax_category(
                subtotal, "cac:TaxCategory", group.category, group.rate,
                (group.exemption_reason, group.exemption_code),
            )

    def monetary_total(self, root: ET.Element) -> None:
        invoice = self.invoice
        groups = group_by_tax_rate(invoice)
        total = sub(root, "cac:LegalMonetaryTotal")
        self.amount(total, "cbc:LineExtensionAmount", line_total(invoice))
        self.amount(total, "cbc:TaxExclusiveAmount", sum_money(g.basis for g in groups))
        self.amount(total, "cbc:TaxInclusiveAmount", invoice.totals.total_amount)
        if invoice.allowance_charges:
            self.amount(total, "cbc:AllowanceTotalAmount", allowance_total(invoice))
            self.amount(total, "cbc:ChargeTotalAmount", charge_total(invoice))
        if invoice.payment.prepaid_amount:
            self.amount(total, "cbc:PrepaidAmount", invoice.payment.prepaid_amount)
        self.amount(total, "cbc:PayableAmount", due_payable(invoice))

    def line(self, root: ET.Element, index: int, line: CanonicalLineItem) -> None:
        rate = line.tax_rate if line.tax_rate is not None else self.fallback_rate
        if self.credit_note:
            element = sub(root, "cac:CreditNoteLine")
            quantity_tag = "cbc:CreditedQuantity"
        else:
            element = sub(root, "cac:InvoiceLine")
            quantity_tag = "cbc:InvoicedQuantity"
        sub(element, "cbc:ID", str(index + 1))
        sub(element, quantity_tag, format_quantity(line.quantity), unitCode=line.unit_code or DEFAULT_UNIT_CODE)
        self.amount(element, "cbc:LineExtensionAmount", line.total_price)

        item = sub(element, "cac:Item")
        description = line.description or "Item"
        if len(description) > 100:
            sub(item, "cbc:Description", description)
        sub(item, "cbc:Name", description[:100])
        self.tax_category(item, "cac:ClassifiedTaxCategory", tax_category(line.tax_category_code, rate), rate)

        price = sub(element, "cac:Price")
        self.amount(price, "cbc:PriceAmount", line.unit_price)


# ============================================================================
# Generators
# ============================================================================

class UBLGenerator(FormatGenerator):
    """Shared behaviour of the UBL-based formats."""

    customization_id: str = PEPPOL_CUSTOMIZATION_ID
    profile_id_urn: str = PEPPOL_PROFILE_ID
    file_suffix: str = "ubl"
    required_elements = UBL_REQUIRED_ELEMENTS

    @property
    def version(self) -> str:
        return "1.0.0"

    def build_xml(self, invoice: CanonicalInvoice) -> str:
        return UBLDocumentBuilder(invoice, self.customization_id, self.profile_id_urn).build()

    def file_name(self, invoice: CanonicalInvoice) -> str:
        return f"{sanitize_file_name(invoice.invoice_number)}_{self.file_suffix}.xml"

    def check_structure(self, root: ET.Element) -> list[str]:
        errors = []
        credit_note = root.tag.endswith("CreditNote")
        type_code, line_tag = (
            ("CreditNoteTypeCode", "CreditNoteLine") if credit_note else ("InvoiceTypeCode", "InvoiceLine")
        )
        if find_local(root, type_code) is None:
            errors.append(f"Missing required element: {type_code}")
        if find_local(root, line_tag) is None:
            errors.append(f"Missing required element: {line_tag}")

        customization = find_local(root, "CustomizationID")
        if customization is not None and (customization.text or "").strip() != self.customization_id:
            errors.append(f"CustomizationID must be {self.customization_id}")
        profile = find_local(root, "ProfileID")
        if profile is not None and (profile.text or "").strip() != self.profile_id_urn:
            errors.append(f"ProfileID must be {self.profile_id_urn}")

        for party_tag in ("AccountingSupplierParty", "AccountingCustomerParty"):
            party = find_local(root, party_tag)
            if party is not None and find_local(party, "EndpointID") is None:
                errors.append(f"Missing EndpointID in {party_tag}")
        return errors


class XRechnungUBLGenerator(UBLGenerator):
    profile = ProfileId.XRECHNUNG_UBL
    customization_id = XRECHNUNG_CUSTOMIZATION_ID
    file_suffix = "xrechnung_ubl"

    @property
    def format_id(self) -> OutputFormat:
        return OutputFormat.XRECHNUNG_UBL

    @property
    def format_name(self) -> str:
        return "XRechnung 3.0 (UBL)"

    @property
    def spec_version(self) -> str:
        return "3.0.2"

    @property
    def spec_date(self) -> str:
        return "2023-07-07"


class PeppolBISGenerator(UBLGenerator):
    profile = ProfileId.PEPPOL_BIS
    customization_id = PEPPOL_CUSTOMIZATION_ID
    file_suffix = "peppol"

    @property
    def format_id(self) -> OutputFormat:
        return OutputFormat.PEPPOL_BIS

    @property
    def format_name(self) -> str:
        return "PEPPOL BIS Billing 3.0"

    @property
    def spec_version(self) -> str:
        return "3.0.17"

    @property
    def spec_date(self) -> str:
        return "2024-05-13"


class NLCIUSGenerator(UBLGenerator):
    profile = ProfileId.NLCIUS
    customization_id = NLCIUS_CUSTOMIZATION_ID
    file_suffix = "nlcius"

    @property
    def format_id(self) -> OutputFormat:
        return OutputFormat.NLCIUS

    @property
    def format_name(self) -> str:
        return "NLCIUS / SI-UBL 2.0 (Netherlands)"

    @property
    def spec_version(self) -> str:
        return "1.0"

    @property
    def spec_date(self) -> str:
        return "2019-10-01"


class CIUSROGenerator(UBLGenerator):
    profile = ProfileId.CIUS_RO
    customization_id = CIUS_RO_CUSTOMIZATION_ID
    file_suffix = "ciusro"

    @property
    def format_id(self) -> OutputFormat:
        return OutputFormat.CIUS_RO

    @property
    def format_name(self) -> str:
        return "CIUS-RO (Romania)"

    @property
    def spec_version(self) -> str:
        return "1.0.1"

    @property
    def spec_date(self) -> str:
        return "2022-07-01"
