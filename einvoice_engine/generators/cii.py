"""
UN/CEFACT Cross Industry Invoice (CII D16B) document builder.

Used by the XRechnung CII generator and, with a different guideline id,
by the Factur-X generator. Element order follows the CII schema sequence.
"""

import xml.etree.ElementTree as ET
from typing import Optional

from ..codelists import PAYMENT_MEANS_CREDIT_TRANSFER, PAYMENT_MEANS_SEPA_TRANSFER
from ..config import DEFAULT_DOCUMENT_TYPE, DEFAULT_UNIT_CODE, logger
from ..monetary import format_money, format_quantity, format_rate, sum_money
from ..schemas import CanonicalAllowanceCharge, CanonicalInvoice, CanonicalLineItem, PartyInfo
from ..taxes import allowance_total, charge_total, due_payable, group_by_tax_rate, line_total, tax_category
from .xml_utils import format_date_cii, opt_sub, root_element, serialize, sub


NAMESPACES = {
    "rsm": "urn:un:unece:uncefact:data:standard:CrossIndustryInvoice:100",
    "ram": "urn:un:unece:uncefact:data:standard:ReusableAggregateBusinessInformationEntity:100",
    "qdt": "urn:un:unece:uncefact:data:standard:QualifiedDataType:100",
    "udt": "urn:un:unece:uncefact:data:standard:UnqualifiedDataType:100",
}

PEPPOL_BUSINESS_PROCESS = "urn:fdc:peppol.eu:2017:poacc:billing:01:1.0"

CII_REQUIRED_ELEMENTS = [
    "ExchangedDocumentContext",
    "GuidelineSpecifiedDocumentContextParameter",
    "ExchangedDocument",
    "SupplyChainTradeTransaction",
    "IncludedSupplyChainTradeLineItem",
    "ApplicableHeaderTradeAgreement",
    "SellerTradeParty",
    "BuyerTradeParty",
    "ApplicableHeaderTradeDelivery",
    "ApplicableHeaderTradeSettlement",
    "InvoiceCurrencyCode",
    "SpecifiedTradeSettlementHeaderMonetarySummation",
    "GrandTotalAmount",
    "DuePayableAmount",
]


def _date(parent: ET.Element, tag: str, value: str) -> None:
    wrapper = sub(parent, tag)
    sub(wrapper, "udt:DateTimeString", format_date_cii(value), format="102")


def _fallback_rate(invoice: CanonicalInvoice) -> float:
    if invoice.tax_rate is not None:
        return invoice.tax_rate
    rates = [line.tax_rate for line in invoice.line_items if line.tax_rate is not None]
    return rates[0] if rates else 0.0


# ============================================================================
# Lines
# ============================================================================

def _line_item(parent: ET.Element, index: int, line: CanonicalLineItem, fallback_rate: float) -> None:
    rate = line.tax_rate if line.tax_rate is not None else fallback_rate
    item = sub(parent, "ram:IncludedSupplyChainTradeLineItem")

    document = sub(item, "ram:AssociatedDocumentLineDocument")
    sub(document, "ram:LineID", str(index + 1))

    product = sub(item, "ram:SpecifiedTradeProduct")
    sub(product, "ram:Name", line.description or "Item")

    agreement = sub(item, "ram:SpecifiedLineTradeAgreement")
    price = sub(agreement, "ram:NetPriceProductTradePrice")
    sub(price, "ram:ChargeAmount", format_money(line.unit_price))

    delivery = sub(item, "ram:SpecifiedLineTradeDelivery")
    sub(delivery, "ram:BilledQuantity", format_quantity(line.quantity), unitCode=line.unit_code or DEFAULT_UNIT_CODE)

    settlement = sub(item, "ram:SpecifiedLineTradeSettlement")
    tax = sub(settlement, "ram:ApplicableTradeTax")
    sub(tax, "ram:TypeCode", "VAT")
    sub(tax, "ram:CategoryCode", tax_category(line.tax_category_code, rate))
    sub(tax, "ram:RateApplicablePercent", format_rate(rate))
    summation = sub(settlement, "ram:SpecifiedTradeSettlementLineMonetarySummation")
    sub(summation, "ram:LineTotalAmount", format_money(line.total_price))


# ============================================================================
# Parties
# ============================================================================

def _postal_address(parent: ET.Element, party: PartyInfo) -> None:
    address = sub(parent, "ram:PostalTradeAddress")
    opt_sub(address, "ram:PostcodeCode", party.postal_code)
    opt_sub(address, "ram:LineOne", party.address)
    opt_sub(address, "ram:CityName", party.city)
    sub(address, "ram:CountryID", party.country_code or "")


def _seller_contact(parent: ET.Element, seller: PartyInfo) -> None:
    contact = sub(parent, "ram:DefinedTradeContact")
    sub(contact, "ram:PersonName", seller.contact_name or seller.name)
    if seller.phone:
        phone = sub(contact, "ram:TelephoneUniversalCommunication")
        sub(phone, "ram:CompleteNumber", seller.phone)
    if seller.email:
        email = sub(contact, "ram:EmailURIUniversalCommunication")
        sub(email, "ram:URIID", seller.email)


def _electronic_address(parent: ET.Element, party: PartyInfo) -> None:
    if not party.electronic_address:
        return
    communication = sub(parent, "ram:URIUniversalCommunication")
    sub(communication, "ram:URIID", party.electronic_address, schemeID=party.electronic_address_scheme or "EM")


def _tax_registrations(parent: ET.Element, party: PartyInfo) -> None:
    if party.tax_number:
        registration = sub(parent, "ram:SpecifiedTaxRegistration")
        sub(registration, "ram:ID", party.tax_number, schemeID="FC")
    vat_id = party.vat_id or (party.tax_id if not party.tax_number else None)
    if vat_id:
        registration = sub(parent, "ram:SpecifiedTaxRegistration")
        sub(registration, "ram:ID", vat_id, schemeID="VA")


def _trade_party(parent: ET.Element, tag: str, party: PartyInfo, with_contact: bool) -> None:
    element = sub(parent, tag)
    sub(element, "ram:Name", party.name)
    if with_contact:
        _seller_contact(element, party)
    _postal_address(element, party)
    _electronic_address(element, party)
    _tax_registrations(element, party)


# ============================================================================
# Settlement
# ============================================================================

def _allowance_charge(parent: ET.Element, ac: CanonicalAllowanceCharge, fallback_rate: float) -> None:
    rate = ac.tax_rate if ac.tax_rate is not None else fallback_rate
    element = sub(parent, "ram:SpecifiedTradeAllowanceCharge")
    indicator = sub(element, "ram:ChargeIndicator")
    sub(indicator, "udt:Indicator", "true" if ac.charge_indicator else "false")
    if ac.percentage is not None:
        sub(element, "ram:CalculationPercent", format_rate(ac.percentage))
    if ac.base_amount is not None:
        sub(element, "ram:BasisAmount", format_money(ac.base_amount))
    sub(element, "ram:ActualAmount", format_money(ac.amount))
    opt_sub(element, "ram:ReasonCode", ac.reason_code)
    opt_sub(element, "ram:Reason", ac.reason or ("Surcharge" if ac.charge_indicator else "Discount"))
    tax = sub(element, "ram:CategoryTradeTax")
    sub(tax, "ram:TypeCode", "VAT")
    sub(tax, "ram:CategoryCode", tax_category(ac.tax_category_code, rate))
    sub(tax, "ram:RateApplicablePercent", format_rate(rate))


def _payment_means(parent: ET.Element, invoice: CanonicalInvoice) -> None:
    payment = invoice.payment
    means = sub(parent, "ram:SpecifiedTradeSettlementPaymentMeans")
    if not payment.iban:
        logger.warning(f"Invoice {invoice.invoice_number}: no IBAN, using payment means 30")
        sub(means, "ram:TypeCode", PAYMENT_MEANS_CREDIT_TRANSFER)
        return
    sub(means, "ram:TypeCode", PAYMENT_MEANS_SEPA_TRANSFER)
    account = sub(means, "ram:PayeePartyCreditorFinancialAccount")
    sub(account, "ram:IBANID", payment.iban)
    if payment.bic:
        institution = sub(means, "ram:PayeeSpecifiedCreditorFinancialInstitution")
        sub(institution, "ram:BICID", payment.bic)


def _settlement(parent: ET.Element, invoice: CanonicalInvoice) -> None:
    settlement = sub(parent, "ram:ApplicableHeaderTradeSettlement")
    sub(settlement, "ram:InvoiceCurrencyCode", invoice.currency)
    _payment_means(settlement, invoice)

    groups = group_by_tax_rate(invoice)
    for group in groups:
        tax = sub(settlement, "ram:ApplicableTradeTax")
        sub(tax, "ram:CalculatedAmount", format_money(group.tax))
        sub(tax, "ram:TypeCode", "VAT")
        opt_sub(tax, "ram:ExemptionReason", group.exemption_reason)
        sub(tax, "ram:BasisAmount", format_money(group.basis))
        sub(tax, "ram:CategoryCode", group.category)
        opt_sub(tax, "ram:ExemptionReasonCode", group.exemption_code)
        sub(tax, "ram:RateApplicablePercent", format_rate(group.rate))

    if invoice.billing_period_start or invoice.billing_period_end:
        period = sub(settlement, "ram:BillingSpecifiedPeriod")
        if invoice.billing_period_start:
            _date(period, "ram:StartDateTime", invoice.billing_period_start)
        if invoice.billing_period_end:
            _date(period, "ram:EndDateTime", invoice.billing_period_end)

    fallback_rate = _fallback_rate(invoice)
    for ac in invoice.allowance_charges or []:
        _allowance_charge(settlement, ac, fallback_rate)

    payment = invoice.payment
    if payment.payment_terms or payment.due_date:
        terms = sub(settlement, "ram:SpecifiedTradePaymentTerms")
        opt_sub(terms, "ram:Description", payment.payment_terms)
        if payment.due_date:
            _date(terms, "ram:DueDateDateTime", payment.due_date)

    currency = invoice.currency
    summation = sub(settlement, "ram:SpecifiedTradeSettlementHeaderMonetarySummation")
    sub(summation, "ram:LineTotalAmount", format_money(line_total(invoice)))
    if invoice.allowance_charges:
        sub(summation, "ram:ChargeTotalAmount", format_money(charge_total(invoice)))
        sub(summation, "ram:AllowanceTotalAmount", format_money(allowance_total(invoice)))
    sub(summation, "ram:TaxBasisTotalAmount", format_money(sum_money(g.basis for g in groups)))
    sub(summation, "ram:TaxTotalAmount", format_money(sum_money(g.tax for g in groups)), currencyID=currency)
    sub(summation, "ram:GrandTotalAmount", format_money(invoice.totals.total_amount))
    if payment.prepaid_amount:
        sub(summation, "ram:TotalPrepaidAmount", format_money(payment.prepaid_amount))
    sub(summation, "ram:DuePayableAmount", format_money(due_payable(invoice)))

    if invoice.preceding_invoice_reference:
        reference = sub(settlement, "ram:InvoiceReferencedDocument")
        sub(reference, "ram:IssuerAssignedID", invoice.preceding_invoice_reference)


# ============================================================================
# Document
# ============================================================================

def build_cii_document(
    invoice: CanonicalInvoice,
    guideline_id: str,
    business_process_id: Optional[str] = None,
) -> str:
    """
    Serialize an invoice as a CII document.

    Args:
        invoice: Canonical invoice
        guideline_id: Specification identifier (BT-24)
        business_process_id: Business process (BT-23); omitted when None

    Returns:
        XML string with declaration

    Raises:
        GenerationError: if a date is not in an accepted format
    """
    root = root_element("rsm:CrossIndustryInvoice", NAMESPACES)

    context = sub(root, "rsm:ExchangedDocumentContext")
    if business_process_id:
        process = sub(context, "ram:BusinessProcessSpecifiedDocumentContextParameter")
        sub(process, "ram:ID", business_process_id)
    guideline = sub(context, "ram:GuidelineSpecifiedDocumentContextParameter")
    sub(guideline, "ram:ID", guideline_id)

    document = sub(root, "rsm:ExchangedDocument")
    sub(document, "ram:ID", invoice.invoice_number)
    sub(document, "ram:TypeCode", invoice.document_type_code or DEFAULT_DOCUMENT_TYPE)
    _date(document, "ram:IssueDateTime", invoice.invoice_date)
    if invoice.notes:
        note = sub(document, "ram:IncludedNote")
        sub(note, "ram:Content", invoice.notes)

    transaction = sub(root, "rsm:SupplyChainTradeTransaction")
    fallback_rate = _fallback_rate(invoice)
    for index, line in enumerate(invoice.line_items):
        _line_item(transaction, index, line, fallback_rate)

    agreement = sub(transaction, "ram:ApplicableHeaderTradeAgreement")
    sub(agreement, "ram:BuyerReference", invoice.buyer_reference or invoice.invoice_number)
    _trade_party(agreement, "ram:SellerTradeParty", invoice.seller, with_contact=True)
    _trade_party(agreement, "ram:BuyerTradeParty", invoice.buyer, with_contact=False)

    delivery = sub(transaction, "ram:ApplicableHeaderTradeDelivery")
    event = sub(delivery, "ram:ActualDeliverySupplyChainEvent")
    _date(event, "ram:OccurrenceDateTime", invoice.invoice_date)

    _settlement(transaction, invoice)
    return serialize(root)
