"""
XRechnung 3.0 rules (German BR-DE rules plus the EN 16931 rules XRechnung
makes mandatory). Shared by the CII and UBL syntaxes.
"""

from ..config import ProfileId
from ..rules import create_error, create_warning, is_blank
from ..schemas import CanonicalInvoice, ValidationError
from .base import ProfileValidator


def _address_rules(invoice: CanonicalInvoice) -> list[ValidationError]:
    errors = []
    seller, buyer = invoice.seller, invoice.buyer
    checks = [
        ("BR-DE-1", "seller.address", seller.address, "Seller street address is required"),
        ("BR-DE-3", "seller.city", seller.city, "Seller city is required"),
        ("BR-DE-4", "seller.postalCode", seller.postal_code, "Seller postal code is required"),
        ("BR-DE-5", "seller.countryCode", seller.country_code, "Seller country code is required"),
        ("BR-DE-6", "buyer.address", buyer.address, "Buyer street address is required"),
        ("BR-DE-7", "buyer.city", buyer.city, "Buyer city is required"),
        ("BR-DE-8", "buyer.postalCode", buyer.postal_code, "Buyer postal code is required"),
        ("BR-DE-11", "buyer.countryCode", buyer.country_code, "Buyer country code is required"),
    ]
    for rule_id, path, value, message in checks:
        if is_blank(value):
            errors.append(create_error(rule_id, f"invoice.{path}", message))
    return errors


def _seller_contact(invoice: CanonicalInvoice) -> list[ValidationError]:
    """BR-DE-2: seller contact needs a name, a phone number and an e-mail."""
    seller = invoice.seller
    missing = []
    if is_blank(seller.contact_name) and is_blank(seller.name):
        missing.append("contact name")
    if is_blank(seller.phone):
        missing.append("phone number")
    if is_blank(seller.email):
        missing.append("email address")
    if not missing:
        return []
    return [create_error(
        "BR-DE-2",
        "invoice.seller.contact",
        f"Seller contact information is incomplete: missing {', '.join(missing)}",
        suggestion="Provide seller contact name, phone number, and email address",
    )]


def validate_xrechnung_rules(invoice: CanonicalInvoice) -> list[ValidationError]:
    """Run all BR-DE rules; returns errors and warnings together."""
    entries = _address_rules(invoice)
    entries += _seller_contact(invoice)
    seller, buyer, payment = invoice.seller, invoice.buyer, invoice.payment

    if is_blank(invoice.buyer_reference):
        entries.append(create_warning(
            "BR-DE-15",
            "invoice.buyerReference",
            "Buyer reference (Leitweg-ID) is missing; the invoice number is used instead",
            suggestion="Provide the buyer's Leitweg-ID for public sector invoices",
        ))

    if is_blank(seller.vat_id) and is_blank(seller.tax_number) and is_blank(seller.tax_id):
        entries.append(create_error(
            "BR-CO-26",
            "invoice.seller.vatId",
            "Seller VAT ID or tax number is required",
            suggestion="Provide the seller USt-IdNr. (DE...) or Steuernummer",
        ))

    if invoice.currency != "EUR":
        entries.append(create_error(
            "BR-DE-18",
            "invoice.currency",
            "XRechnung requires currency EUR",
            expected="EUR",
            actual=invoice.currency,
        ))

    if is_blank(payment.iban):
        entries.append(create_error(
            "BR-DE-23-a",
            "invoice.payment.iban",
            "IBAN is required for SEPA credit transfer (payment means 58)",
            suggestion="Provide the seller IBAN",
        ))

    if is_blank(buyer.electronic_address):
        entries.append(create_error(
            "PEPPOL-EN16931-R010",
            "invoice.buyer.electronicAddress",
            "Buyer electronic address (BT-49) is required",
            suggestion="Provide the buyer e-mail or PEPPOL participant id",
        ))

    if is_blank(seller.electronic_address):
        entries.append(create_error(
            "BR-DE-SELLER-EADDR",
            "invoice.seller.electronicAddress",
            "Seller electronic address (BT-34) is required",
            suggestion="Provide the seller e-mail or PEPPOL participant id",
        ))

    if invoice.is_credit_note and is_blank(invoice.preceding_invoice_reference):
        entries.append(create_error(
            "BR-55",
            "invoice.precedingInvoiceReference",
            "Credit notes must reference the preceding invoice",
        ))

    if is_blank(payment.payment_terms) and is_blank(payment.due_date):
        entries.append(create_error(
            "BR-CO-25",
            "invoice.payment.paymentTerms",
            "Payment terms or a due date is required when an amount is due",
        ))

    return entries


class XRechnungCIIValidator(ProfileValidator):
    profile_id = ProfileId.XRECHNUNG_CII
    profile_name = "XRechnung 3.0"

    def validate(self, invoice: CanonicalInvoice) -> list[ValidationError]:
        return validate_xrechnung_rules(invoice)


class XRechnungUBLValidator(ProfileValidator):
    profile_id = ProfileId.XRECHNUNG_UBL
    profile_name = "XRechnung 3.0 (UBL)"

    def validate(self, invoice: CanonicalInvoice) -> list[ValidationError]:
        return validate_xrechnung_rules(invoice)
