"""
Factur-X / ZUGFeRD rules for the EN 16931 (Comfort) and BASIC profiles.
"""

import re

from ..codelists import PEPPOL_TAX_CATEGORY_CODES
from ..config import DEFAULT_DOCUMENT_TYPE, ProfileId
from ..rules import create_error, is_blank
from ..schemas import CanonicalInvoice, ValidationError
from .base import ProfileValidator


COUNTRY_PATTERN = re.compile(r"^[A-Z]{2}$")
CURRENCY_PATTERN = re.compile(r"^[A-Z]{3}$")


def _country(code, role: str, rule_id: str) -> list[ValidationError]:
    location = f"invoice.{role}.countryCode"
    if is_blank(code):
        return [create_error(rule_id, location, f"{role.capitalize()} country code is required for Factur-X")]
    if not COUNTRY_PATTERN.match(code):
        return [create_error(
            f"{rule_id}a",
            location,
            f'{role.capitalize()} country code "{code}" is not a valid ISO 3166-1 alpha-2 code',
            actual=code,
        )]
    return []


def validate_facturx_common(invoice: CanonicalInvoice) -> list[ValidationError]:
    """Rules shared by every Factur-X profile."""
    errors = []
    doc_type = invoice.document_type_code or DEFAULT_DOCUMENT_TYPE
    if doc_type not in ("380", "381"):
        errors.append(create_error(
            "FX-COMMON-001",
            "invoice.documentTypeCode",
            f'Document type code must be 380 (invoice) or 381 (credit note), got "{doc_type}"',
            actual=doc_type,
            suggestion="Use 380 for invoices or 381 for credit notes",
        ))

    if not invoice.line_items:
        errors.append(create_error("FX-COMMON-002", "invoice.lineItems", "At least one line item is required"))
    if is_blank(invoice.seller.name):
        errors.append(create_error("FX-COMMON-003", "invoice.seller.name", "Seller name is required for Factur-X"))
    if is_blank(invoice.seller.address):
        errors.append(create_error(
            "FX-COMMON-004", "invoice.seller.address", "Seller address is required for Factur-X"
        ))
    if is_blank(invoice.buyer.name):
        errors.append(create_error("FX-COMMON-005", "invoice.buyer.name", "Buyer name is required for Factur-X"))

    errors += _country(invoice.seller.country_code, "seller", "FX-COMMON-006")
    errors += _country(invoice.buyer.country_code, "buyer", "FX-COMMON-007")

    if invoice.currency and not CURRENCY_PATTERN.match(invoice.currency):
        errors.append(create_error(
            "FX-COMMON-008",
            "invoice.currency",
            f'Currency "{invoice.currency}" is not a valid ISO 4217 code',
            actual=invoice.currency,
            suggestion='Use a 3-letter ISO 4217 currency code (e.g. "EUR", "USD")',
        ))

    for i, line in enumerate(invoice.line_items):
        category = (line.tax_category_code or "").strip()
        if category and category not in PEPPOL_TAX_CATEGORY_CODES:
            errors.append(create_error(
                "FX-COMMON-009",
                f"invoice.lineItems[{i}].taxCategoryCode",
                f'Tax category code "{category}" is not in the EN 16931 allowed set',
                actual=category,
            ))

    if doc_type == "381" and is_blank(invoice.preceding_invoice_reference):
        errors.append(create_error(
            "FX-COMMON-010",
            "invoice.precedingInvoiceReference",
            "Credit notes (TypeCode 381) must include a preceding invoice reference (BT-25)",
            suggestion="Provide the original invoice number this credit note relates to",
        ))

    seller = invoice.seller
    if is_blank(seller.vat_id) and is_blank(seller.tax_number) and is_blank(seller.tax_id):
        errors.append(create_error(
            "FX-COMMON-011",
            "invoice.seller.taxIdentifier",
            "At least one seller tax identifier (VAT ID or tax number) is required",
        ))
    return errors


class FacturXEN16931Validator(ProfileValidator):
    profile_id = ProfileId.FACTURX_EN16931
    profile_name = "Factur-X EN 16931"

    def validate(self, invoice: CanonicalInvoice) -> list[ValidationError]:
        errors = validate_facturx_common(invoice)
        payment = invoice.payment
        if is_blank(payment.payment_terms) and is_blank(payment.due_date):
            errors.append(create_error(
                "FX-EN16931-001",
                "invoice.payment.paymentTerms",
                "Payment terms or due date is required for the EN 16931 profile",
            ))
        return errors


class FacturXBasicValidator(ProfileValidator):
    profile_id = ProfileId.FACTURX_BASIC
    profile_name = "Factur-X BASIC"

    def validate(self, invoice: CanonicalInvoice) -> list[ValidationError]:
        return validate_facturx_common(invoice)
