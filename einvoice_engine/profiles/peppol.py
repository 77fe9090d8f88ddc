"""
PEPPOL BIS Billing 3.0 rules.

Also the foundation of the NLCIUS and CIUS-RO rule sets.
"""

import re

from ..codelists import EAS_SCHEME_IDS, PEPPOL_TAX_CATEGORY_CODES
from ..config import ProfileId
from ..rules import create_error, is_blank
from ..schemas import CanonicalInvoice, PartyInfo, ValidationError
from .base import ProfileValidator


COUNTRY_PATTERN = re.compile(r"^[A-Z]{2}$")

SCHEME_SUGGESTION = 'Use a valid EAS scheme identifier (e.g. "0088" for EAN, "0184" for PEPPOL)'


def _endpoint(party: PartyInfo, role: str, rule_id: str, bt: str) -> list[ValidationError]:
    if is_blank(party.electronic_address):
        return [create_error(
            rule_id,
            f"invoice.{role}.electronicAddress",
            f"{role.capitalize()} electronic address ({bt} EndpointID) is required for PEPPOL",
            suggestion=f"Provide {role} electronic address (e.g. PEPPOL participant ID)",
        )]
    scheme = party.electronic_address_scheme
    if scheme and scheme not in EAS_SCHEME_IDS:
        return [create_error(
            f"{rule_id}-SCHEME",
            f"invoice.{role}.electronicAddressScheme",
            f'{role.capitalize()} endpoint scheme ID "{scheme}" is not a valid EAS code',
            actual=scheme,
            suggestion=SCHEME_SUGGESTION,
        )]
    return []


def validate_peppol_rules(invoice: CanonicalInvoice) -> list[ValidationError]:
    errors = _endpoint(invoice.buyer, "buyer", "PEPPOL-EN16931-R010", "BT-49")
    errors += _endpoint(invoice.seller, "seller", "PEPPOL-EN16931-R020", "BT-34")

    for i, line in enumerate(invoice.line_items):
        category = (line.tax_category_code or "").strip()
        if category and category not in PEPPOL_TAX_CATEGORY_CODES:
            errors.append(create_error(
                "PEPPOL-EN16931-CL001",
                f"invoice.lineItems[{i}].taxCategoryCode",
                f'Tax category code "{category}" is not in the PEPPOL allowed set '
                f"({', '.join(sorted(PEPPOL_TAX_CATEGORY_CODES))})",
                actual=category,
            ))

    for role, party in (("seller", invoice.seller), ("buyer", invoice.buyer)):
        code = party.country_code
        if code and not COUNTRY_PATTERN.match(code):
            errors.append(create_error(
                "PEPPOL-EN16931-CL005",
                f"invoice.{role}.countryCode",
                f'{role.capitalize()} country code "{code}" is not a valid ISO 3166-1 alpha-2 code',
                actual=code,
            ))

    seller = invoice.seller
    if is_blank(seller.vat_id) and is_blank(seller.tax_number) and is_blank(seller.tax_id):
        errors.append(create_error(
            "PEPPOL-EN16931-R004",
            "invoice.seller.taxIdentifier",
            "At least one seller tax identifier is required (BT-31, BT-32, or BT-63)",
        ))

    if any((line.tax_category_code or "").upper() == "AE" for line in invoice.line_items):
        if is_blank(invoice.seller.vat_id):
            errors.append(create_error(
                "BR-AE-01",
                "invoice.seller.vatId",
                "Reverse charge (AE): Seller VAT ID (BT-31) is required when tax category AE is used",
            ))
        if is_blank(invoice.buyer.vat_id):
            errors.append(create_error(
                "BR-AE-01",
                "invoice.buyer.vatId",
                "Reverse charge (AE): Buyer VAT ID (BT-48) is required when tax category AE is used",
            ))

    for i, line in enumerate(invoice.line_items):
        if (line.tax_category_code or "").upper() == "E" and line.tax_rate not in (None, 0):
            errors.append(create_error(
                "BR-E-01",
                f"invoice.lineItems[{i}].taxRate",
                f"Exempt (E) line item {i + 1}: tax rate must be 0%, got {line.tax_rate:g}%",
                expected="0",
                actual=f"{line.tax_rate:g}",
            ))

    if invoice.is_credit_note and is_blank(invoice.preceding_invoice_reference):
        errors.append(create_error(
            "PEPPOL-EN16931-R006",
            "invoice.precedingInvoiceReference",
            "Credit notes (TypeCode 381) must include a preceding invoice reference (BT-25)",
        ))

    return errors


class PeppolValidator(ProfileValidator):
    profile_id = ProfileId.PEPPOL_BIS
    profile_name = "PEPPOL BIS Billing 3.0"

    def validate(self, invoice: CanonicalInvoice) -> list[ValidationError]:
        return validate_peppol_rules(invoice)
