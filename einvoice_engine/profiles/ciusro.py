"""
CIUS-RO rules (Romania e-Factura): PEPPOL plus CUI/CIF and VAT id formats.
"""

import re

from ..config import ProfileId
from ..rules import create_error
from ..schemas import CanonicalInvoice, ValidationError
from .base import ProfileValidator
from .peppol import validate_peppol_rules


CUI_PATTERN = re.compile(r"^(RO)?\d{1,10}$")
RO_VAT_PATTERN = re.compile(r"^RO\d{2,10}$")


def validate_ciusro_rules(invoice: CanonicalInvoice) -> list[ValidationError]:
    errors = validate_peppol_rules(invoice)
    for role, party in (("seller", invoice.seller), ("buyer", invoice.buyer)):
        tax_number = (party.tax_number or "").strip()
        if tax_number and not CUI_PATTERN.match(tax_number):
            errors.append(create_error(
                "CIUS-RO-CUI-FORMAT",
                f"invoice.{role}.taxNumber",
                f'Romanian CUI/CIF must be optional "RO" prefix + up to 10 digits, got "{tax_number}"',
                actual=tax_number,
                suggestion="Format: RO + up to 10 digits or just up to 10 digits (e.g. RO12345678)",
            ))
        vat_id = (party.vat_id or "").strip()
        if vat_id.startswith("RO") and not RO_VAT_PATTERN.match(vat_id):
            errors.append(create_error(
                "CIUS-RO-VAT-FORMAT",
                f"invoice.{role}.vatId",
                f'Romanian VAT ID must be RO + 2 to 10 digits, got "{vat_id}"',
                actual=vat_id,
                suggestion="Format: RO + 2 to 10 digits (e.g. RO12345678)",
            ))
    return errors


class CIUSROValidator(ProfileValidator):
    profile_id = ProfileId.CIUS_RO
    profile_name = "CIUS-RO (Romania)"

    def validate(self, invoice: CanonicalInvoice) -> list[ValidationError]:
        return validate_ciusro_rules(invoice)
