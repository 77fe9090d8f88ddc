"""
NLCIUS / SI-UBL 2.0 rules (Netherlands): PEPPOL plus Dutch identifier formats.
"""

import re
from typing import Optional

from ..config import ProfileId
from ..rules import create_error
from ..schemas import CanonicalInvoice, PartyInfo, ValidationError
from .base import ProfileValidator
from .peppol import validate_peppol_rules


OIN_PATTERN = re.compile(r"^\d{20}$")
KVK_PATTERN = re.compile(r"^\d{8}$")
DUTCH_BTW_PATTERN = re.compile(r"^NL\d{9}B\d{2}$")

OIN_SCHEME = "0190"
KVK_SCHEME = "0106"


def _btw(vat_id: Optional[str], role: str) -> list[ValidationError]:
    vat_id = (vat_id or "").strip()
    if vat_id.startswith("NL") and not DUTCH_BTW_PATTERN.match(vat_id):
        return [create_error(
            "NLCIUS-BTW-FORMAT",
            f"invoice.{role}.vatId",
            f'Dutch VAT ID must match format NLxxxxxxxxxBxx, got "{vat_id}"',
            actual=vat_id,
            suggestion="Format: NL + 9 digits + B + 2 digits (e.g. NL123456789B01)",
        )]
    return []


def _endpoint(party: PartyInfo, role: str) -> list[ValidationError]:
    address, scheme = party.electronic_address, party.electronic_address_scheme
    if not address or not scheme:
        return []
    label = role.capitalize()
    if scheme == OIN_SCHEME and not OIN_PATTERN.match(address):
        return [create_error(
            "NLCIUS-OIN-FORMAT",
            f"invoice.{role}.electronicAddress",
            f'{label} OIN (schemeID 0190) must be exactly 20 digits, got "{address}"',
            actual=address,
            suggestion="Provide a 20-digit OIN identifier",
        )]
    if scheme == KVK_SCHEME and not KVK_PATTERN.match(address):
        return [create_error(
            "NLCIUS-KVK-FORMAT",
            f"invoice.{role}.electronicAddress",
            f'{label} KVK number (schemeID 0106) must be exactly 8 digits, got "{address}"',
            actual=address,
            suggestion="Provide an 8-digit KVK number",
        )]
    return []


def validate_nlcius_rules(invoice: CanonicalInvoice) -> list[ValidationError]:
    errors = validate_peppol_rules(invoice)
    errors += _btw(invoice.seller.vat_id, "seller")
    errors += _btw(invoice.buyer.vat_id, "buyer")
    errors += _endpoint(invoice.seller, "seller")
    errors += _endpoint(invoice.buyer, "buyer")
    return errors


class NLCIUSValidator(ProfileValidator):
    profile_id = ProfileId.NLCIUS
    profile_name = "NLCIUS / SI-UBL 2.0 (Netherlands)"

    def validate(self, invoice: CanonicalInvoice) -> list[ValidationError]:
        return validate_nlcius_rules(invoice)
