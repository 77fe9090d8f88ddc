"""
KSeF FA(3) rules (Polish national e-invoicing system).
"""

import re
from math import isfinite

from ..config import ProfileId
from ..rules import create_error, create_warning, is_blank
from ..schemas import CanonicalInvoice, PartyInfo, ValidationError
from .base import ProfileValidator


POLISH_TAX_RATES: tuple[float, ...] = (23, 22, 8, 7, 5, 0)

MAX_INVOICE_NUMBER_LENGTH = 256


def nip_digits(party: PartyInfo) -> str:
    """Digits of the party's NIP taken from tax number, VAT id or tax id."""
    raw = party.tax_number or party.vat_id or party.tax_id or ""
    return re.sub(r"\D", "", re.sub(r"^PL", "", raw.strip(), flags=re.IGNORECASE))


def validate_ksef_rules(invoice: CanonicalInvoice) -> list[ValidationError]:
    entries = []

    seller_nip = nip_digits(invoice.seller)
    if len(seller_nip) != 10:
        entries.append(create_error(
            "KSEF-01",
            "invoice.seller.vatId",
            "Seller NIP (10-digit Polish tax ID) is required for KSeF",
            expected="10-digit NIP",
            actual=seller_nip or "(empty)",
        ))

    if not nip_digits(invoice.buyer) and is_blank(invoice.buyer.name):
        entries.append(create_error("KSEF-02", "invoice.buyer", "Buyer NIP or name is required for KSeF"))

    if is_blank(invoice.invoice_number):
        entries.append(create_error("KSEF-03", "invoice.invoiceNumber", "Invoice number is required for KSeF"))
    elif len(invoice.invoice_number) > MAX_INVOICE_NUMBER_LENGTH:
        entries.append(create_error(
            "KSEF-03",
            "invoice.invoiceNumber",
            f"Invoice number must not exceed {MAX_INVOICE_NUMBER_LENGTH} characters",
            actual=str(len(invoice.invoice_number)),
        ))

    if is_blank(invoice.invoice_date):
        entries.append(create_error("KSEF-04", "invoice.invoiceDate", "Invoice issue date is required for KSeF"))
    if is_blank(invoice.currency):
        entries.append(create_error("KSEF-05", "invoice.currency", "Currency code (ISO 4217) is required for KSeF"))
    if not invoice.line_items:
        entries.append(create_error("KSEF-06", "invoice.lineItems", "At least one line item is required for KSeF"))

    for i, line in enumerate(invoice.line_items):
        where = f"invoice.lineItems[{i}]"
        if is_blank(line.description):
            entries.append(create_error("KSEF-07", f"{where}.description", f"Line item {i + 1}: description is required"))
        if line.quantity is None or not isfinite(line.quantity):
            entries.append(create_error("KSEF-07", f"{where}.quantity", f"Line item {i + 1}: quantity is required"))
        if line.unit_price is None or not isfinite(line.unit_price):
            entries.append(create_error("KSEF-07", f"{where}.unitPrice", f"Line item {i + 1}: unit price is required"))
        if line.tax_rate is None:
            entries.append(create_error("KSEF-07", f"{where}.taxRate", f"Line item {i + 1}: tax rate is required"))
        elif line.tax_rate not in POLISH_TAX_RATES:
            entries.append(create_warning(
                "KSEF-08",
                f"{where}.taxRate",
                f"Line item {i + 1}: non-standard Polish tax rate",
                expected="23, 22, 8, 7, 5, 0, zw, or np",
                actual=f"{line.tax_rate:g}",
            ))

    if not isfinite(invoice.totals.total_amount):
        entries.append(create_error("KSEF-09", "invoice.totals.totalAmount", "Total amount is required for KSeF"))

    return entries


class KSeFValidator(ProfileValidator):
    profile_id = ProfileId.KSEF
    profile_name = "KSeF FA(3) (Poland)"

    def validate(self, invoice: CanonicalInvoice) -> list[ValidationError]:
        return validate_ksef_rules(invoice)
