"""
Canonical mapper: raw extraction records to CanonicalInvoice.

The extraction layer hands over dictionaries whose field names vary between
sources (nested ``seller`` objects or flat ``sellerName`` keys, ``items`` or
``lineItems``, ``vatRate`` or ``taxRate``). This module normalizes them into
one CanonicalInvoice and converts gross-priced invoices to net prices.
"""

import math
import re
from datetime import date
from typing import Any, Optional, Union

from .config import (
    DEFAULT_COUNTRY_BY_FORMAT,
    DEFAULT_CURRENCY,
    GROSS_CANDIDATE_RATES,
    GROSS_DETECTION_TOLERANCE,
    OutputFormat,
    logger,
)
from .generators import parse_format
from .monetary import round_money, sum_money
from .schemas import (
    CanonicalAllowanceCharge,
    CanonicalInvoice,
    CanonicalLineItem,
    DocumentTotals,
    PartyInfo,
    PaymentInfo,
)


# EU member state prefixes (EL for Greece, XI for Northern Ireland)
EU_VAT_PATTERN = re.compile(
    r"^(AT|BE|BG|CY|CZ|DE|DK|EE|EL|ES|FI|FR|HR|HU|IE|IT|LT|LU|LV|MT|NL|PL|PT|RO|SE|SI|SK|XI)"
    r"[0-9A-Z+*.]{2,13}$"
)


# ============================================================================
# Value Coercion
# ============================================================================

def _str(value: Any) -> Optional[str]:
    """Trimmed string, or None for missing/blank values."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _opt_num(value: Any) -> Optional[float]:
    """Float for numbers and numeric strings (comma decimals allowed), else None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None
    text = str(value).strip().replace(" ", "")
    if not text:
        return None
    if "," in text and "." not in text:
        text = text.replace(",", ".")
    try:
        number = float(text)
    except ValueError:
        return None
    return number if math.isfinite(number) else None


def _num(value: Any, default: float = 0.0) -> float:
    number = _opt_num(value)
    return default if number is None else number


def _first(*values: Any) -> Any:
    """First value that is not None or blank."""
    for value in values:
        if value is None:
            continue
        if isinstance(value, str) and not value.strip():
            continue
        return value
    return None


def is_eu_vat_id(value: Optional[str]) -> bool:
    """True if value looks like an EU VAT id (country prefix + 2..13 chars)."""
    if not value:
        return False
    return bool(EU_VAT_PATTERN.match(re.sub(r"[\s-]", "", value).upper()))


def derive_tax_category(rate: Optional[float]) -> Optional[str]:
    """S for a positive rate, E for 0%, None when the rate is unknown."""
    if rate is None:
        return None
    return "S" if rate > 0 else "E"


# ============================================================================
# Parties, Payment, Lines
# ============================================================================

def _party(raw: dict, prefix: str, output_format: OutputFormat) -> PartyInfo:
    nested = raw.get(prefix)
    nested = nested if isinstance(nested, dict) else {}

    def field(*keys: str) -> Optional[str]:
        for key in keys:
            value = _str(_first(nested.get(key), raw.get(prefix + key[0].upper() + key[1:])))
            if value is not None:
                return value
        return None

    address = field("address", "street")
    city = field("city")
    country = field("countryCode", "country")
    if country:
        country = country.upper()
    elif address or city:
        country = DEFAULT_COUNTRY_BY_FORMAT.get(output_format)

    vat_id = field("vatId")
    tax_number = field("taxNumber")
    tax_id = field("taxId")
    if prefix == "seller" and tax_id and not vat_id and not tax_number:
        # Only a combined identifier was extracted: decide which one it is
        if is_eu_vat_id(tax_id):
            vat_id = re.sub(r"\s", "", tax_id).upper()
        else:
            tax_number = tax_id

    email = field("email")
    electronic_address = field("electronicAddress", "codiceDestinatario")
    scheme = field("electronicAddressScheme")
    if not electronic_address and email:
        electronic_address, scheme = email, "EM"

    return PartyInfo(
        name=field("name") or "",
        email=email,
        address=address,
        city=city,
        postal_code=field("postalCode", "zip"),
        country_code=country,
        phone=field("phone", "phoneNumber"),
        vat_id=vat_id,
        tax_number=tax_number,
        tax_id=tax_id,
        electronic_address=electronic_address,
        electronic_address_scheme=scheme,
        contact_name=field("contactName", "contact"),
        tax_regime=field("taxRegime"),
    )


def _payment(raw: dict) -> PaymentInfo:
    nested = raw.get("payment")
    nested = nested if isinstance(nested, dict) else {}
    iban = _str(_first(nested.get("iban"), raw.get("sellerIban"), raw.get("iban")))
    return PaymentInfo(
        iban=re.sub(r"\s", "", iban).upper() if iban else None,
        bic=_str(_first(nested.get("bic"), raw.get("sellerBic"), raw.get("bic"))),
        bank_name=_str(_first(nested.get("bankName"), raw.get("bankName"))),
        payment_terms=_str(_first(nested.get("paymentTerms"), raw.get("paymentTerms"))),
        due_date=_str(_first(nested.get("dueDate"), raw.get("dueDate"), raw.get("paymentDueDate"))),
        prepaid_amount=_opt_num(_first(nested.get("prepaidAmount"), raw.get("prepaidAmount"))),
    )


def _line_item(item: dict, default_rate: Optional[float]) -> CanonicalLineItem:
    quantity = _opt_num(item.get("quantity"))
    if quantity is None:
        quantity = 1.0
    unit_price = _num(_first(item.get("unitPrice"), item.get("price")))
    total = _opt_num(_first(item.get("totalPrice"), item.get("lineTotal")))
    if total is None:
        total = round_money(unit_price * quantity)
    rate = _opt_num(_first(item.get("taxRate"), item.get("vatRate")))
    if rate is None:
        rate = default_rate
    category = _str(item.get("taxCategoryCode"))
    return CanonicalLineItem(
        description=_str(_first(item.get("description"), item.get("name"))) or "",
        quantity=quantity,
        unit_price=unit_price,
        total_price=total,
        tax_rate=rate,
        tax_category_code=category.upper() if category else derive_tax_category(rate),
        unit_code=_str(item.get("unitCode")),
    )


def _allowance_charge(item: dict, charge: Optional[bool], default_rate: Optional[float]) -> CanonicalAllowanceCharge:
    if charge is None:
        charge = bool(item.get("chargeIndicator", False))
    rate = _opt_num(item.get("taxRate"))
    if rate is None:
        rate = default_rate
    category = _str(item.get("taxCategoryCode"))
    return CanonicalAllowanceCharge(
        charge_indicator=charge,
        amount=abs(_num(item.get("amount"))),
        base_amount=_opt_num(item.get("baseAmount")),
        percentage=_opt_num(item.get("percentage")),
        reason=_str(item.get("reason")),
        reason_code=_str(item.get("reasonCode")),
        tax_rate=rate,
        tax_category_code=category.upper() if category else derive_tax_category(rate),
    )


def _allowance_charges(raw: dict, default_rate: Optional[float]) -> Optional[list[CanonicalAllowanceCharge]]:
    result = [
        _allowance_charge(ac, None, default_rate)
        for ac in raw.get("allowanceCharges") or []
        if isinstance(ac, dict)
    ]
    result += [_allowance_charge(ac, False, default_rate) for ac in raw.get("allowances") or [] if isinstance(ac, dict)]
    result += [_allowance_charge(ac, True, default_rate) for ac in raw.get("charges") or [] if isinstance(ac, dict)]
    return result or None


def _totals(raw: dict, lines: list[CanonicalLineItem]) -> DocumentTotals:
    nested = raw.get("totals")
    nested = nested if isinstance(nested, dict) else {}
    subtotal = _opt_num(_first(nested.get("subtotal"), raw.get("subtotal"), raw.get("netAmount")))
    tax = _opt_num(_first(nested.get("taxAmount"), raw.get("taxAmount"), raw.get("vatAmount")))
    total = _opt_num(_first(nested.get("totalAmount"), raw.get("totalAmount"), raw.get("grossAmount")))

    if subtotal is None:
        subtotal = sum_money(line.total_price for line in lines)
    if tax is None:
        tax = sum_money(line.total_price * (line.tax_rate or 0) / 100 for line in lines)
    if total is None:
        total = round_money(subtotal + tax)
    return DocumentTotals(subtotal=subtotal, tax_amount=tax, total_amount=total)


# ============================================================================
# Public API
# ============================================================================

def to_canonical_invoice(raw: dict, output_format: Union[OutputFormat, str]) -> CanonicalInvoice:
    """
    Convert a raw invoice record into a CanonicalInvoice.

    Args:
        raw: Extraction record with arbitrary field-name shape
        output_format: Target format; drives country defaults

    Raises:
        UnknownFormatError: If the format id is not supported

    Returns:
        CanonicalInvoice with gross prices already converted to net
    """
    output_format = parse_format(output_format)
    default_rate = _opt_num(_first(raw.get("taxRate"), raw.get("vatRate")))

    raw_lines = raw.get("lineItems")
    if not raw_lines:
        raw_lines = raw.get("items") or []
    lines = [_line_item(item, default_rate) for item in raw_lines if isinstance(item, dict)]

    currency = _str(raw.get("currency"))
    invoice = CanonicalInvoice(
        output_format=output_format,
        invoice_number=_str(raw.get("invoiceNumber")) or "",
        invoice_date=_str(raw.get("invoiceDate")) or date.today().isoformat(),
        document_type_code=_str(_first(raw.get("documentTypeCode"), raw.get("invoiceTypeCode"))),
        currency=currency.upper() if currency else DEFAULT_CURRENCY,
        buyer_reference=_str(raw.get("buyerReference")),
        notes=_str(raw.get("notes")),
        preceding_invoice_reference=_str(raw.get("precedingInvoiceReference")),
        billing_period_start=_str(raw.get("billingPeriodStart")),
        billing_period_end=_str(raw.get("billingPeriodEnd")),
        seller=_party(raw, "seller", output_format),
        buyer=_party(raw, "buyer", output_format),
        payment=_payment(raw),
        line_items=lines,
        allowance_charges=_allowance_charges(raw, default_rate),
        totals=_totals(raw, lines),
        tax_rate=default_rate,
        confidence=_opt_num(raw.get("confidence")),
        processing_time_ms=_opt_num(raw.get("processingTimeMs")),
    )
    return preprocess_gross_to_net(invoice)


def preprocess_gross_to_net(invoice: CanonicalInvoice) -> CanonicalInvoice:
    """
    Convert a gross-priced invoice to net prices.

    Runs only when allowances or charges are present. If the line totals
    adjusted by allowances/charges already match the declared subtotal the
    invoice is returned unchanged. Otherwise each candidate rate is tried;
    on a match every line and allowance/charge is divided by (1 + rate),
    using the item's own rate where it has one, and residual cents are
    folded into the largest line. Returns a new invoice; the input is
    never modified.
    """
    adjustments = invoice.allowance_charges or []
    if not adjustments:
        return invoice

    tolerance = GROSS_DETECTION_TOLERANCE
    subtotal = invoice.totals.subtotal

    def net_sum(lines: list[CanonicalLineItem], acs: list[CanonicalAllowanceCharge]) -> float:
        return sum_money(
            [line.total_price for line in lines]
            + [ac.amount if ac.charge_indicator else -ac.amount for ac in acs]
        )

    gross_after = net_sum(invoice.line_items, adjustments)
    if abs(gross_after - subtotal) <= tolerance:
        return invoice

    detected: Optional[float] = None
    for rate in GROSS_CANDIDATE_RATES:
        if abs(round_money(gross_after / (1 + rate)) - subtotal) < tolerance:
            detected = rate
            break

    if detected is None:
        logger.debug(
            f"Invoice {invoice.invoice_number}: adjusted line sum {gross_after:.2f} does not "
            f"match subtotal {subtotal:.2f} at any candidate rate, keeping prices as net"
        )
        return invoice

    def divisor(rate: Optional[float]) -> float:
        return 1 + rate / 100 if rate is not None else 1 + detected

    lines = [
        line.model_copy(update={
            "unit_price": round_money(line.unit_price / divisor(line.tax_rate)),
            "total_price": round_money(line.total_price / divisor(line.tax_rate)),
        })
        for line in invoice.line_items
    ]
    acs = [
        ac.model_copy(update={
            "amount": round_money(ac.amount / divisor(ac.tax_rate)),
            "base_amount": (
                round_money(ac.base_amount / divisor(ac.tax_rate)) if ac.base_amount is not None else None
            ),
        })
        for ac in adjustments
    ]

    diff = round_money(subtotal - net_sum(lines, acs))
    if lines and 0 < abs(diff) <= tolerance + 1e-9:
        largest = max(range(len(lines)), key=lambda i: lines[i].total_price)
        lines[largest] = lines[largest].model_copy(
            update={"total_price": round_money(lines[largest].total_price + diff)}
        )

    logger.info(
        f"Invoice {invoice.invoice_number}: gross prices detected at {detected * 100:.0f}%, "
        f"converted {len(lines)} line(s) and {len(acs)} allowance/charge(s) to net"
    )
    return invoice.model_copy(update={"line_items": lines, "allowance_charges": acs})
