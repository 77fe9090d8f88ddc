"""
VAT breakdown shared by the business rules and the generators.
"""

from dataclasses import dataclass
from typing import Optional

from .codelists import EXEMPTION_REASONS
from .monetary import compute_tax, round_money, sum_money
from .schemas import CanonicalInvoice


@dataclass(frozen=True)
class TaxGroup:
    """Net basis and tax for one (category, rate) pair."""
    category: str
    rate: float
    basis: float
    tax: float

    @property
    def exemption_reason(self) -> Optional[str]:
        entry = EXEMPTION_REASONS.get(self.category)
        return entry[0] if entry else None

    @property
    def exemption_code(self) -> Optional[str]:
        entry = EXEMPTION_REASONS.get(self.category)
        return entry[1] if entry else None


def tax_category(category: Optional[str], rate: Optional[float]) -> str:
    """Explicit category, else S for positive rates and E for 0%."""
    if category:
        return category.upper()
    return "S" if (rate or 0) > 0 else "E"


def group_by_tax_rate(invoice: CanonicalInvoice) -> list[TaxGroup]:
    """
    Group net amounts by tax category and rate, highest rate first.

    Allowances reduce and charges increase the basis of the group with the
    same rate. An allowance/charge without a rate falls into the invoice's
    single rate, or the first line's rate.
    """
    fallback_rate = invoice.tax_rate
    if fallback_rate is None and invoice.line_items:
        fallback_rate = invoice.line_items[0].tax_rate
    fallback_rate = fallback_rate or 0.0

    amounts: dict[tuple[str, float], list[float]] = {}
    for line in invoice.line_items:
        rate = line.tax_rate if line.tax_rate is not None else fallback_rate
        key = (tax_category(line.tax_category_code, rate), float(rate))
        amounts.setdefault(key, []).append(line.total_price)

    for ac in invoice.allowance_charges or []:
        rate = ac.tax_rate if ac.tax_rate is not None else fallback_rate
        key = (tax_category(ac.tax_category_code, rate), float(rate))
        amounts.setdefault(key, []).append(ac.amount if ac.charge_indicator else -ac.amount)

    groups = []
    for (category, rate), values in amounts.items():
        basis = sum_money(values)
        groups.append(TaxGroup(category=category, rate=rate, basis=basis, tax=compute_tax(basis, rate)))
    return sorted(groups, key=lambda g: (-g.rate, g.category))


def allowance_total(invoice: CanonicalInvoice) -> float:
    return sum_money(ac.amount for ac in invoice.allowance_charges or [] if not ac.charge_indicator)


def charge_total(invoice: CanonicalInvoice) -> float:
    return sum_money(ac.amount for ac in invoice.allowance_charges or [] if ac.charge_indicator)


def line_total(invoice: CanonicalInvoice) -> float:
    return sum_money(line.total_price for line in invoice.line_items)


def computed_tax_total(invoice: CanonicalInvoice) -> float:
    return sum_money(group.tax for group in group_by_tax_rate(invoice))


def due_payable(invoice: CanonicalInvoice) -> float:
    """Grand total minus any prepaid amount."""
    return round_money(invoice.totals.total_amount - (invoice.payment.prepaid_amount or 0))
