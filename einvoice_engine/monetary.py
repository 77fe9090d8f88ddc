"""
Money arithmetic with a single rounding policy.

Amounts are plain floats rounded to two decimals half up (ties go toward
positive infinity) on the raw binary value. This is not banker's rounding:
0.125 becomes 0.13 and -0.125 becomes -0.12. No decimal correction is applied,
so 1.005 (stored as 1.00499999...) becomes 1.00.
"""

import math
from typing import Iterable

from .config import MONEY_TOLERANCE


def to_cents(value: float) -> int:
    """Convert an amount to integer cents, half up."""
    return math.floor(value * 100 + 0.5)


def round_money(value: float) -> float:
    """Round an amount to 2 decimal places, half up."""
    if not math.isfinite(value):
        return value
    return to_cents(value) / 100


def sum_money(values: Iterable[float]) -> float:
    """Sum amounts exactly and round once."""
    return round_money(math.fsum(values))


def compute_tax(net_amount: float, rate_percent: float) -> float:
    """Tax for a net amount at a percentage rate, rounded."""
    return round_money(net_amount * rate_percent / 100)


def money_equal(a: float, b: float, tolerance: float = MONEY_TOLERANCE) -> bool:
    """True if two amounts differ by no more than the tolerance."""
    return abs(round_money(a) - round_money(b)) <= tolerance + 1e-9


def format_money(value: float) -> str:
    """Render an amount with exactly two decimals."""
    return f"{round_money(value):.2f}"


def format_quantity(value: float) -> str:
    return f"{value:.4f}"


def format_rate(value: float) -> str:
    return f"{value:.2f}"
