"""
Profile-independent validation rules.

This module defines the rules every profile shares, organized by stage:
- Schema rules: mandatory fields of the canonical invoice
- Code-list rules: document type, currency, country, tax category and unit codes
- Business rules: NET/GROSS line semantics and BR-CO monetary cross-checks

Each rule is a function that takes a CanonicalInvoice and returns a list of
ValidationError entries (empty when the rule passes). Rules never raise for
data problems; findings are collected so one run reports every defect.
"""

from dataclasses import dataclass
from math import isfinite
from typing import Callable, Optional

from .codelists import COUNTRY_CODES, CURRENCY_CODES, DOCUMENT_TYPE_CODES, TAX_CATEGORY_CODES, UNIT_CODES
from .config import (
    BR_CO_TOLERANCE,
    LINE_GROSS_TOLERANCE,
    LINE_MISMATCH_MIN,
    LINE_MISMATCH_RATIO,
    ErrorCategory,
)
from .monetary import format_money, round_money
from .schemas import CanonicalInvoice, ValidationError
from .taxes import allowance_total, charge_total, computed_tax_total, line_total


# Type alias for rule check functions
RuleCheckFn = Callable[[CanonicalInvoice], list[ValidationError]]


@dataclass
class ValidationRule:
    """
    Represents a single validation rule.

    Attributes:
        code: Rule identifier, or a family prefix for rules emitting several ids
        description: Human-readable description of the rule
        category: Stage the rule belongs to
        check: Function that performs the validation check
    """
    code: str
    description: str
    category: ErrorCategory
    check: RuleCheckFn


# ============================================================================
# Entry Helpers
# ============================================================================

def create_error(
    rule_id: str,
    location: str,
    message: str,
    *,
    expected: Optional[str] = None,
    actual: Optional[str] = None,
    suggestion: Optional[str] = None,
    category: ErrorCategory = ErrorCategory.PROFILE_RULE,
) -> ValidationError:
    return ValidationError(
        level="error",
        rule_id=rule_id,
        location=location,
        message=message,
        expected=expected,
        actual=actual,
        suggestion=suggestion,
        category=category,
    )


def create_warning(
    rule_id: str,
    location: str,
    message: str,
    *,
    expected: Optional[str] = None,
    actual: Optional[str] = None,
    suggestion: Optional[str] = None,
    category: ErrorCategory = ErrorCategory.PROFILE_RULE,
) -> ValidationError:
    return ValidationError(
        level="warning",
        rule_id=rule_id,
        location=location,
        message=message,
        expected=expected,
        actual=actual,
        suggestion=suggestion,
        category=category,
    )


def is_blank(value: Optional[str]) -> bool:
    return value is None or not value.strip()


def _exceeds(a: float, b: float, tolerance: float) -> bool:
    return abs(a - b) > tolerance + 1e-9


# ============================================================================
# Schema Rules
# ============================================================================

def _required(rule_id: str, location: str, label: str) -> ValidationError:
    return create_error(rule_id, location, f"{label} is required", category=ErrorCategory.SCHEMA)


def check_invoice_number(invoice: CanonicalInvoice) -> list[ValidationError]:
    """Every invoice must have a non-empty invoice number."""
    if is_blank(invoice.invoice_number):
        return [_required("SCHEMA-001", "invoice.invoiceNumber", "Invoice number")]
    return []


def check_invoice_date(invoice: CanonicalInvoice) -> list[ValidationError]:
    if is_blank(invoice.invoice_date):
        return [_required("SCHEMA-002", "invoice.invoiceDate", "Invoice date")]
    return []


def check_seller_name(invoice: CanonicalInvoice) -> list[ValidationError]:
    if is_blank(invoice.seller.name):
        return [_required("SCHEMA-003", "invoice.seller.name", "Seller name")]
    return []


def check_buyer_name(invoice: CanonicalInvoice) -> list[ValidationError]:
    if is_blank(invoice.buyer.name):
        return [_required("SCHEMA-004", "invoice.buyer.name", "Buyer name")]
    return []


def check_total_amount(invoice: CanonicalInvoice) -> list[ValidationError]:
    """
    Total amount must be finite and positive.

    Credit notes (381) may carry zero or negative totals.
    """
    total = invoice.totals.total_amount
    if total is None or not isfinite(total):
        return [_required("SCHEMA-005", "invoice.totals.totalAmount", "Total amount")]
    if total <= 0 and not invoice.is_credit_note:
        return [create_error(
            "SCHEMA-005",
            "invoice.totals.totalAmount",
            "Total amount must be greater than zero",
            expected="> 0",
            actual=format_money(total),
            suggestion="Use document type 381 for credit notes",
            category=ErrorCategory.SCHEMA,
        )]
    return []


def check_line_items_present(invoice: CanonicalInvoice) -> list[ValidationError]:
    if not invoice.line_items:
        return [create_error(
            "SCHEMA-006",
            "invoice.lineItems",
            "At least one line item is required",
            category=ErrorCategory.SCHEMA,
        )]
    return []


# ============================================================================
# Code-List Rules
# ============================================================================

def check_document_type_code(invoice: CanonicalInvoice) -> list[ValidationError]:
    code = invoice.document_type_code
    if code and code not in DOCUMENT_TYPE_CODES:
        return [create_error(
            "CL-BT-3",
            "invoice.documentTypeCode",
            f"Invalid document type code: {code}",
            expected=", ".join(sorted(DOCUMENT_TYPE_CODES)),
            actual=code,
            category=ErrorCategory.SCHEMA,
        )]
    return []


def check_currency_code(invoice: CanonicalInvoice) -> list[ValidationError]:
    """Unknown currencies are only a warning; the list is not exhaustive."""
    if invoice.currency and invoice.currency.upper() not in CURRENCY_CODES:
        return [create_warning(
            "CL-BT-5",
            "invoice.currency",
            f"Uncommon or unknown currency code: {invoice.currency}",
            actual=invoice.currency,
            category=ErrorCategory.SCHEMA,
        )]
    return []


def check_country_codes(invoice: CanonicalInvoice) -> list[ValidationError]:
    errors = []
    for rule_id, role, party in (("CL-BT-40", "seller", invoice.seller), ("CL-BT-55", "buyer", invoice.buyer)):
        country = (party.country_code or "").strip().upper()
        if country and country not in COUNTRY_CODES:
            errors.append(create_error(
                rule_id,
                f"invoice.{role}.countryCode",
                f"Invalid {role} country code: {country}. Expected ISO 3166-1 alpha-2 code.",
                actual=country,
                category=ErrorCategory.SCHEMA,
            ))
    return errors


def check_tax_category_codes(invoice: CanonicalInvoice) -> list[ValidationError]:
    errors = []
    for i, line in enumerate(invoice.line_items):
        code = line.tax_category_code
        if code and code.upper() not in TAX_CATEGORY_CODES:
            errors.append(create_error(
                "CL-BT-151",
                f"invoice.lineItems[{i}].taxCategoryCode",
                f"Invalid tax category code on line {i + 1}: {code}",
                expected=", ".join(sorted(TAX_CATEGORY_CODES)),
                actual=code,
                category=ErrorCategory.SCHEMA,
            ))
    for i, ac in enumerate(invoice.allowance_charges or []):
        code = ac.tax_category_code
        if code and code.upper() not in TAX_CATEGORY_CODES:
            errors.append(create_error(
                "CL-BT-95",
                f"invoice.allowanceCharges[{i}].taxCategoryCode",
                f"Invalid tax category code on allowance/charge {i + 1}: {code}",
                actual=code,
                category=ErrorCategory.SCHEMA,
            ))
    return errors


def check_unit_codes(invoice: CanonicalInvoice) -> list[ValidationError]:
    warnings = []
    for i, line in enumerate(invoice.line_items):
        if line.unit_code and line.unit_code.upper() not in UNIT_CODES:
            warnings.append(create_warning(
                "CL-UNIT",
                f"invoice.lineItems[{i}].unitCode",
                f"Unknown unit code on line {i + 1}: {line.unit_code}",
                actual=line.unit_code,
                suggestion="Use a UN/ECE Recommendation 20 code such as C62, HUR or KGM",
                category=ErrorCategory.SCHEMA,
            ))
    return warnings


# ============================================================================
# Business Rules
# ============================================================================

def check_line_net_gross(invoice: CanonicalInvoice) -> list[ValidationError]:
    """
    Each line total must be the NET amount quantity x unit price.

    When the deviation is larger than max(0.05, 1%) the line is checked
    against the gross value at its tax rate. A gross match is an error
    naming the expected net value; anything else is a mismatch warning.
    """
    entries = []
    for i, line in enumerate(invoice.line_items):
        expected_net = round_money(line.quantity * line.unit_price)
        threshold = max(LINE_MISMATCH_MIN, abs(expected_net) * LINE_MISMATCH_RATIO)
        if not _exceeds(line.total_price, expected_net, threshold):
            continue

        location = f"invoice.lineItems[{i}].totalPrice"
        rate = line.tax_rate or 0
        possible_gross = expected_net * (1 + rate / 100)
        if rate > 0 and not _exceeds(line.total_price, possible_gross, LINE_GROSS_TOLERANCE):
            entries.append(create_error(
                "SEMANTIC-NET-GROSS",
                location,
                f"Line {i + 1} total {format_money(line.total_price)} appears to be GROSS "
                f"(includes {rate:g}% VAT). EN 16931 requires NET line totals.",
                expected=format_money(expected_net),
                actual=format_money(line.total_price),
                suggestion="Use the net amount (quantity x unit price) as line total",
                category=ErrorCategory.BUSINESS_RULE,
            ))
        else:
            entries.append(create_warning(
                "SEMANTIC-LINE-TOTAL-MISMATCH",
                location,
                f"Line {i + 1} total {format_money(line.total_price)} does not match "
                f"quantity x unit price ({format_money(expected_net)})",
                expected=format_money(expected_net),
                actual=format_money(line.total_price),
                category=ErrorCategory.BUSINESS_RULE,
            ))
    return entries


def check_line_sum(invoice: CanonicalInvoice) -> list[ValidationError]:
    """BR-CO-10: line net sum minus allowances plus charges equals subtotal."""
    expected = round_money(line_total(invoice) - allowance_total(invoice) + charge_total(invoice))
    if _exceeds(expected, invoice.totals.subtotal, BR_CO_TOLERANCE):
        return [create_error(
            "BR-CO-10",
            "invoice.totals.subtotal",
            "Sum of line net amounts (after allowances and charges) does not match the subtotal",
            expected=format_money(expected),
            actual=format_money(invoice.totals.subtotal),
            category=ErrorCategory.BUSINESS_RULE,
        )]
    return []


def check_tax_total(invoice: CanonicalInvoice) -> list[ValidationError]:
    """BR-CO-14: tax recomputed per rate group equals the declared tax amount."""
    expected = computed_tax_total(invoice)
    if _exceeds(expected, invoice.totals.tax_amount, BR_CO_TOLERANCE):
        return [create_error(
            "BR-CO-14-SUM",
            "invoice.totals.taxAmount",
            "Declared tax amount does not match the tax computed per rate group",
            expected=format_money(expected),
            actual=format_money(invoice.totals.tax_amount),
            category=ErrorCategory.BUSINESS_RULE,
        )]
    return []


def check_grand_total(invoice: CanonicalInvoice) -> list[ValidationError]:
    """BR-CO-15: subtotal + tax equals the total amount."""
    totals = invoice.totals
    expected = round_money(totals.subtotal + totals.tax_amount)
    if _exceeds(expected, totals.total_amount, BR_CO_TOLERANCE):
        return [create_error(
            "BR-CO-15",
            "invoice.totals.totalAmount",
            "Subtotal plus tax amount does not match the total amount",
            expected=format_money(expected),
            actual=format_money(totals.total_amount),
            category=ErrorCategory.BUSINESS_RULE,
        )]
    return []


# ============================================================================
# Rule Registry
# ============================================================================

SCHEMA_RULES: list[ValidationRule] = [
    ValidationRule("SCHEMA-001", "Invoice number is required", ErrorCategory.SCHEMA, check_invoice_number),
    ValidationRule("SCHEMA-002", "Invoice date is required", ErrorCategory.SCHEMA, check_invoice_date),
    ValidationRule("SCHEMA-003", "Seller name is required", ErrorCategory.SCHEMA, check_seller_name),
    ValidationRule("SCHEMA-004", "Buyer name is required", ErrorCategory.SCHEMA, check_buyer_name),
    ValidationRule("SCHEMA-005", "Total amount is present and positive", ErrorCategory.SCHEMA, check_total_amount),
    ValidationRule("SCHEMA-006", "At least one line item", ErrorCategory.SCHEMA, check_line_items_present),
    ValidationRule("CL-BT-3", "Document type code is known", ErrorCategory.SCHEMA, check_document_type_code),
    ValidationRule("CL-BT-5", "Currency code is known", ErrorCategory.SCHEMA, check_currency_code),
    ValidationRule("CL-BT-40", "Party country codes are ISO 3166-1", ErrorCategory.SCHEMA, check_country_codes),
    ValidationRule("CL-BT-151", "Tax category codes are UNCL5305", ErrorCategory.SCHEMA, check_tax_category_codes),
    ValidationRule("CL-UNIT", "Unit codes are UN/ECE Rec 20", ErrorCategory.SCHEMA, check_unit_codes),
]

BUSINESS_RULES: list[ValidationRule] = [
    ValidationRule("SEMANTIC", "Line totals are NET", ErrorCategory.BUSINESS_RULE, check_line_net_gross),
    ValidationRule("BR-CO-10", "Line sum equals subtotal", ErrorCategory.BUSINESS_RULE, check_line_sum),
    ValidationRule("BR-CO-14-SUM", "Tax total equals computed tax", ErrorCategory.BUSINESS_RULE, check_tax_total),
    ValidationRule("BR-CO-15", "Subtotal plus tax equals total", ErrorCategory.BUSINESS_RULE, check_grand_total),
]
