"""
Validation pipeline for canonical invoices.

This module runs the three ordered stages against one invoice and produces
a ValidationResult:

1. Schema stage: mandatory fields and code lists
2. Business stage: NET/GROSS semantics and BR-CO monetary checks
   (only when the invoice has line items)
3. Profile stage: the rule set of the requested profile

No stage is fail-fast. Every finding is collected so the caller can show
all defects at once.
"""

from collections import Counter
from typing import Iterable, Optional, Union

from .config import ErrorCategory, ProfileId, logger
from .profiles import get_profile_validator
from .rules import BUSINESS_RULES, SCHEMA_RULES, ValidationRule, create_error
from .schemas import CanonicalInvoice, ValidationError, ValidationResult, ValidationSummary


def run_rules(invoice: CanonicalInvoice, rules: Iterable[ValidationRule]) -> list[ValidationError]:
    """
    Run a list of rules and collect their findings.

    A rule that raises is logged and reported as a RULE-ERROR entry so the
    remaining rules still run.
    """
    entries: list[ValidationError] = []
    for rule in rules:
        try:
            entries.extend(rule.check(invoice))
        except Exception as e:
            logger.error(f"Error running rule {rule.code} on invoice {invoice.invoice_number}: {e}")
            entries.append(create_error(
                "RULE-ERROR",
                "invoice",
                f"Rule {rule.code} could not be evaluated: {e}",
                category=rule.category,
            ))
    return entries


def build_validation_result(profile: str, entries: list[ValidationError]) -> ValidationResult:
    """Split entries by level; info entries are kept with the warnings."""
    errors = [e for e in entries if e.level == "error"]
    warnings = [e for e in entries if e.level != "error"]
    return ValidationResult(valid=not errors, profile=profile, errors=errors, warnings=warnings)


def run_profile_rules(invoice: CanonicalInvoice, profile: Union[ProfileId, str]) -> list[ValidationError]:
    """Profile stage only."""
    validator = get_profile_validator(profile)
    try:
        return validator.validate(invoice)
    except Exception as e:
        logger.error(f"Error running profile {validator.profile_id.value} on invoice {invoice.invoice_number}: {e}")
        return [create_error(
            "RULE-ERROR",
            "invoice",
            f"Profile {validator.profile_name} could not be evaluated: {e}",
            category=ErrorCategory.PROFILE_RULE,
        )]


def validate_for_profile(
    invoice: CanonicalInvoice,
    profile: Union[ProfileId, str],
) -> ValidationResult:
    """
    Validate an invoice against the shared stages and one profile.

    Args:
        invoice: The canonical invoice to validate
        profile: Profile id; unknown ids use the EN 16931 base rules

    Returns:
        ValidationResult with all errors and warnings found
    """
    validator = get_profile_validator(profile)

    entries = run_rules(invoice, SCHEMA_RULES)
    if invoice.line_items:
        entries += run_rules(invoice, BUSINESS_RULES)
    entries += run_profile_rules(invoice, validator.profile_id)

    result = build_validation_result(validator.profile_id.value, entries)
    logger.info(
        f"Validated {invoice.invoice_number or '(no number)'} against {validator.profile_name}: "
        f"{len(result.errors)} error(s), {len(result.warnings)} warning(s)"
    )
    return result


# ============================================================================
# Batch Validation
# ============================================================================

def validate_batch(
    invoices: list[CanonicalInvoice],
    profile: Union[ProfileId, str],
) -> tuple[list[ValidationResult], ValidationSummary]:
    """
    Validate several invoices against one profile and summarize rule hits.

    Returns:
        Tuple of (list of per-invoice results, batch summary)
    """
    logger.info(f"Validating batch of {len(invoices)} invoices")
    results = [validate_for_profile(invoice, profile) for invoice in invoices]

    error_counts = Counter(e.rule_id for r in results for e in r.errors)
    warning_counts = Counter(w.rule_id for r in results for w in r.warnings)
    valid_count = sum(1 for r in results if r.valid)

    summary = ValidationSummary(
        profile=get_profile_validator(profile).profile_id.value,
        total_invoices=len(results),
        valid_invoices=valid_count,
        invalid_invoices=len(results) - valid_count,
        error_counts=dict(error_counts),
        warning_counts=dict(warning_counts),
    )
    logger.info(f"Validation complete: {valid_count} valid, {summary.invalid_invoices} invalid")
    return results, summary


def get_top_errors(summary: ValidationSummary, n: int = 5) -> list[tuple[str, int]]:
    """Top N most frequent error rule ids, sorted by count descending."""
    return sorted(summary.error_counts.items(), key=lambda x: x[1], reverse=True)[:n]


def format_summary_text(summary: ValidationSummary) -> str:
    """Format a ValidationSummary as human-readable text for CLI output."""
    lines = [
        "=" * 50,
        f"VALIDATION SUMMARY ({summary.profile})",
        "=" * 50,
        f"Total invoices processed: {summary.total_invoices}",
        f"Valid invoices:           {summary.valid_invoices}",
        f"Invalid invoices:         {summary.invalid_invoices}",
        "",
    ]

    if summary.error_counts:
        lines.append("Top Error Rules:")
        lines.append("-" * 40)
        for rule_id, count in get_top_errors(summary):
            lines.append(f"  {rule_id}: {count}")
        lines.append("")

    if summary.warning_counts:
        lines.append("Warnings:")
        lines.append("-" * 40)
        for rule_id, count in sorted(summary.warning_counts.items(), key=lambda x: -x[1]):
            lines.append(f"  {rule_id}: {count}")
        lines.append("")

    return "\n".join(lines)


def format_result_text(result: ValidationResult, limit: Optional[int] = None) -> str:
    """One line per finding: level, rule id, location and message."""
    entries = result.errors + result.warnings
    if limit is not None:
        entries = entries[:limit]
    return "\n".join(
        f"  [{e.level.upper():7}] {e.rule_id} @ {e.location}: {e.message}" for e in entries
    )
