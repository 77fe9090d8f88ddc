"""
Exception taxonomy for the compliance engine.

Data-quality problems are reported as ValidationError entries and never raised.
These exceptions cover programmer-level failures inside generators and give
callers a way to escalate a failed ValidationResult.
"""

from typing import Optional

from .config import ErrorCategory


class EInvoiceError(Exception):
    """Base class for all engine exceptions."""
    category: ErrorCategory = ErrorCategory.GENERATION

    def __init__(self, message: str, rule_id: Optional[str] = None, location: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.rule_id = rule_id
        self.location = location

    def __str__(self) -> str:
        if self.rule_id:
            return f"[{self.rule_id}] {self.message}"
        return self.message


class SchemaError(EInvoiceError):
    """A mandatory field is missing or malformed."""
    category = ErrorCategory.SCHEMA


class BusinessRuleError(EInvoiceError):
    """Monetary inconsistency or a NET/GROSS mismatch."""
    category = ErrorCategory.BUSINESS_RULE


class ProfileRuleError(EInvoiceError):
    """A named profile rule (BR-DE-2, FPA-010, KSEF-01, ...) was violated."""
    category = ErrorCategory.PROFILE_RULE


class GenerationError(EInvoiceError):
    """Internal generator failure, e.g. a date outside the accepted formats."""
    category = ErrorCategory.GENERATION


class StructuralValidationError(EInvoiceError):
    """Generated XML is missing one or more required elements."""
    category = ErrorCategory.STRUCTURAL

    def __init__(self, message: str, missing: Optional[list[str]] = None):
        super().__init__(message)
        self.missing = missing or []


class UnknownFormatError(EInvoiceError, ValueError):
    """Output format string is not one of the supported formats."""


EXCEPTION_BY_CATEGORY: dict[ErrorCategory, type[EInvoiceError]] = {
    ErrorCategory.SCHEMA: SchemaError,
    ErrorCategory.BUSINESS_RULE: BusinessRuleError,
    ErrorCategory.PROFILE_RULE: ProfileRuleError,
    ErrorCategory.GENERATION: GenerationError,
    ErrorCategory.STRUCTURAL: StructuralValidationError,
}
