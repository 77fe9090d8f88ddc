"""
Pydantic models for the canonical invoice and engine results.

This module defines the core data structures shared by every stage:
- CanonicalInvoice and its parts, the intermediate form for all dialects
- ValidationError entries and the aggregated ValidationResult
- GenerationResult for a generated XML/PDF document
- ConversionResult for a full mapper -> pipeline -> generator run

Canonical models are frozen. Use ``model_copy(update=...)`` to derive a
changed invoice. Field names are snake_case; camelCase aliases are accepted
so records from the extraction service validate directly.
"""

from datetime import datetime, timezone
from typing import Literal, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from .config import DEFAULT_CURRENCY, ErrorCategory, OutputFormat
from .errors import EXCEPTION_BY_CATEGORY


CANONICAL_CONFIG = {
    "frozen": True,
    "alias_generator": to_camel,
    "populate_by_name": True,
}


class PartyInfo(BaseModel):
    """
    Seller or buyer of an invoice.

    Attributes:
        name: Legal or trading name
        country_code: ISO 3166-1 alpha-2 code
        vat_id: VAT identifier with country prefix (e.g. DE123456789)
        tax_number: Local fiscal number (Steuernummer, NIP, CUI, codice fiscale)
        tax_id: Legacy combined identifier when the source did not split it
        electronic_address: Routing address (PEPPOL endpoint, e-mail, SDI code)
        electronic_address_scheme: CEF EAS scheme id, or EM for e-mail
        tax_regime: Italian RegimeFiscale (RF01..RF19)
    """
    name: str = Field("", description="Legal name of the party")
    email: Optional[str] = None
    address: Optional[str] = Field(None, description="Street line")
    city: Optional[str] = None
    postal_code: Optional[str] = None
    country_code: Optional[str] = Field(None, description="ISO 3166-1 alpha-2 country code")
    phone: Optional[str] = None
    vat_id: Optional[str] = None
    tax_number: Optional[str] = None
    tax_id: Optional[str] = None
    electronic_address: Optional[str] = None
    electronic_address_scheme: Optional[str] = None
    contact_name: Optional[str] = None
    tax_regime: Optional[str] = None

    model_config = CANONICAL_CONFIG


class PaymentInfo(BaseModel):
    """Payment instructions of the seller."""
    iban: Optional[str] = None
    bic: Optional[str] = None
    bank_name: Optional[str] = None
    payment_terms: Optional[str] = None
    due_date: Optional[str] = None
    prepaid_amount: Optional[float] = None

    model_config = CANONICAL_CONFIG


class CanonicalLineItem(BaseModel):
    """
    One invoice line. Prices are always NET.

    ``total_price`` should equal ``quantity * unit_price``.
    """
    description: str = Field("", description="Item or service description")
    quantity: float = Field(1, description="Billed quantity")
    unit_price: float = Field(0, description="Net price per unit")
    total_price: float = Field(0, description="Net line total")
    tax_rate: Optional[float] = Field(None, description="VAT rate in percent")
    tax_category_code: Optional[str] = Field(None, description="UNCL5305 tax category")
    unit_code: Optional[str] = Field(None, description="UN/ECE Rec 20 unit code")

    model_config = CANONICAL_CONFIG


class CanonicalAllowanceCharge(BaseModel):
    """Document-level discount (charge_indicator False) or surcharge (True)."""
    charge_indicator: bool = False
    amount: float = Field(0, ge=0, description="Always positive")
    base_amount: Optional[float] = None
    percentage: Optional[float] = None
    reason: Optional[str] = None
    reason_code: Optional[str] = None
    tax_rate: Optional[float] = None
    tax_category_code: Optional[str] = None

    model_config = CANONICAL_CONFIG


class DocumentTotals(BaseModel):
    """Subtotal and tax are NET-basis; total_amount is gross."""
    subtotal: float = 0
    tax_amount: float = 0
    total_amount: float = 0

    model_config = CANONICAL_CONFIG


class CanonicalInvoice(BaseModel):
    """
    Format-independent invoice consumed by the pipeline and every generator.

    Built once by the canonical mapper and never mutated. The gross-to-net
    preprocessing step returns a transformed copy.
    """

    # ========================================================================
    # Identity
    # ========================================================================
    output_format: OutputFormat = OutputFormat.XRECHNUNG_CII
    invoice_number: str = Field("", description="Invoice identifier (BT-1)")
    invoice_date: str = Field("", description="Issue date, YYYY-MM-DD, DD.MM.YYYY or YYYYMMDD")
    document_type_code: Optional[str] = Field(
        None,
        description="UNTDID 1001: 380 invoice, 381 credit note, 384 corrected, 389 self-billed",
    )
    currency: str = DEFAULT_CURRENCY
    buyer_reference: Optional[str] = None
    notes: Optional[str] = None
    preceding_invoice_reference: Optional[str] = None
    billing_period_start: Optional[str] = None
    billing_period_end: Optional[str] = None

    # ========================================================================
    # Parties & Payment
    # ========================================================================
    seller: PartyInfo = Field(default_factory=PartyInfo)
    buyer: PartyInfo = Field(default_factory=PartyInfo)
    payment: PaymentInfo = Field(default_factory=PaymentInfo)

    # ========================================================================
    # Lines & Totals
    # ========================================================================
    line_items: list[CanonicalLineItem] = Field(default_factory=list)
    allowance_charges: Optional[list[CanonicalAllowanceCharge]] = None
    totals: DocumentTotals = Field(default_factory=DocumentTotals)

    # ========================================================================
    # Diagnostics
    # ========================================================================
    tax_rate: Optional[float] = Field(None, description="Single-rate convenience value")
    confidence: Optional[float] = None
    processing_time_ms: Optional[float] = None

    model_config = {
        **CANONICAL_CONFIG,
        "json_schema_extra": {
            "examples": [
                {
                    "outputFormat": "xrechnung-cii",
                    "invoiceNumber": "RE-2024-0042",
                    "invoiceDate": "2024-03-01",
                    "currency": "EUR",
                    "buyerReference": "04011000-12345-34",
                    "seller": {
                        "name": "Muster GmbH",
                        "address": "Hauptstr. 1",
                        "city": "Berlin",
                        "postalCode": "10115",
                        "countryCode": "DE",
                        "vatId": "DE123456789",
                    },
                    "buyer": {"name": "Kunde AG", "city": "Hamburg", "countryCode": "DE"},
                    "payment": {"iban": "DE89370400440532013000"},
                    "lineItems": [
                        {
                            "description": "Beratung",
                            "quantity": 1,
                            "unitPrice": 100.0,
                            "totalPrice": 100.0,
                            "taxRate": 19,
                        }
                    ],
                    "totals": {"subtotal": 100.0, "taxAmount": 19.0, "totalAmount": 119.0},
                }
            ]
        },
    }

    @property
    def is_credit_note(self) -> bool:
        return self.document_type_code == "381"


# ============================================================================
# Validation Results
# ============================================================================

class ValidationError(BaseModel):
    """
    A single finding of the validation pipeline.

    ``location`` is a dotted path into the canonical invoice, for example
    ``invoice.seller.name`` or ``invoice.lineItems[2].taxRate``.
    """
    level: Literal["error", "warning", "info"] = "error"
    rule_id: str = Field(..., description="Rule identifier such as BR-DE-2 or KSEF-01")
    location: str = Field(..., description="Dotted path of the offending field")
    message: str
    expected: Optional[str] = None
    actual: Optional[str] = None
    suggestion: Optional[str] = None
    category: ErrorCategory = ErrorCategory.PROFILE_RULE

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "level": "error",
                    "rule_id": "BR-DE-18",
                    "location": "invoice.currency",
                    "message": "XRechnung requires currency EUR",
                    "expected": "EUR",
                    "actual": "USD",
                    "category": "profile_rule",
                }
            ]
        }
    }


class ValidationResult(BaseModel):
    """Aggregated outcome of all pipeline stages for one profile."""
    valid: bool
    profile: str
    errors: list[ValidationError] = Field(default_factory=list)
    warnings: list[ValidationError] = Field(default_factory=list)
    timestamp: str = Field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def rule_ids(self) -> list[str]:
        return [e.rule_id for e in self.errors]

    def raise_for_errors(self) -> None:
        """Raise the exception matching the first error's category, if any."""
        if not self.errors:
            return
        first = self.errors[0]
        exc_type = EXCEPTION_BY_CATEGORY[first.category]
        raise exc_type(first.message, rule_id=first.rule_id, location=first.location)


class ValidationSummary(BaseModel):
    """
    Aggregated statistics for a batch of validated invoices.

    Counts are keyed by rule id so the most frequent defects stand out.
    """
    profile: str
    total_invoices: int = Field(..., ge=0)
    valid_invoices: int = Field(..., ge=0)
    invalid_invoices: int = Field(..., ge=0)
    error_counts: dict[str, int] = Field(default_factory=dict)
    warning_counts: dict[str, int] = Field(default_factory=dict)

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "profile": "xrechnung-cii",
                    "total_invoices": 20,
                    "valid_invoices": 17,
                    "invalid_invoices": 3,
                    "error_counts": {"BR-DE-2": 2, "BR-CO-15": 1},
                    "warning_counts": {"BR-DE-15": 5},
                }
            ]
        }
    }


class ValidationReport(BaseModel):
    """Report written by the CLI: batch summary plus per-invoice results."""
    summary: ValidationSummary
    per_invoice_results: list[ValidationResult]


class StructuralCheck(BaseModel):
    """Result of a generator's post-generation presence check."""
    valid: bool
    errors: list[str] = Field(default_factory=list)


# ============================================================================
# Generation Results
# ============================================================================

ValidationStatus = Literal["valid", "invalid", "warnings"]


class GenerationResult(BaseModel):
    """Generated document plus its validation status."""
    xml_content: str = ""
    pdf_content: Optional[bytes] = None
    file_name: str
    file_size: int = 0
    validation_status: ValidationStatus
    validation_errors: list[str] = Field(default_factory=list)
    validation_warnings: list[str] = Field(default_factory=list)
    mime_type: str = "application/xml"


class FormatInfo(BaseModel):
    """Metadata of one registered generator."""
    format_id: str
    format_name: str
    version: str
    spec_version: str
    spec_date: str
    deprecated: bool = False


class ConversionResult(BaseModel):
    """Outcome of a full conversion request."""
    invoice: CanonicalInvoice
    validation: ValidationResult
    generation: Optional[GenerationResult] = None

    @property
    def ok(self) -> bool:
        return self.generation is not None and self.generation.validation_status != "invalid"
