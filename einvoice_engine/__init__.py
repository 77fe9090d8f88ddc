"""
EU e-invoice compliance engine

Converts extracted invoice records into XRechnung, PEPPOL BIS, Factur-X,
FatturaPA, KSeF, NLCIUS and CIUS-RO documents and validates them against
the business rules of each target profile.
"""

__version__ = "0.1.0"

from .generators import get_available_formats, get_generator
from .mapper import preprocess_gross_to_net, to_canonical_invoice
from .pipeline import validate_batch, validate_for_profile
from .schemas import CanonicalInvoice, ConversionResult, GenerationResult, ValidationResult
from .service import convert, profile_for_format, validate_raw

__all__ = [
    "CanonicalInvoice",
    "ConversionResult",
    "GenerationResult",
    "ValidationResult",
    "convert",
    "get_available_formats",
    "get_generator",
    "preprocess_gross_to_net",
    "profile_for_format",
    "to_canonical_invoice",
    "validate_batch",
    "validate_for_profile",
    "validate_raw",
]
