"""
Conversion service: raw record -> canonical invoice -> validation -> document.
"""

from typing import Union

from .config import OutputFormat, ProfileId, logger
from .errors import StructuralValidationError
from .generators import STRUCT_PREFIX, get_generator, parse_format
from .mapper import to_canonical_invoice
from .pipeline import validate_for_profile
from .schemas import ConversionResult, ValidationResult


def profile_for_format(output_format: Union[OutputFormat, str]) -> ProfileId:
    """Validation profile enforced before generating ``output_format``."""
    match parse_format(output_format):
        case OutputFormat.XRECHNUNG_CII:
            return ProfileId.XRECHNUNG_CII
        case OutputFormat.XRECHNUNG_UBL:
            return ProfileId.XRECHNUNG_UBL
        case OutputFormat.PEPPOL_BIS:
            return ProfileId.PEPPOL_BIS
        case OutputFormat.FACTURX_EN16931:
            return ProfileId.FACTURX_EN16931
        case OutputFormat.FACTURX_BASIC:
            return ProfileId.FACTURX_BASIC
        case OutputFormat.FATTURAPA:
            return ProfileId.FATTURAPA
        case OutputFormat.KSEF:
            return ProfileId.KSEF
        case OutputFormat.NLCIUS:
            return ProfileId.NLCIUS
        case OutputFormat.CIUS_RO:
            return ProfileId.CIUS_RO
    raise AssertionError(f"Unhandled output format: {output_format!r}")


def validate_raw(raw: dict, output_format: Union[OutputFormat, str]) -> ValidationResult:
    """Map a raw record and validate it for the target format without generating."""
    output_format = parse_format(output_format)
    invoice = to_canonical_invoice(raw, output_format)
    return validate_for_profile(invoice, profile_for_format(output_format))


def convert(raw: dict, output_format: Union[OutputFormat, str], strict: bool = False) -> ConversionResult:
    """
    Convert a raw extraction record into the target e-invoice format.

    Args:
        raw: Extraction record (camelCase keys, nested or flat parties)
        output_format: Target format id, e.g. "xrechnung-cii"
        strict: Raise instead of returning an invalid result

    Returns:
        ConversionResult with the canonical invoice, the pre-generation
        validation and the generated document

    Raises:
        UnknownFormatError: if the format id is not supported
        GenerationError: if the invoice holds a date in an unsupported format
        SchemaError, BusinessRuleError, ProfileRuleError: in strict mode, for
            the first validation error
        StructuralValidationError: in strict mode, when the generated XML
            fails the structural check
    """
    output_format = parse_format(output_format)
    generator = get_generator(output_format)

    invoice = to_canonical_invoice(raw, output_format)
    validation = validate_for_profile(invoice, generator.profile)
    if strict:
        validation.raise_for_errors()

    generation = generator.generate(invoice, validation)
    logger.info(
        f"Converted {invoice.invoice_number or '(no number)'} to {output_format.value}: "
        f"{generation.validation_status}"
    )

    if strict:
        structural = [e[len(STRUCT_PREFIX):].strip() for e in generation.validation_errors if e.startswith(STRUCT_PREFIX)]
        if structural:
            raise StructuralValidationError(
                f"Generated {generator.format_name} document failed the structural check",
                missing=structural,
            )
    return ConversionResult(invoice=invoice, validation=validation, generation=generation)
