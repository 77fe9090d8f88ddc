"""
Generator registry.

Every OutputFormat maps to exactly one generator instance, created once at
import time. Generators hold no per-request state.
"""

from typing import Union

from ..config import OutputFormat
from ..errors import UnknownFormatError
from ..schemas import FormatInfo
from .base import FormatGenerator
from .facturx import FacturXGenerator
from .fatturapa import FatturaPAGenerator
from .ksef import KSeFGenerator
from .ubl import CIUSROGenerator, NLCIUSGenerator, PeppolBISGenerator, XRechnungUBLGenerator
from .xrechnung_cii import XRechnungCIIGenerator


def _create_generator(output_format: OutputFormat) -> FormatGenerator:
    match output_format:
        case OutputFormat.XRECHNUNG_CII:
            return XRechnungCIIGenerator()
        case OutputFormat.XRECHNUNG_UBL:
            return XRechnungUBLGenerator()
        case OutputFormat.PEPPOL_BIS:
            return PeppolBISGenerator()
        case OutputFormat.FACTURX_EN16931 | OutputFormat.FACTURX_BASIC:
            return FacturXGenerator(output_format)
        case OutputFormat.FATTURAPA:
            return FatturaPAGenerator()
        case OutputFormat.KSEF:
            return KSeFGenerator()
        case OutputFormat.NLCIUS:
            return NLCIUSGenerator()
        case OutputFormat.CIUS_RO:
            return CIUSROGenerator()
    raise AssertionError(f"Unhandled output format: {output_format!r}")


GENERATORS: dict[OutputFormat, FormatGenerator] = {
    output_format: _create_generator(output_format) for output_format in OutputFormat
}


def parse_format(output_format: Union[OutputFormat, str]) -> OutputFormat:
    """OutputFormat for an id such as "xrechnung-cii"; raises UnknownFormatError."""
    try:
        return OutputFormat(output_format)
    except ValueError:
        supported = ", ".join(f.value for f in OutputFormat)
        raise UnknownFormatError(f"Unsupported output format: {output_format} (supported: {supported})")


def get_generator(output_format: Union[OutputFormat, str]) -> FormatGenerator:
    return GENERATORS[parse_format(output_format)]


def get_available_formats() -> list[FormatInfo]:
    return [
        FormatInfo(
            format_id=generator.format_id.value,
            format_name=generator.format_name,
            version=generator.version,
            spec_version=generator.spec_version,
            spec_date=generator.spec_date,
            deprecated=generator.deprecated,
        )
        for generator in GENERATORS.values()
    ]


def get_engine_versions() -> dict[str, str]:
    """Generator version per format id, for reports and audit logs."""
    return {output_format.value: generator.version for output_format, generator in GENERATORS.items()}
