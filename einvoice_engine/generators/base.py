"""
Abstract base class for format generators.

To add a new output format:
1. Subclass ``FormatGenerator``
2. Implement the metadata properties, ``build_xml()`` and ``file_name()``
3. Register it in ``generators/factory.py``
"""

import xml.etree.ElementTree as ET
from abc import ABC, abstractmethod
from typing import Optional

from ..config import OutputFormat, ProfileId, logger
from ..pipeline import validate_for_profile
from ..schemas import CanonicalInvoice, GenerationResult, StructuralCheck, ValidationResult
from .xml_utils import missing_elements, parse_xml


STRUCT_PREFIX = "[XML-STRUCT]"


class FormatGenerator(ABC):
    """Serializes a CanonicalInvoice into one e-invoice dialect."""

    #: Validation profile run before generation
    profile: ProfileId = ProfileId.EN16931_BASE

    #: Local element names that must appear in the generated XML
    required_elements: list[str] = []

    mime_type: str = "application/xml"

    @property
    @abstractmethod
    def format_id(self) -> OutputFormat:
        """Output format handled by this generator."""

    @property
    @abstractmethod
    def format_name(self) -> str:
        """Human-readable name, e.g. 'XRechnung 3.0 (CII)'."""

    @property
    @abstractmethod
    def version(self) -> str:
        """Generator implementation version."""

    @property
    @abstractmethod
    def spec_version(self) -> str:
        """Version of the published specification implemented."""

    @property
    @abstractmethod
    def spec_date(self) -> str:
        """Publication date of that specification (YYYY-MM-DD)."""

    @property
    def deprecated(self) -> bool:
        return False

    @abstractmethod
    def build_xml(self, invoice: CanonicalInvoice) -> str:
        """Build the XML document. May raise GenerationError."""

    @abstractmethod
    def file_name(self, invoice: CanonicalInvoice) -> str:
        """File name of the generated document."""

    def precheck(self, invoice: CanonicalInvoice) -> Optional[str]:
        """
        Identifier check run before anything is built.

        Returns an error message when the document cannot be produced at all;
        generate() then returns an invalid result with empty XML.
        """
        return None

    def check_structure(self, root: ET.Element) -> list[str]:
        """Format-specific structural checks beyond required elements."""
        return []

    # ========================================================================
    # Template
    # ========================================================================

    def validate(self, xml: str) -> StructuralCheck:
        """Presence check of required elements; not a schema validation."""
        try:
            root = parse_xml(xml)
        except ET.ParseError as e:
            return StructuralCheck(valid=False, errors=[f"XML is not well-formed: {e}"])
        errors = [f"Missing required element: {name}" for name in missing_elements(root, self.required_elements)]
        errors += self.check_structure(root)
        return StructuralCheck(valid=not errors, errors=errors)

    def generate(
        self,
        invoice: CanonicalInvoice,
        validation: Optional[ValidationResult] = None,
    ) -> GenerationResult:
        """
        Generate the document and report its validation status.

        Args:
            invoice: Canonical invoice to serialize
            validation: Pre-generation result; computed for ``profile`` when omitted

        Returns:
            GenerationResult; ``invalid`` when any profile or structural error exists
        """
        problem = self.precheck(invoice)
        if problem:
            logger.warning(f"{self.format_name}: cannot generate {invoice.invoice_number}: {problem}")
            return self.rejected(invoice, problem)

        if validation is None:
            validation = validate_for_profile(invoice, self.profile)

        xml = self.build_xml(invoice)
        return self.build_result(invoice, xml, validation, self.validate(xml))

    def rejected(self, invoice: CanonicalInvoice, message: str) -> GenerationResult:
        return GenerationResult(
            xml_content="",
            file_name=self.file_name(invoice),
            file_size=0,
            validation_status="invalid",
            validation_errors=[message],
            mime_type=self.mime_type,
        )

    def build_result(
        self,
        invoice: CanonicalInvoice,
        xml: str,
        validation: ValidationResult,
        structure: StructuralCheck,
        pdf_content: Optional[bytes] = None,
    ) -> GenerationResult:
        errors = [f"[{e.rule_id}] {e.message}" for e in validation.errors]
        errors += [f"{STRUCT_PREFIX} {message}" for message in structure.errors]
        warnings = [f"[{w.rule_id}] {w.message}" for w in validation.warnings]

        if errors:
            status = "invalid"
        elif warnings:
            status = "warnings"
        else:
            status = "valid"

        size = len(pdf_content) if pdf_content is not None else len(xml.encode("utf-8"))
        logger.info(
            f"{self.format_name}: generated {invoice.invoice_number} "
            f"({size} bytes, status={status}, errors={len(errors)}, warnings={len(warnings)})"
        )
        return GenerationResult(
            xml_content=xml,
            pdf_content=pdf_content,
            file_name=self.file_name(invoice),
            file_size=size,
            validation_status=status,
            validation_errors=errors,
            validation_warnings=warnings,
            mime_type=self.mime_type,
        )
