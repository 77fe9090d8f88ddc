"""
XRechnung 3.0 generator, CII syntax.
"""

import xml.etree.ElementTree as ET

from ..config import OutputFormat, ProfileId
from ..schemas import CanonicalInvoice
from .base import FormatGenerator
from .cii import CII_REQUIRED_ELEMENTS, PEPPOL_BUSINESS_PROCESS, build_cii_document
from .xml_utils import find_local, sanitize_file_name


XRECHNUNG_GUIDELINE = "urn:cen.eu:en16931:2017#compliant#urn:xeinkauf.de:kosit:xrechnung_3.0"


class XRechnungCIIGenerator(FormatGenerator):
    profile = ProfileId.XRECHNUNG_CII
    required_elements = CII_REQUIRED_ELEMENTS + [
        "BusinessProcessSpecifiedDocumentContextParameter",
        "BuyerReference",
        "DefinedTradeContact",
        "SpecifiedTradeSettlementPaymentMeans",
    ]

    @property
    def format_id(self) -> OutputFormat:
        return OutputFormat.XRECHNUNG_CII

    @property
    def format_name(self) -> str:
        return "XRechnung 3.0 (CII)"

    @property
    def version(self) -> str:
        return "1.0.0"

    @property
    def spec_version(self) -> str:
        return "3.0.2"

    @property
    def spec_date(self) -> str:
        return "2023-07-07"

    def build_xml(self, invoice: CanonicalInvoice) -> str:
        return build_cii_document(invoice, XRECHNUNG_GUIDELINE, PEPPOL_BUSINESS_PROCESS)

    def file_name(self, invoice: CanonicalInvoice) -> str:
        return f"{sanitize_file_name(invoice.invoice_number)}_xrechnung.xml"

    def check_structure(self, root: ET.Element) -> list[str]:
        guideline = find_local(root, "GuidelineSpecifiedDocumentContextParameter")
        guideline_id = find_local(guideline, "ID") if guideline is not None else None
        if guideline_id is None or (guideline_id.text or "").strip() != XRECHNUNG_GUIDELINE:
            return [f"Guideline ID must be {XRECHNUNG_GUIDELINE}"]
        return []
