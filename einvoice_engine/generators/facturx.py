"""
Factur-X generator: a human-readable PDF carrying the CII XML.

The PDF is rendered with reportlab. pypdf embeds ``factur-x.xml`` as an
associated file (AFRelationship Alternative) and writes the Factur-X XMP
metadata. The finished PDF is read back with pdfplumber and pypdf as a
self-check.
"""

import io
import xml.etree.ElementTree as ET
from typing import Optional
from xml.sax.saxutils import escape

import pdfplumber
from pypdf import PdfReader, PdfWriter
from pypdf.generic import (
    ArrayObject,
    BooleanObject,
    DictionaryObject,
    NameObject,
    TextStringObject,
)
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas

from ..config import ENGINE_NAME, OutputFormat, ProfileId, logger
from ..errors import GenerationError
from ..monetary import format_money
from ..pipeline import validate_for_profile
from ..schemas import CanonicalInvoice, GenerationResult, PartyInfo, StructuralCheck, ValidationResult
from ..taxes import due_payable, group_by_tax_rate
from .base import FormatGenerator
from .cii import CII_REQUIRED_ELEMENTS, build_cii_document
from .xml_utils import find_local, format_date_iso, sanitize_file_name


ATTACHMENT_NAME = "factur-x.xml"

FACTURX_SPECS = {
    OutputFormat.FACTURX_EN16931: {
        "spec_id": "urn:cen.eu:en16931:2017#compliant#urn:factur-x.eu:1p0:en16931",
        "name": "Factur-X EN 16931 (Comfort)",
        "conformance": "EN 16931",
        "profile": ProfileId.FACTURX_EN16931,
    },
    OutputFormat.FACTURX_BASIC: {
        "spec_id": "urn:cen.eu:en16931:2017#compliant#urn:factur-x.eu:1p0:basic",
        "name": "Factur-X Basic",
        "conformance": "BASIC",
        "profile": ProfileId.FACTURX_BASIC,
    },
}

XMP_TEMPLATE = """<?xpacket begin="\ufeff" id="W5M0MpCehiHzreSzNTczkc9d"?>
<x:xmpmeta xmlns:x="adobe:ns:meta/">
  <rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#">
    <rdf:Description rdf:about=""
      xmlns:dc="http://purl.org/dc/elements/1.1/"
      xmlns:pdf="http://ns.adobe.com/pdf/1.3/"
      xmlns:pdfaid="http://www.aiim.org/pdfa/ns/id/"
      xmlns:fx="urn:factur-x:pdfa:CrossIndustryDocument:invoice:1p0#">
      <dc:title><rdf:Alt><rdf:li xml:lang="x-default">Invoice {number}</rdf:li></rdf:Alt></dc:title>
      <dc:creator><rdf:Seq><rdf:li>{seller}</rdf:li></rdf:Seq></dc:creator>
      <dc:description><rdf:Alt><rdf:li xml:lang="x-default">Factur-X Invoice</rdf:li></rdf:Alt></dc:description>
      <pdf:Producer>{producer}</pdf:Producer>
      <pdfaid:part>3</pdfaid:part>
      <pdfaid:conformance>B</pdfaid:conformance>
      <fx:DocumentFileName>{attachment}</fx:DocumentFileName>
      <fx:DocumentType>INVOICE</fx:DocumentType>
      <fx:ConformanceLevel>{conformance}</fx:ConformanceLevel>
      <fx:Version>1.0</fx:Version>
    </rdf:Description>
  </rdf:RDF>
</x:xmpmeta>
<?xpacket end="w"?>"""


def build_xmp_metadata(invoice: CanonicalInvoice, conformance: str) -> str:
    return XMP_TEMPLATE.format(
        number=escape(invoice.invoice_number),
        seller=escape(invoice.seller.name),
        producer=escape(f"{ENGINE_NAME} Factur-X generator"),
        attachment=ATTACHMENT_NAME,
        conformance=conformance,
    )


# ============================================================================
# Visual PDF
# ============================================================================

PAGE_WIDTH, PAGE_HEIGHT = A4
MARGIN = 20 * mm
COLUMNS = {"desc": MARGIN, "qty": 110 * mm, "unit": 130 * mm, "total": 155 * mm, "tax": 175 * mm}


def _party_lines(party: PartyInfo) -> list[str]:
    lines = [party.name]
    if party.address:
        lines.append(party.address)
    city = " ".join(part for part in (party.postal_code, party.city) if part)
    if city:
        lines.append(city)
    if party.country_code:
        lines.append(party.country_code)
    if party.vat_id:
        lines.append(f"VAT: {party.vat_id}")
    elif party.tax_number:
        lines.append(f"Tax no.: {party.tax_number}")
    if party.email:
        lines.append(party.email)
    return lines


class _InvoiceCanvas:
    """Draws the invoice top-down, starting a new page when space runs out."""

    def __init__(self, invoice: CanonicalInvoice, conformance: str):
        self.invoice = invoice
        self.conformance = conformance
        self.buffer = io.BytesIO()
        self.pdf = canvas.Canvas(self.buffer, pagesize=A4)
        self.pdf.setTitle(f"Invoice {invoice.invoice_number}")
        self.pdf.setAuthor(invoice.seller.name)
        self.pdf.setSubject("Factur-X Invoice")
        self.pdf.setCreator(ENGINE_NAME)
        self.y = PAGE_HEIGHT - MARGIN

    def text(self, x: float, value: str, size: int = 9, bold: bool = False) -> None:
        self.pdf.setFont("Helvetica-Bold" if bold else "Helvetica", size)
        self.pdf.drawString(x, self.y, value)

    def rule(self) -> None:
        self.pdf.line(MARGIN, self.y, PAGE_WIDTH - MARGIN, self.y)

    def advance(self, step: float) -> None:
        self.y -= step
        if self.y < MARGIN + 20 * mm:
            self.footer()
            self.pdf.showPage()
            self.y = PAGE_HEIGHT - MARGIN

    def footer(self) -> None:
        self.pdf.setFont("Helvetica", 7)
        self.pdf.drawString(MARGIN, MARGIN / 2, f"Factur-X {self.conformance} - generated by {ENGINE_NAME}")

    def render(self) -> bytes:
        invoice = self.invoice
        title = "CREDIT NOTE" if invoice.is_credit_note else "INVOICE"
        self.text(MARGIN, title, size=20, bold=True)
        self.advance(10 * mm)

        self.text(MARGIN, f"Invoice number: {invoice.invoice_number}")
        self.advance(5 * mm)
        self.text(MARGIN, f"Invoice date: {format_date_iso(invoice.invoice_date)}")
        if invoice.payment.due_date:
            self.advance(5 * mm)
            self.text(MARGIN, f"Due date: {format_date_iso(invoice.payment.due_date)}")
        if invoice.buyer_reference:
            self.advance(5 * mm)
            self.text(MARGIN, f"Buyer reference: {invoice.buyer_reference}")
        self.advance(10 * mm)

        half = (PAGE_WIDTH - 2 * MARGIN) / 2
        self.text(MARGIN, "From (Seller)", bold=True)
        self.text(MARGIN + half, "To (Buyer)", bold=True)
        self.advance(5 * mm)
        seller_lines, buyer_lines = _party_lines(invoice.seller), _party_lines(invoice.buyer)
        for i in range(max(len(seller_lines), len(buyer_lines))):
            if i < len(seller_lines):
                self.text(MARGIN, seller_lines[i])
            if i < len(buyer_lines):
                self.text(MARGIN + half, buyer_lines[i])
            self.advance(4.5 * mm)
        self.advance(6 * mm)

        for key, label in (("desc", "Description"), ("qty", "Qty"), ("unit", "Unit Price"),
                           ("total", "Total"), ("tax", "Tax %")):
            self.text(COLUMNS[key], label, bold=True)
        self.advance(2 * mm)
        self.rule()
        self.advance(5 * mm)
        for line in invoice.line_items:
            rate = line.tax_rate if line.tax_rate is not None else invoice.tax_rate
            self.text(COLUMNS["desc"], (line.description or "Item")[:55], size=8)
            self.text(COLUMNS["qty"], f"{line.quantity:g}", size=8)
            self.text(COLUMNS["unit"], format_money(line.unit_price), size=8)
            self.text(COLUMNS["total"], format_money(line.total_price), size=8)
            self.text(COLUMNS["tax"], f"{rate:g}%" if rate is not None else "-", size=8)
            self.advance(4.5 * mm)
        self.rule()
        self.advance(6 * mm)

        currency = invoice.currency
        totals = [("Net amount", invoice.totals.subtotal)]
        for group in group_by_tax_rate(invoice):
            totals.append((f"VAT {group.category} {group.rate:g}%", group.tax))
        totals.append(("Total", invoice.totals.total_amount))
        if invoice.payment.prepaid_amount:
            totals.append(("Prepaid", invoice.payment.prepaid_amount))
            totals.append(("Amount due", due_payable(invoice)))
        for label, value in totals:
            self.text(COLUMNS["unit"], label, bold=label == "Total")
            self.pdf.drawRightString(PAGE_WIDTH - MARGIN, self.y, f"{format_money(value)} {currency}")
            self.advance(5 * mm)

        payment = invoice.payment
        if payment.iban or payment.payment_terms:
            self.advance(5 * mm)
            if payment.iban:
                self.text(MARGIN, f"IBAN: {payment.iban}" + (f"  BIC: {payment.bic}" if payment.bic else ""))
                self.advance(5 * mm)
            if payment.payment_terms:
                self.text(MARGIN, payment.payment_terms[:100])
                self.advance(5 * mm)

        self.footer()
        self.pdf.showPage()
        self.pdf.save()
        return self.buffer.getvalue()


def render_pdf(invoice: CanonicalInvoice, conformance: str) -> bytes:
    """Visual representation of the invoice, without attachments."""
    return _InvoiceCanvas(invoice, conformance).render()


# ============================================================================
# Embedding
# ============================================================================

def embed_xml(pdf_bytes: bytes, xml: str, xmp: str) -> bytes:
    """
    Attach the CII XML and the XMP packet to a rendered PDF.

    Sets /AF, /Metadata and /MarkInfo on the catalog as required for
    PDF/A-3 associated files.
    """
    writer = PdfWriter(clone_from=PdfReader(io.BytesIO(pdf_bytes)))
    attachment = writer.add_attachment(ATTACHMENT_NAME, xml.encode("utf-8"))
    attachment.associated_file_relationship = NameObject("/Alternative")
    attachment.description = TextStringObject("Factur-X CII XML Invoice")
    attachment.subtype = NameObject("/text/xml")

    catalog = writer.root_object
    catalog[NameObject("/AF")] = ArrayObject([attachment.pdf_object.indirect_reference])

    writer.xmp_metadata = xmp.encode("utf-8")
    metadata = catalog["/Metadata"].get_object()
    metadata[NameObject("/Type")] = NameObject("/Metadata")
    metadata[NameObject("/Subtype")] = NameObject("/XML")
    catalog[NameObject("/MarkInfo")] = DictionaryObject({NameObject("/Marked"): BooleanObject(True)})

    output = io.BytesIO()
    writer.write(output)
    return output.getvalue()


def check_pdf(pdf_bytes: bytes, invoice_number: str) -> list[str]:
    """Read the PDF back: the attachment must exist and the text must show the invoice number."""
    errors = []
    reader = PdfReader(io.BytesIO(pdf_bytes))
    if ATTACHMENT_NAME not in reader.attachments:
        errors.append(f"PDF has no {ATTACHMENT_NAME} attachment")
    with pdfplumber.open(io.BytesIO(pdf_bytes)) as pdf:
        text = "\n".join(page.extract_text() or "" for page in pdf.pages)
    if invoice_number and invoice_number not in text:
        errors.append("PDF text does not contain the invoice number")
    return errors


# ============================================================================
# Generator
# ============================================================================

class FacturXGenerator(FormatGenerator):
    """One generator class for both Factur-X profiles."""

    required_elements = CII_REQUIRED_ELEMENTS
    mime_type = "application/pdf"

    def __init__(self, output_format: OutputFormat):
        if output_format not in FACTURX_SPECS:
            raise GenerationError(f"Unsupported Factur-X format: {output_format}")
        self._format = output_format
        self._spec = FACTURX_SPECS[output_format]
        self.profile = self._spec["profile"]

    @property
    def format_id(self) -> OutputFormat:
        return self._format

    @property
    def format_name(self) -> str:
        return self._spec["name"]

    @property
    def version(self) -> str:
        return "1.0.0"

    @property
    def spec_version(self) -> str:
        return "1.07.2"

    @property
    def spec_date(self) -> str:
        return "2025-01-15"

    @property
    def conformance(self) -> str:
        return self._spec["conformance"]

    def build_xml(self, invoice: CanonicalInvoice) -> str:
        return build_cii_document(invoice, self._spec["spec_id"])

    def file_name(self, invoice: CanonicalInvoice) -> str:
        return f"{sanitize_file_name(invoice.invoice_number)}_facturx.pdf"

    def check_structure(self, root: ET.Element) -> list[str]:
        guideline = find_local(root, "GuidelineSpecifiedDocumentContextParameter")
        guideline_id = find_local(guideline, "ID") if guideline is not None else None
        if guideline_id is None or (guideline_id.text or "").strip() != self._spec["spec_id"]:
            return [f"Guideline ID must be {self._spec['spec_id']}"]
        return []

    def build_pdf(self, invoice: CanonicalInvoice, xml: str) -> bytes:
        visual = render_pdf(invoice, self.conformance)
        return embed_xml(visual, xml, build_xmp_metadata(invoice, self.conformance))

    def generate(
        self,
        invoice: CanonicalInvoice,
        validation: Optional[ValidationResult] = None,
    ) -> GenerationResult:
        if validation is None:
            validation = validate_for_profile(invoice, self.profile)

        xml = self.build_xml(invoice)
        pdf_bytes = self.build_pdf(invoice, xml)
        structure = self.validate(xml)
        pdf_errors = check_pdf(pdf_bytes, invoice.invoice_number)
        if pdf_errors:
            logger.warning(f"Factur-X self-check failed for {invoice.invoice_number}: {pdf_errors}")
            structure = StructuralCheck(valid=False, errors=structure.errors + pdf_errors)
        return self.build_result(invoice, xml, validation, structure, pdf_content=pdf_bytes)
