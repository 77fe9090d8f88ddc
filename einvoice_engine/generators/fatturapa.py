"""
FatturaPA 1.2 (FPR12) generator for the Italian SDI exchange system.
"""

import re
import xml.etree.ElementTree as ET
from typing import NamedTuple, Optional

from ..config import DEFAULT_DOCUMENT_TYPE, OutputFormat, ProfileId
from ..monetary import format_money, format_rate
from ..profiles.fatturapa import CODICE_DESTINATARIO_PATTERN, DOC_TYPE_MAP
from ..schemas import CanonicalInvoice, PartyInfo
from ..taxes import group_by_tax_rate
from .base import FormatGenerator
from .xml_utils import format_date_iso, opt_sub, root_element, sanitize_file_name, serialize, sub


FATTURAPA_NS = "http://ivaservizi.agenziaentrate.gov.it/docs/xsd/fatture/v1.2"
TRANSMISSION_FORMAT = "FPR12"
PEC_DESTINATION = "0000000"
DEFAULT_REGIME = "RF01"

# Tax category -> Natura, only used for 0% lines
NATURA_BY_CATEGORY = {
    "E": "N4",
    "Z": "N2.1",
    "AE": "N6",
    "K": "N3.2",
    "G": "N3.1",
    "O": "N2.2",
}
DEFAULT_NATURA = "N2.2"

PAYMENT_BANK_TRANSFER = "MP05"
PAYMENT_CASH = "MP01"
PAYMENT_CONDITIONS_FULL = "TP02"

FATTURAPA_REQUIRED_ELEMENTS = [
    "FatturaElettronicaHeader",
    "FatturaElettronicaBody",
    "DatiTrasmissione",
    "CedentePrestatore",
    "CessionarioCommittente",
    "DatiGeneraliDocumento",
    "DettaglioLinee",
    "DatiRiepilogo",
]


class VatId(NamedTuple):
    country: str
    code: str


def split_vat_id(value: Optional[str], fallback_country: Optional[str] = None) -> Optional[VatId]:
    """
    Split "IT01234567890" into (IT, 01234567890).

    Identifiers without a country prefix get ``fallback_country`` (or IT).
    Returns None when the identifier is missing or shorter than two characters.
    """
    text = re.sub(r"\s", "", value or "")
    if len(text) < 2:
        return None
    if re.match(r"^[A-Za-z]{2}", text):
        return VatId(text[:2].upper(), text[2:])
    return VatId(fallback_country or "IT", text)


def natura_code(category: Optional[str], rate: float) -> Optional[str]:
    if rate > 0:
        return None
    return NATURA_BY_CATEGORY.get(category or "", DEFAULT_NATURA)


def transmission_number(invoice_number: str) -> str:
    """ProgressivoInvio: alphanumeric, 5 to 10 characters."""
    cleaned = re.sub(r"[^A-Za-z0-9]", "", invoice_number or "")[:10]
    return (cleaned or "1").rjust(5, "0")


def _seller_vat(invoice: CanonicalInvoice) -> Optional[VatId]:
    seller = invoice.seller
    return split_vat_id(seller.vat_id or seller.tax_id, seller.country_code)


def _id_fiscale(parent: ET.Element, tag: str, vat: VatId) -> None:
    element = sub(parent, tag)
    sub(element, "IdPaese", vat.country)
    sub(element, "IdCodice", vat.code)


def _sede(parent: ET.Element, party: PartyInfo, country: str) -> None:
    sede = sub(parent, "Sede")
    sub(sede, "Indirizzo", party.address or "N/A")
    sub(sede, "CAP", party.postal_code or "00000")
    sub(sede, "Comune", party.city or "N/A")
    sub(sede, "Nazione", party.country_code or country)


# ============================================================================
# Document
# ============================================================================

def build_fatturapa_document(invoice: CanonicalInvoice) -> str:
    """
    Serialize an invoice as FatturaElettronica v1.2.

    The seller must carry a VAT id; callers check this with ``split_vat_id``.
    """
    seller_vat = _seller_vat(invoice)
    buyer_vat = split_vat_id(invoice.buyer.vat_id, invoice.buyer.country_code)
    seller, buyer = invoice.seller, invoice.buyer
    doc_type = DOC_TYPE_MAP.get(invoice.document_type_code or DEFAULT_DOCUMENT_TYPE, "TD01")

    root = root_element("p:FatturaElettronica", {"p": FATTURAPA_NS}, versione=TRANSMISSION_FORMAT)

    # Header
    header = sub(root, "FatturaElettronicaHeader")
    transmission = sub(header, "DatiTrasmissione")
    _id_fiscale(transmission, "IdTrasmittente", seller_vat)
    sub(transmission, "ProgressivoInvio", transmission_number(invoice.invoice_number))
    sub(transmission, "FormatoTrasmissione", TRANSMISSION_FORMAT)
    codice = (buyer.electronic_address or "").strip()
    sub(transmission, "CodiceDestinatario", codice if CODICE_DESTINATARIO_PATTERN.match(codice) else PEC_DESTINATION)

    cedente = sub(header, "CedentePrestatore")
    anagrafici = sub(cedente, "DatiAnagrafici")
    _id_fiscale(anagrafici, "IdFiscaleIVA", seller_vat)
    opt_sub(anagrafici, "CodiceFiscale", seller.tax_number)
    anagrafica = sub(anagrafici, "Anagrafica")
    sub(anagrafica, "Denominazione", seller.name)
    sub(anagrafici, "RegimeFiscale", seller.tax_regime or DEFAULT_REGIME)
    _sede(cedente, seller, seller_vat.country)

    cessionario = sub(header, "CessionarioCommittente")
    anagrafici = sub(cessionario, "DatiAnagrafici")
    if buyer_vat:
        _id_fiscale(anagrafici, "IdFiscaleIVA", buyer_vat)
    if buyer.tax_number:
        sub(anagrafici, "CodiceFiscale", buyer.tax_number)
    elif not buyer.vat_id and buyer.tax_id:
        sub(anagrafici, "CodiceFiscale", buyer.tax_id)
    anagrafica = sub(anagrafici, "Anagrafica")
    sub(anagrafica, "Denominazione", buyer.name)
    _sede(cessionario, buyer, buyer_vat.country if buyer_vat else "IT")

    # Body
    body = sub(root, "FatturaElettronicaBody")
    general = sub(body, "DatiGenerali")
    document = sub(general, "DatiGeneraliDocumento")
    sub(document, "TipoDocumento", doc_type)
    sub(document, "Divisa", invoice.currency)
    sub(document, "Data", format_date_iso(invoice.invoice_date))
    sub(document, "Numero", invoice.invoice_number)
    for ac in invoice.allowance_charges or []:
        adjustment = sub(document, "ScontoMaggiorazione")
        sub(adjustment, "Tipo", "MG" if ac.charge_indicator else "SC")
        if ac.percentage is not None:
            sub(adjustment, "Percentuale", format_rate(ac.percentage))
        sub(adjustment, "Importo", format_money(ac.amount))
    sub(document, "ImportoTotaleDocumento", format_money(invoice.totals.total_amount))
    if doc_type == "TD04" and invoice.preceding_invoice_reference:
        linked = sub(general, "DatiFattureCollegate")
        sub(linked, "IdDocumento", invoice.preceding_invoice_reference)

    goods = sub(body, "DatiBeniServizi")
    for index, line in enumerate(invoice.line_items):
        rate = line.tax_rate if line.tax_rate is not None else 0.0
        detail = sub(goods, "DettaglioLinee")
        sub(detail, "NumeroLinea", str(index + 1))
        sub(detail, "Descrizione", line.description)
        sub(detail, "Quantita", format_money(line.quantity))
        sub(detail, "PrezzoUnitario", format_money(line.unit_price))
        sub(detail, "PrezzoTotale", format_money(line.total_price))
        sub(detail, "AliquotaIVA", format_rate(rate))
        opt_sub(detail, "Natura", natura_code(line.tax_category_code, rate))

    for group in group_by_tax_rate(invoice):
        summary = sub(goods, "DatiRiepilogo")
        sub(summary, "AliquotaIVA", format_rate(group.rate))
        opt_sub(summary, "Natura", natura_code(group.category, group.rate))
        sub(summary, "ImponibileImporto", format_money(group.basis))
        sub(summary, "Imposta", format_money(group.tax))

    payment = invoice.payment
    if payment.iban or invoice.totals.total_amount:
        terms = sub(body, "DatiPagamento")
        sub(terms, "CondizioniPagamento", PAYMENT_CONDITIONS_FULL)
        detail = sub(terms, "DettaglioPagamento")
        sub(detail, "ModalitaPagamento", PAYMENT_BANK_TRANSFER if payment.iban else PAYMENT_CASH)
        if payment.due_date:
            sub(detail, "DataScadenzaPagamento", format_date_iso(payment.due_date))
        sub(detail, "ImportoPagamento", format_money(invoice.totals.total_amount))
        opt_sub(detail, "IBAN", payment.iban)
        opt_sub(detail, "BIC", payment.bic)

    return serialize(root)


class FatturaPAGenerator(FormatGenerator):
    profile = ProfileId.FATTURAPA
    required_elements = FATTURAPA_REQUIRED_ELEMENTS

    @property
    def format_id(self) -> OutputFormat:
        return OutputFormat.FATTURAPA

    @property
    def format_name(self) -> str:
        return "FatturaPA 1.2 (Italy)"

    @property
    def version(self) -> str:
        return "1.0.0"

    @property
    def spec_version(self) -> str:
        return "1.2.2"

    @property
    def spec_date(self) -> str:
        return "2022-09-29"

    def precheck(self, invoice: CanonicalInvoice) -> Optional[str]:
        if _seller_vat(invoice) is None:
            return "FatturaPA requires seller VAT ID (Italian format: IT + 11 digits)"
        return None

    def build_xml(self, invoice: CanonicalInvoice) -> str:
        return build_fatturapa_document(invoice)

    def file_name(self, invoice: CanonicalInvoice) -> str:
        """SDI naming: country + VAT code + "_" + ProgressivoInvio."""
        vat = _seller_vat(invoice)
        if vat is None:
            return f"{sanitize_file_name(invoice.invoice_number)}_fatturapa.xml"
        return f"{vat.country}{sanitize_file_name(vat.code)}_{transmission_number(invoice.invoice_number)}.xml"
