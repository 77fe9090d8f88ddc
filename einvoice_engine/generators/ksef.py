"""
KSeF FA(3) generator (Polish national e-invoicing system).

FA(3) is not an EN 16931 syntax. Net and tax amounts are reported in fixed
per-rate fields (P_13_x / P_14_x) and the Adnotacje block is mandatory.
"""

import xml.etree.ElementTree as ET
from typing import Optional

from ..config import DEFAULT_UNIT_CODE, SYSTEM_INFO, OutputFormat, ProfileId
from ..monetary import format_money, format_quantity, round_money, sum_money
from ..profiles.ksef import nip_digits
from ..schemas import CanonicalInvoice, PartyInfo
from ..taxes import TaxGroup, group_by_tax_rate, tax_category
from .base import FormatGenerator
from .xml_utils import format_date_iso, local_name, opt_sub, root_element, sanitize_file_name, serialize, sub


KSEF_NAMESPACE = "http://crd.gov.pl/wzor/2025/06/25/13775/"
FORM_SYSTEM_CODE = "FA (3)"
SCHEMA_VERSION = "1-0E"

# Standard rates with dedicated net / tax fields
STANDARD_RATE_FIELDS: dict[float, tuple[str, str]] = {
    23.0: ("P_13_1", "P_14_1"),
    22.0: ("P_13_1", "P_14_1"),
    8.0: ("P_13_2", "P_14_2"),
    7.0: ("P_13_2", "P_14_2"),
    5.0: ("P_13_3", "P_14_3"),
}

# 0% categories -> net field
ZERO_RATE_FIELDS: dict[str, str] = {
    "Z": "P_13_6_1",
    "K": "P_13_6_2",
    "G": "P_13_6_3",
    "E": "P_13_7",
    "O": "P_13_8",
    "AE": "P_13_10",
}

# 0% categories -> P_12 marker
ZERO_RATE_MARKERS: dict[str, str] = {
    "Z": "0 KR",
    "K": "0 WDT",
    "G": "0 EX",
    "E": "zw",
    "O": "np I",
    "AE": "oo",
}

# Field order of the tax summary inside <Fa>
SUMMARY_FIELD_ORDER = [
    "P_13_1", "P_14_1", "P_13_2", "P_14_2", "P_13_3", "P_14_3",
    "P_13_6_1", "P_13_6_2", "P_13_6_3", "P_13_7", "P_13_8", "P_13_10",
]

KSEF_REQUIRED_ELEMENTS = [
    "Naglowek",
    "Podmiot1",
    "Podmiot2",
    "Fa",
    "P_15",
    "Adnotacje",
    "RodzajFaktury",
    "JST",
    "FaWiersz",
]

YES, NO = "1", "2"


def seller_nip(invoice: CanonicalInvoice) -> str:
    return nip_digits(invoice.seller)[:10]


def invoice_kind(document_type_code: Optional[str]) -> str:
    """RodzajFaktury for a UNTDID 1001 document type."""
    match document_type_code:
        case "381" | "384":
            return "KOR"
        case "386" | "389":
            return "ZAL"
        case _:
            return "VAT"


def rate_marker(rate: Optional[float], category: Optional[str]) -> str:
    """P_12 value: the rate in percent, or a marker for 0% categories."""
    if not rate:
        return ZERO_RATE_MARKERS.get(tax_category(category, 0), "0 KR")
    return f"{rate:g}"


def rate_buckets(groups: list[TaxGroup]) -> dict[str, float]:
    """
    Sum group net and tax into the FA(3) summary fields.

    Rates outside the standard set have no field and are left out; the
    KSEF-08 warning reports them.
    """
    buckets: dict[str, list[float]] = {}
    for group in groups:
        if group.rate in STANDARD_RATE_FIELDS:
            net_field, tax_field = STANDARD_RATE_FIELDS[group.rate]
            buckets.setdefault(net_field, []).append(group.basis)
            buckets.setdefault(tax_field, []).append(group.tax)
        elif group.rate == 0:
            field = ZERO_RATE_FIELDS.get(group.category, "P_13_6_1")
            buckets.setdefault(field, []).append(group.basis)
    return {field: sum_money(values) for field, values in buckets.items()}


def _address(parent: ET.Element, party: PartyInfo) -> None:
    address = sub(parent, "Adres")
    sub(address, "KodKraju", party.country_code or "PL")
    sub(address, "AdresL1", party.address or "")
    line_two = " ".join(part for part in (party.postal_code, party.city) if part)
    opt_sub(address, "AdresL2", line_two)


def _contact(parent: ET.Element, party: PartyInfo) -> None:
    if not (party.email or party.phone):
        return
    contact = sub(parent, "DaneKontaktowe")
    opt_sub(contact, "Email", party.email)
    opt_sub(contact, "Telefon", party.phone)


def _annotations(parent: ET.Element, groups: list[TaxGroup]) -> None:
    categories = {group.category for group in groups}
    annotations = sub(parent, "Adnotacje")
    sub(annotations, "P_16", NO)
    sub(annotations, "P_17", NO)
    sub(annotations, "P_18", YES if "AE" in categories else NO)
    sub(annotations, "P_18A", NO)
    exemption = sub(annotations, "Zwolnienie")
    exempt = [group for group in groups if group.category == "E"]
    if exempt:
        sub(exemption, "P_19", YES)
        sub(exemption, "P_19A", exempt[0].exemption_reason)
    else:
        sub(exemption, "P_19N", YES)
    transport = sub(annotations, "NoweSrodkiTransportu")
    sub(transport, "P_22N", YES)
    sub(annotations, "P_23", NO)
    margin = sub(annotations, "PMarzy")
    sub(margin, "P_PMarzyN", YES)


# ============================================================================
# Document
# ============================================================================

def build_ksef_document(invoice: CanonicalInvoice) -> str:
    """Serialize an invoice as a KSeF FA(3) ``Faktura``."""
    seller, buyer = invoice.seller, invoice.buyer
    root = root_element("Faktura", {"": KSEF_NAMESPACE})

    header = sub(root, "Naglowek")
    sub(header, "KodFormularza", "FA", kodSystemowy=FORM_SYSTEM_CODE, wersjaSchemy=SCHEMA_VERSION)
    sub(header, "WariantFormularza", "3")
    sub(header, "DataWytworzeniaFa", f"{format_date_iso(invoice.invoice_date)}T00:00:00Z")
    sub(header, "SystemInfo", SYSTEM_INFO)

    podmiot1 = sub(root, "Podmiot1")
    identification = sub(podmiot1, "DaneIdentyfikacyjne")
    sub(identification, "NIP", seller_nip(invoice))
    sub(identification, "Nazwa", seller.name)
    _address(podmiot1, seller)
    _contact(podmiot1, seller)

    podmiot2 = sub(root, "Podmiot2")
    identification = sub(podmiot2, "DaneIdentyfikacyjne")
    buyer_nip = nip_digits(buyer)[:10]
    if buyer_nip:
        sub(identification, "NIP", buyer_nip)
    else:
        sub(identification, "BrakID", YES)
    sub(identification, "Nazwa", buyer.name)
    if buyer.address or buyer.city or buyer.country_code:
        _address(podmiot2, buyer)
    _contact(podmiot2, buyer)
    sub(podmiot2, "JST", NO)
    sub(podmiot2, "GV", NO)

    fa = sub(root, "Fa")
    sub(fa, "KodWaluty", invoice.currency)
    sub(fa, "P_1", format_date_iso(invoice.invoice_date))
    sub(fa, "P_2", invoice.invoice_number)
    if invoice.billing_period_start and invoice.billing_period_end:
        period = sub(fa, "OkresFa")
        sub(period, "P_6_Od", format_date_iso(invoice.billing_period_start))
        sub(period, "P_6_Do", format_date_iso(invoice.billing_period_end))

    groups = group_by_tax_rate(invoice)
    buckets = rate_buckets(groups)
    for field in SUMMARY_FIELD_ORDER:
        if field in buckets:
            sub(fa, field, format_money(buckets[field]))
    gross = round_money(sum_money(g.basis for g in groups) + sum_money(g.tax for g in groups))
    sub(fa, "P_15", format_money(gross))

    _annotations(fa, groups)

    kind = invoice_kind(invoice.document_type_code)
    sub(fa, "RodzajFaktury", kind)
    if kind == "KOR" and invoice.preceding_invoice_reference:
        corrected = sub(fa, "DaneFaKorygowanej")
        # The corrected invoice's own date is not part of the canonical model
        sub(corrected, "DataWystFaKorygowanej", format_date_iso(invoice.invoice_date))
        sub(corrected, "NrFaKorygowanej", invoice.preceding_invoice_reference)

    fallback_rate = invoice.tax_rate
    for index, line in enumerate(invoice.line_items):
        rate = line.tax_rate if line.tax_rate is not None else fallback_rate
        row = sub(fa, "FaWiersz")
        sub(row, "NrWierszaFa", str(index + 1))
        sub(row, "P_7", line.description)
        sub(row, "P_8A", line.unit_code or DEFAULT_UNIT_CODE)
        sub(row, "P_8B", format_quantity(line.quantity))
        sub(row, "P_9A", format_money(line.unit_price))
        sub(row, "P_11", format_money(line.total_price))
        sub(row, "P_12", rate_marker(rate, line.tax_category_code))

    payment = invoice.payment
    if payment.due_date or payment.iban:
        platnosc = sub(fa, "Platnosc")
        if payment.due_date:
            term = sub(platnosc, "TerminPlatnosci")
            sub(term, "Termin", format_date_iso(payment.due_date))
        # 6 = bank transfer, 1 = cash
        sub(platnosc, "FormaPlatnosci", "6" if payment.iban else "1")
        if payment.iban:
            account = sub(platnosc, "RachunekBankowy")
            sub(account, "NrRB", payment.iban)
            opt_sub(account, "SWIFT", payment.bic)

    return serialize(root)


class KSeFGenerator(FormatGenerator):
    profile = ProfileId.KSEF
    required_elements = KSEF_REQUIRED_ELEMENTS

    @property
    def format_id(self) -> OutputFormat:
        return OutputFormat.KSEF

    @property
    def format_name(self) -> str:
        return "KSeF FA(3) - Poland"

    @property
    def version(self) -> str:
        return "2.0.0"

    @property
    def spec_version(self) -> str:
        return "FA(3)"

    @property
    def spec_date(self) -> str:
        return "2024-11-20"

    def precheck(self, invoice: CanonicalInvoice) -> Optional[str]:
        if not seller_nip(invoice):
            return "KSeF requires seller NIP (Polish tax identification number). Provide vatId, taxNumber, or taxId."
        return None

    def build_xml(self, invoice: CanonicalInvoice) -> str:
        return build_ksef_document(invoice)

    def file_name(self, invoice: CanonicalInvoice) -> str:
        return f"{sanitize_file_name(invoice.invoice_number)}_ksef.xml"

    def check_structure(self, root: ET.Element) -> list[str]:
        errors = []
        if local_name(root.tag) != "Faktura":
            errors.append("Missing root <Faktura> element")
        if not root.tag.startswith("{" + KSEF_NAMESPACE):
            errors.append("Missing KSeF FA(3) namespace")
        return errors
