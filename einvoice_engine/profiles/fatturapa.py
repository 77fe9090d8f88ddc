"""
FatturaPA (Italian SDI) rules.

FatturaPA is not an EN 16931 syntax; these rules follow the SDI
technical specification v1.2.
"""

import re
from math import isfinite

from ..config import DEFAULT_DOCUMENT_TYPE, ProfileId
from ..rules import create_error, create_warning, is_blank
from ..schemas import CanonicalInvoice, ValidationError
from .base import ProfileValidator


# Canonical document type -> TipoDocumento
DOC_TYPE_MAP: dict[str, str] = {
    "380": "TD01",
    "381": "TD04",
    "384": "TD01",
    "389": "TD01",
}

CODICE_DESTINATARIO_PATTERN = re.compile(r"^[A-Z0-9]{7}$")
CURRENCY_PATTERN = re.compile(r"^[A-Z]{3}$")
REGIME_FISCALE_PATTERN = re.compile(r"^RF(0[1-9]|1[0-9])$")


def _document_rules(invoice: CanonicalInvoice) -> list[ValidationError]:
    errors = []
    if is_blank(invoice.invoice_number):
        errors.append(create_error("FPA-001", "invoice.invoiceNumber", "Invoice number (Numero) is required for FatturaPA"))
    if is_blank(invoice.invoice_date):
        errors.append(create_error("FPA-002", "invoice.invoiceDate", "Invoice date (Data) is required for FatturaPA"))

    currency = (invoice.currency or "").strip()
    if not currency:
        errors.append(create_error("FPA-003", "invoice.currency", "Currency code (Divisa) is required for FatturaPA"))
    elif not CURRENCY_PATTERN.match(currency.upper()):
        errors.append(create_error(
            "FPA-003a", "invoice.currency", f'Currency "{currency}" is not a valid ISO 4217 code', actual=currency
        ))

    doc_type = invoice.document_type_code or DEFAULT_DOCUMENT_TYPE
    if doc_type not in DOC_TYPE_MAP:
        errors.append(create_error(
            "FPA-004",
            "invoice.documentTypeCode",
            f"Document type code {doc_type} cannot be mapped to a valid FatturaPA TipoDocumento",
            actual=doc_type,
            suggestion="Use 380 (invoice) or 381 (credit note)",
        ))
    return errors


def _party_rules(invoice: CanonicalInvoice) -> list[ValidationError]:
    errors = []
    seller, buyer = invoice.seller, invoice.buyer

    vat_id = (seller.vat_id or "").strip()
    if not vat_id:
        errors.append(create_error(
            "FPA-010",
            "invoice.seller.vatId",
            "Seller VAT ID (IdFiscaleIVA) is required for FatturaPA",
            suggestion='Provide VAT ID with country prefix (e.g. "IT01234567890")',
        ))
    elif len(vat_id) < 4:
        errors.append(create_error(
            "FPA-010a",
            "invoice.seller.vatId",
            f'Seller VAT ID "{vat_id}" is too short: it must contain country code and VAT number',
            actual=vat_id,
        ))

    for rule_id, path, value, label in (
        ("FPA-011", "address", seller.address, "street address (Indirizzo)"),
        ("FPA-012", "city", seller.city, "city (Comune)"),
        ("FPA-013", "postalCode", seller.postal_code, "postal code (CAP)"),
        ("FPA-014", "countryCode", seller.country_code, "country code (Nazione)"),
    ):
        if is_blank(value):
            errors.append(create_error(rule_id, f"invoice.seller.{path}", f"Seller {label} is required for FatturaPA"))

    if is_blank(buyer.vat_id) and is_blank(buyer.tax_number) and is_blank(buyer.tax_id):
        errors.append(create_error(
            "FPA-020",
            "invoice.buyer.identification",
            "Buyer identification is required for FatturaPA (VAT ID or fiscal code)",
            suggestion="Provide buyer VAT ID (IdFiscaleIVA) or fiscal code (CodiceFiscale)",
        ))

    codice = (buyer.electronic_address or "").strip()
    if codice and codice != "0000000" and not CODICE_DESTINATARIO_PATTERN.match(codice):
        errors.append(create_warning(
            "FPA-021",
            "invoice.buyer.electronicAddress",
            f'CodiceDestinatario "{codice}" should be exactly 7 alphanumeric characters',
            actual=codice,
            suggestion='Use 7-character SDI code or "0000000" for PEC delivery',
        ))

    regime = (seller.tax_regime or "").strip()
    if regime and not REGIME_FISCALE_PATTERN.match(regime):
        errors.append(create_error(
            "FPA-036",
            "invoice.seller.taxRegime",
            f'RegimeFiscale "{regime}" is not valid: must be RF01 through RF19',
            actual=regime,
            suggestion="Use RF01 (ordinario) unless a special regime applies",
        ))
    return errors


def _line_rules(invoice: CanonicalInvoice) -> list[ValidationError]:
    if not invoice.line_items:
        return [create_error(
            "FPA-030", "invoice.lineItems", "At least one line item (DettaglioLinee) is required for FatturaPA"
        )]

    errors = []
    for i, line in enumerate(invoice.line_items):
        n = i + 1
        where = f"invoice.lineItems[{i}]"
        if is_blank(line.description):
            errors.append(create_error("FPA-031", f"{where}.description", f"Line item {n}: description (Descrizione) is required"))
        if line.quantity is None or line.quantity <= 0:
            errors.append(create_error("FPA-032", f"{where}.quantity", f"Line item {n}: quantity (Quantita) must be a positive number"))
        if line.unit_price is None or not isfinite(line.unit_price):
            errors.append(create_error("FPA-033", f"{where}.unitPrice", f"Line item {n}: unit price (PrezzoUnitario) is required"))
        if line.tax_rate is None:
            errors.append(create_error("FPA-034", f"{where}.taxRate", f"Line item {n}: tax rate (AliquotaIVA) is required"))

        category = (line.tax_category_code or "").strip()
        if category == "AE" and line.tax_rate not in (None, 0):
            errors.append(create_error(
                "FPA-035",
                f"{where}.taxRate",
                f"Line item {n}: reverse charge (AE) tax rate must be 0%, got {line.tax_rate:g}%",
                actual=f"{line.tax_rate:g}",
                suggestion="Set tax rate to 0 for reverse charge items",
            ))
        if line.tax_rate == 0 and not category:
            errors.append(create_warning(
                "FPA-035",
                f"{where}.taxCategoryCode",
                f"Line item {n}: 0% VAT rate requires a tax category code to determine Natura",
                suggestion="Set taxCategoryCode (E, Z, AE, K, G, O) to map to the correct Natura code",
            ))
    return errors


def validate_fatturapa_rules(invoice: CanonicalInvoice) -> list[ValidationError]:
    return _document_rules(invoice) + _party_rules(invoice) + _line_rules(invoice)


class FatturaPAValidator(ProfileValidator):
    profile_id = ProfileId.FATTURAPA
    profile_name = "FatturaPA"

    def validate(self, invoice: CanonicalInvoice) -> list[ValidationError]:
        return validate_fatturapa_rules(invoice)
