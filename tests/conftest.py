"""
Shared raw invoice records for the test suite.

Each fixture returns a fresh dict so tests can modify it freely.
"""

import copy

import pytest

from einvoice_engine.mapper import to_canonical_invoice


GERMAN_RECORD = {
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
        "email": "rechnung@muster.de",
        "phone": "+49 30 1234567",
        "contactName": "Erika Muster",
    },
    "buyer": {
        "name": "Kunde AG",
        "address": "Hafenweg 5",
        "city": "Hamburg",
        "postalCode": "20457",
        "countryCode": "DE",
        "email": "einkauf@kunde.de",
    },
    "payment": {
        "iban": "DE89 3704 0044 0532 0130 00",
        "bic": "COBADEFFXXX",
        "paymentTerms": "Zahlbar innerhalb von 14 Tagen",
        "dueDate": "2024-03-15",
    },
    "lineItems": [
        {"description": "Beratung", "quantity": 1, "unitPrice": 100.0, "totalPrice": 100.0, "taxRate": 19},
    ],
    "totals": {"subtotal": 100.0, "taxAmount": 19.0, "totalAmount": 119.0},
}

PEPPOL_RECORD = {
    "invoiceNumber": "INV-7001",
    "invoiceDate": "2024-05-10",
    "currency": "EUR",
    "seller": {
        "name": "Nordic Supplies AB",
        "address": "Storgatan 3",
        "city": "Stockholm",
        "postalCode": "11122",
        "countryCode": "SE",
        "vatId": "SE556677889901",
        "electronicAddress": "7300010000001",
        "electronicAddressScheme": "0088",
    },
    "buyer": {
        "name": "Buyer BV",
        "address": "Keizersgracht 10",
        "city": "Amsterdam",
        "postalCode": "1015CS",
        "countryCode": "NL",
        "vatId": "NL123456789B01",
        "electronicAddress": "7300010000002",
        "electronicAddressScheme": "0088",
    },
    "payment": {"iban": "SE4550000000058398257466", "paymentTerms": "30 days net"},
    "lineItems": [
        {"description": "Paper A4", "quantity": 10, "unitPrice": 5.0, "totalPrice": 50.0, "taxRate": 25, "unitCode": "BX"},
        {"description": "Toner", "quantity": 2, "unitPrice": 25.0, "totalPrice": 50.0, "taxRate": 25},
    ],
    "totals": {"subtotal": 100.0, "taxAmount": 25.0, "totalAmount": 125.0},
}

ITALIAN_RECORD = {
    "invoiceNumber": "FT-2024/001",
    "invoiceDate": "2024-04-02",
    "currency": "EUR",
    "seller": {
        "name": "Rossi S.r.l.",
        "address": "Via Roma 1",
        "city": "Milano",
        "postalCode": "20121",
        "countryCode": "IT",
        "vatId": "IT01234567890",
    },
    "buyer": {
        "name": "Bianchi S.p.A.",
        "address": "Corso Italia 7",
        "city": "Torino",
        "postalCode": "10121",
        "countryCode": "IT",
        "vatId": "IT09876543210",
        "codiceDestinatario": "ABC1234",
    },
    "payment": {"iban": "IT60X0542811101000000123456", "dueDate": "2024-05-02"},
    "lineItems": [
        {"description": "Consulenza", "quantity": 2, "unitPrice": 50.0, "totalPrice": 100.0, "taxRate": 22},
    ],
    "totals": {"subtotal": 100.0, "taxAmount": 22.0, "totalAmount": 122.0},
}

POLISH_RECORD = {
    "invoiceNumber": "FV/2024/05/17",
    "invoiceDate": "2024-05-17",
    "currency": "PLN",
    "seller": {
        "name": "Kowalski Sp. z o.o.",
        "address": "ul. Marszalkowska 1",
        "city": "Warszawa",
        "postalCode": "00-001",
        "countryCode": "PL",
        "vatId": "PL1234567890",
    },
    "buyer": {
        "name": "Nowak S.A.",
        "address": "ul. Dluga 2",
        "city": "Krakow",
        "postalCode": "30-001",
        "countryCode": "PL",
        "taxNumber": "9876543210",
    },
    "payment": {"iban": "PL61109010140000071219812874", "dueDate": "2024-05-31"},
    "lineItems": [
        {"description": "Usluga", "quantity": 1, "unitPrice": 1000.0, "totalPrice": 1000.0, "taxRate": 23},
        {"description": "Ksiazka", "quantity": 2, "unitPrice": 50.0, "totalPrice": 100.0, "taxRate": 8},
    ],
    "totals": {"subtotal": 1100.0, "taxAmount": 238.0, "totalAmount": 1338.0},
}


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def german_record() -> dict:
    """Complete German B2G invoice that passes every XRechnung rule."""
    return copy.deepcopy(GERMAN_RECORD)


@pytest.fixture
def peppol_record() -> dict:
    """Cross-border invoice with PEPPOL participant ids on both parties."""
    return copy.deepcopy(PEPPOL_RECORD)


@pytest.fixture
def italian_record() -> dict:
    return copy.deepcopy(ITALIAN_RECORD)


@pytest.fixture
def polish_record() -> dict:
    return copy.deepcopy(POLISH_RECORD)


@pytest.fixture
def german_invoice(german_record):
    return to_canonical_invoice(german_record, "xrechnung-cii")


@pytest.fixture
def peppol_invoice(peppol_record):
    return to_canonical_invoice(peppol_record, "peppol-bis")
