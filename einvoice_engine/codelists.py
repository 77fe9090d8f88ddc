"""
Code lists used by the validation pipeline and the generators.
"""

from typing import Final


def _codes(*ranges: tuple[int, int]) -> frozenset[str]:
    return frozenset(f"{n:04d}" for start, end in ranges for n in range(start, end + 1))


# ============================================================================
# Document Types (UNTDID 1001)
# ============================================================================

DOCUMENT_TYPE_CODES: Final[frozenset[str]] = frozenset({"380", "381", "384", "389"})

# ============================================================================
# Tax Categories (UNCL5305)
# ============================================================================

# EN 16931 categories accepted on lines and allowances/charges
TAX_CATEGORY_CODES: Final[frozenset[str]] = frozenset({"S", "Z", "E", "AE", "K", "G", "O", "L"})

# PEPPOL additionally allows M (Ceuta/Melilla IPSI)
PEPPOL_TAX_CATEGORY_CODES: Final[frozenset[str]] = TAX_CATEGORY_CODES | {"M"}

# Exemption reason text and VATEX code per non-standard category
EXEMPTION_REASONS: Final[dict[str, tuple[str, str]]] = {
    "E": ("Exempt from VAT", "VATEX-EU-132"),
    "AE": ("Reverse charge", "VATEX-EU-AE"),
    "K": ("Intra-community supply", "VATEX-EU-IC"),
    "G": ("Export outside the EU", "VATEX-EU-G"),
    "O": ("Not subject to VAT", "VATEX-EU-O"),
}

# ============================================================================
# Electronic Address Schemes (CEF EAS)
# ============================================================================

EAS_SCHEME_IDS: Final[frozenset[str]] = _codes(
    (2, 2), (7, 7), (9, 60), (88, 88), (96, 97), (106, 106), (130, 130),
    (135, 135), (142, 142), (147, 147), (151, 151), (170, 170), (183, 184),
    (188, 188), (190, 196), (198, 204), (208, 213), (215, 221),
    (9901, 9901), (9910, 9910), (9913, 9915), (9918, 9920), (9922, 9958),
)

# ============================================================================
# Currencies (ISO 4217, commonly invoiced)
# ============================================================================

CURRENCY_CODES: Final[frozenset[str]] = frozenset({
    "EUR", "USD", "GBP", "CHF", "SEK", "NOK", "DKK", "PLN", "CZK", "HUF",
    "RON", "BGN", "HRK", "ISK", "TRY", "RUB", "UAH", "JPY", "CNY", "AUD",
    "CAD", "NZD", "ZAR", "BRL", "MXN", "INR", "KRW", "SGD", "HKD", "TWD",
    "THB", "MYR", "PHP", "IDR", "AED", "SAR", "ILS", "EGP", "ARS", "CLP",
    "COP", "PEN",
})

# ============================================================================
# Countries (ISO 3166-1 alpha-2)
# ============================================================================

COUNTRY_CODES: Final[frozenset[str]] = frozenset("""
AD AE AF AG AI AL AM AO AQ AR AS AT AU AW AX AZ BA BB BD BE BF BG BH BI BJ BL
BM BN BO BQ BR BS BT BV BW BY BZ CA CC CD CF CG CH CI CK CL CM CN CO CR CU CV
CW CX CY CZ DE DJ DK DM DO DZ EC EE EG EH ER ES ET FI FJ FK FM FO FR GA GB GD
GE GF GG GH GI GL GM GN GP GQ GR GS GT GU GW GY HK HM HN HR HT HU ID IE IL IM
IN IO IQ IR IS IT JE JM JO JP KE KG KH KI KM KN KP KR KW KY KZ LA LB LC LI LK
LR LS LT LU LV LY MA MC MD ME MF MG MH MK ML MM MN MO MP MQ MR MS MT MU MV MW
MX MY MZ NA NC NE NF NG NI NL NO NP NR NU NZ OM PA PE PF PG PH PK PL PM PN PR
PS PT PW PY QA RE RO RS RU RW SA SB SC SD SE SG SH SI SJ SK SL SM SN SO SR SS
ST SV SX SY SZ TC TD TF TG TH TJ TK TL TM TN TO TR TT TV TW TZ UA UG UM US UY
UZ VA VC VE VG VI VN VU WF WS YE YT ZA ZM ZW
""".split())

# ============================================================================
# Units (UN/ECE Recommendation 20, common subset)
# ============================================================================

UNIT_CODES: Final[frozenset[str]] = frozenset({
    "C62", "EA", "HUR", "DAY", "MON", "ANN", "H87", "KGM", "MTR", "LTR",
    "MTK", "MTQ", "TNE", "KWH", "MIN", "SEC", "SET", "PR", "BX", "CT",
    "PK", "LS", "XPK", "XBX", "XCT", "KMT", "CMT", "MMT", "GRM", "MLT",
    "CLT", "DLT", "HLT", "PCE", "NAR", "NPR", "XPA", "XUN", "XSA", "LM",
    "WEE", "MOQ", "QAN",
})

# ============================================================================
# Payment Means (UNCL4461)
# ============================================================================

PAYMENT_MEANS_SEPA_TRANSFER: Final[str] = "58"
PAYMENT_MEANS_CREDIT_TRANSFER: Final[str] = "30"
