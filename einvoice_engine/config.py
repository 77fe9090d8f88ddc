"""
Configuration constants and enums for the e-invoice compliance engine.
"""

import logging
import os
from enum import Enum
from typing import Final

# ============================================================================
# Output Formats & Profiles
# ============================================================================

class OutputFormat(str, Enum):
    """Target e-invoice dialects the engine can generate."""
    XRECHNUNG_CII = "xrechnung-cii"
    XRECHNUNG_UBL = "xrechnung-ubl"
    PEPPOL_BIS = "peppol-bis"
    FACTURX_EN16931 = "facturx-en16931"
    FACTURX_BASIC = "facturx-basic"
    FATTURAPA = "fatturapa"
    KSEF = "ksef"
    NLCIUS = "nlcius"
    CIUS_RO = "cius-ro"


class ProfileId(str, Enum):
    """Validation profiles. One per output format plus the EN 16931 base."""
    XRECHNUNG_CII = "xrechnung-cii"
    XRECHNUNG_UBL = "xrechnung-ubl"
    PEPPOL_BIS = "peppol-bis"
    FACTURX_EN16931 = "facturx-en16931"
    FACTURX_BASIC = "facturx-basic"
    FATTURAPA = "fatturapa"
    KSEF = "ksef"
    NLCIUS = "nlcius"
    CIUS_RO = "cius-ro"
    EN16931_BASE = "en16931-base"


# ============================================================================
# Error Categories
# ============================================================================

class ErrorCategory(str, Enum):
    """Categories for validation entries and engine exceptions."""
    SCHEMA = "schema"
    BUSINESS_RULE = "business_rule"
    PROFILE_RULE = "profile_rule"
    GENERATION = "generation"
    STRUCTURAL = "structural"


# ============================================================================
# Monetary Tolerances
# ============================================================================

# Generic tolerance for comparing two money amounts
MONEY_TOLERANCE: Final[float] = float(os.getenv("MONEY_TOLERANCE", "0.01"))

# BR-CO-10 / BR-CO-14 / BR-CO-15 cross-checks
BR_CO_TOLERANCE: Final[float] = float(os.getenv("BR_CO_TOLERANCE", "0.02"))

# Line total vs quantity x unit price reconstructed as gross
LINE_GROSS_TOLERANCE: Final[float] = float(os.getenv("LINE_GROSS_TOLERANCE", "0.02"))

# Minimum absolute deviation before a line total is considered inconsistent
LINE_MISMATCH_MIN: Final[float] = 0.05
LINE_MISMATCH_RATIO: Final[float] = 0.01

# Gross-to-net detection and residual-cents correction
GROSS_DETECTION_TOLERANCE: Final[float] = float(os.getenv("GROSS_DETECTION_TOLERANCE", "0.05"))

# Candidate VAT rates tried when an invoice looks gross-priced, in order
GROSS_CANDIDATE_RATES: Final[tuple[float, ...]] = (0.19, 0.07, 0.20, 0.21, 0.10, 0.05)

# ============================================================================
# Defaults
# ============================================================================

DEFAULT_CURRENCY: Final[str] = "EUR"
DEFAULT_UNIT_CODE: Final[str] = "C62"
DEFAULT_DOCUMENT_TYPE: Final[str] = "380"

# Country assumed for parties with an address but no country, per format
DEFAULT_COUNTRY_BY_FORMAT: Final[dict[OutputFormat, str]] = {
    OutputFormat.XRECHNUNG_CII: "DE",
    OutputFormat.XRECHNUNG_UBL: "DE",
    OutputFormat.FATTURAPA: "IT",
    OutputFormat.KSEF: "PL",
    OutputFormat.NLCIUS: "NL",
    OutputFormat.CIUS_RO: "RO",
}

ENGINE_NAME: Final[str] = "einvoice-engine"
SYSTEM_INFO: Final[str] = os.getenv("EINVOICE_SYSTEM_INFO", "einvoice-engine")

# ============================================================================
# Logging Configuration
# ============================================================================

LOG_LEVEL: Final[str] = os.getenv("LOG_LEVEL", "INFO")

def setup_logging() -> logging.Logger:
    """Configure and return the application logger."""
    logging.basicConfig(
        level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    return logging.getLogger("einvoice_engine")


logger = setup_logging()
