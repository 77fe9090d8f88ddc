"""
Profile validators and their registry.

The registry is a static table built at import time and read-only
afterwards, so concurrent lookups need no locking.
"""

from typing import Union

from ..config import ProfileId
from .base import EN16931BaseValidator, ProfileValidator
from .ciusro import CIUSROValidator
from .facturx import FacturXBasicValidator, FacturXEN16931Validator
from .fatturapa import FatturaPAValidator
from .ksef import KSeFValidator
from .nlcius import NLCIUSValidator
from .peppol import PeppolValidator
from .xrechnung import XRechnungCIIValidator, XRechnungUBLValidator


def _create_validator(profile: ProfileId) -> ProfileValidator:
    match profile:
        case ProfileId.XRECHNUNG_CII:
            return XRechnungCIIValidator()
        case ProfileId.XRECHNUNG_UBL:
            return XRechnungUBLValidator()
        case ProfileId.PEPPOL_BIS:
            return PeppolValidator()
        case ProfileId.FACTURX_EN16931:
            return FacturXEN16931Validator()
        case ProfileId.FACTURX_BASIC:
            return FacturXBasicValidator()
        case ProfileId.FATTURAPA:
            return FatturaPAValidator()
        case ProfileId.KSEF:
            return KSeFValidator()
        case ProfileId.NLCIUS:
            return NLCIUSValidator()
        case ProfileId.CIUS_RO:
            return CIUSROValidator()
        case ProfileId.EN16931_BASE:
            return EN16931BaseValidator()
    raise AssertionError(f"Unhandled profile: {profile!r}")


PROFILE_VALIDATORS: dict[ProfileId, ProfileValidator] = {
    profile: _create_validator(profile) for profile in ProfileId
}

ALL_PROFILES: list[ProfileId] = list(ProfileId)


def get_profile_validator(profile: Union[ProfileId, str]) -> ProfileValidator:
    """Validator for a profile id; unknown ids fall back to the EN 16931 base."""
    try:
        return PROFILE_VALIDATORS[ProfileId(profile)]
    except ValueError:
        return PROFILE_VALIDATORS[ProfileId.EN16931_BASE]


__all__ = [
    "ALL_PROFILES",
    "PROFILE_VALIDATORS",
    "ProfileValidator",
    "get_profile_validator",
]
