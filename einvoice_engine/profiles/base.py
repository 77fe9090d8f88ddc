"""
Profile validator interface.
"""

from abc import ABC, abstractmethod

from ..config import ProfileId
from ..schemas import CanonicalInvoice, ValidationError


class ProfileValidator(ABC):
    """Rule set of one validation profile."""

    profile_id: ProfileId
    profile_name: str

    @abstractmethod
    def validate(self, invoice: CanonicalInvoice) -> list[ValidationError]:
        """Return profile-specific findings; never raises for data problems."""

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.profile_id.value}>"


class EN16931BaseValidator(ProfileValidator):
    """EN 16931 core: the shared pipeline stages only, no extra rules."""

    profile_id = ProfileId.EN16931_BASE
    profile_name = "EN 16931 Base"

    def validate(self, invoice: CanonicalInvoice) -> list[ValidationError]:
        return []
