"""Consent Pydantic schemas.

Toggle names on the wire are exactly ``photoSharing``, ``memoryAccess`` and
``locationSharing``.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from tandem.db.models import ConsentType

__all__ = [
    "UpdateConsentRequest",
    "ConsentUpdateOut",
    "FeatureStatusOut",
    "ConsentStatusOut",
    "ConsentHistoryOut",
]


class UpdateConsentRequest(BaseModel):
    """Partial update of the caller's consent flags. Omitted toggles are untouched."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    photo_sharing: bool | None = Field(default=None, alias="photoSharing")
    memory_access: bool | None = Field(default=None, alias="memoryAccess")
    location_sharing: bool | None = Field(default=None, alias="locationSharing")

    def changes(self) -> dict[ConsentType, bool]:
        requested = {
            ConsentType.photo_sharing: self.photo_sharing,
            ConsentType.memory_access: self.memory_access,
            ConsentType.location_sharing: self.location_sharing,
        }
        return {key: value for key, value in requested.items() if value is not None}


class ConsentUpdateOut(BaseModel):
    my_consent: dict[str, bool]
    active_features: list[str]
    changed: list[str]


class FeatureStatusOut(BaseModel):
    me: bool
    partner: bool
    active: bool


class ConsentStatusOut(BaseModel):
    my_consent: dict[str, bool]
    partner_consent: dict[str, bool]
    active_features: list[str]
    features: dict[str, FeatureStatusOut]
    my_last_updated_at: datetime | None
    partner_last_updated_at: datetime | None


class ConsentHistoryOut(BaseModel):
    """One audit entry."""

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    consent_type: str
    enabled: bool
    source: str
    created_at: datetime
