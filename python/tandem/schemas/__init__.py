"""Pydantic schemas for API request/response models."""

from tandem.schemas.companion import (
    CalendarOut,
    ChatPageOut,
    CreateImportantDateRequest,
    MoodOut,
    SendBuzzRequest,
    SendChatMessageRequest,
    SendVoiceMessageRequest,
    SetMoodRequest,
    WalkieStatusOut,
)
from tandem.schemas.consent import (
    ConsentHistoryOut,
    ConsentStatusOut,
    ConsentUpdateOut,
    UpdateConsentRequest,
)
from tandem.schemas.content import (
    CreateMemoryRequest,
    LocationOut,
    LocationStatusOut,
    MemoryOut,
    MemoryPageOut,
    ShareLocationRequest,
    SignedUploadOut,
    SignUploadRequest,
)
from tandem.schemas.identity import (
    PublicUserOut,
    RelationshipHistoryOut,
    UpdateProfileRequest,
    UserProfileOut,
)
from tandem.schemas.pairing import (
    CertificateOut,
    CoupleOut,
    CreatePairRequest,
    DissolveOut,
    DissolveRequest,
    PendingRequestsOut,
    RelationshipInfoOut,
    SetStartDateRequest,
)
from tandem.schemas.streaks import (
    StreakStatusOut,
    SubmitStreakPhotoOut,
    SubmitStreakPhotoRequest,
    ViewStreakPhotoOut,
)

__all__ = [
    # Identity
    "PublicUserOut",
    "RelationshipHistoryOut",
    "UpdateProfileRequest",
    "UserProfileOut",
    # Pairing
    "CertificateOut",
    "CoupleOut",
    "CreatePairRequest",
    "DissolveOut",
    "DissolveRequest",
    "PendingRequestsOut",
    "RelationshipInfoOut",
    "SetStartDateRequest",
    # Consent
    "ConsentHistoryOut",
    "ConsentStatusOut",
    "ConsentUpdateOut",
    "UpdateConsentRequest",
    # Streaks
    "StreakStatusOut",
    "SubmitStreakPhotoOut",
    "SubmitStreakPhotoRequest",
    "ViewStreakPhotoOut",
    # Content
    "CreateMemoryRequest",
    "LocationOut",
    "LocationStatusOut",
    "MemoryOut",
    "MemoryPageOut",
    "ShareLocationRequest",
    "SignedUploadOut",
    "SignUploadRequest",
    # Companion features
    "CalendarOut",
    "ChatPageOut",
    "CreateImportantDateRequest",
    "MoodOut",
    "SendBuzzRequest",
    "SendChatMessageRequest",
    "SendVoiceMessageRequest",
    "SetMoodRequest",
    "WalkieStatusOut",
]
