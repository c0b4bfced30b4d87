"""Database module for Tandem.

Provides engine creation, session management, transaction helpers, and ORM models.
"""

from tandem.db.engine import create_db_engine, get_engine
from tandem.db.models import (
    AnonymousReview,
    Base,
    ConsentHistoryEntry,
    ConsentLedger,
    ConsentSource,
    ConsentType,
    Couple,
    CoupleSeat,
    CoupleStatus,
    LocationShare,
    Memory,
    MemoryStatus,
    PairRequest,
    PairRequestStatus,
    PartnerConsent,
    RelationshipHistoryEntry,
    RelationshipStatus,
    StreakCounter,
    StreakPhoto,
    User,
)
from tandem.db.session import get_db, insert_or_conflict, transaction

__all__ = [
    # Engine and session
    "create_db_engine",
    "get_engine",
    "get_db",
    "transaction",
    "insert_or_conflict",
    # Base
    "Base",
    # Enums
    "RelationshipStatus",
    "CoupleStatus",
    "PairRequestStatus",
    "ConsentType",
    "ConsentSource",
    "MemoryStatus",
    # Value objects
    "PairRequest",
    # Models
    "User",
    "RelationshipHistoryEntry",
    "Couple",
    "CoupleSeat",
    "AnonymousReview",
    "ConsentLedger",
    "PartnerConsent",
    "ConsentHistoryEntry",
    "StreakPhoto",
    "StreakCounter",
    "Memory",
    "LocationShare",
]
