"""FastAPI dependencies for route handlers.

Common dependencies like database sessions and the content store.
"""

from tandem.db.session import get_db, get_session_factory
from tandem.storage.client import StorageClientBase, get_storage_client

__all__ = ["get_db", "get_session_factory", "get_storage"]


def get_storage() -> StorageClientBase:
    """The content-hosting client (overridden with a fake in tests)."""
    return get_storage_client()
