"""Storage module for Supabase Storage operations.

Provides:
- StorageClient for interacting with Supabase Storage
- Path building utilities for consistent content paths
- Test isolation support via configurable prefixes
"""

from tandem.storage.client import (
    FakeStorageClient,
    SignedUpload,
    StorageClient,
    StorageClientBase,
    StorageError,
    get_storage_client,
)
from tandem.storage.paths import build_content_path, get_file_extension, is_couple_content_path

__all__ = [
    "StorageClient",
    "StorageClientBase",
    "StorageError",
    "FakeStorageClient",
    "SignedUpload",
    "get_storage_client",
    "build_content_path",
    "get_file_extension",
    "is_couple_content_path",
]
