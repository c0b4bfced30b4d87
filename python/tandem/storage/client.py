"""Supabase Storage client abstraction.

Streak photos and memories are hosted in Supabase Storage; the database only
ever holds opaque storage paths. Provides:
- Signed upload URLs (for direct client uploads)
- Signed download URLs (for time-limited viewing)
- Object deletion (best-effort)

All methods receive the full storage path directly - no prefix manipulation.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from functools import lru_cache
from uuid import uuid4

import httpx

from tandem.config import get_settings
from tandem.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class SignedUpload:
    """Supabase signed upload response.

    Use with supabase.storage.uploadToSignedUrl(path, token, file) on client.
    """

    path: str
    token: str


class StorageError(Exception):
    """Storage operation error."""

    def __init__(self, message: str, code: str = "E_STORAGE_ERROR"):
        super().__init__(message)
        self.message = message
        self.code = code


class StorageClientBase(ABC):
    """Abstract base class for storage client implementations."""

    @abstractmethod
    def sign_upload(self, path: str, *, expires_in: int = 300) -> SignedUpload:
        """Create a signed upload URL for direct client upload.

        Raises:
            StorageError: If signing fails.
        """
        ...

    @abstractmethod
    def sign_download(self, path: str, *, expires_in: int = 300) -> str:
        """Create a signed download URL.

        Raises:
            StorageError: If signing fails.
        """
        ...

    @abstractmethod
    def delete_object(self, path: str) -> bool:
        """Delete an object from storage.

        Best-effort operation - logs errors but doesn't raise.

        Returns:
            True if the object is gone afterwards, False otherwise.
        """
        ...


class StorageClient(StorageClientBase):
    """Production Supabase Storage client.

    Uses httpx for HTTP operations against Supabase Storage API.
    """

    def __init__(self, supabase_url: str, service_key: str, bucket: str = "content"):
        self._base_url = supabase_url.rstrip("/")
        self._bucket = bucket
        self._storage_url = f"{self._base_url}/storage/v1"
        self._headers = {
            "Authorization": f"Bearer {service_key}",
            "apikey": service_key,
        }

    def sign_upload(self, path: str, *, expires_in: int = 300) -> SignedUpload:
        """Create signed upload URL via Supabase Storage API."""
        url = f"{self._storage_url}/object/upload/sign/{self._bucket}/{path}"

        with httpx.Client() as client:
            response = client.post(
                url,
                headers=self._headers,
                json={"expiresIn": expires_in},
                timeout=30.0,
            )

        if response.status_code != 200:
            raise StorageError(
                f"Failed to sign upload: {response.status_code}",
                code="E_SIGN_UPLOAD_FAILED",
            )

        data = response.json()
        token = data.get("token", "")
        if not token:
            signed_url = data.get("url", "")
            if "token=" in signed_url:
                token = signed_url.split("token=")[1].split("&")[0]
        if not token:
            raise StorageError(
                "Failed to sign upload: missing token", code="E_SIGN_UPLOAD_FAILED"
            )

        return SignedUpload(path=path, token=token)

    def sign_download(self, path: str, *, expires_in: int = 300) -> str:
        """Create signed download URL via Supabase Storage API."""
        url = f"{self._storage_url}/object/sign/{self._bucket}/{path}"

        with httpx.Client() as client:
            response = client.post(
                url,
                headers=self._headers,
                json={"expiresIn": expires_in},
                timeout=30.0,
            )

        if response.status_code != 200:
            raise StorageError(
                f"Failed to sign download: {response.status_code}",
                code="E_SIGN_DOWNLOAD_FAILED",
            )

        data = response.json()
        signed_path = data.get("signedURL") or data.get("signedUrl") or ""
        if not signed_path:
            raise StorageError(
                "Failed to sign download: missing signed URL",
                code="E_SIGN_DOWNLOAD_FAILED",
            )

        # Supabase may return relative paths (with or without /storage/v1).
        if signed_path.startswith(("http://", "https://")):
            return signed_path
        if signed_path.startswith("/storage/"):
            return f"{self._base_url}{signed_path}"
        return f"{self._storage_url}/{signed_path.lstrip('/')}"

    def delete_object(self, path: str) -> bool:
        """Delete object from storage (best-effort)."""
        url = f"{self._storage_url}/object/{self._bucket}/{path}"

        try:
            with httpx.Client() as client:
                response = client.delete(url, headers=self._headers, timeout=30.0)
        except httpx.HTTPError as e:
            logger.warning("storage.delete_error", error=str(e))
            return False

        if response.status_code not in (200, 204, 404):
            logger.warning("storage.delete_failed", status_code=response.status_code)
            return False
        return True


class FakeStorageClient(StorageClientBase):
    """Fake storage client for testing without real Supabase.

    Tracks objects in memory and provides deterministic behavior for unit tests.
    """

    def __init__(self):
        self._objects: set[str] = set()
        self.deleted: list[str] = []

    def sign_upload(self, path: str, *, expires_in: int = 300) -> SignedUpload:
        return SignedUpload(path=path, token=f"fake-token-{uuid4()}")

    def sign_download(self, path: str, *, expires_in: int = 300) -> str:
        return f"https://fake-storage.test/download/{path}?token=fake-{uuid4()}"

    def delete_object(self, path: str) -> bool:
        self._objects.discard(path)
        self.deleted.append(path)
        return True

    # Test helper methods

    def put_object(self, path: str) -> None:
        """Register an object as uploaded (test helper)."""
        self._objects.add(path)

    def has_object(self, path: str) -> bool:
        return path in self._objects


@lru_cache
def get_storage_client() -> StorageClientBase:
    """Get the configured storage client.

    Returns:
        StorageClient if SUPABASE_URL and SUPABASE_SERVICE_KEY are set,
        FakeStorageClient otherwise.
    """
    settings = get_settings()

    if settings.supabase_url and settings.supabase_service_key:
        return StorageClient(
            supabase_url=settings.supabase_url,
            service_key=settings.supabase_service_key,
            bucket=settings.storage_bucket,
        )

    # Fake client for local dev / tests without Supabase
    return FakeStorageClient()
