"""Storage path building utilities.

This module provides the single point of logic for building content paths.
All path construction must go through build_content_path() to ensure
consistent prefix handling between production and test environments.

Path Invariant:
    - Production: couples/{couple_id}/{kind}/{object_id}.{ext}
    - Test: test_runs/{run_id}/couples/{couple_id}/{kind}/{object_id}.{ext}

Rules:
    - No leading slash
    - No user identifiers in paths
    - Prefix applied exactly once in build_content_path()
"""

import os
import re
from uuid import UUID

# Environment variable for test run prefix
TEST_PREFIX_ENV_VAR = "STORAGE_TEST_PREFIX"

# Accepted MIME types per media family
IMAGE_TYPE_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/heic": "heic",
}
AUDIO_TYPE_EXTENSIONS = {
    "audio/mp4": "m4a",
    "audio/m4a": "m4a",
    "audio/x-m4a": "m4a",
    "audio/aac": "aac",
    "audio/mpeg": "mp3",
    "audio/ogg": "ogg",
    "audio/webm": "webm",
    "audio/wav": "wav",
}

# Content kind -> accepted types for it
KIND_TYPE_EXTENSIONS = {
    "streaks": IMAGE_TYPE_EXTENSIONS,
    "memories": IMAGE_TYPE_EXTENSIONS,
    "voice": AUDIO_TYPE_EXTENSIONS,
}
CONTENT_KINDS = tuple(KIND_TYPE_EXTENSIONS)

_OBJECT_NAME_PATTERN = re.compile(r"^[0-9a-f-]{36}\.[a-z0-9]{3,4}$")


def _get_test_prefix() -> str:
    """Get the test prefix from environment.

    Returns:
        Empty string in production, "test_runs/{run_id}/" in test.
    """
    prefix = os.environ.get(TEST_PREFIX_ENV_VAR, "")
    if prefix and not prefix.endswith("/"):
        prefix = f"{prefix}/"
    return prefix


def get_file_extension(content_type: str, kind: str = "memories") -> str:
    """Get the file extension for a content type accepted for ``kind``.

    Images for streaks and memories, audio for voice notes.

    Raises:
        ValueError: If the content type is not accepted for the kind.
    """
    ext = KIND_TYPE_EXTENSIONS.get(kind, {}).get(content_type.lower())
    if ext is None:
        raise ValueError(f"{content_type} is not accepted for {kind}")
    return ext


def couple_prefix(couple_id: UUID) -> str:
    """Path prefix under which all of a couple's content lives."""
    return f"{_get_test_prefix()}couples/{couple_id}/"


def build_content_path(couple_id: UUID, kind: str, object_id: UUID, ext: str) -> str:
    """Build the storage path for a piece of couple content.

    Args:
        couple_id: Owning couple.
        kind: One of CONTENT_KINDS.
        object_id: Fresh identifier for the object.
        ext: File extension without leading dot.

    Raises:
        ValueError: If kind is unknown.
    """
    if kind not in CONTENT_KINDS:
        raise ValueError(f"Unknown content kind: {kind}")
    return f"{couple_prefix(couple_id)}{kind}/{object_id}.{ext}"


def is_couple_content_path(path: str, couple_id: UUID, kind: str) -> bool:
    """Check that a client-supplied reference points at this couple's content.

    Only exact paths produced by build_content_path() for the couple and
    kind are accepted.
    """
    expected_prefix = f"{couple_prefix(couple_id)}{kind}/"
    if not path.startswith(expected_prefix):
        return False
    return bool(_OBJECT_NAME_PATTERN.match(path[len(expected_prefix) :]))
