"""Signed direct uploads for couple content.

Clients upload image or audio bytes straight to storage using a signed target, then
submit the returned path as ``content_ref``. Paths are always generated
here, under the couple's prefix, so a submission can be checked against it.
"""

from uuid import uuid4

from tandem.auth.gate import CoupleContext
from tandem.config import get_settings
from tandem.errors import ApiError, ApiErrorCode, InvalidRequestError
from tandem.logging import get_logger
from tandem.schemas.content import SignedUploadOut
from tandem.storage.client import StorageClientBase, StorageError
from tandem.storage.paths import CONTENT_KINDS, build_content_path, get_file_extension

logger = get_logger(__name__)


def sign_content_upload(
    ctx: CoupleContext, kind: str, content_type: str, storage: StorageClientBase
) -> SignedUploadOut:
    """Create a signed upload target for a streak photo, memory or voice note.

    Raises:
        InvalidRequestError(E_INVALID_KIND): Unknown content kind.
        InvalidRequestError(E_INVALID_CONTENT_TYPE): Not accepted for the kind.
        ApiError(E_SIGN_UPLOAD_FAILED): Storage refused to sign.
    """
    if kind not in CONTENT_KINDS:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_KIND,
            f"Invalid kind '{kind}'. Expected one of: {', '.join(CONTENT_KINDS)}",
        )

    try:
        ext = get_file_extension(content_type, kind)
    except ValueError as e:
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_CONTENT_TYPE,
            f"Unsupported content type '{content_type}' for {kind}",
        ) from e

    expires_in = get_settings().signed_url_expiry_s
    path = build_content_path(ctx.couple_id, kind, uuid4(), ext)

    try:
        signed = storage.sign_upload(path, expires_in=expires_in)
    except StorageError as e:
        logger.error("upload.sign_failed", couple_id=str(ctx.couple_id), kind=kind, error=e.message)
        raise ApiError(ApiErrorCode.E_SIGN_UPLOAD_FAILED, "Failed to create upload URL") from e

    logger.info("upload.signed", couple_id=str(ctx.couple_id), kind=kind)
    return SignedUploadOut(path=signed.path, token=signed.token, expires_in=expires_in)
