"""Shared memories service layer.

Memories are soft-deleted through their status column and never removed
from the database. Every read goes through ``active_memories`` so archived
and deleted rows stay out of normal listings.

Access is decided by the gate before these functions run: upload needs
photoSharing, everything else needs memoryAccess.
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Select, func, select
from sqlalchemy.orm import Session

from tandem.auth.gate import CoupleContext
from tandem.config import get_settings
from tandem.db.models import Memory, MemoryStatus
from tandem.db.session import transaction
from tandem.db.types import utc_now
from tandem.errors import ApiError, ApiErrorCode, InvalidRequestError, NotFoundError
from tandem.logging import get_logger
from tandem.schemas.content import CreateMemoryRequest, MemoryOut, MemoryPageOut
from tandem.storage.client import StorageClientBase, StorageError
from tandem.storage.paths import is_couple_content_path

logger = get_logger(__name__)

DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100


def active_memories(couple_id: UUID, *statuses: MemoryStatus) -> Select:
    """Memories of a couple, restricted to ``active`` unless statuses are given."""
    wanted = [status.value for status in statuses] or [MemoryStatus.active.value]
    return select(Memory).where(Memory.couple_id == couple_id, Memory.status.in_(wanted))


def _memory_out(memory: Memory, storage: StorageClientBase | None = None) -> MemoryOut:
    view_url = None
    if storage is not None:
        try:
            view_url = storage.sign_download(
                memory.content_ref, expires_in=get_settings().signed_url_expiry_s
            )
        except StorageError as e:
            logger.warning("memory.sign_download_failed", error=e.message)
            raise ApiError(
                ApiErrorCode.E_SIGN_DOWNLOAD_FAILED, "Failed to sign memory URL"
            ) from e

    return MemoryOut(
        id=memory.id,
        uploaded_by=memory.uploaded_by,
        caption=memory.caption,
        status=memory.status,
        created_at=memory.created_at,
        view_url=view_url,
    )


def _get_active_memory_or_404(db: Session, couple_id: UUID, memory_id: UUID) -> Memory:
    memory = db.scalar(active_memories(couple_id).where(Memory.id == memory_id))
    if memory is None:
        raise NotFoundError(ApiErrorCode.E_MEMORY_NOT_FOUND, "Memory not found")
    return memory


def create_memory(
    db: Session, ctx: CoupleContext, req: CreateMemoryRequest, now: datetime | None = None
) -> MemoryOut:
    """Save an uploaded photo as a shared memory.

    Raises:
        InvalidRequestError(E_INVALID_CONTENT_REF): Path is not this couple's memory upload.
    """
    now = now or utc_now()
    if not is_couple_content_path(req.content_ref, ctx.couple_id, "memories"):
        raise InvalidRequestError(
            ApiErrorCode.E_INVALID_CONTENT_REF, "Photo reference is not a memory upload"
        )

    caption = req.caption.strip() if req.caption else None

    with transaction(db):
        memory = Memory(
            couple_id=ctx.couple_id,
            uploaded_by=ctx.viewer_id,
            content_ref=req.content_ref,
            caption=caption or None,
            status=MemoryStatus.active.value,
            created_at=now,
            updated_at=now,
        )
        db.add(memory)
        db.flush()
        result = _memory_out(memory)

    logger.info("memory.created", couple_id=str(ctx.couple_id), memory_id=str(memory.id))
    return result


def list_memories(
    db: Session,
    ctx: CoupleContext,
    storage: StorageClientBase,
    page: int = 1,
    limit: int = DEFAULT_PAGE_LIMIT,
) -> MemoryPageOut:
    """Active memories, newest first, one page at a time."""
    page = max(1, page)
    limit = max(1, min(limit, MAX_PAGE_LIMIT))

    base = active_memories(ctx.couple_id)
    total = db.scalar(select(func.count()).select_from(base.subquery()))
    memories = db.scalars(
        base.order_by(Memory.created_at.desc(), Memory.id)
        .offset((page - 1) * limit)
        .limit(limit)
    ).all()

    return MemoryPageOut(
        memories=[_memory_out(memory, storage) for memory in memories],
        page=page,
        limit=limit,
        total=total or 0,
    )


def get_memory(
    db: Session, ctx: CoupleContext, memory_id: UUID, storage: StorageClientBase
) -> MemoryOut:
    return _memory_out(_get_active_memory_or_404(db, ctx.couple_id, memory_id), storage)


def delete_memory(
    db: Session,
    ctx: CoupleContext,
    memory_id: UUID,
    storage: StorageClientBase,
    now: datetime | None = None,
) -> None:
    """Soft-delete a memory. Either partner may delete.

    The hosted object is removed best-effort after the commit.

    Raises:
        NotFoundError(E_MEMORY_NOT_FOUND)
    """
    now = now or utc_now()

    with transaction(db):
        memory = _get_active_memory_or_404(db, ctx.couple_id, memory_id)
        memory.status = MemoryStatus.deleted.value
        memory.deleted_by = ctx.viewer_id
        memory.deleted_at = now
        memory.updated_at = now
        content_ref = memory.content_ref

    if not storage.delete_object(content_ref):
        logger.warning("memory.object_delete_failed", memory_id=str(memory_id))

    logger.info("memory.deleted", couple_id=str(ctx.couple_id), memory_id=str(memory_id))
