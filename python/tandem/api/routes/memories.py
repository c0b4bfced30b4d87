"""Shared memory routes.

Creating memories requires photoSharing; browsing and deleting them
requires memoryAccess.

IMPORTANT: /memories/uploads is registered BEFORE /memories/{memory_id}.
"""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from tandem.api.deps import get_db, get_storage
from tandem.auth.gate import CoupleContext, require_consent
from tandem.db.models import ConsentType
from tandem.responses import success_response
from tandem.schemas.content import CreateMemoryRequest, SignUploadRequest
from tandem.services import memories as memories_service
from tandem.services.uploads import sign_content_upload
from tandem.storage.client import StorageClientBase

router = APIRouter()

PhotoSharing = Annotated[CoupleContext, Depends(require_consent(ConsentType.photo_sharing))]
MemoryAccess = Annotated[CoupleContext, Depends(require_consent(ConsentType.memory_access))]


@router.post("/memories/uploads")
def sign_memory_upload(
    ctx: PhotoSharing,
    body: SignUploadRequest,
    storage: Annotated[StorageClientBase, Depends(get_storage)],
) -> dict:
    result = sign_content_upload(ctx, "memories", body.content_type, storage)
    return success_response(result.model_dump(mode="json"))


@router.post("/memories", status_code=201)
def create_memory(
    ctx: PhotoSharing,
    body: CreateMemoryRequest,
    db: Annotated[Session, Depends(get_db)],
) -> dict:
    """Save an uploaded photo as a shared memory."""
    result = memories_service.create_memory(db, ctx, body)
    return success_response(result.model_dump(mode="json"))


@router.get("/memories")
def list_memories(
    ctx: MemoryAccess,
    db: Annotated[Session, Depends(get_db)],
    storage: Annotated[StorageClientBase, Depends(get_storage)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, description="Page size (clamped to 100)")] = 20,
) -> dict:
    result = memories_service.list_memories(db, ctx, storage, page=page, limit=limit)
    return success_response(result.model_dump(mode="json"))


@router.get("/memories/{memory_id}")
def get_memory(
    memory_id: UUID,
    ctx: MemoryAccess,
    db: Annotated[Session, Depends(get_db)],
    storage: Annotated[StorageClientBase, Depends(get_storage)],
) -> dict:
    result = memories_service.get_memory(db, ctx, memory_id, storage)
    return success_response(result.model_dump(mode="json"))


@router.delete("/memories/{memory_id}", status_code=204)
def delete_memory(
    memory_id: UUID,
    ctx: MemoryAccess,
    db: Annotated[Session, Depends(get_db)],
    storage: Annotated[StorageClientBase, Depends(get_storage)],
) -> Response:
    """Delete a memory for both partners."""
    memories_service.delete_memory(db, ctx, memory_id, storage)
    return Response(status_code=204)
