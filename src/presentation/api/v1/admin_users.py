"""Administrative user-deletion endpoints."""

from __future__ import annotations

from typing import TYPE_CHECKING, Annotated

from fastapi import APIRouter, Depends, Path, Query, status

from domain.models.deletion import DeletionRequest
from infrastructure.container import get_audit_sink, get_deletion_service

from .schemas import (
    DeletionLogEntry,
    DeletionLogResponse,
    PaginationMeta,
    ProblemDetail,
    UserDeletionRequest,
    UserDeletionResponse,
)

if TYPE_CHECKING:
    from application.services.user_deletion_service import (
        DeletionAuditSink,
        UserDeletionService,
    )

router = APIRouter(prefix="/admin", tags=["User Deletion"])

UserID = Annotated[str, Path(min_length=1, max_length=64, description="User to delete.")]

_ERROR_RESPONSES: dict[int | str, dict[str, object]] = {
    code: {"model": ProblemDetail}
    for code in (
        status.HTTP_403_FORBIDDEN,
        status.HTTP_404_NOT_FOUND,
        status.HTTP_409_CONFLICT,
        status.HTTP_422_UNPROCESSABLE_ENTITY,
    )
}


@router.post(
    "/users/{user_id}/deletion",
    response_model=UserDeletionResponse,
    status_code=status.HTTP_200_OK,
    summary="Delete a user and cascade through every owned record",
    responses=_ERROR_RESPONSES,
)
def delete_user(
    user_id: UserID,
    body: UserDeletionRequest,
    service: UserDeletionService = Depends(get_deletion_service),
) -> UserDeletionResponse:
    result = service.delete_user(
        DeletionRequest(
            target_user_id=user_id,
            actor_id=body.actor_id,
            reason=body.reason,
            reassign_to=body.reassign_to,
            delete_storage_files=body.delete_storage_files,
            skip_external=body.skip_external,
        )
    )
    return UserDeletionResponse.from_result(result)


@router.get(
    "/deletion-log",
    response_model=DeletionLogResponse,
    summary="List deletion journal entries, newest first",
)
def list_deletion_log(
    offset: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    audit_sink: DeletionAuditSink = Depends(get_audit_sink),
) -> DeletionLogResponse:
    entries = audit_sink.list_entries(offset=offset, limit=limit)
    return DeletionLogResponse(
        items=[DeletionLogEntry.from_entry(e) for e in entries],
        pagination=PaginationMeta(offset=offset, limit=limit, returned=len(entries)),
    )
