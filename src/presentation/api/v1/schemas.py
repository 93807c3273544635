"""
Pydantic v2 request/response schemas for the user-deletion API.

All models use strict validation, include OpenAPI examples, and follow
RFC 9457 Problem Details for error responses.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from domain.models.audit import DeletionAuditEntry
from domain.models.deletion import DeletionResult

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class DeletionStateName(str, Enum):
    INITIATED = "INITIATED"
    IDENTITY_RESOLVED = "IDENTITY_RESOLVED"
    DB_CASCADE_DONE = "DB_CASCADE_DONE"
    EXTERNAL_ATTEMPTED = "EXTERNAL_ATTEMPTED"
    AUDITED = "AUDITED"
    ABORTED = "ABORTED"


# ---------------------------------------------------------------------------
# RFC 9457 Problem Details
# ---------------------------------------------------------------------------


class ProblemDetail(BaseModel):
    """Standard error response per RFC 9457."""

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "type": "https://api.user-deletion.example/problems/deletion-in-progress",
                    "title": "Deletion In Progress",
                    "status": 409,
                    "detail": "A deletion for user 'u-42' started 12s ago and is still running.",
                    "instance": "/api/v1/admin/users/u-42/deletion",
                }
            ]
        }
    )

    type: str = Field(default="about:blank")
    title: str
    status: int
    detail: str
    instance: str | None = None
    errors: list[dict[str, Any]] | None = None


# ---------------------------------------------------------------------------
# Deletion
# ---------------------------------------------------------------------------


class UserDeletionRequest(BaseModel):
    model_config = ConfigDict(
        str_strip_whitespace=True,
        json_schema_extra={
            "examples": [
                {
                    "actor_id": "u-admin",
                    "reason": "Account closure requested by the user",
                    "reassign_to": "u-lead",
                    "delete_storage_files": True,
                    "skip_external": False,
                }
            ]
        },
    )

    actor_id: str = Field(..., min_length=1, max_length=64, description="Who is asking.")
    reason: str = Field(..., min_length=1, max_length=500)
    reassign_to: str | None = Field(
        default=None, max_length=64, description="New owner for reassigned records."
    )
    delete_storage_files: bool = True
    skip_external: bool = False

    @field_validator("reassign_to")
    @classmethod
    def blank_reassign_is_none(cls, v: str | None) -> str | None:
        return v or None


class UserDeletionResponse(BaseModel):
    target_user_id: str
    actor_id: str
    state: DeletionStateName
    tables_processed: list[str]
    records_deleted: int
    records_anonymized: int
    records_reassigned: int
    records_preserved: int
    records_failed: int
    files_deleted: list[str]
    chunks_processed: int
    identity_record_deleted: bool
    external_deleted: bool
    external_error: str | None = None
    audit_entry_id: str | None = None
    audit_error: str | None = None
    error: str | None = None
    started_at: datetime
    completed_at: datetime | None = None
    duration_ms: float | None = None

    @classmethod
    def from_result(cls, result: DeletionResult) -> UserDeletionResponse:
        return cls(
            target_user_id=result.target_user_id,
            actor_id=result.actor_id,
            state=DeletionStateName(result.state.value),
            tables_processed=list(result.tables_processed),
            records_deleted=result.records_deleted,
            records_anonymized=result.records_anonymized,
            records_reassigned=result.records_reassigned,
            records_preserved=result.records_preserved,
            records_failed=result.records_failed,
            files_deleted=list(result.files_deleted),
            chunks_processed=result.chunks_processed,
            identity_record_deleted=result.identity_record_deleted,
            external_deleted=result.external_deleted,
            external_error=result.external_error,
            audit_entry_id=result.audit_entry_id,
            audit_error=result.audit_error,
            error=result.error,
            started_at=result.started_at,
            completed_at=result.completed_at,
            duration_ms=result.duration_ms,
        )


# ---------------------------------------------------------------------------
# Deletion log
# ---------------------------------------------------------------------------


class DeletionLogEntry(BaseModel):
    id: str
    target_user_id: str
    actor_id: str
    actor_role: str
    reason: str
    status: str
    cascade_outcome: dict[str, Any]
    external_outcome: dict[str, Any]
    error: str | None = None
    timestamp: datetime
    previous_hash: str
    entry_hash: str
    verified: bool

    @classmethod
    def from_entry(cls, entry: DeletionAuditEntry) -> DeletionLogEntry:
        return cls(
            id=entry.id,
            target_user_id=entry.target_user_id,
            actor_id=entry.actor_id,
            actor_role=entry.actor_role.value,
            reason=entry.reason,
            status=entry.status.value,
            cascade_outcome=entry.cascade_outcome,
            external_outcome=entry.external_outcome,
            error=entry.error,
            timestamp=entry.timestamp,
            previous_hash=entry.previous_hash,
            entry_hash=entry.entry_hash,
            verified=entry.verify(),
        )


class PaginationMeta(BaseModel):
    offset: int = Field(..., ge=0)
    limit: int = Field(..., ge=1)
    returned: int = Field(..., ge=0)


class DeletionLogResponse(BaseModel):
    items: list[DeletionLogEntry]
    pagination: PaginationMeta
