from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any


class DeletionState(str, enum.Enum):
    INITIATED = "INITIATED"
    IDENTITY_RESOLVED = "IDENTITY_RESOLVED"
    DB_CASCADE_DONE = "DB_CASCADE_DONE"
    EXTERNAL_ATTEMPTED = "EXTERNAL_ATTEMPTED"
    AUDITED = "AUDITED"
    ABORTED = "ABORTED"


class DeletionStatus(str, enum.Enum):
    """Tombstone values written onto the identity record."""

    PENDING = "pending"
    FAILED = "failed"
    # cascade left records behind; the external account is already gone
    PARTIAL = "partial"


class ExternalDeletionStatus(str, enum.Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    ERROR = "error"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class ExternalDeletionOutcome:
    status: ExternalDeletionStatus
    message: str | None = None

    @property
    def deleted(self) -> bool:
        return self.status in (ExternalDeletionStatus.OK, ExternalDeletionStatus.NOT_FOUND)

    @classmethod
    def ok(cls) -> ExternalDeletionOutcome:
        return cls(ExternalDeletionStatus.OK)

    @classmethod
    def not_found(cls) -> ExternalDeletionOutcome:
        return cls(ExternalDeletionStatus.NOT_FOUND)

    @classmethod
    def error(cls, message: str) -> ExternalDeletionOutcome:
        return cls(ExternalDeletionStatus.ERROR, message)


@dataclass(frozen=True)
class DeletionRequest:
    target_user_id: str
    actor_id: str
    reason: str
    reassign_to: str | None = None
    delete_storage_files: bool = True
    skip_external: bool = False

    @property
    def is_self_deletion(self) -> bool:
        return self.actor_id == self.target_user_id


@dataclass
class TableCascadeStats:
    table: str
    deleted: int = 0
    anonymized: int = 0
    reassigned: int = 0
    preserved: int = 0
    failed: int = 0
    chunks: int = 0

    @property
    def touched(self) -> int:
        return self.deleted + self.anonymized + self.reassigned + self.preserved

    def summary(self) -> str:
        return (
            f"{self.table}:{self.touched} (del:{self.deleted} anon:{self.anonymized} "
            f"reas:{self.reassigned} pres:{self.preserved} fail:{self.failed})"
        )


@dataclass
class CascadeResult:
    """Aggregate outcome of running every cascade table for one user."""

    user_id: str
    tables: list[TableCascadeStats] = field(default_factory=list)
    files_deleted: list[str] = field(default_factory=list)
    files_failed: int = 0
    identity_record_deleted: bool = False

    @property
    def tables_processed(self) -> list[str]:
        return [t.table for t in self.tables if t.touched > 0]

    @property
    def records_deleted(self) -> int:
        return sum(t.deleted for t in self.tables)

    @property
    def records_anonymized(self) -> int:
        return sum(t.anonymized for t in self.tables)

    @property
    def records_reassigned(self) -> int:
        return sum(t.reassigned for t in self.tables)

    @property
    def records_preserved(self) -> int:
        return sum(t.preserved for t in self.tables)

    @property
    def records_failed(self) -> int:
        return sum(t.failed for t in self.tables)

    @property
    def chunks(self) -> int:
        return sum(t.chunks for t in self.tables)

    def as_dict(self) -> dict[str, Any]:
        return {
            "tables_processed": self.tables_processed,
            "related_tables": [t.summary() for t in self.tables if t.touched or t.failed],
            "records_deleted": self.records_deleted,
            "records_anonymized": self.records_anonymized,
            "records_reassigned": self.records_reassigned,
            "records_preserved": self.records_preserved,
            "records_failed": self.records_failed,
            "files_deleted": list(self.files_deleted),
            "files_failed": self.files_failed,
            "chunks": self.chunks,
            "identity_record_deleted": self.identity_record_deleted,
        }


@dataclass
class DeletionResult:
    """
    What the orchestrator hands back. Filled in step by step, so a result
    from an aborted or partially failed run still reports what happened.
    """

    target_user_id: str
    actor_id: str
    state: DeletionState = DeletionState.INITIATED
    tables_processed: list[str] = field(default_factory=list)
    records_deleted: int = 0
    records_anonymized: int = 0
    records_reassigned: int = 0
    records_preserved: int = 0
    records_failed: int = 0
    files_deleted: list[str] = field(default_factory=list)
    chunks_processed: int = 0
    identity_record_deleted: bool = False
    external_deleted: bool = False
    external_error: str | None = None
    audit_entry_id: str | None = None
    audit_error: str | None = None
    error: str | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    completed_at: datetime | None = None

    @property
    def cascade_succeeded(self) -> bool:
        return self.error is None and self.state not in (
            DeletionState.INITIATED,
            DeletionState.IDENTITY_RESOLVED,
            DeletionState.ABORTED,
        )

    @property
    def duration_ms(self) -> float | None:
        if self.completed_at is None:
            return None
        return round((self.completed_at - self.started_at).total_seconds() * 1000, 2)

    def as_dict(self) -> dict[str, Any]:
        return {
            "target_user_id": self.target_user_id,
            "actor_id": self.actor_id,
            "state": self.state.value,
            "tables_processed": list(self.tables_processed),
            "records_deleted": self.records_deleted,
            "records_anonymized": self.records_anonymized,
            "records_reassigned": self.records_reassigned,
            "records_preserved": self.records_preserved,
            "records_failed": self.records_failed,
            "files_deleted": list(self.files_deleted),
            "chunks_processed": self.chunks_processed,
            "identity_record_deleted": self.identity_record_deleted,
            "external_deleted": self.external_deleted,
            "external_error": self.external_error,
            "audit_entry_id": self.audit_entry_id,
            "audit_error": self.audit_error,
            "error": self.error,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "duration_ms": self.duration_ms,
        }

    def apply_cascade(self, cascade: CascadeResult) -> None:
        self.tables_processed = cascade.tables_processed
        self.records_deleted = cascade.records_deleted
        self.records_anonymized = cascade.records_anonymized
        self.records_reassigned = cascade.records_reassigned
        self.records_preserved = cascade.records_preserved
        self.records_failed = cascade.records_failed
        self.files_deleted = list(cascade.files_deleted)
        self.chunks_processed = cascade.chunks
        self.identity_record_deleted = cascade.identity_record_deleted
