"""
Strategy appliers for the user-deletion cascade.

Each applier handles exactly one record and is idempotent: running it again
over a record it already processed is a successful no-op, and a record that
vanished in between counts as success. The batch variants are fail-resume:
a failing record is logged and skipped and the rest of the batch still runs.
"""

from __future__ import annotations

import enum
import logging
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from typing import Any, Protocol

from domain.exceptions import NotFoundError, PreconditionError
from domain.models.manifest import DeletionStrategy

logger = logging.getLogger(__name__)

DELETED_USER_SENTINEL = "deleted-user"
REDACTED = "[REDACTED]"

PII_FIELDS: tuple[str, ...] = (
    "email",
    "first_name",
    "last_name",
    "full_name",
    "display_name",
    "phone_number",
    "address",
    "ip_address",
    "user_agent",
)

ANONYMIZED_REASON = "User deletion cascade"
REASSIGNED_REASON = "Previous owner deleted"

Record = Mapping[str, Any]


class DataStore(Protocol):
    """Narrow document-store port the cascade runs against.

    ``get``, ``patch`` and ``delete`` raise ``RecordNotFoundError`` when the
    record is gone; ``delete_blob`` raises ``BlobNotFoundError``.
    """

    def get(self, table: str, record_id: str) -> dict[str, Any]: ...

    def patch(self, table: str, record_id: str, changes: Mapping[str, Any]) -> None: ...

    def delete(self, table: str, record_id: str) -> None: ...

    def query_by_index(
        self,
        table: str,
        index_name: str,
        field: str,
        value: str,
        *,
        limit: int,
        offset: int = 0,
    ) -> list[dict[str, Any]]: ...

    def delete_blob(self, blob_id: str) -> None: ...


class ApplyOutcome(str, enum.Enum):
    APPLIED = "applied"
    UNCHANGED = "unchanged"
    GONE = "gone"


# ======================================================================
# Single-record appliers
# ======================================================================


def apply_delete(store: DataStore, table: str, record: Record) -> ApplyOutcome:
    try:
        store.delete(table, record["id"])
    except NotFoundError:
        return ApplyOutcome.GONE
    return ApplyOutcome.APPLIED


def anonymize_changes(record: Record, field: str, now: datetime | None = None) -> dict[str, Any]:
    """Build the patch that anonymizes *field* and redacts every PII key on *record*, empty or not."""
    changes: dict[str, Any] = {field: DELETED_USER_SENTINEL}
    for pii in PII_FIELDS:
        if pii != field and pii in record:
            changes[pii] = REDACTED
    changes["anonymized_at"] = now or datetime.now(UTC)
    changes["anonymized_reason"] = ANONYMIZED_REASON
    return changes


def apply_anonymize(
    store: DataStore,
    table: str,
    record: Record,
    field: str,
    *,
    now: datetime | None = None,
) -> ApplyOutcome:
    if record.get(field) == DELETED_USER_SENTINEL:
        return ApplyOutcome.UNCHANGED
    try:
        store.patch(table, record["id"], anonymize_changes(record, field, now))
    except NotFoundError:
        return ApplyOutcome.GONE
    return ApplyOutcome.APPLIED


def apply_reassign(
    store: DataStore,
    table: str,
    record: Record,
    field: str,
    new_owner_id: str | None,
    *,
    now: datetime | None = None,
) -> ApplyOutcome:
    if not new_owner_id:
        raise PreconditionError(f"reassign of {table}.{field} requires a new owner")
    if record.get(field) == new_owner_id:
        return ApplyOutcome.UNCHANGED
    changes = {
        field: new_owner_id,
        "previous_owner": record.get(field),
        "reassigned_at": now or datetime.now(UTC),
        "reassigned_reason": REASSIGNED_REASON,
    }
    try:
        store.patch(table, record["id"], changes)
    except NotFoundError:
        return ApplyOutcome.GONE
    return ApplyOutcome.APPLIED


def apply_preserve() -> ApplyOutcome:
    return ApplyOutcome.UNCHANGED


# ======================================================================
# Batch variants
# ======================================================================


def _run_batch(table: str, records: Iterable[Record], label: str, fn) -> int:
    succeeded = 0
    for record in records:
        try:
            fn(record)
        except Exception as exc:
            logger.error(
                "Failed to %s %s/%s: %s", label, table, record.get("id"), exc
            )
            continue
        succeeded += 1
    return succeeded


def batch_delete(store: DataStore, table: str, records: Iterable[Record]) -> int:
    return _run_batch(table, records, "delete", lambda r: apply_delete(store, table, r))


def batch_anonymize(
    store: DataStore,
    table: str,
    records: Iterable[Record],
    field: str,
    *,
    now: datetime | None = None,
) -> int:
    return _run_batch(
        table,
        records,
        "anonymize",
        lambda r: apply_anonymize(store, table, r, field, now=now),
    )


def batch_reassign(
    store: DataStore,
    table: str,
    records: Iterable[Record],
    field: str,
    new_owner_id: str | None,
    *,
    now: datetime | None = None,
) -> int:
    # Checked once, before any record is touched.
    if not new_owner_id:
        raise PreconditionError(f"reassign of {table}.{field} requires a new owner")
    return _run_batch(
        table,
        records,
        "reassign",
        lambda r: apply_reassign(store, table, r, field, new_owner_id, now=now),
    )


def batch_preserve(records: Iterable[Record]) -> int:
    return sum(1 for _ in records)


def apply_batch(
    strategy: DeletionStrategy,
    store: DataStore,
    table: str,
    records: Iterable[Record],
    field: str,
    *,
    new_owner_id: str | None = None,
    now: datetime | None = None,
) -> int:
    """Dispatch a batch to the applier for *strategy*; returns the success count."""
    if strategy is DeletionStrategy.DELETE:
        return batch_delete(store, table, records)
    if strategy is DeletionStrategy.ANONYMIZE:
        return batch_anonymize(store, table, records, field, now=now)
    if strategy is DeletionStrategy.REASSIGN:
        return batch_reassign(store, table, records, field, new_owner_id, now=now)
    return batch_preserve(records)
