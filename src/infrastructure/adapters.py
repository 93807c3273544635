"""Adapter implementations bridging infrastructure to application-layer ports.

Provides in-memory adapters for the deletion ports (used by local runs and
tests), a registry adapter that reads through any ``DataStore``, and task
dispatchers for fire-and-forget follow-up work.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any, Optional

from domain.exceptions import AuditError, ExternalServiceError, RecordNotFoundError
from domain.models.audit import DeletionAuditEntry
from domain.models.deletion import ExternalDeletionOutcome
from domain.services.strategy_appliers import DataStore
from infrastructure.storage.blob_store import BlobStore, InMemoryBlobStore

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# In-memory document store
# ---------------------------------------------------------------------------

class InMemoryDataStore:
    """Dict-backed document store. Records are copied in and out."""

    def __init__(self, blob_store: Optional[BlobStore] = None) -> None:
        self._tables: dict[str, dict[str, dict[str, Any]]] = {}
        self.blob_store = blob_store or InMemoryBlobStore()

    def insert(self, table: str, record: Mapping[str, Any]) -> None:
        self._tables.setdefault(table, {})[record["id"]] = dict(record)

    def insert_many(self, table: str, records: Iterable[Mapping[str, Any]]) -> None:
        for record in records:
            self.insert(table, record)

    def records(self, table: str) -> list[dict[str, Any]]:
        return [copy.deepcopy(r) for r in self._tables.get(table, {}).values()]

    def get(self, table: str, record_id: str) -> dict[str, Any]:
        record = self._tables.get(table, {}).get(record_id)
        if record is None:
            raise RecordNotFoundError(table, record_id)
        return copy.deepcopy(record)

    def patch(self, table: str, record_id: str, changes: Mapping[str, Any]) -> None:
        record = self._tables.get(table, {}).get(record_id)
        if record is None:
            raise RecordNotFoundError(table, record_id)
        record.update(changes)

    def delete(self, table: str, record_id: str) -> None:
        if self._tables.get(table, {}).pop(record_id, None) is None:
            raise RecordNotFoundError(table, record_id)

    def query_by_index(
        self,
        table: str,
        index_name: str,
        field: str,
        value: str,
        *,
        limit: int,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        matches = sorted(
            (r for r in self._tables.get(table, {}).values() if r.get(field) == value),
            key=lambda r: r["id"],
        )
        return [copy.deepcopy(r) for r in matches[offset : offset + limit]]

    def delete_blob(self, blob_id: str) -> None:
        self.blob_store.delete(blob_id)


# ---------------------------------------------------------------------------
# Identity registry / provider
# ---------------------------------------------------------------------------

class StoreIdentityRegistry:
    """Reads the external handle from the registry table of any ``DataStore``."""

    def __init__(
        self,
        store: DataStore,
        table: str = "identity_registry",
        index_name: str = "by_user_id",
    ) -> None:
        self._store = store
        self._table = table
        self._index_name = index_name

    def get_external_handle(self, user_id: str) -> Optional[str]:
        rows = self._store.query_by_index(self._table, self._index_name, "user_id", user_id, limit=1)
        return rows[0]["external_handle"] if rows else None


class InMemoryIdentityProvider:
    """Fake identity provider holding a set of live account handles."""

    def __init__(self, handles: Iterable[str] = ()) -> None:
        self.accounts: set[str] = set(handles)
        self.calls: list[str] = []
        self.failure: Optional[str] = None

    def delete_account(self, handle: str) -> ExternalDeletionOutcome:
        self.calls.append(handle)
        if self.failure is not None:
            raise ExternalServiceError("identity-provider", self.failure)
        if handle not in self.accounts:
            return ExternalDeletionOutcome.not_found()
        self.accounts.discard(handle)
        return ExternalDeletionOutcome.ok()


# ---------------------------------------------------------------------------
# Audit sink
# ---------------------------------------------------------------------------

class InMemoryDeletionAuditSink:
    """Append-only in-memory deletion journal."""

    def __init__(self) -> None:
        self._entries: list[DeletionAuditEntry] = []
        self.fail_appends = False

    def append(self, entry: DeletionAuditEntry) -> DeletionAuditEntry:
        if self.fail_appends:
            raise AuditError("audit sink unavailable")
        self._entries.append(entry)
        return entry

    def latest(self) -> Optional[DeletionAuditEntry]:
        return self._entries[-1] if self._entries else None

    def list_entries(self, offset: int = 0, limit: int = 50) -> list[DeletionAuditEntry]:
        newest_first = list(reversed(self._entries))
        return newest_first[offset : offset + limit]

    def __len__(self) -> int:
        return len(self._entries)


# ---------------------------------------------------------------------------
# Cache manager
# ---------------------------------------------------------------------------

class InMemoryCacheManager:
    """Simple in-memory cache keyed ``user:<id>:<name>``."""

    def __init__(self) -> None:
        self._cache: dict[str, Any] = {}

    def set(self, key: str, value: Any) -> None:
        self._cache[key] = value

    def get(self, key: str) -> Any:
        return self._cache.get(key)

    def purge_user(self, user_id: str) -> int:
        prefix = f"user:{user_id}:"
        keys_to_remove = [k for k in self._cache if k.startswith(prefix)]
        for k in keys_to_remove:
            del self._cache[k]
        return len(keys_to_remove)


# ---------------------------------------------------------------------------
# Task dispatchers (fire-and-forget: errors are logged, never raised)
# ---------------------------------------------------------------------------

class CeleryTaskDispatcher:
    """Sends tasks to the Celery broker by name."""

    TASK_MODULE = "application.tasks.deletion_tasks"

    def dispatch(self, task_name: str, **kwargs: Any) -> None:
        try:
            from application.tasks.celery_app import app

            app.send_task(f"{self.TASK_MODULE}.{task_name}", kwargs=kwargs)
        except Exception:
            logger.warning("Failed to dispatch %s", task_name, exc_info=True)


class InlineTaskDispatcher:
    """Runs registered handlers in process; unknown task names are only logged."""

    def __init__(self, handlers: Optional[Mapping[str, Callable[..., Any]]] = None) -> None:
        self._handlers = dict(handlers or {})
        self.dispatched: list[tuple[str, dict[str, Any]]] = []

    def dispatch(self, task_name: str, **kwargs: Any) -> None:
        self.dispatched.append((task_name, kwargs))
        handler = self._handlers.get(task_name)
        if handler is None:
            logger.info("No inline handler for %s", task_name)
            return
        try:
            handler(**kwargs)
        except Exception:
            logger.warning("Inline task %s failed", task_name, exc_info=True)
