"""
SQLAlchemy Core implementations of the deletion ports.

``SqlAlchemyDataStore`` exposes the platform tables through the narrow
record-level API the cascade uses. Every write runs in its own
transaction (``engine.begin()``), so a crash mid-cascade leaves each
record either fully processed or untouched.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import UTC
from typing import Any

from sqlalchemy import MetaData, Table, delete, func, insert, select, update
from sqlalchemy.engine import Engine

from domain.exceptions import AuditError, ConfigurationError, RecordNotFoundError
from domain.models.audit import ActorRole, DeletionAuditEntry, DeletionAuditStatus
from infrastructure.loaders.schema_loader import logical_index_name
from infrastructure.storage.blob_store import BlobStore

logger = logging.getLogger(__name__)


class SqlAlchemyDataStore:
    """Record-level access to every table in *metadata*.

    Parameters
    ----------
    engine:
        Bound engine; one connection is checked out per call.
    metadata:
        Table definitions, normally ``Base.metadata``.
    blob_store:
        Backend for ``delete_blob``.
    """

    def __init__(self, engine: Engine, metadata: MetaData, blob_store: BlobStore) -> None:
        self._engine = engine
        self._metadata = metadata
        self._blob_store = blob_store

    def _table(self, name: str) -> Table:
        table = self._metadata.tables.get(name)
        if table is None:
            raise ConfigurationError(f"unknown table {name!r}")
        return table

    def _check_index(self, table: Table, index_name: str, field: str) -> None:
        for idx in table.indexes:
            if logical_index_name(table.name, idx.name or "") != index_name:
                continue
            if field in idx.columns:
                return
        raise ConfigurationError(
            f"no index {index_name!r} on {table.name} covering {field!r}"
        )

    # -- reads --------------------------------------------------------------

    def get(self, table: str, record_id: str) -> dict[str, Any]:
        t = self._table(table)
        with self._engine.connect() as conn:
            row = conn.execute(select(t).where(t.c.id == record_id)).mappings().first()
        if row is None:
            raise RecordNotFoundError(table, record_id)
        return dict(row)

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
        t = self._table(table)
        self._check_index(t, index_name, field)
        stmt = (
            select(t)
            .where(t.c[field] == value)
            .order_by(t.c.id)
            .limit(limit)
            .offset(offset)
        )
        with self._engine.connect() as conn:
            return [dict(row) for row in conn.execute(stmt).mappings()]

    # -- writes -------------------------------------------------------------

    def insert(self, table: str, record: Mapping[str, Any]) -> None:
        t = self._table(table)
        with self._engine.begin() as conn:
            conn.execute(insert(t).values(**record))

    def patch(self, table: str, record_id: str, changes: Mapping[str, Any]) -> None:
        t = self._table(table)
        known = {k: v for k, v in changes.items() if k in t.c}
        dropped = sorted(set(changes) - set(known))
        if dropped:
            logger.debug("Ignoring columns %s absent from %s", dropped, table)
        with self._engine.begin() as conn:
            result = conn.execute(update(t).where(t.c.id == record_id).values(**known))
        if result.rowcount == 0:
            raise RecordNotFoundError(table, record_id)

    def delete(self, table: str, record_id: str) -> None:
        t = self._table(table)
        with self._engine.begin() as conn:
            result = conn.execute(delete(t).where(t.c.id == record_id))
        if result.rowcount == 0:
            raise RecordNotFoundError(table, record_id)

    def delete_blob(self, blob_id: str) -> None:
        self._blob_store.delete(blob_id)


class SqlAlchemyDeletionAuditSink:
    """Append-only deletion journal on the ``deletion_log`` table.

    Only ``append`` writes; there is deliberately no update or delete path.
    """

    def __init__(self, engine: Engine, metadata: MetaData, table: str = "deletion_log") -> None:
        self._engine = engine
        self._table = metadata.tables[table]

    def append(self, entry: DeletionAuditEntry) -> DeletionAuditEntry:
        t = self._table
        try:
            with self._engine.begin() as conn:
                seq = conn.execute(select(func.coalesce(func.max(t.c.seq), 0))).scalar_one() + 1
                conn.execute(
                    insert(t).values(
                        id=entry.id,
                        seq=seq,
                        target_user_id=entry.target_user_id,
                        actor_id=entry.actor_id,
                        actor_role=entry.actor_role.value,
                        reason=entry.reason,
                        status=entry.status.value,
                        cascade_outcome=entry.cascade_outcome,
                        external_outcome=entry.external_outcome,
                        error=entry.error,
                        previous_hash=entry.previous_hash,
                        entry_hash=entry.entry_hash,
                        timestamp=entry.timestamp,
                    )
                )
        except Exception as exc:
            raise AuditError(str(exc)) from exc
        return entry

    def latest(self) -> DeletionAuditEntry | None:
        entries = self._select(select(self._table).order_by(self._table.c.seq.desc()).limit(1))
        return entries[0] if entries else None

    def list_entries(self, offset: int = 0, limit: int = 50) -> list[DeletionAuditEntry]:
        return self._select(
            select(self._table).order_by(self._table.c.seq.desc()).offset(offset).limit(limit)
        )

    def _select(self, stmt: Any) -> list[DeletionAuditEntry]:
        with self._engine.connect() as conn:
            return [self._to_entry(row) for row in conn.execute(stmt).mappings()]

    @staticmethod
    def _to_entry(row: Mapping[str, Any]) -> DeletionAuditEntry:
        # Hashes were computed over a UTC timestamp; some backends drop the zone.
        timestamp = row["timestamp"]
        if timestamp.tzinfo is None:
            timestamp = timestamp.replace(tzinfo=UTC)
        else:
            timestamp = timestamp.astimezone(UTC)
        entry = DeletionAuditEntry(
            target_user_id=row["target_user_id"],
            actor_id=row["actor_id"],
            reason=row["reason"],
            status=DeletionAuditStatus(row["status"]),
            actor_role=ActorRole(row["actor_role"]),
            cascade_outcome=row["cascade_outcome"] or {},
            external_outcome=row["external_outcome"] or {},
            error=row["error"],
            id=row["id"],
            timestamp=timestamp,
            previous_hash=row["previous_hash"],
        )
        # Keep the stored hash so a tampered row fails ``verify()``.
        object.__setattr__(entry, "entry_hash", row["entry_hash"])
        return entry
