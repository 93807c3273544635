"""Runs the manifest-driven cascade for one user against a ``DataStore``.

The executor knows nothing about identity providers or audit trails; it
sweeps blob storage, walks every cascade table in manifest order, and
finally removes the identity record itself. When any record could not be
processed the identity record is kept, so a fresh run can find the user
again and finish the job without double-counting.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Mapping
from datetime import UTC, datetime
from typing import Any

from domain.exceptions import NotFoundError
from domain.models.deletion import CascadeResult, TableCascadeStats
from domain.models.manifest import DeletionManifest, DeletionStrategy
from domain.services.strategy_appliers import DataStore, apply_batch

logger = logging.getLogger(__name__)

_EXTERNAL_URL_PREFIXES = ("http://", "https://")

_STAT_FIELD: dict[DeletionStrategy, str] = {
    DeletionStrategy.DELETE: "deleted",
    DeletionStrategy.ANONYMIZE: "anonymized",
    DeletionStrategy.REASSIGN: "reassigned",
    DeletionStrategy.PRESERVE: "preserved",
}


def is_blob_id(value: Any) -> bool:
    return isinstance(value, str) and bool(value) and not value.startswith(_EXTERNAL_URL_PREFIXES)


class CascadeExecutor:

    def __init__(
        self,
        store: DataStore,
        manifest: DeletionManifest,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._manifest = manifest
        self._clock = clock or (lambda: datetime.now(UTC))

    # -- planning -----------------------------------------------------------

    def pending_reassign_fields(self, user_id: str) -> list[tuple[str, str]]:
        """``(table, field)`` pairs with a reassign strategy that still reference *user_id*."""
        pending: list[tuple[str, str]] = []
        for table in self._manifest.cascade_tables():
            index_name = self._manifest.index_name(table)
            for field in self._manifest.fields_with_strategy(table, DeletionStrategy.REASSIGN):
                if self._store.query_by_index(table, index_name, field, user_id, limit=1):
                    pending.append((table, field))
        return pending

    # -- execution ----------------------------------------------------------

    def run(
        self,
        user_id: str,
        *,
        owners: Mapping[tuple[str, str], str] | None = None,
        delete_storage_files: bool = True,
        user_record: Mapping[str, Any] | None = None,
    ) -> CascadeResult:
        """Sweep storage, cascade every table, then delete the identity record.

        The identity record is only deleted when no record failed.

        *owners* maps ``(table, field)`` to the new owner for reassign fields.
        Store errors other than not-found propagate to the caller.
        """
        result = CascadeResult(user_id=user_id)
        owners = owners or {}

        if delete_storage_files:
            self.sweep_storage(user_id, result, user_record=user_record)

        for table in self._manifest.cascade_tables():
            stats = self.process_table(table, user_id, owners)
            result.tables.append(stats)
            if stats.touched or stats.failed:
                logger.info("Cascade %s", stats.summary())

        if result.records_failed:
            logger.warning(
                "Keeping identity record %s: %d record(s) still reference it",
                user_id,
                result.records_failed,
            )
        else:
            result.identity_record_deleted = self._delete_identity_record(user_id)
        return result

    def process_table(
        self,
        table: str,
        user_id: str,
        owners: Mapping[tuple[str, str], str],
    ) -> TableCascadeStats:
        stats = TableCascadeStats(table=table)
        config = self._manifest.cascade.get(table)
        if config is None:
            return stats

        for field, strategy in config.fields.items():
            self._process_field(table, field, strategy, user_id, owners.get((table, field)), stats)
        return stats

    def _process_field(
        self,
        table: str,
        field: str,
        strategy: DeletionStrategy,
        user_id: str,
        new_owner_id: str | None,
        stats: TableCascadeStats,
    ) -> None:
        batch_size = self._manifest.batch_size(table)
        index_name = self._manifest.index_name(table)
        offset = 0

        while True:
            page = self._store.query_by_index(
                table, index_name, field, user_id, limit=batch_size, offset=offset
            )
            if not page:
                break

            succeeded = apply_batch(
                strategy,
                self._store,
                table,
                page,
                field,
                new_owner_id=new_owner_id,
                now=self._clock(),
            )
            failed = len(page) - succeeded
            stats.chunks += 1
            stats.failed += failed
            setattr(stats, _STAT_FIELD[strategy], getattr(stats, _STAT_FIELD[strategy]) + succeeded)

            # Mutated records drop out of the index; failed and preserved ones stay.
            if strategy is DeletionStrategy.PRESERVE:
                offset += len(page)
            else:
                offset += failed

            if len(page) < batch_size:
                break

    # -- storage ------------------------------------------------------------

    def sweep_storage(
        self,
        user_id: str,
        result: CascadeResult,
        *,
        user_record: Mapping[str, Any] | None = None,
    ) -> None:
        for table, fields in self._manifest.storage_fields.items():
            for record in self._records_owning_blobs(table, user_id, user_record):
                for field in fields:
                    for blob_id in self._blob_values(record.get(field)):
                        self._delete_blob(table, field, blob_id, result)

    def _records_owning_blobs(
        self,
        table: str,
        user_id: str,
        user_record: Mapping[str, Any] | None,
    ) -> Iterator[Mapping[str, Any]]:
        if table == self._manifest.identity_table:
            if user_record is not None:
                yield user_record
            return

        # Only records the cascade removes lose their blobs; surviving ones keep them.
        batch_size = self._manifest.batch_size(table)
        index_name = self._manifest.index_name(table)
        for field in self._manifest.fields_with_strategy(table, DeletionStrategy.DELETE):
            offset = 0
            while True:
                page = self._store.query_by_index(
                    table, index_name, field, user_id, limit=batch_size, offset=offset
                )
                yield from page
                if len(page) < batch_size:
                    break
                offset += len(page)

    @staticmethod
    def _blob_values(value: Any) -> list[str]:
        if isinstance(value, (list, tuple)):
            return [v for v in value if is_blob_id(v)]
        return [value] if is_blob_id(value) else []

    def _delete_blob(self, table: str, field: str, blob_id: str, result: CascadeResult) -> None:
        try:
            self._store.delete_blob(blob_id)
        except NotFoundError:
            return
        except Exception as exc:
            result.files_failed += 1
            logger.error("Failed to delete blob %s from %s.%s: %s", blob_id, table, field, exc)
            return
        result.files_deleted.append(blob_id)

    # -- identity -----------------------------------------------------------

    def _delete_identity_record(self, user_id: str) -> bool:
        try:
            self._store.delete(self._manifest.identity_table, user_id)
        except NotFoundError:
            logger.info("Identity record %s already removed", user_id)
        return True
