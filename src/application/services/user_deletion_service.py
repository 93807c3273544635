"""Application service that runs the user-deletion saga.

``UserDeletionService`` validates and authorizes a deletion request, resolves
the user's external identity handle, drives the manifest cascade, asks the
identity provider to drop the account, and writes one hash-chained audit
entry describing what happened. Partial failures are reported on the
returned ``DeletionResult`` rather than raised.
"""

from __future__ import annotations

from collections.abc import Callable, Collection
from datetime import UTC, datetime
from typing import Any, Protocol

import structlog

from domain.exceptions import (
    DeletionInProgressError,
    DeletionNotPermittedError,
    ExternalServiceError,
    IdentityNotResolvedError,
    NotFoundError,
    PreconditionError,
)
from domain.models.audit import ActorRole, DeletionAuditEntry, DeletionAuditStatus
from domain.models.deletion import (
    DeletionRequest,
    DeletionResult,
    DeletionState,
    DeletionStatus,
    ExternalDeletionOutcome,
    ExternalDeletionStatus,
)
from domain.models.manifest import DeletionManifest
from domain.services.deletion_lifecycle import DeletionLifecycleService
from domain.services.reassignment_policy import NoReassignmentPolicy, ReassignmentPolicy
from domain.services.strategy_appliers import DataStore

from application.services.cascade_executor import CascadeExecutor

logger = structlog.get_logger(__name__)

DEFAULT_STALE_AFTER_SECONDS = 300
PURGE_CACHES_TASK = "purge_user_caches_task"


# ---------------------------------------------------------------------------
# Port interfaces
# ---------------------------------------------------------------------------

class IdentityRegistry(Protocol):
    """Port: maps an internal user id to the external provider's handle."""

    def get_external_handle(self, user_id: str) -> str | None: ...


class IdentityProvider(Protocol):
    """Port: the external identity provider's account deletion.

    Raises ``ExternalServiceError`` when the provider refuses or is unreachable.
    """

    def delete_account(self, handle: str) -> ExternalDeletionOutcome: ...


class DeletionAuditSink(Protocol):
    """Port: append-only deletion journal."""

    def append(self, entry: DeletionAuditEntry) -> DeletionAuditEntry: ...

    def latest(self) -> DeletionAuditEntry | None: ...

    def list_entries(self, offset: int = 0, limit: int = 50) -> list[DeletionAuditEntry]: ...


class TaskDispatcher(Protocol):
    """Port: fire-and-forget background work. Implementations never raise."""

    def dispatch(self, task_name: str, **kwargs: Any) -> None: ...


class DeletionMetrics(Protocol):
    """Port: counters describing finished deletions."""

    def record_deletion(self, result: DeletionResult) -> None: ...


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------

class UserDeletionService:

    def __init__(
        self,
        store: DataStore,
        manifest: DeletionManifest,
        registry: IdentityRegistry,
        provider: IdentityProvider,
        audit_sink: DeletionAuditSink,
        *,
        dispatcher: TaskDispatcher | None = None,
        reassignment_policy: ReassignmentPolicy | None = None,
        lifecycle_service: DeletionLifecycleService | None = None,
        metrics: DeletionMetrics | None = None,
        admin_ranks: Collection[str] = ("admiral",),
        protected_ranks: Collection[str] = ("admiral",),
        stale_after_seconds: float = DEFAULT_STALE_AFTER_SECONDS,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._store = store
        self._manifest = manifest
        self._registry = registry
        self._provider = provider
        self._audit_sink = audit_sink
        self._dispatcher = dispatcher
        self._policy = reassignment_policy or NoReassignmentPolicy()
        self._lifecycle = lifecycle_service or DeletionLifecycleService()
        self._metrics = metrics
        self._admin_ranks = frozenset(admin_ranks)
        self._protected_ranks = frozenset(protected_ranks)
        self._stale_after_seconds = stale_after_seconds
        self._clock = clock or (lambda: datetime.now(UTC))
        self._executor = CascadeExecutor(store, manifest, clock=self._clock)

    # -- public API -------------------------------------------------------

    def delete_user(self, request: DeletionRequest) -> DeletionResult:
        """Run the whole deletion saga for ``request.target_user_id``.

        Raises ``PreconditionError``, ``DeletionNotPermittedError`` or
        ``DeletionInProgressError`` before anything is touched. Every later
        failure is reported on the returned result. Records that could not be
        processed leave the user in place with a tombstone, and running the
        deletion again picks up only what is left.
        """
        self._validate(request)
        log = logger.bind(
            target_user_id=request.target_user_id,
            actor_id=request.actor_id,
        )
        result = DeletionResult(
            target_user_id=request.target_user_id,
            actor_id=request.actor_id,
            started_at=self._clock(),
        )

        self._authorize_actor(request)
        target = self._load(request.target_user_id)
        if target is None:
            self._abort(
                request,
                result,
                IdentityNotResolvedError(request.target_user_id, "user record does not exist"),
            )
            return self._finish(result, log)

        self._authorize_target(request, target)
        resumed = self._check_tombstone(request.target_user_id, target)
        external_already_attempted = target.get("deletion_status") == DeletionStatus.PARTIAL.value

        try:
            handle = self._registry.get_external_handle(request.target_user_id)
        except Exception as exc:
            self._abort(request, result, IdentityNotResolvedError(request.target_user_id, str(exc)))
            return self._finish(result, log)

        if handle is None and not resumed:
            self._abort(
                request,
                result,
                IdentityNotResolvedError(request.target_user_id, "no identity registry mapping"),
            )
            return self._finish(result, log)
        if handle is None:
            log.warning("deletion.resumed_without_handle")

        owners = self._plan_reassignment(request)
        self._advance(result, DeletionState.IDENTITY_RESOLVED)
        log.info("deletion.identity_resolved", resumed=resumed, reassign_fields=len(owners))

        # -- database cascade ------------------------------------------------
        try:
            self._mark_tombstone(request.target_user_id, DeletionStatus.PENDING)
            cascade = self._executor.run(
                request.target_user_id,
                owners=owners,
                delete_storage_files=request.delete_storage_files,
                user_record=target,
            )
        except Exception as exc:
            log.error("deletion.cascade_failed", error=str(exc))
            self._mark_tombstone_quietly(
                request.target_user_id,
                DeletionStatus.PARTIAL if external_already_attempted else DeletionStatus.FAILED,
            )
            self._abort(request, result, exc)
            return self._finish(result, log)

        result.apply_cascade(cascade)
        self._advance(result, DeletionState.DB_CASCADE_DONE)
        log.info(
            "deletion.cascade_done",
            records_deleted=result.records_deleted,
            records_anonymized=result.records_anonymized,
            records_reassigned=result.records_reassigned,
            records_failed=result.records_failed,
            files_deleted=len(result.files_deleted),
        )

        # -- external identity provider -------------------------------------
        external = self._delete_external(request, handle, already_attempted=external_already_attempted)
        result.external_deleted = external.deleted
        result.external_error = external.message if external.status is ExternalDeletionStatus.ERROR else None
        self._advance(result, DeletionState.EXTERNAL_ATTEMPTED)
        if result.external_error:
            log.warning("deletion.external_failed", error=result.external_error)

        # -- audit --------------------------------------------------------------
        if cascade.records_failed:
            # The identity record stays so a later run can find the leftovers.
            result.error = (
                f"{cascade.records_failed} record(s) could not be processed; "
                "run the deletion again to finish"
            )
            external_done = external.deleted or (external_already_attempted and handle is None)
            self._mark_tombstone_quietly(
                request.target_user_id,
                DeletionStatus.PARTIAL if external_done else DeletionStatus.FAILED,
            )
            status = DeletionAuditStatus.PARTIAL
        elif external.status is ExternalDeletionStatus.ERROR:
            status = DeletionAuditStatus.EXTERNAL_FAILED
        else:
            status = DeletionAuditStatus.COMPLETED
        self._write_audit(request, result, status, external, cascade.as_dict())
        self._advance(result, DeletionState.AUDITED)

        if self._dispatcher is not None and not cascade.records_failed:
            self._dispatcher.dispatch(PURGE_CACHES_TASK, user_id=request.target_user_id)

        return self._finish(result, log)

    # -- validation & authorization -----------------------------------------

    def _validate(self, request: DeletionRequest) -> None:
        if not request.reason or not request.reason.strip():
            raise PreconditionError("a reason is required for user deletion")
        if request.reassign_to is not None and request.reassign_to == request.target_user_id:
            raise PreconditionError("records cannot be reassigned to the user being deleted")

    def _authorize_actor(self, request: DeletionRequest) -> None:
        if request.is_self_deletion:
            return
        actor = self._load(request.actor_id)
        if actor is None:
            raise DeletionNotPermittedError(
                request.actor_id, request.target_user_id, "actor does not exist"
            )
        if actor.get("rank") not in self._admin_ranks:
            raise DeletionNotPermittedError(
                request.actor_id,
                request.target_user_id,
                f"rank {actor.get('rank') or 'none'} may not delete other users",
            )

    def _authorize_target(self, request: DeletionRequest, target: dict[str, Any]) -> None:
        if request.is_self_deletion:
            return
        if target.get("rank") in self._protected_ranks:
            raise DeletionNotPermittedError(
                request.actor_id,
                request.target_user_id,
                f"users with rank {target.get('rank')} cannot be deleted",
            )

    def _check_tombstone(self, user_id: str, target: dict[str, Any]) -> bool:
        """Return ``True`` when resuming an earlier attempt; raise if one is still running."""
        status = target.get("deletion_status")
        if status in (DeletionStatus.FAILED.value, DeletionStatus.PARTIAL.value):
            logger.info("deletion.resuming_failed", target_user_id=user_id, tombstone=status)
            return True
        if status != DeletionStatus.PENDING.value:
            return False

        started = target.get("deleted_at")
        age = None
        if isinstance(started, datetime):
            if started.tzinfo is None:
                started = started.replace(tzinfo=UTC)
            age = (self._clock() - started).total_seconds()
        if age is not None and age < self._stale_after_seconds:
            raise DeletionInProgressError(user_id, age)
        logger.info("deletion.resuming_stale", target_user_id=user_id, age_seconds=age)
        return True

    def _plan_reassignment(self, request: DeletionRequest) -> dict[tuple[str, str], str]:
        owners: dict[tuple[str, str], str] = {}
        for table, field in self._executor.pending_reassign_fields(request.target_user_id):
            owner = request.reassign_to or self._policy.resolve(
                table, field, request.target_user_id
            )
            if not owner or owner == request.target_user_id:
                raise PreconditionError(
                    f"{table}.{field} needs a new owner: pass reassign_to or configure a policy"
                )
            owners[(table, field)] = owner
        return owners

    # -- steps ----------------------------------------------------------------

    def _load(self, user_id: str) -> dict[str, Any] | None:
        try:
            return self._store.get(self._manifest.identity_table, user_id)
        except NotFoundError:
            return None

    def _mark_tombstone(self, user_id: str, status: DeletionStatus) -> None:
        self._store.patch(
            self._manifest.identity_table,
            user_id,
            {"deletion_status": status.value, "deleted_at": self._clock()},
        )

    def _mark_tombstone_quietly(self, user_id: str, status: DeletionStatus) -> None:
        try:
            self._mark_tombstone(user_id, status)
        except Exception as exc:
            logger.warning("deletion.tombstone_update_failed", target_user_id=user_id, error=str(exc))

    def _delete_external(
        self,
        request: DeletionRequest,
        handle: str | None,
        *,
        already_attempted: bool = False,
    ) -> ExternalDeletionOutcome:
        if request.skip_external:
            return ExternalDeletionOutcome(ExternalDeletionStatus.SKIPPED)
        if handle is None and already_attempted:
            return ExternalDeletionOutcome(
                ExternalDeletionStatus.SKIPPED,
                "external account was handled by an earlier attempt",
            )
        if handle is None:
            return ExternalDeletionOutcome.error(
                "no external identity handle available; manual follow-up required"
            )
        try:
            return self._provider.delete_account(handle)
        except ExternalServiceError as exc:
            return ExternalDeletionOutcome.error(exc.reason or exc.detail)
        except Exception as exc:
            return ExternalDeletionOutcome.error(str(exc) or exc.__class__.__name__)

    def _abort(self, request: DeletionRequest, result: DeletionResult, exc: Exception) -> None:
        result.error = str(exc)
        self._advance(result, DeletionState.ABORTED)
        self._write_audit(
            request,
            result,
            DeletionAuditStatus.ABORTED,
            ExternalDeletionOutcome(ExternalDeletionStatus.SKIPPED),
            {},
        )

    def _write_audit(
        self,
        request: DeletionRequest,
        result: DeletionResult,
        status: DeletionAuditStatus,
        external: ExternalDeletionOutcome,
        cascade_outcome: dict[str, Any],
    ) -> None:
        try:
            previous = self._audit_sink.latest()
            entry = DeletionAuditEntry(
                target_user_id=request.target_user_id,
                actor_id=request.actor_id,
                reason=request.reason,
                status=status,
                actor_role=ActorRole.SELF if request.is_self_deletion else ActorRole.ADMIN,
                cascade_outcome=cascade_outcome,
                external_outcome={"status": external.status.value, "message": external.message},
                error=result.error,
                timestamp=self._clock(),
                previous_hash=previous.entry_hash if previous else "",
            )
            saved = self._audit_sink.append(entry)
        except Exception as exc:
            result.audit_error = str(exc)
            logger.warning(
                "deletion.audit_failed",
                target_user_id=request.target_user_id,
                error=result.audit_error,
            )
            return
        result.audit_entry_id = saved.id

    def _advance(self, result: DeletionResult, new_state: DeletionState) -> None:
        result.state = self._lifecycle.advance(result.state, new_state)

    def _finish(self, result: DeletionResult, log: Any) -> DeletionResult:
        result.completed_at = self._clock()
        if self._metrics is not None:
            self._metrics.record_deletion(result)
        log.info(
            "deletion.finished",
            state=result.state.value,
            external_deleted=result.external_deleted,
            audit_entry_id=result.audit_entry_id,
            error=result.error,
            duration_ms=result.duration_ms,
        )
        return result
