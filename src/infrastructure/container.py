"""Dependency injection container for the user-deletion service.

Wires together infrastructure adapters and application services, exposing
factory functions suitable for FastAPI's ``Depends()`` system.
"""

from __future__ import annotations

import logging
from typing import Any

from application.services.user_deletion_service import (
    PURGE_CACHES_TASK,
    DeletionAuditSink,
    TaskDispatcher,
    UserDeletionService,
)
from domain.exceptions import ConfigurationError
from domain.models.manifest import DeletionManifest
from domain.services.deletion_lifecycle import DeletionLifecycleService
from domain.services.reassignment_policy import (
    NoReassignmentPolicy,
    ReassignmentPolicy,
    StaticReassignmentPolicy,
)
from domain.services.strategy_appliers import DataStore
from infrastructure.adapters import (
    CeleryTaskDispatcher,
    InlineTaskDispatcher,
    InMemoryCacheManager,
    InMemoryDataStore,
    InMemoryDeletionAuditSink,
    StoreIdentityRegistry,
)
from infrastructure.identity.provider_client import HttpIdentityProvider
from infrastructure.loaders.manifest_loader import load_manifest
from infrastructure.observability.metrics import PrometheusDeletionMetrics
from infrastructure.settings import AppSettings, get_settings
from infrastructure.storage.blob_store import BlobStore, InMemoryBlobStore, LocalFileBlobStore

logger = logging.getLogger(__name__)


class ServiceContainer:
    """Central DI container that owns all service instances."""

    def __init__(
        self,
        settings: AppSettings | None = None,
        *,
        manifest: DeletionManifest | None = None,
        store: DataStore | None = None,
        provider: Any = None,
        audit_sink: DeletionAuditSink | None = None,
        dispatcher: TaskDispatcher | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        s = self._settings

        self.manifest = manifest or load_manifest(s.manifest_source)
        self.blob_store = self._build_blob_store()
        self.cache_manager = InMemoryCacheManager()

        # Infrastructure adapters
        if store is None or audit_sink is None:
            default_store, default_sink = self._build_storage()
            store = store or default_store
            audit_sink = audit_sink or default_sink
        self.store = store
        self.audit_sink = audit_sink
        self.registry = StoreIdentityRegistry(self.store)
        self.provider = provider or HttpIdentityProvider(
            s.identity_provider_base_url,
            s.identity_provider_secret,
            timeout_seconds=s.identity_provider_timeout_seconds,
        )
        self.dispatcher = dispatcher or self._build_dispatcher()
        self.metrics = PrometheusDeletionMetrics()

        # Domain services
        self.lifecycle_service = DeletionLifecycleService()
        self.reassignment_policy = self._build_reassignment_policy()

        # Application services
        self.deletion_service = UserDeletionService(
            store=self.store,
            manifest=self.manifest,
            registry=self.registry,
            provider=self.provider,
            audit_sink=self.audit_sink,
            dispatcher=self.dispatcher,
            reassignment_policy=self.reassignment_policy,
            lifecycle_service=self.lifecycle_service,
            metrics=self.metrics,
            admin_ranks=s.deletion_admin_ranks,
            protected_ranks=s.deletion_protected_ranks,
            stale_after_seconds=s.deletion_stale_after_seconds,
        )

        logger.info("ServiceContainer initialized (storage=%s)", s.storage_backend)

    # -- builders ---------------------------------------------------------

    def _build_blob_store(self) -> BlobStore:
        if self._settings.blob_root:
            return LocalFileBlobStore(self._settings.blob_root)
        return InMemoryBlobStore()

    def _build_storage(self) -> tuple[DataStore, DeletionAuditSink]:
        backend = self._settings.storage_backend
        if backend == "memory":
            return InMemoryDataStore(self.blob_store), InMemoryDeletionAuditSink()
        if backend == "sql":
            from infrastructure.database.document_store import (
                SqlAlchemyDataStore,
                SqlAlchemyDeletionAuditSink,
            )
            from infrastructure.database.engine import get_engine
            from infrastructure.database.models import Base

            engine = get_engine(self._settings)
            return (
                SqlAlchemyDataStore(engine, Base.metadata, self.blob_store),
                SqlAlchemyDeletionAuditSink(engine, Base.metadata),
            )
        raise ConfigurationError(f"unknown storage backend {backend!r}")

    def _build_dispatcher(self) -> TaskDispatcher:
        if self._settings.dispatch_background_tasks:
            return CeleryTaskDispatcher()
        return InlineTaskDispatcher({PURGE_CACHES_TASK: self.cache_manager.purge_user})

    def _build_reassignment_policy(self) -> ReassignmentPolicy:
        s = self._settings
        if s.reassignment_owners or s.reassignment_default_owner:
            return StaticReassignmentPolicy(
                s.reassignment_owners, default=s.reassignment_default_owner or None
            )
        return NoReassignmentPolicy()


# Module-level singleton
_container: ServiceContainer | None = None


def get_container() -> ServiceContainer:
    """Return the global container singleton."""
    global _container
    if _container is None:
        _container = ServiceContainer()
    return _container


def set_container(container: ServiceContainer) -> None:
    """Install a pre-built container (tests, alternative wiring)."""
    global _container
    _container = container


def reset_container() -> None:
    """Reset the global container (for testing)."""
    global _container
    _container = None


# ---------------------------------------------------------------------------
# FastAPI dependency factories
# ---------------------------------------------------------------------------


def get_deletion_service() -> UserDeletionService:
    return get_container().deletion_service


def get_audit_sink() -> DeletionAuditSink:
    return get_container().audit_sink
