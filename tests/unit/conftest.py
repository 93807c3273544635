"""Shared fixtures for unit tests."""

from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Ensure src is importable
sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from application.services.user_deletion_service import UserDeletionService
from domain.models.manifest import DeletionManifest, DeletionStrategy
from infrastructure.adapters import (
    InlineTaskDispatcher,
    InMemoryCacheManager,
    InMemoryDataStore,
    InMemoryDeletionAuditSink,
    InMemoryIdentityProvider,
    StoreIdentityRegistry,
)
from infrastructure.storage.blob_store import InMemoryBlobStore

NOW = datetime(2026, 2, 17, 12, 0, 0, tzinfo=timezone.utc)

TARGET_ID = "u-target"
ADMIN_ID = "u-admin"
MEMBER_ID = "u-member"
LEAD_ID = "u-lead"
OTHER_ID = "u-other"
TARGET_HANDLE = "ext-target"

DELETE = DeletionStrategy.DELETE
ANONYMIZE = DeletionStrategy.ANONYMIZE
REASSIGN = DeletionStrategy.REASSIGN


def build_test_manifest() -> DeletionManifest:
    return DeletionManifest.build(
        cascade={
            "posts": {"author_id": DELETE},
            "comments": {"author_id": ANONYMIZE},
            "projects": {"owner_id": REASSIGN, "created_by": ANONYMIZE},
            "identity_registry": {"user_id": DELETE},
        },
        preserve=["deletion_log"],
        storage_fields={
            "users": ["avatar_blob_id"],
            "posts": ["image_blob_id", "attachments"],
        },
        batch_sizes={"posts": 2},
        index_names={"identity_registry": "by_user_id"},
    )


def seed_world(store: InMemoryDataStore) -> None:
    """Populate *store* with a target user who owns a bit of everything."""
    store.insert_many(
        "users",
        [
            {
                "id": TARGET_ID,
                "email": "target@example.test",
                "display_name": "Target User",
                "rank": "member",
                "avatar_blob_id": "blob-avatar",
                "deletion_status": None,
                "deleted_at": None,
            },
            {"id": ADMIN_ID, "email": "admin@example.test", "rank": "admiral"},
            {"id": MEMBER_ID, "email": "member@example.test", "rank": "member"},
            {"id": LEAD_ID, "email": "lead@example.test", "rank": "captain"},
            {"id": OTHER_ID, "email": "other@example.test", "rank": "member"},
        ],
    )
    store.insert("identity_registry", {"id": "reg-1", "user_id": TARGET_ID, "external_handle": TARGET_HANDLE})
    store.insert("identity_registry", {"id": "reg-2", "user_id": OTHER_ID, "external_handle": "ext-other"})
    store.insert_many(
        "posts",
        [
            {"id": "p1", "author_id": TARGET_ID, "image_blob_id": "blob-p1"},
            {"id": "p2", "author_id": TARGET_ID, "attachments": ["blob-p2a", "https://cdn.example.test/x.png"]},
            {"id": "p3", "author_id": TARGET_ID},
            {"id": "p4", "author_id": OTHER_ID, "image_blob_id": "blob-p4"},
        ],
    )
    store.insert_many(
        "comments",
        [
            {"id": "c1", "author_id": TARGET_ID, "body": "hello", "email": "target@example.test"},
            {"id": "c2", "author_id": OTHER_ID, "body": "hi"},
        ],
    )
    store.insert_many(
        "projects",
        [
            {"id": "pr1", "owner_id": TARGET_ID, "created_by": TARGET_ID, "name": "Alpha"},
            {"id": "pr2", "owner_id": OTHER_ID, "created_by": TARGET_ID, "name": "Beta"},
            {"id": "pr3", "owner_id": OTHER_ID, "created_by": OTHER_ID, "name": "Gamma"},
        ],
    )
    for blob_id in ("blob-avatar", "blob-p1", "blob-p2a", "blob-p4"):
        store.blob_store.put(blob_id, b"data")


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def manifest() -> DeletionManifest:
    return build_test_manifest()


@pytest.fixture
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture
def store(blob_store) -> InMemoryDataStore:
    data_store = InMemoryDataStore(blob_store)
    seed_world(data_store)
    return data_store


@pytest.fixture
def registry(store) -> StoreIdentityRegistry:
    return StoreIdentityRegistry(store)


@pytest.fixture
def provider() -> InMemoryIdentityProvider:
    return InMemoryIdentityProvider([TARGET_HANDLE, "ext-other"])


@pytest.fixture
def audit_sink() -> InMemoryDeletionAuditSink:
    return InMemoryDeletionAuditSink()


@pytest.fixture
def cache_manager() -> InMemoryCacheManager:
    return InMemoryCacheManager()


@pytest.fixture
def dispatcher(cache_manager) -> InlineTaskDispatcher:
    return InlineTaskDispatcher({"purge_user_caches_task": cache_manager.purge_user})


@pytest.fixture
def deletion_service(store, manifest, registry, provider, audit_sink, dispatcher, clock):
    return UserDeletionService(
        store=store,
        manifest=manifest,
        registry=registry,
        provider=provider,
        audit_sink=audit_sink,
        dispatcher=dispatcher,
        clock=clock,
    )
