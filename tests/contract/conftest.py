"""Contract test fixtures: the real app wired to an in-memory container."""

from __future__ import annotations

import sys
from datetime import UTC, datetime
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))


@pytest.fixture
def container():
    from infrastructure.adapters import (
        InMemoryDataStore,
        InMemoryDeletionAuditSink,
        InMemoryIdentityProvider,
    )
    from infrastructure.container import ServiceContainer, reset_container, set_container
    from infrastructure.settings import AppSettings

    store = InMemoryDataStore()
    store.insert_many(
        "users",
        [
            {"id": "u-admin", "email": "admin@example.test", "rank": "admiral"},
            {"id": "u-member", "email": "member@example.test", "rank": "member"},
            {"id": "u-1", "email": "one@example.test", "rank": "member"},
            {
                "id": "u-busy",
                "email": "busy@example.test",
                "rank": "member",
                "deletion_status": "pending",
                "deleted_at": datetime.now(UTC),
            },
        ],
    )
    store.insert_many(
        "identity_registry",
        [
            {"id": "r-1", "user_id": "u-1", "external_handle": "ext-1"},
            {"id": "r-busy", "user_id": "u-busy", "external_handle": "ext-busy"},
        ],
    )
    store.insert("calendar_events", {"id": "ev-1", "created_by": "u-1", "title": "Standup"})

    c = ServiceContainer(
        AppSettings(storage_backend="memory"),
        store=store,
        provider=InMemoryIdentityProvider(["ext-1", "ext-busy"]),
        audit_sink=InMemoryDeletionAuditSink(),
    )
    set_container(c)
    yield c
    reset_container()


@pytest.fixture
def client(container):
    from presentation.main import create_app
    from starlette.testclient import TestClient

    return TestClient(create_app())
