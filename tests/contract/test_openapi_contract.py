"""Contract tests for OpenAPI schema validation.

These tests verify that the API conforms to its OpenAPI specification
and that endpoints return expected response structures.
"""

from __future__ import annotations

import pytest

DELETION_PATH = "/api/v1/admin/users/{user_id}/deletion"


@pytest.mark.contract
class TestOpenAPIContract:

    def test_health_endpoint(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        data = resp.json()
        assert data["status"] == "healthy"
        assert "version" in data
        assert "timestamp" in data

    def test_openapi_schema_available(self, client):
        resp = client.get("/openapi.json")
        assert resp.status_code == 200
        schema = resp.json()
        assert schema["info"]["title"] == "User Deletion Service"
        assert DELETION_PATH in schema["paths"]
        assert "/api/v1/admin/deletion-log" in schema["paths"]

    def test_deletion_documents_problem_responses(self, client):
        operation = client.get("/openapi.json").json()["paths"][DELETION_PATH]["post"]
        assert {"200", "403", "409", "422"} <= set(operation["responses"])

    def test_request_id_is_echoed(self, client):
        resp = client.get("/health", headers={"X-Request-ID": "req-123"})
        assert resp.headers["X-Request-ID"] == "req-123"

    def test_metrics_endpoint(self, client):
        client.get("/health")
        resp = client.get("/metrics")
        assert resp.status_code == 200
        assert "http_requests_total" in resp.text
        assert "user_deletions_total" in resp.text
        assert "/metrics" not in client.get("/openapi.json").json()["paths"]


@pytest.mark.contract
class TestDeletionEndpoint:

    def test_delete_user(self, client, container):
        resp = client.post(
            "/api/v1/admin/users/u-1/deletion",
            json={"actor_id": "u-admin", "reason": "Account closure"},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["state"] == "AUDITED"
        assert data["records_deleted"] == 2  # calendar event, registry row
        assert data["identity_record_deleted"] is True
        assert data["external_deleted"] is True
        assert data["audit_entry_id"]
        assert container.provider.calls == ["ext-1"]

    def test_missing_user_is_reported_as_aborted(self, client):
        resp = client.post(
            "/api/v1/admin/users/u-ghost/deletion",
            json={"actor_id": "u-admin", "reason": "cleanup"},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["state"] == "ABORTED"
        assert "user record does not exist" in data["error"]

    def test_not_permitted_is_problem_json(self, client):
        resp = client.post(
            "/api/v1/admin/users/u-1/deletion",
            json={"actor_id": "u-member", "reason": "cleanup"},
        )
        assert resp.status_code == 403
        assert resp.headers["content-type"].startswith("application/problem+json")
        data = resp.json()
        assert data["title"] == "Deletion Not Permitted"
        assert data["status"] == 403
        assert data["instance"] == "/api/v1/admin/users/u-1/deletion"

    def test_running_deletion_conflicts(self, client):
        resp = client.post(
            "/api/v1/admin/users/u-busy/deletion",
            json={"actor_id": "u-admin", "reason": "cleanup"},
        )
        assert resp.status_code == 409
        assert resp.json()["title"] == "Deletion In Progress"

    def test_reassign_to_self_is_rejected(self, client):
        resp = client.post(
            "/api/v1/admin/users/u-1/deletion",
            json={"actor_id": "u-admin", "reason": "cleanup", "reassign_to": "u-1"},
        )
        assert resp.status_code == 422
        assert resp.json()["title"] == "Precondition Failed"


@pytest.mark.contract
class TestDeletionLogEndpoint:

    def test_log_lists_verified_entries(self, client):
        client.post(
            "/api/v1/admin/users/u-1/deletion",
            json={"actor_id": "u-admin", "reason": "Account closure"},
        )
        client.post(
            "/api/v1/admin/users/u-ghost/deletion",
            json={"actor_id": "u-admin", "reason": "cleanup"},
        )

        resp = client.get("/api/v1/admin/deletion-log", params={"limit": 10})
        assert resp.status_code == 200
        data = resp.json()
        assert data["pagination"] == {"offset": 0, "limit": 10, "returned": 2}
        newest, oldest = data["items"]
        assert newest["status"] == "ABORTED"
        assert oldest["status"] == "COMPLETED"
        assert newest["previous_hash"] == oldest["entry_hash"]
        assert all(item["verified"] for item in data["items"])

    def test_empty_log(self, client):
        data = client.get("/api/v1/admin/deletion-log").json()
        assert data["items"] == []
        assert data["pagination"]["returned"] == 0
