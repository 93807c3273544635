"""Tests for src/application/tasks/deletion_tasks.py

Tasks are executed with ``.run()`` so no broker is needed. Outside a worker
``self.retry`` re-raises the original exception.
"""

from unittest.mock import MagicMock, patch

import pytest

from application.tasks.deletion_tasks import execute_user_deletion_task, purge_user_caches_task
from domain.exceptions import DeletionInProgressError, DeletionNotPermittedError
from domain.models.deletion import DeletionResult, DeletionState


@pytest.fixture
def container():
    c = MagicMock()
    with patch("infrastructure.container.get_container", return_value=c):
        yield c


class TestExecuteUserDeletionTask:
    def test_returns_result_dict(self, container):
        container.deletion_service.delete_user.return_value = DeletionResult(
            target_user_id="u1", actor_id="admin", state=DeletionState.AUDITED, records_deleted=3
        )

        out = execute_user_deletion_task.run("u1", "admin", "closure", reassign_to="u2")

        request = container.deletion_service.delete_user.call_args.args[0]
        assert request.target_user_id == "u1"
        assert request.reassign_to == "u2"
        assert request.delete_storage_files is True
        assert out["state"] == "AUDITED"
        assert out["records_deleted"] == 3

    def test_rejection_is_not_retried(self, container):
        container.deletion_service.delete_user.side_effect = DeletionNotPermittedError(
            "member", "u1", "rank member may not delete other users"
        )

        out = execute_user_deletion_task.run("u1", "member", "closure")

        assert out["status"] == "rejected"
        assert "may not delete" in out["error"]

    def test_in_progress_is_retried(self, container):
        container.deletion_service.delete_user.side_effect = DeletionInProgressError("u1", 12.0)

        with pytest.raises(DeletionInProgressError):
            execute_user_deletion_task.run("u1", "admin", "closure")

    def test_unexpected_error_is_retried(self, container):
        container.deletion_service.delete_user.side_effect = RuntimeError("db down")

        with pytest.raises(RuntimeError, match="db down"):
            execute_user_deletion_task.run("u1", "admin", "closure")


class TestPurgeUserCachesTask:
    def test_purges(self, container):
        container.cache_manager.purge_user.return_value = 3

        assert purge_user_caches_task.run("u1") == {"user_id": "u1", "purged": 3}
        container.cache_manager.purge_user.assert_called_once_with("u1")
