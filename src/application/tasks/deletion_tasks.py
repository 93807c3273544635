"""Background Celery tasks for user deletion."""

from __future__ import annotations

import logging
from typing import Any

from domain.exceptions import DeletionInProgressError, DomainError

from application.tasks.celery_app import app

logger = logging.getLogger(__name__)


@app.task(  # type: ignore[untyped-decorator]
    name="application.tasks.deletion_tasks.execute_user_deletion_task",
    bind=True,
    max_retries=3,
    default_retry_delay=300,
)
def execute_user_deletion_task(
    self: Any,
    target_user_id: str,
    actor_id: str,
    reason: str,
    reassign_to: str | None = None,
    delete_storage_files: bool = True,
    skip_external: bool = False,
) -> dict[str, Any]:
    """Run the deletion saga for one user outside the request cycle."""
    from domain.models.deletion import DeletionRequest
    from infrastructure.container import get_container

    logger.info("Starting deletion of user %s requested by %s", target_user_id, actor_id)

    request = DeletionRequest(
        target_user_id=target_user_id,
        actor_id=actor_id,
        reason=reason,
        reassign_to=reassign_to,
        delete_storage_files=delete_storage_files,
        skip_external=skip_external,
    )

    try:
        result = get_container().deletion_service.delete_user(request)
    except DeletionInProgressError as exc:
        # Another worker holds a fresh tombstone; try again once it may be stale.
        logger.info("Deletion of user %s already in progress, retrying later", target_user_id)
        raise self.retry(exc=exc) from exc
    except DomainError as exc:
        logger.warning("Deletion of user %s rejected: %s", target_user_id, exc.detail)
        return {"target_user_id": target_user_id, "status": "rejected", "error": exc.detail}
    except Exception as exc:
        logger.exception("Deletion of user %s failed", target_user_id)
        raise self.retry(exc=exc) from exc

    logger.info("Deletion of user %s finished in state %s", target_user_id, result.state.value)
    return result.as_dict()


@app.task(  # type: ignore[untyped-decorator]
    name="application.tasks.deletion_tasks.purge_user_caches_task",
    bind=True,
    max_retries=2,
    default_retry_delay=60,
)
def purge_user_caches_task(self: Any, user_id: str) -> dict[str, Any]:
    """Evict every cached entry belonging to a deleted user."""
    from infrastructure.container import get_container

    try:
        purged = get_container().cache_manager.purge_user(user_id)
    except Exception as exc:
        logger.exception("Cache purge failed for user %s", user_id)
        raise self.retry(exc=exc) from exc

    logger.info("Purged %d cache entries for user %s", purged, user_id)
    return {"user_id": user_id, "purged": purged}
