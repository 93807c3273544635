"""Celery application for the user-deletion worker.

Deletions run on their own ``deletion`` queue with one task per worker
process at a time; cache purges go to ``maintenance``. Workers log through
the same structlog pipeline as the API.
"""

from __future__ import annotations

from typing import Any

from celery import Celery
from celery.signals import setup_logging as celery_setup_logging

from infrastructure.observability.logging_config import setup_logging
from infrastructure.settings import get_settings

_settings = get_settings()

DELETION_TASKS = "application.tasks.deletion_tasks"

app = Celery("user_deletion")

app.conf.update(
    broker_url=_settings.celery_broker_url,
    result_backend=_settings.celery_result_backend,
    accept_content=["json"],
    task_serializer="json",
    result_serializer="json",
    task_routes={
        f"{DELETION_TASKS}.execute_user_deletion_task": {"queue": "deletion"},
        f"{DELETION_TASKS}.purge_user_caches_task": {"queue": "maintenance"},
    },
    task_annotations={
        "*": {
            "retry_backoff": True,
            "retry_backoff_max": 600,
            "retry_jitter": True,
        },
    },
    # A deletion is acknowledged only once it finished; a crashed worker's
    # task is redelivered and resumes from the tombstone.
    task_acks_late=True,
    worker_prefetch_multiplier=1,
    task_track_started=True,
    task_time_limit=3600,
    task_soft_time_limit=3300,
    timezone="UTC",
)


@celery_setup_logging.connect
def _configure_worker_logging(**kwargs: Any) -> None:
    setup_logging(_settings.log_level, _settings.log_format)


app.autodiscover_tasks([DELETION_TASKS])
