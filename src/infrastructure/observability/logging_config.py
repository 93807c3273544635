"""
structlog setup shared by the API, the Celery worker and the coverage CLI.

Both structlog loggers and plain ``logging.getLogger(__name__)`` loggers end
up in one handler on the root logger, rendered as JSON lines (or as
coloured console output for local runs). Events pass through a PII
redaction step first: a deleted user's email must not survive in the logs
that describe the deletion.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from domain.services.strategy_appliers import PII_FIELDS, REDACTED

SERVICE_NAME: str = "user-deletion"

_PII_KEYS: frozenset[str] = frozenset(PII_FIELDS)


# ----------------------------------------------------------------------
# Processors
# ----------------------------------------------------------------------


def add_service_name(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    event_dict.setdefault("service", SERVICE_NAME)
    return event_dict


def redact_pii(logger: Any, method_name: str, event_dict: dict[str, Any]) -> dict[str, Any]:
    """Mask the value of every known PII key that is set on the event."""
    for key in _PII_KEYS.intersection(event_dict):
        if event_dict[key] is not None:
            event_dict[key] = REDACTED
    return event_dict


def _pre_chain() -> list[structlog.types.Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        add_service_name,  # type: ignore[list-item]
        redact_pii,  # type: ignore[list-item]
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderer(log_format: str) -> structlog.types.Processor:
    if log_format == "console":
        return structlog.dev.ConsoleRenderer()
    return structlog.processors.JSONRenderer()


# ----------------------------------------------------------------------
# Setup
# ----------------------------------------------------------------------


def setup_logging(log_level: str = "INFO", log_format: str = "json") -> None:
    """Route structlog and stdlib logging through one stderr handler.

    Parameters
    ----------
    log_level:
        Root level name; unknown names fall back to ``INFO``.
    log_format:
        ``"json"`` (default) or ``"console"``.
    """
    pre_chain = _pre_chain()

    structlog.configure(
        processors=[*pre_chain, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                structlog.processors.format_exc_info,
                _renderer(log_format),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Return a structlog logger named *name*.

    Context sticks to the returned logger via ``.bind()``::

        log = get_logger("deletion").bind(target_user_id="u-123")
        log.info("deletion.started")
    """
    return structlog.get_logger(name)  # type: ignore[no-any-return]
