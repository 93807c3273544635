"""
SQLAlchemy engine setup with connection pooling.

The deletion cascade runs synchronously (one transaction per record write),
so only a synchronous engine is provided.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import create_engine as sa_create_engine
from sqlalchemy.pool import QueuePool, StaticPool

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

    from infrastructure.settings import AppSettings

# ---------------------------------------------------------------------------
# Engine factories
# ---------------------------------------------------------------------------


def build_engine(
    url: str,
    *,
    pool_size: int = 20,
    max_overflow: int = 10,
    pool_timeout: int = 30,
) -> Engine:
    """Create a synchronous :class:`Engine` for *url*.

    SQLite URLs (used by tests and local tooling) get a single shared
    connection so that ``sqlite://`` in-memory databases survive across
    transactions; every other backend uses a ``QueuePool``.
    """
    if url.startswith("sqlite"):
        return sa_create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=False,
        )
    return sa_create_engine(
        url,
        poolclass=QueuePool,
        pool_size=pool_size,
        max_overflow=max_overflow,
        pool_timeout=pool_timeout,
        pool_pre_ping=True,
        echo=False,
    )


def build_engine_from_settings(settings: AppSettings) -> Engine:
    return build_engine(
        settings.sqlalchemy_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
    )


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

_engine: Engine | None = None


def get_engine(settings: AppSettings | None = None) -> Engine:
    """Return (or create) the module-level engine."""
    global _engine
    if _engine is None:
        if settings is None:
            from infrastructure.settings import get_settings

            settings = get_settings()
        _engine = build_engine_from_settings(settings)
    return _engine


def dispose_engine() -> None:
    """Dispose the engine, closing all pooled connections.

    Call this during application shutdown.
    """
    global _engine
    if _engine is not None:
        _engine.dispose()
        _engine = None
