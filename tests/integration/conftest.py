"""Integration test fixtures using testcontainers for PostgreSQL."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))


@pytest.fixture(scope="session")
def postgres_url():
    """Provide a PostgreSQL URL via testcontainers.

    Skips when Docker is unavailable (CI without Docker).
    """
    try:
        from testcontainers.postgres import PostgresContainer

        with PostgresContainer("postgres:16-alpine") as pg:
            yield pg.get_connection_url()
    except Exception:
        pytest.skip("PostgreSQL testcontainer unavailable")


@pytest.fixture
def sync_engine(postgres_url):
    """Engine with the platform tables created, dropped again afterwards."""
    from infrastructure.database.engine import build_engine
    from infrastructure.database.models import Base

    engine = build_engine(postgres_url, pool_size=2, max_overflow=0)
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()
