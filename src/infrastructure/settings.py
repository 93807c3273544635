"""Application settings loaded from environment variables via Pydantic."""

from __future__ import annotations

from pydantic_settings import BaseSettings


class AppSettings(BaseSettings):
    """Central configuration for the user-deletion service."""

    model_config = {"env_prefix": "APP_", "case_sensitive": False}

    # Database
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "postgres"
    postgres_password: str = "postgres"
    postgres_db: str = "platform"
    db_pool_size: int = 20
    db_max_overflow: int = 10
    database_url: str = ""

    # Storage: "memory" keeps records and blobs in process, "sql" uses the database
    storage_backend: str = "memory"
    blob_root: str = ""

    # Identity provider
    identity_provider_base_url: str = "https://api.clerk.com/v1"
    identity_provider_secret: str = ""
    identity_provider_timeout_seconds: float = 10.0

    # Deletion policy
    deletion_stale_after_seconds: int = 300
    deletion_admin_ranks: list[str] = ["admiral"]
    deletion_protected_ranks: list[str] = ["admiral"]
    reassignment_owners: dict[str, str] = {}
    reassignment_default_owner: str = ""

    # Coverage verification sources ("path.json" or "package.module:attribute")
    manifest_source: str = "infrastructure.deletion_manifest:DELETION_MANIFEST"
    schema_source: str = "infrastructure.database.models:Base"
    schema_blob_heuristics: bool = True

    # Celery
    celery_broker_url: str = "redis://localhost:6379/1"
    celery_result_backend: str = "redis://localhost:6379/2"
    dispatch_background_tasks: bool = False

    # Logging: "json" for aggregation, "console" for local runs
    log_level: str = "INFO"
    log_format: str = "json"

    # CORS
    cors_origins: str = "*"

    @property
    def sqlalchemy_url(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"postgresql+psycopg2://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


def get_settings() -> AppSettings:
    """Return the application settings singleton."""
    return AppSettings()
