"""Loads a ``DeletionManifest`` from a JSON document or a Python attribute."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field, ValidationError

from domain.exceptions import ConfigurationError
from domain.models.manifest import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_IDENTITY_TABLE,
    DEFAULT_INDEX_NAME,
    DeletionManifest,
    DeletionStrategy,
    TableDeletionConfig,
)
from infrastructure.loaders.sources import resolve_source


class TableConfigDocument(BaseModel):
    fields: dict[str, DeletionStrategy]
    batch_size: int = Field(default=DEFAULT_BATCH_SIZE, ge=1)
    index_name: str = DEFAULT_INDEX_NAME


class ManifestDocument(BaseModel):
    identity_table: str = DEFAULT_IDENTITY_TABLE
    cascade: dict[str, TableConfigDocument] = Field(default_factory=dict)
    preserve: list[str] = Field(default_factory=list)
    storage_fields: dict[str, list[str]] = Field(default_factory=dict)


def manifest_from_document(data: dict[str, Any]) -> DeletionManifest:
    try:
        document = ManifestDocument.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"invalid manifest document: {exc}") from exc

    return DeletionManifest(
        cascade={
            table: TableDeletionConfig(
                fields=config.fields,
                batch_size=config.batch_size,
                index_name=config.index_name,
            )
            for table, config in document.cascade.items()
        },
        preserve=frozenset(document.preserve),
        storage_fields={t: tuple(f) for t, f in document.storage_fields.items()},
        identity_table=document.identity_table,
    )


def load_manifest(source: str) -> DeletionManifest:
    """Load a manifest from a ``.json`` path or ``module:attribute`` reference."""
    obj = resolve_source(source)
    if isinstance(obj, DeletionManifest):
        return obj
    if isinstance(obj, dict):
        return manifest_from_document(obj)
    raise ConfigurationError(f"{source!r} does not describe a deletion manifest")
