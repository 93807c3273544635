"""
Builds a ``SchemaDescription`` for the coverage verifier.

Two inputs are understood: SQLAlchemy ``MetaData`` (or a declarative base
carrying one) and a JSON schema document. Identity references come from
``info={"identity_reference": True}`` or a foreign key to the identity
table; blob references from ``info={"blob_reference": ...}``, with a
field-name heuristic applied only to columns that carry no annotation.
"""

from __future__ import annotations

import re
from typing import Any

from pydantic import BaseModel, Field, ValidationError
from sqlalchemy import Column, MetaData, Table

from domain.exceptions import ConfigurationError
from domain.models.manifest import DEFAULT_IDENTITY_TABLE
from domain.models.schema import (
    BlobDetection,
    FieldDescription,
    IndexDescription,
    SchemaDescription,
    TableDescription,
)
from infrastructure.loaders.sources import resolve_source

_BLOB_NAME_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (r"url$", r"^avatar", r"^logo", r"^image", r"file", r"attachment", r"photo", r"thumbnail")
)


def looks_like_blob_field(name: str) -> bool:
    return any(p.search(name) for p in _BLOB_NAME_PATTERNS)


def logical_index_name(table_name: str, index_name: str) -> str:
    """``ix_orders_by_user__created_by`` on ``orders`` -> ``by_user``."""
    prefix = f"ix_{table_name}_"
    name = index_name[len(prefix):] if index_name.startswith(prefix) else index_name
    return name.split("__", 1)[0]


def _blob_detection(annotation: bool | None, name: str, heuristics: bool) -> BlobDetection:
    if annotation is not None:
        return BlobDetection.EXPLICIT if annotation else BlobDetection.NONE
    if heuristics and looks_like_blob_field(name):
        return BlobDetection.HEURISTIC
    return BlobDetection.NONE


def _merge_indexes(pairs: list[tuple[str, tuple[str, ...]]]) -> tuple[IndexDescription, ...]:
    merged: dict[str, list[str]] = {}
    for name, fields in pairs:
        bucket = merged.setdefault(name, [])
        bucket.extend(f for f in fields if f not in bucket)
    return tuple(IndexDescription(name, tuple(fields)) for name, fields in merged.items())


# ======================================================================
# SQLAlchemy metadata
# ======================================================================


def _references_identity_table(column: Column, identity_table: str) -> bool:
    for fk in column.foreign_keys:
        parts = fk.target_fullname.split(".")
        if len(parts) >= 2 and parts[-2] == identity_table:
            return True
    return False


def _describe_table(table: Table, identity_table: str, heuristics: bool) -> TableDescription:
    fields = []
    for column in table.columns:
        detection = _blob_detection(column.info.get("blob_reference"), column.name, heuristics)
        fields.append(
            FieldDescription(
                name=column.name,
                is_identity_reference=bool(column.info.get("identity_reference"))
                or _references_identity_table(column, identity_table),
                is_optional=bool(column.nullable),
                is_blob_reference=detection is not BlobDetection.NONE,
                blob_detection=detection,
            )
        )
    indexes = _merge_indexes(
        [
            (logical_index_name(table.name, idx.name or ""), tuple(c.name for c in idx.columns))
            for idx in sorted(table.indexes, key=lambda i: i.name or "")
        ]
    )
    return TableDescription(name=table.name, fields=tuple(fields), indexes=indexes)


def schema_from_metadata(
    metadata: MetaData,
    *,
    identity_table: str = DEFAULT_IDENTITY_TABLE,
    blob_heuristics: bool = True,
    source: str = "",
) -> SchemaDescription:
    tables = tuple(
        _describe_table(table, identity_table, blob_heuristics)
        for table in metadata.sorted_tables
    )
    return SchemaDescription(tables=tables, identity_table=identity_table, source=source)


# ======================================================================
# JSON document
# ======================================================================


class FieldDocument(BaseModel):
    name: str
    identity_reference: bool = False
    optional: bool = False
    blob_reference: bool | None = None


class IndexDocument(BaseModel):
    name: str
    fields: list[str] = Field(default_factory=list)


class TableDocument(BaseModel):
    name: str
    fields: list[FieldDocument] = Field(default_factory=list)
    indexes: list[IndexDocument] = Field(default_factory=list)


class SchemaDocument(BaseModel):
    identity_table: str = DEFAULT_IDENTITY_TABLE
    tables: list[TableDocument] = Field(default_factory=list)


def schema_from_document(
    data: dict[str, Any],
    *,
    identity_table: str | None = None,
    blob_heuristics: bool = True,
    source: str = "",
) -> SchemaDescription:
    try:
        document = SchemaDocument.model_validate(data)
    except ValidationError as exc:
        raise ConfigurationError(f"invalid schema document: {exc}") from exc

    tables = []
    for table in document.tables:
        fields = []
        for f in table.fields:
            detection = _blob_detection(f.blob_reference, f.name, blob_heuristics)
            fields.append(
                FieldDescription(
                    name=f.name,
                    is_identity_reference=f.identity_reference,
                    is_optional=f.optional,
                    is_blob_reference=detection is not BlobDetection.NONE,
                    blob_detection=detection,
                )
            )
        indexes = _merge_indexes([(i.name, tuple(i.fields)) for i in table.indexes])
        tables.append(TableDescription(name=table.name, fields=tuple(fields), indexes=indexes))

    return SchemaDescription(
        tables=tuple(tables),
        identity_table=identity_table or document.identity_table,
        source=source,
    )


# ======================================================================
# Entry point
# ======================================================================


def load_schema(
    source: str,
    *,
    identity_table: str | None = None,
    blob_heuristics: bool = True,
) -> SchemaDescription:
    """Load a schema description from a ``.json`` path or ``module:attribute``.

    The attribute may be a ``MetaData``, a declarative base, a
    ``SchemaDescription`` or a plain dict in the JSON document format.
    """
    obj = resolve_source(source)

    if isinstance(obj, SchemaDescription):
        return obj
    if isinstance(obj, dict):
        return schema_from_document(
            obj, identity_table=identity_table, blob_heuristics=blob_heuristics, source=source
        )

    metadata = obj if isinstance(obj, MetaData) else getattr(obj, "metadata", None)
    if not isinstance(metadata, MetaData):
        raise ConfigurationError(f"{source!r} does not describe a schema")
    return schema_from_metadata(
        metadata,
        identity_table=identity_table or DEFAULT_IDENTITY_TABLE,
        blob_heuristics=blob_heuristics,
        source=source,
    )
