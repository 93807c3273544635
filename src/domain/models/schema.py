"""Normalized structural description of a data schema, as seen by the coverage verifier."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from domain.models.manifest import DEFAULT_IDENTITY_TABLE


class BlobDetection(str, enum.Enum):
    NONE = "none"
    EXPLICIT = "explicit"
    HEURISTIC = "heuristic"


@dataclass(frozen=True)
class FieldDescription:
    name: str
    is_identity_reference: bool = False
    is_optional: bool = False
    is_blob_reference: bool = False
    blob_detection: BlobDetection = BlobDetection.NONE


@dataclass(frozen=True)
class IndexDescription:
    name: str
    fields: tuple[str, ...] = ()

    def covers(self, field_name: str) -> bool:
        return field_name in self.fields


@dataclass(frozen=True)
class TableDescription:
    name: str
    fields: tuple[FieldDescription, ...] = ()
    indexes: tuple[IndexDescription, ...] = ()

    @property
    def identity_fields(self) -> list[FieldDescription]:
        return [f for f in self.fields if f.is_identity_reference]

    @property
    def blob_fields(self) -> list[FieldDescription]:
        return [f for f in self.fields if f.is_blob_reference]

    def field(self, name: str) -> FieldDescription | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def has_index_covering(self, index_name: str, field_name: str) -> bool:
        return any(idx.name == index_name and idx.covers(field_name) for idx in self.indexes)


@dataclass(frozen=True)
class SchemaDescription:
    tables: tuple[TableDescription, ...] = ()
    identity_table: str = DEFAULT_IDENTITY_TABLE
    source: str = field(default="", compare=False)

    def table(self, name: str) -> TableDescription | None:
        for t in self.tables:
            if t.name == name:
                return t
        return None

    @property
    def table_names(self) -> list[str]:
        return [t.name for t in self.tables]
