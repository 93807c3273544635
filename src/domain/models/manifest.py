"""
Deletion manifest: the declarative registry of what happens to every
user-identity reference when that user is deleted.

The manifest is an immutable value. Build it once at process start and pass
it to the verifier and the orchestrator; tests construct their own.
"""

from __future__ import annotations

import enum
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from domain.exceptions import ConfigurationError

DEFAULT_BATCH_SIZE = 200
DEFAULT_INDEX_NAME = "by_user"
DEFAULT_IDENTITY_TABLE = "users"


class DeletionStrategy(str, enum.Enum):
    DELETE = "delete"
    ANONYMIZE = "anonymize"
    REASSIGN = "reassign"
    PRESERVE = "preserve"


def _field_names(table: str, fields: Iterable[str]) -> tuple[str, ...]:
    if isinstance(fields, str):
        raise ConfigurationError(
            f"storage_fields[{table!r}] must list field names, got the string {fields!r}"
        )
    return tuple(fields)


@dataclass(frozen=True)
class TableDeletionConfig:
    """Field-level strategies for one cascade table."""

    fields: Mapping[str, DeletionStrategy] = field(default_factory=dict)
    batch_size: int = DEFAULT_BATCH_SIZE
    index_name: str = DEFAULT_INDEX_NAME

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ConfigurationError(f"batch_size must be positive, got {self.batch_size}")
        object.__setattr__(
            self,
            "fields",
            MappingProxyType({name: DeletionStrategy(s) for name, s in self.fields.items()}),
        )


@dataclass(frozen=True)
class DeletionManifest:
    """
    Complete deletion policy for one deployment.

    ``cascade`` maps table name to its field strategies, ``preserve`` lists
    tables that are never touched (audit trails), and ``storage_fields``
    lists blob-reference fields swept during deletion. Lookups never raise:
    a missing entry is answered with ``None`` or the default.
    """

    cascade: Mapping[str, TableDeletionConfig] = field(default_factory=dict)
    preserve: frozenset[str] = field(default_factory=frozenset)
    storage_fields: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    identity_table: str = DEFAULT_IDENTITY_TABLE

    def __post_init__(self) -> None:
        if isinstance(self.preserve, str):
            raise ConfigurationError(f"preserve must list table names, got the string {self.preserve!r}")
        preserve = frozenset(self.preserve)
        overlap = sorted(preserve.intersection(self.cascade))
        if overlap:
            raise ConfigurationError(
                f"tables listed in both cascade and preserve: {', '.join(overlap)}"
            )
        object.__setattr__(self, "preserve", preserve)
        object.__setattr__(self, "cascade", MappingProxyType(dict(self.cascade)))
        object.__setattr__(
            self,
            "storage_fields",
            MappingProxyType({t: _field_names(t, f) for t, f in self.storage_fields.items()}),
        )

    # -- lookups ----------------------------------------------------------

    def cascade_tables(self) -> list[str]:
        return list(self.cascade)

    def field_strategy(self, table: str, field_name: str) -> DeletionStrategy | None:
        config = self.cascade.get(table)
        if config is None:
            return None
        return config.fields.get(field_name)

    def is_preserved(self, table: str) -> bool:
        return table in self.preserve

    def is_registered(self, table: str) -> bool:
        return table in self.cascade or table in self.preserve

    def get_storage_fields(self, table: str) -> list[str]:
        return list(self.storage_fields.get(table, ()))

    def batch_size(self, table: str) -> int:
        config = self.cascade.get(table)
        return config.batch_size if config else DEFAULT_BATCH_SIZE

    def index_name(self, table: str) -> str:
        config = self.cascade.get(table)
        return config.index_name if config else DEFAULT_INDEX_NAME

    def fields_with_strategy(self, table: str, strategy: DeletionStrategy) -> list[str]:
        config = self.cascade.get(table)
        if config is None:
            return []
        return [name for name, s in config.fields.items() if s is strategy]

    @classmethod
    def build(
        cls,
        cascade: Mapping[str, Mapping[str, DeletionStrategy | str]],
        *,
        preserve: Iterable[str] = (),
        storage_fields: Mapping[str, Iterable[str]] | None = None,
        batch_sizes: Mapping[str, int] | None = None,
        index_names: Mapping[str, str] | None = None,
        identity_table: str = DEFAULT_IDENTITY_TABLE,
    ) -> DeletionManifest:
        """Shorthand constructor taking plain ``{table: {field: strategy}}`` maps."""
        batch_sizes = batch_sizes or {}
        index_names = index_names or {}
        tables = {
            table: TableDeletionConfig(
                fields={f: DeletionStrategy(s) for f, s in fields.items()},
                batch_size=batch_sizes.get(table, DEFAULT_BATCH_SIZE),
                index_name=index_names.get(table, DEFAULT_INDEX_NAME),
            )
            for table, fields in cascade.items()
        }
        return cls(
            cascade=tables,
            preserve=frozenset(preserve),
            storage_fields=dict(storage_fields or {}),
            identity_table=identity_table,
        )
