"""
Build-time coverage check for the deletion manifest.

Walks a ``SchemaDescription`` and proves that every identity-reference field
is registered with a strategy, has a lookup index the cascade can query, and
that every blob-reference field is swept during deletion.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from domain.models.manifest import DeletionManifest
from domain.models.schema import BlobDetection, SchemaDescription, TableDescription


class ViolationCategory(str, enum.Enum):
    UNREGISTERED_TABLE = "UNREGISTERED TABLES"
    MISSING_STRATEGY = "MISSING FIELD STRATEGIES"
    MISSING_INDEX = "MISSING INDEXES"
    MISSING_STORAGE_FIELD = "MISSING STORAGE FIELDS"


_HINTS: dict[ViolationCategory, str] = {
    ViolationCategory.UNREGISTERED_TABLE: "add the table to the manifest cascade or preserve set",
    ViolationCategory.MISSING_STRATEGY: "add a strategy for the field to the table's cascade entry",
    ViolationCategory.MISSING_INDEX: "declare an index named {index} covering the field",
    ViolationCategory.MISSING_STORAGE_FIELD: "register the field in the manifest storage_fields",
}


@dataclass(frozen=True)
class CoverageViolation:
    category: ViolationCategory
    table: str
    field: str | None = None
    hint: str = ""

    @property
    def location(self) -> str:
        return f"{self.table}.{self.field}" if self.field else self.table


@dataclass
class CoverageReport:
    violations: list[CoverageViolation] = field(default_factory=list)
    multi_reference_tables: dict[str, list[str]] = field(default_factory=dict)
    stale_entries: list[str] = field(default_factory=list)
    cascade_table_count: int = 0
    preserved_table_count: int = 0

    @property
    def passed(self) -> bool:
        return not self.violations

    def by_category(self) -> dict[ViolationCategory, list[CoverageViolation]]:
        grouped: dict[ViolationCategory, list[CoverageViolation]] = {}
        for violation in self.violations:
            grouped.setdefault(violation.category, []).append(violation)
        return grouped

    def render(self) -> str:
        """Human-readable report, one section per violation category."""
        if self.passed:
            lines = [
                f"Deletion cascade coverage OK ({self.cascade_table_count} tables, "
                f"{self.preserved_table_count} preserved)"
            ]
        else:
            lines = ["Deletion manifest incomplete", ""]
            for category in ViolationCategory:
                items = self.by_category().get(category)
                if not items:
                    continue
                lines.append(f"{category.value}:")
                lines.extend(f"  - {v.location}: {v.hint}" for v in items)
                lines.append("")

        if self.multi_reference_tables:
            lines.append("MULTI-REFERENCE TABLES:")
            lines.extend(
                f"  - {table}: {', '.join(fields)}"
                for table, fields in sorted(self.multi_reference_tables.items())
            )
            lines.append("")

        if self.stale_entries:
            lines.append("STALE MANIFEST ENTRIES:")
            lines.extend(f"  - {entry}" for entry in self.stale_entries)
            lines.append("")

        return "\n".join(lines).rstrip() + "\n"


class CoverageVerifier:

    def __init__(self, manifest: DeletionManifest) -> None:
        self._manifest = manifest

    def verify(self, schema: SchemaDescription) -> CoverageReport:
        manifest = self._manifest
        report = CoverageReport(
            cascade_table_count=len(manifest.cascade),
            preserved_table_count=len(manifest.preserve),
        )

        for table in schema.tables:
            if table.name == schema.identity_table:
                continue
            self._check_table(table, report)

        self._collect_stale_entries(schema, report)
        return report

    def _check_table(self, table: TableDescription, report: CoverageReport) -> None:
        manifest = self._manifest
        identity_fields = table.identity_fields

        if identity_fields and not manifest.is_registered(table.name):
            report.violations.append(
                CoverageViolation(
                    ViolationCategory.UNREGISTERED_TABLE,
                    table.name,
                    hint=_HINTS[ViolationCategory.UNREGISTERED_TABLE],
                )
            )

        if len(identity_fields) > 1:
            report.multi_reference_tables[table.name] = [f.name for f in identity_fields]

        index_name = manifest.index_name(table.name)
        for ref in identity_fields:
            if table.name in manifest.cascade and manifest.field_strategy(table.name, ref.name) is None:
                report.violations.append(
                    CoverageViolation(
                        ViolationCategory.MISSING_STRATEGY,
                        table.name,
                        ref.name,
                        _HINTS[ViolationCategory.MISSING_STRATEGY],
                    )
                )
            if not table.has_index_covering(index_name, ref.name):
                report.violations.append(
                    CoverageViolation(
                        ViolationCategory.MISSING_INDEX,
                        table.name,
                        ref.name,
                        _HINTS[ViolationCategory.MISSING_INDEX].format(index=index_name),
                    )
                )

        registered_blobs = manifest.get_storage_fields(table.name)
        for blob in table.blob_fields:
            if blob.name not in registered_blobs:
                hint = _HINTS[ViolationCategory.MISSING_STORAGE_FIELD]
                if blob.blob_detection is BlobDetection.HEURISTIC:
                    hint += " (detected by field name)"
                report.violations.append(
                    CoverageViolation(
                        ViolationCategory.MISSING_STORAGE_FIELD,
                        table.name,
                        blob.name,
                        hint,
                    )
                )

    def _collect_stale_entries(self, schema: SchemaDescription, report: CoverageReport) -> None:
        known = set(schema.table_names)
        for name in sorted(set(self._manifest.cascade) | self._manifest.preserve):
            if name not in known:
                report.stale_entries.append(f"{name}: registered but not in schema")
        for name, config in self._manifest.cascade.items():
            table = schema.table(name)
            if table is None:
                continue
            for field_name in config.fields:
                described = table.field(field_name)
                if described is None or not described.is_identity_reference:
                    report.stale_entries.append(
                        f"{name}.{field_name}: strategy set on a field that is not an identity reference"
                    )
