"""The shipped deletion manifest must cover every user reference in the ORM models."""

from sqlalchemy import Column, Index, MetaData, String, Table

from domain.services.coverage_verifier import CoverageVerifier, ViolationCategory
from infrastructure.database.models import Base
from infrastructure.deletion_manifest import DELETION_MANIFEST
from infrastructure.loaders.schema_loader import load_schema, schema_from_metadata


def test_models_are_fully_covered():
    schema = load_schema("infrastructure.database.models:Base")
    report = CoverageVerifier(DELETION_MANIFEST).verify(schema)

    assert report.passed, report.render()
    assert report.stale_entries == []


def test_multi_reference_tables_are_listed():
    schema = load_schema("infrastructure.database.models:Base")
    report = CoverageVerifier(DELETION_MANIFEST).verify(schema)

    assert report.multi_reference_tables["client_contacts"] == ["assigned_to", "created_by"]
    assert "deletion_log" in report.multi_reference_tables


def test_new_user_linked_table_fails_coverage():
    metadata = MetaData()
    for table in Base.metadata.sorted_tables:
        table.to_metadata(metadata)
    Table(
        "chat_messages",
        metadata,
        Column("id", String(64), primary_key=True),
        Column("sender_id", String(64), nullable=False, info={"identity_reference": True}),
        Column("attachment_key", String(255)),
        Index("ix_chat_messages_by_user", "sender_id"),
    )

    report = CoverageVerifier(DELETION_MANIFEST).verify(schema_from_metadata(metadata))

    categories = {(v.category, v.location) for v in report.violations}
    assert categories == {
        (ViolationCategory.UNREGISTERED_TABLE, "chat_messages"),
        (ViolationCategory.MISSING_STORAGE_FIELD, "chat_messages.attachment_key"),
    }
