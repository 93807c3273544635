"""Tests for src/infrastructure/loaders/schema_loader.py"""

import json

import pytest
from sqlalchemy import Column, ForeignKey, Index, MetaData, String, Table

from domain.exceptions import ConfigurationError
from domain.models.schema import BlobDetection, SchemaDescription
from infrastructure.loaders.schema_loader import (
    load_schema,
    logical_index_name,
    looks_like_blob_field,
    schema_from_document,
    schema_from_metadata,
)


@pytest.fixture
def metadata():
    md = MetaData()
    Table("users", md, Column("id", String, primary_key=True), Column("avatar_url", String))
    Table(
        "orders",
        md,
        Column("id", String, primary_key=True),
        Column("customer_id", String, ForeignKey("users.id"), nullable=False),
        Column("approved_by", String, nullable=True, info={"identity_reference": True}),
        Column("receipt_file", String, info={"blob_reference": True}),
        Column("profile_url", String, info={"blob_reference": False}),
        Column("invoice_pdf_url", String),
        Index("ix_orders_by_user__customer_id", "customer_id"),
        Index("ix_orders_by_user__approved_by", "approved_by"),
        Index("ix_orders_status", "id"),
    )
    return md


class TestHelpers:
    @pytest.mark.parametrize(
        "table, index, expected",
        [
            ("orders", "ix_orders_by_user", "by_user"),
            ("orders", "ix_orders_by_user__created_by", "by_user"),
            ("identity_registry", "ix_identity_registry_by_user_id", "by_user_id"),
            ("orders", "by_user", "by_user"),
        ],
    )
    def test_logical_index_name(self, table, index, expected):
        assert logical_index_name(table, index) == expected

    @pytest.mark.parametrize(
        "name, expected",
        [
            ("avatar_blob_id", True),
            ("logo", True),
            ("image_key", True),
            ("attachment_id", True),
            ("profile_url", True),
            ("thumbnail", True),
            ("email", False),
            ("created_by", False),
        ],
    )
    def test_looks_like_blob_field(self, name, expected):
        assert looks_like_blob_field(name) is expected


class TestFromMetadata:
    def test_identity_references(self, metadata):
        schema = schema_from_metadata(metadata)
        orders = schema.table("orders")
        assert [f.name for f in orders.identity_fields] == ["customer_id", "approved_by"]
        assert orders.field("approved_by").is_optional is True
        assert orders.field("customer_id").is_optional is False

    def test_blob_detection(self, metadata):
        orders = schema_from_metadata(metadata).table("orders")
        assert orders.field("receipt_file").blob_detection is BlobDetection.EXPLICIT
        assert orders.field("profile_url").blob_detection is BlobDetection.NONE
        assert orders.field("invoice_pdf_url").blob_detection is BlobDetection.HEURISTIC
        assert [f.name for f in orders.blob_fields] == ["receipt_file", "invoice_pdf_url"]

    def test_heuristics_can_be_disabled(self, metadata):
        orders = schema_from_metadata(metadata, blob_heuristics=False).table("orders")
        assert [f.name for f in orders.blob_fields] == ["receipt_file"]

    def test_physical_indexes_merge_into_logical(self, metadata):
        orders = schema_from_metadata(metadata).table("orders")
        assert orders.has_index_covering("by_user", "customer_id")
        assert orders.has_index_covering("by_user", "approved_by")
        assert not orders.has_index_covering("by_user", "id")

    def test_identity_table_recorded(self, metadata):
        assert schema_from_metadata(metadata, identity_table="users").identity_table == "users"


class TestFromDocument:
    DOC = {
        "identity_table": "accounts",
        "tables": [
            {
                "name": "notes",
                "fields": [
                    {"name": "id"},
                    {"name": "author_id", "identity_reference": True},
                    {"name": "image_url"},
                ],
                "indexes": [{"name": "by_user", "fields": ["author_id"]}],
            }
        ],
    }

    def test_parses_document(self):
        schema = schema_from_document(self.DOC)
        notes = schema.table("notes")
        assert schema.identity_table == "accounts"
        assert [f.name for f in notes.identity_fields] == ["author_id"]
        assert notes.field("image_url").blob_detection is BlobDetection.HEURISTIC
        assert notes.has_index_covering("by_user", "author_id")

    def test_identity_table_override(self):
        assert schema_from_document(self.DOC, identity_table="users").identity_table == "users"

    def test_invalid_document(self):
        with pytest.raises(ConfigurationError, match="invalid schema document"):
            schema_from_document({"tables": [{"fields": []}]})


class TestLoadSchema:
    def test_json_file(self, tmp_path):
        path = tmp_path / "schema.json"
        path.write_text(json.dumps(TestFromDocument.DOC), encoding="utf-8")

        schema = load_schema(str(path))

        assert schema.table_names == ["notes"]
        assert schema.source == str(path)

    def test_declarative_base(self):
        schema = load_schema("infrastructure.database.models:Base")
        assert "client_contacts" in schema.table_names
        assert schema.identity_table == "users"

    def test_schema_description_passthrough(self, monkeypatch):
        import infrastructure.loaders.schema_loader as loader

        description = SchemaDescription()
        monkeypatch.setattr(loader, "resolve_source", lambda source: description)
        assert load_schema("anything:here") is description

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="file not found"):
            load_schema(str(tmp_path / "missing.json"))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="not valid JSON"):
            load_schema(str(path))

    def test_unimportable_module(self):
        with pytest.raises(ConfigurationError, match="cannot import"):
            load_schema("no_such_module_xyz:Base")

    def test_missing_attribute(self):
        with pytest.raises(ConfigurationError, match="has no attribute"):
            load_schema("infrastructure.database.models:Nope")

    def test_not_a_schema(self):
        with pytest.raises(ConfigurationError, match="does not describe a schema"):
            load_schema("infrastructure.settings:get_settings")

    def test_unrecognised_reference(self):
        with pytest.raises(ConfigurationError, match="unrecognised source"):
            load_schema("just-a-name")
