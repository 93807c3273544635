"""Tests for src/domain/models/manifest.py"""

import pytest

from domain.exceptions import ConfigurationError
from domain.models.manifest import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_INDEX_NAME,
    DeletionManifest,
    DeletionStrategy,
    TableDeletionConfig,
)


@pytest.fixture
def manifest():
    return DeletionManifest.build(
        cascade={
            "orders": {"customer_id": "delete"},
            "invoices": {"owner_id": DeletionStrategy.REASSIGN, "created_by": "anonymize"},
        },
        preserve=["audit_log"],
        storage_fields={"users": ["avatar_blob_id"]},
        batch_sizes={"orders": 50},
        index_names={"invoices": "by_owner"},
    )


class TestLookups:
    def test_cascade_tables_keep_declaration_order(self, manifest):
        assert manifest.cascade_tables() == ["orders", "invoices"]

    def test_field_strategy(self, manifest):
        assert manifest.field_strategy("orders", "customer_id") is DeletionStrategy.DELETE
        assert manifest.field_strategy("invoices", "created_by") is DeletionStrategy.ANONYMIZE

    def test_field_strategy_unknown_returns_none(self, manifest):
        assert manifest.field_strategy("orders", "nope") is None
        assert manifest.field_strategy("nope", "customer_id") is None

    def test_preserved_and_registered(self, manifest):
        assert manifest.is_preserved("audit_log") is True
        assert manifest.is_preserved("orders") is False
        assert manifest.is_registered("audit_log") is True
        assert manifest.is_registered("orders") is True
        assert manifest.is_registered("sessions") is False

    def test_storage_fields(self, manifest):
        assert manifest.get_storage_fields("users") == ["avatar_blob_id"]
        assert manifest.get_storage_fields("orders") == []

    def test_batch_size_and_index_defaults(self, manifest):
        assert manifest.batch_size("orders") == 50
        assert manifest.batch_size("invoices") == DEFAULT_BATCH_SIZE
        assert manifest.batch_size("unknown") == DEFAULT_BATCH_SIZE
        assert manifest.index_name("invoices") == "by_owner"
        assert manifest.index_name("orders") == DEFAULT_INDEX_NAME

    def test_fields_with_strategy(self, manifest):
        assert manifest.fields_with_strategy("invoices", DeletionStrategy.REASSIGN) == ["owner_id"]
        assert manifest.fields_with_strategy("orders", DeletionStrategy.REASSIGN) == []
        assert manifest.fields_with_strategy("unknown", DeletionStrategy.DELETE) == []


class TestValidation:
    def test_table_in_cascade_and_preserve_rejected(self):
        with pytest.raises(ConfigurationError, match="orders"):
            DeletionManifest.build(cascade={"orders": {"user_id": "delete"}}, preserve=["orders"])

    def test_non_positive_batch_size_rejected(self):
        with pytest.raises(ConfigurationError):
            TableDeletionConfig(fields={"user_id": DeletionStrategy.DELETE}, batch_size=0)

    def test_unknown_strategy_rejected(self):
        with pytest.raises(ValueError):
            DeletionManifest.build(cascade={"orders": {"user_id": "shred"}})

    def test_single_storage_field_string_rejected(self):
        with pytest.raises(ConfigurationError, match="storage_fields\\['users'\\]"):
            DeletionManifest.build(cascade={}, storage_fields={"users": "avatar"})

    def test_preserve_string_rejected(self):
        with pytest.raises(ConfigurationError, match="preserve"):
            DeletionManifest(preserve="audit_log")  # type: ignore[arg-type]


class TestImmutability:
    def test_cascade_mapping_is_read_only(self, manifest):
        with pytest.raises(TypeError):
            manifest.cascade["sessions"] = TableDeletionConfig()

    def test_field_mapping_is_read_only(self, manifest):
        with pytest.raises(TypeError):
            manifest.cascade["orders"].fields["other"] = DeletionStrategy.DELETE

    def test_attributes_are_frozen(self, manifest):
        with pytest.raises(AttributeError):
            manifest.identity_table = "accounts"
