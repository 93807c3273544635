"""Tests for src/infrastructure/loaders/manifest_loader.py"""

import json

import pytest

from domain.exceptions import ConfigurationError
from domain.models.manifest import DeletionManifest, DeletionStrategy
from infrastructure.deletion_manifest import DELETION_MANIFEST
from infrastructure.loaders.manifest_loader import load_manifest, manifest_from_document

DOC = {
    "identity_table": "accounts",
    "cascade": {
        "notes": {"fields": {"author_id": "delete"}, "batch_size": 25},
        "tasks": {"fields": {"assignee_id": "reassign", "creator_id": "anonymize"}, "index_name": "by_owner"},
    },
    "preserve": ["audit_log"],
    "storage_fields": {"accounts": ["avatar_blob_id"]},
}


class TestManifestFromDocument:
    def test_parses(self):
        manifest = manifest_from_document(DOC)

        assert manifest.identity_table == "accounts"
        assert manifest.cascade_tables() == ["notes", "tasks"]
        assert manifest.field_strategy("tasks", "assignee_id") is DeletionStrategy.REASSIGN
        assert manifest.batch_size("notes") == 25
        assert manifest.index_name("tasks") == "by_owner"
        assert manifest.is_preserved("audit_log")
        assert manifest.get_storage_fields("accounts") == ["avatar_blob_id"]

    def test_unknown_strategy(self):
        bad = {"cascade": {"notes": {"fields": {"author_id": "shred"}}}}
        with pytest.raises(ConfigurationError, match="invalid manifest document"):
            manifest_from_document(bad)

    def test_zero_batch_size(self):
        bad = {"cascade": {"notes": {"fields": {"author_id": "delete"}, "batch_size": 0}}}
        with pytest.raises(ConfigurationError):
            manifest_from_document(bad)

    def test_overlap_between_cascade_and_preserve(self):
        bad = {"cascade": {"notes": {"fields": {"author_id": "delete"}}}, "preserve": ["notes"]}
        with pytest.raises(ConfigurationError, match="both cascade and preserve"):
            manifest_from_document(bad)


class TestLoadManifest:
    def test_json_file(self, tmp_path):
        path = tmp_path / "manifest.json"
        path.write_text(json.dumps(DOC), encoding="utf-8")
        assert load_manifest(str(path)).cascade_tables() == ["notes", "tasks"]

    def test_python_attribute(self):
        manifest = load_manifest("infrastructure.deletion_manifest:DELETION_MANIFEST")
        assert manifest is DELETION_MANIFEST
        assert isinstance(manifest, DeletionManifest)

    def test_not_a_manifest(self):
        with pytest.raises(ConfigurationError, match="does not describe a deletion manifest"):
            load_manifest("infrastructure.settings:get_settings")
