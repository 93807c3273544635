"""Tests for src/domain/services/reassignment_policy.py"""

from domain.services.reassignment_policy import NoReassignmentPolicy, StaticReassignmentPolicy


class TestStaticReassignmentPolicy:
    def test_field_key_wins_over_table_key(self):
        policy = StaticReassignmentPolicy(
            {"projects.owner_id": "u-field", "projects": "u-table"}, default="u-default"
        )
        assert policy.resolve("projects", "owner_id", "u-1") == "u-field"
        assert policy.resolve("projects", "reviewer_id", "u-1") == "u-table"
        assert policy.resolve("contacts", "owner_id", "u-1") == "u-default"

    def test_no_match_returns_none(self):
        assert StaticReassignmentPolicy({"projects": "u-2"}).resolve("contacts", "owner_id", "u-1") is None

    def test_never_returns_deleted_user(self):
        policy = StaticReassignmentPolicy({"projects": "u-1"})
        assert policy.resolve("projects", "owner_id", "u-1") is None


def test_no_policy_always_none():
    assert NoReassignmentPolicy().resolve("projects", "owner_id", "u-1") is None
