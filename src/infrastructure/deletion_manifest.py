"""
The platform's deletion manifest.

Every table in ``infrastructure.database.models`` that holds a user
reference is listed here, either in the cascade with a strategy per
reference column or in the preserve set. ``verify-cascade-coverage`` fails
CI when a model and this manifest drift apart.
"""

from __future__ import annotations

from domain.models.manifest import DeletionManifest, DeletionStrategy

DELETE = DeletionStrategy.DELETE
ANONYMIZE = DeletionStrategy.ANONYMIZE
REASSIGN = DeletionStrategy.REASSIGN

DELETION_MANIFEST: DeletionManifest = DeletionManifest.build(
    cascade={
        # Settings
        "account_settings": {"user_id": DELETE},
        # Clients: the contact stays with the team, the creator is scrubbed
        "client_contacts": {"assigned_to": REASSIGN, "created_by": ANONYMIZE},
        # Finance: statements are bookkeeping records
        "finance_statements": {"created_by": ANONYMIZE},
        # Projects
        "project_schedule": {"assigned_to": DELETE, "created_by": DELETE},
        "project_costs": {"created_by": DELETE},
        # Productivity
        "email_accounts": {"user_id": DELETE},
        "email_messages": {"created_by": DELETE},
        "email_sender_cache": {"user_id": DELETE, "confirmed_by": DELETE},
        "calendar_events": {"created_by": DELETE},
        "booking_forms": {"created_by": DELETE},
        "pipeline_prospects": {"created_by": DELETE},
        # The registry mapping goes last; the saga resolves the handle first
        "identity_registry": {"user_id": DELETE},
    },
    preserve=["deletion_log"],
    storage_fields={
        "users": ["avatar_blob_id", "brand_logo_blob_id"],
        "email_messages": ["attachment_blob_id"],
    },
    batch_sizes={"email_messages": 100},
    index_names={"identity_registry": "by_user_id"},
)
