"""
SQLAlchemy 2.0+ ORM models for the platform's user-owned data.

Schema conventions
------------------
* Every column holding a user id is declared with :func:`user_ref`, which
  tags it ``info={"identity_reference": True}``.  User references carry no
  foreign key: anonymized rows keep the ``"deleted-user"`` sentinel and the
  cascade, not the database, decides what happens to each row.
* Every column holding a storage blob id is declared with :func:`blob_ref`
  (``info={"blob_reference": True}``).
* Lookup indexes used by the deletion cascade are named
  ``ix_<table>_<logical name>``; a table with several user references gets
  one physical index per column, distinguished by a ``__<column>`` suffix.

The deletion coverage check reads this metadata in CI, so a new user-linked
column that is not registered in the deletion manifest fails the build.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import JSON, DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------------------------------------------------------------------------
# Base class & column helpers
# ---------------------------------------------------------------------------

class Base(DeclarativeBase):
    """Shared declarative base for every ORM model."""
    pass


def user_ref(*, nullable: bool = False) -> Any:
    return mapped_column(String(64), nullable=nullable, info={"identity_reference": True})


def blob_ref(*, nullable: bool = True) -> Any:
    return mapped_column(String(255), nullable=nullable, info={"blob_reference": True})


def _pk() -> Any:
    return mapped_column(String(64), primary_key=True)


def _created_at() -> Any:
    return mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())


class AnonymizationStampMixin:
    """Columns stamped when a row's user reference is anonymized."""

    anonymized_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    anonymized_reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)


class ReassignmentStampMixin:
    """Columns stamped when a row is handed to a new owner."""

    previous_owner: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    reassigned_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    reassigned_reason: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)


# ---------------------------------------------------------------------------
# Identity
# ---------------------------------------------------------------------------

class UserModel(Base):
    """A platform user. Tombstoned and finally removed by the deletion saga."""

    __tablename__ = "users"
    __table_args__ = (
        Index("ix_users_email", "email"),
        Index("ix_users_rank", "rank"),
    )

    id: Mapped[str] = _pk()
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    first_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(120), nullable=True)
    display_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    rank: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    avatar_blob_id: Mapped[Optional[str]] = blob_ref()
    brand_logo_blob_id: Mapped[Optional[str]] = blob_ref()
    deletion_status: Mapped[Optional[str]] = mapped_column(String(16), nullable=True)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = _created_at()

    def __repr__(self) -> str:
        return f"<User(id={self.id!r}, email={self.email!r})>"


class IdentityRegistryModel(Base):
    """Maps an internal user id to the external identity provider's handle."""

    __tablename__ = "identity_registry"
    __table_args__ = (
        Index("ix_identity_registry_by_user_id", "user_id", unique=True),
        Index("ix_identity_registry_external_handle", "external_handle", unique=True),
    )

    id: Mapped[str] = _pk()
    user_id: Mapped[str] = user_ref()
    external_handle: Mapped[str] = mapped_column(String(255), nullable=False)
    created_at: Mapped[datetime] = _created_at()


class AccountSettingsModel(Base):
    __tablename__ = "account_settings"
    __table_args__ = (Index("ix_account_settings_by_user", "user_id"),)

    id: Mapped[str] = _pk()
    user_id: Mapped[str] = user_ref()
    locale: Mapped[str] = mapped_column(String(16), nullable=False, default="en")
    theme: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    preferences: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)


# ---------------------------------------------------------------------------
# Clients & finance
# ---------------------------------------------------------------------------

class ClientContactModel(AnonymizationStampMixin, ReassignmentStampMixin, Base):
    """A client contact. Ownership moves on; the creator is anonymized."""

    __tablename__ = "client_contacts"
    __table_args__ = (
        Index("ix_client_contacts_by_user__assigned_to", "assigned_to"),
        Index("ix_client_contacts_by_user__created_by", "created_by"),
    )

    id: Mapped[str] = _pk()
    assigned_to: Mapped[str] = user_ref()
    created_by: Mapped[str] = user_ref()
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)
    phone_number: Mapped[Optional[str]] = mapped_column(String(40), nullable=True)
    company: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = _created_at()


class FinanceStatementModel(AnonymizationStampMixin, Base):
    """Bank statement import. Kept for bookkeeping with its creator anonymized."""

    __tablename__ = "finance_statements"
    __table_args__ = (Index("ix_finance_statements_by_user", "created_by"),)

    id: Mapped[str] = _pk()
    created_by: Mapped[str] = user_ref()
    account_name: Mapped[str] = mapped_column(String(255), nullable=False)
    period: Mapped[str] = mapped_column(String(7), nullable=False)
    balance_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = _created_at()


# ---------------------------------------------------------------------------
# Projects
# ---------------------------------------------------------------------------

class ProjectScheduleModel(Base):
    __tablename__ = "project_schedule"
    __table_args__ = (
        Index("ix_project_schedule_by_user__assigned_to", "assigned_to"),
        Index("ix_project_schedule_by_user__created_by", "created_by"),
    )

    id: Mapped[str] = _pk()
    assigned_to: Mapped[Optional[str]] = user_ref(nullable=True)
    created_by: Mapped[str] = user_ref()
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    starts_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class ProjectCostModel(Base):
    __tablename__ = "project_costs"
    __table_args__ = (Index("ix_project_costs_by_user", "created_by"),)

    id: Mapped[str] = _pk()
    created_by: Mapped[str] = user_ref()
    description: Mapped[str] = mapped_column(Text, nullable=False)
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


# ---------------------------------------------------------------------------
# Productivity
# ---------------------------------------------------------------------------

class EmailAccountModel(Base):
    __tablename__ = "email_accounts"
    __table_args__ = (Index("ix_email_accounts_by_user", "user_id"),)

    id: Mapped[str] = _pk()
    user_id: Mapped[str] = user_ref()
    email: Mapped[str] = mapped_column(String(320), nullable=False)
    provider: Mapped[str] = mapped_column(String(32), nullable=False, default="outlook")


class EmailMessageModel(Base):
    __tablename__ = "email_messages"
    __table_args__ = (Index("ix_email_messages_by_user", "created_by"),)

    id: Mapped[str] = _pk()
    created_by: Mapped[str] = user_ref()
    account_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    subject: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    attachment_blob_id: Mapped[Optional[str]] = blob_ref()
    received_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class EmailSenderCacheModel(Base):
    __tablename__ = "email_sender_cache"
    __table_args__ = (
        Index("ix_email_sender_cache_by_user__user_id", "user_id"),
        Index("ix_email_sender_cache_by_user__confirmed_by", "confirmed_by"),
    )

    id: Mapped[str] = _pk()
    user_id: Mapped[str] = user_ref()
    confirmed_by: Mapped[Optional[str]] = user_ref(nullable=True)
    sender_email: Mapped[str] = mapped_column(String(320), nullable=False)


class CalendarEventModel(Base):
    __tablename__ = "calendar_events"
    __table_args__ = (Index("ix_calendar_events_by_user", "created_by"),)

    id: Mapped[str] = _pk()
    created_by: Mapped[str] = user_ref()
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    starts_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)


class BookingFormModel(Base):
    __tablename__ = "booking_forms"
    __table_args__ = (Index("ix_booking_forms_by_user", "created_by"),)

    id: Mapped[str] = _pk()
    created_by: Mapped[str] = user_ref()
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False)


class PipelineProspectModel(Base):
    __tablename__ = "pipeline_prospects"
    __table_args__ = (Index("ix_pipeline_prospects_by_user", "created_by"),)

    id: Mapped[str] = _pk()
    created_by: Mapped[str] = user_ref()
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(320), nullable=True)
    stage: Mapped[str] = mapped_column(String(32), nullable=False, default="lead")


# ---------------------------------------------------------------------------
# Deletion journal (append-only, never cascaded)
# ---------------------------------------------------------------------------

class DeletionLogModel(Base):
    """Append-only, hash-chained journal of user deletions.

    Each row stores the SHA-256 ``entry_hash`` of its content plus the
    ``previous_hash`` of the row before it.
    """

    __tablename__ = "deletion_log"
    __table_args__ = (
        Index("ix_deletion_log_by_user", "target_user_id", "actor_id"),
        Index("ix_deletion_log_timestamp", "timestamp"),
    )

    id: Mapped[str] = _pk()
    seq: Mapped[int] = mapped_column(Integer, nullable=False, unique=True)
    target_user_id: Mapped[str] = user_ref()
    actor_id: Mapped[str] = user_ref()
    actor_role: Mapped[str] = mapped_column(String(16), nullable=False)
    reason: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    cascade_outcome: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    external_outcome: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    error: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    previous_hash: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    entry_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return (
            f"<DeletionLog(id={self.id!r}, target_user_id={self.target_user_id!r}, "
            f"status={self.status!r})>"
        )
