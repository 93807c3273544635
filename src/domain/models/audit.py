from __future__ import annotations

import enum
import hashlib
import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4


class DeletionAuditStatus(enum.Enum):
    COMPLETED = "COMPLETED"
    EXTERNAL_FAILED = "EXTERNAL_FAILED"
    PARTIAL = "PARTIAL"
    ABORTED = "ABORTED"


class ActorRole(enum.Enum):
    SELF = "self"
    ADMIN = "admin"


def _compute_entry_hash(
    previous_hash: str,
    status: DeletionAuditStatus,
    target_user_id: str,
    actor_id: str,
    timestamp: datetime,
    outcome: dict[str, Any],
) -> str:
    payload = (
        f"{previous_hash}{status.value}{target_user_id}{actor_id}{timestamp.isoformat()}"
        f"{json.dumps(outcome, sort_keys=True, default=str)}"
    )
    return hashlib.sha256(payload.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class DeletionAuditEntry:
    """One immutable line in the deletion journal.

    The hash covers the previous entry's hash plus this entry's outcome, so
    any later edit of a stored entry breaks the chain.
    """

    target_user_id: str
    actor_id: str
    reason: str
    status: DeletionAuditStatus
    actor_role: ActorRole = ActorRole.ADMIN
    cascade_outcome: dict[str, Any] = field(default_factory=dict)
    external_outcome: dict[str, Any] = field(default_factory=dict)
    error: str | None = None
    id: str = field(default_factory=lambda: uuid4().hex)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    previous_hash: str = ""
    entry_hash: str = field(default="", init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "entry_hash", self._hash())

    def _hash(self) -> str:
        return _compute_entry_hash(
            self.previous_hash,
            self.status,
            self.target_user_id,
            self.actor_id,
            self.timestamp,
            {
                "cascade": self.cascade_outcome,
                "external": self.external_outcome,
                "error": self.error,
                "reason": self.reason,
            },
        )

    def verify(self) -> bool:
        """Recompute the hash and compare it with the stored one."""
        return self.entry_hash == self._hash()
