from __future__ import annotations

from collections.abc import Mapping
from typing import Protocol


class ReassignmentPolicy(Protocol):
    """Supplies the new owner for a reassign field.

    ``None`` means no policy applies; the caller must then provide the owner.
    """

    def resolve(self, table: str, field: str, deleted_user_id: str) -> str | None: ...


class NoReassignmentPolicy:

    def resolve(self, table: str, field: str, deleted_user_id: str) -> str | None:
        return None


class StaticReassignmentPolicy:
    """Fixed owners keyed by ``table`` or ``table.field``, with an optional fallback.

    The most specific key wins. An owner equal to the user being deleted is
    never returned.
    """

    def __init__(self, owners: Mapping[str, str] | None = None, default: str | None = None) -> None:
        self._owners = dict(owners or {})
        self._default = default

    def resolve(self, table: str, field: str, deleted_user_id: str) -> str | None:
        owner = self._owners.get(f"{table}.{field}") or self._owners.get(table) or self._default
        if owner == deleted_user_id:
            return None
        return owner
