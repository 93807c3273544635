from __future__ import annotations


class DomainError(Exception):
    """Base class for all domain-layer exceptions.

    Carries HTTP-mapping metadata so the presentation layer can produce
    RFC 9457 Problem Details without knowing exception internals.
    """

    def __init__(
        self,
        detail: str = "",
        *,
        title: str = "Domain Error",
        status_code: int = 400,
        error_type: str = "about:blank",
    ) -> None:
        super().__init__(detail)
        self.detail = detail
        self.title = title
        self.status_code = status_code
        self.error_type = error_type


class ConfigurationError(DomainError):
    """Manifest or schema description is inconsistent or unreadable."""

    def __init__(self, reason: str = "") -> None:
        self.reason = reason
        super().__init__(
            detail=f"Deletion configuration error: {reason}",
            title="Deletion Configuration Error",
            status_code=500,
            error_type="https://api.platform.example/problems/deletion-configuration",
        )


class PreconditionError(DomainError):
    def __init__(self, reason: str = "") -> None:
        self.reason = reason
        super().__init__(
            detail=f"Precondition failed: {reason}",
            title="Precondition Failed",
            status_code=422,
            error_type="https://api.platform.example/problems/precondition-failed",
        )


class NotFoundError(DomainError):
    """Something the cascade wanted to remove is already gone.

    Callers inside the cascade treat this as success.
    """

    def __init__(self, detail: str = "", *, title: str = "Not Found") -> None:
        super().__init__(
            detail=detail,
            title=title,
            status_code=404,
            error_type="https://api.platform.example/problems/not-found",
        )


class RecordNotFoundError(NotFoundError):
    def __init__(self, table: str = "", record_id: str = "") -> None:
        self.table = table
        self.record_id = record_id
        super().__init__(
            detail=f"Record does not exist: {table}/{record_id}",
            title="Record Not Found",
        )


class BlobNotFoundError(NotFoundError):
    def __init__(self, blob_id: str = "") -> None:
        self.blob_id = blob_id
        super().__init__(
            detail=f"Blob does not exist: {blob_id}",
            title="Blob Not Found",
        )


class IdentityNotResolvedError(DomainError):
    def __init__(self, user_id: str = "", reason: str = "") -> None:
        self.user_id = user_id
        self.reason = reason
        super().__init__(
            detail=f"Cannot resolve identity {user_id}: {reason}",
            title="Identity Not Resolved",
            status_code=404,
            error_type="https://api.platform.example/problems/identity-not-resolved",
        )


class DeletionInProgressError(DomainError):
    def __init__(self, user_id: str = "", age_seconds: float = 0.0) -> None:
        self.user_id = user_id
        self.age_seconds = age_seconds
        super().__init__(
            detail=(
                f"Deletion of user {user_id} already in progress "
                f"(started {round(age_seconds)}s ago)"
            ),
            title="Deletion In Progress",
            status_code=409,
            error_type="https://api.platform.example/problems/deletion-in-progress",
        )


class DeletionNotPermittedError(DomainError):
    def __init__(self, actor_id: str = "", target_id: str = "", reason: str = "") -> None:
        self.actor_id = actor_id
        self.target_id = target_id
        self.reason = reason
        super().__init__(
            detail=f"Actor {actor_id} may not delete user {target_id}: {reason}",
            title="Deletion Not Permitted",
            status_code=403,
            error_type="https://api.platform.example/problems/deletion-not-permitted",
        )


class ExternalServiceError(DomainError):
    def __init__(self, service: str = "", reason: str = "") -> None:
        self.service = service
        self.reason = reason
        super().__init__(
            detail=f"External service '{service}' failed: {reason}",
            title="External Service Error",
            status_code=502,
            error_type="https://api.platform.example/problems/external-service",
        )


class AuditError(DomainError):
    def __init__(self, reason: str = "") -> None:
        self.reason = reason
        super().__init__(
            detail=f"Failed to persist audit entry: {reason}",
            title="Audit Write Failed",
            status_code=500,
            error_type="https://api.platform.example/problems/audit-write",
        )


class InvalidStateTransitionError(DomainError):
    def __init__(self, current_state: str = "", new_state: str = "") -> None:
        self.current_state = current_state
        self.new_state = new_state
        super().__init__(
            detail=f"Invalid state transition from {current_state} to {new_state}",
            title="Invalid State Transition",
            status_code=409,
            error_type="https://api.platform.example/problems/invalid-transition",
        )
