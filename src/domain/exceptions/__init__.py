from domain.exceptions.deletion_exceptions import (
    AuditError,
    BlobNotFoundError,
    ConfigurationError,
    DeletionInProgressError,
    DeletionNotPermittedError,
    DomainError,
    ExternalServiceError,
    IdentityNotResolvedError,
    InvalidStateTransitionError,
    NotFoundError,
    PreconditionError,
    RecordNotFoundError,
)

__all__ = [
    "AuditError",
    "BlobNotFoundError",
    "ConfigurationError",
    "DeletionInProgressError",
    "DeletionNotPermittedError",
    "DomainError",
    "ExternalServiceError",
    "IdentityNotResolvedError",
    "InvalidStateTransitionError",
    "NotFoundError",
    "PreconditionError",
    "RecordNotFoundError",
]
