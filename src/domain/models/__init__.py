from domain.models.audit import ActorRole, DeletionAuditEntry, DeletionAuditStatus
from domain.models.deletion import (
    CascadeResult,
    DeletionRequest,
    DeletionResult,
    DeletionState,
    DeletionStatus,
    ExternalDeletionOutcome,
    ExternalDeletionStatus,
    TableCascadeStats,
)
from domain.models.manifest import DeletionManifest, DeletionStrategy, TableDeletionConfig
from domain.models.schema import (
    BlobDetection,
    FieldDescription,
    IndexDescription,
    SchemaDescription,
    TableDescription,
)

__all__ = [
    "ActorRole",
    "BlobDetection",
    "CascadeResult",
    "DeletionAuditEntry",
    "DeletionAuditStatus",
    "DeletionManifest",
    "DeletionRequest",
    "DeletionResult",
    "DeletionState",
    "DeletionStatus",
    "DeletionStrategy",
    "ExternalDeletionOutcome",
    "ExternalDeletionStatus",
    "FieldDescription",
    "IndexDescription",
    "SchemaDescription",
    "TableCascadeStats",
    "TableDescription",
    "TableDeletionConfig",
]
