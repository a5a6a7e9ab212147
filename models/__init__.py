"""
Pydantic models for validation and serialization.
"""

from models.base import (
    BaseSchema,
    PaginatedResponse,
)
from models.inventory import (
    DIMENSION_FIELDS,
    MAX_IMAGE_URLS,
    InventoryItemCreate,
    InventoryItemResponse,
    InventoryListResponse,
    QuantityAdjustment,
    QuantityAdjustmentResponse,
)
from models.reconciliation import (
    ImportSource,
    ImportSessionStatus,
    ConflictType,
    ResolutionAction,
    ConflictStatus,
    SkuErrorStatus,
    ImportRow,
    ScoredCandidate,
    MatchCandidate,
    FieldDifference,
    ConflictCandidate,
    MatchedRow,
    NewRow,
    ConflictedRow,
    UnmatchedRow,
    RowOutcome,
    ImportSummary,
    ImportSnapshot,
    ConflictResolution,
    ResolveRequest,
    CommitResult,
    ImportSessionResponse,
    ConflictRecordResponse,
    UrlImportRequest,
    BulkUpsertRequest,
    BulkUpsertResult,
    ScheduledRunResult,
    SkuErrorCreate,
    SkuErrorResponse,
    SkuErrorResolveRequest,
    CSVSourceResponse,
)

__all__ = [
    # Base
    "BaseSchema",
    "PaginatedResponse",

    # Inventory
    "DIMENSION_FIELDS",
    "MAX_IMAGE_URLS",
    "InventoryItemCreate",
    "InventoryItemResponse",
    "InventoryListResponse",
    "QuantityAdjustment",
    "QuantityAdjustmentResponse",

    # Reconciliation
    "ImportSource",
    "ImportSessionStatus",
    "ConflictType",
    "ResolutionAction",
    "ConflictStatus",
    "SkuErrorStatus",
    "ImportRow",
    "ScoredCandidate",
    "MatchCandidate",
    "FieldDifference",
    "ConflictCandidate",
    "MatchedRow",
    "NewRow",
    "ConflictedRow",
    "UnmatchedRow",
    "RowOutcome",
    "ImportSummary",
    "ImportSnapshot",
    "ConflictResolution",
    "ResolveRequest",
    "CommitResult",
    "ImportSessionResponse",
    "ConflictRecordResponse",
    "UrlImportRequest",
    "BulkUpsertRequest",
    "BulkUpsertResult",
    "ScheduledRunResult",
    "SkuErrorCreate",
    "SkuErrorResponse",
    "SkuErrorResolveRequest",
    "CSVSourceResponse",
]
