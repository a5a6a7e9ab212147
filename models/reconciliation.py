"""
Reconciliation schemas: import rows, match results, row outcomes,
import sessions, conflict records and SKU errors.

Row outcomes form a tagged union on the ``kind`` field so callers can
branch on it instead of probing which attributes are present.
"""

from pydantic import BaseModel, Field
from typing import Annotated, Any, Literal, Optional, Union
from datetime import datetime
from enum import Enum

from models.base import BaseSchema
from models.inventory import InventoryItemResponse


# ===================
# ENUMS
# ===================

class ImportSource(str, Enum):
    """Where an import run's rows came from."""
    FILE = "file"
    URL = "url"
    MANUAL = "manual"
    SCHEDULED = "scheduled"


class ImportSessionStatus(str, Enum):
    """
    Import session lifecycle.

    PARSING -> READY_FOR_REVIEW -> RESOLVING -> COMMITTED
    FAILED is reachable from any state.
    """
    PARSING = "PARSING"
    READY_FOR_REVIEW = "READY_FOR_REVIEW"
    RESOLVING = "RESOLVING"
    COMMITTED = "COMMITTED"
    FAILED = "FAILED"


class ConflictType(str, Enum):
    """Why a row needs human review."""
    DUPLICATE_ITEM_ID = "duplicate_item_id"      # productId matches, SKU differs
    FIELD_MISMATCH = "field_mismatch"            # identity fields differ
    MULTIPLE_CANDIDATES = "multiple_candidates"  # ambiguous SKU or fuzzy match
    DIMENSION_MISMATCH = "dimension_mismatch"    # only length/width/height/weight differ


class ResolutionAction(str, Enum):
    """Decision taken for a conflicted row."""
    KEEP_EXISTING = "keep_existing"
    SKIP = "skip"
    ACCEPT_CSV = "accept_csv"
    CREATE_DUPLICATE = "create_duplicate"
    REPLACE_EXISTING = "replace_existing"


class ConflictStatus(str, Enum):
    PENDING = "PENDING"
    RESOLVED = "RESOLVED"


class SkuErrorStatus(str, Enum):
    PENDING = "PENDING"
    RESOLVED = "RESOLVED"


# ===================
# ROWS AND MATCHES
# ===================

class ImportRow(BaseModel):
    """
    One parsed source row before reconciliation.

    ``normalized`` only holds fields the source actually supplied, plus
    ``quantity``, which is always present; when the source had no usable
    quantity it is 0 and listed in ``defaulted``. ``raw`` is the untouched row.
    """
    row_index: int
    normalized: dict[str, Any] = Field(default_factory=dict)
    raw: dict[str, str] = Field(default_factory=dict)
    defaulted: list[str] = Field(default_factory=list)

    def get(self, field: str, default: Any = None) -> Any:
        return self.normalized.get(field, default)

    def has(self, field: str) -> bool:
        """True if the source supplied a usable value for ``field``."""
        if field in self.defaulted:
            return False
        return self.normalized.get(field) not in (None, "", [])

    def raw_value(self, header: str) -> Optional[str]:
        """Look up an unmapped source column, case-insensitively."""
        if header in self.raw:
            return self.raw[header]
        wanted = header.strip().lower()
        for key, value in self.raw.items():
            if key.strip().lower() == wanted:
                return value
        return None

    @property
    def product_id(self) -> Optional[str]:
        return self.normalized.get("product_id")

    @property
    def sku(self) -> Optional[str]:
        return self.normalized.get("sku")

    @property
    def name(self) -> Optional[str]:
        return self.normalized.get("name")

    @property
    def quantity(self) -> int:
        return self.normalized.get("quantity", 0)


class ScoredCandidate(BaseModel):
    """Existing item considered a match, with its similarity score."""
    item: InventoryItemResponse
    score: float = Field(..., ge=0, le=1)


class MatchCandidate(BaseModel):
    """Identity Resolver result for one row."""
    primary: Optional[InventoryItemResponse] = None
    conflicts: list[ScoredCandidate] = Field(default_factory=list)
    score: float = Field(0.0, ge=0, le=1)
    matched_by: Optional[Literal["product_id", "sku", "name"]] = None

    @property
    def is_unmatched(self) -> bool:
        return self.primary is None and not self.conflicts


class FieldDifference(BaseModel):
    """One allow-listed field whose CSV value differs from the stored one."""
    field: str
    existing_value: Any = None
    csv_value: Any = None


class ConflictCandidate(BaseModel):
    """Existing item offered to the reviewer for a conflicted row."""
    item: InventoryItemResponse
    score: float = Field(1.0, ge=0, le=1)
    differences: list[FieldDifference] = Field(default_factory=list)


# ===================
# ROW OUTCOMES
# ===================

class MatchedRow(BaseModel):
    """Clean update: identity resolved and no divergent fields."""
    kind: Literal["matched"] = "matched"
    row: ImportRow
    item: InventoryItemResponse
    score: float = 1.0
    matched_by: Optional[str] = None
    updates: dict[str, Any] = Field(default_factory=dict)


class NewRow(BaseModel):
    """No existing item: the row creates one."""
    kind: Literal["new"] = "new"
    row: ImportRow
    record: dict[str, Any]


class ConflictedRow(BaseModel):
    """Row needing a human decision."""
    kind: Literal["conflicted"] = "conflicted"
    row: ImportRow
    conflict_type: ConflictType
    key: Optional[str] = None
    candidates: list[ConflictCandidate] = Field(default_factory=list)
    differences: list[FieldDifference] = Field(default_factory=list)
    proposed_update: dict[str, Any] = Field(default_factory=dict)


class UnmatchedRow(BaseModel):
    """Row that is neither written nor retried automatically."""
    kind: Literal["unmatched"] = "unmatched"
    row: ImportRow
    reason: str


RowOutcome = Annotated[
    Union[MatchedRow, NewRow, ConflictedRow, UnmatchedRow],
    Field(discriminator="kind")
]


# ===================
# IMPORT SESSIONS
# ===================

class ImportSummary(BaseModel):
    """Row counts after the parsing phase."""
    total: int = 0
    matched: int = 0
    new: int = 0
    conflicts: int = 0
    unmatched: int = 0
    dimension_conflicts: int = 0


class ImportSnapshot(BaseModel):
    """Durable per-row results of the parsing phase."""
    matched: list[MatchedRow] = Field(default_factory=list)
    new: list[NewRow] = Field(default_factory=list)
    conflicts: list[ConflictedRow] = Field(default_factory=list)
    unmatched: list[UnmatchedRow] = Field(default_factory=list)

    def add(self, outcome: RowOutcome) -> None:
        if outcome.kind == "matched":
            self.matched.append(outcome)
        elif outcome.kind == "new":
            self.new.append(outcome)
        elif outcome.kind == "conflicted":
            self.conflicts.append(outcome)
        else:
            self.unmatched.append(outcome)

    def summarize(self) -> ImportSummary:
        dimension = sum(
            1 for c in self.conflicts
            if c.conflict_type == ConflictType.DIMENSION_MISMATCH
        )
        return ImportSummary(
            total=len(self.matched) + len(self.new) + len(self.conflicts) + len(self.unmatched),
            matched=len(self.matched),
            new=len(self.new),
            conflicts=len(self.conflicts) - dimension,
            unmatched=len(self.unmatched),
            dimension_conflicts=dimension,
        )

    def conflict_for_row(self, row_index: int) -> Optional[ConflictedRow]:
        for conflict in self.conflicts:
            if conflict.row.row_index == row_index:
                return conflict
        return None


class ConflictResolution(BaseSchema):
    """Reviewer decision for one conflicted row."""
    row_index: int = Field(..., ge=0)
    action: ResolutionAction
    candidate_id: Optional[str] = Field(
        None,
        description="Existing item the action targets (required when several candidates)"
    )
    use_csv_dimensions: bool = Field(
        True,
        description="Write length/width/height/weight from the CSV"
    )
    override_barcode: bool = Field(
        False,
        description="Replace an existing barcode with the CSV one"
    )


class ResolveRequest(BaseSchema):
    resolutions: list[ConflictResolution]


class CommitResult(BaseModel):
    """Write counts after the commit phase."""
    created: int = 0
    updated: int = 0
    deleted: int = 0
    skipped: int = 0
    errors: int = 0
    error_messages: list[str] = Field(default_factory=list)


class ImportSessionResponse(BaseSchema):
    """One reconciliation attempt and its durable results."""
    id: str
    source: ImportSource
    source_name: Optional[str] = None
    status: ImportSessionStatus
    summary: ImportSummary = Field(default_factory=ImportSummary)
    snapshot: Optional[ImportSnapshot] = None
    resolutions: list[ConflictResolution] = Field(default_factory=list)
    commit_result: Optional[CommitResult] = None
    error_message: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ConflictRecordResponse(BaseSchema):
    """Persisted conflict awaiting (or after) human resolution."""
    id: str
    session_id: str
    row_index: int
    key: Optional[str] = None
    conflict_type: ConflictType
    candidates: list[ConflictCandidate] = Field(default_factory=list)
    proposed_update: dict[str, Any] = Field(default_factory=dict)
    status: ConflictStatus = ConflictStatus.PENDING
    resolution: Optional[ResolutionAction] = None
    created_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None


class UrlImportRequest(BaseSchema):
    url: str = Field(..., min_length=8, description="http(s) URL of a CSV file")


class BulkUpsertRequest(BaseModel):
    items: list[dict[str, str]] = Field(..., min_length=1)


class BulkUpsertResult(BaseModel):
    """Counts from the no-review bulk upsert path."""
    created: int = 0
    updated: int = 0
    deleted: int = 0
    skipped: int = 0
    sku_errors: int = 0
    errors: int = 0


class ScheduledRunResult(BaseModel):
    """Outcome of one scheduled pull across all configured sources."""
    status: Literal["success", "partial", "skipped", "no_sources", "failed"]
    message: str
    sources_processed: int = 0
    created: int = 0
    updated: int = 0
    errors: int = 0
    session_id: Optional[str] = None


# ===================
# SKU ERRORS
# ===================

class SkuErrorCreate(BaseSchema):
    """productId whose incoming SKU disagrees with the stored one."""
    product_id: str
    name: str = ""
    csv_sku: str
    existing_sku: str
    quantity: int = Field(0, ge=0)
    barcode: Optional[str] = None


class SkuErrorResponse(SkuErrorCreate):
    id: str
    status: SkuErrorStatus = SkuErrorStatus.PENDING
    created_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None


class SkuErrorResolveRequest(BaseSchema):
    corrected_sku: str = Field(..., min_length=1)


# ===================
# CSV SOURCES
# ===================

class CSVSourceResponse(BaseSchema):
    """Remote CSV pulled by the scheduled import."""
    id: str
    name: str
    url: str
    enabled: bool = True
