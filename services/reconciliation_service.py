"""
Reconciliation service: runs an inventory import through parsing, conflict
review and commit.

Session lifecycle:
    PARSING -> READY_FOR_REVIEW -> RESOLVING -> COMMITTED
    any state -> FAILED on an unhandled error

Parsing never writes inventory. Commit applies clean matches, new items and
resolved conflicts; each write is counted on its own, so one failed write
never aborts its siblings. Writes that succeeded before a run-level failure
are not rolled back.
"""

from typing import Callable, Optional
import structlog

from pydantic import ValidationError as SchemaValidationError

from config import settings
from models.inventory import DIMENSION_FIELDS, InventoryItemResponse
from models.reconciliation import (
    CommitResult,
    ConflictedRow,
    ConflictRecordResponse,
    ConflictResolution,
    ImportRow,
    ImportSessionResponse,
    ImportSessionStatus,
    ImportSnapshot,
    ImportSource,
    MatchedRow,
    NewRow,
    ResolutionAction,
    UnmatchedRow,
)
from exceptions import (
    AppError,
    InvalidResolutionError,
    InvalidSessionTransitionError,
)
from parsers.csv_parser import parse_upload
from services.bulk_upsert_service import write_in_batches
from services.conflict_detector import classify
from services.csv_source_service import get_csv_source_service
from services.identity_resolver import InventoryIndex, resolve
from services.import_session_service import get_import_session_service
from services.inventory_service import get_inventory_service
from services.record_fields import build_create_record, build_update_fields
from services.row_normalizer import normalize_rows
from utils.text_utils import normalize_product_name

logger = structlog.get_logger(__name__)

DUPLICATE_PRODUCT_ID = "Duplicate productId in file"
DUPLICATE_SKU = "Duplicate SKU in file with a different name"
MERGED_INTO_ROW = "Quantity merged into row"

RESOLVABLE_STATUSES = (ImportSessionStatus.READY_FOR_REVIEW, ImportSessionStatus.RESOLVING)
COMMITTABLE_STATUSES = RESOLVABLE_STATUSES

# Actions that write the CSV side onto one specific candidate
TARGETED_ACTIONS = (ResolutionAction.ACCEPT_CSV, ResolutionAction.REPLACE_EXISTING)
PASSIVE_ACTIONS = (ResolutionAction.KEEP_EXISTING, ResolutionAction.SKIP)

WRITE_ERRORS = (AppError, SchemaValidationError)


class ReconciliationService:
    """
    Orchestrates import sessions over the persistence services.

    Collaborators are injected so tests can pass in-memory fakes.
    """

    def __init__(
        self,
        inventory_service=None,
        session_service=None,
        csv_source_service=None
    ):
        self.inventory = inventory_service or get_inventory_service()
        self.sessions = session_service or get_import_session_service()
        self.csv_sources = csv_source_service or get_csv_source_service()

    # ===================
    # PARSING PHASE
    # ===================

    def start_import(
        self,
        rows: list[dict[str, str]],
        source: ImportSource = ImportSource.MANUAL,
        source_name: Optional[str] = None
    ) -> ImportSessionResponse:
        """
        Reconcile raw rows against inventory and open a session for review.

        Args:
            rows: Raw rows keyed by source header
            source: Where the rows came from
            source_name: Filename, URL or other label

        Returns:
            Session in READY_FOR_REVIEW with summary and snapshot
        """
        return self._run_parsing(source, source_name, lambda: rows)

    def start_import_from_file(self, filename: Optional[str], content: bytes) -> ImportSessionResponse:
        """Parse an uploaded CSV or Excel file and reconcile it."""
        return self._run_parsing(
            ImportSource.FILE,
            filename,
            lambda: parse_upload(filename, content)
        )

    def start_import_from_url(self, url: str) -> ImportSessionResponse:
        """Fetch a CSV over HTTP and reconcile it."""
        return self._run_parsing(
            ImportSource.URL,
            url,
            lambda: self.csv_sources.fetch_rows(url)
        )

    def _run_parsing(
        self,
        source: ImportSource,
        source_name: Optional[str],
        load_rows: Callable[[], list[dict[str, str]]]
    ) -> ImportSessionResponse:
        session = self.sessions.create(source, source_name)

        try:
            raw_rows = load_rows()
            import_rows = normalize_rows(raw_rows)
            index = InventoryIndex.build(self.inventory.list_all())
            snapshot = self.build_snapshot(import_rows, index)
            summary = snapshot.summarize()

            self.sessions.create_conflict_records(session.id, snapshot.conflicts)
            session = self.sessions.save_snapshot(session.id, summary, snapshot)

        except Exception as e:
            self._mark_failed(session.id, e)
            raise

        logger.info(
            "import_ready_for_review",
            session_id=session.id,
            source=source.value,
            total=summary.total,
            matched=summary.matched,
            new=summary.new,
            conflicts=summary.conflicts,
            dimension_conflicts=summary.dimension_conflicts,
            unmatched=summary.unmatched
        )
        return session

    def build_snapshot(
        self,
        rows: list[ImportRow],
        index: InventoryIndex,
        threshold: Optional[float] = None
    ) -> ImportSnapshot:
        """
        Classify every row against the indexed inventory.

        A productId may only be created once per file; later rows carrying
        the same new productId are set aside as unmatched. New rows without
        a productId are created once per SKU: a later row with the same name
        adds its quantity to the first one, a different name is set aside.
        """
        snapshot = ImportSnapshot()
        new_product_ids: set[str] = set()
        new_by_sku: dict[str, NewRow] = {}

        for row in rows:
            match = resolve(row, index, threshold)
            outcome = classify(row, match)

            if isinstance(outcome, NewRow) and row.product_id:
                if row.product_id in new_product_ids:
                    outcome = UnmatchedRow(row=row, reason=DUPLICATE_PRODUCT_ID)
                else:
                    new_product_ids.add(row.product_id)

            elif isinstance(outcome, NewRow) and row.sku:
                first = new_by_sku.get(row.sku)
                if first is None:
                    new_by_sku[row.sku] = outcome
                else:
                    outcome = self._merge_new_row(first, row)

            snapshot.add(outcome)

        return snapshot

    @staticmethod
    def _merge_new_row(first: NewRow, row: ImportRow) -> UnmatchedRow:
        """Fold a repeated SKU into the create already queued for it."""
        wanted = normalize_product_name(row.name)
        if wanted and wanted != normalize_product_name(first.row.name):
            return UnmatchedRow(row=row, reason=DUPLICATE_SKU)

        first.record["quantity"] = first.record.get("quantity", 0) + row.quantity
        logger.info(
            "import_row_merged",
            row_index=row.row_index,
            into_row=first.row.row_index,
            sku=row.sku,
            quantity=first.record["quantity"]
        )
        return UnmatchedRow(row=row, reason=f"{MERGED_INTO_ROW} {first.row.row_index}")

    # ===================
    # RESOLUTION PHASE
    # ===================

    def resolve(
        self,
        session_id: str,
        resolutions: list[ConflictResolution]
    ) -> ImportSessionResponse:
        """
        Record resolutions for conflicted rows.

        All resolutions are validated before any is stored. A later
        resolution for a row replaces the earlier one.

        Raises:
            InvalidSessionTransitionError: Session not awaiting review
            InvalidResolutionError: A resolution does not fit its conflict
        """
        session = self.sessions.get_by_id(session_id)
        self._require_status(session, RESOLVABLE_STATUSES, "resolve")

        snapshot = session.snapshot or ImportSnapshot()
        for resolution in resolutions:
            self._validate_resolution(snapshot, resolution)

        merged = {r.row_index: r for r in session.resolutions}
        for resolution in resolutions:
            merged[resolution.row_index] = resolution
        ordered = [merged[row_index] for row_index in sorted(merged)]

        session = self.sessions.save_resolutions(session_id, ordered)

        for resolution in resolutions:
            self.sessions.resolve_conflict_record(
                session_id,
                resolution.row_index,
                resolution.action
            )

        logger.info(
            "import_resolutions_saved",
            session_id=session_id,
            received=len(resolutions),
            total=len(ordered),
            pending=len(snapshot.conflicts) - len(ordered)
        )
        return session

    @staticmethod
    def _validate_resolution(snapshot: ImportSnapshot, resolution: ConflictResolution) -> None:
        conflict = snapshot.conflict_for_row(resolution.row_index)
        if conflict is None:
            raise InvalidResolutionError(resolution.row_index, "Row has no conflict to resolve")

        candidate_ids = [c.item.id for c in conflict.candidates]

        if resolution.candidate_id is not None and resolution.candidate_id not in candidate_ids:
            raise InvalidResolutionError(
                resolution.row_index,
                f"Candidate {resolution.candidate_id} is not part of this conflict"
            )

        if resolution.action in TARGETED_ACTIONS:
            if not candidate_ids:
                raise InvalidResolutionError(resolution.row_index, "Conflict has no candidates")
            if len(candidate_ids) > 1 and resolution.candidate_id is None:
                raise InvalidResolutionError(
                    resolution.row_index,
                    "candidate_id is required when several candidates exist"
                )

    # ===================
    # COMMIT PHASE
    # ===================

    def commit(self, session_id: str) -> CommitResult:
        """
        Apply the session's matched rows, new rows and resolved conflicts.

        Unresolved conflicts are left untouched and counted as skipped.
        Committing an already committed session is rejected, so a repeated
        commit never writes twice.

        Returns:
            CommitResult with created/updated/deleted/skipped/errors counts

        Raises:
            InvalidSessionTransitionError: Session not in a committable state
        """
        session = self.sessions.get_by_id(session_id)
        self._require_status(session, COMMITTABLE_STATUSES, "commit")

        snapshot = session.snapshot or ImportSnapshot()
        resolutions = {r.row_index: r for r in session.resolutions}
        result = CommitResult()

        logger.info(
            "import_commit_started",
            session_id=session_id,
            matched=len(snapshot.matched),
            new=len(snapshot.new),
            conflicts=len(snapshot.conflicts),
            resolutions=len(resolutions)
        )

        try:
            for matched in snapshot.matched:
                self._apply_matched(matched, result)

            self._apply_new(snapshot.new, result)

            for conflict in snapshot.conflicts:
                self._apply_conflict(conflict, resolutions.get(conflict.row.row_index), result)

            self.sessions.save_commit_result(session_id, result)

        except Exception as e:
            self._mark_failed(session_id, e)
            raise

        logger.info(
            "import_committed",
            session_id=session_id,
            created=result.created,
            updated=result.updated,
            deleted=result.deleted,
            skipped=result.skipped,
            errors=result.errors
        )
        return result

    def _apply_matched(self, matched: MatchedRow, result: CommitResult) -> None:
        if not matched.updates:
            result.skipped += 1
            return
        self._update(matched.item.id, matched.updates, result, matched.row.row_index)

    def _apply_new(self, new_rows: list[NewRow], result: CommitResult) -> None:
        if not new_rows:
            return

        written = write_in_batches(
            [n.record for n in new_rows],
            self.inventory.bulk_create,
            batch_size=settings.import_batch_size,
            label="inventory_items"
        )
        result.created += len(written.written)
        for record, error in written.failed:
            self._record_error(result, f"Create {record.get('sku')}: {error}")

    def _apply_conflict(
        self,
        conflict: ConflictedRow,
        resolution: Optional[ConflictResolution],
        result: CommitResult
    ) -> None:
        row_index = conflict.row.row_index

        if resolution is None or resolution.action in PASSIVE_ACTIONS:
            result.skipped += 1
            return

        target = self._pick_candidate(conflict, resolution)

        if resolution.action == ResolutionAction.ACCEPT_CSV:
            fields = build_update_fields(
                conflict.row,
                target,
                use_csv_dimensions=resolution.use_csv_dimensions,
                override_barcode=resolution.override_barcode
            )
            self._update(target.id, fields, result, row_index)

        elif resolution.action == ResolutionAction.CREATE_DUPLICATE:
            record = self._build_row_record(conflict.row, resolution, result)
            if record is not None:
                self._create(record, result, row_index)

        elif resolution.action == ResolutionAction.REPLACE_EXISTING:
            # The existing item stays unless a replacement can be written
            record = self._build_row_record(conflict.row, resolution, result, replacing=target.id)
            if record is None:
                return
            try:
                self.inventory.delete(target.id)
            except WRITE_ERRORS as e:
                self._record_error(result, f"Row {row_index}: {e}")
                return
            result.deleted += 1
            self._create(record, result, row_index)

    @staticmethod
    def _pick_candidate(conflict: ConflictedRow, resolution: ConflictResolution) -> Optional[InventoryItemResponse]:
        if not conflict.candidates:
            return None
        if resolution.candidate_id:
            for candidate in conflict.candidates:
                if candidate.item.id == resolution.candidate_id:
                    return candidate.item
        return conflict.candidates[0].item

    def _build_row_record(
        self,
        row: ImportRow,
        resolution: ConflictResolution,
        result: CommitResult,
        replacing: Optional[str] = None
    ) -> Optional[dict]:
        """
        Creation payload for a conflicted row, or None when nothing can be
        created (counted as an error or skip).

        ``replacing`` is the id of the item the record will replace; its
        product_id does not count as taken.
        """
        try:
            # Keep product_id unique among live items
            holder = self.inventory.find_by_product_id(row.product_id) if row.product_id else None
            taken = holder is not None and holder.id != replacing
        except WRITE_ERRORS as e:
            self._record_error(result, f"Row {row.row_index}: {e}")
            return None

        record = build_create_record(row, drop_product_id=taken)
        if not resolution.use_csv_dimensions:
            for field in DIMENSION_FIELDS:
                record.pop(field, None)

        if not record.get("sku"):
            self._record_error(result, f"Row {row.row_index}: missing SKU")
            return None
        if record["quantity"] <= 0:
            result.skipped += 1
            return None
        return record

    def _create(self, record: dict, result: CommitResult, row_index: int) -> None:
        try:
            self.inventory.create(record)
        except WRITE_ERRORS as e:
            self._record_error(result, f"Row {row_index}: {e}")
            return
        result.created += 1

    def _update(self, item_id: str, fields: dict, result: CommitResult, row_index: int) -> None:
        try:
            item = self.inventory.update(item_id, fields)
        except WRITE_ERRORS as e:
            self._record_error(result, f"Row {row_index}: {e}")
            return

        if item is None:
            result.deleted += 1
        else:
            result.updated += 1

    @staticmethod
    def _record_error(result: CommitResult, message: str) -> None:
        logger.error("import_write_failed", error=message)
        result.errors += 1
        result.error_messages.append(message)

    # ===================
    # READS
    # ===================

    def get_session(self, session_id: str) -> ImportSessionResponse:
        return self.sessions.get_by_id(session_id)

    def list_sessions(self, limit: int = 50) -> list[ImportSessionResponse]:
        return self.sessions.list_recent(limit)

    def get_conflicts(self, session_id: str) -> list[ConflictRecordResponse]:
        self.sessions.get_by_id(session_id)
        return self.sessions.get_conflicts(session_id)

    # ===================
    # HELPERS
    # ===================

    @staticmethod
    def _require_status(
        session: ImportSessionResponse,
        allowed: tuple[ImportSessionStatus, ...],
        operation: str
    ) -> None:
        if session.status not in allowed:
            raise InvalidSessionTransitionError(session.id, session.status.value, operation)

    def _mark_failed(self, session_id: str, error: Exception) -> None:
        logger.error("import_session_failed", session_id=session_id, error=str(error))
        try:
            self.sessions.update_status(
                session_id,
                ImportSessionStatus.FAILED,
                error_message=str(error)
            )
        except AppError as status_error:
            logger.error(
                "mark_session_failed_error",
                session_id=session_id,
                error=str(status_error)
            )


# Singleton instance for convenience
_reconciliation_service: Optional[ReconciliationService] = None


def get_reconciliation_service() -> ReconciliationService:
    """Get or create ReconciliationService instance."""
    global _reconciliation_service
    if _reconciliation_service is None:
        _reconciliation_service = ReconciliationService()
    return _reconciliation_service
