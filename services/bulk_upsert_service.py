"""
Bulk-upsert fast path for source-driven imports that skip review.

Rows with a known productId replace quantity on their item; a productId
arriving under a different SKU is parked as a SKU error. Rows without a
productId accumulate quantity onto an unbound item with the same SKU, or
become one new item per SKU. Creates and SKU errors are written in chunks,
retrying row-by-row when a chunk fails.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Optional, Sequence
import structlog

from pydantic import ValidationError as SchemaValidationError

from config import settings
from models.inventory import InventoryItemResponse
from models.reconciliation import BulkUpsertResult, ImportRow, SkuErrorCreate
from exceptions import AppError
from services.identity_resolver import InventoryIndex
from services.inventory_service import get_inventory_service
from services.record_fields import build_create_record, values_equal
from services.row_normalizer import normalize_rows
from services.sku_error_service import get_sku_error_service
from utils.text_utils import normalize_product_name

logger = structlog.get_logger(__name__)

# Failures that stay local to one write
WRITE_ERRORS = (AppError, SchemaValidationError)


# ===================
# CHUNKED WRITES
# ===================

@dataclass
class BatchWriteResult:
    """Outcome of a chunked write."""
    written: list = field(default_factory=list)
    failed: list[tuple[Any, str]] = field(default_factory=list)


def write_in_batches(
    records: Sequence[Any],
    write_batch: Callable[[list], list],
    batch_size: Optional[int] = None,
    label: str = "records"
) -> BatchWriteResult:
    """
    Write records in chunks, falling back to one-at-a-time on a failed chunk.

    Args:
        records: Payloads to write
        write_batch: Persists a list of payloads, returning what was written
        batch_size: Chunk size (defaults to settings.import_batch_size)
        label: Name used in log events

    Returns:
        BatchWriteResult with the written records and (record, error) pairs
    """
    result = BatchWriteResult()
    size = batch_size or settings.import_batch_size

    for start in range(0, len(records), size):
        chunk = list(records[start:start + size])
        try:
            result.written.extend(write_batch(chunk))
            continue
        except WRITE_ERRORS as e:
            logger.warning(
                "batch_write_failed_retrying_rows",
                label=label,
                chunk_start=start,
                chunk_size=len(chunk),
                error=str(e)
            )

        for record in chunk:
            try:
                result.written.extend(write_batch([record]))
            except WRITE_ERRORS as e:
                logger.error("row_write_failed", label=label, error=str(e))
                result.failed.append((record, str(e)))

    return result


# ===================
# SERVICE
# ===================

class BulkUpsertService:
    """
    Review-free upsert of raw rows into inventory.
    """

    def __init__(self, inventory_service=None, sku_error_service=None):
        self.inventory = inventory_service or get_inventory_service()
        self.sku_errors = sku_error_service or get_sku_error_service()

    def upsert(self, rows: list[dict[str, str]]) -> BulkUpsertResult:
        """
        Upsert raw source rows.

        Existing inventory is loaded once. Per-row problems are counted and
        never stop the batch.

        Args:
            rows: Raw rows keyed by source header

        Returns:
            BulkUpsertResult with per-outcome counts
        """
        index = InventoryIndex.build(self.inventory.list_all())
        import_rows = normalize_rows(rows)
        result = BulkUpsertResult()

        logger.info("bulk_upsert_started", rows=len(import_rows), existing=len(index.items))

        to_create: list[dict] = []
        updates: dict[str, dict] = {}
        sku_errors: list[SkuErrorCreate] = []
        new_product_ids: set[str] = set()
        # Creates without a productId, one per SKU
        unbound_creates: dict[str, dict] = {}

        for row in import_rows:
            if not row.has("sku"):
                result.skipped += 1
                continue

            existing = index.by_product_id.get(row.product_id) if row.product_id else None

            if existing:
                if values_equal("sku", existing.sku, row.sku):
                    updates.setdefault(existing.id, {}).update(
                        self._replacement_fields(row, existing)
                    )
                else:
                    sku_errors.append(SkuErrorCreate(
                        product_id=row.product_id,
                        name=row.name or "",
                        csv_sku=row.sku,
                        existing_sku=existing.sku,
                        quantity=row.quantity,
                        barcode=row.get("barcode"),
                    ))
                continue

            if row.product_id:
                if row.product_id in new_product_ids:
                    logger.warning(
                        "duplicate_product_id_in_batch",
                        row_index=row.row_index,
                        product_id=row.product_id
                    )
                    result.errors += 1
                    continue
                if row.quantity <= 0:
                    result.skipped += 1
                    continue
                new_product_ids.add(row.product_id)
                to_create.append(build_create_record(row))
                continue

            if row.quantity <= 0:
                result.skipped += 1
                continue

            match = self._find_unbound_by_sku(row, index)
            if match:
                pending = updates.setdefault(match.id, {})
                base = pending.get("quantity", match.quantity)
                pending.update(self._accumulation_fields(row, match, base))
            elif row.sku in unbound_creates:
                record = unbound_creates[row.sku]
                record["quantity"] += row.quantity
                if row.has("barcode") and not record.get("barcode"):
                    record["barcode"] = row.get("barcode")
            else:
                record = build_create_record(row)
                unbound_creates[row.sku] = record
                to_create.append(record)

        self._apply_creates(to_create, result)
        self._apply_updates(updates, result)
        self._apply_sku_errors(sku_errors, result)

        logger.info(
            "bulk_upsert_completed",
            created=result.created,
            updated=result.updated,
            deleted=result.deleted,
            skipped=result.skipped,
            sku_errors=result.sku_errors,
            errors=result.errors
        )
        return result

    # ===================
    # ROW RULES
    # ===================

    @staticmethod
    def _replacement_fields(row: ImportRow, existing: InventoryItemResponse) -> dict:
        """Fields written when a known productId arrives with its stored SKU."""
        fields = {}
        if row.has("quantity"):
            fields["quantity"] = row.quantity
        if row.has("name"):
            fields["name"] = row.name
        if row.has("location"):
            fields["location"] = row.get("location")
        if row.has("barcode") and not existing.barcode:
            fields["barcode"] = row.get("barcode")
        return fields

    @staticmethod
    def _accumulation_fields(row: ImportRow, existing: InventoryItemResponse, base: int) -> dict:
        """Fields written when an unbound item with the row's SKU absorbs the row."""
        fields = {"quantity": base + row.quantity}
        if row.has("name"):
            fields["name"] = row.name
        if row.has("location"):
            fields["location"] = row.get("location")
        if row.has("barcode") and not existing.barcode:
            fields["barcode"] = row.get("barcode")
        return fields

    @staticmethod
    def _find_unbound_by_sku(row: ImportRow, index: InventoryIndex) -> Optional[InventoryItemResponse]:
        """SKU and name match first, then any item with the SKU and no productId."""
        unbound = [i for i in index.by_sku.get(row.sku, []) if not i.product_id]
        if not unbound:
            return None

        wanted = normalize_product_name(row.name)
        if wanted:
            for item in unbound:
                if normalize_product_name(item.name) == wanted:
                    return item

        return unbound[0]

    # ===================
    # WRITES
    # ===================

    def _apply_creates(self, records: list[dict], result: BulkUpsertResult) -> None:
        if not records:
            return
        written = write_in_batches(records, self.inventory.bulk_create, label="inventory_items")
        result.created += len(written.written)
        result.errors += len(written.failed)

    def _apply_updates(self, updates: dict[str, dict], result: BulkUpsertResult) -> None:
        for item_id, fields in updates.items():
            if not fields:
                result.skipped += 1
                continue
            try:
                item = self.inventory.update(item_id, fields)
            except WRITE_ERRORS as e:
                logger.error("bulk_update_failed", item_id=item_id, error=str(e))
                result.errors += 1
                continue

            if item is None:
                result.deleted += 1
            else:
                result.updated += 1

    def _apply_sku_errors(self, errors: list[SkuErrorCreate], result: BulkUpsertResult) -> None:
        if not errors:
            return
        written = write_in_batches(errors, self.sku_errors.bulk_create, label="sku_errors")
        result.sku_errors += len(written.written)
        result.errors += len(written.failed)


# Singleton instance for convenience
_bulk_upsert_service: Optional[BulkUpsertService] = None


def get_bulk_upsert_service() -> BulkUpsertService:
    """Get or create BulkUpsertService instance."""
    global _bulk_upsert_service
    if _bulk_upsert_service is None:
        _bulk_upsert_service = BulkUpsertService()
    return _bulk_upsert_service
