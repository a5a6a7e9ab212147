"""
SKU error service.

A SKU error is raised by the bulk-upsert path when a known productId
arrives under a different SKU than the one stored. The row is parked here
instead of being applied, and an operator later supplies the corrected SKU.
"""

from datetime import datetime
from typing import Optional
import structlog

from config import get_supabase_client
from models.reconciliation import SkuErrorCreate, SkuErrorResponse, SkuErrorStatus
from models.inventory import InventoryItemResponse
from exceptions import SkuErrorAlreadyResolvedError, SkuErrorNotFoundError, DatabaseError
from services.inventory_service import get_inventory_service
from utils.location import extract_location

logger = structlog.get_logger(__name__)


class SkuErrorService:
    """
    SKU error persistence and resolution.

    Table: ``sku_errors``.
    """

    def __init__(self, client=None, inventory_service=None):
        self.db = client or get_supabase_client()
        self.table = "sku_errors"
        self.inventory = inventory_service or get_inventory_service()

    # ===================
    # READ OPERATIONS
    # ===================

    def list_pending(self) -> list[SkuErrorResponse]:
        """Pending errors, oldest first."""
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("status", SkuErrorStatus.PENDING.value)
                .order("created_at")
                .execute()
            )
        except Exception as e:
            logger.error("list_sku_errors_failed", error=str(e))
            raise DatabaseError("select", str(e))

        return [SkuErrorResponse(**row) for row in result.data]

    def get_by_id(self, error_id: str) -> SkuErrorResponse:
        """
        Raises:
            SkuErrorNotFoundError: If the error doesn't exist
        """
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", error_id)
                .execute()
            )
        except Exception as e:
            logger.error("get_sku_error_failed", error_id=error_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise SkuErrorNotFoundError(error_id)

        return SkuErrorResponse(**result.data[0])

    # ===================
    # WRITE OPERATIONS
    # ===================

    def bulk_create(self, errors: list[SkuErrorCreate]) -> list[SkuErrorResponse]:
        """
        Insert several SKU errors in one statement.

        Returns:
            The created records

        Raises:
            DatabaseError: On insert failure (callers fall back row-by-row)
        """
        if not errors:
            return []

        insert_data = [
            {**e.model_dump(), "status": SkuErrorStatus.PENDING.value}
            for e in errors
        ]

        try:
            result = self.db.table(self.table).insert(insert_data).execute()
        except Exception as e:
            logger.error("bulk_create_sku_errors_failed", count=len(insert_data), error=str(e))
            raise DatabaseError("insert", str(e))

        logger.info("sku_errors_created", count=len(result.data))
        return [SkuErrorResponse(**row) for row in result.data]

    def mark_resolved(self, error_id: str) -> None:
        try:
            result = (
                self.db.table(self.table)
                .update({
                    "status": SkuErrorStatus.RESOLVED.value,
                    "resolved_at": datetime.utcnow().isoformat(),
                })
                .eq("id", error_id)
                .execute()
            )
        except Exception as e:
            logger.error("mark_sku_error_resolved_failed", error_id=error_id, error=str(e))
            raise DatabaseError("update", str(e))

        if not result.data:
            raise SkuErrorNotFoundError(error_id)

    def delete(self, error_id: str) -> bool:
        """Dismiss an error without touching inventory."""
        try:
            self.db.table(self.table).delete().eq("id", error_id).execute()
        except Exception as e:
            logger.error("delete_sku_error_failed", error_id=error_id, error=str(e))
            raise DatabaseError("delete", str(e))

        logger.info("sku_error_deleted", error_id=error_id)
        return True

    def resolve(self, error_id: str, corrected_sku: str) -> Optional[InventoryItemResponse]:
        """
        Apply a parked row under the corrected SKU.

        The error's quantity is added to the productId's item, which moves to
        the corrected SKU and its derived location. The stored barcode wins
        over the parked one. If the item no longer exists it is recreated.

        Args:
            error_id: SKU error UUID
            corrected_sku: SKU chosen by the operator

        Returns:
            The resulting inventory item

        Raises:
            SkuErrorAlreadyResolvedError: The error was already applied
        """
        error = self.get_by_id(error_id)
        if error.status != SkuErrorStatus.PENDING:
            raise SkuErrorAlreadyResolvedError(error_id, error.status.value)

        corrected_sku = corrected_sku.strip()
        location = extract_location(corrected_sku)

        existing = self.inventory.find_by_product_id(error.product_id)

        if existing:
            item = self.inventory.update(existing.id, {
                "sku": corrected_sku,
                "location": location,
                "quantity": existing.quantity + error.quantity,
                "barcode": existing.barcode or error.barcode,
            })
        elif error.quantity <= 0:
            item = None
        else:
            item = self.inventory.create({
                "product_id": error.product_id,
                "name": error.name or None,
                "sku": corrected_sku,
                "location": location,
                "quantity": error.quantity,
                "barcode": error.barcode,
            })

        self.mark_resolved(error_id)

        logger.info(
            "sku_error_resolved",
            error_id=error_id,
            product_id=error.product_id,
            csv_sku=error.csv_sku,
            corrected_sku=corrected_sku,
            quantity_added=error.quantity
        )
        return item


# Singleton instance for convenience
_sku_error_service: Optional[SkuErrorService] = None


def get_sku_error_service() -> SkuErrorService:
    """Get or create SkuErrorService instance."""
    global _sku_error_service
    if _sku_error_service is None:
        _sku_error_service = SkuErrorService()
    return _sku_error_service
