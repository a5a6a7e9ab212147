"""
Inventory service: persistence for inventory items.

Owns the storage representation: ``image_urls`` is a list in memory and a
JSON text column in the database. Quantity never goes negative (writes that
would are rejected) and an item whose quantity reaches zero is deleted.
"""

import json
from datetime import datetime
from typing import Any, Optional, Union
import structlog

from config import get_supabase_client
from models.inventory import InventoryItemCreate, InventoryItemResponse
from exceptions import (
    InventoryItemNotFoundError,
    NegativeQuantityError,
    ProductIdExistsError,
    DatabaseError,
)
from utils.location import extract_location

logger = structlog.get_logger(__name__)

# Supabase caps a single select at 1000 rows
PAGE_SIZE = 1000


class InventoryService:
    """
    Inventory item persistence.

    Handles reads, creates, field-subset updates, quantity adjustments and
    deletes for the ``inventory_items`` table.
    """

    def __init__(self, client=None):
        self.db = client or get_supabase_client()
        self.table = "inventory_items"

    # ===================
    # SERIALIZATION
    # ===================

    @staticmethod
    def _to_row(fields: dict[str, Any]) -> dict[str, Any]:
        row = dict(fields)
        if "image_urls" in row:
            row["image_urls"] = json.dumps(row["image_urls"] or [])
        return row

    @staticmethod
    def _from_row(row: dict[str, Any]) -> InventoryItemResponse:
        data = dict(row)
        images = data.get("image_urls")
        if isinstance(images, str):
            try:
                data["image_urls"] = json.loads(images) if images else []
            except json.JSONDecodeError:
                data["image_urls"] = [images]
        return InventoryItemResponse(**data)

    # ===================
    # READ OPERATIONS
    # ===================

    def list_all(self) -> list[InventoryItemResponse]:
        """
        Load every inventory item.

        Pages through the table so large inventories are loaded completely.

        Returns:
            All items ordered by SKU
        """
        logger.info("listing_all_inventory")

        try:
            items = []
            offset = 0
            while True:
                result = (
                    self.db.table(self.table)
                    .select("*")
                    .order("sku")
                    .range(offset, offset + PAGE_SIZE - 1)
                    .execute()
                )
                items.extend(self._from_row(row) for row in result.data)
                if len(result.data) < PAGE_SIZE:
                    break
                offset += PAGE_SIZE

            logger.info("all_inventory_listed", count=len(items))
            return items

        except Exception as e:
            logger.error("list_all_inventory_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def get_page(
        self,
        page: int = 1,
        page_size: int = 50,
        sku: Optional[str] = None
    ) -> tuple[list[InventoryItemResponse], int]:
        """
        Get one page of inventory items.

        Returns:
            Tuple of (items, total count)
        """
        try:
            query = self.db.table(self.table).select("*", count="exact")
            if sku:
                query = query.eq("sku", sku)

            offset = (page - 1) * page_size
            query = query.range(offset, offset + page_size - 1).order("sku")

            result = query.execute()
            return [self._from_row(row) for row in result.data], result.count or 0

        except Exception as e:
            logger.error("get_inventory_page_failed", error=str(e))
            raise DatabaseError("select", str(e))

    def get_by_id(self, item_id: str) -> InventoryItemResponse:
        """
        Get a single inventory item by ID.

        Raises:
            InventoryItemNotFoundError: If item doesn't exist
        """
        logger.debug("getting_inventory_item", item_id=item_id)

        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("id", item_id)
                .execute()
            )
        except Exception as e:
            logger.error("get_inventory_item_failed", item_id=item_id, error=str(e))
            raise DatabaseError("select", str(e))

        if not result.data:
            raise InventoryItemNotFoundError(item_id)

        return self._from_row(result.data[0])

    def find_by_product_id(self, product_id: str) -> Optional[InventoryItemResponse]:
        """Get the live item holding a product_id, or None."""
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("product_id", product_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error("find_by_product_id_failed", product_id=product_id, error=str(e))
            raise DatabaseError("select", str(e))

        return self._from_row(result.data[0]) if result.data else None

    def find_by_sku(self, sku: str) -> list[InventoryItemResponse]:
        """Get every item stored under a SKU."""
        try:
            result = (
                self.db.table(self.table)
                .select("*")
                .eq("sku", sku)
                .execute()
            )
        except Exception as e:
            logger.error("find_by_sku_failed", sku=sku, error=str(e))
            raise DatabaseError("select", str(e))

        return [self._from_row(row) for row in result.data]

    # ===================
    # WRITE OPERATIONS
    # ===================

    def create(self, data: Union[InventoryItemCreate, dict]) -> InventoryItemResponse:
        """
        Create a new inventory item.

        Location defaults to the SKU prefix.

        Raises:
            ProductIdExistsError: If another live item holds the product_id
        """
        item = data if isinstance(data, InventoryItemCreate) else InventoryItemCreate(**data)

        if item.product_id and self.find_by_product_id(item.product_id):
            raise ProductIdExistsError(item.product_id)

        insert_data = self._prepare_insert(item)

        logger.info("creating_inventory_item", sku=item.sku, product_id=item.product_id)

        try:
            result = self.db.table(self.table).insert(self._to_row(insert_data)).execute()
        except Exception as e:
            logger.error("create_inventory_item_failed", sku=item.sku, error=str(e))
            raise DatabaseError("insert", str(e))

        created = self._from_row(result.data[0])
        logger.info("inventory_item_created", item_id=created.id, sku=created.sku)
        return created

    def bulk_create(self, records: list[Union[InventoryItemCreate, dict]]) -> list[InventoryItemResponse]:
        """
        Insert several items in one statement.

        All-or-nothing: a single bad record fails the whole insert, so callers
        retry row-by-row on DatabaseError.
        """
        if not records:
            return []

        items = [r if isinstance(r, InventoryItemCreate) else InventoryItemCreate(**r) for r in records]
        insert_data = [self._to_row(self._prepare_insert(item)) for item in items]

        logger.info("bulk_creating_inventory_items", count=len(insert_data))

        try:
            result = self.db.table(self.table).insert(insert_data).execute()
        except Exception as e:
            logger.error("bulk_create_inventory_items_failed", count=len(insert_data), error=str(e))
            raise DatabaseError("insert", str(e))

        created = [self._from_row(row) for row in result.data]
        logger.info("inventory_items_bulk_created", count=len(created))
        return created

    def update(self, item_id: str, fields: dict[str, Any]) -> Optional[InventoryItemResponse]:
        """
        Apply a field-subset update.

        Fields not given are untouched. Setting quantity to zero deletes the
        item.

        Returns:
            Updated item, or None if the item was deleted

        Raises:
            NegativeQuantityError: If quantity would be negative
        """
        if not fields:
            return self.get_by_id(item_id)

        quantity = fields.get("quantity")
        if quantity is not None:
            if quantity < 0:
                raise NegativeQuantityError(item_id, quantity)
            if quantity == 0:
                logger.info("inventory_item_emptied", item_id=item_id)
                self.delete(item_id)
                return None

        update_data = self._to_row(fields)
        update_data["updated_at"] = datetime.utcnow().isoformat()

        try:
            result = (
                self.db.table(self.table)
                .update(update_data)
                .eq("id", item_id)
                .execute()
            )
        except Exception as e:
            logger.error("update_inventory_item_failed", item_id=item_id, error=str(e))
            raise DatabaseError("update", str(e))

        if not result.data:
            raise InventoryItemNotFoundError(item_id)

        logger.info("inventory_item_updated", item_id=item_id, fields=list(fields.keys()))
        return self._from_row(result.data[0])

    def adjust_quantity(self, item_id: str, delta: int) -> Optional[InventoryItemResponse]:
        """
        Add (or remove, with a negative delta) units.

        Returns:
            Updated item, or None if it reached zero and was deleted

        Raises:
            NegativeQuantityError: If more units are removed than stocked
        """
        item = self.get_by_id(item_id)
        new_quantity = item.quantity + delta

        if new_quantity < 0:
            raise NegativeQuantityError(item_id, new_quantity)

        logger.info(
            "adjusting_inventory_quantity",
            item_id=item_id,
            before=item.quantity,
            delta=delta
        )
        return self.update(item_id, {"quantity": new_quantity})

    def delete(self, item_id: str) -> bool:
        """Delete an inventory item."""
        logger.info("deleting_inventory_item", item_id=item_id)

        try:
            self.db.table(self.table).delete().eq("id", item_id).execute()
        except Exception as e:
            logger.error("delete_inventory_item_failed", item_id=item_id, error=str(e))
            raise DatabaseError("delete", str(e))

        logger.info("inventory_item_deleted", item_id=item_id)
        return True

    # ===================
    # HELPERS
    # ===================

    @staticmethod
    def _prepare_insert(item: InventoryItemCreate) -> dict[str, Any]:
        data = item.model_dump(exclude_none=True)
        data["location"] = item.location or extract_location(item.sku)
        data.setdefault("image_urls", [])
        return data


# Singleton instance for convenience
_inventory_service: Optional[InventoryService] = None


def get_inventory_service() -> InventoryService:
    """Get or create InventoryService instance."""
    global _inventory_service
    if _inventory_service is None:
        _inventory_service = InventoryService()
    return _inventory_service
