"""
Unit tests for InventoryService.

Tests cover:
- Reads, paging and image URL decoding
- Creates with derived location and unique product_id
- Field-subset updates, delete-at-zero and negative quantity rejection
"""

import json

import pytest

from exceptions import InventoryItemNotFoundError, NegativeQuantityError, ProductIdExistsError
from tests.factories import InventoryItemFactory


@pytest.fixture(autouse=True)
def reset_factories():
    InventoryItemFactory.reset_counter()


# ===================
# READ OPERATIONS
# ===================

class TestReads:
    """Tests for inventory reads."""

    def test_list_all_decodes_images(self, mock_db):
        """Stored JSON image lists come back as lists."""
        from services.inventory_service import InventoryService

        mock_db.set_table_data("inventory_items", [
            InventoryItemFactory.create(id="1", image_urls=json.dumps(["https://img/1.jpg"])),
            InventoryItemFactory.create(id="2", image_urls=None),
        ])

        items = InventoryService().list_all()

        assert items[0].image_urls == ["https://img/1.jpg"]
        assert items[1].image_urls == []

    def test_list_all_pages_through_table(self, mock_db, monkeypatch):
        """Every page is loaded."""
        from services.inventory_service import InventoryService

        monkeypatch.setattr("services.inventory_service.PAGE_SIZE", 2)
        mock_db.set_table_data("inventory_items", InventoryItemFactory.create_batch(5))

        assert len(InventoryService().list_all()) == 5

    def test_get_page(self, mock_db):
        from services.inventory_service import InventoryService

        mock_db.set_table_data("inventory_items", InventoryItemFactory.create_batch(3), count=3)

        items, total = InventoryService().get_page(page=1, page_size=2)

        assert len(items) == 2
        assert total == 3

    def test_get_by_id_not_found(self, mock_db):
        from services.inventory_service import InventoryService

        mock_db.set_table_data("inventory_items", [])

        with pytest.raises(InventoryItemNotFoundError):
            InventoryService().get_by_id("missing")

    def test_find_by_product_id(self, mock_db):
        from services.inventory_service import InventoryService

        mock_db.set_table_data("inventory_items", [
            InventoryItemFactory.create(id="1", product_id="P1"),
            InventoryItemFactory.create(id="2", product_id="P2"),
        ])

        service = InventoryService()

        assert service.find_by_product_id("P2").id == "2"
        assert service.find_by_product_id("P9") is None


# ===================
# WRITE OPERATIONS
# ===================

class TestCreate:
    """Tests for item creation."""

    def test_location_derived_from_sku(self, mock_db):
        """Items without a location are placed by their SKU prefix."""
        from services.inventory_service import InventoryService

        item = InventoryService().create({"sku": "e501-n", "quantity": 2})

        assert item.location == "E501"
        inserted = mock_db.table("inventory_items").inserted[0]
        assert inserted["location"] == "E501"
        assert inserted["image_urls"] == "[]"

    def test_images_stored_as_json(self, mock_db):
        from services.inventory_service import InventoryService

        item = InventoryService().create({"sku": "A101-F", "image_urls": ["https://img/1.jpg"]})

        inserted = mock_db.table("inventory_items").inserted[0]
        assert json.loads(inserted["image_urls"]) == ["https://img/1.jpg"]
        assert item.image_urls == ["https://img/1.jpg"]

    def test_product_id_must_be_unique(self, mock_db):
        """A product_id held by a live item cannot be reused."""
        from services.inventory_service import InventoryService

        mock_db.set_table_data("inventory_items", [InventoryItemFactory.create(product_id="P1")])

        with pytest.raises(ProductIdExistsError):
            InventoryService().create({"product_id": "P1", "sku": "B202-F"})

    def test_negative_quantity_rejected(self, mock_db):
        from pydantic import ValidationError

        from services.inventory_service import InventoryService

        with pytest.raises(ValidationError):
            InventoryService().create({"sku": "A101-F", "quantity": -1})

    def test_bulk_create(self, mock_db):
        from services.inventory_service import InventoryService

        created = InventoryService().bulk_create([
            {"sku": "A101-F", "quantity": 1},
            {"sku": "B202-F", "quantity": 2},
        ])

        assert [i.location for i in created] == ["A101", "B202"]
        assert len(mock_db.table("inventory_items").inserted) == 2


class TestUpdate:
    """Tests for updates and quantity changes."""

    def test_field_subset_update(self, mock_db):
        """Only the given fields change."""
        from services.inventory_service import InventoryService

        mock_db.set_table_data("inventory_items", [
            InventoryItemFactory.create(id="1", sku="A101-F", quantity=3, name="Lamp")
        ])

        item = InventoryService().update("1", {"quantity": 5})

        assert item.quantity == 5
        assert item.name == "Lamp"
        update = mock_db.table("inventory_items").updates[0]
        assert update["quantity"] == 5
        assert "name" not in update

    def test_zero_quantity_deletes(self, mock_db):
        """Reaching zero removes the item instead of storing it."""
        from services.inventory_service import InventoryService

        mock_db.set_table_data("inventory_items", [InventoryItemFactory.create(id="1", quantity=3)])

        assert InventoryService().update("1", {"quantity": 0}) is None
        assert mock_db.table("inventory_items").updates == []

    def test_negative_quantity_rejected(self, mock_db):
        from services.inventory_service import InventoryService

        mock_db.set_table_data("inventory_items", [InventoryItemFactory.create(id="1", quantity=3)])

        with pytest.raises(NegativeQuantityError):
            InventoryService().update("1", {"quantity": -2})

    def test_update_missing_item(self, mock_db):
        from services.inventory_service import InventoryService

        mock_db.set_table_data("inventory_items", [])

        with pytest.raises(InventoryItemNotFoundError):
            InventoryService().update("missing", {"name": "Lamp"})

    def test_adjust_quantity(self, mock_db):
        from services.inventory_service import InventoryService

        mock_db.set_table_data("inventory_items", [InventoryItemFactory.create(id="1", quantity=3)])

        item = InventoryService().adjust_quantity("1", 4)

        assert item.quantity == 7

    def test_adjust_below_zero_rejected(self, mock_db):
        """Removing more units than stocked is refused."""
        from services.inventory_service import InventoryService

        mock_db.set_table_data("inventory_items", [InventoryItemFactory.create(id="1", quantity=3)])

        with pytest.raises(NegativeQuantityError):
            InventoryService().adjust_quantity("1", -4)

    def test_adjust_to_zero_deletes(self, mock_db):
        from services.inventory_service import InventoryService

        mock_db.set_table_data("inventory_items", [InventoryItemFactory.create(id="1", quantity=3)])

        assert InventoryService().adjust_quantity("1", -3) is None
