"""
Unit tests for row classification.
"""

import pytest

from models.reconciliation import ConflictType
from services.conflict_detector import (
    MISSING_SKU,
    NO_MATCH_FOUND,
    NO_PRODUCT_NAME,
    ZERO_QUANTITY,
    classify,
)
from services.identity_resolver import resolve
from services.record_fields import build_update_fields, values_equal
from tests.factories import ImportRowFactory, InventoryItemFactory


def classify_against(row, items):
    return classify(row, resolve(row, items))


# ===================
# CONFLICTS
# ===================

class TestConflicts:
    """Tests for conflicted outcomes."""

    def test_differing_price_is_field_mismatch(self):
        """Same identity with another price needs review."""
        item = InventoryItemFactory.build(id="1", product_id="P1", sku="A101-F", quantity=3, price=10)
        row = ImportRowFactory.create(productId="P1", sku="A101-F", quantity="3", price="12")

        outcome = classify_against(row, [item])

        assert outcome.kind == "conflicted"
        assert outcome.conflict_type == ConflictType.FIELD_MISMATCH
        assert len(outcome.differences) == 1
        diff = outcome.differences[0]
        assert diff.field == "price"
        assert diff.existing_value == 10
        assert diff.csv_value == 12

    def test_product_id_with_new_sku_is_duplicate_item_id(self):
        """A productId arriving under another SKU is flagged."""
        item = InventoryItemFactory.build(id="1", product_id="P1", sku="A101-F")
        row = ImportRowFactory.create(productId="P1", sku="B202-F")

        outcome = classify_against(row, [item])

        assert outcome.kind == "conflicted"
        assert outcome.conflict_type == ConflictType.DUPLICATE_ITEM_ID
        assert outcome.key == "P1"

    def test_only_dimensions_differ(self):
        """Dimension-only differences get their own conflict type."""
        item = InventoryItemFactory.build(id="1", sku="A101-F", quantity=2, length=10, weight=1.5)
        row = ImportRowFactory.create(sku="A101-F", quantity="2", length="12", weight="1.5")

        outcome = classify_against(row, [item])

        assert outcome.conflict_type == ConflictType.DIMENSION_MISMATCH
        assert [d.field for d in outcome.differences] == ["length"]

    def test_dimension_plus_other_field_is_field_mismatch(self):
        """Mixed differences are a regular field mismatch."""
        item = InventoryItemFactory.build(id="1", sku="A101-F", quantity=2, length=10)
        row = ImportRowFactory.create(sku="A101-F", quantity="4", length="12")

        outcome = classify_against(row, [item])

        assert outcome.conflict_type == ConflictType.FIELD_MISMATCH

    def test_multiple_candidates(self):
        """Fuzzy ties list every candidate with its score."""
        first = InventoryItemFactory.build(id="1", name="Blue Widget")
        second = InventoryItemFactory.build(id="2", name="Blue Widget")
        row = ImportRowFactory.create(name="Blue Widget")

        outcome = classify_against(row, [first, second])

        assert outcome.conflict_type == ConflictType.MULTIPLE_CANDIDATES
        assert [c.item.id for c in outcome.candidates] == ["1", "2"]
        assert [c.score for c in outcome.candidates] == [1.0, 1.0]

    def test_proposed_update_only_holds_supplied_fields(self):
        """Fields the CSV lacks never appear in the proposed update."""
        item = InventoryItemFactory.build(id="1", sku="A101-F", quantity=2, price=5)
        row = ImportRowFactory.create(sku="A101-F", price="7")

        outcome = classify_against(row, [item])

        assert outcome.proposed_update == {"sku": "A101-F", "price": 7.0}


# ===================
# CLEAN MATCHES
# ===================

class TestMatched:
    """Tests for clean updates."""

    def test_identical_row_is_matched(self):
        """Nothing differs: a clean match with no updates."""
        item = InventoryItemFactory.build(id="1", product_id="P1", sku="A101-F", quantity=5, name="Lamp")
        row = ImportRowFactory.create(productId="P1", sku="a101-f", quantity="5", name="Lamp")

        outcome = classify_against(row, [item])

        assert outcome.kind == "matched"
        assert outcome.updates == {}

    def test_missing_csv_fields_do_not_conflict(self):
        """Absent columns never count as differences."""
        item = InventoryItemFactory.build(id="1", sku="A101-F", quantity=5, price=10, name="Lamp")
        row = ImportRowFactory.create(sku="A101-F")

        assert classify_against(row, [item]).kind == "matched"

    def test_existing_barcode_is_sticky(self):
        """A different CSV barcode neither conflicts nor overwrites."""
        item = InventoryItemFactory.build(id="1", sku="A101-F", barcode="111")
        row = ImportRowFactory.create(sku="A101-F", barcode="222")

        outcome = classify_against(row, [item])

        assert outcome.kind == "matched"
        assert "barcode" not in outcome.updates

    def test_empty_barcode_is_filled(self):
        """An item without a barcode takes the CSV one."""
        item = InventoryItemFactory.build(id="1", sku="A101-F")
        row = ImportRowFactory.create(sku="A101-F", barcode="222")

        outcome = classify_against(row, [item])

        assert outcome.updates == {"barcode": "222"}

    def test_metadata_is_merged(self):
        """Marketplace metadata and product_id are adopted on a clean match."""
        item = InventoryItemFactory.build(id="1", sku="A101-F", name="Lamp")
        row = ImportRowFactory.create(
            productId="P1", sku="A101-F", name="Lamp", itemId="9001", imageUrl1="https://img/1.jpg"
        )

        outcome = classify_against(row, [item])

        assert outcome.kind == "matched"
        assert outcome.updates == {
            "item_id": "9001",
            "image_urls": ["https://img/1.jpg"],
            "product_id": "P1",
        }


# ===================
# NEW AND UNMATCHED
# ===================

class TestNewAndUnmatched:
    """Tests for rows without a match."""

    def test_new_item_record(self):
        """An unknown SKU with stock becomes a creation record."""
        row = ImportRowFactory.create(productId="P1", sku="A101-F", quantity="5", name="Lamp")

        outcome = classify_against(row, [])

        assert outcome.kind == "new"
        assert outcome.record == {
            "product_id": "P1",
            "sku": "A101-F",
            "name": "Lamp",
            "quantity": 5,
            "location": "A101",
        }

    @pytest.mark.parametrize("raw,reason", [
        ({"quantity": "3"}, NO_PRODUCT_NAME),
        ({"name": "Lamp", "quantity": "3"}, NO_MATCH_FOUND),
        ({"productId": "P1", "quantity": "3"}, MISSING_SKU),
        ({"sku": "A101-F", "quantity": "0"}, ZERO_QUANTITY),
        ({"sku": "A101-F"}, ZERO_QUANTITY),
    ])
    def test_unmatched_reasons(self, raw, reason):
        """Rows that cannot be created carry a reason."""
        outcome = classify_against(ImportRowFactory.create(**raw), [])

        assert outcome.kind == "unmatched"
        assert outcome.reason == reason


# ===================
# FIELD HELPERS
# ===================

class TestFieldHelpers:
    """Tests for value comparison and update building."""

    @pytest.mark.parametrize("field,existing,incoming,expected", [
        ("price", 10, 10.0, True),
        ("price", 10, 12.0, False),
        ("sku", "a101-f", "A101-F", True),
        ("name", "Lamp", " Lamp ", True),
        ("name", "Lamp", "lamp", False),
        ("price", None, None, True),
        ("price", None, 3.0, False),
    ])
    def test_values_equal(self, field, existing, incoming, expected):
        assert values_equal(field, existing, incoming) is expected

    def test_update_drops_dimensions_on_request(self):
        """Dimensions stay untouched when the reviewer declines them."""
        item = InventoryItemFactory.build(id="1", sku="A101-F", length=10)
        row = ImportRowFactory.create(sku="A101-F", length="12", price="5")

        fields = build_update_fields(row, item, use_csv_dimensions=False)

        assert "length" not in fields
        assert fields["price"] == 5.0

    def test_update_keeps_barcode_unless_overridden(self):
        """The barcode is only replaced with override_barcode."""
        item = InventoryItemFactory.build(id="1", sku="A101-F", barcode="111")
        row = ImportRowFactory.create(sku="A101-F", barcode="222")

        assert "barcode" not in build_update_fields(row, item)
        assert build_update_fields(row, item, override_barcode=True)["barcode"] == "222"

    def test_new_sku_moves_location(self):
        """Taking a new SKU re-derives the location."""
        item = InventoryItemFactory.build(id="1", product_id="P1", sku="A101-F")
        row = ImportRowFactory.create(productId="P1", sku="B202-F")

        fields = build_update_fields(row, item)

        assert fields == {"sku": "B202-F", "location": "B202"}
