"""
Unit tests for the identity resolver.

Tests cover:
- productId priority over SKU
- SKU stage rules for bound and unbound records
- Fuzzy name matching and its threshold
"""

import pytest

from services.identity_resolver import InventoryIndex, name_similarity, resolve
from tests.factories import ImportRowFactory, InventoryItemFactory


@pytest.fixture(autouse=True)
def reset_factories():
    InventoryItemFactory.reset_counter()


class TestProductIdStage:
    """Tests for productId matching."""

    def test_product_id_wins(self):
        """A productId hit is returned even when the SKU points elsewhere."""
        by_pid = InventoryItemFactory.build(id="1", product_id="P1", sku="A101-F")
        by_sku = InventoryItemFactory.build(id="2", sku="B202-F")
        row = ImportRowFactory.create(productId="P1", sku="B202-F")

        match = resolve(row, [by_pid, by_sku])

        assert match.primary.id == "1"
        assert match.matched_by == "product_id"
        assert match.score == 1.0
        assert match.conflicts == []

    def test_unknown_product_id_falls_through_to_sku(self):
        """An unbound record with the same SKU and name is adopted."""
        item = InventoryItemFactory.build(id="1", sku="A101-F", name="Lamp")
        row = ImportRowFactory.create(productId="P9", sku="A101-F", name="lamp")

        match = resolve(row, [item])

        assert match.primary.id == "1"
        assert match.matched_by == "sku"


class TestSkuStage:
    """Tests for SKU matching."""

    def test_single_sku_match(self):
        """One record with the SKU is the primary match."""
        item = InventoryItemFactory.build(id="1", sku="A101-F")
        row = ImportRowFactory.create(sku="A101-F", quantity="2")

        match = resolve(row, [item])

        assert match.primary.id == "1"
        assert match.matched_by == "sku"

    def test_record_bound_to_other_product_id_is_ignored(self):
        """A record owned by another productId never matches on SKU."""
        item = InventoryItemFactory.build(id="1", product_id="P1", sku="A101-F", name="Lamp")
        row = ImportRowFactory.create(productId="P2", sku="A101-F", name="Lamp")

        match = resolve(row, [item])

        assert match.is_unmatched

    def test_new_product_id_requires_same_name(self):
        """A new productId does not adopt an unbound record with another name."""
        item = InventoryItemFactory.build(id="1", sku="A101-F", name="Lamp")
        row = ImportRowFactory.create(productId="P9", sku="A101-F", name="Chair")

        assert resolve(row, [item]).is_unmatched

    def test_several_records_become_conflict_candidates(self):
        """Ambiguous SKU matches are returned for review."""
        first = InventoryItemFactory.build(id="1", sku="A101-F", name="Lamp")
        second = InventoryItemFactory.build(id="2", sku="A101-F", name="Chair")
        row = ImportRowFactory.create(sku="A101-F")

        match = resolve(row, [first, second])

        assert match.primary.id == "1"
        assert [c.item.id for c in match.conflicts] == ["2"]

    def test_same_name_narrows_sku_candidates(self):
        """When names match one record, the others are dropped."""
        first = InventoryItemFactory.build(id="1", sku="A101-F", name="Lamp")
        second = InventoryItemFactory.build(id="2", sku="A101-F", name="Chair")
        row = ImportRowFactory.create(sku="A101-F", name="Chair")

        match = resolve(row, [first, second])

        assert match.primary.id == "2"
        assert match.conflicts == []

    def test_row_with_sku_never_fuzzy_matches(self):
        """A row with a SKU that matches nothing stays unmatched."""
        item = InventoryItemFactory.build(id="1", sku="A101-F", name="Lamp")
        row = ImportRowFactory.create(sku="Z999-Q", name="Lamp")

        assert resolve(row, [item]).is_unmatched


class TestNameStage:
    """Tests for fuzzy name matching."""

    def test_two_equal_names_are_both_candidates(self):
        """Two records with the same name both score 1.0."""
        first = InventoryItemFactory.build(id="1", sku="A101-F", name="Blue Widget")
        second = InventoryItemFactory.build(id="2", sku="B202-F", name="Blue Widget")
        row = ImportRowFactory.create(name="Blue Widget")

        match = resolve(row, [first, second])

        assert match.primary.id == "1"
        assert match.matched_by == "name"
        assert [c.item.id for c in match.conflicts] == ["2"]
        assert match.score == 1.0
        assert match.conflicts[0].score == 1.0

    def test_whitespace_variants_match(self):
        """Trailing spaces do not block a match."""
        first = InventoryItemFactory.build(id="1", name="Widget A")
        second = InventoryItemFactory.build(id="2", name="Widget A ")
        row = ImportRowFactory.create(name="Widget A")

        match = resolve(row, [first, second])

        ids = {match.primary.id} | {c.item.id for c in match.conflicts}
        assert ids == {"1", "2"}

    def test_below_threshold_is_unmatched(self):
        """Similar but different names stay unmatched at the default threshold."""
        item = InventoryItemFactory.build(id="1", name="Widget B")
        row = ImportRowFactory.create(name="Widget A")

        assert resolve(row, [item]).is_unmatched

    def test_custom_threshold(self):
        """A lower threshold admits weaker matches."""
        item = InventoryItemFactory.build(id="1", name="Widget B")
        row = ImportRowFactory.create(name="Widget A")

        match = resolve(row, [item], threshold=0.8)

        assert match.primary.id == "1"
        assert 0.8 <= match.score < 1.0

    def test_best_score_is_primary(self):
        """Candidates are ordered by score."""
        close = InventoryItemFactory.build(id="1", name="Blue Widgets")
        exact = InventoryItemFactory.build(id="2", name="Blue Widget")
        row = ImportRowFactory.create(name="Blue Widget")

        match = resolve(row, [close, exact])

        assert match.primary.id == "2"
        assert match.conflicts[0].item.id == "1"

    def test_no_identifiers_and_no_name_is_unmatched(self):
        """A row with nothing to match on resolves to nothing."""
        item = InventoryItemFactory.build(id="1", name="Lamp")
        row = ImportRowFactory.create(quantity="3")

        assert resolve(row, [item]).is_unmatched


class TestNameSimilarity:
    """Tests for name_similarity."""

    def test_case_accents_and_spaces_ignored(self):
        assert name_similarity("Lámpara  Café", "lampara cafe") == 1.0

    def test_missing_name_scores_zero(self):
        assert name_similarity(None, "Lamp") == 0.0
        assert name_similarity("  ", "Lamp") == 0.0


class TestInventoryIndex:
    """Tests for the in-run inventory index."""

    def test_add_and_remove(self):
        """Items added mid-run are visible and removal clears every index."""
        index = InventoryIndex.build([])
        item = InventoryItemFactory.build(id="1", product_id="P1", sku="A101-F")

        index.add(item)
        assert index.by_product_id["P1"].id == "1"
        assert index.by_sku["A101-F"][0].id == "1"

        index.remove("1")
        assert index.items == []
        assert "P1" not in index.by_product_id
        assert "A101-F" not in index.by_sku

    def test_replace_swaps_sku(self):
        """Replacing an item reindexes it under its new SKU."""
        item = InventoryItemFactory.build(id="1", sku="A101-F")
        index = InventoryIndex.build([item])

        index.replace(item.model_copy(update={"sku": "B202-F"}))

        assert "A101-F" not in index.by_sku
        assert index.by_sku["B202-F"][0].id == "1"
        assert len(index.items) == 1
