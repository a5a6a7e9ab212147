"""
Field-level helpers shared by the conflict detector and the writers:
comparing an import row against a stored item, and building the
create/update payloads that go to the persistence layer.
"""

import json
from typing import Any, Optional

from models.inventory import DIMENSION_FIELDS, InventoryItemResponse
from models.reconciliation import FieldDifference, ImportRow
from utils.location import extract_location

# Fields whose divergence needs review; barcode is never compared
COMPARED_FIELDS = (
    "name", "quantity", "price", "location", "sku",
    "length", "width", "height", "weight", "condition",
)
NUMERIC_COMPARED = {"quantity", "price", "length", "width", "height", "weight"}
CODE_FIELDS = {"sku", "location"}

# Written on a clean match without review
METADATA_FIELDS = ("image_urls", "item_id", "ebay_url", "ebay_seller_name", "volume")

WRITABLE_FIELDS = (
    "product_id", "sku", "location", "quantity", "barcode", "name", "condition",
    "length", "width", "height", "weight", "volume", "price",
    "image_urls", "item_id", "ebay_url", "ebay_seller_name",
)

_TOLERANCE = 1e-6


def values_equal(field: str, existing: Any, incoming: Any) -> bool:
    """Compare one field the way reviewers would read it."""
    if existing is None or existing == "":
        return incoming is None or incoming == ""

    if field in NUMERIC_COMPARED:
        try:
            return abs(float(existing) - float(incoming)) <= _TOLERANCE
        except (TypeError, ValueError):
            return False

    if field in CODE_FIELDS:
        return str(existing).strip().upper() == str(incoming).strip().upper()

    return str(existing).strip() == str(incoming).strip()


def compare_fields(row: ImportRow, item: InventoryItemResponse) -> list[FieldDifference]:
    """
    Allow-listed fields where the CSV supplies a value that differs from the item.

    Fields missing from the CSV never count as differences.
    """
    differences = []
    for field in COMPARED_FIELDS:
        if not row.has(field):
            continue
        existing = getattr(item, field)
        incoming = row.get(field)
        if not values_equal(field, existing, incoming):
            differences.append(FieldDifference(
                field=field,
                existing_value=existing,
                csv_value=incoming
            ))
    return differences


def only_dimensions(differences: list[FieldDifference]) -> bool:
    return bool(differences) and all(d.field in DIMENSION_FIELDS for d in differences)


def image_list(value: Any) -> list[str]:
    """Accept the list or JSON-string form of image URLs."""
    if not value:
        return []
    if isinstance(value, str):
        try:
            parsed = json.loads(value)
        except json.JSONDecodeError:
            return [value]
        return [str(u) for u in parsed] if isinstance(parsed, list) else [str(parsed)]
    return list(value)


def supplied_fields(row: ImportRow) -> dict[str, Any]:
    """Every writable field the CSV supplied, images as a list."""
    fields = {f: row.get(f) for f in WRITABLE_FIELDS if row.has(f)}
    if "image_urls" in fields:
        fields["image_urls"] = image_list(fields["image_urls"])
    return fields


def merge_metadata(row: ImportRow, item: InventoryItemResponse) -> dict[str, Any]:
    """
    Updates applied on a clean match.

    Marketplace metadata and images are taken from the CSV; the barcode is
    only filled in when the item has none; a product_id is only adopted by
    an item that has none.
    """
    supplied = supplied_fields(row)
    updates = {}

    for field in METADATA_FIELDS:
        if field in supplied and supplied[field] != getattr(item, field):
            updates[field] = supplied[field]

    if "barcode" in supplied and not item.barcode:
        updates["barcode"] = supplied["barcode"]

    if "product_id" in supplied and not item.product_id:
        updates["product_id"] = supplied["product_id"]

    return updates


def build_create_record(row: ImportRow, drop_product_id: bool = False) -> dict[str, Any]:
    """Creation payload for a row; location falls back to the SKU prefix."""
    record = supplied_fields(row)
    record["quantity"] = row.quantity
    if drop_product_id:
        record.pop("product_id", None)
    if not record.get("location") and record.get("sku"):
        record["location"] = extract_location(record["sku"])
    return record


def build_update_fields(
    row: ImportRow,
    item: InventoryItemResponse,
    use_csv_dimensions: bool = True,
    override_barcode: bool = False
) -> dict[str, Any]:
    """
    Field-subset update taking the CSV's side for an existing item.

    Only fields the CSV supplied are written. The barcode stays sticky
    unless ``override_barcode``; a new SKU re-derives the location unless
    the CSV gave one explicitly.
    """
    fields = supplied_fields(row)

    if not use_csv_dimensions:
        for field in DIMENSION_FIELDS:
            fields.pop(field, None)

    if item.barcode and not override_barcode:
        fields.pop("barcode", None)

    if item.product_id:
        fields.pop("product_id", None)

    new_sku: Optional[str] = fields.get("sku")
    if new_sku and "location" not in fields and new_sku.upper() != item.sku.upper():
        fields["location"] = extract_location(new_sku)

    return fields
