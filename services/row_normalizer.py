"""
Row normalizer for inventory imports.

Maps arbitrary CSV headers onto canonical inventory fields through a
declarative alias table, coerces numbers, collects image URL columns and
keeps the raw row for audit. Normalizing a single row never raises: a
malformed cell just leaves its field out.
"""

import json
import math
import re
from typing import Any, Optional
import structlog

from config import settings
from models.inventory import MAX_IMAGE_URLS
from models.reconciliation import ImportRow
from utils.text_utils import clean_text

logger = structlog.get_logger(__name__)


# Canonical field -> accepted header spellings (matched case-insensitively)
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "product_id": ("productId", "product_id", "Product ID", "ProductID", "product id"),
    "sku": ("sku", "SKU", "Custom label", "Custom label (SKU)", "custom_label", "Location SKU"),
    "name": ("name", "Name", "Product Name", "product_name", "Title", "Item title", "item_title"),
    "location": ("location", "Location", "Storage location"),
    "quantity": ("quantity", "qty", "Quantity", "Available quantity", "Stock", "Count"),
    "barcode": ("barcode", "Barcode", "EAN", "UPC", "GTIN"),
    "condition": ("condition", "Condition", "Item condition"),
    "length": ("length", "Length", "Package length", "length_cm"),
    "width": ("width", "Width", "Package width", "width_cm"),
    "height": ("height", "Height", "Package height", "height_cm"),
    "weight": ("weight", "Weight", "Package weight", "weight_kg"),
    "volume": ("volume", "Volume"),
    "price": ("price", "Price", "Start price", "Current price", "price_usd"),
    "item_id": ("itemId", "item_id", "Item number", "Item ID", "eBay Item ID"),
    "ebay_url": ("ebayUrl", "ebay_url", "eBay URL", "Listing URL", "URL"),
    "ebay_seller_name": ("ebaySellerName", "ebay_seller_name", "Seller", "Seller name"),
}

TEXT_FIELDS = (
    "product_id", "sku", "name", "location", "barcode",
    "condition", "item_id", "ebay_url", "ebay_seller_name",
)
NUMERIC_FIELDS = ("length", "width", "height", "weight", "volume", "price")

# Indexed image columns, {n} = 1..24
IMAGE_COLUMN_PATTERNS = (
    "imageUrl{n}",
    "image_url_{n}",
    "Image URL {n}",
    "Picture URL {n}",
    "image{n}",
)
IMAGE_LIST_ALIASES = ("imageUrls", "image_urls", "Image URLs", "Picture URLs")

_CURRENCY = re.compile(r"[\s$€£₽¥]")
_LIST_SPLIT = re.compile(r"[|,;\n]")


# ===================
# COLUMN LOOKUP
# ===================

def get_column_value(
    row: dict[str, str],
    field: str,
    aliases: Optional[dict[str, tuple[str, ...]]] = None
) -> Optional[str]:
    """
    Resolve a canonical field from any of its accepted header spellings.

    Tries an exact key match for every alias first, then falls back to a
    case-insensitive scan of all row keys. Empty cells count as absent.

    Args:
        row: Raw row keyed by source header
        field: Canonical field name (e.g. "quantity")
        aliases: Alias table to consult (defaults to FIELD_ALIASES)

    Returns:
        Trimmed cell value, or None if no accepted header has a value
    """
    spellings = (aliases or FIELD_ALIASES).get(field, (field,))

    for header in spellings:
        value = row.get(header)
        if value is not None and str(value).strip():
            return str(value).strip()

    wanted = {h.strip().lower() for h in spellings}
    for key, value in row.items():
        if key is None or value is None:
            continue
        if str(key).strip().lower() in wanted and str(value).strip():
            return str(value).strip()

    return None


# ===================
# COERCION
# ===================

def parse_number(value: Optional[str]) -> Optional[float]:
    """
    Parse a numeric cell.

    Handles "12.5", " 12,5 ", "$1,299.00", "1 299". Returns None for
    missing, non-numeric, NaN or infinite values.
    """
    if value is None:
        return None

    text = _CURRENCY.sub("", str(value))
    if not text:
        return None

    if "," in text and "." in text:
        # "1,299.00": comma is a thousands separator
        text = text.replace(",", "")
    elif "," in text:
        # "12,5": comma is the decimal mark
        text = text.replace(",", ".")

    try:
        number = float(text)
    except ValueError:
        return None

    if math.isnan(number) or math.isinf(number):
        return None

    return number


def parse_quantity(value: Optional[str]) -> int:
    """Parse a quantity cell, defaulting to 0 for absent, invalid or negative values."""
    number = parse_number(value)
    if number is None or number < 0:
        return 0
    return int(number)


def collect_image_urls(row: dict[str, str], limit: int = MAX_IMAGE_URLS) -> list[str]:
    """
    Collect image URLs from indexed columns and list-valued columns.

    Indexed columns (imageUrl1..imageUrl24 and the other conventions) come
    first in index order, then entries of a JSON-array or delimited list
    column. Duplicates are dropped and the result is capped at ``limit``.
    """
    urls: list[str] = []
    index_aliases = {
        f"image_{n}": tuple(p.format(n=n) for p in IMAGE_COLUMN_PATTERNS)
        for n in range(1, MAX_IMAGE_URLS + 1)
    }

    for n in range(1, MAX_IMAGE_URLS + 1):
        value = get_column_value(row, f"image_{n}", index_aliases)
        if value:
            urls.append(value)

    listed = get_column_value(row, "image_urls", {"image_urls": IMAGE_LIST_ALIASES})
    if listed:
        urls.extend(_split_url_list(listed))

    unique = list(dict.fromkeys(u for u in urls if u))
    return unique[:limit]


def _split_url_list(value: str) -> list[str]:
    if value.startswith("["):
        try:
            parsed = json.loads(value)
            if isinstance(parsed, list):
                return [str(u).strip() for u in parsed if str(u).strip()]
        except json.JSONDecodeError:
            pass
    return [part.strip() for part in _LIST_SPLIT.split(value) if part.strip()]


# ===================
# NORMALIZE
# ===================

def normalize_row(
    raw_row: dict[str, str],
    row_index: int = 0,
    images_as_json: bool = False
) -> ImportRow:
    """
    Normalize one raw source row into an ImportRow.

    Args:
        raw_row: Row keyed by source header
        row_index: Position of the row in the source (0-based)
        images_as_json: Store image URLs as one JSON-encoded string instead of a list

    Returns:
        ImportRow whose ``normalized`` map only holds supplied fields
        (``quantity`` is always present)
    """
    raw = {
        str(k).strip(): ("" if v is None else str(v))
        for k, v in (raw_row or {}).items()
        if k is not None
    }
    normalized: dict[str, Any] = {}

    for field in TEXT_FIELDS:
        value = clean_text(get_column_value(raw, field))
        if value is not None:
            normalized[field] = value

    for field in NUMERIC_FIELDS:
        number = parse_number(get_column_value(raw, field))
        if number is not None and number >= 0:
            normalized[field] = number

    defaulted = []
    quantity_cell = get_column_value(raw, "quantity")
    quantity_value = parse_number(quantity_cell)
    if quantity_value is None or quantity_value < 0:
        defaulted.append("quantity")
    normalized["quantity"] = parse_quantity(quantity_cell)

    images = collect_image_urls(raw, limit=settings.max_image_urls)
    if images:
        normalized["image_urls"] = json.dumps(images) if images_as_json else images

    return ImportRow(
        row_index=row_index,
        normalized=normalized,
        raw=raw,
        defaulted=defaulted
    )


def normalize_rows(raw_rows: list[dict[str, str]], images_as_json: bool = False) -> list[ImportRow]:
    """Normalize a whole source, numbering rows by position."""
    rows = [
        normalize_row(raw, row_index=i, images_as_json=images_as_json)
        for i, raw in enumerate(raw_rows)
    ]
    logger.debug("rows_normalized", count=len(rows))
    return rows
