"""
Storage location codes derived from SKUs.

SKU format examples:
- A101-F  -> A101  (letter + 1-3 digits)
- A107Y-E -> A107  (anything after the digit run is ignored)
- e501-n  -> E501  (case-insensitive, normalized to uppercase)
- kjkhk   -> kjkhk (no pattern match, the SKU itself is the location)
"""

import re

LOCATION_PATTERN = re.compile(r"^([A-Z]\d{1,3})", re.IGNORECASE)


def extract_location(sku: str) -> str:
    """
    Derive the location code from a SKU.

    Args:
        sku: Raw SKU string

    Returns:
        Uppercased letter+digits prefix, or the SKU unchanged when it has none
    """
    match = LOCATION_PATTERN.match(sku)
    if match:
        return match.group(1).upper()
    return sku
