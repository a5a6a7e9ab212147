"""
Text utilities for comparing product names and cleaning cell values.
"""

import re
import unicodedata
from typing import Optional

_WHITESPACE = re.compile(r"\s+")


def normalize_product_name(name: Optional[str]) -> Optional[str]:
    """
    Normalize a product name for similarity comparison.

    - "  Blue   Widget " -> "blue widget"
    - "Lámpara Café"     -> "lampara cafe"

    Args:
        name: Original product name (may have accents, mixed case, extra spaces)

    Returns:
        Case-folded ASCII string with single spaces, or None if input is empty
    """
    if not name:
        return None

    name = name.strip()

    if not name:
        return None

    # NFD decomposition separates base chars from accents
    normalized = unicodedata.normalize('NFD', name)

    # Drop accent marks (Unicode category 'Mn')
    ascii_name = ''.join(
        c for c in normalized
        if unicodedata.category(c) != 'Mn'
    )

    return _WHITESPACE.sub(" ", ascii_name).casefold()


def clean_text(value: Optional[str], max_length: int = 1000) -> Optional[str]:
    """
    Clean a text cell for storage.

    - Strips whitespace
    - Truncates to max length
    - Returns None for empty/whitespace-only strings
    """
    if value is None:
        return None

    value = str(value).strip()

    if not value:
        return None

    if len(value) > max_length:
        value = value[:max_length]

    return value
