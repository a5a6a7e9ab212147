"""
Import source parsers.
"""

from parsers.csv_parser import (
    parse_csv_text,
    parse_csv_bytes,
    parse_excel_bytes,
    parse_upload,
)

__all__ = [
    "parse_csv_text",
    "parse_csv_bytes",
    "parse_excel_bytes",
    "parse_upload",
]
