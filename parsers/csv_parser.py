"""
Row-source parser for inventory imports.

Turns uploaded or downloaded CSV (or Excel) content into a list of raw
rows: one ``dict[str, str]`` per data line, keyed by the header row.
Every cell stays a string; field mapping and numeric coercion happen in
the row normalizer.
"""

from io import BytesIO, StringIO
from pathlib import PurePath
from typing import Optional
import structlog

import pandas as pd

from exceptions import CSVParseError

logger = structlog.get_logger(__name__)

EXCEL_EXTENSIONS = {".xlsx", ".xls"}

# Tried in order when decoding uploaded bytes
ENCODINGS = ("utf-8-sig", "cp1251", "latin-1")


def parse_csv_text(text: str) -> list[dict[str, str]]:
    """
    Parse CSV text with a header row.

    Args:
        text: Full CSV content

    Returns:
        List of rows keyed by header (whitespace-trimmed)

    Raises:
        CSVParseError: If the content is empty or not parseable as CSV
    """
    if not text or not text.strip():
        raise CSVParseError("CSV file is empty")

    try:
        df = pd.read_csv(
            StringIO(text),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
        )
    except (pd.errors.ParserError, pd.errors.EmptyDataError, ValueError) as e:
        logger.error("csv_parse_failed", error=str(e))
        raise CSVParseError(
            message="Failed to parse CSV",
            details={"original_error": str(e)}
        )

    return _frame_to_rows(df)


def parse_csv_bytes(content: bytes) -> list[dict[str, str]]:
    """Decode CSV bytes (UTF-8 with BOM, then Cyrillic, then Latin-1) and parse."""
    return parse_csv_text(_decode(content))


def parse_excel_bytes(content: bytes, sheet_name: Optional[str] = None) -> list[dict[str, str]]:
    """
    Parse the first (or named) sheet of an Excel workbook.

    Raises:
        CSVParseError: If the workbook cannot be read
    """
    try:
        df = pd.read_excel(
            BytesIO(content),
            sheet_name=sheet_name or 0,
            dtype=str,
            keep_default_na=False,
            engine="openpyxl",
        )
    except Exception as e:
        logger.error("excel_read_failed", error=str(e))
        raise CSVParseError(
            message="Failed to read Excel file",
            details={"original_error": str(e)}
        )

    return _frame_to_rows(df)


def parse_upload(filename: Optional[str], content: bytes) -> list[dict[str, str]]:
    """
    Parse an uploaded file, picking CSV or Excel by extension.

    Args:
        filename: Original upload filename (may be None)
        content: Raw file bytes

    Returns:
        List of raw rows
    """
    suffix = PurePath(filename or "").suffix.lower()

    logger.info("parsing_upload", filename=filename, size=len(content))

    if suffix in EXCEL_EXTENSIONS:
        rows = parse_excel_bytes(content)
    else:
        rows = parse_csv_bytes(content)

    logger.info("upload_parsed", filename=filename, rows=len(rows))
    return rows


def _decode(content: bytes) -> str:
    if not content:
        raise CSVParseError("CSV file is empty")

    for encoding in ENCODINGS:
        try:
            return content.decode(encoding)
        except UnicodeDecodeError:
            continue

    # latin-1 decodes any byte sequence, so this is unreachable in practice
    raise CSVParseError("Could not decode CSV file")


def _frame_to_rows(df: pd.DataFrame) -> list[dict[str, str]]:
    """Convert a string-typed DataFrame to trimmed row dicts, dropping blank lines."""
    if len(df.columns) == 0:
        raise CSVParseError("CSV has no header row")

    df.columns = [str(col).strip() for col in df.columns]

    rows = []
    for record in df.to_dict(orient="records"):
        row = {
            key: (value.strip() if isinstance(value, str) else "" if value is None else str(value))
            for key, value in record.items()
        }
        if any(row.values()):
            rows.append(row)

    logger.debug("csv_rows_extracted", rows=len(rows), columns=len(df.columns))
    return rows
