"""
Unit tests for the CSV/Excel row-source parser.
"""

from io import BytesIO

import pandas as pd
import pytest

from exceptions import CSVParseError
from parsers.csv_parser import parse_csv_bytes, parse_csv_text, parse_upload


class TestParseCsvText:
    """Tests for parse_csv_text."""

    def test_rows_keyed_by_header(self):
        rows = parse_csv_text("sku,quantity\nA101-F,5\nB202-F,2\n")

        assert rows == [
            {"sku": "A101-F", "quantity": "5"},
            {"sku": "B202-F", "quantity": "2"},
        ]

    def test_cells_stay_strings(self):
        """Leading zeros and empty cells survive."""
        rows = parse_csv_text("barcode,price\n00123,\n")

        assert rows == [{"barcode": "00123", "price": ""}]

    def test_headers_and_cells_trimmed(self):
        rows = parse_csv_text(" sku , name \n A101-F ,  Lamp \n")

        assert rows == [{"sku": "A101-F", "name": "Lamp"}]

    def test_blank_lines_dropped(self):
        rows = parse_csv_text("sku,quantity\nA101-F,5\n\n,\nB202-F,1\n")

        assert [r["sku"] for r in rows] == ["A101-F", "B202-F"]

    def test_quoted_fields(self):
        rows = parse_csv_text('sku,name\nA101-F,"Lamp, brass"\n')

        assert rows[0]["name"] == "Lamp, brass"

    def test_empty_content(self):
        with pytest.raises(CSVParseError):
            parse_csv_text("   ")


class TestParseBytes:
    """Tests for byte decoding and upload dispatch."""

    def test_utf8_bom_is_stripped(self):
        rows = parse_csv_bytes("sku,name\nA101-F,Lámpara\n".encode("utf-8-sig"))

        assert list(rows[0]) == ["sku", "name"]
        assert rows[0]["name"] == "Lámpara"

    def test_cyrillic_fallback(self):
        rows = parse_csv_bytes("sku,name\nA101-F,Лампа\n".encode("cp1251"))

        assert rows[0]["name"] == "Лампа"

    def test_empty_bytes(self):
        with pytest.raises(CSVParseError):
            parse_csv_bytes(b"")

    def test_excel_upload(self):
        """Excel files are read by extension."""
        buffer = BytesIO()
        pd.DataFrame({"sku": ["A101-F"], "quantity": ["3"]}).to_excel(buffer, index=False)

        rows = parse_upload("stock.xlsx", buffer.getvalue())

        assert rows == [{"sku": "A101-F", "quantity": "3"}]

    def test_broken_excel(self):
        with pytest.raises(CSVParseError):
            parse_upload("stock.xlsx", b"not a workbook")

    def test_unknown_extension_parsed_as_csv(self):
        rows = parse_upload(None, b"sku\nA101-F\n")

        assert rows == [{"sku": "A101-F"}]
