"""
Unit tests for location extraction from SKUs.
"""

import pytest

from utils.location import extract_location


class TestExtractLocation:
    """Tests for extract_location."""

    @pytest.mark.parametrize("sku,expected", [
        ("A101-F", "A101"),
        ("A107Y-E", "A107"),
        ("E501-N", "E501"),
        ("e501-n", "E501"),
        ("B2", "B2"),
        ("C12-X", "C12"),
        ("A1234", "A123"),
    ])
    def test_prefix_is_extracted_and_uppercased(self, sku, expected):
        """Letter plus up to three digits at the start becomes the location."""
        assert extract_location(sku) == expected

    @pytest.mark.parametrize("sku", [
        "kjkhk",
        "1A01",
        "AB101",
        "-A101",
        "",
    ])
    def test_non_matching_sku_is_returned_unchanged(self, sku):
        """SKUs without the pattern are their own location."""
        assert extract_location(sku) == sku

    def test_case_of_unmatched_sku_is_preserved(self):
        """Unmatched SKUs are not uppercased."""
        assert extract_location("shelf-x") == "shelf-x"
