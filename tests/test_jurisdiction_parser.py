"""
Tests for the deterministic jurisdiction listing parser.

The listing text below mimics what text extraction yields from the real
table: rows run together, line breaks in odd places, an administrative
aside in one row, and a global "Updated" stamp.
"""

from __future__ import annotations

import pytest

from foreclosure_abstract.jurisdiction_parser import (
    extract_trustee_names,
    normalize_county_name,
    parse_county_block,
    parse_jurisdiction_table,
)


LISTING_TEXT = """\
COUNTY SALE HOURS SUBSTITUTE TRUSTEES SALE LOCATION
Updated 03-15-2024
Collin 10am-4pm Jane Smith, Robert Lee Jones,
Mary Ann Carter, The north steps of the Collin County Courthouse,
2100 Bloomdale Road, McKinney, Texas
Dallas 10:00 AM - 1:00 PM John Doe, Alice Walker Add: new trustee pending
At the George Allen Courts Building, 600 Commerce Street, Dallas, TX
"""


# ═══════════════════════════════════════════════════════════════════
# County name normalization
# ═══════════════════════════════════════════════════════════════════


class TestNormalizeCountyName:
    @pytest.mark.parametrize(
        "raw",
        ["Collin County, Texas", "COLLIN COUNTY", "Collin", "collin county , TX", " Collin  County Texas"],
    )
    def test_variants_collapse(self, raw: str) -> None:
        assert normalize_county_name(raw) == "collin"

    def test_multi_word_county(self) -> None:
        assert normalize_county_name("Fort Bend County, Texas") == "fort bend"

    def test_other_state(self) -> None:
        assert normalize_county_name("Cook County, Illinois") == "cook"


# ═══════════════════════════════════════════════════════════════════
# Full table
# ═══════════════════════════════════════════════════════════════════


class TestParseJurisdictionTable:
    def test_rows_found(self) -> None:
        table = parse_jurisdiction_table(LISTING_TEXT)
        assert set(table) == {"collin", "dallas"}

    def test_collin_row(self) -> None:
        record = parse_jurisdiction_table(LISTING_TEXT)["collin"]
        assert record.trustees == ["Jane Smith", "Robert Lee Jones", "Mary Ann Carter"]
        assert record.sale_hours == "10am-4pm"
        assert record.county_seat == "McKinney"
        assert record.sale_location.startswith("The north steps of the Collin County Courthouse")
        assert record.date == "03-15-2024"

    def test_aside_removed_before_trustees(self) -> None:
        record = parse_jurisdiction_table(LISTING_TEXT)["dallas"]
        assert record.trustees == ["John Doe", "Alice Walker"]
        assert "Add:" not in (record.sale_location or "")
        assert record.sale_location.startswith("At the George Allen Courts Building")
        assert record.county_seat == "Dallas"
        assert record.sale_hours == "10:00 AM - 1:00 PM"

    def test_location_text_never_becomes_a_trustee(self) -> None:
        for record in parse_jurisdiction_table(LISTING_TEXT).values():
            for name in record.trustees:
                assert "Courthouse" not in name
                assert "Road" not in name

    def test_two_word_county_row(self) -> None:
        text = LISTING_TEXT + (
            "Fort Bend 10am-2pm Jane Smith, Omar Ruiz,\n"
            "At the Fort Bend County Justice Center, 1422 Eugene Heimann Circle, Richmond, Texas\n"
        )
        table = parse_jurisdiction_table(text)
        assert set(table) == {"collin", "dallas", "fort bend"}
        assert table["fort bend"].trustees == ["Jane Smith", "Omar Ruiz"]
        assert table["fort bend"].county_seat == "Richmond"
        assert table["fort bend"].sale_hours == "10am-2pm"
        assert table["dallas"].county_seat == "Dallas"

    def test_previous_row_state_stays_with_its_row(self) -> None:
        text = (
            "Kings 9am-11am Jane Smith, Bob Stone, At the Supreme Court, 360 Adams Street, Brooklyn, New York "
            "Queens 9am-11am John Doe, Alice Walker, On the steps of the courthouse, Jamaica, New York"
        )
        table = parse_jurisdiction_table(text)
        assert set(table) == {"kings", "queens"}
        assert table["kings"].county_seat == "Brooklyn"
        assert table["queens"].trustees == ["John Doe", "Alice Walker"]

    def test_missing_stamp_leaves_date_empty(self) -> None:
        text = LISTING_TEXT.replace("Updated 03-15-2024", "")
        assert parse_jurisdiction_table(text)["collin"].date is None

    def test_row_without_trustees_skipped(self) -> None:
        text = "Rockwall 10am-4pm The Rockwall County Courthouse, 1111 Main Street, Rockwall, Texas"
        assert parse_jurisdiction_table(text) == {}

    @pytest.mark.parametrize("text", ["", "   ", "no table here at all", "%%%%\x00\x01"])
    def test_headerless_or_garbage_input_yields_empty_map(self, text: str) -> None:
        assert parse_jurisdiction_table(text) == {}


# ═══════════════════════════════════════════════════════════════════
# Block pieces
# ═══════════════════════════════════════════════════════════════════


class TestParseCountyBlock:
    def test_seat_dropped_when_no_city_state_pair(self) -> None:
        record = parse_county_block(
            "Jane Smith, Bob Stone, On the steps of the courthouse", "10am-4pm", None
        )
        assert record.trustees == ["Jane Smith", "Bob Stone"]
        assert record.county_seat is None
        assert record.sale_location == "On the steps of the courthouse"

    def test_no_location_sentence(self) -> None:
        record = parse_county_block("Jane Smith, Bob Stone", "10am-4pm", "01-02-2024")
        assert record.sale_location is None
        assert record.trustees == ["Jane Smith", "Bob Stone"]
        assert record.date == "01-02-2024"


class TestExtractTrusteeNames:
    def test_filters_noise(self) -> None:
        text = "Jane Smith, 2100 Bloomdale Road, Collin County, Courthouse Annex, X, Bob Stone"
        assert extract_trustee_names(text) == ["Jane Smith", "Bob Stone"]

    def test_single_words_and_lowercase_rejected(self) -> None:
        assert extract_trustee_names("Smith, jane smith, Jane Smith") == ["Jane Smith"]

    def test_duplicates_collapsed(self) -> None:
        assert extract_trustee_names("Jane Smith, Jane Smith") == ["Jane Smith"]
