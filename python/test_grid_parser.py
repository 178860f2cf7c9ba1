"""Tests for grid_parser module."""

import pytest

from grid_parser import EMPTY_MARKER, parse_block, parse_cell_value, parse_number


class TestParseNumber:
    """Tests for single-cell number parsing."""

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("1250", 1250.0),
            ("$1,250", 1250.0),
            ("  42 ", 42.0),
            ("-3.5", -3.5),
            (".5", 0.5),
            ("18%", 18.0),
        ],
    )
    def test_plain_and_decorated(self, text: str, expected: float) -> None:
        """Currency signs, separators, percent and whitespace are ignored."""
        assert parse_number(text) == expected

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("150K", 150_000.0),
            ("150k", 150_000.0),
            ("1.2m", 1_200_000.0),
            ("2B", 2_000_000_000.0),
            ("-3.5k", -3_500.0),
            ("$27K", 27_000.0),
        ],
    )
    def test_suffixes(self, text: str, expected: float) -> None:
        """K/M/B suffixes scale the number."""
        assert parse_number(text) == pytest.approx(expected)

    def test_empty_marker_reads_as_zero(self) -> None:
        """The rendered empty-cell marker parses back to zero."""
        assert parse_number(EMPTY_MARKER) == 0.0
        assert parse_number(f" {EMPTY_MARKER} ") == 0.0

    @pytest.mark.parametrize("text", ["", "abc", "12abc", "1k2", "--5", "$"])
    def test_rejects_non_numbers(self, text: str) -> None:
        """Text that is not a number parses to None."""
        assert parse_number(text) is None


class TestParseCellValue:
    """Tests for row-aware parsing."""

    def test_percentage_row_scales_to_fraction(self) -> None:
        """Percentage rows take percent points and store fractions."""
        assert parse_cell_value("60", percentage=True) == pytest.approx(0.6)
        assert parse_cell_value("60%", percentage=True) == pytest.approx(0.6)

    def test_plain_row_unscaled(self) -> None:
        """Dollar rows keep the number as typed."""
        assert parse_cell_value("60", percentage=False) == 60.0

    def test_unparseable(self) -> None:
        """Unparseable text stays None on either row kind."""
        assert parse_cell_value("x", percentage=True) is None
        assert parse_cell_value("x", percentage=False) is None


class TestParseBlock:
    """Tests for clipboard block splitting."""

    def test_tabs_and_newlines(self) -> None:
        """Rows split on newlines, cells on tabs."""
        assert parse_block("1\t2\n3\t4") == [["1", "2"], ["3", "4"]]

    def test_single_trailing_newline_dropped(self) -> None:
        """A trailing newline does not add an empty row."""
        assert parse_block("1\t2\n3\t4\n") == [["1", "2"], ["3", "4"]]

    def test_crlf_and_cr(self) -> None:
        """Windows and old Mac line endings are tolerated."""
        assert parse_block("1\r\n2\r3") == [["1"], ["2"], ["3"]]

    def test_ragged_rows(self) -> None:
        """Rows may have different lengths."""
        assert parse_block("1\t2\t3\n4") == [["1", "2", "3"], ["4"]]

    def test_empty_text(self) -> None:
        """Empty clipboard means no rows."""
        assert parse_block("") == []
        assert parse_block("\n") == []

    def test_single_cell(self) -> None:
        """A bare value is a 1x1 block."""
        assert parse_block("150K") == [["150K"]]
