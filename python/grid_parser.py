"""
Parsing utilities for text typed or pasted into the grid.

Provides two parsers:
1. parse_number: one cell's text, with currency/percent decoration and
   K/M/B shorthand
2. parse_block: a tab/newline-delimited clipboard block, as raw cell strings
"""

from __future__ import annotations

import re

__all__ = ["EMPTY_MARKER", "parse_number", "parse_block", "parse_cell_value"]

# What a zero cell renders as; reading it back means zero
EMPTY_MARKER = "—"

_NUMBER = re.compile(r"^(-?\d*\.?\d+)([kmb]?)$", re.IGNORECASE)
_DECORATION = re.compile(r"[$,%\s]")
_SUFFIX_SCALE = {"": 1, "k": 1_000, "m": 1_000_000, "b": 1_000_000_000}


def parse_number(text: str) -> float | None:
    """
    Parse a number as a person would type or copy it.

    Format:
    - Currency signs, thousands separators, percent signs and whitespace are ignored
    - An optional suffix scales the number (case-insensitive):
      * k: thousands    "150K" -> 150000
      * m: millions     "1.2m" -> 1200000
      * b: billions     "2B"   -> 2000000000
    - The empty-cell marker "—" reads as 0

    Examples:
        "$1,250"  -> 1250.0
        "18%"     -> 18.0   (percent rows divide by 100 afterwards)
        "-3.5k"   -> -3500.0
        "abc"     -> None

    Args:
        text: Raw cell text

    Returns:
        The parsed number, or None if the text is not a number
    """
    stripped = text.strip()
    if stripped == EMPTY_MARKER:
        return 0.0
    cleaned = _DECORATION.sub("", stripped)
    match = _NUMBER.match(cleaned)
    if match is None:
        return None
    return float(match.group(1)) * _SUFFIX_SCALE[match.group(2).lower()]


def parse_cell_value(text: str, percentage: bool) -> float | None:
    """parse_number, scaled from percent points to a fraction for percentage rows."""
    value = parse_number(text)
    if value is None:
        return None
    return value / 100 if percentage else value


def parse_block(text: str) -> list[list[str]]:
    """
    Split clipboard text into rows of raw cell strings.

    Format:
    - Rows separated by newlines (CRLF and CR tolerated)
    - Cells separated by tabs
    - A single trailing newline does not create an empty last row

    Example:
        "1\\t2\\n3\\t4\\n" -> [["1", "2"], ["3", "4"]]

    Args:
        text: Clipboard text

    Returns:
        List of rows, each a list of cell strings (rows may differ in length)
    """
    normalized = text.replace("\r\n", "\n").replace("\r", "\n")
    lines = normalized.split("\n")
    if len(lines) > 1 and lines[-1] == "":
        lines.pop()
    if lines == [""]:
        return []
    return [line.split("\t") for line in lines]
