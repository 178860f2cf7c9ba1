"""
ASCII rendering for yeargrid.

Provides:
1. Cell formatting: the text each cell shows, which is also what copy reads
2. Grid rendering: the active rows as an ANSI-coloured table, with focus,
   range selection, inline editor and schedule ghost values highlighted
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable

import simple_chalk as chalk  # type: ignore[import-untyped]

from grid_parser import EMPTY_MARKER
from row_catalog import RowDef

if TYPE_CHECKING:
    from grid_view import GridView

logger = logging.getLogger(__name__)


# =============================================================================
# Cell Formatting
# =============================================================================


class CellKind(Enum):
    """How a cell's value came about, for styling."""

    VALUE = "value"  # Raw user value (or an empty cell)
    SCHEDULE_FILL = "schedule_fill"  # Empty cell showing a scheduled rule's value
    USER_OVERRIDE = "user_override"  # User value where a rule would also apply
    OVERRIDE_SET = "override_set"  # Override field holding a value
    COMPUTED = "computed"  # Read-only computed result


CELL_MARKERS = {
    CellKind.VALUE: "",
    CellKind.SCHEDULE_FILL: "⚡",
    CellKind.USER_OVERRIDE: "✎",
    CellKind.OVERRIDE_SET: "↗",
    CellKind.COMPUTED: "",
}


@dataclass(frozen=True)
class CellDisplay:
    """Rendered text of one cell plus what kind of value it shows."""

    text: str
    kind: CellKind
    value: float | None = None

    @property
    def marker(self) -> str:
        return CELL_MARKERS[self.kind]


def format_value(value: float | None, percentage: bool = False) -> str:
    """
    Compact display text for a cell value.

    Percentages show whole percent points, values of 1000 or more show in
    thousands ("$150K"), zero and absent values show the empty marker.
    """
    if value is None:
        return EMPTY_MARKER
    if percentage:
        return f"{value * 100:.0f}%"
    if abs(value) >= 1000:
        return f"${value / 1000:.0f}K"
    if value == 0:
        return EMPTY_MARKER
    return f"${round(value):,}"


def describe_cell(
    row: RowDef,
    raw: float | None,
    scheduled: float | None = None,
    computed: float | None = None,
) -> CellDisplay:
    """
    Decide what a cell shows.

    Args:
        row: Catalog row of the cell
        raw: Raw value from the projection (None for computed rows and absent overrides)
        scheduled: Overlay value for this cell, if any
        computed: Computed value, for computed rows

    Returns:
        CellDisplay with formatted text and kind
    """
    if not row.editable:
        return CellDisplay(_format_computed(row, computed), CellKind.COMPUTED, computed)

    has_schedule = scheduled is not None and scheduled != 0
    if has_schedule and not raw:
        return CellDisplay(format_value(scheduled, row.percentage), CellKind.SCHEDULE_FILL, scheduled)
    if has_schedule:
        return CellDisplay(format_value(raw, row.percentage), CellKind.USER_OVERRIDE, raw)
    if row.override and raw is not None:
        return CellDisplay(format_value(raw, row.percentage), CellKind.OVERRIDE_SET, raw)
    return CellDisplay(format_value(raw, row.percentage), CellKind.VALUE, raw)


def _format_computed(row: RowDef, value: float | None) -> str:
    if row.display == "count":
        return EMPTY_MARKER if value is None else str(round(value))
    if row.display == "rrif_status":
        return "RRIF" if value else "RRSP"
    return format_value(value, row.percentage)


def format_edit_seed(value: float | None, percentage: bool = False) -> str:
    """Editor text for editing an existing value (percentage rows in percent points)."""
    if value is None:
        return "0"
    if percentage:
        return f"{value * 100:.0f}"
    return str(round(value))


# =============================================================================
# Grid Rendering
# =============================================================================


KIND_COLORS: dict[CellKind, Callable[[str], str]] = {
    CellKind.VALUE: chalk.white,
    CellKind.SCHEDULE_FILL: chalk.cyan,
    CellKind.USER_OVERRIDE: chalk.yellowBright,
    CellKind.OVERRIDE_SET: chalk.magenta,
    CellKind.COMPUTED: chalk.green,
}


def _fit(text: str, width: int, align_right: bool = True) -> str:
    if len(text) > width:
        return text[: width - 1] + "…"
    return text.rjust(width) if align_right else text.ljust(width)


def render_grid(view: GridView, cell_width: int = 9, label_width: int = 22) -> str:
    """
    Render the grid view as ANSI text.

    Closed groups show only their header. Open groups show the rows that fall
    inside the view's viewport.

    Args:
        view: The grid view to render
        cell_width: Characters per year column
        label_width: Characters for the row label column

    Returns:
        Rendered string (one line per header/row)
    """
    nav = view.navigation
    years = view.projection.years
    lines: list[str] = []

    header = " " * label_width + "".join(_fit(str(y.year), cell_width) for y in years)
    lines.append(chalk.yellow(header))

    window = view.viewport.window(len(nav.rows))
    position = 0
    for group in view.layout.ordered_groups():
        is_open = view.layout.is_open(group.title)
        lines.append(chalk.blue(("▼ " if is_open else "▶ ") + group.title))
        if not is_open:
            continue
        for row in group.rows:
            row_position = position
            position += 1
            if row_position not in window:
                continue
            parts = [_fit("  " + row.label, label_width, align_right=False)]
            for col in range(len(years)):
                parts.append(_render_cell(view, row, col, cell_width))
            lines.append("".join(parts))

    logger.debug("render_grid: %d lines, window=%s", len(lines), window)
    return "\n".join(lines)


def _render_cell(view: GridView, row: RowDef, col: int, cell_width: int) -> str:
    nav = view.navigation
    focused = nav.is_focused(row.row_id, col)

    if focused and nav.editing:
        return chalk.bgYellow.black(_fit(view.editor_text + "▏", cell_width))

    display = view.cell_display(row.row_id, col)
    content = _fit(display.marker + display.text, cell_width)
    if focused:
        return chalk.bgWhite.black(content)
    if nav.is_selected(row.row_id, col):
        return chalk.bgBlue.white(content)
    return KIND_COLORS[display.kind](content)
