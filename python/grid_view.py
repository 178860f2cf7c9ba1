"""
Grid view: wires navigation, undo/redo and the schedule overlay to a projection.

GridView owns the editable Projection and is the only place it changes. Every
user action (an edit, a multi-cell commit, a paste, a delete, a fill, an undo)
becomes exactly one replacement of the projection, made through the
undo/redo controller so history records it as one step. GridView also plays
the view-host role for GridNavigation: it formats cell text, keeps the focused
row inside the viewport, and owns the inline editor's text buffer.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, Sequence

from ascii_render import CellDisplay, CellKind, describe_cell, format_edit_seed
from grid_navigation import (
    Clipboard,
    GridCallbacks,
    GridNavigation,
    MemoryClipboard,
    WindowEvents,
)
from grid_parser import parse_block, parse_cell_value
from grid_types import CellCoordinate, CommitDirection, KeyEvent, OverlayMap, PointerEvent
from row_catalog import (
    ROWS_BY_ID,
    Projection,
    RowDef,
    RowLayout,
    YearData,
    apply_cell_writes,
    clear_value,
    read_value,
    write_value,
)
from schedule_overlay import ComputedYear, lookup_computed, resolve_schedule_overlay
from undo_redo import GridConfig, UndoRedoController

logger = logging.getLogger(__name__)

CellEdit = Callable[[YearData, str], YearData]


class Viewport:
    """A window of visible row positions that follows the focused row."""

    def __init__(self, height: int = 20) -> None:
        self.height = max(1, height)
        self.top = 0

    def scroll_to(self, position: int) -> None:
        if position < self.top:
            self.top = position
        elif position >= self.top + self.height:
            self.top = position - self.height + 1

    def window(self, total: int) -> range:
        self.top = max(0, min(self.top, max(0, total - self.height)))
        return range(self.top, min(total, self.top + self.height))


class GridView:
    """One mounted grid over one projection."""

    def __init__(
        self,
        projection: Projection,
        layout: RowLayout | None = None,
        computed_rows: Sequence[ComputedYear | None] | None = None,
        clipboard: Clipboard | None = None,
        config: GridConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        viewport_height: int = 20,
        window: WindowEvents | None = None,
    ) -> None:
        self.projection = projection
        self.layout = layout or RowLayout()
        self.computed_rows = computed_rows
        self.viewport = Viewport(viewport_height)
        self.editor_text = ""
        self.container_focused = True
        # Number of projection replacements; one per user action
        self.update_count = 0

        self.history: UndoRedoController[Projection] = UndoRedoController(
            lambda: self.projection, self._apply_update, config, clock
        )
        self.navigation = GridNavigation(
            self.layout.active_rows(),
            projection.year_count,
            host=self,
            clipboard=clipboard if clipboard is not None else MemoryClipboard(),
            callbacks=GridCallbacks(
                on_delete_cells=self.delete_cells,
                on_multi_cell_commit=self.commit_to_cells,
                on_undo=self.undo,
                on_redo=self.redo,
                on_paste=self.paste_text,
                on_fill_right=self.fill_right,
            ),
        )
        self._overlay: OverlayMap = {}
        self._overlay_inputs: tuple[object, ...] | None = None
        if window is not None:
            self.navigation.mount(window)

    def close(self) -> None:
        """Unmount: drop window subscriptions. History is discarded with the view."""
        self.navigation.unmount()

    # -------------------------------------------------------------------------
    # Document updates
    # -------------------------------------------------------------------------

    def _apply_update(self, updater: Callable[[Projection], Projection]) -> None:
        self.projection = updater(self.projection)
        self.update_count += 1
        if self.projection.year_count != self.navigation.col_count:
            self.navigation.set_col_count(self.projection.year_count)

    def _write_cells(self, writes: dict[tuple[int, str], CellEdit], action: str) -> None:
        """Apply a batch of cell edits as one tracked update."""
        if not writes:
            return
        logger.debug("%s: writing %d cells", action, len(writes))
        self.history.tracked_update(
            lambda p: Projection(apply_cell_writes(p.years, writes), p.scheduled_rules, p.inflation_rate)
        )

    @staticmethod
    def _setter(value: float) -> CellEdit:
        return lambda year, row_id: write_value(year, row_id, value)

    def _writable(self, cell: CellCoordinate) -> bool:
        row = ROWS_BY_ID.get(cell.row_id)
        return row is not None and row.editable and 0 <= cell.col < self.projection.year_count

    def set_cell(self, row_id: str, col: int, value: float) -> None:
        """Single-cell write (one user action)."""
        if self._writable(CellCoordinate(row_id, col)):
            self._write_cells({(col, row_id): self._setter(value)}, "set_cell")

    def commit_to_cells(self, cells: Iterable[CellCoordinate], value: float) -> None:
        """Fan one value out to every editable cell, as one update."""
        writes = {(c.col, c.row_id): self._setter(value) for c in cells if self._writable(c)}
        self._write_cells(writes, "commit_to_cells")

    def delete_cells(self, cells: Iterable[CellCoordinate]) -> None:
        """Clear cells: zero for ordinary fields, remove overrides. Non-editable cells are skipped."""
        writes: dict[tuple[int, str], CellEdit] = {
            (c.col, c.row_id): clear_value for c in cells if self._writable(c)
        }
        self._write_cells(writes, "delete_cells")

    def fill_right(self, coord: CellCoordinate) -> None:
        """Copy a cell's value into every later year of its row."""
        if not self._writable(coord):
            return
        value = read_value(self.projection.years[coord.col], coord.row_id)
        edit: CellEdit = clear_value if value is None else self._setter(value)
        writes = {(col, coord.row_id): edit for col in range(coord.col + 1, self.projection.year_count)}
        self._write_cells(writes, "fill_right")

    def fill_all(self, row_id: str, text: str) -> bool:
        """
        Write one typed value into every year of a row.

        The text is parsed like a typed cell (percentage rows take percent
        points). The fill is always its own history entry, even right after
        another edit.

        Returns:
            False if the row is not editable or the text does not parse
        """
        row = ROWS_BY_ID.get(row_id)
        if row is None or not row.editable:
            return False
        value = parse_cell_value(text, row.percentage)
        if value is None:
            logger.debug("fill_all: unparseable text %r for %s", text, row_id)
            return False
        writes = {(col, row_id): self._setter(value) for col in range(self.projection.year_count)}
        with self.history.step():
            self._write_cells(writes, "fill_all")
        return True

    def revert_to_schedule(self, row_id: str, col: int) -> None:
        """Drop a user value so the scheduled overlay shows again."""
        if self._writable(CellCoordinate(row_id, col)):
            self._write_cells({(col, row_id): clear_value}, "revert_to_schedule")

    def paste_text(self, text: str) -> None:
        """
        Paste a tab/newline block anchored at the focused cell.

        Rows follow the active row order from the focused row, columns follow
        years from the focused column. The block is cut off at the last row and
        last year. Cells on non-editable rows and cells that do not parse are
        skipped; everything else lands in one update.
        """
        focus = self.navigation.focus
        if focus is None:
            return
        start_row = self.navigation.row_position(focus.row_id)
        if start_row is None:
            return
        rows = self.navigation.rows
        writes: dict[tuple[int, str], CellEdit] = {}
        skipped = 0
        for r_offset, cells in enumerate(parse_block(text)):
            r = start_row + r_offset
            if r >= len(rows):
                break
            row = ROWS_BY_ID.get(rows[r].row_id)
            if row is None or not row.editable:
                continue
            for c_offset, cell_text in enumerate(cells):
                col = focus.col + c_offset
                if col >= self.projection.year_count:
                    break
                value = parse_cell_value(cell_text, row.percentage)
                if value is None:
                    skipped += 1
                    continue
                writes[(col, row.row_id)] = self._setter(value)
        if skipped:
            logger.debug("paste_text: skipped %d unparseable cells", skipped)
        self._write_cells(writes, "paste_text")

    def undo(self) -> None:
        self.history.undo()

    def redo(self) -> None:
        self.history.redo()

    # -------------------------------------------------------------------------
    # Overlay and display
    # -------------------------------------------------------------------------

    def set_computed_rows(self, computed_rows: Sequence[ComputedYear | None] | None) -> None:
        self.computed_rows = computed_rows

    @property
    def overlay(self) -> OverlayMap:
        """Schedule overlay, recomputed only when its inputs change."""
        p = self.projection
        inputs = (p.scheduled_rules, p.years, p.inflation_rate, self.computed_rows)
        if self._overlay_inputs is None or any(a is not b for a, b in zip(inputs, self._overlay_inputs)):
            self._overlay = resolve_schedule_overlay(p.scheduled_rules, p.years, p.inflation_rate, self.computed_rows)
            self._overlay_inputs = inputs
        return self._overlay

    def _computed_value(self, row: RowDef, col: int) -> float | None:
        if row.computed_path is None or self.computed_rows is None or col >= len(self.computed_rows):
            return None
        computed = self.computed_rows[col]
        return None if computed is None else lookup_computed(computed, row.computed_path)

    def cell_display(self, row_id: str, col: int) -> CellDisplay:
        row = ROWS_BY_ID[row_id]
        if not row.editable:
            return describe_cell(row, None, computed=self._computed_value(row, col))
        raw = read_value(self.projection.years[col], row_id)
        scheduled = self.overlay.get(col, {}).get(row_id)
        return describe_cell(row, raw, scheduled)

    def edit_seed_text(self, coord: CellCoordinate) -> str:
        """Editor text when editing an existing value; shows the ghost value if filling."""
        row = ROWS_BY_ID[coord.row_id]
        display = self.cell_display(coord.row_id, coord.col)
        if display.kind is CellKind.SCHEDULE_FILL:
            return format_edit_seed(display.value, row.percentage)
        return format_edit_seed(read_value(self.projection.years[coord.col], coord.row_id), row.percentage)

    # -------------------------------------------------------------------------
    # GridHost
    # -------------------------------------------------------------------------

    def cell_text(self, row_id: str, col: int) -> str:
        if row_id not in ROWS_BY_ID or not 0 <= col < self.projection.year_count:
            return ""
        return self.cell_display(row_id, col).text

    def scroll_into_view(self, coord: CellCoordinate) -> None:
        position = self.navigation.row_position(coord.row_id)
        if position is not None:
            self.viewport.scroll_to(position)

    def focus_container(self) -> None:
        self.container_focused = True

    # -------------------------------------------------------------------------
    # Row groups
    # -------------------------------------------------------------------------

    def _refresh_rows(self) -> None:
        self.navigation.set_rows(self.layout.active_rows())
        if not self.navigation.editing:
            self.editor_text = ""

    def toggle_group(self, title: str) -> bool:
        is_open = self.layout.toggle_group(title)
        self._refresh_rows()
        return is_open

    def move_group(self, title: str, delta: int) -> None:
        self.layout.move_group(title, delta)
        self._refresh_rows()

    # -------------------------------------------------------------------------
    # Input
    # -------------------------------------------------------------------------

    def _open_editor_if_started(self, was_editing: bool) -> None:
        nav = self.navigation
        if was_editing or not nav.editing or nav.focus is None:
            return
        self.container_focused = False
        if nav.initial_keystroke is not None:
            self.editor_text = nav.initial_keystroke
        else:
            self.editor_text = self.edit_seed_text(nav.focus)

    def handle_key(self, event: KeyEvent) -> None:
        """Route a key to the inline editor while editing, else to navigation."""
        nav = self.navigation
        if nav.editing:
            self._handle_editor_key(event)
            if not nav.editing:
                self.editor_text = ""
            return
        nav.handle_key_down(event)
        self._open_editor_if_started(was_editing=False)

    def _handle_editor_key(self, event: KeyEvent) -> None:
        if event.key == "Enter":
            event.prevent_default()
            self.commit_editor(CommitDirection.DOWN)
        elif event.key == "Tab":
            event.prevent_default()
            self.commit_editor(CommitDirection.RIGHT)
        elif event.key == "Escape":
            self.navigation.handle_key_down(event)
        elif event.key == "Backspace":
            event.prevent_default()
            self.editor_text = self.editor_text[:-1]
        elif len(event.key) == 1 and event.key.isprintable() and not event.command:
            event.prevent_default()
            self.editor_text += event.key

    def commit_editor(self, direction: CommitDirection) -> None:
        """
        Commit the inline editor's text.

        Text that parses is written to the focused cell, or fanned out to the
        range captured when editing began. Text that does not parse changes
        nothing. Either way focus moves on in the given direction.
        """
        nav = self.navigation
        focus = nav.focus
        if not nav.editing or focus is None:
            return
        row = ROWS_BY_ID[focus.row_id]
        value = parse_cell_value(self.editor_text, row.percentage)
        if value is not None and not nav.edit_snapshot:
            self.set_cell(focus.row_id, focus.col, value)
        nav.commit_edit(direction, value)
        self.editor_text = ""

    def cancel_editor(self) -> None:
        self.navigation.cancel_edit()
        self.editor_text = ""

    def click(self, row_id: str, col: int, shift: bool = False) -> None:
        self.navigation.handle_cell_click(row_id, col, PointerEvent(shift=shift))

    def double_click(self, row_id: str, col: int) -> None:
        self.navigation.handle_cell_double_click(row_id, col, PointerEvent())
        if self.navigation.editing and self.navigation.is_focused(row_id, col):
            self.container_focused = False
            self.editor_text = self.edit_seed_text(CellCoordinate(row_id, col))

    def mouse_down(self, row_id: str, col: int, shift: bool = False) -> None:
        self.navigation.handle_cell_mouse_down(row_id, col, PointerEvent(shift=shift))

    def mouse_enter(self, row_id: str, col: int) -> None:
        self.navigation.handle_cell_mouse_enter(row_id, col)

    def mouse_up(self) -> None:
        self.navigation.handle_mouse_up(PointerEvent())
