"""
Keyboard and mouse navigation over a projection grid.

Rows are the active (visible, ordered) catalog rows and columns are projection
years. A GridNavigation instance owns the focused cell, the selection anchor,
the edit mode, and the selection snapshot taken when editing begins. Document
mutations never happen here: deletions, multi-cell commits, paste, fill and
undo/redo are handed to GridCallbacks so the owner can apply each user action
as one batched update.

The engine assumes a single-threaded event loop. is_dragging in particular is a
plain attribute read and written inside pointer handlers only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, Protocol, Sequence

from grid_types import (
    CellCoordinate,
    CommitDirection,
    Direction,
    EditState,
    KeyEvent,
    NavigableRow,
    NavigationMode,
    PointerEvent,
    SelectionState,
)

logger = logging.getLogger(__name__)

_UNSET = object()

ARROW_KEYS = {
    "ArrowUp": Direction.N,
    "ArrowDown": Direction.S,
    "ArrowLeft": Direction.W,
    "ArrowRight": Direction.E,
}


# =============================================================================
# Collaborators
# =============================================================================


class GridHost(Protocol):
    """The view layer the engine drives. Every cell is addressed by (row_id, col)."""

    def cell_text(self, row_id: str, col: int) -> str: ...

    def scroll_into_view(self, coord: CellCoordinate) -> None: ...

    def focus_container(self) -> None: ...


class ClipboardError(Exception):
    """Raised by clipboards that cannot be read or written right now."""


class Clipboard(Protocol):
    def read_text(self) -> str: ...

    def write_text(self, text: str) -> None: ...


class MemoryClipboard:
    """Process-local clipboard."""

    def __init__(self, text: str = "") -> None:
        self.text = text

    def read_text(self) -> str:
        return self.text

    def write_text(self, text: str) -> None:
        self.text = text


class WindowEvents:
    """Window-scoped event subscriptions (mouse-up anywhere ends a drag)."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[Callable[[PointerEvent], None]]] = {}

    def subscribe(self, name: str, handler: Callable[[PointerEvent], None]) -> None:
        self._handlers.setdefault(name, []).append(handler)

    def unsubscribe(self, name: str, handler: Callable[[PointerEvent], None]) -> None:
        handlers = self._handlers.get(name, [])
        if handler in handlers:
            handlers.remove(handler)

    def dispatch(self, name: str, event: PointerEvent | None = None) -> None:
        event = event or PointerEvent()
        for handler in list(self._handlers.get(name, [])):
            handler(event)

    def listener_count(self, name: str) -> int:
        return len(self._handlers.get(name, []))


@dataclass
class GridCallbacks:
    """Document-side effects requested by the engine. All are optional."""

    on_delete_cells: Callable[[list[CellCoordinate]], None] | None = None
    on_multi_cell_commit: Callable[[frozenset[CellCoordinate], float], None] | None = None
    on_undo: Callable[[], None] | None = None
    on_redo: Callable[[], None] | None = None
    on_paste: Callable[[str], None] | None = None
    on_fill_right: Callable[[CellCoordinate], None] | None = None


# =============================================================================
# Selection Geometry
# =============================================================================


def build_selected_set(
    anchor: CellCoordinate | None,
    focus: CellCoordinate | None,
    rows: Sequence[NavigableRow],
) -> frozenset[CellCoordinate]:
    """
    Cells inside the rectangle spanned by anchor and focus.

    Row bounds are positions in the given (visible, ordered) rows, not catalog
    order. The result is empty when either corner is missing, when either
    corner's row is not visible, or when the corners coincide (a single
    focused cell is not a range).

    Args:
        anchor: Fixed corner of the rectangle
        focus: Moving corner of the rectangle
        rows: Current active rows

    Returns:
        Frozen set of every cell in the inclusive rectangle
    """
    if anchor is None or focus is None or anchor == focus:
        return frozenset()
    index = {row.row_id: i for i, row in enumerate(rows)}
    ai = index.get(anchor.row_id)
    fi = index.get(focus.row_id)
    if ai is None or fi is None:
        return frozenset()
    r_min, r_max = min(ai, fi), max(ai, fi)
    c_min, c_max = min(anchor.col, focus.col), max(anchor.col, focus.col)
    return frozenset(
        CellCoordinate(rows[r].row_id, c)
        for r in range(r_min, r_max + 1)
        for c in range(c_min, c_max + 1)
    )


# =============================================================================
# Engine
# =============================================================================


class GridNavigation:
    """Focus, range selection and edit-mode state for one rendered grid."""

    def __init__(
        self,
        rows: Sequence[NavigableRow],
        col_count: int,
        host: GridHost | None = None,
        clipboard: Clipboard | None = None,
        callbacks: GridCallbacks | None = None,
    ) -> None:
        self._rows: list[NavigableRow] = list(rows)
        self._row_index = {row.row_id: i for i, row in enumerate(self._rows)}
        self._col_count = col_count
        self.host = host
        self.clipboard = clipboard
        self.callbacks = callbacks or GridCallbacks()

        self._focus: CellCoordinate | None = None
        self._anchor: CellCoordinate | None = None
        self._editing = False
        self._initial_keystroke: str | None = None
        self._edit_snapshot: frozenset[CellCoordinate] | None = None

        # Bumped on every change a view should re-render for
        self.revision = 0
        # Not render state: flipped inside pointer handlers only
        self.is_dragging = False
        self._window: WindowEvents | None = None

    # -------------------------------------------------------------------------
    # Observable state
    # -------------------------------------------------------------------------

    @property
    def rows(self) -> list[NavigableRow]:
        return list(self._rows)

    @property
    def col_count(self) -> int:
        return self._col_count

    @property
    def focus(self) -> CellCoordinate | None:
        return self._focus

    @property
    def anchor(self) -> CellCoordinate | None:
        return self._anchor

    @property
    def selection(self) -> SelectionState:
        return SelectionState(self._anchor, self._focus)

    @property
    def editing(self) -> bool:
        return self._editing

    @property
    def initial_keystroke(self) -> str | None:
        return self._initial_keystroke

    @property
    def edit_state(self) -> EditState:
        return EditState(self._editing, self._initial_keystroke)

    @property
    def edit_snapshot(self) -> frozenset[CellCoordinate] | None:
        return self._edit_snapshot

    @property
    def selected_cells(self) -> frozenset[CellCoordinate]:
        return build_selected_set(self._anchor, self._focus, self._rows)

    @property
    def mode(self) -> NavigationMode:
        if self._focus is None:
            return NavigationMode.IDLE
        if self._editing:
            return NavigationMode.EDITING
        if self.selected_cells:
            return NavigationMode.RANGE
        return NavigationMode.FOCUSED

    def is_focused(self, row_id: str, col: int) -> bool:
        return self._focus == CellCoordinate(row_id, col)

    def is_selected(self, row_id: str, col: int) -> bool:
        return CellCoordinate(row_id, col) in self.selected_cells

    def row_position(self, row_id: str) -> int | None:
        """Index of a row in the active row list, or None if it is not visible."""
        return self._row_index.get(row_id)

    def is_editable(self, row_id: str) -> bool:
        i = self._row_index.get(row_id)
        return i is not None and self._rows[i].editable

    # -------------------------------------------------------------------------
    # State plumbing
    # -------------------------------------------------------------------------

    def _set(
        self,
        focus: object = _UNSET,
        anchor: object = _UNSET,
        editing: object = _UNSET,
        initial_keystroke: object = _UNSET,
    ) -> None:
        """Apply several state changes as one revision."""
        changed = False
        focus_changed = False
        if focus is not _UNSET and focus != self._focus:
            self._focus = focus  # type: ignore[assignment]
            changed = focus_changed = True
        if anchor is not _UNSET and anchor != self._anchor:
            self._anchor = anchor  # type: ignore[assignment]
            changed = True
        if editing is not _UNSET and editing != self._editing:
            self._editing = editing  # type: ignore[assignment]
            changed = True
        if initial_keystroke is not _UNSET and initial_keystroke != self._initial_keystroke:
            self._initial_keystroke = initial_keystroke  # type: ignore[assignment]
            changed = True
        if changed:
            self.revision += 1
        if focus_changed and self._focus is not None and self.host is not None:
            self.host.scroll_into_view(self._focus)

    def _clear_all(self) -> None:
        self._edit_snapshot = None
        self._set(focus=None, anchor=None, editing=False, initial_keystroke=None)

    def set_rows(self, rows: Sequence[NavigableRow]) -> None:
        """Replace the active row list (after a group toggle or reorder).

        If the focused row is no longer visible, focus, anchor, edit mode and
        the edit seed are cleared together.
        """
        self._rows = list(rows)
        self._row_index = {row.row_id: i for i, row in enumerate(self._rows)}
        self.revision += 1
        if self._focus is not None and self._focus.row_id not in self._row_index:
            logger.debug("set_rows: focused row %s hidden, clearing focus", self._focus.row_id)
            self._clear_all()

    def set_col_count(self, col_count: int) -> None:
        self._col_count = col_count
        self.revision += 1
        if self._focus is not None and self._focus.col >= col_count:
            self._clear_all()

    # -------------------------------------------------------------------------
    # Window lifetime
    # -------------------------------------------------------------------------

    def mount(self, window: WindowEvents) -> None:
        """Subscribe to window mouse-up so a drag always ends."""
        if self._window is not None:
            self.unmount()
        self._window = window
        window.subscribe("mouseup", self.handle_mouse_up)

    def unmount(self) -> None:
        if self._window is not None:
            self._window.unsubscribe("mouseup", self.handle_mouse_up)
            self._window = None
        self.is_dragging = False

    # -------------------------------------------------------------------------
    # Movement
    # -------------------------------------------------------------------------

    def move_focus(self, row_delta: int, col_delta: int, extend: bool = False) -> None:
        """
        Move focus by a row/column delta, clamped to the grid (no wraparound).

        With no focus, focus lands on the first visible row, column 0. When
        extend is True the anchor is seeded from the previous focus if unset;
        otherwise the anchor is cleared.
        """
        prev = self._focus
        if prev is None:
            new_cell = CellCoordinate(self._rows[0].row_id, 0) if self._rows and self._col_count > 0 else None
            if extend and new_cell is not None:
                self._set(focus=new_cell, anchor=self._anchor or new_cell)
            elif not extend:
                self._set(focus=new_cell, anchor=None)
            else:
                self._set(focus=new_cell)
            return

        ri = self._row_index.get(prev.row_id)
        if ri is None:
            return
        new_ri = max(0, min(len(self._rows) - 1, ri + row_delta))
        new_col = max(0, min(self._col_count - 1, prev.col + col_delta))
        new_cell = CellCoordinate(self._rows[new_ri].row_id, new_col)
        if extend:
            self._set(focus=new_cell, anchor=self._anchor or prev)
        else:
            self._set(focus=new_cell, anchor=None)

    def _step_wrapping(self, forward: bool) -> None:
        """Tab movement: one column, wrapping across row boundaries."""
        fc = self._focus
        if fc is None:
            return
        ri = self._row_index.get(fc.row_id)
        if ri is None:
            return
        new_cell = fc
        if forward:
            if fc.col < self._col_count - 1:
                new_cell = CellCoordinate(fc.row_id, fc.col + 1)
            elif ri < len(self._rows) - 1:
                new_cell = CellCoordinate(self._rows[ri + 1].row_id, 0)
        else:
            if fc.col > 0:
                new_cell = CellCoordinate(fc.row_id, fc.col - 1)
            elif ri > 0:
                new_cell = CellCoordinate(self._rows[ri - 1].row_id, self._col_count - 1)
        self._set(focus=new_cell, anchor=None)

    def select_all(self) -> None:
        if not self._rows or self._col_count <= 0:
            return
        self._set(
            anchor=CellCoordinate(self._rows[0].row_id, 0),
            focus=CellCoordinate(self._rows[-1].row_id, self._col_count - 1),
        )

    def clear(self) -> None:
        """Escape: drop focus, selection and any edit in progress."""
        was_editing = self._editing
        self._clear_all()
        self.is_dragging = False
        if was_editing and self.host is not None:
            self.host.focus_container()

    # -------------------------------------------------------------------------
    # Editing
    # -------------------------------------------------------------------------

    def _begin_editing(self, seed: str | None) -> None:
        selected = self.selected_cells
        self._edit_snapshot = selected if selected else None
        self._set(editing=True, initial_keystroke=seed)

    def commit_edit(self, direction: CommitDirection, value: float | None = None) -> None:
        """
        Leave edit mode after the inline editor accepted its text.

        If editing began over a range and a value was parsed, the value is
        handed to on_multi_cell_commit once for the whole snapshot. Focus then
        moves down one row, or right one column wrapping to the next row.

        Args:
            direction: Where focus goes next
            value: Parsed editor value, or None if the text did not parse
        """
        if not self._editing:
            return
        snapshot = self._edit_snapshot
        self._edit_snapshot = None
        if snapshot and value is not None and self.callbacks.on_multi_cell_commit is not None:
            self.callbacks.on_multi_cell_commit(snapshot, value)

        self._set(editing=False, initial_keystroke=None)
        if direction is CommitDirection.DOWN:
            self.move_focus(1, 0)
        else:
            self._step_wrapping(forward=True)
        if self.host is not None:
            self.host.focus_container()

    def cancel_edit(self) -> None:
        self._edit_snapshot = None
        self._set(editing=False, initial_keystroke=None)
        if self.host is not None:
            self.host.focus_container()

    # -------------------------------------------------------------------------
    # Clipboard and deletion
    # -------------------------------------------------------------------------

    def target_cells(self) -> list[CellCoordinate]:
        """Editable cells addressed by a delete/cut: the range, else the focused cell."""
        if self._focus is None:
            return []
        selected = self.selected_cells
        candidates: Iterable[CellCoordinate] = self._row_major(selected) if selected else [self._focus]
        return [cell for cell in candidates if self.is_editable(cell.row_id)]

    def _row_major(self, cells: Iterable[CellCoordinate]) -> list[CellCoordinate]:
        return sorted(cells, key=lambda c: (self._row_index.get(c.row_id, -1), c.col))

    def copy_text(self) -> str | None:
        """Tab/newline text of the range (or focused cell) as currently rendered."""
        fc = self._focus
        if fc is None or self.host is None:
            return None
        corner = self._anchor if self._anchor is not None and self._anchor.row_id in self._row_index else fc
        fi = self._row_index.get(fc.row_id)
        ai = self._row_index.get(corner.row_id)
        if fi is None or ai is None:
            return None
        lines = []
        for r in range(min(ai, fi), max(ai, fi) + 1):
            row_id = self._rows[r].row_id
            cells = [
                self.host.cell_text(row_id, c).strip()
                for c in range(min(corner.col, fc.col), max(corner.col, fc.col) + 1)
            ]
            lines.append("\t".join(cells))
        return "\n".join(lines)

    def copy_selection(self) -> bool:
        """Write the copy text to the clipboard. Returns False if nothing was written."""
        text = self.copy_text()
        if text is None or self.clipboard is None:
            return False
        try:
            self.clipboard.write_text(text)
        except (ClipboardError, OSError) as exc:
            logger.debug("copy_selection: clipboard write failed: %s", exc)
            return False
        return True

    def delete_selection(self) -> None:
        cells = self.target_cells()
        if cells and self.callbacks.on_delete_cells is not None:
            self.callbacks.on_delete_cells(cells)

    def paste(self) -> None:
        if self._focus is None or self.clipboard is None or self.callbacks.on_paste is None:
            return
        try:
            text = self.clipboard.read_text()
        except (ClipboardError, OSError) as exc:
            logger.debug("paste: clipboard read failed: %s", exc)
            return
        self.callbacks.on_paste(text)

    # -------------------------------------------------------------------------
    # Keyboard
    # -------------------------------------------------------------------------

    def handle_key_down(self, event: KeyEvent) -> None:
        """Dispatch a key press on the grid container."""
        if self._editing:
            # The inline editor owns every key except a total Escape
            if event.key == "Escape":
                event.prevent_default()
                self.clear()
            return

        if event.command and self._handle_command_key(event):
            return

        key = event.key
        if key in ARROW_KEYS:
            event.prevent_default()
            row_delta, col_delta = ARROW_KEYS[key].delta
            self.move_focus(row_delta, col_delta, event.shift)
        elif key == "Tab":
            event.prevent_default()
            self._step_wrapping(forward=not event.shift)
        elif key == "Enter":
            event.prevent_default()
            if self._focus is not None and self.is_editable(self._focus.row_id):
                self._begin_editing(None)
        elif key == "Escape":
            event.prevent_default()
            self.clear()
        elif key in ("Delete", "Backspace"):
            event.prevent_default()
            self.delete_selection()
        elif len(key) == 1 and key.isprintable() and not event.command and not event.alt:
            # Type-to-edit: the keystroke replaces the cell's value
            if self._focus is not None and self.is_editable(self._focus.row_id):
                event.prevent_default()
                self._begin_editing(key)

    def _handle_command_key(self, event: KeyEvent) -> bool:
        """Ctrl/Cmd shortcuts. Returns True if the key was consumed."""
        key = event.key.lower()
        if key == "z":
            event.prevent_default()
            handler = self.callbacks.on_redo if event.shift else self.callbacks.on_undo
            if handler is not None:
                handler()
        elif key == "y":
            event.prevent_default()
            if self.callbacks.on_redo is not None:
                self.callbacks.on_redo()
        elif key == "c":
            event.prevent_default()
            self.copy_selection()
        elif key == "x":
            event.prevent_default()
            if self._focus is not None:
                self.copy_selection()
                self.delete_selection()
        elif key == "v":
            event.prevent_default()
            self.paste()
        elif key == "a":
            event.prevent_default()
            self.select_all()
        elif key == "r":
            event.prevent_default()
            if (
                self._focus is not None
                and self.is_editable(self._focus.row_id)
                and self.callbacks.on_fill_right is not None
            ):
                self.callbacks.on_fill_right(self._focus)
        else:
            return False
        return True

    # -------------------------------------------------------------------------
    # Mouse
    # -------------------------------------------------------------------------

    def _valid_cell(self, row_id: str, col: int) -> bool:
        return row_id in self._row_index and 0 <= col < self._col_count

    def handle_cell_click(self, row_id: str, col: int, event: PointerEvent | None = None) -> None:
        event = event or PointerEvent()
        if self._editing or not self._valid_cell(row_id, col):
            return
        event.prevent_default()
        cell = CellCoordinate(row_id, col)
        if event.shift:
            self._set(
                anchor=self._anchor or self._focus or cell,
                focus=cell,
                editing=False,
                initial_keystroke=None,
            )
        else:
            self._set(focus=cell, anchor=None, editing=False, initial_keystroke=None)

    def handle_cell_double_click(self, row_id: str, col: int, event: PointerEvent | None = None) -> None:
        """Edit exactly this cell. No multi-cell snapshot is taken."""
        if not self._valid_cell(row_id, col) or not self.is_editable(row_id):
            return
        if event is not None:
            event.prevent_default()
        self._edit_snapshot = None
        self._set(focus=CellCoordinate(row_id, col), anchor=None, editing=True, initial_keystroke=None)

    def handle_cell_mouse_down(self, row_id: str, col: int, event: PointerEvent | None = None) -> None:
        event = event or PointerEvent()
        if self._editing or not self._valid_cell(row_id, col):
            return
        event.prevent_default()
        self.is_dragging = True
        cell = CellCoordinate(row_id, col)
        if event.shift:
            self._set(
                anchor=self._anchor or self._focus or cell,
                focus=cell,
                editing=False,
                initial_keystroke=None,
            )
        else:
            self._set(focus=cell, anchor=cell, editing=False, initial_keystroke=None)

    def handle_cell_mouse_enter(self, row_id: str, col: int) -> None:
        """Extend a drag: focus follows the pointer, the anchor stays put."""
        if not self.is_dragging or not self._valid_cell(row_id, col):
            return
        self._set(focus=CellCoordinate(row_id, col))

    def handle_mouse_up(self, event: PointerEvent | None = None) -> None:
        """End a drag. A drag that never left its start cell is a single-cell selection."""
        if not self.is_dragging:
            return
        self.is_dragging = False
        if self._anchor is not None and self._anchor == self._focus:
            self._set(anchor=None)
