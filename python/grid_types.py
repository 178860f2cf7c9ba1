"""
Shared type definitions for the yeargrid system.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Direction(Enum):
    """Cardinal direction for focus movement."""

    N = "N"  # Up (decreasing row)
    S = "S"  # Down (increasing row)
    E = "E"  # Right (increasing col)
    W = "W"  # Left (decreasing col)

    @property
    def delta(self) -> tuple[int, int]:
        """(row_delta, col_delta) for one step in this direction."""
        return _DELTAS[self]


_DELTAS = {
    Direction.N: (-1, 0),
    Direction.S: (1, 0),
    Direction.E: (0, 1),
    Direction.W: (0, -1),
}


class CommitDirection(Enum):
    """Where focus goes after an inline edit is committed."""

    DOWN = "down"
    RIGHT = "right"


class NavigationMode(Enum):
    """Observable state of a grid navigation engine."""

    IDLE = "idle-no-focus"
    FOCUSED = "focused"
    RANGE = "focused+range"
    EDITING = "editing"


# =============================================================================
# Grid Addressing
# =============================================================================


@dataclass(frozen=True)
class CellCoordinate:
    """A cell address: a catalog row id crossed with a zero-based year index."""

    row_id: str
    col: int


@dataclass(frozen=True)
class NavigableRow:
    """The part of a catalog row that navigation cares about."""

    row_id: str
    editable: bool
    group: str


@dataclass(frozen=True)
class SelectionState:
    """The two corners of the active rectangle. Either may be None."""

    anchor: CellCoordinate | None = None
    focus: CellCoordinate | None = None


@dataclass(frozen=True)
class EditState:
    """Inline editor state; initial_keystroke seeds a replace-value edit."""

    editing: bool = False
    initial_keystroke: str | None = None


# =============================================================================
# Input Events
# =============================================================================


@dataclass
class KeyEvent:
    """A key press delivered to the grid.

    key uses browser-style names for special keys ("ArrowUp", "Tab", "Enter",
    "Escape", "Delete", "Backspace") and the character itself otherwise.
    """

    key: str
    shift: bool = False
    ctrl: bool = False
    meta: bool = False
    alt: bool = False
    default_prevented: bool = field(default=False, compare=False)

    @property
    def command(self) -> bool:
        """Ctrl on most platforms, Cmd on macOS."""
        return self.ctrl or self.meta

    def prevent_default(self) -> None:
        self.default_prevented = True


@dataclass
class PointerEvent:
    """A mouse event over a cell (or over the window, for mouse-up)."""

    shift: bool = False
    default_prevented: bool = field(default=False, compare=False)

    def prevent_default(self) -> None:
        self.default_prevented = True


# =============================================================================
# Scheduling Rules
# =============================================================================


class AmountType(Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"


class GrowthType(Enum):
    FIXED = "fixed"  # Grow by the rule's own growth_rate
    INFLATION = "inflation"  # Grow by the projection's inflation rate


class ConditionOperator(Enum):
    GT = ">"
    LT = "<"
    GE = ">="
    LE = "<="
    EQ = "=="
    BETWEEN = "between"


@dataclass(frozen=True)
class ScheduleCondition:
    """A gate on a computed quantity, e.g. grossIncome > 100000."""

    field: str
    operator: ConditionOperator
    value: float
    value2: float | None = None  # Upper bound for BETWEEN


@dataclass(frozen=True)
class ScheduledRule:
    """A rule supplying a field's value over a year range.

    amount is a dollar figure for FIXED rules and a decimal fraction for
    PERCENTAGE rules (0.18 = 18% of amount_reference).
    """

    field: str
    start_year: int
    amount: float = 0.0
    end_year: int | None = None  # None = indefinite
    amount_type: AmountType = AmountType.FIXED
    amount_reference: str | None = None
    amount_min: float | None = None
    amount_max: float | None = None
    amount_max_ref: str | None = None  # Cap from a computed quantity
    conditions: tuple[ScheduleCondition, ...] = ()
    growth_rate: float | None = None
    growth_type: GrowthType = GrowthType.FIXED
    id: str = ""
    label: str = ""

    def covers(self, year: int) -> bool:
        if year < self.start_year:
            return False
        return self.end_year is None or year <= self.end_year

    @property
    def needs_computed(self) -> bool:
        """True if evaluating this rule requires computed results for the year."""
        return (
            self.amount_type is AmountType.PERCENTAGE
            or bool(self.conditions)
            or self.amount_max_ref is not None
        )


# Per year-index, per field: the advisory value from the first applicable rule
OverlayMap = dict[int, dict[str, float]]
