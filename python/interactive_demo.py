"""
Interactive demo for yeargrid.
Display a projection grid and edit it with spreadsheet-style keyboard commands.
"""

import logging
import sys

import readchar
from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.text import Text

from ascii_render import render_grid
from grid_navigation import MemoryClipboard
from grid_types import (
    AmountType,
    ConditionOperator,
    GrowthType,
    KeyEvent,
    ScheduleCondition,
    ScheduledRule,
)
from grid_view import GridView
from row_catalog import Projection, YearData, make_years, read_value

logger = logging.getLogger(__name__)


def _ctrl(letter: str) -> str:
    return chr(ord(letter) - ord("a") + 1)


# Terminal key sequences -> grid key events
KEYMAP: dict[str, KeyEvent] = {
    readchar.key.UP: KeyEvent("ArrowUp"),
    readchar.key.DOWN: KeyEvent("ArrowDown"),
    readchar.key.LEFT: KeyEvent("ArrowLeft"),
    readchar.key.RIGHT: KeyEvent("ArrowRight"),
    "\x1b[1;2A": KeyEvent("ArrowUp", shift=True),
    "\x1b[1;2B": KeyEvent("ArrowDown", shift=True),
    "\x1b[1;2D": KeyEvent("ArrowLeft", shift=True),
    "\x1b[1;2C": KeyEvent("ArrowRight", shift=True),
    readchar.key.TAB: KeyEvent("Tab"),
    "\x1b[Z": KeyEvent("Tab", shift=True),
    readchar.key.ENTER: KeyEvent("Enter"),
    "\n": KeyEvent("Enter"),
    readchar.key.ESC: KeyEvent("Escape"),
    readchar.key.BACKSPACE: KeyEvent("Backspace"),
    readchar.key.DELETE: KeyEvent("Delete"),
    _ctrl("z"): KeyEvent("z", ctrl=True),
    _ctrl("y"): KeyEvent("y", ctrl=True),
    _ctrl("o"): KeyEvent("c", ctrl=True),  # Ctrl+C quits in a terminal
    _ctrl("x"): KeyEvent("x", ctrl=True),
    _ctrl("v"): KeyEvent("v", ctrl=True),
    _ctrl("a"): KeyEvent("a", ctrl=True),
    _ctrl("r"): KeyEvent("r", ctrl=True),
}


def translate_key(key: str) -> KeyEvent | None:
    """Map one readchar key to a fresh KeyEvent (None for unbound control keys)."""
    template = KEYMAP.get(key)
    if template is not None:
        return KeyEvent(template.key, template.shift, template.ctrl, template.meta, template.alt)
    if len(key) == 1 and key.isprintable():
        return KeyEvent(key)
    return None


class InteractiveDemo:
    """Interactive demo for grid editing."""

    def __init__(self, view: GridView) -> None:
        self.view = view
        self.console = Console()
        self.status_message = "Ready"
        # Text typed into the fill-all-years prompt, None when the prompt is closed
        self.fill_text: str | None = None

    def generate_display(self) -> Panel:
        """Generate the current display with grid and status."""
        view = self.view
        nav = view.navigation

        status = Text()
        status.append("Focus: ", style="bold")
        if nav.focus is None:
            status.append("none\n")
        else:
            year = view.projection.years[nav.focus.col].year
            status.append(f"{nav.focus.row_id} {year}")
            if nav.selected_cells:
                status.append(f"  ({len(nav.selected_cells)} cells selected)")
            status.append("\n")
        status.append("Mode: ", style="bold")
        status.append(f"{nav.mode.value}   ")
        status.append("History: ", style="bold")
        status.append(f"{len(view.history.past)} undo / {len(view.history.future)} redo\n\n")

        status.append(Text.from_ansi(render_grid(view)))
        status.append("\n\n")
        status.append("Keys:\n", style="bold cyan")
        status.append("  Arrows / Shift+Arrows - Move / extend selection\n")
        status.append("  Tab / Shift+Tab       - Next / previous cell\n")
        status.append("  Enter or type         - Edit (Enter/Tab commit, Esc cancels)\n")
        status.append("  Del                   - Clear cells\n")
        status.append("  Ctrl+O / X / V        - Copy / cut / paste\n")
        status.append("  Ctrl+A                - Select all\n")
        status.append("  Ctrl+R                - Fill right\n")
        status.append("  Ctrl+F                - Fill every year of the focused row (type value, Enter)\n")
        status.append("  Ctrl+Z / Ctrl+Y       - Undo / redo\n")
        status.append("  Ctrl+T                - Toggle the focused row's group (open all if no focus)\n")
        status.append("  Ctrl+U / Ctrl+D       - Move the focused row's group up / down\n")
        status.append("  Ctrl+Q                - Quit\n\n")

        status.append("─" * 40 + "\n", style="dim")
        status.append("Status: ", style="bold")
        status.append(self.status_message)

        return Panel(status, title="yeargrid", border_style="green", width=130)

    def _focused_group(self) -> str | None:
        focus = self.view.navigation.focus
        if focus is None:
            return None
        position = self.view.navigation.row_position(focus.row_id)
        if position is None:
            return None
        return self.view.navigation.rows[position].group

    def toggle_group(self) -> None:
        group = self._focused_group()
        if group is None:
            for title in self.view.layout.group_order:
                self.view.layout.set_group_open(title, True)
            self.view.navigation.set_rows(self.view.layout.active_rows())
            self.status_message = "Opened all groups"
            return
        is_open = self.view.toggle_group(group)
        self.status_message = f"{group} {'opened' if is_open else 'closed'}"

    def move_group(self, delta: int) -> None:
        group = self._focused_group()
        if group is None:
            self.status_message = "Focus a row to move its group"
            return
        self.view.move_group(group, delta)
        self.status_message = f"Moved {group} {'up' if delta < 0 else 'down'}"

    def open_fill(self) -> None:
        focus = self.view.navigation.focus
        if focus is None or self.view.navigation.editing or not self.view.navigation.is_editable(focus.row_id):
            self.status_message = "Focus an editable row to fill all years"
            return
        self.fill_text = ""
        self.status_message = f"Fill all years of {focus.row_id}: "

    def handle_fill(self, key: str) -> None:
        """Keys typed into the fill-all-years prompt."""
        focus = self.view.navigation.focus
        if key in (readchar.key.ENTER, "\n"):
            text, self.fill_text = self.fill_text or "", None
            if focus is not None and self.view.fill_all(focus.row_id, text):
                self.status_message = f"Filled {focus.row_id} with {text}"
            else:
                self.status_message = f"Could not fill with {text!r}"
            return
        if key == readchar.key.ESC:
            self.fill_text = None
            self.status_message = "Fill cancelled"
            return
        if key == readchar.key.BACKSPACE:
            self.fill_text = (self.fill_text or "")[:-1]
        elif len(key) == 1 and key.isprintable():
            self.fill_text = (self.fill_text or "") + key
        row = focus.row_id if focus is not None else "?"
        self.status_message = f"Fill all years of {row}: {self.fill_text}"

    def handle(self, key: str) -> None:
        updates_before = self.view.update_count
        self.dispatch(key)
        if self.view.update_count != updates_before:
            # Ghost values of percentage and conditional rules follow the edited inputs
            self.view.set_computed_rows(sample_computed(self.view.projection))

    def dispatch(self, key: str) -> None:
        if self.fill_text is not None:
            self.handle_fill(key)
            return
        if key == _ctrl("t"):
            self.toggle_group()
            return
        if key in (_ctrl("u"), _ctrl("d")):
            self.move_group(-1 if key == _ctrl("u") else 1)
            return
        if key == _ctrl("f"):
            self.open_fill()
            return

        event = translate_key(key)
        if event is None:
            self.status_message = f"Unknown key: {repr(key)}"
            return
        updates_before = self.view.update_count
        self.view.handle_key(event)
        if self.view.update_count != updates_before:
            self.status_message = f"Updated ({event.key})"
        elif not event.default_prevented:
            self.status_message = f"Ignored key: {repr(key)}"
        else:
            self.status_message = "Ready"

    def run(self) -> None:
        """Run the interactive demo."""
        with Live(self.generate_display(), console=self.console, refresh_per_second=4) as live:
            try:
                while True:
                    live.update(self.generate_display())

                    key = readchar.readkey()
                    if key == _ctrl("q"):
                        self.status_message = "Quitting..."
                        live.update(self.generate_display())
                        break
                    self.handle(key)

            except KeyboardInterrupt:
                self.status_message = "Interrupted by user"
                live.update(self.generate_display())


# =============================================================================
# Sample Projections
# =============================================================================


def sample_computed(projection: Projection) -> list[dict[str, dict[str, float]]]:
    """Stand-in for the computation engine: gross income and a naive net worth."""
    computed = []
    net_worth = 0.0
    income_fields = ("employmentIncome", "selfEmploymentIncome", "interestIncome", "otherTaxableIncome")
    for year in projection.years:
        gross = sum(read_value(year, f) or 0.0 for f in income_fields)
        net_worth += year.rrsp_contribution + year.tfsa_contribution + year.savings_deposit
        computed.append(
            {
                "waterfall": {"grossIncome": gross, "afterTaxIncome": gross * 0.7, "netCashFlow": gross * 0.1},
                "accounts": {"netWorth": net_worth},
            }
        )
    return computed


def _salary_years(start_year: int, count: int, salary: float) -> tuple[YearData, ...]:
    years = []
    for i, year in enumerate(make_years(start_year, count)):
        years.append(YearData(year.year, employment_income=round(salary * 1.03**i)))
    return tuple(years)


LAYOUTS = dict(
    rrsp=Projection(
        _salary_years(2025, 8, 150000),
        scheduled_rules=(
            ScheduledRule(
                "rrspContribution",
                2025,
                amount=0.18,
                amount_type=AmountType.PERCENTAGE,
                amount_reference="grossIncome",
                amount_max=31000,
                id="rrsp-18",
                label="18% of income to RRSP",
            ),
            ScheduledRule(
                "tfsaContribution",
                2025,
                amount=7000,
                growth_type=GrowthType.INFLATION,
                id="tfsa",
                label="TFSA max",
            ),
            ScheduledRule(
                "savingsDeposit",
                2027,
                amount=5000,
                end_year=2030,
                conditions=(ScheduleCondition("grossIncome", ConditionOperator.GE, 160000),),
                id="savings",
                label="Save once income passes 160K",
            ),
        ),
        inflation_rate=0.025,
    ),
    blank=Projection(make_years(2025, 6)),
)


def main(projection: Projection) -> None:
    """Run interactive demo over a sample projection."""
    view = GridView(projection, computed_rows=sample_computed(projection), clipboard=MemoryClipboard())
    demo = InteractiveDemo(view)
    demo.run()


if __name__ == "__main__":
    if len(sys.argv) > 1 and sys.argv[1] == "sublime":
        # Running from IDE - just render the initial state
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s: %(message)s")

        print("Running from IDE - rendering initial state")
        print()

        projection = LAYOUTS["rrsp"]
        view = GridView(projection, computed_rows=sample_computed(projection), viewport_height=40)
        print(render_grid(view))
    else:
        main(LAYOUTS[sys.argv[1] if len(sys.argv) > 1 else "rrsp"])
