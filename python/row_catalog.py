"""
Row catalog: the registry of fields a projection grid can address.

Each catalog row is one financial field across all projection years. Rows are
grouped (Income, RRSP, ...) and RowLayout derives the active, ordered row list
from the user's group open/closed state and group display order.

Row ids are the field names used by scheduled rules and paste/copy addressing
(e.g. "employmentIncome"). Synthetic rows carry the COMPUTED_PREFIX and show
values from externally computed results; they are never editable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from typing import Callable, Iterable, Mapping

from grid_types import NavigableRow, ScheduledRule

logger = logging.getLogger(__name__)

COMPUTED_PREFIX = "computed:"


# =============================================================================
# Year Records
# =============================================================================


@dataclass(frozen=True)
class YearData:
    """Raw user inputs for one projection year.

    Ordinary fields default to 0.0. Override fields default to None: absent
    means "let the computation engine decide", which is not the same as 0.
    """

    year: int
    # Income
    employment_income: float = 0.0
    self_employment_income: float = 0.0
    eligible_dividends: float = 0.0
    non_eligible_dividends: float = 0.0
    interest_income: float = 0.0
    capital_gains_realized: float = 0.0
    capital_losses_realized: float = 0.0
    other_taxable_income: float = 0.0
    charitable_donations: float = 0.0
    # Contributions
    rrsp_contribution: float = 0.0
    rrsp_deduction_claimed: float = 0.0
    tfsa_contribution: float = 0.0
    fhsa_contribution: float = 0.0
    fhsa_deduction_claimed: float = 0.0
    non_reg_contribution: float = 0.0
    # Withdrawals
    rrsp_withdrawal: float = 0.0
    tfsa_withdrawal: float = 0.0
    fhsa_withdrawal: float = 0.0
    non_reg_withdrawal: float = 0.0
    savings_deposit: float = 0.0
    savings_withdrawal: float = 0.0
    # Asset allocation (fractions, each account sums to 1.0)
    rrsp_equity_pct: float = 0.0
    rrsp_fixed_pct: float = 0.0
    rrsp_cash_pct: float = 0.0
    tfsa_equity_pct: float = 0.0
    tfsa_fixed_pct: float = 0.0
    tfsa_cash_pct: float = 0.0
    fhsa_equity_pct: float = 0.0
    fhsa_fixed_pct: float = 0.0
    fhsa_cash_pct: float = 0.0
    non_reg_equity_pct: float = 0.0
    non_reg_fixed_pct: float = 0.0
    non_reg_cash_pct: float = 0.0
    # Decisions
    capital_loss_applied: float = 0.0
    # End-of-year balance overrides
    rrsp_eoy_override: float | None = None
    tfsa_eoy_override: float | None = None
    fhsa_eoy_override: float | None = None
    non_reg_eoy_override: float | None = None
    savings_eoy_override: float | None = None
    # Per-year rate overrides (fractions)
    inflation_rate_override: float | None = None
    equity_return_override: float | None = None
    fixed_income_return_override: float | None = None
    cash_return_override: float | None = None
    savings_return_override: float | None = None


@dataclass(frozen=True)
class Projection:
    """The editable document: every projection year plus its scheduling rules."""

    years: tuple[YearData, ...]
    scheduled_rules: tuple[ScheduledRule, ...] = ()
    inflation_rate: float = 0.02

    @property
    def year_count(self) -> int:
        return len(self.years)


def make_years(start_year: int, count: int) -> tuple[YearData, ...]:
    """Create count empty years starting at start_year."""
    return tuple(YearData(start_year + i) for i in range(count))


# =============================================================================
# Catalog Definition
# =============================================================================


@dataclass(frozen=True)
class RowDef:
    """One catalog row."""

    row_id: str
    label: str
    group: str
    attr: str | None = None  # YearData attribute; None for computed rows
    percentage: bool = False
    override: bool = False
    computed_path: str | None = None  # Dotted path into a computed year
    display: str | None = None  # "count" or "rrif_status" for non-dollar computed rows

    @property
    def editable(self) -> bool:
        return self.attr is not None

    @property
    def synthetic(self) -> bool:
        return self.row_id.startswith(COMPUTED_PREFIX)

    def navigable(self) -> NavigableRow:
        return NavigableRow(self.row_id, self.editable, self.group)


@dataclass(frozen=True)
class RowGroup:
    """A collapsible group of rows."""

    title: str
    rows: tuple[RowDef, ...]
    default_open: bool = True


def _field_rows(group: str, specs: Iterable[tuple[str, str, str]], **opts: bool) -> tuple[RowDef, ...]:
    return tuple(RowDef(row_id, label, group, attr=attr, **opts) for row_id, label, attr in specs)


def _computed_rows(
    group: str, specs: Iterable[tuple[str, ...]], display: str | None = None
) -> tuple[RowDef, ...]:
    """Specs are (path, label) or (path, label, name) when the last path part is already taken."""
    rows = []
    for path, label, *name in specs:
        row_name = name[0] if name else path.rsplit(".", 1)[-1]
        rows.append(RowDef(COMPUTED_PREFIX + row_name, label, group, computed_path=path, display=display))
    return tuple(rows)


def _allocation_rows() -> tuple[RowDef, ...]:
    rows: list[RowDef] = []
    for account, prefix in (("rrsp", "RRSP"), ("tfsa", "TFSA"), ("fhsa", "FHSA"), ("nonReg", "Non-Reg")):
        attr_account = "non_reg" if account == "nonReg" else account
        for part, label in (("Equity", "Equity %"), ("Fixed", "Fixed %"), ("Cash", "Cash %")):
            rows.append(
                RowDef(
                    f"{account}{part}Pct",
                    f"{prefix} {label}",
                    "Asset Allocation",
                    attr=f"{attr_account}_{part.lower()}_pct",
                    percentage=True,
                )
            )
    return tuple(rows)


ROW_CATALOG: tuple[RowGroup, ...] = (
    RowGroup(
        "Income",
        _field_rows(
            "Income",
            [
                ("employmentIncome", "Employment", "employment_income"),
                ("selfEmploymentIncome", "Self-Employment", "self_employment_income"),
                ("eligibleDividends", "Eligible Dividends", "eligible_dividends"),
                ("nonEligibleDividends", "Non-Elig. Dividends", "non_eligible_dividends"),
                ("interestIncome", "Interest", "interest_income"),
                ("capitalGainsRealized", "Capital Gains", "capital_gains_realized"),
                ("capitalLossesRealized", "Capital Losses", "capital_losses_realized"),
                ("otherTaxableIncome", "Other Taxable", "other_taxable_income"),
            ],
        )
        + _computed_rows("Income", [("waterfall.grossIncome", "Total Gross Income")]),
    ),
    RowGroup(
        "RRSP",
        _field_rows(
            "RRSP",
            [
                ("rrspContribution", "Contribution", "rrsp_contribution"),
                ("rrspDeductionClaimed", "Deduction Claimed", "rrsp_deduction_claimed"),
                ("rrspWithdrawal", "Withdrawal", "rrsp_withdrawal"),
            ],
        ),
    ),
    RowGroup(
        "TFSA",
        _field_rows(
            "TFSA",
            [
                ("tfsaContribution", "Contribution", "tfsa_contribution"),
                ("tfsaWithdrawal", "Withdrawal", "tfsa_withdrawal"),
            ],
        ),
    ),
    RowGroup(
        "FHSA",
        _field_rows(
            "FHSA",
            [
                ("fhsaContribution", "Contribution", "fhsa_contribution"),
                ("fhsaDeductionClaimed", "Deduction Claimed", "fhsa_deduction_claimed"),
                ("fhsaWithdrawal", "Withdrawal", "fhsa_withdrawal"),
            ],
        ),
    ),
    RowGroup(
        "Non-Reg & Savings",
        _field_rows(
            "Non-Reg & Savings",
            [
                ("nonRegContribution", "Non-Reg Contribution", "non_reg_contribution"),
                ("nonRegWithdrawal", "Non-Reg Withdrawal", "non_reg_withdrawal"),
                ("savingsDeposit", "Savings Deposit", "savings_deposit"),
                ("savingsWithdrawal", "Savings Withdrawal", "savings_withdrawal"),
            ],
        ),
    ),
    RowGroup("Asset Allocation", _allocation_rows(), default_open=False),
    RowGroup(
        "Capital Loss",
        _field_rows("Capital Loss", [("capitalLossApplied", "Loss Applied", "capital_loss_applied")])
        + _computed_rows("Capital Loss", [("capitalLossCF", "Loss C/F Balance")]),
        default_open=False,
    ),
    RowGroup(
        "EOY Overrides",
        _field_rows(
            "EOY Overrides",
            [
                ("rrspEOYOverride", "RRSP Override", "rrsp_eoy_override"),
                ("tfsaEOYOverride", "TFSA Override", "tfsa_eoy_override"),
                ("fhsaEOYOverride", "FHSA Override", "fhsa_eoy_override"),
                ("nonRegEOYOverride", "NONREG Override", "non_reg_eoy_override"),
                ("savingsEOYOverride", "SAVINGS Override", "savings_eoy_override"),
            ],
            override=True,
        ),
        default_open=False,
    ),
    RowGroup(
        "Retirement (Computed)",
        _computed_rows("Retirement (Computed)", [("retirement.age", "Age")], display="count")
        + _computed_rows(
            "Retirement (Computed)",
            [("retirement.cppIncome", "CPP Benefit Income"), ("retirement.oasIncome", "OAS Income")],
        )
        + _computed_rows("Retirement (Computed)", [("retirement.isRRIF", "RRIF Status")], display="rrif_status")
        + _computed_rows("Retirement (Computed)", [("retirement.rrifMinWithdrawal", "RRIF Min Withdrawal")]),
        default_open=False,
    ),
    RowGroup(
        "Rate Overrides",
        _field_rows(
            "Rate Overrides",
            [
                ("inflationRateOverride", "Inflation Rate", "inflation_rate_override"),
                ("equityReturnOverride", "Equity Return", "equity_return_override"),
                ("fixedIncomeReturnOverride", "Fixed Income Return", "fixed_income_return_override"),
                ("cashReturnOverride", "Cash Return", "cash_return_override"),
                ("savingsReturnOverride", "Savings Return", "savings_return_override"),
            ],
            percentage=True,
            override=True,
        ),
        default_open=False,
    ),
    RowGroup(
        "Contribution Room",
        _computed_rows(
            "Contribution Room",
            [
                ("rrspUnusedRoom", "RRSP Unused Room"),
                ("tfsaUnusedRoom", "TFSA Unused Room"),
                ("fhsaUnusedRoom", "FHSA Unused Room"),
                ("capitalLossCF", "Capital Loss C/F", "roomCapitalLossCF"),
            ],
        ),
        default_open=False,
    ),
    RowGroup(
        "Tax Results (Computed)",
        _computed_rows(
            "Tax Results (Computed)",
            [
                ("tax.netTaxableIncome", "Net Taxable Income"),
                ("tax.federalTaxPayable", "Federal Tax"),
                ("tax.provincialTaxPayable", "Provincial Tax"),
                ("cpp.totalCPPPaid", "CPP Paid"),
                ("ei.totalEI", "EI Paid"),
                ("waterfall.afterTaxIncome", "After-Tax Income"),
                ("waterfall.netCashFlow", "Net Cash Flow"),
                ("accounts.netWorth", "Net Worth (EOY)"),
            ],
        ),
    ),
)


def index_catalog(catalog: Iterable[RowGroup]) -> dict[str, RowDef]:
    """Map row id to RowDef, rejecting duplicate ids and dangling attributes."""
    known_attrs = {f.name for f in fields(YearData)}
    index: dict[str, RowDef] = {}
    for group in catalog:
        for row in group.rows:
            if row.row_id in index:
                raise ValueError(f"Duplicate row id '{row.row_id}' in group '{group.title}'")
            if row.attr is not None and row.attr not in known_attrs:
                raise ValueError(f"Row '{row.row_id}' names unknown YearData field '{row.attr}'")
            index[row.row_id] = row
    return index


ROWS_BY_ID: dict[str, RowDef] = index_catalog(ROW_CATALOG)


# =============================================================================
# Field Accessors
# =============================================================================


@dataclass(frozen=True)
class FieldAccessor:
    """Typed getter/setter pair for one editable row over YearData."""

    get: Callable[[YearData], float | None]
    set: Callable[[YearData, float | None], YearData]


def _make_accessor(attr: str) -> FieldAccessor:
    def get(year: YearData) -> float | None:
        return getattr(year, attr)

    def set_(year: YearData, value: float | None) -> YearData:
        return replace(year, **{attr: value})

    return FieldAccessor(get, set_)


FIELD_ACCESSORS: dict[str, FieldAccessor] = {
    row.row_id: _make_accessor(row.attr) for row in ROWS_BY_ID.values() if row.attr is not None
}


def read_value(year: YearData, row_id: str) -> float | None:
    """Raw value of an editable row; None only for absent override fields."""
    return FIELD_ACCESSORS[row_id].get(year)


def write_value(year: YearData, row_id: str, value: float) -> YearData:
    """Store a typed or pasted value. Zero on an override field means absent."""
    row = ROWS_BY_ID[row_id]
    if row.override and value == 0:
        return FIELD_ACCESSORS[row_id].set(year, None)
    return FIELD_ACCESSORS[row_id].set(year, value)


def clear_value(year: YearData, row_id: str) -> YearData:
    """Domain deletion: zero for ordinary fields, remove the override otherwise."""
    row = ROWS_BY_ID[row_id]
    return FIELD_ACCESSORS[row_id].set(year, None if row.override else 0.0)


def apply_cell_writes(
    years: tuple[YearData, ...],
    writes: Mapping[tuple[int, str], Callable[[YearData, str], YearData]],
) -> tuple[YearData, ...]:
    """Apply per-cell edits keyed by (col, row_id), returning a new years tuple.

    Each year record is rebuilt at most once per call.
    """
    by_col: dict[int, list[tuple[str, Callable[[YearData, str], YearData]]]] = {}
    for (col, row_id), edit in writes.items():
        if 0 <= col < len(years):
            by_col.setdefault(col, []).append((row_id, edit))

    new_years = list(years)
    for col, edits in by_col.items():
        record = new_years[col]
        for row_id, edit in edits:
            record = edit(record, row_id)
        new_years[col] = record
    return tuple(new_years)


# =============================================================================
# Visibility and Order
# =============================================================================


@dataclass
class RowLayout:
    """User-chosen group visibility and order over a catalog.

    This is preference state, separate from the per-mount navigation state.
    It is emitted and consumed as a plain dict; storing it is the caller's job.
    """

    catalog: tuple[RowGroup, ...] = ROW_CATALOG
    open_groups: dict[str, bool] = field(default_factory=dict)
    group_order: list[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        titles = [g.title for g in self.catalog]
        for title in list(self.open_groups) + list(self.group_order):
            if title not in titles:
                raise ValueError(f"Unknown row group '{title}'")
        # Groups missing from the saved order keep their catalog position at the end
        order = list(dict.fromkeys(self.group_order))
        order.extend(t for t in titles if t not in order)
        self.group_order = order
        for group in self.catalog:
            self.open_groups.setdefault(group.title, group.default_open)

    def _group(self, title: str) -> RowGroup:
        for group in self.catalog:
            if group.title == title:
                return group
        raise ValueError(f"Unknown row group '{title}'")

    def is_open(self, title: str) -> bool:
        self._group(title)
        return self.open_groups[title]

    def set_group_open(self, title: str, is_open: bool) -> None:
        self._group(title)
        self.open_groups[title] = is_open

    def toggle_group(self, title: str) -> bool:
        """Flip a group's open state and return the new state."""
        self.set_group_open(title, not self.is_open(title))
        return self.open_groups[title]

    def move_group(self, title: str, delta: int) -> None:
        """Move a group delta places in the display order, clamped to the ends."""
        self._group(title)
        i = self.group_order.index(title)
        j = max(0, min(len(self.group_order) - 1, i + delta))
        if i != j:
            self.group_order.insert(j, self.group_order.pop(i))

    def ordered_groups(self) -> list[RowGroup]:
        return [self._group(title) for title in self.group_order]

    def active_row_defs(self) -> list[RowDef]:
        """Rows of open groups, in display order."""
        rows: list[RowDef] = []
        for group in self.ordered_groups():
            if self.open_groups[group.title]:
                rows.extend(group.rows)
        return rows

    def active_rows(self) -> list[NavigableRow]:
        return [row.navigable() for row in self.active_row_defs()]

    def to_preferences(self) -> dict[str, object]:
        return {"open_groups": dict(self.open_groups), "group_order": list(self.group_order)}

    @classmethod
    def from_preferences(
        cls, prefs: Mapping[str, object], catalog: tuple[RowGroup, ...] = ROW_CATALOG
    ) -> RowLayout:
        """Rebuild a layout from saved preferences, dropping groups that no longer exist."""
        titles = {g.title for g in catalog}
        raw_open = prefs.get("open_groups")
        raw_order = prefs.get("group_order")
        open_groups: dict[str, bool] = {}
        if isinstance(raw_open, Mapping):
            open_groups = {k: bool(v) for k, v in raw_open.items() if k in titles}
            dropped = set(raw_open) - titles
            if dropped:
                logger.debug("from_preferences: dropping unknown groups %s", sorted(dropped))
        group_order: list[str] = []
        if isinstance(raw_order, (list, tuple)):
            group_order = [t for t in raw_order if t in titles]
        return cls(catalog, open_groups, group_order)
