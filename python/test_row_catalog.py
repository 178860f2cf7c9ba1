"""Tests for row_catalog module."""

import pytest

from grid_types import NavigableRow
from row_catalog import (
    COMPUTED_PREFIX,
    FIELD_ACCESSORS,
    ROW_CATALOG,
    ROWS_BY_ID,
    RowDef,
    RowGroup,
    RowLayout,
    YearData,
    apply_cell_writes,
    clear_value,
    index_catalog,
    make_years,
    read_value,
    write_value,
)


class TestCatalog:
    """Tests for the catalog definition."""

    def test_row_ids_unique(self) -> None:
        """Every row id appears once across all groups."""
        ids = [row.row_id for group in ROW_CATALOG for row in group.rows]
        assert len(ids) == len(set(ids))
        assert len(ROWS_BY_ID) == len(ids)

    def test_synthetic_rows_are_read_only(self) -> None:
        """Computed rows carry the prefix, a path, and are never editable."""
        synthetic = [row for row in ROWS_BY_ID.values() if row.synthetic]
        assert synthetic
        for row in synthetic:
            assert row.row_id.startswith(COMPUTED_PREFIX)
            assert not row.editable
            assert row.computed_path is not None

    def test_every_editable_row_has_an_accessor(self) -> None:
        """Each editable row reads and writes a YearData field."""
        for row in ROWS_BY_ID.values():
            assert (row.row_id in FIELD_ACCESSORS) == row.editable

    def test_default_open_groups(self) -> None:
        """Detail groups start collapsed."""
        closed = {g.title for g in ROW_CATALOG if not g.default_open}
        assert closed == {
            "Asset Allocation",
            "Capital Loss",
            "EOY Overrides",
            "Retirement (Computed)",
            "Rate Overrides",
            "Contribution Room",
        }

    def test_rate_overrides_are_percentage_overrides(self) -> None:
        """Rate override rows hold fractions and start absent."""
        for row_id in (
            "inflationRateOverride",
            "equityReturnOverride",
            "fixedIncomeReturnOverride",
            "cashReturnOverride",
            "savingsReturnOverride",
        ):
            row = ROWS_BY_ID[row_id]
            assert row.percentage and row.override and row.editable
            assert read_value(YearData(2025), row_id) is None

    def test_shared_computed_path_gets_distinct_ids(self) -> None:
        """Both loss carry-forward rows read the same result under different ids."""
        assert ROWS_BY_ID["computed:capitalLossCF"].computed_path == "capitalLossCF"
        assert ROWS_BY_ID["computed:roomCapitalLossCF"].computed_path == "capitalLossCF"
        assert ROWS_BY_ID["computed:roomCapitalLossCF"].group == "Contribution Room"

    def test_duplicate_ids_rejected(self) -> None:
        """A catalog that repeats a row id is refused."""
        row = RowDef("employmentIncome", "Employment", "A", attr="employment_income")
        with pytest.raises(ValueError, match="Duplicate"):
            index_catalog([RowGroup("A", (row,)), RowGroup("B", (row,))])

    def test_unknown_attribute_rejected(self) -> None:
        """A row naming a field YearData does not have is refused."""
        row = RowDef("bogus", "Bogus", "A", attr="no_such_field")
        with pytest.raises(ValueError, match="unknown YearData field"):
            index_catalog([RowGroup("A", (row,))])

    def test_navigable_projection(self) -> None:
        """navigable() keeps id, editability and group."""
        row = ROWS_BY_ID["computed:grossIncome"]
        assert row.navigable() == NavigableRow("computed:grossIncome", False, "Income")


class TestFieldAccess:
    """Tests for reading and writing cell values."""

    def test_read_write_plain_field(self) -> None:
        """Ordinary fields round through their accessor."""
        year = write_value(YearData(2025), "rrspContribution", 27000)
        assert year.rrsp_contribution == 27000
        assert read_value(year, "rrspContribution") == 27000

    def test_override_absent_by_default(self) -> None:
        """Override fields start absent, not zero."""
        assert read_value(YearData(2025), "rrspEOYOverride") is None

    def test_writing_zero_to_override_removes_it(self) -> None:
        """Zero on an override field means absent."""
        year = write_value(YearData(2025), "rrspEOYOverride", 5000)
        assert year.rrsp_eoy_override == 5000
        year = write_value(year, "rrspEOYOverride", 0)
        assert year.rrsp_eoy_override is None

    def test_clear_value(self) -> None:
        """Clearing zeroes plain fields and removes overrides."""
        year = YearData(2025, employment_income=100, tfsa_eoy_override=9)
        year = clear_value(year, "employmentIncome")
        year = clear_value(year, "tfsaEOYOverride")
        assert year.employment_income == 0.0
        assert year.tfsa_eoy_override is None

    def test_apply_cell_writes_is_pure(self) -> None:
        """Writes produce a new tuple and leave the input untouched."""
        years = make_years(2025, 3)
        writes = {
            (0, "employmentIncome"): lambda y, r: write_value(y, r, 1),
            (0, "tfsaContribution"): lambda y, r: write_value(y, r, 2),
            (2, "employmentIncome"): lambda y, r: write_value(y, r, 3),
            (9, "employmentIncome"): lambda y, r: write_value(y, r, 4),
        }
        result = apply_cell_writes(years, writes)

        assert years == make_years(2025, 3)
        assert result[0].employment_income == 1
        assert result[0].tfsa_contribution == 2
        assert result[1] is years[1]
        assert result[2].employment_income == 3
        assert len(result) == 3

    def test_make_years(self) -> None:
        """Years are consecutive and empty."""
        years = make_years(2030, 3)
        assert [y.year for y in years] == [2030, 2031, 2032]
        assert all(y.employment_income == 0 for y in years)

    def test_rate_override_zero_means_absent(self) -> None:
        """A zero rate override is removed, any other value is kept as a fraction."""
        year = write_value(YearData(2025), "inflationRateOverride", 0.025)
        assert year.inflation_rate_override == 0.025
        assert write_value(year, "inflationRateOverride", 0).inflation_rate_override is None
        assert clear_value(year, "inflationRateOverride").inflation_rate_override is None


class TestRowLayout:
    """Tests for group visibility and ordering."""

    def test_default_layout_follows_catalog(self) -> None:
        """Active rows are the default-open groups, in catalog order."""
        layout = RowLayout()
        expected = [row.row_id for g in ROW_CATALOG if g.default_open for row in g.rows]
        assert [r.row_id for r in layout.active_rows()] == expected

    def test_closed_group_rows_hidden(self) -> None:
        """Closing a group removes its rows from the active list."""
        layout = RowLayout()
        layout.set_group_open("RRSP", False)
        ids = {r.row_id for r in layout.active_rows()}
        assert "rrspContribution" not in ids
        assert "employmentIncome" in ids

    def test_toggle_returns_new_state(self) -> None:
        """toggle_group flips and reports."""
        layout = RowLayout()
        assert layout.toggle_group("Asset Allocation") is True
        assert layout.is_open("Asset Allocation")
        assert layout.toggle_group("Asset Allocation") is False

    def test_move_group(self) -> None:
        """Moving a group reorders the active rows."""
        layout = RowLayout()
        layout.move_group("TFSA", -2)
        assert layout.group_order[:3] == ["TFSA", "Income", "RRSP"]
        first_row = layout.active_rows()[0]
        assert first_row.row_id == "tfsaContribution"

    def test_move_group_clamps(self) -> None:
        """Moves past either end stop at the end."""
        layout = RowLayout()
        layout.move_group("Income", -5)
        assert layout.group_order[0] == "Income"
        layout.move_group("Income", 100)
        assert layout.group_order[-1] == "Income"

    def test_unknown_group(self) -> None:
        """Unknown titles raise."""
        layout = RowLayout()
        with pytest.raises(ValueError):
            layout.toggle_group("Nope")
        with pytest.raises(ValueError):
            RowLayout(group_order=["Nope"])

    def test_partial_order_completed(self) -> None:
        """Groups missing from a saved order are appended in catalog order."""
        layout = RowLayout(group_order=["TFSA"])
        assert layout.group_order[0] == "TFSA"
        assert sorted(layout.group_order) == sorted(g.title for g in ROW_CATALOG)

    def test_preferences_round_trip(self) -> None:
        """Saved preferences rebuild an equivalent layout."""
        layout = RowLayout()
        layout.toggle_group("Income")
        layout.move_group("FHSA", -3)
        rebuilt = RowLayout.from_preferences(layout.to_preferences())
        assert rebuilt.open_groups == layout.open_groups
        assert rebuilt.group_order == layout.group_order

    def test_preferences_drop_unknown_groups(self) -> None:
        """Groups that no longer exist are ignored when loading."""
        prefs = {"open_groups": {"Gone": True, "RRSP": False}, "group_order": ["Gone", "RRSP"]}
        layout = RowLayout.from_preferences(prefs)
        assert not layout.is_open("RRSP")
        assert layout.group_order[0] == "RRSP"
        assert "Gone" not in layout.group_order
