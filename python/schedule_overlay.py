"""
Advisory per-year values from scheduled rules.

The overlay says what each scheduled rule would put in a cell, so the grid can
show it as a ghost value in otherwise empty cells. It never writes to the
projection. Rules that depend on computed results (percentage amounts,
conditions, dynamic caps) resolve only for years whose computed results exist.
"""

from __future__ import annotations

import logging
from typing import Callable, Mapping, Sequence

from grid_types import (
    AmountType,
    ConditionOperator,
    GrowthType,
    OverlayMap,
    ScheduleCondition,
    ScheduledRule,
)
from row_catalog import FIELD_ACCESSORS, YearData

logger = logging.getLogger(__name__)

# A computed year: possibly nested sections, e.g. {"waterfall": {"grossIncome": ...}}
ComputedYear = Mapping[str, object]

AmountFn = Callable[[ScheduledRule, int, float], float]


def resolve_scheduled_amount(rule: ScheduledRule, year: int, inflation_rate: float) -> float:
    """
    Growth-adjusted base amount of a rule for a given calendar year.

    The base amount applies in (and before) the start year. Afterwards it
    compounds yearly at the inflation rate for INFLATION growth, otherwise at
    the rule's own growth_rate. For PERCENTAGE rules the result is the rate to
    apply to the reference quantity.

    Args:
        rule: The scheduled rule
        year: Calendar year being resolved
        inflation_rate: Projection-wide inflation rate

    Returns:
        The amount (or rate) for that year
    """
    years_elapsed = year - rule.start_year
    if years_elapsed <= 0:
        return rule.amount
    rate = inflation_rate if rule.growth_type is GrowthType.INFLATION else (rule.growth_rate or 0.0)
    return rule.amount * (1 + rate) ** years_elapsed


def evaluate_condition(condition: ScheduleCondition, actual: float) -> bool:
    op = condition.operator
    if op is ConditionOperator.GT:
        return actual > condition.value
    if op is ConditionOperator.LT:
        return actual < condition.value
    if op is ConditionOperator.GE:
        return actual >= condition.value
    if op is ConditionOperator.LE:
        return actual <= condition.value
    if op is ConditionOperator.EQ:
        return abs(actual - condition.value) < 0.01
    if op is ConditionOperator.BETWEEN:
        upper = condition.value2 if condition.value2 is not None else condition.value
        return condition.value <= actual <= upper
    return True


def lookup_computed(computed: ComputedYear, path: str) -> float | None:
    """
    Find a number in a computed year by name or dotted path (flags read as 1 or 0).

    "waterfall.grossIncome" walks nested mappings. A bare name is tried at the
    top level first, then inside each nested section.
    """
    node: object = computed
    for part in path.split("."):
        if not isinstance(node, Mapping) or part not in node:
            node = None
            break
        node = node[part]
    if isinstance(node, (int, float)):
        return float(node)

    if "." not in path:
        for section in computed.values():
            if isinstance(section, Mapping):
                value = section.get(path)
                if isinstance(value, (int, float)):
                    return float(value)
    return None


def _context_value(name: str, computed: ComputedYear, raw: YearData) -> float:
    """Computed quantity by name, falling back to the raw year's field, else 0."""
    value = lookup_computed(computed, name)
    if value is not None:
        return value
    accessor = FIELD_ACCESSORS.get(name)
    if accessor is not None:
        return accessor.get(raw) or 0.0
    return 0.0


def _resolve_rule(
    rule: ScheduledRule,
    raw: YearData,
    computed: ComputedYear | None,
    inflation_rate: float,
    amount_fn: AmountFn,
) -> float | None:
    """Overlay value of one rule for one year, or None if it does not apply."""
    if rule.needs_computed and computed is None:
        return None

    if rule.conditions and computed is not None:
        for condition in rule.conditions:
            if not evaluate_condition(condition, _context_value(condition.field, computed, raw)):
                return None

    amount = amount_fn(rule, raw.year, inflation_rate)
    if rule.amount_type is AmountType.PERCENTAGE:
        if computed is None or rule.amount_reference is None:
            return None
        amount *= _context_value(rule.amount_reference, computed, raw)

    if rule.amount_min is not None and rule.amount_min > 0:
        amount = max(amount, rule.amount_min)
    if rule.amount_max is not None and rule.amount_max > 0:
        amount = min(amount, rule.amount_max)
    if rule.amount_max_ref is not None and computed is not None:
        amount = min(amount, max(0.0, _context_value(rule.amount_max_ref, computed, raw)))

    if rule.amount_type is AmountType.PERCENTAGE and amount <= 0:
        return None
    return amount


def resolve_schedule_overlay(
    rules: Sequence[ScheduledRule],
    rows: Sequence[YearData],
    inflation_rate: float,
    computed_rows: Sequence[ComputedYear | None] | None = None,
    amount_fn: AmountFn = resolve_scheduled_amount,
) -> OverlayMap:
    """
    Compute the advisory overlay for every year and field.

    Years are resolved in order and rules in list order; the first rule that
    yields a value for a field in a year wins. The inputs are not modified.

    Args:
        rules: Scheduled rules, in priority order
        rows: Raw projection years (columns of the grid)
        inflation_rate: Projection-wide inflation rate
        computed_rows: Computed results per year index, where available
        amount_fn: Resolver for a rule's base amount in a given year

    Returns:
        OverlayMap of year index -> field -> value (years with no values omitted)
    """
    overlay: OverlayMap = {}
    for index, raw in enumerate(rows):
        computed = None
        if computed_rows is not None and index < len(computed_rows):
            computed = computed_rows[index]

        values: dict[str, float] = {}
        for rule in rules:
            if not rule.covers(raw.year) or rule.field in values:
                continue
            value = _resolve_rule(rule, raw, computed, inflation_rate, amount_fn)
            if value is None:
                logger.debug("overlay: rule %s on %s skipped for %d", rule.id or "?", rule.field, raw.year)
                continue
            values[rule.field] = value
        if values:
            overlay[index] = values
    return overlay
