"""
Result validation and assumption repair.
"""
import logging
from dataclasses import fields, replace
from typing import List, Tuple

from fin_config import MAX_ASSUMPTION_VALUE, MAX_EQUITY_VALUE_PER_SHARE, MIN_ASSUMPTION_VALUE
from services.models import AssumptionSet, DCFResult, YearlyProjection
from services.valuation import is_finite, per_share_fallback

logger = logging.getLogger(__name__)

MONETARY_FIELDS = (
    'revenue',
    'free_cash_flow',
    'terminal_value',
    'present_value_of_terminal_value',
    'sum_of_discounted_free_cash_flows',
    'enterprise_value',
    'net_debt',
    'equity_value',
)

PROJECTION_FIELDS = tuple(
    f.name for f in fields(YearlyProjection) if f.name != 'year'
)


def repair_assumptions(assumptions: AssumptionSet) -> Tuple[AssumptionSet, List[str]]:
    """
    Replace unusable assumption values with their defaults.

    A value is unusable when it is not finite or falls outside
    [MIN_ASSUMPTION_VALUE, MAX_ASSUMPTION_VALUE]; beta must also be positive.

    Returns:
        Tuple of (repaired AssumptionSet, names of the replaced fields)
    """
    updates = {}
    for name, field_info in AssumptionSet.model_fields.items():
        value = getattr(assumptions, name)
        usable = is_finite(value) and MIN_ASSUMPTION_VALUE <= value <= MAX_ASSUMPTION_VALUE
        if name == 'beta' and usable and value <= 0:
            usable = False
        if not usable:
            updates[name] = field_info.default

    if not updates:
        return assumptions, []

    logger.warning(f"Replaced suspicious assumptions with defaults: {sorted(updates)}")
    return assumptions.model_copy(update=updates), sorted(updates)


def _repair_projection(projection: YearlyProjection) -> Tuple[YearlyProjection, bool]:
    updates = {
        name: 0.0 for name in PROJECTION_FIELDS
        if not is_finite(getattr(projection, name))
    }
    if not updates:
        return projection, False
    return replace(projection, **updates), True


def validate(result: DCFResult) -> DCFResult:
    """
    Return a copy of ``result`` that is safe to present.

    - Non-finite projection and monetary fields become 0; when enterprise
      value or net debt had to be repaired, equity value is recomputed so
      that equity_value == enterprise_value - net_debt still holds.
    - A per-share value that is non-finite, <= 0 or above
      MAX_EQUITY_VALUE_PER_SHARE becomes the current price (or
      DEFAULT_EQUITY_VALUE_PER_SHARE when there is no price).

    ``tier_used`` is preserved. ``was_repaired`` is set and ``notes`` extended
    whenever something was substituted.
    """
    updates = {}
    notes = list(result.notes)

    projections = []
    projections_repaired = False
    for projection in result.yearly_projections:
        repaired, changed = _repair_projection(projection)
        projections.append(repaired)
        projections_repaired = projections_repaired or changed
    if projections_repaired:
        updates['yearly_projections'] = tuple(projections)
        notes.append("projection_values_replaced")

    for name in MONETARY_FIELDS:
        if not is_finite(getattr(result, name)):
            updates[name] = 0.0
            notes.append(f"{name}_replaced")

    if 'enterprise_value' in updates or 'net_debt' in updates:
        enterprise_value = updates.get('enterprise_value', result.enterprise_value)
        net_debt = updates.get('net_debt', result.net_debt)
        updates['equity_value'] = enterprise_value - net_debt

    per_share = result.equity_value_per_share
    if not is_finite(per_share) or per_share <= 0 or per_share > MAX_EQUITY_VALUE_PER_SHARE:
        updates['equity_value_per_share'] = per_share_fallback(result.current_price)
        notes.append("per_share_replaced")
        logger.warning(
            f"Equity value per share {per_share} for {result.symbol} is not plausible, "
            f"using {updates['equity_value_per_share']:.2f}"
        )

    if not updates:
        return result

    return replace(result, **updates, was_repaired=True, notes=tuple(notes))
