"""
Sensitivity of the per-share value to terminal growth and discount rate.
"""
import logging
from typing import List, Optional, Sequence

from fin_config import SENSITIVITY_DISCOUNT_OFFSETS, SENSITIVITY_GROWTH_OFFSETS
from services.models import DCFResult, SensitivityGrid
from services.valuation import discount_cash_flows, is_finite

logger = logging.getLogger(__name__)


def _centered_axis(center: float, offsets: Sequence[float]) -> List[float]:
    return [center + offset for offset in offsets]


def _check_axis(name: str, values: Sequence[float]) -> List[float]:
    for value in values:
        if not is_finite(value):
            raise ValueError(f"Sensitivity axis '{name}' contains a non-finite value: {value}")
    return sorted(float(v) for v in values)


def _compute_fair_value_per_share(
    free_cash_flows: List[float],
    discount_rate: float,
    terminal_growth_rate: float,
    net_debt: float,
    shares_outstanding: float,
) -> Optional[float]:
    if not free_cash_flows or not shares_outstanding or shares_outstanding <= 0:
        return None

    discounted = discount_cash_flows(free_cash_flows, discount_rate, terminal_growth_rate)
    fair_value = (discounted.enterprise_value - net_debt) / shares_outstanding
    return fair_value if is_finite(fair_value) else None


def build_sensitivity_grid(
    base_case: DCFResult,
    growth_rates: Optional[Sequence[float]] = None,
    discount_rates: Optional[Sequence[float]] = None,
) -> SensitivityGrid:
    """
    Recompute the per-share value over a grid of terminal growth and discount rates.

    The base case's projected free cash flows are reused as-is; only the
    terminal value and discounting change per cell. By default both axes are
    centered on the base case (terminal growth ± 0.5%/1%, WACC ± 0.5%/1%).

    Rows are growth rates and columns discount rates, both ascending. Cells
    where the discount rate does not exceed the growth rate use the same
    terminal-growth substitution as the valuation itself. A cell that cannot
    be computed takes the base case's per-share value. An empty axis yields
    an empty grid along that dimension.

    Raises:
        ValueError: an axis value is not finite, or a discount rate is <= -100%
    """
    if growth_rates is None:
        growth_rates = _centered_axis(base_case.long_term_growth_rate, SENSITIVITY_GROWTH_OFFSETS)
    if discount_rates is None:
        discount_rates = _centered_axis(base_case.wacc, SENSITIVITY_DISCOUNT_OFFSETS)

    growth_axis = _check_axis("growth_rates", growth_rates)
    discount_axis = _check_axis("discount_rates", discount_rates)
    for discount_rate in discount_axis:
        if discount_rate <= -1:
            raise ValueError(f"Discount rate must be greater than -100%, got {discount_rate}")

    free_cash_flows = [p.free_cash_flow for p in base_case.yearly_projections]
    base_value = base_case.equity_value_per_share
    if not free_cash_flows or base_case.shares_outstanding <= 0:
        logger.info(
            f"Sensitivity grid for {base_case.symbol} has no projections or share count, "
            f"using base value {base_value:.2f} for every cell"
        )

    cells = []
    for growth in growth_axis:
        row = []
        for discount_rate in discount_axis:
            fair_value = _compute_fair_value_per_share(
                free_cash_flows,
                discount_rate,
                growth,
                base_case.net_debt,
                base_case.shares_outstanding,
            )
            row.append(fair_value if fair_value is not None else base_value)
        cells.append(row)

    return SensitivityGrid(
        row_labels=[f"{g:.2%}" for g in growth_axis],
        column_labels=[f"{d:.2%}" for d in discount_axis],
        cells=cells,
        growth_rates=growth_axis,
        discount_rates=discount_axis,
    )
