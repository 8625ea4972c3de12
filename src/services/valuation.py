"""
Stock Valuation Module using Discounted Cash Flow (DCF) Analysis

The calculators in this module are pure: they read an AssumptionSet and a
FinancialSnapshot and return new values without touching any shared state.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np

from fin_config import (
    CORPORATE_TAX_RATE,
    DEFAULT_BETA,
    DEFAULT_EQUITY_VALUE_PER_SHARE,
    DEFAULT_FORECAST_YEARS,
    DEFAULT_REVENUE_GROWTH_RATE,
    DEFAULT_WACC,
    MAX_ASSUMPTION_VALUE,
    MAX_WACC,
    MIN_ASSUMPTION_VALUE,
    MIN_TERMINAL_SPREAD,
    MIN_WACC,
)
from services.errors import ModelPreconditionError
from services.models import (
    AssumptionSet,
    DCFResult,
    FinancialSnapshot,
    WACCBreakdown,
    YearlyProjection,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DiscountedCashFlows:
    present_values: List[float]
    sum_of_present_values: float
    terminal_value: float
    present_value_of_terminal_value: float
    terminal_growth_rate: float
    terminal_growth_adjusted: bool = False

    @property
    def enterprise_value(self) -> float:
        return self.sum_of_present_values + self.present_value_of_terminal_value


def is_finite(value) -> bool:
    if value is None:
        return False
    try:
        return bool(np.isfinite(float(value)))
    except (TypeError, ValueError):
        return False


def _value_or_zero(value) -> float:
    return float(value) if is_finite(value) else 0.0


def _field_default(name: str) -> float:
    return AssumptionSet.model_fields[name].default


def _usable_rate(assumptions: AssumptionSet, name: str) -> float:
    """Return the named assumption, or its default when it is non-finite or outside the accepted band."""
    value = getattr(assumptions, name)
    if is_finite(value) and MIN_ASSUMPTION_VALUE <= value <= MAX_ASSUMPTION_VALUE:
        return float(value)

    default = _field_default(name)
    logger.warning(f"Unusable {name}={value}, using default {default}")
    return default


def compute_wacc(assumptions: AssumptionSet, snapshot: FinancialSnapshot) -> WACCBreakdown:
    """Calculate the Weighted Average Cost of Capital (WACC).

    WACC = (E/V × Re) + (D/V × Rd × (1-T))
    Where:
        E = Market value of equity (shares × price, else book equity)
        D = Total (gross) debt
        V = E + D (total capital)
        Re = Cost of equity (from CAPM)
        Rd = Cost of debt
        T = Tax rate

    Cost of Equity (CAPM):
    Re = Rf + β × MRP

    A company with no capital at all is treated as unlevered (equity weight 1).
    A WACC that is not finite or falls outside [MIN_WACC, MAX_WACC] is replaced
    with DEFAULT_WACC and the breakdown is flagged ``was_replaced``.
    """
    beta = assumptions.beta
    if not is_finite(beta) or beta <= 0:
        logger.warning(f"Invalid beta {beta}, using default beta {DEFAULT_BETA}")
        beta = DEFAULT_BETA

    cost_of_equity = assumptions.risk_free_rate + beta * assumptions.market_risk_premium
    after_tax_cost_of_debt = assumptions.cost_of_debt * (1 - assumptions.tax_rate)

    shares = snapshot.shares_outstanding
    price = snapshot.current_price
    if is_finite(shares) and is_finite(price) and shares > 0 and price > 0:
        total_equity = shares * price
    elif is_finite(snapshot.total_equity) and snapshot.total_equity > 0:
        total_equity = float(snapshot.total_equity)
    else:
        total_equity = 0.0

    total_debt = snapshot.total_debt
    if not is_finite(total_debt) or total_debt < 0:
        if total_debt is not None:
            logger.warning(f"Invalid total debt {total_debt}, treating debt as 0")
        total_debt = 0.0

    total_capital = total_equity + total_debt
    if total_capital <= 0:
        equity_weight, debt_weight = 1.0, 0.0
    else:
        equity_weight = total_equity / total_capital
        debt_weight = total_debt / total_capital

    wacc = equity_weight * cost_of_equity + debt_weight * after_tax_cost_of_debt

    was_replaced = False
    if not is_finite(wacc) or not (MIN_WACC <= wacc <= MAX_WACC):
        logger.warning(
            f"WACC {wacc} outside [{MIN_WACC:.0%}, {MAX_WACC:.0%}], using default {DEFAULT_WACC:.1%}"
        )
        wacc = DEFAULT_WACC
        was_replaced = True

    return WACCBreakdown(
        wacc=float(wacc),
        cost_of_equity=float(cost_of_equity),
        after_tax_cost_of_debt=float(after_tax_cost_of_debt),
        debt_weight=float(debt_weight),
        equity_weight=float(equity_weight),
        was_replaced=was_replaced,
    )


def build_growth_schedule(
    assumptions: AssumptionSet,
    horizon_years: int = DEFAULT_FORECAST_YEARS,
    taper: bool = True,
) -> List[float]:
    """
    Revenue growth rate for each projected year.

    With ``taper`` the rate moves linearly from ``revenue_growth_rate`` in
    year 1 to ``terminal_growth_rate`` in the final year, otherwise the
    revenue growth rate is used for every year.
    """
    if horizon_years < 1:
        raise ValueError(f"horizon_years must be at least 1, got {horizon_years}")

    start = _usable_rate(assumptions, 'revenue_growth_rate')
    if not taper or horizon_years == 1:
        return [start] * horizon_years

    end = _usable_rate(assumptions, 'terminal_growth_rate')
    step = (end - start) / (horizon_years - 1)
    return [start + step * year for year in range(horizon_years)]


def _fit_growth_rates(growth_rates: Sequence[float], horizon_years: int) -> List[float]:
    """Truncate or pad (with the last value) a caller-supplied schedule to the horizon."""
    rates = list(growth_rates)[:horizon_years]
    if len(rates) != len(growth_rates) or len(rates) < horizon_years:
        logger.warning(
            f"Growth schedule has {len(growth_rates)} entries for a {horizon_years}-year horizon, adjusting"
        )
    while len(rates) < horizon_years:
        rates.append(rates[-1])

    fitted = []
    for rate in rates:
        if is_finite(rate) and MIN_ASSUMPTION_VALUE <= rate <= MAX_ASSUMPTION_VALUE:
            fitted.append(float(rate))
        else:
            logger.warning(f"Unusable growth rate {rate}, using default {DEFAULT_REVENUE_GROWTH_RATE}")
            fitted.append(DEFAULT_REVENUE_GROWTH_RATE)
    return fitted


def project_cash_flows(
    assumptions: AssumptionSet,
    snapshot: FinancialSnapshot,
    horizon_years: int = DEFAULT_FORECAST_YEARS,
    growth_rates: Optional[Sequence[float]] = None,
    taper: bool = True,
) -> List[YearlyProjection]:
    """Project revenue, EBIT, EBITDA and free cash flow for each forecast year.

    Revenue compounds from the snapshot's revenue; every other line is a
    ratio of that year's revenue:

        ebitda = revenue × ebitda_margin
        ebit = revenue × ebit_margin
        capex = -revenue × capital_expenditure_ratio
        ocf = revenue × operating_cash_flow_ratio
        fcf = ocf + capex

    Args:
        assumptions: AssumptionSet with growth and ratio inputs
        snapshot: Latest reported financials (revenue and fiscal year)
        horizon_years: Number of years to project
        growth_rates: Optional explicit growth schedule, overrides tapering
        taper: Taper growth linearly towards the terminal growth rate

    Returns:
        One YearlyProjection per forecast year
    """
    if growth_rates:
        schedule = _fit_growth_rates(growth_rates, horizon_years)
    else:
        schedule = build_growth_schedule(assumptions, horizon_years, taper)

    if is_finite(snapshot.revenue):
        revenue = float(snapshot.revenue)
    else:
        logger.warning(f"Missing base revenue ({snapshot.revenue}), projecting from 0")
        revenue = 0.0

    ebitda_margin = _usable_rate(assumptions, 'ebitda_margin')
    ebit_margin = _usable_rate(assumptions, 'ebit_margin')
    capex_ratio = _usable_rate(assumptions, 'capital_expenditure_ratio')
    ocf_ratio = _usable_rate(assumptions, 'operating_cash_flow_ratio')

    projections = []
    for year, growth_rate in enumerate(schedule, 1):
        revenue = revenue * (1 + growth_rate)
        capital_expenditure = -revenue * capex_ratio
        operating_cash_flow = revenue * ocf_ratio

        if snapshot.fiscal_year is not None:
            label = str(snapshot.fiscal_year + year)
        else:
            label = f"Year {year}"

        projections.append(YearlyProjection(
            year=label,
            revenue=revenue,
            ebit=revenue * ebit_margin,
            ebitda=revenue * ebitda_margin,
            operating_cash_flow=operating_cash_flow,
            capital_expenditure=capital_expenditure,
            free_cash_flow=operating_cash_flow + capital_expenditure,
            growth_rate=growth_rate,
        ))

    return projections


def discount_cash_flows(
    free_cash_flows: Sequence[float],
    wacc: float,
    terminal_growth_rate: float,
) -> DiscountedCashFlows:
    """
    Discount projected free cash flows and the Gordon Growth terminal value.

    PV_i = FCF_i / (1 + wacc)^i
    TV = FCF_n × (1 + g) / (wacc - g)
    PV_TV = TV / (1 + wacc)^n

    When wacc - g <= 0 the terminal growth is lowered to wacc - MIN_TERMINAL_SPREAD.

    Raises:
        ModelPreconditionError: no cash flows, or a non-finite wacc / wacc <= -1
    """
    if len(free_cash_flows) == 0:
        raise ModelPreconditionError("No projected cash flows to discount")
    if not is_finite(wacc) or wacc <= -1:
        raise ModelPreconditionError(f"Discount rate must be finite and greater than -100%, got {wacc}")

    adjusted = False
    growth = terminal_growth_rate
    if not is_finite(growth) or wacc - growth <= 0:
        growth = wacc - MIN_TERMINAL_SPREAD
        adjusted = True
        logger.warning(
            f"Terminal growth {terminal_growth_rate} is not below WACC {wacc:.2%}, using {growth:.2%}"
        )

    present_values = [
        fcf / (1 + wacc) ** year
        for year, fcf in enumerate(free_cash_flows, 1)
    ]

    years = len(free_cash_flows)
    terminal_value = free_cash_flows[-1] * (1 + growth) / (wacc - growth)
    pv_terminal_value = terminal_value / (1 + wacc) ** years

    return DiscountedCashFlows(
        present_values=present_values,
        sum_of_present_values=float(sum(present_values)),
        terminal_value=float(terminal_value),
        present_value_of_terminal_value=float(pv_terminal_value),
        terminal_growth_rate=float(growth),
        terminal_growth_adjusted=adjusted,
    )


def calculate_net_debt(snapshot: FinancialSnapshot) -> float:
    """Net debt (total debt - cash and cash equivalents). May be negative for net-cash companies."""
    return _value_or_zero(snapshot.total_debt) - _value_or_zero(snapshot.cash_and_equivalents)


def per_share_fallback(current_price: Optional[float]) -> float:
    if is_finite(current_price) and current_price > 0:
        return float(current_price)
    return DEFAULT_EQUITY_VALUE_PER_SHARE


def calculate_valuation(
    projections: Sequence[YearlyProjection],
    wacc: float,
    terminal_growth_rate: float,
    snapshot: FinancialSnapshot,
    symbol: str = "",
    tax_rate: float = CORPORATE_TAX_RATE,
    growth_schedule: str = "tapered",
) -> DCFResult:
    """
    Calculate the fair value of a stock from its projected free cash flows.

    Steps:
    1. Discount each year's FCF at the WACC
    2. Compute the terminal value (value beyond forecast period)
    3. Enterprise value = PV of FCFs + PV of terminal value
    4. Equity value = enterprise value - net debt
    5. Divide by number of shares → fair value per share

    When the share count is missing or not positive the current price (or
    DEFAULT_EQUITY_VALUE_PER_SHARE) stands in for the per-share value and the
    result is flagged as repaired. ``tier_used`` is left unset.

    Raises:
        ModelPreconditionError: empty projections or a non-finite WACC
    """
    if not projections:
        raise ModelPreconditionError(f"No projections to value for {symbol or 'company'}")

    notes = []
    discounted = discount_cash_flows(
        [p.free_cash_flow for p in projections], wacc, terminal_growth_rate
    )
    if discounted.terminal_growth_adjusted:
        notes.append("terminal_growth_adjusted")

    enterprise_value = discounted.enterprise_value
    net_debt = calculate_net_debt(snapshot)
    equity_value = enterprise_value - net_debt

    shares = snapshot.shares_outstanding
    if is_finite(shares) and shares > 0:
        equity_value_per_share = equity_value / shares
    else:
        equity_value_per_share = per_share_fallback(snapshot.current_price)
        notes.append("per_share_fallback")
        logger.warning(
            f"No usable share count for {symbol or 'company'} ({shares}), "
            f"using {equity_value_per_share:.2f} per share"
        )

    return DCFResult(
        symbol=symbol,
        wacc=float(wacc),
        tax_rate=float(tax_rate),
        long_term_growth_rate=discounted.terminal_growth_rate,
        revenue=projections[0].revenue,
        free_cash_flow=projections[0].free_cash_flow,
        terminal_value=discounted.terminal_value,
        present_value_of_terminal_value=discounted.present_value_of_terminal_value,
        sum_of_discounted_free_cash_flows=discounted.sum_of_present_values,
        enterprise_value=enterprise_value,
        net_debt=net_debt,
        equity_value=equity_value,
        equity_value_per_share=float(equity_value_per_share),
        yearly_projections=tuple(projections),
        tier_used=None,
        shares_outstanding=_value_or_zero(shares),
        current_price=snapshot.current_price,
        growth_schedule=growth_schedule,
        was_repaired=bool(notes),
        notes=tuple(notes),
    )


def print_dcf_analysis(result: DCFResult) -> None:
    """Print a formatted DCF valuation analysis."""

    def format_amount(amount: float, decimals: int = 0) -> str:
        return f"{amount:,.{decimals}f}"

    print(f"\n{'='*60}")
    print(f"DCF VALUATION ANALYSIS: {result.symbol}")
    print(f"{'='*60}")

    print(f"\nCURRENT MARKET DATA:")
    if result.current_price:
        print(f"Current Price: {format_amount(result.current_price, 2)}")
    else:
        print("Current Price: n/a")
    print(f"Shares Outstanding: {format_amount(result.shares_outstanding)}")

    print(f"\nVALUATION INPUTS:")
    print(f"Tier: {result.tier_used.value if result.tier_used else 'n/a'}")
    print(f"Discount Rate (WACC): {result.wacc:.2%}")
    print(f"Terminal Growth Rate: {result.long_term_growth_rate:.2%}")
    print(f"Tax Rate: {result.tax_rate:.1%}")
    print(f"Growth Schedule: {result.growth_schedule}")
    print(f"Net Debt: {format_amount(result.net_debt)}")

    print(f"\nPROJECTIONS:")
    for projection in result.yearly_projections:
        print(
            f"{projection.year}: Revenue {format_amount(projection.revenue)} "
            f"(Growth: {projection.growth_rate:.1%}), "
            f"EBITDA {format_amount(projection.ebitda)}, "
            f"FCF {format_amount(projection.free_cash_flow)}"
        )

    print(f"\nVALUATION RESULTS:")
    print(f"Terminal Value: {format_amount(result.terminal_value)}")
    print(f"Present Value of FCFs: {format_amount(result.sum_of_discounted_free_cash_flows)}")
    print(f"Present Value of Terminal: {format_amount(result.present_value_of_terminal_value)}")
    print(f"Total Enterprise Value: {format_amount(result.enterprise_value)}")
    print(f"Equity Value: {format_amount(result.equity_value)}")

    print(f"\nFAIR VALUE ESTIMATE:")
    print(f"Fair Value per Share: {format_amount(result.equity_value_per_share, 2)}")
    if result.current_price and result.current_price > 0:
        upside = (result.equity_value_per_share - result.current_price) / result.current_price
        print(f"Upside Potential: {upside * 100:.1f}%")

    if result.notes:
        print(f"\nADJUSTMENTS: {', '.join(result.notes)}")
    if result.failure_reasons:
        print(f"\nFAILED TIERS:")
        for reason in result.failure_reasons:
            print(f"  {reason}")

    print(f"\n{'='*60}")
