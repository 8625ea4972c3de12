"""
Tiered valuation: custom assumptions, then standard assumptions, then a
synthetic estimate that cannot fail. Every path returns the same DCFResult shape.
"""
import asyncio
import logging
from dataclasses import replace
from typing import List, Optional, Sequence

from config import FMP_API_KEY, REMOTE_CALCULATION_TIMEOUT_SECONDS, USE_REMOTE_CALCULATION
from fin_config import (
    DEFAULT_EQUITY_VALUE_PER_SHARE,
    DEFAULT_FORECAST_YEARS,
    SYNTHETIC_GROWTH_SCHEDULE,
    SYNTHETIC_PE_MULTIPLE,
    SYNTHETIC_PRICE_FLOOR,
)
from services.assumptions import STANDARD_ASSUMPTIONS
from services.errors import ModelPreconditionError
from services.models import AssumptionSet, DCFResult, FinancialSnapshot, Tier
from services.remote_calculation import (
    FMPCalculationService,
    RemoteCalculationService,
    normalize_remote_result,
)
from services.validation import repair_assumptions, validate
from services.valuation import (
    calculate_net_debt,
    calculate_valuation,
    compute_wacc,
    is_finite,
    project_cash_flows,
)

logger = logging.getLogger(__name__)


def get_default_remote_calculator() -> Optional[RemoteCalculationService]:
    """FMP remote calculation when enabled and configured, otherwise None (local calculation)."""
    if USE_REMOTE_CALCULATION and FMP_API_KEY:
        return FMPCalculationService()
    return None


def value_locally(
    symbol: str,
    snapshot: FinancialSnapshot,
    assumptions: AssumptionSet,
    horizon_years: int = DEFAULT_FORECAST_YEARS,
    growth_rates: Optional[Sequence[float]] = None,
    taper: bool = True,
) -> DCFResult:
    """WACC, projections and valuation computed in-process."""
    if growth_rates:
        growth_schedule = "custom"
    else:
        growth_schedule = "tapered" if taper else "flat"

    wacc = compute_wacc(assumptions, snapshot)
    projections = project_cash_flows(assumptions, snapshot, horizon_years, growth_rates, taper)
    result = calculate_valuation(
        projections,
        wacc.wacc,
        assumptions.terminal_growth_rate,
        snapshot,
        symbol=symbol,
        tax_rate=assumptions.tax_rate,
        growth_schedule=growth_schedule,
    )
    if wacc.was_replaced:
        result = replace(result, was_repaired=True, notes=result.notes + ("wacc_replaced",))
    return result


def _failure_reason(result: Optional[DCFResult]) -> Optional[str]:
    """Why a tier's result is unusable, or None when it can be returned."""
    if result is None:
        return "empty result"
    for name in ('enterprise_value', 'equity_value', 'equity_value_per_share'):
        if not is_finite(getattr(result, name)):
            return f"non-finite {name}"
    if result.wacc <= result.long_term_growth_rate:
        return f"wacc {result.wacc:.4f} does not exceed long-term growth {result.long_term_growth_rate:.4f}"
    return None


async def _run_tier(
    tier: Tier,
    symbol: str,
    snapshot: FinancialSnapshot,
    assumptions: Optional[AssumptionSet],
    remote_calculator: Optional[RemoteCalculationService],
    timeout: float,
    horizon_years: int,
    growth_rates: Optional[Sequence[float]],
    taper: bool,
) -> DCFResult:
    if assumptions is None:
        raise ModelPreconditionError("no assumptions supplied")

    notes = []
    if tier is Tier.CUSTOM:
        assumptions, replaced = repair_assumptions(assumptions)
        if replaced:
            notes.append(f"assumptions_repaired:{','.join(replaced)}")

    if remote_calculator is not None:
        raw = await asyncio.wait_for(remote_calculator.calculate(symbol, assumptions, tier), timeout=timeout)
        result = normalize_remote_result(raw, symbol, tier, snapshot)
    else:
        result = value_locally(symbol, snapshot, assumptions, horizon_years, growth_rates, taper)

    if notes:
        result = replace(result, was_repaired=True, notes=result.notes + tuple(notes))
    return result


def synthesize_estimate(symbol: str, snapshot: FinancialSnapshot) -> DCFResult:
    """
    Deterministic last-resort estimate that needs no external service.

    Per share value = EPS × SYNTHETIC_PE_MULTIPLE, never below
    SYNTHETIC_PRICE_FLOOR × current price. Without usable earnings the
    current price (or DEFAULT_EQUITY_VALUE_PER_SHARE) is used. Projections
    follow the fixed synthetic growth schedule on standard margins.
    """
    notes = []
    shares = snapshot.shares_outstanding if is_finite(snapshot.shares_outstanding) else 0.0
    price = snapshot.current_price if is_finite(snapshot.current_price) and snapshot.current_price > 0 else None

    per_share = None
    if is_finite(snapshot.net_income) and shares > 0:
        per_share = (snapshot.net_income / shares) * SYNTHETIC_PE_MULTIPLE
        if price is not None:
            per_share = max(per_share, SYNTHETIC_PRICE_FLOOR * price)
        elif per_share <= 0:
            per_share = None

    if per_share is None:
        per_share = price if price is not None else DEFAULT_EQUITY_VALUE_PER_SHARE
        notes.append("per_share_fallback")

    projections = project_cash_flows(
        STANDARD_ASSUMPTIONS,
        snapshot,
        horizon_years=len(SYNTHETIC_GROWTH_SCHEDULE),
        growth_rates=SYNTHETIC_GROWTH_SCHEDULE,
    )
    wacc = compute_wacc(STANDARD_ASSUMPTIONS, snapshot)
    net_debt = calculate_net_debt(snapshot)
    equity_value = per_share * shares if shares > 0 else 0.0

    return DCFResult(
        symbol=symbol,
        wacc=wacc.wacc,
        tax_rate=STANDARD_ASSUMPTIONS.tax_rate,
        long_term_growth_rate=STANDARD_ASSUMPTIONS.terminal_growth_rate,
        revenue=projections[0].revenue,
        free_cash_flow=projections[0].free_cash_flow,
        terminal_value=0.0,
        present_value_of_terminal_value=0.0,
        sum_of_discounted_free_cash_flows=0.0,
        enterprise_value=equity_value + net_debt,
        net_debt=net_debt,
        equity_value=equity_value,
        equity_value_per_share=float(per_share),
        yearly_projections=tuple(projections),
        tier_used=Tier.SYNTHETIC,
        shares_outstanding=float(max(shares, 0.0)),
        current_price=snapshot.current_price,
        growth_schedule="synthetic",
        was_repaired=bool(notes),
        notes=tuple(notes),
    )


async def run_tiered_valuation(
    symbol: str,
    snapshot: FinancialSnapshot,
    assumptions: Optional[AssumptionSet] = None,
    remote_calculator: Optional[RemoteCalculationService] = None,
    timeout: float = REMOTE_CALCULATION_TIMEOUT_SECONDS,
    horizon_years: int = DEFAULT_FORECAST_YEARS,
    growth_rates: Optional[Sequence[float]] = None,
    taper: bool = True,
) -> DCFResult:
    """
    Value ``symbol``, falling back tier by tier until one succeeds.

    Tiers run strictly in order: custom (the caller's assumptions, repaired,
    with ``growth_rates`` and ``taper`` applied), standard
    (STANDARD_ASSUMPTIONS on the tapered growth path), synthetic. A tier fails on any
    exception, a timeout, an empty or non-finite result, or a WACC that does
    not exceed the long-term growth rate; the reason is logged and recorded
    in ``failure_reasons``. The returned result has passed ``validate`` and
    names the tier that produced it.
    """
    if remote_calculator is None:
        remote_calculator = get_default_remote_calculator()

    failure_reasons: List[str] = []
    tiers = ((Tier.CUSTOM, assumptions), (Tier.STANDARD, STANDARD_ASSUMPTIONS))

    for tier, tier_assumptions in tiers:
        # standard tier keeps the default tapered growth path
        if tier is Tier.CUSTOM:
            tier_growth_rates, tier_taper = growth_rates, taper
        else:
            tier_growth_rates, tier_taper = None, True
        try:
            result = await _run_tier(
                tier, symbol, snapshot, tier_assumptions, remote_calculator, timeout, horizon_years,
                tier_growth_rates, tier_taper,
            )
            reason = _failure_reason(result)
        except asyncio.TimeoutError:
            result, reason = None, f"timed out after {timeout}s"
        except Exception as e:
            result, reason = None, f"{type(e).__name__}: {e}"

        if reason is None:
            logger.info(f"DCF for {symbol} computed with the {tier.value} tier")
            return validate(replace(result, tier_used=tier, failure_reasons=tuple(failure_reasons)))

        logger.warning(f"{tier.value} tier failed for {symbol}: {reason}")
        failure_reasons.append(f"{tier.value}: {reason}")

    result = synthesize_estimate(symbol, snapshot)
    logger.info(f"DCF for {symbol} computed with the synthetic tier")
    return validate(replace(result, failure_reasons=tuple(failure_reasons)))
