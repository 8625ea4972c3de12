"""
Unit tests for the tiered valuation orchestrator.

Remote calculators are replaced with small in-process fakes so no network
calls are made.
"""
import asyncio
import sys
from pathlib import Path

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fin_config import DEFAULT_EQUITY_VALUE_PER_SHARE, SYNTHETIC_GROWTH_SCHEDULE, SYNTHETIC_PRICE_FLOOR
from services.assumptions import STANDARD_ASSUMPTIONS
from services.errors import UpstreamFailure
from services.models import AssumptionSet, FinancialSnapshot, Tier
from services.orchestrator import run_tiered_valuation, synthesize_estimate, value_locally
from services.remote_calculation import RemoteCalculationService


SNAPSHOT = FinancialSnapshot(
    revenue=100e9,
    operating_income=28e9,
    net_income=20e9,
    shares_outstanding=1e9,
    total_debt=50e9,
    cash_and_equivalents=20e9,
    beta=1.1,
    current_price=150.0,
    fiscal_year=2024,
)


class FailingCalculator(RemoteCalculationService):
    def __init__(self):
        self.calls = []

    async def calculate(self, symbol, assumptions, tier):
        self.calls.append(tier)
        raise UpstreamFailure("connection refused")


class SlowCalculator(RemoteCalculationService):
    async def calculate(self, symbol, assumptions, tier):
        await asyncio.sleep(5)
        return []


class StubCalculator(RemoteCalculationService):
    def __init__(self, rows):
        self.rows = rows
        self.calls = []

    async def calculate(self, symbol, assumptions, tier):
        self.calls.append((tier, assumptions))
        return self.rows


def test_custom_tier_used_when_it_succeeds():
    result = asyncio.run(run_tiered_valuation("AAPL", SNAPSHOT, AssumptionSet(revenue_growth_rate=0.1)))

    assert result.tier_used == Tier.CUSTOM
    assert result.failure_reasons == ()
    assert result.equity_value == pytest.approx(result.enterprise_value - result.net_debt)
    assert result.equity_value_per_share == pytest.approx(result.equity_value / SNAPSHOT.shares_outstanding)
    assert len(result.yearly_projections) == 5


def test_missing_custom_assumptions_fall_back_to_standard():
    result = asyncio.run(run_tiered_valuation("AAPL", SNAPSHOT, None))

    assert result.tier_used == Tier.STANDARD
    assert len(result.failure_reasons) == 1
    assert result.failure_reasons[0].startswith("custom:")


def test_all_remote_tiers_failing_yields_synthetic_estimate():
    calculator = FailingCalculator()

    result = asyncio.run(run_tiered_valuation("AAPL", SNAPSHOT, AssumptionSet(), remote_calculator=calculator))

    assert result.tier_used == Tier.SYNTHETIC
    assert result.equity_value_per_share >= SYNTHETIC_PRICE_FLOOR * SNAPSHOT.current_price
    assert calculator.calls == [Tier.CUSTOM, Tier.STANDARD]
    assert result.failure_reasons[0].startswith("custom: UpstreamFailure")
    assert result.failure_reasons[1].startswith("standard: UpstreamFailure")


def test_remote_timeouts_fall_through_to_synthetic():
    result = asyncio.run(run_tiered_valuation(
        "AAPL", SNAPSHOT, AssumptionSet(), remote_calculator=SlowCalculator(), timeout=0.05
    ))

    assert result.tier_used == Tier.SYNTHETIC
    assert all("timed out" in reason for reason in result.failure_reasons)


def test_empty_remote_payload_is_a_failure():
    result = asyncio.run(run_tiered_valuation(
        "AAPL", SNAPSHOT, AssumptionSet(), remote_calculator=StubCalculator([])
    ))

    assert result.tier_used == Tier.SYNTHETIC
    assert len(result.failure_reasons) == 2


def test_remote_wacc_not_above_growth_is_a_failure():
    rows = [{
        'wacc': 5,
        'longTermGrowthRate': 6,
        'enterpriseValue': 1000.0,
        'netDebt': 100.0,
        'equityValuePerShare': 9.0,
        'dilutedSharesOutstanding': 100.0,
    }]

    result = asyncio.run(run_tiered_valuation(
        "AAPL", SNAPSHOT, AssumptionSet(), remote_calculator=StubCalculator(rows)
    ))

    assert result.tier_used == Tier.SYNTHETIC
    assert "does not exceed long-term growth" in result.failure_reasons[0]


def test_remote_success_is_normalized():
    rows = [{
        'year': '2025',
        'wacc': 9.1,
        'longTermGrowthRate': 3,
        'taxRate': 0.21,
        'enterpriseValue': 2000e9,
        'netDebt': 100e9,
        'equityValuePerShare': 190.0,
        'dilutedSharesOutstanding': 10e9,
        'price': 150.0,
    }]
    calculator = StubCalculator(rows)

    result = asyncio.run(run_tiered_valuation("AAPL", SNAPSHOT, AssumptionSet(), remote_calculator=calculator))

    assert result.tier_used == Tier.CUSTOM
    assert result.wacc == pytest.approx(0.091)
    assert result.long_term_growth_rate == pytest.approx(0.03)
    assert result.equity_value == pytest.approx(1900e9)
    assert result.equity_value_per_share == 190.0
    assert result.growth_schedule == "remote"
    assert len(calculator.calls) == 1


def test_suspicious_custom_assumptions_are_repaired():
    result = asyncio.run(run_tiered_valuation(
        "AAPL", SNAPSHOT, AssumptionSet(revenue_growth_rate=50.0, beta=float('nan'))
    ))

    assert result.tier_used == Tier.CUSTOM
    assert result.was_repaired is True
    assert "assumptions_repaired:beta,revenue_growth_rate" in result.notes


def test_zero_shares_uses_current_price():
    snapshot = FinancialSnapshot(revenue=10e9, shares_outstanding=0, current_price=55.0, total_equity=20e9)

    result = asyncio.run(run_tiered_valuation("XYZ", snapshot, AssumptionSet()))

    assert result.equity_value_per_share == 55.0
    assert result.was_repaired is True


def test_replaced_wacc_is_noted():
    result = value_locally("AAPL", SNAPSHOT, AssumptionSet(beta=4.9, market_risk_premium=0.5))

    assert "wacc_replaced" in result.notes
    assert result.was_repaired is True


def test_synthetic_estimate_from_earnings():
    result = synthesize_estimate("AAPL", SNAPSHOT)

    # EPS 20 × 20 = 400, above the 75% price floor
    assert result.equity_value_per_share == pytest.approx(400.0)
    assert result.tier_used == Tier.SYNTHETIC
    assert result.growth_schedule == "synthetic"
    assert [p.growth_rate for p in result.yearly_projections] == SYNTHETIC_GROWTH_SCHEDULE
    assert result.equity_value == pytest.approx(400.0 * 1e9)
    assert result.equity_value == pytest.approx(result.enterprise_value - result.net_debt)


def test_synthetic_estimate_respects_price_floor():
    snapshot = FinancialSnapshot(net_income=1e9, shares_outstanding=1e9, current_price=150.0)

    result = synthesize_estimate("AAPL", snapshot)

    assert result.equity_value_per_share == pytest.approx(SYNTHETIC_PRICE_FLOOR * 150.0)


def test_synthetic_estimate_without_earnings():
    with_price = synthesize_estimate("AAPL", FinancialSnapshot(current_price=80.0))
    without_price = synthesize_estimate("AAPL", FinancialSnapshot())

    assert with_price.equity_value_per_share == 80.0
    assert without_price.equity_value_per_share == DEFAULT_EQUITY_VALUE_PER_SHARE
    assert "per_share_fallback" in without_price.notes
    assert without_price.equity_value == 0.0


def test_growth_schedule_is_recorded():
    tapered = value_locally("AAPL", SNAPSHOT, AssumptionSet())
    flat = value_locally("AAPL", SNAPSHOT, AssumptionSet(), taper=False)
    custom = asyncio.run(run_tiered_valuation(
        "AAPL", SNAPSHOT, AssumptionSet(), growth_rates=[0.2, 0.15, 0.1]
    ))

    assert tapered.growth_schedule == "tapered"
    assert flat.growth_schedule == "flat"
    assert all(p.growth_rate == 0.085 for p in flat.yearly_projections)
    assert custom.growth_schedule == "custom"
    assert [p.growth_rate for p in custom.yearly_projections] == [0.2, 0.15, 0.1, 0.1, 0.1]


def test_growth_overrides_do_not_reach_standard_tier():
    result = asyncio.run(run_tiered_valuation(
        "AAPL", SNAPSHOT, None, growth_rates=[0.5] * 5, taper=False
    ))

    assert result.tier_used == Tier.STANDARD
    assert result.growth_schedule == "tapered"
    growth = [p.growth_rate for p in result.yearly_projections]
    assert growth[0] == pytest.approx(STANDARD_ASSUMPTIONS.revenue_growth_rate)
    assert growth[-1] == pytest.approx(STANDARD_ASSUMPTIONS.terminal_growth_rate)
