"""
Unit tests for the WACC calculator.
"""
import sys
from pathlib import Path

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fin_config import DEFAULT_BETA, DEFAULT_WACC, MAX_WACC, MIN_WACC
from services.models import AssumptionSet, FinancialSnapshot
from services.valuation import compute_wacc


def test_wacc_from_book_equity_and_debt():
    """Debt 50B against 150B of equity weights equity at 75%."""
    assumptions = AssumptionSet(
        ebitda_margin=0.3127,
        tax_rate=0.21,
        beta=1.2,
        risk_free_rate=0.036,
        market_risk_premium=0.047,
        cost_of_debt=0.036,
    )
    snapshot = FinancialSnapshot(revenue=100e9, total_debt=50e9, total_equity=150e9)

    breakdown = compute_wacc(assumptions, snapshot)

    assert breakdown.equity_weight == pytest.approx(0.75)
    assert breakdown.debt_weight == pytest.approx(0.25)
    assert breakdown.cost_of_equity == pytest.approx(0.036 + 1.2 * 0.047)
    assert breakdown.after_tax_cost_of_debt == pytest.approx(0.036 * (1 - 0.21))
    expected = 0.75 * (0.036 + 1.2 * 0.047) + 0.25 * 0.036 * (1 - 0.21)
    assert breakdown.wacc == pytest.approx(expected)
    assert MIN_WACC <= breakdown.wacc <= MAX_WACC
    assert breakdown.was_replaced is False


def test_market_equity_preferred_over_book_equity():
    snapshot = FinancialSnapshot(shares_outstanding=1e9, current_price=150.0, total_equity=10.0, total_debt=50e9)

    breakdown = compute_wacc(AssumptionSet(), snapshot)

    assert breakdown.equity_weight == pytest.approx(0.75)


def test_unlevered_when_no_capital():
    breakdown = compute_wacc(AssumptionSet(), FinancialSnapshot())

    assert breakdown.equity_weight == 1.0
    assert breakdown.debt_weight == 0.0
    assert breakdown.wacc == pytest.approx(breakdown.cost_of_equity)


def test_negative_debt_treated_as_zero():
    snapshot = FinancialSnapshot(shares_outstanding=1e9, current_price=10.0, total_debt=-5e9)

    breakdown = compute_wacc(AssumptionSet(), snapshot)

    assert breakdown.debt_weight == 0.0
    assert breakdown.equity_weight == 1.0


def test_wacc_outside_band_is_replaced():
    # Cost of equity 3.64% + 10 × 4.72% is far above the 30% ceiling
    breakdown = compute_wacc(AssumptionSet(beta=10.0), FinancialSnapshot())

    assert breakdown.wacc == DEFAULT_WACC
    assert breakdown.was_replaced is True


def test_non_positive_beta_uses_default_beta():
    breakdown = compute_wacc(AssumptionSet(beta=-1.0), FinancialSnapshot())

    expected = AssumptionSet().risk_free_rate + DEFAULT_BETA * AssumptionSet().market_risk_premium
    assert breakdown.cost_of_equity == pytest.approx(expected)


def test_wacc_always_within_band():
    for beta in [0.01, 0.5, 1.0, 2.0, 4.0, 50.0]:
        for debt in [0.0, 1e9, 1e12]:
            snapshot = FinancialSnapshot(shares_outstanding=1e9, current_price=20.0, total_debt=debt)
            breakdown = compute_wacc(AssumptionSet(beta=beta), snapshot)
            assert MIN_WACC <= breakdown.wacc <= MAX_WACC
