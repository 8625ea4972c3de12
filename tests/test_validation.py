"""
Unit tests for result validation and assumption repair.
"""
import math
import sys
from dataclasses import replace
from pathlib import Path

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from fin_config import DEFAULT_BETA, DEFAULT_EQUITY_VALUE_PER_SHARE, DEFAULT_REVENUE_GROWTH_RATE
from services.models import AssumptionSet, DCFResult, Tier, YearlyProjection
from services.validation import repair_assumptions, validate


def make_result(**overrides):
    values = dict(
        symbol="TEST",
        wacc=0.09,
        tax_rate=0.21,
        long_term_growth_rate=0.03,
        revenue=1000.0,
        free_cash_flow=100.0,
        terminal_value=1700.0,
        present_value_of_terminal_value=1100.0,
        sum_of_discounted_free_cash_flows=400.0,
        enterprise_value=1500.0,
        net_debt=200.0,
        equity_value=1300.0,
        equity_value_per_share=13.0,
        yearly_projections=(
            YearlyProjection("2025", 1000.0, 250.0, 300.0, 280.0, -30.0, 250.0, 0.08),
        ),
        tier_used=Tier.STANDARD,
        shares_outstanding=100.0,
        current_price=20.0,
    )
    values.update(overrides)
    return DCFResult(**values)


def test_valid_result_is_returned_unchanged():
    result = make_result()

    assert validate(result) is result


def test_infinite_per_share_uses_current_price():
    validated = validate(make_result(equity_value_per_share=float('inf')))

    assert validated.equity_value_per_share == 20.0
    assert validated.was_repaired is True
    assert "per_share_replaced" in validated.notes
    assert validated.tier_used == Tier.STANDARD


def test_implausible_per_share_without_price_uses_default():
    too_high = validate(make_result(equity_value_per_share=5e6, current_price=None))
    negative = validate(make_result(equity_value_per_share=-3.0, current_price=None))

    assert too_high.equity_value_per_share == DEFAULT_EQUITY_VALUE_PER_SHARE
    assert negative.equity_value_per_share == DEFAULT_EQUITY_VALUE_PER_SHARE


def test_non_finite_enterprise_value_recomputes_equity():
    validated = validate(make_result(enterprise_value=float('nan')))

    assert validated.enterprise_value == 0.0
    assert validated.equity_value == pytest.approx(-200.0)
    assert "enterprise_value_replaced" in validated.notes


def test_non_finite_projection_values_become_zero():
    projection = YearlyProjection("2025", float('nan'), 1.0, 1.0, float('inf'), -1.0, 1.0, 0.05)
    validated = validate(make_result(yearly_projections=(projection,)))

    repaired = validated.yearly_projections[0]
    assert repaired.revenue == 0.0
    assert repaired.operating_cash_flow == 0.0
    assert repaired.year == "2025"
    assert "projection_values_replaced" in validated.notes


def test_validated_result_has_only_finite_numbers():
    broken = make_result(
        terminal_value=float('inf'),
        net_debt=float('nan'),
        equity_value=float('nan'),
        equity_value_per_share=float('nan'),
    )

    validated = validate(broken)

    for name in ('terminal_value', 'net_debt', 'equity_value', 'equity_value_per_share', 'enterprise_value'):
        assert math.isfinite(getattr(validated, name))
    assert validated.equity_value == pytest.approx(validated.enterprise_value - validated.net_debt)


def test_existing_notes_are_kept():
    validated = validate(replace(make_result(equity_value_per_share=0.0), notes=("terminal_growth_adjusted",)))

    assert validated.notes[0] == "terminal_growth_adjusted"
    assert "per_share_replaced" in validated.notes


def test_repair_assumptions_replaces_unusable_values():
    repaired, replaced = repair_assumptions(
        AssumptionSet(revenue_growth_rate=float('nan'), beta=0.0, tax_rate=0.25)
    )

    assert replaced == ['beta', 'revenue_growth_rate']
    assert repaired.beta == DEFAULT_BETA
    assert repaired.revenue_growth_rate == DEFAULT_REVENUE_GROWTH_RATE
    assert repaired.tax_rate == 0.25


def test_repair_assumptions_keeps_clean_set():
    assumptions = AssumptionSet(revenue_growth_rate=0.2)

    repaired, replaced = repair_assumptions(assumptions)

    assert repaired is assumptions
    assert replaced == []
