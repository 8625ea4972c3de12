"""
Unit tests for assumption resolution: cache, AI suggestion and defaults.
"""
import asyncio
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from pydantic import ValidationError

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from repositories.assumption_cache import InMemoryAssumptionCache
from services.assumptions import STANDARD_ASSUMPTIONS, default_assumptions, resolve_assumptions
from services.models import AssumptionSet, FinancialSnapshot
from suggestions.suggestion_service import SuggestionService


NOW = datetime(2026, 1, 5, 12, 0, tzinfo=timezone.utc)
SNAPSHOT = FinancialSnapshot(
    revenue=100.0,
    operating_income=30.0,
    operating_cash_flow=25.0,
    capital_expenditure=-5.0,
    beta=1.1,
)


class FakeSuggestionService(SuggestionService):
    def __init__(self, suggestion=None, error=None, delay=0.0):
        self.suggestion = suggestion if suggestion is not None else AssumptionSet(revenue_growth_rate=0.12)
        self.error = error
        self.delay = delay
        self.calls = []

    async def get_suggestion(self, symbol, refresh=False):
        self.calls.append((symbol, refresh))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return self.suggestion


class BrokenWriteCache(InMemoryAssumptionCache):
    def set(self, entry):
        raise RuntimeError("disk full")


def resolve(**kwargs):
    kwargs.setdefault('now', NOW)
    return asyncio.run(resolve_assumptions("AAPL", **kwargs))


def test_cache_hit_skips_suggestion_service():
    cache = InMemoryAssumptionCache()
    cache.upsert("AAPL", AssumptionSet(revenue_growth_rate=0.2), now=NOW)
    service = FakeSuggestionService()

    assumptions = resolve(cache=cache, suggestion_service=service, now=NOW + timedelta(hours=1))

    assert assumptions.revenue_growth_rate == 0.2
    assert service.calls == []


def test_expired_entry_is_refreshed_and_cached():
    cache = InMemoryAssumptionCache()
    cache.upsert("AAPL", AssumptionSet(revenue_growth_rate=0.2), now=NOW)
    service = FakeSuggestionService()
    later = NOW + timedelta(hours=25)

    assumptions = resolve(cache=cache, suggestion_service=service, now=later)

    assert assumptions.revenue_growth_rate == 0.12
    assert len(service.calls) == 1
    assert cache.get("AAPL", now=later).assumptions.revenue_growth_rate == 0.12


def test_force_refresh_bypasses_cache():
    cache = InMemoryAssumptionCache()
    cache.upsert("AAPL", AssumptionSet(revenue_growth_rate=0.2), now=NOW)
    service = FakeSuggestionService()

    assumptions = resolve(cache=cache, suggestion_service=service, force_refresh=True)

    assert assumptions.revenue_growth_rate == 0.12
    assert service.calls == [("AAPL", True)]


def test_failed_suggestion_returns_defaults():
    cache = InMemoryAssumptionCache()
    service = FakeSuggestionService(error=RuntimeError("rate limited"))

    assumptions = resolve(cache=cache, suggestion_service=service, snapshot=SNAPSHOT)

    assert assumptions == default_assumptions(SNAPSHOT)
    assert len(cache) == 0


@pytest.mark.parametrize("age", [timedelta(hours=1), timedelta(hours=25)], ids=["fresh", "expired"])
def test_forced_refresh_failure_ignores_cached_entry(age):
    cache = InMemoryAssumptionCache()
    cache.upsert("AAPL", AssumptionSet(revenue_growth_rate=0.2), now=NOW - age)
    service = FakeSuggestionService(error=RuntimeError("rate limited"))

    assumptions = resolve(cache=cache, suggestion_service=service, snapshot=SNAPSHOT, force_refresh=True)

    assert assumptions == default_assumptions(SNAPSHOT)
    assert assumptions.revenue_growth_rate != 0.2
    assert service.calls == [("AAPL", True)]


def test_slow_suggestion_times_out_to_defaults():
    service = FakeSuggestionService(delay=5)

    assumptions = resolve(cache=InMemoryAssumptionCache(), suggestion_service=service, timeout=0.05)

    assert assumptions == STANDARD_ASSUMPTIONS


def test_no_service_configured_returns_defaults(monkeypatch):
    monkeypatch.setattr("services.assumptions.get_default_suggestion_service", lambda: None)

    assumptions = resolve(cache=InMemoryAssumptionCache(), snapshot=SNAPSHOT)

    assert assumptions == default_assumptions(SNAPSHOT)


def test_mapping_suggestion_is_converted():
    service = FakeSuggestionService(suggestion={'revenueGrowthPct': 0.15, 'ebitdaPct': 0.4})

    assumptions = resolve(cache=InMemoryAssumptionCache(), suggestion_service=service)

    assert assumptions.revenue_growth_rate == 0.15
    assert assumptions.ebitda_margin == 0.4
    assert assumptions.tax_rate == STANDARD_ASSUMPTIONS.tax_rate


def test_non_finite_suggestion_is_rejected():
    cache = InMemoryAssumptionCache()
    service = FakeSuggestionService(suggestion=AssumptionSet(beta=float('nan')))

    assumptions = resolve(cache=cache, suggestion_service=service)

    assert assumptions == STANDARD_ASSUMPTIONS
    assert cache.get("AAPL", now=NOW) is None


def test_cache_write_failure_still_returns_suggestion():
    service = FakeSuggestionService()

    assumptions = resolve(cache=BrokenWriteCache(), suggestion_service=service)

    assert assumptions.revenue_growth_rate == 0.12


def test_default_assumptions_use_snapshot_ratios():
    assumptions = default_assumptions(SNAPSHOT)

    assert assumptions.capital_expenditure_ratio == pytest.approx(0.05)
    assert assumptions.ebit_margin == pytest.approx(0.30)
    assert assumptions.operating_cash_flow_ratio == pytest.approx(0.25)
    assert assumptions.beta == 1.1
    assert assumptions.revenue_growth_rate == STANDARD_ASSUMPTIONS.revenue_growth_rate


def test_default_assumptions_without_revenue():
    assumptions = default_assumptions(FinancialSnapshot(revenue=0.0))

    assert assumptions is STANDARD_ASSUMPTIONS


def test_standard_cost_of_equity():
    assert STANDARD_ASSUMPTIONS.cost_of_equity == pytest.approx(0.0364 + 1.244 * 0.0472)


def test_from_suggestion_accepts_nested_payload():
    assumptions = AssumptionSet.from_suggestion({
        'assumptions': {'longTermGrowthRate': 0.025, 'beta': 0.9, 'costOfDebt': None},
        'explanation': "steady grower",
    })

    assert assumptions.terminal_growth_rate == 0.025
    assert assumptions.beta == 0.9
    assert assumptions.cost_of_debt == STANDARD_ASSUMPTIONS.cost_of_debt


def test_from_suggestion_rejects_non_numeric():
    with pytest.raises(ValidationError):
        AssumptionSet.from_suggestion({'beta': "high"})


def test_assumption_set_is_frozen():
    with pytest.raises(ValidationError):
        STANDARD_ASSUMPTIONS.beta = 2.0
