"""
Resolves the AssumptionSet for a valuation: cached suggestion, fresh AI
suggestion, or defaults derived from the company's own financials.
"""
import asyncio
import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any, Mapping, Optional

from config import (
    ASSUMPTION_CACHE_BACKEND,
    ASSUMPTION_CACHE_DB_PATH,
    OPENAI_API_KEY,
    SUGGESTION_TIMEOUT_SECONDS,
)
from fin_config import MAX_ASSUMPTION_VALUE, MIN_ASSUMPTION_VALUE
from services.errors import UpstreamFailure
from services.models import AssumptionSet, FinancialSnapshot
from services.valuation import is_finite

# Cache and suggestion modules import services.models; they are imported lazily to avoid circular imports
if TYPE_CHECKING:
    from repositories.assumption_cache import AssumptionCache
    from suggestions.suggestion_service import SuggestionService

logger = logging.getLogger(__name__)

# The one canonical default assumption set (cost of equity 3.64% + 1.244 × 4.72% = 9.51%)
STANDARD_ASSUMPTIONS = AssumptionSet()

_default_cache: Optional["AssumptionCache"] = None
_default_suggestion_service: Optional["SuggestionService"] = None


def get_default_cache() -> "AssumptionCache":
    """Get or create the process-wide assumption cache."""
    global _default_cache
    if _default_cache is None:
        from repositories.assumption_cache import DuckDBAssumptionCache, InMemoryAssumptionCache

        if ASSUMPTION_CACHE_BACKEND == "duckdb":
            _default_cache = DuckDBAssumptionCache(ASSUMPTION_CACHE_DB_PATH)
        else:
            _default_cache = InMemoryAssumptionCache()
    return _default_cache


def get_default_suggestion_service() -> Optional["SuggestionService"]:
    """Get the OpenAI-backed suggestion service, or None when no OpenAI key is configured."""
    global _default_suggestion_service
    if _default_suggestion_service is None and OPENAI_API_KEY:
        from suggestions.suggestion_service import OpenAISuggestionService

        _default_suggestion_service = OpenAISuggestionService()
    return _default_suggestion_service


def _ratio(numerator, revenue) -> Optional[float]:
    if not is_finite(numerator) or not is_finite(revenue) or revenue <= 0:
        return None
    value = numerator / revenue
    if MIN_ASSUMPTION_VALUE <= value <= MAX_ASSUMPTION_VALUE:
        return float(value)
    return None


def default_assumptions(snapshot: Optional[FinancialSnapshot] = None) -> AssumptionSet:
    """
    Standard assumptions, adjusted with whatever the snapshot can tell us.

    Capex ratio, EBIT margin, operating cash flow ratio and beta are taken
    from the snapshot when it has usable values; everything else stays at the
    canonical defaults.
    """
    if snapshot is None:
        return STANDARD_ASSUMPTIONS

    updates = {
        'capital_expenditure_ratio': _ratio(
            abs(snapshot.capital_expenditure) if is_finite(snapshot.capital_expenditure) else None,
            snapshot.revenue,
        ),
        'ebit_margin': _ratio(snapshot.operating_income, snapshot.revenue),
        'operating_cash_flow_ratio': _ratio(snapshot.operating_cash_flow, snapshot.revenue),
    }
    if is_finite(snapshot.beta) and 0 < snapshot.beta <= MAX_ASSUMPTION_VALUE:
        updates['beta'] = float(snapshot.beta)

    updates = {name: value for name, value in updates.items() if value is not None}
    if not updates:
        return STANDARD_ASSUMPTIONS
    return STANDARD_ASSUMPTIONS.model_copy(update=updates)


def _to_assumption_set(suggestion: Any) -> AssumptionSet:
    if isinstance(suggestion, AssumptionSet):
        assumptions = suggestion
    elif isinstance(suggestion, Mapping):
        assumptions = AssumptionSet.from_suggestion(suggestion)
    else:
        raise UpstreamFailure(f"Unexpected suggestion type: {type(suggestion).__name__}")

    bad = [name for name, value in assumptions.model_dump().items() if not is_finite(value)]
    if bad:
        raise UpstreamFailure(f"Suggestion has non-finite values for {bad}")
    return assumptions


async def resolve_assumptions(
    symbol: str,
    snapshot: Optional[FinancialSnapshot] = None,
    force_refresh: bool = False,
    suggestion_service: Optional["SuggestionService"] = None,
    cache: Optional["AssumptionCache"] = None,
    timeout: float = SUGGESTION_TIMEOUT_SECONDS,
    now: Optional[datetime] = None,
) -> AssumptionSet:
    """
    Return the assumption set to value ``symbol`` with. Never raises.

    1. A non-expired cached suggestion, unless ``force_refresh``.
    2. A fresh suggestion (single call, bounded by ``timeout``), which is
       cached for 24 hours.
    3. ``default_assumptions(snapshot)`` when no suggestion can be had.
    """
    cache = cache if cache is not None else get_default_cache()
    suggestion_service = suggestion_service if suggestion_service is not None else get_default_suggestion_service()

    if not force_refresh:
        try:
            entry = cache.get(symbol, now=now)
        except Exception as e:
            logger.warning(f"Failed to read cached assumptions for {symbol}: {e}")
            entry = None
        if entry is not None:
            logger.info(f"Using cached DCF assumptions for {symbol}")
            return entry.assumptions

    if suggestion_service is None:
        logger.info(f"No suggestion service configured, using default assumptions for {symbol}")
        return default_assumptions(snapshot)

    try:
        suggestion = await asyncio.wait_for(
            suggestion_service.get_suggestion(symbol, force_refresh),
            timeout=timeout,
        )
        assumptions = _to_assumption_set(suggestion)
    except asyncio.TimeoutError:
        logger.warning(f"Assumption suggestion for {symbol} timed out after {timeout}s, using defaults")
        return default_assumptions(snapshot)
    except Exception as e:
        logger.warning(f"Assumption suggestion for {symbol} failed, using defaults: {e}")
        return default_assumptions(snapshot)

    try:
        cache.upsert(symbol, assumptions, now=now)
    except Exception as e:
        logger.error(f"Failed to cache assumptions for {symbol}: {e}")

    return assumptions
