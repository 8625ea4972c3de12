"""
Remote DCF calculation through Financial Modeling Prep, and normalization of
its raw rows into a DCFResult.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Mapping, Optional

from services.errors import UpstreamFailure
from services.models import AssumptionSet, DCFResult, FinancialSnapshot, Tier, YearlyProjection
from services.valuation import is_finite
from suggestions.fmp_client import FMPClient

logger = logging.getLogger(__name__)

# AssumptionSet field -> FMP custom DCF query parameter
FMP_PARAMETER_NAMES = {
    'revenue_growth_rate': 'revenueGrowthPct',
    'ebitda_margin': 'ebitdaPct',
    'capital_expenditure_ratio': 'capitalExpenditurePct',
    'tax_rate': 'taxRate',
    'depreciation_ratio': 'depreciationAndAmortizationPct',
    'cash_and_st_investments_ratio': 'cashAndShortTermInvestmentsPct',
    'receivables_ratio': 'receivablesPct',
    'inventory_ratio': 'inventoriesPct',
    'payables_ratio': 'payablesPct',
    'ebit_margin': 'ebitPct',
    'operating_cash_flow_ratio': 'operatingCashFlowPct',
    'sga_ratio': 'sellingGeneralAndAdministrativeExpensesPct',
    'terminal_growth_rate': 'longTermGrowthRate',
    'cost_of_debt': 'costOfDebt',
    'market_risk_premium': 'marketRiskPremium',
    'risk_free_rate': 'riskFreeRate',
    'beta': 'beta',
}


class RemoteCalculationService(ABC):
    """Performs a DCF calculation outside the process and returns raw result rows."""

    @abstractmethod
    async def calculate(self, symbol: str, assumptions: AssumptionSet, tier: Tier) -> List[Dict]:
        ...


class FMPCalculationService(RemoteCalculationService):
    """Remote calculation backed by the FMP custom DCF endpoint."""

    def __init__(self, client: Optional[FMPClient] = None):
        self.client = client or FMPClient()

    @property
    def is_configured(self) -> bool:
        return self.client.is_configured

    async def calculate(self, symbol: str, assumptions: AssumptionSet, tier: Tier) -> List[Dict]:
        params = to_fmp_parameters(assumptions)
        logger.info(f"Requesting {tier.value} DCF for {symbol} from FMP")
        try:
            data = await asyncio.to_thread(self.client.get_custom_dcf, symbol, params)
        except Exception as e:
            raise UpstreamFailure(f"FMP custom DCF request for {symbol} failed: {e}") from e

        if isinstance(data, dict):
            if 'error' in data or 'Error Message' in data:
                raise UpstreamFailure(f"FMP custom DCF error for {symbol}: {data}")
            data = [data]
        return data


def to_fmp_parameters(assumptions: AssumptionSet) -> Dict[str, float]:
    return {
        fmp_name: getattr(assumptions, field_name)
        for field_name, fmp_name in FMP_PARAMETER_NAMES.items()
    }


def _number(row: Mapping[str, Any], *keys: str) -> float:
    """First usable numeric value among ``keys``; missing values become 0."""
    for key in keys:
        value = row.get(key)
        if value is None:
            continue
        try:
            number = float(value)
        except (TypeError, ValueError):
            continue
        if is_finite(number):
            return number
    return 0.0


def _as_rate(value: float) -> float:
    """
    FMP reports some rates as percentages (9.1 for 9.1%).

    Values above 1 are read as percentages and anything else as a fraction,
    so a percentage below 1% (0.9 meaning 0.9%) is taken as 90%. A lower
    cut-off such as 0.2 would instead misread fractional tax rates like 0.21.
    """
    return value / 100 if value > 1 else value


def _year_key(row: Mapping[str, Any]):
    year = row.get('year') or row.get('date') or ''
    try:
        return 0, int(str(year)[:4])
    except ValueError:
        return 1, str(year)


def _free_cash_flow(row: Mapping[str, Any]) -> float:
    if row.get('freeCashFlow') is not None or row.get('ufcf') is not None:
        return _number(row, 'freeCashFlow', 'ufcf')
    operating_cash_flow = _number(row, 'operatingCashFlow')
    return operating_cash_flow - abs(_number(row, 'capitalExpenditure'))


def _to_projection(row: Mapping[str, Any]) -> YearlyProjection:
    return YearlyProjection(
        year=str(row.get('year') or row.get('date') or ''),
        revenue=_number(row, 'revenue'),
        ebit=_number(row, 'ebit'),
        ebitda=_number(row, 'ebitda'),
        operating_cash_flow=_number(row, 'operatingCashFlow'),
        capital_expenditure=-abs(_number(row, 'capitalExpenditure')),
        free_cash_flow=_free_cash_flow(row),
        growth_rate=_number(row, 'revenuePercentage', 'revenueGrowth') / 100,
    )


def normalize_remote_result(
    raw: Any,
    symbol: str,
    tier: Tier,
    snapshot: Optional[FinancialSnapshot] = None,
) -> DCFResult:
    """
    Turn raw FMP DCF rows into a DCFResult.

    The first row supplies the valuation totals; when several rows are
    returned they become the yearly projections, sorted by year. Missing
    fields become 0, percentage-style rates are converted to decimals and the
    equity value is always derived as enterprise value - net debt.

    Raises:
        UpstreamFailure: the payload is empty or not a list of objects
    """
    if isinstance(raw, Mapping):
        raw = [raw]
    if not isinstance(raw, list) or not raw:
        raise UpstreamFailure(f"Empty or malformed DCF payload for {symbol}: {type(raw).__name__}")
    if not all(isinstance(row, Mapping) for row in raw):
        raise UpstreamFailure(f"Malformed DCF rows for {symbol}")

    first = raw[0]
    enterprise_value = _number(first, 'enterpriseValue')
    net_debt = _number(first, 'netDebt')
    equity_value = enterprise_value - net_debt

    shares = _number(first, 'dilutedSharesOutstanding')
    if shares <= 0 and snapshot is not None and is_finite(snapshot.shares_outstanding):
        shares = float(snapshot.shares_outstanding)

    price = _number(first, 'price', 'Stock Price')
    if price <= 0 and snapshot is not None:
        price = snapshot.current_price

    per_share = _number(first, 'equityValuePerShare', 'dcf')
    if per_share == 0 and shares > 0:
        per_share = equity_value / shares

    projections = ()
    if len(raw) > 1:
        projections = tuple(_to_projection(row) for row in sorted(raw, key=_year_key))

    return DCFResult(
        symbol=symbol,
        wacc=_as_rate(_number(first, 'wacc')),
        tax_rate=_as_rate(_number(first, 'taxRate')),
        long_term_growth_rate=_as_rate(_number(first, 'longTermGrowthRate')),
        revenue=_number(first, 'revenue'),
        free_cash_flow=_free_cash_flow(first),
        terminal_value=_number(first, 'terminalValue'),
        present_value_of_terminal_value=_number(first, 'presentTerminalValue'),
        sum_of_discounted_free_cash_flows=_number(first, 'sumPvLfcf', 'sumPvUfcf'),
        enterprise_value=enterprise_value,
        net_debt=net_debt,
        equity_value=equity_value,
        equity_value_per_share=per_share,
        yearly_projections=projections,
        tier_used=tier,
        shares_outstanding=shares,
        current_price=price,
        growth_schedule="remote",
    )
