"""
Value types shared by the DCF valuation engine.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

import pandas as pd
from pydantic import BaseModel, ConfigDict, Field

from fin_config import (
    ASSUMPTION_CACHE_TTL_HOURS,
    COST_OF_DEBT,
    CORPORATE_TAX_RATE,
    DEFAULT_BETA,
    DEFAULT_CAPITAL_EXPENDITURE_RATIO,
    DEFAULT_CASH_AND_ST_INVESTMENTS_RATIO,
    DEFAULT_DEPRECIATION_RATIO,
    DEFAULT_EBIT_MARGIN,
    DEFAULT_EBITDA_MARGIN,
    DEFAULT_INVENTORY_RATIO,
    DEFAULT_OPERATING_CASH_FLOW_RATIO,
    DEFAULT_PAYABLES_RATIO,
    DEFAULT_RECEIVABLES_RATIO,
    DEFAULT_REVENUE_GROWTH_RATE,
    DEFAULT_SGA_RATIO,
    DEFAULT_TERMINAL_GROWTH_RATE,
    MARKET_RISK_PREMIUM,
    RISK_FREE_RATE,
)


class Tier(str, Enum):
    """Calculation tier that produced a DCFResult."""
    CUSTOM = "custom"
    STANDARD = "standard"
    SYNTHETIC = "synthetic"


# camelCase "...Pct" keys used by AI suggestion payloads, mapped to field names
SUGGESTION_KEY_ALIASES = {
    'revenueGrowthPct': 'revenue_growth_rate',
    'revenueGrowthRate': 'revenue_growth_rate',
    'ebitdaMarginPct': 'ebitda_margin',
    'ebitdaPct': 'ebitda_margin',
    'ebitPct': 'ebit_margin',
    'capitalExpenditurePct': 'capital_expenditure_ratio',
    'depreciationAndAmortizationPct': 'depreciation_ratio',
    'operatingCashFlowPct': 'operating_cash_flow_ratio',
    'sellingGeneralAndAdministrativeExpensesPct': 'sga_ratio',
    'cashAndShortTermInvestmentsPct': 'cash_and_st_investments_ratio',
    'receivablesPct': 'receivables_ratio',
    'inventoriesPct': 'inventory_ratio',
    'payablesPct': 'payables_ratio',
    'taxRatePct': 'tax_rate',
    'taxRate': 'tax_rate',
    'longTermGrowthRatePct': 'terminal_growth_rate',
    'longTermGrowthRate': 'terminal_growth_rate',
    'costOfDebtPct': 'cost_of_debt',
    'costOfDebt': 'cost_of_debt',
    'marketRiskPremiumPct': 'market_risk_premium',
    'marketRiskPremium': 'market_risk_premium',
    'riskFreeRatePct': 'risk_free_rate',
    'riskFreeRate': 'risk_free_rate',
}


class AssumptionSet(BaseModel):
    """Complete input to a valuation run. All rates and ratios are decimal fractions.

    Every field defaults to the canonical default, so ``AssumptionSet()`` is the
    standard assumption set. Instances are frozen; use ``model_copy(update=...)``
    to derive a changed set.
    """
    model_config = ConfigDict(frozen=True)

    # Growth
    revenue_growth_rate: float = Field(default=DEFAULT_REVENUE_GROWTH_RATE, description="Annual revenue growth in year 1")
    terminal_growth_rate: float = Field(default=DEFAULT_TERMINAL_GROWTH_RATE, description="Perpetual growth after the forecast period")

    # Margins / ratios of revenue
    ebitda_margin: float = Field(default=DEFAULT_EBITDA_MARGIN, description="EBITDA as a share of revenue")
    ebit_margin: float = Field(default=DEFAULT_EBIT_MARGIN, description="EBIT as a share of revenue")
    capital_expenditure_ratio: float = Field(default=DEFAULT_CAPITAL_EXPENDITURE_RATIO, description="Capex as a share of revenue")
    depreciation_ratio: float = Field(default=DEFAULT_DEPRECIATION_RATIO, description="D&A as a share of revenue")
    operating_cash_flow_ratio: float = Field(default=DEFAULT_OPERATING_CASH_FLOW_RATIO, description="Operating cash flow as a share of revenue")
    sga_ratio: float = Field(default=DEFAULT_SGA_RATIO, description="SG&A as a share of revenue")
    cash_and_st_investments_ratio: float = Field(default=DEFAULT_CASH_AND_ST_INVESTMENTS_RATIO, description="Cash and short-term investments as a share of revenue")
    receivables_ratio: float = Field(default=DEFAULT_RECEIVABLES_RATIO, description="Receivables as a share of revenue")
    inventory_ratio: float = Field(default=DEFAULT_INVENTORY_RATIO, description="Inventories as a share of revenue")
    payables_ratio: float = Field(default=DEFAULT_PAYABLES_RATIO, description="Payables as a share of revenue")

    # Tax / capital
    tax_rate: float = Field(default=CORPORATE_TAX_RATE, description="Effective tax rate")
    beta: float = Field(default=DEFAULT_BETA, description="Equity beta")
    risk_free_rate: float = Field(default=RISK_FREE_RATE, description="Risk-free rate")
    market_risk_premium: float = Field(default=MARKET_RISK_PREMIUM, description="Equity market risk premium")
    cost_of_debt: float = Field(default=COST_OF_DEBT, description="Pre-tax cost of debt")

    @property
    def cost_of_equity(self) -> float:
        """Cost of equity from CAPM: Re = Rf + beta * MRP."""
        return self.risk_free_rate + self.beta * self.market_risk_premium

    @classmethod
    def from_suggestion(cls, payload: Mapping[str, Any]) -> "AssumptionSet":
        """
        Build an AssumptionSet from a raw suggestion payload.

        Accepts field names or the camelCase ``...Pct`` keys used by the
        suggestion service, optionally nested under an ``assumptions`` key.
        Missing or null values fall back to defaults; non-numeric values raise
        ``pydantic.ValidationError``.
        """
        params = payload.get('assumptions') if isinstance(payload.get('assumptions'), Mapping) else payload

        values: Dict[str, Any] = {}
        for key, value in params.items():
            name = SUGGESTION_KEY_ALIASES.get(key, key)
            if name in cls.model_fields and value is not None:
                values[name] = value

        return cls(**values)


@dataclass(frozen=True)
class FinancialSnapshot:
    """Most recent reported financials for a company. Read-only input to the engine."""
    revenue: Optional[float] = None
    operating_income: Optional[float] = None
    net_income: Optional[float] = None
    shares_outstanding: Optional[float] = None
    total_debt: Optional[float] = None
    cash_and_equivalents: Optional[float] = None
    beta: Optional[float] = None
    current_price: Optional[float] = None
    total_equity: Optional[float] = None
    capital_expenditure: Optional[float] = None
    operating_cash_flow: Optional[float] = None
    fiscal_year: Optional[int] = None


@dataclass(frozen=True)
class YearlyProjection:
    year: str
    revenue: float
    ebit: float
    ebitda: float
    operating_cash_flow: float
    capital_expenditure: float  # negative outflow
    free_cash_flow: float
    growth_rate: float = 0.0


@dataclass(frozen=True)
class WACCBreakdown:
    wacc: float
    cost_of_equity: float
    after_tax_cost_of_debt: float
    debt_weight: float
    equity_weight: float
    was_replaced: bool = False


@dataclass(frozen=True)
class DCFResult:
    """Normalized valuation output, whichever tier produced it."""
    symbol: str
    wacc: float
    tax_rate: float
    long_term_growth_rate: float
    revenue: float
    free_cash_flow: float
    terminal_value: float
    present_value_of_terminal_value: float
    sum_of_discounted_free_cash_flows: float
    enterprise_value: float
    net_debt: float
    equity_value: float
    equity_value_per_share: float
    yearly_projections: Tuple[YearlyProjection, ...] = ()
    tier_used: Optional[Tier] = None
    shares_outstanding: float = 0.0
    current_price: Optional[float] = None
    growth_schedule: str = "tapered"
    was_repaired: bool = False
    notes: Tuple[str, ...] = ()
    failure_reasons: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data['tier_used'] = self.tier_used.value if self.tier_used else None
        data['yearly_projections'] = [asdict(p) for p in self.yearly_projections]
        data['notes'] = list(self.notes)
        data['failure_reasons'] = list(self.failure_reasons)
        return data


@dataclass(frozen=True)
class SensitivityGrid:
    row_labels: List[str]
    column_labels: List[str]
    cells: List[List[float]]
    growth_rates: List[float] = field(default_factory=list)
    discount_rates: List[float] = field(default_factory=list)

    def to_dataframe(self) -> pd.DataFrame:
        """Grid as a DataFrame: growth-rate rows, discount-rate columns."""
        df = pd.DataFrame(self.cells, index=self.row_labels, columns=self.column_labels)
        df.index.name = "Growth / WACC"
        return df


@dataclass(frozen=True)
class AssumptionCacheEntry:
    symbol: str
    assumptions: AssumptionSet
    created_at: datetime
    expires_at: datetime

    def __post_init__(self):
        if self.expires_at <= self.created_at:
            raise ValueError(
                f"Cache entry for {self.symbol} must expire after it was created "
                f"(created_at={self.created_at.isoformat()}, expires_at={self.expires_at.isoformat()})"
            )

    @classmethod
    def create(
        cls,
        symbol: str,
        assumptions: AssumptionSet,
        ttl: timedelta = timedelta(hours=ASSUMPTION_CACHE_TTL_HOURS),
        now: Optional[datetime] = None,
    ) -> "AssumptionCacheEntry":
        created_at = now or datetime.now(timezone.utc)
        return cls(symbol=symbol, assumptions=assumptions, created_at=created_at, expires_at=created_at + ttl)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return now >= self.expires_at
