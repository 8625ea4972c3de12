"""
AI-generated DCF assumption suggestions.

Company data comes from Financial Modeling Prep; the parameters are produced
by an OpenAI chat model with structured output and clamped to plausible ranges.
"""
import asyncio
import logging
import math
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from langchain_core.messages import HumanMessage
from langchain_openai import ChatOpenAI
from pydantic import BaseModel, Field

from config import OPENAI_MODEL
from fin_config import SUGGESTION_BOUNDS
from services.errors import UpstreamFailure
from services.models import AssumptionSet
from suggestions.fmp_client import FMPClient
from suggestions.prompts import get_dcf_assumptions_prompt

logger = logging.getLogger(__name__)


class AssumptionSuggestion(BaseModel):
    """DCF parameters suggested by the LLM. Values are decimal fractions."""
    revenue_growth_rate: Optional[float] = Field(default=None, description="Expected annual revenue growth")
    ebitda_margin: Optional[float] = Field(default=None, description="EBITDA as a share of revenue")
    ebit_margin: Optional[float] = Field(default=None, description="EBIT as a share of revenue")
    depreciation_ratio: Optional[float] = Field(default=None, description="D&A as a share of revenue")
    capital_expenditure_ratio: Optional[float] = Field(default=None, description="Capex as a share of revenue")
    operating_cash_flow_ratio: Optional[float] = Field(default=None, description="Operating cash flow as a share of revenue")
    sga_ratio: Optional[float] = Field(default=None, description="SG&A as a share of revenue")
    cash_and_st_investments_ratio: Optional[float] = Field(default=None, description="Cash and short-term investments as a share of revenue")
    receivables_ratio: Optional[float] = Field(default=None, description="Receivables as a share of revenue")
    inventory_ratio: Optional[float] = Field(default=None, description="Inventories as a share of revenue")
    payables_ratio: Optional[float] = Field(default=None, description="Payables as a share of revenue")
    tax_rate: Optional[float] = Field(default=None, description="Effective tax rate")
    terminal_growth_rate: Optional[float] = Field(default=None, description="Long-term growth rate after the forecast period")
    cost_of_debt: Optional[float] = Field(default=None, description="Pre-tax cost of debt")
    market_risk_premium: Optional[float] = Field(default=None, description="Equity market risk premium")
    risk_free_rate: Optional[float] = Field(default=None, description="Risk-free rate")
    beta: Optional[float] = Field(default=None, description="Equity beta")
    explanation: str = Field(default="", description="Brief reasoning behind the parameters")


class SuggestionService(ABC):
    """Produces an AssumptionSet for a symbol."""

    @abstractmethod
    async def get_suggestion(self, symbol: str, refresh: bool = False) -> AssumptionSet:
        ...


def clamp(value: Optional[float], low: float, high: float) -> float:
    """Clamp ``value`` into [low, high]; a missing value takes the middle of the range."""
    if value is None or not math.isfinite(value):
        return (low + high) / 2
    return max(low, min(high, value))


def normalize_suggestion(suggestion: AssumptionSuggestion, profile: Optional[Dict] = None) -> AssumptionSet:
    """Clamp every suggested parameter to SUGGESTION_BOUNDS and build an AssumptionSet."""
    values = {}
    for name, (low, high) in SUGGESTION_BOUNDS.items():
        value = getattr(suggestion, name)
        if name == 'beta' and value is None and profile and profile.get('beta'):
            value = float(profile['beta'])
        values[name] = clamp(value, low, high)
    return AssumptionSet(**values)


def _safe_ratio(numerator, denominator) -> Optional[float]:
    if numerator is None or not denominator:
        return None
    return numerator / denominator


def summarize_financials(income_statements: List[Dict], cash_flows: List[Dict]) -> Dict:
    """Key metrics from the latest statements (newest first) for the prompt."""
    latest = income_statements[0] if income_statements else {}
    previous = income_statements[1] if len(income_statements) > 1 else {}
    latest_cash_flow = cash_flows[0] if cash_flows else {}

    revenue = latest.get('revenue')
    previous_revenue = previous.get('revenue')
    revenue_growth = None
    if revenue is not None and previous_revenue:
        revenue_growth = (revenue - previous_revenue) / previous_revenue

    return {
        'revenue': revenue,
        'revenue_growth': revenue_growth,
        'ebitda_margin': _safe_ratio(latest.get('ebitda'), revenue),
        'ebit_margin': _safe_ratio(latest.get('operatingIncome', latest.get('ebit')), revenue),
        'net_income': latest.get('netIncome'),
        'tax_rate': _safe_ratio(latest.get('incomeTaxExpense'), latest.get('incomeBeforeTax')),
        'operating_cash_flow': latest_cash_flow.get('operatingCashFlow'),
        'capital_expenditure': latest_cash_flow.get('capitalExpenditure'),
    }


class OpenAISuggestionService(SuggestionService):
    """Suggests assumptions with an OpenAI model, grounded in FMP company data."""

    def __init__(self, fmp_client: Optional[FMPClient] = None, llm=None, model: str = OPENAI_MODEL):
        self.fmp_client = fmp_client or FMPClient()
        self.model = model
        self._llm = llm

    @property
    def llm(self):
        if self._llm is None:
            self._llm = ChatOpenAI(model=self.model, temperature=0.3)
        return self._llm

    async def _fetch_company_data(self, symbol: str) -> Tuple[Optional[Dict], List[Dict], List[Dict]]:
        if not self.fmp_client.is_configured:
            logger.warning(f"FMP API key not configured, suggesting assumptions for {symbol} without company data")
            return None, [], []

        return await asyncio.gather(
            asyncio.to_thread(self.fmp_client.get_profile, symbol),
            asyncio.to_thread(self.fmp_client.get_income_statements, symbol),
            asyncio.to_thread(self.fmp_client.get_cash_flow_statements, symbol),
        )

    async def get_suggestion(self, symbol: str, refresh: bool = False) -> AssumptionSet:
        """
        Ask the LLM for a full assumption set for ``symbol``.

        ``refresh`` is accepted for interface compatibility; this service keeps
        no state of its own, so every call generates a new suggestion.

        Raises:
            UpstreamFailure: the model call failed or returned no usable data
        """
        logger.info(f"Generating DCF assumptions with AI for {symbol} (refresh={refresh})")
        profile, income_statements, cash_flows = await self._fetch_company_data(symbol)
        metrics = summarize_financials(income_statements, cash_flows)
        prompt = get_dcf_assumptions_prompt(symbol, profile, metrics)

        structured_llm = self.llm.with_structured_output(AssumptionSuggestion)
        try:
            response = await structured_llm.ainvoke([HumanMessage(content=prompt)])
        except Exception as e:
            raise UpstreamFailure(f"Assumption suggestion for {symbol} failed: {e}") from e

        if response is None:
            raise UpstreamFailure(f"No assumption suggestion returned for {symbol}")
        if isinstance(response, dict):
            response = AssumptionSuggestion(**response)

        assumptions = normalize_suggestion(response, profile)
        if response.explanation:
            logger.info(f"AI reasoning for {symbol}: {response.explanation}")
        return assumptions
