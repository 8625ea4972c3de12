"""Financial Modeling Prep API client for company data and custom DCF calculations."""

import logging
from typing import Any, Dict, List, Optional

import requests

from config import FMP_API_KEY, FMP_REQUEST_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


class FMPClient:
    """Client for Financial Modeling Prep API."""

    BASE_URL = "https://financialmodelingprep.com/api/v3"
    STABLE_URL = "https://financialmodelingprep.com/stable"

    def __init__(self, api_key: Optional[str] = FMP_API_KEY, timeout: float = FMP_REQUEST_TIMEOUT_SECONDS):
        """Initialize the FMP client.

        Args:
            api_key: Financial Modeling Prep API key
            timeout: Per-request timeout in seconds
        """
        self.api_key = api_key
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _get(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        query = dict(params or {})
        query["apikey"] = self.api_key
        response = requests.get(url, params=query, timeout=self.timeout)
        response.raise_for_status()
        return response.json()

    def get_profile(self, symbol: str) -> Optional[Dict]:
        """Get the company profile (name, sector, beta, market cap, price).

        Returns:
            Dictionary with profile data or None if not found
        """
        try:
            data = self._get(f"{self.BASE_URL}/profile/{symbol}")
            return data[0] if data else None
        except (requests.RequestException, IndexError, KeyError, ValueError) as e:
            logger.error(f"Error getting profile for {symbol}: {e}")
            return None

    def get_income_statements(self, symbol: str, limit: int = 5) -> List[Dict]:
        """Get the most recent annual income statements, newest first."""
        try:
            return self._get(f"{self.BASE_URL}/income-statement/{symbol}", {"limit": limit}) or []
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Error getting income statements for {symbol}: {e}")
            return []

    def get_cash_flow_statements(self, symbol: str, limit: int = 5) -> List[Dict]:
        """Get the most recent annual cash flow statements, newest first."""
        try:
            return self._get(f"{self.BASE_URL}/cash-flow-statement/{symbol}", {"limit": limit}) or []
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Error getting cash flow statements for {symbol}: {e}")
            return []

    def get_custom_dcf(self, symbol: str, params: Dict[str, Any]) -> Any:
        """Run FMP's custom DCF calculation with the given assumption parameters.

        Errors are not swallowed here; callers decide how a failed calculation
        is handled.

        Example response row (one per projected year):
            {
                "year": "2025",
                "symbol": "AAPL",
                "revenue": 423000000000,
                "ebitda": 132000000000,
                "wacc": 9.12,
                "longTermGrowthRate": 3,
                "terminalValue": 3400000000000,
                "presentTerminalValue": 2200000000000,
                "enterpriseValue": 2700000000000,
                "netDebt": 76000000000,
                "equityValue": 2624000000000,
                "equityValuePerShare": 171.3,
                "freeCashFlow": 105000000000
            }
        """
        query = {"symbol": symbol.upper()}
        query.update({k: v for k, v in params.items() if v is not None})
        return self._get(f"{self.STABLE_URL}/custom-discounted-cash-flow", query)
