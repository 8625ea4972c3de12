"""
Financial data service building a FinancialSnapshot from yfinance data.
"""
import logging
from typing import Dict, List, Optional

import pandas as pd
import yfinance as yf

from services.errors import InputError
from services.models import FinancialSnapshot

logger = logging.getLogger(__name__)

REVENUE_KEYS = ['Total Revenue', 'Operating Revenue']
OPERATING_INCOME_KEYS = ['Operating Income', 'EBIT']
NET_INCOME_KEYS = ['Net Income', 'Net Income Common Stockholders']
TOTAL_DEBT_KEYS = ['Total Debt']
CASH_KEYS = ['Cash And Cash Equivalents', 'Cash Cash Equivalents And Short Term Investments']
EQUITY_KEYS = ['Stockholders Equity', 'Total Equity Gross Minority Interest']
CAPEX_KEYS = ['Capital Expenditure', 'Capital Expenditures']
OPERATING_CASH_FLOW_KEYS = ['Operating Cash Flow', 'Cash Flow From Continuing Operating Activities']


def get_financial_snapshot(ticker: str) -> FinancialSnapshot:
    """
    Build a FinancialSnapshot for ``ticker`` from yfinance.

    Market data (price, shares, beta, debt, cash) comes from ``Ticker.info``;
    revenue, income and cash flow lines come from the most recent annual
    statement column, falling back to ``info`` where a statement is missing.

    Raises:
        InputError: yfinance has neither info nor statements for the ticker
    """
    info = _fetch_stock_info_from_yfinance(ticker) or {}
    income = _fetch_from_yfinance(ticker, 'income')
    balance = _fetch_from_yfinance(ticker, 'balance')
    cashflow = _fetch_from_yfinance(ticker, 'cashflow')

    if not info and income is None and cashflow is None:
        raise InputError(f"Could not retrieve financial data for ticker: {ticker}")

    fiscal_year = None
    if income is not None:
        try:
            fiscal_year = pd.to_datetime(income.columns[0]).year
        except (ValueError, TypeError, IndexError):
            fiscal_year = None

    return FinancialSnapshot(
        revenue=_first_value(_get_latest_value(income, REVENUE_KEYS), info.get('totalRevenue')),
        operating_income=_first_value(_get_latest_value(income, OPERATING_INCOME_KEYS), info.get('operatingIncome')),
        net_income=_first_value(_get_latest_value(income, NET_INCOME_KEYS), info.get('netIncomeToCommon')),
        shares_outstanding=_safe_float(info.get('sharesOutstanding')),
        total_debt=_first_value(info.get('totalDebt'), _get_latest_value(balance, TOTAL_DEBT_KEYS)),
        cash_and_equivalents=_first_value(info.get('totalCash'), _get_latest_value(balance, CASH_KEYS)),
        beta=_safe_float(info.get('beta')),
        current_price=_first_value(info.get('currentPrice'), info.get('regularMarketPrice')),
        total_equity=_get_latest_value(balance, EQUITY_KEYS),
        capital_expenditure=_get_latest_value(cashflow, CAPEX_KEYS),
        operating_cash_flow=_first_value(_get_latest_value(cashflow, OPERATING_CASH_FLOW_KEYS), info.get('operatingCashflow')),
        fiscal_year=fiscal_year,
    )


def _safe_float(value) -> Optional[float]:
    if value is None:
        return None
    try:
        value = float(value)
    except (TypeError, ValueError):
        return None
    return None if pd.isna(value) else value


def _first_value(*values) -> Optional[float]:
    for value in values:
        value = _safe_float(value)
        if value is not None:
            return value
    return None


def _get_latest_value(df: Optional[pd.DataFrame], keys: List[str]) -> Optional[float]:
    if df is None or df.empty:
        return None

    for key in keys:
        if key in df.index:
            value = df.loc[key].iloc[0]
            if pd.notna(value):
                return float(value)
    return None


def _fetch_stock_info_from_yfinance(ticker: str) -> Optional[Dict]:
    """
    Fetch stock information from yfinance API.

    Returns:
        Dict or None if error
    """
    try:
        stock = yf.Ticker(ticker)
        return stock.info
    except Exception as e:
        logger.warning(f"Error fetching info from yfinance for {ticker}: {e}")
        return None


def _fetch_from_yfinance(ticker: str, statement_type: str) -> Optional[pd.DataFrame]:
    """
    Fetch financial statement data from yfinance API.

    Returns:
        pd.DataFrame or None if error or empty
    """
    try:
        stock = yf.Ticker(ticker)

        if statement_type == 'income':
            df = stock.financials
        elif statement_type == 'balance':
            df = stock.balance_sheet
        elif statement_type == 'cashflow':
            df = stock.cashflow
        else:
            logger.warning(f"Unknown statement type: {statement_type}")
            return None

        if df is None or df.empty:
            logger.warning(f"Empty {statement_type} statement returned from yfinance for {ticker}")
            return None

        return df

    except Exception as e:
        logger.warning(f"Error fetching {statement_type} statement from yfinance for {ticker}: {e}")
        return None
