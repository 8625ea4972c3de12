"""Prompt templates for LLM interactions in the assumption suggestion service."""

from typing import Dict, Optional


def _fmt(value, pct: bool = False) -> str:
    if value is None:
        return "N/A"
    if pct:
        return f"{value * 100:.2f}%"
    return f"{value:,.0f}" if isinstance(value, (int, float)) else str(value)


def get_dcf_assumptions_prompt(symbol: str, profile: Optional[Dict], metrics: Dict) -> str:
    """Prompt asking for DCF model parameters based on the company's recent financials."""
    profile = profile or {}
    return f"""As a financial analyst, determine accurate DCF model parameters for {symbol} ({profile.get('companyName') or symbol}).

Based on the following financial data, provide precise decimal values (not percentages) for DCF parameters.

Company Profile:
- Industry: {profile.get('industry') or 'N/A'}
- Sector: {profile.get('sector') or 'N/A'}
- Beta: {profile.get('beta') or 'N/A'}
- Market Cap: {_fmt(profile.get('mktCap'))}

Recent Financial Performance:
- Revenue: {_fmt(metrics.get('revenue'))}
- Revenue Growth Rate: {_fmt(metrics.get('revenue_growth'), pct=True)}
- EBITDA Margin: {_fmt(metrics.get('ebitda_margin'), pct=True)}
- EBIT Margin: {_fmt(metrics.get('ebit_margin'), pct=True)}
- Net Income: {_fmt(metrics.get('net_income'))}
- Operating Cash Flow: {_fmt(metrics.get('operating_cash_flow'))}
- Capital Expenditure: {_fmt(metrics.get('capital_expenditure'))}
- Current Tax Rate: {_fmt(metrics.get('tax_rate'), pct=True)}

Provide ONLY the following parameters as decimal values (0.05 means 5%):
- revenue_growth_rate
- ebitda_margin
- ebit_margin
- depreciation_ratio (D&A as a share of revenue)
- capital_expenditure_ratio (capex as a share of revenue)
- operating_cash_flow_ratio
- sga_ratio (SG&A as a share of revenue)
- cash_and_st_investments_ratio
- receivables_ratio
- inventory_ratio
- payables_ratio
- tax_rate
- terminal_growth_rate (typically 0.02-0.04)
- cost_of_debt (typically 0.03-0.06)
- market_risk_premium (typically 0.04-0.06)
- risk_free_rate (typically 0.03-0.05)
- beta (typically 0.5-2.0)

Also provide a brief explanation of your reasoning in 'explanation'.
If a value cannot be determined, leave it empty rather than guessing."""
