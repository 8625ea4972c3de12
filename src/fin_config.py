"""
Financial Configuration Constants for DCF Valuation
"""

# Risk-Free Rate (10-year Treasury)
RISK_FREE_RATE = 0.0364  # 3.64%

# Market Risk Premium
MARKET_RISK_PREMIUM = 0.0472  # 4.72%

# Cost of Debt
COST_OF_DEBT = 0.0364  # 3.64%

# Tax Rate
CORPORATE_TAX_RATE = 0.21  # 21% (US corporate tax rate)

# Default Beta (with the rates above gives a cost of equity of ~9.51%)
DEFAULT_BETA = 1.244

# Growth defaults (mature large-cap company)
DEFAULT_REVENUE_GROWTH_RATE = 0.085  # 8.5%
DEFAULT_TERMINAL_GROWTH_RATE = 0.03  # 3%

# Margins and ratios as a share of revenue
DEFAULT_EBITDA_MARGIN = 0.3127
DEFAULT_EBIT_MARGIN = 0.2781
DEFAULT_CAPITAL_EXPENDITURE_RATIO = 0.0306
DEFAULT_DEPRECIATION_RATIO = 0.0345
DEFAULT_OPERATING_CASH_FLOW_RATIO = 0.2886
DEFAULT_SGA_RATIO = 0.0662
DEFAULT_CASH_AND_ST_INVESTMENTS_RATIO = 0.2344
DEFAULT_RECEIVABLES_RATIO = 0.1533
DEFAULT_INVENTORY_RATIO = 0.0155
DEFAULT_PAYABLES_RATIO = 0.1614

# Accepted band for any assumption value; outside it a value is suspicious
MIN_ASSUMPTION_VALUE = -1.0
MAX_ASSUMPTION_VALUE = 5.0

# WACC Bounds
MIN_WACC = 0.01  # 1%
MAX_WACC = 0.30  # 30%

# Default WACC (fallback)
DEFAULT_WACC = 0.095  # 9.5%

# Minimum spread between WACC and terminal growth in the Gordon Growth formula
MIN_TERMINAL_SPREAD = 0.01  # 1%

# Default Forecast Years
DEFAULT_FORECAST_YEARS = 5

# Synthetic estimate
SYNTHETIC_PE_MULTIPLE = 20.0
SYNTHETIC_PRICE_FLOOR = 0.75  # estimate never below 75% of the current price
SYNTHETIC_GROWTH_SCHEDULE = [0.085, 0.08, 0.075, 0.07, 0.065]

# Per-share sanity band
MAX_EQUITY_VALUE_PER_SHARE = 1_000_000.0
DEFAULT_EQUITY_VALUE_PER_SHARE = 100.0

# Assumption cache time-to-live
ASSUMPTION_CACHE_TTL_HOURS = 24

# Sensitivity grid offsets around the base case
SENSITIVITY_GROWTH_OFFSETS = [-0.01, -0.005, 0.0, 0.005, 0.01]
SENSITIVITY_DISCOUNT_OFFSETS = [-0.01, -0.005, 0.0, 0.005, 0.01]

# Bounds applied to AI-generated parameters (min, max)
SUGGESTION_BOUNDS = {
    'revenue_growth_rate': (0.02, 0.30),
    'ebitda_margin': (0.05, 0.50),
    'capital_expenditure_ratio': (0.01, 0.20),
    'tax_rate': (0.10, 0.40),
    'depreciation_ratio': (0.01, 0.20),
    'cash_and_st_investments_ratio': (0.05, 0.50),
    'receivables_ratio': (0.05, 0.30),
    'inventory_ratio': (0.01, 0.30),
    'payables_ratio': (0.05, 0.30),
    'ebit_margin': (0.05, 0.40),
    'operating_cash_flow_ratio': (0.05, 0.40),
    'sga_ratio': (0.05, 0.30),
    'terminal_growth_rate': (0.02, 0.05),
    'cost_of_debt': (0.02, 0.08),
    'market_risk_premium': (0.04, 0.07),
    'risk_free_rate': (0.02, 0.05),
    'beta': (0.3, 3.0),
}
