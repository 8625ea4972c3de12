"""Run a tiered DCF valuation for a ticker and print the analysis and sensitivity grid."""

import sys
import asyncio
import json
import logging
from pathlib import Path

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from services import build_sensitivity_grid, resolve_assumptions, run_tiered_valuation
from services.financial import get_financial_snapshot
from services.valuation import print_dcf_analysis
from utils.logger import setup_logging

logger = logging.getLogger("run_dcf_valuation")


async def run_dcf_valuation(ticker: str, refresh: bool = False, use_defaults: bool = False, as_json: bool = False,
                            flat: bool = False):
    snapshot = get_financial_snapshot(ticker)
    logger.info(f"Loaded financial snapshot for {ticker}: {snapshot}")

    assumptions = None
    if not use_defaults:
        assumptions = await resolve_assumptions(ticker, snapshot, force_refresh=refresh)

    result = await run_tiered_valuation(ticker, snapshot, assumptions, taper=not flat)
    grid = build_sensitivity_grid(result)

    if as_json:
        output = result.to_dict()
        output['sensitivity'] = {
            'growth_rates': grid.growth_rates,
            'discount_rates': grid.discount_rates,
            'cells': grid.cells,
        }
        print(json.dumps(output, indent=2, default=str))
        return result

    print_dcf_analysis(result)
    print("\nSENSITIVITY (value per share, growth rows x WACC columns):")
    print(grid.to_dataframe().round(2).to_string())
    return result


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(
        description="Run a tiered DCF valuation for a stock ticker"
    )
    parser.add_argument("ticker", type=str, help="Stock ticker symbol (e.g. AAPL)")
    parser.add_argument(
        "--refresh",
        action="store_true",
        help="Ignore cached AI assumptions and request a fresh suggestion"
    )
    parser.add_argument(
        "--defaults",
        action="store_true",
        help="Skip AI assumptions and value with the standard assumption set"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the result as JSON instead of the formatted report"
    )
    parser.add_argument(
        "--flat",
        action="store_true",
        help="Project revenue at a flat growth rate instead of tapering to terminal growth"
    )

    args = parser.parse_args()

    setup_logging()
    asyncio.run(run_dcf_valuation(
        args.ticker.upper(),
        refresh=args.refresh,
        use_defaults=args.defaults,
        as_json=args.json,
        flat=args.flat,
    ))
