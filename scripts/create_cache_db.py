"""Create the DuckDB assumption cache schema."""

import sys
from pathlib import Path

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from config import ASSUMPTION_CACHE_DB_PATH
from repositories.create_cache_db import create_cache_db
from utils.logger import setup_logging


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(
        description="Create the assumption cache database"
    )
    parser.add_argument(
        "--db-path",
        type=str,
        default=ASSUMPTION_CACHE_DB_PATH,
        help=f"Path to database file (default: {ASSUMPTION_CACHE_DB_PATH})"
    )
    parser.add_argument(
        "--drop",
        action="store_true",
        help="Drop the existing table before creating it"
    )

    args = parser.parse_args()

    setup_logging()
    create_cache_db(args.db_path, drop_if_exists=args.drop)
