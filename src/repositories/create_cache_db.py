import logging
from pathlib import Path

import duckdb

from config import ASSUMPTION_CACHE_DB_PATH

logger = logging.getLogger(__name__)


def create_assumption_cache_table(conn: duckdb.DuckDBPyConnection, drop_if_exists: bool = False):
    """Create the table holding AI-suggested assumption sets, one row per symbol."""
    cursor = conn.cursor()

    if drop_if_exists:
        cursor.execute("DROP TABLE IF EXISTS assumption_cache")

    cursor.execute("""
    CREATE TABLE IF NOT EXISTS assumption_cache (
        symbol TEXT PRIMARY KEY,
        assumptions TEXT NOT NULL,
        created_at TEXT NOT NULL,
        expires_at TEXT NOT NULL
    )
    """)
    conn.commit()


def create_cache_db(db_path=ASSUMPTION_CACHE_DB_PATH, drop_if_exists: bool = False):
    """
    Creates the DuckDB tables for the assumption cache.

    Args:
        db_path: Path to the database file
        drop_if_exists: If True, drop existing tables before creating new ones
    """
    if str(db_path) != ":memory:":
        Path(db_path).resolve().parent.mkdir(parents=True, exist_ok=True)

    conn = duckdb.connect(str(db_path))

    try:
        create_assumption_cache_table(conn, drop_if_exists)
        logger.info(f"Assumption cache table created at {db_path}")
    finally:
        conn.close()


if __name__ == "__main__":
    create_cache_db()
