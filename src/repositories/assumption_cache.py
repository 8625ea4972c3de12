"""
Time-bounded cache of AI-suggested assumption sets, keyed by symbol.
"""
import logging
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Optional

import duckdb

from config import ASSUMPTION_CACHE_DB_PATH
from fin_config import ASSUMPTION_CACHE_TTL_HOURS
from repositories.create_cache_db import create_assumption_cache_table
from services.models import AssumptionCacheEntry, AssumptionSet

logger = logging.getLogger(__name__)


class AssumptionCache(ABC):
    """
    Cache store for assumption sets.

    Expiry is enforced here in ``get`` so every backend behaves the same way:
    an entry whose ``expires_at`` has passed is never returned.
    """

    @staticmethod
    def _key(symbol: str) -> str:
        return symbol.strip().upper()

    def get(self, symbol: str, now: Optional[datetime] = None) -> Optional[AssumptionCacheEntry]:
        """Return the non-expired entry for ``symbol``, or None."""
        entry = self._load(self._key(symbol))
        if entry is None:
            return None
        if entry.is_expired(now):
            logger.debug(f"Cached assumptions for {symbol} expired at {entry.expires_at.isoformat()}")
            return None
        return entry

    def upsert(
        self,
        symbol: str,
        assumptions: AssumptionSet,
        now: Optional[datetime] = None,
        ttl: timedelta = timedelta(hours=ASSUMPTION_CACHE_TTL_HOURS),
    ) -> AssumptionCacheEntry:
        """Store ``assumptions`` for ``symbol`` with a fresh TTL, replacing any existing entry."""
        entry = AssumptionCacheEntry.create(self._key(symbol), assumptions, ttl=ttl, now=now)
        self.set(entry)
        return entry

    @abstractmethod
    def _load(self, key: str) -> Optional[AssumptionCacheEntry]:
        ...

    @abstractmethod
    def set(self, entry: AssumptionCacheEntry) -> None:
        ...

    @abstractmethod
    def delete(self, symbol: str) -> None:
        ...

    @abstractmethod
    def clear_expired(self, now: Optional[datetime] = None) -> int:
        """Remove expired entries and return how many were removed."""
        ...


class InMemoryAssumptionCache(AssumptionCache):
    """Process-local cache; entries live as long as the process."""

    def __init__(self):
        self._entries: Dict[str, AssumptionCacheEntry] = {}
        self._lock = threading.Lock()

    def _load(self, key: str) -> Optional[AssumptionCacheEntry]:
        with self._lock:
            return self._entries.get(key)

    def set(self, entry: AssumptionCacheEntry) -> None:
        with self._lock:
            self._entries[self._key(entry.symbol)] = entry

    def delete(self, symbol: str) -> None:
        with self._lock:
            self._entries.pop(self._key(symbol), None)

    def clear_expired(self, now: Optional[datetime] = None) -> int:
        with self._lock:
            expired = [key for key, entry in self._entries.items() if entry.is_expired(now)]
            for key in expired:
                del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class DuckDBAssumptionCache(AssumptionCache):
    """Repository for cached assumption sets using DuckDB."""

    def __init__(self, db_path: str = ASSUMPTION_CACHE_DB_PATH):
        self.db_path = str(db_path)
        self._conn = None
        self._lock = threading.Lock()

    def _get_connection(self) -> duckdb.DuckDBPyConnection:
        """Get or create database connection, creating the table on first use."""
        if self._conn is None:
            if self.db_path != ":memory:":
                Path(self.db_path).resolve().parent.mkdir(parents=True, exist_ok=True)
            self._conn = duckdb.connect(self.db_path)
            create_assumption_cache_table(self._conn)
        return self._conn

    def close(self):
        """Close database connection."""
        if self._conn:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _load(self, key: str) -> Optional[AssumptionCacheEntry]:
        with self._lock:
            cursor = self._get_connection().cursor()
            cursor.execute(
                "SELECT symbol, assumptions, created_at, expires_at FROM assumption_cache WHERE symbol = $1",
                (key,),
            )
            row = cursor.fetchone()

        if not row:
            return None

        return AssumptionCacheEntry(
            symbol=row[0],
            assumptions=AssumptionSet.model_validate_json(row[1]),
            created_at=datetime.fromisoformat(row[2]),
            expires_at=datetime.fromisoformat(row[3]),
        )

    def set(self, entry: AssumptionCacheEntry) -> None:
        try:
            with self._lock:
                conn = self._get_connection()
                cursor = conn.cursor()
                cursor.execute("""
                INSERT INTO assumption_cache (symbol, assumptions, created_at, expires_at)
                VALUES ($1, $2, $3, $4)
                ON CONFLICT (symbol)
                DO UPDATE SET assumptions = $2, created_at = $3, expires_at = $4
                """, (
                    self._key(entry.symbol),
                    entry.assumptions.model_dump_json(),
                    entry.created_at.isoformat(),
                    entry.expires_at.isoformat(),
                ))
                conn.commit()
        except Exception as e:
            logger.error(f"Database error saving cached assumptions for {entry.symbol}: {e}")
            raise e

    def delete(self, symbol: str) -> None:
        with self._lock:
            conn = self._get_connection()
            conn.cursor().execute("DELETE FROM assumption_cache WHERE symbol = $1", (self._key(symbol),))
            conn.commit()

    def clear_expired(self, now: Optional[datetime] = None) -> int:
        now = now or datetime.now(timezone.utc)
        with self._lock:
            conn = self._get_connection()
            cursor = conn.cursor()
            cursor.execute("SELECT symbol, expires_at FROM assumption_cache")
            expired = [
                symbol for symbol, expires_at in cursor.fetchall()
                if now >= datetime.fromisoformat(expires_at)
            ]
            for symbol in expired:
                cursor.execute("DELETE FROM assumption_cache WHERE symbol = $1", (symbol,))
            conn.commit()

        if expired:
            logger.info(f"Removed {len(expired)} expired assumption cache entries")
        return len(expired)
