"""
Durable Job/Status Store - TTL-bounded key-value mailbox.

Contract shared by every backend:
- put(key, value, ttl_seconds) upserts; the value is unreachable once the TTL elapses
- get(key) returns the value, or None when absent or expired
- delete(key) is idempotent
- scan(prefix) lists live keys (used by pull-style workers)

Only single-key atomicity is provided. Concurrent writers to one key resolve
last-write-wins. An expired key is indistinguishable from one never written.

Usage:
    store = MemoryJobStore()
    await store.put("job:abc", {"id": "abc"}, ttl_seconds=3600)
    value = await store.get("job:abc")
"""

import copy
import json
import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

import asyncpg

from core.config import StoreConfig
from core.errors import StoreError

logger = logging.getLogger(__name__)


class JobStore(ABC):
    """Abstract TTL key-value store."""

    @abstractmethod
    async def put(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        ...

    @abstractmethod
    async def get(self, key: str) -> Optional[dict[str, Any]]:
        ...

    @abstractmethod
    async def delete(self, key: str) -> None:
        ...

    @abstractmethod
    async def scan(self, prefix: str, limit: int = 100) -> list[str]:
        ...

    @abstractmethod
    async def purge_expired(self) -> int:
        """Drop expired entries. Returns how many were removed."""

    async def close(self):
        """Release backend resources."""


class MemoryJobStore(JobStore):
    """
    Process-local store for tests and single-process deployments.

    Values are deep-copied in and out so callers never share state with the
    store, the same as a networked backend.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[str, tuple[dict[str, Any], float]] = {}

    def _live(self, key: str) -> Optional[dict[str, Any]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            # Expired entries are purged lazily on access
            del self._entries[key]
            return None
        return value

    async def put(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        self._entries[key] = (copy.deepcopy(value), self._clock() + ttl_seconds)

    async def get(self, key: str) -> Optional[dict[str, Any]]:
        value = self._live(key)
        return copy.deepcopy(value) if value is not None else None

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def scan(self, prefix: str, limit: int = 100) -> list[str]:
        keys = [k for k in list(self._entries) if k.startswith(prefix) and self._live(k) is not None]
        return sorted(keys)[:limit]

    async def purge_expired(self) -> int:
        now = self._clock()
        expired = [k for k, (_, expires_at) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        return sum(1 for k in list(self._entries) if self._live(k) is not None)


class PostgresJobStore(JobStore):
    """
    PostgreSQL-backed store.

    Schema:
        CREATE TABLE generation_kv (
            key        TEXT PRIMARY KEY,
            value      JSONB NOT NULL,
            expires_at TIMESTAMPTZ NOT NULL
        )
    """

    def __init__(self, db_pool: asyncpg.Pool, table: str = "generation_kv"):
        if not table.replace("_", "").isalnum():
            raise ValueError(f"Invalid table name: {table}")
        self.db_pool = db_pool
        self.table = table

    @classmethod
    async def connect(cls, config: StoreConfig) -> "PostgresJobStore":
        """Create a connection pool and make sure the table exists."""
        try:
            pool = await asyncpg.create_pool(
                config.database_url,
                min_size=config.pool_min_size,
                max_size=config.pool_max_size,
            )
        except (asyncpg.PostgresError, OSError) as e:
            raise StoreError(f"Could not connect to store: {type(e).__name__}: {e}") from e

        store = cls(pool, table=config.table)
        await store.ensure_schema()
        logger.info(f"Connected to PostgreSQL job store (table={config.table})")
        return store

    async def _execute(self, method: str, query: str, *args):
        try:
            async with self.db_pool.acquire() as conn:
                return await getattr(conn, method)(query, *args)
        except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as e:
            logger.error(f"Store {method} failed: {type(e).__name__}: {e}")
            raise StoreError(f"Store unavailable: {type(e).__name__}") from e

    async def ensure_schema(self):
        await self._execute(
            "execute",
            f"""
            CREATE TABLE IF NOT EXISTS {self.table} (
                key        TEXT PRIMARY KEY,
                value      JSONB NOT NULL,
                expires_at TIMESTAMPTZ NOT NULL
            )
            """,
        )
        await self._execute(
            "execute",
            f"CREATE INDEX IF NOT EXISTS {self.table}_expires_idx ON {self.table} (expires_at)",
        )

    async def put(self, key: str, value: dict[str, Any], ttl_seconds: int) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive")
        await self._execute(
            "execute",
            f"""
            INSERT INTO {self.table} (key, value, expires_at)
            VALUES ($1, $2::jsonb, NOW() + make_interval(secs => $3))
            ON CONFLICT (key) DO UPDATE SET
                value = EXCLUDED.value,
                expires_at = EXCLUDED.expires_at
            """,
            key,
            json.dumps(value),
            float(ttl_seconds),
        )

    async def get(self, key: str) -> Optional[dict[str, Any]]:
        raw = await self._execute(
            "fetchval",
            f"SELECT value FROM {self.table} WHERE key = $1 AND expires_at > NOW()",
            key,
        )
        if raw is None:
            return None
        return json.loads(raw) if isinstance(raw, str) else raw

    async def delete(self, key: str) -> None:
        await self._execute("execute", f"DELETE FROM {self.table} WHERE key = $1", key)

    async def scan(self, prefix: str, limit: int = 100) -> list[str]:
        rows = await self._execute(
            "fetch",
            f"""
            SELECT key FROM {self.table}
            WHERE key LIKE $1 || '%' AND expires_at > NOW()
            ORDER BY key
            LIMIT $2
            """,
            prefix,
            limit,
        )
        return [row["key"] for row in rows]

    async def purge_expired(self) -> int:
        """Delete expired rows. Returns the number removed."""
        result = await self._execute(
            "execute", f"DELETE FROM {self.table} WHERE expires_at <= NOW()"
        )
        # asyncpg returns the command tag, e.g. "DELETE 3"
        removed = int(result.split()[-1]) if result else 0
        if removed:
            logger.info(f"Purged {removed} expired store entries")
        return removed

    async def close(self):
        await self.db_pool.close()


async def create_store(config: StoreConfig) -> JobStore:
    """PostgreSQL store when DATABASE_URL is set, otherwise in-memory."""
    if config.database_url:
        return await PostgresJobStore.connect(config)
    logger.warning("DATABASE_URL not set - using in-memory job store")
    return MemoryJobStore()
