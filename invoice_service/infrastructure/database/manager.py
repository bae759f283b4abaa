"""Shared asyncpg pool for the vendor, audit and key-value repositories.

The lifespan connects it once at startup and disconnects it at shutdown;
`/ready` reports `health_check()`.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Awaitable, Callable

import asyncpg

from invoice_service.core.config import Settings

logger = logging.getLogger(__name__)

PoolFactory = Callable[..., Awaitable[asyncpg.Pool]]


class DatabaseManager:
    def __init__(self, settings: Settings, pool_factory: PoolFactory = asyncpg.create_pool):
        self._settings = settings
        self._pool_factory = pool_factory
        self._pool: asyncpg.Pool | None = None

    @property
    def connected(self) -> bool:
        return self._pool is not None

    async def connect(self) -> None:
        if self._pool is not None:
            return
        s = self._settings
        logger.info(
            f"Connecting to PostgreSQL at {s.DB_HOST}:{s.DB_PORT}/{s.DB_NAME}",
            extra={"service": "postgres"},
        )
        self._pool = await self._pool_factory(
            host=s.DB_HOST,
            port=s.DB_PORT,
            database=s.DB_NAME,
            user=s.DB_USER,
            password=s.DB_PASSWORD.get_secret_value(),
            min_size=s.DB_POOL_MIN_SIZE,
            max_size=s.DB_POOL_MAX_SIZE,
            timeout=s.DB_POOL_TIMEOUT,
            command_timeout=s.DB_COMMAND_TIMEOUT,
        )

    async def disconnect(self) -> None:
        pool, self._pool = self._pool, None
        if pool is not None:
            await pool.close()
            logger.info("PostgreSQL pool closed", extra={"service": "postgres"})

    async def get_pool(self) -> asyncpg.Pool:
        if self._pool is None:
            raise RuntimeError("Database pool is not connected")
        return self._pool

    async def health_check(self) -> dict[str, Any]:
        """Round-trip `SELECT 1`; never raises."""
        if self._pool is None:
            return {"healthy": False, "error": "not connected", "latency_ms": None}
        start = time.perf_counter()
        try:
            async with self._pool.acquire() as conn:
                await conn.fetchval("SELECT 1")
        except Exception as e:
            logger.warning(f"Database health check failed: {e}", extra={"service": "postgres"})
            return {"healthy": False, "error": str(e), "latency_ms": None}
        return {"healthy": True, "error": None, "latency_ms": round((time.perf_counter() - start) * 1000, 2)}


def create_database_manager(settings: Settings) -> DatabaseManager:
    return DatabaseManager(settings)
