"""Database connection pool manager."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any

import asyncpg
from structlog import get_logger

from app.core.config import settings

logger = get_logger()


class Database:
    """Thin wrapper around an asyncpg pool."""

    def __init__(self) -> None:
        self.pool: asyncpg.Pool | None = None

    async def connect(self, max_retries: int = 3) -> None:
        """
        Create the connection pool, retrying with exponential backoff.

        Args:
            max_retries: Number of attempts before giving up

        Raises:
            Exception: The last connection error once retries are exhausted
        """
        for attempt in range(1, max_retries + 1):
            try:
                self.pool = await asyncpg.create_pool(
                    settings.database_url,
                    min_size=settings.db_pool_min_size,
                    max_size=settings.db_pool_max_size,
                    command_timeout=settings.db_command_timeout,
                )
                logger.info("database_connected", attempt=attempt)
                return
            except Exception as e:
                logger.warning("database_connect_failed", attempt=attempt, error=str(e))
                if attempt == max_retries:
                    raise
                await asyncio.sleep(2**attempt)

    async def disconnect(self) -> None:
        """Close the pool if it was opened."""
        if self.pool:
            await self.pool.close()
            self.pool = None
            logger.info("database_disconnected")

    def _require_pool(self) -> asyncpg.Pool:
        if not self.pool:
            raise RuntimeError("Database pool not initialized")
        return self.pool

    async def execute(self, query: str, *args: Any) -> str:
        """Execute a statement and return its status string (e.g. "UPDATE 1")."""
        async with self._require_pool().acquire() as conn:
            return await conn.execute(query, *args)

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        """Fetch all rows."""
        async with self._require_pool().acquire() as conn:
            return await conn.fetch(query, *args)

    async def fetchrow(self, query: str, *args: Any) -> asyncpg.Record | None:
        """Fetch a single row."""
        async with self._require_pool().acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def fetchval(self, query: str, *args: Any) -> Any:
        """Fetch a single value."""
        async with self._require_pool().acquire() as conn:
            return await conn.fetchval(query, *args)

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[asyncpg.Connection]:
        """
        Yield a connection inside a transaction.

        Everything executed on the yielded connection commits together or
        rolls back together if the block raises.
        """
        async with self._require_pool().acquire() as conn:
            async with conn.transaction():
                yield conn


db = Database()
