"""
PostgreSQL connection management for the source store.

Uses an asyncpg connection pool. Connection failures surface as StoreError
so callers can treat the store like any other unavailable dependency.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from types import TracebackType
from typing import Any

import asyncpg

from feed_ingest.config.settings import ConfigError, get_settings

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """A source store operation failed."""


class Database:
    """
    Async PostgreSQL connection manager.

    Usage:
        async with Database() as db:
            rows = await db.fetch("SELECT id FROM profiles LIMIT $1", 10)
    """

    def __init__(
        self,
        database_url: str | None = None,
        min_size: int | None = None,
        max_size: int | None = None,
    ):
        """
        Args:
            database_url: PostgreSQL connection URL (default from settings)
            min_size: Minimum pool size
            max_size: Maximum pool size

        Raises:
            ConfigError: If no database URL is given or configured
        """
        settings = get_settings()

        url = database_url or (str(settings.database_url) if settings.database_url else None)
        if not url:
            raise ConfigError("DATABASE_URL is not set")

        self._database_url = url
        self._min_size = min_size or settings.db_pool_min_size
        self._max_size = max_size or settings.db_pool_max_size

        self._pool: asyncpg.Pool | None = None

    async def connect(self) -> None:
        """
        Create the connection pool.

        Raises:
            StoreError: If the database cannot be reached
        """
        try:
            self._pool = await asyncpg.create_pool(
                self._database_url,
                min_size=self._min_size,
                max_size=self._max_size,
                command_timeout=60,
            )
        except (OSError, asyncpg.PostgresError) as e:
            logger.error(f"Failed to connect to database: {e}")
            raise StoreError(f"Could not connect to database: {e}") from e

        logger.info(f"Database connected (pool: {self._min_size}-{self._max_size})")

    async def close(self) -> None:
        if self._pool:
            await self._pool.close()
            self._pool = None
            logger.info("Database connection closed")

    async def __aenter__(self) -> "Database":
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def pool(self) -> asyncpg.Pool:
        """Get connection pool, raising if not connected."""
        if self._pool is None:
            raise RuntimeError("Database not connected. Call connect() first.")
        return self._pool

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[asyncpg.Connection]:
        async with self.pool.acquire() as conn:
            yield conn

    async def execute(self, query: str, *args: Any) -> str:
        async with self.acquire() as conn:
            return await conn.execute(query, *args)

    async def fetch(self, query: str, *args: Any) -> list[asyncpg.Record]:
        async with self.acquire() as conn:
            return await conn.fetch(query, *args)

    async def fetchval(self, query: str, *args: Any) -> Any:
        async with self.acquire() as conn:
            return await conn.fetchval(query, *args)

    async def health_check(self) -> bool:
        """True if the database answers `SELECT 1`."""
        try:
            result = await self.fetchval("SELECT 1")
            return result == 1
        except Exception:
            return False
