"""
PostgreSQL connection pool

One process-wide `db` instance. The webhook lifespan opens it before the
container is built and closes it on shutdown; the memory backend never
touches it.
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool, PoolTimeout

from drasbot.config import DATABASE_URL
from drasbot.exceptions import ConnectionError

logger = logging.getLogger(__name__)

POOL_MIN_SIZE = 1
POOL_MAX_SIZE = 10
OPEN_TIMEOUT_SECONDS = 10.0


class Database:
    """Owns the async pool; rows come back as dicts"""

    def __init__(
        self,
        connection_string: str = DATABASE_URL,
        min_size: int = POOL_MIN_SIZE,
        max_size: int = POOL_MAX_SIZE
    ):
        self.connection_string = connection_string
        self.min_size = min_size
        self.max_size = max_size
        self._pool: Optional[AsyncConnectionPool] = None

    async def init_pool(self, timeout: float = OPEN_TIMEOUT_SECONDS) -> None:
        """
        Open the pool and wait for the first connections.

        Raises:
            ConnectionError: the database did not accept connections in time
        """
        if self._pool is not None:
            return

        pool = AsyncConnectionPool(
            self.connection_string,
            min_size=self.min_size,
            max_size=self.max_size,
            kwargs={"row_factory": dict_row},
            open=False
        )
        try:
            await pool.open(wait=True, timeout=timeout)
        except PoolTimeout as e:
            await pool.close()
            raise ConnectionError(
                f"Database not reachable within {timeout:.0f}s",
                operation="init_pool",
                cause=e
            )
        self._pool = pool
        logger.info(f"Database pool open ({self.min_size}-{self.max_size} connections)")

    async def close_pool(self) -> None:
        if self._pool is None:
            return
        await self._pool.close()
        self._pool = None
        logger.info("Database pool closed")

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[psycopg.AsyncConnection]:
        """Borrow a connection; callers commit their own writes"""
        if self._pool is None:
            raise RuntimeError("Database pool not initialized")
        async with self._pool.connection() as conn:
            yield conn

    async def ping(self) -> bool:
        """SELECT 1 through the pool; False instead of raising"""
        if self._pool is None:
            return False
        try:
            async with self.connection() as conn:
                await conn.execute("SELECT 1")
            return True
        except (psycopg.Error, PoolTimeout) as e:
            logger.warning(f"Database ping failed: {e}")
            return False


db = Database()
