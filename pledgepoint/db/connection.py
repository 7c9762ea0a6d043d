"""Postgres pool shared by the gamification repositories"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional
import psycopg
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool
from pledgepoint.config import DATABASE_URL, DB_POOL_MIN_SIZE, DB_POOL_MAX_SIZE, DB_POOL_TIMEOUT
from pledgepoint.exceptions import DatabaseConnectionError, wrap_external_exception

logger = logging.getLogger(__name__)


class Database:
    """
    Owns the connection pool for users, ledger, streak and activity tables

    Repositories borrow connections through ``connection()`` and manage their
    own transactions. Rows come back as dicts.
    """

    def __init__(self, connection_string: str = DATABASE_URL):
        self.connection_string = connection_string
        self._pool: Optional[AsyncConnectionPool] = None

    @property
    def is_ready(self) -> bool:
        return self._pool is not None

    async def init_pool(self) -> None:
        """Open the pool and wait until the minimum connections are up"""
        if self._pool is not None:
            return
        logger.info(f"Opening ledger database pool (min={DB_POOL_MIN_SIZE}, max={DB_POOL_MAX_SIZE})")
        pool = AsyncConnectionPool(
            self.connection_string,
            min_size=DB_POOL_MIN_SIZE,
            max_size=DB_POOL_MAX_SIZE,
            timeout=DB_POOL_TIMEOUT,
            name="pledgepoint",
            open=False
        )
        try:
            await pool.open(wait=True, timeout=DB_POOL_TIMEOUT)
        except Exception as e:
            await pool.close()
            raise wrap_external_exception(e, operation="init_pool")
        self._pool = pool

    async def close_pool(self) -> None:
        if self._pool:
            logger.info("Closing ledger database pool")
            await self._pool.close()
            self._pool = None

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        """Borrow a dict-row connection; fails fast when the pool was never opened"""
        if self._pool is None:
            raise DatabaseConnectionError(
                "Ledger database pool is not open; call init_pool() at startup",
                operation="connection",
            )

        async with self._pool.connection() as conn:
            conn.row_factory = dict_row
            yield conn


db = Database()
