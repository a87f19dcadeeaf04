"""Database connection management."""

import os
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool


class DatabaseConfig:
    """Database configuration."""

    def __init__(self, config: Dict[str, Any]) -> None:
        """Initialize database config from dict."""
        self.host = config.get("host", "localhost")
        self.port = config.get("port", 5432)
        self.database = config.get("database", "wartracker")
        self.user = config.get("user", "wartracker")
        self.min_size = config.get("min_pool_size", 1)
        self.max_size = config.get("max_pool_size", 10)

        # Handle password from environment variable if specified
        password = config.get("password")
        password_env = config.get("password_env")
        if not password and password_env:
            password = os.environ.get(password_env, "")
        self.password = password or ""

    @property
    def connection_string(self) -> str:
        """Get psycopg connection string."""
        return psycopg.conninfo.make_conninfo(
            host=self.host,
            port=self.port,
            dbname=self.database,
            user=self.user,
            password=self.password,
        )


class Database:
    """Owns the async connection pool for one process."""

    def __init__(self, config: Dict[str, Any]) -> None:
        """Initialize database from a config dict (see Config.get_db_config)."""
        self.db_config = DatabaseConfig(config)
        self._pool: Optional[AsyncConnectionPool] = None

    async def open(self) -> None:
        """Open the pool if it is not open yet."""
        if self._pool is None:
            self._pool = AsyncConnectionPool(
                self.db_config.connection_string,
                min_size=self.db_config.min_size,
                max_size=self.db_config.max_size,
                kwargs={"row_factory": dict_row},
                open=False,
            )
            await self._pool.open()

    async def close(self) -> None:
        """Close the pool."""
        if self._pool is not None:
            await self._pool.close()
            self._pool = None

    async def __aenter__(self) -> "Database":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[psycopg.AsyncConnection]:
        """Get a database connection from the pool."""
        await self.open()
        async with self._pool.connection() as conn:
            yield conn
