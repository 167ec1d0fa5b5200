"""
Async PostgreSQL pool for the entity store.

Connection parameters come from ``DATABASE_URL`` or, when that is unset, the
``DB_HOST``/``DB_PORT``/``DB_NAME``/``DB_USER``/``DB_PASSWORD`` variables.
Connections hand out dict rows and commit when their block exits cleanly.
"""
import asyncio
import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from psycopg import AsyncConnection, OperationalError
from psycopg.conninfo import make_conninfo
from psycopg.rows import dict_row
from psycopg_pool import AsyncConnectionPool
from pydantic import BaseModel, Field

from atomic_import.observability.logger import get_logger

logger = get_logger(__name__)


class DatabaseSettings(BaseModel):
    """Keyword connection parameters for one database."""

    host: str = "localhost"
    port: int = 5432
    dbname: str = "atomic_import"
    user: str = "importer"
    password: str = Field(min_length=1)
    connect_timeout: int = 30

    @classmethod
    def from_env(cls, **overrides) -> "DatabaseSettings":
        values = {
            "host": os.getenv("DB_HOST"),
            "port": os.getenv("DB_PORT"),
            "dbname": os.getenv("DB_NAME"),
            "user": os.getenv("DB_USER"),
            "password": os.getenv("DB_PASSWORD"),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        if not values.get("password"):
            raise ValueError("Database password missing: set DB_PASSWORD or DATABASE_URL")
        return cls(**{k: v for k, v in values.items() if v is not None})

    def conninfo(self) -> str:
        return make_conninfo(**self.model_dump())


class AsyncDatabaseConnectionPool:
    """Owns one psycopg_pool.AsyncConnectionPool; open() must run before use."""

    def __init__(
        self,
        host: str | None = None,
        port: int | None = None,
        database: str | None = None,
        user: str | None = None,
        password: str | None = None,
        conninfo: str | None = None,
        min_size: int = 2,
        max_size: int = 10,
        timeout: float = 30.0,
    ) -> None:
        if conninfo:
            self.conninfo = conninfo
        else:
            settings = DatabaseSettings.from_env(
                host=host, port=port, dbname=database, user=user, password=password,
                connect_timeout=int(timeout),
            )
            self.conninfo = settings.conninfo()
        self.min_size = min_size
        self.max_size = max_size
        self.timeout = timeout
        self._pool: AsyncConnectionPool | None = None

    @classmethod
    def from_env(cls, **kwargs) -> "AsyncDatabaseConnectionPool":
        return cls(conninfo=os.getenv("DATABASE_URL"), **kwargs)

    @property
    def is_open(self) -> bool:
        return self._pool is not None

    def _new_pool(self) -> AsyncConnectionPool:
        return AsyncConnectionPool(
            conninfo=self.conninfo,
            min_size=self.min_size,
            max_size=self.max_size,
            timeout=self.timeout,
            kwargs={"row_factory": dict_row},
            check=AsyncConnectionPool.check_connection,
            open=False,
        )

    async def open(self, attempts: int = 3, backoff: float = 2.0) -> None:
        """
        Open the pool, waiting for min_size connections.

        Failed attempts are retried after ``backoff * attempt`` seconds; the
        last failure is re-raised as OperationalError.
        """
        if self._pool is not None:
            return

        for attempt in range(1, attempts + 1):
            pool = self._new_pool()
            try:
                await pool.open(wait=True, timeout=self.timeout)
            except OperationalError as e:
                await pool.close()
                if attempt == attempts:
                    raise OperationalError(f"Database unreachable after {attempts} attempts: {e}") from e
                logger.warning(
                    f"Database not ready (attempt {attempt}/{attempts}): {e}",
                    extra={"attempt": attempt},
                )
                await asyncio.sleep(backoff * attempt)
            else:
                self._pool = pool
                logger.info("Database pool open", extra={"min_size": self.min_size, "max_size": self.max_size})
                return

    async def close(self) -> None:
        if self._pool is None:
            return
        pool, self._pool = self._pool, None
        await pool.close()

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[AsyncConnection]:
        if self._pool is None:
            raise RuntimeError("Connection pool is not open; call open() first")
        async with self._pool.connection() as conn:
            yield conn

    async def ping(self) -> bool:
        """True when a round trip to the server succeeds."""
        try:
            async with self.connection() as conn:
                await conn.execute("SELECT 1")
        except (OperationalError, RuntimeError) as e:
            logger.warning(f"Database ping failed: {e}")
            return False
        return True

    def stats(self) -> dict[str, int]:
        return self._pool.get_stats() if self._pool is not None else {}

    async def __aenter__(self) -> "AsyncDatabaseConnectionPool":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
