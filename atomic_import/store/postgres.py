"""
PostgreSQL entity store.

One generic repository per table. psycopg errors are translated into the
store error taxonomy: operational errors, cancelled queries and pool
timeouts become TransientStoreError; unique violations ConflictError.
"""

import time
from contextlib import asynccontextmanager
from typing import Any

import psycopg
from psycopg import errors as pg_errors
from psycopg import sql
from psycopg.types.json import Jsonb

from atomic_import.core.errors import (
    ConflictError,
    RecordNotFoundError,
    StoreError,
    TransientStoreError,
)
from atomic_import.observability.logger import get_logger
from atomic_import.observability.metrics import (
    increment_counter,
    observe_histogram,
    store_call_duration_seconds,
    store_errors_total,
)

from .base import EntityStore, Record, Repository, StoreKind
from .connection import AsyncDatabaseConnectionPool

logger = get_logger(__name__)

# Columns stored as JSONB, per table
JSON_COLUMNS: dict[StoreKind, frozenset[str]] = {
    StoreKind.BACKGROUND_JOBS: frozenset({"result", "params"}),
}


class PostgresRepository(Repository):
    """Generic CRUD over one table whose primary key is a text "id"."""

    def __init__(self, kind: StoreKind, pool: AsyncDatabaseConnectionPool):
        super().__init__(kind)
        self.pool = pool
        self.table = sql.Identifier(kind.value)
        self.json_columns = JSON_COLUMNS.get(kind, frozenset())

    def _adapt(self, column: str, value: Any) -> Any:
        if column in self.json_columns and value is not None:
            return Jsonb(value)
        return value

    @staticmethod
    def _to_record(row: dict[str, Any] | None) -> Record | None:
        if row is None:
            return None
        record = dict(row)
        if record.get("id") is not None:
            record["id"] = str(record["id"])
        return record

    @asynccontextmanager
    async def _call(self, operation: str):
        """Time the call and translate psycopg errors."""
        start = time.monotonic()
        try:
            yield
        except psycopg.OperationalError as e:
            self._count_error(operation, "transient")
            raise TransientStoreError(
                f"{self.kind.value}.{operation} timeout or connection failure: {e}",
                entity_kind=self.kind.value, operation=operation,
            ) from e
        except pg_errors.UniqueViolation as e:
            self._count_error(operation, "conflict")
            raise ConflictError(
                f"{self.kind.value}.{operation} conflict: {e}",
                entity_kind=self.kind.value, operation=operation,
            ) from e
        except psycopg.Error as e:
            self._count_error(operation, "permanent")
            raise StoreError(
                f"{self.kind.value}.{operation} failed: {e}",
                entity_kind=self.kind.value, operation=operation,
            ) from e
        finally:
            observe_histogram(
                store_call_duration_seconds, time.monotonic() - start,
                entity_kind=self.kind.value, operation=operation,
            )

    def _count_error(self, operation: str, error_type: str) -> None:
        increment_counter(
            store_errors_total, 1,
            entity_kind=self.kind.value, operation=operation, error_type=error_type,
        )

    async def create(self, fields: Record) -> Record:
        columns = list(fields)
        query = sql.SQL("INSERT INTO {table} ({columns}) VALUES ({values}) RETURNING *").format(
            table=self.table,
            columns=sql.SQL(", ").join(map(sql.Identifier, columns)),
            values=sql.SQL(", ").join(sql.Placeholder() * len(columns)),
        )
        params = [self._adapt(c, fields[c]) for c in columns]

        async with self._call("create"):
            async with self.pool.connection() as conn:
                cur = await conn.execute(query, params)
                return self._to_record(await cur.fetchone())

    async def bulk_create(self, items: list[Record]) -> list[Record]:
        if not items:
            return []

        columns: list[str] = []
        for item in items:
            for column in item:
                if column not in columns:
                    columns.append(column)

        rows = []
        params: list[Any] = []
        for item in items:
            cells = []
            for column in columns:
                if column in item:
                    cells.append(sql.Placeholder())
                    params.append(self._adapt(column, item[column]))
                else:
                    cells.append(sql.SQL("DEFAULT"))
            rows.append(sql.SQL("({})").format(sql.SQL(", ").join(cells)))

        query = sql.SQL("INSERT INTO {table} ({columns}) VALUES {rows} RETURNING *").format(
            table=self.table,
            columns=sql.SQL(", ").join(map(sql.Identifier, columns)),
            rows=sql.SQL(", ").join(rows),
        )

        async with self._call("bulk_create"):
            async with self.pool.connection() as conn:
                cur = await conn.execute(query, params)
                return [self._to_record(row) for row in await cur.fetchall()]

    async def update(self, record_id: str, fields: Record) -> Record:
        if not fields:
            record = await self.get(record_id)
            if record is None:
                raise RecordNotFoundError(
                    f"{self.kind.value} record not found: {record_id}",
                    entity_kind=self.kind.value, operation="update",
                )
            return record

        assignments = sql.SQL(", ").join(
            sql.SQL("{} = {}").format(sql.Identifier(c), sql.Placeholder()) for c in fields
        )
        query = sql.SQL("UPDATE {table} SET {assignments} WHERE id = %s RETURNING *").format(
            table=self.table, assignments=assignments,
        )
        params = [self._adapt(c, v) for c, v in fields.items()] + [str(record_id)]

        async with self._call("update"):
            async with self.pool.connection() as conn:
                cur = await conn.execute(query, params)
                row = await cur.fetchone()

        if row is None:
            raise RecordNotFoundError(
                f"{self.kind.value} record not found: {record_id}",
                entity_kind=self.kind.value, operation="update",
            )
        return self._to_record(row)

    async def delete(self, record_id: str) -> None:
        query = sql.SQL("DELETE FROM {table} WHERE id = %s").format(table=self.table)

        async with self._call("delete"):
            async with self.pool.connection() as conn:
                cur = await conn.execute(query, [str(record_id)])
                deleted = cur.rowcount

        if deleted == 0:
            raise RecordNotFoundError(
                f"{self.kind.value} record not found: {record_id}",
                entity_kind=self.kind.value, operation="delete",
            )

    async def filter(self, **criteria: Any) -> list[Record]:
        query = sql.SQL("SELECT * FROM {table}").format(table=self.table)
        if criteria:
            query += sql.SQL(" WHERE ") + sql.SQL(" AND ").join(
                sql.SQL("{} = {}").format(sql.Identifier(c), sql.Placeholder()) for c in criteria
            )
        query += sql.SQL(" ORDER BY created_at, id")

        async with self._call("filter"):
            async with self.pool.connection() as conn:
                cur = await conn.execute(query, list(criteria.values()))
                return [self._to_record(row) for row in await cur.fetchall()]

    async def get(self, record_id: str) -> Record | None:
        query = sql.SQL("SELECT * FROM {table} WHERE id = %s").format(table=self.table)

        async with self._call("get"):
            async with self.pool.connection() as conn:
                cur = await conn.execute(query, [str(record_id)])
                return self._to_record(await cur.fetchone())


class PostgresStore(EntityStore):
    """Postgres repositories sharing one async pool."""

    def __init__(self, pool: AsyncDatabaseConnectionPool):
        self.pool = pool
        self.repositories = {kind: PostgresRepository(kind, pool) for kind in StoreKind}

    @classmethod
    async def connect(cls, conninfo: str | None = None, **pool_kwargs) -> "PostgresStore":
        """Open a pool (DATABASE_URL / DB_* env vars if conninfo is None)."""
        if conninfo:
            pool = AsyncDatabaseConnectionPool(conninfo=conninfo, **pool_kwargs)
        else:
            pool = AsyncDatabaseConnectionPool.from_env(**pool_kwargs)
        await pool.open()
        logger.info("Connected to PostgreSQL entity store")
        return cls(pool)

    def repository(self, kind: StoreKind) -> Repository:
        return self.repositories[kind]

    async def close(self) -> None:
        await self.pool.close()
