"""
Pytest configuration and fixtures for atomic-import tests

This module provides shared fixtures for unit, integration, and E2E tests.
"""
import asyncio
import os
import shutil
from collections.abc import Generator
from typing import Any

import psycopg
import pytest

from atomic_import.core.errors import TransientStoreError
from atomic_import.store import InMemoryRepository, InMemoryStore, Record, StoreKind

# =======================
# PYTEST CONFIGURATION
# =======================


def pytest_configure(config):
    """Configure pytest with custom markers"""
    config.addinivalue_line(
        "markers", "unit: Unit tests that don't require external services"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests across components; some need Docker or Spark"
    )
    config.addinivalue_line(
        "markers", "e2e: End-to-end tests that run a full import"
    )
    config.addinivalue_line(
        "markers", "slow: Tests that take more than 5 seconds to run"
    )


# =======================
# FAKE STORE HELPERS
# =======================


class FaultyRepository(InMemoryRepository):
    """
    In-memory repository with scripted failures.

    failures maps an operation name to a queue; each call of that operation
    pops the next entry and raises it if it is an exception (None means the
    call succeeds). short_bulk drops that many records from bulk_create
    results after storing them all.
    """

    def __init__(self, kind: StoreKind, failures: dict[str, list[Exception | None]] | None = None,
                 short_bulk: int = 0, delay: float = 0.0):
        super().__init__(kind)
        self.failures = {op: list(queue) for op, queue in (failures or {}).items()}
        self.short_bulk = short_bulk
        self.delay = delay
        self.calls: list[tuple[str, Any]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def _enter(self, operation: str, argument: Any) -> None:
        self.calls.append((operation, argument))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            queue = self.failures.get(operation)
            if queue:
                failure = queue.pop(0)
                if failure is not None:
                    raise failure
        finally:
            self.in_flight -= 1

    def count_calls(self, operation: str) -> int:
        return sum(1 for op, _ in self.calls if op == operation)

    async def create(self, fields: Record) -> Record:
        await self._enter("create", fields)
        return await super().create(fields)

    async def bulk_create(self, items: list[Record]) -> list[Record]:
        await self._enter("bulk_create", items)
        created = await super().bulk_create(items)
        if self.short_bulk:
            return created[:len(created) - self.short_bulk]
        return created

    async def update(self, record_id: str, fields: Record) -> Record:
        await self._enter("update", record_id)
        return await super().update(record_id, fields)

    async def delete(self, record_id: str) -> None:
        await self._enter("delete", record_id)
        await super().delete(record_id)

    async def filter(self, **criteria: Any) -> list[Record]:
        await self._enter("filter", criteria)
        return await super().filter(**criteria)

    async def get(self, record_id: str) -> Record | None:
        await self._enter("get", record_id)
        return await super().get(record_id)


class RecordingSleep:
    """Stand-in for asyncio.sleep that records the requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


def rate_limited(message: str = "429 Too Many Requests: rate limit exceeded") -> TransientStoreError:
    return TransientStoreError(message)


# =======================
# STORE FIXTURES
# =======================


@pytest.fixture
def reference_data() -> dict[StoreKind, list[Record]]:
    """Stores and SKUs that order rows can reference."""
    return {
        StoreKind.STORES: [
            {"id": "1", "name": "Main Store", "color": "#ff0000"},
            {"id": "2", "name": "Outlet", "color": "#00ff00"},
        ],
        StoreKind.SKUS: [
            {"id": "sku-x", "sku_code": "X", "product_name": "Widget X", "cost_price": 2.5},
            {"id": "sku-y", "sku_code": "Y", "product_name": "Widget Y", "cost_price": 4.0},
            {"id": "sku-z", "sku_code": "Z-100", "product_name": "Gadget Z", "cost_price": 9.99},
        ],
    }


@pytest.fixture
def memory_store(reference_data) -> InMemoryStore:
    """In-memory store seeded with stores and SKUs."""
    return InMemoryStore(seed=reference_data)


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def faulty_repository():
    """Factory for FaultyRepository (kind, failures=..., short_bulk=..., delay=...)."""
    return FaultyRepository


@pytest.fixture
def transient_error():
    """Factory for a rate-limit TransientStoreError."""
    return rate_limited


@pytest.fixture
def order_rows() -> list[dict[str, Any]]:
    """Three orders over five rows, one of them in another store."""
    return [
        {"amazon_order_id": "112-0000001", "order_date": "2025-01-31", "store_id": "1", "sku_code": "X", "quantity": "2"},
        {"amazon_order_id": "112-0000001", "order_date": "2025-01-31", "store_id": "1", "sku_code": "Y", "quantity": "1"},
        {"amazon_order_id": "112-0000002", "order_date": "2025-02-01", "store_id": "1", "sku_code": "Z-100", "quantity": "5"},
        {"amazon_order_id": "112-0000003", "order_date": "2025-02-02", "store": "Outlet", "sku_code": "x", "quantity": "1"},
        {"amazon_order_id": "112-0000003", "order_date": "", "store": "outlet", "sku_code": "y", "quantity": "3"},
    ]


# =======================
# SPARK FIXTURES
# =======================


@pytest.fixture(scope="session")
def spark_session():
    """
    Create a Spark session for testing with local mode

    Skipped when no Java runtime is available.
    """
    if not (shutil.which("java") or os.getenv("JAVA_HOME")):
        pytest.skip("Java runtime not available for Spark")

    from pyspark.sql import SparkSession

    spark = (
        SparkSession.builder
        .appName("atomic-import-test")
        .master("local[2]")
        .config("spark.sql.shuffle.partitions", "2")
        .config("spark.driver.memory", "1g")
        .config("spark.ui.enabled", "false")
        .getOrCreate()
    )
    spark.sparkContext.setLogLevel("WARN")

    yield spark

    spark.stop()


# =======================
# DATABASE FIXTURES (Testcontainers)
# =======================


@pytest.fixture(scope="session")
def postgres_container() -> Generator[Any, None, None]:
    """
    Start PostgreSQL container with the importer schema

    Skipped when Docker is not available.
    """
    try:
        from testcontainers.postgres import PostgresContainer

        container = PostgresContainer(
            image="postgres:16.2-alpine",
            username="test_importer",
            password="test_password",
            dbname="test_atomic_import",
            driver=None,
        )
        container.start()
    except Exception as e:
        pytest.skip(f"Docker not available for PostgreSQL container: {e}")

    try:
        init_sql_path = os.path.join(os.path.dirname(os.path.dirname(__file__)), "docker", "init-db.sql")
        with open(init_sql_path) as f:
            init_sql = f.read()

        with psycopg.connect(container.get_connection_url()) as conn:
            with conn.cursor() as cur:
                cur.execute(init_sql)
            conn.commit()

        yield container
    finally:
        container.stop()


@pytest.fixture(scope="function")
def postgres_url(postgres_container) -> str:
    """
    Connection URL to a database with all tables truncated
    """
    url = postgres_container.get_connection_url()
    with psycopg.connect(url) as conn:
        with conn.cursor() as cur:
            cur.execute(
                "TRUNCATE TABLE order_lines, orders, current_stock, skus, suppliers, "
                "stores, background_jobs CASCADE"
            )
        conn.commit()
    return url
