"""
Integration tests for the PostgreSQL entity store.

Runs the repositories and a full import against a PostgreSQL testcontainer.
"""

import asyncio

import pytest

from atomic_import.core.errors import RecordNotFoundError, StoreError
from atomic_import.core.models import JobStatus
from atomic_import.engine import ImportOptions, OrderImporter
from atomic_import.jobs import JobTracker
from atomic_import.store import StoreKind
from atomic_import.store.postgres import PostgresStore

pytestmark = pytest.mark.integration


def with_store(url, scenario):
    """Run scenario(store) against a freshly connected PostgresStore."""
    async def runner():
        store = await PostgresStore.connect(url, min_size=1, max_size=4)
        try:
            return await scenario(store)
        finally:
            await store.close()

    return asyncio.run(runner())


def test_crud_round_trip(postgres_url):
    async def scenario(store):
        supplier = await store.suppliers.create({"name": "Acme Corp"})
        sku = await store.skus.create({"sku_code": "W-1", "product_name": "Widget", "cost_price": 2.5,
                                       "supplier_id": supplier["id"]})
        updated = await store.skus.update(sku["id"], {"product_name": "Widget v2"})
        found = await store.skus.filter(sku_code="W-1")
        await store.skus.delete(sku["id"])
        return sku, updated, found, await store.skus.get(sku["id"])

    sku, updated, found, after_delete = with_store(postgres_url, scenario)

    assert isinstance(sku["id"], str)
    assert updated["product_name"] == "Widget v2"
    assert [r["id"] for r in found] == [sku["id"]]
    assert after_delete is None


def test_bulk_create_returns_every_row(postgres_url):
    async def scenario(store):
        shop = await store.stores.create({"name": "Main Store"})
        order = await store.orders.create({"amazon_order_id": "112-1", "order_date": "2025-01-31",
                                           "store_id": shop["id"]})
        return await store.order_lines.bulk_create([
            {"order_id": order["id"], "sku_code": "X", "quantity": 1, "row_number": 1},
            {"order_id": order["id"], "sku_code": "Y", "quantity": 2, "row_number": 2},
        ])

    lines = with_store(postgres_url, scenario)

    assert [line["sku_code"] for line in lines] == ["X", "Y"]
    assert len({line["id"] for line in lines}) == 2


def test_missing_ids_raise_not_found(postgres_url):
    async def scenario(store):
        with pytest.raises(RecordNotFoundError):
            await store.orders.delete("missing")
        with pytest.raises(RecordNotFoundError):
            await store.orders.update("missing", {"status": "shipped"})

    with_store(postgres_url, scenario)


def test_constraint_violations_are_permanent_store_errors(postgres_url):
    async def scenario(store):
        with pytest.raises(StoreError) as exc_info:
            await store.order_lines.create({"order_id": "no-such-order", "quantity": 1})
        return exc_info.value

    error = with_store(postgres_url, scenario)

    assert error.operation == "create"
    assert error.entity_kind == StoreKind.ORDER_LINES.value


def test_job_records_keep_json_columns(postgres_url):
    async def scenario(store):
        tracker = JobTracker(store.background_jobs)
        job = await tracker.create("acme", "order_import", params={"upsert_mode": "skip"})
        await tracker.start(job.job_id)
        await tracker.finalize(job.job_id, JobStatus.COMPLETED, result={"created": 3})
        return await tracker.get(job.job_id)

    job = with_store(postgres_url, scenario)

    assert job.status == JobStatus.COMPLETED
    assert job.params == {"upsert_mode": "skip"}
    assert job.result == {"created": 3}
    assert job.completed_at is not None


def test_order_import_against_postgres(postgres_url, order_rows):
    async def scenario(store):
        await store.stores.bulk_create([{"id": "1", "name": "Main Store"}, {"id": "2", "name": "Outlet"}])
        await store.skus.bulk_create([
            {"id": "sku-x", "sku_code": "X", "product_name": "Widget X", "cost_price": 2.5},
            {"id": "sku-y", "sku_code": "Y", "product_name": "Widget Y", "cost_price": 4.0},
            {"id": "sku-z", "sku_code": "Z-100", "product_name": "Gadget Z", "cost_price": 9.99},
        ])
        importer = OrderImporter(store)
        first = await importer.run_import(order_rows, ImportOptions(concurrency=2))
        second = await importer.run_import(order_rows, ImportOptions(concurrency=2))
        return first, second, await store.orders.filter(), await store.order_lines.filter()

    first, second, orders, lines = with_store(postgres_url, scenario)

    assert first.created_count == 3
    assert second.skipped_count == 3
    assert len(orders) == 3
    assert len(lines) == 5
