"""
Integration tests for SKU imports: stock handling, supplier pre-pass and
upsert modes.
"""

import asyncio

import pytest

from atomic_import.core.errors import ImportErrorKind, StoreError
from atomic_import.core.models import OutcomeAction
from atomic_import.engine import ImportOptions, SkuImporter, UpsertMode
from atomic_import.store import InMemoryStore, StoreKind

pytestmark = pytest.mark.integration


def sku_row(code, name="Widget", cost="2.50", stock="", supplier="", image_url=""):
    return {
        "sku_code": code,
        "product_name": name,
        "cost_price": cost,
        "stock": stock,
        "supplier": supplier,
        "image_url": image_url,
    }


def run_import(store, rows, sleep, options=None):
    return asyncio.run(SkuImporter(store, sleep=sleep).run_import(rows, options or ImportOptions()))


def test_creates_skus_with_stock(recording_sleep):
    store = InMemoryStore()
    rows = [
        sku_row("W-1", stock="5"),
        sku_row("W-2", stock="0"),
        sku_row("w-1", name="Widget One", stock="8"),
    ]

    result = run_import(store, rows, recording_sleep)

    assert result.total_count == 2
    assert result.created_count == 2
    [w1] = asyncio.run(store.skus.filter(sku_code="W-1"))
    assert w1["product_name"] == "Widget One"
    assert w1["cost_price"] == 2.5
    assert store.current_stock.count() == 1
    assert store.current_stock.count(sku_id=w1["id"], quantity=8) == 1


def test_delta_mode_sums_stock(recording_sleep):
    store = InMemoryStore()
    rows = [sku_row("W-1", stock="5"), sku_row("W-1", stock="-2"), sku_row("W-1", stock="4")]

    run_import(store, rows, recording_sleep, ImportOptions(stock_mode="delta"))

    [stock] = asyncio.run(store.current_stock.filter())
    assert stock["quantity"] == 7


def test_invalid_rows_are_rejected(recording_sleep):
    store = InMemoryStore()
    rows = [
        sku_row("W-1", cost="0"),
        sku_row("W-2", cost="abc"),
        sku_row("W-3", name=""),
        sku_row("W-4", image_url="cdn/img.png"),
        sku_row("W-5", stock="lots"),
    ]

    result = run_import(store, rows, recording_sleep)

    errors = {e.key: e.error for e in result.errors}
    assert errors == {
        "W-1": "Invalid cost_price (must be > 0)",
        "W-2": "Invalid cost_price (must be > 0)",
        "W-3": "Missing product_name",
        "W-4": "Invalid image_url",
    }
    assert result.success_count == 1
    assert store.skus.count() == 1
    [outcome] = [o for o in result.outcomes if o.success]
    assert outcome.warnings == ["Row 5: invalid stock value 'lots' ignored"]


def test_suppliers_are_resolved_once(recording_sleep):
    store = InMemoryStore(seed={StoreKind.SUPPLIERS: [{"id": "s-1", "name": "Acme Corp"}]})
    rows = [
        sku_row("W-1", supplier="acme corp"),
        sku_row("W-2", supplier="Initech"),
        sku_row("W-3", supplier="INITECH"),
    ]

    result = run_import(store, rows, recording_sleep)

    assert result.success_count == 3
    assert store.suppliers.count() == 2
    [initech] = asyncio.run(store.suppliers.filter(name="Initech"))
    assert store.skus.count(supplier_id=initech["id"]) == 2
    assert store.skus.count(supplier_id="s-1") == 1


def test_supplier_failure_fails_only_its_groups(recording_sleep, faulty_repository):
    store = InMemoryStore()
    store.replace(StoreKind.SUPPLIERS, faulty_repository(
        StoreKind.SUPPLIERS, failures={"create": [StoreError("permission denied")]}
    ))
    rows = [sku_row("W-1", supplier="Initech"), sku_row("W-2"), sku_row("W-3", supplier="initech")]

    result = run_import(store, rows, recording_sleep)

    assert result.success_count == 1
    assert sorted(e.key for e in result.errors) == ["W-1", "W-3"]
    assert all(e.error_kind == ImportErrorKind.WRITE for e in result.errors)
    assert store.skus.count() == 1


def test_invisible_supplier_cell_means_no_supplier(recording_sleep):
    store = InMemoryStore()
    rows = [
        sku_row("W-1", supplier="\u200b"),
        sku_row("W-2", supplier="\u200b \u2060"),
        sku_row("W-3", supplier="Initech"),
    ]

    result = run_import(store, rows, recording_sleep)

    assert result.success_count == 3
    assert result.errors == []
    assert store.suppliers.count() == 1
    assert store.skus.count(supplier_id=None) == 2


def test_supplier_rate_limit_is_retried(recording_sleep, faulty_repository, transient_error):
    store = InMemoryStore()
    store.replace(StoreKind.SUPPLIERS, faulty_repository(
        StoreKind.SUPPLIERS, failures={"create": [transient_error(), transient_error()]}
    ))
    rows = [sku_row("W-1", supplier="Initech"), sku_row("W-2", supplier="initech")]

    result = run_import(store, rows, recording_sleep)

    assert result.success_count == 2
    assert recording_sleep.delays == [0.5, 1.0]
    assert store.suppliers.count() == 1


def test_skip_mode_does_not_touch_existing(recording_sleep):
    store = InMemoryStore(seed={StoreKind.SKUS: [{"id": "sku-1", "sku_code": "W-1", "product_name": "Old",
                                                   "cost_price": 1.0}]})

    result = run_import(store, [sku_row("w-1", name="New", stock="3")], recording_sleep)

    assert result.outcomes[0].action == OutcomeAction.SKIPPED
    assert asyncio.run(store.skus.get("sku-1"))["product_name"] == "Old"
    assert store.current_stock.count() == 0


def test_update_mode(recording_sleep):
    store = InMemoryStore(seed={
        StoreKind.SKUS: [{"id": "sku-1", "sku_code": "W-1", "product_name": "Old", "cost_price": 1.0}],
        StoreKind.CURRENT_STOCK: [{"id": "st-1", "sku_id": "sku-1", "quantity": 10}],
    })

    result = run_import(store, [sku_row("W-1", name="New", cost="3.75", stock="4")], recording_sleep,
                        ImportOptions(upsert_mode=UpsertMode.UPDATE))

    assert result.updated_count == 1
    sku = asyncio.run(store.skus.get("sku-1"))
    assert sku["product_name"] == "New"
    assert sku["cost_price"] == 3.75
    assert asyncio.run(store.current_stock.get("st-1"))["quantity"] == 4


def test_update_mode_delta_adds_to_snapshot(recording_sleep):
    store = InMemoryStore(seed={
        StoreKind.SKUS: [{"id": "sku-1", "sku_code": "W-1", "product_name": "Old", "cost_price": 1.0}],
        StoreKind.CURRENT_STOCK: [{"id": "st-1", "sku_id": "sku-1", "quantity": 10}],
    })

    run_import(store, [sku_row("W-1", stock="-3")], recording_sleep,
               ImportOptions(upsert_mode=UpsertMode.UPDATE, stock_mode="delta"))

    assert asyncio.run(store.current_stock.get("st-1"))["quantity"] == 7


def test_tenant_scoping(recording_sleep):
    store = InMemoryStore(seed={StoreKind.SKUS: [{"id": "sku-1", "sku_code": "W-1", "tenant_id": "globex"}]})

    result = run_import(store, [sku_row("W-1", stock="2")], recording_sleep, ImportOptions(tenant_id="acme"))

    assert result.created_count == 1
    assert store.skus.count(tenant_id="acme") == 1
    assert store.current_stock.count(tenant_id="acme") == 1
