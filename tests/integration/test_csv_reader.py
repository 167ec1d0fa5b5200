"""
Integration tests for the Spark CSV reader.
"""

import asyncio

import pytest

from atomic_import.engine import OrderImporter
from atomic_import.readers import SparkCSVReader
from atomic_import.store import InMemoryStore, StoreKind

pytestmark = pytest.mark.integration


@pytest.fixture
def orders_csv(tmp_path):
    path = tmp_path / "orders.csv"
    path.write_text(
        " Amazon_Order_ID ,order_date,store_id,SKU_Code,quantity\n"
        "112-0000001,2025-01-31,1,X,2\n"
        "112-0000001,2025-01-31,1,Y,1\n"
        '112-0000002,2025-02-01,1,"Z-100",\n'
        "112-0000003,2025-02-02,1,X,007\n"
    )
    return path


def test_reads_rows_in_file_order_as_strings(spark_session, orders_csv):
    rows = SparkCSVReader(spark_session).read_rows(orders_csv)

    assert [r["amazon_order_id"] for r in rows] == ["112-0000001", "112-0000001", "112-0000002", "112-0000003"]
    assert set(rows[0]) == {"amazon_order_id", "order_date", "store_id", "sku_code", "quantity"}
    assert rows[3]["quantity"] == "007"
    assert rows[2]["quantity"] is None


def test_custom_delimiter(spark_session, tmp_path):
    path = tmp_path / "skus.csv"
    path.write_text("sku_code;product_name;cost_price\nW-1;Widget;2,50\n")

    [row] = SparkCSVReader(spark_session).read_rows(path, delimiter=";")

    assert row == {"sku_code": "W-1", "product_name": "Widget", "cost_price": "2,50"}


def test_rows_feed_the_importer(spark_session, orders_csv, reference_data):
    store = InMemoryStore(seed=reference_data)
    rows = SparkCSVReader(spark_session).read_rows(orders_csv)

    result = asyncio.run(OrderImporter(store).run_import(rows))

    assert result.success_count == 2
    assert [e.key for e in result.errors] == ["112-0000002"]
    assert store.repository(StoreKind.ORDER_LINES).count() == 3
