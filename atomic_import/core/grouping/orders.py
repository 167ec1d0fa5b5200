"""
Order row grouping: one group per (store, order id), one line per row.
"""

from collections.abc import Iterable
from typing import Any

from atomic_import.core.keys import normalize_key
from atomic_import.core.models import Group, LineIntent, SourceRow

from .base import AggregationRule, RowGrouper, clean_text, parse_int


def order_business_key(store_id: Any, order_id: Any) -> str:
    """Key shared by the grouper and the existing-order pre-load."""
    order_part = normalize_key(order_id)
    if not order_part:
        return ""
    return f"{normalize_key(store_id)}_{order_part}"


class OrderRowGrouper(RowGrouper):
    """
    Groups order rows by store and amazon_order_id.

    Expected columns: amazon_order_id, order_date, store_id (or store, an
    id or a store name), sku_code, quantity.

    Rows whose sku_code is unknown add no line; they stay in the group's
    source rows and leave a warning.
    """

    entity_kind = "order"
    header_rules = {
        "amazon_order_id": AggregationRule.SET_ONCE,
        "store_id": AggregationRule.SET_ONCE,
        "order_date": AggregationRule.LAST_NON_EMPTY,
        "store_name": AggregationRule.LAST_NON_EMPTY,
        "store_color": AggregationRule.LAST_NON_EMPTY,
    }

    def __init__(self, skus: Iterable[dict[str, Any]], stores: Iterable[dict[str, Any]]):
        """
        Args:
            skus: Known SKU records (need "id" and "sku_code")
            stores: Known store records (need "id", optionally "name", "color")
        """
        self.sku_index: dict[str, dict[str, Any]] = {}
        for sku in skus:
            self.sku_index.setdefault(normalize_key(sku["sku_code"]), sku)

        self.store_index: dict[str, dict[str, Any]] = {}
        for store in stores:
            self.store_index[str(store["id"])] = store
            if store.get("name"):
                self.store_index.setdefault(f"name:{normalize_key(store['name'])}", store)

    def resolve_store(self, row: SourceRow) -> dict[str, Any] | None:
        value = clean_text(row.get("store_id")) or clean_text(row.get("store"))
        if value is None:
            return None
        return self.store_index.get(value) or self.store_index.get(f"name:{normalize_key(value)}")

    def business_key(self, row: SourceRow) -> str:
        store = self.resolve_store(row)
        store_part = store["id"] if store else (row.get("store_id") or row.get("store"))
        return order_business_key(store_part, row.get("amazon_order_id"))

    def header_values(self, row: SourceRow) -> dict[str, Any]:
        store = self.resolve_store(row)
        return {
            "amazon_order_id": clean_text(row.get("amazon_order_id")),
            "order_date": clean_text(row.get("order_date")),
            "store_id": store["id"] if store else None,
            "store_name": store.get("name") if store else None,
            "store_color": store.get("color") if store else None,
        }

    def fold_row(self, group: Group, row: SourceRow) -> None:
        code = clean_text(row.get("sku_code"))
        sku = self.sku_index.get(normalize_key(code)) if code else None

        if sku is None:
            group.warnings.append(f"Row {row.row_number}: SKU '{code or ''}' not found; line skipped")
            return

        group.lines.append(LineIntent(
            reference_code=sku["sku_code"],
            reference_id=str(sku["id"]),
            quantity=parse_int(row.get("quantity")),
            row_number=row.row_number,
        ))
