"""
SKU row grouping: one group per sku_code, repeated rows refine the header.
"""

from typing import Any, Literal

from atomic_import.core.keys import normalize_key
from atomic_import.core.models import Group, SourceRow

from .base import AggregationRule, RowGrouper, clean_text, is_empty, parse_float, parse_int

StockMode = Literal["set", "delta"]


def first_present(row: SourceRow, *columns: str) -> Any:
    for column in columns:
        value = row.get(column)
        if not is_empty(value):
            return value
    return None


class SkuRowGrouper(RowGrouper):
    """
    Groups SKU rows by sku_code.

    Expected columns: sku_code, product_name, cost_price (or cost),
    supplier, image_url, stock (or stock_quantity).

    In "set" mode the last non-empty stock value becomes stock_quantity.
    In "delta" mode every row's stock is summed into stock_delta.
    """

    entity_kind = "sku"

    def __init__(self, stock_mode: StockMode = "set"):
        if stock_mode not in ("set", "delta"):
            raise ValueError(f"Unknown stock mode: {stock_mode}")
        self.stock_mode = stock_mode
        self.stock_field = "stock_quantity" if stock_mode == "set" else "stock_delta"
        self.header_rules = {
            "sku_code": AggregationRule.SET_ONCE,
            "product_name": AggregationRule.LAST_NON_EMPTY,
            "cost_price": AggregationRule.LAST_NON_EMPTY,
            "supplier": AggregationRule.LAST_NON_EMPTY,
            "image_url": AggregationRule.LAST_NON_EMPTY,
            self.stock_field: (
                AggregationRule.LAST_NON_EMPTY if stock_mode == "set" else AggregationRule.SUM
            ),
        }

    def business_key(self, row: SourceRow) -> str:
        return normalize_key(row.get("sku_code"))

    def header_values(self, row: SourceRow) -> dict[str, Any]:
        return {
            "sku_code": clean_text(row.get("sku_code")),
            "product_name": clean_text(row.get("product_name")),
            "cost_price": parse_float(first_present(row, "cost_price", "cost")),
            "supplier": clean_text(row.get("supplier")),
            "image_url": clean_text(row.get("image_url")),
            self.stock_field: parse_int(first_present(row, "stock", "stock_quantity")),
        }

    def fold_row(self, group: Group, row: SourceRow) -> None:
        raw_stock = first_present(row, "stock", "stock_quantity")
        if raw_stock is not None and parse_int(raw_stock) is None:
            group.warnings.append(f"Row {row.row_number}: invalid stock value '{raw_stock}' ignored")
