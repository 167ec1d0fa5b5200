"""
Row groupers: turn flat import rows into one Group per business key.
"""

from .base import (
    EMPTY_KEY_PREFIX,
    AggregationRule,
    RowGrouper,
    clean_text,
    is_empty,
    parse_float,
    parse_int,
)
from .orders import OrderRowGrouper, order_business_key
from .skus import SkuRowGrouper, StockMode

__all__ = [
    "EMPTY_KEY_PREFIX",
    "AggregationRule",
    "OrderRowGrouper",
    "RowGrouper",
    "SkuRowGrouper",
    "StockMode",
    "clean_text",
    "is_empty",
    "order_business_key",
    "parse_float",
    "parse_int",
]
