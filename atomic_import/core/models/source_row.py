"""
SourceRow model representing one raw input row.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class SourceRow(BaseModel):
    """
    One raw input row, kept unchanged for failed-row reports.

    Attributes:
        row_number: 1-based position in the input
        data: Column values as read
    """

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "row_number": 3,
                "data": {"amazon_order_id": "112-0000001", "sku_code": "WIDGET-1", "quantity": "2"},
            }
        },
    )

    row_number: int = Field(..., ge=1)
    data: dict[str, Any]

    def get(self, column: str, default: Any = None) -> Any:
        return self.data.get(column, default)
