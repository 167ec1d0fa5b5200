"""
Group and LineIntent models: the unit of atomic writing.
"""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from .source_row import SourceRow

EntityKind = Literal["order", "sku"]


class LineIntent(BaseModel):
    """
    A child record to create together with its parent.

    Attributes:
        reference_code: Foreign key as written in the input (e.g. SKU code)
        reference_id: Resolved store id of the reference, None if unresolved
        quantity: Parsed quantity, None if it could not be parsed
        row_number: Source row this line came from
    """

    model_config = ConfigDict(frozen=True)

    reference_code: str
    reference_id: str | None = None
    quantity: int | None = None
    row_number: int = Field(..., ge=1)

    @property
    def resolved(self) -> bool:
        return self.reference_id is not None


class Group(BaseModel):
    """
    All rows sharing one normalized business key.

    Built by a RowGrouper, checked by GroupValidator and written exactly
    once by AtomicGroupProcessor.

    Attributes:
        entity_kind: "order" or "sku"
        business_key: Normalized key identifying the target entity
        header: Aggregated parent fields
        lines: Child lines with resolvable references, in row order
        source_rows: Every row folded into this group, including dropped ones
        warnings: Non-fatal grouping notes (e.g. skipped unresolved lines)
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "entity_kind": "order",
                "business_key": "store-1_112-0000001",
                "header": {"amazon_order_id": "112-0000001", "order_date": "2025-01-31", "store_id": "store-1"},
                "lines": [{"reference_code": "WIDGET-1", "reference_id": "sku-9", "quantity": 2, "row_number": 1}],
                "source_rows": [{"row_number": 1, "data": {"amazon_order_id": "112-0000001"}}],
                "warnings": [],
            }
        }
    )

    entity_kind: EntityKind
    business_key: str
    header: dict[str, Any] = Field(default_factory=dict)
    lines: list[LineIntent] = Field(default_factory=list)
    source_rows: list[SourceRow] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @property
    def row_count(self) -> int:
        return len(self.source_rows)

    @property
    def first_row_number(self) -> int:
        return self.source_rows[0].row_number if self.source_rows else 0

    @property
    def display_key(self) -> str:
        """Human-readable key for progress messages and reports."""
        if self.entity_kind == "order":
            return str(self.header.get("amazon_order_id") or self.business_key)
        return str(self.header.get("sku_code") or self.business_key)
