"""
Group writers: the store calls that materialize one group.

A writer pushes an undo action onto the attempt's CompensationStack right
after each successful create, so a later failure can remove everything the
attempt wrote.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import datetime, timezone
from functools import partial
from typing import Any

from atomic_import.core.errors import WriteError
from atomic_import.core.grouping import StockMode
from atomic_import.core.models import CreatedIds, Group
from atomic_import.store import EntityStore, Record

from .compensation import CompensationStack


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class GroupWriter(ABC):
    """Writes one validated group to the store."""

    entity_kind: str = ""
    duplicate_label: str = "key"
    supports_update: bool = False

    def __init__(self, store: EntityStore, tenant_id: str | None = None):
        self.store = store
        self.tenant_id = tenant_id

    def _scoped(self, fields: dict[str, Any]) -> dict[str, Any]:
        if self.tenant_id is not None:
            fields["tenant_id"] = self.tenant_id
        return fields

    @abstractmethod
    async def create(self, group: Group, compensations: CompensationStack) -> CreatedIds:
        """
        Create parent and children.

        Raises:
            Exception: Any store or write failure; compensations already
                       pushed cover what was written
        """

    async def update(self, group: Group, existing: Record) -> CreatedIds:
        """Update an existing entity in place. Never compensated."""
        raise NotImplementedError(f"{self.entity_kind} writer does not support updates")


class OrderGroupWriter(GroupWriter):
    """Order header plus bulk-created order lines."""

    entity_kind = "order"
    duplicate_label = "order ID"

    def __init__(self, store: EntityStore, import_batch_id: str, tenant_id: str | None = None):
        super().__init__(store, tenant_id)
        self.import_batch_id = import_batch_id

    async def create(self, group: Group, compensations: CompensationStack) -> CreatedIds:
        header = group.header
        order = await self.store.orders.create(self._scoped({
            "amazon_order_id": header["amazon_order_id"],
            "order_date": header["order_date"],
            "store_id": header["store_id"],
            "status": "pending",
            "import_batch_id": self.import_batch_id,
        }))
        order_id = order["id"]
        compensations.push(f"delete order {order_id}", partial(self.store.orders.delete, order_id))

        intended = [
            self._scoped({
                "order_id": order_id,
                "sku_id": line.reference_id,
                "sku_code": line.reference_code,
                "quantity": line.quantity,
                "row_number": line.row_number,
            })
            for line in group.lines
        ]
        created = await self.store.order_lines.bulk_create(intended)
        for line in created:
            compensations.push(
                f"delete order line {line['id']}", partial(self.store.order_lines.delete, line["id"])
            )

        if len(created) != len(intended):
            raise WriteError(f"Created {len(created)} of {len(intended)} order lines")

        return CreatedIds(parent_id=order_id, child_ids=[line["id"] for line in created])


class SkuGroupWriter(GroupWriter):
    """
    SKU record plus an optional current-stock record.

    Stock is only created for a positive quantity. Updates change the SKU
    and its stock in place against the stock snapshot taken before the run.
    """

    entity_kind = "sku"
    duplicate_label = "SKU"
    supports_update = True

    UPDATABLE_FIELDS = ("product_name", "cost_price", "supplier_id", "image_url")

    def __init__(
        self,
        store: EntityStore,
        stock_mode: StockMode = "set",
        existing_stock: Mapping[str, Record] | None = None,
        tenant_id: str | None = None,
    ):
        super().__init__(store, tenant_id)
        self.stock_mode = stock_mode
        self.existing_stock = existing_stock or {}

    def stock_value(self, group: Group) -> int | None:
        field = "stock_quantity" if self.stock_mode == "set" else "stock_delta"
        return group.header.get(field)

    async def create(self, group: Group, compensations: CompensationStack) -> CreatedIds:
        header = group.header
        sku = await self.store.skus.create(self._scoped({
            "sku_code": header["sku_code"],
            "product_name": header["product_name"],
            "cost_price": header["cost_price"],
            "supplier_id": header.get("supplier_id"),
            "image_url": header.get("image_url"),
        }))
        sku_id = sku["id"]
        compensations.push(f"delete sku {sku_id}", partial(self.store.skus.delete, sku_id))

        quantity = self.stock_value(group) or 0
        if quantity <= 0:
            return CreatedIds(parent_id=sku_id)

        stock = await self.store.current_stock.create(self._scoped({"sku_id": sku_id, "quantity": quantity}))
        compensations.push(
            f"delete stock {stock['id']}", partial(self.store.current_stock.delete, stock["id"])
        )
        return CreatedIds(parent_id=sku_id, child_ids=[stock["id"]])

    async def update(self, group: Group, existing: Record) -> CreatedIds:
        fields = {
            field: group.header[field]
            for field in self.UPDATABLE_FIELDS
            if group.header.get(field) is not None
        }
        fields["updated_at"] = utcnow()
        sku_id = existing["id"]
        await self.store.skus.update(sku_id, fields)

        value = self.stock_value(group)
        if value is None:
            return CreatedIds(parent_id=sku_id)

        stock = self.existing_stock.get(sku_id)
        if self.stock_mode == "delta":
            quantity = (stock["quantity"] if stock else 0) + value
        else:
            quantity = value

        if stock is not None:
            await self.store.current_stock.update(stock["id"], {"quantity": quantity, "updated_at": utcnow()})
            return CreatedIds(parent_id=sku_id, child_ids=[stock["id"]])

        if quantity > 0:
            created = await self.store.current_stock.create(self._scoped({"sku_id": sku_id, "quantity": quantity}))
            return CreatedIds(parent_id=sku_id, child_ids=[created["id"]])

        return CreatedIds(parent_id=sku_id)
