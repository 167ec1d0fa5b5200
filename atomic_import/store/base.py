"""
Async repository interface for the entity store.

The store offers per-record CRUD and bulk insert only. Implementations
raise StoreError subclasses; a missing id on update or delete raises
RecordNotFoundError.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Any

Record = dict[str, Any]


class StoreKind(str, Enum):
    """Entity kinds the importer reads and writes."""

    STORES = "stores"
    ORDERS = "orders"
    ORDER_LINES = "order_lines"
    SKUS = "skus"
    CURRENT_STOCK = "current_stock"
    SUPPLIERS = "suppliers"
    BACKGROUND_JOBS = "background_jobs"


class Repository(ABC):
    """
    Typed async CRUD access to one entity kind.

    Records are plain dicts; create() and bulk_create() assign "id".
    """

    def __init__(self, kind: StoreKind):
        self.kind = kind

    @abstractmethod
    async def create(self, fields: Record) -> Record:
        """Insert one record and return it with its assigned id."""

    @abstractmethod
    async def bulk_create(self, items: list[Record]) -> list[Record]:
        """
        Insert many records in one call.

        The store may return fewer records than requested; callers verify
        the length.
        """

    @abstractmethod
    async def update(self, record_id: str, fields: Record) -> Record:
        """Apply a partial update and return the updated record."""

    @abstractmethod
    async def delete(self, record_id: str) -> None:
        """Delete by id. Raises RecordNotFoundError if the id does not exist."""

    @abstractmethod
    async def filter(self, **criteria: Any) -> list[Record]:
        """Records whose fields equal every criterion (all records if none)."""

    @abstractmethod
    async def get(self, record_id: str) -> Record | None:
        """Fetch one record by id."""

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(kind={self.kind.value})"


class EntityStore(ABC):
    """A set of repositories, one per StoreKind."""

    @abstractmethod
    def repository(self, kind: StoreKind) -> Repository:
        """Repository for one entity kind."""

    @property
    def stores(self) -> Repository:
        return self.repository(StoreKind.STORES)

    @property
    def orders(self) -> Repository:
        return self.repository(StoreKind.ORDERS)

    @property
    def order_lines(self) -> Repository:
        return self.repository(StoreKind.ORDER_LINES)

    @property
    def skus(self) -> Repository:
        return self.repository(StoreKind.SKUS)

    @property
    def current_stock(self) -> Repository:
        return self.repository(StoreKind.CURRENT_STOCK)

    @property
    def suppliers(self) -> Repository:
        return self.repository(StoreKind.SUPPLIERS)

    @property
    def background_jobs(self) -> Repository:
        return self.repository(StoreKind.BACKGROUND_JOBS)

    async def close(self) -> None:
        """Release backend resources. No-op by default."""
