"""
In-memory entity store for tests and dry runs.

Every call yields to the event loop once so concurrent groups interleave
the way they would against a remote store.
"""

import asyncio
import copy
import uuid
from datetime import datetime, timezone
from typing import Any

from atomic_import.core.errors import RecordNotFoundError

from .base import EntityStore, Record, Repository, StoreKind


class InMemoryRepository(Repository):
    """Dict-backed repository. Records are copied in and out."""

    def __init__(self, kind: StoreKind, records: list[Record] | None = None):
        super().__init__(kind)
        self.records: dict[str, Record] = {}
        for record in records or []:
            self._insert(record)

    def _insert(self, fields: Record) -> Record:
        record = copy.deepcopy(fields)
        record.setdefault("id", uuid.uuid4().hex)
        record.setdefault("created_at", datetime.now(timezone.utc))
        record["id"] = str(record["id"])
        self.records[record["id"]] = record
        return copy.deepcopy(record)

    async def create(self, fields: Record) -> Record:
        await asyncio.sleep(0)
        return self._insert(fields)

    async def bulk_create(self, items: list[Record]) -> list[Record]:
        await asyncio.sleep(0)
        return [self._insert(item) for item in items]

    async def update(self, record_id: str, fields: Record) -> Record:
        await asyncio.sleep(0)
        record = self.records.get(str(record_id))
        if record is None:
            raise RecordNotFoundError(
                f"{self.kind.value} record not found: {record_id}",
                entity_kind=self.kind.value, operation="update",
            )
        record.update(copy.deepcopy(fields))
        return copy.deepcopy(record)

    async def delete(self, record_id: str) -> None:
        await asyncio.sleep(0)
        if self.records.pop(str(record_id), None) is None:
            raise RecordNotFoundError(
                f"{self.kind.value} record not found: {record_id}",
                entity_kind=self.kind.value, operation="delete",
            )

    async def filter(self, **criteria: Any) -> list[Record]:
        await asyncio.sleep(0)
        return [
            copy.deepcopy(record)
            for record in self.records.values()
            if all(record.get(field) == value for field, value in criteria.items())
        ]

    async def get(self, record_id: str) -> Record | None:
        await asyncio.sleep(0)
        record = self.records.get(str(record_id))
        return copy.deepcopy(record) if record is not None else None

    def count(self, **criteria: Any) -> int:
        """Synchronous count, for assertions."""
        return sum(
            1 for record in self.records.values()
            if all(record.get(field) == value for field, value in criteria.items())
        )


class InMemoryStore(EntityStore):
    """One InMemoryRepository per StoreKind."""

    def __init__(self, seed: dict[StoreKind, list[Record]] | None = None):
        seed = seed or {}
        self.repositories: dict[StoreKind, Repository] = {
            kind: InMemoryRepository(kind, seed.get(kind)) for kind in StoreKind
        }

    def repository(self, kind: StoreKind) -> Repository:
        return self.repositories[kind]

    def replace(self, kind: StoreKind, repository: Repository) -> None:
        """Swap in another repository (e.g. a fault-injecting wrapper)."""
        self.repositories[kind] = repository
