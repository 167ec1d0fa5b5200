"""
Unit tests for the supplier pre-pass.
"""

import asyncio

import pytest

from atomic_import.core.errors import StoreError, SupplierResolutionError
from atomic_import.engine import RetryPolicy, SupplierResolver
from atomic_import.store import InMemoryRepository, StoreKind


@pytest.fixture
def suppliers() -> InMemoryRepository:
    return InMemoryRepository(StoreKind.SUPPLIERS, [
        {"id": "s-1", "name": "Acme Corp", "tenant_id": "acme"},
        {"id": "s-2", "name": "Globex", "tenant_id": "globex"},
    ])


def test_matches_by_id_then_name(suppliers):
    resolver = SupplierResolver(suppliers)

    assert asyncio.run(resolver.resolve("s-1")) == "s-1"
    assert asyncio.run(resolver.resolve("  ACME corp ")) == "s-1"
    assert resolver.created == []


def test_unknown_supplier_is_created_once(suppliers):
    resolver = SupplierResolver(suppliers, tenant_id="acme")

    async def resolve_twice():
        return await resolver.resolve("Initech"), await resolver.resolve("initech")

    first, second = asyncio.run(resolve_twice())

    assert first == second
    assert suppliers.count(name="Initech", tenant_id="acme") == 1
    assert len(resolver.created) == 1


def test_tenant_scope(suppliers):
    resolver = SupplierResolver(suppliers, tenant_id="acme")

    supplier_id = asyncio.run(resolver.resolve("Globex"))

    assert supplier_id != "s-2"
    assert suppliers.count(name="Globex") == 2


def test_resolve_all_deduplicates(suppliers):
    resolver = SupplierResolver(suppliers)

    resolved, failed = asyncio.run(resolver.resolve_all(["Acme Corp", "acme corp", "Initech", "", "INITECH"]))

    assert failed == {}
    assert resolved["acme corp"] == "s-1"
    assert set(resolved) == {"acme corp", "initech"}
    assert suppliers.count(name="Initech") == 1


def test_create_failure_is_reported(faulty_repository):
    repository = faulty_repository(StoreKind.SUPPLIERS, failures={"create": [StoreError("permission denied")]})
    resolver = SupplierResolver(repository)

    with pytest.raises(SupplierResolutionError, match="Initech"):
        asyncio.run(resolver.resolve("Initech"))


def test_resolve_all_collects_failures(faulty_repository):
    repository = faulty_repository(StoreKind.SUPPLIERS, failures={"create": [StoreError("permission denied"), None]})
    resolver = SupplierResolver(repository)

    resolved, failed = asyncio.run(resolver.resolve_all(["Initech", "Hooli"]))

    assert list(failed) == ["initech"]
    assert "permission denied" in failed["initech"]
    assert list(resolved) == ["hooli"]


def test_transient_create_is_retried(faulty_repository, transient_error, recording_sleep):
    repository = faulty_repository(StoreKind.SUPPLIERS, failures={"create": [transient_error(), transient_error()]})
    resolver = SupplierResolver(repository, sleep=recording_sleep)

    supplier_id = asyncio.run(resolver.resolve("Initech"))

    assert repository.count_calls("create") == 3
    assert recording_sleep.delays == [0.5, 1.0]
    assert repository.count(id=supplier_id, name="Initech") == 1


def test_retry_budget_is_bounded(faulty_repository, transient_error, recording_sleep):
    repository = faulty_repository(StoreKind.SUPPLIERS, failures={"create": [transient_error()] * 4})
    resolver = SupplierResolver(repository, retry_policy=RetryPolicy(max_retries=2), sleep=recording_sleep)

    with pytest.raises(SupplierResolutionError, match="rate limit"):
        asyncio.run(resolver.resolve("Initech"))

    assert repository.count_calls("create") == 3
    assert recording_sleep.delays == [0.5, 1.0]
