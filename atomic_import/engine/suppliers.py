"""
Supplier pre-pass: resolve or create every supplier named by SKU groups
before any group is scheduled.
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterable

from atomic_import.core.errors import StoreError, SupplierResolutionError
from atomic_import.core.keys import normalize_key
from atomic_import.engine.retry import RetryPolicy
from atomic_import.observability.logger import get_logger
from atomic_import.store import Record, Repository

logger = get_logger(__name__)


class SupplierResolver:
    """
    Maps supplier references (an id or a name) to supplier ids.

    Matching order: exact id, then case-insensitive name. Unknown names
    are created one at a time, so two groups naming the same new supplier
    share one record.

    Creation retries transient store errors on the same schedule as group
    writes.
    """

    def __init__(
        self,
        repository: Repository,
        tenant_id: str | None = None,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.repository = repository
        self.tenant_id = tenant_id
        self.retry_policy = retry_policy or RetryPolicy()
        self.sleep = sleep
        self.by_id: dict[str, Record] = {}
        self.by_name: dict[str, Record] = {}
        self.created: list[Record] = []
        self._loaded = False

    async def load(self) -> None:
        criteria = {"tenant_id": self.tenant_id} if self.tenant_id is not None else {}
        for supplier in await self.repository.filter(**criteria):
            self._remember(supplier)
        self._loaded = True

    def _remember(self, supplier: Record) -> None:
        self.by_id[str(supplier["id"])] = supplier
        name_key = normalize_key(supplier.get("name"))
        if name_key:
            self.by_name.setdefault(name_key, supplier)

    def lookup(self, reference: str) -> Record | None:
        return self.by_id.get(reference.strip()) or self.by_name.get(normalize_key(reference))

    async def resolve(self, reference: str) -> str:
        """
        Supplier id for one reference, creating the supplier if needed.

        Raises:
            SupplierResolutionError: If the supplier had to be created and
                                     the store refused
        """
        if not self._loaded:
            await self.load()

        found = self.lookup(reference)
        if found is not None:
            return str(found["id"])

        fields = {"name": reference.strip()}
        if self.tenant_id is not None:
            fields["tenant_id"] = self.tenant_id
        supplier = await self._create(reference, fields)

        self._remember(supplier)
        self.created.append(supplier)
        logger.info(f"Created supplier '{reference}'", extra={"supplier_id": supplier["id"]})
        return str(supplier["id"])

    async def _create(self, reference: str, fields: Record) -> Record:
        retries = 0
        while True:
            try:
                return await self.repository.create(fields)
            except StoreError as e:
                if not self.retry_policy.should_retry(e, retries):
                    raise SupplierResolutionError(f"Could not create supplier '{reference}': {e}") from e
                retries += 1
                delay = self.retry_policy.delay_for(retries)
                logger.warning(
                    f"Transient error creating supplier '{reference}', retry {retries} in {delay}s: {e}",
                    extra={"supplier": reference, "retry": retries},
                )
                await self.sleep(delay)

    async def resolve_all(self, references: Iterable[str]) -> tuple[dict[str, str], dict[str, str]]:
        """
        Resolve references sequentially.

        Returns:
            (normalized reference -> supplier id, normalized reference -> error)
        """
        resolved: dict[str, str] = {}
        failed: dict[str, str] = {}
        for reference in references:
            key = normalize_key(reference)
            if not key or key in resolved or key in failed:
                continue
            try:
                resolved[key] = await self.resolve(reference)
            except SupplierResolutionError as e:
                logger.warning(str(e), extra={"supplier": reference})
                failed[key] = str(e)
        return resolved, failed
