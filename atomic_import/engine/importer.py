"""
Importers: the caller-facing entry points.

An import run groups the rows, validates every group up front, loads the
existing-key map once, resolves shared lookups, then hands the groups to
the BatchScheduler.
"""

import asyncio
import uuid
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from typing import Any, NamedTuple

from pydantic import BaseModel, Field

from atomic_import.config import ImportSettings
from atomic_import.core.errors import ImportErrorKind
from atomic_import.core.grouping import OrderRowGrouper, RowGrouper, SkuRowGrouper, StockMode, order_business_key
from atomic_import.core.keys import normalize_key
from atomic_import.core.models import Group, ImportResult, Job, SourceRow, WriteOutcome
from atomic_import.core.rules import EntityRuleSet, RuleConfigLoader, default_rule_set
from atomic_import.core.validators import GroupValidator
from atomic_import.jobs.cancellation import JobCancellationChecker
from atomic_import.jobs.runner import run_as_job
from atomic_import.jobs.tracker import JobTracker
from atomic_import.observability.logger import get_logger, log_operation, run_context
from atomic_import.observability.metrics import record_group_outcome
from atomic_import.store import EntityStore, Record

from .processor import AtomicGroupProcessor, Sleep, UpsertMode, failure_outcome
from .retry import RetryPolicy
from .scheduler import BatchScheduler, ProgressCallback, StopCheck, WaveHook
from .suppliers import SupplierResolver
from .writers import GroupWriter, OrderGroupWriter, SkuGroupWriter

logger = get_logger(__name__)

Rows = Iterable[Mapping[str, Any] | SourceRow]


class ImportOptions(BaseModel):
    """
    Per-run options.

    Attributes:
        upsert_mode: skip, update or fail on keys that already exist
        concurrency: Wave size; None uses the per-kind setting
        stock_mode: "set" or "delta" (SKU imports)
        start_index: First group to schedule, for resuming a paused run
        tenant_id: Scope for pre-loads and created records
        import_batch_id: Tag written on created orders (generated if None)
    """

    upsert_mode: UpsertMode = UpsertMode.SKIP
    concurrency: int | None = Field(None, ge=1)
    stock_mode: StockMode = "set"
    start_index: int = Field(0, ge=0)
    tenant_id: str | None = None
    import_batch_id: str | None = None


class ImportPlan(NamedTuple):
    grouper: RowGrouper
    writer: GroupWriter
    existing: dict[str, Record]


class BaseImporter(ABC):
    """
    Shared import pipeline; subclasses provide the plan for their kind.

    Args:
        store: Entity store
        settings: Import settings (defaults if None)
        rule_set: Validation rules (settings.rules_path or built-ins if None)
        sleep: Retry backoff sleep (injectable for tests)
    """

    entity_kind: str = ""
    job_type: str = ""

    def __init__(
        self,
        store: EntityStore,
        settings: ImportSettings | None = None,
        rule_set: EntityRuleSet | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.store = store
        self.settings = settings or ImportSettings()
        if rule_set is None:
            if self.settings.rules_path:
                rule_set = RuleConfigLoader(self.settings.rules_path).load(self.entity_kind)
            else:
                rule_set = default_rule_set(self.entity_kind)
        self.validator = GroupValidator(rule_set)
        self.retry_policy = RetryPolicy.from_settings(self.settings)
        self.sleep = sleep

    def default_options(self) -> ImportOptions:
        return ImportOptions(
            upsert_mode=self.settings.upsert_mode,
            stock_mode=self.settings.stock_mode,
        )

    def _criteria(self, options: ImportOptions) -> dict[str, Any]:
        return {"tenant_id": options.tenant_id} if options.tenant_id is not None else {}

    @abstractmethod
    async def plan(self, options: ImportOptions) -> ImportPlan:
        """Load lookups and the existing-key map; build grouper and writer."""

    async def before_schedule(self, groups: list[Group], rejected: dict[str, WriteOutcome],
                              plan: ImportPlan, options: ImportOptions) -> None:
        """Sequential pre-pass over the groups about to be scheduled."""

    async def run_import(self, rows: Rows, options: ImportOptions | None = None,
                         on_progress: ProgressCallback | None = None) -> ImportResult:
        """
        Import rows and return the aggregate result.

        Args:
            rows: Row mappings (or SourceRows) in file order
            options: Run options (settings defaults if None)
            on_progress: Listener for ProgressEvents, sync or async

        Returns:
            ImportResult; no single group failure aborts the run
        """
        return await self._run(rows, options or self.default_options(), on_progress)

    async def _run(
        self,
        rows: Rows,
        options: ImportOptions,
        on_progress: ProgressCallback | None = None,
        should_stop: StopCheck | None = None,
        on_wave: WaveHook | None = None,
        resumed_from: Job | None = None,
    ) -> ImportResult:
        with run_context(entity_kind=self.entity_kind), log_operation(f"{self.entity_kind} import", logger=logger):
            plan = await self.plan(options)
            groups = list(plan.grouper.group(rows).values())

            rejected: dict[str, WriteOutcome] = {}
            for group in groups:
                report = self.validator.validate(group)
                if not report.passed:
                    rejected[group.business_key] = failure_outcome(group, ImportErrorKind.VALIDATION, report.message)

            scheduled = groups[options.start_index:]
            await self.before_schedule(scheduled, rejected, plan, options)

            logger.info(
                f"Grouped into {len(groups)} {self.entity_kind} groups, {len(rejected)} rejected before writing",
                extra={"entity_kind": self.entity_kind, "groups": len(groups), "rejected": len(rejected)},
            )

            processor = AtomicGroupProcessor(
                plan.writer,
                retry_policy=self.retry_policy,
                upsert_mode=options.upsert_mode,
                existing=plan.existing,
                sleep=self.sleep,
            )

            async def process(group: Group) -> WriteOutcome:
                outcome = rejected.get(group.business_key)
                if outcome is None:
                    return await processor.process(group)
                record_group_outcome(
                    self.entity_kind, outcome.action.value, False, outcome.row_count,
                    error_kind=outcome.error_kind.value,
                )
                return outcome

            result = ImportResult(entity_kind=self.entity_kind, total_count=len(groups))
            if resumed_from is not None:
                result.processed_count = resumed_from.processed_count
                result.success_count = resumed_from.success_count
                result.fail_count = resumed_from.failed_count

            scheduler = BatchScheduler(
                process,
                self.entity_kind,
                options.concurrency or self.settings.concurrency_for(self.entity_kind),
                on_progress=on_progress,
                should_stop=should_stop,
                on_wave=on_wave,
            )
            return await scheduler.run(groups, start_index=options.start_index, result=result)

    async def run_import_job(
        self,
        rows: Rows,
        tracker: JobTracker,
        options: ImportOptions | None = None,
        on_progress: ProgressCallback | None = None,
        tenant_id: str | None = None,
        job_id: str | None = None,
    ) -> tuple[Job, ImportResult]:
        """
        Run an import inside a persisted job.

        Progress is written to the job after every wave, and cancel or pause
        requests on the job stop the run at the next wave boundary.

        Args:
            rows: Rows to import
            tracker: JobTracker for the job record
            options: Run options; start_index > 0 resumes a paused job
            on_progress: Listener for ProgressEvents
            tenant_id: Tenant for a new job (defaults to options.tenant_id)
            job_id: Existing queued or running job to use

        Returns:
            (final Job, ImportResult)
        """
        options = options or self.default_options()
        tenant = tenant_id or options.tenant_id or "default"

        async def worker(job: Job) -> ImportResult:
            with run_context(job_id=job.job_id, tenant_id=job.tenant_id):
                return await run_waves(job)

        async def run_waves(job: Job) -> ImportResult:
            async def on_wave(result: ImportResult) -> None:
                message = result.outcomes[-1].progress_message if result.outcomes else None
                await tracker.record_progress(
                    job.job_id,
                    processed=result.processed_count,
                    success=result.success_count,
                    failed=result.fail_count,
                    total=result.total_count,
                    message=message,
                )

            return await self._run(
                rows,
                options,
                on_progress=on_progress,
                should_stop=JobCancellationChecker(tracker, job.job_id),
                on_wave=on_wave,
                resumed_from=job if options.start_index > 0 else None,
            )

        return await run_as_job(
            tracker,
            worker,
            tenant_id=tenant,
            job_type=self.job_type,
            params=options.model_dump(mode="json"),
            job_id=job_id,
        )


class OrderImporter(BaseImporter):
    """Imports multi-line orders: one order plus its lines per group."""

    entity_kind = "order"
    job_type = "order_import"

    async def plan(self, options: ImportOptions) -> ImportPlan:
        criteria = self._criteria(options)
        skus = await self.store.skus.filter(**criteria)
        stores = await self.store.stores.filter(**criteria)
        orders = await self.store.orders.filter(**criteria)

        existing: dict[str, Record] = {}
        for order in orders:
            key = order_business_key(order.get("store_id"), order.get("amazon_order_id"))
            if key:
                existing.setdefault(key, order)

        writer = OrderGroupWriter(
            self.store,
            import_batch_id=options.import_batch_id or uuid.uuid4().hex,
            tenant_id=options.tenant_id,
        )
        return ImportPlan(OrderRowGrouper(skus, stores), writer, existing)


class SkuImporter(BaseImporter):
    """Imports SKUs with their current stock; supports update mode."""

    entity_kind = "sku"
    job_type = "sku_import"

    async def plan(self, options: ImportOptions) -> ImportPlan:
        criteria = self._criteria(options)
        skus = await self.store.skus.filter(**criteria)
        stock = await self.store.current_stock.filter(**criteria)

        existing: dict[str, Record] = {}
        for sku in skus:
            key = normalize_key(sku.get("sku_code"))
            if key:
                existing.setdefault(key, sku)

        stock_by_sku = {str(record["sku_id"]): record for record in stock}
        writer = SkuGroupWriter(
            self.store,
            stock_mode=options.stock_mode,
            existing_stock=stock_by_sku,
            tenant_id=options.tenant_id,
        )
        return ImportPlan(SkuRowGrouper(options.stock_mode), writer, existing)

    async def before_schedule(self, groups: list[Group], rejected: dict[str, WriteOutcome],
                              plan: ImportPlan, options: ImportOptions) -> None:
        """Resolve or create suppliers for every group that will be written."""
        writes_existing = options.upsert_mode == UpsertMode.UPDATE
        needing = [
            group for group in groups
            if group.business_key not in rejected
            and normalize_key(group.header.get("supplier"))
            and (writes_existing or group.business_key not in plan.existing)
        ]
        if not needing:
            return

        resolver = SupplierResolver(
            self.store.suppliers,
            tenant_id=options.tenant_id,
            retry_policy=self.retry_policy,
            sleep=self.sleep,
        )
        resolved, failed = await resolver.resolve_all(group.header["supplier"] for group in needing)

        for group in needing:
            key = normalize_key(group.header["supplier"])
            if key in resolved:
                group.header["supplier_id"] = resolved[key]
            else:
                rejected[group.business_key] = failure_outcome(group, ImportErrorKind.WRITE, failed[key])
