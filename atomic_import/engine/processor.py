"""
AtomicGroupProcessor: all-or-nothing write of one group.

Each attempt records undo actions as it writes. A transient failure with
retry budget left unwinds the attempt and tries again after a backoff
delay; any other failure unwinds and reports. If an unwind itself fails
the group is reported as a RollbackFailure needing manual review.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable, Mapping
from enum import Enum

from atomic_import.core.errors import (
    ConflictError,
    DuplicateKeyError,
    ImportErrorKind,
    RollbackFailure,
)
from atomic_import.core.models import CreatedIds, Group, OutcomeAction, WriteOutcome
from atomic_import.observability.logger import get_logger
from atomic_import.observability.metrics import (
    increment_counter,
    record_group_outcome,
    record_rollback,
    retries_total,
)
from atomic_import.store import Record

from .compensation import CompensationStack
from .retry import RetryPolicy, is_transient
from .writers import GroupWriter

logger = get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


class UpsertMode(str, Enum):
    """What to do with a group whose key already exists in the store."""

    SKIP = "skip"
    UPDATE = "update"
    FAIL = "fail"


def success_outcome(group: Group, action: OutcomeAction, created_ids: CreatedIds | None,
                    attempts: int) -> WriteOutcome:
    return WriteOutcome(
        group_key=group.business_key,
        display_key=group.display_key,
        success=True,
        action=action,
        created_ids=created_ids,
        attempts=attempts,
        row_count=group.row_count,
        source_rows=list(group.source_rows),
        warnings=list(group.warnings),
    )


def failure_outcome(
    group: Group,
    error_kind: ImportErrorKind,
    error: str,
    attempts: int = 0,
    rollback_errors: list[str] | None = None,
) -> WriteOutcome:
    return WriteOutcome(
        group_key=group.business_key,
        display_key=group.display_key,
        success=False,
        action=OutcomeAction.FAILED,
        error_kind=error_kind,
        error=error,
        rollback_errors=list(rollback_errors or []),
        requires_manual_review=error_kind == ImportErrorKind.ROLLBACK_FAILURE,
        attempts=attempts,
        row_count=group.row_count,
        source_rows=list(group.source_rows),
        warnings=list(group.warnings),
    )


class AtomicGroupProcessor:
    """
    Writes groups one at a time; many processors' calls may run concurrently.

    Args:
        writer: Store calls for the entity kind
        retry_policy: Retry budget and backoff schedule
        upsert_mode: Handling of keys present in existing
        existing: Business key -> existing record, loaded once before the run
        sleep: Backoff sleep (injectable for tests)
    """

    def __init__(
        self,
        writer: GroupWriter,
        retry_policy: RetryPolicy | None = None,
        upsert_mode: UpsertMode = UpsertMode.SKIP,
        existing: Mapping[str, Record] | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.writer = writer
        self.retry_policy = retry_policy or RetryPolicy()
        self.upsert_mode = UpsertMode(upsert_mode)
        self.existing = existing or {}
        self.sleep = sleep

    @property
    def entity_kind(self) -> str:
        return self.writer.entity_kind

    async def process(self, group: Group) -> WriteOutcome:
        """
        Process one group to a final outcome. Never raises for store failures.
        """
        start = time.monotonic()
        outcome = await self._process(group)
        record_group_outcome(
            self.entity_kind,
            outcome.action.value,
            outcome.success,
            outcome.row_count,
            error_kind=outcome.error_kind.value if outcome.error_kind else None,
            duration_seconds=time.monotonic() - start,
        )
        return outcome

    async def _process(self, group: Group) -> WriteOutcome:
        existing = self.existing.get(group.business_key)
        if existing is None:
            return await self._create(group)

        if self.upsert_mode == UpsertMode.SKIP:
            return success_outcome(group, OutcomeAction.SKIPPED, CreatedIds(parent_id=str(existing["id"])), 0)

        if self.upsert_mode == UpsertMode.UPDATE and self.writer.supports_update:
            return await self._update(group, existing)

        error = DuplicateKeyError(group.business_key, group.display_key, self.writer.duplicate_label)
        return failure_outcome(group, ImportErrorKind.DUPLICATE, str(error))

    async def _create(self, group: Group) -> WriteOutcome:
        attempt = 0
        while True:
            attempt += 1
            compensations = CompensationStack()
            try:
                created_ids = await self.writer.create(group, compensations)
            except Exception as error:
                if not self.retry_policy.should_retry(error, attempt - 1):
                    return await self._roll_back(group, error, compensations, attempt)

                # Undo this attempt first so the retry cannot duplicate the parent
                wrote = len(compensations) > 0
                rollback_errors = await compensations.unwind()
                if rollback_errors:
                    record_rollback(self.entity_kind, False)
                    return self._rollback_failure(group, error, rollback_errors, attempt)
                if wrote:
                    record_rollback(self.entity_kind, True)

                delay = self.retry_policy.delay_for(attempt)
                increment_counter(retries_total, 1, entity_kind=self.entity_kind)
                logger.warning(
                    f"Transient failure on {group.display_key}, retry {attempt}/"
                    f"{self.retry_policy.max_retries} in {delay}s: {error}",
                    extra={"group_key": group.business_key, "attempt": attempt},
                )
                await self.sleep(delay)
                continue

            logger.debug(
                f"Created {self.entity_kind} {group.display_key}",
                extra={"group_key": group.business_key, "parent_id": created_ids.parent_id},
            )
            return success_outcome(group, OutcomeAction.CREATED, created_ids, attempt)

    async def _roll_back(self, group: Group, error: Exception, compensations: CompensationStack,
                         attempt: int) -> WriteOutcome:
        wrote = len(compensations) > 0
        rollback_errors = await compensations.unwind()
        if rollback_errors:
            record_rollback(self.entity_kind, False)
            return self._rollback_failure(group, error, rollback_errors, attempt)
        if wrote:
            record_rollback(self.entity_kind, True)

        if is_transient(error):
            kind = ImportErrorKind.TRANSIENT
            message = f"Rate limited / timeout - rolled back (max retries exceeded): {error}"
        elif isinstance(error, DuplicateKeyError | ConflictError):
            kind = ImportErrorKind.DUPLICATE
            message = f"Transaction rolled back: {error}"
        else:
            kind = ImportErrorKind.WRITE
            message = f"Transaction rolled back: {error}"

        logger.warning(
            f"Group {group.display_key} failed and was rolled back: {error}",
            extra={"group_key": group.business_key, "error_kind": kind.value, "attempts": attempt},
        )
        return failure_outcome(group, kind, message, attempt)

    def _rollback_failure(self, group: Group, error: Exception, rollback_errors: list[str],
                          attempt: int) -> WriteOutcome:
        failure = RollbackFailure(error, rollback_errors)
        logger.error(
            f"Rollback failed for {group.display_key}: {failure}",
            extra={
                "group_key": group.business_key,
                "error_code": failure.code,
                "rollback_errors": rollback_errors,
            },
        )
        return failure_outcome(group, ImportErrorKind.ROLLBACK_FAILURE, str(failure), attempt, rollback_errors)

    async def _update(self, group: Group, existing: Record) -> WriteOutcome:
        attempt = 0
        while True:
            attempt += 1
            try:
                ids = await self.writer.update(group, existing)
            except Exception as error:
                if self.retry_policy.should_retry(error, attempt - 1):
                    delay = self.retry_policy.delay_for(attempt)
                    increment_counter(retries_total, 1, entity_kind=self.entity_kind)
                    logger.warning(
                        f"Transient failure updating {group.display_key}, retry {attempt} in {delay}s: {error}",
                        extra={"group_key": group.business_key, "attempt": attempt},
                    )
                    await self.sleep(delay)
                    continue

                kind = ImportErrorKind.TRANSIENT if is_transient(error) else ImportErrorKind.WRITE
                logger.warning(
                    f"Update of {group.display_key} failed, prior state not restored: {error}",
                    extra={"group_key": group.business_key, "error_kind": kind.value},
                )
                return failure_outcome(group, kind, f"Update failed (not rolled back): {error}", attempt)

            return success_outcome(group, OutcomeAction.UPDATED, ids, attempt)
