"""
BatchScheduler: bounded-concurrency wave execution over groups.

Groups run in consecutive waves of at most `concurrency`. Every group of
a wave runs concurrently and the wave is awaited in full before the next
one starts. Stop requests are polled between waves only.
"""

import asyncio
import inspect
import time
from collections.abc import Awaitable, Callable

from atomic_import.core.errors import ImportErrorKind
from atomic_import.core.models import (
    Group,
    GroupError,
    ImportResult,
    OutcomeAction,
    ProgressEvent,
    ProgressPhase,
    StopReason,
    WriteOutcome,
)
from atomic_import.observability.logger import get_logger
from atomic_import.observability.metrics import (
    increment_counter,
    observe_histogram,
    runs_total,
    wave_duration_seconds,
    wave_size,
)

from .processor import failure_outcome

logger = get_logger(__name__)


ProcessFn = Callable[[Group], Awaitable[WriteOutcome]]
ProgressCallback = Callable[[ProgressEvent], Awaitable[None] | None]
StopCheck = Callable[[], Awaitable[StopReason | None]]
WaveHook = Callable[[ImportResult], Awaitable[None]]


class BatchScheduler:
    """
    Runs a process function over groups in waves and aggregates outcomes.

    Args:
        process: Turns one group into a WriteOutcome
        entity_kind: Kind label for results and metrics
        concurrency: Wave size B (>= 1)
        on_progress: Listener for ProgressEvents, sync or async
        should_stop: Polled before every wave; returns a StopReason to stop
        on_wave: Awaited after every wave with the running result
    """

    def __init__(
        self,
        process: ProcessFn,
        entity_kind: str,
        concurrency: int,
        on_progress: ProgressCallback | None = None,
        should_stop: StopCheck | None = None,
        on_wave: WaveHook | None = None,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self.process = process
        self.entity_kind = entity_kind
        self.concurrency = concurrency
        self.on_progress = on_progress
        self.should_stop = should_stop
        self.on_wave = on_wave

    async def run(self, groups: list[Group], start_index: int = 0,
                  result: ImportResult | None = None) -> ImportResult:
        """
        Process groups[start_index:] wave by wave.

        Args:
            groups: Groups in scheduling order
            start_index: First group to schedule (resume point)
            result: Result to continue aggregating into

        Returns:
            ImportResult with next_index set to the first unscheduled group
        """
        if result is None:
            result = ImportResult(entity_kind=self.entity_kind, total_count=len(groups))
        result.next_index = start_index

        await self._emit(result, ProgressPhase.STARTED, f"Processing {len(groups) - start_index} groups")

        index = start_index
        while index < len(groups):
            reason = await self.should_stop() if self.should_stop else None
            if reason is not None:
                self._stop(result, reason)
                phase = ProgressPhase.CANCELLED if reason == StopReason.CANCEL else ProgressPhase.PAUSED
                await self._emit(result, phase, f"Stopped at {index}/{len(groups)} ({reason.value})")
                return result

            wave = groups[index:index + self.concurrency]
            await self._run_wave(wave, result)
            index += len(wave)
            result.next_index = index

            await self._emit(result, ProgressPhase.WAVE_COMPLETED, f"{index}/{len(groups)} groups processed")
            if self.on_wave is not None:
                await self.on_wave(result)

        increment_counter(runs_total, 1, entity_kind=self.entity_kind, state="finished")
        await self._emit(
            result, ProgressPhase.FINISHED,
            f"Done: {result.success_count} succeeded, {result.fail_count} failed",
        )
        return result

    async def _run_wave(self, wave: list[Group], result: ImportResult) -> None:
        start = time.monotonic()
        tasks = [asyncio.ensure_future(self._process_one(group)) for group in wave]
        for next_done in asyncio.as_completed(tasks):
            outcome = await next_done
            self._aggregate(result, outcome)
            await self._emit(result, ProgressPhase.GROUP_COMPLETED, outcome.progress_message)

        observe_histogram(wave_duration_seconds, time.monotonic() - start, entity_kind=self.entity_kind)
        observe_histogram(wave_size, len(wave), entity_kind=self.entity_kind)

    async def _process_one(self, group: Group) -> WriteOutcome:
        try:
            return await self.process(group)
        except Exception as e:
            logger.exception(
                f"Unexpected error processing {group.display_key}",
                extra={"group_key": group.business_key},
            )
            return failure_outcome(group, ImportErrorKind.WRITE, f"Unexpected error: {e}")

    def _aggregate(self, result: ImportResult, outcome: WriteOutcome) -> None:
        """Single place where outcomes are folded into the running totals."""
        result.outcomes.append(outcome)
        result.processed_count += 1

        if outcome.success:
            result.success_count += 1
            if outcome.action == OutcomeAction.CREATED:
                result.created_count += 1
            elif outcome.action == OutcomeAction.UPDATED:
                result.updated_count += 1
            elif outcome.action == OutcomeAction.SKIPPED:
                result.skipped_count += 1
            return

        result.fail_count += 1
        result.errors.append(GroupError(
            key=outcome.display_key,
            error=outcome.error or "",
            error_kind=outcome.error_kind,
            requires_manual_review=outcome.requires_manual_review,
            source_rows=outcome.source_rows,
        ))
        if outcome.requires_manual_review:
            result.warnings.append(f"{outcome.display_key}: {outcome.error}")

    def _stop(self, result: ImportResult, reason: StopReason) -> None:
        if reason == StopReason.CANCEL:
            result.cancelled = True
            state = "cancelled"
        else:
            result.paused = True
            state = "paused"
        increment_counter(runs_total, 1, entity_kind=self.entity_kind, state=state)
        logger.info(
            f"Import {state} after {result.processed_count}/{result.total_count} groups",
            extra={"entity_kind": self.entity_kind, "next_index": result.next_index},
        )

    async def _emit(self, result: ImportResult, phase: ProgressPhase, message: str) -> None:
        if self.on_progress is None:
            return
        event = ProgressEvent(
            phase=phase,
            current=result.processed_count,
            total=result.total_count,
            success_count=result.success_count,
            fail_count=result.fail_count,
            message=message,
        )
        try:
            returned = self.on_progress(event)
            if inspect.isawaitable(returned):
                await returned
        except Exception:
            logger.exception(f"Progress listener failed on {phase.value} event")
