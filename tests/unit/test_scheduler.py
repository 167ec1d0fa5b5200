"""
Unit tests for BatchScheduler: waves, bounded concurrency, progress and
stop requests.
"""

import asyncio

import pytest

from atomic_import.core.errors import ImportErrorKind
from atomic_import.core.models import Group, OutcomeAction, ProgressPhase, SourceRow, StopReason
from atomic_import.engine import BatchScheduler, failure_outcome, success_outcome


def make_groups(count: int) -> list[Group]:
    return [
        Group(
            entity_kind="sku",
            business_key=f"k{i}",
            header={"sku_code": f"K{i}"},
            source_rows=[SourceRow(row_number=i + 1, data={"sku_code": f"K{i}"})],
        )
        for i in range(count)
    ]


class ConcurrencyProbe:
    """Process function that tracks how many groups run at once."""

    def __init__(self, delays: dict[str, float] | None = None, fail: set[str] | None = None):
        self.delays = delays or {}
        self.fail = fail or set()
        self.in_flight = 0
        self.max_in_flight = 0
        self.log: list[tuple[str, str]] = []

    async def __call__(self, group: Group):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        self.log.append(("start", group.business_key))
        try:
            await asyncio.sleep(self.delays.get(group.business_key, 0.001))
        finally:
            self.in_flight -= 1
        self.log.append(("end", group.business_key))
        if group.business_key in self.fail:
            return failure_outcome(group, ImportErrorKind.WRITE, "Transaction rolled back: boom", 1)
        return success_outcome(group, OutcomeAction.CREATED, None, 1)


class TestWaves:
    """Tests for wave scheduling"""

    def test_processes_every_group_once(self):
        probe = ConcurrencyProbe()
        scheduler = BatchScheduler(probe, "sku", concurrency=5)

        result = asyncio.run(scheduler.run(make_groups(12)))

        assert result.total_count == 12
        assert result.processed_count == 12
        assert result.success_count == 12
        assert result.created_count == 12
        assert result.next_index == 12
        assert sorted(o.group_key for o in result.outcomes) == sorted(f"k{i}" for i in range(12))

    @pytest.mark.parametrize("concurrency", [1, 3, 5, 10])
    def test_concurrency_is_bounded(self, concurrency):
        probe = ConcurrencyProbe()
        asyncio.run(BatchScheduler(probe, "sku", concurrency=concurrency).run(make_groups(12)))

        assert probe.max_in_flight == min(concurrency, 12)

    def test_next_wave_waits_for_slowest_group(self):
        probe = ConcurrencyProbe(delays={"k0": 0.05})
        asyncio.run(BatchScheduler(probe, "sku", concurrency=2).run(make_groups(4)))

        assert probe.log.index(("end", "k0")) < probe.log.index(("start", "k2"))

    def test_on_wave_sees_running_totals(self):
        seen = []

        async def on_wave(result):
            seen.append((result.next_index, result.processed_count))

        asyncio.run(BatchScheduler(ConcurrencyProbe(), "sku", 5, on_wave=on_wave).run(make_groups(12)))

        assert seen == [(5, 5), (10, 10), (12, 12)]

    def test_start_index_skips_earlier_groups(self):
        probe = ConcurrencyProbe()

        result = asyncio.run(BatchScheduler(probe, "sku", 5).run(make_groups(8), start_index=6))

        assert [key for event, key in probe.log if event == "start"] == ["k6", "k7"]
        assert result.next_index == 8

    def test_empty_input(self):
        events = []
        result = asyncio.run(BatchScheduler(ConcurrencyProbe(), "sku", 5, on_progress=events.append).run([]))

        assert result.processed_count == 0
        assert [e.phase for e in events] == [ProgressPhase.STARTED, ProgressPhase.FINISHED]
        assert events[-1].percent == 100

    def test_invalid_concurrency(self):
        with pytest.raises(ValueError):
            BatchScheduler(ConcurrencyProbe(), "sku", concurrency=0)


class TestAggregation:
    """Tests for outcome aggregation and progress events"""

    def test_failures_are_collected_with_rows(self):
        probe = ConcurrencyProbe(fail={"k1", "k3"})

        result = asyncio.run(BatchScheduler(probe, "sku", 5).run(make_groups(5)))

        assert result.success_count == 3
        assert result.fail_count == 2
        assert result.success_count + result.fail_count == result.processed_count
        assert sorted(e.key for e in result.errors) == ["K1", "K3"]
        assert [r["_row_number"] for r in result.failed_rows()] == [2, 4]

    def test_progress_follows_completion_order(self):
        events = []
        probe = ConcurrencyProbe(delays={"k0": 0.05, "k1": 0.001, "k2": 0.02})

        asyncio.run(BatchScheduler(probe, "sku", 3, on_progress=events.append).run(make_groups(3)))

        completed = [e for e in events if e.phase == ProgressPhase.GROUP_COMPLETED]
        assert [e.message for e in completed] == ["✓ K1 (1 rows)", "✓ K2 (1 rows)", "✓ K0 (1 rows)"]
        assert [e.current for e in completed] == [1, 2, 3]

    def test_async_listener(self):
        events = []

        async def listener(event):
            events.append(event.phase)

        asyncio.run(BatchScheduler(ConcurrencyProbe(), "sku", 2, on_progress=listener).run(make_groups(2)))

        assert events[0] == ProgressPhase.STARTED
        assert events[-1] == ProgressPhase.FINISHED

    def test_listener_errors_do_not_abort_the_run(self):
        def listener(event):
            raise RuntimeError("ui went away")

        result = asyncio.run(BatchScheduler(ConcurrencyProbe(), "sku", 2, on_progress=listener).run(make_groups(3)))

        assert result.processed_count == 3

    def test_unexpected_exception_becomes_failed_outcome(self):
        async def process(group):
            if group.business_key == "k1":
                raise RuntimeError("boom")
            return success_outcome(group, OutcomeAction.CREATED, None, 1)

        result = asyncio.run(BatchScheduler(process, "sku", 5).run(make_groups(3)))

        assert result.success_count == 2
        assert result.fail_count == 1
        assert result.errors[0].error == "Unexpected error: boom"
        assert result.errors[0].error_kind == ImportErrorKind.WRITE

    def test_manual_review_outcomes_become_warnings(self):
        async def process(group):
            return failure_outcome(group, ImportErrorKind.ROLLBACK_FAILURE,
                                   "Failed AND rollback error: x. MANUAL REVIEW REQUIRED.", 1,
                                   ["delete order o-1: timeout"])

        result = asyncio.run(BatchScheduler(process, "sku", 5).run(make_groups(1)))

        assert result.warnings == ["K0: Failed AND rollback error: x. MANUAL REVIEW REQUIRED."]
        assert result.errors[0].requires_manual_review is True
        assert len(result.rollback_failures) == 1


class TestStopRequests:
    """Tests for cancellation and pause between waves"""

    def stop_after(self, polls: int, reason: StopReason):
        state = {"polls": 0}

        async def should_stop():
            state["polls"] += 1
            return reason if state["polls"] > polls else None

        return should_stop

    def test_cancel_stops_at_wave_boundary(self):
        events = []
        probe = ConcurrencyProbe()
        scheduler = BatchScheduler(probe, "sku", 5, on_progress=events.append,
                                   should_stop=self.stop_after(1, StopReason.CANCEL))

        result = asyncio.run(scheduler.run(make_groups(12)))

        assert result.cancelled is True
        assert result.paused is False
        assert result.processed_count == 5
        assert result.next_index == 5
        assert probe.max_in_flight == 5
        assert events[-1].phase == ProgressPhase.CANCELLED

    def test_pause_records_resume_point(self):
        scheduler = BatchScheduler(ConcurrencyProbe(), "sku", 4,
                                   should_stop=self.stop_after(2, StopReason.PAUSE))

        result = asyncio.run(scheduler.run(make_groups(10)))

        assert result.paused is True
        assert result.next_index == 8
        assert result.processed_count == 8

    def test_stop_before_first_wave(self):
        probe = ConcurrencyProbe()
        scheduler = BatchScheduler(probe, "sku", 5, should_stop=self.stop_after(0, StopReason.CANCEL))

        result = asyncio.run(scheduler.run(make_groups(3)))

        assert result.cancelled is True
        assert probe.log == []
