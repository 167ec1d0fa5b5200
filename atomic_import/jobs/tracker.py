"""
JobTracker: persisted lifecycle of background import jobs.

Status changes go through an explicit transition table. Progress updates
touch counts and heartbeat only and never change status, so a concurrent
cancel or pause request cannot be overwritten by the worker.
"""

from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

from atomic_import.core.errors import InvalidJobTransitionError, JobNotFoundError
from atomic_import.core.models import Job, JobStatus
from atomic_import.observability.logger import get_logger
from atomic_import.observability.metrics import (
    increment_counter,
    job_progress_percent,
    job_transitions_total,
    set_gauge,
)
from atomic_import.store import Repository

logger = get_logger(__name__)

ACTIVE_STATUSES = frozenset({JobStatus.RUNNING, JobStatus.PAUSING, JobStatus.CANCELLING})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobTracker:
    """
    Reads and writes Job records in the background_jobs repository.

    Args:
        repository: background_jobs repository
        clock: Timestamp source (injectable for tests)
    """

    def __init__(self, repository: Repository, clock: Callable[[], datetime] = utcnow):
        self.repository = repository
        self.clock = clock

    async def create(self, tenant_id: str, job_type: str, params: dict[str, Any] | None = None,
                     total_count: int = 0) -> Job:
        record = await self.repository.create({
            "tenant_id": tenant_id,
            "job_type": job_type,
            "status": JobStatus.QUEUED.value,
            "total_count": total_count,
            "processed_count": 0,
            "success_count": 0,
            "failed_count": 0,
            "progress_percent": 0,
            "cancel_requested": False,
            "can_resume": True,
            "params": params or {},
            "result": {},
        })
        job = Job.from_record(record)
        increment_counter(job_transitions_total, 1, job_type=job_type, status=JobStatus.QUEUED.value)
        logger.info(f"Created job {job.job_id}", extra={"job_id": job.job_id, "job_type": job_type})
        return job

    async def get(self, job_id: str) -> Job:
        record = await self.repository.get(job_id)
        if record is None:
            raise JobNotFoundError(job_id)
        return Job.from_record(record)

    async def list_for_tenant(self, tenant_id: str, status: JobStatus | None = None) -> list[Job]:
        criteria: dict[str, Any] = {"tenant_id": tenant_id}
        if status is not None:
            criteria["status"] = JobStatus(status).value
        return [Job.from_record(record) for record in await self.repository.filter(**criteria)]

    async def _transition(self, job: Job, target: JobStatus, **fields: Any) -> Job:
        if job.status != target and not job.can_transition_to(target):
            raise InvalidJobTransitionError(job.job_id, job.status.value, target.value)

        record = await self.repository.update(job.job_id, {"status": target.value, **fields})
        updated = Job.from_record(record)
        if job.status != target:
            increment_counter(job_transitions_total, 1, job_type=job.job_type, status=target.value)
            logger.info(
                f"Job {job.job_id}: {job.status.value} -> {target.value}",
                extra={"job_id": job.job_id, "from_status": job.status.value, "to_status": target.value},
            )
        return updated

    async def start(self, job_id: str, total_count: int | None = None) -> Job:
        job = await self.get(job_id)
        now = self.clock()
        fields: dict[str, Any] = {
            "started_at": job.started_at or now,
            "last_heartbeat_at": now,
            "cancel_requested": False,
            "error_message": None,
        }
        if total_count is not None:
            fields["total_count"] = total_count
        return await self._transition(job, JobStatus.RUNNING, **fields)

    async def record_progress(
        self,
        job_id: str,
        processed: int,
        success: int,
        failed: int,
        total: int | None = None,
        message: str | None = None,
    ) -> Job:
        """Update counts, percent and heartbeat. Status is left untouched."""
        fields: dict[str, Any] = {
            "processed_count": processed,
            "success_count": success,
            "failed_count": failed,
            "last_heartbeat_at": self.clock(),
        }
        if total is not None:
            fields["total_count"] = total
            fields["progress_percent"] = 100 if total == 0 else min(100, int(processed * 100 / total))
        if message is not None:
            fields["progress_message"] = message

        record = await self.repository.update(job_id, fields)
        job = Job.from_record(record)
        set_gauge(job_progress_percent, job.progress_percent, job_type=job.job_type)
        return job

    async def heartbeat(self, job_id: str) -> Job:
        record = await self.repository.update(job_id, {"last_heartbeat_at": self.clock()})
        return Job.from_record(record)

    async def request_cancel(self, job_id: str) -> Job:
        """
        Ask a job to stop.

        Queued and paused jobs have no worker and are cancelled at once;
        active jobs move to cancelling and stop at the next wave boundary.
        Terminal jobs are returned unchanged.
        """
        job = await self.get(job_id)
        if job.status.is_terminal:
            return job

        if job.status in (JobStatus.QUEUED, JobStatus.PAUSED):
            return await self._transition(
                job, JobStatus.CANCELLED,
                cancel_requested=True, can_resume=False, completed_at=self.clock(),
            )

        return await self._transition(job, JobStatus.CANCELLING, cancel_requested=True)

    async def request_pause(self, job_id: str) -> Job:
        job = await self.get(job_id)
        if job.status != JobStatus.RUNNING:
            raise InvalidJobTransitionError(job.job_id, job.status.value, JobStatus.PAUSING.value)
        return await self._transition(job, JobStatus.PAUSING)

    async def resume(self, job_id: str) -> Job:
        """
        Make a paused or failed job runnable again.

        The job goes back to running, or to queued when another job of the
        same tenant is already active.
        """
        job = await self.get(job_id)
        if job.status not in (JobStatus.PAUSED, JobStatus.FAILED) or not job.can_resume:
            raise InvalidJobTransitionError(job.job_id, job.status.value, JobStatus.RUNNING.value)

        others = await self.list_for_tenant(job.tenant_id)
        busy = any(other.job_id != job.job_id and other.status in ACTIVE_STATUSES for other in others)
        target = JobStatus.QUEUED if busy else JobStatus.RUNNING

        return await self._transition(
            job, target,
            cancel_requested=False, error_message=None, last_heartbeat_at=self.clock(),
        )

    async def finalize(
        self,
        job_id: str,
        status: JobStatus,
        result: dict[str, Any] | None = None,
        error_message: str | None = None,
        can_resume: bool | None = None,
    ) -> Job:
        job = await self.get(job_id)
        status = JobStatus(status)
        fields: dict[str, Any] = {"last_heartbeat_at": self.clock()}
        if status.is_terminal:
            fields["completed_at"] = self.clock()
        if result is not None:
            fields["result"] = result
        if error_message is not None:
            fields["error_message"] = error_message
        if can_resume is not None:
            fields["can_resume"] = can_resume

        updated = await self._transition(job, status, **fields)
        if status == JobStatus.COMPLETED:
            set_gauge(job_progress_percent, 100, job_type=job.job_type)
        return updated
