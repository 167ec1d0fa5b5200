"""
run_as_job: drive a worker coroutine through the job lifecycle.
"""

from collections.abc import Awaitable, Callable
from typing import Any

from atomic_import.core.errors import InvalidJobTransitionError, JobFailedError
from atomic_import.core.models import ImportResult, Job, JobStatus
from atomic_import.observability.logger import get_logger

from .tracker import JobTracker

logger = get_logger(__name__)

Worker = Callable[[Job], Awaitable[ImportResult]]


async def run_as_job(
    tracker: JobTracker,
    worker: Worker,
    tenant_id: str | None = None,
    job_type: str | None = None,
    params: dict[str, Any] | None = None,
    job_id: str | None = None,
) -> tuple[Job, ImportResult]:
    """
    Run worker inside a job record.

    A new job is created (queued) unless job_id names an existing queued
    or running job. The job is moved to running, the worker is awaited,
    and the job ends completed, cancelled, paused or failed.

    Args:
        tracker: JobTracker for the job records
        worker: Coroutine function receiving the running Job
        tenant_id: Tenant for a new job
        job_type: Type for a new job
        params: Parameters stored on a new job
        job_id: Existing job to run instead of creating one

    Returns:
        (final Job, ImportResult)

    Raises:
        JobFailedError: The worker raised; the job is marked failed first
    """
    if job_id is None:
        if tenant_id is None or job_type is None:
            raise ValueError("tenant_id and job_type are required to create a job")
        job = await tracker.create(tenant_id, job_type, params=params)
    else:
        job = await tracker.get(job_id)

    if job.status == JobStatus.QUEUED:
        job = await tracker.start(job.job_id)
    elif job.status != JobStatus.RUNNING:
        raise InvalidJobTransitionError(job.job_id, job.status.value, JobStatus.RUNNING.value)

    try:
        result = await worker(job)
    except Exception as e:
        logger.exception(f"Job {job.job_id} failed", extra={"job_id": job.job_id})
        await tracker.finalize(job.job_id, JobStatus.FAILED, error_message=str(e), can_resume=True)
        raise JobFailedError(f"Job {job.job_id} failed: {e}") from e

    if result.cancelled:
        status, can_resume = JobStatus.CANCELLED, False
    elif result.paused:
        status, can_resume = JobStatus.PAUSED, True
    else:
        status, can_resume = JobStatus.COMPLETED, False

    final = await tracker.finalize(job.job_id, status, result=result.summary(), can_resume=can_resume)
    return final, result
