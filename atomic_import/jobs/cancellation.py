"""
Cancellation checker polled by the scheduler between waves.
"""

from atomic_import.core.models import JobStatus, StopReason
from atomic_import.observability.logger import get_logger

from .tracker import JobTracker

logger = get_logger(__name__)


class JobCancellationChecker:
    """
    Reads the job record and turns cancel/pause requests into StopReasons.

    A failed read is logged and treated as "keep going".
    """

    def __init__(self, tracker: JobTracker, job_id: str):
        self.tracker = tracker
        self.job_id = job_id

    async def __call__(self) -> StopReason | None:
        try:
            job = await self.tracker.get(self.job_id)
        except Exception as e:
            logger.warning(
                f"Could not poll job {self.job_id}, continuing: {e}",
                extra={"job_id": self.job_id, "error_type": type(e).__name__},
            )
            return None

        if job.cancel_requested or job.status in (JobStatus.CANCELLING, JobStatus.CANCELLED):
            return StopReason.CANCEL
        if job.status in (JobStatus.PAUSING, JobStatus.PAUSED):
            return StopReason.PAUSE
        return None
