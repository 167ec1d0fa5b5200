"""
Job model representing a persisted background import job.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class JobStatus(str, Enum):
    QUEUED = "queued"
    RUNNING = "running"
    PAUSING = "pausing"
    PAUSED = "paused"
    CANCELLING = "cancelling"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES


TERMINAL_STATUSES = frozenset({JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELLED})

# Allowed status transitions. Anything else raises InvalidJobTransitionError.
ALLOWED_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.QUEUED: frozenset({JobStatus.RUNNING, JobStatus.CANCELLED, JobStatus.FAILED}),
    JobStatus.RUNNING: frozenset({
        JobStatus.PAUSING, JobStatus.CANCELLING, JobStatus.COMPLETED, JobStatus.FAILED,
    }),
    JobStatus.PAUSING: frozenset({
        JobStatus.PAUSED, JobStatus.CANCELLING, JobStatus.COMPLETED, JobStatus.FAILED,
    }),
    JobStatus.PAUSED: frozenset({
        JobStatus.RUNNING, JobStatus.QUEUED, JobStatus.CANCELLING, JobStatus.CANCELLED,
    }),
    JobStatus.CANCELLING: frozenset({JobStatus.CANCELLED, JobStatus.COMPLETED, JobStatus.FAILED}),
    JobStatus.FAILED: frozenset({JobStatus.RUNNING, JobStatus.QUEUED}),
    JobStatus.COMPLETED: frozenset(),
    JobStatus.CANCELLED: frozenset(),
}


class Job(BaseModel):
    """
    Persisted progress record of a long-running import.

    Written by the scheduler (counts, heartbeat) and by operators
    (cancel/pause requests), read back by the cancellation checker.

    Attributes:
        job_id: Store id of the job record
        tenant_id: Workspace the job belongs to
        job_type: "order_import" or "sku_import"
        status: Current JobStatus
        total_count / processed_count / success_count / failed_count: Group counts
        progress_percent: processed / total as an integer percentage
        progress_message: Last human-readable progress line
        cancel_requested: Set together with status=cancelling
        can_resume: Whether resume() is allowed
        error_message: Failure reason for failed jobs
        result: Final summary written on completion
        params: Import options the job was started with
        started_at / completed_at / last_heartbeat_at: Timestamps
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "job_id": "6f1c2e4a9b0d4c55",
                "tenant_id": "acme",
                "job_type": "order_import",
                "status": "running",
                "total_count": 120,
                "processed_count": 40,
                "success_count": 38,
                "failed_count": 2,
                "progress_percent": 33,
                "progress_message": "✓ 112-0000040 (2 rows)",
            }
        }
    )

    job_id: str
    tenant_id: str
    job_type: str
    status: JobStatus = JobStatus.QUEUED
    total_count: int = Field(0, ge=0)
    processed_count: int = Field(0, ge=0)
    success_count: int = Field(0, ge=0)
    failed_count: int = Field(0, ge=0)
    progress_percent: int = Field(0, ge=0, le=100)
    progress_message: str | None = None
    cancel_requested: bool = False
    can_resume: bool = True
    error_message: str | None = None
    result: dict[str, Any] = Field(default_factory=dict)
    params: dict[str, Any] = Field(default_factory=dict)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    last_heartbeat_at: datetime | None = None

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "Job":
        data = dict(record)
        data["job_id"] = data.pop("id")
        return cls.model_validate({k: v for k, v in data.items() if v is not None})

    def can_transition_to(self, target: JobStatus) -> bool:
        return target in ALLOWED_TRANSITIONS[self.status]
