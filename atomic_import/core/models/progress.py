"""
ProgressEvent model emitted by the batch scheduler.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ProgressPhase(str, Enum):
    STARTED = "started"
    GROUP_COMPLETED = "group_completed"
    WAVE_COMPLETED = "wave_completed"
    FINISHED = "finished"
    CANCELLED = "cancelled"
    PAUSED = "paused"


class ProgressEvent(BaseModel):
    """
    Running totals after a step of the import.

    Attributes:
        phase: Which step produced the event
        current: Groups processed so far
        total: Groups in the run
        success_count: Successful groups so far
        fail_count: Failed groups so far
        message: Human-readable line ("✓ 112-0000001 (3 rows)")
    """

    model_config = ConfigDict(frozen=True)

    phase: ProgressPhase
    current: int = Field(..., ge=0)
    total: int = Field(..., ge=0)
    success_count: int = Field(0, ge=0)
    fail_count: int = Field(0, ge=0)
    message: str = ""

    @property
    def percent(self) -> int:
        if self.total == 0:
            return 100
        return int(self.current * 100 / self.total)


class StopReason(str, Enum):
    """Why a run stopped before its last wave."""

    CANCEL = "cancel"
    PAUSE = "pause"
