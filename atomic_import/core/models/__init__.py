"""
Core data models for the grouped importer.

All models use Pydantic for runtime validation and type safety.
"""

from .group import EntityKind, Group, LineIntent
from .job import ALLOWED_TRANSITIONS, TERMINAL_STATUSES, Job, JobStatus
from .outcome import (
    MANUAL_REVIEW_MARKER,
    CreatedIds,
    GroupError,
    ImportResult,
    OutcomeAction,
    WriteOutcome,
)
from .progress import ProgressEvent, ProgressPhase, StopReason
from .source_row import SourceRow
from .validation_result import ValidationResult

__all__ = [
    "ALLOWED_TRANSITIONS",
    "MANUAL_REVIEW_MARKER",
    "TERMINAL_STATUSES",
    "CreatedIds",
    "EntityKind",
    "Group",
    "GroupError",
    "ImportResult",
    "Job",
    "JobStatus",
    "LineIntent",
    "OutcomeAction",
    "ProgressEvent",
    "ProgressPhase",
    "SourceRow",
    "StopReason",
    "ValidationResult",
    "WriteOutcome",
]
