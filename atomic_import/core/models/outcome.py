"""
WriteOutcome and ImportResult models.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from atomic_import.core.errors import ImportErrorKind

from .source_row import SourceRow

MANUAL_REVIEW_MARKER = "MANUAL REVIEW REQUIRED"


class OutcomeAction(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"
    FAILED = "failed"


class CreatedIds(BaseModel):
    """Store ids written for one group."""

    model_config = ConfigDict(frozen=True)

    parent_id: str
    child_ids: list[str] = Field(default_factory=list)


class WriteOutcome(BaseModel):
    """
    Result of processing one group. Immutable once produced.

    Attributes:
        group_key: Normalized business key
        display_key: Key as shown to users ("112-0000001", "WIDGET-1")
        success: Whether the group ended in the intended state
        action: created / updated / skipped / failed
        created_ids: Ids written (or updated) for successful groups
        error_kind: Classification for failed groups
        error: Human-readable failure message
        rollback_errors: Compensation errors, if rollback failed
        requires_manual_review: True when the store may hold a partial group
        attempts: Number of write attempts made (0 when no write was tried)
        row_count: Source rows in the group
        source_rows: The rows themselves, for failed-row reports
        warnings: Non-fatal notes carried over from grouping
    """

    model_config = ConfigDict(frozen=True)

    group_key: str
    display_key: str
    success: bool
    action: OutcomeAction
    created_ids: CreatedIds | None = None
    error_kind: ImportErrorKind | None = None
    error: str | None = None
    rollback_errors: list[str] = Field(default_factory=list)
    requires_manual_review: bool = False
    attempts: int = Field(0, ge=0)
    row_count: int = Field(0, ge=0)
    source_rows: list[SourceRow] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_consistency(self) -> "WriteOutcome":
        """A successful outcome carries no error; a failed one always does."""
        if self.success and (self.error_kind is not None or self.action == OutcomeAction.FAILED):
            raise ValueError("successful outcome cannot carry an error")
        if not self.success and (self.error_kind is None or self.action != OutcomeAction.FAILED):
            raise ValueError("failed outcome requires error_kind and action=failed")
        return self

    @property
    def first_row_number(self) -> int:
        return self.source_rows[0].row_number if self.source_rows else 0

    @property
    def progress_message(self) -> str:
        if self.success:
            if self.action == OutcomeAction.CREATED:
                return f"✓ {self.display_key} ({self.row_count} rows)"
            return f"✓ {self.display_key} ({self.action.value}, {self.row_count} rows)"
        return f"✗ {self.display_key}: {self.error}"


class GroupError(BaseModel):
    """One entry of the run's error list."""

    model_config = ConfigDict(frozen=True)

    key: str
    error: str
    error_kind: ImportErrorKind
    requires_manual_review: bool = False
    source_rows: list[SourceRow] = Field(default_factory=list)


class ImportResult(BaseModel):
    """
    Aggregate result of one import run.

    Attributes:
        entity_kind: Kind of entity imported
        total_count: Groups in the run
        processed_count: Groups that reached an outcome
        success_count: Successful groups (created + updated + skipped)
        fail_count: Failed groups
        created_count / updated_count / skipped_count: Breakdown of successes
        errors: Failed groups keyed by display key, with source rows
        warnings: Run-level warnings (rollback failures needing review)
        cancelled: Run stopped on a cancellation request
        paused: Run stopped on a pause request
        next_index: Index of the first group not scheduled (for resume)
        outcomes: Every outcome, in completion order
    """

    entity_kind: str
    total_count: int = 0
    processed_count: int = 0
    success_count: int = 0
    fail_count: int = 0
    created_count: int = 0
    updated_count: int = 0
    skipped_count: int = 0
    errors: list[GroupError] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    cancelled: bool = False
    paused: bool = False
    next_index: int = 0
    outcomes: list[WriteOutcome] = Field(default_factory=list)

    @property
    def rollback_failures(self) -> list[WriteOutcome]:
        return [o for o in self.outcomes if o.error_kind == ImportErrorKind.ROLLBACK_FAILURE]

    def outcomes_in_input_order(self) -> list[WriteOutcome]:
        """Outcomes sorted by the row number of each group's first source row."""
        return sorted(self.outcomes, key=lambda o: o.first_row_number)

    def failed_rows(self) -> list[dict]:
        """Flatten failed groups into row dicts annotated with the failure."""
        rows = []
        for error in self.errors:
            for source_row in error.source_rows:
                rows.append({
                    **source_row.data,
                    "_row_number": source_row.row_number,
                    "_key": error.key,
                    "_error": error.error,
                    "_error_kind": error.error_kind.value,
                })
        return sorted(rows, key=lambda r: r["_row_number"])

    def summary(self) -> dict:
        return {
            "entity_kind": self.entity_kind,
            "total": self.total_count,
            "processed": self.processed_count,
            "success": self.success_count,
            "failed": self.fail_count,
            "created": self.created_count,
            "updated": self.updated_count,
            "skipped": self.skipped_count,
            "cancelled": self.cancelled,
            "paused": self.paused,
            "next_index": self.next_index,
            "warnings": len(self.warnings),
        }
