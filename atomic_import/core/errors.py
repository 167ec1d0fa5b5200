"""
Error taxonomy for the grouped importer.

Store backends raise StoreError subclasses; the processor classifies any
failure into an ImportErrorKind that ends up on the group's WriteOutcome.
"""

from enum import Enum


class ImportErrorKind(str, Enum):
    """Classification recorded on a failed WriteOutcome."""

    VALIDATION = "validation"
    DUPLICATE = "duplicate"
    TRANSIENT = "transient"
    WRITE = "write"
    ROLLBACK_FAILURE = "rollback_failure"


class AtomicImportError(Exception):
    """Base exception for all importer errors."""

    code: str = "ATOMIC_IMPORT_ERROR"


# Store errors


class StoreError(AtomicImportError):
    """A repository call failed. Permanent unless a subclass says otherwise."""

    code: str = "STORE_ERROR"

    def __init__(self, message: str, entity_kind: str | None = None, operation: str | None = None):
        self.entity_kind = entity_kind
        self.operation = operation
        super().__init__(message)


class TransientStoreError(StoreError):
    """Rate limit, timeout or lost connection. Safe to retry."""

    code: str = "STORE_TRANSIENT"


class RecordNotFoundError(StoreError):
    """The target id does not exist (including deletes of already-deleted ids)."""

    code: str = "RECORD_NOT_FOUND"


class ConflictError(StoreError):
    """The store rejected the write because of a uniqueness conflict."""

    code: str = "STORE_CONFLICT"


# Group write errors


class WriteError(AtomicImportError):
    """A write step completed without raising but left the group incomplete."""

    code: str = "WRITE_ERROR"


class DuplicateKeyError(AtomicImportError):
    """The group's business key already exists in the store."""

    code: str = "DUPLICATE_KEY"

    def __init__(self, business_key: str, display_key: str | None = None, label: str = "key"):
        self.business_key = business_key
        self.display_key = display_key or business_key
        super().__init__(f"Duplicate {label}: {self.display_key} (already exists)")


class RollbackFailure(AtomicImportError):
    """
    Compensation after a failed write did not complete.

    Carries the original failure and every compensation error. The store
    may hold a partial group, so this always needs operator review.
    """

    code: str = "ROLLBACK_FAILURE"

    def __init__(self, original: BaseException, compensation_errors: list[str]):
        self.original = original
        self.compensation_errors = list(compensation_errors)
        details = "; ".join(self.compensation_errors)
        super().__init__(
            f"Failed AND rollback error: {original}. "
            f"Rollback errors: {details}. MANUAL REVIEW REQUIRED."
        )


class SupplierResolutionError(AtomicImportError):
    """A supplier referenced by the input could not be found or created."""

    code: str = "SUPPLIER_RESOLUTION"


# Job errors


class JobError(AtomicImportError):
    """Base exception for job tracking errors."""

    code: str = "JOB_ERROR"


class JobNotFoundError(JobError):
    code: str = "JOB_NOT_FOUND"

    def __init__(self, job_id: str):
        self.job_id = job_id
        super().__init__(f"Job not found: {job_id}")


class InvalidJobTransitionError(JobError):
    code: str = "INVALID_JOB_TRANSITION"

    def __init__(self, job_id: str, current: str, target: str):
        self.job_id = job_id
        self.current = current
        self.target = target
        super().__init__(f"Cannot move job {job_id} from {current} to {target}")


class JobFailedError(JobError):
    """Raised by run_as_job after the job record has been marked failed."""

    code: str = "JOB_FAILED"


class ConfigError(AtomicImportError):
    """Invalid settings or rule configuration."""

    code: str = "CONFIG_ERROR"
