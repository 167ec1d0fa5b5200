"""
Retry policy for transient store failures.

The backoff schedule is plain data; the retry loop itself lives in
AtomicGroupProcessor.
"""

from pydantic import BaseModel, ConfigDict, Field

from atomic_import.core.errors import (
    ConflictError,
    DuplicateKeyError,
    RecordNotFoundError,
    RollbackFailure,
    TransientStoreError,
)

# Lower-cased substrings that mark an error message as transient.
TRANSIENT_MARKERS = ("rate limit", "429", "too many requests", "timeout")

_NEVER_TRANSIENT = (DuplicateKeyError, ConflictError, RecordNotFoundError, RollbackFailure)


def is_transient(error: BaseException) -> bool:
    """Whether an error is worth retrying."""
    if isinstance(error, TransientStoreError):
        return True
    if isinstance(error, _NEVER_TRANSIENT):
        return False
    message = str(error).lower()
    return any(marker in message for marker in TRANSIENT_MARKERS)


class RetryPolicy(BaseModel):
    """
    Bounded retry schedule.

    Attributes:
        max_retries: Retries allowed after the first attempt
        delays: Seconds to wait before retry 1, 2, ...; the last entry
                repeats when there are more retries than delays
    """

    model_config = ConfigDict(frozen=True)

    max_retries: int = Field(3, ge=0)
    delays: tuple[float, ...] = (0.5, 1.0, 2.0)

    @classmethod
    def from_settings(cls, settings) -> "RetryPolicy":
        return cls(max_retries=settings.max_retries, delays=settings.retry_delays)

    def should_retry(self, error: BaseException, retries_done: int) -> bool:
        return retries_done < self.max_retries and is_transient(error)

    def delay_for(self, retry_number: int) -> float:
        """Delay before the given retry (1-based)."""
        if not self.delays:
            return 0.0
        return self.delays[min(retry_number, len(self.delays)) - 1]
