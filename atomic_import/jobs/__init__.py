"""
Background job tracking: lifecycle, cancellation polling and the job runner.
"""

from .cancellation import JobCancellationChecker
from .runner import run_as_job
from .tracker import JobTracker

__all__ = ["JobCancellationChecker", "JobTracker", "run_as_job"]
