"""
Import engine: atomic group writes, retries, compensation and wave scheduling.
"""

from .compensation import CompensationStack
from .importer import BaseImporter, ImportOptions, OrderImporter, SkuImporter
from .processor import AtomicGroupProcessor, UpsertMode, failure_outcome, success_outcome
from .retry import RetryPolicy, is_transient
from .scheduler import BatchScheduler
from .suppliers import SupplierResolver
from .writers import GroupWriter, OrderGroupWriter, SkuGroupWriter

__all__ = [
    "AtomicGroupProcessor",
    "BaseImporter",
    "BatchScheduler",
    "CompensationStack",
    "GroupWriter",
    "ImportOptions",
    "OrderGroupWriter",
    "OrderImporter",
    "RetryPolicy",
    "SkuGroupWriter",
    "SkuImporter",
    "SupplierResolver",
    "UpsertMode",
    "failure_outcome",
    "is_transient",
    "success_outcome",
]
