"""
Entity store access: repository interface plus in-memory and PostgreSQL backends.
"""

from .base import EntityStore, Record, Repository, StoreKind
from .memory import InMemoryRepository, InMemoryStore

__all__ = [
    "EntityStore",
    "InMemoryRepository",
    "InMemoryStore",
    "Record",
    "Repository",
    "StoreKind",
]
