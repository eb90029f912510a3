"""Repository interfaces."""

from .persistence_store import (
    PersistenceStore,
    PersistenceStoreError,
    Record,
    apply_mutation,
    matches,
)

__all__ = [
    "PersistenceStore",
    "PersistenceStoreError",
    "Record",
    "apply_mutation",
    "matches",
]
