"""Persistence adapters."""

from .in_memory_store import InMemoryPersistenceStore

__all__ = ["InMemoryPersistenceStore"]
