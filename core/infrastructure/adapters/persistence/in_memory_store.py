"""
In-Memory Persistence Store Implementation.

Fallback store for tests, demos and disconnected operation.
"""
import copy
from typing import Any, Dict, List, Mapping, Optional
import logging

from core.domain.repositories.persistence_store import (
    PersistenceStore,
    Record,
    apply_mutation,
    matches,
)


logger = logging.getLogger(__name__)


class InMemoryPersistenceStore(PersistenceStore):
    """
    In-memory implementation of PersistenceStore.
    
    Stores records per collection in insertion order. Every operation
    reads and writes without suspending, so each call is atomic with
    respect to other coroutines on the same event loop.
    """
    
    def __init__(self):
        """Initialize empty storage."""
        self._collections: Dict[str, List[Record]] = {}
        logger.info("InMemoryPersistenceStore initialized (in-memory storage)")
    
    async def insert(self, collection: str, record: Record) -> Record:
        stored = copy.deepcopy(record)
        self._collections.setdefault(collection, []).append(stored)
        logger.debug(f"Inserted record into '{collection}': {stored.get('id')}")
        return copy.deepcopy(stored)
    
    async def find_one(self, collection: str, filter_: Mapping[str, Any]) -> Optional[Record]:
        index = self._index_of(collection, filter_)
        if index is None:
            return None
        return copy.deepcopy(self._collections[collection][index])
    
    async def find(
        self,
        collection: str,
        filter_: Optional[Mapping[str, Any]] = None,
        limit: int = 100,
    ) -> List[Record]:
        records = [
            copy.deepcopy(record)
            for record in self._collections.get(collection, [])
            if matches(record, filter_ or {})
        ]
        return records[:limit]
    
    async def update(
        self,
        collection: str,
        filter_: Mapping[str, Any],
        mutation: Mapping[str, Any],
        upsert: bool = False,
    ) -> Optional[Record]:
        index = self._index_of(collection, filter_)
        
        if index is None:
            if not upsert:
                logger.debug(f"No record in '{collection}' matches {dict(filter_)}")
                return None
            created = apply_mutation(dict(filter_), mutation, inserting=True)
            self._collections.setdefault(collection, []).append(created)
            logger.debug(f"Upserted new record into '{collection}'")
            return copy.deepcopy(created)
        
        records = self._collections[collection]
        records[index] = apply_mutation(records[index], mutation)
        return copy.deepcopy(records[index])
    
    async def increment(
        self,
        collection: str,
        filter_: Mapping[str, Any],
        field: str,
        amount: float,
        upsert: bool = True,
        baseline: float = 0,
    ) -> Optional[Record]:
        index = self._index_of(collection, filter_)
        
        if index is None:
            if not upsert:
                return None
            record = dict(copy.deepcopy(filter_))
            record[field] = baseline
            self._collections.setdefault(collection, []).append(record)
            index = len(self._collections[collection]) - 1
        
        records = self._collections[collection]
        record = records[index]
        record.setdefault(field, baseline)
        records[index] = apply_mutation(record, {"$inc": {field: amount}})
        return copy.deepcopy(records[index])
    
    def _index_of(self, collection: str, filter_: Mapping[str, Any]) -> Optional[int]:
        for index, record in enumerate(self._collections.get(collection, [])):
            if matches(record, filter_):
                return index
        return None
    
    def count(self, collection: str) -> int:
        """Number of records in a collection (for demo/testing)."""
        return len(self._collections.get(collection, []))
    
    def clear(self) -> None:
        """Clear all collections (for demo/testing)."""
        self._collections.clear()
        logger.info("In-memory persistence store cleared")
