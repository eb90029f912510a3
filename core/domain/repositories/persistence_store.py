"""
Persistence Store Interface (Domain Layer).

Key/record store for domain records and aggregates.

Filters are equality matches on top-level record fields.
Mutations use update operators:
- $set: overwrite fields
- $setOnInsert: fields written only when an upsert creates the record
- $push: append values to list fields
- $inc: add to numeric fields
"""
from abc import ABC, abstractmethod
import copy
from typing import Any, Dict, List, Mapping, Optional


Record = Dict[str, Any]

MUTATION_OPERATORS = ("$set", "$setOnInsert", "$push", "$inc")


class PersistenceStoreError(Exception):
    """Raised when the store rejects or fails an operation."""
    pass


def matches(record: Mapping[str, Any], filter_: Mapping[str, Any]) -> bool:
    """Check whether a record satisfies an equality filter."""
    return all(record.get(key) == value for key, value in filter_.items())


def apply_mutation(
    record: Record,
    mutation: Mapping[str, Any],
    inserting: bool = False,
) -> Record:
    """
    Apply update operators to a copy of a record.
    
    Args:
        record: Current record (not modified)
        mutation: Operator document
        inserting: True when an upsert is creating the record
    
    Returns:
        Mutated copy
    
    Raises:
        PersistenceStoreError: On unknown operators or type mismatches
    """
    unknown = set(mutation) - set(MUTATION_OPERATORS)
    if unknown:
        raise PersistenceStoreError(f"Unsupported update operators: {sorted(unknown)}")
    
    result = copy.deepcopy(record)
    
    if inserting:
        result.update(copy.deepcopy(mutation.get("$setOnInsert", {})))
    
    result.update(copy.deepcopy(mutation.get("$set", {})))
    
    for key, value in mutation.get("$push", {}).items():
        current = result.setdefault(key, [])
        if not isinstance(current, list):
            raise PersistenceStoreError(f"Cannot $push to non-list field '{key}'")
        current.append(copy.deepcopy(value))
    
    for key, amount in mutation.get("$inc", {}).items():
        current = result.get(key, 0)
        if not isinstance(current, (int, float)) or isinstance(current, bool):
            raise PersistenceStoreError(f"Cannot $inc non-numeric field '{key}'")
        result[key] = current + amount
    
    return result


class PersistenceStore(ABC):
    """Abstract store for domain records, keyed by domain identifiers."""
    
    @abstractmethod
    async def insert(self, collection: str, record: Record) -> Record:
        """Insert a new record.
        
        Args:
            collection: Collection name (e.g. "vouchers")
            record: Record to store
        
        Returns:
            Stored record
        """
        pass
    
    @abstractmethod
    async def find_one(self, collection: str, filter_: Mapping[str, Any]) -> Optional[Record]:
        """Find the first record matching a filter.
        
        Returns:
            Record if found, None otherwise
        """
        pass
    
    @abstractmethod
    async def find(
        self,
        collection: str,
        filter_: Optional[Mapping[str, Any]] = None,
        limit: int = 100,
    ) -> List[Record]:
        """List records matching a filter, in insertion order."""
        pass
    
    @abstractmethod
    async def update(
        self,
        collection: str,
        filter_: Mapping[str, Any],
        mutation: Mapping[str, Any],
        upsert: bool = False,
    ) -> Optional[Record]:
        """Apply a mutation to the first matching record.
        
        With upsert, a missing record is created from the filter fields
        plus the mutation.
        
        Returns:
            Updated record, or None if nothing matched and upsert is off
        """
        pass
    
    @abstractmethod
    async def increment(
        self,
        collection: str,
        filter_: Mapping[str, Any],
        field: str,
        amount: float,
        upsert: bool = True,
        baseline: float = 0,
    ) -> Optional[Record]:
        """Atomically add to a numeric field.
        
        A missing record (with upsert) is created with the field at
        baseline, then incremented. A present record missing the field
        starts from baseline as well.
        
        Returns:
            Updated record, or None if nothing matched and upsert is off
        """
        pass
