"""
SQLAlchemy Persistence Store Implementation.

Implements PersistenceStore on a single JSON document table.
"""
from typing import Any, Dict, List, Mapping, Optional, Tuple
import asyncio
import logging
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from core.domain.repositories.persistence_store import (
    PersistenceStore,
    PersistenceStoreError,
    Record,
    apply_mutation,
    matches,
)
from core.infrastructure.database.models import DomainRecordModel


logger = logging.getLogger(__name__)


class SqlAlchemyPersistenceStore(PersistenceStore):
    """
    SQLAlchemy implementation of PersistenceStore.
    
    Every call runs in its own transaction. Scalar filter values are
    pushed down as JSON path comparisons; anything else (None, lists,
    objects) is matched in Python on the loaded documents.

    Writes (insert, update, increment) are serialized on a per-store lock.
    Each one reads, mutates and writes back a document, and neither SQLite
    nor FOR UPDATE on a missing row keeps two such calls apart.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        """
        Initialize store with a session factory.

        Args:
            session_factory: SQLAlchemy async session factory
        """
        self._session_factory = session_factory
        self._write_lock = asyncio.Lock()

    async def insert(self, collection: str, record: Record) -> Record:
        try:
            async with self._write_lock, self._session_factory() as session:
                async with session.begin():
                    session.add(DomainRecordModel(collection=collection, data=dict(record)))
        except SQLAlchemyError as e:
            logger.error(f"Failed to insert into '{collection}': {e}")
            raise PersistenceStoreError(f"Insert into '{collection}' failed: {e}") from e
        
        logger.debug(f"Inserted record into '{collection}': {record.get('id')}")
        return dict(record)
    
    async def find_one(self, collection: str, filter_: Mapping[str, Any]) -> Optional[Record]:
        try:
            async with self._session_factory() as session:
                model = await self._first(session, collection, filter_)
                return dict(model.data) if model is not None else None
        except SQLAlchemyError as e:
            raise PersistenceStoreError(f"Query on '{collection}' failed: {e}") from e
    
    async def find(
        self,
        collection: str,
        filter_: Optional[Mapping[str, Any]] = None,
        limit: int = 100,
    ) -> List[Record]:
        try:
            async with self._session_factory() as session:
                models = await self._matching(session, collection, filter_ or {})
        except SQLAlchemyError as e:
            raise PersistenceStoreError(f"Query on '{collection}' failed: {e}") from e
        return [dict(model.data) for model in models[:limit]]
    
    async def update(
        self,
        collection: str,
        filter_: Mapping[str, Any],
        mutation: Mapping[str, Any],
        upsert: bool = False,
    ) -> Optional[Record]:
        try:
            async with self._write_lock, self._session_factory() as session:
                async with session.begin():
                    model = await self._first(session, collection, filter_, for_update=True)

                    if model is None:
                        if not upsert:
                            return None
                        data = apply_mutation(dict(filter_), mutation, inserting=True)
                        session.add(DomainRecordModel(collection=collection, data=data))
                        return dict(data)
                    
                    data = apply_mutation(dict(model.data), mutation)
                    # Reassign so the JSON column is flagged dirty
                    model.data = data
                    return dict(data)
        except SQLAlchemyError as e:
            logger.error(f"Failed to update '{collection}': {e}")
            raise PersistenceStoreError(f"Update on '{collection}' failed: {e}") from e
    
    async def increment(
        self,
        collection: str,
        filter_: Mapping[str, Any],
        field: str,
        amount: float,
        upsert: bool = True,
        baseline: float = 0,
    ) -> Optional[Record]:
        try:
            async with self._write_lock, self._session_factory() as session:
                async with session.begin():
                    model = await self._first(session, collection, filter_, for_update=True)

                    if model is None:
                        if not upsert:
                            return None
                        data = dict(filter_)
                        data[field] = baseline + amount
                        session.add(DomainRecordModel(collection=collection, data=data))
                        return dict(data)
                    
                    data = dict(model.data)
                    data.setdefault(field, baseline)
                    data = apply_mutation(data, {"$inc": {field: amount}})
                    model.data = data
                    return dict(data)
        except SQLAlchemyError as e:
            logger.error(f"Failed to increment '{collection}.{field}': {e}")
            raise PersistenceStoreError(f"Increment on '{collection}' failed: {e}") from e
    
    # =========================================================================
    # QUERY HELPERS
    # =========================================================================
    
    async def _first(
        self,
        session: AsyncSession,
        collection: str,
        filter_: Mapping[str, Any],
        for_update: bool = False,
    ) -> Optional[DomainRecordModel]:
        models = await self._matching(session, collection, filter_, for_update=for_update)
        return models[0] if models else None
    
    async def _matching(
        self,
        session: AsyncSession,
        collection: str,
        filter_: Mapping[str, Any],
        for_update: bool = False,
    ) -> List[DomainRecordModel]:
        pushed, residual = _split_filter(filter_)
        
        query = select(DomainRecordModel).where(DomainRecordModel.collection == collection)
        for key, value in pushed.items():
            query = query.where(_json_field(key, value) == value)
        query = query.order_by(DomainRecordModel.id)
        if for_update:
            query = query.with_for_update()
        
        result = await session.execute(query)
        models = list(result.scalars().all())
        return [model for model in models if matches(model.data, residual)]


def _split_filter(filter_: Mapping[str, Any]) -> Tuple[Dict[str, Any], Dict[str, Any]]:
    """Separate filter entries that can be compared in SQL from the rest."""
    pushed: Dict[str, Any] = {}
    residual: Dict[str, Any] = {}
    for key, value in filter_.items():
        if isinstance(value, (str, int, float)) and not isinstance(value, bool):
            pushed[key] = value
        else:
            residual[key] = value
    return pushed, residual


def _json_field(key: str, value: Any):
    element = DomainRecordModel.data[key]
    if isinstance(value, str):
        return element.as_string()
    if isinstance(value, int):
        return element.as_integer()
    return element.as_float()
