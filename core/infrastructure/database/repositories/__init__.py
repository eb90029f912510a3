"""SQLAlchemy repositories."""

from .sqlalchemy_record_store import SqlAlchemyPersistenceStore

__all__ = ["SqlAlchemyPersistenceStore"]
