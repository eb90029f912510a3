"""
SQLAlchemy ORM Models.

Maps domain records to database tables.
"""
from datetime import datetime, timezone
from sqlalchemy import Column, DateTime, Index, Integer, JSON, String
from sqlalchemy.orm import declarative_base


Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# DOMAIN RECORD MODEL
# =============================================================================

class DomainRecordModel(Base):
    """
    Domain record database model.
    
    Stores records of every collection (vouchers, posts, pulse aggregates, ...)
    as JSON documents. Filters are evaluated on top-level document fields.
    """
    
    __tablename__ = "domain_records"
    
    # Primary key - auto-increment keeps insertion order
    id = Column(Integer, primary_key=True, autoincrement=True)
    
    # Collection name (e.g. "vouchers", "pulse")
    collection = Column(String(100), nullable=False, index=True)
    
    # Record document
    data = Column(JSON, nullable=False)
    
    # Timestamps
    created_at = Column(DateTime(timezone=True), default=_utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=_utcnow, onupdate=_utcnow, nullable=False)
    
    __table_args__ = (
        Index('ix_domain_records_collection_id', 'collection', 'id'),
    )
    
    def __repr__(self):
        return f"<DomainRecordModel(id={self.id}, collection={self.collection})>"
