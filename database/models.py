"""Database models for the primary document store."""

from datetime import datetime

from sqlalchemy import Column, DateTime, Index, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class StoredDocument(Base):
    """A JSON document stored under a slash-separated key.

    The first key segment is kept as ``collection`` so listing and cleanup
    can work per collection (``brands``, ``session_analytics``, ...).
    """

    __tablename__ = "stored_documents"

    key = Column(String(512), primary_key=True)
    collection = Column(String(100), nullable=False, index=True)
    payload = Column(Text, nullable=False)  # compact JSON
    size_bytes = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (Index("idx_stored_documents_collection_key", "collection", "key"),)

    def __repr__(self):
        return f"<StoredDocument(key={self.key}, size_bytes={self.size_bytes})>"
