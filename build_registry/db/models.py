"""
SQLAlchemy models backing the SQL document store.

Documents are kept as JSON blobs; the (collection_id, id) primary key is the
uniqueness constraint that makes concurrent creates race-safe.
"""

from typing import Any, Dict

from sqlalchemy import JSON, Column, DateTime, ForeignKey, String
from sqlalchemy.sql import func

from .base import Base


class CollectionModel(Base):
    """A named collection of documents."""

    __tablename__ = "registry_collections"

    id = Column(String(255), primary_key=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=func.now())


class DocumentModel(Base):
    """A JSON document inside a collection."""

    __tablename__ = "registry_documents"

    collection_id = Column(
        String(255),
        ForeignKey("registry_collections.id", ondelete="CASCADE"),
        primary_key=True,
    )
    id = Column(String(255), primary_key=True)
    data = Column(JSON, nullable=False, default=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert model to the stored document."""
        return {**self.data, "id": self.id}
