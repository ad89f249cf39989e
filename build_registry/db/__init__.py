"""
Database package for the SQL document store.
"""

from .base import Base, create_db_engine, create_session_factory, get_database_url
from .models import CollectionModel, DocumentModel

__all__ = [
    "Base",
    "CollectionModel",
    "DocumentModel",
    "create_db_engine",
    "create_session_factory",
    "get_database_url",
]
