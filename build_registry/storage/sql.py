"""
SQL document store on top of SQLAlchemy.

The ORM is synchronous; each store call opens a short session in a worker
thread. SQLite shares one connection (StaticPool), so calls against it are
serialised with an asyncio.Lock.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, List, Optional, TypeVar

from sqlalchemy import Engine, Select, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..db.base import Base, create_db_engine, create_session_factory
from ..db.models import CollectionModel, DocumentModel
from .base import Document, DocumentStore, ListOptions, apply_list_options
from .errors import (
    CollectionAlreadyExistsError,
    CollectionNotFoundError,
    DocumentAlreadyExistsError,
    DocumentNotFoundError,
    StoreError,
    StoreNotInitializedError,
)

T = TypeVar("T")


def select_for_update(collection_id: str, document_id: str) -> Select:
    """Select one document row, locked until the session commits.

    SQLite has no row locks and ignores FOR UPDATE; its calls are already
    serialised by the store lock.
    """
    return (
        select(DocumentModel)
        .where(DocumentModel.collection_id == collection_id, DocumentModel.id == document_id)
        .with_for_update()
    )


class SQLDocumentStore(DocumentStore):
    """Document store persisted in a relational database."""

    name = "sql"

    def __init__(self, database_url: Optional[str] = None, engine: Optional[Engine] = None):
        self.engine = engine or create_db_engine(database_url)
        self._session_factory = create_session_factory(self.engine)
        self._lock = asyncio.Lock() if self.engine.dialect.name == "sqlite" else None
        self._initialized = False

    async def init(self) -> None:
        """Create the tables if they do not exist yet."""
        await asyncio.to_thread(Base.metadata.create_all, self.engine)
        self._initialized = True

    async def _run(self, fn: Callable[[Session], T]) -> T:
        if not self._initialized:
            raise StoreNotInitializedError("SQL document store")

        def _call() -> T:
            with self._session_factory() as session:
                try:
                    return fn(session)
                except SQLAlchemyError as e:
                    raise StoreError(f"SQL document store error: {e}") from e

        if self._lock is None:
            return await asyncio.to_thread(_call)
        async with self._lock:
            return await asyncio.to_thread(_call)

    @staticmethod
    def _require_collection(session: Session, collection_id: str) -> None:
        if session.get(CollectionModel, collection_id) is None:
            raise CollectionNotFoundError(collection_id)

    @staticmethod
    def _require_document(session: Session, collection_id: str, document_id: str) -> DocumentModel:
        SQLDocumentStore._require_collection(session, collection_id)
        row = session.get(DocumentModel, (collection_id, document_id))
        if row is None:
            raise DocumentNotFoundError(collection_id, document_id)
        return row

    async def list_collections(self) -> List[str]:
        def _list(session: Session) -> List[str]:
            return list(session.scalars(select(CollectionModel.id)).all())

        return await self._run(_list)

    async def create_collection(self, collection_id: str) -> None:
        def _create(session: Session) -> None:
            session.add(CollectionModel(id=collection_id))
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                raise CollectionAlreadyExistsError(collection_id) from None

        await self._run(_create)

    async def delete_collection(self, collection_id: str) -> None:
        def _delete(session: Session) -> None:
            collection = session.get(CollectionModel, collection_id)
            if collection is None:
                raise CollectionNotFoundError(collection_id)
            session.query(DocumentModel).filter(
                DocumentModel.collection_id == collection_id
            ).delete(synchronize_session=False)
            session.delete(collection)
            session.commit()

        await self._run(_delete)

    async def has_collection(self, collection_id: str) -> bool:
        def _has(session: Session) -> bool:
            return session.get(CollectionModel, collection_id) is not None

        return await self._run(_has)

    async def list_documents(
        self, collection_id: str, options: Optional[ListOptions] = None
    ) -> List[Document]:
        def _list(session: Session) -> List[Document]:
            self._require_collection(session, collection_id)
            rows = session.scalars(
                select(DocumentModel).where(DocumentModel.collection_id == collection_id)
            ).all()
            return [row.to_dict() for row in rows]

        return apply_list_options(await self._run(_list), options)

    async def create_document(self, collection_id: str, document: Document) -> None:
        document_id = document["id"]

        def _create(session: Session) -> None:
            self._require_collection(session, collection_id)
            data = {key: value for key, value in document.items() if key != "id"}
            session.add(DocumentModel(collection_id=collection_id, id=document_id, data=data))
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                raise DocumentAlreadyExistsError(collection_id, document_id) from None

        await self._run(_create)

    async def get_document(self, collection_id: str, document_id: str) -> Document:
        def _get(session: Session) -> Document:
            return self._require_document(session, collection_id, document_id).to_dict()

        return await self._run(_get)

    async def has_document(self, collection_id: str, document_id: str) -> bool:
        def _has(session: Session) -> bool:
            self._require_collection(session, collection_id)
            return session.get(DocumentModel, (collection_id, document_id)) is not None

        return await self._run(_has)

    async def update_document(
        self, collection_id: str, document_id: str, patch: Document
    ) -> Document:
        def _update(session: Session) -> Document:
            self._require_collection(session, collection_id)
            row = session.scalars(select_for_update(collection_id, document_id)).first()
            if row is None:
                raise DocumentNotFoundError(collection_id, document_id)
            data: dict[str, Any] = dict(row.data or {})
            data.update({key: value for key, value in patch.items() if key != "id"})
            # Reassign so SQLAlchemy notices the JSON change.
            row.data = data
            session.commit()
            return row.to_dict()

        return await self._run(_update)

    async def delete_document(self, collection_id: str, document_id: str) -> None:
        def _delete(session: Session) -> None:
            row = self._require_document(session, collection_id, document_id)
            session.delete(row)
            session.commit()

        await self._run(_delete)
