"""
In-process document store.

Documents live in nested dicts. All mutations run under one asyncio.Lock,
and there is no await between "check id" and "insert", so concurrent
creates of the same id resolve to exactly one winner.
"""

from __future__ import annotations

import asyncio
import copy
from typing import Dict, List, Optional

from .base import Document, DocumentStore, ListOptions, apply_list_options
from .errors import (
    CollectionAlreadyExistsError,
    CollectionNotFoundError,
    DocumentAlreadyExistsError,
    DocumentNotFoundError,
)


class MemoryDocumentStore(DocumentStore):
    """Document store kept entirely in memory."""

    name = "memory"

    def __init__(self) -> None:
        self._db: Dict[str, Dict[str, Document]] = {}
        self._lock = asyncio.Lock()

    def _collection(self, collection_id: str) -> Dict[str, Document]:
        try:
            return self._db[collection_id]
        except KeyError:
            raise CollectionNotFoundError(collection_id) from None

    async def _persist(self) -> None:
        """Hook for subclasses that mirror the data somewhere durable."""

    async def list_collections(self) -> List[str]:
        return list(self._db)

    async def create_collection(self, collection_id: str) -> None:
        async with self._lock:
            if collection_id in self._db:
                raise CollectionAlreadyExistsError(collection_id)
            self._db[collection_id] = {}
            await self._persist()

    async def delete_collection(self, collection_id: str) -> None:
        async with self._lock:
            self._collection(collection_id)
            del self._db[collection_id]
            await self._persist()

    async def has_collection(self, collection_id: str) -> bool:
        return collection_id in self._db

    async def list_documents(
        self, collection_id: str, options: Optional[ListOptions] = None
    ) -> List[Document]:
        documents = copy.deepcopy(list(self._collection(collection_id).values()))
        return apply_list_options(documents, options)

    async def create_document(self, collection_id: str, document: Document) -> None:
        async with self._lock:
            collection = self._collection(collection_id)
            document_id = document["id"]
            if document_id in collection:
                raise DocumentAlreadyExistsError(collection_id, document_id)
            collection[document_id] = copy.deepcopy(document)
            await self._persist()

    async def get_document(self, collection_id: str, document_id: str) -> Document:
        collection = self._collection(collection_id)
        if document_id not in collection:
            raise DocumentNotFoundError(collection_id, document_id)
        return copy.deepcopy(collection[document_id])

    async def has_document(self, collection_id: str, document_id: str) -> bool:
        return document_id in self._collection(collection_id)

    async def update_document(
        self, collection_id: str, document_id: str, patch: Document
    ) -> Document:
        async with self._lock:
            collection = self._collection(collection_id)
            if document_id not in collection:
                raise DocumentNotFoundError(collection_id, document_id)
            merged = {**collection[document_id], **copy.deepcopy(patch), "id": document_id}
            collection[document_id] = merged
            await self._persist()
            return copy.deepcopy(merged)

    async def delete_document(self, collection_id: str, document_id: str) -> None:
        async with self._lock:
            collection = self._collection(collection_id)
            if document_id not in collection:
                raise DocumentNotFoundError(collection_id, document_id)
            del collection[document_id]
            await self._persist()
