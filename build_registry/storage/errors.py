"""
Errors raised by document and blob store backends.

These never leave the service layer: services translate them into the
domain errors of :mod:`build_registry.errors`.
"""

from __future__ import annotations


class StoreError(Exception):
    """Base class for store backend errors."""


class StoreNotInitializedError(StoreError):
    def __init__(self, store: str):
        super().__init__(f"{store} is not initialized.")


class CollectionAlreadyExistsError(StoreError):
    def __init__(self, collection_id: str):
        self.collection_id = collection_id
        super().__init__(f"Database collection '{collection_id}' already exists.")


class CollectionNotFoundError(StoreError):
    def __init__(self, collection_id: str):
        self.collection_id = collection_id
        super().__init__(f"Database collection '{collection_id}' does not exist.")


class DocumentAlreadyExistsError(StoreError):
    def __init__(self, collection_id: str, document_id: str):
        self.collection_id = collection_id
        self.document_id = document_id
        super().__init__(
            f"Database document '{document_id}' already exists in collection '{collection_id}'."
        )


class DocumentNotFoundError(StoreError):
    def __init__(self, collection_id: str, document_id: str):
        self.collection_id = collection_id
        self.document_id = document_id
        super().__init__(
            f"Database document '{document_id}' does not exist in collection '{collection_id}'."
        )


class ContainerNotFoundError(StoreError):
    def __init__(self, container_id: str):
        self.container_id = container_id
        super().__init__(f"Storage container '{container_id}' does not exist.")


class FileNotFoundInStoreError(StoreError):
    def __init__(self, container_id: str, path: str):
        self.container_id = container_id
        self.path = path
        super().__init__(
            f"Storage file '{path}' does not exist in container '{container_id}'."
        )


class InvalidPathError(StoreError):
    def __init__(self, container_id: str, path: str):
        self.container_id = container_id
        self.path = path
        super().__init__(f"Storage path '{path}' escapes container '{container_id}'.")
