"""
Document and blob store backends.
"""

from .base import (
    BlobStore,
    Document,
    DocumentStore,
    ListOptions,
    StoredFile,
    UploadResult,
    apply_list_options,
)
from .errors import (
    CollectionAlreadyExistsError,
    CollectionNotFoundError,
    ContainerNotFoundError,
    DocumentAlreadyExistsError,
    DocumentNotFoundError,
    FileNotFoundInStoreError,
    InvalidPathError,
    StoreError,
    StoreNotInitializedError,
)
from .factory import create_blob_store, create_document_store
from .file import FileBlobStore, FileDocumentStore
from .memory import MemoryDocumentStore
from .sql import SQLDocumentStore

__all__ = [
    "BlobStore",
    "CollectionAlreadyExistsError",
    "CollectionNotFoundError",
    "ContainerNotFoundError",
    "Document",
    "DocumentAlreadyExistsError",
    "DocumentNotFoundError",
    "DocumentStore",
    "FileBlobStore",
    "FileDocumentStore",
    "FileNotFoundInStoreError",
    "InvalidPathError",
    "ListOptions",
    "MemoryDocumentStore",
    "SQLDocumentStore",
    "StoreError",
    "StoreNotInitializedError",
    "StoredFile",
    "UploadResult",
    "apply_list_options",
    "create_blob_store",
    "create_document_store",
]
