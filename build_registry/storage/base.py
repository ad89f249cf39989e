"""
Store abstractions consumed by the service layer.

Two capabilities, each with one implementation per backend:

- DocumentStore: collections of JSON documents keyed by ``id``.
  No transactions, joins or schema; ``create_document`` failing on an
  existing id is the only mutual-exclusion primitive.
- BlobStore: containers of files addressed by slash-separated paths.

Design principle: services only ever talk to these interfaces, so a new
backend never changes service code.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal, Mapping, Optional, Sequence, Union

from ..primitives import parse_timestamp

Document = Dict[str, Any]
DocumentFilter = Union[Callable[[Document], bool], Mapping[str, Any]]
DocumentSort = Union[Literal["latest"], Callable[[Document], Any]]


@dataclass
class ListOptions:
    """Options to filter, order and shape the result of ``list_documents``.

    Attributes:
        filter: Predicate over the raw document, or a mapping of field -> value
            that must all be equal.
        sort: "latest" (updated_at, newest first) or a key function.
        limit: Maximum number of documents returned (after filtering).
        select: Fields to keep; ``id`` is always kept.
    """

    filter: Optional[DocumentFilter] = None
    sort: Optional[DocumentSort] = None
    limit: Optional[int] = None
    select: Optional[Sequence[str]] = None


def _matches(document: Document, doc_filter: Optional[DocumentFilter]) -> bool:
    if doc_filter is None:
        return True
    if callable(doc_filter):
        return bool(doc_filter(document))
    return all(document.get(key) == value for key, value in doc_filter.items())


def apply_list_options(documents: List[Document], options: Optional[ListOptions]) -> List[Document]:
    """Apply ListOptions in memory. Shared by backends without a query language."""
    if options is None:
        return documents

    items = [doc for doc in documents if _matches(doc, options.filter)]

    if options.sort == "latest":
        items.sort(key=lambda doc: parse_timestamp(doc["updated_at"]), reverse=True)
    elif callable(options.sort):
        items.sort(key=options.sort)

    if options.limit is not None:
        items = items[: options.limit]

    if options.select:
        keep = set(options.select) | {"id"}
        items = [{key: value for key, value in doc.items() if key in keep} for doc in items]

    return items


class DocumentStore(ABC):
    """Abstract base class for document storage."""

    name: str = "document-store"

    async def init(self) -> None:
        """Run async setup (connect, load files). Called once at startup."""

    @abstractmethod
    async def list_collections(self) -> List[str]:
        """List the ids of all collections."""

    @abstractmethod
    async def create_collection(self, collection_id: str) -> None:
        """Create a collection.

        Raises:
            CollectionAlreadyExistsError: If the collection exists.
        """

    @abstractmethod
    async def delete_collection(self, collection_id: str) -> None:
        """Delete a collection and all its documents.

        Raises:
            CollectionNotFoundError: If the collection does not exist.
        """

    @abstractmethod
    async def has_collection(self, collection_id: str) -> bool:
        """Check whether a collection exists. Never raises."""

    @abstractmethod
    async def list_documents(
        self, collection_id: str, options: Optional[ListOptions] = None
    ) -> List[Document]:
        """List documents of a collection.

        Raises:
            CollectionNotFoundError: If the collection does not exist.
        """

    @abstractmethod
    async def create_document(self, collection_id: str, document: Document) -> None:
        """Insert a document keyed by ``document["id"]``.

        Raises:
            CollectionNotFoundError: If the collection does not exist.
            DocumentAlreadyExistsError: If the id is taken.
        """

    @abstractmethod
    async def get_document(self, collection_id: str, document_id: str) -> Document:
        """Get a document.

        Raises:
            CollectionNotFoundError: If the collection does not exist.
            DocumentNotFoundError: If the document does not exist.
        """

    @abstractmethod
    async def has_document(self, collection_id: str, document_id: str) -> bool:
        """Check whether a document exists.

        Raises:
            CollectionNotFoundError: If the collection does not exist.
        """

    @abstractmethod
    async def update_document(
        self, collection_id: str, document_id: str, patch: Document
    ) -> Document:
        """Merge ``patch`` into an existing document and return the result.

        Keys absent from the patch are left untouched; ``id`` is never changed.

        Raises:
            CollectionNotFoundError: If the collection does not exist.
            DocumentNotFoundError: If the document does not exist.
        """

    @abstractmethod
    async def delete_document(self, collection_id: str, document_id: str) -> None:
        """Delete a document.

        Raises:
            CollectionNotFoundError: If the collection does not exist.
            DocumentNotFoundError: If the document does not exist.
        """


@dataclass
class StoredFile:
    """A file going into or coming out of a blob store."""

    path: str
    content: bytes
    mime_type: str = "application/octet-stream"


@dataclass
class UploadResult:
    """Outcome of a multi-file upload: each file is attempted independently."""

    uploaded: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


class BlobStore(ABC):
    """Abstract base class for blob storage."""

    name: str = "blob-store"

    async def init(self) -> None:
        """Run async setup. Called once at startup."""

    @abstractmethod
    async def list_containers(self) -> List[str]:
        """List the ids of all containers."""

    @abstractmethod
    async def create_container(self, container_id: str) -> None:
        """Create a container. Creating an existing container is a no-op."""

    @abstractmethod
    async def delete_container(self, container_id: str) -> None:
        """Delete a container and everything in it.

        Raises:
            ContainerNotFoundError: If the container does not exist.
        """

    @abstractmethod
    async def has_container(self, container_id: str) -> bool:
        """Check whether a container exists. Never raises."""

    @abstractmethod
    async def upload_files(self, container_id: str, files: Sequence[StoredFile]) -> UploadResult:
        """Write files into a container, best-effort per file.

        Raises:
            ContainerNotFoundError: If the container does not exist.
        """

    @abstractmethod
    async def delete_files(
        self, container_id: str, paths_or_prefix: Union[str, Sequence[str]]
    ) -> None:
        """Delete files by explicit paths or by a path prefix.

        Missing files are ignored. A path naming the container root is
        rejected with InvalidPathError before anything is removed.
        """

    @abstractmethod
    async def has_file(self, container_id: str, path: str) -> bool:
        """Check whether a file exists."""

    @abstractmethod
    async def download_file(self, container_id: str, path: str) -> StoredFile:
        """Read a file.

        Raises:
            FileNotFoundInStoreError: If the file does not exist.
        """
