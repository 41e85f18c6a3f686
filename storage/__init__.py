"""Size-limited document persistence with blob overflow."""

from storage.errors import (
    BlobStoreError,
    DocumentNotFoundError,
    DocumentTooLargeError,
    OverflowWriteError,
    ResourceExhaustedError,
    StorageError,
    TransientStoreError,
)
from storage.documents import DocumentStore, InMemoryDocumentStore, SqlDocumentStore, document_size
from storage.blobs import BlobStore, HttpBlobStore, InMemoryBlobStore
from storage.references import StorageReference, is_storage_reference
from storage.overflow import OverflowStore, PutResult

__all__ = [
    "StorageError",
    "DocumentNotFoundError",
    "DocumentTooLargeError",
    "TransientStoreError",
    "ResourceExhaustedError",
    "BlobStoreError",
    "OverflowWriteError",
    "DocumentStore",
    "InMemoryDocumentStore",
    "SqlDocumentStore",
    "document_size",
    "BlobStore",
    "InMemoryBlobStore",
    "HttpBlobStore",
    "StorageReference",
    "is_storage_reference",
    "OverflowStore",
    "PutResult",
]
