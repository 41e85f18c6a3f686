"""Storage exception hierarchy."""

from typing import List, Optional


class StorageError(Exception):
    """Base exception for storage failures."""

    pass


class DocumentNotFoundError(StorageError):
    """No document is stored under the key."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Document not found: {key}")


class DocumentTooLargeError(StorageError):
    """The primary store refused a document above its size ceiling."""

    def __init__(self, key: str, size_bytes: int, limit_bytes: int):
        self.key = key
        self.size_bytes = size_bytes
        self.limit_bytes = limit_bytes
        super().__init__(f"Document {key} is {size_bytes} bytes (limit {limit_bytes})")


class TransientStoreError(StorageError):
    """A failure that may succeed when retried."""

    pass


class ResourceExhaustedError(TransientStoreError):
    """The primary store ran out of write capacity."""

    pass


class BlobStoreError(StorageError):
    """Blob upload, download or delete failed."""

    pass


class OverflowWriteError(StorageError):
    """Every write strategy for a document failed."""

    def __init__(self, key: str, attempts: Optional[List[str]] = None):
        self.key = key
        self.attempts = attempts or []
        tried = ", ".join(self.attempts) or "none"
        super().__init__(f"Could not write document {key} (tried: {tried})")
