"""Document store front-end that keeps records under the primary size ceiling.

Oversized fields are moved to the blob store and replaced by a
:class:`StorageReference`. When that is impossible the document is degraded
(truncated, then reduced to its small fields) rather than lost.
"""

import asyncio
import json
import time
import uuid
import weakref
from typing import Any, Callable, Iterable, List, Optional, Tuple

import structlog
from pydantic import BaseModel, Field

from storage.blobs import BlobStore
from storage.documents import Document, DocumentStore, document_size, encode_document
from storage.errors import (
    BlobStoreError,
    DocumentNotFoundError,
    DocumentTooLargeError,
    OverflowWriteError,
    ResourceExhaustedError,
    StorageError,
    TransientStoreError,
)
from storage.references import StorageReference, is_storage_reference, references_in
from storage.retry import retry_with_backoff
from storage.truncation import minimal_document, truncate_document

logger = structlog.get_logger(__name__)

Mutator = Callable[[Optional[Document]], Document]


class PutResult(BaseModel):
    """How a document ended up being stored"""
    key: str
    offloaded_fields: List[str] = Field(default_factory=list)
    truncated: bool = False
    truncation_reason: Optional[str] = None
    size_bytes: int = 0


class OverflowStore:
    """Stores documents of any size on top of a size-limited document store."""

    def __init__(
        self,
        documents: DocumentStore,
        blobs: Optional[BlobStore] = None,
        max_record_bytes: int = 1_048_576,
        safety_margin: float = 0.8,
        truncate_max_items: int = 50,
        truncate_text_chars: int = 3000,
        max_retries: int = 3,
        retry_delay: float = 1.0,
    ):
        self.documents = documents
        self.blobs = blobs
        self.threshold = int(max_record_bytes * safety_margin)
        self.truncate_max_items = truncate_max_items
        self.truncate_text_chars = truncate_text_chars
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        # A key's lock lives only while some operation on that key holds it
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()
        self.logger = logger.bind(component="OverflowStore")

    @classmethod
    def from_config(cls, config, documents: DocumentStore, blobs: Optional[BlobStore] = None) -> "OverflowStore":
        """Build from a ``StorageConfig``."""
        return cls(
            documents,
            blobs,
            max_record_bytes=config.max_record_bytes,
            safety_margin=config.safety_margin,
            truncate_max_items=config.truncate_max_items,
            truncate_text_chars=config.truncate_text_chars,
            max_retries=config.max_retries,
            retry_delay=config.retry_delay,
        )

    def exceeds_limit(self, document: Any) -> bool:
        return document_size(document) > self.threshold

    def _lock(self, key: str) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    async def _retry(self, func, *args, operation: str, **kwargs):
        return await retry_with_backoff(
            func,
            *args,
            max_retries=self.max_retries,
            retry_delay=self.retry_delay,
            operation=operation,
            **kwargs,
        )

    # Public API ------------------------------------------------------------

    async def put(self, key: str, document: Document, large_fields: Iterable[str] = ()) -> PutResult:
        async with self._lock(key):
            return await self._put(key, document, list(large_fields))

    async def get(self, key: str, fields: Optional[Iterable[str]] = None) -> Document:
        """Read a document and splice offloaded fields back in.

        With ``fields`` only those references are resolved; other references
        stay in place.
        """
        async with self._lock(key):
            return await self._get(key, None if fields is None else set(fields))

    async def update(self, key: str, mutator: Mutator, large_fields: Iterable[str] = ()) -> PutResult:
        """Read-modify-write under the key's lock.

        ``mutator`` receives the current document (None if absent) and returns
        the document to store.
        """
        async with self._lock(key):
            try:
                current = await self._get(key, None)
            except DocumentNotFoundError:
                current = None
            return await self._put(key, mutator(current), list(large_fields))

    async def delete(self, key: str) -> None:
        async with self._lock(key):
            try:
                raw = await self._retry(self.documents.get, key, operation="document_get")
            except DocumentNotFoundError:
                return
            await self._delete_blobs(ref["storage_path"] for ref in references_in(raw).values())
            await self._retry(self.documents.delete, key, operation="document_delete")
            self.logger.info("document_deleted", key=key)

    async def list(self, prefix: str) -> List[str]:
        return await self._retry(self.documents.list, prefix, operation="document_list")

    # Writes ----------------------------------------------------------------

    async def _put(self, key: str, document: Document, large_fields: List[str]) -> PutResult:
        attempts: List[str] = []
        stale_paths = await self._existing_blob_paths(key)

        try:
            if self.exceeds_limit(document) or large_fields:
                attempts.append("offload")
                stored, offloaded = await self._offload(key, document, large_fields)
            else:
                attempts.append("full")
                stored, offloaded = document, []
        except (BlobStoreError, TransientStoreError, DocumentTooLargeError) as e:
            self.logger.warning("document_offload_failed", key=key, error=str(e))
            return await self._put_degraded(key, document, attempts, stale_paths)

        new_paths = [references_in(stored)[f]["storage_path"] for f in offloaded]
        try:
            size = await self._write(key, stored)
        except ResourceExhaustedError as e:
            self.logger.warning("document_write_exhausted", key=key, error=str(e))
            await self._delete_blobs(new_paths)
            return await self._put_minimal(key, document, attempts, "write_stream_exhausted", stale_paths)
        except DocumentTooLargeError as e:
            self.logger.warning("document_rejected_as_too_large", key=key, error=str(e))
            await self._delete_blobs(new_paths)
            return await self._put_degraded(key, document, attempts, stale_paths)
        except TransientStoreError as e:
            await self._delete_blobs(new_paths)
            self.logger.error("document_write_failed", key=key, attempts=attempts, error=str(e))
            raise OverflowWriteError(key, attempts) from e

        await self._delete_unreferenced(stale_paths, stored)
        if offloaded:
            self.logger.info("document_stored_with_offload", key=key, fields=offloaded, size=size)
        return PutResult(key=key, offloaded_fields=offloaded, size_bytes=size)

    async def _put_degraded(
        self, key: str, document: Document, attempts: List[str], stale_paths: List[str]
    ) -> PutResult:
        """Truncated document first, minimal document as the last resort."""
        attempts.append("truncated")
        reason = "size_limit_exceeded"
        truncated = truncate_document(document, self.truncate_max_items, self.truncate_text_chars, reason)

        if not self.exceeds_limit(truncated):
            try:
                size = await self._write(key, truncated)
            except ResourceExhaustedError as e:
                self.logger.warning("document_write_exhausted", key=key, error=str(e))
                return await self._put_minimal(key, document, attempts, "write_stream_exhausted", stale_paths)
            except (TransientStoreError, DocumentTooLargeError) as e:
                self.logger.warning("document_truncated_write_failed", key=key, error=str(e))
            else:
                await self._delete_unreferenced(stale_paths, truncated)
                self.logger.warning("document_stored_truncated", key=key, size=size)
                return PutResult(key=key, truncated=True, truncation_reason=reason, size_bytes=size)

        return await self._put_minimal(key, document, attempts, reason, stale_paths)

    async def _put_minimal(
        self, key: str, document: Document, attempts: List[str], reason: str, stale_paths: List[str]
    ) -> PutResult:
        attempts.append("minimal")
        minimal = minimal_document(document, reason)
        try:
            size = await self._write(key, minimal)
        except StorageError as e:
            self.logger.error("document_write_failed", key=key, attempts=attempts, error=str(e))
            raise OverflowWriteError(key, attempts) from e

        await self._delete_unreferenced(stale_paths, minimal)
        self.logger.warning("document_stored_minimal", key=key, reason=reason, size=size)
        return PutResult(key=key, truncated=True, truncation_reason=reason, size_bytes=size)

    async def _write(self, key: str, document: Document) -> int:
        return await self._retry(self.documents.set, key, document, operation="document_set")

    async def _offload(self, key: str, document: Document, large_fields: List[str]) -> Tuple[Document, List[str]]:
        """Move large container fields to the blob store until the document fits.

        Caller-named fields and fields over the threshold on their own go
        first, then the largest remaining containers.
        """
        if self.blobs is None:
            raise BlobStoreError("No blob store configured")

        stored = dict(document)
        offloaded: List[str] = []
        uploaded: List[str] = []

        def offloadable(field: str) -> bool:
            value = stored.get(field)
            return isinstance(value, (dict, list)) and not is_storage_reference(value)

        candidates = [f for f in large_fields if offloadable(f)]
        candidates += [
            f for f in stored if f not in candidates and offloadable(f) and self.exceeds_limit(stored[f])
        ]

        try:
            for field in candidates:
                uploaded.append(await self._offload_field(key, stored, field))
                offloaded.append(field)

            while self.exceeds_limit(stored):
                remaining = [(document_size(stored[f]), f) for f in stored if offloadable(f)]
                if not remaining:
                    raise DocumentTooLargeError(key, document_size(stored), self.threshold)
                _, field = max(remaining)
                uploaded.append(await self._offload_field(key, stored, field))
                offloaded.append(field)
        except StorageError:
            await self._delete_blobs(uploaded)
            raise

        return stored, offloaded

    async def _offload_field(self, key: str, stored: Document, field: str) -> str:
        value = stored[field]
        data = encode_document(value).encode("utf-8")
        storage_id = f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"
        path = f"{key}/{field}/{storage_id}.json"

        locator = await self._retry(
            self.blobs.upload,
            path,
            data,
            "application/json",
            {"document_key": key, "field": field},
            operation="blob_upload",
        )

        reference = StorageReference(
            storage_id=storage_id,
            storage_path=path,
            download_locator=locator,
            size=len(data),
            original_data_type="list" if isinstance(value, list) else "dict",
        )
        stored[field] = reference.model_dump(mode="json")
        self.logger.debug("field_offloaded", key=key, field=field, size=len(data))
        return path

    # Reads -----------------------------------------------------------------

    async def _get(self, key: str, fields: Optional[set]) -> Document:
        document = await self._retry(self.documents.get, key, operation="document_get")

        for field, reference in references_in(document).items():
            if fields is not None and field not in fields:
                continue
            if self.blobs is None:
                self.logger.warning("field_rehydration_skipped", key=key, field=field, reason="no_blob_store")
                continue
            try:
                data = await self._retry(
                    self.blobs.download, reference["download_locator"], operation="blob_download"
                )
                document[field] = json.loads(data)
            except (StorageError, ValueError) as e:
                self.logger.warning("field_rehydration_failed", key=key, field=field, error=str(e))

        return document

    # Blob cleanup ----------------------------------------------------------

    async def _existing_blob_paths(self, key: str) -> List[str]:
        try:
            raw = await self._retry(self.documents.get, key, operation="document_get")
        except DocumentNotFoundError:
            return []
        except TransientStoreError as e:
            self.logger.warning("existing_document_unreadable", key=key, error=str(e))
            return []
        return [ref["storage_path"] for ref in references_in(raw).values()]

    async def _delete_unreferenced(self, paths: Iterable[str], written: Document) -> None:
        """Drop blobs of the previous version that the written document no longer uses."""
        kept = {ref["storage_path"] for ref in references_in(written).values()}
        await self._delete_blobs(p for p in paths if p not in kept)

    async def _delete_blobs(self, paths: Iterable[str]) -> None:
        if self.blobs is None:
            return
        for path in list(paths):
            try:
                await self.blobs.delete(path)
            except StorageError as e:
                self.logger.warning("blob_delete_failed", path=path, error=str(e))
