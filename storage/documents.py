"""Primary document store contract and back-ends."""
from __future__ import annotations

import asyncio
import json
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List

import structlog
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from database.connection import DatabaseConnection
from database.models import StoredDocument
from storage.errors import (
    DocumentNotFoundError,
    DocumentTooLargeError,
    ResourceExhaustedError,
    TransientStoreError,
)

logger = structlog.get_logger(__name__)

Document = Dict[str, Any]

DEFAULT_MAX_DOCUMENT_BYTES = 1_048_576


def encode_document(document: Any) -> str:
    """Compact JSON form used for storage and size measurement."""
    return json.dumps(document, separators=(",", ":"), ensure_ascii=False, default=str)


def document_size(document: Any) -> int:
    return len(encode_document(document).encode("utf-8"))


class DocumentStore(ABC):
    """Key/value store for JSON documents with a per-document size ceiling."""

    max_document_bytes: int = DEFAULT_MAX_DOCUMENT_BYTES

    @abstractmethod
    async def set(self, key: str, document: Document) -> int:
        """Write ``document`` under ``key`` and return its size in bytes."""

    @abstractmethod
    async def get(self, key: str) -> Document:
        """Return the document or raise :class:`DocumentNotFoundError`."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove the document; missing keys are ignored."""

    @abstractmethod
    async def list(self, prefix: str) -> List[str]:
        """Keys starting with ``prefix``, sorted."""

    async def exists(self, key: str) -> bool:
        try:
            await self.get(key)
        except DocumentNotFoundError:
            return False
        return True


class InMemoryDocumentStore(DocumentStore):
    """Process-local store that enforces the same size ceiling as production."""

    def __init__(self, max_document_bytes: int = DEFAULT_MAX_DOCUMENT_BYTES):
        self.max_document_bytes = max_document_bytes
        self._documents: Dict[str, str] = {}

    async def set(self, key: str, document: Document) -> int:
        encoded = encode_document(document)
        size = len(encoded.encode("utf-8"))
        if size > self.max_document_bytes:
            raise DocumentTooLargeError(key, size, self.max_document_bytes)
        self._documents[key] = encoded
        return size

    async def get(self, key: str) -> Document:
        if key not in self._documents:
            raise DocumentNotFoundError(key)
        return json.loads(self._documents[key])

    async def delete(self, key: str) -> None:
        self._documents.pop(key, None)

    async def list(self, prefix: str) -> List[str]:
        return sorted(k for k in self._documents if k.startswith(prefix))


def _collection(key: str) -> str:
    return key.split("/", 1)[0]


class SqlDocumentStore(DocumentStore):
    """Documents kept in the ``stored_documents`` table.

    SQLAlchemy calls are blocking and run in a worker thread.
    """

    def __init__(self, db: DatabaseConnection, max_document_bytes: int = DEFAULT_MAX_DOCUMENT_BYTES):
        self.db = db
        self.max_document_bytes = max_document_bytes
        self.logger = logger.bind(component="SqlDocumentStore")

    async def set(self, key: str, document: Document) -> int:
        encoded = encode_document(document)
        size = len(encoded.encode("utf-8"))
        if size > self.max_document_bytes:
            raise DocumentTooLargeError(key, size, self.max_document_bytes)
        await self._run(self._set_sync, key, encoded, size)
        return size

    async def get(self, key: str) -> Document:
        payload = await self._run(self._get_sync, key)
        if payload is None:
            raise DocumentNotFoundError(key)
        return json.loads(payload)

    async def delete(self, key: str) -> None:
        await self._run(self._delete_sync, key)

    async def list(self, prefix: str) -> List[str]:
        return await self._run(self._list_sync, prefix)

    async def _run(self, func, *args):
        try:
            return await asyncio.to_thread(func, *args)
        except OperationalError as e:
            pgcode = getattr(e.orig, "pgcode", None) or ""
            # PostgreSQL class 53: insufficient resources
            if pgcode.startswith("53"):
                self.logger.warning("document_store_resource_exhausted", pgcode=pgcode, error=str(e))
                raise ResourceExhaustedError(str(e)) from e
            self.logger.warning("document_store_operational_error", error=str(e))
            raise TransientStoreError(str(e)) from e

    def _set_sync(self, key: str, payload: str, size: int) -> None:
        with self.db.session() as session:
            row = session.get(StoredDocument, key)
            if row is None:
                session.add(
                    StoredDocument(key=key, collection=_collection(key), payload=payload, size_bytes=size)
                )
            else:
                row.payload = payload
                row.size_bytes = size
                row.updated_at = datetime.utcnow()

    def _get_sync(self, key: str):
        with self.db.session() as session:
            row = session.get(StoredDocument, key)
            return row.payload if row is not None else None

    def _delete_sync(self, key: str) -> None:
        with self.db.session() as session:
            row = session.get(StoredDocument, key)
            if row is not None:
                session.delete(row)

    def _list_sync(self, prefix: str) -> List[str]:
        with self.db.session() as session:
            stmt = (
                select(StoredDocument.key)
                .where(StoredDocument.key.startswith(prefix, autoescape=True))
                .order_by(StoredDocument.key)
            )
            return list(session.scalars(stmt))
