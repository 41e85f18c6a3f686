"""Blob store contract and back-ends for offloaded document fields."""

import asyncio
from abc import ABC, abstractmethod
from typing import Dict, Optional

import aiohttp
import structlog

from storage.errors import BlobStoreError, TransientStoreError

logger = structlog.get_logger(__name__)

MEMORY_SCHEME = "memory://"


class BlobStore(ABC):
    """Stores opaque payloads by path and hands back a download locator."""

    @abstractmethod
    async def upload(
        self,
        path: str,
        data: bytes,
        content_type: str = "application/json",
        metadata: Optional[Dict[str, str]] = None,
    ) -> str:
        """Store ``data`` at ``path`` and return its download locator."""

    @abstractmethod
    async def download(self, locator: str) -> bytes:
        """Fetch the payload behind a locator returned by :meth:`upload`."""

    @abstractmethod
    async def delete(self, path: str) -> None:
        """Remove the payload at ``path``; missing paths are ignored."""


class InMemoryBlobStore(BlobStore):
    def __init__(self):
        self.blobs: Dict[str, bytes] = {}
        self.metadata: Dict[str, Dict[str, str]] = {}

    async def upload(self, path, data, content_type="application/json", metadata=None) -> str:
        self.blobs[path] = bytes(data)
        self.metadata[path] = {"content_type": content_type, **(metadata or {})}
        return f"{MEMORY_SCHEME}{path}"

    async def download(self, locator: str) -> bytes:
        path = locator[len(MEMORY_SCHEME):] if locator.startswith(MEMORY_SCHEME) else locator
        if path not in self.blobs:
            raise BlobStoreError(f"Blob not found: {path}")
        return self.blobs[path]

    async def delete(self, path: str) -> None:
        self.blobs.pop(path, None)
        self.metadata.pop(path, None)


class HttpBlobStore(BlobStore):
    """Object storage reached over HTTP PUT/GET/DELETE with a bearer token.

    Objects live at ``<base_url>/<path>``. When ``public_url`` is set,
    locators point there instead so readers can fetch without the token.
    """

    def __init__(
        self,
        base_url: str,
        api_token: str = "",
        public_url: Optional[str] = None,
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.public_url = public_url.rstrip("/") if public_url else None
        self.api_token = api_token
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.logger = logger.bind(component="HttpBlobStore")

    def _headers(self, extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
        headers = {}
        if self.api_token:
            headers["Authorization"] = f"Bearer {self.api_token}"
        headers.update(extra or {})
        return headers

    def _object_url(self, path: str) -> str:
        return f"{self.base_url}/{path.lstrip('/')}"

    async def upload(self, path, data, content_type="application/json", metadata=None) -> str:
        headers = {"Content-Type": content_type}
        for name, value in (metadata or {}).items():
            headers[f"X-Meta-{name}"] = str(value)

        await self._request("PUT", self._object_url(path), data=data, headers=self._headers(headers))
        self.logger.debug("blob_uploaded", path=path, size=len(data))

        base = self.public_url or self.base_url
        return f"{base}/{path.lstrip('/')}"

    async def download(self, locator: str) -> bytes:
        return await self._request("GET", locator, headers=self._headers())

    async def delete(self, path: str) -> None:
        await self._request("DELETE", self._object_url(path), headers=self._headers(), missing_ok=True)

    async def _request(self, method: str, url: str, missing_ok: bool = False, **kwargs) -> bytes:
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.request(method, url, **kwargs) as response:
                    if response.status == 404 and missing_ok:
                        return b""
                    if response.status == 429 or response.status >= 500:
                        error = await response.text()
                        self.logger.warning("blob_store_unavailable", method=method, status=response.status)
                        raise TransientStoreError(f"{method} {url} returned {response.status}: {error[:200]}")
                    if response.status >= 400:
                        error = await response.text()
                        self.logger.error("blob_store_error", method=method, status=response.status)
                        raise BlobStoreError(f"{method} {url} returned {response.status}: {error[:200]}")
                    return await response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.warning("blob_store_connection_failed", method=method, error=str(e))
            raise TransientStoreError(str(e)) from e
