"""Tests for the overflow store's offload and degradation paths."""

import asyncio
import gc

import pytest

from storage import (
    BlobStoreError,
    DocumentNotFoundError,
    InMemoryBlobStore,
    InMemoryDocumentStore,
    OverflowStore,
    OverflowWriteError,
    ResourceExhaustedError,
    TransientStoreError,
    is_storage_reference,
)


def _large_document(count: int = 30) -> dict:
    return {
        "name": "Acme",
        "query_processing_results": [
            {"date": f"2024-05-01T10:{i:02d}:00Z", "text": "x" * 100} for i in range(count)
        ],
    }


class FailingBlobStore(InMemoryBlobStore):
    async def upload(self, path, data, content_type="application/json", metadata=None) -> str:
        raise BlobStoreError("upload rejected")


class ExhaustedOnceDocumentStore(InMemoryDocumentStore):
    """Refuses the first write the way a saturated database does."""

    def __init__(self):
        super().__init__(max_document_bytes=2000)
        self.failures = 1

    async def set(self, key, document):
        if self.failures:
            self.failures -= 1
            raise ResourceExhaustedError("write stream exhausted")
        return await super().set(key, document)


class UnavailableDocumentStore(InMemoryDocumentStore):
    def __init__(self):
        super().__init__(max_document_bytes=2000)
        self.calls = 0

    async def set(self, key, document):
        self.calls += 1
        raise TransientStoreError("connection reset")


def _store(documents, blobs=None) -> OverflowStore:
    return OverflowStore(
        documents,
        blobs,
        max_record_bytes=2000,
        truncate_max_items=5,
        truncate_text_chars=100,
        max_retries=2,
        retry_delay=0,
    )


class TestRoundTrip:
    @pytest.mark.asyncio
    async def test_small_document(self, overflow_store, blob_store) -> None:
        document = {"name": "Acme", "items": [1, 2, 3]}
        result = await overflow_store.put("brands/b1", document)

        assert result.offloaded_fields == []
        assert result.truncated is False
        assert await overflow_store.get("brands/b1") == document
        assert blob_store.blobs == {}

    @pytest.mark.asyncio
    async def test_offloaded_document(self, overflow_store, document_store, blob_store) -> None:
        document = _large_document()
        assert overflow_store.exceeds_limit(document)

        result = await overflow_store.put("brands/b1", document)

        assert result.offloaded_fields == ["query_processing_results"]
        raw = await document_store.get("brands/b1")
        assert is_storage_reference(raw["query_processing_results"])
        assert len(blob_store.blobs) == 1
        assert await overflow_store.get("brands/b1") == document

    @pytest.mark.asyncio
    async def test_caller_named_field_is_offloaded(self, overflow_store, document_store) -> None:
        document = {"name": "Acme", "history": [1, 2, 3]}
        result = await overflow_store.put("brands/b1", document, large_fields=["history"])

        assert result.offloaded_fields == ["history"]
        assert await overflow_store.get("brands/b1") == document

    @pytest.mark.asyncio
    async def test_fields_limits_rehydration(self, overflow_store) -> None:
        await overflow_store.put("brands/b1", _large_document())

        document = await overflow_store.get("brands/b1", fields=[])
        assert document["name"] == "Acme"
        assert is_storage_reference(document["query_processing_results"])

    @pytest.mark.asyncio
    async def test_missing_document(self, overflow_store) -> None:
        with pytest.raises(DocumentNotFoundError):
            await overflow_store.get("brands/unknown")


class TestDegradation:
    @pytest.mark.asyncio
    async def test_blob_failure_truncates(self, document_store) -> None:
        store = _store(document_store, FailingBlobStore())
        result = await store.put("brands/b1", _large_document())

        assert result.truncated is True
        assert result.truncation_reason == "size_limit_exceeded"
        stored = await store.get("brands/b1")
        assert stored["data_truncated"] is True
        assert len(stored["query_processing_results"]) == 5
        assert stored["query_processing_results"][0]["date"] == "2024-05-01T10:29:00Z"

    @pytest.mark.asyncio
    async def test_no_blob_store_truncates(self, document_store) -> None:
        result = await _store(document_store).put("brands/b1", _large_document())
        assert result.truncated is True

    @pytest.mark.asyncio
    async def test_exhausted_write_falls_back_to_minimal(self, blob_store) -> None:
        documents = ExhaustedOnceDocumentStore()
        store = _store(documents, blob_store)
        result = await store.put("brands/b1", {"name": "Acme", "items": [1, 2, 3]})

        assert result.truncated is True
        assert result.truncation_reason == "write_stream_exhausted"
        stored = await documents.get("brands/b1")
        assert stored["name"] == "Acme"
        assert stored["items"] == []

    @pytest.mark.asyncio
    async def test_transient_failure_is_not_silently_truncated(self, blob_store) -> None:
        documents = UnavailableDocumentStore()
        store = _store(documents, blob_store)

        with pytest.raises(OverflowWriteError):
            await store.put("brands/b1", {"name": "Acme"})
        assert documents.calls == 2


class TestBlobLifecycle:
    @pytest.mark.asyncio
    async def test_delete_removes_blobs(self, overflow_store, blob_store) -> None:
        await overflow_store.put("brands/b1", _large_document())
        assert blob_store.blobs

        await overflow_store.delete("brands/b1")

        assert blob_store.blobs == {}
        with pytest.raises(DocumentNotFoundError):
            await overflow_store.get("brands/b1")

    @pytest.mark.asyncio
    async def test_rewrite_drops_stale_blobs(self, overflow_store, blob_store) -> None:
        await overflow_store.put("brands/b1", _large_document())
        await overflow_store.put("brands/b1", {"name": "Acme", "query_processing_results": []})
        assert blob_store.blobs == {}


class TestUpdate:
    @pytest.mark.asyncio
    async def test_concurrent_updates_are_serialized(self, overflow_store) -> None:
        async def append(value: int) -> None:
            def apply(current):
                values = (current or {}).get("values", [])
                return {"values": values + [value]}

            await overflow_store.update("counters/c1", apply)

        await asyncio.gather(*(append(i) for i in range(10)))

        stored = await overflow_store.get("counters/c1")
        assert sorted(stored["values"]) == list(range(10))

    @pytest.mark.asyncio
    async def test_list_by_prefix(self, overflow_store) -> None:
        await overflow_store.put("brands/b2", {"name": "B"})
        await overflow_store.put("brands/b1", {"name": "A"})
        await overflow_store.put("session_analytics/b1/s1", {"x": 1})

        assert await overflow_store.list("brands/") == ["brands/b1", "brands/b2"]

    @pytest.mark.asyncio
    async def test_key_locks_are_released_after_use(self, overflow_store) -> None:
        for i in range(5):
            await overflow_store.put(f"lifetime_analytics/b1/{i}", {"n": i})
        await overflow_store.update("counters/c1", lambda current: {"values": [1]})
        gc.collect()

        assert len(overflow_store._locks) == 0
