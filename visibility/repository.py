"""Brand-scoped persistence on top of the overflow store."""
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

import structlog
from pydantic import BaseModel

from storage import BlobStoreError, DocumentNotFoundError, OverflowStore, PutResult, is_storage_reference
from visibility.errors import BrandNotFoundError, SessionAlreadyRecordedError
from visibility.models import (
    BrandProfile,
    HistoricalQueryRecord,
    LifetimeAnalytics,
    QueryResult,
    SessionAnalytics,
)

logger = structlog.get_logger(__name__)

QUERY_RESULTS_FIELD = "query_processing_results"
LIFETIME_DOCUMENT_TYPE = "lifetime_analytics"


def brand_key(brand_id: str) -> str:
    return f"brands/{brand_id}"


def query_log_key(brand_id: str, record_id: str) -> str:
    return f"query_log/{brand_id}/{record_id}"


def session_analytics_key(brand_id: str, session_id: str) -> str:
    return f"session_analytics/{brand_id}/{session_id}"


def lifetime_analytics_key(brand_id: str, calculated_at: datetime) -> str:
    # Sortable so the newest snapshot is the last key
    return f"lifetime_analytics/{brand_id}/{calculated_at.strftime('%Y%m%dT%H%M%S%fZ')}"


def _dump(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


def _entry_key(session_id: Optional[str], result_id: Optional[str], query: Optional[str]):
    # Results without an id are matched on their query text
    return session_id, result_id or f"query:{query or ''}"


class BrandRepository:
    """Reads and writes a brand's record, query log and analytics."""

    def __init__(self, store: OverflowStore, max_stored_results: int = 100):
        self.store = store
        self.max_stored_results = max_stored_results
        self.logger = logger.bind(component="BrandRepository")

    # Brand record ----------------------------------------------------------

    async def save_brand(self, brand: BrandProfile) -> PutResult:
        """Create or update the profile, keeping stored query results."""

        def apply(current: Optional[Dict[str, Any]]) -> Dict[str, Any]:
            document = dict(current or {})
            document.update(_dump(brand))
            document.setdefault(QUERY_RESULTS_FIELD, [])
            return document

        return await self.store.update(brand_key(brand.brand_id), apply)

    async def get_brand(self, brand_id: str) -> BrandProfile:
        try:
            document = await self.store.get(brand_key(brand_id), fields=[])
        except DocumentNotFoundError:
            raise BrandNotFoundError(brand_id)
        return BrandProfile.model_validate(document)

    async def get_query_results(self, brand_id: str) -> List[QueryResult]:
        try:
            document = await self.store.get(brand_key(brand_id), fields=[QUERY_RESULTS_FIELD])
        except DocumentNotFoundError:
            raise BrandNotFoundError(brand_id)

        raw = document.get(QUERY_RESULTS_FIELD) or []
        if is_storage_reference(raw):
            raise BlobStoreError(f"Query results of brand {brand_id} could not be loaded from blob storage")
        if document.get("data_truncated"):
            self.logger.warning(
                "query_results_truncated",
                brand_id=brand_id,
                reason=document.get("truncation_reason"),
                count=len(raw),
            )
        return [QueryResult.model_validate(item) for item in raw]

    async def append_query_results(self, brand_id: str, results: Sequence[QueryResult]) -> PutResult:
        """Add results, replacing a session's earlier entry for the same query.

        Retention keeps the newest ``max_stored_results`` entries by date.
        """
        replaced = {_entry_key(r.processing_session_id, r.id, r.query) for r in results}
        new_entries = [_dump(r) for r in results]

        def apply(current: Optional[Dict[str, Any]]) -> Dict[str, Any]:
            if current is None:
                raise BrandNotFoundError(brand_id)
            existing = current.get(QUERY_RESULTS_FIELD) or []
            if is_storage_reference(existing):
                raise BlobStoreError(f"Query results of brand {brand_id} could not be loaded from blob storage")

            kept = [
                e
                for e in existing
                if _entry_key(e.get("processingSessionId"), e.get("id"), e.get("query")) not in replaced
            ]
            merged = sorted(kept + new_entries, key=lambda e: str(e.get("date") or ""), reverse=True)

            document = dict(current)
            document[QUERY_RESULTS_FIELD] = merged[: self.max_stored_results]
            document["last_updated"] = datetime.utcnow().isoformat()
            return document

        result = await self.store.update(brand_key(brand_id), apply)
        self.logger.info(
            "query_results_appended",
            brand_id=brand_id,
            added=len(new_entries),
            offloaded=result.offloaded_fields,
            truncated=result.truncated,
        )
        return result

    # Long-term query log ---------------------------------------------------

    async def record_history_entry(self, brand_id: str, record: HistoricalQueryRecord) -> PutResult:
        return await self.store.put(query_log_key(brand_id, record.id), _dump(record))

    async def list_historical_records(self, brand_id: str) -> List[Dict[str, Any]]:
        """Raw log entries; validation happens during conversion."""
        records = []
        for key in await self.store.list(f"query_log/{brand_id}/"):
            try:
                records.append(await self.store.get(key))
            except DocumentNotFoundError:
                continue
        return records

    # Session analytics -----------------------------------------------------

    async def save_session_analytics(self, analytics: SessionAnalytics) -> PutResult:
        """Write-once: a second write for the same session is rejected."""
        key = session_analytics_key(analytics.brand_id, analytics.processing_session_id)

        def apply(current: Optional[Dict[str, Any]]) -> Dict[str, Any]:
            if current is not None:
                raise SessionAlreadyRecordedError(analytics.brand_id, analytics.processing_session_id)
            return _dump(analytics)

        return await self.store.update(key, apply)

    async def list_session_analytics(self, brand_id: str) -> List[SessionAnalytics]:
        sessions = []
        for key in await self.store.list(f"session_analytics/{brand_id}/"):
            sessions.append(SessionAnalytics.model_validate(await self.store.get(key)))
        return sessions

    # Lifetime analytics ----------------------------------------------------

    async def save_lifetime_analytics(self, analytics: LifetimeAnalytics) -> PutResult:
        """Append a snapshot to the brand's lifetime series."""
        document = _dump(analytics)
        document["document_type"] = LIFETIME_DOCUMENT_TYPE
        document["original_citation_count"] = len(analytics.all_citations)

        key = lifetime_analytics_key(analytics.brand_id, analytics.calculated_at)
        result = await self.store.put(key, document)
        self.logger.info(
            "lifetime_analytics_saved",
            brand_id=analytics.brand_id,
            key=key,
            citations=len(analytics.all_citations),
            offloaded=result.offloaded_fields,
            truncated=result.truncated,
        )
        return result

    async def list_lifetime_snapshots(self, brand_id: str) -> List[str]:
        return await self.store.list(f"lifetime_analytics/{brand_id}/")

    async def get_latest_lifetime(self, brand_id: str) -> Optional[LifetimeAnalytics]:
        keys = await self.list_lifetime_snapshots(brand_id)
        if not keys:
            return None

        document = await self.store.get(keys[-1])
        if is_storage_reference(document.get("all_citations")):
            self.logger.warning("lifetime_citations_unavailable", brand_id=brand_id, key=keys[-1])
            document["all_citations"] = []
        return LifetimeAnalytics.model_validate(document)
