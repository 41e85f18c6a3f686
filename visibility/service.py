"""Async orchestration of recording, aggregation and persistence."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

import structlog
from pydantic import ValidationError

from database import init_db
from storage import HttpBlobStore, OverflowStore, SqlDocumentStore, StorageError
from visibility.analysis import CompetitorAnalyticsAggregator
from visibility.analytics import (
    LifetimeAnalyticsAggregator,
    SessionAnalyticsAggregator,
    build_history,
    latest_session,
)
from visibility.config import VisibilityConfig, get_config
from visibility.errors import AnalyticsError, AnalyticsUpdateError
from visibility.models import (
    BrandAnalyticsHistory,
    CompetitorAnalytics,
    LifetimeAnalytics,
    QueryResult,
    SessionAnalytics,
)
from visibility.repository import BrandRepository

logger = structlog.get_logger(__name__)


class BrandAnalyticsService:
    """Entry point used by the query dispatch layer and the CLI."""

    def __init__(
        self,
        repository: BrandRepository,
        session_aggregator: Optional[SessionAnalyticsAggregator] = None,
        lifetime_aggregator: Optional[LifetimeAnalyticsAggregator] = None,
        competitor_aggregator: Optional[CompetitorAnalyticsAggregator] = None,
    ):
        self.repository = repository
        self.session_aggregator = session_aggregator or SessionAnalyticsAggregator()
        self.lifetime_aggregator = lifetime_aggregator or LifetimeAnalyticsAggregator(self.session_aggregator)
        self.competitor_aggregator = competitor_aggregator or CompetitorAnalyticsAggregator()
        self.logger = logger.bind(component="BrandAnalyticsService")

    async def record_query_result(self, brand_id: str, result: Union[QueryResult, Dict[str, Any]]) -> None:
        """Store one completed query on the brand record."""
        try:
            if not isinstance(result, QueryResult):
                result = QueryResult.model_validate(result)
            await self.repository.append_query_results(brand_id, [result])
        except ValidationError as e:
            self.logger.error("query_result_invalid", brand_id=brand_id, error=str(e))
            raise AnalyticsUpdateError(f"Invalid query result for brand {brand_id}") from e
        except StorageError as e:
            self.logger.error("query_result_save_failed", brand_id=brand_id, error=str(e))
            raise AnalyticsUpdateError(f"Could not save query result for brand {brand_id}") from e

    async def complete_session(
        self, brand_id: str, session_id: str, refresh_lifetime: bool = True
    ) -> SessionAnalytics:
        """Aggregate and persist analytics for a finished session.

        Raises:
            BrandNotFoundError: Unknown brand
            SessionAlreadyRecordedError: Session analytics already exist
            AnalyticsUpdateError: Nothing to aggregate, or storage failed
        """
        brand = await self.repository.get_brand(brand_id)
        try:
            stored = await self.repository.get_query_results(brand_id)
        except StorageError as e:
            raise AnalyticsUpdateError(f"Could not load query results for brand {brand_id}") from e

        results = [r for r in stored if r.processing_session_id == session_id]
        if not results:
            raise AnalyticsUpdateError(f"No query results recorded for session {session_id}")

        timestamp = max(r.processing_session_timestamp or r.date for r in results)
        analytics = self.session_aggregator.aggregate(brand, session_id, timestamp, results)

        try:
            await self.repository.save_session_analytics(analytics)
        except StorageError as e:
            self.logger.error("session_analytics_save_failed", brand_id=brand_id, session_id=session_id, error=str(e))
            raise AnalyticsUpdateError(f"Could not save analytics for session {session_id}") from e

        self.logger.info("session_completed", brand_id=brand_id, session_id=session_id, queries=len(results))

        if refresh_lifetime:
            await self.refresh_lifetime(brand_id)
        return analytics

    async def calculate_latest_session(self, brand_id: str) -> Optional[SessionAnalytics]:
        """Analytics for the most recent session on the brand record, not persisted."""
        brand = await self.repository.get_brand(brand_id)
        try:
            results = await self.repository.get_query_results(brand_id)
        except StorageError as e:
            raise AnalyticsUpdateError(f"Could not load query results for brand {brand_id}") from e

        latest = latest_session(results)
        if latest is None:
            return None
        session_id, timestamp, session_results = latest
        return self.session_aggregator.aggregate(brand, session_id, timestamp, session_results)

    async def calculate_competitor_analytics(
        self, brand_id: str, session_id: Optional[str] = None
    ) -> Optional[CompetitorAnalytics]:
        """Competitor analytics for a session (latest when not given)."""
        brand = await self.repository.get_brand(brand_id)
        try:
            results = await self.repository.get_query_results(brand_id)
        except StorageError as e:
            raise AnalyticsUpdateError(f"Could not load query results for brand {brand_id}") from e

        if session_id is None:
            latest = latest_session(results)
            if latest is None:
                return None
            session_id, timestamp, session_results = latest
        else:
            session_results = [r for r in results if r.processing_session_id == session_id]
            if not session_results:
                return None
            timestamp = max(r.processing_session_timestamp or r.date for r in session_results)

        return self.competitor_aggregator.aggregate(brand, session_id, timestamp, session_results)

    async def calculate_lifetime(self, brand_id: str) -> LifetimeAnalytics:
        """Recompute lifetime analytics from every stored source."""
        brand = await self.repository.get_brand(brand_id)
        try:
            retained = await self.repository.get_query_results(brand_id)
        except StorageError as e:
            raise AnalyticsUpdateError(f"Could not load query results for brand {brand_id}") from e

        historical: List[Dict[str, Any]] = []
        try:
            historical = await self.repository.list_historical_records(brand_id)
        except StorageError as e:
            # The query log is supplementary; analytics continue without it
            self.logger.warning("historical_records_unavailable", brand_id=brand_id, error=str(e))

        return self.lifetime_aggregator.aggregate(
            brand, retained, historical, calculated_at=datetime.now(timezone.utc)
        )

    async def refresh_lifetime(self, brand_id: str) -> LifetimeAnalytics:
        """Recompute and append a new lifetime snapshot."""
        analytics = await self.calculate_lifetime(brand_id)
        try:
            await self.repository.save_lifetime_analytics(analytics)
        except StorageError as e:
            self.logger.error("lifetime_analytics_save_failed", brand_id=brand_id, error=str(e))
            raise AnalyticsUpdateError(f"Could not save lifetime analytics for brand {brand_id}") from e
        return analytics

    async def get_analytics_history(self, brand_id: str) -> Optional[BrandAnalyticsHistory]:
        """Latest two sessions with the trend between them."""
        try:
            sessions = await self.repository.list_session_analytics(brand_id)
        except (StorageError, ValidationError) as e:
            raise AnalyticsError(f"Could not load analytics history for brand {brand_id}") from e
        return build_history(brand_id, sessions)


def create_service(config: Optional[VisibilityConfig] = None) -> BrandAnalyticsService:
    """Wire the SQL document store, optional HTTP blob store and service."""
    config = config or get_config()
    storage_config = config.storage

    db = init_db(database_url=storage_config.database_url)
    db.create_tables()

    documents = SqlDocumentStore(db, max_document_bytes=storage_config.max_record_bytes)
    blobs = None
    if storage_config.blob_configured:
        blobs = HttpBlobStore(
            storage_config.blob_base_url,
            api_token=storage_config.blob_api_token,
            public_url=storage_config.blob_public_url,
        )
    else:
        logger.warning("blob_store_not_configured")

    store = OverflowStore.from_config(storage_config, documents, blobs)
    repository = BrandRepository(store, max_stored_results=config.analytics.max_stored_results)
    return BrandAnalyticsService(repository)
