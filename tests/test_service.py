"""End-to-end tests for the analytics service on in-memory stores."""

import pytest
from conftest import make_query_result

from visibility.errors import AnalyticsUpdateError, BrandNotFoundError, SessionAlreadyRecordedError
from visibility.models import HistoricalQueryRecord
from visibility.repository import BrandRepository
from visibility.service import BrandAnalyticsService


@pytest.fixture
def repository(overflow_store) -> BrandRepository:
    return BrandRepository(overflow_store)


@pytest.fixture
def service(repository) -> BrandAnalyticsService:
    return BrandAnalyticsService(repository)


async def _record_session(service, brand_id, session_id, date, answers):
    for i, text in enumerate(answers):
        await service.record_query_result(
            brand_id,
            make_query_result(session_id=session_id, date=date, chatgpt=text, result_id=f"{session_id}-{i}"),
        )


class TestRecording:
    @pytest.mark.asyncio
    async def test_record_from_raw_payload(self, service, repository, brand) -> None:
        await repository.save_brand(brand)
        await service.record_query_result(
            brand.brand_id,
            {
                "id": "q1",
                "query": "best tools",
                "date": "2024-05-01T10:00:00Z",
                "processingSessionId": "session-1",
                "results": {"googleAI": {"aiOverview": "Acme leads", "hasAIOverview": True}},
            },
        )

        stored = await repository.get_query_results(brand.brand_id)
        assert stored[0].results.google_ai.ai_overview == "Acme leads"

    @pytest.mark.asyncio
    async def test_invalid_payload(self, service, repository, brand) -> None:
        await repository.save_brand(brand)
        with pytest.raises(AnalyticsUpdateError):
            await service.record_query_result(brand.brand_id, {"query": "no session id"})

    @pytest.mark.asyncio
    async def test_unknown_brand(self, service) -> None:
        with pytest.raises(BrandNotFoundError):
            await service.record_query_result("missing", make_query_result(chatgpt="Acme"))


class TestSessions:
    @pytest.mark.asyncio
    async def test_complete_session(self, service, repository, brand) -> None:
        await repository.save_brand(brand)
        await _record_session(
            service,
            brand.brand_id,
            "session-1",
            "2024-05-01T10:00:00Z",
            ["Acme is great. See https://www.acme.com/docs and https://rival.com", "Globex wins"],
        )

        analytics = await service.complete_session(brand.brand_id, "session-1")

        assert analytics.total_queries_processed == 2
        assert analytics.total_brand_mentions == 1
        assert analytics.brand_visibility_score == 50.0
        assert analytics.insights.competitor_mentions_detected == 1
        assert len(await repository.list_session_analytics(brand.brand_id)) == 1

        lifetime = await repository.get_latest_lifetime(brand.brand_id)
        assert lifetime.total_queries_processed == 2
        assert len(lifetime.all_citations) == 2

        with pytest.raises(SessionAlreadyRecordedError):
            await service.complete_session(brand.brand_id, "session-1")

    @pytest.mark.asyncio
    async def test_complete_unknown_session(self, service, repository, brand) -> None:
        await repository.save_brand(brand)
        with pytest.raises(AnalyticsUpdateError):
            await service.complete_session(brand.brand_id, "session-9")

    @pytest.mark.asyncio
    async def test_latest_session_and_competitors(self, service, repository, brand) -> None:
        await repository.save_brand(brand)
        assert await service.calculate_latest_session(brand.brand_id) is None

        await _record_session(service, brand.brand_id, "session-1", "2024-05-01T10:00:00Z", ["Acme"])
        await _record_session(service, brand.brand_id, "session-2", "2024-05-08T10:00:00Z", ["Globex and Acme"])

        latest = await service.calculate_latest_session(brand.brand_id)
        assert latest.processing_session_id == "session-2"

        competitors = await service.calculate_competitor_analytics(brand.brand_id)
        assert competitors.processing_session_id == "session-2"
        assert competitors.insights.top_competitor == "Globex"

        earlier = await service.calculate_competitor_analytics(brand.brand_id, session_id="session-1")
        assert earlier.total_competitor_mentions == 0
        assert await service.calculate_competitor_analytics(brand.brand_id, session_id="nope") is None

    @pytest.mark.asyncio
    async def test_history_trend(self, service, repository, brand) -> None:
        await repository.save_brand(brand)
        assert await service.get_analytics_history(brand.brand_id) is None

        await _record_session(service, brand.brand_id, "session-1", "2024-05-01T10:00:00Z", ["Acme rocks"])
        await service.complete_session(brand.brand_id, "session-1", refresh_lifetime=False)
        await _record_session(service, brand.brand_id, "session-2", "2024-05-08T10:00:00Z", ["Nothing"])
        await service.complete_session(brand.brand_id, "session-2", refresh_lifetime=False)

        history = await service.get_analytics_history(brand.brand_id)
        assert history.total_sessions == 2
        assert history.latest_analytics.processing_session_id == "session-2"
        assert history.trend.visibility_change == -100.0
        assert history.latest_analytics.insights.brand_visibility_trend == "declining"


class TestLifetime:
    @pytest.mark.asyncio
    async def test_includes_query_log(self, service, repository, brand) -> None:
        await repository.save_brand(brand)
        await _record_session(service, brand.brand_id, "session-1", "2024-05-01T10:00:00Z", ["Acme"])
        await repository.record_history_entry(
            brand.brand_id,
            HistoricalQueryRecord.model_validate(
                {
                    "id": "h1",
                    "status": "completed",
                    "aiResponses": [{"provider": "openai", "response": "Acme again"}],
                    "createdAt": "2024-01-01T00:00:00Z",
                }
            ),
        )

        lifetime = await service.refresh_lifetime(brand.brand_id)

        assert lifetime.total_queries_processed == 2
        assert lifetime.total_processing_sessions == 2
        assert lifetime.total_brand_mentions == 2
        assert (await repository.get_latest_lifetime(brand.brand_id)).total_brand_mentions == 2

    @pytest.mark.asyncio
    async def test_brand_without_history(self, service, repository, brand) -> None:
        await repository.save_brand(brand)
        lifetime = await service.calculate_lifetime(brand.brand_id)
        assert lifetime.total_queries_processed == 0
        assert lifetime.all_citations == []

    @pytest.mark.asyncio
    async def test_unreadable_offloaded_results(self, service, repository, blob_store, brand) -> None:
        await repository.save_brand(brand)
        await repository.append_query_results(
            brand.brand_id,
            [make_query_result(date=f"2024-05-01T10:{i:02d}:00Z", chatgpt="Acme " * 20) for i in range(10)],
        )
        blob_store.blobs.clear()

        with pytest.raises(AnalyticsUpdateError):
            await service.calculate_lifetime(brand.brand_id)
