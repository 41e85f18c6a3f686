"""Tests for session competitor analytics."""

from conftest import make_query_result

from visibility.analysis import CompetitorAnalyticsAggregator
from visibility.analysis.competitor_analytics import competitive_intensity, market_position


class TestClassification:
    def test_competitive_intensity(self) -> None:
        assert competitive_intensity(75) == "high"
        assert competitive_intensity(45) == "medium"
        assert competitive_intensity(30) == "low"

    def test_market_position(self) -> None:
        assert market_position(10) == "leader"
        assert market_position(35) == "challenger"
        assert market_position(50) == "follower"


class TestCompetitorAnalyticsAggregator:
    def test_aggregate(self, brand) -> None:
        results = [
            make_query_result(
                chatgpt="Globex and Initrode are alternatives",
                google="Globex is popular",
                perplexity="",
            ),
            make_query_result(chatgpt="Acme only", date="2024-05-01T10:01:00Z"),
            make_query_result(chatgpt="Globex again", date="2024-05-01T10:02:00Z"),
        ]
        analytics = CompetitorAnalyticsAggregator().aggregate(brand, "session-1", "2024-05-01T10:02:00Z", results)

        assert analytics.total_queries_processed == 3
        assert analytics.total_competitor_mentions == 4
        assert analytics.competitor_visibility_score == 66.67
        assert analytics.unique_competitors_detected == 2

        globex = analytics.competitor_stats["Globex"]
        assert globex.total_mentions == 3
        assert globex.queries_with_mentions == 2
        assert globex.visibility_score == 66.67
        assert globex.average_mentions_per_query == 1.0
        assert globex.provider_breakdown["chatgpt"].mentions == 2
        assert globex.provider_breakdown["google"].mentions == 1
        assert globex.top_provider == "chatgpt"

        initech = analytics.competitor_stats["Initech"]
        assert initech.total_mentions == 1
        assert initech.visibility_score == 33.33

        assert analytics.provider_stats["chatgpt"].queries_processed == 3
        assert analytics.provider_stats["chatgpt"].unique_competitors == 2
        assert analytics.provider_stats["perplexity"].queries_processed == 0

        assert analytics.insights.top_competitor == "Globex"
        assert analytics.insights.most_competitive_provider == "chatgpt"
        assert analytics.insights.average_competitors_per_query == 0.67
        assert analytics.insights.competitive_intensity == "high"
        assert analytics.insights.market_position == "follower"

    def test_no_competitor_mentions(self, brand) -> None:
        results = [make_query_result(chatgpt="Acme is the only option")]
        analytics = CompetitorAnalyticsAggregator().aggregate(brand, "session-1", "2024-05-01T10:00:00Z", results)

        assert analytics.total_competitor_mentions == 0
        assert analytics.insights.top_competitor == "none"
        assert analytics.insights.most_competitive_provider == "none"
        assert analytics.insights.market_position == "leader"
        assert analytics.competitor_stats["Globex"].top_provider == "none"
