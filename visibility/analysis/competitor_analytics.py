"""Cumulative competitor analytics for a processing session."""

from typing import Dict, List, Sequence, Set

import structlog

from visibility.analysis.competitors import CompetitorMatcher
from visibility.analytics.ranking import round_half_up
from visibility.models import (
    STATS_KEYS,
    BrandProfile,
    CompetitorAnalytics,
    CompetitorInsights,
    CompetitorProviderStats,
    CompetitorStats,
    Provider,
    QueryResult,
)

logger = structlog.get_logger(__name__)


def competitive_intensity(visibility_score: float) -> str:
    if visibility_score > 60:
        return "high"
    if visibility_score > 30:
        return "medium"
    return "low"


def market_position(visibility_score: float) -> str:
    """Fewer competitor mentions means a stronger position for the brand."""
    if visibility_score < 20:
        return "leader"
    if visibility_score < 50:
        return "challenger"
    return "follower"


def _answer_text(provider: Provider, answer) -> str:
    if provider is Provider.GOOGLE_AI:
        return answer.ai_overview or ""
    return answer.response or ""


class CompetitorAnalyticsAggregator:
    """Roll per-query competitor matches up into session statistics."""

    def __init__(self, fuzzy_threshold: float = 0.85):
        self.fuzzy_threshold = fuzzy_threshold
        self.logger = logger.bind(component="CompetitorAnalyticsAggregator")

    def aggregate(
        self,
        brand: BrandProfile,
        session_id: str,
        session_timestamp: str,
        query_results: Sequence[QueryResult],
    ) -> CompetitorAnalytics:
        matcher = CompetitorMatcher(brand.competitors, fuzzy_threshold=self.fuzzy_threshold)
        competitor_stats: Dict[str, CompetitorStats] = {c.name: CompetitorStats() for c in matcher.competitors}
        provider_stats = {key: CompetitorProviderStats() for key in STATS_KEYS}
        provider_competitors: Dict[str, Set[str]] = {key: set() for key in STATS_KEYS}

        total_mentions = 0
        queries_with_mentions = 0

        for query_result in query_results:
            mentioned_in_query: Set[str] = set()

            for provider, answer in query_result.results.present().items():
                text = _answer_text(provider, answer)
                if not text:
                    continue

                key = provider.stats_key
                matches = matcher.match(text)
                provider_stats[key].queries_processed += 1
                provider_stats[key].competitor_mentions += len(matches)
                total_mentions += len(matches)

                for match in matches:
                    name = match.competitor.name
                    stats = competitor_stats[name]
                    stats.total_mentions += 1
                    stats.provider_breakdown[key].mentions += 1
                    stats.provider_breakdown[key].queries_with_mentions += 1
                    provider_competitors[key].add(name)
                    mentioned_in_query.add(name)

            for name in mentioned_in_query:
                competitor_stats[name].queries_with_mentions += 1
            if mentioned_in_query:
                queries_with_mentions += 1

        total_queries = len(query_results)
        visibility_score = queries_with_mentions / total_queries * 100 if total_queries else 0.0

        for stats in competitor_stats.values():
            if total_queries:
                stats.visibility_score = round_half_up(stats.queries_with_mentions / total_queries * 100)
                stats.average_mentions_per_query = round_half_up(stats.total_mentions / total_queries)
            stats.top_provider = _top_provider(stats)

        for key in STATS_KEYS:
            provider_stats[key].unique_competitors = len(provider_competitors[key])

        unique_detected = sum(1 for stats in competitor_stats.values() if stats.total_mentions > 0)

        insights = CompetitorInsights(
            top_competitor=_top_competitor(competitor_stats),
            most_competitive_provider=_most_competitive_provider(provider_stats),
            average_competitors_per_query=round_half_up(unique_detected / total_queries) if total_queries else 0.0,
            competitive_intensity=competitive_intensity(visibility_score),
            market_position=market_position(visibility_score),
        )

        self.logger.info(
            "competitor_analytics_calculated",
            brand_id=brand.brand_id,
            session_id=session_id,
            queries=total_queries,
            competitor_mentions=total_mentions,
        )

        return CompetitorAnalytics(
            user_id=brand.user_id,
            brand_id=brand.brand_id,
            brand_name=brand.name,
            processing_session_id=session_id,
            processing_session_timestamp=session_timestamp,
            total_queries_processed=total_queries,
            total_competitor_mentions=total_mentions,
            competitor_visibility_score=round_half_up(visibility_score),
            unique_competitors_detected=unique_detected,
            competitor_stats=competitor_stats,
            provider_stats=provider_stats,
            insights=insights,
        )


def _top_provider(stats: CompetitorStats) -> str:
    top, most = "none", 0
    for key in STATS_KEYS:
        mentions = stats.provider_breakdown[key].mentions
        if mentions > most:
            top, most = key, mentions
    return top


def _top_competitor(competitor_stats: Dict[str, CompetitorStats]) -> str:
    ranked: List = sorted(competitor_stats.items(), key=lambda item: item[1].total_mentions, reverse=True)
    if not ranked or ranked[0][1].total_mentions == 0:
        return "none"
    return ranked[0][0]


def _most_competitive_provider(provider_stats: Dict[str, CompetitorProviderStats]) -> str:
    ranked = sorted(provider_stats.items(), key=lambda item: item[1].competitor_mentions, reverse=True)
    if not ranked or ranked[0][1].competitor_mentions == 0:
        return "none"
    return ranked[0][0]
