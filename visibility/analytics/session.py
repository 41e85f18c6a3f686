"""Session-level brand visibility analytics."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import structlog

from visibility.analysis.mentions import BrandMentionAnalyzer
from visibility.analytics.ranking import rank_providers, ranking_details, round_half_up, top_providers
from visibility.models import (
    STATS_KEYS,
    BrandProfile,
    Provider,
    ProviderStats,
    QueryResult,
    SessionAnalytics,
    SessionInsights,
)

logger = structlog.get_logger(__name__)


@dataclass
class _ProviderAccumulator:
    queries_processed: int = 0
    brand_mentions: int = 0
    citations: int = 0
    domain_citations: int = 0
    response_time_total: float = 0.0
    response_time_count: int = 0

    def to_stats(self) -> ProviderStats:
        average = None
        if self.response_time_count:
            average = self.response_time_total / self.response_time_count
        return ProviderStats(
            queries_processed=self.queries_processed,
            brand_mentions=self.brand_mentions,
            citations=self.citations,
            domain_citations=self.domain_citations,
            average_response_time=average,
        )


@dataclass
class RollUp:
    """Numeric totals over a set of query results"""
    total_queries: int = 0
    total_brand_mentions: int = 0
    total_citations: int = 0
    total_domain_citations: int = 0
    total_competitor_mentions: int = 0
    providers_with_brand_mention: int = 0
    providers_considered: int = 0
    provider_stats: Dict[str, ProviderStats] = field(default_factory=dict)

    @property
    def visibility_score(self) -> float:
        if not self.providers_considered:
            return 0.0
        return round_half_up(self.providers_with_brand_mention / self.providers_considered * 100)

    def per_query(self, total: int) -> float:
        return round_half_up(total / self.total_queries) if self.total_queries else 0.0


class SessionAnalyticsAggregator:
    """Aggregate the query results of one processing session."""

    def __init__(self, analyzer: Optional[BrandMentionAnalyzer] = None):
        self.analyzer = analyzer or BrandMentionAnalyzer()
        self.logger = logger.bind(component="SessionAnalyticsAggregator")

    def roll_up(self, brand: BrandProfile, query_results: Sequence[QueryResult]) -> RollUp:
        accumulators = {key: _ProviderAccumulator() for key in STATS_KEYS}
        roll_up = RollUp(total_queries=len(query_results))

        for query_result in query_results:
            analysis = self.analyzer.analyze_query_result(brand, query_result)
            totals = analysis.totals

            roll_up.total_brand_mentions += totals.total_brand_mentions
            roll_up.total_citations += totals.total_citations
            roll_up.total_domain_citations += totals.total_domain_citations
            roll_up.total_competitor_mentions += totals.total_competitor_mentions
            roll_up.providers_with_brand_mention += totals.providers_with_brand_mention
            roll_up.providers_considered += len(analysis.results)

            for key, result in analysis.results.items():
                acc = accumulators[key]
                acc.queries_processed += 1
                acc.brand_mentions += result.brand_mention_count
                acc.citations += result.citation_count
                acc.domain_citations += result.domain_citation_count

                answer = query_result.results.get(_provider_for_key(key))
                if answer is not None and answer.response_time:
                    acc.response_time_total += answer.response_time
                    acc.response_time_count += 1

        roll_up.provider_stats = {key: acc.to_stats() for key, acc in accumulators.items()}
        return roll_up

    def aggregate(
        self,
        brand: BrandProfile,
        session_id: str,
        session_timestamp: str,
        query_results: Sequence[QueryResult],
    ) -> SessionAnalytics:
        roll_up = self.roll_up(brand, query_results)
        ranked = rank_providers(roll_up.provider_stats)
        top_name, top_list = top_providers(ranked, roll_up.total_brand_mentions, roll_up.total_domain_citations)

        insights = SessionInsights(
            top_performing_provider=top_name,
            top_providers=top_list,
            brand_visibility_trend="stable",
            average_brand_mentions_per_query=roll_up.per_query(roll_up.total_brand_mentions),
            average_citations_per_query=roll_up.per_query(roll_up.total_citations),
            competitor_mentions_detected=roll_up.total_competitor_mentions,
            provider_ranking_details=ranking_details(ranked),
        )

        self.logger.info(
            "session_analytics_calculated",
            brand_id=brand.brand_id,
            session_id=session_id,
            queries=roll_up.total_queries,
            brand_mentions=roll_up.total_brand_mentions,
            top_provider=top_name,
        )

        return SessionAnalytics(
            user_id=brand.user_id,
            brand_id=brand.brand_id,
            brand_name=brand.name,
            brand_domain=brand.domain,
            processing_session_id=session_id,
            processing_session_timestamp=session_timestamp,
            total_queries_processed=roll_up.total_queries,
            total_brand_mentions=roll_up.total_brand_mentions,
            brand_visibility_score=roll_up.visibility_score,
            total_citations=roll_up.total_citations,
            total_domain_citations=roll_up.total_domain_citations,
            provider_stats=roll_up.provider_stats,
            insights=insights,
        )


def _provider_for_key(key: str) -> Provider:
    for provider in Provider:
        if provider.stats_key == key:
            return provider
    raise KeyError(key)


def _session_time(result: QueryResult) -> str:
    return result.processing_session_timestamp or result.date or ""


def latest_session(query_results: Sequence[QueryResult]) -> Optional[Tuple[str, str, List[QueryResult]]]:
    """Group results by session and return the most recent session.

    Returns ``(session_id, session_timestamp, results)`` or None when there
    are no results. Sessions are ordered by their latest timestamp.
    """
    sessions: Dict[str, List[QueryResult]] = {}
    for result in query_results:
        sessions.setdefault(result.processing_session_id, []).append(result)

    if not sessions:
        return None

    def session_key(item):
        return max(_session_time(r) for r in item[1])

    session_id, results = max(sessions.items(), key=session_key)
    return session_id, session_key((session_id, results)), results
