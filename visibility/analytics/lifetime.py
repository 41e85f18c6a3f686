"""All-time brand visibility analytics.

Lifetime analytics are always recomputed from the full history: the query
results retained on the brand record plus the long-term query log. Nothing is
updated incrementally, so a snapshot can never drift from its sources.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

import structlog

from visibility.analysis.competitors import CompetitorMatcher
from visibility.analysis.mentions import is_brand_mentioned, is_domain_citation
from visibility.analytics.legacy import convert_historical_records, parse_timestamp
from visibility.analytics.session import SessionAnalyticsAggregator
from visibility.citations import extract_citations, host_without_www, summarize_domains
from visibility.models import (
    BrandProfile,
    HistoricalQueryRecord,
    LifetimeAnalytics,
    LifetimeCitation,
    LifetimeInsights,
    Provider,
    QueryResult,
)

logger = structlog.get_logger(__name__)

LIFETIME_SESSION_ID = "lifetime_analytics"

_CITATION_TYPES = {
    Provider.CHATGPT: "text_extraction",
    Provider.GOOGLE_AI: "ai_overview",
}


class LifetimeAnalyticsAggregator:
    """Compute a lifetime analytics record from a brand's whole history."""

    def __init__(self, session_aggregator: Optional[SessionAnalyticsAggregator] = None):
        self.session_aggregator = session_aggregator or SessionAnalyticsAggregator()
        self.logger = logger.bind(component="LifetimeAnalyticsAggregator")

    def aggregate(
        self,
        brand: BrandProfile,
        retained_results: Sequence[QueryResult],
        historical_records: Iterable[Union[HistoricalQueryRecord, Dict[str, Any]]] = (),
        calculated_at: Optional[datetime] = None,
    ) -> LifetimeAnalytics:
        calculated_at = calculated_at or datetime.now(timezone.utc)
        all_results = list(retained_results) + convert_historical_records(historical_records)

        self.logger.info(
            "lifetime_analytics_sources_collected",
            brand_id=brand.brand_id,
            retained=len(retained_results),
            total=len(all_results),
        )

        if not all_results:
            return LifetimeAnalytics(
                user_id=brand.user_id,
                brand_id=brand.brand_id,
                brand_name=brand.name,
                brand_domain=brand.domain,
                calculated_at=calculated_at,
            )

        session = self.session_aggregator.aggregate(
            brand, LIFETIME_SESSION_ID, calculated_at.isoformat(), all_results
        )

        dates = sorted(d for d in (parse_timestamp(r.date) for r in all_results) if d is not None)
        sessions = {r.processing_session_id for r in all_results if r.processing_session_id}
        all_citations = collect_lifetime_citations(brand, all_results)

        insights = LifetimeInsights(
            top_performing_provider=session.insights.top_performing_provider,
            top_providers=session.insights.top_providers,
            average_brand_mentions_per_query=session.insights.average_brand_mentions_per_query,
            average_citations_per_query=session.insights.average_citations_per_query,
            first_query_processed=dates[0].isoformat() if dates else None,
            last_query_processed=dates[-1].isoformat() if dates else None,
            provider_ranking_details=session.insights.provider_ranking_details,
            source_domains=summarize_domains(all_citations),
        )

        return LifetimeAnalytics(
            user_id=brand.user_id,
            brand_id=brand.brand_id,
            brand_name=brand.name,
            brand_domain=brand.domain,
            total_queries_processed=session.total_queries_processed,
            total_processing_sessions=len(sessions),
            total_brand_mentions=session.total_brand_mentions,
            brand_visibility_score=session.brand_visibility_score,
            total_citations=session.total_citations,
            total_domain_citations=session.total_domain_citations,
            all_citations=all_citations,
            provider_stats=session.provider_stats,
            insights=insights,
            calculated_at=calculated_at,
        )


def collect_lifetime_citations(brand: BrandProfile, query_results: Sequence[QueryResult]) -> List[LifetimeCitation]:
    """Every citation of every query, with provenance for drill-down."""
    matcher = CompetitorMatcher(brand.competitors)
    counters = {provider: 0 for provider in Provider}
    collected = []

    for query_result in query_results:
        for provider, answer in query_result.results.present().items():
            for citation in extract_citations(answer):
                domain = host_without_www(citation.url)
                if domain is None:
                    continue

                counters[provider] += 1
                collected.append(
                    LifetimeCitation(
                        id=f"lifetime-{provider.stats_key}-{counters[provider]}",
                        url=citation.url,
                        text=citation.text,
                        source=citation.source,
                        type=_CITATION_TYPES.get(provider) or citation.type or "structured",
                        index=citation.index,
                        provider=provider.stats_key,
                        query=query_result.query,
                        query_id=query_result.id or "",
                        brand_name=brand.name,
                        domain=domain,
                        timestamp=answer.timestamp or query_result.date,
                        processing_session_id=query_result.processing_session_id or "unknown",
                        is_brand_mention=is_brand_mentioned(citation.text, brand.name),
                        is_domain_citation=is_domain_citation(citation.url, brand.domain),
                        is_competitor_citation=matcher.is_cited(citation),
                    )
                )

    return collected
