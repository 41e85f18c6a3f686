"""Brand and competitor presence analysis."""

from visibility.analysis.competitors import CompetitorMatcher, MatchResult
from visibility.analysis.mentions import (
    BrandMentionAnalyzer,
    ProviderText,
    count_brand_mentions,
    count_domain_citations,
    is_brand_mentioned,
    is_domain_citation,
    is_domain_cited,
)
from visibility.analysis.competitor_analytics import CompetitorAnalyticsAggregator

__all__ = [
    "CompetitorMatcher",
    "MatchResult",
    "BrandMentionAnalyzer",
    "ProviderText",
    "count_brand_mentions",
    "count_domain_citations",
    "is_brand_mentioned",
    "is_domain_citation",
    "is_domain_cited",
    "CompetitorAnalyticsAggregator",
]
