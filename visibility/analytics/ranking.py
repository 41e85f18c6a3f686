"""Provider ranking shared by session and lifetime analytics."""

import math
from dataclasses import dataclass
from functools import cmp_to_key
from typing import Dict, List, Mapping, Tuple

from visibility.models import ProviderRanking, ProviderStats

# Domain-citation ratios closer than this are considered equal
RATIO_EPSILON = 0.001


def round_half_up(value: float, digits: int = 2) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


@dataclass
class _RankedProvider:
    provider: str
    brand_mentions: int
    domain_citations_ratio: float
    total_citations: int
    domain_citations: int

    @property
    def has_performance(self) -> bool:
        return self.brand_mentions > 0 or self.domain_citations > 0


def _compare(a: _RankedProvider, b: _RankedProvider) -> int:
    if a.brand_mentions != b.brand_mentions:
        return b.brand_mentions - a.brand_mentions
    if abs(a.domain_citations_ratio - b.domain_citations_ratio) > RATIO_EPSILON:
        return -1 if a.domain_citations_ratio > b.domain_citations_ratio else 1
    return b.total_citations - a.total_citations


def rank_providers(provider_stats: Mapping[str, ProviderStats]) -> List[_RankedProvider]:
    """Providers that processed at least one query, best first.

    Ordered by brand mentions, then domain-citation ratio, then total
    citations. Full ties keep the provider order of ``provider_stats``.
    """
    candidates = [
        _RankedProvider(
            provider=provider,
            brand_mentions=stats.brand_mentions,
            domain_citations_ratio=stats.domain_citations / stats.citations if stats.citations else 0.0,
            total_citations=stats.citations,
            domain_citations=stats.domain_citations,
        )
        for provider, stats in provider_stats.items()
        if stats.queries_processed > 0
    ]
    return sorted(candidates, key=cmp_to_key(_compare))


def top_providers(
    ranked: List[_RankedProvider], total_brand_mentions: int, total_domain_citations: int
) -> Tuple[str, List[str]]:
    """Leader name (ties joined with " & ") and the list of tied leaders."""
    if total_brand_mentions <= 0 and total_domain_citations <= 0:
        return "none", []
    if not ranked or not ranked[0].has_performance:
        return "none", []

    leader = ranked[0]
    tied = [
        p.provider
        for p in ranked
        if p.brand_mentions == leader.brand_mentions
        and abs(p.domain_citations_ratio - leader.domain_citations_ratio) < RATIO_EPSILON
        and p.has_performance
    ]
    return " & ".join(tied), tied


def ranking_details(ranked: List[_RankedProvider]) -> Dict[str, ProviderRanking]:
    return {
        p.provider: ProviderRanking(
            rank=index + 1,
            brand_mentions=p.brand_mentions,
            domain_citations_ratio=round_half_up(p.domain_citations_ratio * 100),
            total_citations=p.total_citations,
        )
        for index, p in enumerate(ranked)
    }
