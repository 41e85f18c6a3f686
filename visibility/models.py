"""Data models for AI answer-engine visibility tracking."""
from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class Provider(str, Enum):
    """AI answer-engines a tracked query is sent to."""

    CHATGPT = "chatgpt"
    GOOGLE_AI = "googleAI"
    PERPLEXITY = "perplexity"

    @property
    def stats_key(self) -> str:
        """Key used for the provider in analytics records."""
        return "google" if self is Provider.GOOGLE_AI else self.value


STATS_KEYS = tuple(provider.stats_key for provider in Provider)


class Citation(BaseModel):
    """A reference extracted from an AI answer."""

    model_config = ConfigDict(frozen=True)

    url: str
    text: str
    source: Optional[str] = None
    type: Optional[str] = None
    index: Optional[int] = None


class _Payload(BaseModel):
    """Base for raw provider payloads handed over by the dispatch layer."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    response_time: Optional[float] = Field(None, alias="responseTime")
    timestamp: Optional[str] = None
    error: Optional[str] = None


class ChatGPTAnswer(_Payload):
    provider: Literal["chatgpt"] = "chatgpt"
    response: str = ""
    citations: Optional[int] = Field(None, description="Citation count reported by the provider")


class AIOverviewReference(BaseModel):
    model_config = ConfigDict(extra="allow")

    domain: Optional[str] = None
    url: Optional[str] = None
    title: Optional[str] = None
    text: Optional[str] = None


class GoogleAIAnswer(_Payload):
    provider: Literal["googleAI"] = "googleAI"
    ai_overview: Optional[str] = Field(None, alias="aiOverview")
    ai_overview_references: List[AIOverviewReference] = Field(
        default_factory=list, alias="aiOverviewReferences"
    )
    has_ai_overview: bool = Field(False, alias="hasAIOverview")
    organic_results_count: Optional[int] = Field(None, alias="organicResultsCount")
    people_also_ask_count: Optional[int] = Field(None, alias="peopleAlsoAskCount")


class LegacyPerplexityCitation(BaseModel):
    model_config = ConfigDict(extra="allow")

    url: Optional[str] = None
    text: Optional[str] = None
    title: Optional[str] = None
    source: Optional[str] = None


class PerplexityAnswer(_Payload):
    provider: Literal["perplexity"] = "perplexity"
    response: str = ""
    citations_data: Optional[str] = Field(None, alias="citationsData")
    search_results_data: Optional[str] = Field(None, alias="searchResultsData")
    structured_citations_data: Optional[str] = Field(None, alias="structuredCitationsData")
    citations_list: List[LegacyPerplexityCitation] = Field(default_factory=list, alias="citationsList")


ProviderAnswer = Union[ChatGPTAnswer, GoogleAIAnswer, PerplexityAnswer]


class ProviderResults(BaseModel):
    """At most one answer per provider for a single query attempt."""

    model_config = ConfigDict(populate_by_name=True)

    chatgpt: Optional[ChatGPTAnswer] = None
    google_ai: Optional[GoogleAIAnswer] = Field(None, alias="googleAI")
    perplexity: Optional[PerplexityAnswer] = None

    def get(self, provider: Provider) -> Optional[ProviderAnswer]:
        if provider is Provider.CHATGPT:
            return self.chatgpt
        if provider is Provider.GOOGLE_AI:
            return self.google_ai
        return self.perplexity

    def present(self) -> Dict[Provider, ProviderAnswer]:
        """Answers that were actually produced, in provider order."""
        answers = {}
        for provider in Provider:
            answer = self.get(provider)
            if answer is not None:
                answers[provider] = answer
        return answers


class QueryResult(BaseModel):
    """One tracked query, one processing attempt."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: Optional[str] = None
    query: str = ""
    keyword: str = ""
    category: str = ""
    date: str = ""
    processing_session_id: str = Field(..., alias="processingSessionId")
    processing_session_timestamp: Optional[str] = Field(None, alias="processingSessionTimestamp")
    results: ProviderResults = Field(default_factory=ProviderResults)


class Competitor(BaseModel):
    name: str
    domain: Optional[str] = None
    aliases: List[str] = Field(default_factory=list)

    @classmethod
    def coerce(cls, value: Union[str, "Competitor", Dict[str, Any]]) -> "Competitor":
        if isinstance(value, Competitor):
            return value
        if isinstance(value, str):
            return cls(name=value)
        return cls.model_validate(value)


class BrandProfile(BaseModel):
    """The brand whose visibility is tracked."""

    brand_id: str
    user_id: str = ""
    name: str
    domain: str = ""
    competitors: List[Competitor] = Field(default_factory=list)


# Analysis -----------------------------------------------------------------


class BrandAnalysisResult(BaseModel):
    """Brand and competitor presence in one provider's answer."""

    model_config = ConfigDict(frozen=True)

    provider: str
    brand_mentioned: bool
    domain_cited: bool
    citation_count: int
    citations: List[Citation] = Field(default_factory=list)
    brand_mention_count: int = 0
    domain_citation_count: int = 0
    competitor_mentioned: bool = False
    competitor_cited: bool = False
    competitor_mention_count: int = 0
    competitor_citation_count: int = 0


class AnalysisTotals(BaseModel):
    total_citations: int = 0
    total_brand_mentions: int = 0
    total_domain_citations: int = 0
    total_competitor_mentions: int = 0
    total_competitor_citations: int = 0
    providers_with_brand_mention: int = 0
    providers_with_domain_citation: int = 0
    providers_with_competitor_mention: int = 0
    providers_with_competitor_citation: int = 0


class BrandMentionAnalysis(BaseModel):
    brand_name: str
    brand_domain: str
    competitors: List[str] = Field(default_factory=list)
    results: Dict[str, BrandAnalysisResult] = Field(default_factory=dict)
    totals: AnalysisTotals = Field(default_factory=AnalysisTotals)


# Analytics ----------------------------------------------------------------


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProviderStats(BaseModel):
    queries_processed: int = 0
    brand_mentions: int = 0
    citations: int = 0
    domain_citations: int = 0
    average_response_time: Optional[float] = None


class ProviderRanking(BaseModel):
    rank: int
    brand_mentions: int
    domain_citations_ratio: float = Field(..., description="Percentage, two decimals")
    total_citations: int


def _empty_provider_stats() -> Dict[str, ProviderStats]:
    return {key: ProviderStats() for key in STATS_KEYS}


class SessionInsights(BaseModel):
    top_performing_provider: str = "none"
    top_providers: List[str] = Field(default_factory=list)
    brand_visibility_trend: Literal["improving", "declining", "stable"] = "stable"
    average_brand_mentions_per_query: float = 0.0
    average_citations_per_query: float = 0.0
    competitor_mentions_detected: int = 0
    provider_ranking_details: Dict[str, ProviderRanking] = Field(default_factory=dict)


class SessionAnalytics(BaseModel):
    """Analytics for one processing session; never re-aggregated in place."""

    user_id: str = ""
    brand_id: str
    brand_name: str
    brand_domain: str = ""
    processing_session_id: str
    processing_session_timestamp: str
    total_queries_processed: int = 0
    total_brand_mentions: int = 0
    brand_visibility_score: float = 0.0
    total_citations: int = 0
    total_domain_citations: int = 0
    provider_stats: Dict[str, ProviderStats] = Field(default_factory=_empty_provider_stats)
    insights: SessionInsights = Field(default_factory=SessionInsights)
    created_at: datetime = Field(default_factory=_utcnow)


class LifetimeCitation(Citation):
    """A citation with provenance for drill-down views."""

    id: str
    provider: str
    query: str = ""
    query_id: str = ""
    brand_name: str = ""
    domain: Optional[str] = None
    timestamp: str = ""
    processing_session_id: str = "unknown"
    is_brand_mention: bool = False
    is_domain_citation: bool = False
    is_competitor_citation: bool = False


class DomainSummary(BaseModel):
    """How varied the sources behind a set of citations are"""

    total_domains: int = 0
    domain_types: Dict[str, int] = Field(
        default_factory=lambda: {
            "educational": 0,
            "government": 0,
            "commercial": 0,
            "wikipedia": 0,
            "other": 0,
        }
    )
    diversity_score: int = 0


class LifetimeInsights(BaseModel):
    top_performing_provider: str = "none"
    top_providers: List[str] = Field(default_factory=list)
    average_brand_mentions_per_query: float = 0.0
    average_citations_per_query: float = 0.0
    first_query_processed: Optional[str] = None
    last_query_processed: Optional[str] = None
    provider_ranking_details: Dict[str, ProviderRanking] = Field(default_factory=dict)
    source_domains: DomainSummary = Field(default_factory=DomainSummary)


class LifetimeAnalytics(BaseModel):
    """Cumulative analytics over a brand's whole history at calculation time."""

    user_id: str = ""
    brand_id: str
    brand_name: str
    brand_domain: str = ""
    total_queries_processed: int = 0
    total_processing_sessions: int = 0
    total_brand_mentions: int = 0
    brand_visibility_score: float = 0.0
    total_citations: int = 0
    total_domain_citations: int = 0
    all_citations: List[LifetimeCitation] = Field(default_factory=list)
    provider_stats: Dict[str, ProviderStats] = Field(default_factory=_empty_provider_stats)
    insights: LifetimeInsights = Field(default_factory=LifetimeInsights)
    calculated_at: datetime = Field(default_factory=_utcnow)


class AnalyticsTrend(BaseModel):
    brand_mentions_change: int = 0
    citations_change: int = 0
    visibility_change: float = 0.0


class BrandAnalyticsHistory(BaseModel):
    brand_id: str
    total_sessions: int
    latest_analytics: SessionAnalytics
    previous_analytics: Optional[SessionAnalytics] = None
    trend: AnalyticsTrend = Field(default_factory=AnalyticsTrend)


# Legacy query log ---------------------------------------------------------


class HistoricalAIResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    provider: str
    response: str = ""
    error: Optional[str] = None
    timestamp: Optional[str] = None
    response_time: Optional[float] = Field(None, alias="responseTime")


class HistoricalQueryRecord(BaseModel):
    """Entry of the long-term query log kept outside the brand record."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str
    status: Literal["pending", "processing", "completed", "error"] = "pending"
    original_query: str = Field("", alias="originalQuery")
    keyword: str = ""
    category: str = ""
    ai_responses: List[HistoricalAIResponse] = Field(default_factory=list, alias="aiResponses")
    created_at: str = Field(..., alias="createdAt")
    processed_at: Optional[str] = Field(None, alias="processedAt")
    session_id: Optional[str] = Field(None, alias="sessionId")


# Competitor analytics -----------------------------------------------------


class CompetitorProviderBreakdown(BaseModel):
    mentions: int = 0
    queries_with_mentions: int = 0


class CompetitorStats(BaseModel):
    total_mentions: int = 0
    queries_with_mentions: int = 0
    visibility_score: float = 0.0
    average_mentions_per_query: float = 0.0
    mention_trend: Literal["increasing", "decreasing", "stable"] = "stable"
    top_provider: str = "none"
    provider_breakdown: Dict[str, CompetitorProviderBreakdown] = Field(
        default_factory=lambda: {key: CompetitorProviderBreakdown() for key in STATS_KEYS}
    )


class CompetitorProviderStats(BaseModel):
    queries_processed: int = 0
    competitor_mentions: int = 0
    unique_competitors: int = 0


class CompetitorInsights(BaseModel):
    top_competitor: str = "none"
    most_competitive_provider: str = "none"
    average_competitors_per_query: float = 0.0
    competitive_intensity: Literal["low", "medium", "high"] = "low"
    market_position: Literal["leader", "challenger", "follower"] = "follower"


class CompetitorAnalytics(BaseModel):
    user_id: str = ""
    brand_id: str
    brand_name: str
    processing_session_id: str
    processing_session_timestamp: str
    total_queries_processed: int = 0
    total_competitor_mentions: int = 0
    competitor_visibility_score: float = 0.0
    unique_competitors_detected: int = 0
    competitor_stats: Dict[str, CompetitorStats] = Field(default_factory=dict)
    provider_stats: Dict[str, CompetitorProviderStats] = Field(
        default_factory=lambda: {key: CompetitorProviderStats() for key in STATS_KEYS}
    )
    insights: CompetitorInsights = Field(default_factory=CompetitorInsights)
