"""Citation extraction from AI answer-engine payloads."""

from visibility.citations.domains import DomainSummary, summarize_domains
from visibility.citations.extractors import (
    ChatGPTCitationExtractor,
    CitationExtractor,
    GoogleAICitationExtractor,
    PerplexityCitationExtractor,
    extract_citations,
    get_extractor,
)
from visibility.citations.urls import dedupe_citations, host_without_www, normalize_url

__all__ = [
    "CitationExtractor",
    "ChatGPTCitationExtractor",
    "GoogleAICitationExtractor",
    "PerplexityCitationExtractor",
    "extract_citations",
    "get_extractor",
    "normalize_url",
    "dedupe_citations",
    "host_without_www",
    "DomainSummary",
    "summarize_domains",
]
