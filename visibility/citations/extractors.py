"""Per-provider citation extraction.

Every extractor is total: malformed input produces fewer citations, never an
exception. Citations come back in discovery order with duplicate URLs
(compared after normalization) removed.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence

import structlog

from visibility.citations.passes import (
    ALL_TEXT_PASSES,
    FALLBACK_TEXT_PASSES,
    TextPass,
)
from visibility.citations.urls import is_google_search, normalize_url
from visibility.models import (
    ChatGPTAnswer,
    Citation,
    GoogleAIAnswer,
    PerplexityAnswer,
    Provider,
    ProviderAnswer,
)

logger = structlog.get_logger(__name__)

GOOGLE_SEARCH_SOURCE = "Google Search"


class _CitationCollector:
    """Ordered citation list that ignores URLs it has already seen."""

    def __init__(self):
        self._seen = set()
        self.citations: List[Citation] = []

    def add(
        self,
        url: str,
        text: str,
        source: Optional[str] = None,
        type: Optional[str] = None,
        index: Optional[int] = None,
    ) -> bool:
        url = url.strip()
        if not url:
            return False
        key = normalize_url(url)
        if key in self._seen:
            return False
        self._seen.add(key)
        if is_google_search(url):
            source = GOOGLE_SEARCH_SOURCE
        self.citations.append(Citation(url=url, text=text or url, source=source, type=type, index=index))
        return True


class CitationExtractor(ABC):
    """Turns one provider's raw answer into citations."""

    provider: Provider

    def __init__(self):
        self.logger = logger.bind(component=type(self).__name__)

    @abstractmethod
    def _collect(self, answer: ProviderAnswer) -> List[Citation]:
        """Run the provider's passes over ``answer``."""

    def extract(self, answer: ProviderAnswer) -> List[Citation]:
        try:
            return self._collect(answer)
        except Exception as e:
            self.logger.warning("citation_extraction_failed", provider=self.provider.value, error=str(e))
            return []

    def _run_text_passes(
        self,
        collector: _CitationCollector,
        text: Optional[str],
        passes: Sequence[TextPass],
        source: Optional[str],
    ) -> None:
        if not text:
            return
        for text_pass in passes:
            try:
                candidates = text_pass(text)
            except Exception as e:
                self.logger.warning("citation_pass_failed", text_pass=text_pass.__name__, error=str(e))
                continue
            for candidate in candidates:
                collector.add(candidate.url, candidate.text, source=source, type=candidate.kind)


class ChatGPTCitationExtractor(CitationExtractor):
    provider = Provider.CHATGPT

    def _collect(self, answer: ChatGPTAnswer) -> List[Citation]:
        collector = _CitationCollector()
        self._run_text_passes(collector, answer.response, ALL_TEXT_PASSES, "ChatGPT")
        return collector.citations


class GoogleAICitationExtractor(CitationExtractor):
    """Overview references first, then links found in the overview text."""

    provider = Provider.GOOGLE_AI

    def _collect(self, answer: GoogleAIAnswer) -> List[Citation]:
        collector = _CitationCollector()

        for i, reference in enumerate(answer.ai_overview_references):
            url = reference.url or (f"https://{reference.domain}" if reference.domain else "")
            text = reference.title or reference.text or reference.domain or url
            collector.add(url, text, source="AI Overview Reference", type="ai_overview_reference", index=i + 1)

        self._run_text_passes(collector, answer.ai_overview, ALL_TEXT_PASSES, "Google AI Overview")
        return collector.citations


class PerplexityCitationExtractor(CitationExtractor):
    """Structured citation fields first; text passes only when they are empty.

    The first citation found is always discarded.
    """

    provider = Provider.PERPLEXITY

    def _collect(self, answer: PerplexityAnswer) -> List[Citation]:
        collector = _CitationCollector()

        for i, url in enumerate(_split_field(answer.citations_data, "|||")):
            collector.add(url, url, source="Perplexity Citation", type="structured", index=i + 1)

        for i, entry in enumerate(_split_field(answer.search_results_data, "###")):
            title, _, url = entry.partition("|||")
            title = title.strip()
            url = url.split("|||")[0].strip()
            if url:
                collector.add(
                    url,
                    title or url,
                    source="Perplexity Search Result",
                    type="search_result",
                    index=i + 1,
                )

        for i, url in enumerate(_split_field(answer.structured_citations_data, "|||")):
            collector.add(url, url, source="Perplexity Structured Citation", type="structured", index=i + 1)

        for i, item in enumerate(answer.citations_list):
            if item.url and item.url.strip():
                collector.add(
                    item.url,
                    item.text or item.title or item.url.strip(),
                    source=item.source or "Perplexity Citation",
                    type="legacy",
                    index=i + 1,
                )

        if not collector.citations:
            self._run_text_passes(collector, answer.response, FALLBACK_TEXT_PASSES, None)

        # TODO: confirm with product whether dropping the first citation is still wanted
        return collector.citations[1:]


def _split_field(value: Optional[str], separator: str) -> List[str]:
    if not value or not value.strip():
        return []
    return [part.strip() for part in value.split(separator) if part.strip()]


_EXTRACTORS: Dict[Provider, CitationExtractor] = {
    extractor.provider: extractor
    for extractor in (
        ChatGPTCitationExtractor(),
        GoogleAICitationExtractor(),
        PerplexityCitationExtractor(),
    )
}


def get_extractor(provider: Provider) -> CitationExtractor:
    return _EXTRACTORS[Provider(provider)]


def extract_citations(answer: ProviderAnswer) -> List[Citation]:
    """Extract citations from any provider answer."""
    return get_extractor(Provider(answer.provider)).extract(answer)
