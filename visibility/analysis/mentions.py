"""Brand and competitor presence in provider answers."""

import re
from typing import Dict, Iterable, List, Mapping, NamedTuple, Optional, Sequence

import structlog

from visibility.analysis.competitors import CompetitorLike, CompetitorMatcher
from visibility.citations import extract_citations
from visibility.models import (
    AnalysisTotals,
    BrandAnalysisResult,
    BrandMentionAnalysis,
    BrandProfile,
    Citation,
    Provider,
    QueryResult,
)

logger = structlog.get_logger(__name__)


class ProviderText(NamedTuple):
    """Answer text and the citations extracted from it."""
    text: str
    citations: List[Citation]


_LINK_TARGET_RE = re.compile(r"https?://\S+", re.IGNORECASE)


def _domain_forms(domain: str) -> Sequence[str]:
    domain = domain.lower()
    return (f"https://www.{domain}", f"https://{domain}")


def is_brand_mentioned(text: str, brand_name: str) -> bool:
    if not text or not brand_name:
        return False
    return brand_name.lower() in text.lower()


def count_brand_mentions(text: str, brand_name: str) -> int:
    """Occurrences of the brand name in the prose; link targets are not counted.

    :func:`is_brand_mentioned` still looks at the whole text, so an answer whose
    only occurrence is inside a URL is mentioned with a count of zero.
    """
    if not text or not brand_name:
        return 0
    prose = _LINK_TARGET_RE.sub(" ", text)
    return len(re.findall(re.escape(brand_name), prose, flags=re.IGNORECASE))


def is_domain_cited(text: str, domain: str) -> bool:
    """Substring test for the brand domain as a link anywhere in ``text``."""
    if not text or not domain:
        return False
    text = text.lower()
    return any(form in text for form in _domain_forms(domain))


def is_domain_citation(url: str, domain: str) -> bool:
    """Whether ``url`` starts with ``https://www.<domain>/`` or ``https://<domain>/``.

    Stricter than :func:`is_domain_cited`: a bare ``https://<domain>`` with no
    path slash is not a citation of the domain.
    """
    if not url or not domain:
        return False
    url = url.lower()
    return any(url.startswith(form + "/") for form in _domain_forms(domain))


def count_domain_citations(citations: Iterable[Citation], domain: str) -> int:
    if not domain:
        return 0
    return sum(1 for citation in citations if is_domain_cited(citation.url, domain))


class BrandMentionAnalyzer:
    """Measures brand and competitor presence per provider."""

    def __init__(self, fuzzy_threshold: float = 0.85):
        self.fuzzy_threshold = fuzzy_threshold
        self.logger = logger.bind(component="BrandMentionAnalyzer")

    def analyze(
        self,
        brand_name: str,
        brand_domain: str,
        answers: Mapping[Provider, ProviderText],
        competitors: Optional[Sequence[CompetitorLike]] = None,
    ) -> BrandMentionAnalysis:
        """Analyze the answers of one query.

        ChatGPT and Perplexity answers with empty text are skipped. A Google
        answer counts whenever it is present, even without an overview.
        """
        matcher = CompetitorMatcher(competitors or [], fuzzy_threshold=self.fuzzy_threshold)
        results: Dict[str, BrandAnalysisResult] = {}

        for provider in Provider:
            answer = answers.get(provider)
            if answer is None:
                continue
            if provider is not Provider.GOOGLE_AI and not answer.text:
                continue
            results[provider.stats_key] = self._analyze_provider(
                provider, brand_name, brand_domain, answer, matcher
            )

        return BrandMentionAnalysis(
            brand_name=brand_name,
            brand_domain=brand_domain,
            competitors=[c.name for c in matcher.competitors],
            results=results,
            totals=_totals(results.values()),
        )

    def analyze_query_result(self, brand: BrandProfile, query_result: QueryResult) -> BrandMentionAnalysis:
        """Extract citations from a stored query result and analyze it."""
        answers = {}
        for provider, answer in query_result.results.present().items():
            if provider is Provider.GOOGLE_AI:
                text = answer.ai_overview or ""
            else:
                text = answer.response or ""
            answers[provider] = ProviderText(text, extract_citations(answer))

        return self.analyze(brand.name, brand.domain, answers, brand.competitors)

    def _analyze_provider(
        self,
        provider: Provider,
        brand_name: str,
        brand_domain: str,
        answer: ProviderText,
        matcher: CompetitorMatcher,
    ) -> BrandAnalysisResult:
        citations = list(answer.citations)
        competitor_matches = matcher.match(answer.text)
        competitor_citations = sum(1 for c in citations if matcher.is_cited(c))

        return BrandAnalysisResult(
            provider=provider.stats_key,
            brand_mentioned=is_brand_mentioned(answer.text, brand_name),
            domain_cited=is_domain_cited(answer.text, brand_domain),
            citation_count=len(citations),
            citations=citations,
            brand_mention_count=count_brand_mentions(answer.text, brand_name),
            domain_citation_count=count_domain_citations(citations, brand_domain),
            competitor_mentioned=bool(competitor_matches),
            competitor_cited=competitor_citations > 0,
            competitor_mention_count=len(competitor_matches),
            competitor_citation_count=competitor_citations,
        )


def _totals(results: Iterable[BrandAnalysisResult]) -> AnalysisTotals:
    totals = AnalysisTotals()
    for result in results:
        totals.total_citations += result.citation_count
        totals.total_brand_mentions += result.brand_mention_count
        totals.total_domain_citations += result.domain_citation_count
        totals.total_competitor_mentions += result.competitor_mention_count
        totals.total_competitor_citations += result.competitor_citation_count
        totals.providers_with_brand_mention += int(result.brand_mentioned)
        totals.providers_with_domain_citation += int(result.domain_cited)
        totals.providers_with_competitor_mention += int(result.competitor_mentioned)
        totals.providers_with_competitor_citation += int(result.competitor_cited)
    return totals
