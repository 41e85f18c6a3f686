"""Tests for the text passes and per-provider citation extractors."""

import pytest

from visibility.citations import extract_citations, get_extractor
from visibility.citations.passes import (
    bare_urls,
    domain_references,
    google_search_links,
    malformed_source_links,
    markdown_links,
    numbered_citations,
)
from visibility.models import (
    AIOverviewReference,
    ChatGPTAnswer,
    GoogleAIAnswer,
    LegacyPerplexityCitation,
    PerplexityAnswer,
    Provider,
)


class TestTextPasses:
    """Each pass in isolation."""

    def test_google_search_links(self) -> None:
        text = "More at https://www.google.com/search?q=acme+tools here"
        candidates = google_search_links(text)
        assert [c.url for c in candidates] == ["https://www.google.com/search?q=acme+tools"]
        assert candidates[0].text == "Google Search"

    def test_malformed_source_link_is_repaired(self) -> None:
        text = 'Read this (source=abc" target="_blank" rel="noopener">acme.com)'
        candidates = malformed_source_links(text)
        assert [(c.url, c.text) for c in candidates] == [("https://acme.com", "acme.com")]

    def test_numbered_citation(self) -> None:
        candidates = numbered_citations("Fast [[1]](https://www.acme.com/fast) setup")
        assert candidates[0].url == "https://www.acme.com/fast"
        assert candidates[0].text == "Citation 1: acme.com"

    def test_markdown_link_skips_numeric_labels(self) -> None:
        text = "See [Acme docs](https://acme.com/docs) and [2](https://other.com)"
        candidates = markdown_links(text)
        assert [(c.url, c.text) for c in candidates] == [("https://acme.com/docs", "Acme docs")]

    def test_markdown_link_drops_title(self) -> None:
        candidates = markdown_links('[Guide](https://acme.com/guide "The guide")')
        assert candidates[0].url == "https://acme.com/guide"

    def test_markdown_link_requires_web_url(self) -> None:
        assert markdown_links("[local](/relative/path)") == []

    def test_bare_url_strips_trailing_punctuation(self) -> None:
        candidates = bare_urls("Visit https://acme.com/pricing. Or (https://rival.com/a).")
        assert [c.url for c in candidates] == ["https://acme.com/pricing", "https://rival.com/a"]
        assert candidates[0].text == "acme.com"

    def test_bare_url_keeps_balanced_parentheses(self) -> None:
        candidates = bare_urls("https://en.wikipedia.org/wiki/Acme_(company)")
        assert candidates[0].url == "https://en.wikipedia.org/wiki/Acme_(company)"

    def test_domain_references(self) -> None:
        candidates = domain_references("Tools are popular (acme.com). Also (rival.io)")
        urls = [c.url for c in candidates]
        assert "https://acme.com" in urls
        assert "https://rival.io" in urls


class TestChatGPTExtractor:
    def test_acme_answer(self) -> None:
        answer = ChatGPTAnswer(response="Acme is great. See https://www.acme.com/docs and https://rival.com")
        citations = extract_citations(answer)
        assert [c.url for c in citations] == ["https://www.acme.com/docs", "https://rival.com"]
        assert all(c.source == "ChatGPT" for c in citations)

    def test_earlier_pass_wins_for_duplicate_url(self) -> None:
        answer = ChatGPTAnswer(response="[Acme docs](https://acme.com/docs) also https://acme.com/docs")
        citations = extract_citations(answer)
        assert len(citations) == 1
        assert citations[0].text == "Acme docs"

    def test_google_search_url_is_labelled(self) -> None:
        answer = ChatGPTAnswer(response="[search](https://www.google.com/search?q=acme)")
        citations = extract_citations(answer)
        assert citations[0].source == "Google Search"

    def test_no_links(self) -> None:
        assert extract_citations(ChatGPTAnswer(response="Acme is fine.")) == []

    @pytest.mark.parametrize("text", ["", "[[x]](", "((((", "https://", "[](http://)"])
    def test_garbage_never_raises(self, text) -> None:
        assert isinstance(extract_citations(ChatGPTAnswer(response=text)), list)


class TestGoogleAIExtractor:
    def test_references_come_first(self) -> None:
        answer = GoogleAIAnswer(
            aiOverview="Acme leads the market https://rival.com/report",
            aiOverviewReferences=[
                AIOverviewReference(url="https://acme.com/about", title="About Acme"),
                AIOverviewReference(domain="globex.com"),
            ],
        )
        citations = extract_citations(answer)
        assert [c.url for c in citations] == [
            "https://acme.com/about",
            "https://globex.com",
            "https://rival.com/report",
        ]
        assert citations[0].text == "About Acme"
        assert citations[0].source == "AI Overview Reference"
        assert citations[1].text == "globex.com"
        assert citations[2].source == "Google AI Overview"

    def test_empty_overview(self) -> None:
        assert extract_citations(GoogleAIAnswer()) == []


class TestPerplexityExtractor:
    def test_first_citation_is_dropped(self) -> None:
        answer = PerplexityAnswer(citationsData="https://a.com|||https://b.com|||https://c.com")
        citations = extract_citations(answer)
        assert [c.url for c in citations] == ["https://b.com", "https://c.com"]

    def test_search_results_titles(self) -> None:
        answer = PerplexityAnswer(
            searchResultsData="First|||https://one.com###Second|||https://two.com###Third|||https://three.com"
        )
        citations = extract_citations(answer)
        assert [(c.url, c.text) for c in citations] == [
            ("https://two.com", "Second"),
            ("https://three.com", "Third"),
        ]

    def test_structured_fields_deduplicate(self) -> None:
        answer = PerplexityAnswer(
            citationsData="https://a.com|||https://b.com",
            structuredCitationsData="https://b.com|||https://d.com",
            citationsList=[LegacyPerplexityCitation(url="https://e.com", title="E")],
        )
        citations = extract_citations(answer)
        assert [c.url for c in citations] == ["https://b.com", "https://d.com", "https://e.com"]

    def test_text_fallback_only_without_structured_data(self) -> None:
        answer = PerplexityAnswer(response="See https://x.com and https://y.com and (z.org)")
        citations = extract_citations(answer)
        assert [c.url for c in citations] == ["https://y.com", "https://z.org"]

    def test_text_ignored_when_structured_data_present(self) -> None:
        answer = PerplexityAnswer(
            response="See https://ignored.com",
            citationsData="https://a.com|||https://b.com",
        )
        assert [c.url for c in extract_citations(answer)] == ["https://b.com"]


class TestDispatch:
    def test_get_extractor_by_provider(self) -> None:
        assert get_extractor(Provider.PERPLEXITY).provider is Provider.PERPLEXITY
        assert get_extractor("googleAI").provider is Provider.GOOGLE_AI
