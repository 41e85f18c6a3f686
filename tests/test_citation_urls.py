"""Tests for URL normalization and citation de-duplication."""

from visibility.citations import summarize_domains
from visibility.citations.urls import (
    dedupe_citations,
    host_without_www,
    is_google_search,
    is_web_url,
    normalize_url,
)
from visibility.models import Citation


class TestNormalizeUrl:
    """Identity keys used for duplicate detection."""

    def test_lowercases_scheme_and_host(self) -> None:
        assert normalize_url("HTTPS://WWW.Example.COM/Path") == "https://www.example.com/Path"

    def test_empty_path_becomes_slash(self) -> None:
        assert normalize_url("https://example.com") == "https://example.com/"

    def test_drops_tracking_params_and_fragment(self) -> None:
        url = "https://example.com/a?utm_source=x&id=7&gclid=abc#section"
        assert normalize_url(url) == "https://example.com/a?id=7"

    def test_non_web_url_is_trimmed_raw(self) -> None:
        assert normalize_url("  not a url ") == "not a url"


class TestHostHelpers:
    def test_host_without_www(self) -> None:
        assert host_without_www("https://www.acme.com/docs") == "acme.com"
        assert host_without_www("http://blog.acme.com") == "blog.acme.com"

    def test_host_missing(self) -> None:
        assert host_without_www("acme.com") is None
        assert host_without_www("ftp://acme.com") is None

    def test_is_web_url(self) -> None:
        assert is_web_url("https://acme.com")
        assert not is_web_url("mailto:team@acme.com")
        assert not is_web_url("1")

    def test_is_google_search(self) -> None:
        assert is_google_search("https://www.google.com/search?q=acme")
        assert not is_google_search("https://www.google.com/maps")


class TestDedupeCitations:
    def test_keeps_first_occurrence_in_order(self) -> None:
        citations = [
            Citation(url="https://a.com/x?utm_medium=email", text="first"),
            Citation(url="https://b.com", text="b"),
            Citation(url="https://A.com/x", text="second"),
        ]
        unique = dedupe_citations(citations)
        assert [c.text for c in unique] == ["first", "b"]

    def test_idempotent(self) -> None:
        citations = [
            Citation(url="https://a.com", text="a"),
            Citation(url="https://a.com/", text="a again"),
            Citation(url="https://c.com/page#top", text="c"),
        ]
        once = dedupe_citations(citations)
        assert dedupe_citations(once) == once


class TestSummarizeDomains:
    def test_buckets_and_diversity(self) -> None:
        urls = [
            "https://mit.edu/a",
            "https://www.nasa.gov",
            "https://acme.com",
            "https://en.wikipedia.org/wiki/Acme",
            "https://acme.com/pricing",
            "https://example.org",
        ]
        summary = summarize_domains([Citation(url=url, text=url) for url in urls])

        assert summary.total_domains == 5
        assert summary.domain_types == {
            "educational": 1,
            "government": 1,
            "commercial": 2,
            "wikipedia": 1,
            "other": 1,
        }
        assert summary.diversity_score == 83

    def test_no_citations(self) -> None:
        summary = summarize_domains([])
        assert summary.total_domains == 0
        assert summary.diversity_score == 0
