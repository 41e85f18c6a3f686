"""Pattern passes that find links in free-form answer text.

Each pass is a pure function returning ``LinkCandidate`` tuples in the
order they appear in the text. Extractors run the passes in a fixed order
and keep only URLs not already seen, so earlier passes win.
"""

import re
from typing import Callable, List, NamedTuple

from visibility.citations.urls import host_without_www, is_web_url


class LinkCandidate(NamedTuple):
    url: str
    text: str
    kind: str


# Characters that end a bare URL
_URL_BODY = r"[^\s<>\"{}|\\^`\[\]]+"

GOOGLE_SEARCH_RE = re.compile(r"https://www\.google\.com/search\?" + _URL_BODY)
MALFORMED_SOURCE_RE = re.compile(r"\(source=([^\"]+)\"\s+target=\"_blank\"[^>]*>([^)]+)\)")
NUMBERED_CITATION_RE = re.compile(r"\[\[(\d+)\]\]\(([^)]+)\)")
MARKDOWN_LINK_RE = re.compile(r"\[([^\]]+)\]\(([^)]+)\)")
BARE_URL_RE = re.compile(r"https?://" + _URL_BODY)
DOMAIN_REFERENCE_RE = re.compile(r"\(([a-zA-Z0-9.-]+\.[a-zA-Z]{2,})\)")
PARAGRAPH_DOMAIN_RE = re.compile(r"\.\s*\(([a-zA-Z0-9.-]+\.[a-zA-Z]{2,})\)")

_ESV_NOISE_RE = re.compile(r"esv=[^&\s]+&[^&\s]*")
_TRAILING_PUNCTUATION = ".,;:!?'\""

TextPass = Callable[[str], List[LinkCandidate]]


def _label(url: str) -> str:
    return host_without_www(url) or url


def _clean_bare_url(url: str) -> str:
    url = _ESV_NOISE_RE.sub("", url)
    url = re.sub(r"&+", "&", url)
    url = url.rstrip(_TRAILING_PUNCTUATION)
    # Closing parenthesis of surrounding prose
    while url.endswith(")") and url.count(")") > url.count("("):
        url = url[:-1].rstrip(_TRAILING_PUNCTUATION)
    return re.sub(r"[&?]$", "", url)


def google_search_links(text: str) -> List[LinkCandidate]:
    return [
        LinkCandidate(match.group(0).strip(), "Google Search", "search_link")
        for match in GOOGLE_SEARCH_RE.finditer(text)
    ]


def malformed_source_links(text: str) -> List[LinkCandidate]:
    """Repair ``(source=X" target="_blank" ...>domain)`` leftovers of broken HTML."""
    candidates = []
    for match in MALFORMED_SOURCE_RE.finditer(text):
        domain = match.group(2).strip()
        if not domain:
            continue
        url = domain if domain.startswith("http") else f"https://{domain}"
        candidates.append(LinkCandidate(url, domain, "source_attribute"))
    return candidates


def numbered_citations(text: str) -> List[LinkCandidate]:
    candidates = []
    for match in NUMBERED_CITATION_RE.finditer(text):
        url = match.group(2).strip()
        if not is_web_url(url):
            continue
        candidates.append(LinkCandidate(url, f"Citation {match.group(1)}: {_label(url)}", "numbered"))
    return candidates


def markdown_links(text: str) -> List[LinkCandidate]:
    candidates = []
    for match in MARKDOWN_LINK_RE.finditer(text):
        label = match.group(1).strip()
        # [n](url) is a footnote marker, not a titled link
        if label.isdigit():
            continue
        # Drop an optional "title" after the target
        parts = match.group(2).split()
        target = parts[0] if parts else ""
        if not is_web_url(target):
            continue
        candidates.append(LinkCandidate(target, label, "markdown_link"))
    return candidates


def bare_urls(text: str) -> List[LinkCandidate]:
    candidates = []
    for match in BARE_URL_RE.finditer(text):
        url = _clean_bare_url(match.group(0))
        if not is_web_url(url):
            continue
        candidates.append(LinkCandidate(url, _label(url), "plain_url"))
    return candidates


def domain_references(text: str) -> List[LinkCandidate]:
    """``(example.com)`` and the paragraph-ending ``. (example.com)`` form."""
    candidates = []
    for pattern in (DOMAIN_REFERENCE_RE, PARAGRAPH_DOMAIN_RE):
        for match in pattern.finditer(text):
            domain = match.group(1).strip(".")
            if "." not in domain:
                continue
            candidates.append(LinkCandidate(f"https://{domain}", domain, "domain_reference"))
    return candidates


ALL_TEXT_PASSES: List[TextPass] = [
    google_search_links,
    malformed_source_links,
    numbered_citations,
    markdown_links,
    bare_urls,
    domain_references,
]

# Perplexity answers carry structured references; its text fallback skips the
# HTML-repair and footnote passes.
FALLBACK_TEXT_PASSES: List[TextPass] = [
    google_search_links,
    markdown_links,
    bare_urls,
    domain_references,
]
