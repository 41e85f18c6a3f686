"""URL helpers shared by the citation extractors."""

from typing import Iterable, List, Optional
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from visibility.models import Citation

TRACKING_PARAMS = frozenset(
    {
        "utm_source",
        "utm_medium",
        "utm_campaign",
        "utm_term",
        "utm_content",
        "gclid",
        "fbclid",
    }
)

GOOGLE_SEARCH_MARKER = "google.com/search?"


def _split_web_url(url: str):
    try:
        parts = urlsplit(url.strip())
    except ValueError:
        return None
    if parts.scheme.lower() not in ("http", "https") or not parts.netloc:
        return None
    return parts


def is_web_url(url: str) -> bool:
    """True when the string parses as an absolute http(s) URL."""
    return _split_web_url(url) is not None


def normalize_url(url: str) -> str:
    """Identity key for a URL.

    Tracking parameters and the fragment are dropped, scheme and host are
    lowercased. Strings that do not parse as web URLs compare on their
    trimmed raw form.
    """
    parts = _split_web_url(url)
    if parts is None:
        return url.strip()

    query = urlencode(
        [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in TRACKING_PARAMS]
    )
    return urlunsplit(
        (parts.scheme.lower(), parts.netloc.lower(), parts.path or "/", query, "")
    )


def host_without_www(url: str) -> Optional[str]:
    """Hostname of ``url`` minus a leading ``www.``, or None if it has none."""
    parts = _split_web_url(url)
    if parts is None or not parts.hostname:
        return None
    host = parts.hostname.lower()
    return host[4:] if host.startswith("www.") else host


def is_google_search(url: str) -> bool:
    return GOOGLE_SEARCH_MARKER in url


def dedupe_citations(citations: Iterable[Citation]) -> List[Citation]:
    """Keep the first citation for each normalized URL, preserving order."""
    seen = set()
    unique = []
    for citation in citations:
        key = normalize_url(citation.url)
        if key in seen:
            continue
        seen.add(key)
        unique.append(citation)
    return unique
