"""Source diversity summary for a list of citations."""

from typing import Sequence

from visibility.citations.urls import host_without_www
from visibility.models import Citation, DomainSummary


def summarize_domains(citations: Sequence[Citation]) -> DomainSummary:
    """Count unique domains and bucket them by type.

    The diversity score is the share of citations pointing at a distinct
    domain, 0-100.
    """
    summary = DomainSummary()
    if not citations:
        return summary

    domains = [host_without_www(c.url) or c.url for c in citations]
    unique = set(domains)

    for domain in domains:
        matched = False
        if ".edu" in domain:
            summary.domain_types["educational"] += 1
            matched = True
        if ".gov" in domain:
            summary.domain_types["government"] += 1
            matched = True
        if ".com" in domain:
            summary.domain_types["commercial"] += 1
            matched = True
        if "wikipedia" in domain:
            summary.domain_types["wikipedia"] += 1
            matched = True
        if not matched:
            summary.domain_types["other"] += 1

    summary.total_domains = len(unique)
    summary.diversity_score = round(len(unique) / len(citations) * 100)
    return summary
