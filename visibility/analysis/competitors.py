"""Competitor detection in answer text."""

import difflib
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Union

from visibility.models import Citation, Competitor

CompetitorLike = Union[str, Competitor]

_WORD_RE = re.compile(r"[a-z0-9][a-z0-9.&'-]*")

# Shorter candidates produce too many accidental fuzzy hits
MIN_FUZZY_LENGTH = 4


@dataclass
class MatchResult:
    """A competitor found in a piece of text"""
    competitor: Competitor
    match_type: str  # "name", "domain", "alias", "fuzzy"
    matched_value: str
    score: Optional[float] = None


def normalize(value: str) -> str:
    value = value.lower().strip()
    return value[4:] if value.startswith("www.") else value


class CompetitorMatcher:
    """Match competitors by name, then domain, then alias, then fuzzily.

    At most one match is reported per competitor.
    """

    def __init__(self, competitors: Iterable[CompetitorLike], fuzzy_threshold: float = 0.85):
        self.competitors: List[Competitor] = [Competitor.coerce(c) for c in competitors]
        self.fuzzy_threshold = fuzzy_threshold

    def match(self, text: str) -> List[MatchResult]:
        if not text or not self.competitors:
            return []

        normalized = normalize(text)
        words = _WORD_RE.findall(normalized)
        results = []

        for competitor in self.competitors:
            result = self._match_one(competitor, normalized, words)
            if result is not None:
                results.append(result)

        return results

    def _match_one(self, competitor: Competitor, text: str, words: Sequence[str]) -> Optional[MatchResult]:
        name = normalize(competitor.name)
        if name and name in text:
            return MatchResult(competitor, "name", competitor.name)

        if competitor.domain and normalize(competitor.domain) in text:
            return MatchResult(competitor, "domain", competitor.domain)

        for alias in competitor.aliases:
            if normalize(alias) and normalize(alias) in text:
                return MatchResult(competitor, "alias", alias)

        for candidate in [competitor.name, *competitor.aliases]:
            score = self._fuzzy_score(normalize(candidate), words)
            if score is not None:
                return MatchResult(competitor, "fuzzy", candidate, score=score)

        return None

    def _fuzzy_score(self, candidate: str, words: Sequence[str]) -> Optional[float]:
        if len(candidate) < MIN_FUZZY_LENGTH or not words:
            return None

        size = max(1, len(candidate.split()))
        windows = [" ".join(words[i:i + size]) for i in range(max(1, len(words) - size + 1))]
        close = difflib.get_close_matches(candidate, windows, n=1, cutoff=self.fuzzy_threshold)
        if not close:
            return None
        return round(difflib.SequenceMatcher(None, candidate, close[0]).ratio(), 3)

    def is_cited(self, citation: Citation) -> bool:
        """Competitor name or alias appears in the citation URL or text."""
        url = citation.url.lower()
        label = citation.text.lower()
        for competitor in self.competitors:
            for value in [competitor.name, *competitor.aliases]:
                value = value.lower().strip()
                if value and (value in url or value in label):
                    return True
        return False
