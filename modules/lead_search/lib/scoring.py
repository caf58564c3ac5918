"""
Relevance scoring on a fixed 0-100 scale.

    score = W_keyword  * keyword_match(query.keywords, title, snippet)
          + W_location * location_match(query.location, title + snippet)
          + min(prior[platform], W_platform)

Defaults (see config.ScoringWeights / DEFAULT_PLATFORM_PRIORS):
    W_keyword = 70, W_location = 25, W_platform = 5
    priors: facebook 3.0, linkedin 2.0, instagram 1.0

keyword_match is the share of distinct query tokens found in the posting;
a token found in the title counts 1.0, found only in the snippet 0.75.
location_match is 1.0 when the whole location phrase appears, else the share
of location tokens found. Everything is pure and deterministic.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import replace
from typing import Protocol

from .config import ScoringWeights, Settings
from .models import Query, SearchResult

SNIPPET_ONLY_CREDIT = 0.75

_TOKEN_RE = re.compile(r"[a-z0-9]+")
_STOPWORDS = frozenset(
    "a an and are at for from in is of on or the to with we our you your job jobs".split()
)


class Scorer(Protocol):
    def score(self, result: SearchResult, query: Query) -> float: ...


def _stem(tok: str) -> str:
    return tok[:-1] if len(tok) > 3 and tok.endswith("s") and not tok.endswith("ss") else tok


def tokenize(text: str, *, keep_stopwords: bool = False) -> list[str]:
    toks = [_stem(t) for t in _TOKEN_RE.findall((text or "").casefold())]
    if keep_stopwords:
        return toks
    return [t for t in toks if t not in _STOPWORDS]


def _query_tokens(keywords: str) -> list[str]:
    # "jobs" alone is a stopword; fall back to raw tokens rather than an empty query
    toks = tokenize(keywords) or tokenize(keywords, keep_stopwords=True)
    return list(dict.fromkeys(toks))


def keyword_match(keywords: str, title: str, snippet: str) -> float:
    q = _query_tokens(keywords)
    if not q:
        return 0.0
    title_toks = set(tokenize(title, keep_stopwords=True))
    snippet_toks = set(tokenize(snippet, keep_stopwords=True))
    credit = 0.0
    for tok in q:
        if tok in title_toks:
            credit += 1.0
        elif tok in snippet_toks:
            credit += SNIPPET_ONLY_CREDIT
    return credit / len(q)


def location_match(location: str, text: str) -> float:
    phrase = " ".join(tokenize(location, keep_stopwords=True))
    if not phrase:
        return 0.0
    hay_toks = tokenize(text, keep_stopwords=True)
    if f" {phrase} " in f" {' '.join(hay_toks)} ":
        return 1.0
    loc_toks = list(dict.fromkeys(phrase.split()))
    hay = set(hay_toks)
    return sum(1 for t in loc_toks if t in hay) / len(loc_toks)


class RelevanceScorer:
    """Default Scorer: weighted keyword + location match plus a capped platform prior."""

    def __init__(
        self,
        weights: ScoringWeights | None = None,
        priors: Mapping[str, float] | None = None,
    ) -> None:
        self.weights = weights or ScoringWeights()
        self.priors = dict(priors or {})

    @classmethod
    def from_settings(cls, settings: Settings) -> RelevanceScorer:
        return cls(settings.scoring, settings.platform_priors)

    def score(self, result: SearchResult, query: Query) -> float:
        w = self.weights
        kw = keyword_match(query.keywords, result.title, result.snippet)
        loc = location_match(query.location, f"{result.title} {result.snippet}")
        prior = min(max(self.priors.get(result.platform, 0.0), 0.0), w.platform)
        total = w.keyword * kw + w.location * loc + prior
        return round(min(max(total, 0.0), 100.0), 2)


def score_all(results: list[SearchResult], query: Query, scorer: Scorer) -> list[SearchResult]:
    return [replace(r, relevance_score=float(scorer.score(r, query))) for r in results]
