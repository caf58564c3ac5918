"""
Collapse postings that describe the same lead, within or across platforms.

Two results are the same lead when they share a similarity key:
  - id:    identical SearchResult.id
  - url:   host (minus www./m./mobile./web.) + path (minus trailing slash),
           query string dropped except identity params like story_fbid
  - title: case-folded, punctuation-free title with at least two tokens,
           paired with the url fingerprint

Grouping is a hash-map union-find over those keys, so cost stays linear in
the number of results. Each group keeps its best member; survivors stay in
discovery order and no two of them share a key, so running it again on its
own output changes nothing.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Iterable
from urllib.parse import parse_qsl, urlencode, urlsplit

from .models import SearchResult
from .normalize import UNTITLED

_HOST_PREFIXES = ("www.", "m.", "mobile.", "web.")
_IDENTITY_PARAMS = frozenset({"story_fbid", "fbid", "id", "currentjobid", "v"})
_TITLE_TOKEN_RE = re.compile(r"[^\W_]+", re.UNICODE)


def url_fingerprint(url: str) -> str:
    parts = urlsplit(url.strip())
    host = (parts.hostname or "").lower()
    for prefix in _HOST_PREFIXES:
        if host.startswith(prefix):
            host = host[len(prefix):]
            break
    path = re.sub(r"/{2,}", "/", parts.path or "").rstrip("/")
    keep = sorted((k.lower(), v) for k, v in parse_qsl(parts.query) if k.lower() in _IDENTITY_PARAMS)
    return f"{host}{path}" + (f"?{urlencode(keep)}" if keep else "")


def title_key(title: str) -> str:
    toks = _TITLE_TOKEN_RE.findall((title or "").casefold())
    if len(toks) < 2 or title == UNTITLED:
        return ""
    return " ".join(toks)


def similarity_keys(result: SearchResult) -> list[str]:
    fp = url_fingerprint(result.url)
    keys = [f"id:{result.id}", f"url:{fp}"]
    tk = title_key(result.title)
    if tk:
        # title only groups together with the url; same-titled posts elsewhere stay separate
        keys.append(f"title:{tk}|{fp}")
    return keys


def dedupe(
    results: Iterable[SearchResult],
    priority_rank: Callable[[str], int] | None = None,
) -> list[SearchResult]:
    """
    Keep one representative per group of duplicates: highest relevance_score,
    then better platform priority (lower rank), then first seen.
    """
    items = list(results)
    rank = priority_rank or (lambda _platform: 0)

    parent = list(range(len(items)))

    def find(i: int) -> int:
        while parent[i] != i:
            parent[i] = parent[parent[i]]
            i = parent[i]
        return i

    owner: dict[str, int] = {}
    for idx, item in enumerate(items):
        for key in similarity_keys(item):
            if key in owner:
                a, b = find(owner[key]), find(idx)
                if a != b:
                    parent[max(a, b)] = min(a, b)
            else:
                owner[key] = idx

    best: dict[int, int] = {}
    for idx, item in enumerate(items):
        root = find(idx)
        cur = best.get(root)
        if cur is None or _better(item, idx, items[cur], cur, rank):
            best[root] = idx

    return [items[i] for i in sorted(best.values())]


def _better(a: SearchResult, ia: int, b: SearchResult, ib: int, rank: Callable[[str], int]) -> bool:
    return (-a.relevance_score, rank(a.platform), ia) < (-b.relevance_score, rank(b.platform), ib)
