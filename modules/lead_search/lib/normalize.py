"""
Shared pieces of the per-platform normalizers.

Each adapter module owns a pure `normalize_<platform>(raw)` function built
from these helpers; `normalize_batch` runs one adapter's batch and drops
malformed postings with a warning instead of failing the run.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from . import logging_bridge
from .models import RawPosting, SearchResult
from .utils import clip, short_hash, squash

if TYPE_CHECKING:
    from .adapters.base import BaseAdapter

TITLE_MAX_CHARS = 200
SNIPPET_MAX_CHARS = 500
UNTITLED = "(untitled)"


class MalformedPosting(ValueError):
    """A raw posting cannot be turned into a SearchResult (e.g. no usable URL)."""


def absolute_url(value: object) -> str:
    url = squash(value)
    parts = urlsplit(url)
    if parts.scheme not in ("http", "https") or not parts.netloc:
        raise MalformedPosting(f"not an absolute http(s) url: {url!r}")
    return url


def make_id(platform: str, native_id: object, url: str) -> str:
    """'<platform>:<native id>', or '<platform>:<sha1(url)[:16]>' when no native id exists."""
    nid = squash(native_id)
    return f"{platform}:{nid or short_hash(url)}"


def clean_title(title: object, snippet: str = "") -> str:
    t = squash(title)
    if not t and snippet:
        t = snippet.split(". ")[0]
    return clip(t, TITLE_MAX_CHARS) if t else UNTITLED


def clean_snippet(*parts: object) -> str:
    return clip(" · ".join(p for p in (squash(x) for x in parts) if p), SNIPPET_MAX_CHARS)


def normalize_batch(adapter: BaseAdapter, raws: Iterable[RawPosting]) -> list[SearchResult]:
    out: list[SearchResult] = []
    for idx, raw in enumerate(raws):
        try:
            out.append(adapter.normalize(raw))
        except (MalformedPosting, KeyError, TypeError, ValueError) as e:
            logging_bridge.warning({
                "component": "lead_search.normalize",
                "op": "dropped_posting",
                "platform": adapter.platform,
                "index": idx,
                "error": repr(e),
            })
    return out
