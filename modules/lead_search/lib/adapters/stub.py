from __future__ import annotations

import time
from collections.abc import Iterable, Mapping
from typing import Any

from ..models import Query, RawPosting, SearchResult
from ..normalize import absolute_url, clean_snippet, clean_title, make_id
from .base import BaseAdapter, PermanentPlatformError, TransientPlatformError


class StubAdapter(BaseAdapter):
    """
    A zero-network adapter used for tests and dry-runs.

    Args:
      platform: id to register under (stubs can stand in for any platform)
      postings: list[{id?, title, url, snippet?}] served on every successful call
      failures: scripted outcome per call, consumed in order:
                "transient" | "permanent" | "ok"; once exhausted, calls succeed
      delay_s:  simulated latency per call (for deadline tests)

    `calls` counts search() invocations.
    """

    def __init__(
        self,
        platform: str,
        postings: Iterable[Mapping[str, Any]] = (),
        *,
        failures: Iterable[str] = (),
        delay_s: float = 0.0,
        default_limit: int = 30,
    ) -> None:
        super().__init__(default_limit=default_limit)
        self.platform = platform
        self._postings = [dict(p) for p in postings]
        self._failures = list(failures)
        self.delay_s = float(delay_s)
        self.calls = 0

    def _search(self, query: Query, limit: int) -> list[RawPosting]:
        self.calls += 1
        if self.delay_s > 0:
            time.sleep(self.delay_s)
        outcome = self._failures.pop(0) if self._failures else "ok"
        if outcome == "transient":
            raise TransientPlatformError(self.platform, "simulated timeout")
        if outcome == "permanent":
            raise PermanentPlatformError(self.platform, "simulated rejection")
        return [RawPosting(platform=self.platform, payload=dict(p)) for p in self._postings[:limit]]

    def normalize(self, raw: RawPosting) -> SearchResult:
        item = raw.payload
        url = absolute_url(item.get("url"))
        snippet = clean_snippet(item.get("snippet"))
        return SearchResult(
            id=make_id(self.platform, item.get("id"), url),
            platform=self.platform,
            title=clean_title(item.get("title"), snippet),
            url=url,
            snippet=snippet,
        )
