# modules/lead_search/lib/adapters/site_search.py
from __future__ import annotations

import re
from typing import Any

from ..config import Settings
from ..http_client import HttpClient
from ..models import Query, RawPosting
from ..utils import getenv_str, squash
from .base import BaseAdapter, PermanentPlatformError

CSE_ENDPOINT = "https://www.googleapis.com/customsearch/v1"
_CSE_PAGE_SIZE = 10
_CSE_MAX_START = 91  # the API serves at most 100 results per query


class SiteSearchAdapter(BaseAdapter):
    """
    Platform search through Google Programmable Search (Custom Search JSON API),
    restricted to one site with `siteSearch`.

    Subclasses set:
      platform:    stable id, e.g. "facebook"
      site:        domain passed as siteSearch, e.g. "facebook.com"
      extra_terms: words appended to the keywords, e.g. ("hiring",)

    Credentials come from two env vars (names configurable via Settings):
      GOOGLE_CSE_API_KEY  -> sent as the X-goog-api-key header
      GOOGLE_CSE_ID       -> the `cx` engine id
    Missing either is a permanent failure for this platform only.

    Raw payload: one CSE `items[]` entry, e.g.
      {"title": ..., "link": ..., "snippet": ..., "displayLink": ...,
       "pagemap": {"metatags": [{"og:title": ..., "og:description": ...}]}}
    """

    site: str = ""
    extra_terms: tuple[str, ...] = ()

    def __init__(
        self,
        *,
        client: HttpClient | None = None,
        api_key_env: str = "GOOGLE_CSE_API_KEY",
        cse_id_env: str = "GOOGLE_CSE_ID",
        endpoint: str = CSE_ENDPOINT,
        default_limit: int = 30,
        skip_network: bool = False,
    ) -> None:
        super().__init__(default_limit=default_limit, skip_network=skip_network)
        self._client = client or HttpClient()
        self.api_key_env = api_key_env
        self.cse_id_env = cse_id_env
        self.endpoint = endpoint

    @classmethod
    def from_settings(cls, settings: Settings) -> SiteSearchAdapter:
        return cls(
            client=HttpClient(timeout=settings.timeout_for(cls.platform), retries=settings.http_retries),
            api_key_env=settings.google_api_key_env,
            cse_id_env=settings.google_cse_id_env,
            default_limit=settings.default_max_results,
            skip_network=settings.skip_network,
        )

    def build_q(self, query: Query) -> str:
        terms = [query.keywords, *self.extra_terms, f'"{query.location}"']
        return " ".join(t for t in terms if t)

    def _search(self, query: Query, limit: int) -> list[RawPosting]:
        api_key = getenv_str(self.api_key_env)
        cx = getenv_str(self.cse_id_env)
        if not api_key or not cx:
            raise PermanentPlatformError(
                self.platform, f"search credentials not configured ({self.api_key_env}, {self.cse_id_env})"
            )

        q = self.build_q(query)
        out: list[RawPosting] = []
        start = 1
        while len(out) < limit and start <= _CSE_MAX_START:
            num = min(_CSE_PAGE_SIZE, limit - len(out))
            data = self._client.get_json(
                self.endpoint,
                params={
                    "cx": cx,
                    "q": q,
                    "siteSearch": self.site,
                    "siteSearchFilter": "i",
                    "num": num,
                    "start": start,
                },
                headers={"X-goog-api-key": api_key},
            )
            if not isinstance(data, dict):
                raise ValueError(f"unexpected search response type {type(data).__name__}")
            items = [it for it in (data.get("items") or []) if isinstance(it, dict)]
            out.extend(RawPosting(platform=self.platform, payload=dict(it)) for it in items)
            if len(items) < num:
                break
            start += len(items)
        return out[:limit]

    def close(self) -> None:
        self._client.close()


# ---- helpers shared by the CSE-backed normalizers ----


def metatag(item: dict[str, Any], key: str) -> str:
    """First pagemap.metatags[*][key] value, or ''."""
    pagemap = item.get("pagemap") or {}
    tags = pagemap.get("metatags") if isinstance(pagemap, dict) else None
    for tag in tags or []:
        if isinstance(tag, dict) and tag.get(key):
            return squash(tag[key])
    return ""


def strip_site_suffix(title: str, names: tuple[str, ...]) -> str:
    """'Hiring now | Facebook' -> 'Hiring now'."""
    for name in names:
        title = re.sub(rf"\s*[|\-–·•]\s*{re.escape(name)}.*$", "", title, flags=re.I)
    return title.strip()
