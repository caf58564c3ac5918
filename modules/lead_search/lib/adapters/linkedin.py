# modules/lead_search/lib/adapters/linkedin.py
from __future__ import annotations

import logging
import re
from urllib.parse import urljoin

import requests
from bs4 import BeautifulSoup  # pip install beautifulsoup4 html5lib

from ..config import Settings
from ..http_client import HttpClient
from ..models import LINKEDIN, Query, RawPosting, SearchResult
from ..normalize import absolute_url, clean_snippet, clean_title, make_id
from .base import BaseAdapter

log = logging.getLogger(__name__)

_URN_RE = re.compile(r"urn:li:jobPosting:(\d+)")
_VIEW_ID_RE = re.compile(r"/jobs/view/(?:[^/?]*-)?(\d+)")
_KM_PER_MILE = 1.609344


def radius_to_distance(radius_km: float | None) -> int | None:
    """LinkedIn's `distance` is whole miles."""
    if radius_km is None:
        return None
    return max(1, round(radius_km / _KM_PER_MILE))


def normalize_linkedin(raw: RawPosting) -> SearchResult:
    card = raw.payload
    url = absolute_url(card.get("url"))
    m = _URN_RE.search(str(card.get("urn") or "")) or _VIEW_ID_RE.search(url)
    snippet = clean_snippet(card.get("company"), card.get("location"), card.get("listed"))
    return SearchResult(
        id=make_id(LINKEDIN, m.group(1) if m else "", url),
        platform=LINKEDIN,
        title=clean_title(card.get("title"), snippet),
        url=url,
        snippet=snippet,
    )


class LinkedInAdapter(BaseAdapter):
    """
    LinkedIn public job listings via the guest jobs endpoint (no login).

    Each page returns up to 25 `<li>` job cards of HTML. Per card we keep:
      {"urn": "urn:li:jobPosting:<id>", "title": ..., "company": ...,
       "location": ..., "listed": "<datetime or text>", "url": ...}

    Paging stops when the cap is met or a page yields no cards. An error on
    the first page fails the platform; a later page error keeps what was read.
    """

    platform = LINKEDIN
    BASE_URL = "https://www.linkedin.com"
    SEARCH_PATH = "/jobs-guest/jobs/api/seeMoreJobPostings/search"
    PAGE_SIZE = 25

    def __init__(
        self,
        *,
        client: HttpClient | None = None,
        default_limit: int = 30,
        skip_network: bool = False,
    ) -> None:
        super().__init__(default_limit=default_limit, skip_network=skip_network)
        self._client = client or HttpClient()

    @classmethod
    def from_settings(cls, settings: Settings) -> LinkedInAdapter:
        return cls(
            client=HttpClient(timeout=settings.timeout_for(cls.platform), retries=settings.http_retries),
            default_limit=settings.default_max_results,
            skip_network=settings.skip_network,
        )

    def _search(self, query: Query, limit: int) -> list[RawPosting]:
        params: dict[str, object] = {"keywords": query.keywords, "location": query.location}
        distance = radius_to_distance(query.radius_km)
        if distance is not None:
            params["distance"] = distance

        out: list[RawPosting] = []
        start = 0
        while len(out) < limit:
            try:
                html = self._client.get_text(self.BASE_URL + self.SEARCH_PATH, params={**params, "start": start})
            except requests.RequestException:
                if not out:
                    raise
                log.debug("linkedin: stopping pagination at start=%d", start, exc_info=True)
                break
            cards = self.parse_cards(html)
            if not cards:
                break
            out.extend(RawPosting(platform=self.platform, payload=c) for c in cards)
            start += self.PAGE_SIZE
        return out[:limit]

    def normalize(self, raw: RawPosting) -> SearchResult:
        return normalize_linkedin(raw)

    def close(self) -> None:
        self._client.close()

    # ---- internals ----

    def parse_cards(self, html: str) -> list[dict[str, str]]:
        """Return one dict per job card found in a guest-listing HTML fragment."""
        soup = BeautifulSoup(html, "html5lib")
        out: list[dict[str, str]] = []

        for card in soup.select("div.base-card, div.job-search-card"):
            link = card.select_one("a.base-card__full-link") or card.select_one("a[href*='/jobs/view/']")
            href = (link.get("href") or "").strip() if link else ""
            if not href:
                continue

            title_el = card.select_one("h3.base-search-card__title")
            company_el = card.select_one("h4.base-search-card__subtitle")
            location_el = card.select_one("span.job-search-card__location")
            time_el = card.select_one("time")

            out.append({
                "urn": (card.get("data-entity-urn") or "").strip(),
                "title": title_el.get_text(" ", strip=True) if title_el else "",
                "company": company_el.get_text(" ", strip=True) if company_el else "",
                "location": location_el.get_text(" ", strip=True) if location_el else "",
                "listed": (time_el.get("datetime") or time_el.get_text(strip=True)) if time_el else "",
                "url": urljoin(self.BASE_URL, href),
            })
        return out
