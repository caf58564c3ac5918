from __future__ import annotations

import re

from ..models import FACEBOOK, RawPosting, SearchResult
from ..normalize import absolute_url, clean_snippet, clean_title, make_id
from .site_search import SiteSearchAdapter, metatag, strip_site_suffix

# Post identity as it appears in the common Facebook URL shapes
_ID_PATTERNS = (
    re.compile(r"[?&]story_fbid=([\w-]+)"),
    re.compile(r"/permalink/(\d+)"),
    re.compile(r"/posts/([\w.-]+)"),
    re.compile(r"[?&]fbid=(\d+)"),
    re.compile(r"/videos/(\d+)"),
)


def native_post_id(url: str) -> str:
    for pat in _ID_PATTERNS:
        m = pat.search(url)
        if m:
            return m.group(1)
    return ""


def normalize_facebook(raw: RawPosting) -> SearchResult:
    item = raw.payload
    url = absolute_url(item.get("link"))
    snippet = clean_snippet(metatag(item, "og:description") or item.get("snippet"))
    title = strip_site_suffix(metatag(item, "og:title") or str(item.get("title") or ""), ("Facebook",))
    return SearchResult(
        id=make_id(FACEBOOK, native_post_id(url), url),
        platform=FACEBOOK,
        title=clean_title(title, snippet),
        url=url,
        snippet=snippet,
    )


class FacebookAdapter(SiteSearchAdapter):
    """Public Facebook posts and group threads that mention hiring for the query."""

    platform = FACEBOOK
    site = "facebook.com"
    extra_terms = ("hiring",)

    def normalize(self, raw: RawPosting) -> SearchResult:
        return normalize_facebook(raw)
