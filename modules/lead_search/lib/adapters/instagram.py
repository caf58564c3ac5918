from __future__ import annotations

import re

from ..models import INSTAGRAM, RawPosting, SearchResult
from ..normalize import absolute_url, clean_snippet, clean_title, make_id
from .site_search import SiteSearchAdapter, metatag, strip_site_suffix

_SHORTCODE_RE = re.compile(r"instagram\.com/(?:[\w.]+/)?(?:p|reel|tv)/([A-Za-z0-9_-]+)")
# CSE titles look like: Acme Jobs on Instagram: "We're hiring ..."
_CAPTION_TITLE_RE = re.compile(r'^(?P<who>.+?) on Instagram:\s*["“](?P<caption>.*?)["”]?\s*$')


def normalize_instagram(raw: RawPosting) -> SearchResult:
    item = raw.payload
    url = absolute_url(item.get("link"))
    m = _SHORTCODE_RE.search(url)

    title = str(item.get("title") or "")
    cm = _CAPTION_TITLE_RE.match(title)
    if cm and cm.group("caption"):
        title = f"{cm.group('caption')} ({cm.group('who')})"
    title = strip_site_suffix(title, ("Instagram photos and videos", "Instagram"))

    snippet = clean_snippet(metatag(item, "og:description") or item.get("snippet"))
    return SearchResult(
        id=make_id(INSTAGRAM, m.group(1) if m else "", url),
        platform=INSTAGRAM,
        title=clean_title(title, snippet),
        url=url,
        snippet=snippet,
    )


class InstagramAdapter(SiteSearchAdapter):
    """Instagram posts/reels whose captions match the query."""

    platform = INSTAGRAM
    site = "instagram.com"

    def normalize(self, raw: RawPosting) -> SearchResult:
        return normalize_instagram(raw)
