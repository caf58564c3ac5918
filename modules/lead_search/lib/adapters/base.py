from __future__ import annotations

from abc import ABC, abstractmethod

import requests

from ..models import Query, RawPosting, SearchResult


class PlatformError(Exception):
    """Base exception for a failed platform search. Absorbed per platform by the engine."""

    transient: bool = False

    def __init__(self, platform: str, message: str):
        self.platform = platform
        super().__init__(f"{platform}: {message}")


class TransientPlatformError(PlatformError):
    """Network trouble, timeouts, throttling, upstream 5xx. Retried once per run."""

    transient = True


class PermanentPlatformError(PlatformError):
    """Missing credentials, rejected query, unreadable response. Not retried."""


# A malformed request never succeeds on retry
_BAD_REQUEST_ERRORS = (
    requests.exceptions.InvalidURL,
    requests.exceptions.MissingSchema,
    requests.exceptions.InvalidSchema,
    requests.exceptions.URLRequired,
)


def classify_error(platform: str, exc: Exception) -> PlatformError:
    """Map a transport/parse exception onto the transient/permanent split."""
    if isinstance(exc, PlatformError):
        return exc
    if isinstance(exc, requests.HTTPError):
        status = exc.response.status_code if exc.response is not None else 0
        if status == 429 or status >= 500:
            return TransientPlatformError(platform, f"HTTP {status}")
        return PermanentPlatformError(platform, f"HTTP {status}")
    if isinstance(exc, _BAD_REQUEST_ERRORS):
        return PermanentPlatformError(platform, f"{type(exc).__name__}: {exc}")
    if isinstance(exc, (requests.Timeout, requests.ConnectionError)):
        return TransientPlatformError(platform, f"{type(exc).__name__}: {exc}")
    if isinstance(exc, requests.RequestException):
        return TransientPlatformError(platform, repr(exc))
    return PermanentPlatformError(platform, repr(exc))


class BaseAdapter(ABC):
    """
    Abstract platform adapter.

    Contract:
      - search(query) returns at most `limit` RawPosting objects for this
        platform; an empty list is a successful search.
      - Failures surface as TransientPlatformError / PermanentPlatformError.
      - normalize(raw) turns one of this adapter's RawPostings into a
        SearchResult (pure; may raise on malformed payloads).
      - Do NOT print or mutate shared state; one instance may be reused
        across runs but holds nothing query-specific.
    """

    # Concrete subclasses MUST set this to a stable lower-case id, e.g. "linkedin"
    platform: str = ""

    def __init__(self, *, default_limit: int = 30, skip_network: bool = False) -> None:
        self.default_limit = int(default_limit)
        self.skip_network = skip_network

    def limit_for(self, query: Query) -> int:
        if query.max_results is None:
            return self.default_limit
        return min(query.max_results, self.default_limit)

    def search(self, query: Query) -> list[RawPosting]:
        """
        Template method: honor skip_network, translate transport errors,
        and enforce the result bound.
        """
        if self.skip_network:
            return []
        limit = self.limit_for(query)
        try:
            raws = self._search(query, limit)
        except (requests.RequestException, ValueError) as e:
            raise classify_error(self.platform, e) from e
        return list(raws)[:limit]

    @abstractmethod
    def _search(self, query: Query, limit: int) -> list[RawPosting]:
        raise NotImplementedError

    @abstractmethod
    def normalize(self, raw: RawPosting) -> SearchResult:
        raise NotImplementedError

    def close(self) -> None:
        """Release network resources (no-op by default)."""
