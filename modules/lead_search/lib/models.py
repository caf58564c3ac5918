from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# Built-in platform ids. The set is open: any adapter registered under a new
# key is selectable without changes elsewhere.
FACEBOOK = "facebook"
LINKEDIN = "linkedin"
INSTAGRAM = "instagram"

DEFAULT_PLATFORMS: tuple[str, ...] = (FACEBOOK, LINKEDIN, INSTAGRAM)
DEFAULT_KEYWORDS = "job vacancy"
DEFAULT_LOCATION = "Butwal, Nepal"

RADIUS_KM_RANGE = (1, 200)
MAX_RESULTS_RANGE = (1, 30)


class ValidationError(ValueError):
    """Raised when a caller-supplied query is malformed. Carries per-field details."""

    def __init__(self, details: list[str]):
        self.details = list(details)
        super().__init__("; ".join(self.details) or "invalid query")


class RunState(str, Enum):
    PENDING = "pending"
    FETCHING = "fetching"
    MERGING = "merging"
    SCORING = "scoring"
    RANKED = "ranked"
    DONE = "done"
    ALL_FAILED = "all_failed"


class PlatformState(str, Enum):
    PENDING = "pending"
    RETRYING = "retrying"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True)
class Query:
    """
    A validated search request. Build it with `Query.from_kwargs` so the
    request-layer rules (defaults, trimming, ranges, platform dedupe) apply.
    """

    keywords: str
    location: str
    platforms: tuple[str, ...]
    radius_km: float | None = None
    max_results: int | None = None

    @classmethod
    def from_kwargs(cls, kwargs: Mapping[str, Any] | None) -> Query:
        """
        Accepts snake_case or camelCase keys (radiusKm, maxResults):

            keywords: str = "job vacancy"
            location: str = "Butwal, Nepal"
            radius_km: number in [1, 200] (optional)
            platforms: list[str] = ["facebook", "linkedin", "instagram"]
            max_results: number in [1, 30] (optional)

        Missing keys take the defaults; present-but-blank values are rejected.
        """
        kw = dict(kwargs or {})
        errors: list[str] = []

        keywords = _text_field(kw, "keywords", DEFAULT_KEYWORDS, errors)
        location = _text_field(kw, "location", DEFAULT_LOCATION, errors)
        radius = _number_field(kw, ("radius_km", "radiusKm"), RADIUS_KM_RANGE, errors)
        max_results = _number_field(kw, ("max_results", "maxResults"), MAX_RESULTS_RANGE, errors)
        platforms = _platforms_field(kw, errors)

        if errors:
            raise ValidationError(errors)

        return cls(
            keywords=keywords,
            location=location,
            platforms=platforms,
            radius_km=float(radius) if radius is not None else None,
            max_results=int(max_results) if max_results is not None else None,
        )


@dataclass(frozen=True)
class RawPosting:
    """Adapter-specific payload; only the owning platform's normalizer reads it."""

    platform: str
    payload: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class SearchResult:
    id: str  # "<platform>:<native id or url hash>"
    platform: str
    title: str
    url: str
    snippet: str = ""
    relevance_score: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "platform": self.platform,
            "title": self.title,
            "url": self.url,
            "snippet": self.snippet,
            "relevanceScore": self.relevance_score,
        }


@dataclass(frozen=True)
class PlatformFailure:
    platform: str
    reason: str
    transient: bool
    attempts: int = 1


@dataclass(frozen=True)
class AggregationResult:
    """
    Outcome of one aggregation run.
    - results: ranked, deduplicated, truncated
    - platforms_queried: platforms actually attempted (registered ones)
    - platforms_succeeded: platforms whose data made it into the merge
    """

    results: tuple[SearchResult, ...]
    platforms_requested: tuple[str, ...]
    platforms_queried: tuple[str, ...]
    platforms_succeeded: tuple[str, ...]
    failures: tuple[PlatformFailure, ...] = ()
    unsupported: tuple[str, ...] = ()
    generated_at: str = ""
    state: RunState = RunState.DONE

    @property
    def total(self) -> int:
        return len(self.results)


@dataclass(frozen=True)
class Digest:
    text: str
    tokens_used: int

    def to_dict(self) -> dict[str, Any]:
        return {"summary": self.text, "tokensUsed": self.tokens_used}


@dataclass(frozen=True)
class SearchResponse:
    result: AggregationResult
    digest: Digest | None = None

    def to_dict(self) -> dict[str, Any]:
        r = self.result
        return {
            "results": [x.to_dict() for x in r.results],
            "summary": self.digest.to_dict() if self.digest else None,
            "generatedAt": r.generated_at,
            "total": r.total,
            "platforms": list(r.platforms_queried),
            "platformsSucceeded": list(r.platforms_succeeded),
            "failedPlatforms": {f.platform: f.reason for f in r.failures},
            "unsupportedPlatforms": list(r.unsupported),
        }


# -----------------------------
# Field helpers
# -----------------------------
def _text_field(kw: dict[str, Any], name: str, default: str, errors: list[str]) -> str:
    if name not in kw or kw[name] is None:
        return default
    val = kw[name]
    if not isinstance(val, str):
        errors.append(f"{name}: expected a string")
        return ""
    val = val.strip()
    if not val:
        errors.append(f"{name}: must not be empty")
    return val


def _number_field(
    kw: dict[str, Any],
    names: tuple[str, ...],
    bounds: tuple[int, int],
    errors: list[str],
) -> float | None:
    key = next((n for n in names if kw.get(n) is not None), None)
    if key is None:
        return None
    val = kw[key]
    # bool is an int subclass; a checkbox value is not a radius
    if isinstance(val, bool) or not isinstance(val, (int, float)):
        errors.append(f"{names[0]}: expected a number")
        return None
    lo, hi = bounds
    if not (lo <= val <= hi):
        errors.append(f"{names[0]}: must be between {lo} and {hi}")
        return None
    return val


def _platforms_field(kw: dict[str, Any], errors: list[str]) -> tuple[str, ...]:
    if "platforms" not in kw or kw["platforms"] is None:
        return DEFAULT_PLATFORMS
    raw = kw["platforms"]
    if isinstance(raw, str) or not isinstance(raw, (list, tuple, set, frozenset)):
        errors.append("platforms: expected a list of platform ids")
        return ()
    out: list[str] = []
    for i, item in enumerate(raw):
        if not isinstance(item, str) or not item.strip():
            errors.append(f"platforms[{i}]: expected a non-empty string")
            continue
        key = item.strip().lower()
        if key not in out:
            out.append(key)
    if not out and not errors:
        errors.append("platforms: select at least one platform")
    return tuple(out)
