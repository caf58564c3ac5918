from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from .models import DEFAULT_PLATFORMS, FACEBOOK, INSTAGRAM, LINKEDIN, MAX_RESULTS_RANGE
from .utils import truthy


# -----------------------------
# Exceptions
# -----------------------------
class ConfigError(ValueError):
    """Raised when provided kwargs/env cannot form a valid Settings."""


# -----------------------------
# Models
# -----------------------------
@dataclass(frozen=True)
class ScoringWeights:
    """
    Relevance weights on a 0-100 scale.
    - keyword:  full credit when every query keyword appears in the title
    - location: full credit when the location phrase appears in the posting
    - platform: ceiling for the per-platform prior (tie-breaker only)
    """

    keyword: float = 70.0
    location: float = 25.0
    platform: float = 5.0


DEFAULT_PLATFORM_PRIORS: dict[str, float] = {
    FACEBOOK: 3.0,
    LINKEDIN: 2.0,
    INSTAGRAM: 1.0,
}


@dataclass
class Settings:
    """
    Canonical configuration for a lead search run.

    Secrets are never stored here: the *_env fields hold the NAME of the
    environment variable to read at call time (e.g. "OPENAI_API_KEY").
    """

    # Ranking / truncation
    default_max_results: int = MAX_RESULTS_RANGE[1]
    platform_priority: tuple[str, ...] = DEFAULT_PLATFORMS
    scoring: ScoringWeights = field(default_factory=ScoringWeights)
    platform_priors: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_PLATFORM_PRIORS))
    score_floor: float = 0.0

    # Fan-out
    max_threads: int = 8
    adapter_timeout_s: float = 10.0
    adapter_timeouts: dict[str, float] = field(default_factory=dict)
    run_deadline_s: float = 25.0
    retry_backoff_s: float = 0.5
    http_retries: int = 0
    skip_network: bool = False

    # Upstream credentials (env var names)
    google_api_key_env: str = "GOOGLE_CSE_API_KEY"
    google_cse_id_env: str = "GOOGLE_CSE_ID"

    # Digest
    enable_digest: bool = True
    openai_api_key_env: str = "OPENAI_API_KEY"
    openai_model_env: str = "OPENAI_MODEL_LEADS"
    openai_temp_env: str = "OPENAI_TEMP_LEADS"
    digest_top_k: int = 8
    digest_max_tokens: int = 350
    digest_max_source_chars: int = 4000

    # ------------- convenience -------------
    def timeout_for(self, platform: str) -> float:
        return float(self.adapter_timeouts.get(platform, self.adapter_timeout_s))

    def priority_rank(self, platform: str) -> int:
        """Position in platform_priority; unknown platforms rank after all known ones."""
        try:
            return self.platform_priority.index(platform)
        except ValueError:
            return len(self.platform_priority)

    def result_cap(self, requested: int | None) -> int:
        if requested is None:
            return self.default_max_results
        return min(int(requested), self.default_max_results)

    # ------------- constructors -------------
    @classmethod
    def from_env_and_kwargs(cls, kwargs: Mapping[str, Any] | None) -> Settings:
        """
        Build Settings from kwargs with validation. All keys are optional:

            default_max_results: int = 30
            platform_priority: list[str] = ["facebook", "linkedin", "instagram"]
            scoring: {"keyword": 70, "location": 25, "platform": 5}
            platform_priors: {"facebook": 3.0, ...}
            score_floor: float = 0.0

            max_threads: int = 8
            adapter_timeout_s: float = 10.0
            adapter_timeouts: {"linkedin": 6.0, ...}
            run_deadline_s: float = 25.0
            retry_backoff_s: float = 0.5
            http_retries: int = 0
            skip_network: bool = false

            google_api_key_env / google_cse_id_env: str
            enable_digest: bool = true
            openai_api_key_env / openai_model_env / openai_temp_env: str
            digest_top_k: int = 8
            digest_max_tokens: int = 350
            digest_max_source_chars: int = 4000
        """
        kw = dict(kwargs or {})
        base = cls()

        try:
            settings = cls(
                default_max_results=int(_first_set(kw.get("default_max_results"), base.default_max_results)),
                platform_priority=_parse_priority(kw.get("platform_priority")) or base.platform_priority,
                scoring=_parse_weights(kw.get("scoring"), base.scoring),
                platform_priors=_parse_float_map(kw.get("platform_priors"), "platform_priors")
                or dict(base.platform_priors),
                score_floor=float(_first_set(kw.get("score_floor"), base.score_floor)),
                max_threads=int(_first_set(kw.get("max_threads"), base.max_threads)),
                adapter_timeout_s=float(_first_set(kw.get("adapter_timeout_s"), base.adapter_timeout_s)),
                adapter_timeouts=_parse_float_map(kw.get("adapter_timeouts"), "adapter_timeouts"),
                run_deadline_s=float(_first_set(kw.get("run_deadline_s"), base.run_deadline_s)),
                retry_backoff_s=float(_first_set(kw.get("retry_backoff_s"), base.retry_backoff_s)),
                http_retries=int(_first_set(kw.get("http_retries"), base.http_retries)),
                skip_network=truthy(kw.get("skip_network")),
                google_api_key_env=str(kw.get("google_api_key_env") or base.google_api_key_env),
                google_cse_id_env=str(kw.get("google_cse_id_env") or base.google_cse_id_env),
                enable_digest=truthy(_first_set(kw.get("enable_digest"), True)),
                openai_api_key_env=str(kw.get("openai_api_key_env") or base.openai_api_key_env),
                openai_model_env=str(kw.get("openai_model_env") or base.openai_model_env),
                openai_temp_env=str(kw.get("openai_temp_env") or base.openai_temp_env),
                digest_top_k=int(_first_set(kw.get("digest_top_k"), base.digest_top_k)),
                digest_max_tokens=int(_first_set(kw.get("digest_max_tokens"), base.digest_max_tokens)),
                digest_max_source_chars=int(_first_set(kw.get("digest_max_source_chars"), base.digest_max_source_chars)),
            )
        except ConfigError:
            raise
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid lead_search setting: {e}") from e

        _validate_settings(settings)
        return settings


# -----------------------------
# Helpers
# -----------------------------
def _first_set(value: Any, default: Any) -> Any:
    """Like `value or default`, but keeps explicit zeros/False."""
    return default if value is None or value == "" else value


def _parse_priority(value: Any) -> tuple[str, ...]:
    if not value:
        return ()
    if not isinstance(value, (list, tuple)):
        raise ConfigError("'platform_priority' must be a list of platform ids.")
    out: list[str] = []
    for item in value:
        key = str(item or "").strip().lower()
        if key and key not in out:
            out.append(key)
    return tuple(out)


def _parse_float_map(value: Any, name: str) -> dict[str, float]:
    if not value:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigError(f"'{name}' must be an object of platform -> number.")
    return {str(k).strip().lower(): float(v) for k, v in value.items()}


def _parse_weights(value: Any, default: ScoringWeights) -> ScoringWeights:
    if not value:
        return default
    if isinstance(value, ScoringWeights):
        return value
    if not isinstance(value, Mapping):
        raise ConfigError("'scoring' must be an object with keyword/location/platform.")
    return ScoringWeights(
        keyword=float(_first_set(value.get("keyword"), default.keyword)),
        location=float(_first_set(value.get("location"), default.location)),
        platform=float(_first_set(value.get("platform"), default.platform)),
    )


def _validate_settings(s: Settings) -> None:
    lo, hi = MAX_RESULTS_RANGE
    if not (lo <= s.default_max_results <= hi):
        raise ConfigError(f"'default_max_results' must be between {lo} and {hi}.")
    if s.max_threads <= 0:
        raise ConfigError("'max_threads' must be >= 1.")
    if s.adapter_timeout_s <= 0 or any(t <= 0 for t in s.adapter_timeouts.values()):
        raise ConfigError("Adapter timeouts must be > 0 seconds.")
    if s.run_deadline_s <= 0:
        raise ConfigError("'run_deadline_s' must be > 0 seconds.")
    if s.retry_backoff_s < 0:
        raise ConfigError("'retry_backoff_s' cannot be negative.")
    if s.http_retries < 0:
        raise ConfigError("'http_retries' cannot be negative.")

    w = s.scoring
    if min(w.keyword, w.location, w.platform) < 0:
        raise ConfigError("Scoring weights cannot be negative.")
    if w.keyword + w.location + w.platform > 100:
        raise ConfigError("Scoring weights must sum to at most 100.")
    # The platform prior is a tie-breaker; it must stay small next to content match.
    if w.platform > 0.1 * (w.keyword + w.location):
        raise ConfigError("'scoring.platform' must be <= 10% of keyword + location weights.")
    if any(p < 0 for p in s.platform_priors.values()):
        raise ConfigError("Platform priors cannot be negative.")
    if s.score_floor < 0:
        raise ConfigError("'score_floor' cannot be negative.")

    if not (1 <= s.digest_top_k <= 20):
        raise ConfigError("'digest_top_k' must be between 1 and 20.")
    if s.digest_max_tokens <= 0 or s.digest_max_source_chars <= 0:
        raise ConfigError("Digest budgets must be > 0.")
