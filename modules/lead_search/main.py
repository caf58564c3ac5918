from __future__ import annotations

from typing import Any

from .lib.adapters.registry import AdapterRegistry, build_default_registry
from .lib.config import Settings
from .lib.digest import DigestGenerator
from .lib.engine import AllPlatformsFailed, Aggregator, run_search
from .lib.logging_bridge import activity as log_activity
from .lib.models import Query, ValidationError
from .lib.utils import truthy

# Request-level keys; everything else in kwargs is a Settings override
_QUERY_KEYS = ("keywords", "location", "radius_km", "radiusKm", "platforms", "max_results", "maxResults")
_SUMMARY_KEYS = ("include_summary", "includeSummary")


def run(registry: AdapterRegistry | None = None, **kwargs: Any) -> dict[str, Any]:
    """
    Entry point for the 'lead_search' module.

    Accepts kwargs (from the CLI or a request handler), including:
      keywords: str = "job vacancy"
      location: str = "Butwal, Nepal"
      radius_km / radiusKm: number in [1, 200]
      platforms: list[str] = ["facebook", "linkedin", "instagram"]
      max_results / maxResults: number in [1, 30]
      include_summary / includeSummary: bool = False

      # plus any Settings override, e.g. run_deadline_s=10, skip_network=True

    `registry` may be injected (tests); otherwise the built-in adapters are used.

    Returns a JSON-safe dict:
      - {"results", "summary", "generatedAt", "total", "platforms", ...} on success
      - {"error": "Invalid request", "details": [...]} on a malformed query
      - {"error": "Unable to fetch job leads at this time", "retryable": True} when
        every platform failed
    ConfigError from bad settings propagates.
    """
    query_kw = {k: kwargs.pop(k) for k in _QUERY_KEYS if k in kwargs}
    include_summary = any(truthy(kwargs.pop(k, None)) for k in _SUMMARY_KEYS)

    settings = Settings.from_env_and_kwargs(kwargs)

    try:
        query = Query.from_kwargs(query_kw)
    except ValidationError as e:
        log_activity({"component": "lead_search.main", "op": "invalid_query", "details": e.details})
        return {"error": "Invalid request", "details": e.details}

    log_activity({
        "component": "lead_search.main",
        "op": "start",
        "keywords": query.keywords,
        "location": query.location,
        "platforms": list(query.platforms),
        "include_summary": include_summary,
        "skip_network": settings.skip_network,
    })

    owns_registry = registry is None
    registry = registry or build_default_registry(settings)
    try:
        response = run_search(
            query,
            Aggregator(registry, settings),
            digest_generator=DigestGenerator(settings) if include_summary else None,
            include_summary=include_summary,
        )
    except AllPlatformsFailed as e:
        return {
            "error": "Unable to fetch job leads at this time",
            "retryable": True,
            "failedPlatforms": {f.platform: f.reason for f in e.failures},
            "unsupportedPlatforms": list(e.unsupported),
        }
    finally:
        if owns_registry:
            registry.close()

    return response.to_dict()
