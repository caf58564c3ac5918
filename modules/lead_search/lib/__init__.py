# modules/lead_search/lib/__init__.py
from __future__ import annotations

# Re-export commonly-used types for convenience
from .adapters import AdapterRegistry, StubAdapter, build_default_registry
from .config import ConfigError, ScoringWeights, Settings
from .digest import DigestGenerator, SummarizationUnavailable
from .engine import AllPlatformsFailed, Aggregator, run_search
from .models import AggregationResult, Digest, Query, SearchResponse, SearchResult, ValidationError

__all__ = [
    "AdapterRegistry",
    "AggregationResult",
    "Aggregator",
    "AllPlatformsFailed",
    "ConfigError",
    "Digest",
    "DigestGenerator",
    "Query",
    "ScoringWeights",
    "SearchResponse",
    "SearchResult",
    "Settings",
    "StubAdapter",
    "SummarizationUnavailable",
    "ValidationError",
    "build_default_registry",
    "run_search",
]
