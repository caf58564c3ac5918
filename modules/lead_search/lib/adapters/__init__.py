# lead_search/adapters/__init__.py
from __future__ import annotations

from .base import BaseAdapter, PermanentPlatformError, PlatformError, TransientPlatformError
from .registry import AdapterRegistry, UnsupportedPlatform, build_default_registry
from .stub import StubAdapter

__all__ = [
    "AdapterRegistry",
    "BaseAdapter",
    "PermanentPlatformError",
    "PlatformError",
    "StubAdapter",
    "TransientPlatformError",
    "UnsupportedPlatform",
    "build_default_registry",
]
