from __future__ import annotations

from collections.abc import Callable

from ..config import Settings
from .base import BaseAdapter


class UnsupportedPlatform(KeyError):
    """A requested platform has no registered adapter."""

    def __init__(self, platform: str):
        self.platform = platform
        super().__init__(f"No adapter registered for platform {platform!r}.")


class AdapterRegistry:
    """
    platform id -> adapter instance.

    Built once at process start and handed to the Aggregator; there is no
    module-level registry to look things up in.
    """

    def __init__(self) -> None:
        self._adapters: dict[str, BaseAdapter] = {}

    def register(self, adapter: BaseAdapter) -> BaseAdapter:
        """
        Register an adapter under adapter.platform (case-insensitive).
        Re-registering the same instance is a no-op; a different one is rejected.
        """
        platform = getattr(adapter, "platform", "") or ""
        if not isinstance(platform, str) or not platform.strip():
            raise ValueError(f"Cannot register adapter {adapter!r}: missing/empty 'platform'.")
        key = platform.strip().lower()
        existing = self._adapters.get(key)
        if existing is not None and existing is not adapter:
            raise ValueError(f"Platform {key!r} already registered to {existing!r}.")
        self._adapters[key] = adapter
        return adapter

    def get(self, platform: str) -> BaseAdapter:
        """Look up an adapter; raises UnsupportedPlatform if none is registered."""
        key = (platform or "").strip().lower()
        if key not in self._adapters:
            raise UnsupportedPlatform(platform)
        return self._adapters[key]

    def platforms(self) -> tuple[str, ...]:
        return tuple(sorted(self._adapters))

    def __contains__(self, platform: object) -> bool:
        return isinstance(platform, str) and platform.strip().lower() in self._adapters

    def close(self) -> None:
        for adapter in self._adapters.values():
            adapter.close()


# Factories for the built-in platforms; each builds a fresh adapter from Settings.
AdapterFactory = Callable[[Settings], BaseAdapter]


def build_default_registry(settings: Settings) -> AdapterRegistry:
    """Registry with the built-in facebook, linkedin and instagram adapters."""
    from .facebook import FacebookAdapter
    from .instagram import InstagramAdapter
    from .linkedin import LinkedInAdapter

    factories: list[AdapterFactory] = [
        FacebookAdapter.from_settings,
        LinkedInAdapter.from_settings,
        InstagramAdapter.from_settings,
    ]
    registry = AdapterRegistry()
    for factory in factories:
        registry.register(factory(settings))
    return registry
