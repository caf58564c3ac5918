# tests/conftest.py
import os
import warnings

import pytest
from freezegun import freeze_time

from modules.lead_search.lib import config as ls_config
from modules.lead_search.lib.adapters.registry import AdapterRegistry
from modules.lead_search.lib.adapters.stub import StubAdapter
from modules.lead_search.lib.models import Query

warnings.filterwarnings("error", category=DeprecationWarning, module="modules")


# ---------------------------------------------------------------------
# Live tests are opt-in: use --live or RUN_LIVE_TESTS=1
# ---------------------------------------------------------------------
def pytest_addoption(parser: pytest.Parser) -> None:
    parser.addoption(
        "--live",
        action="store_true",
        default=False,
        help="Run tests marked as 'live' (network calls or external services).",
    )


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        "live: marks tests that perform live network calls or hit external services (skipped by default).",
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    run_live = config.getoption("--live") or os.getenv("RUN_LIVE_TESTS") == "1"
    if run_live:
        return
    skip_live = pytest.mark.skip(reason="live tests disabled (use --live or RUN_LIVE_TESTS=1)")
    for item in items:
        if "live" in item.keywords:
            item.add_marker(skip_live)


# ---------------------------------------------------------------------
# Test-wide env defaults (autouse, function-scoped)
# ---------------------------------------------------------------------
@pytest.fixture(autouse=True)
def _env_defaults(monkeypatch, tmp_path, request):
    # Write logs to a throwaway dir so real logs stay clean (per test)
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("ACTIVITY_LOG_PREFIX", "activity-test")
    monkeypatch.setenv("ERROR_LOG_PREFIX", "error-test")

    # Unit tests never see real credentials unless running live
    if "live" not in request.keywords:
        for name in ("OPENAI_API_KEY", "GOOGLE_CSE_API_KEY", "GOOGLE_CSE_ID"):
            monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def frozen_utc():
    with freeze_time("2025-01-01T00:00:00Z"):
        yield


# ---------------------------------------------------------------------
# Lead search fixtures
# ---------------------------------------------------------------------
@pytest.fixture
def settings():
    """Fast settings: no backoff wait, short deadline."""
    return ls_config.Settings.from_env_and_kwargs({
        "retry_backoff_s": 0,
        "run_deadline_s": 5,
        "max_threads": 4,
    })


@pytest.fixture
def butwal_query():
    return Query.from_kwargs({
        "keywords": "warehouse jobs",
        "location": "Butwal, Nepal",
        "platforms": ["facebook", "linkedin"],
        "maxResults": 5,
    })


@pytest.fixture
def make_registry():
    """Build an AdapterRegistry from StubAdapter instances."""

    def _make(*adapters: StubAdapter) -> AdapterRegistry:
        registry = AdapterRegistry()
        for a in adapters:
            registry.register(a)
        return registry

    return _make


@pytest.fixture
def butwal_postings():
    """
    facebook: 3 postings; linkedin: 4 postings, two of which point at the
    first facebook posting's URL (one with tracking params, one via m.).
    """
    facebook = [
        {
            "id": "1001",
            "title": "Warehouse helpers needed in Butwal",
            "url": "https://www.facebook.com/groups/butwaljobs/posts/1001/",
            "snippet": "Warehouse packing and loading work, Butwal, Nepal. Call now.",
        },
        {
            "id": "1002",
            "title": "Hiring delivery riders",
            "url": "https://www.facebook.com/groups/butwaljobs/posts/1002/",
            "snippet": "Riders wanted in Bhairahawa.",
        },
        {
            "id": "1003",
            "title": "Warehouse supervisor vacancy",
            "url": "https://www.facebook.com/groups/butwaljobs/posts/1003/",
            "snippet": "Supervisor for a warehouse in Butwal.",
        },
    ]
    linkedin = [
        {
            "id": "2001",
            "title": "Warehouse Associate",
            "url": "https://www.facebook.com/groups/butwaljobs/posts/1001?utm_source=linkedin&trk=abc",
            "snippet": "Acme Logistics · Butwal, Lumbini, Nepal",
        },
        {
            "id": "2002",
            "title": "Warehouse Operator",
            "url": "https://m.facebook.com/groups/butwaljobs/posts/1001",
            "snippet": "Butwal, Nepal",
        },
        {
            "id": "2003",
            "title": "Warehouse Inventory Clerk",
            "url": "https://www.linkedin.com/jobs/view/warehouse-inventory-clerk-at-acme-2003",
            "snippet": "Acme Logistics · Butwal, Lumbini, Nepal",
        },
        {
            "id": "2004",
            "title": "Accountant",
            "url": "https://www.linkedin.com/jobs/view/accountant-at-himal-2004",
            "snippet": "Himal Traders · Kathmandu, Nepal",
        },
    ]
    return {"facebook": facebook, "linkedin": linkedin}
