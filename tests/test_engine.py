# tests/test_engine.py
import time

import pytest

from modules.lead_search.lib import config as ls_config
from modules.lead_search.lib.adapters.stub import StubAdapter
from modules.lead_search.lib.digest import DigestGenerator
from modules.lead_search.lib.engine import AllPlatformsFailed, Aggregator, run_search
from modules.lead_search.lib.models import Query, RunState


def _postings(prefix: str, n: int, *, title: str = "Warehouse worker", snippet: str = "Butwal, Nepal"):
    return [
        {
            "id": f"{prefix}{i}",
            "title": f"{title} {prefix}{i} shift",
            "url": f"https://example.com/{prefix}/{i}",
            "snippet": snippet,
        }
        for i in range(n)
    ]


def _query(platforms, **extra):
    return Query.from_kwargs({
        "keywords": "warehouse jobs",
        "location": "Butwal, Nepal",
        "platforms": platforms,
        **extra,
    })


# ----------------------------------------------------------------------
# 1. Scenario: facebook 3 + linkedin 4 (two duplicating a facebook post)
# ----------------------------------------------------------------------
def test_butwal_scenario_dedupes_by_url_and_ranks(settings, butwal_query, butwal_postings, make_registry):
    registry = make_registry(
        StubAdapter("facebook", butwal_postings["facebook"]),
        StubAdapter("linkedin", butwal_postings["linkedin"]),
    )

    result = Aggregator(registry, settings).run(butwal_query)

    assert result.state is RunState.DONE
    assert len(result.results) <= 5
    urls = [r.url.split("?")[0].rstrip("/").replace("m.facebook", "www.facebook") for r in result.results]
    assert len(urls) == len(set(urls))
    assert [r.id for r in result.results] == [
        "facebook:1001",
        "linkedin:2003",
        "facebook:1003",
        "linkedin:2004",
        "facebook:1002",
    ]
    assert [r.relevance_score for r in result.results] == [98.0, 97.0, 85.5, 14.5, 3.0]
    assert {r.platform for r in result.results} == {"facebook", "linkedin"}
    assert result.platforms_queried == ("facebook", "linkedin")
    assert result.platforms_succeeded == ("facebook", "linkedin")
    assert result.failures == ()


def test_results_sorted_and_ids_unique(settings, butwal_query, butwal_postings, make_registry):
    registry = make_registry(
        StubAdapter("facebook", butwal_postings["facebook"]),
        StubAdapter("linkedin", butwal_postings["linkedin"]),
    )
    result = Aggregator(registry, settings).run(butwal_query)

    scores = [r.relevance_score for r in result.results]
    assert scores == sorted(scores, reverse=True)
    ids = [r.id for r in result.results]
    assert len(ids) == len(set(ids))


def test_identical_inputs_give_identical_output(settings, butwal_query, butwal_postings, make_registry):
    def _once():
        registry = make_registry(
            StubAdapter("facebook", butwal_postings["facebook"]),
            StubAdapter("linkedin", butwal_postings["linkedin"]),
        )
        return [r.to_dict() for r in Aggregator(registry, settings).run(butwal_query).results]

    assert _once() == _once()


# ----------------------------------------------------------------------
# 2. Truncation
# ----------------------------------------------------------------------
def test_truncates_to_query_max_results(settings, make_registry):
    registry = make_registry(StubAdapter("facebook", _postings("f", 12)))
    result = Aggregator(registry, settings).run(_query(["facebook"], maxResults=3))
    assert len(result.results) == 3


def test_truncates_to_settings_cap_when_smaller(make_registry):
    settings = ls_config.Settings.from_env_and_kwargs({"default_max_results": 4, "retry_backoff_s": 0})
    registry = make_registry(StubAdapter("facebook", _postings("f", 12)), StubAdapter("linkedin", _postings("l", 12)))
    result = Aggregator(registry, settings).run(_query(["facebook", "linkedin"], maxResults=10))
    assert len(result.results) == 4


# ----------------------------------------------------------------------
# 3. Failures, retries, deadline
# ----------------------------------------------------------------------
def test_partial_failure_returns_surviving_platform(settings, make_registry):
    fb = StubAdapter("facebook", _postings("f", 2), failures=["transient", "transient"])
    li = StubAdapter("linkedin", _postings("l", 3))
    ig = StubAdapter("instagram", _postings("i", 2), failures=["transient", "transient"])
    registry = make_registry(fb, li, ig)

    result = Aggregator(registry, settings).run(_query(["facebook", "linkedin", "instagram"]))

    assert result.state is RunState.DONE
    assert {r.platform for r in result.results} == {"linkedin"}
    assert result.platforms_succeeded == ("linkedin",)
    assert result.platforms_queried == ("facebook", "linkedin", "instagram")
    failed = {f.platform: f for f in result.failures}
    assert set(failed) == {"facebook", "instagram"}
    assert all(f.transient and f.attempts == 2 for f in failed.values())
    assert fb.calls == 2 and ig.calls == 2 and li.calls == 1


def test_transient_failure_retried_once_then_succeeds(settings, make_registry):
    sleeps = []
    fb = StubAdapter("facebook", _postings("f", 2), failures=["transient"])
    registry = make_registry(fb)

    result = Aggregator(registry, settings, sleep=sleeps.append).run(_query(["facebook"]))

    assert fb.calls == 2
    assert len(result.results) == 2
    assert result.failures == ()
    assert len(sleeps) == 1 and sleeps[0] == settings.retry_backoff_s


def test_permanent_failure_not_retried(settings, make_registry):
    fb = StubAdapter("facebook", _postings("f", 2), failures=["permanent"])
    li = StubAdapter("linkedin", _postings("l", 2))
    registry = make_registry(fb, li)

    result = Aggregator(registry, settings).run(_query(["facebook", "linkedin"]))

    assert fb.calls == 1
    (failure,) = result.failures
    assert failure.platform == "facebook"
    assert failure.transient is False
    assert failure.attempts == 1


def test_all_platforms_failing_raises(settings, make_registry):
    registry = make_registry(
        StubAdapter("facebook", failures=["permanent"]),
        StubAdapter("linkedin", failures=["transient", "transient"]),
    )

    with pytest.raises(AllPlatformsFailed) as ei:
        Aggregator(registry, settings).run(_query(["facebook", "linkedin"]))

    assert ei.value.state is RunState.ALL_FAILED
    assert {f.platform for f in ei.value.failures} == {"facebook", "linkedin"}


def test_slow_platform_abandoned_at_deadline(make_registry):
    settings = ls_config.Settings.from_env_and_kwargs({"run_deadline_s": 0.2, "retry_backoff_s": 0})
    registry = make_registry(
        StubAdapter("facebook", _postings("f", 2)),
        StubAdapter("instagram", _postings("i", 2), delay_s=1.0),
    )

    t0 = time.monotonic()
    result = Aggregator(registry, settings).run(_query(["facebook", "instagram"]))
    elapsed = time.monotonic() - t0

    assert elapsed < 0.9
    assert result.platforms_succeeded == ("facebook",)
    (failure,) = result.failures
    assert failure.platform == "instagram"
    assert failure.reason == "deadline exceeded"
    assert failure.transient is True


def test_unsupported_platform_is_recorded_not_fatal(settings, make_registry):
    registry = make_registry(StubAdapter("facebook", _postings("f", 2)))

    result = Aggregator(registry, settings).run(_query(["facebook", "tiktok"]))

    assert result.unsupported == ("tiktok",)
    assert result.platforms_requested == ("facebook", "tiktok")
    assert result.platforms_queried == ("facebook",)
    assert len(result.results) == 2


def test_only_unsupported_platforms_raise_all_failed(settings, make_registry):
    registry = make_registry(StubAdapter("facebook", _postings("f", 2)))

    with pytest.raises(AllPlatformsFailed) as ei:
        Aggregator(registry, settings).run(_query(["tiktok"]))

    assert ei.value.unsupported == ("tiktok",)


def test_crashing_adapter_counts_as_failed_platform(settings, make_registry):
    class Broken(StubAdapter):
        def search(self, query):
            raise RuntimeError("boom")

    registry = make_registry(Broken("facebook"), StubAdapter("linkedin", _postings("l", 1)))

    result = Aggregator(registry, settings).run(_query(["facebook", "linkedin"]))

    (failure,) = result.failures
    assert failure.platform == "facebook"
    assert "boom" in failure.reason
    assert result.platforms_succeeded == ("linkedin",)


def test_malformed_posting_dropped_not_fatal(settings, make_registry):
    postings = _postings("f", 2) + [{"id": "bad", "title": "Warehouse", "url": "not-a-url"}]
    registry = make_registry(StubAdapter("facebook", postings))

    result = Aggregator(registry, settings).run(_query(["facebook"]))

    assert [r.id for r in result.results] == ["facebook:f0", "facebook:f1"]


# ----------------------------------------------------------------------
# 4. Tie-breaks
# ----------------------------------------------------------------------
def test_equal_scores_follow_platform_priority_then_discovery(make_registry):
    settings = ls_config.Settings.from_env_and_kwargs({"scoring": {"platform": 0}, "retry_backoff_s": 0})
    registry = make_registry(
        StubAdapter("linkedin", _postings("l", 2)),
        StubAdapter("facebook", _postings("f", 2)),
    )

    result = Aggregator(registry, settings).run(_query(["linkedin", "facebook"]))

    assert len({r.relevance_score for r in result.results}) == 1
    assert [r.id for r in result.results] == ["facebook:f0", "facebook:f1", "linkedin:l0", "linkedin:l1"]


def test_custom_priority_order(make_registry):
    settings = ls_config.Settings.from_env_and_kwargs({
        "scoring": {"platform": 0},
        "platform_priority": ["linkedin", "facebook"],
        "retry_backoff_s": 0,
    })
    registry = make_registry(StubAdapter("facebook", _postings("f", 1)), StubAdapter("linkedin", _postings("l", 1)))

    result = Aggregator(registry, settings).run(_query(["facebook", "linkedin"]))

    assert [r.platform for r in result.results] == ["linkedin", "facebook"]


def test_score_floor_drops_noise(make_registry):
    settings = ls_config.Settings.from_env_and_kwargs({"score_floor": 5, "retry_backoff_s": 0})
    postings = _postings("f", 1) + [
        {"id": "x", "title": "Cooking class tonight", "url": "https://example.com/x", "snippet": ""}
    ]
    registry = make_registry(StubAdapter("facebook", postings))

    result = Aggregator(registry, settings).run(_query(["facebook"]))

    assert [r.id for r in result.results] == ["facebook:f0"]


# ----------------------------------------------------------------------
# 5. run_search + digest stage
# ----------------------------------------------------------------------
def test_digest_unconfigured_leaves_results_untouched(settings, butwal_query, butwal_postings, make_registry):
    def _registry():
        return make_registry(
            StubAdapter("facebook", butwal_postings["facebook"]),
            StubAdapter("linkedin", butwal_postings["linkedin"]),
        )

    plain = run_search(butwal_query, Aggregator(_registry(), settings))
    with_digest = run_search(
        butwal_query,
        Aggregator(_registry(), settings),
        digest_generator=DigestGenerator(settings),
        include_summary=True,
    )

    assert with_digest.digest is None
    assert with_digest.to_dict()["summary"] is None
    assert with_digest.result.results == plain.result.results


def test_run_search_propagates_all_failed(settings, make_registry):
    registry = make_registry(StubAdapter("facebook", failures=["permanent"]))
    with pytest.raises(AllPlatformsFailed):
        run_search(_query(["facebook"]), Aggregator(registry, settings), include_summary=True)


def test_response_dict_shape(settings, butwal_query, butwal_postings, make_registry, frozen_utc):
    registry = make_registry(
        StubAdapter("facebook", butwal_postings["facebook"]),
        StubAdapter("linkedin", butwal_postings["linkedin"]),
    )
    payload = run_search(butwal_query, Aggregator(registry, settings)).to_dict()

    assert payload["generatedAt"] == "2025-01-01T00:00:00Z"
    assert payload["total"] == len(payload["results"]) == 5
    assert payload["platforms"] == ["facebook", "linkedin"]
    assert payload["failedPlatforms"] == {}
    assert set(payload["results"][0]) == {"id", "platform", "title", "url", "snippet", "relevanceScore"}


def test_same_titled_jobs_at_different_employers_both_returned(settings, make_registry):
    postings = [
        {
            "id": "101",
            "title": "Warehouse Associate",
            "url": "https://www.linkedin.com/jobs/view/warehouse-associate-at-acme-101",
            "snippet": "Acme Logistics · Butwal, Nepal",
        },
        {
            "id": "202",
            "title": "Warehouse Associate",
            "url": "https://www.linkedin.com/jobs/view/warehouse-associate-at-globex-202",
            "snippet": "Globex · Butwal, Nepal",
        },
    ]
    registry = make_registry(StubAdapter("linkedin", postings))

    result = Aggregator(registry, settings).run(_query(["linkedin"]))

    assert sorted(r.id for r in result.results) == ["linkedin:101", "linkedin:202"]
