"""
Engine for running one lead search: fan out to platform adapters, merge,
score, dedupe, rank and truncate; then optionally attach a digest.

Features:
  - Parallel execution, one thread per platform, under a per-run deadline
  - One retry (after a bounded backoff) for transient platform failures
  - Partial results when some platforms fail; AllPlatformsFailed only when none succeed
  - Deterministic ordering regardless of completion order
  - Dependency injection for testability (registry, scorer, sleep, clock)
  - Structured logging via `logging_bridge`
"""

from __future__ import annotations

import threading
import time
import uuid
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field

from . import logging_bridge
from .adapters.base import BaseAdapter, PlatformError
from .adapters.registry import AdapterRegistry, UnsupportedPlatform
from .config import Settings
from .dedupe import dedupe
from .digest import DigestGenerator, SummarizationUnavailable
from .models import (
    AggregationResult,
    PlatformFailure,
    PlatformState,
    Query,
    RawPosting,
    RunState,
    SearchResponse,
    SearchResult,
)
from .normalize import normalize_batch
from .scoring import RelevanceScorer, Scorer, score_all
from .utils import now_iso

MAX_ATTEMPTS = 2  # first call + one retry on a transient failure


class AllPlatformsFailed(RuntimeError):
    """Every requested platform failed or was unsupported; no partial result exists."""

    state = RunState.ALL_FAILED

    def __init__(self, failures: tuple[PlatformFailure, ...], unsupported: tuple[str, ...] = ()):
        self.failures = failures
        self.unsupported = unsupported
        parts = [f"{f.platform} ({f.reason})" for f in failures] + [f"{p} (unsupported)" for p in unsupported]
        super().__init__("All platforms failed: " + ", ".join(parts))


@dataclass
class _Outcome:
    platform: str
    state: PlatformState
    raws: list[RawPosting] = field(default_factory=list)
    failure: PlatformFailure | None = None
    duration_us: int = 0


class _RunAccumulator:
    """
    The one piece of shared state in a run: platform -> outcome.
    Each platform task writes once; close() freezes it so late writers
    (tasks abandoned at the deadline) are ignored.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._outcomes: dict[str, _Outcome] = {}
        self._closed = False

    def record(self, outcome: _Outcome) -> bool:
        with self._lock:
            if self._closed or outcome.platform in self._outcomes:
                return False
            self._outcomes[outcome.platform] = outcome
            return True

    def close(self) -> dict[str, _Outcome]:
        with self._lock:
            self._closed = True
            return dict(self._outcomes)


# =============================================================================
# AGGREGATOR
# =============================================================================
class Aggregator:
    """
    Orchestrates one search per run() call. Holds no per-run state between calls.

    Args:
        registry: platform -> adapter lookup, built once at startup.
        settings: timeouts, deadline, caps, priority order, scoring weights.
        scorer:   relevance strategy (defaults to RelevanceScorer from settings).
        sleep / clock: injectable for tests (backoff and deadline arithmetic).
    """

    def __init__(
        self,
        registry: AdapterRegistry,
        settings: Settings,
        *,
        scorer: Scorer | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.registry = registry
        self.settings = settings
        self.scorer = scorer or RelevanceScorer.from_settings(settings)
        self._sleep = sleep
        self._clock = clock

    # -------------------------------------------------------------------------
    # MAIN ORCHESTRATOR
    # -------------------------------------------------------------------------
    def run(self, query: Query) -> AggregationResult:
        start_ns = time.perf_counter_ns()
        run_id = uuid.uuid4().hex[:12]
        deadline = self._clock() + self.settings.run_deadline_s
        self._log_state(run_id, RunState.PENDING, platforms=list(query.platforms))

        # Resolve adapters; unknown platforms are dropped individually
        adapters: dict[str, BaseAdapter] = {}
        unsupported: list[str] = []
        for platform in query.platforms:
            try:
                adapters[platform] = self.registry.get(platform)
            except UnsupportedPlatform as e:
                unsupported.append(platform)
                logging_bridge.warning({
                    "component": "lead_search.engine",
                    "op": "unsupported_platform",
                    "run_id": run_id,
                    "platform": platform,
                    "error": str(e),
                })

        if not adapters:
            self._log_state(run_id, RunState.ALL_FAILED, unsupported=unsupported)
            raise AllPlatformsFailed((), tuple(unsupported))

        # Merge order: platform priority, then request order
        order = sorted(adapters, key=lambda p: (self.settings.priority_rank(p), query.platforms.index(p)))

        # ---------------------------------------------------------------------
        # FETCH IN PARALLEL (one task per platform, bounded by the run deadline)
        # ---------------------------------------------------------------------
        self._log_state(run_id, RunState.FETCHING, platforms=order)
        acc = _RunAccumulator()
        pool = ThreadPoolExecutor(
            max_workers=min(len(order), self.settings.max_threads),
            thread_name_prefix="lead-search",
        )
        try:
            futures: dict[str, Future] = {
                p: pool.submit(self._fetch_platform, run_id, adapters[p], query, deadline, acc) for p in order
            }
            wait(list(futures.values()), timeout=max(deadline - self._clock(), 0.0))
            outcomes = acc.close()
        finally:
            # Stragglers keep their thread but nobody waits for them
            pool.shutdown(wait=False, cancel_futures=True)

        for p in order:
            if p not in outcomes:
                outcomes[p] = self._missing_outcome(run_id, p, futures[p])

        failures = tuple(outcomes[p].failure for p in query.platforms if p in outcomes and outcomes[p].failure)
        succeeded = tuple(p for p in query.platforms if p in outcomes and outcomes[p].state is PlatformState.SUCCEEDED)
        durations_us = {p: outcomes[p].duration_us for p in order}

        if not succeeded:
            self._log_state(
                run_id,
                RunState.ALL_FAILED,
                failed={f.platform: f.reason for f in failures},
                unsupported=unsupported,
                durations_us=durations_us,
            )
            raise AllPlatformsFailed(failures, tuple(unsupported))

        # ---------------------------------------------------------------------
        # MERGE + NORMALIZE (priority order, then discovery order)
        # ---------------------------------------------------------------------
        self._log_state(run_id, RunState.MERGING, succeeded=list(succeeded))
        merged: list[SearchResult] = []
        found_by_platform: dict[str, int] = {}
        for p in order:
            outcome = outcomes[p]
            if outcome.state is not PlatformState.SUCCEEDED:
                continue
            batch = normalize_batch(adapters[p], outcome.raws)
            found_by_platform[p] = len(batch)
            merged.extend(batch)

        # ---------------------------------------------------------------------
        # SCORE, DEDUPE, RANK, TRUNCATE
        # ---------------------------------------------------------------------
        self._log_state(run_id, RunState.SCORING, candidates=len(merged))
        scored = [r for r in score_all(merged, query, self.scorer) if r.relevance_score >= self.settings.score_floor]
        unique = dedupe(scored, self.settings.priority_rank)
        # sorted() is stable: discovery order is the last tie-break
        ranked = sorted(unique, key=lambda r: (-r.relevance_score, self.settings.priority_rank(r.platform)))
        cap = self.settings.result_cap(query.max_results)
        results = tuple(ranked[:cap])
        self._log_state(run_id, RunState.RANKED, unique=len(unique), cap=cap)

        total_us = int((time.perf_counter_ns() - start_ns) // 1000)
        logging_bridge.activity({
            "component": "lead_search.engine",
            "op": "summary",
            "run_id": run_id,
            "state": RunState.DONE.value,
            "requested": list(query.platforms),
            "succeeded": list(succeeded),
            "failed": {f.platform: f.reason for f in failures},
            "unsupported": unsupported,
            "found_by_platform": found_by_platform,
            "dropped_below_floor": len(merged) - len(scored),
            "duplicates_collapsed": len(scored) - len(unique),
            "returned": len(results),
            "durations_us": durations_us,
            "total_us": total_us,
        })

        return AggregationResult(
            results=results,
            platforms_requested=query.platforms,
            platforms_queried=tuple(p for p in query.platforms if p in adapters),
            platforms_succeeded=succeeded,
            failures=failures,
            unsupported=tuple(unsupported),
            generated_at=now_iso(),
            state=RunState.DONE,
        )

    # -------------------------------------------------------------------------
    # INNER: one platform, run in a worker thread
    # -------------------------------------------------------------------------
    def _fetch_platform(
        self,
        run_id: str,
        adapter: BaseAdapter,
        query: Query,
        deadline: float,
        acc: _RunAccumulator,
    ) -> None:
        platform = adapter.platform
        t0 = time.perf_counter_ns()
        attempts = 0

        while True:
            attempts += 1
            try:
                raws = adapter.search(query)
            except PlatformError as e:
                remaining = deadline - self._clock()
                if e.transient and attempts < MAX_ATTEMPTS and remaining > 0:
                    self._log_platform(run_id, platform, PlatformState.RETRYING, attempt=attempts, error=str(e))
                    self._sleep(min(self.settings.retry_backoff_s, remaining))
                    continue
                failure = PlatformFailure(platform=platform, reason=str(e), transient=e.transient, attempts=attempts)
                dt_us = int((time.perf_counter_ns() - t0) // 1000)
                acc.record(_Outcome(platform, PlatformState.FAILED, failure=failure, duration_us=dt_us))
                self._log_platform(run_id, platform, PlatformState.FAILED, attempts=attempts, error=str(e))
                return

            dt_us = int((time.perf_counter_ns() - t0) // 1000)
            if acc.record(_Outcome(platform, PlatformState.SUCCEEDED, raws=list(raws), duration_us=dt_us)):
                self._log_platform(run_id, platform, PlatformState.SUCCEEDED, attempts=attempts, raw_count=len(raws))
            else:
                self._log_platform(run_id, platform, PlatformState.FAILED, late=True, duration_us=dt_us)
            return

    def _missing_outcome(self, run_id: str, platform: str, fut: Future) -> _Outcome:
        """A platform with no recorded outcome either crashed or ran past the deadline."""
        if fut.done() and not fut.cancelled() and fut.exception() is not None:
            exc = fut.exception()
            logging_bridge.error({
                "component": "lead_search.engine",
                "op": "adapter_crash",
                "run_id": run_id,
                "platform": platform,
                "error": repr(exc),
            })
            failure = PlatformFailure(platform=platform, reason=f"adapter error: {exc!r}", transient=False)
        else:
            self._log_platform(run_id, platform, PlatformState.FAILED, error="deadline exceeded")
            failure = PlatformFailure(platform=platform, reason="deadline exceeded", transient=True)
        return _Outcome(platform, PlatformState.FAILED, failure=failure)

    # -------------------------------------------------------------------------
    # LOGGING HELPERS
    # -------------------------------------------------------------------------
    def _log_state(self, run_id: str, state: RunState, **extra) -> None:
        logging_bridge.activity({"component": "lead_search.engine", "op": state.value, "run_id": run_id, **extra})

    def _log_platform(self, run_id: str, platform: str, state: PlatformState, **extra) -> None:
        logging_bridge.activity({
            "component": "lead_search.engine",
            "op": "platform",
            "run_id": run_id,
            "platform": platform,
            "state": state.value,
            **extra,
        })


# =============================================================================
# ENTRY: search + optional digest
# =============================================================================
def run_search(
    query: Query,
    aggregator: Aggregator,
    *,
    digest_generator: DigestGenerator | None = None,
    include_summary: bool = False,
) -> SearchResponse:
    """
    Run the aggregation and, when asked, the digest stage. A digest that cannot
    be produced leaves `digest=None`; it never fails the search.
    Raises AllPlatformsFailed when no platform produced data.
    """
    result = aggregator.run(query)

    digest = None
    if include_summary and digest_generator is not None:
        try:
            digest = digest_generator.summarize(result, query=query.keywords, location=query.location)
        except SummarizationUnavailable as e:
            logging_bridge.activity({
                "component": "lead_search.engine",
                "op": "digest_skipped",
                "reason": str(e),
            })

    return SearchResponse(result=result, digest=digest)
