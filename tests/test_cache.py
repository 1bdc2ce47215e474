from __future__ import annotations

import threading
import time

import pytest

from neardiag.engine.cache import AggregationCache
from neardiag.models import PrecomputedResultSet

pytestmark = pytest.mark.unit


class Counter:
    def __init__(self, delay: float = 0.0):
        self.calls = 0
        self.delay = delay
        self._lock = threading.Lock()

    def __call__(self) -> PrecomputedResultSet:
        with self._lock:
            self.calls += 1
            n = self.calls
        if self.delay:
            time.sleep(self.delay)
        return PrecomputedResultSet(per_cohort={1: n}, quartier=n)


def test_compute_once_then_memoise() -> None:
    compute = Counter()
    cache = AggregationCache(compute)
    first = cache.get_or_compute()
    assert cache.get_or_compute() is first
    assert compute.calls == 1
    assert cache.is_populated


def test_invalidate_forces_recompute() -> None:
    compute = Counter()
    cache = AggregationCache(compute)
    first = cache.get_or_compute()
    cache.invalidate()
    assert not cache.is_populated
    second = cache.get_or_compute()
    assert second is not first
    assert second.quartier == 2


def test_ttl_expiry_recomputes() -> None:
    now = [100.0]
    compute = Counter()
    cache = AggregationCache(compute, ttl_seconds=60, clock=lambda: now[0])
    first = cache.get_or_compute()
    now[0] += 59
    assert cache.get_or_compute() is first
    now[0] += 2
    assert cache.get_or_compute() is not first
    assert compute.calls == 2


def test_non_positive_ttl_means_no_expiry() -> None:
    assert AggregationCache(Counter(), ttl_seconds=0).ttl_seconds is None


def test_failed_computation_leaves_cache_empty() -> None:
    calls = []

    def boom():
        calls.append(1)
        raise RuntimeError("data went away")

    cache = AggregationCache(boom)
    with pytest.raises(RuntimeError):
        cache.get_or_compute()
    assert not cache.is_populated


def test_concurrent_callers_share_one_computation() -> None:
    compute = Counter(delay=0.05)
    cache = AggregationCache(compute)
    seen = []
    start = threading.Barrier(8)

    def worker():
        start.wait()
        seen.append(cache.get_or_compute())

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert compute.calls == 1
    assert len(seen) == 8
    assert all(s is seen[0] for s in seen)
