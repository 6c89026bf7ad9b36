"""Tests for the in-memory analysis result cache."""

import threading
import time

import pytest

from codestrata.core.cache import LayeredCache
from codestrata.core.models import (
    AnalysisRequest,
    AnalysisResult,
    Component,
    ComponentKind,
    Layer,
)


class FakeClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def make_result(layer: Layer = Layer.TOP, name: str = "src") -> AnalysisResult:
    return AnalysisResult(
        layer=layer,
        components=(Component(path=name, kind=ComponentKind.MODULE, name=name),),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(clock: FakeClock) -> LayeredCache:
    return LayeredCache(max_age=60, clock=clock)


class TestCacheKey:
    def test_key_is_pure(self):
        request = AnalysisRequest(layer="detail", focus_path="src", max_depth=3)
        same = AnalysisRequest(layer="detail", focus_path="./src/", max_depth=3)

        assert LayeredCache.make_key("/repo", request) == LayeredCache.make_key(
            "/repo", same
        )

    def test_key_depends_on_every_request_field(self):
        base = AnalysisRequest()
        keys = {
            LayeredCache.make_key("/repo", base),
            LayeredCache.make_key("/other", base),
            LayeredCache.make_key("/repo", AnalysisRequest(layer="middle")),
            LayeredCache.make_key("/repo", AnalysisRequest(focus_path="src")),
            LayeredCache.make_key("/repo", AnalysisRequest(max_depth=2)),
            LayeredCache.make_key("/repo", AnalysisRequest(include_tests=True)),
        }
        assert len(keys) == 6


class TestLayeredCache:
    def test_miss_then_hit(self, cache: LayeredCache):
        result = make_result()

        assert cache.get("k") is None
        entry = cache.set("k", result)

        assert cache.get("k") == result
        assert entry.timestamp == 1_000.0
        assert len(entry.hash) == 64

    def test_expired_entry_is_removed_on_get(self, cache: LayeredCache, clock: FakeClock):
        cache.set("k", make_result())

        clock.now += 61

        assert cache.get("k") is None
        assert "k" not in cache
        assert cache.stats()["expired"] == 1

    def test_entry_at_max_age_is_still_fresh(self, cache: LayeredCache, clock: FakeClock):
        cache.set("k", make_result())
        clock.now += 60

        assert cache.get("k") is not None

    def test_invalidate_and_clear(self, cache: LayeredCache):
        cache.set("a", make_result())
        cache.set("b", make_result(Layer.MIDDLE))

        assert cache.invalidate("a")
        assert not cache.invalidate("a")
        assert cache.get("a") is None
        assert cache.clear() == 1
        assert len(cache) == 0

    def test_hash_is_stable_for_equal_results(self):
        assert LayeredCache.compute_hash(make_result()) == LayeredCache.compute_hash(
            make_result()
        )
        assert LayeredCache.compute_hash(make_result()) != LayeredCache.compute_hash(
            make_result(name="lib")
        )

    def test_stats(self, cache: LayeredCache):
        cache.get("missing")
        cache.set("k", make_result())
        cache.get("k")

        stats = cache.stats()
        assert stats["entries"] == 1
        assert stats["hits"] == 1
        assert stats["misses"] == 1
        assert stats["hit_rate"] == pytest.approx(0.5)


class TestGetOrCompute:
    def test_factory_runs_once_per_fresh_entry(self, cache: LayeredCache, clock: FakeClock):
        calls = []

        def factory() -> AnalysisResult:
            calls.append(1)
            return make_result()

        first = cache.get_or_compute("k", factory)
        second = cache.get_or_compute("k", factory)
        assert first == second
        assert len(calls) == 1

        clock.now += 120
        cache.get_or_compute("k", factory)
        assert len(calls) == 2

    def test_failed_factory_stores_nothing(self, cache: LayeredCache):
        def factory() -> AnalysisResult:
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            cache.get_or_compute("k", factory)
        assert "k" not in cache

    def test_single_writer_per_key(self):
        cache = LayeredCache()
        calls = []
        lock = threading.Lock()

        def factory() -> AnalysisResult:
            with lock:
                calls.append(1)
            time.sleep(0.05)
            return make_result()

        results = []
        threads = [
            threading.Thread(target=lambda: results.append(cache.get_or_compute("k", factory)))
            for _ in range(8)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(calls) == 1
        assert len(results) == 8
        assert all(result == results[0] for result in results)

    def test_clear_during_build_keeps_single_writer(self):
        cache = LayeredCache()
        started = threading.Event()
        release = threading.Event()
        late_calls = []

        def slow_factory() -> AnalysisResult:
            started.set()
            release.wait(timeout=5)
            return make_result(name="first")

        def late_factory() -> AnalysisResult:
            late_calls.append(1)
            return make_result(name="second")

        results = {}
        builder = threading.Thread(
            target=lambda: results.setdefault("builder", cache.get_or_compute("k", slow_factory))
        )
        builder.start()
        assert started.wait(timeout=5)

        cache.clear()
        waiter = threading.Thread(
            target=lambda: results.setdefault("waiter", cache.get_or_compute("k", late_factory))
        )
        waiter.start()
        waiter.join(timeout=0.2)
        assert waiter.is_alive()

        release.set()
        builder.join()
        waiter.join()

        assert late_calls == []
        assert results["waiter"] == results["builder"]
