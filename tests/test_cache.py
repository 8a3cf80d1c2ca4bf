import threading
import time

from services.cache import CacheKey, DerivedSeriesCache


def test_hit_returns_stored_value_without_recompute():
    cache = DerivedSeriesCache()
    calls = []
    key = CacheKey("strategy", "AAPL", 1)

    def compute():
        calls.append(1)
        return "signal"

    assert cache.get_or_compute(key, compute) == "signal"
    assert cache.get_or_compute(key, compute) == "signal"
    assert len(calls) == 1
    assert (cache.hits, cache.misses) == (1, 1)
    assert key in cache


def test_levels_are_separate_keys():
    cache = DerivedSeriesCache()
    assert cache.get_or_compute(CacheKey("strategy", "AAPL", 1), lambda: 1) == 1
    assert cache.get_or_compute(CacheKey("strategy", "AAPL", 2), lambda: 2) == 2
    assert len(cache) == 2


def test_error_values_are_cached():
    cache = DerivedSeriesCache()
    calls = []
    failure = {"error": "L1 failed"}

    def compute():
        calls.append(1)
        return failure

    key = CacheKey("strategy", "BAD", 1)
    cache.get_or_compute(key, compute)
    assert cache.get_or_compute(key, compute) is failure
    assert len(calls) == 1


def test_concurrent_requests_compute_once():
    cache = DerivedSeriesCache()
    key = CacheKey("forecast", "MSFT")
    calls = []
    barrier = threading.Barrier(8)
    results = []

    def compute():
        calls.append(1)
        time.sleep(0.05)
        return object()

    def worker():
        barrier.wait()
        results.append(cache.get_or_compute(key, compute))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(calls) == 1
    assert len(results) == 8
    assert all(r is results[0] for r in results)


def test_lru_evicts_least_recently_used_ticker():
    cache = DerivedSeriesCache(max_tickers=2)
    cache.get_or_compute(CacheKey("series", "A"), lambda: "a")
    cache.get_or_compute(CacheKey("strategy", "A", 1), lambda: "a1")
    cache.get_or_compute(CacheKey("series", "B"), lambda: "b")
    # A を参照して最新にする
    cache.get_or_compute(CacheKey("series", "A"), lambda: "unused")
    cache.get_or_compute(CacheKey("series", "C"), lambda: "c")

    assert cache.tickers() == ("A", "C")
    assert CacheKey("series", "B") not in cache
    assert cache.peek(CacheKey("strategy", "A", 1)) == "a1"


def test_unbounded_when_max_tickers_is_zero():
    cache = DerivedSeriesCache(max_tickers=0)
    for i in range(20):
        cache.get_or_compute(CacheKey("series", f"T{i}"), lambda: i)
    assert len(cache.tickers()) == 20


def test_invalidate_forces_recompute():
    cache = DerivedSeriesCache()
    key = CacheKey("series", "AAPL")
    values = iter(["first", "second"])
    assert cache.get_or_compute(key, lambda: next(values)) == "first"
    assert cache.invalidate("AAPL") == 1
    assert key not in cache
    assert cache.get_or_compute(key, lambda: next(values)) == "second"
    assert cache.invalidate("MSFT") == 0


def test_waiter_on_evicted_key_lock_does_not_recompute():
    cache = DerivedSeriesCache()
    key = CacheKey("series", "AAPL")
    # 1本目のスレッドが取得したまま待機するロック
    stale = cache._key_locks.setdefault(key, threading.Lock())
    stale.acquire()
    calls: list[str] = []
    results: dict[str, str] = {}
    second_started = threading.Event()
    release_second = threading.Event()

    def compute_first():
        calls.append("first")
        return "first"

    def compute_second():
        calls.append("second")
        second_started.set()
        release_second.wait(5)
        return "second"

    first = threading.Thread(target=lambda: results.__setitem__("first", cache.get_or_compute(key, compute_first)))
    first.start()
    time.sleep(0.1)
    # 追い出しでロックが消え、別スレッドが新しいロックで計算を始める
    with cache._lock:
        del cache._key_locks[key]
    second = threading.Thread(target=lambda: results.__setitem__("second", cache.get_or_compute(key, compute_second)))
    second.start()
    assert second_started.wait(5)
    stale.release()
    time.sleep(0.1)
    release_second.set()
    first.join(5)
    second.join(5)
    assert calls == ["second"]
    assert results == {"first": "second", "second": "second"}
    assert cache.misses == 1
