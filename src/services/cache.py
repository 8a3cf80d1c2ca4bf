"""派生計算（系列・ストラテジー・予測）のセッション内キャッシュ。"""
from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from threading import Lock
from typing import Any, Callable, Dict, NamedTuple, Optional

logger = logging.getLogger(__name__)


class CacheKey(NamedTuple):
    kind: str  # series / strategy / forecast
    ticker: str
    level: Optional[int] = None


@dataclass(slots=True)
class CacheEntry:
    value: Any
    valid: bool = True


class DerivedSeriesCache:
    """キー毎に高々1回だけ計算するキャッシュ。

    同一キーへの同時リクエストはキー毎のロックで直列化される。
    ティッカー単位のLRUで保持数を制限する（max_tickers=0 で無制限）。
    """

    def __init__(self, max_tickers: int = 8) -> None:
        self.max_tickers = max(0, max_tickers)
        self._lock = Lock()
        self._entries: Dict[CacheKey, CacheEntry] = {}
        self._key_locks: Dict[CacheKey, Lock] = {}
        self._tickers: "OrderedDict[str, None]" = OrderedDict()
        self.hits = 0
        self.misses = 0

    def get_or_compute(self, key: CacheKey, compute_fn: Callable[[], Any]) -> Any:
        while True:
            with self._lock:
                self._touch(key.ticker)
                entry = self._entries.get(key)
                if entry is not None and entry.valid:
                    self.hits += 1
                    return entry.value
                key_lock = self._key_locks.setdefault(key, Lock())

            with key_lock:
                with self._lock:
                    # 待機中に追い出されてロックが差し替わった場合は取り直す
                    if self._key_locks.get(key) is not key_lock:
                        continue
                    # 待機中に別スレッドが計算済みの場合はそれを返す
                    entry = self._entries.get(key)
                    if entry is not None and entry.valid:
                        self.hits += 1
                        return entry.value
                    self.misses += 1
                logger.debug("Cache miss for %s", key)
                value = compute_fn()
                with self._lock:
                    self._entries[key] = CacheEntry(value=value)
                    self._touch(key.ticker)
                    self._evict()
                return value

    def peek(self, key: CacheKey) -> Any | None:
        with self._lock:
            entry = self._entries.get(key)
            return entry.value if entry is not None and entry.valid else None

    def __contains__(self, key: object) -> bool:
        with self._lock:
            entry = self._entries.get(key)  # type: ignore[arg-type]
            return entry is not None and entry.valid

    def __len__(self) -> int:
        with self._lock:
            return sum(1 for entry in self._entries.values() if entry.valid)

    def invalidate(self, ticker: str) -> int:
        """ティッカーに紐づくエントリを無効化し、件数を返す。"""
        count = 0
        with self._lock:
            for key, entry in self._entries.items():
                if key.ticker == ticker and entry.valid:
                    entry.valid = False
                    count += 1
        if count:
            logger.info("Invalidated %d cache entries for %s", count, ticker)
        return count

    def tickers(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._tickers)

    # -- 内部処理 -----------------------------------------------------------------
    def _touch(self, ticker: str) -> None:
        self._tickers[ticker] = None
        self._tickers.move_to_end(ticker)

    def _evict(self) -> None:
        if not self.max_tickers:
            return
        while len(self._tickers) > self.max_tickers:
            oldest, _ = self._tickers.popitem(last=False)
            stale = [key for key in self._entries if key.ticker == oldest]
            for key in stale:
                del self._entries[key]
                lock = self._key_locks.get(key)
                if lock is not None and not lock.locked():
                    del self._key_locks[key]
            logger.debug("Evicted %d cache entries for %s", len(stale), oldest)
