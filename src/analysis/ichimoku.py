"""一目均衡表の雲の構築と自動ストラテジー探索。

雲は転換線(9)・基準線(26)・先行スパンB(52)を既定値とし、先行スパンは
基準線期間-1 だけ先へずらす。ストラテジーは2本の線の大小関係を条件とし、
レベル1は単一条件、レベル2は2条件のAND、レベル3は「条件1で建玉し条件2が
崩れるまで保有する」非対称な組み合わせ。候補は累積ログリターンで順位付けする。
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from itertools import permutations
from typing import Iterable, List, Sequence, Tuple

import numpy as np
import pandas as pd

from domain.models import StrategySignal

logger = logging.getLogger(__name__)

DEFAULT_PERIODS: Tuple[int, int, int] = (9, 26, 52)

STRATEGY_COLUMNS: Tuple[str, ...] = (
    "chikou",
    "close",
    "open",
    "high",
    "low",
    "tenkan",
    "kijun",
    "senkouA",
    "senkouB",
    "cloudT",
    "cloudB",
)

# 構造的に常に成り立つ（または成り立たない）組み合わせ
_DOMINANT_PAIRS = frozenset(
    {
        ("high", "open"),
        ("high", "close"),
        ("high", "low"),
        ("open", "low"),
        ("close", "low"),
        ("cloudT", "senkouA"),
        ("cloudT", "senkouB"),
        ("cloudT", "cloudB"),
        ("senkouA", "cloudB"),
        ("senkouB", "cloudB"),
    }
)


@dataclass(slots=True)
class IchimokuCloud:
    ticker: str
    periods: Tuple[int, int, int]
    frame: pd.DataFrame

    @property
    def displacement(self) -> int:
        return self.periods[1] - 1

    def __len__(self) -> int:
        return len(self.frame)


def build_cloud(
    prices: pd.DataFrame,
    ticker: str,
    periods: Sequence[int] = DEFAULT_PERIODS,
) -> IchimokuCloud:
    """OHLC(V) の DataFrame から一目均衡表の各線を計算する。"""

    p1, p2, p3 = (int(p) for p in periods)
    if not 0 < p1 < p2 < p3:
        raise ValueError(f"invalid ichimoku periods: {tuple(periods)}")
    cols = {str(c).lower(): c for c in prices.columns}
    missing = [name for name in ("open", "high", "low", "close") if name not in cols]
    if missing:
        raise ValueError(f"price data missing columns: {missing}")
    displacement = p2 - 1
    required = p2
    if len(prices) < required:
        raise ValueError(
            f"insufficient data: ichimoku cloud needs at least {required} periods, got {len(prices)}"
        )

    high = prices[cols["high"]].astype(float)
    low = prices[cols["low"]].astype(float)
    close = prices[cols["close"]].astype(float)

    frame = pd.DataFrame(index=prices.index)
    frame["open"] = prices[cols["open"]].astype(float)
    frame["high"] = high
    frame["low"] = low
    frame["close"] = close
    if "volume" in cols:
        frame["volume"] = prices[cols["volume"]].astype(float)
    frame["tenkan"] = (high.rolling(p1).max() + low.rolling(p1).min()) / 2
    frame["kijun"] = (high.rolling(p2).max() + low.rolling(p2).min()) / 2
    frame["senkouA"] = ((frame["tenkan"] + frame["kijun"]) / 2).shift(displacement)
    frame["senkouB"] = ((high.rolling(p3).max() + low.rolling(p3).min()) / 2).shift(displacement)
    frame["chikou"] = close.shift(-displacement)
    frame["cloudT"] = frame[["senkouA", "senkouB"]].max(axis=1, skipna=False)
    frame["cloudB"] = frame[["senkouA", "senkouB"]].min(axis=1, skipna=False)
    return IchimokuCloud(ticker=ticker, periods=(p1, p2, p3), frame=frame)


def strategy_pairs(columns: Iterable[str] = STRATEGY_COLUMNS) -> List[Tuple[str, str]]:
    """比較 c1 > c2 の候補一覧。"""
    pairs: list[tuple[str, str]] = []
    for c1, c2 in permutations(columns, 2):
        if (c1, c2) in _DOMINANT_PAIRS or (c2, c1) in _DOMINANT_PAIRS:
            continue
        pairs.append((c1, c2))
    return pairs


def condition_series(cloud: IchimokuCloud, c1: str, c2: str) -> pd.Series:
    """c1 > c2 を 1/0、判定不能を NaN とした条件系列。

    遅行スパンとの比較は当日終値と displacement 期間前の値の比較に置き換え、
    先読みを避ける。
    """
    frame = cloud.frame
    if c1 == "chikou":
        left, right = frame["close"], frame[c2].shift(cloud.displacement)
    elif c2 == "chikou":
        left, right = frame[c1].shift(cloud.displacement), frame["close"]
    else:
        left, right = frame[c1], frame[c2]
    cond = (left > right).astype(float)
    cond[left.isna() | right.isna()] = np.nan
    return cond


def autostrat(
    cloud: IchimokuCloud,
    n: int = 8,
    level: int = 1,
    *,
    quietly: bool = True,
) -> List[StrategySignal]:
    """全候補を評価し、累積ログリターン上位 n 件の StrategySignal を返す。"""

    if level not in (1, 2, 3):
        raise ValueError(f"strategy level must be 1, 2 or 3, got {level}")
    if n < 1:
        raise ValueError("n must be at least 1")
    pairs = strategy_pairs()
    conds = np.vstack([condition_series(cloud, c1, c2).to_numpy() for c1, c2 in pairs])
    logret = _log_returns(cloud.frame["close"].to_numpy(dtype=float))
    if not np.isfinite(conds).any():
        raise ValueError("insufficient data: no valid strategy conditions")

    if level == 1:
        ranked = _rank(_scores(conds, logret), n)
        chosen = [((i,), conds[i]) for i in ranked]
    else:
        chosen = _search_combined(conds, logret, level, n)

    results: list[StrategySignal] = []
    for idx, cond in chosen:
        name = _strategy_name([pairs[i] for i in idx], level)
        frame = _strategy_frame(cloud, cond, logret)
        score = float(np.nansum(frame["slogret"].to_numpy()))
        results.append(
            StrategySignal(ticker=cloud.ticker, level=level, name=name, frame=frame, score=score)
        )
    if not quietly:
        for rank, signal in enumerate(results, start=1):
            logger.info("L%d #%d %s (log return %.4f)", level, rank, signal.name, signal.score)
    return results


# -- 内部処理 ---------------------------------------------------------------------


def _log_returns(close: np.ndarray) -> np.ndarray:
    out = np.full(close.shape, np.nan)
    with np.errstate(divide="ignore", invalid="ignore"):
        out[1:] = np.log(close[1:] / close[:-1])
    return out


def _positions(conds: np.ndarray) -> np.ndarray:
    """シグナル発生の翌期間から建玉する。"""
    posn = np.full(conds.shape, np.nan)
    posn[..., 1:] = conds[..., :-1]
    return posn


def _scores(conds: np.ndarray, logret: np.ndarray) -> np.ndarray:
    """累積ログリターン。評価できる期間が無い候補は最下位にする。"""
    products = _positions(conds) * logret
    scores = np.nansum(products, axis=-1)
    return np.where(np.isnan(products).all(axis=-1), -np.inf, scores)


def _rank(scores: np.ndarray, n: int) -> list[int]:
    order = np.argsort(-scores, kind="stable")
    return [int(i) for i in order[:n]]


def _combine(first: np.ndarray, others: np.ndarray, level: int) -> np.ndarray:
    if level == 2:
        # NaN は伝播させる
        return np.minimum(first[None, :], others)
    valid = ~np.isnan(others) & ~np.isnan(first)[None, :]
    entry = valid & (first[None, :] == 1)
    exit_ = valid & (others == 0) & ~entry
    events = np.where(entry, 1.0, np.where(exit_, 0.0, np.nan))
    filled = _ffill(events)
    filled = np.where(np.isnan(filled), 0.0, filled)
    return np.where(valid, filled, np.nan)


def _ffill(values: np.ndarray) -> np.ndarray:
    rows, cols = values.shape
    idx = np.where(~np.isnan(values), np.arange(cols)[None, :], 0)
    np.maximum.accumulate(idx, axis=1, out=idx)
    return values[np.arange(rows)[:, None], idx]


def _search_combined(
    conds: np.ndarray,
    logret: np.ndarray,
    level: int,
    n: int,
) -> list[tuple[tuple[int, int], np.ndarray]]:
    total = conds.shape[0]
    best: list[tuple[float, int, int]] = []
    for i in range(total):
        others_idx = np.array([j for j in range(total) if j != i])
        combined = _combine(conds[i], conds[others_idx], level)
        scores = _scores(combined, logret)
        for k in _rank(scores, n):
            best.append((float(scores[k]), i, int(others_idx[k])))
    best.sort(key=lambda item: -item[0])
    chosen: list[tuple[tuple[int, int], np.ndarray]] = []
    for _score, i, j in best[:n]:
        combined = _combine(conds[i], conds[j][None, :], level)[0]
        chosen.append(((i, j), combined))
    return chosen


def _strategy_name(pairs: Sequence[Tuple[str, str]], level: int) -> str:
    parts = [f"{c1} > {c2}" for c1, c2 in pairs]
    if level == 1:
        return parts[0]
    joiner = " & " if level == 2 else " x "
    return joiner.join(parts)


def _strategy_frame(cloud: IchimokuCloud, cond: np.ndarray, logret: np.ndarray) -> pd.DataFrame:
    frame = cloud.frame.copy()
    posn = _positions(cond)
    frame["cond"] = cond
    frame["posn"] = posn
    frame["txn"] = pd.Series(posn, index=frame.index).diff()
    frame["logret"] = logret
    frame["slogret"] = posn * logret
    frame["ret"] = np.expm1(frame["logret"])
    frame["sret"] = np.expm1(frame["slogret"])
    return frame
