"""ストラテジーの成績集計。"""
from __future__ import annotations

from typing import Sequence

import numpy as np
import pandas as pd

from domain.models import StrategySignal

PERIOD_LENGTHS: tuple[int, ...] = (1, 3, 6, 9, 12, 18, 36)


def _valid_window(signal: StrategySignal) -> pd.DataFrame:
    frame = signal.frame
    return frame.loc[frame["posn"].notna() & frame["logret"].notna()]


SEPARATOR = ("---", None)


def strategy_summary(signal: StrategySignal) -> list[tuple[str, object]]:
    """戦略サマリー（累積リターン、取引回数、勝率など）の行リスト。"""

    window = _valid_window(signal)
    if window.empty:
        raise ValueError(f"no evaluable periods for strategy {signal.name!r}")
    slogret = window["slogret"]
    logret = window["logret"]
    posn = window["posn"]

    trades = _trade_returns(window)
    in_market = int(posn.sum())
    trade_count = len(trades)
    nan = float("nan")
    return [
        ("Strategy", signal.name),
        SEPARATOR,
        ("Strategy cuml return %", round(float(np.expm1(slogret.sum()) * 100), 2)),
        ("Per period mean ret %", round(float(np.expm1(slogret).mean() * 100), 5)),
        ("Periods in market", in_market),
        ("Total trades", trade_count),
        ("Average trade length", round(in_market / trade_count, 2) if trade_count else nan),
        ("Trade success %", round(float((trades > 0).mean() * 100), 2) if trade_count else nan),
        ("Worst trade ret %", round(float(np.expm1(trades.min()) * 100), 2) if trade_count else nan),
        ("log(1+ret) variance", round(float(slogret.var()), 5)),
        SEPARATOR,
        ("Benchmark cuml ret %", round(float(np.expm1(logret.sum()) * 100), 2)),
        ("Per period mean ret %", round(float(np.expm1(logret).mean() * 100), 5)),
        ("Periods in market", len(window)),
        ("log(1+ret) variance", round(float(logret.var()), 5)),
        SEPARATOR,
        ("Direction", signal.direction),
        ("Start", window.index[0].date().isoformat()),
        ("End", window.index[-1].date().isoformat()),
        ("Ticker", signal.ticker),
    ]


def format_summary(rows: Sequence[tuple[str, object]]) -> str:
    width = max(len(label) for label, _ in rows)
    lines = []
    for label, value in rows:
        if (label, value) == SEPARATOR:
            lines.append("-" * (width + 14))
            continue
        lines.append(f"{label:<{width}}  {value}")
    return "\n".join(lines)


def _trade_returns(window: pd.DataFrame) -> pd.Series:
    """各トレード（連続保有区間）のログリターン合計。"""
    posn = window["posn"].fillna(0)
    entries = (posn == 1) & (posn.shift(1, fill_value=0) != 1)
    trade_id = entries.cumsum().where(posn == 1)
    if trade_id.dropna().empty:
        return pd.Series(dtype=float)
    return window["slogret"].groupby(trade_id).sum()


def performance_frame(signal: StrategySignal) -> pd.DataFrame:
    """累積リターン・期間リターン・ドローダウン（戦略 sret とベンチマーク ret）。"""

    window = _valid_window(signal)
    out = pd.DataFrame(index=window.index)
    for col in ("sret", "ret"):
        returns = window[col].fillna(0.0)
        wealth = (1 + returns).cumprod()
        out[col] = returns
        out[f"cum_{col}"] = wealth - 1
        out[f"dd_{col}"] = wealth / wealth.cummax() - 1
    return out


def prob_outperformance(
    returns_a: pd.Series,
    returns_b: pd.Series,
    period_lengths: Sequence[int] = PERIOD_LENGTHS,
) -> pd.DataFrame:
    """ローリング期間で a が b を上回る確率の表。"""

    name_a = returns_a.name or "a"
    name_b = returns_b.name or "b"
    joined = pd.concat([returns_a.rename("a"), returns_b.rename("b")], axis=1).dropna()
    if joined.empty:
        raise ValueError("no overlapping returns to compare")
    log_a = np.log1p(joined["a"])
    log_b = np.log1p(joined["b"])
    rows = []
    for length in period_lengths:
        if length > len(joined):
            continue
        cum_a = log_a.rolling(length).sum().dropna()
        cum_b = log_b.rolling(length).sum().dropna()
        total = len(cum_a)
        wins_a = int((cum_a > cum_b).sum())
        wins_b = int((cum_b > cum_a).sum())
        rows.append(
            {
                "period_lengths": length,
                name_a: wins_a,
                name_b: wins_b,
                f"prob_{name_a}_outperformance": round(wins_a / total, 4) if total else float("nan"),
                f"prob_{name_b}_outperformance": round(wins_b / total, 4) if total else float("nan"),
            }
        )
    return pd.DataFrame(rows)
