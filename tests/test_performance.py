import numpy as np
import pandas as pd
import pytest

from analysis.performance import (
    SEPARATOR,
    format_summary,
    performance_frame,
    prob_outperformance,
    strategy_summary,
)
from domain.models import StrategySignal


def _signal() -> StrategySignal:
    index = pd.date_range("2024-01-01", periods=5, freq="B")
    posn = np.array([np.nan, 1.0, 1.0, 0.0, 1.0])
    logret = np.array([np.nan, 0.1, -0.05, 0.02, 0.03])
    frame = pd.DataFrame({"close": [10, 11, 10.5, 10.7, 11.0], "cond": [1, 1, 0, 1, 1], "posn": posn, "logret": logret}, index=index)
    frame["slogret"] = frame["posn"] * frame["logret"]
    frame["ret"] = np.expm1(frame["logret"])
    frame["sret"] = np.expm1(frame["slogret"])
    return StrategySignal(ticker="TEST", level=1, name="tenkan > kijun", frame=frame)


def test_strategy_summary_values():
    rows = strategy_summary(_signal())
    values = dict(row for row in rows if row != SEPARATOR)
    assert values["Strategy"] == "tenkan > kijun"
    assert values["Strategy cuml return %"] == pytest.approx(round(np.expm1(0.08) * 100, 2))
    assert values["Periods in market"] == 4  # 後勝ちでベンチマーク側の値
    assert values["Total trades"] == 2
    assert values["Average trade length"] == 1.5
    assert values["Trade success %"] == 100.0
    assert values["Benchmark cuml ret %"] == pytest.approx(round(np.expm1(0.1) * 100, 2))
    assert values["Start"] == "2024-01-02"
    assert values["End"] == "2024-01-05"
    assert values["Ticker"] == "TEST"
    assert rows.count(SEPARATOR) == 3


def test_format_summary_aligns_labels():
    text = format_summary([("Strategy", "x"), SEPARATOR, ("Total trades", 2)])
    lines = text.splitlines()
    assert lines[0].startswith("Strategy    ")
    assert set(lines[1]) == {"-"}
    assert lines[2].endswith("  2")


def test_summary_requires_evaluable_periods():
    signal = _signal()
    signal.frame["posn"] = np.nan
    with pytest.raises(ValueError):
        strategy_summary(signal)


def test_performance_frame_cumulative_and_drawdown():
    perf = performance_frame(_signal())
    assert list(perf.columns) == ["sret", "cum_sret", "dd_sret", "ret", "cum_ret", "dd_ret"]
    assert perf["cum_sret"].iloc[-1] == pytest.approx(np.expm1(0.08))
    assert (perf["dd_sret"] <= 0).all()
    assert perf["dd_sret"].iloc[1] == pytest.approx(np.expm1(-0.05))


def test_prob_outperformance():
    a = pd.Series([0.01, 0.02, -0.01, 0.03], name="sret")
    b = pd.Series([0.0, 0.0, 0.0, 0.0], name="ret")
    table = prob_outperformance(a, b, period_lengths=(1, 3, 6))
    assert list(table["period_lengths"]) == [1, 3]
    first = table.iloc[0]
    assert first["sret"] == 3
    assert first["ret"] == 1
    assert first["prob_sret_outperformance"] == 0.75
    assert first["prob_ret_outperformance"] == 0.25
    assert table.iloc[1]["prob_sret_outperformance"] == 1.0


def test_prob_outperformance_needs_overlap():
    with pytest.raises(ValueError):
        prob_outperformance(pd.Series([np.nan]), pd.Series([np.nan]))
