"""ローソク足チャート用のテクニカル指標（TA-Lib）。"""
from __future__ import annotations

import numpy as np
import pandas as pd
import talib as ta


def compute_indicators(prices: pd.DataFrame) -> pd.DataFrame:
    """SMA20/50・ボリンジャーバンド(典型価格, 20, 2)・RSI14・MACD(12,26,9) を付加して返す。"""

    cols = {str(c).lower(): c for c in prices.columns}
    required = [cols.get(key) for key in ("open", "high", "low", "close")]
    if any(col is None for col in required):
        raise ValueError("price data must contain open/high/low/close columns")
    open_col, high_col, low_col, close_col = required  # type: ignore
    close = prices[close_col].astype(float)
    values = close.to_numpy(dtype=np.float64)

    df = pd.DataFrame(index=prices.index)
    df["Open"] = prices[open_col].astype(float)
    df["High"] = prices[high_col].astype(float)
    df["Low"] = prices[low_col].astype(float)
    df["Close"] = close
    volume_col = cols.get("volume")
    df["Volume"] = prices[volume_col].astype(float) if volume_col is not None else 0.0

    df["SMA20"] = ta.SMA(values, timeperiod=20)
    df["SMA50"] = ta.SMA(values, timeperiod=50)
    typical = ((df["High"] + df["Low"] + df["Close"]) / 3).to_numpy(dtype=np.float64)
    upper, middle, lower = ta.BBANDS(typical, timeperiod=20, nbdevup=2, nbdevdn=2, matype=0)
    df["BB_upper"] = upper
    df["BB_mavg"] = middle
    df["BB_lower"] = lower
    df["RSI"] = ta.RSI(values, timeperiod=14)
    macd, signal, hist = ta.MACD(values, fastperiod=12, slowperiod=26, signalperiod=9)
    df["MACD"] = macd
    df["MACD_signal"] = signal
    df["MACD_hist"] = hist
    df["direction"] = np.where(df["Close"] >= df["Open"], "up", "down")
    return df
