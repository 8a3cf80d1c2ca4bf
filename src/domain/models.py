"""共通で利用するドメインモデル定義。"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, Optional, TypeVar

import pandas as pd

from domain.errors import ClassifiedError
from domain.settings import SYMBOL_MAX_LENGTH

T = TypeVar("T")

TICKER_RE = re.compile(r"^[A-Z0-9.\-]+$")
OHLCV_COLUMNS = ("Open", "High", "Low", "Close", "Volume")

BUY_HOLD = "BUY / HOLD"
SELL_WAIT = "SELL / WAIT"
NO_DATA = "NO DATA"


@dataclass(frozen=True, slots=True)
class Ticker:
    """検証済みのティッカー。"""

    symbol: str
    max_length: int = field(default=SYMBOL_MAX_LENGTH, compare=False, repr=False)

    def __post_init__(self) -> None:
        if not self.symbol or len(self.symbol) > self.max_length or not TICKER_RE.match(self.symbol):
            raise ValueError(f"invalid ticker: {self.symbol!r}")

    def __str__(self) -> str:
        return self.symbol


@dataclass(frozen=True, slots=True)
class SymbolResolution:
    """入力テキストの検証結果。"""

    raw: str
    status: str  # empty / invalid / valid
    ticker: Optional[Ticker] = None
    message: str | None = None

    @property
    def is_empty(self) -> bool:
        return self.status == "empty"

    @property
    def is_valid(self) -> bool:
        return self.status == "valid" and self.ticker is not None


@dataclass(frozen=True, slots=True)
class RawSeries:
    """日足OHLCVの時系列。空の系列は作らない。"""

    ticker: Ticker
    frame: pd.DataFrame

    def __post_init__(self) -> None:
        if self.frame is None or self.frame.empty:
            raise ValueError("RawSeries requires at least one row")
        if not isinstance(self.frame.index, pd.DatetimeIndex):
            raise ValueError("RawSeries requires a DatetimeIndex")
        if not self.frame.index.is_monotonic_increasing or self.frame.index.has_duplicates:
            raise ValueError("RawSeries dates must be strictly increasing")
        missing = [col for col in OHLCV_COLUMNS if col not in self.frame.columns]
        if missing:
            raise ValueError(f"RawSeries missing columns: {missing}")

    def __len__(self) -> int:
        return len(self.frame)

    @property
    def close(self) -> pd.Series:
        return self.frame["Close"]

    @property
    def first_date(self) -> pd.Timestamp:
        return self.frame.index[0]

    @property
    def last_date(self) -> pd.Timestamp:
        return self.frame.index[-1]

    def tail(self, n: int = 6) -> pd.DataFrame:
        return self.frame.tail(n)


@dataclass(slots=True)
class StrategySignal:
    """一目均衡表ストラテジーの評価結果（1候補分）。"""

    ticker: str
    level: int
    name: str
    frame: pd.DataFrame
    score: float = 0.0
    direction: str = "long"

    @property
    def cond(self) -> pd.Series:
        return self.frame["cond"]

    def current_condition(self) -> float | None:
        """欠損を除いた最後の cond 値。"""
        valid = self.frame["cond"].dropna()
        if valid.empty:
            return None
        return float(valid.iloc[-1])

    def recommendation(self) -> str:
        value = self.current_condition()
        if value is None:
            return NO_DATA
        return BUY_HOLD if value == 1 else SELL_WAIT


@dataclass(slots=True)
class ForecastResult:
    """Prophetの学習済みモデルと予測結果のペア。"""

    ticker: str
    model: Any
    future: pd.DataFrame
    forecast: pd.DataFrame
    history_end: pd.Timestamp
    horizon_days: int
    created_at: datetime = field(default_factory=datetime.now)

    def future_only(self) -> pd.DataFrame:
        return self.forecast[self.forecast["ds"] > self.history_end]


@dataclass(frozen=True)
class StageResult(Generic[T]):
    """各ステージの結果。value と error のどちらか一方だけを持つ。"""

    value: Optional[T] = None
    error: Optional[ClassifiedError] = None

    def __post_init__(self) -> None:
        if (self.value is None) == (self.error is None):
            raise ValueError("StageResult needs exactly one of value or error")

    @classmethod
    def ok(cls, value: T) -> "StageResult[T]":
        return cls(value=value)

    @classmethod
    def failed(cls, error: ClassifiedError) -> "StageResult[T]":
        return cls(error=error)

    @property
    def is_ok(self) -> bool:
        return self.error is None
