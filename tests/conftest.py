from __future__ import annotations

import sys
import threading
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

# Ensure "src" is importable when running pytest from the repo root.
ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if SRC.exists() and str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


def _prices(periods: int, *, seed: int = 7, end: str = "2024-06-28", freq: str = "B") -> pd.DataFrame:
    rng = np.random.default_rng(seed)
    index = pd.date_range(end=end, periods=periods, freq=freq, name="Date")
    close = 100 * np.exp(np.cumsum(rng.normal(0.0004, 0.015, periods)))
    open_ = close * (1 + rng.normal(0, 0.004, periods))
    high = np.maximum(open_, close) * (1 + rng.uniform(0, 0.01, periods))
    low = np.minimum(open_, close) * (1 - rng.uniform(0, 0.01, periods))
    volume = rng.integers(1_000_000, 5_000_000, periods).astype(float)
    return pd.DataFrame(
        {"Open": open_, "High": high, "Low": low, "Close": close, "Volume": volume},
        index=index,
    )


@pytest.fixture
def make_prices():
    """乱数ウォークのOHLCVを返すファクトリ。"""
    return _prices


class StubProphet:
    """Prophet と同じ fit / make_future_dataframe / predict を持つ軽量スタブ。"""

    instances: list["StubProphet"] = []

    def __init__(self) -> None:
        self.history: pd.DataFrame | None = None
        StubProphet.instances.append(self)

    def fit(self, df: pd.DataFrame) -> "StubProphet":
        self.history = df.copy()
        return self

    def make_future_dataframe(self, periods: int) -> pd.DataFrame:
        assert self.history is not None
        last = pd.Timestamp(self.history["ds"].max())
        future = pd.date_range(last + pd.Timedelta(days=1), periods=periods, freq="D")
        dates = pd.concat([self.history["ds"], pd.Series(future)], ignore_index=True)
        return pd.DataFrame({"ds": dates})

    def predict(self, future: pd.DataFrame) -> pd.DataFrame:
        assert self.history is not None
        level = float(self.history["y"].iloc[-1])
        out = future.copy()
        out["yhat"] = level
        out["yhat_lower"] = level * 0.9
        out["yhat_upper"] = level * 1.1
        out["trend"] = level
        return out


@pytest.fixture
def stub_prophet():
    StubProphet.instances.clear()
    return StubProphet


class FakeDownloader:
    """yfinance の代わりに固定のDataFrameか例外を返す。呼び出し履歴を記録する。"""

    def __init__(self, prices: pd.DataFrame | None = None, error: Exception | None = None) -> None:
        self.prices = prices
        self.error = error
        self.calls: list[str] = []
        self._lock = threading.Lock()

    def __call__(self, symbol: str) -> pd.DataFrame | None:
        with self._lock:
            self.calls.append(symbol)
        if self.error is not None:
            raise self.error
        return self.prices


@pytest.fixture
def make_pipeline(stub_prophet):
    """スタブ downloader / Prophet で組み立てた DashboardPipeline のファクトリ。"""
    from domain.settings import DashboardConfig
    from services.forecast import ForecastEngine
    from services.market_data import MarketDataFetcher
    from services.notifications import NotificationCenter
    from services.pipeline import DashboardPipeline
    from services.strategy import StrategyEngine

    def factory(downloader, *, autostrat_fn=None, config=None):
        config = config or DashboardConfig()
        fetcher = MarketDataFetcher(
            config.data_history,
            retry_attempts=config.retry_attempts,
            downloader=downloader,
            sleep=lambda seconds: None,
        )
        engine = StrategyEngine(autostrat_fn=autostrat_fn) if autostrat_fn else StrategyEngine()
        forecast = ForecastEngine(
            config.forecast_days,
            min_points=config.forecast_min_points,
            model_factory=stub_prophet,
        )
        return DashboardPipeline(config, fetcher, engine, forecast, notifier=NotificationCenter(config.notifications))

    return factory


@pytest.fixture
def fake_downloader():
    return FakeDownloader
