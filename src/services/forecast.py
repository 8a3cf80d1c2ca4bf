"""Prophet による終値予測。"""
from __future__ import annotations

import logging
from typing import Any, Callable

import pandas as pd
from prophet import Prophet

from domain.errors import AppError, app_error
from domain.models import ForecastResult, RawSeries
from domain.settings import PROPHET_FORECAST_DAYS

logger = logging.getLogger(__name__)

ModelFactory = Callable[[], Any]


def default_model() -> Prophet:
    """週次・日次の季節性を無効化したモデル（年次・トレンド・祝日のみ）。"""
    return Prophet(weekly_seasonality=False, daily_seasonality=False)


class ForecastEngine:
    def __init__(
        self,
        horizon_days: int = PROPHET_FORECAST_DAYS,
        *,
        min_points: int = 30,
        model_factory: ModelFactory = default_model,
    ) -> None:
        self.horizon_days = horizon_days
        self.min_points = min_points
        self._model_factory = model_factory

    @staticmethod
    def training_frame(series: RawSeries) -> pd.DataFrame:
        close = series.close.dropna()
        return pd.DataFrame({"ds": close.index.to_numpy(), "y": close.to_numpy(dtype=float)})

    def forecast(self, series: RawSeries) -> ForecastResult:
        symbol = series.ticker.symbol
        history = self.training_frame(series)
        try:
            if len(history) < self.min_points:
                raise ValueError(
                    f"insufficient data: {len(history)} observations, at least {self.min_points} required"
                )
            model = self._model_factory()
            model.fit(history)
            future = model.make_future_dataframe(periods=self.horizon_days)
            forecast = model.predict(future)
        except AppError:
            raise
        except Exception as exc:
            logger.exception("Prophet forecast failed for %s", symbol)
            raise app_error("E-FORECAST", detail=str(exc) or None, symbol=symbol) from exc
        history_end = pd.Timestamp(history["ds"].iloc[-1])
        logger.info(
            "Forecast for %s: %d rows through %s",
            symbol,
            len(forecast),
            pd.Timestamp(future["ds"].max()).date(),
        )
        return ForecastResult(
            ticker=symbol,
            model=model,
            future=future,
            forecast=forecast,
            history_end=history_end,
            horizon_days=self.horizon_days,
        )
