"""UIとパイプラインを仲介するViewModel。

Qtに依存しない純粋な層で、StageResult からラベル・プレースホルダ・表を組み立てる。
"""
from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from typing import Any, Sequence

import pandas as pd

from analysis.performance import format_summary, prob_outperformance, strategy_summary
from domain.errors import ClassifiedError, ErrorKind, classify_error
from domain.models import ForecastResult, RawSeries, StageResult, StrategySignal
from services.logging_setup import get_ui_log_lines
from services.notifications import Notification
from services.pipeline import DashboardPipeline, DashboardSnapshot

logger = logging.getLogger(__name__)

ENTER_SYMBOL = "Enter Symbol"
CANDLE_PLACEHOLDER = "Enter stock symbol to view chart"
STRATEGY_PLACEHOLDER = "Enter stock symbol"
FORECAST_PLACEHOLDER = "Enter stock symbol for forecast"
DECOMPOSITION_PLACEHOLDER = "Enter stock symbol for decomposition"

_CANDLE_HINTS = {
    ErrorKind.NO_DATA: "Check symbol spelling",
    ErrorKind.NETWORK: "Try again later",
}
_FORECAST_HINTS = {
    ErrorKind.NO_DATA: "Symbol not found",
    ErrorKind.NETWORK: "Check connection",
}


@dataclass(frozen=True, slots=True)
class ChartView:
    """チャート1枚分の描画指示。payload か placeholder のどちらかを持つ。"""

    kind: str  # candlestick / showcase / cloud / performance / forecast / decomposition
    title: str = ""
    payload: Any = None
    placeholder: str | None = None
    hint: str | None = None
    level: int | None = None

    @property
    def has_data(self) -> bool:
        return self.placeholder is None


@dataclass
class MainViewState:
    symbol: str = ""
    running: bool = False
    company: str = ""
    loaded_text: str = ""
    recent: pd.DataFrame = field(default_factory=pd.DataFrame)
    recommendations: dict[int, str] = field(default_factory=dict)
    notifications: Sequence[Notification] = field(default_factory=tuple)
    logs: Sequence[str] = field(default_factory=tuple)


class MainViewModel:
    def __init__(self, pipeline: DashboardPipeline, *, dark_mode: bool = False) -> None:
        self._pipeline = pipeline
        self._snapshot: DashboardSnapshot | None = None
        self._running = False
        self.dark_mode = dark_mode

    @property
    def pipeline(self) -> DashboardPipeline:
        return self._pipeline

    @property
    def snapshot(self) -> DashboardSnapshot | None:
        return self._snapshot

    @property
    def levels(self) -> tuple[int, ...]:
        return tuple(self._pipeline.config.strategy_levels)

    # -- 状態遷移 -----------------------------------------------------------------
    def begin(self, raw: str) -> MainViewState:
        self._running = True
        return self.state()

    def apply(self, snapshot: DashboardSnapshot) -> MainViewState:
        self._snapshot = snapshot
        self._running = False
        return self.state()

    def load(self, raw: str | None) -> MainViewState:
        """同期実行。テストやワーカー外からの利用向け。"""
        return self.apply(self._pipeline.run(raw))

    def reload(self) -> int:
        """現在のティッカーのキャッシュを無効化する。"""
        if self._snapshot is None or self._snapshot.resolution.ticker is None:
            return 0
        return self._pipeline.invalidate(self._snapshot.resolution.ticker)

    def set_dark_mode(self, enabled: bool) -> None:
        self.dark_mode = bool(enabled)

    def state(self) -> MainViewState:
        return MainViewState(
            symbol=self._snapshot.symbol if self._snapshot else "",
            running=self._running,
            company=self.company_info(),
            loaded_text=self.loaded_text(),
            recent=self.recent_rows(),
            recommendations={level: self.recommendation(level) for level in self.levels},
            notifications=self._pipeline.notifier.active(),
            logs=get_ui_log_lines(),
        )

    # -- テキスト出力 -------------------------------------------------------------
    def recommendation(self, level: int) -> str:
        if self._is_empty():
            return ENTER_SYMBOL
        result = self._strategy(level)
        if result.error is not None:
            kind = result.error.kind
            if kind is ErrorKind.NO_DATA:
                return "SYMBOL NOT FOUND"
            if kind is ErrorKind.NETWORK:
                return "NETWORK ERROR"
            if kind is ErrorKind.STRATEGY_FAILURE:
                return f"L{level} ERROR"
            return "ERROR"
        return result.value.recommendation()

    def summary_text(self, level: int) -> str:
        if self._is_empty():
            return f"Enter a stock symbol to view strategy L{level} summary"
        result = self._strategy(level)
        error = result.error
        if error is None:
            try:
                return format_summary(strategy_summary(result.value))
            except Exception as exc:
                logger.exception("Strategy L%d summary failed", level)
                error = classify_error("strategy", error=exc)
        if error.kind is ErrorKind.NO_DATA:
            return "Symbol not found - check spelling"
        if error.kind is ErrorKind.NETWORK:
            return "Network error - check internet connection"
        if error.kind is ErrorKind.STRATEGY_FAILURE:
            return f"Strategy L{level} calculation failed - insufficient data"
        return f"Error: Summary unavailable for strategy L{level}"

    def outperformance_table(self, level: int) -> pd.DataFrame:
        if self._is_empty():
            return pd.DataFrame({"Message": [STRATEGY_PLACEHOLDER]})
        result = self._strategy(level)
        error = result.error
        if error is None:
            frame = result.value.frame
            try:
                return prob_outperformance(frame["sret"].rename("sret"), frame["ret"].rename("ret"))
            except Exception as exc:
                logger.exception("Outperformance table for L%d failed", level)
                error = classify_error("strategy", error=exc)
        if error.kind is ErrorKind.NO_DATA:
            message = "Symbol not found"
        elif error.kind is ErrorKind.NETWORK:
            message = "Network error"
        elif error.kind is ErrorKind.STRATEGY_FAILURE:
            message = f"L{level} calculation failed"
        else:
            message = "Data unavailable"
        return pd.DataFrame({"Error": [message]})

    def company_info(self) -> str:
        series = self._series()
        if series is None or not series.is_ok or self._snapshot.company is None:
            return ""
        return self._snapshot.company

    def loaded_text(self) -> str:
        """取得したデータの構造（列・型・期間）を文字列で返す。"""
        series = self._series()
        if series is None or not series.is_ok:
            return ""
        raw: RawSeries = series.value
        buf = io.StringIO()
        buf.write(
            f"{raw.ticker.symbol}: {len(raw)} rows "
            f"[{raw.first_date.date().isoformat()} .. {raw.last_date.date().isoformat()}]\n"
        )
        raw.frame.info(buf=buf)
        return buf.getvalue()

    def recent_rows(self, n: int = 6) -> pd.DataFrame:
        series = self._series()
        if series is None or not series.is_ok:
            return pd.DataFrame()
        return series.value.tail(n)

    # -- チャート -----------------------------------------------------------------
    def candlestick(self) -> ChartView:
        if self._is_empty():
            return ChartView("candlestick", placeholder=CANDLE_PLACEHOLDER)
        series = self._series()
        if series.error is not None:
            error = series.error.reclassify("chart")
            return ChartView(
                "candlestick",
                placeholder=error.presentation_message,
                hint=_CANDLE_HINTS.get(error.kind),
            )
        raw: RawSeries = series.value
        return ChartView(
            "candlestick",
            title=f"{raw.ticker.symbol} - Candlestick Chart with Technical Indicators",
            payload=raw,
        )

    def showcase(self, level: int) -> ChartView:
        return self._strategy_chart("showcase", level, "")

    def cloud(self, level: int) -> ChartView:
        return self._strategy_chart("cloud", level, "Ichimoku Cloud")

    def performance(self, level: int) -> ChartView:
        return self._strategy_chart("performance", level, "Performance")

    def forecast(self) -> ChartView:
        return self._forecast_chart("forecast", FORECAST_PLACEHOLDER, "Need more data points")

    def decomposition(self) -> ChartView:
        return self._forecast_chart("decomposition", DECOMPOSITION_PLACEHOLDER, "Insufficient data")

    # -- 内部ヘルパー -------------------------------------------------------------
    def _is_empty(self) -> bool:
        return self._snapshot is None or self._snapshot.is_empty

    def _series(self) -> StageResult[RawSeries] | None:
        return self._snapshot.series if self._snapshot is not None else None

    def _strategy(self, level: int) -> StageResult[StrategySignal]:
        result = self._snapshot.strategies.get(level) if self._snapshot else None
        if result is not None:
            return result
        # 未計算のレベル（設定で除外された場合など）
        return StageResult.failed(classify_error("generic", level))

    def _strategy_chart(self, kind: str, level: int, label: str) -> ChartView:
        if self._is_empty():
            return ChartView(kind, placeholder=STRATEGY_PLACEHOLDER, level=level)
        result = self._strategy(level)
        if result.error is not None:
            return ChartView(kind, placeholder=result.error.presentation_message, level=level)
        signal: StrategySignal = result.value
        title = f"L{level} {label} {signal.ticker}".replace("  ", " ").strip()
        return ChartView(kind, title=title, payload=signal, level=level)

    def _forecast_chart(self, kind: str, placeholder: str, fallback_hint: str) -> ChartView:
        if self._is_empty():
            return ChartView(kind, placeholder=placeholder)
        result = self._snapshot.forecast
        if result is None:
            return ChartView(kind, placeholder=classify_error("prophet").presentation_message, hint=fallback_hint)
        if result.error is not None:
            error: ClassifiedError = result.error
            return ChartView(
                kind,
                placeholder=error.presentation_message,
                hint=_FORECAST_HINTS.get(error.kind, fallback_hint),
            )
        forecast: ForecastResult = result.value
        title = f"{forecast.ticker} Prophet {'Forecast' if kind == 'forecast' else 'Decomposition'}"
        return ChartView(kind, title=title, payload=forecast)
