"""入力 → 価格取得 → ストラテジー / 予測 を結ぶ計算グラフ。

各ステージは依存値を引数で受け取り、結果を StageResult として返す。
失敗は境界で AppError から ClassifiedError に変換され、例外はビュー層まで届かない。
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from domain.errors import AppError, ClassifiedError, app_error, classify_error, ensure_app_error, error_text
from domain.models import ForecastResult, RawSeries, StageResult, StrategySignal, SymbolResolution, Ticker
from domain.settings import DashboardConfig
from services.cache import CacheKey, DerivedSeriesCache
from services.company import CompanyNameLookup
from services.forecast import ForecastEngine
from services.market_data import MarketDataFetcher
from services.notifications import NotificationCenter
from services.strategy import StrategyEngine
from services.validator import SymbolValidator

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DashboardSnapshot:
    """1回の入力に対する全ステージの結果。空入力なら series 以降は None。"""

    resolution: SymbolResolution
    series: Optional[StageResult[RawSeries]] = None
    strategies: Dict[int, StageResult[StrategySignal]] = field(default_factory=dict)
    forecast: Optional[StageResult[ForecastResult]] = None
    company: Optional[str] = None

    @property
    def symbol(self) -> str:
        if self.resolution.ticker is not None:
            return self.resolution.ticker.symbol
        return self.resolution.raw.strip().upper()

    @property
    def is_empty(self) -> bool:
        return self.resolution.is_empty


class DashboardPipeline:
    def __init__(
        self,
        config: DashboardConfig,
        fetcher: MarketDataFetcher,
        strategy_engine: StrategyEngine,
        forecast_engine: ForecastEngine,
        *,
        cache: DerivedSeriesCache | None = None,
        notifier: NotificationCenter | None = None,
        validator: SymbolValidator | None = None,
        company_lookup: CompanyNameLookup | None = None,
    ) -> None:
        self.config = config
        self.fetcher = fetcher
        self.strategy_engine = strategy_engine
        self.forecast_engine = forecast_engine
        self.cache = cache or DerivedSeriesCache(max_tickers=config.cache_max_tickers)
        self.notifier = notifier or NotificationCenter(config.notifications)
        self.validator = validator or SymbolValidator(config.symbol_max_length, self.notifier)
        self.company_lookup = company_lookup

    @classmethod
    def from_config(
        cls,
        config: DashboardConfig,
        *,
        downloader: Callable | None = None,
        notifier: NotificationCenter | None = None,
        company_lookup: CompanyNameLookup | None = None,
    ) -> "DashboardPipeline":
        fetcher = MarketDataFetcher(
            config.data_history,
            retry_attempts=config.retry_attempts,
            retry_backoff=config.retry_backoff,
            downloader=downloader,
        )
        return cls(
            config,
            fetcher,
            StrategyEngine(config.strategy_n),
            ForecastEngine(config.forecast_days, min_points=config.forecast_min_points),
            notifier=notifier,
            company_lookup=company_lookup,
        )

    # -- ステージ -----------------------------------------------------------------
    def resolve_symbol(self, raw: str | None) -> SymbolResolution:
        return self.validator.resolve(raw)

    def market_data(self, ticker: Ticker) -> StageResult[RawSeries]:
        symbol = ticker.symbol

        def compute() -> StageResult[RawSeries]:
            try:
                return StageResult.ok(self.fetcher.fetch(ticker))
            except AppError as exc:
                logger.error("Market data failed: %s", exc.for_log())
                err = exc
            except Exception as exc:
                logger.exception("Unexpected error while loading %s", symbol)
                err = ensure_app_error(exc, symbol=symbol)
            self.notifier.error(f"Error downloading data for {symbol}: {error_text(err)}", err.ui_body())
            return StageResult.failed(classify_error("chart", error=err, symbol=symbol))

        return self.cache.get_or_compute(CacheKey("series", symbol), compute)

    def strategy(self, ticker: Ticker, level: int) -> StageResult[StrategySignal]:
        if level not in (1, 2, 3):
            raise ValueError(f"strategy level must be 1, 2 or 3, got {level}")
        series = self.market_data(ticker)
        if series.error is not None:
            # 上流の失敗は通知済みなので分類だけやり直す
            return StageResult.failed(series.error.reclassify("strategy", level))
        symbol = ticker.symbol

        def compute() -> StageResult[StrategySignal]:
            try:
                return StageResult.ok(self.strategy_engine.best(series.value, level))
            except AppError as exc:
                err = exc
            except Exception as exc:
                logger.exception("Unexpected strategy error for %s", symbol)
                err = ensure_app_error(exc, code="E-STRATEGY", symbol=symbol)
            self.notifier.error(f"Error creating strategy L{level}: {error_text(err)}", err.ui_body())
            return StageResult.failed(classify_error("strategy", level, err, symbol=symbol))

        return self.cache.get_or_compute(CacheKey("strategy", symbol, level), compute)

    def forecast(self, ticker: Ticker) -> StageResult[ForecastResult]:
        series = self.market_data(ticker)
        if series.error is not None:
            return StageResult.failed(series.error.reclassify("prophet"))
        symbol = ticker.symbol

        def compute() -> StageResult[ForecastResult]:
            try:
                return StageResult.ok(self.forecast_engine.forecast(series.value))
            except AppError as exc:
                err = exc
            except Exception as exc:
                logger.exception("Unexpected forecast error for %s", symbol)
                err = ensure_app_error(exc, code="E-FORECAST", symbol=symbol)
            self.notifier.error(f"Error creating Prophet forecast: {error_text(err)}", err.ui_body())
            return StageResult.failed(classify_error("prophet", error=err, symbol=symbol))

        return self.cache.get_or_compute(CacheKey("forecast", symbol), compute)

    # -- まとめて実行 -------------------------------------------------------------
    def prefetch(self, ticker: Ticker) -> DashboardSnapshot:
        """系列を取得してから、各レベルと予測をスレッドプールで並列に計算する。"""
        resolution = SymbolResolution(raw=ticker.symbol, status="valid", ticker=ticker)
        snapshot = DashboardSnapshot(resolution=resolution, company=self.company_name(ticker))
        snapshot.series = self.market_data(ticker)
        levels = self.config.strategy_levels
        workers = min(self.config.parallel_workers, len(levels) + 1)
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="pipeline") as pool:
            futures = {level: pool.submit(self.strategy, ticker, level) for level in levels}
            forecast_future = pool.submit(self.forecast, ticker)
            snapshot.strategies = {level: fut.result() for level, fut in futures.items()}
            snapshot.forecast = forecast_future.result()
        logger.info(
            "Pipeline for %s done (cache hits=%d misses=%d)",
            ticker.symbol,
            self.cache.hits,
            self.cache.misses,
        )
        return snapshot

    def run(self, raw: str | None) -> DashboardSnapshot:
        """入力テキストから全ステージを評価する。"""
        resolution = self.resolve_symbol(raw)
        if resolution.is_empty:
            return DashboardSnapshot(resolution=resolution)
        if not resolution.is_valid:
            return self._rejected(resolution)
        snapshot = self.prefetch(resolution.ticker)
        snapshot.resolution = resolution
        return snapshot

    def invalidate(self, ticker: Ticker | str) -> int:
        symbol = ticker.symbol if isinstance(ticker, Ticker) else str(ticker).strip().upper()
        return self.cache.invalidate(symbol)

    def company_name(self, ticker: Ticker) -> str | None:
        if self.company_lookup is None:
            return None
        return self.company_lookup.lookup(ticker.symbol)

    def _rejected(self, resolution: SymbolResolution) -> DashboardSnapshot:
        """不正な入力。取得は行わず、各ビューにはエラー状態を渡す。"""
        symbol = resolution.raw.strip().upper()
        err = app_error("E-SYMBOL-INVALID", symbol=symbol)
        chart_error: ClassifiedError = classify_error("chart", error=err, symbol=symbol)
        return DashboardSnapshot(
            resolution=resolution,
            series=StageResult.failed(chart_error),
            strategies={
                level: StageResult.failed(chart_error.reclassify("strategy", level))
                for level in self.config.strategy_levels
            },
            forecast=StageResult.failed(chart_error.reclassify("prophet")),
        )
