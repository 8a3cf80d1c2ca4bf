"""yfinance から日足OHLCVを取得し、ルックバック期間に切り詰める。"""
from __future__ import annotations

import logging
import re
import time
from typing import Callable

import pandas as pd
import yfinance as yf
from yfinance.exceptions import YFException, YFRateLimitError, YFTzMissingError

from domain.errors import AppError, app_error
from domain.models import OHLCV_COLUMNS, RawSeries, Ticker
from domain.settings import DATA_HISTORY_YEARS

logger = logging.getLogger(__name__)

Downloader = Callable[[str], pd.DataFrame | None]

_DURATION_RE = re.compile(r"^\s*(\d+)\s*(year|month|week|day)s?\s*$", re.IGNORECASE)
_TRANSIENT_ERRORS = (ConnectionError, TimeoutError, OSError)


def parse_history_window(text: str) -> pd.DateOffset:
    """"5 years" のような期間指定を DateOffset へ変換する。"""
    match = _DURATION_RE.match(text or "")
    if not match:
        raise ValueError(f"unsupported history window: {text!r}")
    amount = int(match.group(1))
    unit = match.group(2).lower() + "s"
    return pd.DateOffset(**{unit: amount})


def download_history(symbol: str) -> pd.DataFrame:
    """取得可能な全期間の日足を1リクエストで取得する。

    通信エラーを握りつぶさずに送出させ、銘柄なしと区別できるようにする。
    """
    yf.config.debug.hide_exceptions = False
    return yf.Ticker(symbol).history(
        period="max",
        interval="1d",
        auto_adjust=False,
        actions=False,
    )


class MarketDataFetcher:
    """価格取得の境界。失敗は AppError に変換して送出する。"""

    def __init__(
        self,
        history: str = DATA_HISTORY_YEARS,
        *,
        retry_attempts: int = 2,
        retry_backoff: float = 1.6,
        downloader: Downloader | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.window = parse_history_window(history)
        self.retry_attempts = max(0, retry_attempts)
        self.retry_backoff = retry_backoff
        self._download = downloader or download_history
        self._sleep = sleep

    def fetch(self, ticker: Ticker) -> RawSeries:
        symbol = ticker.symbol
        df = self._download_with_retry(symbol)
        if df is None or df.empty:
            logger.info("yfinance returned no data for %s", symbol)
            raise app_error("E-YF-404", detail=f"No data available for symbol: {symbol}", symbol=symbol)
        frame = self._sanitize_ohlc(self._normalize(df))
        if frame.empty:
            raise app_error("E-YF-404", detail=f"No data available for symbol: {symbol}", symbol=symbol)
        trimmed = self.trim(frame)
        logger.info(
            "Loaded %d rows for %s (%s .. %s)",
            len(trimmed),
            symbol,
            trimmed.index[0].date(),
            trimmed.index[-1].date(),
        )
        return RawSeries(ticker=ticker, frame=trimmed)

    def trim(self, frame: pd.DataFrame) -> pd.DataFrame:
        """最新日から遡ってルックバック期間内の行だけを残す。"""
        cutoff = frame.index[-1] - self.window
        return frame.loc[frame.index > cutoff]

    # -- 内部処理 -----------------------------------------------------------------
    def _download_with_retry(self, symbol: str) -> pd.DataFrame | None:
        attempt = 0
        delay = 1.0
        last_exc: Exception | None = None
        transport_failed = False
        while attempt <= self.retry_attempts:
            try:
                return self._download(symbol)
            except YFRateLimitError as exc:
                last_exc = exc
            except YFTzMissingError as exc:
                # 接続失敗時にも発生するので確定扱いにしない
                last_exc = exc
            except YFException as exc:
                logger.info("yfinance reported missing data for %s: %s", symbol, exc)
                raise app_error("E-YF-404", detail=str(exc) or None, symbol=symbol) from exc
            except AppError:
                raise
            except Exception as exc:
                last_exc = exc
                transport_failed = transport_failed or isinstance(exc, _TRANSIENT_ERRORS)
            attempt += 1
            if attempt > self.retry_attempts:
                break
            logger.warning("Retrying download for %s in %.1fs (%s)", symbol, delay, last_exc)
            self._sleep(delay)
            delay *= self.retry_backoff
        if last_exc is None:
            return None
        logger.error("yfinance download failed for %s: %s", symbol, last_exc)
        if isinstance(last_exc, YFTzMissingError) and not transport_failed:
            raise app_error("E-YF-404", detail=str(last_exc) or None, symbol=symbol) from last_exc
        if transport_failed or isinstance(last_exc, (YFRateLimitError,) + _TRANSIENT_ERRORS):
            raise app_error("E-NETWORK", detail=str(last_exc) or None, symbol=symbol) from last_exc
        raise app_error("E-YF-FETCH", detail=str(last_exc) or None, symbol=symbol) from last_exc

    @staticmethod
    def _normalize(df: pd.DataFrame) -> pd.DataFrame:
        frame = df.copy()
        # MultiIndexカラムをフラット化
        if isinstance(frame.columns, pd.MultiIndex):
            frame.columns = frame.columns.get_level_values(0)
        frame = frame.rename(columns={col: str(col).strip().title() for col in frame.columns})
        if not isinstance(frame.index, pd.DatetimeIndex):
            if "Date" in frame.columns:
                frame = frame.set_index("Date")
            frame.index = pd.to_datetime(frame.index)
        if frame.index.tz is not None:
            frame.index = frame.index.tz_localize(None)
        frame.index = frame.index.normalize()
        frame.index.name = "Date"
        missing = [col for col in OHLCV_COLUMNS if col not in frame.columns]
        if missing:
            raise app_error("E-YF-FETCH", detail=f"missing columns: {missing}")
        frame = frame[list(OHLCV_COLUMNS)].apply(pd.to_numeric, errors="coerce")
        frame = frame[~frame.index.duplicated(keep="last")].sort_index()
        return frame.dropna(subset=["Close"])

    @staticmethod
    def _sanitize_ohlc(df: pd.DataFrame) -> pd.DataFrame:
        present = [c for c in ("Open", "High", "Low", "Close") if c in df.columns]
        if not present or df.empty:
            return df
        ohlc = df[present]
        min_positive = ohlc[ohlc > 0].min().min()
        if pd.isna(min_positive) or min_positive <= 0:
            return df
        for col in present:
            df[col] = df[col].mask(df[col] <= 0, min_positive)
        df["Volume"] = df["Volume"].fillna(0)
        return df
