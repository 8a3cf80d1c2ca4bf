"""アプリ全体で共通利用するエラー定義と分類ロジック。"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Any, Mapping

import yaml


_SUPPORT_DOC = "README.md"


DEFAULT_ERROR_CATALOG: Mapping[str, dict[str, str]] = {
    "E-INPUT-EMPTY": {
        "message": "Enter a stock symbol",
        "guidance": "Type a ticker such as AAPL or MSFT into the symbol field.",
        "support_url": _SUPPORT_DOC,
    },
    "E-SYMBOL-INVALID": {
        "message": "Invalid symbol format. Use only letters, numbers, dots, and hyphens.",
        "guidance": "Tickers are at most 10 characters of A-Z, 0-9, '.' and '-'.",
        "support_url": _SUPPORT_DOC,
    },
    "E-YF-404": {
        "message": "No data available for symbol",
        "guidance": "Check the ticker spelling, including any market suffix (e.g. .TO).",
        "support_url": "https://pypi.org/project/yfinance/",
    },
    "E-NETWORK": {
        "message": "Network error while downloading price data",
        "guidance": "Check the internet connection and try again in a few minutes.",
        "support_url": "https://pypi.org/project/yfinance/",
    },
    "E-YF-FETCH": {
        "message": "Price download failed",
        "guidance": "Inspect the log pane for the underlying yfinance error.",
        "support_url": "https://pypi.org/project/yfinance/",
    },
    "E-STRATEGY": {
        "message": "Strategy calculation failed",
        "guidance": "The Ichimoku cloud needs at least 26 sessions of history.",
        "support_url": _SUPPORT_DOC,
    },
    "E-FORECAST": {
        "message": "Forecast model failed",
        "guidance": "Prophet needs a longer close-price history for this symbol.",
        "support_url": "https://facebook.github.io/prophet/",
    },
    "E-UNEXPECTED": {
        "message": "Unexpected error",
        "guidance": "Check the log pane; contact the developers if it persists.",
        "support_url": _SUPPORT_DOC,
    },
}


@lru_cache()
def _load_support_links(config_path: Path = Path("config.yaml")) -> dict[str, str]:
    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except Exception:
        return {}
    links = data.get("support_links")
    return {str(k): str(v) for k, v in links.items()} if isinstance(links, dict) else {}


@lru_cache()
def _load_error_support_map(config_path: Path = Path("config.yaml")) -> dict[str, str]:
    try:
        data = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except Exception:
        return {}
    app_cfg = data.get("app")
    mapping = app_cfg.get("error_support") if isinstance(app_cfg, dict) else None
    return {str(k): str(v) for k, v in mapping.items()} if isinstance(mapping, dict) else {}


@dataclass(slots=True)
class AppError(Exception):
    """コード付きのアプリケーションエラー。"""

    code: str
    user_message: str | None = None
    detail: str | None = None
    symbol: str | None = None
    payload: dict[str, Any] | None = None
    guidance: str | None = None
    support_url: str | None = None

    def __post_init__(self) -> None:
        meta = DEFAULT_ERROR_CATALOG.get(self.code, {})
        if not self.user_message:
            self.user_message = meta.get("message", "An error occurred")
        if self.guidance is None:
            self.guidance = meta.get("guidance")
        if self.support_url is None:
            self.support_url = _resolve_support_url(self.code, meta.get("support_url"))

    def __str__(self) -> str:
        base = f"[{self.code}] {self.user_message}"
        if self.symbol:
            base = f"{self.symbol}: {base}"
        if self.detail:
            return f"{base} ({self.detail})"
        return base

    def for_log(self) -> str:
        base = str(self)
        if self.payload:
            return f"{base} | payload={self.payload}"
        return base

    def message_text(self) -> str:
        """分類用のメッセージ本文（ティッカーは含めない）。"""
        if self.detail:
            return f"{self.user_message}: {self.detail}"
        return self.user_message or ""

    def ui_body(self) -> str:
        """通知のツールチップに出す対処方法とサポート先。"""
        parts: list[str] = []
        if self.guidance:
            parts.append(self.guidance)
        if self.support_url:
            parts.append(f"Support: {self.support_url}")
        if self.detail:
            parts.append(f"Details: {self.detail}")
        return "\n".join(parts)


def app_error(code: str, **kwargs: Any) -> AppError:
    """カタログに基づき AppError を生成する。"""

    return AppError(code=code, **kwargs)


def ensure_app_error(
    exc: BaseException,
    *,
    code: str = "E-UNEXPECTED",
    message: str | None = None,
    symbol: str | None = None,
) -> AppError:
    """任意の例外を AppError へ正規化する。"""

    if isinstance(exc, AppError):
        return exc
    info = DEFAULT_ERROR_CATALOG.get(code, {})
    return AppError(
        code=code,
        user_message=message or info.get("message"),
        detail=str(exc) or None,
        symbol=symbol,
        guidance=info.get("guidance"),
        support_url=_resolve_support_url(code, info.get("support_url")),
    )


def _resolve_support_url(code: str, default_url: str | None) -> str | None:
    mapping = _load_error_support_map()
    links = _load_support_links()
    ref = mapping.get(code)
    if ref:
        return links.get(ref, default_url)
    return default_url


# -- 分類 ----------------------------------------------------------------------


class ErrorKind(str, Enum):
    EMPTY_INPUT = "empty_input"
    NO_DATA = "no_data"
    NETWORK = "network"
    STRATEGY_FAILURE = "strategy_failure"
    FORECAST_FAILURE = "forecast_failure"
    GENERIC = "generic"


CONTEXTS = ("chart", "strategy", "prophet", "generic")

_NO_DATA_RE = re.compile(r"no data available|symbol not found", re.IGNORECASE)
_NETWORK_RE = re.compile(r"network|timeout|connection|HTTP", re.IGNORECASE)


@dataclass(frozen=True, slots=True)
class ClassifiedError:
    """ビュー層へ渡す分類済みエラー。"""

    kind: ErrorKind
    short_message: str
    presentation_message: str
    level: int | None = None
    cause: BaseException | None = None

    def reclassify(self, context: str, level: int | None = None) -> "ClassifiedError":
        """元の例外を別コンテキストで分類し直す。"""
        if self.kind is ErrorKind.EMPTY_INPUT:
            return self
        symbol = self.cause.symbol if isinstance(self.cause, AppError) else None
        return classify_error(context, level=level, error=self.cause, symbol=symbol)


def error_text(error: BaseException | None) -> str:
    if error is None:
        return ""
    if isinstance(error, AppError):
        return error.message_text()
    return str(error)


def classify_error(
    context: str,
    level: int | None = None,
    error: BaseException | None = None,
    *,
    symbol: str | None = None,
    empty_input: bool = False,
) -> ClassifiedError:
    """失敗内容を固定の優先順位で分類する。

    入力が空 → データなし → ネットワーク → 戦略 → 予測 → 汎用 の順で最初に一致したものを返す。
    エラーメッセージのパターン一致はコンテキストより優先される。
    """

    if context not in CONTEXTS:
        raise ValueError(f"unknown error context: {context!r}")
    if empty_input:
        return ClassifiedError(
            kind=ErrorKind.EMPTY_INPUT,
            short_message="Enter a stock symbol",
            presentation_message="Enter a stock symbol to view chart",
            level=level,
        )
    text = error_text(error)
    display = (symbol or "").strip().upper()
    if error is not None and _NO_DATA_RE.search(text):
        return ClassifiedError(
            kind=ErrorKind.NO_DATA,
            short_message=f"No data found for {display}".rstrip(),
            presentation_message=f"No data available for {display}".rstrip(),
            level=level,
            cause=error,
        )
    if error is not None and _NETWORK_RE.search(text):
        return ClassifiedError(
            kind=ErrorKind.NETWORK,
            short_message="Network error - check internet connection",
            presentation_message="Network error - unable to fetch data",
            level=level,
            cause=error,
        )
    if context == "strategy" and level is not None:
        return ClassifiedError(
            kind=ErrorKind.STRATEGY_FAILURE,
            short_message=f"Strategy L{level} calculation failed",
            presentation_message=f"Strategy L{level} data unavailable",
            level=level,
            cause=error,
        )
    if context == "prophet":
        return ClassifiedError(
            kind=ErrorKind.FORECAST_FAILURE,
            short_message="Forecast model failed - insufficient data",
            presentation_message="Forecast unavailable - need more data points",
            level=level,
            cause=error,
        )
    return ClassifiedError(
        kind=ErrorKind.GENERIC,
        short_message="Calculation error occurred",
        presentation_message="Error generating visualization",
        level=level,
        cause=error,
    )
