"""ユーザー入力のティッカー検証。"""
from __future__ import annotations

import logging

from domain.errors import DEFAULT_ERROR_CATALOG
from domain.models import TICKER_RE, SymbolResolution, Ticker
from domain.settings import SYMBOL_MAX_LENGTH
from services.notifications import NotificationCenter

logger = logging.getLogger(__name__)

INVALID_SYMBOL_MESSAGE = DEFAULT_ERROR_CATALOG["E-SYMBOL-INVALID"]["message"]


def normalize_symbol(raw: str | None) -> str:
    """前後の空白を除去して大文字化する。"""
    return (raw or "").strip().upper()


class SymbolValidator:
    def __init__(
        self,
        max_length: int = SYMBOL_MAX_LENGTH,
        notifier: NotificationCenter | None = None,
    ) -> None:
        self.max_length = max_length
        self._notifier = notifier

    def resolve(self, raw: str | None) -> SymbolResolution:
        symbol = normalize_symbol(raw)
        if not symbol:
            return SymbolResolution(raw=raw or "", status="empty")
        # 大文字化で ASCII に化ける文字（ß -> SS など）は通さない
        ascii_only = (raw or "").strip().isascii()
        if not ascii_only or len(symbol) > self.max_length or not TICKER_RE.match(symbol):
            logger.info("Rejected symbol input %r", symbol)
            if self._notifier is not None:
                self._notifier.warning(INVALID_SYMBOL_MESSAGE)
            return SymbolResolution(raw=raw or "", status="invalid", message=INVALID_SYMBOL_MESSAGE)
        return SymbolResolution(
            raw=raw or "",
            status="valid",
            ticker=Ticker(symbol, max_length=self.max_length),
        )
