"""ティッカーから会社名を引く。"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Mapping

import pandas as pd


@dataclass(slots=True)
class CompanyNameLookup:
    """起動時に読み込んだシンボルディレクトリを参照する読み取り専用の辞書。"""

    directory: pd.DataFrame | None
    _names: Mapping[str, str] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if self.directory is None or self.directory.empty:
            self._names = {}
            return
        names: dict[str, str] = {}
        for symbol, name in zip(self.directory["symbol"], self.directory["name"]):
            key = str(symbol).strip().upper()
            if key and key not in names and isinstance(name, str) and name.strip():
                names[key] = name.strip()
        self._names = names

    @property
    def available(self) -> bool:
        return bool(self._names)

    def lookup(self, ticker: str) -> str:
        symbol = (ticker or "").strip().upper()
        if not self.available:
            return f"Company name unavailable for {symbol}"
        return self._names.get(symbol, f"Company name not found for {symbol}")
