"""NASDAQ Trader のシンボルディレクトリ（銘柄名一覧）を取得する。"""
from __future__ import annotations

import logging
from io import StringIO
from typing import Mapping, Sequence

import pandas as pd
import requests

logger = logging.getLogger(__name__)

DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/122.0.0.0 Safari/537.36"
    ),
    "Accept": "text/plain,*/*;q=0.8",
}

SOURCES: tuple[Mapping[str, str], ...] = (
    {
        "url": "https://www.nasdaqtrader.com/dynamic/SymDir/nasdaqlisted.txt",
        "symbol_col": "Symbol",
        "name_col": "Security Name",
        "exchange": "NASDAQ",
    },
    {
        "url": "https://www.nasdaqtrader.com/dynamic/SymDir/otherlisted.txt",
        "symbol_col": "ACT Symbol",
        "name_col": "Security Name",
        "exchange": "",
    },
)


def _empty_frame() -> pd.DataFrame:
    return pd.DataFrame(columns=["symbol", "name", "exchange"])


def parse_directory(text: str, *, symbol_col: str, name_col: str, exchange: str = "") -> pd.DataFrame:
    """パイプ区切りのディレクトリファイルを symbol/name/exchange の表へ変換する。"""
    lines = [line for line in text.splitlines() if line and not line.startswith("File Creation Time")]
    if not lines:
        return _empty_frame()
    raw = pd.read_csv(StringIO("\n".join(lines)), sep="|", dtype=str, keep_default_na=False)
    if symbol_col not in raw.columns or name_col not in raw.columns:
        logger.warning("Unexpected symbol directory columns: %s", list(raw.columns))
        return _empty_frame()
    if "Test Issue" in raw.columns:
        raw = raw[raw["Test Issue"] != "Y"]
    frame = pd.DataFrame(
        {
            "symbol": raw[symbol_col].str.strip().str.upper(),
            "name": raw[name_col].str.strip(),
            "exchange": raw["Exchange"].str.strip() if "Exchange" in raw.columns else exchange,
        }
    )
    return frame[frame["symbol"] != ""].reset_index(drop=True)


def fetch_symbol_directory(
    sources: Sequence[Mapping[str, str]] = SOURCES,
    *,
    timeout: float = 15.0,
    session: requests.Session | None = None,
) -> pd.DataFrame:
    """全ソースを取得して結合する。失敗したソースは読み飛ばす。"""
    http = session or requests.Session()
    frames: list[pd.DataFrame] = []
    for source in sources:
        url = source["url"]
        try:
            response = http.get(url, headers=DEFAULT_HEADERS, timeout=timeout)
            response.raise_for_status()
        except requests.RequestException:
            logger.exception("Failed to fetch symbol directory: %s", url)
            continue
        frame = parse_directory(
            response.text,
            symbol_col=source["symbol_col"],
            name_col=source["name_col"],
            exchange=source.get("exchange", ""),
        )
        if not frame.empty:
            frames.append(frame)
    if not frames:
        logger.warning("All symbol directory sources failed")
        return _empty_frame()
    combined = pd.concat(frames, ignore_index=True)
    return combined.drop_duplicates(subset="symbol", keep="first").reset_index(drop=True)
