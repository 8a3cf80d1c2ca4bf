"""ライト/ダークの配色とフォント設定。"""
from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Iterable

import yaml
from matplotlib import rcParams
from matplotlib.font_manager import FontProperties, findfont


@dataclass(frozen=True, slots=True)
class Theme:
    name: str
    background: str
    text: str
    grid: str
    up: str
    down: str
    accent: str


LIGHT = Theme("light", background="white", text="black", grid="#e0e0e0", up="#00aa44", down="#cc2222", accent="#0d6efd")
DARK = Theme("dark", background="#1e1e1e", text="white", grid="#404040", up="#00ff88", down="#ff4444", accent="#6ea8fe")


def theme_for(dark_mode: bool) -> Theme:
    return DARK if dark_mode else LIGHT


def qt_stylesheet(theme: Theme) -> str:
    """ウィンドウ全体に適用するQtスタイルシート。"""
    if theme is LIGHT:
        return ""
    return (
        f"QWidget {{ background-color: {theme.background}; color: {theme.text}; }}"
        f"QLineEdit, QPlainTextEdit, QTableWidget {{ background-color: #2b2b2b; border: 1px solid {theme.grid}; }}"
        f"QHeaderView::section {{ background-color: #2b2b2b; color: {theme.text}; }}"
        f"QTabBar::tab:selected {{ border-bottom: 2px solid {theme.accent}; }}"
    )


@lru_cache()
def _load_font_candidates(config_path: Path = Path("config.yaml")) -> tuple[str, ...]:
    try:
        config = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except Exception:
        return tuple()
    fonts = (config or {}).get("app", {}).get("fonts")
    if isinstance(fonts, Iterable) and not isinstance(fonts, (str, bytes)):
        return tuple(str(f) for f in fonts)
    return tuple()


def apply_matplotlib_preferred_font() -> None:
    """設定ファイルで指定された最初に見つかるフォントをMatplotlibへ適用する。"""
    for family in _load_font_candidates():
        try:
            findfont(FontProperties(family=family), fallback_to_default=False)
        except Exception:
            continue
        rcParams["font.family"] = family
        break
    rcParams["axes.unicode_minus"] = False
