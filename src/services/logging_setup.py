"""logging設定とUI向けログバッファを初期化するヘルパー。"""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from threading import Lock
from typing import Any, Deque, Mapping

import yaml

logger = logging.getLogger(__name__)

_CONFIGURED = False
_UI_HANDLER: "UILogHandler" | None = None

# 外部ライブラリの冗長なログ（logging.libraries で上書き可）
DEFAULT_LIBRARY_LEVELS: Mapping[str, int] = {
    "matplotlib": logging.WARNING,
    "cmdstanpy": logging.WARNING,
    "prophet": logging.WARNING,
    "urllib3": logging.WARNING,
    "yfinance": logging.WARNING,
    "peewee": logging.WARNING,
}


class UILogHandler(logging.Handler):
    """UIのログペインに表示するリングバッファ。"""

    def __init__(self, capacity: int = 500) -> None:
        super().__init__()
        self._lock = Lock()
        self._buffer: Deque[str] = deque(maxlen=capacity)

    def emit(self, record: logging.LogRecord) -> None:
        message = self.format(record)
        with self._lock:
            self._buffer.append(message)

    def lines(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._buffer)


@dataclass(frozen=True)
class LoggingOptions:
    level: int = logging.INFO
    path: Path = Path("logs/app.log")
    rotate_keep: int = 7
    ui_lines: int = 500
    library_levels: Mapping[str, int] = field(default_factory=lambda: dict(DEFAULT_LIBRARY_LEVELS))


def _level(value: Any, fallback: int) -> int:
    level = logging.getLevelName(str(value).upper()) if value is not None else fallback
    return level if isinstance(level, int) else fallback


def _positive_int(value: Any, fallback: int) -> int:
    try:
        return max(int(value), 0)
    except (TypeError, ValueError):
        return fallback


def logging_options(config_path: Path) -> LoggingOptions:
    """config.yaml の logging セクションを読む。壊れた値は既定値に戻す。"""
    try:
        config = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except Exception:
        config = {}
    section = config.get("logging") if isinstance(config, dict) else None
    if not isinstance(section, dict):
        return LoggingOptions()

    defaults = LoggingOptions()
    level = _level(section.get("level"), defaults.level)
    libraries = dict(DEFAULT_LIBRARY_LEVELS)
    overrides = section.get("libraries")
    if isinstance(overrides, dict):
        for name, value in overrides.items():
            libraries[str(name)] = _level(value, logging.WARNING)
    return LoggingOptions(
        level=level,
        path=Path(str(section.get("path") or defaults.path)),
        rotate_keep=_positive_int(section.get("rotate_keep"), defaults.rotate_keep),
        ui_lines=_positive_int(section.get("ui_lines"), defaults.ui_lines) or defaults.ui_lines,
        library_levels=libraries,
    )


def configure_logging(config_path: Path = Path("config.yaml")) -> UILogHandler:
    """設定ファイルを元に logging を初期化し、UI用ハンドラを返す。"""

    global _CONFIGURED, _UI_HANDLER
    if _CONFIGURED and _UI_HANDLER is not None:
        return _UI_HANDLER

    # サポートリンクは設定ファイルに追随させる
    from domain.errors import _load_error_support_map, _load_support_links

    _load_support_links.cache_clear()
    _load_error_support_map.cache_clear()

    options = logging_options(config_path)
    log_path = options.path
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError:
        log_path = Path.cwd() / log_path.name

    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
    file_handler = TimedRotatingFileHandler(
        filename=str(log_path),
        when="midnight",
        backupCount=options.rotate_keep,
        encoding="utf-8",
    )
    ui_handler = UILogHandler(options.ui_lines)
    for handler in (file_handler, ui_handler):
        handler.setLevel(options.level)
        handler.setFormatter(formatter)

    root = logging.getLogger()
    root.setLevel(options.level)
    # 既存ハンドラを削除して二重登録を防ぐ
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.addHandler(file_handler)
    root.addHandler(ui_handler)

    # ライブラリはアプリ本体より詳細には出さない
    for name, level in options.library_levels.items():
        logging.getLogger(name).setLevel(max(level, options.level))

    _CONFIGURED = True
    _UI_HANDLER = ui_handler
    logger.info("Logging to %s (level %s)", log_path, logging.getLevelName(options.level))
    return ui_handler


def get_ui_log_lines() -> tuple[str, ...]:
    """UI表示用のログラインを取得する。"""

    if _UI_HANDLER is None:
        return ()
    return _UI_HANDLER.lines()
