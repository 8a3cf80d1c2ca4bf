"""config.yaml から DashboardConfig を構築する。"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from domain.settings import DashboardConfig, NotificationDurations

logger = logging.getLogger(__name__)


def _safe_int(value: Any, fallback: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return fallback


def _safe_float(value: Any, fallback: float) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return fallback


def _section(raw: dict, name: str) -> dict:
    value = raw.get(name, {})
    return value if isinstance(value, dict) else {}


def config_from_mapping(raw: dict[str, Any]) -> DashboardConfig:
    defaults = DashboardConfig()
    data_cfg = _section(raw, "data")
    forecast_cfg = _section(raw, "forecast")
    symbol_cfg = _section(raw, "symbol")
    strategy_cfg = _section(raw, "strategy")
    notify_cfg = _section(raw, "notifications")
    fetch_cfg = _section(raw, "fetch")
    retry_cfg = _section(fetch_cfg, "retry")
    cache_cfg = _section(raw, "cache")
    app_cfg = _section(raw, "app")

    levels_raw = strategy_cfg.get("levels")
    if isinstance(levels_raw, (list, tuple)):
        levels = tuple(lv for lv in (_safe_int(v, 0) for v in levels_raw) if lv in (1, 2, 3))
    else:
        levels = defaults.strategy_levels

    return DashboardConfig(
        data_history=str(data_cfg.get("history", defaults.data_history)),
        forecast_days=_safe_int(forecast_cfg.get("days"), defaults.forecast_days),
        forecast_min_points=_safe_int(forecast_cfg.get("min_points"), defaults.forecast_min_points),
        symbol_max_length=_safe_int(symbol_cfg.get("max_length"), defaults.symbol_max_length),
        strategy_n=max(1, _safe_int(strategy_cfg.get("n"), defaults.strategy_n)),
        strategy_levels=levels or defaults.strategy_levels,
        notifications=NotificationDurations(
            error=_safe_float(notify_cfg.get("error_seconds"), defaults.notifications.error),
            warning=_safe_float(notify_cfg.get("warning_seconds"), defaults.notifications.warning),
        ),
        retry_attempts=_safe_int(retry_cfg.get("max_attempts"), defaults.retry_attempts),
        retry_backoff=_safe_float(retry_cfg.get("backoff"), defaults.retry_backoff),
        cache_max_tickers=_safe_int(cache_cfg.get("max_tickers"), defaults.cache_max_tickers),
        parallel_workers=max(1, _safe_int(app_cfg.get("parallel_workers"), defaults.parallel_workers)),
        load_symbol_directory=bool(app_cfg.get("symbol_directory", defaults.load_symbol_directory)),
    )


def load_config(config_path: Path = Path("config.yaml")) -> DashboardConfig:
    """設定ファイルを読み込む。読めない場合は既定値を返す。"""
    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    except FileNotFoundError:
        logger.info("No config file at %s; using defaults", config_path)
        return DashboardConfig()
    except Exception:
        logger.warning("Failed to load dashboard settings from %s", config_path, exc_info=True)
        return DashboardConfig()
    if not isinstance(raw, dict):
        return DashboardConfig()
    return config_from_mapping(raw)
