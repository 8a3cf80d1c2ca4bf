from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple


DATA_HISTORY_YEARS = "5 years"
PROPHET_FORECAST_DAYS = 90
SYMBOL_MAX_LENGTH = 10
STRATEGY_N = 1
STRATEGY_LEVELS: Tuple[int, ...] = (1, 2, 3)


@dataclass(frozen=True)
class NotificationDurations:
    error: float = 5.0
    warning: float = 3.0


@dataclass(frozen=True)
class DashboardConfig:
    data_history: str = DATA_HISTORY_YEARS
    forecast_days: int = PROPHET_FORECAST_DAYS
    forecast_min_points: int = 30
    symbol_max_length: int = SYMBOL_MAX_LENGTH
    strategy_n: int = STRATEGY_N
    strategy_levels: Tuple[int, ...] = STRATEGY_LEVELS
    notifications: NotificationDurations = NotificationDurations()
    retry_attempts: int = 2
    retry_backoff: float = 1.6
    cache_max_tickers: int = 8
    parallel_workers: int = 4
    load_symbol_directory: bool = True
