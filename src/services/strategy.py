"""一目均衡表ストラテジーをレベル別に生成するサービス。"""
from __future__ import annotations

import logging
from typing import Callable, List, Sequence

from analysis.ichimoku import DEFAULT_PERIODS, IchimokuCloud, autostrat, build_cloud
from domain.errors import AppError, app_error
from domain.models import RawSeries, StrategySignal
from domain.settings import STRATEGY_N

logger = logging.getLogger(__name__)

AutoStrat = Callable[..., List[StrategySignal]]
CloudBuilder = Callable[..., IchimokuCloud]


class StrategyEngine:
    """雲の構築と自動探索を行い、レベル毎の最良候補を選ぶ。"""

    def __init__(
        self,
        n: int = STRATEGY_N,
        *,
        periods: Sequence[int] = DEFAULT_PERIODS,
        cloud_builder: CloudBuilder = build_cloud,
        autostrat_fn: AutoStrat = autostrat,
    ) -> None:
        self.n = n
        self.periods = tuple(periods)
        self._build_cloud = cloud_builder
        self._autostrat = autostrat_fn

    def cloud(self, series: RawSeries) -> IchimokuCloud:
        return self._build_cloud(series.frame, series.ticker.symbol, periods=self.periods)

    def best(self, series: RawSeries, level: int) -> StrategySignal:
        """level の最良候補を返す。失敗時は E-STRATEGY の AppError。"""
        if level not in (1, 2, 3):
            raise ValueError(f"strategy level must be 1, 2 or 3, got {level}")
        symbol = series.ticker.symbol
        try:
            cloud = self.cloud(series)
            candidates = self._autostrat(cloud, n=self.n, level=level, quietly=True)
        except AppError:
            raise
        except Exception as exc:
            logger.exception("Strategy L%d failed for %s", level, symbol)
            raise app_error(
                "E-STRATEGY",
                user_message=f"Strategy L{level} calculation failed",
                detail=str(exc) or None,
                symbol=symbol,
                payload={"level": level},
            ) from exc
        if not candidates:
            raise app_error(
                "E-STRATEGY",
                user_message=f"Strategy L{level} calculation failed",
                detail="no strategy candidates",
                symbol=symbol,
                payload={"level": level},
            )
        best = candidates[0]
        logger.info("Strategy L%d for %s: %s -> %s", level, symbol, best.name, best.recommendation())
        return best
