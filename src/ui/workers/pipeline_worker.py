from __future__ import annotations

from PySide6.QtCore import QThread, Signal

from domain.errors import ensure_app_error
from services.pipeline import DashboardPipeline


class PipelineWorker(QThread):
    """入力1件分のパイプラインをバックグラウンドで評価する。"""

    completed = Signal(str, object)
    failed = Signal(str, str)

    def __init__(self, pipeline: DashboardPipeline, raw: str) -> None:
        super().__init__()
        self._pipeline = pipeline
        self._raw = raw

    @property
    def raw(self) -> str:
        return self._raw

    def run(self) -> None:  # type: ignore[override]
        try:
            snapshot = self._pipeline.run(self._raw)
        except Exception as exc:  # pragma: no cover - runtime failure path
            self.failed.emit(self._raw, ensure_app_error(exc).for_log())
            return
        self.completed.emit(self._raw, snapshot)
