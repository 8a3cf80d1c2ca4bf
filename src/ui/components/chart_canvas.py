from __future__ import annotations

from matplotlib.backends.backend_qtagg import FigureCanvasQTAgg as FigureCanvas
from matplotlib.figure import Figure
from PySide6.QtWidgets import QSizePolicy, QVBoxLayout, QWidget

from ui.charts import render_chart
from ui.style.theme import LIGHT, Theme
from ui.viewmodels.main import ChartView


class ChartCanvas(QWidget):
    """ChartView を描画する差し替え式のキャンバス。"""

    def __init__(self, parent: QWidget | None = None, *, min_height: int = 200) -> None:
        super().__init__(parent)
        self._layout = QVBoxLayout(self)
        self._layout.setContentsMargins(0, 0, 0, 0)
        self._canvas: FigureCanvas | None = None
        self._view: ChartView | None = None
        self.setMinimumHeight(min_height)

    def show_view(self, view: ChartView, theme: Theme = LIGHT) -> None:
        self._view = view
        self._set_figure(render_chart(view, theme))

    def restyle(self, theme: Theme) -> None:
        """配色だけ変えて再描画する（再計算はしない）。"""
        if self._view is not None:
            self._set_figure(render_chart(self._view, theme))

    def _set_figure(self, figure: Figure) -> None:
        canvas = FigureCanvas(figure)
        canvas.setSizePolicy(QSizePolicy.Policy.Expanding, QSizePolicy.Policy.Expanding)
        if self._canvas is not None:
            self._layout.removeWidget(self._canvas)
            self._canvas.deleteLater()
        self._layout.addWidget(canvas)
        self._canvas = canvas
        canvas.draw_idle()
