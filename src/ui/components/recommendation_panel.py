from __future__ import annotations

from PySide6.QtGui import QFont
from PySide6.QtWidgets import QFrame, QHBoxLayout, QLabel, QVBoxLayout, QWidget

from ui.components.chart_canvas import ChartCanvas
from ui.style.theme import Theme
from ui.viewmodels.main import MainViewModel

LEVEL_TITLES = {
    1: ("Ichimoku Level 1 Strategy", "Simple (s1)"),
    2: ("Ichimoku Level 2 Strategy", "Complex (s1 & s2)"),
    3: ("Ichimoku Level 3 Strategy", "Asymmetric (s1 x s2) [Experimental]"),
}


class RecommendationBox(QFrame):
    def __init__(self, level: int, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.level = level
        title, subtitle = LEVEL_TITLES.get(level, (f"Ichimoku Level {level} Strategy", ""))
        self.setFrameShape(QFrame.Shape.StyledPanel)
        self._title = QLabel(title)
        self._value = QLabel("Enter Symbol")
        value_font = QFont(self._value.font())
        value_font.setPointSize(value_font.pointSize() + 8)
        value_font.setBold(True)
        self._value.setFont(value_font)
        self._subtitle = QLabel(subtitle)
        self._showcase = ChartCanvas(min_height=110)

        layout = QVBoxLayout(self)
        layout.addWidget(self._title)
        layout.addWidget(self._value)
        layout.addWidget(self._subtitle)
        layout.addWidget(self._showcase)

    def update_view(self, viewmodel: MainViewModel, theme: Theme) -> None:
        self._value.setText(viewmodel.recommendation(self.level))
        self._showcase.show_view(viewmodel.showcase(self.level), theme)

    def restyle(self, theme: Theme) -> None:
        self._showcase.restyle(theme)


class RecommendationPanel(QWidget):
    """レベル毎の推奨ラベルとシグナル推移。"""

    def __init__(self, levels: tuple[int, ...], parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._boxes = [RecommendationBox(level) for level in levels]
        layout = QHBoxLayout(self)
        for box in self._boxes:
            layout.addWidget(box)

    def update_view(self, viewmodel: MainViewModel, theme: Theme) -> None:
        for box in self._boxes:
            box.update_view(viewmodel, theme)

    def restyle(self, theme: Theme) -> None:
        for box in self._boxes:
            box.restyle(theme)
