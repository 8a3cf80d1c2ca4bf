from __future__ import annotations

import pandas as pd
from PySide6.QtGui import QFont
from PySide6.QtWidgets import QHBoxLayout, QLabel, QPlainTextEdit, QTableWidget, QTableWidgetItem, QVBoxLayout, QWidget

from ui.viewmodels.main import MainViewModel


class StrategyDetailPanel(QWidget):
    """ストラテジーのサマリー（左）と Outperformance Report（右）。"""

    def __init__(self, level: int, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self.level = level
        self._summary = QPlainTextEdit()
        self._summary.setReadOnly(True)
        mono_font = QFont(self._summary.font())
        mono_font.setStyleHint(QFont.StyleHint.TypeWriter)
        mono_font.setFamily("monospace")
        self._summary.setFont(mono_font)

        self._table = QTableWidget(0, 0)
        self._table.setEditTriggers(QTableWidget.EditTrigger.NoEditTriggers)
        self._table.setAlternatingRowColors(True)
        self._table.horizontalHeader().setStretchLastSection(True)

        left = QVBoxLayout()
        left.addWidget(QLabel("Strategy Summary"))
        left.addWidget(self._summary)
        right = QVBoxLayout()
        right.addWidget(QLabel("Outperformance Report"))
        right.addWidget(self._table)

        layout = QHBoxLayout(self)
        layout.addLayout(left, 5)
        layout.addLayout(right, 7)

    def update_view(self, viewmodel: MainViewModel) -> None:
        self._summary.setPlainText(viewmodel.summary_text(self.level))
        self._fill_table(viewmodel.outperformance_table(self.level))

    def _fill_table(self, frame: pd.DataFrame) -> None:
        self._table.clear()
        self._table.setRowCount(len(frame))
        self._table.setColumnCount(len(frame.columns))
        self._table.setHorizontalHeaderLabels([str(col) for col in frame.columns])
        for row, values in enumerate(frame.itertuples(index=False)):
            for col, value in enumerate(values):
                self._table.setItem(row, col, QTableWidgetItem(str(value)))
        self._table.resizeColumnsToContents()
