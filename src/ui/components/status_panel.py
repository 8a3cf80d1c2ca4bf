from __future__ import annotations

from typing import Sequence, TYPE_CHECKING

import pandas as pd
from PySide6.QtGui import QClipboard, QFont
from PySide6.QtWidgets import (
    QApplication,
    QHBoxLayout,
    QLabel,
    QPlainTextEdit,
    QPushButton,
    QTableWidget,
    QTableWidgetItem,
    QVBoxLayout,
    QWidget,
)

if TYPE_CHECKING:  # pragma: no cover - UI type hints only
    from ui.viewmodels.main import MainViewState


def _mono(widget: QWidget) -> QFont:
    font = QFont(widget.font())
    font.setStyleHint(QFont.StyleHint.TypeWriter)
    font.setFamily("monospace")
    return font


class StatusPanel(QWidget):
    """取得データ（構造と直近6行）とログをまとめて表示するペイン。"""

    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._status_label = QLabel("Idle")
        bold_font = QFont(self._status_label.font())
        bold_font.setBold(True)
        self._status_label.setFont(bold_font)

        self._loaded_view = QPlainTextEdit()
        self._loaded_view.setReadOnly(True)
        self._loaded_view.setFont(_mono(self._loaded_view))
        self._loaded_view.setMaximumHeight(220)

        self._recent_table = QTableWidget(0, 0)
        self._recent_table.setEditTriggers(QTableWidget.EditTrigger.NoEditTriggers)
        self._recent_table.setAlternatingRowColors(True)

        self._log_view = QPlainTextEdit()
        self._log_view.setReadOnly(True)
        self._log_view.setPlaceholderText("Log output appears here")
        self._log_view.setFont(_mono(self._log_view))

        self._copy_logs_btn = QPushButton("Copy log")
        self._copy_logs_btn.setEnabled(False)
        self._copy_logs_btn.clicked.connect(self._copy_logs_to_clipboard)

        header_layout = QHBoxLayout()
        header_layout.addWidget(QLabel("Downloaded Data"))
        header_layout.addStretch()
        header_layout.addWidget(self._status_label)

        logs_header = QHBoxLayout()
        logs_header.addWidget(QLabel("Log"))
        logs_header.addStretch()
        logs_header.addWidget(self._copy_logs_btn)

        layout = QVBoxLayout(self)
        layout.addLayout(header_layout)
        layout.addWidget(self._loaded_view)
        layout.addWidget(self._recent_table)
        layout.addLayout(logs_header)
        layout.addWidget(self._log_view)

    def update_state(self, state: "MainViewState") -> None:
        if state.running:
            status_text = f"Loading {state.symbol}..." if state.symbol else "Loading..."
        else:
            status_text = state.symbol or "Idle"
        self._status_label.setText(status_text)
        self._loaded_view.setPlainText(state.loaded_text)
        self._update_recent(state.recent)
        self._update_logs(state.logs)

    def _update_recent(self, frame: pd.DataFrame) -> None:
        self._recent_table.clear()
        self._recent_table.setRowCount(len(frame))
        self._recent_table.setColumnCount(len(frame.columns))
        if frame.empty:
            return
        self._recent_table.setHorizontalHeaderLabels([str(col) for col in frame.columns])
        self._recent_table.setVerticalHeaderLabels([ts.strftime("%Y-%m-%d") for ts in frame.index])
        for row, values in enumerate(frame.itertuples(index=False)):
            for col, value in enumerate(values):
                text = f"{value:,.2f}" if isinstance(value, float) else str(value)
                self._recent_table.setItem(row, col, QTableWidgetItem(text))
        self._recent_table.resizeColumnsToContents()

    def _update_logs(self, lines: Sequence[str]) -> None:
        if lines:
            self._log_view.setPlainText("\n".join(lines))
            self._log_view.verticalScrollBar().setValue(self._log_view.verticalScrollBar().maximum())
            self._copy_logs_btn.setEnabled(True)
        else:
            self._log_view.clear()
            self._copy_logs_btn.setEnabled(False)

    def _copy_logs_to_clipboard(self) -> None:
        text = self._log_view.toPlainText()
        if not text:
            return
        QApplication.clipboard().setText(text, mode=QClipboard.Mode.Clipboard)
