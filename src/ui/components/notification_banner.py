from __future__ import annotations

from PySide6.QtCore import QTimer, Signal
from PySide6.QtWidgets import QLabel, QVBoxLayout, QWidget

from services.notifications import Notification

_STYLES = {
    "error": "background-color: #f8d7da; color: #842029; border: 1px solid #f5c2c7; padding: 6px;",
    "warning": "background-color: #fff3cd; color: #664d03; border: 1px solid #ffecb5; padding: 6px;",
}


class NotificationBanner(QWidget):
    """一定時間で自動的に消える通知の積み重ね表示。"""

    # ワーカースレッドからの通知をGUIスレッドへ渡す
    posted = Signal(object)

    def __init__(self, parent: QWidget | None = None) -> None:
        super().__init__(parent)
        self._layout = QVBoxLayout(self)
        self._layout.setContentsMargins(0, 0, 0, 0)
        self.posted.connect(self._show)

    def push(self, notification: Notification) -> None:
        self.posted.emit(notification)

    def _show(self, notification: Notification) -> None:
        label = QLabel(notification.message)
        label.setWordWrap(True)
        label.setStyleSheet(_STYLES.get(notification.level, _STYLES["warning"]))
        if notification.detail:
            label.setToolTip(notification.detail)
        self._layout.addWidget(label)
        QTimer.singleShot(int(notification.duration * 1000), lambda: self._dismiss(label))

    def _dismiss(self, label: QLabel) -> None:
        self._layout.removeWidget(label)
        label.deleteLater()
