"""自動で消える一時通知を管理する。"""
from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from threading import Lock
from typing import Callable, Deque

from domain.settings import NotificationDurations

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Notification:
    message: str
    level: str  # warning / error
    duration: float
    detail: str = ""  # 対処方法など補足（ツールチップ表示）
    created_at: datetime = field(default_factory=datetime.now)

    def expired(self, now: datetime | None = None) -> bool:
        now = now or datetime.now()
        return (now - self.created_at).total_seconds() >= self.duration


Listener = Callable[[Notification], None]


class NotificationCenter:
    """ステージ境界から呼ばれ、UIへ一時通知を配信する。"""

    def __init__(self, durations: NotificationDurations | None = None, capacity: int = 50) -> None:
        self._durations = durations or NotificationDurations()
        self._lock = Lock()
        self._history: Deque[Notification] = deque(maxlen=capacity)
        self._listeners: list[Listener] = []

    def subscribe(self, listener: Listener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def warning(self, message: str, detail: str = "") -> Notification:
        return self._publish(Notification(message, "warning", self._durations.warning, detail))

    def error(self, message: str, detail: str = "") -> Notification:
        return self._publish(Notification(message, "error", self._durations.error, detail))

    def history(self) -> tuple[Notification, ...]:
        with self._lock:
            return tuple(self._history)

    def active(self, now: datetime | None = None) -> tuple[Notification, ...]:
        return tuple(n for n in self.history() if not n.expired(now))

    def _publish(self, notification: Notification) -> Notification:
        log = logger.error if notification.level == "error" else logger.warning
        log(notification.message)
        with self._lock:
            self._history.append(notification)
            listeners = tuple(self._listeners)
        for listener in listeners:
            try:
                listener(notification)
            except Exception:
                logger.exception("Notification listener failed")
        return notification
