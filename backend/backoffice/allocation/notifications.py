"""
Operator notifications (toasts)

A NotificationService instance is handed to whatever needs to tell the
operator something. Views subscribe while mounted and unsubscribe when they
go away; each subscriber receives the full list of live notifications on
every change. The queue is bounded and entries expire after a TTL.
"""

import itertools
import logging
import time
from collections import deque
from typing import Callable, Deque, List, Literal, Optional

from pydantic import BaseModel

from backoffice.core.config import settings

logger = logging.getLogger(__name__)

Level = Literal["success", "info", "warning", "error"]

_LOG_LEVELS = {
    "success": logging.INFO,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class Notification(BaseModel):
    id: int
    level: Level
    title: str
    message: Optional[str] = None
    created_at: float


Listener = Callable[[List[Notification]], None]


class NotificationService:

    def __init__(
        self,
        max_size: Optional[int] = None,
        ttl_seconds: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_size = max_size or settings.NOTIFICATION_QUEUE_SIZE
        self.ttl_seconds = ttl_seconds or settings.NOTIFICATION_TTL_SECONDS
        self._clock = clock
        self._queue: Deque[Notification] = deque(maxlen=self.max_size)
        self._listeners: List[Listener] = []
        self._ids = itertools.count(1)

    # ===== Subscriptions =====

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns the matching unsubscribe callable"""
        if listener not in self._listeners:
            self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: Listener) -> None:
        self._listeners = [l for l in self._listeners if l is not listener]

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    # ===== Publishing =====

    def notify(self, level: Level, title: str, message: Optional[str] = None) -> Notification:
        self._prune()
        notification = Notification(
            id=next(self._ids),
            level=level,
            title=title,
            message=message,
            created_at=self._clock(),
        )
        self._queue.append(notification)
        logger.log(_LOG_LEVELS[level], title if not message else f"{title}: {message}")
        self._publish()
        return notification

    def success(self, title: str, message: Optional[str] = None) -> Notification:
        return self.notify("success", title, message)

    def info(self, title: str, message: Optional[str] = None) -> Notification:
        return self.notify("info", title, message)

    def warning(self, title: str, message: Optional[str] = None) -> Notification:
        return self.notify("warning", title, message)

    def error(self, title: str, message: Optional[str] = None) -> Notification:
        return self.notify("error", title, message)

    def dismiss(self, notification_id: int) -> None:
        before = len(self._queue)
        self._queue = deque((n for n in self._queue if n.id != notification_id), maxlen=self.max_size)
        if len(self._queue) != before:
            self._publish()

    def active(self) -> List[Notification]:
        """Live notifications, oldest first"""
        if self._prune():
            self._publish()
        return list(self._queue)

    # ===== Internals =====

    def _prune(self) -> bool:
        cutoff = self._clock() - self.ttl_seconds
        expired = False
        while self._queue and self._queue[0].created_at <= cutoff:
            self._queue.popleft()
            expired = True
        return expired

    def _publish(self):
        snapshot = list(self._queue)
        for listener in list(self._listeners):
            try:
                listener(list(snapshot))
            except Exception:
                logger.exception("Notification listener failed")
