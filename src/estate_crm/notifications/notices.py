"""Transient user-facing notices (toasts)."""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Optional, List, Callable

logger = logging.getLogger(__name__)


class NoticeLevel(Enum):
    """Severity of a notice."""
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class Notice:
    """A message shown to the user for a limited time."""
    message: str
    level: NoticeLevel = NoticeLevel.INFO
    duration: float = 5.0  # seconds
    created_at: datetime = field(default_factory=datetime.now)

    @property
    def expires_at(self) -> datetime:
        return self.created_at + timedelta(seconds=self.duration)

    def is_active(self, now: Optional[datetime] = None) -> bool:
        return (now or datetime.now()) < self.expires_at


class NoticeBoard:
    """Collects notices for whatever front end is attached.

    Handlers registered with ``add_handler`` receive every notice as it is
    pushed.
    """

    def __init__(self, default_duration: float = 5.0, long_duration: float = 15.0):
        self.default_duration = default_duration
        self.long_duration = long_duration
        self.notices: List[Notice] = []
        self.handlers: List[Callable[[Notice], None]] = []
        self._lock = threading.Lock()

    def add_handler(self, handler: Callable[[Notice], None]):
        self.handlers.append(handler)

    def push(
        self,
        message: str,
        level: NoticeLevel = NoticeLevel.INFO,
        duration: Optional[float] = None,
    ) -> Notice:
        notice = Notice(
            message=message,
            level=level,
            duration=self.default_duration if duration is None else duration,
        )
        with self._lock:
            self.notices.append(notice)
        for handler in self.handlers:
            try:
                handler(notice)
            except Exception as e:
                logger.error(f"Notice handler error: {e}")
        return notice

    def long(self, message: str, level: NoticeLevel = NoticeLevel.ERROR) -> Notice:
        """Push a notice that stays up long enough to read instructions."""
        return self.push(message, level, self.long_duration)

    def active(self, now: Optional[datetime] = None) -> List[Notice]:
        with self._lock:
            return [n for n in self.notices if n.is_active(now)]

    @property
    def latest(self) -> Optional[Notice]:
        with self._lock:
            return self.notices[-1] if self.notices else None

    def messages(self) -> List[str]:
        with self._lock:
            return [n.message for n in self.notices]

    def clear(self):
        with self._lock:
            self.notices.clear()
