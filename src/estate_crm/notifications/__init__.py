"""User-facing notices and remote notification polling."""

from .notices import Notice, NoticeBoard, NoticeLevel
from .poller import NotificationPoller

__all__ = ["Notice", "NoticeBoard", "NoticeLevel", "NotificationPoller"]
