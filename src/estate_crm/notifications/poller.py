"""Poll the remote service for new-lead and assignment notifications."""

import logging
from typing import Optional, List

from ..remote.errors import RemoteError
from ..storage.models import Notification, User, utc_now_iso
from .notices import NoticeBoard, NoticeLevel

logger = logging.getLogger(__name__)


class NotificationPoller:
    """Surfaces unread remote notifications for the current user as notices."""

    def __init__(self, remote, notices: NoticeBoard):
        self.remote = remote
        self.notices = notices
        self.last_checked: Optional[str] = None

    def reset(self):
        self.last_checked = None

    def poll(self, user: Optional[User]) -> List[Notification]:
        """Fetch notifications since the last poll.

        Only the newest one is shown as a notice, and it is marked read.
        Failures are logged at debug level and otherwise ignored.
        """
        if user is None:
            return []
        started = utc_now_iso()
        try:
            raw = self.remote.get_notifications(user.id, user.role.value, self.last_checked)
        except RemoteError as e:
            logger.debug(f"Notification poll failed: {e.message}")
            return []
        self.last_checked = started

        notifications = []
        for record in raw:
            if not isinstance(record, dict) or not record.get("id"):
                logger.debug(f"Skipping notification without an id: {record!r}")
                continue
            notifications.append(Notification.from_dict(record))
        if not notifications:
            return []

        newest = notifications[0]
        self.notices.push(newest.display_text, NoticeLevel.INFO)
        try:
            self.remote.mark_notification_read(newest.id)
        except RemoteError as e:
            logger.debug(f"Could not mark notification {newest.id} read: {e.message}")
        return notifications
