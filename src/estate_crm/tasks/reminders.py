"""Reminder checks for tasks."""

import logging
from datetime import datetime, timezone
from typing import Optional, List, Callable

from ..notifications.notices import NoticeBoard, NoticeLevel
from ..storage.mirror import MirrorStore
from ..storage.models import Task, User, parse_iso
from ..visibility import visible_tasks

logger = logging.getLogger(__name__)


def due_reminders(tasks: List[Task], user: User, now: Optional[datetime] = None) -> List[Task]:
    """Visible tasks whose reminder time has passed and which were not yet reminded."""
    now = now or datetime.now(timezone.utc)
    due = []
    for task in visible_tasks(tasks, user):
        if task.is_completed or task.has_reminded:
            continue
        reminder_at = parse_iso(task.reminder_date)
        if reminder_at and reminder_at <= now:
            due.append(task)
    return due


class ReminderChecker:
    """Fire at most one reminder notice per check, and never twice per task."""

    def __init__(self, mirror: MirrorStore, notices: NoticeBoard):
        self.mirror = mirror
        self.notices = notices
        self.handlers: List[Callable[[Task, str], None]] = []

    def add_handler(self, handler: Callable[[Task, str], None]):
        """Handler receives (task, message)."""
        self.handlers.append(handler)

    def check(self, tasks: List[Task], user: Optional[User], now: Optional[datetime] = None) -> Optional[Task]:
        """Remind the first due task, mark it reminded and return it."""
        if user is None:
            return None
        due = due_reminders(tasks, user, now)
        if not due:
            return None

        task = due[0]
        message = f"Task Due: {task.title}"
        self.notices.push(message, NoticeLevel.INFO)
        self.mirror.mark_task_reminded(task.id)
        task.has_reminded = True
        for handler in self.handlers:
            try:
                handler(task, message)
            except Exception as e:
                logger.error(f"Reminder handler error: {e}")
        logger.info(f"Reminded {user.name} of task {task.id}")
        return task
