"""Task reminders and periodic background jobs."""

from .reminders import ReminderChecker, due_reminders
from .scheduler import PeriodicRunner, SessionScheduler

__all__ = ["ReminderChecker", "due_reminders", "PeriodicRunner", "SessionScheduler"]
