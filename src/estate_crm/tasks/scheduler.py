"""Background runners for lead refresh, notification polling and reminders."""

import logging
import threading
from typing import Callable, List

logger = logging.getLogger(__name__)


class PeriodicRunner:
    """Call ``func`` every ``interval`` seconds on a daemon thread.

    Exceptions from ``func`` are logged at debug level and the loop carries on.
    """

    def __init__(self, name: str, interval: float, func: Callable[[], None]):
        self.name = name
        self.interval = interval
        self.func = func
        self.thread = None
        self._stop_event = threading.Event()

    @property
    def running(self) -> bool:
        return self.thread is not None and self.thread.is_alive()

    def start(self, run_immediately: bool = True):
        if self.running:
            return
        self._stop_event.clear()
        self.thread = threading.Thread(
            target=self._run_loop, args=(run_immediately,), name=self.name, daemon=True
        )
        self.thread.start()
        logger.info(f"{self.name} runner started (interval: {self.interval}s)")

    def stop(self):
        self._stop_event.set()
        if self.thread:
            self.thread.join(timeout=5)
        self.thread = None

    def _run_loop(self, run_immediately: bool):
        if not run_immediately and self._stop_event.wait(self.interval):
            return
        while not self._stop_event.is_set():
            try:
                self.func()
            except Exception as e:
                logger.debug(f"{self.name} runner error: {e}")
            if self._stop_event.wait(self.interval):
                return


class SessionScheduler:
    """The three periodic jobs of a logged-in session.

    Started when a user logs in and stopped on logout or user change.
    """

    def __init__(
        self,
        session,
        refresh_interval: float = 30,
        notification_interval: float = 5,
        reminder_interval: float = 10,
    ):
        self.session = session
        self.runners: List[PeriodicRunner] = [
            PeriodicRunner("lead-refresh", refresh_interval, session.refresh_leads),
            PeriodicRunner("notification-poll", notification_interval, session.poll_notifications),
            PeriodicRunner("task-reminders", reminder_interval, session.check_reminders),
        ]

    @property
    def running(self) -> bool:
        return any(r.running for r in self.runners)

    def start(self):
        # The lead refresh already happened at load time.
        for runner in self.runners:
            runner.start(run_immediately=runner.name != "lead-refresh")

    def stop(self):
        for runner in self.runners:
            runner.stop()
