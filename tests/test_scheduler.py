"""Tests for background runners and notices."""

import threading
from datetime import datetime, timedelta

from estate_crm.notifications.notices import NoticeBoard, NoticeLevel
from estate_crm.tasks.scheduler import PeriodicRunner, SessionScheduler


class TestPeriodicRunner:
    """Tests for PeriodicRunner."""

    def test_runs_and_stops(self):
        """Test the job runs on the thread and stops promptly."""
        ran = threading.Event()
        runner = PeriodicRunner("test", 0.01, ran.set)

        runner.start()
        assert ran.wait(2)
        runner.stop()

        assert runner.running is False

    def test_errors_do_not_kill_loop(self):
        """Test a raising job keeps being called."""
        calls = []
        second_call = threading.Event()

        def job():
            calls.append(1)
            if len(calls) >= 2:
                second_call.set()
            raise RuntimeError("boom")

        runner = PeriodicRunner("failing", 0.01, job)
        runner.start()
        assert second_call.wait(2)
        runner.stop()


class FakeSession:
    def __init__(self):
        self.calls = []

    def refresh_leads(self):
        self.calls.append("refresh")

    def poll_notifications(self):
        self.calls.append("poll")

    def check_reminders(self):
        self.calls.append("remind")


class TestSessionScheduler:
    """Tests for SessionScheduler."""

    def test_start_and_stop_all_jobs(self):
        """Test the three jobs start together and all stop."""
        session = FakeSession()
        scheduler = SessionScheduler(session, refresh_interval=60, notification_interval=60, reminder_interval=60)

        scheduler.start()
        assert scheduler.running
        scheduler.stop()

        assert not scheduler.running
        assert "refresh" not in session.calls


class TestNoticeBoard:
    """Tests for NoticeBoard."""

    def test_long_notices_last_longer(self):
        """Test long notices use the long duration."""
        board = NoticeBoard(default_duration=5, long_duration=15)

        short = board.push("Saved")
        long = board.long("Create the users table")

        assert short.duration == 5
        assert long.duration == 15
        assert long.level == NoticeLevel.ERROR

    def test_active_expires(self):
        """Test notices drop out once their duration passes."""
        board = NoticeBoard(default_duration=5)
        board.push("Saved")

        later = datetime.now() + timedelta(seconds=10)
        assert board.active() != []
        assert board.active(later) == []

    def test_handlers_receive_notices(self):
        """Test registered handlers see every pushed notice."""
        board = NoticeBoard()
        seen = []
        board.add_handler(seen.append)

        board.push("Hello")

        assert [n.message for n in seen] == ["Hello"]
