"""Shared fixtures: temp mirror storage and an in-process fake remote service."""

import copy
import tempfile
from pathlib import Path

import pytest

from estate_crm.notifications.notices import NoticeBoard
from estate_crm.remote.errors import ErrorKind, RemoteError, error_from_response
from estate_crm.session import CrmSession
from estate_crm.storage.mirror import MirrorStore


class FakeRemote:
    """Stands in for the remote REST service.

    Queue errors in ``update_errors`` to fail the next ``update_lead`` calls.
    """

    def __init__(self, leads=None, users=None):
        self.leads = leads if leads is not None else []
        self.users = users if users is not None else []
        self.notifications = []
        self.available = True
        self.update_errors = []
        self.update_response = None
        self.sync_error = None
        self.delete_error = None
        self.update_calls = []
        self.sync_calls = []
        self.read_calls = []

    def _check(self):
        if not self.available:
            raise RemoteError(ErrorKind.NETWORK, "Connection refused")

    def get_leads(self):
        self._check()
        return copy.deepcopy(self.leads)

    def update_lead(self, lead_id, updates):
        self._check()
        self.update_calls.append((lead_id, copy.deepcopy(updates)))
        if self.update_errors:
            raise self.update_errors.pop(0)
        if self.update_response is not None:
            return copy.deepcopy(self.update_response)
        for lead in self.leads:
            if lead["id"] == lead_id:
                lead.update(updates)
                return {"success": True, "lead": copy.deepcopy(lead)}
        raise error_from_response("Lead not found", 404)

    def delete_lead(self, lead_id, role):
        self._check()
        if self.delete_error:
            raise self.delete_error
        self.leads = [l for l in self.leads if l["id"] != lead_id]
        return {"success": True}

    def get_users(self):
        self._check()
        return copy.deepcopy(self.users)

    def sync_users(self, users):
        self._check()
        self.sync_calls.append(copy.deepcopy(users))
        if self.sync_error:
            raise self.sync_error
        for user in users:
            if not any(u["name"] == user["name"] for u in self.users):
                slug = user["name"].lower().replace(" ", "-")
                self.users.append({"id": f"uuid-{slug}", "name": user["name"], "role": user["role"]})
        return {"success": True, "synced": len(users)}

    def get_notifications(self, user_id, role, last_checked=None):
        self._check()
        return [
            n for n in self.notifications
            if not n.get("isRead") and (role == "Admin" or n.get("targetUserId") == user_id)
        ]

    def mark_notification_read(self, notification_id):
        self.read_calls.append(notification_id)
        for n in self.notifications:
            if n.get("id") == notification_id:
                n["isRead"] = True
        return {"success": True}


def remote_lead(lead_id, name="Test Customer", mobile="9000000000", **extra):
    """A remote lead record as the service returns it."""
    record = {
        "id": lead_id,
        "customerName": name,
        "mobile": mobile,
        "status": "New Lead",
        "assignedSalespersonId": None,
        "leadDate": "2025-01-10T10:00:00.000Z",
        "lastActivityDate": "2025-01-11T10:00:00.000Z",
        "month": "January 2025",
        "modeOfEnquiry": "Website",
        "visitStatus": "No",
        "lastRemark": "",
        "isRead": False,
        "missedVisitsCount": 0,
    }
    record.update(extra)
    return record


@pytest.fixture
def temp_data_dir():
    """Create temporary data directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def mirror(temp_data_dir):
    """Mirror seeded with demo data in temp storage."""
    return MirrorStore(data_path=temp_data_dir / "mirror.json").init()


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def notices():
    return NoticeBoard(default_duration=5, long_duration=15)


@pytest.fixture
def session(mirror, remote, notices):
    """Loaded session with the fake remote."""
    crm = CrmSession(mirror, remote, notices)
    crm.load()
    return crm
