"""Tests for the estate-crm command line."""

from unittest.mock import patch

import pytest
from click.testing import CliRunner
from rich.console import Console

from estate_crm.cli.main import cli
from estate_crm.remote.errors import error_from_response
from estate_crm.session import CrmSession
from estate_crm.storage.mirror import MirrorStore
from estate_crm.storage.models import UnitStatus

from conftest import FakeRemote, remote_lead


def test_init_creates_mirror(temp_data_dir):
    """Test init seeds a mirror at the given path."""
    path = temp_data_dir / "mirror.json"

    result = CliRunner().invoke(cli, ["--mirror", str(path), "init"])

    assert result.exit_code == 0
    assert "Mirror ready" in result.output
    assert path.exists()


def test_reset_restores_demo_data(temp_data_dir):
    """Test reset discards local changes."""
    path = temp_data_dir / "mirror.json"
    store = MirrorStore(data_path=path).init()
    store.delete_lead(store.get_leads()[0].id)

    result = CliRunner().invoke(cli, ["--mirror", str(path), "reset", "--yes"])

    assert result.exit_code == 0
    assert len(MirrorStore(data_path=path).init().get_leads()) == 6


class TestSessionCommands:
    """Tests for commands that run against a loaded session."""

    @pytest.fixture(autouse=True)
    def setup(self, mirror, notices):
        self.mirror = mirror
        self.remote = FakeRemote(leads=[
            remote_lead("lead-seed-1", "Rahul Verma", "9826000001", assignedSalespersonId="user-1"),
            remote_lead("lead-seed-2", "Sneha Gupta", "9826000002", assignedSalespersonId="user-2"),
        ])
        self.session = CrmSession(mirror, self.remote, notices)
        self.session.load()

        with patch("estate_crm.cli.main.get_session", return_value=self.session), \
                patch("estate_crm.cli.main.console", Console(width=200)):
            yield

    def invoke(self, *args):
        return CliRunner().invoke(cli, list(args))

    def test_leads_filtered_by_user(self):
        """Test a salesperson only sees their own leads."""
        result = self.invoke("leads", "--as", "Amit Naithani")

        assert result.exit_code == 0
        assert "Rahul Verma" in result.output
        assert "Sneha Gupta" not in result.output

    def test_leads_unknown_user(self):
        """Test viewing as an unknown user fails cleanly."""
        result = self.invoke("leads", "--as", "Nobody")

        assert result.exit_code != 0
        assert "Nobody" in result.output

    def test_assign_to_salesperson(self):
        """Test assigning by name sends that user's id."""
        result = self.invoke("assign", "lead-seed-1", "Pinki Sahu", "--as", "Admin")

        assert result.exit_code == 0
        lead_id, payload = self.remote.update_calls[-1]
        assert lead_id == "lead-seed-1"
        assert payload["assignedSalespersonId"] == "user-3"

    def test_assign_none_sends_null(self):
        """Test 'none' unassigns the lead remotely and locally."""
        result = self.invoke("assign", "lead-seed-1", "none", "--as", "Admin")

        assert result.exit_code == 0
        _, payload = self.remote.update_calls[-1]
        assert "assignedSalespersonId" in payload
        assert payload["assignedSalespersonId"] is None
        assert self.mirror.find_lead("lead-seed-1").assigned_salesperson_id is None

    def test_assign_unknown_user(self):
        """Test an unknown assignee is rejected before any update."""
        result = self.invoke("assign", "lead-seed-1", "Nobody", "--as", "Admin")

        assert result.exit_code != 0
        assert self.remote.update_calls == []

    def test_set_status_booking_books_unit(self):
        """Test a booking with a unit marks the unit booked."""
        result = self.invoke("set-status", "lead-seed-2", "Booking", "--unit", "proj-1-unit-3")

        assert result.exit_code == 0
        _, payload = self.remote.update_calls[-1]
        assert payload["status"] == "Booking"
        project = next(p for p in self.mirror.get_inventory() if p.id == "proj-1")
        assert project.find_unit("proj-1-unit-3").status == UnitStatus.BOOKED
        assert project.available_units == 4

    def test_set_status_invalid(self):
        """Test an unknown status is rejected."""
        result = self.invoke("set-status", "lead-seed-2", "Sold")

        assert result.exit_code != 0
        assert "Invalid status" in result.output

    def test_set_status_unknown_unit(self):
        """Test booking a unit that does not exist fails."""
        result = self.invoke("set-status", "lead-seed-2", "Booking", "--unit", "proj-9-unit-1")

        assert result.exit_code != 0
        assert self.remote.update_calls == []

    def test_delete_requires_admin(self):
        """Test a salesperson cannot delete leads."""
        result = self.invoke("delete", "lead-seed-1", "--as", "Amit Naithani")

        assert result.exit_code != 0
        assert self.mirror.find_lead("lead-seed-1") is not None

    def test_delete_as_admin(self):
        """Test an admin delete removes the lead everywhere."""
        result = self.invoke("delete", "lead-seed-1", "--as", "Admin")

        assert result.exit_code == 0
        assert self.mirror.find_lead("lead-seed-1") is None
        assert not any(l["id"] == "lead-seed-1" for l in self.remote.leads)

    def test_users_sync_remaps_local_ids(self):
        """Test users-sync adopts the ids issued by the remote."""
        result = self.invoke("users-sync")

        assert result.exit_code == 0
        assert "uuid-amit-naithani" in result.output
        assert self.mirror.find_user("user-1") is None
        assert self.mirror.find_lead("lead-seed-1").assigned_salesperson_id == "uuid-amit-naithani"

    def test_users_sync_failure(self):
        """Test a failed sync exits with an error."""
        self.remote.sync_error = error_from_response(
            "Could not find the table 'public.users' in the schema cache", 500
        )

        result = self.invoke("users-sync")

        assert result.exit_code != 0
        assert "User sync failed" in result.output
