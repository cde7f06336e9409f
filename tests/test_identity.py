"""Tests for user identity reconciliation."""

import logging

import pytest

from estate_crm.remote.errors import ErrorKind, RemoteError
from estate_crm.storage.models import User, UserRole
from estate_crm.sync.identity import IdentityReconciler, build_id_mapping, is_local_id

from conftest import FakeRemote


class TestLocalIds:
    """Tests for is_local_id."""

    def test_local_patterns(self):
        """Test locally minted ids are recognised."""
        assert is_local_id("user-1718000000000")
        assert is_local_id("admin-0")

    def test_remote_ids(self):
        """Test remote-issued ids are not local."""
        assert not is_local_id("3f2a9c1e-5b7d-4e8f-9a0b-1c2d3e4f5a6b")
        assert not is_local_id("user-abc")
        assert not is_local_id("")
        assert not is_local_id(None)


class TestBuildIdMapping:
    """Tests for build_id_mapping."""

    def test_matches_by_name(self):
        """Test a remote user with the same name maps the local id."""
        local = [User(id="user-1", name="Pinki Sahu")]
        remote = [User(id="uuid-p", name="pinki  sahu")]

        assert build_id_mapping(local, remote) == {"user-1": "uuid-p"}

    def test_same_id_needs_no_mapping(self):
        """Test users already sharing an id are left alone."""
        local = [User(id="uuid-p", name="Pinki Sahu")]
        remote = [User(id="uuid-p", name="Pinki Sahu")]

        assert build_id_mapping(local, remote) == {}

    def test_unknown_remote_user_ignored(self):
        """Test remote users with no local counterpart produce no mapping."""
        assert build_id_mapping([User(id="user-1", name="A")], [User(id="uuid-b", name="B")]) == {}

    def test_duplicate_remote_names_keep_first(self, caplog):
        """Test a second remote user with the same name is logged, not mapped."""
        local = [User(id="user-1", name="Pinki Sahu")]
        remote = [User(id="uuid-a", name="Pinki Sahu"), User(id="uuid-b", name="PINKI SAHU")]

        with caplog.at_level(logging.DEBUG, logger="estate_crm.sync.identity"):
            mapping = build_id_mapping(local, remote)

        assert mapping == {"user-1": "uuid-a"}
        assert "uuid-b" in caplog.text


class TestIdentityReconciler:
    """Tests for IdentityReconciler."""

    def test_reconcile_adopts_remote_ids(self, mirror):
        """Test load-time reconciliation rewrites the mirror."""
        remote = FakeRemote(users=[{"id": "uuid-amit", "name": "Amit Naithani", "role": "Salesperson"}])
        reconciler = IdentityReconciler(mirror, remote)

        mapping = reconciler.reconcile(reconciler.fetch_remote_users())

        assert mapping == {"user-1": "uuid-amit"}
        assert mirror.find_user("user-1") is None
        assert mirror.find_user("uuid-amit").name == "Amit Naithani"
        assert not any(l.assigned_salesperson_id == "user-1" for l in mirror.get_leads())

    def test_reconcile_adds_remote_only_users(self, mirror):
        """Test remote users unknown locally are added to the mirror."""
        remote = FakeRemote(users=[{"id": "uuid-new", "name": "New Hire", "role": "Salesperson"}])
        reconciler = IdentityReconciler(mirror, remote)

        reconciler.reconcile(reconciler.fetch_remote_users())

        assert mirror.find_user("uuid-new") is not None

    def test_fetch_failure_returns_none(self, mirror):
        """Test an unreachable remote yields None rather than raising."""
        remote = FakeRemote()
        remote.available = False

        assert IdentityReconciler(mirror, remote).fetch_remote_users() is None

    def test_resync_pushes_users_and_remaps(self, mirror):
        """Test resync registers every mirror user then adopts issued ids."""
        remote = FakeRemote()
        reconciler = IdentityReconciler(mirror, remote)

        mapping = reconciler.resync()

        assert len(remote.sync_calls) == 1
        assert len(remote.sync_calls[0]) == 8
        assert mapping["user-3"] == "uuid-pinki-sahu"
        assert mapping["admin-0"] == "uuid-admin"
        assert all(not u.has_local_id for u in mirror.get_users())

    def test_resync_failure_propagates(self, mirror):
        """Test a failed sync call surfaces as RemoteError."""
        remote = FakeRemote()
        remote.sync_error = RemoteError(ErrorKind.MISSING_REMOTE_RESOURCE, "no table", resource="users")

        with pytest.raises(RemoteError):
            IdentityReconciler(mirror, remote).resync()
        assert mirror.find_user("user-1") is not None
