"""Tests for the local mirror store."""

import json

import pytest

from estate_crm.storage.mirror import MirrorNotInitialized, MirrorStore
from estate_crm.storage.models import (
    Activity,
    ActivityType,
    Lead,
    LeadStatus,
    Task,
    UnitStatus,
    User,
)


class TestMirrorLifecycle:
    """Tests for init, load, persist and reset."""

    def test_init_seeds_when_missing(self, temp_data_dir):
        """Test a fresh mirror is seeded and written to disk."""
        store = MirrorStore(data_path=temp_data_dir / "mirror.json").init()

        assert (temp_data_dir / "mirror.json").exists()
        data = store.snapshot()
        assert any(u.id == "admin-0" for u in data.users)
        assert len(data.leads) > 0
        assert {t.id for t in data.tasks} == {"task-1", "task-2"}

    def test_use_before_init_raises(self, temp_data_dir):
        """Test reads before init fail loudly."""
        store = MirrorStore(data_path=temp_data_dir / "mirror.json")

        with pytest.raises(MirrorNotInitialized):
            store.get_leads()

    def test_persisted_data_survives_reload(self, mirror):
        """Test a completed write is visible to a new store instance."""
        lead = Lead(id="lead-1", customer_name="Ravi", mobile="9111111111")
        mirror.add_lead(lead)

        reloaded = MirrorStore(data_path=mirror.data_path).init()
        stored = reloaded.find_lead("lead-1")

        assert stored is not None
        assert stored.customer_name == "Ravi"

    def test_corrupt_mirror_is_reseeded(self, temp_data_dir):
        """Test an unparseable record is replaced with seed data."""
        path = temp_data_dir / "mirror.json"
        path.write_text("{not json")

        store = MirrorStore(data_path=path).init()

        assert len(store.get_users()) == 8
        assert json.loads(path.read_text())["version"] == 1

    def test_wrong_version_is_reseeded(self, temp_data_dir):
        """Test an unknown record version is treated as corrupt."""
        path = temp_data_dir / "mirror.json"
        path.write_text(json.dumps({"version": 99, "leads": []}))

        store = MirrorStore(data_path=path).init()

        assert len(store.get_leads()) > 0

    def test_reads_return_copies(self, mirror):
        """Test mutating a returned lead does not change the mirror."""
        lead = mirror.get_leads()[0]
        lead.customer_name = "Changed"

        assert mirror.find_lead(lead.id).customer_name != "Changed"


class TestMirrorLeads:
    """Tests for lead and activity operations."""

    def test_delete_lead_cascades_activities(self, mirror):
        """Test deleting a lead removes its activities."""
        lead_id = mirror.get_leads()[0].id
        assert any(a.lead_id == lead_id for a in mirror.get_activities())

        assert mirror.delete_lead(lead_id) is True

        assert mirror.find_lead(lead_id) is None
        assert not any(a.lead_id == lead_id for a in mirror.get_activities())

    def test_add_activity_updates_lead(self, mirror):
        """Test an activity stamps the lead's last remark and date."""
        lead = mirror.get_leads()[0]
        activity = Activity(
            id="act-x",
            lead_id=lead.id,
            salesperson_id="user-1",
            type=ActivityType.CALL,
            date="2030-01-01T00:00:00.000Z",
            remarks="Called back",
        )

        mirror.add_activity(activity)

        stored = mirror.find_lead(lead.id)
        assert stored.last_remark == "Called back"
        assert stored.last_activity_date == "2030-01-01T00:00:00.000Z"
        assert mirror.get_activities()[0].id == "act-x"

    def test_bulk_update(self, mirror):
        """Test bulk status change touches only the named leads."""
        ids = [l.id for l in mirror.get_leads()[:2]]

        count = mirror.bulk_update_leads(ids, status=LeadStatus.QUALIFIED)

        assert count == 2
        statuses = {l.id: l.status for l in mirror.get_leads()}
        assert all(statuses[i] == LeadStatus.QUALIFIED for i in ids)

    def test_update_missing_lead_returns_false(self, mirror):
        """Test updating an unknown lead is a no-op."""
        assert mirror.update_lead(Lead(id="nope")) is False


class TestMirrorUsers:
    """Tests for user operations and id remapping."""

    def test_remap_rewrites_every_reference(self, mirror):
        """Test no reference to a remapped id survives anywhere."""
        old_id = "user-2"
        mirror.add_task(Task(id="task-x", title="Call", assigned_to_id=old_id, due_date="2030-01-01"))
        mirror.add_activity(Activity(
            id="act-x", lead_id=mirror.get_leads()[0].id, salesperson_id=old_id, type=ActivityType.NOTE
        ))
        lead = mirror.get_leads()[0]
        lead.assigned_salesperson_id = old_id
        mirror.update_lead(lead)

        counts = mirror.remap_user_ids({old_id: "uuid-neeraj"})

        data = mirror.snapshot()
        assert old_id not in {u.id for u in data.users}
        assert old_id not in {l.assigned_salesperson_id for l in data.leads}
        assert old_id not in {a.salesperson_id for a in data.activities}
        assert old_id not in {t.assigned_to_id for t in data.tasks}
        assert old_id not in {s.salesperson_id for s in data.sales_targets}
        assert counts["users"] == 1
        assert counts["tasks"] >= 2

    def test_remap_is_durable(self, mirror):
        """Test the remap is persisted in the same write."""
        mirror.remap_user_ids({"user-1": "uuid-amit"})

        reloaded = MirrorStore(data_path=mirror.data_path).init()
        assert reloaded.find_user("uuid-amit").name == "Amit Naithani"

    def test_delete_user_reassigns_leads_to_admin(self, mirror):
        """Test a deleted user's leads go to the fallback user."""
        owned = [l.id for l in mirror.get_leads() if l.assigned_salesperson_id == "user-1"]
        assert owned

        reassigned = mirror.delete_user("user-1", "admin-0")

        assert reassigned == len(owned)
        assert mirror.find_user("user-1") is None
        for lead_id in owned:
            assert mirror.find_lead(lead_id).assigned_salesperson_id == "admin-0"

    def test_add_user_creates_sales_target(self, mirror):
        """Test new salespeople get default targets."""
        mirror.add_user(User(id="user-99", name="New Person"))

        target = next(s for s in mirror.get_sales_targets() if s.salesperson_id == "user-99")
        assert target.targets == {"bookings": 5, "visits": 15}


class TestMirrorInventory:
    """Tests for unit bookkeeping."""

    def test_book_unit_updates_counts(self, mirror):
        """Test booking marks the unit and recounts availability."""
        project = mirror.get_inventory()[0]
        unit = next(u for u in project.units if u.status == UnitStatus.AVAILABLE)

        assert mirror.book_unit(unit.id, project.name) is True

        updated = mirror.get_inventory()[0]
        assert updated.find_unit(unit.id).status == UnitStatus.BOOKED
        assert updated.available_units == project.available_units - 1

    def test_book_unknown_unit(self, mirror):
        """Test booking an unknown unit reports failure."""
        assert mirror.book_unit("missing-unit") is False

    def test_delete_unit_recounts(self, mirror):
        """Test deleting a unit updates the project totals."""
        project = mirror.get_inventory()[0]

        assert mirror.delete_unit(project.id, project.units[-1].id) is True
        assert mirror.get_inventory()[0].total_units == project.total_units - 1
