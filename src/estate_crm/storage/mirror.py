"""Durable local mirror of the CRM dataset.

The mirror is a single versioned JSON record. It is the fallback source of
truth whenever the remote service is unreachable, and the place where
optimistic edits are persisted before the remote confirms them.

Lifecycle: construct, then ``init()`` (load or seed) before any other call.
Every mutating call persists before returning, so a completed call is durable.
"""

import copy
import json
import logging
import os
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional, List, Dict, Any, Callable, Iterable

from .models import (
    Activity,
    Lead,
    Project,
    SalesTarget,
    Task,
    Unit,
    UnitStatus,
    User,
    UserRole,
    utc_now_iso,
)
from .seed import MirrorData, seed_data

logger = logging.getLogger(__name__)

STORAGE_KEY = "estate_crm_db_v1"
STORAGE_VERSION = 1


class MirrorNotInitialized(RuntimeError):
    """Raised when the mirror is used before ``init()``."""


class MirrorStore:
    """Thread-safe JSON-file mirror of users, leads, activities, tasks and inventory."""

    def __init__(
        self,
        data_path: Optional[Path] = None,
        seed_factory: Callable[[], MirrorData] = seed_data,
    ):
        self.data_path = Path(data_path) if data_path else Path.home() / ".estate-crm" / "mirror.json"
        self.seed_factory = seed_factory
        self._data: Optional[MirrorData] = None
        self._lock = threading.RLock()

    # Lifecycle

    def init(self) -> "MirrorStore":
        """Load the persisted record, seeding it if absent or unreadable."""
        with self._lock:
            if self.data_path.exists():
                self.load()
            else:
                logger.info(f"No mirror at {self.data_path}, seeding demo data")
                self.reset()
        return self

    @property
    def is_initialized(self) -> bool:
        return self._data is not None

    def load(self) -> MirrorData:
        """Read the record from disk. A corrupt record is replaced by seed data."""
        with self._lock:
            try:
                with open(self.data_path, "r") as f:
                    raw = json.load(f)
                self._data = self._decode(raw)
            except (OSError, ValueError, KeyError, TypeError) as e:
                logger.error(f"Mirror at {self.data_path} is unreadable ({e}), reseeding")
                self.reset()
            return self.snapshot()

    def persist(self):
        """Write the current record atomically."""
        with self._lock:
            data = self._require()
            self.data_path.parent.mkdir(parents=True, exist_ok=True)
            record = {
                "key": STORAGE_KEY,
                "version": STORAGE_VERSION,
                "users": [u.to_dict() for u in data.users],
                "leads": [l.to_dict() for l in data.leads],
                "activities": [a.to_dict() for a in data.activities],
                "tasks": [t.to_dict() for t in data.tasks],
                "salesTargets": [s.to_dict() for s in data.sales_targets],
                "inventory": [p.to_dict() for p in data.projects],
                "updatedAt": datetime.now().isoformat(),
            }
            tmp_path = self.data_path.with_suffix(self.data_path.suffix + ".tmp")
            with open(tmp_path, "w") as f:
                json.dump(record, f, indent=2)
            os.replace(tmp_path, self.data_path)

    def reset(self) -> MirrorData:
        """Replace everything with fresh seed data."""
        with self._lock:
            self._data = self.seed_factory()
            self.persist()
            return self.snapshot()

    def _require(self) -> MirrorData:
        if self._data is None:
            raise MirrorNotInitialized("Mirror store used before init()")
        return self._data

    @staticmethod
    def _decode(raw: Dict[str, Any]) -> MirrorData:
        if not isinstance(raw, dict) or raw.get("version") != STORAGE_VERSION:
            raise ValueError("unsupported mirror version")
        return MirrorData(
            users=[User.from_dict(u) for u in raw["users"]],
            leads=[Lead.from_dict(l) for l in raw["leads"]],
            activities=[Activity.from_dict(a) for a in raw["activities"]],
            tasks=[Task.from_dict(t) for t in raw["tasks"]],
            sales_targets=[SalesTarget.from_dict(s) for s in raw.get("salesTargets", [])],
            projects=[Project.from_dict(p) for p in raw.get("inventory", [])],
        )

    # Reads. Everything returned is a copy.

    def snapshot(self) -> MirrorData:
        with self._lock:
            return copy.deepcopy(self._require())

    def get_users(self) -> List[User]:
        with self._lock:
            return copy.deepcopy(self._require().users)

    def get_leads(self) -> List[Lead]:
        with self._lock:
            return copy.deepcopy(self._require().leads)

    def get_activities(self) -> List[Activity]:
        with self._lock:
            return copy.deepcopy(self._require().activities)

    def get_tasks(self) -> List[Task]:
        with self._lock:
            return copy.deepcopy(self._require().tasks)

    def get_sales_targets(self) -> List[SalesTarget]:
        with self._lock:
            return copy.deepcopy(self._require().sales_targets)

    def get_inventory(self) -> List[Project]:
        with self._lock:
            return copy.deepcopy(self._require().projects)

    def find_lead(self, lead_id: str) -> Optional[Lead]:
        with self._lock:
            for lead in self._require().leads:
                if lead.id == lead_id:
                    return copy.deepcopy(lead)
        return None

    def find_user(self, user_id: str) -> Optional[User]:
        with self._lock:
            for user in self._require().users:
                if user.id == user_id:
                    return copy.deepcopy(user)
        return None

    def admin_user(self) -> Optional[User]:
        with self._lock:
            for user in self._require().users:
                if user.role == UserRole.ADMIN:
                    return copy.deepcopy(user)
        return None

    # Leads

    def set_leads(self, leads: List[Lead]):
        """Replace the stored lead collection in one write."""
        with self._lock:
            self._require().leads = copy.deepcopy(leads)
            self.persist()

    def add_lead(self, lead: Lead):
        with self._lock:
            self._require().leads.insert(0, copy.deepcopy(lead))
            self.persist()
        logger.info(f"Added lead {lead.id} ({lead.customer_name}) to mirror")

    def update_lead(self, lead: Lead) -> bool:
        """Overwrite the stored lead with the same id. Returns False if absent."""
        with self._lock:
            leads = self._require().leads
            for index, existing in enumerate(leads):
                if existing.id == lead.id:
                    leads[index] = copy.deepcopy(lead)
                    self.persist()
                    return True
        logger.debug(f"Lead {lead.id} not in mirror, update skipped")
        return False

    def save_lead(self, lead: Lead):
        """Update the lead if present, otherwise add it."""
        with self._lock:
            if not self.update_lead(lead):
                self.add_lead(lead)

    def bulk_update_leads(self, lead_ids: Iterable[str], **changes) -> int:
        """Apply the same attribute changes to several leads."""
        ids = set(lead_ids)
        updated = 0
        with self._lock:
            for lead in self._require().leads:
                if lead.id in ids:
                    for key, value in changes.items():
                        if hasattr(lead, key):
                            setattr(lead, key, value)
                    lead.last_activity_date = utc_now_iso()
                    updated += 1
            if updated:
                self.persist()
        return updated

    def delete_lead(self, lead_id: str) -> bool:
        """Remove a lead and every activity recorded against it."""
        with self._lock:
            data = self._require()
            before = len(data.leads)
            data.leads = [l for l in data.leads if l.id != lead_id]
            if len(data.leads) == before:
                return False
            data.activities = [a for a in data.activities if a.lead_id != lead_id]
            self.persist()
        logger.info(f"Deleted lead {lead_id} from mirror")
        return True

    # Activities

    def add_activity(self, activity: Activity):
        """Record an activity and stamp the lead's last remark and activity date."""
        with self._lock:
            data = self._require()
            data.activities.insert(0, copy.deepcopy(activity))
            for lead in data.leads:
                if lead.id == activity.lead_id:
                    lead.last_activity_date = activity.date
                    lead.last_remark = activity.remarks
                    break
            self.persist()

    def delete_activity(self, activity_id: str) -> bool:
        with self._lock:
            data = self._require()
            before = len(data.activities)
            data.activities = [a for a in data.activities if a.id != activity_id]
            if len(data.activities) == before:
                return False
            self.persist()
            return True

    # Tasks

    def add_task(self, task: Task):
        with self._lock:
            self._require().tasks.insert(0, copy.deepcopy(task))
            self.persist()

    def update_task(self, task: Task) -> bool:
        with self._lock:
            tasks = self._require().tasks
            for index, existing in enumerate(tasks):
                if existing.id == task.id:
                    tasks[index] = copy.deepcopy(task)
                    self.persist()
                    return True
        return False

    def toggle_task(self, task_id: str) -> Optional[Task]:
        with self._lock:
            for task in self._require().tasks:
                if task.id == task_id:
                    task.is_completed = not task.is_completed
                    self.persist()
                    return copy.deepcopy(task)
        return None

    def mark_task_reminded(self, task_id: str) -> bool:
        with self._lock:
            for task in self._require().tasks:
                if task.id == task_id:
                    task.has_reminded = True
                    self.persist()
                    return True
        return False

    def delete_task(self, task_id: str) -> bool:
        with self._lock:
            data = self._require()
            before = len(data.tasks)
            data.tasks = [t for t in data.tasks if t.id != task_id]
            if len(data.tasks) == before:
                return False
            self.persist()
            return True

    # Users

    def add_user(self, user: User):
        """Add a user, and a default sales target for salespeople."""
        with self._lock:
            data = self._require()
            data.users.append(copy.deepcopy(user))
            if user.role == UserRole.SALESPERSON:
                data.sales_targets.append(SalesTarget(salesperson_id=user.id, name=user.name))
            self.persist()
        logger.info(f"Added user {user.name} ({user.id}) to mirror")

    def delete_user(self, user_id: str, reassign_to_id: Optional[str]) -> int:
        """Remove a user and hand their leads to ``reassign_to_id``.

        Returns the number of reassigned leads.
        """
        with self._lock:
            data = self._require()
            data.users = [u for u in data.users if u.id != user_id]
            data.sales_targets = [s for s in data.sales_targets if s.salesperson_id != user_id]
            reassigned = 0
            for lead in data.leads:
                if lead.assigned_salesperson_id == user_id:
                    lead.assigned_salesperson_id = reassign_to_id
                    reassigned += 1
            self.persist()
        logger.info(f"Deleted user {user_id}, reassigned {reassigned} leads to {reassign_to_id}")
        return reassigned

    def remap_user_ids(self, mapping: Dict[str, str]) -> Dict[str, int]:
        """Rewrite every stored reference to an old user id in one write.

        Covers users, lead assignees, activity actors, task assignees and
        sales targets. Returns how many references of each kind changed.
        """
        counts = {"users": 0, "leads": 0, "activities": 0, "tasks": 0, "sales_targets": 0}
        if not mapping:
            return counts
        with self._lock:
            data = self._require()
            for user in data.users:
                if user.id in mapping:
                    user.id = mapping[user.id]
                    counts["users"] += 1
            for lead in data.leads:
                if lead.assigned_salesperson_id in mapping:
                    lead.assigned_salesperson_id = mapping[lead.assigned_salesperson_id]
                    counts["leads"] += 1
            for activity in data.activities:
                if activity.salesperson_id in mapping:
                    activity.salesperson_id = mapping[activity.salesperson_id]
                    counts["activities"] += 1
            for task in data.tasks:
                if task.assigned_to_id in mapping:
                    task.assigned_to_id = mapping[task.assigned_to_id]
                    counts["tasks"] += 1
            for target in data.sales_targets:
                if target.salesperson_id in mapping:
                    target.salesperson_id = mapping[target.salesperson_id]
                    counts["sales_targets"] += 1
            self.persist()
        logger.info(f"Remapped {len(mapping)} user ids in mirror: {counts}")
        return counts

    # Inventory

    def _find_project(self, project_ref: Optional[str]) -> Optional[Project]:
        if not project_ref:
            return None
        for project in self._require().projects:
            if project.id == project_ref or project.name == project_ref:
                return project
        return None

    @staticmethod
    def _recount(project: Project):
        project.total_units = len(project.units)
        project.available_units = sum(1 for u in project.units if u.status == UnitStatus.AVAILABLE)

    def book_unit(self, unit_id: str, project_ref: Optional[str] = None) -> bool:
        """Mark a unit Booked. Searches ``project_ref`` first, then every project."""
        with self._lock:
            candidates = []
            owner = self._find_project(project_ref)
            if owner:
                candidates.append(owner)
            candidates.extend(p for p in self._require().projects if p is not owner)
            for project in candidates:
                unit = project.find_unit(unit_id)
                if unit:
                    unit.status = UnitStatus.BOOKED
                    self._recount(project)
                    self.persist()
                    logger.info(f"Booked unit {unit.unit_number} in {project.name}")
                    return True
        logger.warning(f"Unit {unit_id} not found in inventory, booking not recorded")
        return False

    def add_unit(self, project_id: str, unit: Unit) -> bool:
        with self._lock:
            project = self._find_project(project_id)
            if not project:
                return False
            project.units.append(copy.deepcopy(unit))
            self._recount(project)
            self.persist()
            return True

    def update_unit(self, project_id: str, unit: Unit) -> bool:
        with self._lock:
            project = self._find_project(project_id)
            if not project:
                return False
            for index, existing in enumerate(project.units):
                if existing.id == unit.id:
                    project.units[index] = copy.deepcopy(unit)
                    self._recount(project)
                    self.persist()
                    return True
        return False

    def delete_unit(self, project_id: str, unit_id: str) -> bool:
        with self._lock:
            project = self._find_project(project_id)
            if not project or not project.find_unit(unit_id):
                return False
            project.units = [u for u in project.units if u.id != unit_id]
            self._recount(project)
            self.persist()
            return True
