"""A logged-in CRM session: in-memory view state plus sync orchestration.

The session owns the view state (leads, users, activities, tasks, inventory)
that a front end renders. The mirror is the durable copy and the remote
service is authoritative whenever it answers.

Every background job and in-flight update captures the session generation
when it starts. Login and logout bump the generation, and results that
arrive for an older generation are discarded.
"""

import copy
import logging
import threading
from typing import Optional, List, Dict, Any

from .notifications.notices import NoticeBoard, NoticeLevel
from .notifications.poller import NotificationPoller
from .remote.errors import ErrorKind, RemoteError, UnauthorizedActionError
from .storage.mirror import MirrorStore
from .storage.models import (
    Activity,
    ActivityType,
    Lead,
    LeadStatus,
    ModeOfEnquiry,
    Project,
    SalesTarget,
    Task,
    Unit,
    UnitStatus,
    User,
    UserRole,
    mint_id,
    utc_now_iso,
)
from .sync.booking import BookingHandler
from .sync.identity import IdentityReconciler
from .sync.merge import LeadMerger, MergeResult
from .sync.updates import LeadUpdater, UpdateResult
from .tasks.reminders import ReminderChecker
from .visibility import visible_leads, visible_tasks

logger = logging.getLogger(__name__)


class CrmSession:
    """Coordinates the mirror, the remote service and the view state."""

    def __init__(self, mirror: MirrorStore, remote, notices: Optional[NoticeBoard] = None):
        self.mirror = mirror
        self.remote = remote
        self.notices = notices or NoticeBoard()

        self.reconciler = IdentityReconciler(mirror, remote)
        self.merger = LeadMerger(mirror, remote)
        self.booking = BookingHandler(mirror)
        self.updater = LeadUpdater(mirror, remote, self.reconciler, self.notices)
        self.poller = NotificationPoller(remote, self.notices)
        self.reminders = ReminderChecker(mirror, self.notices)

        # View state
        self.leads: List[Lead] = []
        self.users: List[User] = []
        self.activities: List[Activity] = []
        self.tasks: List[Task] = []
        self.sales_targets: List[SalesTarget] = []
        self.inventory: List[Project] = []

        self.current_user: Optional[User] = None
        self.remote_available = False
        self.last_merge: Optional[MergeResult] = None

        self._generation = 0
        self._lock = threading.RLock()

    # Session lifecycle

    @property
    def generation(self) -> int:
        return self._generation

    def is_current(self, generation: int) -> bool:
        return generation == self._generation

    def login(self, name_or_id: str) -> User:
        """Log in as a known user, matched by id or case-insensitive name."""
        key = name_or_id.strip().casefold()
        with self._lock:
            for user in self.users:
                if user.id == name_or_id or user.name.casefold() == key:
                    self._generation += 1
                    self.current_user = user
                    self.poller.reset()
                    logger.info(f"Logged in as {user.name} ({user.role.value})")
                    return user
        raise ValueError(f"Unknown user: {name_or_id}")

    def logout(self):
        with self._lock:
            self._generation += 1
            self.current_user = None
            self.poller.reset()

    def load(self) -> MergeResult:
        """Reconcile users, merge leads and rebuild the view state."""
        generation = self._generation

        remote_users = self.reconciler.fetch_remote_users()
        if remote_users:
            self.reconciler.reconcile(remote_users)

        result = self.merger.load()
        snapshot = self.mirror.snapshot()

        with self._lock:
            if not self.is_current(generation):
                logger.debug("Discarding load result for a stale session")
                return result
            self.leads = result.leads
            self.remote_available = result.remote_available
            self.last_merge = result
            self.users = snapshot.users
            self.activities = snapshot.activities
            self.tasks = snapshot.tasks
            self.sales_targets = snapshot.sales_targets
            self.inventory = snapshot.projects
            if self.current_user:
                self.current_user = self.find_user(self.current_user.id) or self._find_user_by_name(
                    self.current_user.name
                )
        if not result.remote_available:
            self.notices.push("Remote service unavailable, showing local data.", NoticeLevel.WARNING)
        return result

    def refresh_leads(self) -> Optional[MergeResult]:
        """Periodic lead refresh. Failures keep the current view."""
        if self.current_user is None:
            return None
        generation = self._generation
        try:
            remote_leads = self.remote.get_leads()
        except RemoteError as e:
            logger.debug(f"Lead refresh failed: {e.message}")
            return None
        result = self.merger.merge(remote_leads)
        with self._lock:
            if not self.is_current(generation):
                return None
            self.leads = result.leads
            self.remote_available = True
            self.last_merge = result
        return result

    # Lookups

    def find_user(self, user_id: Optional[str]) -> Optional[User]:
        if not user_id:
            return None
        for user in self.users:
            if user.id == user_id:
                return user
        return None

    def _find_user_by_name(self, name: str) -> Optional[User]:
        for user in self.users:
            if user.name == name:
                return user
        return None

    def user_name(self, user_id: Optional[str]) -> str:
        """Display name for an assignee. Dangling ids render as unassigned."""
        user = self.find_user(user_id)
        return user.name if user else "Unassigned"

    def find_lead(self, lead_id: str) -> Optional[Lead]:
        with self._lock:
            for lead in self.leads:
                if lead.id == lead_id:
                    return lead
        return None

    @property
    def visible_leads(self) -> List[Lead]:
        with self._lock:
            return visible_leads(self.leads, self.current_user)

    @property
    def visible_tasks(self) -> List[Task]:
        with self._lock:
            return visible_tasks(self.tasks, self.current_user)

    def search(self, term: str) -> List[Lead]:
        """Visible leads whose name, mobile or interested project contains ``term``."""
        term = term.strip().casefold()
        if not term:
            return self.visible_leads
        return [
            lead for lead in self.visible_leads
            if term in lead.customer_name.casefold()
            or term in lead.mobile
            or term in (lead.interested_project or "").casefold()
        ]

    def available_units(self, project_id: str, editing_lead: Optional[Lead] = None) -> List[Unit]:
        """Units that can be picked for a booking.

        The unit already booked by ``editing_lead`` stays selectable.
        """
        keep = editing_lead.booked_unit_id if editing_lead else None
        with self._lock:
            for project in self.inventory:
                if project.id == project_id or project.name == project_id:
                    return [
                        u for u in project.units
                        if u.status == UnitStatus.AVAILABLE or (keep and u.id == keep)
                    ]
        return []

    # View-state helpers

    def _require_user(self) -> User:
        if self.current_user is None:
            raise UnauthorizedActionError("No user is logged in")
        return self.current_user

    def _require_admin(self, action: str) -> User:
        user = self._require_user()
        if not user.is_admin:
            raise UnauthorizedActionError(f"Only admins can {action}")
        return user

    def _put_view_lead(self, lead: Lead, generation: int):
        with self._lock:
            if not self.is_current(generation):
                return
            for index, existing in enumerate(self.leads):
                if existing.id == lead.id:
                    self.leads[index] = copy.deepcopy(lead)
                    return
            self.leads.insert(0, copy.deepcopy(lead))

    def _remap_view(self, mapping: Dict[str, str]):
        with self._lock:
            for lead in self.leads:
                if lead.assigned_salesperson_id in mapping:
                    lead.assigned_salesperson_id = mapping[lead.assigned_salesperson_id]
            snapshot = self.mirror.snapshot()
            self.users = snapshot.users
            self.activities = snapshot.activities
            self.tasks = snapshot.tasks
            self.sales_targets = snapshot.sales_targets
            if self.current_user and self.current_user.id in mapping:
                self.current_user = self.find_user(mapping[self.current_user.id])

    def _record_activity(self, activity: Activity, generation: int):
        self.mirror.add_activity(activity)
        with self._lock:
            if not self.is_current(generation):
                return
            self.activities.insert(0, activity)
            lead = self.find_lead(activity.lead_id)
            if lead:
                lead.last_activity_date = activity.date
                lead.last_remark = activity.remarks

    # Lead operations

    def update_lead(self, lead: Lead) -> UpdateResult:
        """Save an edited lead locally and push it to the remote.

        Assignment and booking side effects run whatever the remote outcome.
        """
        actor = self._require_user()
        generation = self._generation
        # The mirror holds the last saved version even if the caller edited a view object in place.
        previous = self.mirror.find_lead(lead.id) or copy.deepcopy(self.find_lead(lead.id))

        result = self.updater.apply(lead, lambda updated: self._put_view_lead(updated, generation))
        if result.id_mapping and self.is_current(generation):
            self._remap_view(result.id_mapping)

        actor_id = result.id_mapping.get(actor.id, actor.id)
        self._after_update(result.lead, previous, result.id_mapping, actor_id, generation)
        return result

    def _after_update(
        self,
        lead: Lead,
        previous: Optional[Lead],
        mapping: Dict[str, str],
        actor_id: str,
        generation: int,
    ):
        if previous is not None:
            old_assignee = previous.assigned_salesperson_id or None
            old_assignee = mapping.get(old_assignee, old_assignee)
            new_assignee = lead.assigned_salesperson_id or None
            if old_assignee != new_assignee:
                assignee = self.find_user(new_assignee)
                self._record_activity(Activity(
                    id=mint_id("act-assign"),
                    lead_id=lead.id,
                    salesperson_id=actor_id,
                    type=ActivityType.NOTE,
                    remarks=f"Lead assigned to {assignee.name if assignee else 'N/A'}.",
                    customer_name=lead.customer_name,
                ), generation)

        booking_activity = self.booking.apply(lead, previous, actor_id)
        if booking_activity:
            inventory = self.mirror.get_inventory()
            with self._lock:
                if self.is_current(generation):
                    self.inventory = inventory
                    self.activities.insert(0, booking_activity)
                    current = self.find_lead(lead.id)
                    if current:
                        current.last_activity_date = booking_activity.date
                        current.last_remark = booking_activity.remarks
            self.notices.push(
                f"Unit {lead.booked_unit_number} booked for {lead.customer_name}.",
                NoticeLevel.SUCCESS,
            )

    def delete_lead(self, lead_id: str) -> bool:
        """Delete a lead remotely and locally. Admin only."""
        user = self._require_admin("delete leads")
        try:
            self.remote.delete_lead(lead_id, user.role.value)
        except RemoteError as e:
            if e.kind != ErrorKind.NOT_FOUND:
                logger.warning(f"Remote delete of lead {lead_id} failed: {e.message}")
                self.notices.push(f"Could not delete lead: {e.message}", NoticeLevel.ERROR)
                return False
            logger.info(f"Lead {lead_id} unknown to remote, deleting locally")

        self.mirror.delete_lead(lead_id)
        with self._lock:
            self.leads = [l for l in self.leads if l.id != lead_id]
            self.activities = [a for a in self.activities if a.lead_id != lead_id]
        self.notices.push("Lead deleted.", NoticeLevel.SUCCESS)
        return True

    def create_lead(self, data: Dict[str, Any]) -> Lead:
        """Create a lead locally from form data using wire field names."""
        actor = self._require_user()
        generation = self._generation
        now = utc_now_iso()
        platform = data.get("platform")
        modes = {m.value for m in ModeOfEnquiry}
        lead = Lead(
            id=mint_id("lead"),
            customer_name=data.get("customerName", ""),
            mobile=str(data.get("mobile", "")),
            status=LeadStatus.NEW,
            assigned_salesperson_id=data.get("assignedSalespersonId") or None,
            lead_date=now,
            last_activity_date=now,
            mode_of_enquiry=platform if platform in modes else ModeOfEnquiry.REFERENCE.value,
            last_remark=data.get("remarks") or "New lead created.",
            email=data.get("email"),
            city=data.get("city"),
            platform=platform,
            interested_project=data.get("interestedProject"),
            interested_unit=data.get("interestedUnit"),
            remarks=data.get("remarks"),
            budget=data.get("budget"),
            purpose=data.get("purpose"),
            source="manual",
        )
        self.mirror.add_lead(lead)
        with self._lock:
            if self.is_current(generation):
                self.leads.insert(0, copy.deepcopy(lead))

        assignee = self.find_user(lead.assigned_salesperson_id)
        self._record_activity(Activity(
            id=mint_id("act"),
            lead_id=lead.id,
            salesperson_id=actor.id,
            type=ActivityType.NOTE,
            remarks=f"Lead created and assigned to {assignee.name if assignee else 'N/A'}.",
            customer_name=lead.customer_name,
        ), generation)
        return self.find_lead(lead.id) or lead

    def bulk_update(
        self,
        lead_ids: List[str],
        status: Optional[LeadStatus] = None,
        assigned_salesperson_id: Optional[str] = None,
    ) -> int:
        """Set status and/or assignee on several leads. Local only."""
        self._require_user()
        changes: Dict[str, Any] = {}
        if status is not None:
            changes["status"] = status
        if assigned_salesperson_id:
            changes["assigned_salesperson_id"] = assigned_salesperson_id
        if not changes or not lead_ids:
            return 0

        updated = self.mirror.bulk_update_leads(lead_ids, **changes)
        now = utc_now_iso()
        ids = set(lead_ids)
        with self._lock:
            for lead in self.leads:
                if lead.id in ids:
                    for key, value in changes.items():
                        setattr(lead, key, value)
                    lead.last_activity_date = now
        self.notices.push(f"{len(ids)} leads updated.", NoticeLevel.SUCCESS)
        return updated

    def add_activity(
        self,
        lead_id: str,
        activity_type: ActivityType,
        remarks: str,
        duration: Optional[int] = None,
    ) -> Activity:
        actor = self._require_user()
        lead = self.find_lead(lead_id)
        activity = Activity(
            id=mint_id("act"),
            lead_id=lead_id,
            salesperson_id=actor.id,
            type=activity_type,
            remarks=remarks,
            customer_name=lead.customer_name if lead else "",
            duration=duration,
        )
        self._record_activity(activity, self._generation)
        return activity

    # Tasks

    def add_task(
        self,
        title: str,
        assigned_to_id: str,
        due_date: str,
        reminder_date: Optional[str] = None,
        remarks: Optional[str] = None,
    ) -> Task:
        actor = self._require_user()
        task = Task(
            id=mint_id("task"),
            title=title,
            assigned_to_id=assigned_to_id,
            due_date=due_date,
            created_by=actor.name,
            reminder_date=reminder_date,
            remarks=remarks,
        )
        self.mirror.add_task(task)
        with self._lock:
            self.tasks.insert(0, copy.deepcopy(task))
        return task

    def toggle_task(self, task_id: str) -> Optional[Task]:
        toggled = self.mirror.toggle_task(task_id)
        if toggled:
            with self._lock:
                self.tasks = [toggled if t.id == task_id else t for t in self.tasks]
        return toggled

    def delete_task(self, task_id: str) -> bool:
        deleted = self.mirror.delete_task(task_id)
        with self._lock:
            self.tasks = [t for t in self.tasks if t.id != task_id]
        return deleted

    # Users

    def create_user(self, name: str) -> User:
        """Add a salesperson with a locally-minted id. Admin only."""
        self._require_admin("create users")
        user = User(id=mint_id("user"), name=name.strip(), role=UserRole.SALESPERSON)
        self.mirror.add_user(user)
        snapshot = self.mirror.snapshot()
        with self._lock:
            self.users = snapshot.users
            self.sales_targets = snapshot.sales_targets
        self.notices.push(f"User {user.name} created.", NoticeLevel.SUCCESS)
        return user

    def delete_user(self, user_id: str) -> int:
        """Delete a user and reassign their leads to the admin. Admin only."""
        admin = self._require_admin("delete users")
        if user_id == admin.id:
            raise UnauthorizedActionError("Admins cannot delete themselves")
        fallback = self.mirror.admin_user()
        fallback_id = fallback.id if fallback else admin.id
        reassigned = self.mirror.delete_user(user_id, fallback_id)
        snapshot = self.mirror.snapshot()
        with self._lock:
            self.users = snapshot.users
            self.sales_targets = snapshot.sales_targets
            for lead in self.leads:
                if lead.assigned_salesperson_id == user_id:
                    lead.assigned_salesperson_id = fallback_id
        return reassigned

    # Background jobs

    def check_reminders(self) -> Optional[Task]:
        generation = self._generation
        with self._lock:
            tasks = list(self.tasks)
            user = self.current_user
        task = self.reminders.check(tasks, user)
        if task and not self.is_current(generation):
            return None
        return task

    def poll_notifications(self):
        generation = self._generation
        notifications = self.poller.poll(self.current_user)
        if not self.is_current(generation):
            return []
        return notifications
