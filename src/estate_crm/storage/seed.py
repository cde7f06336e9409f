"""Deterministic seed data used when the mirror is empty or corrupt."""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List

from .models import (
    Activity,
    ActivityType,
    Lead,
    LeadStatus,
    Project,
    SalesTarget,
    Task,
    Unit,
    UnitStatus,
    User,
    UserRole,
    VisitStatus,
)

ADMIN_ID = "admin-0"

SALESPERSON_NAMES = [
    "Amit Naithani",
    "Neeraj Tripathi",
    "Pinki Sahu",
    "Sher Singh",
    "Umakant Sharma",
    "Vimal Shrivastav",
    "Parth Das",
]

PROJECTS = [
    ("proj-1", "Green Valley", "Raipur", "Plot", "1200 sqft", "18 Lakh"),
    ("proj-2", "Sky Heights", "Bilaspur", "2BHK", "1050 sqft", "32 Lakh"),
]


@dataclass
class MirrorData:
    """Everything the mirror persists under its single storage slot."""

    users: List[User] = field(default_factory=list)
    leads: List[Lead] = field(default_factory=list)
    activities: List[Activity] = field(default_factory=list)
    tasks: List[Task] = field(default_factory=list)
    sales_targets: List[SalesTarget] = field(default_factory=list)
    projects: List[Project] = field(default_factory=list)


def _iso(moment: datetime) -> str:
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def seed_users() -> List[User]:
    users = [User(id=ADMIN_ID, name="Admin", role=UserRole.ADMIN)]
    for index, name in enumerate(SALESPERSON_NAMES, start=1):
        users.append(User(id=f"user-{index}", name=name))
    return users


def seed_projects() -> List[Project]:
    projects = []
    for project_id, name, location, unit_type, size, price in PROJECTS:
        units = [
            Unit(
                id=f"{project_id}-unit-{n}",
                unit_number=f"{name[0]}-{100 + n}",
                type=unit_type,
                status=UnitStatus.BOOKED if n == 1 else UnitStatus.AVAILABLE,
                size=size,
                price=price,
                facing="East" if n % 2 else "North",
                floor=str(n // 3) if unit_type != "Plot" else None,
            )
            for n in range(1, 7)
        ]
        available = sum(1 for u in units if u.status == UnitStatus.AVAILABLE)
        projects.append(Project(
            id=project_id,
            name=name,
            location=location,
            units=units,
            total_units=len(units),
            available_units=available,
        ))
    return projects


def seed_data(now: datetime = None) -> MirrorData:
    """Build the demo dataset. Same input time gives the same output."""
    now = now or datetime.now(timezone.utc)
    users = seed_users()
    salespeople = [u for u in users if u.role == UserRole.SALESPERSON]

    customers = [
        ("Rahul Verma", "9826000001", LeadStatus.NEW, "Website"),
        ("Sneha Gupta", "9826000002", LeadStatus.QUALIFIED, "Digital"),
        ("Manoj Patel", "9826000003", LeadStatus.SITE_VISIT_SCHEDULED, "Walk-in"),
        ("Kavita Joshi", "9826000004", LeadStatus.NEGOTIATION, "Reference"),
        ("Deepak Yadav", "9826000005", LeadStatus.PROPOSAL_SENT, "Call"),
        ("Anita Mishra", "9826000006", LeadStatus.LOST, "IVR"),
    ]

    leads = []
    activities = []
    for index, (name, mobile, status, mode) in enumerate(customers, start=1):
        owner = salespeople[(index - 1) % len(salespeople)]
        created = now - timedelta(days=index * 3)
        lead = Lead(
            id=f"lead-seed-{index}",
            customer_name=name,
            mobile=mobile,
            status=status,
            assigned_salesperson_id=owner.id,
            lead_date=_iso(created),
            last_activity_date=_iso(created + timedelta(days=1)),
            month=created.strftime("%B %Y"),
            mode_of_enquiry=mode,
            visit_status=VisitStatus.PLANNED if status == LeadStatus.SITE_VISIT_SCHEDULED else VisitStatus.NO,
            last_remark="Initial call done",
            is_read=index > 2,
            interested_project=PROJECTS[index % 2][1],
            temperature="Hot" if index % 3 == 0 else "Warm",
            source="seed",
        )
        leads.append(lead)
        activities.append(Activity(
            id=f"act-seed-{index}",
            lead_id=lead.id,
            salesperson_id=owner.id,
            type=ActivityType.CALL,
            date=lead.last_activity_date,
            remarks="Initial call done",
            customer_name=name,
            duration=5,
        ))

    tasks = [
        Task(
            id="task-1",
            title="Follow up with Sneha Gupta on pricing",
            assigned_to_id=salespeople[1].id,
            due_date=_iso(now + timedelta(days=1)),
            created_by="Admin",
            reminder_date=_iso(now + timedelta(hours=20)),
        ),
        Task(
            id="task-2",
            title="Prepare site visit for Manoj Patel",
            assigned_to_id=salespeople[2].id,
            due_date=_iso(now + timedelta(days=2)),
            created_by="Admin",
        ),
    ]

    sales_targets = [SalesTarget(salesperson_id=u.id, name=u.name) for u in salespeople]

    return MirrorData(
        users=users,
        leads=leads,
        activities=activities,
        tasks=tasks,
        sales_targets=sales_targets,
        projects=seed_projects(),
    )
