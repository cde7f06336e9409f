"""Storage layer: data models and the durable local mirror."""

from .mirror import MirrorStore, MirrorNotInitialized
from .models import (
    Activity,
    ActivityType,
    Lead,
    LeadStatus,
    Notification,
    Project,
    SalesTarget,
    Task,
    Unit,
    UnitStatus,
    User,
    UserRole,
    VisitStatus,
)
from .seed import MirrorData, seed_data

__all__ = [
    "MirrorStore",
    "MirrorNotInitialized",
    "MirrorData",
    "seed_data",
    "Activity",
    "ActivityType",
    "Lead",
    "LeadStatus",
    "Notification",
    "Project",
    "SalesTarget",
    "Task",
    "Unit",
    "UnitStatus",
    "User",
    "UserRole",
    "VisitStatus",
]
