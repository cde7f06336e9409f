"""Data models for the CRM mirror and the remote lead/user service."""

import re
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any


class LeadStatus(Enum):
    """Stage of a lead in the sales pipeline."""

    NEW = "New Lead"
    QUALIFIED = "Qualified"
    DISQUALIFIED = "Disqualified"
    SITE_VISIT_PENDING = "Site Visit Pending"
    SITE_VISIT_SCHEDULED = "Site Visit Scheduled"
    SITE_VISIT_DONE = "Site Visit Done"
    PROPOSAL_SENT = "Proposal Sent"
    PROPOSAL_FINALIZED = "Proposal Finalized"
    NEGOTIATION = "Negotiation"
    BOOKING = "Booking"
    LOST = "Lost"
    # Legacy statuses still present in imported data
    CONTACTED = "Contacted"
    BOOKED = "Booked"
    CANCELLED = "Cancelled"

    @classmethod
    def parse(cls, value: Optional[str]) -> "LeadStatus":
        """Parse a wire value, falling back to NEW for missing or unknown values."""
        if isinstance(value, cls):
            return value
        if not value:
            return cls.NEW
        if value == "New":
            return cls.NEW
        for status in cls:
            if status.value == value or status.name == value:
                return status
        return cls.NEW


BOOKING_STATUSES = frozenset({LeadStatus.BOOKING, LeadStatus.BOOKED})


class ActivityType(Enum):
    """Kinds of audit entries recorded against a lead."""

    CALL = "Call"
    VISIT = "Visit"
    NOTE = "Note"
    EMAIL = "Email"
    WHATSAPP = "WhatsApp"


class ModeOfEnquiry(Enum):
    """How the enquiry reached the sales team."""

    WEBSITE = "Website"
    WALK_IN = "Walk-in"
    CALL = "Call"
    REFERENCE = "Reference"
    DIGITAL = "Digital"
    IVR = "IVR"
    TELEPHONE = "Telephone"


class VisitStatus(Enum):
    """Whether the customer has visited the site."""

    YES = "Yes"
    NO = "No"
    WILL_COME = "Will Come"
    PLANNED = "Planned"

    @classmethod
    def parse(cls, value: Optional[str]) -> "VisitStatus":
        if isinstance(value, cls):
            return value
        for status in cls:
            if status.value == value:
                return status
        return cls.NO


class UserRole(Enum):
    """CRM user roles."""

    ADMIN = "Admin"
    SALESPERSON = "Salesperson"


class UnitStatus(Enum):
    """Inventory unit availability."""

    AVAILABLE = "Available"
    BOOKED = "Booked"
    HOLD = "Hold"
    BLOCKED = "Blocked"


# Identifiers minted locally before the remote service has issued its own.
LOCAL_USER_ID_PATTERN = re.compile(r"^(user|admin)-\d+$")

_id_lock = threading.Lock()
_last_stamp = 0


def mint_id(prefix: str) -> str:
    """Mint a local identifier like ``lead-1718000000000``.

    Stamps are strictly increasing within the process so two ids minted in the
    same millisecond never collide.
    """
    global _last_stamp
    with _id_lock:
        stamp = max(int(time.time() * 1000), _last_stamp + 1)
        _last_stamp = stamp
    return f"{prefix}-{stamp}"


def utc_now_iso() -> str:
    """Current UTC time in the ISO format the remote service uses."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def current_month() -> str:
    """Month label used on leads, e.g. ``October 2025``."""
    return datetime.now().strftime("%B %Y")


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO timestamp into an aware datetime. Returns None if unparseable."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


@dataclass
class User:
    """A CRM user. Ids are not stable across the mirror and the remote service."""

    id: str
    name: str
    role: UserRole = UserRole.SALESPERSON
    avatar_url: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def has_local_id(self) -> bool:
        return bool(LOCAL_USER_ID_PATTERN.match(self.id))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role.value,
            "avatarUrl": self.avatar_url,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        role = data.get("role") or UserRole.SALESPERSON.value
        return cls(
            id=str(data["id"]),
            name=data.get("name") or "",
            role=UserRole.ADMIN if role == UserRole.ADMIN.value else UserRole.SALESPERSON,
            avatar_url=data.get("avatarUrl") or data.get("avatar_url") or "",
        )


# Optional lead fields: attribute name -> wire key
LEAD_OPTIONAL_FIELDS = {
    "email": "email",
    "occupation": "occupation",
    "interested_project": "interestedProject",
    "interested_unit": "interestedUnit",
    "temperature": "temperature",
    "remarks": "remarks",
    "visit_date": "visitDate",
    "city": "city",
    "platform": "platform",
    "next_follow_up_date": "nextFollowUpDate",
    "booking_status": "bookingStatus",
    "labels": "labels",
    "budget": "budget",
    "funding_source": "fundingSource",
    "purpose": "purpose",
    "configuration": "configuration",
    "booked_project": "bookedProject",
    "booked_unit_number": "bookedUnitNumber",
    "booked_unit_id": "bookedUnitId",
    "contact_date": "contactDate",
    "contact_duration": "contactDuration",
}


@dataclass
class Lead:
    """A customer enquiry tracked through the pipeline."""

    id: str
    customer_name: str = ""
    mobile: str = ""
    status: LeadStatus = LeadStatus.NEW

    # None means unassigned. An empty string is kept distinct when it arrives
    # from the remote service.
    assigned_salesperson_id: Optional[str] = None

    lead_date: str = field(default_factory=utc_now_iso)
    last_activity_date: str = field(default_factory=utc_now_iso)
    month: str = field(default_factory=current_month)
    mode_of_enquiry: str = ModeOfEnquiry.WEBSITE.value
    visit_status: VisitStatus = VisitStatus.NO
    last_remark: str = ""
    is_read: bool = False
    missed_visits_count: int = 0
    source: Optional[str] = None

    # Contact and interest details
    email: Optional[str] = None
    occupation: Optional[str] = None
    interested_project: Optional[str] = None
    interested_unit: Optional[str] = None
    temperature: Optional[str] = None  # Hot / Warm / Cold
    remarks: Optional[str] = None
    visit_date: Optional[str] = None
    city: Optional[str] = None
    platform: Optional[str] = None
    next_follow_up_date: Optional[str] = None
    booking_status: Optional[str] = None
    labels: Optional[List[str]] = None
    budget: Optional[str] = None
    funding_source: Optional[str] = None
    purpose: Optional[str] = None
    configuration: Optional[str] = None

    # Booking specifics, only populated once the lead enters a booking state
    booked_project: Optional[str] = None
    booked_unit_number: Optional[str] = None
    booked_unit_id: Optional[str] = None

    contact_date: Optional[str] = None
    contact_duration: Optional[int] = None

    @property
    def is_assigned(self) -> bool:
        return bool(self.assigned_salesperson_id)

    @property
    def is_booking(self) -> bool:
        return self.status in BOOKING_STATUSES

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the camelCase record stored in the mirror."""
        data = {
            "id": self.id,
            "customerName": self.customer_name,
            "mobile": self.mobile,
            "status": self.status.value,
            "assignedSalespersonId": self.assigned_salesperson_id,
            "leadDate": self.lead_date,
            "lastActivityDate": self.last_activity_date,
            "month": self.month,
            "modeOfEnquiry": self.mode_of_enquiry,
            "visitStatus": self.visit_status.value,
            "lastRemark": self.last_remark,
            "isRead": self.is_read,
            "missedVisitsCount": self.missed_visits_count,
            "source": self.source,
        }
        for attr, key in LEAD_OPTIONAL_FIELDS.items():
            value = getattr(self, attr)
            data[key] = list(value) if isinstance(value, list) else value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Lead":
        """Create from a stored mirror record."""
        kwargs = {attr: data.get(key) for attr, key in LEAD_OPTIONAL_FIELDS.items()}
        lead = cls(
            id=str(data["id"]),
            customer_name=data.get("customerName") or "",
            mobile=str(data.get("mobile") or ""),
            status=LeadStatus.parse(data.get("status")),
            assigned_salesperson_id=data.get("assignedSalespersonId"),
            mode_of_enquiry=data.get("modeOfEnquiry") or ModeOfEnquiry.WEBSITE.value,
            visit_status=VisitStatus.parse(data.get("visitStatus")),
            last_remark=data.get("lastRemark") or "",
            is_read=bool(data.get("isRead", False)),
            missed_visits_count=int(data.get("missedVisitsCount") or 0),
            source=data.get("source"),
            **kwargs,
        )
        if data.get("leadDate"):
            lead.lead_date = data["leadDate"]
        if data.get("lastActivityDate"):
            lead.last_activity_date = data["lastActivityDate"]
        if data.get("month"):
            lead.month = data["month"]
        return lead


@dataclass
class Activity:
    """Append-only audit entry for a lead."""

    id: str
    lead_id: str
    salesperson_id: str
    type: ActivityType
    date: str = field(default_factory=utc_now_iso)
    remarks: str = ""
    customer_name: str = ""
    duration: Optional[int] = None  # minutes, calls only

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "leadId": self.lead_id,
            "salespersonId": self.salesperson_id,
            "type": self.type.value,
            "date": self.date,
            "remarks": self.remarks,
            "customerName": self.customer_name,
            "duration": self.duration,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Activity":
        return cls(
            id=str(data["id"]),
            lead_id=str(data["leadId"]),
            salesperson_id=data.get("salespersonId") or "",
            type=ActivityType(data.get("type", ActivityType.NOTE.value)),
            date=data.get("date") or utc_now_iso(),
            remarks=data.get("remarks") or "",
            customer_name=data.get("customerName") or "",
            duration=data.get("duration"),
        )


@dataclass
class Task:
    """A to-do item assigned to a user."""

    id: str
    title: str
    assigned_to_id: str
    due_date: str
    is_completed: bool = False
    created_by: str = ""  # display name, not an id
    reminder_date: Optional[str] = None
    has_reminded: bool = False
    remarks: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "assignedToId": self.assigned_to_id,
            "dueDate": self.due_date,
            "isCompleted": self.is_completed,
            "createdBy": self.created_by,
            "reminderDate": self.reminder_date,
            "hasReminded": self.has_reminded,
            "remarks": self.remarks,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Task":
        return cls(
            id=str(data["id"]),
            title=data.get("title") or "",
            assigned_to_id=data.get("assignedToId") or "",
            due_date=data.get("dueDate") or utc_now_iso(),
            is_completed=bool(data.get("isCompleted", False)),
            created_by=data.get("createdBy") or "",
            reminder_date=data.get("reminderDate"),
            has_reminded=bool(data.get("hasReminded", False)),
            remarks=data.get("remarks"),
        )


@dataclass
class SalesTarget:
    """Monthly targets for a salesperson."""

    salesperson_id: str
    name: str
    targets: Dict[str, int] = field(default_factory=lambda: {"bookings": 5, "visits": 15})
    achieved: Dict[str, int] = field(default_factory=lambda: {"bookings": 0, "visits": 0})

    def to_dict(self) -> Dict[str, Any]:
        return {
            "salespersonId": self.salesperson_id,
            "name": self.name,
            "targets": dict(self.targets),
            "achieved": dict(self.achieved),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SalesTarget":
        return cls(
            salesperson_id=data["salespersonId"],
            name=data.get("name") or "",
            targets=dict(data.get("targets") or {}),
            achieved=dict(data.get("achieved") or {}),
        )


@dataclass
class Unit:
    """A sellable unit (plot, flat, villa...) within a project."""

    id: str
    unit_number: str
    type: str
    status: UnitStatus = UnitStatus.AVAILABLE
    size: str = ""
    price: str = ""
    facing: Optional[str] = None
    floor: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "unitNumber": self.unit_number,
            "type": self.type,
            "status": self.status.value,
            "size": self.size,
            "price": self.price,
            "facing": self.facing,
            "floor": self.floor,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Unit":
        return cls(
            id=str(data["id"]),
            unit_number=data.get("unitNumber") or "",
            type=data.get("type") or "",
            status=UnitStatus(data.get("status", UnitStatus.AVAILABLE.value)),
            size=data.get("size") or "",
            price=data.get("price") or "",
            facing=data.get("facing"),
            floor=data.get("floor"),
        )


@dataclass
class Project:
    """A real-estate project owning an ordered list of units."""

    id: str
    name: str
    location: str = ""
    units: List[Unit] = field(default_factory=list)
    total_units: int = 0
    available_units: int = 0

    def find_unit(self, unit_id: str) -> Optional[Unit]:
        for unit in self.units:
            if unit.id == unit_id:
                return unit
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "location": self.location,
            "totalUnits": self.total_units,
            "availableUnits": self.available_units,
            "units": [unit.to_dict() for unit in self.units],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Project":
        return cls(
            id=str(data["id"]),
            name=data.get("name") or "",
            location=data.get("location") or "",
            units=[Unit.from_dict(u) for u in data.get("units", [])],
            total_units=int(data.get("totalUnits") or 0),
            available_units=int(data.get("availableUnits") or 0),
        )


@dataclass
class Notification:
    """A notification delivered by the remote service."""

    id: str
    type: str = "info"
    message: str = ""
    created_at: Optional[str] = None
    is_read: bool = False
    target_user_id: Optional[str] = None  # None means every user
    lead_data: Dict[str, Any] = field(default_factory=dict)

    @property
    def display_text(self) -> str:
        """Text shown in the notice toast."""
        customer = self.lead_data.get("customerName") or "Unknown"
        if self.type == "new_lead":
            return f"New Lead: {customer}"
        if self.type == "lead_assigned":
            return f"Lead Assigned: {customer}"
        return self.message or "New notification"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Notification":
        return cls(
            id=str(data["id"]),
            type=data.get("type") or "info",
            message=data.get("message") or "",
            created_at=data.get("createdAt") or data.get("createdDate"),
            is_read=bool(data.get("isRead", False)),
            target_user_id=data.get("targetUserId"),
            lead_data=data.get("leadData") or {},
        )
