"""In-memory backing store for the development remote service.

Rows are kept in the remote database's snake_case shape and converted to
camelCase records on the way out.
"""

import logging
import threading
import uuid
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any

from ...storage.models import LOCAL_USER_ID_PATTERN, current_month, parse_iso, utc_now_iso

logger = logging.getLogger(__name__)

MISSING_USERS_TABLE = "Could not find the table 'public.users' in the schema cache"


class StoreError(Exception):
    """A request the store refuses. Carries the HTTP response shape."""

    def __init__(self, status_code: int, error: str, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.error = error
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"success": False, "error": self.error, "message": self.message}


def format_lead_response(row: Dict[str, Any]) -> Dict[str, Any]:
    """Convert a stored lead row to the camelCase record clients receive."""
    status = row.get("status") or "New Lead"
    lead_date = row.get("lead_date") or utc_now_iso()
    return {
        "id": row["id"],
        "customerName": row.get("customer_name") or "",
        "mobile": row.get("mobile") or "",
        "email": row.get("email") or "",
        "status": "New Lead" if status == "New" else status,
        "assignedSalespersonId": row.get("assigned_salesperson_id") or None,
        "leadDate": lead_date,
        "lastActivityDate": row.get("last_activity_date") or lead_date,
        "month": row.get("month") or current_month(),
        "modeOfEnquiry": row.get("mode_of_enquiry") or "Digital",
        "occupation": row.get("occupation") or "",
        "interestedProject": row.get("interested_project") or "",
        "interestedUnit": row.get("interested_unit") or "",
        "temperature": row.get("temperature"),
        "visitStatus": row.get("visit_status") or "No",
        "visitDate": row.get("visit_date") or "",
        "nextFollowUpDate": row.get("next_follow_up_date"),
        "lastRemark": row.get("last_remark") or "",
        "bookingStatus": row.get("booking_status") or "",
        "isRead": bool(row.get("is_read", False)),
        "missedVisitsCount": row.get("missed_visits_count") or 0,
        "labels": row.get("labels") or [],
        "budget": row.get("budget") or "",
        "purpose": row.get("purpose"),
        "city": row.get("city") or "",
        "platform": row.get("platform") or "",
        "source": row.get("source_website") or "website",
    }


def format_user_response(row: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "id": row["id"],
        "name": row["name"],
        "role": row["role"],
        "avatarUrl": row.get("avatar_url") or "",
        "localId": row.get("local_id"),
    }


class RemoteStore:
    """Leads, users and notifications held in memory."""

    def __init__(self, users_table_enabled: bool = True):
        self.users_table_enabled = users_table_enabled
        self.leads: Dict[str, Dict[str, Any]] = {}
        self.users: Dict[str, Dict[str, Any]] = {}
        self.notifications: List[Dict[str, Any]] = []
        self._lock = threading.RLock()

    # Leads

    def list_leads(self) -> List[Dict[str, Any]]:
        with self._lock:
            rows = sorted(self.leads.values(), key=lambda r: r.get("lead_date") or "", reverse=True)
            return [format_lead_response(r) for r in rows]

    def insert_lead(self, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a raw snake_case lead row. Used by webhooks and tests."""
        now = utc_now_iso()
        with self._lock:
            stored = {
                "id": row.get("id") or str(uuid.uuid4()),
                "status": "New Lead",
                "lead_date": now,
                "last_activity_date": now,
                "month": current_month(),
                "visit_status": "No",
                "is_read": False,
                "missed_visits_count": 0,
                "labels": [],
                **row,
            }
            self.leads[stored["id"]] = stored
            return format_lead_response(stored)

    def _require_users_table(self):
        if not self.users_table_enabled:
            raise StoreError(500, "Failed to access users", MISSING_USERS_TABLE)

    def _resolve_assignee(self, assignee_id: str) -> str:
        """Map a client-supplied assignee id to a stored user id."""
        self._require_users_table()
        if LOCAL_USER_ID_PATTERN.match(assignee_id):
            for user in self.users.values():
                if user.get("local_id") == assignee_id:
                    logger.info(f"Resolved local user id {assignee_id} to {user['id']}")
                    return user["id"]
            raise StoreError(
                400,
                "User not found",
                f'The user ID "{assignee_id}" is a local ID that hasn\'t been synced to the remote database.',
            )
        if assignee_id not in self.users:
            raise StoreError(
                400,
                "Invalid user assignment",
                f"The selected salesperson (ID: {assignee_id}) does not exist in the system. "
                "Please select a valid user.",
            )
        return assignee_id

    def update_lead(self, lead_id: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Apply a partial update sent by a client.

        Keys absent from ``payload`` are cleared, except status and the
        assignee, which are only touched when present.
        """
        with self._lock:
            changes: Dict[str, Any] = {
                "next_follow_up_date": payload.get("nextFollowUpDate") or None,
                "temperature": payload.get("temperature") or None,
                "visit_status": payload.get("visitStatus") or None,
                "visit_date": payload.get("visitDate") or None,
                "last_remark": payload.get("lastRemark") or payload.get("remarks") or None,
                "booking_status": payload.get("bookingStatus") or None,
                "is_read": payload.get("isRead") if payload.get("isRead") is not None else False,
                "last_activity_date": utc_now_iso(),
            }
            if payload.get("status"):
                changes["status"] = payload["status"]

            if "assignedSalespersonId" in payload:
                assignee = payload["assignedSalespersonId"] or None
                changes["assigned_salesperson_id"] = (
                    self._resolve_assignee(assignee) if assignee else None
                )

            row = self.leads.get(lead_id)
            if row is None:
                raise StoreError(
                    404,
                    "Lead not found",
                    f"Lead with id {lead_id} could not be found in the database.",
                )

            previous_assignee = row.get("assigned_salesperson_id")
            previous_status = row.get("status")
            row.update(changes)
            lead = format_lead_response(row)

            new_assignee = row.get("assigned_salesperson_id")
            if new_assignee and new_assignee != previous_assignee:
                name = self.users.get(new_assignee, {}).get("name", "a salesperson")
                self._notify(
                    "lead_assigned",
                    f"Lead {lead['customerName']} assigned to {name}",
                    lead,
                    target_user_id=new_assignee,
                )
            if "status" in changes and changes["status"] != previous_status:
                self._notify(
                    "lead_progress",
                    f"{lead['customerName']} moved to {changes['status']}",
                    lead,
                    target_role="Admin",
                )
            return lead

    def delete_lead(self, lead_id: str, role: Optional[str]):
        if role != "Admin":
            raise StoreError(403, "Forbidden", "Only admins can delete leads")
        with self._lock:
            self.leads.pop(lead_id, None)
            self.notifications = [n for n in self.notifications if n.get("leadId") != lead_id]

    def capture_website_lead(self, data: Dict[str, Any]) -> Dict[str, Any]:
        """Store a lead posted by a website form and notify admins."""
        if not data.get("customerName") and not data.get("mobile"):
            raise StoreError(400, "Invalid lead", "customerName or mobile is required")

        source = data.get("source") or "website"
        city = data.get("city")
        remark = data.get("remarks") or f"Inquiry from {source}" + (f" ({city})" if city else "")
        lead = self.insert_lead({
            "customer_name": data.get("customerName") or "",
            "mobile": data.get("mobile"),
            "email": data.get("email"),
            "mode_of_enquiry": "Website",
            "interested_project": data.get("interestedProject"),
            "interested_unit": data.get("interestedUnit"),
            "last_remark": remark,
            "budget": data.get("budget"),
            "purpose": data.get("purpose"),
            "city": city,
            "platform": data.get("platform"),
            "source_website": "website",
        })
        self._notify(
            "new_lead",
            f"New lead from {lead['customerName'] or 'Unknown'}",
            lead,
            target_role="Admin",
        )
        logger.info(f"Captured website lead {lead['id']} from {source}")
        return lead

    # Users

    def list_users(self) -> List[Dict[str, Any]]:
        self._require_users_table()
        with self._lock:
            return [format_user_response(u) for u in self.users.values()]

    def add_user(self, name: str, role: str = "Salesperson", user_id: Optional[str] = None) -> Dict[str, Any]:
        self._require_users_table()
        with self._lock:
            row = {"id": user_id or str(uuid.uuid4()), "name": name, "role": role, "local_id": None}
            self.users[row["id"]] = row
            return format_user_response(row)

    def sync_users(self, users: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Match client users by name and role, recording their local ids."""
        self._require_users_table()
        synced = []
        errors = []
        with self._lock:
            for user in users:
                name = (user.get("name") or "").strip()
                role = user.get("role") or "Salesperson"
                local_id = user.get("id")
                if not name:
                    errors.append({"user": user, "error": "name is required"})
                    continue
                row = next(
                    (u for u in self.users.values() if u["name"] == name and u["role"] == role),
                    None,
                )
                if row is None:
                    row = {"id": str(uuid.uuid4()), "name": name, "role": role}
                    self.users[row["id"]] = row
                row["avatar_url"] = user.get("avatarUrl") or row.get("avatar_url")
                if local_id and local_id != row["id"]:
                    row["local_id"] = local_id
                synced.append({
                    "localId": local_id,
                    "supabaseId": row["id"],
                    "user": format_user_response(row),
                })
        logger.info(f"Synced {len(synced)} users, {len(errors)} errors")
        return {"success": True, "synced": len(synced), "errors": errors, "users": synced}

    # Notifications

    def _notify(
        self,
        notification_type: str,
        message: str,
        lead: Dict[str, Any],
        target_user_id: Optional[str] = None,
        target_role: Optional[str] = None,
    ):
        self.notifications.append({
            "id": f"notif-{uuid.uuid4().hex[:12]}",
            "type": notification_type,
            "message": message,
            "leadId": lead["id"],
            "leadData": {
                "customerName": lead["customerName"],
                "mobile": lead["mobile"],
                "email": lead["email"],
                "interestedProject": lead["interestedProject"],
                "status": lead["status"],
                "source": lead["source"],
            },
            "targetRole": target_role,
            "targetUserId": target_user_id,
            "createdAt": datetime.now(timezone.utc).isoformat(),
            "isRead": False,
        })

    def list_notifications(
        self,
        user_id: Optional[str],
        role: Optional[str],
        last_checked: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Notifications for a user, newest first."""
        since = parse_iso(last_checked)
        with self._lock:
            matches = []
            for notification in self.notifications:
                if since and parse_iso(notification["createdAt"]) <= since:
                    continue
                if role == "Admin":
                    visible = notification["targetRole"] in ("Admin", None)
                else:
                    visible = bool(user_id) and notification["targetUserId"] == user_id
                if visible:
                    matches.append(dict(notification))
        matches.sort(key=lambda n: n["createdAt"], reverse=True)
        return matches

    def mark_notification_read(self, notification_id: str) -> Dict[str, Any]:
        with self._lock:
            for notification in self.notifications:
                if notification["id"] == notification_id:
                    notification["isRead"] = True
                    return dict(notification)
        raise StoreError(404, "Notification not found", f"Notification {notification_id} not found")

    def delete_notification(self, notification_id: str):
        with self._lock:
            before = len(self.notifications)
            self.notifications = [n for n in self.notifications if n["id"] != notification_id]
            if len(self.notifications) == before:
                raise StoreError(404, "Notification not found", f"Notification {notification_id} not found")
