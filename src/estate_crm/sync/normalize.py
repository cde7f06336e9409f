"""Turn raw remote lead records into complete ``Lead`` objects."""

from typing import Optional, Dict, Any

from ..storage.models import (
    LEAD_OPTIONAL_FIELDS,
    Lead,
    LeadStatus,
    ModeOfEnquiry,
    VisitStatus,
    current_month,
    mint_id,
    utc_now_iso,
)


def _as_int(value, default: int = 0) -> int:
    try:
        return int(value or default)
    except (TypeError, ValueError):
        return default


def normalize_remote_lead(
    raw: Dict[str, Any],
    fallback: Optional[Lead] = None,
    now: Optional[str] = None,
) -> Lead:
    """Build a full lead from a possibly partial remote record.

    Never raises on missing or malformed fields. ``fallback`` is the matching
    mirror copy: dates and optional fields the remote omits entirely are taken
    from it so that normalizing the same record twice gives the same lead.

    A missing or null assignee becomes None. An empty-string assignee is
    kept as an empty string.
    """
    now = now or utc_now_iso()

    def carry(key: str, attr: str, default):
        value = raw.get(key)
        if value:
            return value
        if fallback is not None and getattr(fallback, attr):
            return getattr(fallback, attr)
        return default

    lead = Lead(
        id=str(raw.get("id") or (fallback.id if fallback else mint_id("lead"))),
        customer_name=raw.get("customerName") or "",
        mobile=str(raw.get("mobile") or ""),
        status=LeadStatus.parse(raw.get("status")),
        assigned_salesperson_id=raw.get("assignedSalespersonId"),
        lead_date=carry("leadDate", "lead_date", now),
        last_activity_date=carry("lastActivityDate", "last_activity_date", now),
        month=carry("month", "month", current_month()),
        mode_of_enquiry=raw.get("modeOfEnquiry") or ModeOfEnquiry.WEBSITE.value,
        visit_status=VisitStatus.parse(raw.get("visitStatus")),
        last_remark=raw.get("lastRemark") or raw.get("remarks") or "",
        is_read=bool(raw.get("isRead") or False),
        missed_visits_count=_as_int(raw.get("missedVisitsCount")),
        source=raw.get("source") or "website",
    )

    for attr, key in LEAD_OPTIONAL_FIELDS.items():
        if key in raw:
            value = raw[key]
        elif fallback is not None:
            value = getattr(fallback, attr)
        else:
            value = None
        setattr(lead, attr, list(value) if isinstance(value, list) else value)

    return lead
