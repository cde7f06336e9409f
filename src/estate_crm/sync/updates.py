"""Optimistic lead updates with a single self-healing retry.

Every update moves through these states::

    IDLE -> OPTIMISTICALLY_APPLIED -> REMOTE_PENDING -> REMOTE_CONFIRMED
                                                     -> REMOTE_FAILED -> RESYNC_RETRY -> REMOTE_CONFIRMED
                                                                                      -> REMOTE_FAILED_FINAL
                                                                      -> REMOTE_FAILED_FINAL

The optimistic write is never rolled back. When the remote rejects an
update the lead stays saved locally and the user is told so.
"""

import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, List, Dict, Any, Callable

from ..notifications.notices import NoticeBoard, NoticeLevel
from ..remote.errors import ErrorKind, RemoteError
from ..storage.mirror import MirrorStore
from ..storage.models import Lead, utc_now_iso
from .identity import IdentityReconciler, is_local_id
from .normalize import normalize_remote_lead

logger = logging.getLogger(__name__)


class UpdateState(Enum):
    IDLE = "idle"
    OPTIMISTICALLY_APPLIED = "optimistically_applied"
    REMOTE_PENDING = "remote_pending"
    REMOTE_CONFIRMED = "remote_confirmed"
    REMOTE_FAILED = "remote_failed"
    RESYNC_RETRY = "resync_retry"
    REMOTE_FAILED_FINAL = "remote_failed_final"


@dataclass
class UpdateResult:
    """Where an update ended up, and how it got there."""

    lead: Lead
    state: UpdateState = UpdateState.IDLE
    history: List[UpdateState] = field(default_factory=list)
    error: Optional[RemoteError] = None
    retried: bool = False
    id_mapping: Dict[str, str] = field(default_factory=dict)

    @property
    def confirmed(self) -> bool:
        return self.state == UpdateState.REMOTE_CONFIRMED

    def advance(self, state: UpdateState):
        self.state = state
        self.history.append(state)


def build_update_payload(lead: Lead) -> Dict[str, Any]:
    """Mutable fields sent to the remote. The assignee key is always present."""
    return {
        "status": lead.status.value,
        "nextFollowUpDate": lead.next_follow_up_date,
        "temperature": lead.temperature,
        "visitStatus": lead.visit_status.value,
        "visitDate": lead.visit_date,
        "lastRemark": lead.last_remark,
        "bookingStatus": lead.booking_status,
        "isRead": lead.is_read,
        "assignedSalespersonId": lead.assigned_salesperson_id or None,
    }


def prepare_lead(lead: Lead) -> Lead:
    """Copy of the edited lead as it will be stored locally."""
    prepared = copy.deepcopy(lead)
    prepared.assigned_salesperson_id = lead.assigned_salesperson_id or None
    prepared.last_activity_date = utc_now_iso()
    prepared.is_read = True
    return prepared


class LeadUpdater:
    """Runs one lead edit through the optimistic update state machine."""

    def __init__(
        self,
        mirror: MirrorStore,
        remote,
        reconciler: IdentityReconciler,
        notices: NoticeBoard,
    ):
        self.mirror = mirror
        self.remote = remote
        self.reconciler = reconciler
        self.notices = notices

    def apply(self, lead: Lead, apply_view: Callable[[Lead], None]) -> UpdateResult:
        """Apply ``lead`` locally, then push it to the remote.

        ``apply_view`` writes a lead into the caller's in-memory view. It is
        called with the optimistic copy and again with each later version.
        """
        lead = prepare_lead(lead)
        result = UpdateResult(lead=lead)

        apply_view(lead)
        self.mirror.save_lead(lead)
        result.advance(UpdateState.OPTIMISTICALLY_APPLIED)

        result.advance(UpdateState.REMOTE_PENDING)
        try:
            self._confirm(result, self._push(lead), apply_view)
            return result
        except RemoteError as e:
            result.error = e
            result.advance(UpdateState.REMOTE_FAILED)
            logger.warning(f"Remote update of lead {lead.id} failed ({e.kind.value}): {e.message}")

        error = result.error
        if error.kind == ErrorKind.MISSING_REMOTE_RESOURCE:
            self._report_missing_resource(error)
        elif error.kind == ErrorKind.UNSYNCED_IDENTITY and is_local_id(lead.assigned_salesperson_id):
            self._retry_after_resync(result, apply_view)
            if result.confirmed:
                return result

        return self._fail(result)

    def _push(self, lead: Lead) -> Lead:
        """Send the update and return the remote's version of the lead."""
        response = self.remote.update_lead(lead.id, build_update_payload(lead))
        if response.get("success") is False:
            message = response.get("message") or response.get("error") or "Update rejected"
            raise RemoteError(ErrorKind.UNKNOWN, message, payload=response)

        raw = response.get("lead")
        if isinstance(raw, dict) and raw.get("id"):
            return normalize_remote_lead(raw, fallback=lead)

        logger.warning(f"Update response for lead {lead.id} carried no lead, refetching")
        for candidate in self.remote.get_leads():
            if isinstance(candidate, dict) and str(candidate.get("id")) == lead.id:
                return normalize_remote_lead(candidate, fallback=lead)
        raise RemoteError(ErrorKind.NOT_FOUND, f"Lead {lead.id} missing from remote after update")

    def _confirm(self, result: UpdateResult, confirmed: Lead, apply_view: Callable[[Lead], None]):
        apply_view(confirmed)
        self.mirror.save_lead(confirmed)
        result.lead = confirmed
        result.advance(UpdateState.REMOTE_CONFIRMED)
        logger.info(f"Lead {confirmed.id} confirmed by remote")

    def _retry_after_resync(self, result: UpdateResult, apply_view: Callable[[Lead], None]):
        result.advance(UpdateState.RESYNC_RETRY)
        result.retried = True
        old_id = result.lead.assigned_salesperson_id

        try:
            mapping = self.reconciler.resync()
        except RemoteError as e:
            result.error = e
            logger.error(f"User resync failed: {e.message}")
            if e.kind == ErrorKind.MISSING_REMOTE_RESOURCE:
                self._report_missing_resource(e)
            else:
                self.notices.long(
                    "Could not sync users to the remote service. "
                    "The assignment is saved locally only.",
                    NoticeLevel.ERROR,
                )
            return

        result.id_mapping = mapping
        new_id = mapping.get(old_id)
        if not new_id:
            logger.error(f"Resync produced no remote id for user {old_id}")
            self.notices.long(
                f"Salesperson {old_id} could not be matched to a remote user. "
                "The assignment is saved locally only.",
                NoticeLevel.ERROR,
            )
            return

        lead = copy.deepcopy(result.lead)
        lead.assigned_salesperson_id = new_id
        result.lead = lead
        apply_view(lead)
        self.mirror.save_lead(lead)

        try:
            self._confirm(result, self._push(lead), apply_view)
        except RemoteError as e:
            result.error = e
            logger.error(f"Retry of lead {lead.id} after resync failed: {e.message}")

    def _report_missing_resource(self, error: RemoteError):
        resource = error.resource or "required"
        self.notices.long(
            f"The remote '{resource}' table does not exist. "
            f"Create the {resource} table on the remote database, then retry.",
            NoticeLevel.ERROR,
        )

    def _fail(self, result: UpdateResult) -> UpdateResult:
        result.advance(UpdateState.REMOTE_FAILED_FINAL)
        self.notices.push("Lead saved locally; remote sync failed.", NoticeLevel.WARNING)
        return result
