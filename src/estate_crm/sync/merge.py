"""Merge remote leads with the local mirror."""

import logging
from dataclasses import dataclass, field
from typing import Optional, List, Dict, Any

from ..remote.errors import RemoteError
from ..storage.mirror import MirrorStore
from ..storage.models import Lead
from .normalize import normalize_remote_lead

logger = logging.getLogger(__name__)


@dataclass
class MergeResult:
    """Outcome of one merge pass."""

    leads: List[Lead] = field(default_factory=list)
    remote_available: bool = False
    remote_count: int = 0
    matched: int = 0
    inserted: int = 0
    local_only: int = 0
    error: Optional[RemoteError] = None


class LeadMerger:
    """Combine the remote lead list with the mirror's leads.

    Remote records win for every lead they cover. A remote lead matches a
    mirror lead on id, or failing that on a non-empty mobile number. Mirror
    leads the remote does not know about are kept and listed after the
    remote ones. Remote records without an id are ignored.
    """

    def __init__(self, mirror: MirrorStore, remote):
        self.mirror = mirror
        self.remote = remote

    def load(self) -> MergeResult:
        """Fetch remote leads and merge them. Falls back to the mirror on failure."""
        try:
            remote_leads = self.remote.get_leads()
        except RemoteError as e:
            logger.warning(f"Remote leads unavailable, using local mirror: {e.message}")
            result = self.merge(None)
            result.error = e
            return result
        return self.merge(remote_leads)

    def merge(self, remote_leads: Optional[List[Dict[str, Any]]]) -> MergeResult:
        """Merge ``remote_leads`` into the mirror. None means the remote failed."""
        local = self.mirror.get_leads()
        if remote_leads is None:
            return MergeResult(leads=local, remote_available=False, local_only=len(local))

        by_id = {}
        by_mobile = {}
        for index, lead in enumerate(local):
            by_id.setdefault(lead.id, index)
            if lead.mobile:
                by_mobile.setdefault(lead.mobile, index)

        stored = list(local)
        inserted: List[Lead] = []
        remote: List[Lead] = []
        matched = 0
        skipped = 0

        for raw in remote_leads:
            if not isinstance(raw, dict) or not raw.get("id"):
                skipped += 1
                continue
            raw_id = str(raw["id"])
            raw_mobile = str(raw.get("mobile") or "")
            index = by_id.get(raw_id)
            if index is None and raw_mobile:
                index = by_mobile.get(raw_mobile)

            lead = normalize_remote_lead(raw, fallback=local[index] if index is not None else None)
            remote.append(lead)
            if index is not None:
                stored[index] = lead
                matched += 1
            else:
                inserted.append(lead)

        remote_ids = {lead.id for lead in remote}
        remote_mobiles = {lead.mobile for lead in remote if lead.mobile}
        local_only = [
            lead for lead in local
            if lead.id not in remote_ids and not (lead.mobile and lead.mobile in remote_mobiles)
        ]

        self.mirror.set_leads(inserted + stored)

        if skipped:
            logger.warning(f"Skipped {skipped} remote lead records without an id")

        logger.info(
            f"Merged {len(remote)} remote leads ({matched} matched, {len(inserted)} new), "
            f"kept {len(local_only)} local-only"
        )
        return MergeResult(
            leads=remote + local_only,
            remote_available=True,
            remote_count=len(remote),
            matched=matched,
            inserted=len(inserted),
            local_only=len(local_only),
        )
