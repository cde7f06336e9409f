"""Synchronization between the local mirror and the remote service."""

from .booking import BookingHandler
from .identity import IdentityReconciler, build_id_mapping, is_local_id
from .merge import LeadMerger, MergeResult
from .normalize import normalize_remote_lead
from .updates import LeadUpdater, UpdateResult, UpdateState, build_update_payload

__all__ = [
    "BookingHandler",
    "IdentityReconciler",
    "build_id_mapping",
    "is_local_id",
    "LeadMerger",
    "MergeResult",
    "normalize_remote_lead",
    "LeadUpdater",
    "UpdateResult",
    "UpdateState",
    "build_update_payload",
]
