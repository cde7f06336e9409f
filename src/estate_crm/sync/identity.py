"""Reconcile locally-minted user ids with ids issued by the remote service."""

import logging
from typing import Optional, List, Dict, Any

from ..remote.errors import RemoteError
from ..storage.mirror import MirrorStore
from ..storage.models import LOCAL_USER_ID_PATTERN, User

logger = logging.getLogger(__name__)


def is_local_id(user_id: Optional[str]) -> bool:
    """True for ids minted locally, like ``user-1718000000000`` or ``admin-0``."""
    return bool(user_id) and bool(LOCAL_USER_ID_PATTERN.match(user_id))


def _name_key(name: str) -> str:
    return " ".join((name or "").split()).casefold()


def build_id_mapping(
    local_users: List[User],
    remote_users: List[User],
    match_ids: bool = True,
) -> Dict[str, str]:
    """Map local user ids to remote ones.

    A remote user matches a local user with the same id, or otherwise the
    same name. Only differing ids end up in the mapping.
    """
    local_ids = {u.id for u in local_users}
    by_name: Dict[str, User] = {}
    for user in local_users:
        by_name.setdefault(_name_key(user.name), user)

    mapping: Dict[str, str] = {}
    for remote in remote_users:
        if match_ids and remote.id in local_ids:
            continue
        local = by_name.get(_name_key(remote.name))
        if not local or local.id == remote.id:
            continue
        if local.id in mapping:
            logger.debug(
                f"Remote user {remote.id} also matches {local.name!r}; "
                f"keeping {local.id} -> {mapping[local.id]}"
            )
            continue
        mapping[local.id] = remote.id
    return mapping


class IdentityReconciler:
    """Keep the mirror's user ids aligned with the remote service."""

    def __init__(self, mirror: MirrorStore, remote):
        self.mirror = mirror
        self.remote = remote

    def fetch_remote_users(self) -> Optional[List[User]]:
        """Remote users, or None when the remote cannot be reached."""
        try:
            return [User.from_dict(u) for u in self.remote.get_users()]
        except RemoteError as e:
            logger.warning(f"Remote users unavailable: {e.message}")
            return None

    def reconcile(self, remote_users: List[User]) -> Dict[str, str]:
        """Adopt remote ids in the mirror and add remote-only users.

        Returns the applied old-to-new id mapping.
        """
        if not remote_users:
            return {}
        local_users = self.mirror.get_users()
        mapping = build_id_mapping(local_users, remote_users)
        if mapping:
            self.mirror.remap_user_ids(mapping)
            logger.info(f"Adopted {len(mapping)} remote user ids")

        known = {mapping.get(u.id, u.id) for u in local_users}
        for user in remote_users:
            if user.id not in known:
                self.mirror.add_user(user)
                known.add(user.id)
        return mapping

    def resync(self) -> Dict[str, str]:
        """Push every mirror user to the remote, then adopt the issued ids.

        Raises ``RemoteError`` if either call fails.
        """
        local_users = self.mirror.get_users()
        result = self.remote.sync_users([u.to_dict() for u in local_users])
        logger.info(f"Pushed {len(local_users)} users to remote, {result.get('synced', 0)} synced")

        remote_users = [User.from_dict(u) for u in self.remote.get_users()]
        mapping = build_id_mapping(local_users, remote_users, match_ids=False)
        if mapping:
            self.mirror.remap_user_ids(mapping)
            logger.info(f"Remapped {len(mapping)} local user ids after resync")
        return mapping
