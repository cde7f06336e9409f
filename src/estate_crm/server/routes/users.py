"""User listing and identity sync routes."""

from fastapi import APIRouter, Depends

from ..schemas.lead import UserSyncRequest
from ..services.store import RemoteStore
from .deps import get_store

router = APIRouter(prefix="/api/v1/users", tags=["users"])


@router.get("")
async def list_users(store: RemoteStore = Depends(get_store)):
    users = store.list_users()
    return {"success": True, "count": len(users), "users": users}


@router.post("/sync")
async def sync_users(payload: UserSyncRequest, store: RemoteStore = Depends(get_store)):
    """Register client users, returning the remote id issued for each local id."""
    return store.sync_users([u.model_dump(by_alias=True) for u in payload.users])
