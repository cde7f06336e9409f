"""Notification routes."""

from typing import Optional

from fastapi import APIRouter, Depends

from ..services.store import RemoteStore
from .deps import get_store

router = APIRouter(prefix="/api/v1/notifications", tags=["notifications"])


@router.get("")
async def list_notifications(
    userId: Optional[str] = None,
    role: Optional[str] = None,
    lastChecked: Optional[str] = None,
    store: RemoteStore = Depends(get_store),
):
    notifications = store.list_notifications(userId, role, lastChecked)
    return {"success": True, "notifications": notifications, "count": len(notifications)}


@router.post("/{notification_id}/read")
async def mark_read(notification_id: str, store: RemoteStore = Depends(get_store)):
    return {"success": True, "notification": store.mark_notification_read(notification_id)}


@router.delete("/{notification_id}")
async def delete_notification(notification_id: str, store: RemoteStore = Depends(get_store)):
    store.delete_notification(notification_id)
    return {"success": True, "message": "Notification deleted"}
