"""Lead routes and website lead capture."""

from typing import Optional

from fastapi import APIRouter, Depends

from ..schemas.lead import LeadUpdateRequest, WebsiteLeadRequest
from ..services.store import RemoteStore
from .deps import get_store

router = APIRouter(prefix="/api/v1/leads", tags=["leads"])
webhook_router = APIRouter(prefix="/api/v1/webhooks", tags=["webhooks"])


@router.get("")
async def list_leads(store: RemoteStore = Depends(get_store)):
    leads = store.list_leads()
    return {"success": True, "count": len(leads), "leads": leads}


@router.put("/{lead_id}")
async def update_lead(
    lead_id: str,
    payload: LeadUpdateRequest,
    store: RemoteStore = Depends(get_store),
):
    """Apply a partial update. Locally-minted assignee ids are resolved first."""
    lead = store.update_lead(lead_id, payload.to_payload())
    return {"success": True, "lead": lead}


@router.delete("/{lead_id}")
async def delete_lead(
    lead_id: str,
    role: Optional[str] = None,
    store: RemoteStore = Depends(get_store),
):
    store.delete_lead(lead_id, role)
    return {"success": True, "message": "Lead deleted successfully"}


@webhook_router.post("/lead")
async def capture_lead(payload: WebsiteLeadRequest, store: RemoteStore = Depends(get_store)):
    lead = store.capture_website_lead(payload.model_dump(by_alias=True))
    return {"success": True, "leadId": lead["id"], "message": "Lead received successfully"}
