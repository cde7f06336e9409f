"""Health check routes."""

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(request: Request):
    store = request.app.state.store
    return {
        "status": "ok",
        "message": "CRM remote service is running",
        "leads": len(store.leads),
        "usersTable": store.users_table_enabled,
    }
