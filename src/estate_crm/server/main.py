"""FastAPI application factory for the development remote service."""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ..config import settings
from .middleware.cors import allowed_origins
from .routes.health import router as health_router
from .routes.leads import router as leads_router, webhook_router
from .routes.notifications import router as notifications_router
from .routes.users import router as users_router
from .services.store import RemoteStore, StoreError

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    store = app.state.store
    logger.info(f"Starting CRM remote service (users table: {store.users_table_enabled})")
    yield
    logger.info("CRM remote service shutting down")


async def store_error_handler(request: Request, exc: StoreError):
    logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def create_app(store: Optional[RemoteStore] = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Estate CRM Remote Service",
        description="Development backend for lead sync and user identity reconciliation",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.store = store or RemoteStore(users_table_enabled=settings.users_table_enabled)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=allowed_origins(),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )
    app.add_exception_handler(StoreError, store_error_handler)

    app.include_router(health_router)
    app.include_router(health_router, prefix="/api/v1")
    app.include_router(leads_router)
    app.include_router(webhook_router)
    app.include_router(users_router)
    app.include_router(notifications_router)

    return app
