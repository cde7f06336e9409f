"""Shared route dependencies."""

from fastapi import Request

from ..services.store import RemoteStore


def get_store(request: Request) -> RemoteStore:
    return request.app.state.store
