"""Development remote service exposing the lead/user REST API."""

from .main import create_app
from .services.store import RemoteStore, StoreError

__all__ = ["create_app", "RemoteStore", "StoreError"]
