"""Structured failures from the remote lead/user service.

The remote service reports most failures as free-text messages. They are
classified into an ``ErrorKind`` exactly once, here, so the rest of the code
branches on kinds rather than on message text.
"""

import re
from enum import Enum
from typing import Optional, Dict, Any


class ErrorKind(Enum):
    """Categories of remote failure the sync logic reacts to."""

    UNSYNCED_IDENTITY = "unsynced_identity"
    MISSING_REMOTE_RESOURCE = "missing_remote_resource"
    NETWORK = "network"
    VALIDATION = "validation"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    UNKNOWN = "unknown"


class RemoteError(Exception):
    """A failed call to the remote service."""

    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        status: Optional[int] = None,
        resource: Optional[str] = None,
        payload: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.kind = kind
        self.message = message
        self.status = status
        self.resource = resource
        self.payload = payload or {}

    def __repr__(self):
        return f"RemoteError({self.kind.value}, status={self.status}, {self.message!r})"


class UnauthorizedActionError(PermissionError):
    """Raised locally when the current user's role forbids an action."""


UNSYNCED_IDENTITY_MARKERS = (
    "hasn't been synced",
    "has not been synced",
    "local id",
    "does not exist in the system",
)

_MISSING_TABLE = re.compile(r"could not find the table\s+['\"]([^'\"]+)['\"]", re.IGNORECASE)
_MISSING_RELATION = re.compile(r"relation\s+['\"]([^'\"]+)['\"]\s+does not exist", re.IGNORECASE)


def missing_resource_name(message: str) -> Optional[str]:
    """Extract the table name from a missing-table message, without schema prefix."""
    for pattern in (_MISSING_TABLE, _MISSING_RELATION):
        match = pattern.search(message or "")
        if match:
            name = match.group(1)
            return name.split(".", 1)[1] if name.startswith("public.") else name
    return None


def classify_error(message: str, status: Optional[int] = None) -> ErrorKind:
    """Map a remote failure message and HTTP status to an ``ErrorKind``."""
    text = (message or "").lower()
    if missing_resource_name(message):
        return ErrorKind.MISSING_REMOTE_RESOURCE
    if "could not find the table" in text:
        return ErrorKind.MISSING_REMOTE_RESOURCE
    if any(marker in text for marker in UNSYNCED_IDENTITY_MARKERS):
        return ErrorKind.UNSYNCED_IDENTITY
    if status in (401, 403):
        return ErrorKind.UNAUTHORIZED
    if status == 404:
        return ErrorKind.NOT_FOUND
    if status is not None and 400 <= status < 500:
        return ErrorKind.VALIDATION
    return ErrorKind.UNKNOWN


def error_from_response(
    message: str,
    status: Optional[int] = None,
    payload: Optional[Dict[str, Any]] = None,
) -> RemoteError:
    """Build a classified ``RemoteError`` from a failed response."""
    kind = classify_error(message, status)
    resource = missing_resource_name(message) if kind == ErrorKind.MISSING_REMOTE_RESOURCE else None
    return RemoteError(kind, message, status=status, resource=resource, payload=payload)
