"""Client and error model for the remote lead/user service."""

from .client import RemoteService
from .errors import (
    ErrorKind,
    RemoteError,
    UnauthorizedActionError,
    classify_error,
    error_from_response,
)

__all__ = [
    "RemoteService",
    "ErrorKind",
    "RemoteError",
    "UnauthorizedActionError",
    "classify_error",
    "error_from_response",
]
