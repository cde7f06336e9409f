"""CORS configuration."""

from ...config import settings


def allowed_origins():
    return list(settings.allowed_origins)
