"""Environment-based configuration."""

import os
from pathlib import Path


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


class Settings:
    """Client and dev-server configuration loaded from environment variables."""

    def __init__(self):
        self.api_url = os.getenv("CRM_API_URL", "http://localhost:5000/api/v1")
        self.mirror_path = Path(
            os.getenv("CRM_MIRROR_PATH", str(Path.home() / ".estate-crm" / "mirror.json"))
        ).expanduser()
        self.request_timeout = float(os.getenv("CRM_REQUEST_TIMEOUT", "30"))

        # Background job intervals, seconds
        self.refresh_interval = float(os.getenv("CRM_REFRESH_INTERVAL", "30"))
        self.notification_interval = float(os.getenv("CRM_NOTIFICATION_INTERVAL", "5"))
        self.reminder_interval = float(os.getenv("CRM_REMINDER_INTERVAL", "10"))

        # Notice display durations, seconds
        self.notice_seconds = float(os.getenv("CRM_NOTICE_SECONDS", "5"))
        self.long_notice_seconds = float(os.getenv("CRM_LONG_NOTICE_SECONDS", "15"))

        self.log_level = os.getenv("CRM_LOG_LEVEL", "INFO").upper()

        # Dev remote server
        self.host = os.getenv("CRM_SERVER_HOST", "0.0.0.0")
        self.port = int(os.getenv("CRM_SERVER_PORT", "5000"))
        self.users_table_enabled = _env_bool("CRM_SERVER_USERS_TABLE", "true")
        self.allowed_origins = [
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1:3000",
            "http://127.0.0.1:5173",
        ]


_settings = None


def _get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """Re-read the environment, e.g. after tests patch it."""
    global _settings
    _settings = Settings()
    return _settings


class _SettingsProxy:
    """Lazy proxy so settings aren't loaded until first access."""

    def __getattr__(self, name):
        return getattr(_get_settings(), name)


settings = _SettingsProxy()
