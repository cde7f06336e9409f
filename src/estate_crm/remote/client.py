"""HTTP client for the remote lead/user service."""

import logging
from typing import Optional, List, Dict, Any

import requests

from .errors import ErrorKind, RemoteError, error_from_response

logger = logging.getLogger(__name__)


class RemoteService:
    """Thin JSON client over the remote CRM REST API.

    Every failure surfaces as a ``RemoteError`` with a classified kind.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 30,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({"Content-Type": "application/json"})

    def _request(
        self,
        method: str,
        endpoint: str,
        data: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Make an API request and return the decoded JSON body."""
        url = f"{self.base_url}{endpoint}"

        try:
            response = self.session.request(
                method, url, json=data, params=params, timeout=self.timeout
            )
        except requests.RequestException as e:
            logger.debug(f"Remote request {method} {endpoint} failed: {e}")
            raise RemoteError(ErrorKind.NETWORK, str(e)) from e

        if not response.ok:
            try:
                body = response.json()
            except ValueError:
                body = {}
            if not isinstance(body, dict):
                body = {}
            if isinstance(body.get("detail"), dict):
                body = body["detail"]
            message = (
                body.get("message")
                or body.get("error")
                or (body.get("detail") if isinstance(body.get("detail"), str) else None)
                or f"API Error: {response.status_code} {response.reason}"
            )
            error = error_from_response(message, response.status_code, body)
            logger.debug(f"Remote {method} {endpoint} returned {response.status_code}: {message}")
            raise error

        try:
            body = response.json()
        except ValueError as e:
            raise RemoteError(
                ErrorKind.UNKNOWN, "Invalid JSON in remote response", status=response.status_code
            ) from e
        if not isinstance(body, dict):
            raise RemoteError(
                ErrorKind.UNKNOWN, "Unexpected remote response shape", status=response.status_code
            )
        return body

    def health_check(self) -> bool:
        """Test the remote connection."""
        try:
            self._request("GET", "/health")
            return True
        except RemoteError:
            return False

    # Leads

    def get_leads(self) -> List[Dict[str, Any]]:
        """Fetch every lead as raw camelCase records."""
        body = self._request("GET", "/leads")
        return body.get("leads") or []

    def update_lead(self, lead_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        """Send a partial update. Returns the full response body."""
        return self._request("PUT", f"/leads/{lead_id}", data=updates)

    def delete_lead(self, lead_id: str, role: str) -> Dict[str, Any]:
        return self._request("DELETE", f"/leads/{lead_id}", params={"role": role})

    # Users

    def get_users(self) -> List[Dict[str, Any]]:
        body = self._request("GET", "/users")
        return body.get("users") or []

    def sync_users(self, users: List[Dict[str, Any]]) -> Dict[str, Any]:
        """Push local users so the remote can issue ids for them."""
        return self._request("POST", "/users/sync", data={"users": users})

    # Notifications

    def get_notifications(
        self,
        user_id: str,
        role: str,
        last_checked: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        params = {"userId": user_id, "role": role}
        if last_checked:
            params["lastChecked"] = last_checked
        body = self._request("GET", "/notifications", params=params)
        return body.get("notifications") or []

    def mark_notification_read(self, notification_id: str) -> Dict[str, Any]:
        return self._request("POST", f"/notifications/{notification_id}/read")

    def delete_notification(self, notification_id: str) -> Dict[str, Any]:
        return self._request("DELETE", f"/notifications/{notification_id}")
