"""Tests for the remote REST client and error classification."""

from unittest.mock import MagicMock

import pytest
import requests

from estate_crm.remote.client import RemoteService
from estate_crm.remote.errors import ErrorKind, RemoteError, classify_error, error_from_response


def make_response(status_code=200, body=None, reason="OK"):
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.reason = reason
    if body is None:
        response.json.side_effect = ValueError("No JSON")
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def http():
    return MagicMock(spec=requests.Session, headers={})


@pytest.fixture
def client(http):
    return RemoteService("http://crm.test/api/v1/", timeout=5, session=http)


class TestClassifyError:
    """Tests for classify_error."""

    def test_unsynced_identity_messages(self):
        """Test both unsynced-id phrasings classify the same way."""
        assert classify_error(
            'The user ID "user-5" is a local ID that hasn\'t been synced to Supabase.', 400
        ) == ErrorKind.UNSYNCED_IDENTITY
        assert classify_error(
            "The selected salesperson (ID: abc) does not exist in the system.", 400
        ) == ErrorKind.UNSYNCED_IDENTITY

    def test_missing_table(self):
        """Test the missing-table message carries the bare table name."""
        error = error_from_response("Could not find the table 'public.users' in the schema cache", 500)

        assert error.kind == ErrorKind.MISSING_REMOTE_RESOURCE
        assert error.resource == "users"

    def test_missing_relation(self):
        """Test the relation-does-not-exist phrasing."""
        error = error_from_response('relation "notifications" does not exist', 500)

        assert error.kind == ErrorKind.MISSING_REMOTE_RESOURCE
        assert error.resource == "notifications"

    def test_status_fallbacks(self):
        """Test plain failures classify by status code."""
        assert classify_error("Forbidden", 403) == ErrorKind.UNAUTHORIZED
        assert classify_error("Lead not found", 404) == ErrorKind.NOT_FOUND
        assert classify_error("Bad payload", 422) == ErrorKind.VALIDATION
        assert classify_error("Internal server error", 500) == ErrorKind.UNKNOWN


class TestRemoteService:
    """Tests for RemoteService."""

    def test_get_leads(self, client, http):
        """Test leads are unwrapped from the response body."""
        http.request.return_value = make_response(body={"success": True, "leads": [{"id": "1"}]})

        leads = client.get_leads()

        assert leads == [{"id": "1"}]
        http.request.assert_called_once_with(
            "GET", "http://crm.test/api/v1/leads", json=None, params=None, timeout=5
        )

    def test_update_lead_sends_payload(self, client, http):
        """Test the update is a PUT with a JSON body."""
        http.request.return_value = make_response(body={"success": True, "lead": {"id": "1"}})

        client.update_lead("1", {"status": "Qualified", "assignedSalespersonId": None})

        method, url = http.request.call_args[0]
        assert method == "PUT"
        assert url.endswith("/leads/1")
        assert http.request.call_args[1]["json"]["assignedSalespersonId"] is None

    def test_error_response_is_classified(self, client, http):
        """Test a 400 body message becomes a classified RemoteError."""
        http.request.return_value = make_response(
            400,
            {"success": False, "error": "User not found",
             "message": 'The user ID "user-5" is a local ID that hasn\'t been synced to Supabase.'},
            reason="Bad Request",
        )

        with pytest.raises(RemoteError) as exc_info:
            client.update_lead("1", {})

        assert exc_info.value.kind == ErrorKind.UNSYNCED_IDENTITY
        assert exc_info.value.status == 400

    def test_error_without_json_body(self, client, http):
        """Test a non-JSON error body still raises with the status."""
        http.request.return_value = make_response(502, None, reason="Bad Gateway")

        with pytest.raises(RemoteError) as exc_info:
            client.get_users()

        assert exc_info.value.kind == ErrorKind.UNKNOWN
        assert "502" in exc_info.value.message

    def test_connection_error_is_network(self, client, http):
        """Test transport failures map to NETWORK."""
        http.request.side_effect = requests.ConnectionError("refused")

        with pytest.raises(RemoteError) as exc_info:
            client.get_leads()

        assert exc_info.value.kind == ErrorKind.NETWORK

    def test_notifications_params(self, client, http):
        """Test lastChecked is only sent when known."""
        http.request.return_value = make_response(body={"notifications": []})

        client.get_notifications("u1", "Salesperson")

        assert http.request.call_args[1]["params"] == {"userId": "u1", "role": "Salesperson"}

    def test_health_check(self, client, http):
        """Test health check swallows failures."""
        http.request.side_effect = requests.Timeout("slow")

        assert client.health_check() is False

    def test_non_object_body_is_unknown_error(self, client, http):
        """Test a JSON list where an object is expected raises RemoteError."""
        http.request.return_value = make_response(body=[{"id": "1"}])

        with pytest.raises(RemoteError) as exc_info:
            client.get_leads()

        assert exc_info.value.kind == ErrorKind.UNKNOWN

    def test_non_object_error_body_uses_status(self, client, http):
        """Test an error body that is not an object still classifies by status."""
        http.request.return_value = make_response(404, ["nope"], reason="Not Found")

        with pytest.raises(RemoteError) as exc_info:
            client.update_lead("1", {})

        assert exc_info.value.kind == ErrorKind.NOT_FOUND
        assert "404" in exc_info.value.message
