"""
Unit tests for the gateway client module.

Tests the RemoteBackupGateway class with a mocked requests session.
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from davsync.api.gateway import (
    BACKUP_PATH,
    BACKUPS_PATH,
    CONFIG_PATH,
    CONFLICT_PATH,
    DEFAULT_MAX_RETRIES,
    DEFAULT_SERVER_URL,
    DEFAULT_TIMEOUT,
    RESTORE_PATH,
    TEST_PATH,
    AuthenticationError,
    GatewayError,
    RemoteBackupGateway,
    ReportedFailure,
)
from davsync.utils.validation import ValidationError


def make_response(status_code=200, body=None, json_error=False):
    """Create a mock requests.Response."""
    response = MagicMock()
    response.status_code = status_code
    if json_error:
        response.json.side_effect = ValueError("No JSON object could be decoded")
    else:
        response.json.return_value = body
    return response


def envelope(data):
    """Wrap data the way the gateway wraps successful responses."""
    return {"success": True, "data": data}


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def gateway(session):
    return RemoteBackupGateway("http://gateway.test/", session=session)


class TestGatewayInitialization:
    """Tests for RemoteBackupGateway initialization."""

    def test_defaults(self):
        """Test default settings."""
        gateway = RemoteBackupGateway()

        assert gateway.base_url == DEFAULT_SERVER_URL
        assert gateway.timeout == DEFAULT_TIMEOUT
        assert gateway.max_retries == DEFAULT_MAX_RETRIES
        assert gateway._session is None

    def test_trailing_slash_stripped(self, gateway):
        """Test that the base URL loses its trailing slash."""
        assert gateway.base_url == "http://gateway.test"

    def test_max_retries_at_least_one(self):
        """Test that max_retries never drops below one attempt."""
        gateway = RemoteBackupGateway(max_retries=0)
        assert gateway.max_retries == 1

    def test_session_created_lazily_with_token(self):
        """Test that the session is built on first access with auth header."""
        gateway = RemoteBackupGateway(api_token="secret-token")
        session = gateway.session

        assert session.headers["Authorization"] == "Bearer secret-token"
        assert session.headers["Accept"] == "application/json"
        assert gateway.session is session

    def test_session_without_token_has_no_auth_header(self):
        """Test that no Authorization header is sent without a token."""
        gateway = RemoteBackupGateway()
        assert "Authorization" not in gateway.session.headers

    def test_close_releases_session(self, gateway, session):
        """Test that close() closes and forgets the session."""
        gateway.close()

        session.close.assert_called_once()
        assert gateway._session is None

    def test_repr(self, gateway):
        """Test string representation."""
        assert "http://gateway.test" in repr(gateway)


class TestResponseHandling:
    """Tests for envelope unwrapping and error classification."""

    def test_envelope_is_unwrapped(self, gateway, session):
        """Test that the data member of the envelope is returned."""
        session.request.return_value = make_response(
            body=envelope({"url": "https://dav.example.com", "configured": True})
        )

        config = gateway.get_config()

        assert config.url == "https://dav.example.com"
        assert config.configured is True

    def test_unwrapped_body_accepted(self, gateway, session):
        """Test that a bare object body is accepted as-is."""
        session.request.return_value = make_response(
            body={"url": "https://dav.example.com", "username": "me"}
        )

        config = gateway.get_config()

        assert config.username == "me"
        assert config.configured is True

    def test_non_json_body_raises_gateway_error(self, gateway, session):
        """Test that a non-JSON body is a transport-level failure."""
        session.request.return_value = make_response(json_error=True)

        with pytest.raises(GatewayError, match="Malformed response"):
            gateway.restore("backup-1.db", "local")

    def test_non_object_body_raises_gateway_error(self, gateway, session):
        """Test that a JSON array body is rejected."""
        session.request.return_value = make_response(body=["unexpected"])

        with pytest.raises(GatewayError, match="expected an object"):
            gateway.restore("backup-1.db", "local")

    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_status_raises_authentication_error(self, gateway, session, status):
        """Test that rejected credentials raise AuthenticationError."""
        session.request.return_value = make_response(status, {"error": "nope"})

        with pytest.raises(AuthenticationError):
            gateway.get_config()

    def test_error_status_raises_reported_failure(self, gateway, session):
        """Test that a well-formed error response raises ReportedFailure."""
        session.request.return_value = make_response(
            400, {"success": False, "error": "filename is required"}
        )

        with pytest.raises(ReportedFailure) as exc_info:
            gateway.restore("backup-1.db", "local")

        assert exc_info.value.message == "filename is required"
        assert exc_info.value.status_code == 400

    def test_error_status_without_message(self, gateway, session):
        """Test the fallback message for an error response without text."""
        session.request.return_value = make_response(500, {"success": False})

        with pytest.raises(ReportedFailure, match="HTTP 500"):
            gateway.restore("backup-1.db", "local")

    def test_success_false_on_mutation_raises_reported_failure(self, gateway, session):
        """Test that a 200 response declaring failure raises ReportedFailure."""
        session.request.return_value = make_response(
            body=envelope({"success": False, "message": "disk full"})
        )

        with pytest.raises(ReportedFailure, match="disk full"):
            gateway.create_backup()


class TestRetries:
    """Tests for retry behavior."""

    @patch("davsync.api.gateway.time.sleep")
    def test_read_retried_on_connection_error(self, mock_sleep, gateway, session):
        """Test that reads are retried after a connection error."""
        session.request.side_effect = [
            requests.ConnectionError("refused"),
            make_response(body=envelope({"success": True, "backups": []})),
        ]

        listing = gateway.list_backups()

        assert listing.success is True
        assert session.request.call_count == 2
        mock_sleep.assert_called_once_with(gateway.initial_retry_delay)

    @patch("davsync.api.gateway.time.sleep")
    def test_read_retried_on_server_error(self, mock_sleep, gateway, session):
        """Test that reads are retried after a 5xx response."""
        session.request.side_effect = [
            make_response(503, {"error": "busy"}),
            make_response(body=envelope({"success": True, "conflicts": []})),
        ]

        report = gateway.detect_conflicts("backup-1.db")

        assert report.success is True
        assert session.request.call_count == 2

    @patch("davsync.api.gateway.time.sleep")
    def test_backoff_doubles_and_is_capped(self, mock_sleep, session):
        """Test exponential backoff between attempts."""
        gateway = RemoteBackupGateway(
            session=session, max_retries=4, initial_retry_delay=10.0, max_retry_delay=15.0
        )
        session.request.side_effect = requests.Timeout("slow")

        with pytest.raises(GatewayError, match="unreachable"):
            gateway.get_config()

        assert session.request.call_count == 4
        delays = [c.args[0] for c in mock_sleep.call_args_list]
        assert delays == [10.0, 15.0, 15.0]

    @patch("davsync.api.gateway.time.sleep")
    def test_restore_never_retried(self, mock_sleep, gateway, session):
        """Test that a restore request is sent exactly once."""
        session.request.side_effect = requests.ConnectionError("refused")

        with pytest.raises(GatewayError):
            gateway.restore("backup-1.db", "remote")

        assert session.request.call_count == 1
        mock_sleep.assert_not_called()

    @patch("davsync.api.gateway.time.sleep")
    def test_mutation_server_error_not_retried(self, mock_sleep, gateway, session):
        """Test that a 5xx on a mutation is reported, not retried."""
        session.request.return_value = make_response(
            500, {"success": False, "error": "WebDAV backup failed"}
        )

        with pytest.raises(ReportedFailure, match="WebDAV backup failed"):
            gateway.create_backup("x.db")

        assert session.request.call_count == 1

    def test_other_request_exception_raises_gateway_error(self, gateway, session):
        """Test that other requests errors become GatewayError."""
        session.request.side_effect = requests.exceptions.InvalidURL("bad url")

        with pytest.raises(GatewayError):
            gateway.get_config()


class TestProfileRoutes:
    """Tests for profile-related routes."""

    def test_get_config_request(self, gateway, session):
        """Test the GET config request and parsed fields."""
        session.request.return_value = make_response(
            body=envelope(
                {
                    "configured": True,
                    "url": "https://dav.example.com",
                    "username": "me",
                    "hasPassword": True,
                }
            )
        )

        config = gateway.get_config()

        session.request.assert_called_once_with(
            "GET",
            f"http://gateway.test{CONFIG_PATH}",
            params=None,
            json=None,
            timeout=DEFAULT_TIMEOUT,
        )
        assert config.has_password is True
        assert config.username == "me"

    def test_get_config_unconfigured(self, gateway, session):
        """Test an unconfigured remote."""
        session.request.return_value = make_response(body=envelope({"configured": False}))

        config = gateway.get_config()

        assert config.configured is False
        assert config.url == ""
        assert config.has_password is False

    def test_update_config_omits_empty_password(self, gateway, session):
        """Test that an empty password is not transmitted."""
        session.request.return_value = make_response(
            body=envelope({"message": "WebDAV configuration updated successfully"})
        )

        message = gateway.update_config("https://dav.example.com", "me", "")

        assert message == "WebDAV configuration updated successfully"
        _, kwargs = session.request.call_args
        assert kwargs["json"] == {"url": "https://dav.example.com", "username": "me"}

    def test_update_config_sends_password(self, gateway, session):
        """Test that a non-empty password is transmitted."""
        session.request.return_value = make_response(body=envelope({}))

        message = gateway.update_config("https://dav.example.com", "me", "s3cret")

        args, kwargs = session.request.call_args
        assert args[0] == "PUT"
        assert kwargs["json"]["password"] == "s3cret"
        assert message == "Configuration updated"

    def test_test_connection_negative_result(self, gateway, session):
        """Test that a failed connection test is returned, not raised."""
        session.request.return_value = make_response(
            body=envelope({"success": False, "message": "401 Unauthorized"})
        )

        result = gateway.test_connection("https://dav.example.com", "me", "bad")

        assert result.success is False
        assert result.message == "401 Unauthorized"
        args, kwargs = session.request.call_args
        assert args == ("POST", f"http://gateway.test{TEST_PATH}")
        assert kwargs["json"] == {
            "url": "https://dav.example.com",
            "username": "me",
            "password": "bad",
        }

    def test_test_connection_default_message(self, gateway, session):
        """Test the fallback message of a successful test."""
        session.request.return_value = make_response(body=envelope({"success": True}))

        result = gateway.test_connection("https://dav.example.com", "me", "ok")

        assert result.success is True
        assert result.message == "Success"


class TestBackupRoutes:
    """Tests for backup listing, creation and deletion."""

    def test_list_backups(self, gateway, session):
        """Test listing backups keeps object entries only."""
        session.request.return_value = make_response(
            body=envelope(
                {
                    "success": True,
                    "backups": [{"filename": "backup-1.db", "size": 10}, "junk", None],
                }
            )
        )

        listing = gateway.list_backups()

        assert listing.success is True
        assert listing.backups == [{"filename": "backup-1.db", "size": 10}]
        args, _ = session.request.call_args
        assert args == ("GET", f"http://gateway.test{BACKUPS_PATH}")

    def test_list_backups_reported_failure(self, gateway, session):
        """Test a listing whose payload reports failure."""
        session.request.return_value = make_response(
            body=envelope({"success": False, "message": "WebDAV not configured"})
        )

        listing = gateway.list_backups()

        assert listing.success is False
        assert listing.backups == []
        assert listing.message == "WebDAV not configured"

    def test_create_backup_with_filename(self, gateway, session):
        """Test that the requested filename is sent trimmed."""
        session.request.return_value = make_response(
            body=envelope(
                {"message": "Backup created successfully", "filename": "mine.db"}
            )
        )

        created = gateway.create_backup("  mine.db ")

        _, kwargs = session.request.call_args
        assert kwargs["json"] == {"filename": "mine.db"}
        assert created.filename == "mine.db"
        assert created.message == "Backup created successfully"

    def test_create_backup_without_filename(self, gateway, session):
        """Test that the gateway-chosen filename is reported."""
        session.request.return_value = make_response(
            body=envelope({"filename": "backup-20250101-120000.db"})
        )

        created = gateway.create_backup()

        args, kwargs = session.request.call_args
        assert args == ("POST", f"http://gateway.test{BACKUP_PATH}")
        assert kwargs["json"] == {"filename": ""}
        assert created.filename == "backup-20250101-120000.db"

    def test_delete_backups_single_request(self, gateway, session):
        """Test that a batch delete is one DELETE request."""
        session.request.return_value = make_response(
            body=envelope({"message": "Backups deleted successfully"})
        )

        message = gateway.delete_backups(["a.db", "b.db"])

        session.request.assert_called_once()
        args, kwargs = session.request.call_args
        assert args == ("DELETE", f"http://gateway.test{BACKUPS_PATH}")
        assert kwargs["json"] == {"filenames": ["a.db", "b.db"]}
        assert message == "Backups deleted successfully"

    def test_delete_backups_empty_list(self, gateway, session):
        """Test that an empty batch is rejected before any request."""
        with pytest.raises(ValidationError):
            gateway.delete_backups([])

        session.request.assert_not_called()


class TestConflictAndRestoreRoutes:
    """Tests for conflict detection and restore."""

    def test_detect_conflicts(self, gateway, session):
        """Test that conflict records are passed through untouched."""
        records = [{"table": "notes", "row": 5}]
        session.request.return_value = make_response(
            body=envelope({"success": True, "conflicts": records})
        )

        report = gateway.detect_conflicts("backup-1.db")

        assert report.filename == "backup-1.db"
        assert report.conflicts == records
        assert report.has_conflicts is True
        args, kwargs = session.request.call_args
        assert args == ("GET", f"http://gateway.test{CONFLICT_PATH}")
        assert kwargs["params"] == {"filename": "backup-1.db"}

    def test_detect_conflicts_none(self, gateway, session):
        """Test a conflict-free report."""
        session.request.return_value = make_response(
            body=envelope({"success": True, "conflicts": None})
        )

        report = gateway.detect_conflicts("backup-1.db")

        assert report.conflicts == []
        assert report.has_conflicts is False

    @pytest.mark.parametrize("choice", ["local", "remote"])
    def test_restore_sends_choice(self, gateway, session, choice):
        """Test the restore request body."""
        session.request.return_value = make_response(
            body=envelope({"message": "Restore completed successfully"})
        )

        message = gateway.restore("backup-1.db", choice)

        args, kwargs = session.request.call_args
        assert args == ("POST", f"http://gateway.test{RESTORE_PATH}")
        assert kwargs["json"] == {"filename": "backup-1.db", "choice": choice}
        assert message == "Restore completed successfully"

    def test_restore_invalid_choice(self, gateway, session):
        """Test that an unknown choice is rejected locally."""
        with pytest.raises(ValidationError, match="choice must be one of"):
            gateway.restore("backup-1.db", "both")

        session.request.assert_not_called()
