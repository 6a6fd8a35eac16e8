"""Tests for remote profile management."""

from unittest.mock import MagicMock

import pytest

from davsync.api.gateway import (
    ConnectionTestResult,
    GatewayConfig,
    GatewayError,
    ReportedFailure,
)
from davsync.backup.profile import ConfigManager, RemoteProfile
from davsync.utils.validation import ValidationError


@pytest.fixture
def gateway():
    gateway = MagicMock()
    gateway.get_config.return_value = GatewayConfig(
        configured=True,
        url="https://dav.example.com/remote.php/webdav",
        username="me",
        has_password=True,
    )
    gateway.update_config.return_value = "WebDAV configuration updated successfully"
    return gateway


class TestRemoteProfile:
    """Tests for the RemoteProfile dataclass."""

    def test_defaults(self):
        profile = RemoteProfile()
        assert profile.endpoint == ""
        assert profile.configured is False
        assert profile.has_password is False

    def test_repr_hides_password(self):
        """Test that the password never appears in the representation."""
        profile = RemoteProfile(endpoint="https://dav", password="s3cret")
        assert "s3cret" not in repr(profile)
        assert "***" in repr(profile)


class TestLoadProfile:
    """Tests for ConfigManager.load_profile."""

    def test_load_profile(self, gateway):
        """Test that the gateway profile is loaded with a blank password."""
        manager = ConfigManager(gateway)

        profile = manager.load_profile()

        assert profile.endpoint == "https://dav.example.com/remote.php/webdav"
        assert profile.username == "me"
        assert profile.password == ""
        assert profile.has_password is True
        assert manager.profile is profile

    def test_load_profile_transport_error(self, gateway):
        """Test that transport errors propagate."""
        gateway.get_config.side_effect = GatewayError("Gateway unreachable")
        manager = ConfigManager(gateway)

        with pytest.raises(GatewayError):
            manager.load_profile()


class TestSaveProfile:
    """Tests for ConfigManager.save_profile."""

    def test_empty_password_keeps_stored_secret(self, gateway):
        """Test that an empty password is passed on as empty."""
        manager = ConfigManager(gateway)
        manager.load_profile()

        message = manager.save_profile("https://dav.example.com/new", "me", "")

        gateway.update_config.assert_called_once_with(
            "https://dav.example.com/new", "me", ""
        )
        assert message == "WebDAV configuration updated successfully"
        assert manager.profile.has_password is True

    def test_password_cleared_after_success(self, gateway):
        """Test that the in-memory password is wiped after a save."""
        manager = ConfigManager(gateway)

        manager.save_profile("https://dav.example.com", "me", "s3cret")

        gateway.update_config.assert_called_once_with(
            "https://dav.example.com", "me", "s3cret"
        )
        assert manager.profile.password == ""
        assert manager.profile.configured is True
        assert manager.profile.has_password is True

    def test_fields_trimmed(self, gateway):
        """Test that the endpoint and username are trimmed."""
        manager = ConfigManager(gateway)

        manager.save_profile("  https://dav.example.com  ", " me ", "")

        gateway.update_config.assert_called_once_with("https://dav.example.com", "me", "")

    @pytest.mark.parametrize("endpoint", ["", "   ", None])
    def test_empty_endpoint_rejected_without_request(self, gateway, endpoint):
        """Test that an empty URL is rejected locally."""
        manager = ConfigManager(gateway)

        with pytest.raises(ValidationError, match="URL is required"):
            manager.save_profile(endpoint, "me", "s3cret")

        gateway.update_config.assert_not_called()

    def test_reported_failure_propagates(self, gateway):
        """Test that a refused update raises."""
        gateway.update_config.side_effect = ReportedFailure("Invalid request body", 400)
        manager = ConfigManager(gateway)

        with pytest.raises(ReportedFailure):
            manager.save_profile("https://dav.example.com", "me", "s3cret")

    def test_refused_update_leaves_loaded_profile(self, gateway):
        """Test that a refused update keeps the previously loaded profile."""
        gateway.update_config.side_effect = ReportedFailure("Invalid request body", 400)
        manager = ConfigManager(gateway)
        manager.load_profile()

        with pytest.raises(ReportedFailure):
            manager.save_profile("https://other.example.com", "someone", "s3cret")

        assert manager.profile.endpoint == "https://dav.example.com/remote.php/webdav"
        assert manager.profile.username == "me"
        assert manager.profile.password == ""

    def test_transport_error_leaves_blank_profile(self, gateway):
        gateway.update_config.side_effect = GatewayError("Gateway unreachable")
        manager = ConfigManager(gateway)

        with pytest.raises(GatewayError):
            manager.save_profile("https://dav.example.com", "me", "s3cret")

        assert manager.profile.endpoint == ""
        assert manager.profile.configured is False
        assert manager.profile.has_password is False


class TestTestConnection:
    """Tests for ConfigManager.test_connection."""

    def test_success(self, gateway):
        gateway.test_connection.return_value = ConnectionTestResult(True, "Success")
        manager = ConfigManager(gateway)

        result = manager.test_connection("https://dav.example.com", "me", "s3cret")

        assert result.success is True
        gateway.test_connection.assert_called_once_with(
            "https://dav.example.com", "me", "s3cret"
        )

    def test_negative_result_returned(self, gateway):
        """Test that a failed test is a normal result."""
        gateway.test_connection.return_value = ConnectionTestResult(
            False, "401 Unauthorized"
        )
        manager = ConfigManager(gateway)

        result = manager.test_connection("https://dav.example.com", "me", "bad")

        assert result.success is False
        assert result.message == "401 Unauthorized"

    def test_does_not_store_credentials(self, gateway):
        """Test that testing never updates the stored profile."""
        gateway.test_connection.return_value = ConnectionTestResult(True, "Success")
        manager = ConfigManager(gateway)

        manager.test_connection("https://other.example.com", "you", "pw")

        gateway.update_config.assert_not_called()
        assert manager.profile.endpoint == ""

    def test_empty_endpoint_rejected(self, gateway):
        manager = ConfigManager(gateway)

        with pytest.raises(ValidationError):
            manager.test_connection("", "me", "pw")

        gateway.test_connection.assert_not_called()
