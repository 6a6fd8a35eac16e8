"""
Remote connection profile management.

Keeps the WebDAV connection profile (endpoint, username, password) in sync
with the backup gateway. The password is write-only from the operator's
side: it is never echoed back, an empty value on save keeps the stored
credential, and the in-memory copy is wiped once a save succeeds.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from davsync.api.gateway import ConnectionTestResult, RemoteBackupGateway
from davsync.utils.validation import require_text

logger = logging.getLogger(__name__)


@dataclass
class RemoteProfile:
    """
    Remote connection profile.

    Attributes:
        endpoint: WebDAV URL
        username: WebDAV username (may be empty)
        password: Secret; blank whenever the profile came from the gateway
        configured: Whether the gateway has a remote configured at all
        has_password: Whether the gateway holds a stored password
    """

    endpoint: str = ""
    username: str = ""
    password: str = ""
    configured: bool = False
    has_password: bool = False

    def __repr__(self) -> str:
        """Return a representation that never reveals the password."""
        return (
            f"RemoteProfile(endpoint={self.endpoint!r}, username={self.username!r}, "
            f"password={'***' if self.password else ''!r}, "
            f"configured={self.configured})"
        )


class ConfigManager:
    """
    Holds the remote profile and synchronizes it with the gateway.

    Usage:
        manager = ConfigManager(gateway)

        profile = manager.load_profile()
        manager.save_profile("https://dav.example.com/remote.php/webdav", "me", "")
        result = manager.test_connection(profile.endpoint, profile.username, "s3cret")
    """

    def __init__(self, gateway: RemoteBackupGateway):
        self.gateway = gateway
        self.profile = RemoteProfile()

    def load_profile(self) -> RemoteProfile:
        """
        Fetch the current profile from the gateway.

        Returns:
            RemoteProfile with a blank password

        Raises:
            GatewayError: On transport or authentication failure
        """
        config = self.gateway.get_config()
        self.profile = RemoteProfile(
            endpoint=config.url,
            username=config.username,
            password="",
            configured=config.configured,
            has_password=config.has_password,
        )
        logger.debug(
            f"Loaded remote profile (configured={config.configured}, "
            f"has_password={config.has_password})"
        )
        return self.profile

    def save_profile(self, endpoint: str, username: str, password: str = "") -> str:
        """
        Store a new profile on the gateway.

        Args:
            endpoint: WebDAV URL (required)
            username: WebDAV username
            password: New password, or empty to keep the stored one

        Returns:
            Gateway acknowledgement message

        Raises:
            ValidationError: If the endpoint is empty
            GatewayError: On transport failure
            ReportedFailure: If the gateway refuses the update
        """
        endpoint = require_text(endpoint, "URL")
        username = (username or "").strip()

        password = password or ""
        keep_existing = not password
        try:
            message = self.gateway.update_config(endpoint, username, password)
        finally:
            # The secret never outlives the submission
            self.profile.password = ""

        self.profile.endpoint = endpoint
        self.profile.username = username
        self.profile.configured = True
        if not keep_existing:
            self.profile.has_password = True

        logger.info(
            f"Saved remote profile for {endpoint}"
            + (" (stored password kept)" if keep_existing else "")
        )
        return message

    def test_connection(
        self, endpoint: str, username: str, password: str = ""
    ) -> ConnectionTestResult:
        """
        Test the given credentials through the gateway without storing them.

        Returns:
            ConnectionTestResult; a negative test is a normal result

        Raises:
            ValidationError: If the endpoint is empty
            GatewayError: If the gateway could not be reached
        """
        endpoint = require_text(endpoint, "URL")
        result = self.gateway.test_connection(
            endpoint, (username or "").strip(), password or ""
        )
        if result.success:
            logger.info(f"Connection test succeeded for {endpoint}")
        else:
            logger.warning(f"Connection test failed for {endpoint}: {result.message}")
        return result
