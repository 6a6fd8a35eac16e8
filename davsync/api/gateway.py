"""
Backup gateway HTTP client.

Provides a typed interface to the gateway's ``/api/webdav/*`` routes for:
- Reading and updating the remote (WebDAV) connection profile
- Testing connectivity with candidate credentials
- Listing, creating and deleting remote backups
- Detecting conflicts and restoring from a backup

Transport problems (unreachable host, timeouts, rejected credentials,
malformed bodies) raise GatewayError. A well-formed error response from the
gateway raises ReportedFailure. Operations whose payload carries its own
``success`` flag (test, list, conflict) return that flag instead of raising.
"""

import logging
import time
from dataclasses import dataclass, field
from typing import Any

import requests
from requests.exceptions import RequestException

from davsync import __version__
from davsync.utils.validation import ValidationError

# Default gateway location (the web UI server)
DEFAULT_SERVER_URL = "http://localhost:3000"

# Gateway routes
CONFIG_PATH = "/api/webdav/config"
TEST_PATH = "/api/webdav/test"
BACKUPS_PATH = "/api/webdav/backups"
BACKUP_PATH = "/api/webdav/backup"
RESTORE_PATH = "/api/webdav/restore"
CONFLICT_PATH = "/api/webdav/conflict"

# Request timeout applied to every call
DEFAULT_TIMEOUT = 30.0  # seconds

# Retry configuration defaults (reads only)
DEFAULT_MAX_RETRIES = 3
DEFAULT_INITIAL_RETRY_DELAY = 1.0  # seconds
DEFAULT_MAX_RETRY_DELAY = 30.0  # seconds

# Restore choices understood by the gateway
RESTORE_CHOICES = ("local", "remote")

USER_AGENT = f"davsync/{__version__}"

logger = logging.getLogger(__name__)


class GatewayError(Exception):
    """Raised when the gateway cannot be reached or answers unintelligibly."""

    pass


class AuthenticationError(GatewayError):
    """Raised when the gateway rejects the client's credentials."""

    pass


class ReportedFailure(Exception):
    """
    Raised when the gateway answers but declares the operation failed.

    Attributes:
        message: Human-readable message taken from the gateway response
        status_code: HTTP status of the response, if any
    """

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class GatewayConfig:
    """Remote profile as reported by the gateway (the secret is never returned)."""

    configured: bool
    url: str
    username: str
    has_password: bool


@dataclass
class ConnectionTestResult:
    """Outcome of a connectivity test that reached the gateway."""

    success: bool
    message: str


@dataclass
class BackupListing:
    """Raw enumeration result; ``backups`` holds the gateway's entry mappings."""

    success: bool
    backups: list[dict[str, Any]] = field(default_factory=list)
    message: str | None = None


@dataclass
class BackupCreated:
    """Acknowledgement of a backup creation."""

    filename: str | None
    message: str


@dataclass
class ConflictReport:
    """
    Conflict detection result for one backup.

    ``conflicts`` holds the gateway's records untouched; their shape is
    owned by the gateway.
    """

    filename: str
    success: bool
    conflicts: list[Any] = field(default_factory=list)
    message: str | None = None

    @property
    def has_conflicts(self) -> bool:
        return self.success and bool(self.conflicts)


def _message_of(body: dict[str, Any]) -> str | None:
    """Extract the human-readable message from a response body."""
    for key in ("message", "error"):
        value = body.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _unwrap(body: dict[str, Any]) -> dict[str, Any]:
    """Strip the ``{"success": true, "data": {...}}`` envelope if present."""
    data = body.get("data")
    if isinstance(data, dict):
        return data
    return body


def _ack(data: dict[str, Any], default: str, failure: str) -> str:
    """Return the acknowledgement message of a mutating call."""
    if data.get("success") is False:
        raise ReportedFailure(_message_of(data) or failure)
    return _message_of(data) or default


class RemoteBackupGateway:
    """
    HTTP client for the backup gateway.

    Attributes:
        base_url: Gateway root URL (without trailing slash)
        timeout: Per-request timeout in seconds
        max_retries: Attempts for idempotent reads

    Usage:
        gateway = RemoteBackupGateway("http://localhost:3000")

        config = gateway.get_config()
        listing = gateway.list_backups()
        report = gateway.detect_conflicts("backup-20250101-120000.db")
        gateway.restore("backup-20250101-120000.db", "local")
    """

    def __init__(
        self,
        base_url: str = DEFAULT_SERVER_URL,
        api_token: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        initial_retry_delay: float = DEFAULT_INITIAL_RETRY_DELAY,
        max_retry_delay: float = DEFAULT_MAX_RETRY_DELAY,
        session: requests.Session | None = None,
    ):
        """
        Initialize the gateway client.

        Args:
            base_url: Gateway root URL, e.g. http://localhost:3000
            api_token: Optional bearer token sent with every request
            timeout: Per-request timeout in seconds (default 30)
            max_retries: Attempts for idempotent reads (default 3)
            initial_retry_delay: Initial backoff delay in seconds (default 1.0)
            max_retry_delay: Maximum backoff delay in seconds (default 30.0)
            session: Pre-built requests session (mainly for tests)
        """
        self.base_url = base_url.rstrip("/")
        self.api_token = api_token
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.initial_retry_delay = initial_retry_delay
        self.max_retry_delay = max_retry_delay
        self._session = session

    @property
    def session(self) -> requests.Session:
        """Get or create the HTTP session."""
        if self._session is None:
            session = requests.Session()
            session.headers.update(
                {"User-Agent": USER_AGENT, "Accept": "application/json"}
            )
            if self.api_token:
                session.headers["Authorization"] = f"Bearer {self.api_token}"
            self._session = session
            logger.debug(f"Created gateway session for {self.base_url}")
        return self._session

    def close(self) -> None:
        """Close the underlying HTTP session."""
        if self._session is not None:
            self._session.close()
            self._session = None

    def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json_body: dict[str, Any] | None = None,
        retry: bool = False,
    ) -> dict[str, Any]:
        """
        Issue one request and return the decoded (unwrapped) body.

        Only reads pass ``retry=True``; they are retried with exponential
        backoff on connection errors, timeouts and 5xx responses.

        Raises:
            GatewayError: On transport failure or malformed response
            AuthenticationError: On HTTP 401/403
            ReportedFailure: On any other error response
        """
        url = f"{self.base_url}{path}"
        operation = f"{method} {path}"
        attempts = self.max_retries if retry else 1
        delay = self.initial_retry_delay

        for attempt in range(attempts):
            try:
                response = self.session.request(
                    method, url, params=params, json=json_body, timeout=self.timeout
                )
            except (requests.ConnectionError, requests.Timeout) as e:
                if attempt < attempts - 1:
                    logger.warning(
                        f"{operation} failed ({e.__class__.__name__}), retrying in "
                        f"{delay:.1f}s (attempt {attempt + 1}/{attempts})"
                    )
                    time.sleep(delay)
                    delay = min(delay * 2, self.max_retry_delay)
                    continue
                logger.error(f"{operation} could not reach gateway: {e}")
                raise GatewayError(f"Gateway unreachable: {e}") from e
            except RequestException as e:
                logger.error(f"{operation} failed: {e}")
                raise GatewayError(f"{operation} failed: {e}") from e

            if response.status_code >= 500 and attempt < attempts - 1:
                logger.warning(
                    f"{operation} server error ({response.status_code}), "
                    f"retrying in {delay:.1f}s"
                )
                time.sleep(delay)
                delay = min(delay * 2, self.max_retry_delay)
                continue

            return self._parse_response(response, operation)

        # Should not reach here, but just in case
        raise GatewayError(f"{operation} failed after all retries")

    def _parse_response(
        self, response: requests.Response, operation: str
    ) -> dict[str, Any]:
        status = response.status_code

        if status in (401, 403):
            logger.error(f"{operation} rejected with status {status}")
            raise AuthenticationError(
                f"Gateway rejected the request (HTTP {status}); check the API token"
            )

        try:
            body = response.json()
        except ValueError as e:
            logger.error(f"{operation} returned a non-JSON body (HTTP {status})")
            raise GatewayError(
                f"Malformed response from gateway for {operation} (HTTP {status})"
            ) from e

        if not isinstance(body, dict):
            raise GatewayError(
                f"Malformed response from gateway for {operation}: "
                f"expected an object, got {type(body).__name__}"
            )

        if status >= 400:
            message = _message_of(body) or f"Gateway returned HTTP {status}"
            logger.warning(f"{operation} reported failure ({status}): {message}")
            raise ReportedFailure(message, status_code=status)

        return _unwrap(body)

    # -------------------------------------------------------------------------
    # Remote profile
    # -------------------------------------------------------------------------

    def get_config(self) -> GatewayConfig:
        """
        Fetch the remote profile stored by the gateway.

        Returns:
            GatewayConfig (the password itself is never part of the response)
        """
        data = self._request("GET", CONFIG_PATH, retry=True)
        return GatewayConfig(
            configured=bool(data.get("configured", bool(data.get("url")))),
            url=str(data.get("url") or ""),
            username=str(data.get("username") or ""),
            has_password=bool(data.get("hasPassword", False)),
        )

    def update_config(self, url: str, username: str, password: str = "") -> str:
        """
        Store a new remote profile on the gateway.

        An empty password is not transmitted at all, which tells the gateway
        to keep the credential it already holds.

        Returns:
            Gateway acknowledgement message
        """
        body: dict[str, Any] = {"url": url, "username": username}
        if password:
            body["password"] = password
        data = self._request("PUT", CONFIG_PATH, json_body=body)
        return _ack(data, "Configuration updated", "Failed to update configuration")

    def test_connection(
        self, url: str, username: str, password: str = ""
    ) -> ConnectionTestResult:
        """
        Ask the gateway to test the given credentials without storing them.

        Returns:
            ConnectionTestResult; ``success=False`` is a clean negative result
        """
        data = self._request(
            "POST",
            TEST_PATH,
            json_body={"url": url, "username": username, "password": password},
        )
        success = bool(data.get("success", False))
        message = _message_of(data) or ("Success" if success else "Failed")
        return ConnectionTestResult(success=success, message=message)

    # -------------------------------------------------------------------------
    # Backups
    # -------------------------------------------------------------------------

    def list_backups(self) -> BackupListing:
        """Enumerate the backups held on the remote."""
        data = self._request("GET", BACKUPS_PATH, retry=True)
        raw = data.get("backups")
        backups = [b for b in raw if isinstance(b, dict)] if isinstance(raw, list) else []
        return BackupListing(
            success=bool(data.get("success", False)),
            backups=backups,
            message=_message_of(data),
        )

    def create_backup(self, filename: str | None = None) -> BackupCreated:
        """
        Create a new remote backup.

        Args:
            filename: Optional name; the gateway picks a timestamped name
                      when omitted

        Returns:
            BackupCreated with the name the gateway actually used
        """
        body = {"filename": (filename or "").strip()}
        data = self._request("POST", BACKUP_PATH, json_body=body)
        created = data.get("filename")
        return BackupCreated(
            filename=str(created) if created else (body["filename"] or None),
            message=_ack(data, "Backup created successfully", "Backup failed"),
        )

    def delete_backups(self, filenames: list[str]) -> str:
        """
        Delete several backups in one request.

        Returns:
            Gateway acknowledgement message
        """
        if not filenames:
            raise ValidationError("filenames is required")
        data = self._request("DELETE", BACKUPS_PATH, json_body={"filenames": filenames})
        return _ack(data, "Backups deleted successfully", "Failed to delete backups")

    # -------------------------------------------------------------------------
    # Conflicts and restore
    # -------------------------------------------------------------------------

    def detect_conflicts(self, filename: str) -> ConflictReport:
        """Ask the gateway how a backup diverges from the local state."""
        data = self._request(
            "GET", CONFLICT_PATH, params={"filename": filename}, retry=True
        )
        raw = data.get("conflicts")
        return ConflictReport(
            filename=filename,
            success=bool(data.get("success", False)),
            conflicts=list(raw) if isinstance(raw, list) else [],
            message=_message_of(data),
        )

    def restore(self, filename: str, choice: str) -> str:
        """
        Restore the local database from a backup.

        Args:
            filename: Backup to restore
            choice: "local" (merge, local wins) or "remote" (overwrite local)

        Returns:
            Gateway acknowledgement message
        """
        if choice not in RESTORE_CHOICES:
            raise ValidationError(
                f"choice must be one of: {', '.join(RESTORE_CHOICES)}"
            )
        data = self._request(
            "POST", RESTORE_PATH, json_body={"filename": filename, "choice": choice}
        )
        return _ack(data, "Restore completed successfully", "Restore failed")

    def __repr__(self) -> str:
        """Return a readable string representation."""
        return f"RemoteBackupGateway(base_url={self.base_url!r})"
