"""Client for the backup gateway's HTTP API."""

from davsync.api.gateway import (
    AuthenticationError,
    BackupCreated,
    BackupListing,
    ConflictReport,
    ConnectionTestResult,
    GatewayConfig,
    GatewayError,
    RemoteBackupGateway,
    ReportedFailure,
)

__all__ = [
    "AuthenticationError",
    "BackupCreated",
    "BackupListing",
    "ConflictReport",
    "ConnectionTestResult",
    "GatewayConfig",
    "GatewayError",
    "RemoteBackupGateway",
    "ReportedFailure",
]
