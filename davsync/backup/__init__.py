"""
Remote backup management.

This package holds the client-side core: the remote profile, the backup
catalog, conflict inspection and the restore workflow.
"""

from davsync.backup.catalog import BackupCatalog, BackupEntry, CatalogChange, CatalogResult
from davsync.backup.conflict import ConflictInspector, RestoreStrategy, parse_strategy
from davsync.backup.profile import ConfigManager, RemoteProfile
from davsync.backup.restore import (
    FailureKind,
    InvalidStateError,
    RestoreError,
    RestoreEvent,
    RestoreInProgressError,
    RestoreSession,
    RestoreState,
    RestoreWorkflow,
)

__all__ = [
    "BackupCatalog",
    "BackupEntry",
    "CatalogChange",
    "CatalogResult",
    "ConfigManager",
    "ConflictInspector",
    "FailureKind",
    "InvalidStateError",
    "RemoteProfile",
    "RestoreError",
    "RestoreEvent",
    "RestoreInProgressError",
    "RestoreSession",
    "RestoreState",
    "RestoreStrategy",
    "RestoreWorkflow",
    "parse_strategy",
]
