"""
Conflict inspection and restore strategies.

Conflicts are computed by the gateway; this module only requests them and
hands the records on untouched. It also defines the strategies the operator
chooses between when a backup diverges from the local database.
"""

import logging
from enum import Enum

from davsync.api.gateway import ConflictReport, RemoteBackupGateway, ReportedFailure
from davsync.utils.validation import ValidationError, require_text

logger = logging.getLogger(__name__)

# Message shown when a conflict check fails without explanation
DEFAULT_CONFLICT_FAILURE_MESSAGE = "Conflict check failed"


class RestoreStrategy(Enum):
    """Which side wins on divergent data during a restore."""

    PREFER_LOCAL = "local"  # merge, keep local data on conflicts
    PREFER_REMOTE = "remote"  # overwrite local data with the backup

    @property
    def label(self) -> str:
        if self is RestoreStrategy.PREFER_REMOTE:
            return "Use remote (overwrite local)"
        return "Keep local (merge)"


# Default strategy when the operator is not asked
DEFAULT_STRATEGY = RestoreStrategy.PREFER_LOCAL

# Accepted spellings, including the gateway's legacy "keep_local"
_STRATEGY_ALIASES = {
    "local": RestoreStrategy.PREFER_LOCAL,
    "keep_local": RestoreStrategy.PREFER_LOCAL,
    "prefer_local": RestoreStrategy.PREFER_LOCAL,
    "remote": RestoreStrategy.PREFER_REMOTE,
    "prefer_remote": RestoreStrategy.PREFER_REMOTE,
}


def parse_strategy(value: str | RestoreStrategy) -> RestoreStrategy:
    """
    Convert user input to a RestoreStrategy.

    Raises:
        ValidationError: If the value names no known strategy
    """
    if isinstance(value, RestoreStrategy):
        return value
    key = (value or "").strip().lower().replace("-", "_")
    try:
        return _STRATEGY_ALIASES[key]
    except KeyError:
        raise ValidationError(
            f"Invalid strategy '{value}'. Must be one of: local, remote"
        ) from None


class ConflictInspector:
    """
    Standalone conflict checks that do not start a restore.

    Usage:
        inspector = ConflictInspector(gateway)
        report = inspector.check_conflicts("backup-20250101-120000.db")
        for record in report.conflicts:
            print(record)
    """

    def __init__(self, gateway: RemoteBackupGateway):
        self.gateway = gateway

    def check_conflicts(self, filename: str) -> ConflictReport:
        """
        Ask the gateway for the conflicts of one backup.

        Args:
            filename: Backup to inspect

        Returns:
            ConflictReport whose records are passed through unchanged

        Raises:
            ValidationError: If the filename is empty
            GatewayError: On transport failure
            ReportedFailure: If the gateway reports the check failed
        """
        filename = require_text(filename, "filename")
        report = self.gateway.detect_conflicts(filename)

        if not report.success:
            message = report.message or DEFAULT_CONFLICT_FAILURE_MESSAGE
            logger.warning(f"Conflict check for {filename} failed: {message}")
            raise ReportedFailure(message)

        logger.info(f"Conflict check for {filename}: {len(report.conflicts)} conflict(s)")
        return report

    def __repr__(self) -> str:
        """Return a readable string representation."""
        return f"ConflictInspector(gateway={self.gateway!r})"
