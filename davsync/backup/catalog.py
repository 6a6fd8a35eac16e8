"""
Catalog of remote backups.

Provides functionality to:
- Enumerate remote backups, replacing the cached set on every refresh
- Create new backups and delete batches of backups
- Track an explicit selection of filenames for bulk actions
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from davsync.api.gateway import GatewayError, RemoteBackupGateway, ReportedFailure
from davsync.utils.validation import ValidationError, require_filenames

logger = logging.getLogger(__name__)

# Message shown when the gateway reports a failure without explaining it
DEFAULT_LIST_FAILURE_MESSAGE = "Failed to load backups"


@dataclass(frozen=True)
class BackupEntry:
    """
    One remote backup.

    Attributes:
        filename: Backup name; unique within the catalog
        metadata: Any other fields the gateway reported (size, mtime, ...)
    """

    filename: str
    metadata: dict[str, Any] = field(default_factory=dict, compare=False, hash=False)

    @classmethod
    def from_api_response(cls, data: dict[str, Any]) -> BackupEntry | None:
        """
        Build an entry from a gateway mapping.

        The gateway has reported the name under both ``filename`` and
        ``name``; entries carrying neither are unusable and yield None.
        """
        name = data.get("filename") or data.get("name")
        if not isinstance(name, str) or not name.strip():
            return None
        metadata = {k: v for k, v in data.items() if k not in ("filename", "name")}
        return cls(filename=name.strip(), metadata=metadata)


@dataclass
class CatalogResult:
    """Outcome of a refresh; ``message`` is set when enumeration failed."""

    success: bool
    backups: list[BackupEntry] = field(default_factory=list)
    message: str | None = None


@dataclass
class CatalogChange:
    """
    Outcome of a create or delete that the gateway accepted.

    Attributes:
        message: Gateway acknowledgement
        filenames: Backups created or deleted (empty when the gateway
                   named a new backup without reporting the name)
        refresh: Result of re-reading the catalog afterwards
    """

    message: str
    filenames: list[str] = field(default_factory=list)
    refresh: CatalogResult = field(default_factory=lambda: CatalogResult(success=True))

    @property
    def refreshed(self) -> bool:
        return self.refresh.success

    @property
    def filename(self) -> str | None:
        return self.filenames[0] if self.filenames else None


class BackupCatalog:
    """
    Cached, refreshable view of the remote backups.

    The catalog is read-through: each refresh fully replaces the previous
    set and nothing is patched incrementally. The selection set is pruned
    after every refresh so it only ever names backups that exist.

    Usage:
        catalog = BackupCatalog(gateway)
        result = catalog.refresh()

        catalog.create_backup("before-upgrade.db")

        catalog.select("backup-20250101-120000.db")
        catalog.delete_selected()
    """

    def __init__(self, gateway: RemoteBackupGateway):
        self.gateway = gateway
        self._entries: list[BackupEntry] = []
        self._selection: set[str] = set()

    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------

    @property
    def entries(self) -> list[BackupEntry]:
        """Entries in the order the gateway returned them."""
        return list(self._entries)

    @property
    def filenames(self) -> list[str]:
        return [entry.filename for entry in self._entries]

    def ordered(self, newest_first: bool = True) -> list[BackupEntry]:
        """
        Entries sorted by filename.

        Generated names embed a sortable timestamp
        (backup-YYYYMMDD-HHMMSS.db), so filename order is creation order
        for them.
        """
        return sorted(self._entries, key=lambda e: e.filename, reverse=newest_first)

    def get(self, filename: str) -> BackupEntry | None:
        for entry in self._entries:
            if entry.filename == filename:
                return entry
        return None

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[BackupEntry]:
        return iter(list(self._entries))

    def __contains__(self, filename: object) -> bool:
        return any(entry.filename == filename for entry in self._entries)

    # -------------------------------------------------------------------------
    # Gateway operations
    # -------------------------------------------------------------------------

    def refresh(self) -> CatalogResult:
        """
        Re-enumerate the remote backups.

        A reported failure empties the catalog and is returned, not raised.

        Returns:
            CatalogResult describing the new catalog contents

        Raises:
            GatewayError: On transport failure (the previous catalog is kept)
        """
        try:
            listing = self.gateway.list_backups()
        except ReportedFailure as e:
            return self._enumeration_failed(str(e))

        if not listing.success:
            return self._enumeration_failed(listing.message)

        entries: list[BackupEntry] = []
        seen: set[str] = set()
        for raw in listing.backups:
            entry = BackupEntry.from_api_response(raw)
            if entry is None:
                logger.debug(f"Skipping backup entry without a filename: {raw}")
                continue
            if entry.filename in seen:
                continue
            seen.add(entry.filename)
            entries.append(entry)

        self._replace(entries)
        logger.debug(f"Catalog refreshed: {len(entries)} backup(s)")
        return CatalogResult(success=True, backups=list(entries))

    def create_backup(self, filename: str | None = None) -> CatalogChange:
        """
        Create a new remote backup and refresh the catalog.

        Args:
            filename: Optional name passed through to the gateway unchanged
                      (apart from whitespace trimming)

        Returns:
            CatalogChange; a failed follow-up refresh is reported in it
            rather than raised, since the backup already exists

        Raises:
            GatewayError: On transport failure during creation
            ReportedFailure: If the gateway could not create the backup
        """
        created = self.gateway.create_backup(filename)
        logger.info(f"Created remote backup {created.filename or '(gateway-named)'}")
        return CatalogChange(
            message=created.message,
            filenames=[created.filename] if created.filename else [],
            refresh=self._refresh_after_change(),
        )

    def delete_backups(self, filenames: Iterable[str]) -> CatalogChange:
        """
        Delete a batch of backups with a single gateway request.

        Partial failures are whatever the gateway reports; nothing is
        rolled back client-side. Deleted names leave the selection as soon
        as the gateway acknowledges them.

        Returns:
            CatalogChange carrying the gateway acknowledgement

        Raises:
            ValidationError: If no filenames were given
            GatewayError: On transport failure during deletion
            ReportedFailure: If the gateway refused the deletion
        """
        names = require_filenames(filenames)
        message = self.gateway.delete_backups(names)
        logger.info(f"Deleted {len(names)} remote backup(s)")
        self._selection.difference_update(names)
        return CatalogChange(
            message=message, filenames=names, refresh=self._refresh_after_change()
        )

    def _refresh_after_change(self) -> CatalogResult:
        try:
            return self.refresh()
        except GatewayError as e:
            logger.warning(f"Catalog refresh after change failed: {e}")
            return CatalogResult(success=False, backups=[], message=str(e))

    def _enumeration_failed(self, message: str | None) -> CatalogResult:
        message = message or DEFAULT_LIST_FAILURE_MESSAGE
        logger.warning(f"Backup enumeration failed: {message}")
        self._replace([])
        return CatalogResult(success=False, backups=[], message=message)

    # -------------------------------------------------------------------------
    # Selection
    # -------------------------------------------------------------------------

    @property
    def selection(self) -> frozenset[str]:
        return frozenset(self._selection)

    def select(self, filename: str) -> None:
        if filename not in self:
            raise ValidationError(f"Unknown backup: {filename}")
        self._selection.add(filename)

    def deselect(self, filename: str) -> None:
        self._selection.discard(filename)

    def toggle(self, filename: str) -> bool:
        """Flip the selection state of a backup; returns the new state."""
        if filename in self._selection:
            self._selection.discard(filename)
            return False
        self.select(filename)
        return True

    def select_all(self) -> None:
        self._selection = set(self.filenames)

    def clear_selection(self) -> None:
        self._selection.clear()

    def delete_selected(self) -> CatalogChange:
        """
        Delete every selected backup.

        Raises:
            ValidationError: If nothing is selected
        """
        return self.delete_backups(set(self._selection))

    def _replace(self, entries: list[BackupEntry]) -> None:
        self._entries = entries
        present = {entry.filename for entry in entries}
        self._selection &= present
