"""CLI output formatting functions.

This module contains functions for displaying backups, conflict records,
connection test results and restore outcomes on the command line.
"""

import json
from typing import TYPE_CHECKING, Any

import click

from davsync.backup.restore import FailureKind, RestoreState

if TYPE_CHECKING:
    from davsync.api.gateway import ConnectionTestResult
    from davsync.backup.catalog import BackupEntry
    from davsync.backup.profile import RemoteProfile
    from davsync.backup.restore import RestoreEvent, RestoreSession

# Maximum conflict records printed before summarizing the rest
MAX_CONFLICTS_SHOWN = 50


def format_conflict(record: Any) -> str:
    """
    Render one conflict record as a single line of JSON.

    Records are opaque, so they are shown exactly as the gateway sent them.
    """
    return json.dumps(record, sort_keys=True, ensure_ascii=False, default=str)


def format_size(value: Any) -> str:
    """Human-readable size for a byte count; blank when unknown."""
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return ""
    size = float(value)
    for unit in ("B", "KB", "MB", "GB"):
        if size < 1024 or unit == "GB":
            return f"{size:.0f} {unit}" if unit == "B" else f"{size:.1f} {unit}"
        size /= 1024
    return ""


def show_profile(profile: "RemoteProfile") -> None:
    """Display the remote profile; the password is only ever hinted at."""
    if not profile.configured:
        click.echo(click.style("Remote: not configured", fg="yellow"))
        click.echo("Run 'davsync profile set --url <webdav-url>' to configure it.")
        return

    click.echo(f"URL:      {profile.endpoint}")
    click.echo(f"Username: {profile.username or '(none)'}")
    click.echo(f"Password: {'(stored)' if profile.has_password else '(not set)'}")


def show_test_result(result: "ConnectionTestResult") -> None:
    """Display a connection test that reached the gateway."""
    if result.success:
        click.echo(click.style("Success", fg="green"))
    else:
        click.echo(click.style("Failed", fg="red"))
    click.echo(f"  {result.message}")


def show_backups(entries: "list[BackupEntry]") -> None:
    """Display backups as a table."""
    if not entries:
        click.echo("No backups found")
        return

    click.echo(f"{'Filename':<44} {'Size':>10}  {'Modified':<20}")
    click.echo("-" * 78)
    for entry in entries:
        size = format_size(entry.metadata.get("size"))
        modified = entry.metadata.get("modTime") or entry.metadata.get("modified") or ""
        click.echo(f"{entry.filename:<44} {size:>10}  {str(modified)[:19]:<20}")
    click.echo(f"\n{len(entries)} backup(s)")


def show_conflicts(filename: str, conflicts: list[Any]) -> None:
    """Display the conflict records of a backup."""
    if not conflicts:
        click.echo(f"{filename}: no conflicts")
        return

    click.echo(
        click.style(f"{filename}: {len(conflicts)} conflict(s) detected", fg="yellow")
    )
    for record in conflicts[:MAX_CONFLICTS_SHOWN]:
        click.echo(f"  {format_conflict(record)}")
    if len(conflicts) > MAX_CONFLICTS_SHOWN:
        click.echo(f"  ... and {len(conflicts) - MAX_CONFLICTS_SHOWN} more")


def show_restore_event(event: "RestoreEvent") -> None:
    """Progress line for a restore state change (verbose mode)."""
    click.echo(
        click.style(
            f"  [{event.session.filename}] {event.previous.value} -> "
            f"{event.current.value}",
            fg="cyan",
        )
    )


def show_session_outcome(session: "RestoreSession") -> None:
    """Display how a restore session ended."""
    if session.state is RestoreState.COMPLETED:
        strategy = session.strategy.label if session.strategy else ""
        click.echo(click.style(f"Restore completed ({strategy})", fg="green"))
        if session.message:
            click.echo(f"  {session.message}")
    elif session.state is RestoreState.CANCELLED:
        click.echo(click.style("Restore cancelled; nothing was changed.", fg="yellow"))
    elif session.state is RestoreState.FAILED:
        if session.failure_kind is FailureKind.GATEWAY:
            label = "Restore error (gateway unreachable)"
        else:
            label = "Restore failed"
        click.echo(
            click.style(f"{label}: {session.message}", fg="red"),
            err=True,
        )
        if session.conflicts:
            show_conflicts(session.filename, session.conflicts)
    else:
        click.echo(f"Restore of {session.filename}: {session.state.value}")
