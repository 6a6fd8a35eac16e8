"""
Command-line interface for davsync.

Provides CLI commands for managing the remote WebDAV profile, listing,
creating and deleting remote backups, inspecting conflicts and restoring
the local database from a backup.

Usage:
    # Show help
    davsync --help

    # Configure the remote
    davsync profile set --url https://dav.example.com/remote.php/webdav -u me

    # Work with backups
    davsync list
    davsync backup --filename before-upgrade.db
    davsync conflicts backup-20250101-120000.db
    davsync restore backup-20250101-120000.db
"""

import sys
from pathlib import Path
from typing import Any, NoReturn

import click

from davsync import __version__
from davsync.api.gateway import (
    DEFAULT_INITIAL_RETRY_DELAY,
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_RETRY_DELAY,
    DEFAULT_SERVER_URL,
    DEFAULT_TIMEOUT,
    GatewayError,
    RemoteBackupGateway,
    ReportedFailure,
)
from davsync.backup.catalog import BackupCatalog, CatalogChange
from davsync.backup.conflict import ConflictInspector, RestoreStrategy
from davsync.backup.profile import ConfigManager
from davsync.backup.restore import RestoreError, RestoreSession, RestoreWorkflow
from davsync.cli.formatters import (
    show_backups,
    show_conflicts,
    show_profile,
    show_restore_event,
    show_session_outcome,
    show_test_result,
)
from davsync.config.generator import save_config_file
from davsync.config.loader import ConfigError, ConfigLoader
from davsync.utils import DEFAULT_CONFIG_DIR, ClientPaths, ValidationError, resolve_config_dir
from davsync.utils.logging import configure_logging, get_logger
from davsync.utils.paths import CONFIG_FILE_NAME

# Default configuration file
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / CONFIG_FILE_NAME

# Strategy answers accepted at the conflict prompt
STRATEGY_CHOICES = ("remote", "local", "cancel")

# Errors that end a command with a message instead of a traceback
EXPECTED_ERRORS = (ValidationError, GatewayError, ReportedFailure, RestoreError)


def get_config_dir(config_dir: str | None) -> Path:
    """Get the configuration directory path."""
    return resolve_config_dir(config_dir)


def build_gateway(config: dict[str, Any]) -> RemoteBackupGateway:
    """Create the gateway client from the merged configuration."""
    return RemoteBackupGateway(
        base_url=config.get("server_url") or DEFAULT_SERVER_URL,
        api_token=config.get("api_token") or None,
        timeout=config.get("request_timeout", DEFAULT_TIMEOUT),
        max_retries=config.get("max_retries", DEFAULT_MAX_RETRIES),
        initial_retry_delay=config.get("initial_retry_delay", DEFAULT_INITIAL_RETRY_DELAY),
        max_retry_delay=config.get("max_retry_delay", DEFAULT_MAX_RETRY_DELAY),
    )


def get_gateway(ctx: click.Context) -> RemoteBackupGateway:
    """Return the gateway client for this invocation, creating it once."""
    gateway = ctx.obj.get("gateway")
    if gateway is None:
        gateway = build_gateway(ctx.obj.get("config", {}))
        ctx.obj["gateway"] = gateway
        ctx.call_on_close(gateway.close)
    return gateway


def show_refresh_outcome(catalog: BackupCatalog, change: CatalogChange, done: str) -> None:
    """Report the catalog state after an accepted create or delete."""
    if change.refreshed:
        click.echo(f"Remote backups: {len(catalog)}")
        return
    click.echo(
        click.style(
            f"{done}, but the catalog could not be refreshed: {change.refresh.message}",
            fg="yellow",
        ),
        err=True,
    )


def fail(message: str) -> NoReturn:
    """Print an error and exit with status 1."""
    click.echo(click.style(f"Error: {message}", fg="red"), err=True)
    sys.exit(1)


@click.group()
@click.version_option(version=__version__, prog_name="davsync")
@click.option(
    "--verbose", "-v", is_flag=True, help="Enable verbose output with detailed logging."
)
@click.option(
    "--config-dir",
    "-c",
    type=click.Path(exists=False, file_okay=False, dir_okay=True),
    envvar="DAVSYNC_CONFIG_DIR",
    help="Configuration directory path (default: ~/.davsync).",
)
@click.option(
    "--config-file",
    "-f",
    type=click.Path(exists=False, file_okay=True, dir_okay=False),
    envvar="DAVSYNC_CONFIG_FILE",
    help="Configuration file path (default: <config-dir>/config.yaml).",
)
@click.option(
    "--server-url",
    "-s",
    envvar="DAVSYNC_SERVER_URL",
    help=f"Backup gateway URL (default: {DEFAULT_SERVER_URL}).",
)
@click.option(
    "--api-token",
    envvar="DAVSYNC_API_TOKEN",
    help="Bearer token for the backup gateway.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    verbose: bool,
    config_dir: str | None,
    config_file: str | None,
    server_url: str | None,
    api_token: str | None,
) -> None:
    """
    WebDAV backup and restore client.

    Manages the remote WebDAV profile, lists and creates remote backups,
    and restores the local database with conflict checks.
    """
    ctx.ensure_object(dict)

    paths = ClientPaths.resolve(config_dir, config_file)

    ctx.obj["config_dir"] = paths.config_dir
    ctx.obj["config_file"] = paths.config_file

    config: dict[str, Any] = {}
    try:
        loader = ConfigLoader(config_dir=paths.config_dir)
        config = loader.load_from_file(paths.config_file)
        if config:
            loader.validate(config)
    except ConfigError as e:
        # Show error but don't fail - allow CLI to work without config file
        click.echo(
            click.style(f"Warning: Configuration error: {e}", fg="yellow"), err=True
        )
        config = {}

    # CLI arguments take precedence over the config file
    if server_url:
        config["server_url"] = server_url
    if api_token:
        config["api_token"] = api_token

    ctx.obj["config"] = config

    ctx.obj["verbose"] = verbose or bool(config.get("verbose", False))

    paths = paths.with_log_dir(config.get("log_dir"))
    ctx.obj["log_dir"] = paths.log_dir
    configure_logging(config, paths.log_dir, verbose=verbose)


# =============================================================================
# Init-Config Command
# =============================================================================


@cli.command("init-config")
@click.option(
    "--force",
    is_flag=True,
    help="Overwrite existing configuration file if it exists.",
)
@click.pass_context
def init_config_command(ctx: click.Context, force: bool) -> None:
    """
    Generate a default configuration file.

    Examples:

        davsync init-config

        davsync init-config --force
    """
    logger = get_logger(__name__)
    config_file = ctx.obj["config_file"]

    click.echo(f"Creating configuration file: {config_file}")

    success, error = save_config_file(config_file, overwrite=force)

    if success:
        click.echo(click.style("Configuration file created successfully!", fg="green"))
        click.echo(f"\nLocation: {config_file}")
        click.echo("\nNext steps:")
        click.echo("1. Set server_url to the address of your backup gateway")
        click.echo("2. Run 'davsync profile set --url <webdav-url>' to configure the remote")
    else:
        logger.error(f"Failed to create configuration file: {error}")
        fail(str(error))


# =============================================================================
# Status Command
# =============================================================================


@cli.command("status")
@click.pass_context
def status_command(ctx: click.Context) -> None:
    """
    Show gateway, remote profile and backup status.

    Example:

        davsync status
    """
    logger = get_logger(__name__)
    gateway = get_gateway(ctx)

    click.echo("=== davsync Status ===\n")
    click.echo(f"Configuration directory: {ctx.obj['config_dir']}")
    click.echo(f"Gateway: {gateway.base_url}")
    click.echo()

    try:
        profile = ConfigManager(gateway).load_profile()
        show_profile(profile)
        click.echo()

        if not profile.configured:
            return

        result = BackupCatalog(gateway).refresh()
        if result.success:
            click.echo(f"Remote backups: {len(result.backups)}")
        else:
            click.echo(click.style(f"Remote backups: {result.message}", fg="yellow"))
    except EXPECTED_ERRORS as e:
        logger.debug(f"Status failed: {e}")
        fail(str(e))


# =============================================================================
# Profile Commands
# =============================================================================


@cli.group("profile")
def profile_group() -> None:
    """Show, update and test the remote WebDAV profile."""


@profile_group.command("show")
@click.pass_context
def profile_show_command(ctx: click.Context) -> None:
    """
    Show the remote profile stored on the gateway.

    The stored password is never displayed.
    """
    try:
        show_profile(ConfigManager(get_gateway(ctx)).load_profile())
    except EXPECTED_ERRORS as e:
        fail(f"Failed to load WebDAV config: {e}")


@profile_group.command("set")
@click.option("--url", required=True, help="WebDAV URL.")
@click.option("--username", "-u", default="", help="WebDAV username.")
@click.option(
    "--password",
    "-p",
    prompt="Password (leave empty to keep the stored one)",
    default="",
    show_default=False,
    hide_input=True,
    envvar="DAVSYNC_WEBDAV_PASSWORD",
    help="WebDAV password; empty keeps the password already stored.",
)
@click.pass_context
def profile_set_command(
    ctx: click.Context, url: str, username: str, password: str
) -> None:
    """
    Save the remote profile on the gateway.

    Examples:

        davsync profile set --url https://dav.example.com/remote.php/webdav -u me
    """
    manager = ConfigManager(get_gateway(ctx))
    try:
        message = manager.save_profile(url, username, password)
    except EXPECTED_ERRORS as e:
        fail(f"Failed to save WebDAV config: {e}")

    click.echo(click.style("WebDAV config saved", fg="green"))
    click.echo(f"  {message}")


@profile_group.command("test")
@click.option("--url", default=None, help="WebDAV URL (default: stored URL).")
@click.option("--username", "-u", default=None, help="WebDAV username.")
@click.option(
    "--password",
    "-p",
    default="",
    hide_input=True,
    envvar="DAVSYNC_WEBDAV_PASSWORD",
    help="WebDAV password to test with.",
)
@click.pass_context
def profile_test_command(
    ctx: click.Context, url: str | None, username: str | None, password: str
) -> None:
    """
    Test WebDAV credentials without saving them.

    Without --url the URL and username of the stored profile are used.
    """
    manager = ConfigManager(get_gateway(ctx))
    try:
        if url is None:
            profile = manager.load_profile()
            url = profile.endpoint
            if username is None:
                username = profile.username
        result = manager.test_connection(url, username or "", password)
    except EXPECTED_ERRORS as e:
        fail(f"WebDAV test failed: {e}")

    show_test_result(result)
    if not result.success:
        sys.exit(1)


# =============================================================================
# Backup Commands
# =============================================================================


@cli.command("list")
@click.option(
    "--oldest-first", is_flag=True, help="Sort backups from oldest to newest."
)
@click.pass_context
def list_command(ctx: click.Context, oldest_first: bool) -> None:
    """
    List remote backups.

    Example:

        davsync list
    """
    catalog = BackupCatalog(get_gateway(ctx))
    try:
        result = catalog.refresh()
    except EXPECTED_ERRORS as e:
        fail(f"Failed to load backups: {e}")

    if not result.success:
        click.echo(click.style(str(result.message), fg="yellow"))
        sys.exit(1)

    show_backups(catalog.ordered(newest_first=not oldest_first))


@cli.command("backup")
@click.option(
    "--filename",
    "-n",
    default=None,
    help="Backup filename (default: backup-YYYYMMDD-HHMMSS.db chosen by the gateway).",
)
@click.pass_context
def backup_command(ctx: click.Context, filename: str | None) -> None:
    """
    Create a new remote backup of the local database.

    Examples:

        davsync backup

        davsync backup --filename before-upgrade.db
    """
    catalog = BackupCatalog(get_gateway(ctx))
    try:
        change = catalog.create_backup(filename)
    except EXPECTED_ERRORS as e:
        fail(f"Backup failed: {e}")

    click.echo(click.style("Backup created", fg="green"))
    if change.filename:
        click.echo(f"  {change.filename}")
    show_refresh_outcome(catalog, change, "Backup created")


@cli.command("delete")
@click.argument("filenames", nargs=-1, required=True)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
@click.pass_context
def delete_command(ctx: click.Context, filenames: tuple[str, ...], yes: bool) -> None:
    """
    Delete one or more remote backups in a single request.

    Example:

        davsync delete backup-20250101-120000.db backup-20250102-120000.db
    """
    names = sorted(set(filenames))
    if not yes:
        click.echo("Backups to delete:")
        for name in names:
            click.echo(f"  - {name}")
        if not click.confirm("Delete these backups?"):
            click.echo("Aborted.")
            return

    catalog = BackupCatalog(get_gateway(ctx))
    try:
        change = catalog.delete_backups(names)
    except EXPECTED_ERRORS as e:
        fail(f"Delete failed: {e}")

    click.echo(click.style(f"Deleted {len(change.filenames)} backup(s)", fg="green"))
    click.echo(f"  {change.message}")
    show_refresh_outcome(catalog, change, "Backups deleted")


# =============================================================================
# Conflict and Restore Commands
# =============================================================================


@cli.command("conflicts")
@click.argument("filename")
@click.pass_context
def conflicts_command(ctx: click.Context, filename: str) -> None:
    """
    Show how a backup diverges from the local database.

    Nothing is restored.

    Example:

        davsync conflicts backup-20250101-120000.db
    """
    try:
        report = ConflictInspector(get_gateway(ctx)).check_conflicts(filename)
    except EXPECTED_ERRORS as e:
        fail(f"Conflict check failed: {e}")

    show_conflicts(report.filename, report.conflicts)


@cli.command("restore")
@click.argument("filename")
@click.option(
    "--strategy",
    type=click.Choice([s.value for s in RestoreStrategy], case_sensitive=False),
    default=None,
    help=(
        "Answer for the conflict prompt: 'remote' overwrites local data, "
        "'local' merges keeping local data. Ignored when there are no conflicts."
    ),
)
@click.option("--yes", "-y", is_flag=True, help="Skip confirmation prompt.")
@click.pass_context
def restore_command(
    ctx: click.Context, filename: str, strategy: str | None, yes: bool
) -> None:
    """
    Restore the local database from a remote backup.

    Conflicts are checked first. Without conflicts the backup is merged
    keeping local data. With conflicts you choose between using the remote
    data (overwrite local) and keeping local data (merge), or cancel.

    Examples:

        davsync restore backup-20250101-120000.db

        davsync restore backup-20250101-120000.db --strategy remote --yes
    """
    logger = get_logger(__name__)

    if not yes and not click.confirm(f"Restore from {filename}?"):
        click.echo("Aborted.")
        return

    workflow = RestoreWorkflow(get_gateway(ctx))
    if ctx.obj.get("verbose"):
        workflow.subscribe(show_restore_event)

    def choose(session: RestoreSession) -> str | None:
        show_conflicts(session.filename, session.conflicts)
        if strategy:
            click.echo(f"Using strategy from --strategy: {strategy}")
            return strategy
        click.echo("\nChoose restore strategy:")
        click.echo(f"  remote - {RestoreStrategy.PREFER_REMOTE.label}")
        click.echo(f"  local  - {RestoreStrategy.PREFER_LOCAL.label}")
        click.echo("  cancel - Leave the local database untouched")
        answer = click.prompt(
            "Strategy", type=click.Choice(STRATEGY_CHOICES), default="cancel"
        )
        return None if answer == "cancel" else answer

    try:
        session = workflow.run(filename, choose)
    except EXPECTED_ERRORS as e:
        fail(str(e))
    except click.Abort:
        # Prompt interrupted; leave the suspended session cancelled
        if workflow.active_session is not None:
            workflow.cancel()
        raise

    logger.debug(f"Restore session history: {[s.value for s in session.history]}")
    show_session_outcome(session)
    if session.failure_kind is not None:
        sys.exit(1)
