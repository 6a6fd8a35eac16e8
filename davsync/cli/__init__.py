"""CLI package for davsync."""

from davsync.cli.formatters import (
    format_conflict,
    show_backups,
    show_conflicts,
    show_session_outcome,
)
from davsync.cli.main import (
    DEFAULT_CONFIG_FILE,
    build_gateway,
    cli,
    get_config_dir,
)
from davsync.utils import DEFAULT_CONFIG_DIR

__all__ = [
    "DEFAULT_CONFIG_DIR",
    "DEFAULT_CONFIG_FILE",
    "build_gateway",
    "cli",
    "format_conflict",
    "get_config_dir",
    "show_backups",
    "show_conflicts",
    "show_session_outcome",
]
