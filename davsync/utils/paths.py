"""
Client file locations.

Everything davsync keeps on disk lives under one directory:

    ~/.davsync/            (or $DAVSYNC_CONFIG_DIR, or --config-dir)
        config.yaml        client configuration (or $DAVSYNC_CONFIG_FILE)
        logs/              daily log files, unless log_dir says otherwise
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DEFAULT_CONFIG_DIR = Path.home() / ".davsync"

CONFIG_DIR_ENV_VAR = "DAVSYNC_CONFIG_DIR"
CONFIG_FILE_ENV_VAR = "DAVSYNC_CONFIG_FILE"

CONFIG_FILE_NAME = "config.yaml"
LOG_DIR_NAME = "logs"


def _expand(path: Path | str) -> Path:
    return Path(path).expanduser().resolve()


def resolve_config_dir(config_dir: Path | str | None = None) -> Path:
    """
    Pick the configuration directory.

    An explicit directory wins over $DAVSYNC_CONFIG_DIR, which wins over
    ~/.davsync. An empty environment value counts as unset.
    """
    chosen = config_dir if config_dir is not None else os.environ.get(CONFIG_DIR_ENV_VAR)
    return _expand(chosen or DEFAULT_CONFIG_DIR)


@dataclass(frozen=True)
class ClientPaths:
    """
    Resolved on-disk locations for one davsync invocation.

    Attributes:
        config_dir: Directory holding the client's files
        config_file: YAML configuration file
        log_dir: Directory receiving daily log files
    """

    config_dir: Path
    config_file: Path
    log_dir: Path

    @classmethod
    def resolve(
        cls,
        config_dir: Path | str | None = None,
        config_file: Path | str | None = None,
        log_dir: Path | str | None = None,
    ) -> ClientPaths:
        """
        Resolve every location from explicit values, environment and defaults.

        ``config_file`` falls back to $DAVSYNC_CONFIG_FILE and then to
        config.yaml inside the config directory; ``log_dir`` (usually the
        ``log_dir`` config key) falls back to logs/ inside it.
        """
        base = resolve_config_dir(config_dir)
        file_choice = config_file or os.environ.get(CONFIG_FILE_ENV_VAR)
        return cls(
            config_dir=base,
            config_file=_expand(file_choice) if file_choice else base / CONFIG_FILE_NAME,
            log_dir=_expand(log_dir) if log_dir else base / LOG_DIR_NAME,
        )

    def with_log_dir(self, log_dir: Path | str | None) -> ClientPaths:
        """Copy with the log directory replaced (None keeps the current one)."""
        if not log_dir:
            return self
        return ClientPaths(self.config_dir, self.config_file, _expand(log_dir))


def default_log_dir() -> Path:
    """Log directory used when neither the CLI nor the config names one."""
    return resolve_config_dir() / LOG_DIR_NAME
