"""
Configuration file generator for davsync.

Provides functionality to generate a default configuration file with
documentation for all available options.
"""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)


def generate_default_config() -> str:
    """
    Generate default YAML configuration with all options documented.

    Returns:
        String containing YAML configuration with comments

    Example:
        config_yaml = generate_default_config()
        with open("config.yaml", "w") as f:
            f.write(config_yaml)
    """
    return """# davsync Configuration
# =====================
#
# Default options for the davsync client.
# CLI arguments will always override these values.
#
# To use this configuration:
#   1. Save as ~/.davsync/config.yaml (or custom location)
#   2. Uncomment and modify options as needed
#   3. Run davsync commands normally


# Gateway Connection
# ------------------

# Base URL of the backup gateway (the server exposing /api/webdav/*)
# Default: http://localhost:3000
# server_url: http://localhost:3000

# Bearer token sent with every request, if the gateway requires one
# Can also be set through the DAVSYNC_API_TOKEN environment variable
# api_token: your-token

# Timeout for a single gateway request, in seconds
# Default: 30
# request_timeout: 30

# Attempts for read requests (listing, conflict checks, profile reads)
# Restore, backup and delete requests are never retried
# Default: 3
# max_retries: 3

# Backoff between read retries, in seconds (doubles each attempt)
# Default: 1.0 initial, 30.0 maximum
# initial_retry_delay: 1.0
# max_retry_delay: 30.0


# Logging Options
# ---------------

# Enable verbose output with detailed logging
# Default: false
# verbose: false

# Directory for log files
# Default: ~/.davsync/logs
# log_dir: /path/to/logs

# Number of daily log files to keep (0 keeps all)
# Default: 10
# log_retention_count: 10
"""


def save_config_file(
    config_path: Path, overwrite: bool = False
) -> tuple[bool, str | None]:
    """
    Save default configuration file to specified path.

    Creates parent directories if they don't exist and saves the
    configuration readable by the owner only (it may hold an API token).

    Args:
        config_path: Path where the config file should be saved
        overwrite: If True, overwrite existing file. If False, fail if file exists.

    Returns:
        Tuple of (success, error_message); error_message is None on success
    """
    try:
        config_path = config_path.expanduser().resolve()

        if config_path.exists() and not overwrite:
            return (
                False,
                f"Configuration file already exists: {config_path}\n"
                "Use --force to overwrite.",
            )

        config_path.parent.mkdir(parents=True, mode=0o700, exist_ok=True)
        config_path.write_text(generate_default_config(), encoding="utf-8")
        config_path.chmod(0o600)

        logger.info(f"Created configuration file: {config_path}")
        return (True, None)

    except OSError as e:
        error_msg = f"Failed to create configuration file: {e}"
        logger.error(error_msg)
        return (False, error_msg)
