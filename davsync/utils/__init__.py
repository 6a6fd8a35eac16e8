"""
davsync.utils - Utility module

Common utilities including logging configuration, client file locations
and input validation.
"""

from davsync.utils.paths import DEFAULT_CONFIG_DIR, ClientPaths, resolve_config_dir
from davsync.utils.validation import ValidationError, require_filenames, require_text

__all__ = [
    "ClientPaths",
    "DEFAULT_CONFIG_DIR",
    "ValidationError",
    "require_filenames",
    "require_text",
    "resolve_config_dir",
]
