"""
davsync.config - Configuration management module

Contains client configuration loading, validation, and default generation.
"""

from davsync.config.generator import generate_default_config, save_config_file
from davsync.config.loader import DEFAULT_CONFIG_FILE, ConfigError, ConfigLoader

__all__ = [
    "ConfigError",
    "ConfigLoader",
    "DEFAULT_CONFIG_FILE",
    "generate_default_config",
    "save_config_file",
]
