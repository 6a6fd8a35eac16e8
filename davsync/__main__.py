"""
Entry point for running davsync as a module.

Usage:
    python -m davsync --help
    python -m davsync list
    python -m davsync restore backup-20250101-120000.db
"""

from davsync.cli import cli

if __name__ == "__main__":
    cli()
