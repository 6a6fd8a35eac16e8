"""
davsync - client for backing up and restoring a local database through a
WebDAV backup gateway.
"""

__version__ = "0.1.0"
