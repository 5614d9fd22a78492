"""Database adapter layer for the dbdesk desktop client."""

__version__ = "0.1.0"
