"""
Utility functions for the Slack MCP server.

Includes:
- UTC datetime helpers
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """
    Get the current UTC datetime.

    Returns:
        Current datetime in UTC timezone
    """
    return datetime.now(timezone.utc)
