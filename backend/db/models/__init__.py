"""Stored record models.

Records are serialized as JSON (camelCase keys) into Redis.
"""

from db.models.user import UsageStats, UserRecord

__all__ = [
    "UsageStats",
    "UserRecord",
]
