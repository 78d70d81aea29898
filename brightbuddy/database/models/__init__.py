"""Database models for BrightBuddy."""

from brightbuddy.database.models.kv_entry import KVEntry

__all__ = ["KVEntry"]
