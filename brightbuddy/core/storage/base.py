"""
Key-value store contract and key layout for BrightBuddy.

Purpose
-------
Every BrightBuddy service persists JSON documents under string keys. This
module defines the abstract store those services depend on, and the single
place where key names are built.

Contract
--------
- ``get`` returns ``None`` only when the key does not exist
- ``set`` overwrites the whole document
- ``scan_prefix`` returns keys in lexicographic order
- ``lock`` yields exclusive access for a name across all holders of the
  same store
- Backend failures surface as ``StorageError``; they are never turned into
  "not found"
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractAsyncContextManager
from datetime import date
from typing import Any, Optional

JSONValue = Any


class KeyValueStore(ABC):
    """Abstract async JSON document store."""

    backend_name: str = "abstract"

    @abstractmethod
    async def get(self, key: str) -> Optional[JSONValue]:
        ...

    @abstractmethod
    async def set(self, key: str, value: JSONValue) -> None:
        ...

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete ``key``; True if it existed."""

    @abstractmethod
    async def scan_prefix(self, prefix: str) -> list[str]:
        ...

    @abstractmethod
    def lock(self, name: str) -> AbstractAsyncContextManager[None]:
        """Async context manager granting exclusive access for ``name``."""

    async def get_many(self, keys: list[str]) -> list[Optional[JSONValue]]:
        return [await self.get(key) for key in keys]

    async def initialize(self) -> None:
        """Prepare backend resources. No-op by default."""

    async def close(self) -> None:
        """Release backend resources. No-op by default."""


class StorageKeys:
    """
    Builders for every storage key the services use.

    >>> StorageKeys.daily_usage("u1", date(2024, 1, 5))
    'dailyUsage:u1:2024-01-05'
    """

    @staticmethod
    def subscription(user_id: str) -> str:
        return f"subscription:{user_id}"

    @staticmethod
    def daily_usage(user_id: str, day: date) -> str:
        return f"dailyUsage:{user_id}:{day.isoformat()}"

    @staticmethod
    def daily_usage_prefix(user_id: str) -> str:
        return f"dailyUsage:{user_id}:"

    @staticmethod
    def progress(user_id: str, activity_id: str, completion_id: str) -> str:
        return f"progress:{user_id}:{activity_id}:{completion_id}"

    @staticmethod
    def progress_prefix(user_id: str) -> str:
        return f"progress:{user_id}:"

    @staticmethod
    def achievements(user_id: str) -> str:
        return f"achievements:{user_id}"

    @staticmethod
    def streak(user_id: str) -> str:
        return f"streak:{user_id}"

    @staticmethod
    def user_analytics(user_id: str) -> str:
        return f"analytics:user:{user_id}"

    @staticmethod
    def subject_analytics(user_id: str) -> str:
        return f"analytics:subjects:{user_id}"

    @staticmethod
    def analytics_events(user_id: str) -> str:
        return f"analytics:events:{user_id}"

    @staticmethod
    def notifications(user_id: str) -> str:
        return f"notifications:{user_id}"

    @staticmethod
    def user_lock(user_id: str) -> str:
        return f"lock:user:{user_id}"

    @staticmethod
    def analytics_lock(user_id: str) -> str:
        return f"lock:analytics:{user_id}"

    @staticmethod
    def notifications_lock(user_id: str) -> str:
        return f"lock:notifications:{user_id}"
