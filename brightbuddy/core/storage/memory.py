"""In-process store for tests and local development."""

from __future__ import annotations

import asyncio
import copy
from collections import defaultdict
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from brightbuddy.core.storage.base import JSONValue, KeyValueStore


class InMemoryKeyValueStore(KeyValueStore):
    """
    Dict-backed store.

    Values are deep-copied on the way in and out so callers never share
    mutable state with the store. Locks are per-name ``asyncio.Lock``s and
    only exclude coroutines on the same event loop.
    """

    backend_name = "memory"

    def __init__(self) -> None:
        self._data: dict[str, JSONValue] = {}
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def get(self, key: str) -> Optional[JSONValue]:
        if key not in self._data:
            return None
        return copy.deepcopy(self._data[key])

    async def set(self, key: str, value: JSONValue) -> None:
        self._data[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> bool:
        if key not in self._data:
            return False
        del self._data[key]
        return True

    async def scan_prefix(self, prefix: str) -> list[str]:
        return sorted(key for key in self._data if key.startswith(prefix))

    @asynccontextmanager
    async def lock(self, name: str) -> AsyncIterator[None]:
        async with self._locks[name]:
            yield

    def __len__(self) -> int:
        return len(self._data)

    def clear(self) -> None:
        self._data.clear()
