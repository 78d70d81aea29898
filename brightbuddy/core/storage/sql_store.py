"""
Database-backed key-value store on the ``kv_entries`` table.

Writes are upserts (``INSERT ... ON CONFLICT DO UPDATE``). Locks take a
PostgreSQL transaction-scoped advisory lock keyed by a stable 64-bit hash
of the lock name; the lock lives as long as the dedicated transaction that
holds it, i.e. the ``async with`` block.

Calls made by the task holding a lock run on the lock's session, so a
locked section uses one pooled connection and its writes commit together
when the block exits. Nested locks in that task join the same transaction.
"""

from __future__ import annotations

import asyncio
import hashlib
from contextlib import AsyncExitStack, asynccontextmanager
from contextvars import ContextVar
from datetime import datetime, timezone
from typing import AsyncIterator, Optional, Tuple

from sqlalchemy import delete, select, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from brightbuddy.core.database.service import (
    DatabaseNotInitializedError,
    DatabaseService,
)
from brightbuddy.core.exceptions import StorageError
from brightbuddy.core.logging.logger import get_logger
from brightbuddy.core.storage.base import JSONValue, KeyValueStore
from brightbuddy.database.models.kv_entry import KVEntry

logger = get_logger(__name__)

_BACKEND_ERRORS = (SQLAlchemyError, OSError, DatabaseNotInitializedError)

# (store id, owning task, session) of the innermost held lock
_locked_session: ContextVar[Optional[Tuple[int, "asyncio.Task", AsyncSession]]] = ContextVar(
    "brightbuddy_locked_session", default=None
)


def _advisory_key(name: str) -> int:
    digest = hashlib.blake2b(name.encode("utf-8"), digest_size=8).digest()
    return int.from_bytes(digest, "big", signed=True)


def _escape_like(prefix: str) -> str:
    return prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class DatabaseKeyValueStore(KeyValueStore):
    backend_name = "database"

    def __init__(self, database: DatabaseService, *, create_schema: bool = True) -> None:
        self._db = database
        self._create_schema = create_schema

    async def initialize(self) -> None:
        await self._db.initialize()
        if self._create_schema:
            await self._db.create_tables()

    async def close(self) -> None:
        await self._db.shutdown()

    def _held_session(self) -> Optional[AsyncSession]:
        """The lock session when the current task holds a lock on this store."""
        held = _locked_session.get()
        if held is None:
            return None
        store_id, owner, session = held
        if store_id != id(self) or owner is not asyncio.current_task():
            return None
        return session

    @asynccontextmanager
    async def _session(self) -> AsyncIterator[AsyncSession]:
        held = self._held_session()
        if held is not None:
            yield held
            return
        async with self._db.get_transaction() as session:
            yield session

    async def get(self, key: str) -> Optional[JSONValue]:
        try:
            async with self._session() as session:
                result = await session.execute(select(KVEntry.value).where(KVEntry.key == key))
                row = result.first()
        except _BACKEND_ERRORS as exc:
            raise StorageError("get", key, exc) from exc
        return None if row is None else row[0]

    async def get_many(self, keys: list[str]) -> list[Optional[JSONValue]]:
        if not keys:
            return []
        try:
            async with self._session() as session:
                result = await session.execute(
                    select(KVEntry.key, KVEntry.value).where(KVEntry.key.in_(keys))
                )
                found = {row.key: row.value for row in result}
        except _BACKEND_ERRORS as exc:
            raise StorageError("get_many", ",".join(keys[:5]), exc) from exc
        return [found.get(key) for key in keys]

    async def set(self, key: str, value: JSONValue) -> None:
        now = datetime.now(timezone.utc)
        stmt = pg_insert(KVEntry.__table__).values(
            key=key, value=value, created_at=now, updated_at=now
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["key"],
            set_={"value": stmt.excluded.value, "updated_at": now},
        )
        try:
            async with self._session() as session:
                await session.execute(stmt)
        except _BACKEND_ERRORS as exc:
            raise StorageError("set", key, exc) from exc

    async def delete(self, key: str) -> bool:
        try:
            async with self._session() as session:
                result = await session.execute(delete(KVEntry).where(KVEntry.key == key))
        except _BACKEND_ERRORS as exc:
            raise StorageError("delete", key, exc) from exc
        return (result.rowcount or 0) > 0

    async def scan_prefix(self, prefix: str) -> list[str]:
        try:
            async with self._session() as session:
                result = await session.execute(
                    select(KVEntry.key)
                    .where(KVEntry.key.like(f"{_escape_like(prefix)}%", escape="\\"))
                    .order_by(KVEntry.key)
                )
                return list(result.scalars())
        except _BACKEND_ERRORS as exc:
            raise StorageError("scan", prefix, exc) from exc

    @asynccontextmanager
    async def lock(self, name: str) -> AsyncIterator[None]:
        try:
            async with AsyncExitStack() as stack:
                session = self._held_session()
                if session is None:
                    session = await stack.enter_async_context(self._db.get_transaction())
                await session.execute(
                    text("SELECT pg_advisory_xact_lock(:key)"), {"key": _advisory_key(name)}
                )

                logger.debug("Advisory lock acquired", extra={"lock_name": name})
                token = _locked_session.set((id(self), asyncio.current_task(), session))
                try:
                    yield
                finally:
                    _locked_session.reset(token)
        except _BACKEND_ERRORS as exc:
            raise StorageError("lock", name, exc) from exc
