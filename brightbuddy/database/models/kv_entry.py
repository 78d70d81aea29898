"""
Key-value entry table backing the database store.

Each row holds one JSON document under a namespaced key such as
``subscription:{user_id}`` or ``dailyUsage:{user_id}:{YYYY-MM-DD}``.
Prefix scans rely on the primary key index (``LIKE 'prefix%'``).
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import JSON, Column, DateTime, String
from sqlmodel import Field, SQLModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class KVEntry(SQLModel, table=True):
    """
    A single stored document.

    Attributes:
        key: Namespaced storage key (primary key)
        value: JSON document
        created_at: First write time (UTC)
        updated_at: Last write time (UTC)
    """

    __tablename__ = "kv_entries"

    key: str = Field(sa_column=Column(String(255), primary_key=True))
    value: Any = Field(sa_column=Column(JSON, nullable=False))
    created_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )
    updated_at: datetime = Field(
        default_factory=_utcnow,
        sa_column=Column(DateTime(timezone=True), nullable=False),
    )

    def __repr__(self) -> str:
        return f"<KVEntry(key={self.key!r})>"
