"""Async database engine and transaction management."""

from brightbuddy.core.database.service import (
    DatabaseInitializationError,
    DatabaseNotInitializedError,
    DatabaseService,
)

__all__ = [
    "DatabaseInitializationError",
    "DatabaseNotInitializedError",
    "DatabaseService",
]
