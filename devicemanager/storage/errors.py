"""Storage exception hierarchy."""

from __future__ import annotations

from typing import Optional


class StorageError(Exception):
    """Base exception for all storage errors."""


class DatabaseInitError(StorageError):
    """Raised when the connection cannot be opened or the schema cannot be created."""


class RowDecodeError(StorageError):
    """Raised when a database row cannot be decoded into an entity."""

    def __init__(self, table: str, column: str, message: str, value: Optional[object] = None):
        self.table = table
        self.column = column
        self.value = value
        super().__init__(f"{table}.{column}: {message}")
