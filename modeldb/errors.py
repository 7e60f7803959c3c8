"""Exceptions raised by the database."""

from __future__ import annotations


class DatabaseError(Exception):
    """Base class for every error raised by the database."""


class TableDefinitionNotFound(DatabaseError):
    """A table was requested that no defined model declares."""

    def __init__(self, table: str) -> None:
        self.table = table
        super().__init__(f"table definition not found: {table}")


class DuplicateKey(DatabaseError):
    """A unique secondary key already points at another item."""

    def __init__(self, key_name: str) -> None:
        self.key_name = key_name
        super().__init__(f"duplicate key for {key_name}")


class PrimaryKeyNotFound(DatabaseError):
    """A secondary key points at a primary key that does not exist."""

    def __init__(self, message: str = "primary key not found") -> None:
        super().__init__(message)


class SecondaryKeyConstraintMismatch(DatabaseError):
    """A secondary key does not have the options the operation requires."""

    def __init__(self, key_name: str) -> None:
        self.key_name = key_name
        super().__init__(f"secondary key constraint mismatch for {key_name}")


class MigrateLegacyModel(DatabaseError):
    """Migration was asked for with a model that is not the latest version."""

    def __init__(self, table: str) -> None:
        self.table = table
        super().__init__(f"cannot migrate to legacy model {table}")


class MaxWatcherReached(DatabaseError):
    """No more watcher identifiers are available."""

    def __init__(self, message: str = "maximum number of watchers reached") -> None:
        super().__init__(message)


class DatabaseNotFound(DatabaseError):
    """The database file to open does not exist."""

    def __init__(self, path: object) -> None:
        self.path = path
        super().__init__(f"database not found: {path}")


class WatchEventError(DatabaseError):
    """An event could not be delivered to a watcher."""