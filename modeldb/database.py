"""Database creation, transactions, watchers and table statistics."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .errors import DatabaseError
from .internal import InternalRTransaction, InternalRwTransaction, PrimaryTableDefinition
from .model import Model, model_of
from .storage import Storage
from .transaction import RTransaction, RwTransaction
from .watch.query import InternalWatch, Watch
from .watch.sender import Watchers


@dataclass(frozen=True)
class TableStats:
    """Name of a table and its number of entries (None if it does not exist)."""

    name: str
    n_entries: int | None


@dataclass(frozen=True)
class Stats:
    """Entries of every primary and secondary table, sorted by name."""

    primary_tables: tuple[TableStats, ...]
    secondary_tables: tuple[TableStats, ...]


class DatabaseBuilder:
    """Collects model definitions, then creates or opens a database."""

    def __init__(self) -> None:
        self._models: dict[str, Model] = {}
        self.cache_size: int | None = None

    def define(self, model_cls: type) -> DatabaseBuilder:
        """Declare a model that the database stores."""
        model = model_of(model_cls)
        name = model.primary_key.unique_table_name
        existing = self._models.get(name)
        if existing is not None and existing.cls is not model.cls:
            raise DatabaseError(f"table {name} is already defined by another model")
        self._models[name] = model
        return self

    def set_cache_size(self, size: int) -> DatabaseBuilder:
        """Set the cache size in bytes."""
        if size < 0:
            raise ValueError("cache size must not be negative")
        self.cache_size = size
        return self

    def _definitions(self) -> dict[str, PrimaryTableDefinition]:
        latest: dict[int, int] = {}
        for model in self._models.values():
            latest[model.id] = max(latest.get(model.id, model.version), model.version)
        return {
            name: PrimaryTableDefinition(model, model.version < latest[model.id])
            for name, model in self._models.items()
        }

    def _build(self, storage: Storage) -> Database:
        definitions = self._definitions()
        txn = storage.begin_write()
        for definition in definitions.values():
            txn.open_table(definition.name)
            for table_name in definition.secondary_tables.values():
                txn.open_table(table_name)
        txn.commit()
        return Database(storage, definitions)

    def create(self, path: str | os.PathLike) -> Database:
        """Open the database file at ``path``, creating it if it does not exist."""
        file_path = Path(path)
        if file_path.exists():
            storage = Storage.load(file_path)
        else:
            storage = Storage(file_path)
            storage.save(file_path)
        return self._build(storage)

    def create_in_memory(self) -> Database:
        """A database that lives only in memory."""
        return self._build(Storage())

    def open(self, path: str | os.PathLike) -> Database:
        """Open an existing database file; raises DatabaseNotFound if missing."""
        return self._build(Storage.load(path))


class Database:
    """A store of defined models."""

    def __init__(
        self, storage: Storage, table_definitions: dict[str, PrimaryTableDefinition]
    ) -> None:
        self._storage = storage
        self._definitions = table_definitions
        self._watchers = Watchers()
        self._internal_watch = InternalWatch(self._watchers)

    @property
    def path(self) -> Path | None:
        return self._storage.path

    def r_transaction(self) -> RTransaction:
        """Begin a read-only transaction."""
        return RTransaction(
            InternalRTransaction(self._storage.begin_read(), self._definitions)
        )

    def rw_transaction(self) -> RwTransaction:
        """Begin a read-write transaction."""
        return RwTransaction(
            InternalRwTransaction(self._storage.begin_write(), self._definitions),
            self._watchers,
        )

    def watch(self) -> Watch:
        """Register watchers on committed changes."""
        return Watch(self._internal_watch)

    def unwatch(self, id: int) -> bool:
        """Stop a watcher; returns whether it was registered."""
        return self._watchers.remove_sender(id)

    def stats(self) -> Stats:
        """Number of entries of every defined table."""
        read = self._storage.begin_read()
        existing = set(read.list_tables())

        def table_stats(name: str) -> TableStats:
            count: Any = len(read.open_table(name)) if name in existing else None
            return TableStats(name, count)

        primary = sorted(self._definitions)
        secondary = sorted(
            {
                table_name
                for definition in self._definitions.values()
                for table_name in definition.secondary_tables.values()
            }
        )
        return Stats(
            tuple(table_stats(name) for name in primary),
            tuple(table_stats(name) for name in secondary),
        )