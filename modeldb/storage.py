"""Ordered key-value tables with snapshot transactions, optionally kept in a file."""

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Any, Iterator

import msgpack
from sortedcontainers import SortedDict

from .errors import DatabaseError, DatabaseNotFound
from .model import Key, to_key

_FORMAT_VERSION = 1
_BYTES_VALUE = 0
_KEY_VALUE = 1


class Table:
    """A table of one transaction, ordered by key."""

    def __init__(
        self,
        name: str,
        data: SortedDict | None = None,
        *,
        read_only: bool = False,
        touched: set[Key] | None = None,
    ) -> None:
        self.name = name
        self._data = data if data is not None else SortedDict()
        self._read_only = read_only
        self._touched = touched

    def _check_writable(self) -> None:
        if self._read_only:
            raise DatabaseError(f"table {self.name} is read-only")

    def _record(self, key: Key) -> None:
        if self._touched is not None:
            self._touched.add(key)

    def get(self, key: Any) -> Any:
        """The value stored under ``key``, or None."""
        return self._data.get(to_key(key))

    def insert(self, key: Any, value: Any) -> Any:
        """Store a value; returns the value it replaced, or None."""
        self._check_writable()
        k = to_key(key)
        previous = self._data.get(k)
        self._data[k] = value
        self._record(k)
        return previous

    def remove(self, key: Any) -> Any:
        """Delete a key; returns the value it held, or None."""
        self._check_writable()
        k = to_key(key)
        previous = self._data.pop(k, None)
        self._record(k)
        return previous

    def range(
        self,
        start: Any = None,
        stop: Any = None,
        inclusive_stop: bool = False,
        reverse: bool = False,
    ) -> Iterator[tuple[Key, Any]]:
        """Pairs with ``start <= key < stop`` (``<=`` with ``inclusive_stop``).

        The pairs are taken when called, so the table may be changed while
        they are iterated.
        """
        low = None if start is None else to_key(start)
        high = None if stop is None else to_key(stop)
        keys = list(
            self._data.irange(
                low, high, inclusive=(True, inclusive_stop), reverse=reverse
            )
        )
        return iter([(k, self._data[k]) for k in keys])

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self) -> Iterator[tuple[Key, Any]]:
        return self.range()

    def __contains__(self, key: object) -> bool:
        return to_key(key) in self._data


def _encode_value(value: Any) -> list[Any]:
    if isinstance(value, Key):
        return [_KEY_VALUE, value.data]
    if isinstance(value, (bytes, bytearray, memoryview)):
        return [_BYTES_VALUE, bytes(value)]
    raise TypeError(f"cannot persist value of type {type(value).__name__}")


def _decode_value(kind: int, payload: bytes) -> Any:
    if kind == _KEY_VALUE:
        return Key(payload)
    if kind == _BYTES_VALUE:
        return bytes(payload)
    raise DatabaseError(f"unknown stored value kind {kind}")


class Storage:
    """Named tables; commits publish new versions without touching old snapshots.

    With a ``path``, every commit also writes the whole store to that file.
    """

    def __init__(self, path: str | os.PathLike | None = None) -> None:
        self.path = Path(path) if path is not None else None
        self._tables: dict[str, SortedDict] = {}
        self._lock = threading.Lock()

    def begin_read(self) -> ReadTransaction:
        with self._lock:
            return ReadTransaction(self._tables)

    def begin_write(self) -> WriteTransaction:
        return WriteTransaction(self)

    def _copy_table(self, name: str) -> SortedDict:
        with self._lock:
            current = self._tables.get(name)
        return SortedDict(current) if current is not None else SortedDict()

    def _table_names(self) -> set[str]:
        with self._lock:
            return set(self._tables)

    def _apply(self, opened: dict[str, tuple[SortedDict, set[Key]]]) -> None:
        with self._lock:
            tables = dict(self._tables)
            for name, (data, touched) in opened.items():
                current = tables.get(name)
                if current is not None and not touched:
                    continue
                merged = SortedDict(current) if current is not None else SortedDict()
                for key in touched:
                    if key in data:
                        merged[key] = data[key]
                    else:
                        merged.pop(key, None)
                tables[name] = merged
            self._tables = tables
            if self.path is not None:
                self._write(self.path, tables)

    @staticmethod
    def _write(path: Path, tables: dict[str, SortedDict]) -> None:
        document = {
            "version": _FORMAT_VERSION,
            "tables": {
                name: [[key.data, *_encode_value(value)] for key, value in data.items()]
                for name, data in tables.items()
            },
        }
        temporary = path.with_name(path.name + ".tmp")
        temporary.write_bytes(msgpack.packb(document, use_bin_type=True))
        os.replace(temporary, path)

    def save(self, path: str | os.PathLike) -> None:
        """Write the committed tables to ``path``."""
        with self._lock:
            tables = self._tables
        self._write(Path(path), tables)

    @classmethod
    def load(cls, path: str | os.PathLike) -> Storage:
        """Read a store written by ``save``; later commits write back to it."""
        file_path = Path(path)
        if not file_path.is_file():
            raise DatabaseNotFound(file_path)
        try:
            document = msgpack.unpackb(file_path.read_bytes(), raw=False)
            if document["version"] != _FORMAT_VERSION:
                raise DatabaseError(f"unsupported file version {document['version']}")
            tables = {
                name: SortedDict(
                    (Key(key), _decode_value(kind, payload))
                    for key, kind, payload in rows
                )
                for name, rows in document["tables"].items()
            }
        except (KeyError, TypeError, ValueError, msgpack.exceptions.UnpackException) as exc:
            raise DatabaseError(f"invalid database file: {file_path}") from exc
        storage = cls(file_path)
        storage._tables = tables
        return storage


class ReadTransaction:
    """A consistent view of the tables as they were when it began."""

    def __init__(self, tables: dict[str, SortedDict]) -> None:
        self._tables = tables

    def open_table(self, name: str) -> Table:
        """A read-only table; a table never written reads as empty."""
        data = self._tables.get(name)
        return Table(name, data if data is not None else SortedDict(), read_only=True)

    def list_tables(self) -> list[str]:
        return sorted(self._tables)


class WriteTransaction:
    """Changes that become visible together on commit, or never on abort."""

    def __init__(self, storage: Storage) -> None:
        self._storage = storage
        self._opened: dict[str, tuple[SortedDict, set[Key]]] = {}
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_open(self) -> None:
        if self._closed:
            raise DatabaseError("transaction is closed")

    def open_table(self, name: str) -> Table:
        """A writable table, created if it does not exist."""
        self._check_open()
        if name not in self._opened:
            self._opened[name] = (self._storage._copy_table(name), set())
        data, touched = self._opened[name]
        return Table(name, data, touched=touched)

    def list_tables(self) -> list[str]:
        self._check_open()
        return sorted(self._storage._table_names() | set(self._opened))

    def commit(self) -> None:
        self._check_open()
        self._closed = True
        self._storage._apply(self._opened)

    def abort(self) -> None:
        self._check_open()
        self._closed = True
        self._opened.clear()

    def __enter__(self) -> WriteTransaction:
        return self

    def __exit__(self, *exc_info: object) -> None:
        if not self._closed:
            self.abort()