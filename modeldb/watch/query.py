"""Registration of watchers on models, by primary or secondary key."""

from __future__ import annotations

import itertools
import threading
from typing import Any, Iterator

from ..errors import MaxWatcherReached
from ..model import KeyDefinition, Model, model_of
from .filter import TableFilter
from .sender import Receiver, Watchers, channel

_MAX_WATCHER_ID = (1 << 64) - 1


def _resolve_key_def(model: Model, key_def: KeyDefinition | str) -> KeyDefinition:
    if isinstance(key_def, KeyDefinition):
        return key_def
    return model.key(key_def)


class InternalWatch:
    """Creates channels and registers them with their filters.

    ``id_counter`` yields watcher identifiers; share one counter between
    every watch of a database so identifiers stay unique.
    """

    def __init__(
        self, watchers: Watchers, id_counter: Iterator[int] | None = None
    ) -> None:
        self.watchers = watchers
        self._ids = id_counter if id_counter is not None else itertools.count()
        self._lock = threading.Lock()

    def _generate_watcher_id(self) -> int:
        with self._lock:
            value = next(self._ids)
        if value >= _MAX_WATCHER_ID:
            raise MaxWatcherReached()
        return value

    def _watch_generic(self, table_filter: TableFilter) -> tuple[Receiver, int]:
        sender, receiver = channel()
        watcher_id = self._generate_watcher_id()
        self.watchers.add_sender(watcher_id, table_filter, sender)
        return receiver, watcher_id

    def watch_primary(self, model_cls: type, key: Any) -> tuple[Receiver, int]:
        """Watch one primary key of a model."""
        table_name = model_of(model_cls).primary_key.unique_table_name
        return self._watch_generic(TableFilter.new_primary(table_name, key))

    def watch_primary_all(self, model_cls: type) -> tuple[Receiver, int]:
        """Watch every item of a model."""
        table_name = model_of(model_cls).primary_key.unique_table_name
        return self._watch_generic(TableFilter.new_primary(table_name, None))

    def watch_primary_start_with(
        self, model_cls: type, start_with: Any
    ) -> tuple[Receiver, int]:
        """Watch items whose primary key begins with a prefix."""
        table_name = model_of(model_cls).primary_key.unique_table_name
        return self._watch_generic(
            TableFilter.new_primary_start_with(table_name, start_with)
        )

    def watch_secondary(
        self, model_cls: type, key_def: KeyDefinition | str, key: Any
    ) -> tuple[Receiver, int]:
        """Watch one value of a secondary key."""
        model = model_of(model_cls)
        definition = _resolve_key_def(model, key_def)
        return self._watch_generic(
            TableFilter.new_secondary(
                model.primary_key.unique_table_name, definition, key
            )
        )

    def watch_secondary_all(
        self, model_cls: type, key_def: KeyDefinition | str
    ) -> tuple[Receiver, int]:
        """Watch items that have any value of a secondary key."""
        model = model_of(model_cls)
        definition = _resolve_key_def(model, key_def)
        return self._watch_generic(
            TableFilter.new_secondary(
                model.primary_key.unique_table_name, definition, None
            )
        )

    def watch_secondary_start_with(
        self, model_cls: type, key_def: KeyDefinition | str, start_with: Any
    ) -> tuple[Receiver, int]:
        """Watch items whose secondary key begins with a prefix."""
        model = model_of(model_cls)
        definition = _resolve_key_def(model, key_def)
        return self._watch_generic(
            TableFilter.new_secondary_start_with(
                model.primary_key.unique_table_name, definition, start_with
            )
        )


class WatchGet:
    """Watch only one value."""

    def __init__(self, internal: InternalWatch) -> None:
        self._internal = internal

    def primary(self, model_cls: type, key: Any) -> tuple[Receiver, int]:
        """Watch a primary key; returns the receiver and the watcher id."""
        return self._internal.watch_primary(model_cls, key)

    def secondary(
        self, model_cls: type, key_def: KeyDefinition | str, key: Any
    ) -> tuple[Receiver, int]:
        """Watch a secondary key value; returns the receiver and the watcher id."""
        return self._internal.watch_secondary(model_cls, key_def, key)


class WatchScanPrimary:
    """Watch several values by primary key."""

    def __init__(self, internal: InternalWatch) -> None:
        self._internal = internal

    def all(self, model_cls: type) -> tuple[Receiver, int]:
        """Watch every item of the model."""
        return self._internal.watch_primary_all(model_cls)

    def start_with(self, model_cls: type, start_with: Any) -> tuple[Receiver, int]:
        """Watch items whose primary key begins with ``start_with``."""
        return self._internal.watch_primary_start_with(model_cls, start_with)


class WatchScanSecondary:
    """Watch several values by a secondary key."""

    def __init__(self, internal: InternalWatch, key_def: KeyDefinition | str) -> None:
        self._internal = internal
        self.key_def = key_def

    def all(self, model_cls: type) -> tuple[Receiver, int]:
        """Watch items that have the secondary key set."""
        return self._internal.watch_secondary_all(model_cls, self.key_def)

    def start_with(self, model_cls: type, start_with: Any) -> tuple[Receiver, int]:
        """Watch items whose secondary key begins with ``start_with``."""
        return self._internal.watch_secondary_start_with(
            model_cls, self.key_def, start_with
        )


class WatchScan:
    """Watch multiple values."""

    def __init__(self, internal: InternalWatch) -> None:
        self._internal = internal

    def primary(self) -> WatchScanPrimary:
        return WatchScanPrimary(self._internal)

    def secondary(self, key_def: KeyDefinition | str) -> WatchScanSecondary:
        return WatchScanSecondary(self._internal, key_def)


class Watch:
    """Entry point of watch queries."""

    def __init__(self, internal: InternalWatch) -> None:
        self._internal = internal

    def get(self) -> WatchGet:
        """Watch only one value."""
        return WatchGet(self._internal)

    def scan(self) -> WatchScan:
        """Watch multiple values."""
        return WatchScan(self._internal)