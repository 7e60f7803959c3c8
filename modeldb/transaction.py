"""Read-only and read-write transactions over defined models."""

from __future__ import annotations

from typing import Any, Callable

from .internal import InternalRTransaction, InternalRwTransaction
from .model import model_of, to_input
from .query.get import Drain, Get, Len
from .query.scan import Scan
from .watch.event import Delete, Insert, Update
from .watch.sender import Batch, Watchers, push_batch


class RTransaction:
    """A consistent, read-only view of the database."""

    def __init__(self, internal: InternalRTransaction) -> None:
        self._internal = internal

    def get(self) -> Get:
        """Get one value from the database."""
        return Get(self._internal)

    def scan(self) -> Scan:
        """Get values from the database in key order."""
        return Scan(self._internal)

    def len(self) -> Len:
        """Count the values in the database."""
        return Len(self._internal)


class RwTransaction:
    """Changes applied together on commit and reported to watchers afterwards.

    Used as a context manager, the transaction is aborted on exit unless it
    was committed.
    """

    def __init__(self, internal: InternalRwTransaction, watchers: Watchers) -> None:
        self._internal = internal
        self._watchers = watchers
        self._batch = Batch()
        self._closed = False

    def get(self) -> Get:
        """Get one value from the database."""
        return Get(self._internal)

    def scan(self) -> Scan:
        """Get values from the database in key order."""
        return Scan(self._internal)

    def len(self) -> Len:
        """Count the values in the database."""
        return Len(self._internal)

    def drain(self) -> Drain:
        """Remove and return values from the database."""
        return Drain(self._internal)

    def commit(self) -> None:
        """Apply every change, then send the collected events to watchers."""
        self._internal.commit()
        self._closed = True
        batch, self._batch = self._batch, Batch()
        push_batch(self._watchers, batch)

    def abort(self) -> None:
        """Discard every change of the transaction."""
        self._internal.abort()
        self._closed = True
        self._batch = Batch()

    def __enter__(self) -> RwTransaction:
        return self

    def __exit__(self, *exc_info: object) -> None:
        if not self._closed:
            self.abort()

    def insert(self, item: Any) -> None:
        """Insert an item; raises DuplicateKey if a unique key is taken."""
        request, output = self._internal.concrete_insert(
            model_of(type(item)), to_input(item)
        )
        self._batch.add(request, Insert(output))

    def remove(self, item: Any) -> Any:
        """Remove an item with all its keys; returns the removed item."""
        request, output = self._internal.concrete_remove(
            model_of(type(item)), to_input(item)
        )
        self._batch.add(request, Delete(output))
        return output.inner(type(item))

    def update(self, old_item: Any, updated_item: Any) -> None:
        """Replace an item, primary and secondary keys included, by another."""
        request, old_output, new_output = self._internal.concrete_update(
            model_of(type(old_item)), to_input(old_item), to_input(updated_item)
        )
        self._batch.add(request, Update(old_output, new_output))

    def convert_all(
        self, old_cls: type, new_cls: type, convert: Callable[[Any], Any]
    ) -> None:
        """Replace every item of ``old_cls`` by ``convert(item)``, an ``new_cls``.

        No events are sent to watchers for these changes.
        """
        old_model = model_of(old_cls)
        new_model = model_of(new_cls)
        old_items = list(self.scan().primary(old_cls).all())
        for old in old_items:
            new = convert(old)
            if not isinstance(new, new_cls):
                raise TypeError(
                    f"conversion returned {type(new).__qualname__}, "
                    f"expected {new_cls.__qualname__}"
                )
            self._internal.concrete_insert(new_model, to_input(new))
            self._internal.concrete_remove(old_model, to_input(old))

    def migrate(self, model_cls: type) -> None:
        """Move the data of any older version of the model into ``model_cls``.

        Raises MigrateLegacyModel if ``model_cls`` is not the latest version.
        """
        self._internal.migrate(model_cls)