"""Channels, the watcher registry and delivery of committed changes."""

from __future__ import annotations

import queue
import threading
from typing import Any, Iterator

from ..errors import WatchEventError
from .filter import (
    PrimaryFilter,
    PrimaryStartWithFilter,
    SecondaryFilter,
    SecondaryStartWithFilter,
    TableFilter,
    WatcherRequest,
)


class _Channel:
    def __init__(self) -> None:
        self.queue: queue.SimpleQueue = queue.SimpleQueue()
        self.closed = False
        self.lock = threading.Lock()


class Sender:
    """Sending side of an event channel."""

    def __init__(self, channel: _Channel) -> None:
        self._channel = channel

    def send(self, event: Any) -> None:
        """Queue an event; raises WatchEventError if the receiver is closed."""
        with self._channel.lock:
            if self._channel.closed:
                raise WatchEventError("receiver is closed")
            self._channel.queue.put(event)


class Receiver:
    """Receiving side of an event channel."""

    def __init__(self, channel: _Channel) -> None:
        self._channel = channel

    def recv(self, timeout: float | None = None) -> Any:
        """Wait for the next event; raises queue.Empty on timeout."""
        return self._channel.queue.get(timeout=timeout)

    def try_recv(self) -> Any:
        """The next event if one is waiting; raises queue.Empty otherwise."""
        return self._channel.queue.get_nowait()

    def close(self) -> None:
        """Stop accepting events; the watcher is dropped on the next delivery."""
        with self._channel.lock:
            self._channel.closed = True

    def __enter__(self) -> Receiver:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


def channel() -> tuple[Sender, Receiver]:
    """A new unbounded event channel."""
    shared = _Channel()
    return Sender(shared), Receiver(shared)


def _matches(table_filter: TableFilter, request: WatcherRequest) -> bool:
    if table_filter.table_name != request.table_name:
        return False
    match table_filter.key_filter:
        case PrimaryFilter(key=None):
            return True
        case PrimaryFilter(key=key):
            return key == request.primary_key
        case PrimaryStartWithFilter(prefix=prefix):
            return request.primary_key.starts_with(prefix)
        case SecondaryFilter(key_def=key_def, key=key):
            entry = request.secondary_keys_value.get(key_def)
            if entry is None:
                return False
            return key is None or entry.value == key
        case SecondaryStartWithFilter(key_def=key_def, prefix=prefix):
            entry = request.secondary_keys_value.get(key_def)
            return (
                entry is not None
                and entry.value is not None
                and entry.value.starts_with(prefix)
            )
    return False


class Watchers:
    """Registered watchers, each a filter and the sender it feeds."""

    def __init__(self) -> None:
        self._entries: dict[int, tuple[TableFilter, Sender]] = {}
        self._lock = threading.Lock()

    def add_sender(self, id: int, table_filter: TableFilter, sender: Sender) -> None:
        with self._lock:
            self._entries[id] = (table_filter, sender)

    def remove_sender(self, id: int) -> bool:
        """Forget a watcher; returns whether it was registered."""
        with self._lock:
            return self._entries.pop(id, None) is not None

    def find_senders(self, request: WatcherRequest) -> list[tuple[int, Sender]]:
        """The watchers whose filters match a change."""
        with self._lock:
            entries = list(self._entries.items())
        return [
            (watcher_id, sender)
            for watcher_id, (table_filter, sender) in entries
            if _matches(table_filter, request)
        ]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def __contains__(self, id: object) -> bool:
        with self._lock:
            return id in self._entries


class Batch:
    """Changes of one transaction, delivered when it commits.

    Iteration yields the most recently added change first.
    """

    def __init__(self) -> None:
        self._items: list[tuple[WatcherRequest, Any]] = []

    def add(self, request: WatcherRequest, event: Any) -> None:
        self._items.append((request, event))

    def __iter__(self) -> Iterator[tuple[WatcherRequest, Any]]:
        return reversed(list(self._items))

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        parts = "".join(
            f"({request.primary_key!r}, {event!r}), " for request, event in self._items
        )
        return f"[{parts}]"


def push_batch(watchers: Watchers, batch: Batch) -> None:
    """Deliver a batch to matching watchers and drop those that are closed."""
    unused: list[int] = []
    for request, event in batch:
        for watcher_id, sender in watchers.find_senders(request):
            try:
                sender.send(event)
            except WatchEventError:
                unused.append(watcher_id)
    for watcher_id in unused:
        watchers.remove_sender(watcher_id)