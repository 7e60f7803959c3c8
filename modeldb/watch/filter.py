"""What a watcher listens to, and what a change reports."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

from ..model import Key, KeyDefinition, KeyEntry, to_key


@dataclass(frozen=True)
class PrimaryFilter:
    """One primary key, or every item when ``key`` is None."""

    key: Key | None = None


@dataclass(frozen=True)
class PrimaryStartWithFilter:
    """Primary keys beginning with a prefix."""

    prefix: Key


@dataclass(frozen=True)
class SecondaryFilter:
    """One value of a secondary key, or any value when ``key`` is None."""

    key_def: KeyDefinition
    key: Key | None = None


@dataclass(frozen=True)
class SecondaryStartWithFilter:
    """Values of a secondary key beginning with a prefix."""

    key_def: KeyDefinition
    prefix: Key


KeyFilter = Union[
    PrimaryFilter, PrimaryStartWithFilter, SecondaryFilter, SecondaryStartWithFilter
]


def _optional_key(key: Any) -> Key | None:
    return None if key is None else to_key(key)


@dataclass(frozen=True)
class TableFilter:
    """A key filter on one table."""

    table_name: str
    key_filter: KeyFilter

    @classmethod
    def new_primary(cls, table_name: str, key: Any = None) -> TableFilter:
        return cls(table_name, PrimaryFilter(_optional_key(key)))

    @classmethod
    def new_primary_start_with(cls, table_name: str, key_prefix: Any) -> TableFilter:
        return cls(table_name, PrimaryStartWithFilter(to_key(key_prefix)))

    @classmethod
    def new_secondary(
        cls, table_name: str, key_def: KeyDefinition, key: Any = None
    ) -> TableFilter:
        return cls(table_name, SecondaryFilter(key_def, _optional_key(key)))

    @classmethod
    def new_secondary_start_with(
        cls, table_name: str, key_def: KeyDefinition, key_prefix: Any
    ) -> TableFilter:
        return cls(table_name, SecondaryStartWithFilter(key_def, to_key(key_prefix)))


@dataclass
class WatcherRequest:
    """The keys of a changed item, matched against watchers' filters."""

    table_name: str
    primary_key: Key
    secondary_keys_value: dict[KeyDefinition, KeyEntry] = field(default_factory=dict)