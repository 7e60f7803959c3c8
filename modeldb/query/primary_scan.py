"""Iteration over the items of a model in primary key order."""

from __future__ import annotations

import itertools
from typing import Any, Iterable, Iterator

from ..model import Key, Output, to_key
from ..storage import Table


class PrimaryScan:
    """Scan the items of one model by primary key."""

    def __init__(self, primary_table: Table, model_cls: type) -> None:
        self._table = primary_table
        self._model_cls = model_cls

    def _decode(self, pairs: Iterable[tuple[Key, Any]]) -> Iterator[Any]:
        for _, value in pairs:
            yield Output(value).inner(self._model_cls)

    def all(self, reverse: bool = False) -> Iterator[Any]:
        """Every item, in key order (or reversed)."""
        return self._decode(self._table.range(reverse=reverse))

    def range(
        self,
        start: Any = None,
        stop: Any = None,
        inclusive_stop: bool = False,
        reverse: bool = False,
    ) -> Iterator[Any]:
        """Items with ``start <= key < stop``; ``inclusive_stop`` includes ``stop``.

        A bound of None leaves that side open.
        """
        return self._decode(
            self._table.range(start, stop, inclusive_stop=inclusive_stop, reverse=reverse)
        )

    def start_with(self, start_with: Any) -> Iterator[Any]:
        """Items whose primary key begins with ``start_with``."""
        prefix = to_key(start_with)
        pairs = itertools.takewhile(
            lambda pair: pair[0].starts_with(prefix),
            self._table.range(prefix),
        )
        return self._decode(pairs)