"""Iteration over the items of a model in secondary key order."""

from __future__ import annotations

import itertools
from typing import Any, Iterable, Iterator

from ..model import Key, Output, to_key
from ..storage import Table


class SecondaryScan:
    """Scan the items of one model by one of its secondary keys.

    Only items that have the secondary key set are visited.
    """

    def __init__(
        self, primary_table: Table, secondary_table: Table, model_cls: type
    ) -> None:
        self._primary = primary_table
        self._secondary = secondary_table
        self._model_cls = model_cls

    def _decode(self, pairs: Iterable[tuple[Key, Key]]) -> Iterator[Any]:
        # Iteration ends at the first index entry whose item is missing.
        for _, primary_key in pairs:
            value = self._primary.get(primary_key)
            if value is None:
                return
            yield Output(value).inner(self._model_cls)

    def all(self, reverse: bool = False) -> Iterator[Any]:
        """Every item with the key set, in key order (or reversed)."""
        return self._decode(self._secondary.range(reverse=reverse))

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
            self._secondary.range(
                start, stop, inclusive_stop=inclusive_stop, reverse=reverse
            )
        )

    def start_with(self, start_with: Any) -> Iterator[Any]:
        """Items whose secondary key begins with ``start_with``."""
        prefix = to_key(start_with)
        pairs = itertools.takewhile(
            lambda pair: pair[0].starts_with(prefix),
            self._secondary.range(prefix),
        )
        return self._decode(pairs)