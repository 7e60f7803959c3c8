"""Point lookups, counts and drains of models inside a transaction."""

from __future__ import annotations

from typing import Any

from ..internal import InternalRTransaction, InternalRwTransaction
from ..model import KeyDefinition, model_of

_Internal = InternalRTransaction | InternalRwTransaction


class Get:
    """Get one value from the database."""

    def __init__(self, internal: _Internal) -> None:
        self._internal = internal

    def primary(self, model_cls: type, key: Any) -> Any:
        """The item with the given primary key, or None."""
        output = self._internal.get_by_primary_key(model_of(model_cls), key)
        return None if output is None else output.inner(model_cls)

    def secondary(
        self, model_cls: type, key_def: KeyDefinition | str, key: Any
    ) -> Any:
        """The item with the given value of a unique secondary key, or None.

        Raises SecondaryKeyConstraintMismatch if the key is not unique.
        """
        output = self._internal.get_by_secondary_key(model_of(model_cls), key_def, key)
        return None if output is None else output.inner(model_cls)


class Len:
    """Count the values in the database."""

    def __init__(self, internal: _Internal) -> None:
        self._internal = internal

    def primary(self, model_cls: type) -> int:
        """The number of items of a model."""
        return self._internal.primary_len(model_of(model_cls))


class Drain:
    """Remove and return values from the database."""

    def __init__(self, internal: InternalRwTransaction) -> None:
        self._internal = internal

    def primary(self, model_cls: type) -> list[Any]:
        """Remove every item of a model; returns them in primary key order."""
        outputs = self._internal.concrete_primary_drain(model_of(model_cls))
        return [output.inner(model_cls) for output in outputs]