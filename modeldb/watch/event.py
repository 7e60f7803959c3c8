"""Events sent to watchers when committed data changes."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from ..model import Output


@dataclass(frozen=True, repr=False)
class Insert:
    """An item was inserted."""

    value: Output

    def inner(self, model_cls: type) -> Any:
        """The inserted item."""
        return self.value.inner(model_cls)

    def __repr__(self) -> str:
        return "Insert"


@dataclass(frozen=True, repr=False)
class Update:
    """An item was replaced by another."""

    old: Output
    new: Output

    def inner_old(self, model_cls: type) -> Any:
        """The item before the update."""
        return self.old.inner(model_cls)

    def inner_new(self, model_cls: type) -> Any:
        """The item after the update."""
        return self.new.inner(model_cls)

    def __repr__(self) -> str:
        return "Update"


@dataclass(frozen=True, repr=False)
class Delete:
    """An item was removed."""

    value: Output

    def inner(self, model_cls: type) -> Any:
        """The removed item."""
        return self.value.inner(model_cls)

    def __repr__(self) -> str:
        return "Delete"


Event = Union[Insert, Update, Delete]