"""Entry point of scans over the items of a model."""

from __future__ import annotations

from ..internal import InternalRTransaction, InternalRwTransaction
from ..model import KeyDefinition, model_of
from .primary_scan import PrimaryScan
from .secondary_scan import SecondaryScan

_Internal = InternalRTransaction | InternalRwTransaction


class Scan:
    """Get values from the database in key order."""

    def __init__(self, internal: _Internal) -> None:
        self._internal = internal

    def primary(self, model_cls: type) -> PrimaryScan:
        """Scan the items of a model by primary key."""
        table = self._internal.get_primary_table(model_of(model_cls))
        return PrimaryScan(table, model_cls)

    def secondary(self, model_cls: type, key_def: KeyDefinition | str) -> SecondaryScan:
        """Scan the items of a model by a secondary key."""
        model = model_of(model_cls)
        primary_table = self._internal.get_primary_table(model)
        secondary_table = self._internal.get_secondary_table(model, key_def)
        return SecondaryScan(primary_table, secondary_table, model_cls)