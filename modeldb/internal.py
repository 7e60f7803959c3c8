"""Table-level reads and writes of models inside a transaction."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from .errors import (
    DatabaseError,
    DuplicateKey,
    MigrateLegacyModel,
    PrimaryKeyNotFound,
    TableDefinitionNotFound,
)
from .model import (
    DatabaseInput,
    Key,
    KeyDefinition,
    Model,
    Output,
    decode_item,
    model_of,
    to_input,
    to_key,
)
from .storage import ReadTransaction, Table, WriteTransaction
from .watch.filter import WatcherRequest


@dataclass
class PrimaryTableDefinition:
    """A defined model and the tables it is stored in."""

    model: Model
    native_model_legacy: bool = False

    @property
    def name(self) -> str:
        return self.model.primary_key.unique_table_name

    @property
    def secondary_tables(self) -> dict[KeyDefinition, str]:
        return {key_def: key_def.unique_table_name for key_def in self.model.secondary_keys}


def _as_model(model: Any) -> Model:
    return model if isinstance(model, Model) else model_of(model)


def _resolve_key_def(model: Model, key_def: KeyDefinition | str) -> KeyDefinition:
    if isinstance(key_def, KeyDefinition):
        return key_def
    try:
        return model.key(key_def)
    except KeyError:
        raise TableDefinitionNotFound(str(key_def)) from None


def _stored_secondary_key(key_def: KeyDefinition, value: Key, primary_key: Key) -> Key:
    # Non-unique keys carry the primary key so that several items can share a value.
    if key_def.options.unique:
        return value
    return Key(value.data + primary_key.data)


class _ReadableTransaction:
    def __init__(
        self,
        txn: ReadTransaction | WriteTransaction,
        table_definitions: dict[str, PrimaryTableDefinition],
    ) -> None:
        self._txn = txn
        self.table_definitions = table_definitions

    def _definition(self, model: Model) -> PrimaryTableDefinition:
        name = model.primary_key.unique_table_name
        definition = self.table_definitions.get(name)
        if definition is None:
            raise TableDefinitionNotFound(name)
        return definition

    def _primary_table(self, model: Any) -> Table:
        definition = self._definition(_as_model(model))
        return self._txn.open_table(definition.name)

    def _secondary_table(self, model: Any, key_def: KeyDefinition | str) -> Table:
        model = _as_model(model)
        definition = self._definition(model)
        key_def = _resolve_key_def(model, key_def)
        table_name = definition.secondary_tables.get(key_def)
        if table_name is None:
            raise TableDefinitionNotFound(key_def.unique_table_name)
        return self._txn.open_table(table_name)

    def _by_primary_key(self, model: Any, key: Any) -> Output | None:
        value = self._primary_table(model).get(to_key(key))
        return None if value is None else Output(value)

    def _by_secondary_key(
        self, model: Any, key_def: KeyDefinition | str, key: Any
    ) -> Output | None:
        model = _as_model(model)
        key_def = _resolve_key_def(model, key_def)
        model.check_secondary_options(key_def, lambda options: options.unique)
        primary_key = self._secondary_table(model, key_def).get(to_key(key))
        if primary_key is None:
            return None
        output = self._by_primary_key(model, primary_key)
        if output is None:
            raise PrimaryKeyNotFound()
        return output

    def _len(self, model: Any) -> int:
        return len(self._primary_table(model))


class InternalRTransaction(_ReadableTransaction):
    """Reads of models within a read transaction."""

    def __init__(
        self,
        txn: ReadTransaction,
        table_definitions: dict[str, PrimaryTableDefinition],
    ) -> None:
        super().__init__(txn, table_definitions)

    def get_primary_table(self, model: Any) -> Table:
        """The primary table of a defined model."""
        return self._primary_table(model)

    def get_secondary_table(self, model: Any, key_def: KeyDefinition | str) -> Table:
        """The table of one secondary key of a defined model."""
        return self._secondary_table(model, key_def)

    def get_by_primary_key(self, model: Any, key: Any) -> Output | None:
        """The encoded item with the given primary key, or None."""
        return self._by_primary_key(model, key)

    def get_by_secondary_key(
        self, model: Any, key_def: KeyDefinition | str, key: Any
    ) -> Output | None:
        """The encoded item with the given value of a unique secondary key."""
        return self._by_secondary_key(model, key_def, key)

    def primary_len(self, model: Any) -> int:
        """The number of items of a model."""
        return self._len(model)


class InternalRwTransaction(_ReadableTransaction):
    """Reads and writes of models within a write transaction."""

    def __init__(
        self,
        txn: WriteTransaction,
        table_definitions: dict[str, PrimaryTableDefinition],
    ) -> None:
        super().__init__(txn, table_definitions)

    def get_primary_table(self, model: Any) -> Table:
        """The primary table of a defined model."""
        return self._primary_table(model)

    def get_secondary_table(self, model: Any, key_def: KeyDefinition | str) -> Table:
        """The table of one secondary key of a defined model."""
        return self._secondary_table(model, key_def)

    def get_by_primary_key(self, model: Any, key: Any) -> Output | None:
        """The encoded item with the given primary key, or None."""
        return self._by_primary_key(model, key)

    def get_by_secondary_key(
        self, model: Any, key_def: KeyDefinition | str, key: Any
    ) -> Output | None:
        """The encoded item with the given value of a unique secondary key."""
        return self._by_secondary_key(model, key_def, key)

    def primary_len(self, model: Any) -> int:
        """The number of items of a model."""
        return self._len(model)

    def commit(self) -> None:
        self._txn.commit()

    def abort(self) -> None:
        self._txn.abort()

    def concrete_insert(
        self, model: Any, item: DatabaseInput
    ) -> tuple[WatcherRequest, Output]:
        """Store an item and its secondary keys.

        Raises DuplicateKey when a secondary key already points at another item.
        """
        model = _as_model(model)
        already_exists = (
            self._primary_table(model).insert(item.primary_key, item.value) is not None
        )
        for key_def in item.secondary_keys:
            entry = item.secondary_key_value(key_def)
            if entry.value is None:
                continue
            table = self._secondary_table(model, key_def)
            stored = _stored_secondary_key(key_def, entry.value, item.primary_key)
            previous = table.insert(stored, item.primary_key)
            if previous is not None and not already_exists:
                raise DuplicateKey(key_def.unique_table_name)
        request = WatcherRequest(
            model.primary_key.unique_table_name, item.primary_key, item.secondary_keys
        )
        return request, Output(item.value)

    def concrete_remove(
        self, model: Any, item: DatabaseInput
    ) -> tuple[WatcherRequest, Output]:
        """Delete an item and its secondary keys."""
        model = _as_model(model)
        self._primary_table(model).remove(item.primary_key)
        for key_def in item.secondary_keys:
            entry = item.secondary_key_value(key_def)
            if entry.value is None:
                continue
            table = self._secondary_table(model, key_def)
            table.remove(_stored_secondary_key(key_def, entry.value, item.primary_key))
        request = WatcherRequest(
            model.primary_key.unique_table_name, item.primary_key, item.secondary_keys
        )
        return request, Output(item.value)

    def concrete_update(
        self, model: Any, old_item: DatabaseInput, updated_item: DatabaseInput
    ) -> tuple[WatcherRequest, Output, Output]:
        """Replace an item, with all its keys, by another."""
        model = _as_model(model)
        _, old_output = self.concrete_remove(model, old_item)
        request, new_output = self.concrete_insert(model, updated_item)
        return request, old_output, new_output

    def concrete_primary_drain(self, model: Any) -> list[Output]:
        """Remove every item of a model; returns them in key order."""
        model = _as_model(model)
        definition = self._definition(model)
        primary_table = self._primary_table(model)
        items: list[Output] = []
        drained_keys: set[Key] = set()
        for primary_key, value in primary_table.range():
            primary_table.remove(primary_key)
            items.append(Output(value))
            drained_keys.add(primary_key)

        for key_def in definition.secondary_tables:
            table = self._secondary_table(model, key_def)
            to_delete: list[Key] = []
            remaining = len(drained_keys)
            for secondary_key, primary_key in table.range():
                if remaining == 0:
                    break
                if primary_key in drained_keys:
                    to_delete.append(secondary_key)
                    remaining -= 1
            for secondary_key in to_delete:
                table.remove(secondary_key)
        return items

    def migrate(self, model_cls: type) -> None:
        """Move the data of an older version of a model into ``model_cls``."""
        model = model_of(model_cls)
        target_name = model.primary_key.unique_table_name
        target = self._definition(model)
        if target.native_model_legacy:
            raise MigrateLegacyModel(target_name)

        existing = set(self._txn.list_tables())
        source: PrimaryTableDefinition | None = None
        for definition in self.table_definitions.values():
            if definition.model.id != model.id or definition.name not in existing:
                continue
            if len(self._txn.open_table(definition.name)) == 0:
                continue
            if source is not None:
                raise DatabaseError(
                    f"Impossible to migrate the table {target_name} "
                    f"because the table {definition.name} has data"
                )
            source = definition

        if source is None or source.name == target_name:
            return

        for output in self.concrete_primary_drain(source.model):
            item = decode_item(model_cls, output.data)
            self.concrete_insert(model, to_input(item))