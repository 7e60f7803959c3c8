from dataclasses import dataclass

import pytest

from modeldb.errors import SecondaryKeyConstraintMismatch, TableDefinitionNotFound
from modeldb.internal import (
    InternalRTransaction,
    InternalRwTransaction,
    PrimaryTableDefinition,
)
from modeldb.model import KeyOptions, model_of, native_db, to_input
from modeldb.query.get import Drain, Get, Len
from modeldb.storage import Storage


@native_db(
    id=1,
    version=1,
    primary_key="id",
    secondary_keys=[("name", KeyOptions(unique=True)), "tag"],
)
@dataclass
class Item:
    id: int
    name: str
    tag: str


@native_db(id=2, version=1, primary_key="id")
@dataclass
class Undefined:
    id: int


def _definitions():
    model = model_of(Item)
    return {model.primary_key.unique_table_name: PrimaryTableDefinition(model)}


@pytest.fixture
def storage():
    return Storage()


def _insert(storage, definitions, *items):
    internal = InternalRwTransaction(storage.begin_write(), definitions)
    for item in items:
        internal.concrete_insert(model_of(Item), to_input(item))
    internal.commit()


def _reader(storage, definitions):
    return InternalRTransaction(storage.begin_read(), definitions)


def test_get_primary_returns_inserted_item(storage):
    definitions = _definitions()
    item = Item(1, "test", "a")
    _insert(storage, definitions, item)
    assert Get(_reader(storage, definitions)).primary(Item, 1) == item


def test_get_primary_missing_returns_none(storage):
    definitions = _definitions()
    _insert(storage, definitions, Item(1, "test", "a"))
    assert Get(_reader(storage, definitions)).primary(Item, 2) is None


def test_get_secondary_unique_key(storage):
    definitions = _definitions()
    item = Item(1, "test", "a")
    _insert(storage, definitions, item, Item(2, "other", "a"))
    get = Get(_reader(storage, definitions))
    assert get.secondary(Item, "name", "test") == item
    assert get.secondary(Item, model_of(Item).key("name"), "test") == item


def test_get_secondary_missing_returns_none(storage):
    definitions = _definitions()
    _insert(storage, definitions, Item(1, "test", "a"))
    assert Get(_reader(storage, definitions)).secondary(Item, "name", "nope") is None


def test_get_secondary_on_non_unique_key_raises(storage):
    definitions = _definitions()
    _insert(storage, definitions, Item(1, "test", "a"))
    with pytest.raises(SecondaryKeyConstraintMismatch):
        Get(_reader(storage, definitions)).secondary(Item, "tag", "a")


def test_get_in_write_transaction_sees_uncommitted(storage):
    definitions = _definitions()
    internal = InternalRwTransaction(storage.begin_write(), definitions)
    item = Item(7, "seven", "x")
    internal.concrete_insert(model_of(Item), to_input(item))
    assert Get(internal).primary(Item, 7) == item
    internal.abort()
    assert Get(_reader(storage, definitions)).primary(Item, 7) is None


def test_get_undefined_model_raises(storage):
    definitions = _definitions()
    with pytest.raises(TableDefinitionNotFound):
        Get(_reader(storage, definitions)).primary(Undefined, 1)


def test_len_counts_items(storage):
    definitions = _definitions()
    assert Len(_reader(storage, definitions)).primary(Item) == 0
    _insert(storage, definitions, Item(1, "test", "a"))
    assert Len(_reader(storage, definitions)).primary(Item) == 1
    _insert(storage, definitions, Item(2, "test2", "a"))
    assert Len(_reader(storage, definitions)).primary(Item) == 2


def test_drain_returns_items_in_order_and_empties_tables(storage):
    definitions = _definitions()
    items = [Item(3, "c", "x"), Item(1, "a", "x"), Item(2, "b", "y")]
    _insert(storage, definitions, *items)

    internal = InternalRwTransaction(storage.begin_write(), definitions)
    drained = Drain(internal).primary(Item)
    assert drained == sorted(items, key=lambda item: item.id)
    assert Len(internal).primary(Item) == 0
    model = model_of(Item)
    assert len(internal.get_secondary_table(model, "name")) == 0
    assert len(internal.get_secondary_table(model, "tag")) == 0
    internal.commit()

    reader = _reader(storage, definitions)
    assert Len(reader).primary(Item) == 0
    assert Get(reader).secondary(Item, "name", "a") is None


def test_drain_empty_table_returns_empty_list(storage):
    definitions = _definitions()
    internal = InternalRwTransaction(storage.begin_write(), definitions)
    assert Drain(internal).primary(Item) == []