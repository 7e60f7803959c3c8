from __future__ import annotations

from dataclasses import dataclass

import pytest

from modeldb.errors import (
    DuplicateKey,
    MigrateLegacyModel,
    PrimaryKeyNotFound,
    SecondaryKeyConstraintMismatch,
    TableDefinitionNotFound,
)
from modeldb.internal import (
    InternalRTransaction,
    InternalRwTransaction,
    PrimaryTableDefinition,
)
from modeldb.model import KeyOptions, model_of, native_db, to_input, to_key
from modeldb.storage import Storage


@native_db(
    id=1, version=1, primary_key="id", secondary_keys=[("name", KeyOptions(unique=True))]
)
@dataclass
class Person:
    id: int
    name: str


@native_db(
    id=2,
    version=1,
    primary_key="id",
    secondary_keys=["tag", ("nick", KeyOptions(unique=True, optional=True))],
)
@dataclass
class Note:
    id: int
    tag: str
    nick: str | None = None


@native_db(id=3, version=1, primary_key="id", secondary_keys=["name"])
@dataclass
class RecordV1:
    id: int
    name: str


@native_db(
    id=3,
    version=2,
    primary_key="id",
    secondary_keys=[("first", KeyOptions(unique=True))],
    from_model=RecordV1,
)
@dataclass
class RecordV2:
    id: int
    first: str
    last: str

    @classmethod
    def from_previous(cls, old):
        first, _, last = old.name.partition(" ")
        return cls(old.id, first, last)


def _definitions(*classes, legacy=()):
    return {
        model_of(cls).primary_key.unique_table_name: PrimaryTableDefinition(
            model_of(cls), cls in legacy
        )
        for cls in classes
    }


DEFS = _definitions(Person, Note)


def _insert(storage, defs, *items):
    rw = InternalRwTransaction(storage.begin_write(), defs)
    for item in items:
        rw.concrete_insert(model_of(item), to_input(item))
    rw.commit()


def _reader(storage, defs=DEFS):
    return InternalRTransaction(storage.begin_read(), defs)


def test_get_by_primary_key():
    storage = Storage()
    person = Person(1, "Ada")
    _insert(storage, DEFS, person)
    r = _reader(storage)
    assert r.get_by_primary_key(Person, 1).inner(Person) == person
    assert r.get_by_primary_key(Person, 2) is None
    assert r.primary_len(Person) == 1


def test_get_by_unique_secondary_key():
    storage = Storage()
    person = Person(1, "Ada")
    _insert(storage, DEFS, person)
    r = _reader(storage)
    assert r.get_by_secondary_key(Person, "name", "Ada").inner(Person) == person
    key_def = model_of(Person).key("name")
    assert r.get_by_secondary_key(Person, key_def, "Ada").inner(Person) == person
    assert r.get_by_secondary_key(Person, "name", "Bob") is None


def test_duplicate_unique_secondary_key():
    storage = Storage()
    rw = InternalRwTransaction(storage.begin_write(), DEFS)
    rw.concrete_insert(model_of(Person), to_input(Person(1, "Ada")))
    with pytest.raises(DuplicateKey) as info:
        rw.concrete_insert(model_of(Person), to_input(Person(2, "Ada")))
    assert info.value.key_name == model_of(Person).key("name").unique_table_name


def test_reinserting_same_item_is_allowed():
    storage = Storage()
    rw = InternalRwTransaction(storage.begin_write(), DEFS)
    rw.concrete_insert(model_of(Person), to_input(Person(1, "Ada")))
    rw.concrete_insert(model_of(Person), to_input(Person(1, "Ada")))
    assert rw.primary_len(Person) == 1
    assert len(rw.get_secondary_table(Person, "name")) == 1


def test_non_unique_secondary_key_shared_by_items():
    storage = Storage()
    _insert(storage, DEFS, Note(1, "red"), Note(2, "red"))
    r = _reader(storage)
    assert len(r.get_secondary_table(Note, "tag")) == 2
    with pytest.raises(SecondaryKeyConstraintMismatch):
        r.get_by_secondary_key(Note, "tag", "red")


def test_optional_secondary_key_unset_is_not_stored():
    storage = Storage()
    _insert(storage, DEFS, Note(1, "a", "x"), Note(2, "b", None))
    r = _reader(storage)
    assert len(r.get_secondary_table(Note, "nick")) == 1
    assert r.get_by_secondary_key(Note, "nick", "x").inner(Note) == Note(1, "a", "x")


def test_remove_clears_all_tables():
    storage = Storage()
    person = Person(1, "Ada")
    _insert(storage, DEFS, person, Note(1, "red", "n"))
    rw = InternalRwTransaction(storage.begin_write(), DEFS)
    request, output = rw.concrete_remove(model_of(Person), to_input(person))
    rw.concrete_remove(model_of(Note), to_input(Note(1, "red", "n")))
    rw.commit()
    assert output.inner(Person) == person
    assert request.primary_key == to_key(1)
    r = _reader(storage)
    assert r.primary_len(Person) == 0
    assert len(r.get_secondary_table(Person, "name")) == 0
    assert len(r.get_secondary_table(Note, "tag")) == 0
    assert len(r.get_secondary_table(Note, "nick")) == 0


def test_update_replaces_keys():
    storage = Storage()
    old, new = Person(1, "Ada"), Person(2, "Bob")
    _insert(storage, DEFS, old)
    rw = InternalRwTransaction(storage.begin_write(), DEFS)
    request, old_out, new_out = rw.concrete_update(
        model_of(Person), to_input(old), to_input(new)
    )
    rw.commit()
    assert old_out.inner(Person) == old
    assert new_out.inner(Person) == new
    assert request.primary_key == to_key(2)
    r = _reader(storage)
    assert r.get_by_primary_key(Person, 1) is None
    assert r.get_by_secondary_key(Person, "name", "Ada") is None
    assert r.get_by_secondary_key(Person, "name", "Bob").inner(Person) == new
    assert r.primary_len(Person) == 1


def test_insert_reports_watcher_request():
    storage = Storage()
    rw = InternalRwTransaction(storage.begin_write(), DEFS)
    item = to_input(Person(7, "Ada"))
    request, output = rw.concrete_insert(model_of(Person), item)
    assert request.table_name == model_of(Person).primary_key.unique_table_name
    assert request.primary_key == to_key(7)
    assert request.secondary_keys_value == item.secondary_keys
    assert output.data == item.value


def test_primary_drain_returns_items_and_empties_tables():
    storage = Storage()
    notes = [Note(1, "a", "x"), Note(2, "b"), Note(3, "a", "z")]
    _insert(storage, DEFS, *notes)
    rw = InternalRwTransaction(storage.begin_write(), DEFS)
    drained = rw.concrete_primary_drain(model_of(Note))
    rw.commit()
    assert [out.inner(Note) for out in drained] == notes
    r = _reader(storage)
    assert r.primary_len(Note) == 0
    assert len(r.get_secondary_table(Note, "tag")) == 0
    assert len(r.get_secondary_table(Note, "nick")) == 0


def test_migrate_moves_data_to_latest_version():
    storage = Storage()
    _insert(storage, _definitions(RecordV1), RecordV1(1, "Victor Hugo"), RecordV1(2, "Jules Verne"))
    defs = _definitions(RecordV1, RecordV2, legacy=(RecordV1,))
    rw = InternalRwTransaction(storage.begin_write(), defs)
    rw.migrate(RecordV2)
    rw.commit()
    r = _reader(storage, defs)
    assert r.primary_len(RecordV1) == 0
    assert len(r.get_secondary_table(RecordV1, "name")) == 0
    assert r.primary_len(RecordV2) == 2
    assert r.get_by_secondary_key(RecordV2, "first", "Jules").inner(RecordV2) == RecordV2(
        2, "Jules", "Verne"
    )


def test_migrate_to_legacy_model_fails():
    storage = Storage()
    defs = _definitions(RecordV1, RecordV2, legacy=(RecordV1,))
    rw = InternalRwTransaction(storage.begin_write(), defs)
    with pytest.raises(MigrateLegacyModel):
        rw.migrate(RecordV1)


def test_migrate_without_data_does_nothing():
    storage = Storage()
    defs = _definitions(RecordV1, RecordV2, legacy=(RecordV1,))
    rw = InternalRwTransaction(storage.begin_write(), defs)
    rw.migrate(RecordV2)
    assert rw.primary_len(RecordV2) == 0
    assert rw.primary_len(RecordV1) == 0


def test_undefined_model_raises():
    storage = Storage()
    r = _reader(storage, _definitions(Person))
    with pytest.raises(TableDefinitionNotFound):
        r.get_by_primary_key(Note, 1)
    with pytest.raises(TableDefinitionNotFound):
        r.get_secondary_table(Person, "missing")


def test_abort_discards_inserts():
    storage = Storage()
    rw = InternalRwTransaction(storage.begin_write(), DEFS)
    rw.concrete_insert(model_of(Person), to_input(Person(1, "Ada")))
    rw.abort()
    assert _reader(storage).get_by_primary_key(Person, 1) is None


def test_dangling_secondary_key_raises():
    storage = Storage()
    rw = InternalRwTransaction(storage.begin_write(), DEFS)
    rw.get_secondary_table(Person, "name").insert(to_key("ghost"), to_key(99))
    with pytest.raises(PrimaryKeyNotFound):
        rw.get_by_secondary_key(Person, "name", "ghost")