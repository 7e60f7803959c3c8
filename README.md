# modeldb

An embedded database for typed Python models. Each model has a primary key
and any number of secondary keys (unique or not, required or optional).
Data is read and written through transactions, and committed changes can be
watched as a stream of events.

## Installation

```
pip install .
```

## Defining models

Decorate a class, usually a dataclass, with `modeldb.model.native_db`. Give it
a model id, a version and its keys. A key names either a field or a method
that returns the key value. A secondary key is a name, or a `(name, KeyOptions)`
pair.

```python
from dataclasses import dataclass
from modeldb.model import KeyOptions, native_db

@native_db(
    id=1,
    version=1,
    primary_key="id",
    secondary_keys=[("name", KeyOptions(unique=True)), "city"],
)
@dataclass
class Item:
    id: int
    name: str
    city: str
```

`KeyOptions(optional=True)` marks a secondary key whose value may be `None`.
Items that have no value for such a key are not indexed under it.

Key values are converted by `modeldb.model.to_key`. It accepts `str`, `bytes`,
`bool`, `int` (signed 64-bit range), `float`, `uuid.UUID`, dates and times, and
tuples of these. Any object that has a `to_key()` method is also accepted.
Keys sort by their encoded bytes.

Each table is named `<id>_<version>_<key name>`, for example `1_1_id` and `1_1_name`.

## Opening a database

```python
from modeldb.database import DatabaseBuilder

builder = DatabaseBuilder()
builder.define(Item)
db = builder.create_in_memory()
```

- `builder.create(path)` opens the file at `path`, or creates it if it does not exist.
- `builder.open(path)` opens an existing file and raises
  `modeldb.errors.DatabaseNotFound` if the file is missing.

A file-backed database rewrites the whole file on every commit.

## Writing

```python
rw = db.rw_transaction()
rw.insert(Item(id=1, name="test", city="Paris"))
rw.commit()          # or rw.abort()
```

An `RwTransaction` can also be used as a context manager. On exit it is aborted
unless it was committed.

`RwTransaction` offers these methods:

- `insert(item)` raises `DuplicateKey` when a unique secondary key is already taken.
- `remove(item)` returns the removed item.
- `update(old, new)` replaces an item, with all of its keys.
- `drain().primary(Model)` removes every item of a model and returns those items.
- `convert_all(OldModel, NewModel, convert)` replaces every `OldModel` item
  with `convert(item)`. It sends no watch events.
- `migrate(Model)` moves data from an older version of the model into `Model`.

## Reading

```python
r = db.r_transaction()
item = r.get().primary(Item, 1)
same = r.get().secondary(Item, "name", "test")
count = r.len().primary(Item)
everything = list(r.scan().primary(Item).all())
some = list(r.scan().primary(Item).range(1, 10, inclusive_stop=True))
in_paris = list(r.scan().secondary(Item, "city").start_with("Par"))
```

- `get().secondary` works only on unique keys. For other keys it raises
  `SecondaryKeyConstraintMismatch`; use a scan instead.
- Scans take `reverse=True` in `all()` and `range()`.
- A read transaction sees the database as it was when the transaction began.

## Versions and migration

A newer version of a model keeps the same `id` and declares
`from_model=OlderModel`. It must also define a class method
`from_previous(old)`, which builds the newer item from the older one. Stored
items of older versions are decoded through this chain.

Define every version with the builder, then call `rw.migrate(NewestModel)`.
Calling `migrate` with an older version raises `MigrateLegacyModel`.

## Watching changes

```python
receiver, watcher_id = db.watch().get().primary(Item, 1)
# ... commit a transaction that touches Item 1 ...
event = receiver.try_recv()   # Insert, Update or Delete; queue.Empty if none
item = event.inner(Item)      # Update has inner_old / inner_new
db.unwatch(watcher_id)
```

These watches are available:

- `watch().get().primary` and `watch().get().secondary` for one key value.
- `watch().scan().primary()` with `.all()` or `.start_with()`.
- `watch().scan().secondary(key)` with `.all()` or `.start_with()`.

Events are delivered only after a transaction commits. A receiver that has
been closed with `close()` is dropped at the next delivery.

## Statistics

`db.stats()` returns a `Stats` object with `primary_tables` and
`secondary_tables`. Each entry is a `TableStats(name, n_entries)`, and entries
are sorted by name.

## Limitations

- There is no command-line tool and no server; the database is used as a library.
- Watchers cannot be limited to a key range, only to a key, a prefix or all items.
- Counting by secondary key and draining by secondary key are not provided.
- `set_cache_size` only records the value; it has no effect on storage.
- Values that MessagePack cannot hold are stored with `pickle`. Open only
  database files you trust.
- The storage file format is specific to this package.

## Running the tests

```
pip install .[test]
pytest
```