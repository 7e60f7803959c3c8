"""Model declarations, key encoding and item serialization."""

from __future__ import annotations

import dataclasses
import datetime
import inspect
import pickle
import struct
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

import msgpack

from .errors import (
    DatabaseError,
    SecondaryKeyConstraintMismatch,
    TableDefinitionNotFound,
)

_MODEL_ATTR = "__native_db_model__"
_PICKLE_EXT = 1
_INT_BIAS = 1 << 63
_SIGN_BIT = 1 << 63
_ALL_BITS = (1 << 64) - 1


@dataclass(frozen=True, order=True)
class Key:
    """Raw bytes of a key; keys order by their bytes."""

    data: bytes

    def __post_init__(self) -> None:
        if not isinstance(self.data, bytes):
            object.__setattr__(self, "data", bytes(self.data))

    def starts_with(self, prefix: Any) -> bool:
        """Whether this key begins with the bytes of ``prefix``."""
        return self.data.startswith(to_key(prefix).data)

    def __bytes__(self) -> bytes:
        return self.data


def _float_key(value: float) -> bytes:
    (bits,) = struct.unpack(">Q", struct.pack(">d", value))
    bits = bits ^ _ALL_BITS if bits & _SIGN_BIT else bits | _SIGN_BIT
    return bits.to_bytes(8, "big")


def to_key(value: Any) -> Key:
    """Convert a value to a key whose byte order follows the value's order.

    Integers are stored as 8 bytes and must fit in a signed 64-bit range.
    Objects may provide their own ``to_key()`` method.
    """
    if isinstance(value, Key):
        return value
    custom = getattr(value, "to_key", None)
    if callable(custom) and not isinstance(value, type):
        return to_key(custom())
    if isinstance(value, (bytes, bytearray, memoryview)):
        return Key(bytes(value))
    if isinstance(value, str):
        return Key(value.encode("utf-8"))
    if isinstance(value, bool):
        return Key(b"\x01" if value else b"\x00")
    if isinstance(value, int):
        try:
            return Key((value + _INT_BIAS).to_bytes(8, "big"))
        except OverflowError:
            raise OverflowError(f"integer key out of range: {value}") from None
    if isinstance(value, float):
        return Key(_float_key(value))
    if isinstance(value, uuid.UUID):
        return Key(value.bytes)
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return Key(value.isoformat().encode("ascii"))
    if isinstance(value, tuple):
        return Key(b"".join(to_key(part).data for part in value))
    raise TypeError(f"cannot use {type(value).__name__} as a key")


@dataclass(frozen=True)
class KeyOptions:
    """Constraints of a secondary key."""

    unique: bool = False
    optional: bool = False


@dataclass(frozen=True)
class KeyDefinition:
    """A key of a model, identified by the name of its table."""

    unique_table_name: str
    name: str = field(compare=False)
    options: KeyOptions = field(default_factory=KeyOptions, compare=False)


@dataclass(frozen=True)
class KeyEntry:
    """The value of a secondary key for one item; optional keys may be unset."""

    value: Key | None
    optional: bool = False


@dataclass(frozen=True)
class Model:
    """What the database knows about a model class."""

    cls: type
    id: int
    version: int
    primary_key: KeyDefinition
    secondary_keys: tuple[KeyDefinition, ...] = ()
    from_model: type | None = None

    def key(self, name: str) -> KeyDefinition:
        """The secondary key definition with the given field or method name."""
        for key_def in self.secondary_keys:
            if key_def.name == name:
                return key_def
        raise KeyError(name)

    def check_secondary_options(
        self, key_def: KeyDefinition, predicate: Callable[[KeyOptions], bool]
    ) -> KeyOptions:
        """Return the options of ``key_def`` if they satisfy ``predicate``."""
        for known in self.secondary_keys:
            if known == key_def:
                if not predicate(known.options):
                    raise SecondaryKeyConstraintMismatch(known.unique_table_name)
                return known.options
        raise TableDefinitionNotFound(key_def.unique_table_name)


@dataclass
class DatabaseInput:
    """An item prepared for storage: its keys and its encoded value."""

    primary_key: Key
    secondary_keys: dict[KeyDefinition, KeyEntry]
    value: bytes

    def secondary_key_value(self, key_def: KeyDefinition) -> KeyEntry:
        """The entry of the given secondary key."""
        try:
            return self.secondary_keys[key_def]
        except KeyError:
            raise TableDefinitionNotFound(key_def.unique_table_name) from None


@dataclass(frozen=True)
class Output:
    """An encoded item read from the database."""

    data: bytes

    def inner(self, model_cls: type) -> Any:
        """Decode the item as an instance of ``model_cls``."""
        return decode_item(model_cls, self.data)


def _secondary_definition(prefix: str, spec: Any) -> KeyDefinition:
    if isinstance(spec, str):
        name, options = spec, KeyOptions()
    else:
        name, options = spec
        if not isinstance(options, KeyOptions):
            raise TypeError("secondary key options must be KeyOptions")
    return KeyDefinition(prefix + name, name, options)


def native_db(
    *,
    id: int,
    version: int,
    primary_key: str,
    secondary_keys: Iterable[Any] = (),
    from_model: type | None = None,
) -> Callable[[type], type]:
    """Class decorator declaring a database model.

    ``primary_key`` and each secondary key name a field or a method.  A
    secondary key is a name or a ``(name, KeyOptions)`` pair.  A model with
    ``from_model`` must define the class method ``from_previous(old)``.
    """
    specs = list(secondary_keys)

    def decorate(cls: type) -> type:
        if from_model is not None:
            previous = model_of(from_model)
            if previous.id != id or previous.version >= version:
                raise ValueError(
                    "from_model must have the same id and an older version"
                )
            if not callable(getattr(cls, "from_previous", None)):
                raise TypeError(f"{cls.__qualname__} must define from_previous()")
        prefix = f"{id}_{version}_"
        primary = KeyDefinition(prefix + primary_key, primary_key, KeyOptions(unique=True))
        secondary = tuple(_secondary_definition(prefix, spec) for spec in specs)
        names = [key_def.name for key_def in secondary]
        if len(set(names)) != len(names) or primary_key in names:
            raise ValueError(f"duplicate key names in {cls.__qualname__}")
        setattr(cls, _MODEL_ATTR, Model(cls, id, version, primary, secondary, from_model))
        return cls

    return decorate


def model_of(model_cls: Any) -> Model:
    """The model declared on a class (or on the class of an instance)."""
    cls = model_cls if isinstance(model_cls, type) else type(model_cls)
    model = vars(cls).get(_MODEL_ATTR)
    if model is None:
        raise TypeError(f"{cls.__qualname__} is not a database model")
    return model


def _extract(item: Any, name: str) -> Any:
    value = getattr(item, name)
    return value() if inspect.ismethod(value) else value


def to_input(item: Any) -> DatabaseInput:
    """Compute the keys of an item and encode it."""
    model = model_of(type(item))
    primary = to_key(_extract(item, model.primary_key.name))
    secondary: dict[KeyDefinition, KeyEntry] = {}
    for key_def in model.secondary_keys:
        raw = _extract(item, key_def.name)
        if key_def.options.optional:
            secondary[key_def] = KeyEntry(None if raw is None else to_key(raw), optional=True)
        else:
            secondary[key_def] = KeyEntry(to_key(raw))
    return DatabaseInput(primary, secondary, encode_item(item))


def _state_of(item: Any) -> dict[str, Any]:
    if dataclasses.is_dataclass(item):
        return {f.name: getattr(item, f.name) for f in dataclasses.fields(item)}
    try:
        return dict(vars(item))
    except TypeError:
        raise TypeError(f"cannot encode {type(item).__qualname__}") from None


def _pack_default(obj: Any) -> msgpack.ExtType:
    return msgpack.ExtType(_PICKLE_EXT, pickle.dumps(obj))


def _unpack_ext(code: int, data: bytes) -> Any:
    if code == _PICKLE_EXT:
        return pickle.loads(data)
    return msgpack.ExtType(code, data)


def encode_item(item: Any) -> bytes:
    """Encode an item together with its model id and version."""
    model = model_of(type(item))
    return msgpack.packb(
        [model.id, model.version, _state_of(item)],
        default=_pack_default,
        use_bin_type=True,
    )


def _build(cls: type, state: Any) -> Any:
    if not isinstance(state, dict):
        raise DatabaseError("invalid encoded item state")
    obj = cls.__new__(cls)
    for name, value in state.items():
        object.__setattr__(obj, name, value)
    return obj


def decode_item(model_cls: type, data: bytes) -> Any:
    """Decode an item as ``model_cls``, upgrading it from an older version."""
    try:
        header = msgpack.unpackb(
            data, ext_hook=_unpack_ext, raw=False, strict_map_key=False
        )
        model_id, version, state = header
    except (ValueError, TypeError, pickle.UnpicklingError,
            msgpack.exceptions.UnpackException) as exc:
        raise DatabaseError("invalid encoded item") from exc
    target = model_of(model_cls)
    if model_id != target.id:
        raise DatabaseError(
            f"item of model {model_id} cannot be decoded as model {target.id}"
        )
    chain = [model_cls]
    current = target
    while current.version != version:
        if current.from_model is None or current.version < version:
            raise DatabaseError(
                f"no conversion from version {version} to version {target.version}"
            )
        chain.append(current.from_model)
        current = model_of(current.from_model)
    item = _build(chain[-1], state)
    for newer in reversed(chain[:-1]):
        item = newer.from_previous(item)
    return item