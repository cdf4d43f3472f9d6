"""
Value Tree: the in-memory representation of parsed configuration.

A configuration value is one of six variants:

- String, Integer, Float, Boolean: leaf scalars
- Array: an ordered tuple of values (always a leaf for merging)
- Table: a read-only mapping of key → value

Every variant is a frozen dataclass, so a tree is immutable once built.
Tables wrap their entries in a FrozenTable, a read-only Mapping view.

Example:
    >>> tree = from_python({"log": {"level": "info", "targets": ["file"]}})
    >>> lookup(tree, "log.level")
    String(value='info')
    >>> list(flatten(tree, "arcella"))
    [('arcella.log.level', String(value='info')),
     ('arcella.log.targets', Array(items=(String(value='file'),)))]
"""

from __future__ import annotations

import collections.abc as _abc
import dataclasses as _dataclasses
import typing as _typing


class UnsupportedValueError(TypeError):
    """Raised when a parsed object has no Value variant (e.g. a TOML datetime)."""

    def __init__(self, key_path: str, type_name: str) -> None:
        self.key_path = key_path
        self.type_name = type_name
        super().__init__(f"unsupported value type '{type_name}' at '{key_path}'")


class FrozenTable(_abc.Mapping[str, "Value"]):
    """
    Read-only mapping of key → Value.

    Values are themselves immutable, so unlike a plain read-only view the
    whole structure is frozen. FrozenTables compare equal to any Mapping
    with the same content and are hashable.
    """

    __slots__ = ("_data",)

    def __init__(self, data: _abc.Mapping[str, Value] | None = None) -> None:
        self._data: dict[str, Value] = dict(data) if data else {}

    def __getitem__(self, key: str) -> Value:
        return self._data[key]

    def __iter__(self) -> _typing.Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"FrozenTable({self._data!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, _abc.Mapping):
            return dict(self) == dict(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(frozenset(self._data.items()))


@_dataclasses.dataclass(frozen=True, slots=True)
class String:
    """A string leaf."""

    value: str


@_dataclasses.dataclass(frozen=True, slots=True)
class Integer:
    """An integer leaf."""

    value: int


@_dataclasses.dataclass(frozen=True, slots=True)
class Float:
    """A floating point leaf."""

    value: float


@_dataclasses.dataclass(frozen=True, slots=True)
class Boolean:
    """A boolean leaf."""

    value: bool


@_dataclasses.dataclass(frozen=True, slots=True)
class Array:
    """An ordered sequence of values. Merged as a single leaf."""

    items: tuple[Value, ...] = ()


@_dataclasses.dataclass(frozen=True, slots=True)
class Table:
    """A mapping of key → value."""

    entries: FrozenTable = _dataclasses.field(default_factory=FrozenTable)

    def __post_init__(self) -> None:
        if not isinstance(self.entries, FrozenTable):
            object.__setattr__(self, "entries", FrozenTable(self.entries))


Value: _typing.TypeAlias = "String | Integer | Float | Boolean | Array | Table"

Scalar: _typing.TypeAlias = "String | Integer | Float | Boolean"


def is_leaf(value: Value) -> bool:
    """Return True for every variant except Table."""
    return not isinstance(value, Table)


def type_name(value: Value) -> str:
    """Short lowercase name of the variant, used in diagnostics."""
    return type(value).__name__.lower()


# =============================================================================
# Conversion from / to plain Python objects
# =============================================================================


def from_python(obj: _typing.Any, key_path: str = "") -> Value:
    """
    Convert a parsed object tree (as produced by tomllib) into Values.

    Args:
        obj: A dict, list, str, int, float or bool (nested arbitrarily).
        key_path: Path of obj within its document, for error messages.

    Returns:
        The equivalent Value.

    Raises:
        UnsupportedValueError: If obj (or anything nested in it) has no
            Value variant, e.g. TOML dates and times.
    """
    # bool is a subclass of int; check it first
    if isinstance(obj, bool):
        return Boolean(obj)
    if isinstance(obj, int):
        return Integer(obj)
    if isinstance(obj, float):
        return Float(obj)
    if isinstance(obj, str):
        return String(obj)
    if isinstance(obj, _abc.Mapping):
        return Table(
            FrozenTable(
                {str(k): from_python(v, join_key_path(key_path, str(k))) for k, v in obj.items()}
            )
        )
    if isinstance(obj, (list, tuple)):
        return Array(
            tuple(from_python(item, f"{key_path}[{i}]") for i, item in enumerate(obj))
        )
    raise UnsupportedValueError(key_path or "<root>", type(obj).__name__)


def to_python(value: Value) -> _typing.Any:
    """Convert a Value back into plain dicts, lists and scalars."""
    if isinstance(value, Table):
        return {k: to_python(v) for k, v in value.entries.items()}
    if isinstance(value, Array):
        return [to_python(item) for item in value.items]
    if isinstance(value, (String, Integer, Float, Boolean)):
        return value.value
    raise TypeError(f"Unknown Value type: {type(value).__name__}")


# =============================================================================
# Key paths
# =============================================================================


def join_key_path(*parts: str) -> str:
    """Join key path segments with dots, skipping empty segments."""
    return ".".join(p for p in parts if p)


def split_key_path(key_path: str) -> tuple[str, ...]:
    """Split a dotted key path into its segments."""
    if not key_path:
        return ()
    return tuple(key_path.split("."))


def is_within(key_path: str, namespace: str) -> bool:
    """True if key_path equals namespace or lies below it (segment-wise)."""
    return key_path == namespace or key_path.startswith(namespace + ".")


def flatten(table: Table, prefix: str = "") -> _typing.Iterator[tuple[str, Value]]:
    """
    Yield (key path, leaf value) pairs depth-first in table order.

    Arrays are leaves. Empty tables yield nothing.
    """
    for key, value in table.entries.items():
        path = join_key_path(prefix, key)
        if isinstance(value, Table):
            yield from flatten(value, path)
        else:
            yield path, value


def unflatten(pairs: _abc.Iterable[tuple[str, Value]]) -> Table:
    """
    Build a nested Table from (key path, leaf value) pairs.

    Raises:
        ValueError: If one key path is a prefix of another leaf's path.
    """
    root: dict[str, _typing.Any] = {}
    for key_path, value in pairs:
        segments = split_key_path(key_path)
        node = root
        for segment in segments[:-1]:
            child = node.setdefault(segment, {})
            if not isinstance(child, dict):
                raise ValueError(f"'{key_path}' conflicts with an existing leaf")
            node = child
        if segments[-1] in node and isinstance(node[segments[-1]], dict):
            raise ValueError(f"'{key_path}' conflicts with an existing table")
        node[segments[-1]] = value
    return _freeze_nested(root)


def _freeze_nested(node: dict[str, _typing.Any]) -> Table:
    """Turn the nested dicts built by unflatten into Tables."""
    return Table(
        FrozenTable(
            {k: _freeze_nested(v) if isinstance(v, dict) else v for k, v in node.items()}
        )
    )


def lookup(table: Table, key_path: str) -> Value | None:
    """Return the value at key_path, or None if any segment is missing."""
    node: Value = table
    for segment in split_key_path(key_path):
        if not isinstance(node, Table) or segment not in node.entries:
            return None
        node = node.entries[segment]
    return node
