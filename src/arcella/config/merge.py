"""
Merge Engine: folds an ordered sequence of layers into one tree.

Layers are merged in processing order: embedded default, primary file,
then every included file in depth-first include order. For each leaf
key path written by a layer:

1. A trailing `#redef` marker is stripped; its presence means "leave
   this key unlocked after my write".
2. Include-origin layers may only write keys that the embedded default
   defines, or keys inside an open namespace (arcella.custom,
   arcella.modules). Other writes are dropped silently.
3. The first write to a key stores the value and locks the key, unless
   it carried the marker.
4. A write to an unlocked key replaces the value and re-evaluates the
   lock the same way.
5. A write to a locked key is discarded and a BlockedOverride warning
   is recorded.

The result is first-write-wins with an explicit, auditable escape hatch.
"""

from __future__ import annotations

import collections.abc as _abc
import dataclasses as _dataclasses
import enum as _enum
import logging as _logging
import typing as _typing

import arcella.config.layers as layers
import arcella.config.sink as sink_module
import arcella.config.value as value
import arcella.constants as constants

_logger = _logging.getLogger(__name__)


class LockState(_enum.Enum):
    """Whether the next write to a key is honored."""

    LOCKED = "locked"
    UNLOCKED = "unlocked"


def split_marker(key_path: str) -> tuple[str, bool]:
    """
    Strip the unlock marker from the last segment of a key path.

    Returns:
        (bare key path, whether the marker was present).

    Example:
        >>> split_marker("arcella.log.level#redef")
        ('arcella.log.level', True)
    """
    last = key_path.rsplit(".", 1)[-1]
    if last.endswith(constants.REDEF_SUFFIX) and last != constants.REDEF_SUFFIX:
        return key_path[: -len(constants.REDEF_SUFFIX)], True
    return key_path, False


class LockTable(_abc.Mapping[str, LockState]):
    """
    Lock state per bare key path, in order of first write.

    Read-only to callers; the MergeEngine is the only writer.
    """

    __slots__ = ("_states",)

    def __init__(self, states: _abc.Mapping[str, LockState] | None = None) -> None:
        self._states: dict[str, LockState] = dict(states) if states else {}

    def __getitem__(self, key: str) -> LockState:
        return self._states[key]

    def __iter__(self) -> _typing.Iterator[str]:
        return iter(self._states)

    def __len__(self) -> int:
        return len(self._states)

    def __repr__(self) -> str:
        return f"LockTable({self._states!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, _abc.Mapping):
            return dict(self) == dict(other)
        return NotImplemented

    def state(self, key_path: str) -> LockState | None:
        return self._states.get(key_path)

    def is_locked(self, key_path: str) -> bool:
        return self._states.get(key_path) is LockState.LOCKED

    def as_dict(self) -> dict[str, str]:
        """Plain {key path: "locked"|"unlocked"} for display."""
        return {k: s.value for k, s in self._states.items()}

    def _set(self, key_path: str, state: LockState) -> None:
        self._states[key_path] = state


class NamespacePolicy:
    """
    Decides which keys an include-origin layer may write.

    The schema is the set of bare key paths defined by the embedded
    default. Open namespaces match whole segments: `arcella.custom.x`
    is open, `arcella.customer.x` is not. Default and primary layers are
    exempt.
    """

    def __init__(
        self,
        schema_keys: _abc.Iterable[str],
        open_namespaces: _abc.Iterable[str] = constants.OPEN_NAMESPACES,
    ) -> None:
        self._schema = frozenset(schema_keys)
        self._open = tuple(open_namespaces)

    @classmethod
    def from_default_layer(
        cls,
        layer: layers.Layer,
        *,
        prefix: str = constants.KEY_PREFIX,
        open_namespaces: _abc.Iterable[str] = constants.OPEN_NAMESPACES,
    ) -> NamespacePolicy:
        keys = (split_marker(k)[0] for k, _ in value.flatten(layer.tree, prefix))
        return cls(keys, open_namespaces)

    @property
    def schema_keys(self) -> frozenset[str]:
        return self._schema

    @property
    def open_namespaces(self) -> tuple[str, ...]:
        return self._open

    def is_open(self, key_path: str) -> bool:
        return any(value.is_within(key_path, ns) for ns in self._open)

    def allows(self, key_path: str, origin: layers.LayerOrigin) -> bool:
        if origin.kind is not layers.OriginKind.INCLUDE:
            return True
        return key_path in self._schema or self.is_open(key_path)


@_dataclasses.dataclass(frozen=True)
class MergeResult:
    """Outcome of a merge: final tree, lock states and diagnostics."""

    tree: value.Table
    locks: LockTable
    warnings: tuple[sink_module.LoadWarning, ...]
    provenance: _abc.Mapping[str, layers.LayerOrigin]

    def get(self, key_path: str, default: value.Value | None = None) -> value.Value | None:
        found = value.lookup(self.tree, key_path)
        return default if found is None else found


class MergeEngine:
    """
    Accumulates layers under the lock protocol.

    Usage:
        engine = MergeEngine()
        engine.merge(default_layer)   # establishes schema and lock states
        engine.merge(primary_layer)
        for layer in included_layers:
            engine.merge(layer)
        result = engine.result()
    """

    def __init__(
        self,
        policy: NamespacePolicy | None = None,
        *,
        warnings: sink_module.WarningSink | None = None,
        prefix: str = constants.KEY_PREFIX,
    ) -> None:
        self._policy = policy
        self._warnings = warnings if warnings is not None else sink_module.WarningSink()
        self._prefix = prefix
        self._values: dict[str, value.Value] = {}
        self._locks = LockTable()
        self._provenance: dict[str, layers.LayerOrigin] = {}
        # Strict prefixes of every stored key, for shape conflict checks
        self._table_paths: set[str] = set()
        self._merged: list[layers.LayerOrigin] = []

    @property
    def warnings(self) -> sink_module.WarningSink:
        return self._warnings

    @property
    def policy(self) -> NamespacePolicy | None:
        return self._policy

    @property
    def merged_origins(self) -> tuple[layers.LayerOrigin, ...]:
        """Origins of merged layers, in processing order."""
        return tuple(self._merged)

    def merge(self, layer: layers.Layer) -> None:
        """Merge one layer on top of everything merged so far."""
        if self._policy is None:
            if layer.origin.kind is layers.OriginKind.DEFAULT:
                self._policy = NamespacePolicy.from_default_layer(layer, prefix=self._prefix)
            else:
                # No default merged: only open namespaces are addressable by includes
                self._policy = NamespacePolicy(())

        for raw_key, new_value in value.flatten(layer.tree, self._prefix):
            self._write(raw_key, new_value, layer.origin)
        self._merged.append(layer.origin)

    def _write(
        self,
        raw_key: str,
        new_value: value.Value,
        origin: layers.LayerOrigin,
    ) -> None:
        assert self._policy is not None
        bare, declares_unlock = split_marker(raw_key)

        if not self._policy.allows(bare, origin):
            _logger.debug("Ignoring '%s' from %s: outside schema", bare, origin)
            return

        conflict = self._find_shape_conflict(bare)
        if conflict is not None:
            self._warnings.append(
                sink_module.ShapeConflict(bare, origin, new_value, conflict)
            )
            return

        state = self._locks.get(bare)
        if state is LockState.LOCKED:
            self._warnings.append(
                sink_module.BlockedOverride(
                    key_path=bare,
                    origin=origin,
                    attempted=new_value,
                    retained=self._values[bare],
                    locked_by=self._provenance.get(bare),
                )
            )
            return

        self._values[bare] = new_value
        self._provenance[bare] = origin
        self._locks._set(bare, LockState.UNLOCKED if declares_unlock else LockState.LOCKED)
        segments = value.split_key_path(bare)
        for i in range(1, len(segments)):
            self._table_paths.add(".".join(segments[:i]))

    def _find_shape_conflict(self, bare: str) -> str | None:
        """Return an existing key that makes `bare` both a table and a leaf."""
        if bare in self._table_paths:
            for existing in self._values:
                if existing.startswith(bare + "."):
                    return existing
        segments = value.split_key_path(bare)
        for i in range(1, len(segments)):
            prefix = ".".join(segments[:i])
            if prefix in self._values:
                return prefix
        return None

    def result(self) -> MergeResult:
        """Freeze the accumulator into a MergeResult."""
        return MergeResult(
            tree=value.unflatten(self._values.items()),
            locks=LockTable(self._locks),
            warnings=self._warnings.snapshot(),
            provenance=dict(self._provenance),
        )


def merge_layers(
    ordered_layers: _abc.Iterable[layers.Layer],
    policy: NamespacePolicy | None = None,
    *,
    warnings: sink_module.WarningSink | None = None,
) -> MergeResult:
    """
    Merge layers in the given order.

    Without an explicit policy, the first DEFAULT-origin layer defines
    the schema, so it should come first.
    """
    engine = MergeEngine(policy, warnings=warnings)
    for layer in ordered_layers:
        engine.merge(layer)
    return engine.result()
