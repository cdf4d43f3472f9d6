"""
Load warnings and the deferred sink that buffers them.

Configuration is loaded before logging exists, so every non-fatal
diagnostic produced while loading is appended to a WarningSink. The
sink is returned to the caller, which flushes it into the logger once
logging is up, or writes it to stderr and a fallback file if logging
fails to start.
"""

from __future__ import annotations

import abc as _abc
import dataclasses as _dataclasses
import datetime as _datetime
import enum as _enum
import logging as _logging
import pathlib as _pathlib
import sys as _sys
import typing as _typing

import arcella.config.layers as layers
import arcella.config.value as value


class WarningKind(_enum.Enum):
    """Categories of recoverable load conditions."""

    BLOCKED_OVERRIDE = "blocked-override"
    DEPTH_LIMIT_EXCEEDED = "depth-limit-exceeded"
    SKIPPED_INCLUDE = "skipped-include"
    DUPLICATE_INCLUDE = "duplicate-include"
    SHAPE_CONFLICT = "shape-conflict"


def _render(v: value.Value | None) -> str:
    if v is None:
        return "<none>"
    return repr(value.to_python(v))


@_dataclasses.dataclass(frozen=True, slots=True)
class LoadWarning(_abc.ABC):
    """Base class for load warnings. Each variant sets its kind."""

    kind: _typing.ClassVar[WarningKind]

    @property
    @_abc.abstractmethod
    def message(self) -> str: ...

    def __str__(self) -> str:
        return f"[{self.kind.value}] {self.message}"


@_dataclasses.dataclass(frozen=True, slots=True)
class BlockedOverride(LoadWarning):
    """A write to a locked key was discarded."""

    key_path: str
    origin: layers.LayerOrigin
    attempted: value.Value
    retained: value.Value
    locked_by: layers.LayerOrigin | None = None

    kind: _typing.ClassVar[WarningKind] = WarningKind.BLOCKED_OVERRIDE

    @property
    def message(self) -> str:
        msg = (
            f"'{self.key_path}' from {self.origin} ignored: key is locked "
            f"(attempted {_render(self.attempted)}, kept {_render(self.retained)})"
        )
        if self.locked_by is not None:
            msg += f"; add '{self.key_path.rsplit('.', 1)[-1]}#redef' in {self.locked_by} to allow it"
        return msg


@_dataclasses.dataclass(frozen=True, slots=True)
class DepthLimitExceeded(LoadWarning):
    """An include was dropped because the include chain is too deep."""

    path: _pathlib.Path
    included_from: layers.LayerOrigin
    max_depth: int

    kind: _typing.ClassVar[WarningKind] = WarningKind.DEPTH_LIMIT_EXCEEDED

    @property
    def message(self) -> str:
        return (
            f"Maximum include depth ({self.max_depth}) reached: {self.path} "
            f"(included from {self.included_from}) was not loaded"
        )


@_dataclasses.dataclass(frozen=True, slots=True)
class SkippedInclude(LoadWarning):
    """An include entry named a missing or non-source file."""

    entry: str
    path: _pathlib.Path
    included_from: layers.LayerOrigin
    reason: str

    kind: _typing.ClassVar[WarningKind] = WarningKind.SKIPPED_INCLUDE

    @property
    def message(self) -> str:
        return f"Skipped include '{self.entry}' in {self.included_from}: {self.reason} ({self.path})"


@_dataclasses.dataclass(frozen=True, slots=True)
class DuplicateInclude(LoadWarning):
    """A source already loaded in this resolution tree was named again."""

    path: _pathlib.Path
    included_from: layers.LayerOrigin

    kind: _typing.ClassVar[WarningKind] = WarningKind.DUPLICATE_INCLUDE

    @property
    def message(self) -> str:
        return f"Duplicate include {self.path} in {self.included_from}: already loaded, skipped"


@_dataclasses.dataclass(frozen=True, slots=True)
class ShapeConflict(LoadWarning):
    """A write would turn a table into a leaf or a leaf into a table."""

    key_path: str
    origin: layers.LayerOrigin
    attempted: value.Value
    conflicting_key: str

    kind: _typing.ClassVar[WarningKind] = WarningKind.SHAPE_CONFLICT

    @property
    def message(self) -> str:
        return (
            f"'{self.key_path}' from {self.origin} ignored: conflicts with "
            f"existing key '{self.conflicting_key}' (attempted {_render(self.attempted)})"
        )


class WarningSink:
    """
    Append-only buffer of load warnings.

    Order of insertion is preserved. The sink can be flushed into a
    logger exactly once; later flushes only emit warnings appended since.
    """

    def __init__(self, warnings: _typing.Iterable[LoadWarning] = ()) -> None:
        self._warnings: list[LoadWarning] = list(warnings)
        self._flushed = 0

    def append(self, warning: LoadWarning) -> None:
        self._warnings.append(warning)

    def extend(self, warnings: _typing.Iterable[LoadWarning]) -> None:
        self._warnings.extend(warnings)

    def __iter__(self) -> _typing.Iterator[LoadWarning]:
        return iter(list(self._warnings))

    def __len__(self) -> int:
        return len(self._warnings)

    def __bool__(self) -> bool:
        return bool(self._warnings)

    def snapshot(self) -> tuple[LoadWarning, ...]:
        """Return all buffered warnings, in order."""
        return tuple(self._warnings)

    def of_kind(self, kind: WarningKind) -> list[LoadWarning]:
        return [w for w in self._warnings if w.kind is kind]

    def flush(self, logger: _logging.Logger) -> int:
        """
        Log every warning not yet flushed, in order, at WARNING level.

        Returns:
            Number of warnings emitted.
        """
        pending = self._warnings[self._flushed :]
        for warning in pending:
            logger.warning("%s", warning, extra={"warning_kind": warning.kind.value})
        self._flushed = len(self._warnings)
        return len(pending)

    def report_fallback(
        self,
        cause: BaseException,
        *,
        stream: _typing.TextIO | None = None,
        fallback_file: _pathlib.Path | None = None,
    ) -> bool:
        """
        Deliver the buffer and a fatal cause without a logger.

        Writes to `stream` (stderr by default) and, best effort, appends
        the same text to `fallback_file`. Never raises.

        Returns:
            True if the fallback file was written.
        """
        stream = stream if stream is not None else _sys.stderr
        timestamp = _datetime.datetime.now().isoformat(timespec="seconds")
        lines = [f"{timestamp} arcella startup failed: {cause}"]
        lines.extend(f"{timestamp} WARNING {w}" for w in self._warnings)
        text = "\n".join(lines) + "\n"

        try:
            stream.write(text)
            stream.flush()
        except (OSError, ValueError):
            pass

        if fallback_file is None:
            return False
        try:
            fallback_file.parent.mkdir(parents=True, exist_ok=True)
            with open(fallback_file, "a", encoding="utf-8") as f:
                f.write(text)
        except OSError as e:
            try:
                stream.write(f"could not write fallback log {fallback_file}: {e}\n")
            except (OSError, ValueError):
                pass
            return False
        return True
