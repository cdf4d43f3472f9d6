"""
Integrity Checker: detects tampering with configuration sources.

A snapshot fingerprints every monitored path right after the merge
completes. verify() recomputes the fingerprints and compares them. The
comparison is point-in-time; nothing watches the filesystem between
calls.

A file fingerprint is (size, mtime_ns, sha256). A path matches its
snapshot when size and sha256 are equal; mtime is kept for diagnostics
only, so touching a file without changing it is not a violation. A
directory fingerprint covers the names, sizes and hashes of the regular
files directly inside it.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import hashlib as _hashlib
import pathlib as _pathlib
import typing as _typing

import arcella.config.errors as errors

_CHUNK_SIZE = 64 * 1024


@_dataclasses.dataclass(frozen=True, slots=True)
class Fingerprint:
    """Point-in-time identity of a file or directory."""

    size: int
    mtime_ns: int
    sha256: str
    is_dir: bool = False

    def matches(self, other: Fingerprint) -> bool:
        return (
            self.is_dir == other.is_dir
            and self.size == other.size
            and self.sha256 == other.sha256
        )


@_dataclasses.dataclass(frozen=True, slots=True)
class IntegrityRecord:
    """Fingerprint of one monitored path at snapshot time."""

    path: _pathlib.Path
    fingerprint: Fingerprint


@_dataclasses.dataclass(frozen=True, slots=True)
class IntegrityStatus:
    """Outcome of verifying one monitored path."""

    path: _pathlib.Path
    intact: bool
    reason: str = ""


def _hash_file(path: _pathlib.Path) -> str:
    digest = _hashlib.sha256()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def fingerprint(path: _pathlib.Path) -> Fingerprint:
    """
    Compute the fingerprint of a file or directory.

    Raises:
        OSError: If the path cannot be read.
    """
    stat = path.stat()
    if not path.is_dir():
        return Fingerprint(size=stat.st_size, mtime_ns=stat.st_mtime_ns, sha256=_hash_file(path))

    digest = _hashlib.sha256()
    total = 0
    for child in sorted(p for p in path.iterdir() if p.is_file()):
        child_stat = child.stat()
        total += child_stat.st_size
        digest.update(f"{child.name}\0{child_stat.st_size}\0{_hash_file(child)}\n".encode())
    return Fingerprint(size=total, mtime_ns=stat.st_mtime_ns, sha256=digest.hexdigest(), is_dir=True)


class IntegrityChecker:
    """
    Immutable set of integrity records with on-demand verification.

    Usage:
        checker = IntegrityChecker.snapshot([primary_path, *extra_paths])
        ...
        checker.ensure_intact()   # raises IntegrityViolationError
    """

    def __init__(self, records: _typing.Iterable[IntegrityRecord]) -> None:
        self._records: tuple[IntegrityRecord, ...] = tuple(records)

    @classmethod
    def snapshot(cls, paths: _typing.Iterable[_pathlib.Path]) -> IntegrityChecker:
        """
        Fingerprint every path now. Duplicate paths are monitored once.

        Raises:
            IntegrityViolationError: If a path cannot be fingerprinted,
                since it could not be monitored.
        """
        records: list[IntegrityRecord] = []
        seen: set[_pathlib.Path] = set()
        missing: list[_pathlib.Path] = []
        details: list[str] = []
        for path in paths:
            key = path.resolve()
            if key in seen:
                continue
            seen.add(key)
            try:
                records.append(IntegrityRecord(path, fingerprint(path)))
            except OSError as e:
                missing.append(path)
                details.append(f"{path}: cannot fingerprint ({e.strerror or e})")
        if missing:
            raise errors.IntegrityViolationError(missing, details)
        return cls(records)

    @property
    def records(self) -> tuple[IntegrityRecord, ...]:
        return self._records

    @property
    def paths(self) -> tuple[_pathlib.Path, ...]:
        return tuple(r.path for r in self._records)

    def verify(self) -> tuple[IntegrityStatus, ...]:
        """Recompute fingerprints and compare each with its snapshot."""
        statuses: list[IntegrityStatus] = []
        for record in self._records:
            try:
                current = fingerprint(record.path)
            except FileNotFoundError:
                statuses.append(IntegrityStatus(record.path, False, "removed"))
                continue
            except OSError as e:
                statuses.append(IntegrityStatus(record.path, False, f"unreadable: {e.strerror or e}"))
                continue

            if current.matches(record.fingerprint):
                statuses.append(IntegrityStatus(record.path, True))
            elif current.is_dir != record.fingerprint.is_dir:
                statuses.append(IntegrityStatus(record.path, False, "file type changed"))
            else:
                statuses.append(IntegrityStatus(record.path, False, "content changed"))
        return tuple(statuses)

    def is_intact(self) -> bool:
        return all(status.intact for status in self.verify())

    def ensure_intact(self) -> None:
        """
        Verify and raise on any mismatch.

        Raises:
            IntegrityViolationError: Listing every path that changed.
        """
        failed = [s for s in self.verify() if not s.intact]
        if failed:
            raise errors.IntegrityViolationError(
                [s.path for s in failed],
                [f"{s.path}: {s.reason}" for s in failed],
            )
