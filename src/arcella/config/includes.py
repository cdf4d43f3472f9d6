"""
Include Resolver: expands `includes` declarations into layers.

Entries are resolved relative to the config directory (not relative to
the including file), so the same entry means the same thing wherever it
appears.

- A file entry is included as is, in the order listed.
- A directory entry expands to the source files directly inside it,
  then those one level down, and so on up to MAX_DIRECTORY_DEPTH levels.
  Each level is sorted on its own; shallower levels come first.
- Source files end in `.toml` but not `.template.toml` (case-insensitive).

Included files may declare their own includes. The walk is depth-first:
an included layer's own includes are loaded right after it, before its
next sibling. A global depth counter bounds the chain, and each file is
loaded at most once per resolution tree.
"""

from __future__ import annotations

import logging as _logging
import os as _os
import pathlib as _pathlib
import typing as _typing

import arcella.config.errors as errors
import arcella.config.layers as layers
import arcella.config.sink as sink_module
import arcella.constants as constants

_logger = _logging.getLogger(__name__)


def is_source_file(path: _pathlib.Path) -> bool:
    """True for regular `.toml` files that are not `.template.toml` templates."""
    name = path.name.lower()
    if not name.endswith(constants.SOURCE_SUFFIX):
        return False
    if name.endswith(constants.TEMPLATE_SUFFIX):
        return False
    return path.is_file()


def resolve_entry(entry: str, config_dir: _pathlib.Path) -> _pathlib.Path:
    """Resolve an include entry; absolute entries are kept as is."""
    path = _pathlib.Path(entry).expanduser()
    if path.is_absolute():
        return path
    return config_dir / path


def _sort_key(relative: _pathlib.Path) -> tuple[str, str]:
    text = relative.as_posix()
    return (text.lower(), text)


def _list_dir(directory: _pathlib.Path) -> list[_pathlib.Path]:
    try:
        with _os.scandir(directory) as it:
            return [_pathlib.Path(entry.path) for entry in it]
    except OSError as e:
        raise errors.ConfigFileError(directory, f"cannot list include directory: {e}") from e


def expand_directory(
    directory: _pathlib.Path,
    max_depth: int = constants.MAX_DIRECTORY_DEPTH,
) -> list[_pathlib.Path]:
    """
    List the source files of a directory include, level by level.

    Args:
        directory: The directory named by an include entry.
        max_depth: Number of subdirectory levels to scan below it.

    Returns:
        Level 0 files (directly inside) sorted by name, followed by level 1
        files sorted by relative path, and so on up to max_depth.

    Raises:
        ConfigFileError: If a directory cannot be listed.
    """
    found: list[_pathlib.Path] = []
    current = [directory]
    for _level in range(max_depth + 1):
        files: list[_pathlib.Path] = []
        subdirs: list[_pathlib.Path] = []
        for parent in current:
            for child in _list_dir(parent):
                if child.is_dir():
                    subdirs.append(child)
                elif is_source_file(child):
                    files.append(child)
        files.sort(key=lambda p: _sort_key(p.relative_to(directory)))
        found.extend(files)
        if not subdirs:
            break
        current = sorted(subdirs, key=lambda p: _sort_key(p.relative_to(directory)))
    return found


class IncludeResolver:
    """
    Resolves include declarations and walks the include tree.

    The resolver owns the per-tree state: the set of already-loaded
    sources and the depth bound. Use one resolver per load.
    """

    def __init__(
        self,
        config_dir: _pathlib.Path,
        warnings: sink_module.WarningSink,
        *,
        max_depth: int = constants.MAX_INCLUDE_DEPTH,
        max_directory_depth: int = constants.MAX_DIRECTORY_DEPTH,
    ) -> None:
        self._config_dir = config_dir
        self._warnings = warnings
        self._max_depth = max_depth
        self._max_directory_depth = max_directory_depth
        self._visited: set[_pathlib.Path] = set()

    @property
    def visited(self) -> frozenset[_pathlib.Path]:
        """Resolved paths of every source loaded so far."""
        return frozenset(self._visited)

    def resolve(
        self,
        entries: _typing.Sequence[str],
        included_from: layers.LayerOrigin,
    ) -> list[_pathlib.Path]:
        """
        Expand one layer's include entries into concrete source paths.

        Missing entries and non-source files are skipped with a warning.
        Duplicates are kept here; the walk reports them.
        """
        paths: list[_pathlib.Path] = []
        for entry in entries:
            path = resolve_entry(entry, self._config_dir)
            if path.is_dir():
                paths.extend(expand_directory(path, self._max_directory_depth))
            elif path.is_file():
                if is_source_file(path):
                    paths.append(path)
                else:
                    self._warnings.append(
                        sink_module.SkippedInclude(
                            entry, path, included_from, "not a configuration source"
                        )
                    )
            else:
                self._warnings.append(
                    sink_module.SkippedInclude(entry, path, included_from, "not found")
                )
        return paths

    def mark_loaded(self, path: _pathlib.Path) -> None:
        """Record a source loaded outside the walk (the primary file)."""
        self._visited.add(path.resolve())

    def walk(self, root: layers.Layer) -> _typing.Iterator[layers.Layer]:
        """
        Yield every layer reachable from root's includes, depth-first.

        Root itself is not yielded. The walk uses an explicit stack of
        (path, depth, including origin) items; root's includes are depth 1.

        Raises:
            ConfigParseError, ConfigFileError: If an included file is
                malformed or unreadable.
        """
        if root.origin.path is not None:
            self.mark_loaded(root.origin.path)

        stack: list[tuple[_pathlib.Path, int, layers.LayerOrigin]] = [
            (path, 1, root.origin)
            for path in reversed(self.resolve(root.includes, root.origin))
        ]
        while stack:
            path, depth, parent = stack.pop()

            if depth > self._max_depth:
                self._warnings.append(
                    sink_module.DepthLimitExceeded(path, parent, self._max_depth)
                )
                continue

            key = path.resolve()
            if key in self._visited:
                self._warnings.append(sink_module.DuplicateInclude(path, parent))
                continue

            layer = layers.load_file_layer(path)
            self._visited.add(key)
            _logger.debug("Loaded include %s at depth %d", path, depth)
            yield layer

            children = self.resolve(layer.includes, layer.origin)
            stack.extend((child, depth + 1, layer.origin) for child in reversed(children))
