"""
Layer Loader: turns one configuration source into a Layer.

A Layer is the parsed Value Tree of one source plus the include entries
it declares at its root. Sources are:

- the embedded default (package data, defaults/default_config.toml)
- the primary file (config/arcella.toml)
- included files, reached through the primary file's `includes`

The loader does not resolve includes; it only extracts them for the
Include Resolver. Parsing uses the standard-library tomllib.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import enum as _enum
import importlib.resources as _resources
import pathlib as _pathlib
import re as _re
import tomllib as _tomllib
import typing as _typing

import arcella.config.errors as errors
import arcella.config.value as value
import arcella.constants as constants

DEFAULT_CONFIG_RESOURCE = "default_config.toml"
TEMPLATE_CONFIG_RESOURCE = "template_config.toml"

# tomllib reports positions only inside the message text
_POSITION_RE = _re.compile(r"\(at line (\d+), column (\d+)\)")


class OriginKind(_enum.Enum):
    """Where a layer came from. Governs namespace policy during merge."""

    DEFAULT = "default"
    PRIMARY = "primary"
    INCLUDE = "include"


@_dataclasses.dataclass(frozen=True, slots=True)
class LayerOrigin:
    """Identifies the source of a layer."""

    kind: OriginKind
    path: _pathlib.Path | None = None

    def __str__(self) -> str:
        if self.path is None:
            return "<embedded default>"
        return str(self.path)

    @classmethod
    def default(cls) -> LayerOrigin:
        return cls(OriginKind.DEFAULT)


DEFAULT_ORIGIN = LayerOrigin.default()


@_dataclasses.dataclass(frozen=True, slots=True)
class Layer:
    """One parsed source, read-only after construction."""

    origin: LayerOrigin
    tree: value.Table
    includes: tuple[str, ...] = ()


def _parse_error(source: str, exc: _tomllib.TOMLDecodeError) -> errors.ConfigParseError:
    """Convert a tomllib error, keeping its line/column when present."""
    message = str(exc)
    line = getattr(exc, "lineno", None)
    column = getattr(exc, "colno", None)
    if line is None:
        match = _POSITION_RE.search(message)
        if match:
            line, column = int(match.group(1)), int(match.group(2))
    message = _POSITION_RE.sub("", message).strip()
    return errors.ConfigParseError(source, message, line=line, column=column)


def _extract_includes(raw: dict[str, _typing.Any], source: str) -> tuple[str, ...]:
    """Pop the root `includes` key. Accepts one string or an array of strings."""
    declared = raw.pop(constants.INCLUDES_KEY, None)
    if declared is None:
        return ()
    if isinstance(declared, str):
        return (declared,)
    if isinstance(declared, list) and all(isinstance(item, str) for item in declared):
        return tuple(declared)
    raise errors.ConfigParseError(
        source,
        f"'{constants.INCLUDES_KEY}' must be a string or an array of strings",
    )


def parse_layer(content: str, origin: LayerOrigin) -> Layer:
    """
    Parse TOML text into a Layer.

    Args:
        content: The TOML document.
        origin: Origin recorded on the layer and used in error messages.

    Returns:
        Layer whose tree is a Table (the document root).

    Raises:
        ConfigParseError: If the text is not valid TOML, `includes` has the
            wrong shape, or a value has no Value variant (dates, times).
    """
    source = str(origin)
    try:
        raw = _tomllib.loads(content)
    except _tomllib.TOMLDecodeError as e:
        raise _parse_error(source, e) from e

    includes = _extract_includes(raw, source)

    try:
        tree = value.from_python(raw)
    except value.UnsupportedValueError as e:
        raise errors.ConfigParseError(source, str(e)) from e

    # tomllib always yields a dict at the root
    assert isinstance(tree, value.Table)
    return Layer(origin=origin, tree=tree, includes=includes)


def read_source(path: _pathlib.Path) -> str:
    """
    Read a configuration file as UTF-8 text.

    Raises:
        ConfigFileError: If the file cannot be read or decoded.
    """
    try:
        return path.read_text(encoding="utf-8")
    except PermissionError as e:
        raise errors.ConfigFileError(path, f"permission denied: {e}") from e
    except UnicodeDecodeError as e:
        raise errors.ConfigFileError(path, f"not valid UTF-8: {e}") from e
    except OSError as e:
        raise errors.ConfigFileError(path, f"cannot read file: {e}") from e


def load_file_layer(path: _pathlib.Path, kind: OriginKind = OriginKind.INCLUDE) -> Layer:
    """Read and parse one configuration file."""
    return parse_layer(read_source(path), LayerOrigin(kind, path))


def load_primary_layer(path: _pathlib.Path) -> Layer:
    """
    Load the primary configuration file.

    Raises:
        MissingRequiredSourceError: If the file is absent or unreadable.
        ConfigParseError: If the file is malformed.
    """
    if not path.is_file():
        raise errors.MissingRequiredSourceError(path)
    try:
        content = read_source(path)
    except errors.ConfigFileError as e:
        raise errors.MissingRequiredSourceError(path, str(e.__cause__ or e)) from e
    return parse_layer(content, LayerOrigin(OriginKind.PRIMARY, path))


def get_builtin_text(resource: str) -> str:
    """Read a bundled TOML document from arcella/config/defaults/."""
    return _resources.files("arcella.config").joinpath("defaults", resource).read_text(
        encoding="utf-8"
    )


def load_default_layer(content: str | None = None) -> Layer:
    """
    Load the embedded default layer.

    Args:
        content: Override the bundled default text (for testing).

    Raises:
        ConfigFileError: If the bundled default is missing or empty
            (possible installation problem).
    """
    if content is None:
        try:
            content = get_builtin_text(DEFAULT_CONFIG_RESOURCE)
        except OSError as e:
            raise errors.ConfigFileError(
                DEFAULT_CONFIG_RESOURCE,
                f"built-in defaults not found (possible installation problem): {e}",
            ) from e
    layer = parse_layer(content, DEFAULT_ORIGIN)
    if not layer.tree.entries:
        raise errors.ConfigFileError(
            DEFAULT_CONFIG_RESOURCE,
            "built-in defaults file is empty (possible installation problem)",
        )
    return layer
