"""
Configuration loading: the full sequence from sources to a typed view.

    default layer -> primary file -> includes (depth-first) -> typed view
    -> integrity snapshot

Loading runs before logging exists. Recoverable conditions are returned
in LoadResult.sink for the caller to flush; fatal conditions raise an
ArcellaConfigError subclass. A caller that passes its own sink still
holds the warnings collected before the failure.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import logging as _logging
import pathlib as _pathlib
import typing as _typing

import arcella.config.includes as includes
import arcella.config.integrity as integrity
import arcella.config.layers as layers
import arcella.config.merge as merge
import arcella.config.settings as settings
import arcella.config.sink as sink_module
import arcella.config.value as value
import arcella.constants as constants

_logger = _logging.getLogger(__name__)


@_dataclasses.dataclass(frozen=True)
class LoadResult:
    """Everything a successful load produces."""

    config: settings.ArcellaConfig
    tree: value.Table
    locks: merge.LockTable
    warnings: tuple[sink_module.LoadWarning, ...]
    layers: tuple[layers.LayerOrigin, ...]
    provenance: _typing.Mapping[str, layers.LayerOrigin]
    integrity: integrity.IntegrityChecker
    sink: sink_module.WarningSink
    primary_path: _pathlib.Path


def load(
    config_dir: _pathlib.Path,
    *,
    base_dir: _pathlib.Path | None = None,
    primary_name: str = constants.PRIMARY_CONFIG_NAME,
    default_text: str | None = None,
    max_include_depth: int = constants.MAX_INCLUDE_DEPTH,
    warnings: sink_module.WarningSink | None = None,
) -> LoadResult:
    """
    Load, merge and validate the configuration in config_dir.

    Args:
        config_dir: Directory holding the primary file and include sources.
        base_dir: Base for relative runtime paths (default: config_dir's parent).
        primary_name: File name of the primary file inside config_dir.
        default_text: Replace the embedded default (testing).
        max_include_depth: Bound on the include chain.
        warnings: Sink to collect warnings in. Pass one to keep the
            warnings gathered before a fatal error.

    Returns:
        LoadResult with the typed config, merged tree, lock table,
        warnings and an integrity snapshot.

    Raises:
        MissingRequiredSourceError: If the primary file is absent.
        ConfigFileError, ConfigParseError: If a source cannot be read or parsed.
        ConfigValidationError: If a required key is missing or mistyped.
        IntegrityViolationError: If a monitored path cannot be fingerprinted.
    """
    config_dir = _pathlib.Path(config_dir)
    base_dir = _pathlib.Path(base_dir) if base_dir is not None else config_dir.parent
    primary_path = config_dir / primary_name

    warnings = warnings if warnings is not None else sink_module.WarningSink()
    default_layer = layers.load_default_layer(default_text)
    primary_layer = layers.load_primary_layer(primary_path)

    engine = merge.MergeEngine(warnings=warnings)
    engine.merge(default_layer)
    engine.merge(primary_layer)

    resolver = includes.IncludeResolver(config_dir, warnings, max_depth=max_include_depth)
    for layer in resolver.walk(primary_layer):
        engine.merge(layer)

    merged = engine.result()
    config = settings.ArcellaConfig.from_tree(
        merged.tree, base_dir=base_dir, config_dir=config_dir
    )
    checker = integrity.IntegrityChecker.snapshot(
        [primary_path, *config.integrity_check_paths]
    )
    _logger.debug(
        "Loaded %d layers from %s with %d warnings",
        len(engine.merged_origins),
        config_dir,
        len(warnings),
    )
    return LoadResult(
        config=config,
        tree=merged.tree,
        locks=merged.locks,
        warnings=merged.warnings,
        layers=engine.merged_origins,
        provenance=merged.provenance,
        integrity=checker,
        sink=warnings,
        primary_path=primary_path,
    )


def load_from_settings(bootstrap: settings.BootstrapSettings | None = None) -> LoadResult:
    """Load using the locations in BootstrapSettings (ARCELLA_* environment)."""
    bootstrap = bootstrap if bootstrap is not None else settings.BootstrapSettings()
    return load(bootstrap.resolved_config_dir, base_dir=bootstrap.base_dir)


def init_config_dir(config_dir: _pathlib.Path, *, overwrite_template: bool = True) -> list[_pathlib.Path]:
    """
    Create a config directory from the bundled template.

    Writes the template file (refreshed by default) and, only when no
    primary file exists, a primary file with the template's content.
    An existing primary file is never touched.

    Returns:
        Paths written.
    """
    config_dir = _pathlib.Path(config_dir)
    config_dir.mkdir(parents=True, exist_ok=True)
    text = layers.get_builtin_text(layers.TEMPLATE_CONFIG_RESOURCE)

    written: list[_pathlib.Path] = []
    template_path = config_dir / constants.TEMPLATE_CONFIG_NAME
    if overwrite_template or not template_path.exists():
        template_path.write_text(text, encoding="utf-8")
        written.append(template_path)

    primary_path = config_dir / constants.PRIMARY_CONFIG_NAME
    if not primary_path.exists():
        primary_path.write_text(text, encoding="utf-8")
        written.append(primary_path)
    return written
