"""
Configuration loading for Arcella.

Layered TOML sources are merged under a first-write-wins lock protocol,
validated into an immutable ArcellaConfig, and fingerprinted for
tamper detection.
"""

from arcella.config.errors import (
    ArcellaConfigError,
    ConfigFileError,
    ConfigParseError,
    ConfigValidationError,
    IntegrityViolationError,
    LoggingInitError,
    MissingRequiredSourceError,
)
from arcella.config.integrity import IntegrityChecker, IntegrityStatus
from arcella.config.layers import Layer, LayerOrigin, OriginKind
from arcella.config.loader import LoadResult, init_config_dir, load, load_from_settings
from arcella.config.merge import LockState, LockTable, MergeEngine, MergeResult, NamespacePolicy
from arcella.config.settings import ArcellaConfig, BootstrapSettings
from arcella.config.sink import (
    BlockedOverride,
    DepthLimitExceeded,
    DuplicateInclude,
    LoadWarning,
    ShapeConflict,
    SkippedInclude,
    WarningKind,
    WarningSink,
)

__all__ = [
    "ArcellaConfig",
    "ArcellaConfigError",
    "BlockedOverride",
    "BootstrapSettings",
    "ConfigFileError",
    "ConfigParseError",
    "ConfigValidationError",
    "DepthLimitExceeded",
    "DuplicateInclude",
    "IntegrityChecker",
    "IntegrityStatus",
    "IntegrityViolationError",
    "Layer",
    "LayerOrigin",
    "LoadResult",
    "LoadWarning",
    "LockState",
    "LockTable",
    "LoggingInitError",
    "MergeEngine",
    "MergeResult",
    "MissingRequiredSourceError",
    "NamespacePolicy",
    "OriginKind",
    "ShapeConflict",
    "SkippedInclude",
    "WarningKind",
    "WarningSink",
    "init_config_dir",
    "load",
    "load_from_settings",
]
