"""
Arcella - layered configuration with tamper detection.

Loads the runtime configuration from an embedded default, a primary
file and its includes, with explicit control over which settings later
files may override.
"""

import importlib.metadata as _metadata

# Version is defined in pyproject.toml - read it and parse into tuple (primary representation)
_raw_version = _metadata.version("arcella")
__version_info__: tuple[int, int, int] = tuple(int(x) for x in _raw_version.split(".")[:3])  # type: ignore[assignment]
__version__: str = ".".join(str(x) for x in __version_info__)

from arcella.config import ArcellaConfig, LoadResult, load  # noqa: E402

__all__ = ["__version__", "__version_info__", "ArcellaConfig", "LoadResult", "load"]
