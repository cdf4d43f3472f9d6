"""
Shared constants for Arcella.

This module provides a single source of truth for values that are used
across the configuration loader, the CLI and the tests.
"""

# Key namespace
KEY_PREFIX = "arcella"
"""Every key path in the configuration tree lives under this prefix."""

REDEF_SUFFIX = "#redef"
"""Unlock marker: a leaf key ending with this suffix stays open for the next write."""

INCLUDES_KEY = "includes"
"""Root-level key holding a layer's include declarations."""

OPEN_NAMESPACES: tuple[str, ...] = ("arcella.custom", "arcella.modules")
"""Sections that included files may extend with keys unknown to the defaults."""

# Config directory layout
PRIMARY_CONFIG_NAME = "arcella.toml"
"""Name of the primary configuration file inside the config directory."""

TEMPLATE_CONFIG_NAME = "arcella.template.toml"
"""Name of the operator template written by `arcella config init`."""

SOURCE_SUFFIX = ".toml"
"""Only files with this suffix are treated as configuration sources."""

TEMPLATE_SUFFIX = ".template.toml"
"""Files ending with this suffix are templates and are never merged."""

# Include resolution bounds
MAX_INCLUDE_DEPTH = 5
"""Deepest include chain below the primary file (primary file is depth 0).

root.toml → a.toml → b.toml → c.toml → d.toml → e.toml is allowed;
a seventh file in the same chain is dropped with a warning.
"""

MAX_DIRECTORY_DEPTH = 3
"""How many subdirectory levels below a directory include are scanned."""

# Process exit statuses
EXIT_OK = 0
EXIT_CONFIG_ERROR = 1
EXIT_INTEGRITY_VIOLATION = 3
"""Distinct status for tampered configuration (security violation)."""

FALLBACK_LOG_NAME = "arcella-startup.log"
"""Best-effort file written when logging cannot be initialized."""
