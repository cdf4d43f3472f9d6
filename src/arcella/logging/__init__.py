"""
Logging for Arcella.

Logging is configured from the final configuration, after loading
succeeds. Warnings buffered during loading are flushed into it.
"""

from arcella.logging.startup import (
    LOGGER_NAME,
    init_logging,
    parse_level,
    shutdown_logging,
)

__all__ = ["LOGGER_NAME", "init_logging", "parse_level", "shutdown_logging"]
