"""
Error taxonomy for configuration loading.

Every error here is fatal to startup. Recoverable conditions (blocked
overrides, include depth truncation, skipped or duplicate includes) are
not exceptions; they are recorded as warnings in the WarningSink.

IntegrityViolationError is security-classified: callers must terminate
the process with a distinct exit status rather than continue.
"""

import pathlib as _pathlib


class ArcellaConfigError(Exception):
    """Base class for all configuration errors."""

    security: bool = False
    """True for errors that indicate possible tampering."""


class ConfigFileError(ArcellaConfigError):
    """A configuration source could not be read."""

    def __init__(self, path: _pathlib.Path | str, message: str) -> None:
        self.path = path
        super().__init__(f"Error in config file {path}: {message}")


class MissingRequiredSourceError(ConfigFileError):
    """The primary configuration file is absent or unreadable."""

    def __init__(self, path: _pathlib.Path, reason: str = "file not found") -> None:
        super().__init__(path, f"required configuration source missing ({reason})")


class ConfigParseError(ArcellaConfigError):
    """A configuration source is malformed."""

    def __init__(
        self,
        source: str,
        message: str,
        *,
        line: int | None = None,
        column: int | None = None,
    ) -> None:
        self.source = source
        self.line = line
        self.column = column
        location = ""
        if line is not None:
            location = f" (line {line}" + (f", column {column})" if column is not None else ")")
        super().__init__(f"Parse error in {source}{location}: {message}")


class ConfigValidationError(ArcellaConfigError):
    """The merged configuration lacks a required key or has a wrong type."""

    def __init__(self, key_path: str, message: str) -> None:
        self.key_path = key_path
        super().__init__(f"Invalid configuration at '{key_path}': {message}")


class LoggingInitError(ArcellaConfigError):
    """The logging subsystem could not be initialized from the configuration."""


class IntegrityViolationError(ArcellaConfigError):
    """A monitored configuration source changed after it was loaded."""

    security = True

    def __init__(self, paths: list[_pathlib.Path], details: list[str] | None = None) -> None:
        self.paths = list(paths)
        self.details = list(details or [])
        listing = ", ".join(str(p) for p in self.paths)
        super().__init__(f"Config integrity violation: {listing}")
