"""
Process startup sequence.

    load configuration -> init logging (flush warnings) -> verify integrity

Nothing that depends on configuration runs until loading has finished.
Every failure maps to an exit status; an integrity violation gets its
own status so it is never mistaken for an ordinary config error.
"""

from __future__ import annotations

import dataclasses as _dataclasses
import logging as _logging
import pathlib as _pathlib
import sys as _sys
import typing as _typing

import arcella.config.errors as errors
import arcella.config.loader as loader
import arcella.config.sink as sink_module
import arcella.constants as constants
import arcella.logging.startup as logging_startup


@_dataclasses.dataclass(frozen=True)
class StartupOutcome:
    """Result of run_startup()."""

    exit_code: int
    result: loader.LoadResult | None = None
    error: errors.ArcellaConfigError | None = None

    @property
    def ok(self) -> bool:
        return self.exit_code == constants.EXIT_OK


def exit_code_for(error: errors.ArcellaConfigError) -> int:
    """Exit status for a fatal configuration error."""
    if error.security:
        return constants.EXIT_INTEGRITY_VIOLATION
    return constants.EXIT_CONFIG_ERROR


def verify(result: loader.LoadResult, logger: _logging.Logger) -> None:
    """
    Check the integrity snapshot taken at load time.

    Raises:
        IntegrityViolationError: After logging every changed path.
    """
    try:
        result.integrity.ensure_intact()
    except errors.IntegrityViolationError as e:
        logger.critical("%s", e)
        for detail in e.details:
            logger.critical("  %s", detail)
        raise


def run_startup(
    config_dir: _pathlib.Path,
    *,
    base_dir: _pathlib.Path | None = None,
    stream: _typing.TextIO | None = None,
) -> StartupOutcome:
    """
    Run the startup sequence and convert fatal errors into an exit status.

    Errors raised before logging exists are written to `stream`
    (stderr by default) and to the fallback log in base_dir, together
    with the warnings collected up to the failure.
    """
    stream = stream if stream is not None else _sys.stderr
    config_dir = _pathlib.Path(config_dir)
    base_dir = _pathlib.Path(base_dir) if base_dir is not None else config_dir.parent
    warnings = sink_module.WarningSink()
    try:
        result = loader.load(config_dir, base_dir=base_dir, warnings=warnings)
    except errors.ArcellaConfigError as e:
        warnings.report_fallback(
            e, stream=stream, fallback_file=base_dir / constants.FALLBACK_LOG_NAME
        )
        return StartupOutcome(exit_code_for(e), error=e)

    try:
        logger = logging_startup.init_logging(result.config, result.sink, stream=stream)
    except errors.LoggingInitError as e:
        # Already delivered through the sink's fallback channel
        return StartupOutcome(exit_code_for(e), result=result, error=e)

    try:
        verify(result, logger)
    except errors.IntegrityViolationError as e:
        return StartupOutcome(exit_code_for(e), result=result, error=e)

    logger.info("Configuration loaded from %s", result.config.config_dir)
    return StartupOutcome(constants.EXIT_OK, result=result)
