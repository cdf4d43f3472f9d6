"""
Logger initialization from the final configuration.

init_logging() installs handlers on the `arcella` logger:

- a file handler at <log.dir>/<log.file> (directory created if needed)
- a rich handler on stderr when log.stderr is true

and then flushes the load warnings buffered in the WarningSink. If the
handlers cannot be created, the buffered warnings and the cause go to
the sink's fallback channel before LoggingInitError is raised, so no
startup diagnostic is lost.
"""

from __future__ import annotations

import logging as _logging
import typing as _typing

import rich.console as _rich_console
import rich.logging as _rich_logging

import arcella.config.errors as errors
import arcella.config.settings as settings
import arcella.config.sink as sink_module
import arcella.constants as constants

LOGGER_NAME = constants.KEY_PREFIX

FILE_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

_LEVELS: dict[str, int] = {
    "trace": _logging.DEBUG,
    "debug": _logging.DEBUG,
    "info": _logging.INFO,
    "warn": _logging.WARNING,
    "warning": _logging.WARNING,
    "error": _logging.ERROR,
    "critical": _logging.CRITICAL,
}

# Handlers installed by init_logging, removed again by shutdown_logging
_installed: list[_logging.Handler] = []


def parse_level(name: str) -> int:
    """
    Map a configured level name to a logging level.

    Raises:
        ValueError: If the name is unknown.
    """
    try:
        return _LEVELS[name.strip().lower()]
    except KeyError:
        raise ValueError(f"Unknown log level: {name!r}") from None


def _build_handlers(
    config: settings.ArcellaConfig,
    level: int,
    stream: _typing.TextIO | None,
) -> list[_logging.Handler]:
    handlers: list[_logging.Handler] = []

    config.log_dir.mkdir(parents=True, exist_ok=True)
    file_handler = _logging.FileHandler(config.log_file, encoding="utf-8")
    file_handler.setFormatter(_logging.Formatter(FILE_FORMAT))
    file_handler.setLevel(level)
    handlers.append(file_handler)

    if config.section.log.stderr:
        console = (
            _rich_console.Console(file=stream)
            if stream is not None
            else _rich_console.Console(stderr=True)
        )
        rich_handler = _rich_logging.RichHandler(
            console=console,
            show_path=False,
            markup=False,
        )
        rich_handler.setLevel(level)
        handlers.append(rich_handler)

    return handlers


def shutdown_logging(logger: _logging.Logger | None = None) -> None:
    """Remove and close the handlers installed by init_logging."""
    logger = logger if logger is not None else _logging.getLogger(LOGGER_NAME)
    while _installed:
        handler = _installed.pop()
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True


def init_logging(
    config: settings.ArcellaConfig,
    sink: sink_module.WarningSink,
    *,
    stream: _typing.TextIO | None = None,
) -> _logging.Logger:
    """
    Configure the `arcella` logger and flush buffered load warnings.

    Calling it again replaces the handlers from the previous call.

    Args:
        config: The final configuration.
        sink: Warnings buffered while loading.
        stream: Console stream (default: stderr). Also used by the
            fallback channel.

    Returns:
        The configured `arcella` logger.

    Raises:
        LoggingInitError: If the level is unknown or the log file cannot
            be opened. The sink has been delivered through its fallback
            channel by then.
    """
    logger = _logging.getLogger(LOGGER_NAME)
    try:
        level = parse_level(config.section.log.level)
        handlers = _build_handlers(config, level, stream)
    except (OSError, ValueError) as e:
        sink.report_fallback(
            e,
            stream=stream,
            fallback_file=config.base_dir / constants.FALLBACK_LOG_NAME,
        )
        raise errors.LoggingInitError(f"Cannot initialize logging: {e}") from e

    shutdown_logging(logger)
    logger.setLevel(level)
    logger.propagate = False
    for handler in handlers:
        logger.addHandler(handler)
        _installed.append(handler)

    logger.debug("Logging initialized: level=%s file=%s", config.section.log.level, config.log_file)
    sink.flush(logger)
    return logger
