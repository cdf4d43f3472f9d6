"""
Shared pytest fixtures for Arcella tests.

This file is automatically loaded by pytest. Fixtures defined here are
available to all test files without explicit imports.
"""

import pathlib as _pathlib
import textwrap as _textwrap
import typing as _typing

import pytest as _pytest

import arcella.logging.startup as logging_startup

# Environment keys that should be cleared for isolated tests
ENV_KEYS_TO_CLEAR = [
    "ARCELLA_BASE_DIR",
    "ARCELLA_CONFIG_DIR",
    "ARCELLA_CONFIG_SHOW_COLOR",
]

# A complete primary file: every required key, stderr logging off so
# tests do not write to the terminal. log.level stays open for includes.
PRIMARY_BODY = """
[log]
"level#redef" = "info"
dir = "log"
file = "arcella.log"
stderr = false

[modules]
dir = "modules"

[cache]
dir = "cache"

[alme.socket]
path = "run/alme.sock"
"""


@_pytest.fixture(autouse=True)
def isolated_env(monkeypatch: _pytest.MonkeyPatch) -> None:
    """Clear ARCELLA_* variables so the host environment never leaks in."""
    for key in ENV_KEYS_TO_CLEAR:
        monkeypatch.delenv(key, raising=False)


@_pytest.fixture(autouse=True)
def reset_logging() -> _typing.Iterator[None]:
    """Close handlers installed by init_logging after each test."""
    yield
    logging_startup.shutdown_logging()


@_pytest.fixture
def base_dir(tmp_path: _pathlib.Path) -> _pathlib.Path:
    """An Arcella base directory (parent of the config directory)."""
    path = tmp_path / "arcella"
    path.mkdir()
    return path


@_pytest.fixture
def config_dir(base_dir: _pathlib.Path) -> _pathlib.Path:
    """An empty config directory inside base_dir."""
    path = base_dir / "config"
    path.mkdir()
    return path


@_pytest.fixture
def write_config(config_dir: _pathlib.Path) -> _typing.Callable[[str, str], _pathlib.Path]:
    """
    Write a file relative to the config directory.

    Usage:
        def test_x(write_config):
            path = write_config("conf.d/10-log.toml", '''
                [log]
                level = "debug"
            ''')
    """

    def _write(name: str, text: str) -> _pathlib.Path:
        path = config_dir / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(_textwrap.dedent(text).lstrip(), encoding="utf-8")
        return path

    return _write


@_pytest.fixture
def write_primary(
    write_config: _typing.Callable[[str, str], _pathlib.Path],
) -> _typing.Callable[..., _pathlib.Path]:
    """
    Write a valid arcella.toml with the given includes and extra TOML.

    Usage:
        write_primary(["conf.d"], extra='[custom]\\nname = "x"\\n')
    """

    def _write(includes: _typing.Sequence[str] = (), extra: str = "") -> _pathlib.Path:
        entries = ", ".join(f'"{entry}"' for entry in includes)
        text = f"includes = [{entries}]\n" + PRIMARY_BODY + "\n" + _textwrap.dedent(extra)
        return write_config("arcella.toml", text)

    return _write
