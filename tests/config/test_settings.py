"""Tests for BootstrapSettings and the typed ArcellaConfig view."""

import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic
import pytest as _pytest

import arcella.config.errors as errors
import arcella.config.settings as settings
import arcella.config.value as value


def _tree(**overrides: _typing.Any) -> value.Table:
    """A merged tree with every required key, updated per section."""
    arcella: dict[str, _typing.Any] = {
        "log": {"level": "info", "dir": "log", "file": "arcella.log", "stderr": True},
        "modules": {"dir": "modules"},
        "cache": {"dir": "/var/cache/arcella"},
        "alme": {"socket": {"path": "run/alme.sock"}},
        "integrity": {"files": ["secrets.toml"], "dirs": ["conf.d"]},
    }
    for section, content in overrides.items():
        if content is None:
            arcella.pop(section)
        else:
            arcella[section] = content
    tree = value.from_python({"arcella": arcella})
    assert isinstance(tree, value.Table)
    return tree


def _config(tree: value.Table, base: _pathlib.Path = _pathlib.Path("/srv/arcella")) -> settings.ArcellaConfig:
    return settings.ArcellaConfig.from_tree(tree, base_dir=base, config_dir=base / "config")


class TestBootstrapSettings:
    """Locations from ARCELLA_* environment variables."""

    def test_defaults(self) -> None:
        bootstrap = settings.BootstrapSettings()
        assert bootstrap.base_dir == _pathlib.Path.home() / ".arcella"
        assert bootstrap.resolved_config_dir == bootstrap.base_dir / "config"
        assert bootstrap.primary_config_path.name == "arcella.toml"

    def test_base_dir_from_env(self, monkeypatch: _pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ARCELLA_BASE_DIR", "/opt/arcella")
        bootstrap = settings.BootstrapSettings()
        assert bootstrap.resolved_config_dir == _pathlib.Path("/opt/arcella/config")

    def test_config_dir_from_env(self, monkeypatch: _pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ARCELLA_BASE_DIR", "/opt/arcella")
        monkeypatch.setenv("ARCELLA_CONFIG_DIR", "/etc/arcella")
        bootstrap = settings.BootstrapSettings()
        assert bootstrap.resolved_config_dir == _pathlib.Path("/etc/arcella")

    def test_init_args_override_env(self, monkeypatch: _pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ARCELLA_BASE_DIR", "/opt/arcella")
        bootstrap = settings.BootstrapSettings(base_dir=_pathlib.Path("/tmp/other"))
        assert bootstrap.base_dir == _pathlib.Path("/tmp/other")


class TestArcellaConfig:
    """The validated, immutable view."""

    def test_paths_resolve_against_base_dir(self) -> None:
        config = _config(_tree())
        assert config.log_dir == _pathlib.Path("/srv/arcella/log")
        assert config.log_file == _pathlib.Path("/srv/arcella/log/arcella.log")
        assert config.modules_dir == _pathlib.Path("/srv/arcella/modules")
        assert config.socket_path == _pathlib.Path("/srv/arcella/run/alme.sock")

    def test_absolute_paths_are_kept(self) -> None:
        assert _config(_tree()).cache_dir == _pathlib.Path("/var/cache/arcella")

    def test_integrity_paths_resolve_against_config_dir(self) -> None:
        assert _config(_tree()).integrity_check_paths == [
            _pathlib.Path("/srv/arcella/config/secrets.toml"),
            _pathlib.Path("/srv/arcella/config/conf.d"),
        ]

    def test_integrity_section_is_optional(self) -> None:
        assert _config(_tree(integrity=None)).integrity_check_paths == []

    def test_get_reads_full_tree(self) -> None:
        config = _config(_tree(custom={"message": "hi", "n": [1, 2]}))
        assert config.get("arcella.custom.message") == "hi"
        assert config.get("arcella.custom.n") == [1, 2]
        assert config.get("arcella.custom.missing", "fallback") == "fallback"
        assert config.section.custom == {"message": "hi", "n": [1, 2]}

    def test_module_settings(self) -> None:
        config = _config(_tree(modules={"dir": "modules", "alme": {"enabled": True}}))
        assert config.module_settings == {"alme": {"enabled": True}}

    def test_frozen(self) -> None:
        config = _config(_tree())
        with _pytest.raises(_pydantic.ValidationError):
            config.base_dir = _pathlib.Path("/elsewhere")  # type: ignore[misc]

    def test_missing_required_key(self) -> None:
        with _pytest.raises(errors.ConfigValidationError) as exc_info:
            _config(_tree(cache={}))
        assert exc_info.value.key_path == "arcella.cache.dir"

    def test_missing_section(self) -> None:
        with _pytest.raises(errors.ConfigValidationError) as exc_info:
            _config(_tree(alme=None))
        assert exc_info.value.key_path == "arcella.alme"

    def test_wrong_type(self) -> None:
        tree = _tree(log={"level": "info", "dir": 5, "file": "a.log", "stderr": True})
        with _pytest.raises(errors.ConfigValidationError) as exc_info:
            _config(tree)
        assert exc_info.value.key_path == "arcella.log.dir"

    def test_unknown_level(self) -> None:
        tree = _tree(log={"level": "loud", "dir": "log"})
        with _pytest.raises(errors.ConfigValidationError, match="arcella.log.level"):
            _config(tree)

    def test_empty_tree(self) -> None:
        with _pytest.raises(errors.ConfigValidationError):
            _config(value.Table())
