"""
Typed views over configuration.

BootstrapSettings: where to find the config directory (pydantic-settings,
ARCELLA_* environment variables). This is the only configuration read
before the merge.

ArcellaConfig: the immutable, validated view of the merged tree that
the rest of the process uses. Section models mirror the TOML tables
under `arcella.`; unknown fields are preserved (extra="allow") because
[custom] and [modules] are open sections.

Relative directories in the merged tree are resolved against base_dir.
"""

import pathlib as _pathlib
import typing as _typing

import pydantic as _pydantic
import pydantic_settings as _pydantic_settings

import arcella.config.errors as errors
import arcella.config.value as value
import arcella.constants as constants

LogLevel = _typing.Literal["trace", "debug", "info", "warn", "warning", "error", "critical"]


class BootstrapSettings(_pydantic_settings.BaseSettings):
    """
    Locations supplied before configuration is loaded.

    Environment variables:
        ARCELLA_BASE_DIR: base directory (default: ~/.arcella)
        ARCELLA_CONFIG_DIR: config directory (default: <base_dir>/config)
    """

    model_config = _pydantic_settings.SettingsConfigDict(
        env_prefix="ARCELLA_",
        extra="ignore",
    )

    base_dir: _pathlib.Path = _pydantic.Field(
        default_factory=lambda: _pathlib.Path.home() / ".arcella"
    )
    config_dir: _pathlib.Path | None = None

    @property
    def resolved_config_dir(self) -> _pathlib.Path:
        if self.config_dir is not None:
            return self.config_dir
        return self.base_dir / "config"

    @property
    def primary_config_path(self) -> _pathlib.Path:
        return self.resolved_config_dir / constants.PRIMARY_CONFIG_NAME


# =============================================================================
# Section models
# =============================================================================


class ConfigBase(_pydantic.BaseModel):
    """
    Base class for config sections.

    Sections are frozen and keep unrecognized fields, so open sections
    can carry arbitrary operator keys.
    """

    model_config = _pydantic.ConfigDict(extra="allow", frozen=True)

    def get_extra_fields(self) -> dict[str, _typing.Any]:
        """Return fields that were provided but are not in the schema."""
        return dict(self.model_extra) if self.model_extra else {}


class LogConfig(ConfigBase):
    """TOML section: [log]"""

    level: LogLevel = "info"
    dir: str
    file: str = "arcella.log"
    stderr: bool = True


class ModulesConfig(ConfigBase):
    """TOML section: [modules]. Extra keys are per-module settings."""

    dir: str


class CacheConfig(ConfigBase):
    """TOML section: [cache]"""

    dir: str


class SocketConfig(ConfigBase):
    """TOML section: [alme.socket]"""

    path: str


class AlmeConfig(ConfigBase):
    """TOML section: [alme]"""

    socket: SocketConfig


class IntegrityConfig(ConfigBase):
    """TOML section: [integrity]. Paths are relative to the config directory."""

    files: list[str] = _pydantic.Field(default_factory=list)
    dirs: list[str] = _pydantic.Field(default_factory=list)


class ArcellaSection(ConfigBase):
    """Everything under the `arcella` key path prefix."""

    log: LogConfig
    modules: ModulesConfig
    cache: CacheConfig
    alme: AlmeConfig
    integrity: IntegrityConfig = _pydantic.Field(default_factory=IntegrityConfig)
    custom: dict[str, _typing.Any] = _pydantic.Field(default_factory=dict)


def _resolve(base_dir: _pathlib.Path, raw: str) -> _pathlib.Path:
    path = _pathlib.Path(raw).expanduser()
    return path if path.is_absolute() else base_dir / path


class ArcellaConfig(_pydantic.BaseModel):
    """
    The final, immutable configuration.

    Construct with from_tree(); fields are validated once and the object
    is frozen for the rest of the process.
    """

    model_config = _pydantic.ConfigDict(frozen=True)

    base_dir: _pathlib.Path
    config_dir: _pathlib.Path
    section: ArcellaSection

    _values: value.Table = _pydantic.PrivateAttr(default_factory=value.Table)

    @classmethod
    def from_tree(
        cls,
        tree: value.Table,
        *,
        base_dir: _pathlib.Path,
        config_dir: _pathlib.Path,
    ) -> "ArcellaConfig":
        """
        Validate the merged tree.

        Raises:
            ConfigValidationError: If a required key is missing or has the
                wrong type. The key path names the first offending key.
        """
        root = value.lookup(tree, constants.KEY_PREFIX)
        raw = value.to_python(root) if isinstance(root, value.Table) else {}
        try:
            section = ArcellaSection.model_validate(raw)
        except _pydantic.ValidationError as e:
            first = e.errors()[0]
            key_path = value.join_key_path(
                constants.KEY_PREFIX, *(str(part) for part in first["loc"])
            )
            raise errors.ConfigValidationError(key_path, first["msg"]) from e
        config = cls(base_dir=base_dir, config_dir=config_dir, section=section)
        config._values = tree
        return config

    @property
    def values(self) -> value.Table:
        """The full merged tree, including keys outside the typed sections."""
        return self._values

    def get(self, key_path: str, default: _typing.Any = None) -> _typing.Any:
        """Plain Python value at key_path (e.g. "arcella.log.level")."""
        found = value.lookup(self.values, key_path)
        return default if found is None else value.to_python(found)

    @property
    def log_dir(self) -> _pathlib.Path:
        return _resolve(self.base_dir, self.section.log.dir)

    @property
    def log_file(self) -> _pathlib.Path:
        return self.log_dir / self.section.log.file

    @property
    def modules_dir(self) -> _pathlib.Path:
        return _resolve(self.base_dir, self.section.modules.dir)

    @property
    def cache_dir(self) -> _pathlib.Path:
        return _resolve(self.base_dir, self.section.cache.dir)

    @property
    def socket_path(self) -> _pathlib.Path:
        return _resolve(self.base_dir, self.section.alme.socket.path)

    @property
    def integrity_check_paths(self) -> list[_pathlib.Path]:
        """Operator-declared extra monitored paths (files, then dirs)."""
        declared = [*self.section.integrity.files, *self.section.integrity.dirs]
        return [_resolve(self.config_dir, p) for p in declared]

    @property
    def module_settings(self) -> dict[str, _typing.Any]:
        """Per-module keys under [modules] (everything except dir)."""
        return self.section.modules.get_extra_fields()
