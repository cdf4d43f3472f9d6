"""
Main CLI entry point for Arcella.

Inspects, verifies and initializes the layered configuration.
Exit statuses: 0 ok, 1 configuration error, 2 usage error,
3 integrity violation.
"""

import json as _json
import os as _os
import pathlib as _pathlib
import sys as _sys
import typing as _typing

import click as _click
import rich.console as _rich_console
import rich.syntax as _rich_syntax
import yaml as _yaml

import arcella
import arcella.config.errors as errors
import arcella.config.layers as layers
import arcella.config.loader as loader
import arcella.config.settings as settings
import arcella.config.value as value
import arcella.constants as constants
import arcella.logging.startup as logging_startup
import arcella.startup as startup

# Custom Click context settings for better help formatting
CONTEXT_SETTINGS: dict[str, _typing.Any] = {
    "help_option_names": ["-h", "--help"],
    "max_content_width": 100,
}


class ConfigCommandError(_click.ClickException):
    """ClickException carrying the exit status of a configuration error."""

    def __init__(self, error: errors.ArcellaConfigError) -> None:
        super().__init__(str(error))
        self.error = error
        self.exit_code = startup.exit_code_for(error)


def _bootstrap(ctx: _click.Context) -> settings.BootstrapSettings:
    bootstrap: settings.BootstrapSettings = ctx.obj["bootstrap"]
    return bootstrap


def _load(ctx: _click.Context) -> loader.LoadResult:
    """Load configuration for a command, mapping failures to exit statuses."""
    bootstrap = _bootstrap(ctx)
    try:
        return loader.load(bootstrap.resolved_config_dir, base_dir=bootstrap.base_dir)
    except errors.ArcellaConfigError as e:
        raise ConfigCommandError(e) from e


@_click.group(context_settings=CONTEXT_SETTINGS)
@_click.version_option(arcella.__version__, "-v", "--version", prog_name="arcella")
@_click.option(
    "--base-dir",
    type=_click.Path(file_okay=False, path_type=_pathlib.Path),
    default=None,
    help="Base directory (default: $ARCELLA_BASE_DIR or ~/.arcella)",
)
@_click.option(
    "--config-dir",
    type=_click.Path(file_okay=False, path_type=_pathlib.Path),
    default=None,
    help="Config directory (default: $ARCELLA_CONFIG_DIR or <base-dir>/config)",
)
@_click.pass_context
def cli(
    ctx: _click.Context,
    base_dir: _pathlib.Path | None,
    config_dir: _pathlib.Path | None,
) -> None:
    """Arcella - layered configuration with tamper detection."""
    overrides: dict[str, _typing.Any] = {}
    if base_dir is not None:
        overrides["base_dir"] = base_dir
    if config_dir is not None:
        overrides["config_dir"] = config_dir
    ctx.ensure_object(dict)
    ctx.obj["bootstrap"] = settings.BootstrapSettings(**overrides)


# =============================================================================
# Config Commands
# =============================================================================


@cli.group(name="config")
def config_cmd() -> None:
    """Inspect and manage configuration."""


def _section_key(section: str) -> str:
    if value.is_within(section, constants.KEY_PREFIX):
        return section
    return value.join_key_path(constants.KEY_PREFIX, section)


def _origin_codes(result: loader.LoadResult) -> dict[layers.LayerOrigin, str]:
    """Short provenance codes: default, primary, inc1, inc2, ..."""
    codes: dict[layers.LayerOrigin, str] = {}
    n = 0
    for origin in result.layers:
        if origin.kind is layers.OriginKind.DEFAULT:
            codes[origin] = "default"
        elif origin.kind is layers.OriginKind.PRIMARY:
            codes[origin] = "primary"
        else:
            n += 1
            codes[origin] = f"inc{n}"
    return codes


def _annotated_lines(
    result: loader.LoadResult,
    section_key: str | None,
    *,
    show_locks: bool,
    show_provenance: bool,
) -> list[str]:
    """Flat `key = value` lines, optionally annotated with lock and origin."""
    codes = _origin_codes(result)
    rows: list[tuple[str, str]] = []
    for key_path, leaf in value.flatten(result.tree):
        if section_key is not None and not value.is_within(key_path, section_key):
            continue
        notes: list[str] = []
        if show_locks:
            state = result.locks.state(key_path)
            notes.append(state.value if state is not None else "-")
        if show_provenance:
            origin = result.provenance.get(key_path)
            notes.append(codes.get(origin, "?") if origin is not None else "?")
        line = f"{key_path} = {_json.dumps(value.to_python(leaf))}"
        rows.append((line, ", ".join(notes)))

    width = max((len(line) for line, _ in rows), default=0)
    lines = [f"{line.ljust(width)}  # {note}" if note else line for line, note in rows]
    if show_provenance:
        legend = [f"# [{code}] {origin}" for origin, code in codes.items()]
        lines = [*legend, "", *lines]
    return lines


@config_cmd.command(name="show")
@_click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@_click.option("--flat", is_flag=True, help="One dotted key path per line")
@_click.option("--section", type=str, default=None, help="Show one section only (e.g. log)")
@_click.option("--locks", "show_locks", is_flag=True, help="Show the lock state of each key")
@_click.option("--provenance", is_flag=True, help="Show which layer set each value")
@_click.option(
    "--color/--no-color",
    "use_color",
    default=None,
    help="Enable/disable syntax highlighting (default: auto-detect TTY)",
)
@_click.pass_context
def config_show(
    ctx: _click.Context,
    as_json: bool,
    flat: bool,
    section: str | None,
    show_locks: bool,
    provenance: bool,
    use_color: bool | None,
) -> None:
    """Show the merged configuration.

    YAML by default. --locks and --provenance switch to the flat
    format with one annotation comment per key.

    Examples:
        arcella config show                  # All config as YAML (colorized)
        arcella config show --section log    # Only arcella.log
        arcella config show --json --locks   # JSON with lock states
        arcella config show --provenance     # Which file set each key
    """
    result = _load(ctx)
    color_enabled, force_color = _should_use_color(use_color)

    section_key = _section_key(section) if section else None
    node: value.Value | None = result.tree
    if section_key is not None:
        node = value.lookup(result.tree, section_key)
        if node is None:
            raise _click.ClickException(f"Unknown section: {section}")

    if as_json:
        payload: dict[str, _typing.Any] = {"values": value.to_python(node)}
        if show_locks:
            payload["locks"] = {
                k: s for k, s in result.locks.as_dict().items()
                if section_key is None or value.is_within(k, section_key)
            }
        if provenance:
            payload["provenance"] = {
                k: str(o) for k, o in result.provenance.items()
                if section_key is None or value.is_within(k, section_key)
            }
        if not show_locks and not provenance:
            payload = payload["values"]
        _click.echo(_json.dumps(payload, indent=2))
    elif flat or show_locks or provenance:
        lines = _annotated_lines(
            result, section_key, show_locks=show_locks, show_provenance=provenance
        )
        _click.echo("\n".join(lines))
    else:
        data = value.to_python(node)
        if not isinstance(data, dict):
            data = {section_key: data}
        yaml_text = _yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
        _print_yaml(yaml_text, color=color_enabled, force_color=force_color)


def _should_use_color(cli_flag: bool | None) -> tuple[bool, bool]:
    """Determine whether to use color output.

    Priority:
    1. CLI flag (--color / --no-color) if specified
    2. ARCELLA_CONFIG_SHOW_COLOR env var (1=on, 0=off)
    3. NO_COLOR env var (if set, disable color) - standard convention
    4. Auto-detect: color if stdout is a TTY

    Returns:
        Tuple of (color_enabled, force_color).
        force_color is True when color was explicitly requested (not auto-detected).
    """
    if cli_flag is not None:
        return (cli_flag, cli_flag)

    env_color = _os.environ.get("ARCELLA_CONFIG_SHOW_COLOR")
    if env_color is not None:
        enabled = env_color.lower() in ("1", "true", "yes", "on")
        return (enabled, enabled)

    if _os.environ.get("NO_COLOR") is not None:
        return (False, False)

    return (_sys.stdout.isatty(), False)


def _print_yaml(yaml_text: str, *, color: bool = True, force_color: bool = False) -> None:
    """Print YAML text, optionally with syntax highlighting."""
    if not color:
        _click.echo(yaml_text)
        return

    # force_terminal/no_color/color_system override NO_COLOR and FORCE_COLOR
    # when color was requested explicitly
    console = _rich_console.Console(
        force_terminal=force_color,
        no_color=False if force_color else None,
        color_system="truecolor" if force_color else "auto",
    )
    syntax = _rich_syntax.Syntax(
        yaml_text,
        "yaml",
        theme="monokai",
        background_color="default",
    )
    console.print(syntax)


@config_cmd.command(name="path")
@_click.option("--all", "show_all", is_flag=True, help="Show all paths even if not found")
@_click.pass_context
def config_path(ctx: _click.Context, show_all: bool) -> None:
    """Show configuration sources in processing order.

    Examples:
        arcella config path        # Sources that exist
        arcella config path --all  # Include missing template/primary
    """
    bootstrap = _bootstrap(ctx)
    config_dir = bootstrap.resolved_config_dir
    primary = config_dir / constants.PRIMARY_CONFIG_NAME

    _click.echo(f"✓ Built-in defaults: {layers.DEFAULT_ORIGIN}")
    for name, path in (
        ("Template", config_dir / constants.TEMPLATE_CONFIG_NAME),
        ("Primary config", primary),
    ):
        exists = path.exists()
        if exists or show_all:
            status = "✓" if exists else "✗"
            _click.echo(f"{status} {name}: {path}")

    if not primary.exists():
        return
    result = _load(ctx)
    for origin in result.layers:
        if origin.kind is layers.OriginKind.INCLUDE:
            _click.echo(f"✓ Include: {origin.path}")


@config_cmd.command(name="verify")
@_click.pass_context
def config_verify(ctx: _click.Context) -> None:
    """Load, fingerprint and verify the monitored configuration files.

    Exits with status 3 if a monitored file cannot be fingerprinted or
    does not match.
    """
    result = _load(ctx)
    statuses = result.integrity.verify()
    for status in statuses:
        if status.intact:
            _click.echo(f"✓ {status.path}")
        else:
            _click.echo(f"✗ {status.path}: {status.reason}")

    failed = [s for s in statuses if not s.intact]
    if failed:
        raise ConfigCommandError(
            errors.IntegrityViolationError(
                [s.path for s in failed],
                [f"{s.path}: {s.reason}" for s in failed],
            )
        )


@config_cmd.command(name="warnings")
@_click.option("--json", "as_json", is_flag=True, help="Output as JSON")
@_click.pass_context
def config_warnings(ctx: _click.Context, as_json: bool) -> None:
    """Show warnings recorded while loading (blocked overrides, skipped includes, ...)."""
    result = _load(ctx)
    if as_json:
        _click.echo(
            _json.dumps(
                [{"kind": w.kind.value, "message": w.message} for w in result.warnings],
                indent=2,
            )
        )
        return
    if not result.warnings:
        _click.echo("No warnings.")
        return
    for warning in result.warnings:
        _click.echo(str(warning))


@config_cmd.command(name="init")
@_click.option(
    "--keep-template",
    is_flag=True,
    help="Do not refresh an existing template file",
)
@_click.pass_context
def config_init(ctx: _click.Context, keep_template: bool) -> None:
    """Create the config directory from the bundled template.

    An existing arcella.toml is never overwritten.
    """
    config_dir = _bootstrap(ctx).resolved_config_dir
    try:
        written = loader.init_config_dir(config_dir, overwrite_template=not keep_template)
    except OSError as e:
        raise _click.ClickException(f"Cannot initialize {config_dir}: {e}") from e

    for path in written:
        _click.echo(f"Wrote {path}")
    primary = config_dir / constants.PRIMARY_CONFIG_NAME
    if primary not in written:
        _click.echo(f"Kept existing {primary}")


# =============================================================================
# Startup Check
# =============================================================================


@cli.command(name="check")
@_click.pass_context
def check(ctx: _click.Context) -> None:
    """Run the full startup sequence: load, start logging, verify integrity."""
    bootstrap = _bootstrap(ctx)
    try:
        outcome = startup.run_startup(
            bootstrap.resolved_config_dir,
            base_dir=bootstrap.base_dir,
            stream=_sys.stderr,
        )
    finally:
        logging_startup.shutdown_logging()

    if not outcome.ok:
        ctx.exit(outcome.exit_code)
    assert outcome.result is not None
    _click.echo(f"Configuration OK ({len(outcome.result.warnings)} warnings)")


def main() -> None:
    """Main entry point with correct program name."""
    cli(prog_name="arcella")


if __name__ == "__main__":
    main()
