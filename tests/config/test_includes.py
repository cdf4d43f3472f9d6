"""Tests for the Include Resolver."""

import pathlib as _pathlib
import typing as _typing

import pytest as _pytest

import arcella.config.includes as includes
import arcella.config.layers as layers
import arcella.config.sink as sink_module

WriteConfig = _typing.Callable[[str, str], _pathlib.Path]


def _touch(path: _pathlib.Path, text: str = "") -> _pathlib.Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


def _walk(config_dir: _pathlib.Path, **kwargs: _typing.Any) -> tuple[list[str], sink_module.WarningSink]:
    """Walk from config_dir/arcella.toml; return loaded paths relative to config_dir."""
    warnings = sink_module.WarningSink()
    resolver = includes.IncludeResolver(config_dir, warnings, **kwargs)
    root = layers.load_primary_layer(config_dir / "arcella.toml")
    loaded = [
        layer.origin.path.relative_to(config_dir).as_posix()  # type: ignore[union-attr]
        for layer in resolver.walk(root)
    ]
    return loaded, warnings


class TestIsSourceFile:
    """Which files count as configuration sources."""

    @_pytest.mark.parametrize(
        ("name", "expected"),
        [
            ("a.toml", True),
            ("B.TOML", True),
            ("arcella.template.toml", False),
            ("X.Template.TOML", False),
            ("notes.txt", False),
            ("toml", False),
        ],
    )
    def test_names(self, tmp_path: _pathlib.Path, name: str, expected: bool) -> None:
        assert includes.is_source_file(_touch(tmp_path / name)) is expected

    def test_directory_is_not_source(self, tmp_path: _pathlib.Path) -> None:
        (tmp_path / "dir.toml").mkdir()
        assert not includes.is_source_file(tmp_path / "dir.toml")


class TestResolveEntry:
    """Entries resolve against the config directory."""

    def test_relative(self, tmp_path: _pathlib.Path) -> None:
        assert includes.resolve_entry("conf.d", tmp_path) == tmp_path / "conf.d"

    def test_absolute(self, tmp_path: _pathlib.Path) -> None:
        assert includes.resolve_entry("/etc/x.toml", tmp_path) == _pathlib.Path("/etc/x.toml")


class TestExpandDirectory:
    """Directory includes expand level by level."""

    def test_sorted_and_filtered(self, tmp_path: _pathlib.Path) -> None:
        d = tmp_path / "conf.d"
        for name in ["b.toml", "A.toml", "c.template.toml", "readme.txt", "a.toml"]:
            _touch(d / name)
        found = [p.name for p in includes.expand_directory(d)]
        assert found == ["A.toml", "a.toml", "b.toml"]

    def test_shallow_levels_first(self, tmp_path: _pathlib.Path) -> None:
        """A file at level 0 precedes every deeper file regardless of name."""
        d = tmp_path / "conf.d"
        _touch(d / "z.toml")
        _touch(d / "a" / "b.toml")
        _touch(d / "a" / "a.toml")
        _touch(d / "b" / "a.toml")
        found = [p.relative_to(d).as_posix() for p in includes.expand_directory(d)]
        assert found == ["z.toml", "a/a.toml", "a/b.toml", "b/a.toml"]

    def test_depth_bound(self, tmp_path: _pathlib.Path) -> None:
        d = tmp_path / "conf.d"
        _touch(d / "0.toml")
        _touch(d / "l1" / "1.toml")
        _touch(d / "l1" / "l2" / "2.toml")
        _touch(d / "l1" / "l2" / "l3" / "3.toml")
        _touch(d / "l1" / "l2" / "l3" / "l4" / "4.toml")
        found = [p.name for p in includes.expand_directory(d, max_depth=3)]
        assert found == ["0.toml", "1.toml", "2.toml", "3.toml"]
        assert [p.name for p in includes.expand_directory(d, max_depth=0)] == ["0.toml"]


class TestResolve:
    """resolve() maps one layer's entries to concrete paths."""

    def test_missing_and_non_source_entries_are_skipped(self, config_dir: _pathlib.Path) -> None:
        _touch(config_dir / "notes.txt")
        _touch(config_dir / "ok.toml")
        warnings = sink_module.WarningSink()
        resolver = includes.IncludeResolver(config_dir, warnings)
        paths = resolver.resolve(
            ["missing.toml", "notes.txt", "ok.toml"], layers.DEFAULT_ORIGIN
        )
        assert paths == [config_dir / "ok.toml"]
        skipped = warnings.of_kind(sink_module.WarningKind.SKIPPED_INCLUDE)
        assert [(w.entry, w.reason) for w in skipped] == [  # type: ignore[attr-defined]
            ("missing.toml", "not found"),
            ("notes.txt", "not a configuration source"),
        ]

    def test_explicit_template_is_skipped(self, config_dir: _pathlib.Path) -> None:
        _touch(config_dir / "arcella.template.toml")
        warnings = sink_module.WarningSink()
        resolver = includes.IncludeResolver(config_dir, warnings)
        assert resolver.resolve(["arcella.template.toml"], layers.DEFAULT_ORIGIN) == []
        assert len(warnings) == 1


class TestWalk:
    """Depth-first walk over the include tree."""

    def test_depth_first_order(self, config_dir: _pathlib.Path, write_config: WriteConfig) -> None:
        write_config("arcella.toml", 'includes = ["a.toml", "b.toml"]')
        write_config("a.toml", 'includes = ["a1.toml", "a2.toml"]')
        write_config("a1.toml", 'includes = ["a1x.toml"]')
        write_config("a1x.toml", "")
        write_config("a2.toml", "")
        write_config("b.toml", "")
        loaded, warnings = _walk(config_dir)
        assert loaded == ["a.toml", "a1.toml", "a1x.toml", "a2.toml", "b.toml"]
        assert not warnings

    def test_entries_resolve_against_config_dir(
        self, config_dir: _pathlib.Path, write_config: WriteConfig
    ) -> None:
        """An entry inside sub/inner.toml still names a file in the config dir."""
        write_config("arcella.toml", 'includes = ["sub/inner.toml"]')
        write_config("sub/inner.toml", 'includes = ["x.toml"]')
        write_config("x.toml", "")
        write_config("sub/x.toml", "")
        loaded, _warnings = _walk(config_dir)
        assert loaded == ["sub/inner.toml", "x.toml"]

    def test_directory_entry(self, config_dir: _pathlib.Path, write_config: WriteConfig) -> None:
        write_config("arcella.toml", 'includes = ["conf.d", "last.toml"]')
        write_config("conf.d/20-b.toml", "")
        write_config("conf.d/10-a.toml", 'includes = ["nested.toml"]')
        write_config("conf.d/sub/05-c.toml", "")
        write_config("conf.d/example.template.toml", "")
        write_config("nested.toml", "")
        write_config("last.toml", "")
        loaded, _warnings = _walk(config_dir)
        assert loaded == [
            "conf.d/10-a.toml",
            "nested.toml",
            "conf.d/20-b.toml",
            "conf.d/sub/05-c.toml",
            "last.toml",
        ]

    def test_long_chain_hits_depth_limit(
        self, config_dir: _pathlib.Path, write_config: WriteConfig
    ) -> None:
        """A chain of distinct files stops at the depth bound with a warning."""
        write_config("arcella.toml", 'includes = ["c1.toml"]')
        for i in range(1, 8):
            write_config(f"c{i}.toml", f'includes = ["c{i + 1}.toml"]')
        write_config("c8.toml", "")

        loaded, warnings = _walk(config_dir, max_depth=5)

        assert loaded == ["c1.toml", "c2.toml", "c3.toml", "c4.toml", "c5.toml"]
        [warning] = warnings.snapshot()
        assert isinstance(warning, sink_module.DepthLimitExceeded)
        assert warning.path == config_dir / "c6.toml"
        assert warning.included_from.path == config_dir / "c5.toml"
        assert warning.max_depth == 5

    def test_cycle_terminates(self, config_dir: _pathlib.Path, write_config: WriteConfig) -> None:
        write_config("arcella.toml", 'includes = ["a.toml"]')
        write_config("a.toml", 'includes = ["b.toml"]')
        write_config("b.toml", 'includes = ["a.toml", "arcella.toml"]')
        loaded, warnings = _walk(config_dir)
        assert loaded == ["a.toml", "b.toml"]
        dupes = warnings.of_kind(sink_module.WarningKind.DUPLICATE_INCLUDE)
        assert [w.path.name for w in dupes] == ["a.toml", "arcella.toml"]  # type: ignore[attr-defined]

    def test_self_include(self, config_dir: _pathlib.Path, write_config: WriteConfig) -> None:
        write_config("arcella.toml", 'includes = ["loop.toml"]')
        write_config("loop.toml", 'includes = ["loop.toml"]')
        loaded, warnings = _walk(config_dir)
        assert loaded == ["loop.toml"]
        assert len(warnings) == 1

    def test_diamond_loads_shared_once(
        self, config_dir: _pathlib.Path, write_config: WriteConfig
    ) -> None:
        write_config("arcella.toml", 'includes = ["left.toml", "right.toml"]')
        write_config("left.toml", 'includes = ["shared.toml"]')
        write_config("right.toml", 'includes = ["shared.toml"]')
        write_config("shared.toml", "")
        loaded, warnings = _walk(config_dir)
        assert loaded == ["left.toml", "shared.toml", "right.toml"]
        [warning] = warnings.snapshot()
        assert isinstance(warning, sink_module.DuplicateInclude)
        assert warning.included_from.path == config_dir / "right.toml"

    def test_visited_tracks_primary(self, config_dir: _pathlib.Path, write_config: WriteConfig) -> None:
        write_config("arcella.toml", 'includes = ["a.toml"]')
        write_config("a.toml", "")
        warnings = sink_module.WarningSink()
        resolver = includes.IncludeResolver(config_dir, warnings)
        list(resolver.walk(layers.load_primary_layer(config_dir / "arcella.toml")))
        assert resolver.visited == frozenset(
            {(config_dir / "arcella.toml").resolve(), (config_dir / "a.toml").resolve()}
        )
