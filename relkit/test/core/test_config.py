"""Tests for relkit.core.config module."""

from __future__ import annotations

from pathlib import Path

from relkit.core.config import (
    CONFIG_FILENAME,
    ConfigError,
    ProjectConfig,
    config_value,
    load_project_config,
)
from relkit.core.result import Err, Ok
from relkit.core.terms import Atom

PROJECT_TOML = """\
[project]
app = "demo"
version = "0.1.0"
deps = ["jason"]
default_release = "demo"

[platform]
root = "otp"
erts_version = "14.2"

[releases.demo]
include_erts = false

[releases.demo.applications]
runtime_tools = "load"

[config.demo]
level = ":info"
name = "demo"

[config.demo.endpoint]
port = 4000
"""


def _write(tmp_path: Path, content: str) -> Path:
    path = tmp_path / CONFIG_FILENAME
    path.write_text(content, encoding="utf-8")
    return path


class TestConfigValue:
    def test_atoms(self) -> None:
        assert config_value(":info") == Atom("info")
        assert config_value(":") == ":"
        assert config_value("info") == "info"

    def test_tables_become_keyword_lists(self) -> None:
        assert config_value({"port": 4000, "scheme": ":https"}) == [
            (Atom("port"), 4000),
            (Atom("scheme"), Atom("https")),
        ]

    def test_lists(self) -> None:
        assert config_value([":a", 1]) == [Atom("a"), 1]


class TestLoadProjectConfig:
    def test_full_file(self, tmp_path: Path) -> None:
        result = load_project_config(_write(tmp_path, PROJECT_TOML))

        assert isinstance(result, Ok)
        project = result.value
        root = tmp_path.resolve()
        assert project.root == root
        assert project.app == "demo"
        assert project.version == "0.1.0"
        assert project.deps == ("jason",)
        assert project.default_release == "demo"
        assert project.build_path == root / "_build"
        assert project.lib_dirs == (root / "_build" / "lib",)
        assert project.platform.root == root / "otp"
        assert project.platform.erts_version == "14.2"
        assert project.releases["demo"]["include_erts"] is False
        assert project.releases["demo"]["applications"] == {"runtime_tools": "load"}
        assert project.config["demo"]["level"] == Atom("info")
        assert project.config["demo"]["name"] == "demo"
        assert project.config["demo"]["endpoint"] == [(Atom("port"), 4000)]

    def test_custom_lib_dirs(self, tmp_path: Path) -> None:
        content = '[project]\nbuild_path = "out"\nlib_dirs = ["deps/a", "deps/b"]\n'
        result = load_project_config(_write(tmp_path, content))

        assert isinstance(result, Ok)
        root = tmp_path.resolve()
        assert result.value.build_path == root / "out"
        assert result.value.lib_dirs == (root / "deps/a", root / "deps/b")

    def test_empty_file_uses_defaults(self, tmp_path: Path) -> None:
        result = load_project_config(_write(tmp_path, ""))

        assert isinstance(result, Ok)
        assert result.value.app is None
        assert result.value.releases == {}
        assert result.value.platform.root is None

    def test_missing_file(self, tmp_path: Path) -> None:
        result = load_project_config(tmp_path / CONFIG_FILENAME)

        assert isinstance(result, Err)
        assert isinstance(result.error, ConfigError)
        assert "not found" in result.error.message

    def test_invalid_toml(self, tmp_path: Path) -> None:
        result = load_project_config(_write(tmp_path, "[project\n"))

        assert isinstance(result, Err)
        assert "Invalid TOML" in result.error.message

    def test_release_must_be_table(self, tmp_path: Path) -> None:
        result = load_project_config(_write(tmp_path, '[releases]\ndemo = "x"\n'))

        assert isinstance(result, Err)
        assert "release 'demo' must be a table" in result.error.message


def test_from_dict_without_file(tmp_path: Path) -> None:
    project = ProjectConfig.from_dict({"project": {"app": "demo"}}, tmp_path)
    assert project.app == "demo"
    assert project.lib_dirs == (tmp_path / "_build" / "lib",)
