"""Typed loading of the project file (``relkit.toml``).

The project file describes the project's own component, where its build
output lives, the platform runtime, the releases it can assemble and the
static runtime configuration. Release tables are kept raw here and validated
when a release descriptor is built from them.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_str, get_str_list, get_table
from .terms import Atom

__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "PlatformConfig",
    "ProjectConfig",
    "config_value",
    "load_project_config",
]

CONFIG_FILENAME = "relkit.toml"
DEFAULT_BUILD_PATH = "_build"


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when the project file cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class PlatformConfig:
    """Platform runtime settings as written in the project file."""

    root: Path | None = None
    erts_version: str | None = None


def config_value(value: object) -> object:
    """Convert a TOML value to its runtime configuration term.

    Strings starting with ``:`` become atoms and nested tables become keyword
    lists. Other values are kept as they are.
    """
    if isinstance(value, str) and value.startswith(":") and len(value) > 1:
        return Atom(value[1:])
    table = as_str_dict(value)
    if table is not None:
        return [(Atom(k), config_value(v)) for k, v in table.items()]
    if isinstance(value, list):
        return [config_value(v) for v in value]
    return value


@dataclass(frozen=True, slots=True)
class ProjectConfig:
    """The parsed project file."""

    root: Path
    app: str | None = None
    version: str | None = None
    build_path: Path = Path(DEFAULT_BUILD_PATH)
    lib_dirs: tuple[Path, ...] = ()
    deps: tuple[str, ...] = ()
    default_release: str | None = None
    releases: Mapping[str, StrDict] = field(default_factory=dict)
    config: Mapping[str, dict[str, object]] = field(default_factory=dict)
    platform: PlatformConfig = field(default_factory=PlatformConfig)

    @classmethod
    def from_dict(cls, data: Mapping[str, object], root: Path) -> ProjectConfig:
        """Create a ProjectConfig from a parsed TOML mapping.

        Relative paths are resolved against ``root``, the directory holding
        the project file.
        """
        project: StrDict = get_table(data, "project") or {}
        platform: StrDict = get_table(data, "platform") or {}
        releases: StrDict = get_table(data, "releases") or {}
        static: StrDict = get_table(data, "config") or {}

        build_path = root / (get_str(project, "build_path") or DEFAULT_BUILD_PATH)
        lib_dirs = get_str_list(project, "lib_dirs")
        platform_root = get_str(platform, "root")

        release_tables: dict[str, StrDict] = {}
        for name, table in releases.items():
            parsed = as_str_dict(table)
            if parsed is None:
                raise ValueError(f"release {name!r} must be a table")
            release_tables[name] = parsed

        static_config: dict[str, dict[str, object]] = {}
        for app, table in static.items():
            parsed = as_str_dict(table)
            if parsed is None:
                raise ValueError(f"config for {app!r} must be a table")
            static_config[app] = {k: config_value(v) for k, v in parsed.items()}

        return cls(
            root=root,
            app=get_str(project, "app"),
            version=get_str(project, "version"),
            build_path=build_path,
            lib_dirs=tuple(root / d for d in lib_dirs) if lib_dirs else (build_path / "lib",),
            deps=tuple(get_str_list(project, "deps") or ()),
            default_release=get_str(project, "default_release"),
            releases=release_tables,
            config=static_config,
            platform=PlatformConfig(
                root=(root / platform_root) if platform_root else None,
                erts_version=get_str(platform, "erts_version"),
            ),
        )


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling read and parse errors."""
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Project file root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Project file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading project file: {e}", path=path))


def load_project_config(path: Path) -> Result[ProjectConfig, ConfigError]:
    """Load and parse the project file.

    Args:
        path: Path to relkit.toml

    Returns:
        Ok(ProjectConfig) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(ProjectConfig.from_dict(result.value, path.parent.resolve()))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid project structure: {e}", path=path))
