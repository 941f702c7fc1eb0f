"""Building the release descriptor from the project file."""

from __future__ import annotations

import importlib
import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from pathlib import Path

from relkit.core.config import ProjectConfig, config_value
from relkit.core.structured import StrDict, as_str_dict
from relkit.platform.runtime import PlatformRuntime
from relkit.release.boot import build_start_boot, build_start_clean_boot
from relkit.release.errors import ConfigurationError
from relkit.release.model import (
    BootEntry,
    ComponentManifest,
    CustomStep,
    Mode,
    Release,
    ReleaseOptions,
    Stage,
    Step,
    StripOptions,
    validate_steps,
)
from relkit.release.resolver import resolve
from relkit.release.storage import ComponentStore, DirectoryStore

__all__ = ["DEFAULT_APPS", "ErtsData", "erts_data", "from_config", "parse_steps"]

DEFAULT_APPS: tuple[BootEntry, ...] = (
    ("kernel", Mode.PERMANENT),
    ("stdlib", Mode.PERMANENT),
    ("elixir", Mode.PERMANENT),
    ("sasl", Mode.PERMANENT),
)
SHELL_APP = "iex"
ERTS_APP = "erts"

_NAME = re.compile(r"[a-z][a-z0-9_]*\Z")
_BOOL_OPTIONS = (
    "overwrite",
    "quiet",
    "reboot_system_after_config",
    "start_distribution_during_config",
    "prune_runtime_sys_config_after_boot",
    "validate_compile_env",
)


@dataclass(frozen=True, slots=True)
class ErtsData:
    source: Path | None
    lib_dir: Path
    version: str


def erts_data(include_erts: object, platform: PlatformRuntime) -> ErtsData:
    """Where the runtime comes from, based on the ``include_erts`` option.

    ``True`` bundles the platform runtime, ``False`` bundles nothing, a path
    bundles the ``erts-<vsn>`` directory it names. A callable is invoked and
    its result interpreted the same way.
    """
    if callable(include_erts):
        include_erts = include_erts()
    if include_erts is False:
        return ErtsData(None, platform.lib_dir, platform.erts_version)
    if include_erts is True:
        return ErtsData(platform.erts_dir, platform.lib_dir, platform.erts_version)
    if isinstance(include_erts, str | Path):
        source = Path(include_erts)
        if not source.exists():
            raise ConfigurationError(f"Could not find ERTS system at {source}")
        _, _, version = source.name.partition("-")
        if not version:
            raise ConfigurationError(f"ERTS directory must be named erts-<version>, got: {source}")
        return ErtsData(source, source.parent / "lib", version)
    raise ConfigurationError(f"Invalid include_erts option: {include_erts!r}")


def parse_steps(value: object) -> tuple[Step, ...]:
    """Turn the ``steps`` option into stages and custom steps.

    Strings ``"assemble"`` and ``"tar"`` name the built-in stages;
    ``"package.module:function"`` imports a custom step.
    """
    if not isinstance(value, list | tuple):
        raise ConfigurationError(f"The steps option must be a list, got: {value!r}")

    steps: list[Step] = []
    for item in value:
        match item:
            case Stage() | CustomStep():
                steps.append(item)
            case "assemble" | "tar":
                steps.append(Stage(item))
            case str() if ":" in item:
                steps.append(CustomStep(_import_step(item), name=item))
            case _ if callable(item):
                steps.append(CustomStep(item, name=getattr(item, "__name__", "custom")))
            case _:
                raise ConfigurationError(
                    "The steps option must be a list of custom step functions "
                    f"or the stages assemble and tar, got: {item!r}"
                )
    return validate_steps(tuple(steps))


def _import_step(reference: str) -> Callable[[Release], Release]:
    module_name, _, attr = reference.partition(":")
    try:
        fn = getattr(importlib.import_module(module_name), attr)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError(f"Could not load step {reference}: {e}") from e
    if not callable(fn):
        raise ConfigurationError(f"Step {reference} is not callable")
    return fn


def _find_release(
    name: str | None, project: ProjectConfig
) -> tuple[str, list[BootEntry], StrDict]:
    releases = project.releases

    if name is None:
        if not releases:
            if project.app is None:
                raise ConfigurationError("No releases are defined and no [project].app is set")
            name, table = project.app, {}
        elif len(releases) == 1:
            name, table = next(iter(releases.items()))
        elif project.default_release is not None:
            return _find_release(project.default_release, project)
        else:
            raise ConfigurationError(
                "Release was requested without a name but there are multiple releases",
                hint="pass a release name or set [project].default_release",
            )
    elif name in releases:
        table = releases[name]
    else:
        raise ConfigurationError(
            f"Unknown release {name}. The available releases are: {', '.join(releases) or 'none'}"
        )

    opts = dict(table)
    requested = as_str_dict(opts.pop("applications", {}))
    if requested is None:
        raise ConfigurationError(f"applications of release {name} must be a table")
    apps: list[BootEntry] = []
    for app, mode in requested.items():
        if not isinstance(mode, str):
            raise ConfigurationError(f"Mode of {app} must be a string, got: {mode!r}")
        apps.append((app, Mode.parse(mode)))

    requested_names = {app for app, _ in apps}
    roots = [entry for entry in DEFAULT_APPS if entry[0] not in requested_names] + apps
    if project.app is not None and all(app != project.app for app, _ in roots):
        roots.append((project.app, Mode.PERMANENT))
    return name, roots, opts


def _version(
    value: object, applications: Mapping[str, ComponentManifest], store: ComponentStore
) -> str:
    match value:
        case None:
            raise ConfigurationError(
                "No version found. Please make sure a version is set in [project] "
                "or inside the release configuration"
            )
        case "":
            raise ConfigurationError("The release version cannot be an empty string")
        case str():
            return value
        case {"from_app": str(app)}:
            manifest = applications.get(app)
            if manifest is None:
                location = store.locate(app)
                if location is not None:
                    manifest = store.read(app, location, Mode.LOAD)
            if manifest is None:
                raise ConfigurationError(
                    f"Could not find version for {app}, please make sure the application exists"
                )
            return manifest.version
    raise ConfigurationError(f"Invalid release version: {value!r}")


def _strip_option(value: object) -> bool | StripOptions:
    match value:
        case bool():
            return value
        case list():
            return StripOptions(keep=tuple(str(v) for v in value))
        case {**table}:
            keep = table.get("keep", [])
            compress = table.get("compress", False)
            if not isinstance(keep, list) or not isinstance(compress, bool):
                raise ConfigurationError(f"Invalid strip_beams option: {value!r}")
            return StripOptions(keep=tuple(str(k) for k in keep), compress=compress)
    raise ConfigurationError(f"Invalid strip_beams option: {value!r}")


def _config_providers(value: object) -> tuple[tuple[str, object], ...]:
    if not isinstance(value, list | tuple):
        raise ConfigurationError("config_providers must be a list")
    providers: list[tuple[str, object]] = []
    for item in value:
        match item:
            case (str(provider), init):
                providers.append((provider, init))
            case {"provider": str(provider), **rest}:
                providers.append((provider, config_value(rest.get("init"))))
            case _:
                raise ConfigurationError(f"Invalid config provider: {item!r}")
    return tuple(providers)


def _options(opts: dict[str, object]) -> ReleaseOptions:
    flags: dict[str, bool] = {}
    for key in _BOOL_OPTIONS:
        if key in opts:
            value = opts.pop(key)
            if not isinstance(value, bool):
                raise ConfigurationError(f"Option {key} must be a boolean, got: {value!r}")
            flags[key] = value

    skip = opts.pop("skip_mode_validation_for", [])
    if not isinstance(skip, list | tuple | set | frozenset):
        raise ConfigurationError("skip_mode_validation_for must be a list of application names")

    return ReleaseOptions(
        strip_beams=_strip_option(opts.pop("strip_beams", True)),
        skip_mode_validation_for=frozenset(str(s) for s in skip),
        extra=opts,
        **flags,
    )


def from_config(
    name: str | None,
    project: ProjectConfig,
    overrides: Mapping[str, object],
    platform: PlatformRuntime,
    *,
    store: ComponentStore | None = None,
) -> Release:
    """Build the release descriptor.

    Options are layered as defaults, then the release table, then
    ``overrides`` (typically from the command line).

    Raises:
        ConfigurationError: Invalid name, version, options or steps.
        GraphResolutionError: The component graph cannot be resolved.
    """
    name, roots, table = _find_release(name, project)

    if not _NAME.match(name):
        raise ConfigurationError(
            "Invalid release name. A release name must start with a lowercase ASCII letter, "
            f"followed by lowercase ASCII letters, numbers, or underscores, got: {name!r}"
        )

    opts: dict[str, object] = {"overwrite": False, "quiet": False, "strip_beams": True}
    opts.update(table)
    opts.update(overrides)

    erts = erts_data(opts.pop("include_erts", True), platform)
    if store is None:
        store = DirectoryStore(erts.lib_dir, project.lib_dirs, project.deps)

    applications = resolve(roots, store)
    if SHELL_APP not in applications and store.locate(SHELL_APP) is not None:
        shell: BootEntry = (SHELL_APP, Mode.NONE)
        applications = resolve([shell], store, dict(roots), resolved=applications)
        roots = [*roots, shell]

    # The runtime is bundled by copy_erts, never as a component.
    applications.pop(ERTS_APP, None)
    roots = [root for root in roots if root[0] != ERTS_APP]

    start_boot = build_start_boot(applications, roots)

    path_value = opts.pop("path", None)
    path = Path(str(path_value)) if path_value else project.build_path / "rel" / name
    path = path.absolute()

    version = _version(opts.pop("version", project.version), applications, store)
    config_providers = _config_providers(opts.pop("config_providers", []))
    steps = parse_steps(opts.pop("steps", ["assemble"]))

    return Release(
        name=name,
        version=version,
        path=path,
        version_path=path / "releases" / version,
        applications=applications,
        boot_scripts={"start": start_boot, "start_clean": build_start_clean_boot(start_boot)},
        erts_source=erts.source,
        erts_version=erts.version,
        config_providers=config_providers,
        options=_options(opts),
        overlays=(),
        steps=steps,
    )
