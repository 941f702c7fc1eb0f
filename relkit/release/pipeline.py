"""Running the release steps.

``assemble`` writes the bundle: runtime binaries, one directory per component,
a boot script per boot sequence, ``sys.config`` and ``start_erl.data``.
``make_tar`` packs the assembled bundle. Custom steps receive the release and
return the next one.
"""

from __future__ import annotations

import shutil
import tarfile
from collections.abc import Mapping
from pathlib import Path

from relkit.core.result import Err
from relkit.core.terms import Atom
from relkit.output.console import ConsoleProtocol, QuietConsole
from relkit.release.boot import make_boot_script
from relkit.release.errors import ReleaseError
from relkit.release.model import CustomStep, Release, Stage
from relkit.release.packager import copy_app, copy_erts, make_start_erl
from relkit.release.sys_config import make_sys_config

__all__ = ["assemble", "make_tar", "run_steps", "runtime_config_path"]


def runtime_config_path(release: Release) -> object:
    """Where configuration providers find runtime configuration at boot."""
    return (Atom("system"), "RELEASE_ROOT", f"/releases/{release.version}/runtime.exs")


def assemble(
    release: Release,
    console: ConsoleProtocol,
    static_config: Mapping[str, Mapping[str, object]],
) -> Release:
    """Write the release bundle under ``release.path``.

    Boot scripts and the runtime configuration are all attempted before any
    failure is reported, so one run surfaces every problem.

    Raises:
        ReleaseError: The release exists and ``overwrite`` is off, or boot
            scripts / runtime configuration could not be written.
    """
    if release.version_path.exists() and not release.options.overwrite:
        raise ReleaseError(
            f"Release {release.name}-{release.version} already exists at {release.version_path}",
            hint="pass --overwrite to replace it",
        )

    release.version_path.mkdir(parents=True, exist_ok=True)

    if copy_erts(release):
        console.step(f"copied erts-{release.erts_version}")

    for name in sorted(release.applications):
        manifest = release.applications[name]
        if copy_app(release, name):
            console.step(f"assembling {name}-{manifest.version}")
        else:
            console.print(f"skipping {name}-{manifest.version} (provided by the platform)")

    errors: list[str] = []
    for boot_name, modes in release.boot_scripts.items():
        result = make_boot_script(release, release.version_path / boot_name, modes)
        if isinstance(result, Err):
            errors.append(f"{boot_name}: {result.error}")
        else:
            console.step(f"wrote {result.value.name}")

    start_rel = release.version_path / "start.rel"
    if start_rel.exists():
        shutil.copy(start_rel, release.version_path / f"{release.name}.rel")

    config_result = make_sys_config(release, static_config, runtime_config_path(release))
    if isinstance(config_result, Err):
        errors.append(config_result.error.message)
    else:
        console.step(f"wrote {config_result.value.name}")

    make_start_erl(release, release.path / "releases" / "start_erl.data")

    if errors:
        raise ReleaseError("\n".join(errors))
    return release


def make_tar(release: Release, console: ConsoleProtocol) -> Path:
    """Pack the assembled release into ``<name>-<version>.tar.gz`` at its root."""
    tar_path = release.path / f"{release.name}-{release.version}.tar.gz"
    entries = ["lib", "releases", "bin"]
    if release.erts_source is not None:
        entries.append(f"erts-{release.erts_version}")
    entries.extend(release.overlays)

    with tarfile.open(tar_path, "w:gz") as tar:
        for entry in dict.fromkeys(entries):
            source = release.path / entry
            if source.exists():
                tar.add(source, arcname=entry)

    console.step(f"created {tar_path.name}")
    return tar_path


def run_steps(
    release: Release,
    console: ConsoleProtocol,
    static_config: Mapping[str, Mapping[str, object]],
) -> Release:
    """Run every step of the release in order and return the final release."""
    if release.options.quiet:
        console = QuietConsole(console)

    for step in release.steps:
        match step:
            case Stage.ASSEMBLE:
                release = assemble(release, console, static_config)
            case Stage.TAR:
                make_tar(release, console)
            case CustomStep():
                result = step(release)
                if not isinstance(result, Release):
                    raise ReleaseError(
                        f"Step {step.name} must return a release, got: {type(result).__name__}"
                    )
                release = result
    return release
