"""Copying components into the bundle tree.

Layout produced under the release root::

    lib/<name>-<vsn>/ebin/       compiled artifacts (stripped unless disabled)
    lib/<name>-<vsn>/priv/       copied as-is, symlinks dereferenced
    lib/<name>-<vsn>/include/
    erts-<vsn>/bin/              runtime binaries and a regenerated launcher
"""

from __future__ import annotations

import shutil
from pathlib import Path

from relkit.core.terms import Atom, TermSyntaxError, consult_file, format_term
from relkit.platform.files import atomic_write_bytes, atomic_write_text
from relkit.release.beam import BeamError, strip_beam
from relkit.release.model import Release, StripOptions

__all__ = [
    "COPY_APP_DIRS",
    "copy_app",
    "copy_ebin",
    "copy_erts",
    "make_start_erl",
]

COPY_APP_DIRS = ("priv", "include")

ERL_LAUNCHER = """\
#!/bin/sh
SELF=$(readlink "$0" || true)
if [ -z "$SELF" ]; then SELF="$0"; fi
BINDIR="$(cd "$(dirname "$SELF")" && pwd -P)"
ROOTDIR="${ERL_ROOTDIR:-"$(dirname "$(dirname "$BINDIR")")"}"
EMU=beam
PROGNAME=$(echo "$0" | sed 's/.*\\///')
export EMU
export ROOTDIR
export BINDIR
export PROGNAME
exec "$BINDIR/erlexec" ${1+"$@"}
"""


def copy_erts(release: Release) -> bool:
    """Copy the runtime binaries into the release if it bundles the runtime.

    Existing files are left alone. The ``erl`` launcher is always rewritten
    so it resolves paths relative to the release.

    Returns:
        True if the runtime was copied, False if it is not bundled.
    """
    if release.erts_source is None:
        return False

    destination = release.path / f"erts-{release.erts_version}" / "bin"
    destination.mkdir(parents=True, exist_ok=True)

    source = release.erts_source / "bin"
    for item in sorted(source.rglob("*")):
        target = destination / item.relative_to(source)
        if item.is_dir():
            target.mkdir(parents=True, exist_ok=True)
        elif not target.exists():
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(item, target)

    (destination / "erl").unlink(missing_ok=True)
    (destination / "erl.ini").unlink(missing_ok=True)
    atomic_write_bytes(destination / "erl", ERL_LAUNCHER.encode("utf-8"), mode=0o755)
    return True


def copy_app(release: Release, name: str) -> bool:
    """Copy one resolved component into ``lib/<name>-<vsn>``.

    Returns:
        False when the component comes from the platform runtime and the
        runtime is not bundled: skipped, not an error.

    Raises:
        KeyError: ``name`` is not part of the release.
    """
    manifest = release.applications[name]
    if release.erts_source is None and manifest.otp_app:
        return False

    target_app = release.path / "lib" / f"{name}-{manifest.version}"
    shutil.rmtree(target_app, ignore_errors=True)
    target_app.mkdir(parents=True, exist_ok=True)

    copy_ebin(release, manifest.path / "ebin", target_app / "ebin")

    for dirname in COPY_APP_DIRS:
        source_dir = manifest.path / dirname
        if source_dir.exists():
            shutil.copytree(source_dir, target_app / dirname, symlinks=False, dirs_exist_ok=True)

    return True


def copy_ebin(release: Release, source: Path, target: Path) -> bool:
    """Copy a compiled-artifact directory, honouring the strip settings.

    Returns:
        False if ``source`` is missing or empty.
    """
    if not source.is_dir():
        return False
    files = sorted(p for p in source.iterdir() if p.is_file())
    if not files:
        return False

    target.mkdir(parents=True, exist_ok=True)
    strip_options = release.options.strip_options

    for source_file in files:
        target_file = target / source_file.name
        match source_file.suffix:
            case ".beam":
                _process_beam_file(source_file, target_file, strip_options)
            case ".app":
                _process_app_file(source_file, target_file)
            case _:
                # shutil.copy keeps the mode bits, so bundled executables stay executable
                shutil.copy(source_file, target_file)

    return True


def _process_beam_file(source: Path, target: Path, options: StripOptions | None) -> None:
    if options is None:
        shutil.copy(source, target)
        return
    try:
        stripped = strip_beam(source.read_bytes(), options.keep, compress=options.compress)
    except BeamError:
        shutil.copy(source, target)
        return
    atomic_write_bytes(target, stripped)


def _process_app_file(source: Path, target: Path) -> None:
    try:
        terms = consult_file(source)
    except TermSyntaxError:
        shutil.copy(source, target)
        return

    match terms:
        case [(Atom("application"), Atom(), list()) as app]:
            atomic_write_text(target, format_term(app) + ".\n")
        case _:
            shutil.copy(source, target)


def make_start_erl(release: Release, path: Path) -> None:
    """Write ``<erts_version> <release version>``."""
    atomic_write_text(path, f"{release.erts_version} {release.version}")
