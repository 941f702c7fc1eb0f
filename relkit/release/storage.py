"""Where component manifests come from.

The resolver only talks to a ``ComponentStore``. ``DirectoryStore`` reads
``ebin/<name>.app`` manifests from the platform runtime and the project's
build output; ``MemoryStore`` serves manifests held in memory, which keeps
resolution testable without touching disk.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Protocol

from relkit.core.terms import Atom, TermSyntaxError, consult_file
from relkit.release.errors import UnresolvedComponentError
from relkit.release.model import ComponentManifest, Mode

__all__ = [
    "ComponentStore",
    "DirectoryStore",
    "Location",
    "MemoryStore",
    "manifest_from_term",
]


@dataclass(frozen=True, slots=True)
class Location:
    """Directory holding a component, and whether the platform provides it."""

    path: Path
    otp_app: bool


class ComponentStore(Protocol):
    def locate(self, name: str) -> Location | None:
        """Find a component, trying the platform runtime before the build output."""
        ...

    def read(self, name: str, location: Location, mode: Mode) -> ComponentManifest:
        """Load the manifest found by ``locate``.

        Raises:
            UnresolvedComponentError: If the manifest cannot be read.
        """
        ...


def _names(value: object) -> tuple[str, ...]:
    if not isinstance(value, list):
        return ()
    return tuple(str(item) for item in value if isinstance(item, Atom | str))


def manifest_from_term(
    name: str, term: object, *, path: Path, mode: Mode, otp_app: bool
) -> ComponentManifest:
    """Build a manifest from an ``{application, Name, Props}`` term."""
    match term:
        case (Atom("application"), Atom(found), list(props)) if found == name:
            pass
        case _:
            raise UnresolvedComponentError(name, f"unexpected manifest contents in {path}")

    properties: dict[str, object] = {}
    for prop in props:
        if isinstance(prop, tuple) and len(prop) == 2 and isinstance(prop[0], Atom):
            properties[prop[0].name] = prop[1]

    vsn = properties.get("vsn")
    if not isinstance(vsn, str):
        raise UnresolvedComponentError(name, "missing vsn")

    compile_env = properties.get("compile_env")
    return ComponentManifest(
        name=name,
        version=str(vsn),
        path=path,
        mode=mode,
        applications=_names(properties.get("applications")),
        optional_applications=_names(properties.get("optional_applications")),
        included_applications=_names(properties.get("included_applications")),
        compile_env=tuple(compile_env) if isinstance(compile_env, list) else (),
        modules=_names(properties.get("modules")),
        otp_app=otp_app,
    )


class DirectoryStore:
    """Reads manifests from the platform lib directory and build lib directories.

    Components listed in ``deps`` are always taken from the build output, even
    when the platform ships a component with the same name.
    """

    def __init__(
        self,
        platform_lib_dir: Path | None,
        lib_dirs: Sequence[Path],
        deps: Iterable[str] = (),
    ) -> None:
        self._platform_lib_dir = platform_lib_dir
        self._lib_dirs = tuple(lib_dirs)
        self._deps = frozenset(deps)

    def _platform_path(self, name: str) -> Path | None:
        if self._platform_lib_dir is None or name in self._deps:
            return None
        matches = sorted(p for p in self._platform_lib_dir.glob(f"{name}-*") if p.is_dir())
        return matches[-1] if matches else None

    def _build_path(self, name: str) -> Path | None:
        for lib_dir in self._lib_dirs:
            candidate = lib_dir / name
            if (candidate / "ebin" / f"{name}.app").is_file():
                return candidate
            versioned = sorted(
                p for p in lib_dir.glob(f"{name}-*") if (p / "ebin" / f"{name}.app").is_file()
            )
            if versioned:
                return versioned[-1]
        return None

    def locate(self, name: str) -> Location | None:
        path = self._platform_path(name)
        if path is not None:
            return Location(path, otp_app=True)
        path = self._build_path(name)
        if path is not None:
            return Location(path, otp_app=False)
        return None

    def read(self, name: str, location: Location, mode: Mode) -> ComponentManifest:
        app_file = location.path / "ebin" / f"{name}.app"
        try:
            terms = consult_file(app_file)
        except (OSError, TermSyntaxError) as e:
            raise UnresolvedComponentError(name, str(e)) from e

        if len(terms) != 1:
            raise UnresolvedComponentError(name, f"expected a single term in {app_file}")
        return manifest_from_term(
            name, terms[0], path=location.path, mode=mode, otp_app=location.otp_app
        )


class MemoryStore:
    """Serves manifests from a mapping of name to manifest."""

    def __init__(self, manifests: Mapping[str, ComponentManifest]) -> None:
        self._manifests = dict(manifests)

    def locate(self, name: str) -> Location | None:
        manifest = self._manifests.get(name)
        if manifest is None:
            return None
        return Location(manifest.path, otp_app=manifest.otp_app)

    def read(self, name: str, location: Location, mode: Mode) -> ComponentManifest:
        return replace(self._manifests[name], mode=mode, path=location.path)
