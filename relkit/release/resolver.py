"""Transitive closure of the components a release needs.

Resolution walks an explicit work-list of ``(name, requested mode)`` requests
against a map of already-resolved manifests. A component is expanded when it
is first seen and re-expanded only when a later request strengthens its mode,
so the walk terminates on cyclic graphs and every component ends up with the
strongest mode requested along any path to it.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, replace

from relkit.release.errors import UnresolvedComponentError
from relkit.release.model import BootEntry, ComponentManifest, Mode
from relkit.release.modes import merge_mode
from relkit.release.storage import ComponentStore

__all__ = ["resolve"]


@dataclass(frozen=True, slots=True)
class _Request:
    name: str
    mode: Mode
    optional: bool = False


def _dependencies(manifest: ComponentManifest, *, with_included: bool) -> Iterator[_Request]:
    child_mode = Mode.LOAD if manifest.mode == Mode.INCLUDED else manifest.mode
    optional = set(manifest.optional_applications)
    for dep in manifest.applications:
        yield _Request(dep, child_mode, dep in optional)
    if with_included:
        for dep in manifest.included_applications:
            yield _Request(dep, Mode.INCLUDED)


def resolve(
    roots: Sequence[BootEntry],
    store: ComponentStore,
    overrides: Mapping[str, Mode] | None = None,
    *,
    resolved: Mapping[str, ComponentManifest] | None = None,
) -> dict[str, ComponentManifest]:
    """Resolve ``roots`` and everything they depend on.

    Args:
        roots: Requested components and modes, in order.
        store: Where manifests are located and read.
        overrides: Modes pinned by name; later requests never change them.
            Defaults to the roots themselves.
        resolved: Components already resolved by an earlier call, extended in
            a copy.

    Returns:
        A new map of component name to manifest, each with its final mode.

    Raises:
        UnresolvedComponentError: A required component cannot be located.
        ModeConflictError: A component is both included and regularly required.
    """
    pinned = dict(roots) if overrides is None else dict(overrides)
    seen: dict[str, ComponentManifest] = dict(resolved or {})
    pending = deque(_Request(name, mode) for name, mode in roots)

    while pending:
        request = pending.popleft()
        current = seen.get(request.name)

        if current is None:
            location = store.locate(request.name)
            if location is None:
                if request.optional:
                    continue
                raise UnresolvedComponentError(request.name)
            mode = pinned.get(request.name, request.mode)
            manifest = store.read(request.name, location, mode)
            seen[request.name] = manifest
            pending.extend(_dependencies(manifest, with_included=True))
            continue

        if request.name in pinned:
            continue

        merged = merge_mode(request.name, request.mode, current.mode)
        if merged == current.mode:
            continue

        updated = replace(current, mode=merged)
        seen[request.name] = updated
        pending.extend(_dependencies(updated, with_included=False))

    return seen
