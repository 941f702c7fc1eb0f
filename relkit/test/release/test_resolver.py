"""Tests for relkit.release.resolver module."""

from __future__ import annotations

from pathlib import Path

import pytest

from relkit.release.boot import build_start_boot
from relkit.release.errors import ModeConflictError, UnresolvedComponentError
from relkit.release.model import ComponentManifest, Mode
from relkit.release.resolver import resolve
from relkit.release.storage import MemoryStore


def _manifest(
    name: str,
    *applications: str,
    included: tuple[str, ...] = (),
    optional: tuple[str, ...] = (),
) -> ComponentManifest:
    return ComponentManifest(
        name=name,
        version="1.0.0",
        path=Path("/build/lib") / name,
        mode=Mode.LOAD,
        applications=applications,
        optional_applications=optional,
        included_applications=included,
    )


def _store(*manifests: ComponentManifest) -> MemoryStore:
    return MemoryStore({m.name: m for m in manifests})


def _modes(resolved: dict[str, ComponentManifest]) -> dict[str, Mode]:
    return {name: manifest.mode for name, manifest in resolved.items()}


class TestResolve:
    def test_dependency_inherits_mode(self) -> None:
        store = _store(_manifest("a", "b"), _manifest("b"))
        roots = [("a", Mode.PERMANENT)]

        resolved = resolve(roots, store)

        assert _modes(resolved) == {"a": Mode.PERMANENT, "b": Mode.PERMANENT}
        assert build_start_boot(resolved, roots) == (("a", Mode.PERMANENT), ("b", Mode.PERMANENT))

    def test_cycles_terminate(self) -> None:
        store = _store(_manifest("a", "b"), _manifest("b", "c"), _manifest("c", "a"))

        resolved = resolve([("a", Mode.TRANSIENT)], store)

        assert _modes(resolved) == {"a": Mode.TRANSIENT, "b": Mode.TRANSIENT, "c": Mode.TRANSIENT}

    def test_strongest_request_wins(self) -> None:
        store = _store(
            _manifest("x", "shared"),
            _manifest("y", "shared"),
            _manifest("shared", "leaf"),
            _manifest("leaf"),
        )

        resolved = resolve([("x", Mode.LOAD), ("y", Mode.PERMANENT)], store)

        assert resolved["shared"].mode == Mode.PERMANENT
        # The stronger mode is propagated by re-expanding the component
        assert resolved["leaf"].mode == Mode.PERMANENT

    def test_weaker_request_does_not_downgrade(self) -> None:
        store = _store(_manifest("x", "shared"), _manifest("y", "shared"), _manifest("shared"))

        resolved = resolve([("y", Mode.PERMANENT), ("x", Mode.NONE)], store)

        assert resolved["shared"].mode == Mode.PERMANENT

    def test_roots_pin_their_mode(self) -> None:
        store = _store(_manifest("a", "b"), _manifest("b"))

        resolved = resolve([("a", Mode.PERMANENT), ("b", Mode.LOAD)], store)

        assert resolved["b"].mode == Mode.LOAD

    def test_explicit_overrides(self) -> None:
        store = _store(_manifest("a", "b"), _manifest("b"))

        resolved = resolve([("a", Mode.PERMANENT)], store, {"b": Mode.NONE})

        assert resolved["b"].mode == Mode.NONE

    def test_optional_missing_dependency_is_skipped(self) -> None:
        store = _store(_manifest("a", "b", "ghost", optional=("ghost",)), _manifest("b"))

        resolved = resolve([("a", Mode.PERMANENT)], store)

        assert set(resolved) == {"a", "b"}

    def test_missing_dependency(self) -> None:
        store = _store(_manifest("a", "ghost"))

        with pytest.raises(UnresolvedComponentError) as excinfo:
            resolve([("a", Mode.PERMANENT)], store)

        assert excinfo.value.component == "ghost"
        assert str(excinfo.value) == "Could not find application ghost"

    def test_included_children_are_loaded(self) -> None:
        store = _store(_manifest("a", included=("b",)), _manifest("b", "c"), _manifest("c"))

        resolved = resolve([("a", Mode.PERMANENT)], store)

        assert resolved["b"].mode == Mode.INCLUDED
        assert resolved["c"].mode == Mode.LOAD
        assert build_start_boot(resolved, [("a", Mode.PERMANENT)]) == (
            ("a", Mode.PERMANENT),
            ("b", Mode.LOAD),
            ("c", Mode.LOAD),
        )

    def test_included_by_two_parents(self) -> None:
        store = _store(
            _manifest("a", included=("b",)),
            _manifest("c", included=("b",)),
            _manifest("b"),
        )

        resolved = resolve([("a", Mode.PERMANENT), ("c", Mode.LOAD)], store)

        assert resolved["b"].mode == Mode.INCLUDED

    def test_included_and_required_conflict(self) -> None:
        store = _store(_manifest("a", included=("b",)), _manifest("c", "b"), _manifest("b"))

        with pytest.raises(ModeConflictError) as excinfo:
            resolve([("a", Mode.PERMANENT), ("c", Mode.LOAD)], store)

        assert excinfo.value.component == "b"

    def test_extends_previous_resolution(self) -> None:
        store = _store(_manifest("a"), _manifest("iex", "a"))
        first = resolve([("a", Mode.PERMANENT)], store)

        second = resolve([("iex", Mode.NONE)], store, {"a": Mode.PERMANENT}, resolved=first)

        assert set(first) == {"a"}
        assert _modes(second) == {"a": Mode.PERMANENT, "iex": Mode.NONE}
