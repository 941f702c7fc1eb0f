"""Tests for relkit.release.modes module."""

from __future__ import annotations

import itertools

import pytest

from relkit.release.errors import ModeConflictError
from relkit.release.model import Mode
from relkit.release.modes import boot_mode, merge_mode

MERGEABLE = [Mode.PERMANENT, Mode.TRANSIENT, Mode.TEMPORARY, Mode.LOAD, Mode.NONE]


class TestMergeMode:
    def test_precedence(self) -> None:
        assert merge_mode("a", Mode.LOAD, Mode.PERMANENT) == Mode.PERMANENT
        assert merge_mode("a", Mode.TEMPORARY, Mode.TRANSIENT) == Mode.TRANSIENT
        assert merge_mode("a", Mode.NONE, Mode.TEMPORARY) == Mode.TEMPORARY
        assert merge_mode("a", Mode.LOAD, Mode.NONE) == Mode.LOAD

    def test_commutative(self) -> None:
        for left, right in itertools.product(MERGEABLE, repeat=2):
            assert merge_mode("a", left, right) == merge_mode("a", right, left)

    def test_idempotent(self) -> None:
        for mode in [*MERGEABLE, Mode.INCLUDED]:
            assert merge_mode("a", mode, mode) == mode

    @pytest.mark.parametrize("other", MERGEABLE)
    def test_included_conflicts(self, other: Mode) -> None:
        with pytest.raises(ModeConflictError) as excinfo:
            merge_mode("b", Mode.INCLUDED, other)
        assert excinfo.value.component == "b"
        assert "both as a regular application and as an included application" in str(
            excinfo.value
        )

        with pytest.raises(ModeConflictError):
            merge_mode("b", other, Mode.INCLUDED)


def test_boot_mode() -> None:
    assert boot_mode(Mode.INCLUDED) == Mode.LOAD
    assert boot_mode(Mode.TRANSIENT) == Mode.TRANSIENT
