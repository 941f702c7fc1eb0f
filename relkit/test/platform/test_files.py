from __future__ import annotations

import os
import stat
from pathlib import Path

import pytest

from relkit.platform.files import atomic_write_bytes, atomic_write_text


def test_atomic_write_text_creates_parent_dirs(tmp_path: Path) -> None:
    path = tmp_path / "releases" / "0.1.0" / "start_erl.data"
    atomic_write_text(path, "14.2 0.1.0")

    assert path.read_text(encoding="utf-8") == "14.2 0.1.0"


def test_atomic_write_bytes_sets_mode(tmp_path: Path) -> None:
    path = tmp_path / "bin" / "erl"
    atomic_write_bytes(path, b"#!/bin/sh\n", mode=0o755)

    assert path.read_bytes() == b"#!/bin/sh\n"
    assert stat.S_IMODE(path.stat().st_mode) == 0o755


def test_atomic_write_replaces_existing_content(tmp_path: Path) -> None:
    path = tmp_path / "sys.config"
    path.write_text("old", encoding="utf-8")

    atomic_write_text(path, "new")

    assert path.read_text(encoding="utf-8") == "new"


def test_atomic_write_cleans_temp_file_on_replace_failure(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    path = tmp_path / "demo.beam"

    def fail_replace(_src: Path, _dst: Path) -> None:
        raise OSError("replace failed")

    monkeypatch.setattr(os, "replace", fail_replace)

    with pytest.raises(OSError, match="replace failed"):
        atomic_write_bytes(path, b"FOR1")

    assert list(tmp_path.glob(f".{path.name}.*.tmp")) == []
