"""Tests for relkit.release.beam module."""

from __future__ import annotations

import gzip

import pytest

from relkit.release.beam import BeamError, build_module, chunks, strip_beam

PARTS = [
    ("AtU8", b"\x00\x00\x00\x01demo"),
    ("Code", b"code!"),
    ("Dbgi", b"debug info"),
    ("Docs", b"docs"),
    ("Attr", b"attr"),
    ("CInf", b"compile info"),
    ("Line", b"ln"),
]


def _ids(binary: bytes) -> list[str]:
    return [chunk_id for chunk_id, _ in chunks(binary)]


class TestChunks:
    def test_round_trip_with_padding(self) -> None:
        assert chunks(build_module(PARTS)) == PARTS

    def test_header(self) -> None:
        binary = build_module(PARTS)
        assert binary[:4] == b"FOR1"
        assert binary[8:12] == b"BEAM"
        assert int.from_bytes(binary[4:8], "big") == len(binary) - 8

    def test_not_a_module(self) -> None:
        with pytest.raises(BeamError, match="not a BEAM file"):
            chunks(b"FOR1\x00\x00\x00\x04ELF!")

    def test_too_short(self) -> None:
        with pytest.raises(BeamError, match="too short"):
            chunks(b"FOR1")

    def test_truncated(self) -> None:
        with pytest.raises(BeamError, match="truncated"):
            chunks(build_module(PARTS)[:-3])

    def test_bad_chunk_id(self) -> None:
        with pytest.raises(BeamError, match="4 bytes"):
            build_module([("Co", b"")])


class TestStripBeam:
    def test_keeps_runtime_chunks_and_attr(self) -> None:
        stripped = strip_beam(build_module(PARTS))
        assert _ids(stripped) == ["AtU8", "Code", "Attr", "Line"]

    def test_extra_chunks_keep_file_order(self) -> None:
        stripped = strip_beam(build_module(PARTS), ["Docs"])
        assert _ids(stripped) == ["AtU8", "Code", "Docs", "Attr", "Line"]

    def test_data_is_preserved(self) -> None:
        stripped = dict(chunks(strip_beam(build_module(PARTS))))
        assert stripped["Code"] == b"code!"

    def test_compress(self) -> None:
        binary = build_module(PARTS)

        compressed = strip_beam(binary, compress=True)

        assert compressed[:2] == b"\x1f\x8b"
        assert gzip.decompress(compressed) == strip_beam(binary)
        assert _ids(compressed) == ["AtU8", "Code", "Attr", "Line"]

    def test_compression_is_deterministic(self) -> None:
        binary = build_module(PARTS)
        assert strip_beam(binary, compress=True) == strip_beam(binary, compress=True)

    def test_invalid(self) -> None:
        with pytest.raises(BeamError):
            strip_beam(b"#!/bin/sh\necho not a module\n")

    def test_invalid_compressed(self) -> None:
        with pytest.raises(BeamError, match="invalid compressed module"):
            strip_beam(b"\x1f\x8bgarbage")
