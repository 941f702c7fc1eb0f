"""Compiled module chunk files.

A compiled module is an IFF container::

    "FOR1" <u32 size> "BEAM" (<4-byte id> <u32 length> <data> <pad to 4>)*

Stripping keeps the chunks the runtime needs to load and run the module plus
``Attr`` (reflection metadata) and any chunk explicitly requested, and drops
the rest: debug information, documentation, compile provenance.
"""

from __future__ import annotations

import gzip
import struct
from collections.abc import Iterable, Sequence

__all__ = [
    "ADDITIONAL_CHUNKS",
    "BeamError",
    "SIGNIFICANT_CHUNKS",
    "build_module",
    "chunks",
    "strip_beam",
]

SIGNIFICANT_CHUNKS = (
    "Atom",
    "AtU8",
    "Code",
    "StrT",
    "ImpT",
    "ExpT",
    "FunT",
    "LitT",
    "Meta",
    "Line",
    "Type",
)
ADDITIONAL_CHUNKS = ("Attr",)

_HEADER = struct.Struct(">4sI4s")
_CHUNK = struct.Struct(">4sI")
_GZIP_MAGIC = b"\x1f\x8b"


class BeamError(ValueError):
    """The binary is not a well-formed compiled module."""


def _pad(length: int) -> int:
    return (4 - length % 4) % 4


def chunks(binary: bytes) -> list[tuple[str, bytes]]:
    """Split a compiled module into ``(chunk id, data)`` pairs, in file order.

    Gzip-compressed modules are decompressed first.

    Raises:
        BeamError: On a bad header or a truncated chunk.
    """
    if binary[:2] == _GZIP_MAGIC:
        try:
            binary = gzip.decompress(binary)
        except (OSError, EOFError) as e:
            raise BeamError(f"invalid compressed module: {e}") from e

    if len(binary) < _HEADER.size:
        raise BeamError("file too short")
    form, size, kind = _HEADER.unpack_from(binary)
    if form != b"FOR1" or kind != b"BEAM":
        raise BeamError("not a BEAM file")
    end = 8 + size
    if end > len(binary):
        raise BeamError("truncated module")

    out: list[tuple[str, bytes]] = []
    offset = _HEADER.size
    while offset < end:
        if offset + _CHUNK.size > end:
            raise BeamError(f"truncated chunk header at offset {offset}")
        raw_id, length = _CHUNK.unpack_from(binary, offset)
        start = offset + _CHUNK.size
        if start + length > end:
            raise BeamError(f"truncated chunk {raw_id!r}")
        out.append((raw_id.decode("latin-1"), binary[start : start + length]))
        offset = start + length + _pad(length)
    return out


def build_module(parts: Iterable[tuple[str, bytes]]) -> bytes:
    """Assemble chunks back into a compiled module."""
    body = bytearray(b"BEAM")
    for chunk_id, data in parts:
        raw_id = chunk_id.encode("latin-1")
        if len(raw_id) != 4:
            raise BeamError(f"chunk id must be 4 bytes: {chunk_id!r}")
        body += _CHUNK.pack(raw_id, len(data))
        body += data
        body += b"\x00" * _pad(len(data))
    return b"FOR1" + struct.pack(">I", len(body)) + bytes(body)


def strip_beam(binary: bytes, keep: Sequence[str] = (), *, compress: bool = False) -> bytes:
    """Drop every chunk that is not needed to load the module.

    Args:
        binary: The compiled module.
        keep: Extra chunk ids to retain, e.g. ``["Docs"]``.
        compress: Gzip the stripped module.

    Raises:
        BeamError: If ``binary`` is not a compiled module.
    """
    wanted = set(ADDITIONAL_CHUNKS) | set(SIGNIFICANT_CHUNKS) | set(keep)
    stripped = build_module((cid, data) for cid, data in chunks(binary) if cid in wanted)
    if compress:
        return gzip.compress(stripped, mtime=0)
    return stripped
