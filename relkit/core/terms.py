"""Literal term text format.

Component manifests, boot sequence files, compiled instruction files and the
runtime configuration all use the platform's period-terminated literal term
syntax. This module writes that syntax from plain Python values and reads it
back.

Python representation:

- ``Atom``: symbolic names (``permanent``, ``'Elixir.Config.Provider'``)
- ``int`` / ``float``: numbers
- ``str``: text, written as a binary ``<<"...">>``
- ``Charlist``: text written as a double-quoted string ``"..."``
- ``bytes``: raw binaries ``<<1,2,3>>``
- ``tuple`` / ``list`` / ``dict``: ``{...}`` / ``[...]`` / ``#{k => v}``
- ``True`` / ``False`` / ``None``: the atoms ``true`` / ``false`` / ``nil``

Anything else is not a literal. It is still written (as an opaque
``#Name<...>`` marker) so that the reader rejects the file, which is how
runtime configuration is validated.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from pathlib import Path

from relkit.platform.files import atomic_write_text

__all__ = [
    "Atom",
    "Charlist",
    "TermSyntaxError",
    "atom",
    "consult",
    "consult_file",
    "format_term",
    "is_literal",
    "write_consultable",
]


@dataclass(frozen=True, slots=True, order=True)
class Atom:
    """A symbolic name."""

    name: str

    def __str__(self) -> str:
        return self.name


def atom(name: str) -> Atom:
    return Atom(name)


class Charlist(str):
    """Text that is written as a double-quoted character list."""

    __slots__ = ()

    def __repr__(self) -> str:
        return f"Charlist({str.__repr__(self)})"


class TermSyntaxError(ValueError):
    """Raised when text cannot be parsed as literal terms."""

    def __init__(self, reason: str, line: int) -> None:
        super().__init__(f"line {line}: {reason}")
        self.reason = reason
        self.line = line


_RESERVED = frozenset(
    "after and andalso band begin bnot bor bsl bsr bxor case catch cond div else "
    "end fun if let maybe not of or orelse receive rem try when xor true false nil".split()
)
_BARE_ATOM = re.compile(r"[a-z][A-Za-z0-9_@]*\Z")
_ESCAPES = {"\\": "\\\\", "\n": "\\n", "\t": "\\t", "\r": "\\r"}


# -----------------------------------------------------------------------------
# Writer
# -----------------------------------------------------------------------------


def _escape(text: str, quote: str) -> str:
    out: list[str] = []
    for ch in text:
        if ch == quote:
            out.append("\\" + ch)
        elif ch in _ESCAPES:
            out.append(_ESCAPES[ch])
        elif ord(ch) < 0x20 or ord(ch) == 0x7F:
            out.append(f"\\x{{{ord(ch):X}}}")
        else:
            out.append(ch)
    return "".join(out)


def _format_atom(name: str) -> str:
    if _BARE_ATOM.match(name) and name not in _RESERVED:
        return name
    return "'" + _escape(name, "'") + "'"


def _format_float(value: float) -> str | None:
    if not math.isfinite(value):
        return None
    text = repr(value)
    if "e" in text:
        mantissa, exponent = text.split("e")
        if "." not in mantissa:
            mantissa += ".0"
        return f"{mantissa}e{exponent}"
    return text


def _opaque(term: object) -> str:
    if callable(term):
        name = getattr(term, "__qualname__", type(term).__name__)
        return f"#Fun<{name}>"
    return f"#Ref<{type(term).__name__}>"


def _flat(term: object) -> str:
    if term is True:
        return "true"
    if term is False:
        return "false"
    if term is None:
        return "nil"
    if isinstance(term, Atom):
        return _format_atom(term.name)
    if isinstance(term, int):
        return str(term)
    if isinstance(term, float):
        return _format_float(term) or f"#Float<{term}>"
    if isinstance(term, Charlist):
        return '"' + _escape(term, '"') + '"'
    if isinstance(term, str):
        suffix = "" if term.isascii() else "/utf8"
        return '<<"' + _escape(term, '"') + '"' + suffix + ">>"
    if isinstance(term, bytes):
        return "<<" + ",".join(str(b) for b in term) + ">>"
    if isinstance(term, list):
        return "[" + ",".join(_flat(item) for item in term) + "]"
    if isinstance(term, tuple):
        return "{" + ",".join(_flat(item) for item in term) + "}"
    if isinstance(term, dict):
        pairs = (f"{_flat(k)} => {_flat(v)}" for k, v in term.items())
        return "#{" + ",".join(pairs) + "}"
    return _opaque(term)


def _pretty(term: object, column: int, width: int) -> str:
    flat = _flat(term)
    if column + len(flat) <= width or not isinstance(term, list | tuple | dict):
        return flat

    if isinstance(term, dict):
        opening = "#{"
        inner = column + len(opening)
        parts: list[str] = []
        for key, value in term.items():
            key_text = _pretty(key, inner, width)
            parts.append(f"{key_text} => {_pretty(value, inner + len(key_text) + 4, width)}")
    else:
        opening = "[" if isinstance(term, list) else "{"
        inner = column + len(opening)
        parts = [_pretty(item, inner, width) for item in term]

    closing = "]" if isinstance(term, list) else "}"
    return opening + (",\n" + " " * inner).join(parts) + closing


def format_term(term: object, *, width: int = 80) -> str:
    """Render ``term`` in its canonical pretty form (without the final period)."""
    return _pretty(term, 0, width)


def write_consultable(path: Path, term: object, *, header: str = "") -> None:
    """Write ``term`` so that ``consult_file`` reads it back."""
    content = "%% coding: utf-8\n" + header + format_term(term) + ".\n"
    atomic_write_text(path, content)


def is_literal(term: object) -> bool:
    """Return True if ``term`` is made only of numbers, atoms, text and containers."""
    if term is None or isinstance(term, bool | int | str | bytes | Atom):
        return True
    if isinstance(term, float):
        return math.isfinite(term)
    if isinstance(term, list | tuple):
        return all(is_literal(item) for item in term)
    if isinstance(term, dict):
        return all(is_literal(k) and is_literal(v) for k, v in term.items())
    return False


# -----------------------------------------------------------------------------
# Reader
# -----------------------------------------------------------------------------

_TOKEN = re.compile(
    r"""
    (?P<ws>\s+|%[^\n]*)
    |(?P<number>-?(?:\d+\#[0-9a-zA-Z]+|\d+\.\d+(?:[eE][+-]?\d+)?|\d+))
    |(?P<atom>[a-z][A-Za-z0-9_@]*)
    |(?P<qatom>'(?:[^'\\]|\\.)*')
    |(?P<string>"(?:[^"\\]|\\.)*")
    |(?P<var>[A-Z_][A-Za-z0-9_@]*)
    |(?P<punct><<|>>|=>|\#\{|[{}\[\],/])
    |(?P<dot>\.(?=\s|%|\Z))
    """,
    re.VERBOSE | re.DOTALL,
)

_SIMPLE_ESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    "s": " ",
    "b": "\b",
    "f": "\f",
    "v": "\v",
    "e": "\x1b",
    "d": "\x7f",
}
_ESCAPE_SEQ = re.compile(r"\\(x\{[0-9a-fA-F]+\}|x[0-9a-fA-F]{2}|[0-7]{1,3}|.)", re.DOTALL)


def _unescape(body: str) -> str:
    def replace(match: re.Match[str]) -> str:
        seq = match.group(1)
        if seq.startswith("x{"):
            return chr(int(seq[2:-1], 16))
        if seq.startswith("x") and len(seq) == 3:
            return chr(int(seq[1:], 16))
        if seq[0] in "01234567":
            return chr(int(seq, 8))
        return _SIMPLE_ESCAPES.get(seq, seq)

    return _ESCAPE_SEQ.sub(replace, body)


@dataclass(frozen=True, slots=True)
class _Token:
    kind: str
    text: str
    pos: int


def _tokenize(text: str) -> list[_Token]:
    tokens: list[_Token] = []
    pos = 0
    while pos < len(text):
        match = _TOKEN.match(text, pos)
        if match is None:
            line = text.count("\n", 0, pos) + 1
            raise TermSyntaxError(f"unexpected character {text[pos]!r}", line)
        kind = match.lastgroup or ""
        if kind != "ws":
            tokens.append(_Token(kind, match.group(), pos))
        pos = match.end()
    return tokens


class _Parser:
    def __init__(self, text: str) -> None:
        self._text = text
        self._tokens = _tokenize(text)
        self._index = 0

    def _line(self, token: _Token | None) -> int:
        pos = token.pos if token is not None else len(self._text)
        return self._text.count("\n", 0, pos) + 1

    def _peek(self) -> _Token | None:
        if self._index < len(self._tokens):
            return self._tokens[self._index]
        return None

    def _next(self) -> _Token:
        token = self._peek()
        if token is None:
            raise TermSyntaxError("unexpected end of input", self._line(None))
        self._index += 1
        return token

    def _expect(self, text: str) -> None:
        token = self._next()
        if token.text != text:
            raise TermSyntaxError(f"expected {text!r}, got {token.text!r}", self._line(token))

    def at_end(self) -> bool:
        return self._peek() is None

    def terms(self) -> list[object]:
        out: list[object] = []
        while not self.at_end():
            out.append(self.term())
            token = self._next()
            if token.kind != "dot":
                raise TermSyntaxError(f"expected '.', got {token.text!r}", self._line(token))
        return out

    def term(self) -> object:
        token = self._next()
        match token.kind:
            case "number":
                return _parse_number(token.text)
            case "atom":
                return _atom_value(token.text)
            case "qatom":
                return Atom(_unescape(token.text[1:-1]))
            case "string":
                parts = [_unescape(token.text[1:-1])]
                while (nxt := self._peek()) is not None and nxt.kind == "string":
                    parts.append(_unescape(self._next().text[1:-1]))
                return Charlist("".join(parts))
            case "punct":
                return self._compound(token)
            case "var":
                raise TermSyntaxError(f"variable {token.text} is not a literal", self._line(token))
        raise TermSyntaxError(f"unexpected {token.text!r}", self._line(token))

    def _sequence(self, closing: str) -> list[object]:
        items: list[object] = []
        nxt = self._peek()
        if nxt is not None and nxt.text == closing:
            self._next()
            return items
        while True:
            items.append(self.term())
            token = self._next()
            if token.text == closing:
                return items
            if token.text != ",":
                raise TermSyntaxError(
                    f"expected ',' or {closing!r}, got {token.text!r}", self._line(token)
                )

    def _compound(self, token: _Token) -> object:
        match token.text:
            case "[":
                return self._sequence("]")
            case "{":
                return tuple(self._sequence("}"))
            case "#{":
                return self._map()
            case "<<":
                return self._binary()
        raise TermSyntaxError(f"unexpected {token.text!r}", self._line(token))

    def _map(self) -> dict[object, object]:
        out: dict[object, object] = {}
        nxt = self._peek()
        if nxt is not None and nxt.text == "}":
            self._next()
            return out
        while True:
            key = self.term()
            self._expect("=>")
            value = self.term()
            try:
                out[key] = value
            except TypeError as e:
                raise TermSyntaxError(f"unhashable map key: {e}", self._line(nxt)) from e
            token = self._next()
            if token.text == "}":
                return out
            if token.text != ",":
                raise TermSyntaxError(
                    f"expected ',' or '}}', got {token.text!r}", self._line(token)
                )

    def _binary(self) -> str | bytes:
        nxt = self._peek()
        if nxt is not None and nxt.text == ">>":
            self._next()
            return ""
        segments: list[str | int] = []
        while True:
            token = self._next()
            if token.kind == "string":
                segments.append(_unescape(token.text[1:-1]))
                nxt = self._peek()
                if nxt is not None and nxt.text == "/":
                    self._next()
                    encoding = self._next()
                    if encoding.text != "utf8":
                        raise TermSyntaxError(
                            f"unsupported binary type {encoding.text!r}", self._line(encoding)
                        )
            elif token.kind == "number" and not token.text.startswith("-"):
                value = _parse_number(token.text)
                if not isinstance(value, int) or value > 255:
                    raise TermSyntaxError(f"invalid byte {token.text}", self._line(token))
                segments.append(value)
            else:
                raise TermSyntaxError(f"invalid binary segment {token.text!r}", self._line(token))
            token = self._next()
            if token.text == ">>":
                break
            if token.text != ",":
                raise TermSyntaxError(
                    f"expected ',' or '>>', got {token.text!r}", self._line(token)
                )

        if all(isinstance(s, str) for s in segments):
            return "".join(s for s in segments if isinstance(s, str))
        out = bytearray()
        for s in segments:
            out.extend(s.encode("utf-8") if isinstance(s, str) else bytes([s]))
        return bytes(out)


def _parse_number(text: str) -> int | float:
    if "#" in text:
        base, digits = text.lstrip("-").split("#", 1)
        value = int(digits, int(base))
        return -value if text.startswith("-") else value
    if "." in text:
        return float(text)
    return int(text)


def _atom_value(name: str) -> object:
    if name == "true":
        return True
    if name == "false":
        return False
    if name == "nil":
        return None
    return Atom(name)


def consult(text: str) -> list[object]:
    """Parse every period-terminated term in ``text``.

    Raises:
        TermSyntaxError: If the text is not made of literal terms.
    """
    return _Parser(text).terms()


_CODING = re.compile(rb"^%.*coding\s*[:=]\s*([-\w.]+)", re.MULTILINE)
_LATIN1 = frozenset({"latin-1", "latin1", "iso-8859-1", "iso8859-1"})


def _decode(data: bytes) -> str:
    # Only the first two lines may declare an encoding.
    head = b"\n".join(data.split(b"\n", 2)[:2])
    match = _CODING.search(head)
    if match is not None and match.group(1).decode("ascii").lower() in _LATIN1:
        return data.decode("latin-1")
    try:
        return data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise TermSyntaxError(
            f"invalid utf-8 byte 0x{data[e.start]:02x}", data.count(b"\n", 0, e.start) + 1
        ) from e


def consult_file(path: Path) -> list[object]:
    """Read and parse a term file.

    The file is utf-8 unless a ``%% coding: latin-1`` comment on one of its
    first two lines says otherwise. OSError propagates unchanged.

    Raises:
        TermSyntaxError: If the file cannot be decoded or parsed.
    """
    return consult(_decode(path.read_bytes()))
