"""
letloop.compiler.reader - Source text to forms

    (loop [[x & more] xs  acc 0] ...)

reads as a SourceList holding Symbols, VectorLiterals and plain Python
constants. Every compound form and every name carries the line and column
it was read at, so that pattern and tail errors can point into the source.

Lexical rules: commas are whitespace, `;` starts a comment, `'x` is
(quote x), `::` is the keyword named ":" that opens a table pattern, and
`&rest` is one symbol (the fused rest marker).
"""

import ast
import re
from dataclasses import dataclass
from typing import Optional, TypeVar

from letloop.compiler.errors import ReaderError
from letloop.runtime.types import Keyword, MapLiteral, Symbol, VectorLiteral


@dataclass
class SourceLocation:
    """Line (1-based) and column (0-based) of a form, with its end."""

    line: int = 0
    col: int = 0
    end_line: int = 0
    end_col: int = 0

    def __repr__(self):
        return f"SourceLocation({self.line}:{self.col})"


class SourceList(list):
    """A (...) form: a plain list that remembers where it was read."""

    __slots__ = ("line", "col", "end_line", "end_col")

    def __init__(self, items=None, line=0, col=0, end_line=0, end_col=0):
        super().__init__(items if items is not None else [])
        self.line = line
        self.col = col
        self.end_line = end_line
        self.end_col = end_col

    def get_location(self) -> SourceLocation:
        return SourceLocation(self.line, self.col, self.end_line, self.end_col)


def get_source_location(form) -> Optional[SourceLocation]:
    """Location of form, or None for constants and synthesized lists."""
    if isinstance(form, (SourceList, Symbol, Keyword, VectorLiteral, MapLiteral)):
        return SourceLocation(form.line, form.col, form.end_line, form.end_col)
    return None


_T = TypeVar("_T", bound=ast.AST)


def set_location(node: _T, loc: Optional[SourceLocation]) -> _T:
    """Stamp loc on an AST node; nodes without a location are left alone."""
    if loc is None or loc.line <= 0:
        return node
    node.lineno = loc.line  # type: ignore[attr-defined]
    node.col_offset = loc.col  # type: ignore[attr-defined]
    if loc.end_line > 0:
        node.end_lineno = loc.end_line  # type: ignore[attr-defined]
        node.end_col_offset = loc.end_col  # type: ignore[attr-defined]
    else:
        node.end_lineno = loc.line  # type: ignore[attr-defined]
        node.end_col_offset = loc.col  # type: ignore[attr-defined]
    return node


def copy_location(node: _T, form) -> _T:
    return set_location(node, get_source_location(form))


# =============================================================================
# Tokens
# =============================================================================

_TOKEN_RE = re.compile(
    r"""
      (?P<newline>\n)
    | (?P<space>(?:[^\S\n]|,)+)
    | (?P<comment>;[^\n]*)
    | (?P<string>"(?:[^"\\]|\\.)*")
    | (?P<unterminated>")
    | (?P<open>[(\[{])
    | (?P<close>[)\]}])
    | (?P<quote>')
    | (?P<atom>[^\s,;()\[\]{}"']+)
    """,
    re.VERBOSE | re.DOTALL,
)

_SKIPPED = ("newline", "space", "comment")


@dataclass
class Token:
    """One lexeme: its kind (a group name of _TOKEN_RE), text and position."""

    kind: str
    text: str
    line: int
    col: int

    @property
    def loc(self) -> SourceLocation:
        return SourceLocation(self.line, self.col)


def tokenize(src: str) -> list[Token]:
    """Split src into tokens, dropping whitespace and comments."""
    tokens: list[Token] = []
    line, line_start, pos = 1, 0, 0
    while pos < len(src):
        m = _TOKEN_RE.match(src, pos)
        if m is None:
            raise ReaderError("invalid character", loc=SourceLocation(line, pos - line_start))
        kind, text = m.lastgroup, m.group()
        if kind == "unterminated":
            raise ReaderError("unterminated string", loc=SourceLocation(line, pos - line_start))
        if kind not in _SKIPPED:
            tokens.append(Token(kind, text, line, pos - line_start))
        newlines = text.count("\n")
        if newlines:
            line += newlines
            line_start = pos + text.rfind("\n") + 1
        pos = m.end()
    return tokens


_ESCAPES = {"n": "\n", "t": "\t", "\n": ""}


def _unescape(body: str) -> str:
    return re.sub(r"\\(.)", lambda m: _ESCAPES.get(m.group(1), m.group(1)), body, flags=re.DOTALL)


# =============================================================================
# Forms
# =============================================================================

_NUMBER_RE = re.compile(r"[+-]?(?:0x[0-9a-fA-F]+|\d+(?:\.\d*)?(?:[eE][+-]?\d+)?)$")

_CONSTANTS = {"true": True, "false": False, "nil": None}

_CLOSERS = {"(": ")", "[": "]", "{": "}"}


def read_atom(tok: Token):
    """Number, constant, keyword or symbol."""
    text = tok.text
    if _NUMBER_RE.match(text):
        if "x" in text:
            return int(text, 16)
        if any(c in text for c in ".eE"):
            return float(text)
        return int(text)
    if text in _CONSTANTS:
        return _CONSTANTS[text]
    end = (tok.line, tok.col, tok.line, tok.col + len(text))
    if text.startswith(":") and len(text) > 1:
        return Keyword(text[1:], *end)
    return Symbol(text, *end)


class Reader:
    """Builds forms from a token list, one top-level form at a time."""

    def __init__(self, tokens: list[Token]):
        self.tokens = tokens
        self.pos = 0

    def at_end(self) -> bool:
        return self.pos >= len(self.tokens)

    def read(self) -> list:
        forms = []
        while not self.at_end():
            forms.append(self.read_form())
        return forms

    def read_form(self):
        if self.at_end():
            raise ReaderError("unexpected end of input")
        tok = self.tokens[self.pos]
        self.pos += 1

        if tok.kind == "open":
            return self._read_collection(tok)
        if tok.kind == "close":
            raise ReaderError(f"unexpected {tok.text!r}", loc=tok.loc)
        if tok.kind == "string":
            return _unescape(tok.text[1:-1])
        if tok.kind == "quote":
            quoted = self.read_form()
            end = get_source_location(quoted) or SourceLocation(tok.line, tok.col + 1, tok.line, tok.col + 1)
            head = Symbol("quote", tok.line, tok.col, tok.line, tok.col + 1)
            return SourceList([head, quoted], tok.line, tok.col, end.end_line, end.end_col)
        return read_atom(tok)

    def _read_collection(self, opener: Token):
        closer = _CLOSERS[opener.text]
        items = []
        while True:
            if self.at_end():
                raise ReaderError(f"unterminated literal, expected {closer}", loc=opener.loc)
            tok = self.tokens[self.pos]
            if tok.kind == "close":
                self.pos += 1
                if tok.text != closer:
                    raise ReaderError(f"expected {closer!r}, found {tok.text!r}", loc=tok.loc)
                break
            items.append(self.read_form())

        span = (opener.line, opener.col, tok.line, tok.col + 1)
        if closer == ")":
            return SourceList(items, *span)
        if closer == "]":
            return VectorLiteral(items, *span)
        if len(items) % 2 != 0:
            raise ReaderError("map literal must have an even number of forms", loc=opener.loc)
        return MapLiteral(list(zip(items[::2], items[1::2])), *span)


def read_str(src: str) -> list:
    """Read every form in src."""
    return Reader(tokenize(src)).read()


__all__ = [
    "SourceLocation",
    "SourceList",
    "Token",
    "get_source_location",
    "set_location",
    "copy_location",
    "tokenize",
    "read_atom",
    "Reader",
    "read_str",
]
