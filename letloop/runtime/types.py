"""
letloop.runtime.types - Reader nodes shared by the compiler and compiled code

Symbol, Keyword, VectorLiteral and MapLiteral are what the reader produces.
Keyword is also a run-time value: keyword literals compile to Keyword(...)
calls, and table patterns look keywords up in dicts.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

# Sentinel for missing values
_MISSING = object()

_OPERATOR_NAMES = {
    "+": "_plus_",
    "-": "_minus_",
    "*": "_star_",
    "/": "_slash_",
    "=": "_eq_",
    "<": "_lt_",
    ">": "_gt_",
    "<=": "_lte_",
    ">=": "_gte_",
}

_NAME_CHARS = str.maketrans(
    {"-": "_", "*": "_star_", "+": "_plus_", "<": "_lt_", ">": "_gt_", "=": "_eq_"}
)


def normalize_name(name: str) -> str:
    """
    Python spelling of a letloop name.

    empty? -> empty_q, set! -> set_bang, hash-map -> hash_map; a bare
    operator symbol gets a name of its own. The compiler and
    setup_runtime_env both go through here so that the two agree.
    """
    if name in _OPERATOR_NAMES:
        return _OPERATOR_NAMES[name]
    if name.endswith("?"):
        name = name[:-1] + "_q"
    elif name.endswith("!"):
        name = name[:-1] + "_bang"
    return name.translate(_NAME_CHARS)


@dataclass
class Symbol:
    """An identifier. Two symbols are equal only at the same location."""

    name: str
    line: int = 0
    col: int = 0
    end_line: int = 0
    end_col: int = 0

    def __repr__(self):
        return self.name


@dataclass(eq=False)
class Keyword:
    """
    A self-evaluating name such as :as or :x.

    Keywords are equal by name regardless of where they were read, so a
    keyword from source finds the one built at run time in a dict. Called
    with a mapping, a keyword looks itself up: (:a {:a 1}) => 1.
    """

    name: str
    line: int = 0
    col: int = 0
    end_line: int = 0
    end_col: int = 0

    def __repr__(self):
        return f":{self.name}"

    __str__ = __repr__

    def __eq__(self, other):
        return isinstance(other, Keyword) and self.name == other.name

    def __hash__(self):
        return hash((Keyword, self.name))

    def __call__(self, coll, default=None):
        if isinstance(coll, Mapping):
            return coll.get(self, default)
        return default


@dataclass
class VectorLiteral:
    """[...] as read: a list in expressions, a pattern in binding position."""

    items: list[Any]
    line: int = 0
    col: int = 0
    end_line: int = 0
    end_col: int = 0


@dataclass
class MapLiteral:
    """{...} as read, with its (key, value) pairs in source order."""

    pairs: list[tuple[Any, Any]]
    line: int = 0
    col: int = 0
    end_line: int = 0
    end_col: int = 0


__all__ = [
    "Symbol",
    "Keyword",
    "VectorLiteral",
    "MapLiteral",
    "normalize_name",
    "_MISSING",
]
