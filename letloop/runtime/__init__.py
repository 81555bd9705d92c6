"""
letloop.runtime - The letloop Runtime Library

Everything compiled letloop code needs at execution time. The compiler
depends on runtime.types for its reader nodes; the runtime has no
dependency on the compiler.
"""

from typing import Any

from letloop.runtime.core import (
    conj,
    count,
    dec,
    empty_q,
    first,
    get,
    hash_map,
    inc,
    lookup,
    nth,
    println,
    rest,
    seq,
    subseq,
    vector,
)
from letloop.runtime.types import (
    Keyword,
    MapLiteral,
    Symbol,
    VectorLiteral,
    normalize_name,
)

# Names compiled code refers to directly. Destructuring code calls
# seq/nth/subseq/lookup and keyword literals call Keyword.
RUNTIME_NAMES: dict[str, Any] = {
    "Symbol": Symbol,
    "Keyword": Keyword,
    "seq": seq,
    "nth": nth,
    "subseq": subseq,
    "lookup": lookup,
    "first": first,
    "rest": rest,
    "count": count,
    "empty?": empty_q,
    "conj": conj,
    "vector": vector,
    "hash-map": hash_map,
    "get": get,
    "inc": inc,
    "dec": dec,
    "println": println,
}


def setup_runtime_env(env: dict[str, Any]) -> dict[str, Any]:
    """Install the runtime functions into an execution namespace."""
    for name, value in RUNTIME_NAMES.items():
        env.setdefault(normalize_name(name), value)
    return env


__all__ = [
    "Keyword",
    "MapLiteral",
    "Symbol",
    "VectorLiteral",
    "normalize_name",
    "setup_runtime_env",
    "RUNTIME_NAMES",
    "conj",
    "count",
    "dec",
    "empty_q",
    "first",
    "get",
    "hash_map",
    "inc",
    "lookup",
    "nth",
    "println",
    "rest",
    "seq",
    "subseq",
    "vector",
]
