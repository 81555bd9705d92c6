"""
letloop.runtime.core - Functions available to compiled letloop programs

The destructuring helpers (seq, nth, subseq, lookup) are what the pattern
compiler emits calls to; the rest is the small standard library that
letloop bodies use.
"""

from collections.abc import Iterable, Mapping, Sequence
from itertools import islice

from letloop.runtime.types import _MISSING


# =============================================================================
# Destructuring helpers
# =============================================================================


def seq(coll):
    """
    Return coll in a form that can be indexed more than once.

    nil, sequences and values that are not iterable come back unchanged;
    any other iterable (a generator, map, iter(...)) is realized into a
    tuple.
    """
    if coll is None or isinstance(coll, Sequence) or not isinstance(coll, Iterable):
        return coll
    return tuple(coll)


def nth(coll, index, default=None):
    """
    Return the element at index, or default when coll is too short, nil or
    not a collection at all.
    """
    if coll is None or not isinstance(coll, Iterable):
        return default
    if isinstance(coll, Sequence):
        if 0 <= index < len(coll):
            return coll[index]
        return default
    for i, item in enumerate(coll):
        if i == index:
            return item
    return default


def subseq(coll, start):
    """
    Return the contiguous elements of coll from start onwards.

    Sequences are sliced, so a tuple yields a tuple and a list a list.
    Other iterables are realized into a tuple.
    """
    if coll is None or not isinstance(coll, Iterable):
        return ()
    if isinstance(coll, Sequence):
        return coll[start:]
    return tuple(islice(coll, start, None))


def _is_pair(item):
    return (
        isinstance(item, Sequence) and not isinstance(item, str) and len(item) == 2
    )


def lookup(table, key, default=None):
    """
    Look key up in table, calling default() only on a miss.

    table may be a mapping, or an association list: a sequence of
    (key, value) pairs, searched front to back. Anything else misses.
    default is a zero-argument callable (the compiled :or expression) or None.
    """
    value = _MISSING
    if isinstance(table, Mapping):
        value = table.get(key, _MISSING)
    elif isinstance(table, Sequence) and not isinstance(table, str):
        for item in table:
            if _is_pair(item) and item[0] == key:
                value = item[1]
                break
    if value is _MISSING:
        return default() if default is not None else None
    return value


# =============================================================================
# Sequences
# =============================================================================


def first(coll):
    """Return the first element of a collection, or nil."""
    return nth(coll, 0)


def rest(coll):
    """Return everything after the first element."""
    return subseq(coll, 1)


def count(coll):
    """Return the number of items in a collection (nil counts as 0)."""
    if coll is None:
        return 0
    return len(coll)


def empty_q(coll):
    """True when coll is nil or has no elements."""
    return count(coll) == 0


def conj(coll, *items):
    """Return a new list or tuple with items appended."""
    if coll is None:
        return list(items)
    if isinstance(coll, tuple):
        return coll + items
    return list(coll) + list(items)


def vector(*items):
    return list(items)


def hash_map(*kvs):
    """Build a dict from alternating keys and values."""
    if len(kvs) % 2 != 0:
        raise ValueError("hash-map requires an even number of arguments")
    return {kvs[i]: kvs[i + 1] for i in range(0, len(kvs), 2)}


def get(coll, key, default=None):
    """Get a value from a mapping, association list or sequence by key."""
    if isinstance(coll, Sequence) and isinstance(key, int):
        return nth(coll, key, default)
    return lookup(coll, key, (lambda: default) if default is not None else None)


# =============================================================================
# Numbers and output
# =============================================================================


def inc(x):
    return x + 1


def dec(x):
    return x - 1


def println(*args):
    print(*args)


__all__ = [
    "seq",
    "nth",
    "subseq",
    "lookup",
    "first",
    "rest",
    "count",
    "empty_q",
    "conj",
    "vector",
    "hash_map",
    "get",
    "inc",
    "dec",
    "println",
]
