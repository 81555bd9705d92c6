"""
letloop.compiler.destructure - Pattern expansion and binding emission

expand_pattern() flattens a (possibly nested) pattern into BindingPairs in
pre-order: a compound binder first binds the whole value to its alias or a
fresh temporary, then each sub-binder binds an extraction from that name.
A later pair may refer to names bound by earlier pairs, never the reverse,
so the pairs can be emitted as plain sequential assignments.

    [[a b] :as whole] <- v
        whole = seq(v)
        __ll_destructure_1 = seq(nth(whole, 0))
        a = nth(__ll_destructure_1, 0)
        b = nth(__ll_destructure_1, 1)

The holder of a sequence pattern is passed through seq(), which realizes a
one-shot iterable into a tuple once, so every position and the rest read
the same elements.

Expansion walks an explicit work stack, so nesting depth costs no Python
call depth.
"""

import ast
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from letloop.compiler.context import gensym
from letloop.compiler.patterns import (
    BindingPattern,
    SequencePattern,
    TablePattern,
    parse_pattern,
)
from letloop.compiler.reader import SourceLocation, get_source_location, set_location
from letloop.runtime.types import _MISSING, Keyword, normalize_name

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BindingPair:
    """One step of a sequential binding: target = value."""

    target: str
    value: ast.expr
    loc: Optional[SourceLocation] = None


def _load(name: str) -> ast.Name:
    return ast.Name(id=name, ctx=ast.Load())


def _call(fn: str, *args: ast.expr) -> ast.Call:
    return ast.Call(func=_load(fn), args=list(args), keywords=[])


def make_keyword_expr(name: str) -> ast.Call:
    """Create an AST expression that constructs a Keyword object."""
    return _call("Keyword", ast.Constant(value=name))


def compile_key(key) -> ast.expr:
    """Compile a constant table key."""
    if isinstance(key, Keyword):
        return make_keyword_expr(key.name)
    return ast.Constant(value=key)


def _compile_default(default_form) -> ast.Lambda:
    """Wrap a default in a thunk so it runs only when its key is missing."""
    from letloop.compiler.codegen import compile_expr

    return ast.Lambda(
        args=ast.arguments(
            posonlyargs=[],
            args=[],
            vararg=None,
            kwonlyargs=[],
            kw_defaults=[],
            kwarg=None,
            defaults=[],
        ),
        body=compile_expr(default_form),
    )


def _same_name(name: str) -> str:
    return name


def _sequence_children(pattern: SequencePattern, holder: str) -> list[tuple[Any, ast.expr]]:
    children: list[tuple[Any, ast.expr]] = [
        (item, _call("nth", _load(holder), ast.Constant(value=i)))
        for i, item in enumerate(pattern.items)
    ]
    if pattern.rest is not None:
        children.append(
            (
                pattern.rest,
                _call("subseq", _load(holder), ast.Constant(value=len(pattern.items))),
            )
        )
    return children


def _table_children(pattern: TablePattern, holder: str) -> list[tuple[Any, ast.expr]]:
    children = []
    for binder, key in pattern.entries:
        args = [_load(holder), compile_key(key)]
        default = pattern.defaults.get(key, _MISSING)
        if default is not _MISSING:
            args.append(_compile_default(default))
        children.append((binder, _call("lookup", *args)))
    return children


def expand_pattern(
    form,
    source: ast.expr,
    pairs: Optional[list[BindingPair]] = None,
    bind: Optional[Callable[[str], str]] = None,
) -> list[BindingPair]:
    """
    Append the bindings of pattern form against source to pairs.

    bind maps each user name (binder or alias) to the Python name it is
    assigned to, in pattern order; by default names are used as they are.
    Returns pairs (a new list when none is given). Parser errors propagate
    unchanged; a form of no known shape raises UnsupportedPatternShape.
    """
    if pairs is None:
        pairs = []
    if bind is None:
        bind = _same_name
    start = len(pairs)

    stack: list[tuple[Any, ast.expr]] = [(form, source)]
    while stack:
        binder, value = stack.pop()
        pattern = parse_pattern(binder)
        loc = get_source_location(binder)

        if isinstance(pattern, BindingPattern):
            pairs.append(BindingPair(bind(normalize_name(pattern.name.name)), value, loc))
            continue

        if isinstance(pattern, SequencePattern):
            value = _call("seq", value)
        if pattern.alias is not None:
            holder = bind(normalize_name(pattern.alias.name))
        else:
            holder = gensym("destructure_")
        pairs.append(BindingPair(holder, value, loc))

        if isinstance(pattern, SequencePattern):
            children = _sequence_children(pattern, holder)
        else:
            children = _table_children(pattern, holder)
        # Reversed so the first child is expanded next, giving pre-order
        stack.extend(reversed(children))

    logger.debug(
        "expanded pattern at %s into %d bindings", get_source_location(form), len(pairs) - start
    )
    return pairs


def emit_bindings(
    pairs: list[BindingPair],
    body: Optional[list[ast.stmt]] = None,
    loc: Optional[SourceLocation] = None,
) -> list[ast.stmt]:
    """Emit pairs as sequential assignments followed by body."""
    stmts: list[ast.stmt] = []
    for pair in pairs:
        assign = ast.Assign(
            targets=[ast.Name(id=pair.target, ctx=ast.Store())], value=pair.value
        )
        set_location(assign, pair.loc or loc)
        stmts.append(assign)
    if body:
        stmts.extend(body)
    return stmts


def compile_destructure(pattern, value_expr: ast.expr, form_loc=None) -> list[ast.stmt]:
    """
    Compile a destructuring assignment of value_expr to pattern.

    Returns the assignment statements; see expand_pattern for the order.
    """
    return emit_bindings(expand_pattern(pattern, value_expr), loc=form_loc)


__all__ = [
    "BindingPair",
    "expand_pattern",
    "emit_bindings",
    "compile_destructure",
    "compile_key",
    "make_keyword_expr",
]
