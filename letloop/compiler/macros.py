"""
letloop.compiler.macros - Canonicalization of surface syntax

Macros are compile-time transformations that rewrite a form into other
forms before analysis. After macroexpand_all, a body holds only the core
forms codegen and the tail analyzer understand (if, do, let, loop, fn, ...).

The standard macros are plain Python functions over reader forms:

    (when test body...)       -> (if test (do body...) nil)
    (when-not test body...)   -> (if test nil (do body...))
    (if-not test then else)   -> (if test else then)
    (-> x (f a) g)            -> (g (f x a))
    (->> x (f a) g)           -> (g (f a x))
"""

import logging
from typing import Any, Callable, Optional

from letloop.compiler.errors import CompileError
from letloop.compiler.reader import SourceList, get_source_location
from letloop.project.config import DEFAULT_MAX_EXPANSION_DEPTH
from letloop.runtime.types import MapLiteral, Symbol, VectorLiteral

logger = logging.getLogger(__name__)

MacroFn = Callable[..., Any]


def is_symbol(x, name=None):
    """Check if x is a Symbol, optionally with a specific name."""
    if isinstance(x, Symbol):
        if name is None:
            return True
        return x.name == name
    return False


def _sym(name: str) -> Symbol:
    return Symbol(name)


# =============================================================================
# Standard macros
# =============================================================================


def _when(test, *body):
    return [_sym("if"), test, [_sym("do"), *body], None]


def _when_not(test, *body):
    return [_sym("if"), test, None, [_sym("do"), *body]]


def _if_not(test, then, *otherwise):
    if len(otherwise) > 1:
        raise CompileError("if-not requires test, then, optional else")
    return [_sym("if"), test, otherwise[0] if otherwise else None, then]


def _thread(x, forms, last: bool):
    for step in forms:
        if isinstance(step, list) and step:
            head, args = step[0], list(step[1:])
            x = [head, *args, x] if last else [head, x, *args]
        else:
            x = [step, x]
    return x


def _thread_first(x, *forms):
    return _thread(x, forms, last=False)


def _thread_last(x, *forms):
    return _thread(x, forms, last=True)


MACRO_ENV: dict[str, MacroFn] = {
    "when": _when,
    "when-not": _when_not,
    "if-not": _if_not,
    "->": _thread_first,
    "->>": _thread_last,
}


# =============================================================================
# Macro Expansion
# =============================================================================


def is_macro_call(form, macro_env) -> bool:
    """Check if form is a call whose head names a macro."""
    if not isinstance(form, list) or len(form) == 0:
        return False
    head = form[0]
    return isinstance(head, Symbol) and head.name in macro_env


def _with_location(expanded, original):
    """Give list output of a macro the location of the call it replaces."""
    if isinstance(expanded, list) and not isinstance(expanded, SourceList):
        loc = get_source_location(original)
        if loc is not None:
            return SourceList(expanded, loc.line, loc.col, loc.end_line, loc.end_col)
    return expanded


def macroexpand_1(form, macro_env):
    """Expand form once if it's a macro call."""
    if not is_macro_call(form, macro_env):
        return form
    macro_fn = macro_env[form[0].name]
    try:
        expanded = macro_fn(*form[1:])
    except TypeError as e:
        raise CompileError(f"bad arguments to macro {form[0].name}", form) from e
    except CompileError as e:
        if e.form is None:
            raise CompileError(e.message, form) from e
        raise
    return _with_location(expanded, form)


def macroexpand(form, macro_env=None, max_depth: int = DEFAULT_MAX_EXPANSION_DEPTH):
    """Expand form until its head is no longer a macro."""
    if macro_env is None:
        macro_env = MACRO_ENV

    original = form
    depth = 0
    while is_macro_call(form, macro_env):
        if depth >= max_depth:
            raise CompileError(
                f"macro expansion exceeded maximum depth of {max_depth}", original
            )
        form = macroexpand_1(form, macro_env)
        depth += 1

    return form


def macroexpand_all(
    forms, macro_env: Optional[dict[str, MacroFn]] = None, max_depth: Optional[int] = None
):
    """Apply macroexpansion to all forms recursively."""
    if macro_env is None:
        macro_env = MACRO_ENV
    if max_depth is None:
        from letloop.compiler.context import get_compile_context

        max_depth = get_compile_context().config.max_expansion_depth

    def expand_recursive(form):
        form = macroexpand(form, macro_env, max_depth)

        if isinstance(form, list):
            if len(form) > 0 and is_symbol(form[0], "quote"):
                return form
            expanded = [expand_recursive(f) for f in form]
            if isinstance(form, SourceList):
                return SourceList(
                    expanded, form.line, form.col, form.end_line, form.end_col
                )
            return expanded
        elif isinstance(form, VectorLiteral):
            return VectorLiteral(
                [expand_recursive(f) for f in form.items],
                form.line,
                form.col,
                form.end_line,
                form.end_col,
            )
        elif isinstance(form, MapLiteral):
            return MapLiteral(
                [(expand_recursive(k), expand_recursive(v)) for k, v in form.pairs],
                form.line,
                form.col,
                form.end_line,
                form.end_col,
            )
        return form

    result = [expand_recursive(f) for f in forms]
    logger.debug("macro-expanded %d top-level forms", len(result))
    return result


__all__ = [
    "MACRO_ENV",
    "is_symbol",
    "is_macro_call",
    "macroexpand_1",
    "macroexpand",
    "macroexpand_all",
]
