"""
letloop.compiler.patterns - Destructuring pattern parsers

A binding position holds one of three shapes:

    name                                   BindingPattern
    [b1 b2 ... & rest :as whole]           SequencePattern
    [:: b1 k1 b2 k2 ... :as whole :or {k default ...}]
                                           TablePattern

Each parser handles a single level. Nested pattern literals are kept as
raw forms and parsed when the dispatcher (destructure.py) reaches them.
"""

import keyword
from dataclasses import dataclass, field
from typing import Any, Optional

from letloop.compiler.errors import (
    DefaultClauseError,
    PatternSyntaxError,
    ReaderError,
    UnsupportedPatternShape,
)
from letloop.compiler.reader import get_source_location, read_str
from letloop.runtime.types import Keyword, MapLiteral, Symbol, VectorLiteral, normalize_name

# `::` reads as the keyword named ":"
TABLE_MARKER = ":"
REST_MARKER = "&"
ALIAS_KEY = "as"
DEFAULTS_KEY = "or"

# Parser states
_NORMAL = "normal"
_AFTER_REST = "after-rest"
_AFTER_ALIAS = "after-alias"
_AFTER_DEFAULTS = "after-defaults"


@dataclass
class BindingPattern:
    """A plain name: binds the whole value."""

    name: Symbol


@dataclass
class SequencePattern:
    """
    Positional destructuring of a sequence.

    items are raw binder forms (Symbol or nested VectorLiteral), in order.
    rest, when present, receives the elements after the last positional one.
    alias, when present, receives the whole value.
    """

    items: list[Any] = field(default_factory=list)
    rest: Optional[Symbol] = None
    alias: Optional[Symbol] = None
    form: Any = None


@dataclass
class TablePattern:
    """
    Key-based destructuring of a mapping or association list.

    entries are (binder form, key constant) in source order. defaults maps a
    key to the unevaluated default form used when that key is missing.
    """

    entries: list[tuple[Any, Any]] = field(default_factory=list)
    alias: Optional[Symbol] = None
    defaults: dict[Any, Any] = field(default_factory=dict)
    form: Any = None


def is_keyword(x, name=None):
    if isinstance(x, Keyword):
        return name is None or x.name == name
    return False


def is_table_marker(x) -> bool:
    return is_keyword(x, TABLE_MARKER)


def is_rest_marker(x) -> bool:
    """True for `&` and for the fused `&name` form."""
    return isinstance(x, Symbol) and x.name.startswith(REST_MARKER)


def is_binding_name(x) -> bool:
    return isinstance(x, Symbol) and not is_rest_marker(x)


def is_constant(x) -> bool:
    """Constants usable as table keys: keywords, strings, numbers, booleans, nil."""
    if x is None or isinstance(x, (bool, int, float, str)):
        return True
    return isinstance(x, Keyword) and x.name not in (ALIAS_KEY, DEFAULTS_KEY, TABLE_MARKER)


def _error(cls, message, item, container):
    loc = get_source_location(item) or get_source_location(container)
    return cls(message, form=container if item is None else item, loc=loc)


def _check_name(sym: Symbol, container) -> Symbol:
    name = normalize_name(sym.name)
    if not name.isidentifier() or keyword.iskeyword(name):
        raise _error(PatternSyntaxError, "invalid binding name", sym, container)
    return sym


# =============================================================================
# Sequence patterns
# =============================================================================


def parse_sequence_pattern(form: VectorLiteral) -> SequencePattern:
    """
    Parse one level of a sequence pattern.

    States: normal, after-rest (just saw `&`), after-alias (just saw `:as`).
    """
    pattern = SequencePattern(form=form)
    state = _NORMAL
    marker = None

    for item in form.items:
        if state == _AFTER_REST:
            if not is_binding_name(item):
                raise _error(
                    PatternSyntaxError,
                    "& must be followed by exactly one name",
                    item,
                    form,
                )
            pattern.rest = _check_name(item, form)
            state = _NORMAL
        elif state == _AFTER_ALIAS:
            if not is_binding_name(item):
                raise _error(
                    PatternSyntaxError, ":as must be followed by a name", item, form
                )
            if pattern.alias is not None:
                raise _error(PatternSyntaxError, "duplicate :as alias", item, form)
            pattern.alias = _check_name(item, form)
            state = _NORMAL
        elif is_keyword(item, ALIAS_KEY):
            state = _AFTER_ALIAS
            marker = item
        elif is_rest_marker(item):
            if pattern.rest is not None:
                raise _error(
                    PatternSyntaxError, "only one rest binder is allowed", item, form
                )
            marker = item
            if item.name == REST_MARKER:
                state = _AFTER_REST
            else:
                # &name is shorthand for & name
                pattern.rest = _check_name(
                    Symbol(item.name[1:], item.line, item.col + 1, item.end_line, item.end_col),
                    form,
                )
        elif isinstance(item, (Symbol, VectorLiteral, MapLiteral)):
            if pattern.rest is not None:
                raise _error(
                    PatternSyntaxError,
                    "rest binder must be the last positional element",
                    item,
                    form,
                )
            if isinstance(item, Symbol):
                _check_name(item, form)
            pattern.items.append(item)
        else:
            raise _error(
                PatternSyntaxError,
                "sequence pattern elements must be names or patterns",
                item,
                form,
            )

    if state == _AFTER_REST:
        raise _error(PatternSyntaxError, "& must be followed by exactly one name", marker, form)
    if state == _AFTER_ALIAS:
        raise _error(PatternSyntaxError, ":as must be followed by a name", marker, form)

    return pattern


# =============================================================================
# Table patterns
# =============================================================================


def parse_table_pattern(form: VectorLiteral) -> TablePattern:
    """
    Parse one level of a table pattern.

    After the leading `::`, items fold as binder/key pairs. `:as name` and
    `:or {...}` may appear between pairs.
    """
    pattern = TablePattern(form=form)
    state = _NORMAL
    marker = None
    pending = None
    defaults_form = None

    for item in form.items[1:]:
        if state == _AFTER_ALIAS:
            if not is_binding_name(item):
                raise _error(
                    PatternSyntaxError, ":as must be followed by a name", item, form
                )
            if pattern.alias is not None:
                raise _error(PatternSyntaxError, "duplicate :as alias", item, form)
            pattern.alias = _check_name(item, form)
            state = _NORMAL
        elif state == _AFTER_DEFAULTS:
            if not isinstance(item, MapLiteral):
                raise _error(
                    DefaultClauseError,
                    ":or must be followed by a map of key defaults",
                    item,
                    form,
                )
            defaults_form = item
            state = _NORMAL
        elif pending is not None:
            if is_keyword(item, ALIAS_KEY) or is_keyword(item, DEFAULTS_KEY):
                raise _error(
                    PatternSyntaxError,
                    "odd binder/key count: binder has no key",
                    pending,
                    form,
                )
            if not is_constant(item):
                raise _error(PatternSyntaxError, "table key must be a constant", item, form)
            pattern.entries.append((pending, item))
            pending = None
        elif is_keyword(item, ALIAS_KEY):
            state = _AFTER_ALIAS
            marker = item
        elif is_keyword(item, DEFAULTS_KEY):
            if defaults_form is not None:
                raise _error(DefaultClauseError, "duplicate :or clause", item, form)
            state = _AFTER_DEFAULTS
            marker = item
        elif is_binding_name(item) or isinstance(item, (VectorLiteral, MapLiteral)):
            if isinstance(item, Symbol):
                _check_name(item, form)
            pending = item
        else:
            raise _error(
                PatternSyntaxError,
                "table binder must be a name or a nested pattern",
                item,
                form,
            )

    if pending is not None:
        raise _error(
            PatternSyntaxError, "odd binder/key count: binder has no key", pending, form
        )
    if state == _AFTER_ALIAS:
        raise _error(PatternSyntaxError, ":as must be followed by a name", marker, form)
    if state == _AFTER_DEFAULTS:
        raise _error(
            DefaultClauseError, ":or must be followed by a map of key defaults", marker, form
        )

    if defaults_form is not None:
        pattern.defaults = parse_default_clause(defaults_form, pattern)

    return pattern


def parse_default_clause(defaults_form: MapLiteral, pattern: TablePattern) -> dict:
    """Validate an :or map against the keys the pattern looks up."""
    keys = [key for _, key in pattern.entries]
    defaults: dict[Any, Any] = {}
    for key, default in defaults_form.pairs:
        if not is_constant(key):
            raise _error(
                DefaultClauseError, ":or keys must be constants", key, defaults_form
            )
        if key in defaults:
            raise _error(DefaultClauseError, "duplicate :or key", key, defaults_form)
        if key not in keys:
            raise _error(
                DefaultClauseError,
                ":or key is not looked up by this pattern",
                key,
                defaults_form,
            )
        defaults[key] = default
    return defaults


# =============================================================================
# Shape detection
# =============================================================================


def parse_pattern(form):
    """Parse a binding form into the pattern of its shape (one level deep)."""
    if isinstance(form, Symbol):
        if is_rest_marker(form):
            raise PatternSyntaxError("& is only valid inside a sequence pattern", form)
        return BindingPattern(_check_name(form, form))
    if isinstance(form, VectorLiteral):
        if form.items and is_table_marker(form.items[0]):
            return parse_table_pattern(form)
        return parse_sequence_pattern(form)
    raise UnsupportedPatternShape("unsupported binding form", form)


def is_destructuring_pattern(form) -> bool:
    """True for compound patterns (anything but a plain name)."""
    return isinstance(form, VectorLiteral)


def read_pattern(src: str):
    """Read a single pattern literal from source text."""
    try:
        forms = read_str(src)
    except ReaderError as e:
        raise PatternSyntaxError(e.message, loc=e.loc) from e
    if len(forms) != 1:
        raise PatternSyntaxError(f"expected exactly one pattern, got {len(forms)} forms")
    return forms[0]


__all__ = [
    "BindingPattern",
    "SequencePattern",
    "TablePattern",
    "parse_sequence_pattern",
    "parse_table_pattern",
    "parse_default_clause",
    "parse_pattern",
    "is_destructuring_pattern",
    "is_table_marker",
    "read_pattern",
]
