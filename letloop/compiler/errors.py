"""
letloop.compiler.errors - Compile-time error taxonomy

Every error the compiler raises is a CompileError, which is a SyntaxError
so callers that already handle SyntaxError from compile() keep working.
Errors carry the offending form and its source location; none of them can
happen at run time because a body that fails to compile is never emitted.
"""

from typing import Any, Optional

from letloop.runtime.types import Keyword, MapLiteral, Symbol, VectorLiteral


def form_text(form: Any) -> str:
    """Render a reader form back to letloop-like text for error messages."""
    if form is None:
        return "nil"
    if form is True:
        return "true"
    if form is False:
        return "false"
    if isinstance(form, (Symbol, Keyword)):
        return str(form) if isinstance(form, Keyword) else form.name
    if isinstance(form, str):
        return '"' + form.replace('"', '\\"') + '"'
    if isinstance(form, VectorLiteral):
        return "[" + " ".join(form_text(x) for x in form.items) + "]"
    if isinstance(form, MapLiteral):
        inner = " ".join(f"{form_text(k)} {form_text(v)}" for k, v in form.pairs)
        return "{" + inner + "}"
    if isinstance(form, list):
        return "(" + " ".join(form_text(x) for x in form) + ")"
    return repr(form)


class CompileError(SyntaxError):
    """Base class for letloop compile-time errors."""

    def __init__(self, message: str, form: Any = None, loc: Optional[Any] = None):
        from letloop.compiler.reader import get_source_location

        if loc is None and form is not None:
            loc = get_source_location(form)
        self.message = message
        self.form = form
        self.loc = loc
        self.text_form = form_text(form) if form is not None else None
        super().__init__(self._format())
        if loc is not None and loc.line > 0:
            self.lineno = loc.line
            self.offset = loc.col + 1

    def _format(self) -> str:
        msg = self.message
        if self.loc is not None and self.loc.line > 0:
            msg += f" at line {self.loc.line}, column {self.loc.col}"
        if self.text_form is not None:
            msg += f": {self.text_form}"
        return msg

    def __str__(self):
        return self._format()


class ReaderError(CompileError):
    """Malformed source text (unterminated literal, odd map, bad escape)."""


class PatternSyntaxError(CompileError):
    """Malformed destructuring pattern: bad alias, misplaced rest, odd table."""


class DefaultClauseError(PatternSyntaxError):
    """Malformed :or default mapping in a table pattern."""


class UnsupportedPatternShape(CompileError):
    """A binding position holds something that is not a name or pattern."""


class TailPositionViolation(CompileError):
    """A self-call (recur) appears outside tail position of its target."""


__all__ = [
    "CompileError",
    "ReaderError",
    "PatternSyntaxError",
    "DefaultClauseError",
    "UnsupportedPatternShape",
    "TailPositionViolation",
    "form_text",
]
