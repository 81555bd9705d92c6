"""
letloop.compiler.tail - Tail-position analysis for self-calls

Before a loop or function body is rewritten into a while loop, every
self-call (`recur`) in it must be proven to sit in tail position: its value,
once computed, is the value of the whole body. The analyzer walks the
macro-expanded body once, threading an is_tail flag through a table of
handlers keyed by the head symbol of each form.

    (loop [i 0 acc 0]
      (if (< i 10)
        (recur (inc i) (+ acc i))     ; tail: both branches of a tail `if`
        acc))

    (loop [i 0]
      (inc (recur i)))                ; not tail: argument of a call

The first self-call found outside tail position stops the walk and is
reported with its location. Function and loop bodies nested inside the
walked body are their own recursion targets and are not descended into.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from letloop.compiler.errors import TailPositionViolation
from letloop.compiler.reader import SourceLocation, get_source_location
from letloop.runtime.types import Keyword, MapLiteral, Symbol, VectorLiteral

logger = logging.getLogger(__name__)

RECUR = "recur"


def is_recur(form) -> bool:
    """The self-call marker: (recur arg ...)."""
    return (
        isinstance(form, list)
        and len(form) > 0
        and isinstance(form[0], Symbol)
        and form[0].name == RECUR
    )


@dataclass
class SelfCall:
    """A self-call found in tail position."""

    form: Any
    args: list[Any]
    loc: Optional[SourceLocation] = None


@dataclass
class TailVerdict:
    """Outcome of analyzing one body."""

    self_calls: list[SelfCall] = field(default_factory=list)
    violation: Optional[TailPositionViolation] = None

    @property
    def ok(self) -> bool:
        return self.violation is None

    @property
    def has_self_calls(self) -> bool:
        return bool(self.self_calls)

    def raise_for_violation(self):
        if self.violation is not None:
            raise self.violation


class TailAnalyzer:
    """Classifies every self-call of one body as tail or non-tail."""

    def __init__(self, is_self_call: Callable[[Any], bool] = is_recur):
        self.is_self_call = is_self_call
        self.self_calls: list[SelfCall] = []
        self._handlers: dict[str, Callable[[list, bool], None]] = {
            "do": self._visit_do,
            "if": self._visit_if,
            "cond": self._visit_cond,
            "case": self._visit_case,
            "let": self._visit_let,
            "and": self._visit_logical,
            "or": self._visit_logical,
            "loop": self._visit_loop,
            "fn": self._visit_nested_fn,
            "defn": self._visit_nested_fn,
            "quote": self._visit_quote,
        }

    def visit_body(self, forms, is_tail: bool = True):
        """Visit a sequence of forms where only the last inherits is_tail."""
        for i, form in enumerate(forms):
            self.visit(form, is_tail and i == len(forms) - 1)

    def visit(self, form, is_tail: bool):
        if isinstance(form, VectorLiteral):
            for item in form.items:
                self.visit(item, False)
            return
        if isinstance(form, MapLiteral):
            for k, v in form.pairs:
                self.visit(k, False)
                self.visit(v, False)
            return
        if not isinstance(form, list) or not form:
            return

        if self.is_self_call(form):
            if not is_tail:
                raise TailPositionViolation("recur is not in tail position", form)
            self.self_calls.append(
                SelfCall(form, list(form[1:]), get_source_location(form))
            )
            # Arguments are evaluated before the jump
            for arg in form[1:]:
                self.visit(arg, False)
            return

        head = form[0]
        handler = self._handlers.get(head.name) if isinstance(head, Symbol) else None
        if handler is not None:
            handler(form, is_tail)
            return

        # Plain application: operator and arguments all run before the call
        for sub in form:
            self.visit(sub, False)

    def _visit_do(self, form, is_tail):
        self.visit_body(form[1:], is_tail)

    def _visit_if(self, form, is_tail):
        args = form[1:]
        if args:
            self.visit(args[0], False)
        for branch in args[1:]:
            self.visit(branch, is_tail)

    def _visit_cond(self, form, is_tail):
        # (cond test1 expr1 test2 expr2 ... :else expr)
        for i, sub in enumerate(form[1:]):
            if i % 2 == 0 and not (
                isinstance(sub, Keyword) and sub.name == "else"
            ):
                self.visit(sub, False)
            elif i % 2 == 1:
                self.visit(sub, is_tail)

    def _visit_case(self, form, is_tail):
        # (case expr const1 result1 const2 result2 ... default?)
        args = form[1:]
        if not args:
            return
        self.visit(args[0], False)
        clauses = args[1:]
        for i in range(1, len(clauses), 2):
            self.visit(clauses[i], is_tail)
        if len(clauses) % 2 == 1:
            self.visit(clauses[-1], is_tail)

    def _visit_let(self, form, is_tail):
        if len(form) > 1:
            # Patterns and initializers, including :or defaults
            self.visit(form[1], False)
        self.visit_body(form[2:], is_tail)

    def _visit_logical(self, form, is_tail):
        self.visit_body(form[1:], is_tail)

    def _visit_loop(self, form, is_tail):
        # Initializers belong to this body; the loop body recurs to the loop
        if len(form) > 1:
            self.visit(form[1], False)

    def _visit_nested_fn(self, form, is_tail):
        pass

    def _visit_quote(self, form, is_tail):
        pass


def analyze_tail(
    body_forms, is_self_call: Callable[[Any], bool] = is_recur
) -> TailVerdict:
    """
    Classify the self-calls of a body whose last form is in tail position.

    Returns a TailVerdict holding every tail self-call, or the first
    violation found. Nothing is compiled until the verdict is known.
    """
    analyzer = TailAnalyzer(is_self_call)
    try:
        analyzer.visit_body(list(body_forms), True)
    except TailPositionViolation as e:
        logger.debug("tail analysis failed: %s", e)
        return TailVerdict(self_calls=analyzer.self_calls, violation=e)
    logger.debug("tail analysis found %d self-calls", len(analyzer.self_calls))
    return TailVerdict(self_calls=analyzer.self_calls)


def verify_tail_calls(
    body_forms, is_self_call: Callable[[Any], bool] = is_recur
) -> TailVerdict:
    """Like analyze_tail, but raise TailPositionViolation on failure."""
    verdict = analyze_tail(body_forms, is_self_call)
    verdict.raise_for_violation()
    return verdict


__all__ = [
    "RECUR",
    "is_recur",
    "SelfCall",
    "TailVerdict",
    "TailAnalyzer",
    "analyze_tail",
    "verify_tail_calls",
]
