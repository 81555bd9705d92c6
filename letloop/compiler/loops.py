"""
letloop.compiler.loops - Rewriting tail self-calls into while loops

Once the tail analyzer has proven that every `recur` of a body is in tail
position, the body is compiled as the inside of a while loop driven by a
continue flag. Each tail position becomes one of two exits:

    (loop [a 0 b 1 n 10]
      (if (= n 0)
        a
        (recur b (+ a b) (dec n))))

In expression position, where the loop gets a helper function of its
own, this compiles to:

    a = 0
    b = 1
    n = 10
    __ll_continue_1 = True
    __ll_result_2 = None
    while __ll_continue_1:
        if n == 0:
            __ll_result_2 = a
            __ll_continue_1 = False
        else:
            __ll_recur_3 = b
            __ll_recur_4 = a + b
            __ll_recur_5 = dec(n)
            a = __ll_recur_3
            b = __ll_recur_4
            n = __ll_recur_5
            continue

All recur arguments are evaluated into temporaries before any loop
variable is written, so (recur b a) swaps.

A destructuring loop variable is expanded once with the initializers and
again after every recur, so later initializers and the body see the names
its pattern binds.

Loop variables are plain locals mutated in place. A closure created in the
loop body sees the latest value of a loop variable, not the value of the
iteration that created it.
"""

import ast
import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from letloop.compiler.context import gensym, get_compile_context
from letloop.compiler.destructure import BindingPair, emit_bindings, expand_pattern
from letloop.compiler.errors import CompileError
from letloop.compiler.patterns import is_destructuring_pattern
from letloop.compiler.reader import SourceLocation, get_source_location, set_location
from letloop.compiler.tail import is_recur
from letloop.runtime.types import Symbol, VectorLiteral, normalize_name

logger = logging.getLogger(__name__)


@dataclass
class LoopState:
    """
    Loop variables of one recursion target.

    variables: Python names rebound by recur, one per recur argument
    inits: initializers run once before the loop (empty for function
        parameters, which the call has already bound)
    rebind: pattern bindings over the variables, run again after every
        recur
    is_self_call: recognizes the self-calls of the body; the same
        predicate the body was checked with by the tail analyzer
    """

    variables: list[str] = field(default_factory=list)
    inits: list[BindingPair] = field(default_factory=list)
    rebind: list[BindingPair] = field(default_factory=list)
    is_self_call: Callable[[Any], bool] = is_recur
    continue_var: Optional[str] = None
    result_var: Optional[str] = None


def loop_state_from_bindings(bindings, fresh: bool = False) -> LoopState:
    """
    Build the LoopState of (loop [p1 e1 p2 e2 ...] ...).

    Bindings are sequential: each initializer is compiled after the earlier
    names are bound in the current scope. With fresh, every name is given a
    temporary of its own.
    """
    from letloop.compiler.codegen import compile_expr

    if not isinstance(bindings, VectorLiteral):
        raise CompileError("loop bindings must be a vector", bindings)
    items = bindings.items
    if len(items) % 2 != 0:
        raise CompileError("loop bindings must have even number of forms", bindings)

    ctx = get_compile_context()
    state = LoopState()
    for i in range(0, len(items), 2):
        pattern = items[i]
        loc = get_source_location(pattern)
        value = compile_expr(items[i + 1])
        if is_destructuring_pattern(pattern):
            var = gensym("loop_")
            state.inits.append(BindingPair(var, value, loc))
            pairs = expand_pattern(
                pattern, ast.Name(id=var, ctx=ast.Load()), bind=lambda n: ctx.bind(n, fresh)
            )
            state.inits.extend(pairs)
            state.rebind.extend(pairs)
        elif isinstance(pattern, Symbol):
            var = ctx.bind(normalize_name(pattern.name), fresh)
            state.inits.append(BindingPair(var, value, loc))
        else:
            raise CompileError("loop binding must be a name or a pattern", pattern)
        state.variables.append(var)
    return state


def loop_state_from_params(
    variables: list[str], rebind: Optional[list[BindingPair]] = None
) -> LoopState:
    """
    Build the LoopState of a function whose parameters are already bound.

    rebind holds the expansion of its destructuring parameters.
    """
    return LoopState(variables=list(variables), rebind=list(rebind or []))


def rewrite_loop(
    state: LoopState,
    body_forms,
    loc: Optional[SourceLocation] = None,
    is_self_call: Optional[Callable[[Any], bool]] = None,
) -> list[ast.stmt]:
    """
    Compile body_forms as a while loop over state.

    The caller must already have checked the body with the tail analyzer,
    using is_self_call when one is given here.
    Sets state.continue_var and state.result_var; after the returned
    statements run, state.result_var holds the value of the body.
    """
    ctx = get_compile_context()
    if is_self_call is not None:
        state.is_self_call = is_self_call
    state.continue_var = gensym("continue_")
    state.result_var = gensym("result_")

    stmts = emit_bindings(state.inits, loc=loc)
    for name, value in (
        (state.continue_var, ast.Constant(value=True)),
        (state.result_var, ast.Constant(value=None)),
    ):
        assign = ast.Assign(targets=[ast.Name(id=name, ctx=ast.Store())], value=value)
        stmts.append(set_location(assign, loc))

    mark = ctx.mark()
    body = compile_loop_body(list(body_forms), state)
    body = ctx.take_functions_since(mark) + body

    while_node = ast.While(
        test=ast.Name(id=state.continue_var, ctx=ast.Load()),
        body=body,
        orelse=[],
    )
    stmts.append(set_location(while_node, loc))

    logger.debug(
        "rewrote loop over %s into %s", ", ".join(state.variables) or "()", state.continue_var
    )
    return stmts


def compile_loop_body(body_forms, state: LoopState) -> list[ast.stmt]:
    """All but the last form are statements; the last is a loop tail."""
    from letloop.compiler.codegen import compile_stmt

    if not body_forms:
        return compile_loop_exit(ast.Constant(value=None), state)

    stmts: list[ast.stmt] = []
    for f in body_forms[:-1]:
        stmts.extend(compile_stmt(f))
    stmts.extend(compile_loop_tail(body_forms[-1], state))
    return stmts


def compile_loop_exit(
    expr: ast.expr, state: LoopState, loc: Optional[SourceLocation] = None
) -> list[ast.stmt]:
    """Leave the loop with expr as its value."""
    if state.result_var is None or state.continue_var is None:
        raise CompileError("loop exit compiled outside of rewrite_loop", loc=loc)
    store = ast.Assign(targets=[ast.Name(id=state.result_var, ctx=ast.Store())], value=expr)
    stop = ast.Assign(
        targets=[ast.Name(id=state.continue_var, ctx=ast.Store())],
        value=ast.Constant(value=False),
    )
    return [set_location(store, loc), set_location(stop, loc)]


def compile_recur(
    args, state: LoopState, form_loc: Optional[SourceLocation] = None, form=None
) -> list[ast.stmt]:
    """
    Compile (recur arg1 arg2 ...) to simultaneous reassignment and continue.

    Destructuring variables are expanded again from their new values before
    the jump.
    """
    from letloop.compiler.codegen import compile_expr

    if len(args) != len(state.variables):
        raise CompileError(
            f"recur requires {len(state.variables)} arguments, got {len(args)}",
            form,
            form_loc,
        )

    stmts: list[ast.stmt] = []
    temps: list[str] = []
    for arg in args:
        temp = gensym("recur_")
        temps.append(temp)
        assign = ast.Assign(
            targets=[ast.Name(id=temp, ctx=ast.Store())], value=compile_expr(arg)
        )
        stmts.append(set_location(assign, form_loc))

    for var, temp in zip(state.variables, temps):
        assign = ast.Assign(
            targets=[ast.Name(id=var, ctx=ast.Store())],
            value=ast.Name(id=temp, ctx=ast.Load()),
        )
        stmts.append(set_location(assign, form_loc))

    rebind = [BindingPair(p.target, copy.deepcopy(p.value), p.loc) for p in state.rebind]
    stmts.extend(emit_bindings(rebind, loc=form_loc))
    stmts.append(set_location(ast.Continue(), form_loc))
    return stmts


def compile_loop_tail(form, state: LoopState) -> list[ast.stmt]:
    """
    Compile a form in tail position of a loop.

    A self-call jumps; if, cond, case, let, do, and and or pass the tail
    position on to their branches; anything else leaves the loop with its
    value.
    """
    from letloop.compiler.codegen import compile_expr

    form_loc = get_source_location(form)

    if state.is_self_call(form):
        return compile_recur(form[1:], state, form_loc, form)
    if isinstance(form, list) and form and isinstance(form[0], Symbol):
        handler = _TAIL_FORMS.get(form[0].name)
        if handler is not None:
            return handler(form[1:], state, form_loc, form)

    return compile_loop_exit(compile_expr(form), state, form_loc)


def _tail_if(args, state, form_loc, form):
    from letloop.compiler.codegen import compile_expr

    if len(args) not in (2, 3):
        raise CompileError("if requires test, then, optional else", form)
    test = compile_expr(args[0])
    then_stmts = compile_loop_tail(args[1], state)
    else_stmts = compile_loop_tail(args[2] if len(args) == 3 else None, state)
    if_node = ast.If(test=test, body=then_stmts, orelse=else_stmts)
    return [set_location(if_node, form_loc)]


def _tail_cond(args, state, form_loc, form):
    from letloop.compiler.codegen import compile_expr, parse_cond_clauses

    clauses, default = parse_cond_clauses(args, form)

    # Build nested if statements from the end
    result = compile_loop_tail(default, state)
    for test_form, expr_form in reversed(clauses):
        if_node = ast.If(
            test=compile_expr(test_form),
            body=compile_loop_tail(expr_form, state),
            orelse=result,
        )
        result = [set_location(if_node, form_loc)]
    return result


def _tail_case(args, state, form_loc, form):
    from letloop.compiler.codegen import compile_expr, compile_case_test, parse_case_clauses

    selector, clauses, default = parse_case_clauses(args, form)
    sel = gensym("case_")
    assign = ast.Assign(
        targets=[ast.Name(id=sel, ctx=ast.Store())], value=compile_expr(selector)
    )
    result = compile_loop_tail(default, state)
    for key, expr_form in reversed(clauses):
        if_node = ast.If(
            test=compile_case_test(sel, key),
            body=compile_loop_tail(expr_form, state),
            orelse=result,
        )
        result = [set_location(if_node, form_loc)]
    return [set_location(assign, form_loc)] + result


def _tail_let(args, state, form_loc, form):
    from letloop.compiler.codegen import compile_let_bindings, compile_stmt

    if len(args) < 1:
        raise CompileError("let requires bindings vector", form)
    with get_compile_context().scope():
        stmts = compile_let_bindings(args[0])
        body_forms = args[1:]
        if not body_forms:
            return stmts + compile_loop_tail(None, state)
        for f in body_forms[:-1]:
            stmts.extend(compile_stmt(f))
        stmts.extend(compile_loop_tail(body_forms[-1], state))
    return stmts


def _tail_do(args, state, form_loc, form):
    return compile_loop_body(list(args), state)


def _tail_and(args, state, form_loc, form):
    if not args:
        return compile_loop_exit(ast.Constant(value=True), state, form_loc)
    return _tail_logical(list(args), state, form_loc, short_circuit_on=False)


def _tail_or(args, state, form_loc, form):
    if not args:
        return compile_loop_exit(ast.Constant(value=None), state, form_loc)
    return _tail_logical(list(args), state, form_loc, short_circuit_on=True)


def _tail_logical(operands, state, form_loc, short_circuit_on: bool) -> list[ast.stmt]:
    """
    (and a b) and (or a b) in tail position.

    Every operand but the last is evaluated once into a temporary. `and`
    exits with the first falsy value, `or` with the first truthy one; the
    last operand is itself a tail.
    """
    from letloop.compiler.codegen import compile_expr

    if len(operands) == 1:
        return compile_loop_tail(operands[0], state)

    temp = gensym("test_")
    assign = ast.Assign(
        targets=[ast.Name(id=temp, ctx=ast.Store())], value=compile_expr(operands[0])
    )
    test: ast.expr = ast.Name(id=temp, ctx=ast.Load())
    if not short_circuit_on:
        test = ast.UnaryOp(op=ast.Not(), operand=test)
    if_node = ast.If(
        test=test,
        body=compile_loop_exit(ast.Name(id=temp, ctx=ast.Load()), state, form_loc),
        orelse=_tail_logical(operands[1:], state, form_loc, short_circuit_on),
    )
    return [set_location(assign, form_loc), set_location(if_node, form_loc)]


_TAIL_FORMS = {
    "if": _tail_if,
    "cond": _tail_cond,
    "case": _tail_case,
    "let": _tail_let,
    "do": _tail_do,
    "and": _tail_and,
    "or": _tail_or,
}


__all__ = [
    "LoopState",
    "loop_state_from_bindings",
    "loop_state_from_params",
    "rewrite_loop",
    "compile_loop_body",
    "compile_loop_tail",
    "compile_loop_exit",
    "compile_recur",
]
