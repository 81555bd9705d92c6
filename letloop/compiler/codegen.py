"""
letloop.compiler.codegen - Compile letloop forms to Python AST

Pipeline:
    Phase 1: Read        source text -> forms (reader.py)
    Phase 2: Macroexpand forms -> canonical forms (macros.py)
    Phase 3: Analyze     tail positions of every loop and function body (tail.py)
    Phase 4: Lower       canonical forms -> ast.Module (this module, with
                         destructure.py for binding positions and loops.py
                         for bodies that recur)

Forms that need statements but appear in expression position (let, do,
case, loop) are hoisted into helper functions that are defined just before
the statement that uses them, and called in place.
"""

import ast
import logging
from typing import Any, Optional

from letloop.compiler.context import gensym, get_compile_context, reset_compile_context
from letloop.compiler.destructure import (
    BindingPair,
    compile_destructure,
    compile_key,
    emit_bindings,
    expand_pattern,
    make_keyword_expr,
)
from letloop.compiler.errors import CompileError, TailPositionViolation
from letloop.compiler.loops import loop_state_from_bindings, loop_state_from_params, rewrite_loop
from letloop.compiler.macros import is_symbol, macroexpand_all
from letloop.compiler.patterns import REST_MARKER, is_rest_marker, parse_pattern
from letloop.compiler.reader import (
    SourceLocation,
    copy_location,
    get_source_location,
    read_str,
    set_location,
)
from letloop.compiler.tail import analyze_tail
from letloop.project.config import CompilerConfig
from letloop.runtime import setup_runtime_env
from letloop.runtime.types import Keyword, MapLiteral, Symbol, VectorLiteral, normalize_name

logger = logging.getLogger(__name__)


# === Operator mappings ===

BINARY_OPS = {
    "+": ast.Add(),
    "-": ast.Sub(),
    "*": ast.Mult(),
    "/": ast.Div(),
    "//": ast.FloorDiv(),
    "%": ast.Mod(),
    "**": ast.Pow(),
}

COMPARE_OPS = {
    "=": ast.Eq(),
    "!=": ast.NotEq(),
    "not=": ast.NotEq(),
    "<": ast.Lt(),
    "<=": ast.LtE(),
    ">": ast.Gt(),
    ">=": ast.GtE(),
    "is": ast.Is(),
    "is-not": ast.IsNot(),
    "in": ast.In(),
    "not-in": ast.NotIn(),
}


def _load(name: str) -> ast.Name:
    return ast.Name(id=name, ctx=ast.Load())


def _arguments(names: list[str], vararg: Optional[str] = None) -> ast.arguments:
    return ast.arguments(
        posonlyargs=[],
        args=[ast.arg(arg=n) for n in names],
        vararg=ast.arg(arg=vararg) if vararg is not None else None,
        kwonlyargs=[],
        kw_defaults=[],
        kwarg=None,
        defaults=[],
    )


def is_else_marker(form) -> bool:
    """:else (or a literal true) as the test of a final cond clause."""
    return (isinstance(form, Keyword) and form.name == "else") or form is True


def _binding_items(bindings, what: str) -> list:
    if not isinstance(bindings, VectorLiteral):
        raise CompileError(f"{what} bindings must be a vector", bindings)
    if len(bindings.items) % 2 != 0:
        raise CompileError(f"{what} bindings must have even number of forms", bindings)
    return bindings.items


# === Helper hoisting ===


def _free_names(node: ast.AST) -> set[str]:
    """Names node reads without binding them itself."""
    loads: set[str] = set()
    bound: set[str] = set()
    for sub in ast.walk(node):
        if isinstance(sub, ast.Name):
            if isinstance(sub.ctx, ast.Load):
                loads.add(sub.id)
            else:
                bound.add(sub.id)
        elif isinstance(sub, ast.arg):
            bound.add(sub.arg)
    return loads - bound


def _binding_steps(pairs: list[BindingPair], helpers=()) -> list[tuple[str, set[str]]]:
    steps = []
    for i, pair in enumerate(pairs):
        names = _free_names(pair.value)
        if i == 0:
            for helper in helpers:
                names |= _free_names(helper)
        steps.append((pair.target, names))
    return steps


def _read_before_bound(steps: list[tuple[str, set[str]]]) -> list[str]:
    """
    Names a helper binds but reads before binding.

    In (let [x (inc x)] ...) the initializer reads the enclosing x. Inside a
    helper function that assigns x, Python would treat every x as local, so
    such names become helper parameters passed from the enclosing scope.
    """
    targets = {target for target, _ in steps}
    bound: set[str] = set()
    params: list[str] = []
    for target, names in steps:
        for name in sorted(names):
            if name in targets and name not in bound and name not in params:
                params.append(name)
        bound.add(target)
    return params


def _hoist_helper(
    stem: str,
    params: list[str],
    body: list[ast.stmt],
    loc: Optional[SourceLocation] = None,
    args: Optional[list[ast.expr]] = None,
) -> ast.Call:
    """Define a helper before the current statement and return a call to it."""
    name = gensym(stem)
    fn_def = ast.FunctionDef(
        name=name,
        args=_arguments(params),
        body=body or [ast.Pass()],
        decorator_list=[],
        returns=None,
    )
    set_location(fn_def, loc)
    get_compile_context().add_function(fn_def)
    call = ast.Call(
        func=_load(name),
        args=args if args is not None else [_load(p) for p in params],
        keywords=[],
    )
    return set_location(call, loc)


def _compile_body_with_return(forms) -> list[ast.stmt]:
    """All but the last form as statements, then return the last."""
    ctx = get_compile_context()
    stmts: list[ast.stmt] = []
    for f in forms[:-1]:
        stmts.extend(compile_stmt(f))
    last = forms[-1] if forms else None
    mark = ctx.mark()
    ret = ast.Return(value=compile_expr(last))
    copy_location(ret, last)
    stmts.extend(ctx.take_functions_since(mark))
    stmts.append(ret)
    return stmts


# === Quote ===


def compile_quote(form):
    """
    Compile a quoted form into an AST expression that constructs the data.
    (quote x) returns x as data, not evaluated.
    """
    if form is None or isinstance(form, (bool, int, float, str)):
        return ast.Constant(value=form)

    if isinstance(form, Symbol):
        return ast.Call(
            func=_load("Symbol"), args=[ast.Constant(value=form.name)], keywords=[]
        )

    if isinstance(form, Keyword):
        return make_keyword_expr(form.name)

    if isinstance(form, (list, VectorLiteral)):
        items = form.items if isinstance(form, VectorLiteral) else form
        return ast.List(elts=[compile_quote(item) for item in items], ctx=ast.Load())

    if isinstance(form, MapLiteral):
        return ast.Dict(
            keys=[compile_quote(k) for k, _ in form.pairs],
            values=[compile_quote(v) for _, v in form.pairs],
        )

    raise CompileError(f"cannot quote form: {form!r}")


# === Module ===


def compile_module(forms, filename="<string>", config: Optional[CompilerConfig] = None):
    """
    Phase 3 & 4: Analyze and Lower
    Compile forms into a Python AST module.
    """
    reset_compile_context(config, filename)

    body: list[ast.stmt] = []
    for form in forms:
        body.extend(compile_stmt(form))

    mod = ast.Module(body=body, type_ignores=[])
    ast.fix_missing_locations(mod)
    logger.debug("compiled %d forms from %s", len(forms), filename)
    return mod


# === Statements ===


def compile_stmt(form) -> list[ast.stmt]:
    """
    Compile a form in statement context.

    Returns a list of statements, preceded by the helpers hoisted out of
    its expressions.
    """
    ctx = get_compile_context()
    mark = ctx.mark()
    form_loc = get_source_location(form)

    stmts = None
    if isinstance(form, list) and form and isinstance(form[0], Symbol):
        handler = STMT_FORMS.get(form[0].name)
        if handler is not None:
            stmts = handler(form[1:], form_loc, form)
    if stmts is None:
        node = ast.Expr(value=compile_expr(form))
        stmts = [set_location(node, form_loc)]

    return ctx.take_functions_since(mark) + stmts


def compile_if_stmt(args, form_loc, form):
    if len(args) not in (2, 3):
        raise CompileError("if requires test, then, optional else", form)
    test = compile_expr(args[0])
    body = compile_stmt(args[1]) or [ast.Pass()]
    orelse = compile_stmt(args[2]) if len(args) == 3 else []
    node = ast.If(test=test, body=body, orelse=orelse)
    return [set_location(node, form_loc)]


def compile_do_stmt(args, form_loc, form):
    if not args:
        return [set_location(ast.Pass(), form_loc)]
    stmts = []
    for f in args:
        stmts.extend(compile_stmt(f))
    return stmts


def compile_def(args, form_loc, form):
    """
    Compile (def name value) or (def pattern value).

    (def [a b] pair) destructures pair into module-level a and b.
    """
    if len(args) not in (1, 2):
        raise CompileError("def requires a name and an optional value", form)
    value = compile_expr(args[1]) if len(args) == 2 else ast.Constant(value=None)
    return compile_destructure(args[0], value, form_loc)


def _expand_let_bindings(bindings, fresh: bool):
    """
    Yield (pattern, helpers, pairs) for each binding of a let vector.

    Each initializer is compiled before its pattern binds, so it sees the
    earlier bindings but not its own. Names are bound in the current scope.
    """
    ctx = get_compile_context()
    items = _binding_items(bindings, "let")
    for i in range(0, len(items), 2):
        mark = ctx.mark()
        value = compile_expr(items[i + 1])
        pairs = expand_pattern(items[i], value, bind=lambda name: ctx.bind(name, fresh))
        yield items[i], ctx.take_functions_since(mark), pairs


def compile_let_bindings(bindings) -> list[ast.stmt]:
    """
    Compile a let binding vector to sequential assignments.

    Every name gets a fresh Python name in the current scope, so the
    assignments neither leak past the let nor overwrite a binding of the
    same name in the enclosing function.
    """
    stmts: list[ast.stmt] = []
    for pattern, helpers, pairs in _expand_let_bindings(bindings, fresh=True):
        stmts.extend(helpers)
        stmts.extend(emit_bindings(pairs, loc=get_source_location(pattern)))
    return stmts


def compile_let_stmt(args, form_loc, form):
    """
    Compile (let [x 1 y 2] body...) in statement context.

    Bindings become assignments in the enclosing function, to names that
    only the let body refers to.
    """
    if len(args) < 1:
        raise CompileError("let requires bindings vector", form)
    with get_compile_context().scope():
        stmts = compile_let_bindings(args[0])
        for f in args[1:]:
            stmts.extend(compile_stmt(f))
    return stmts


def compile_loop(args, form_loc, form):
    """
    Compile (loop [bindings] body...) in statement context.

    The loop value is discarded. Loop variables get fresh names, as let
    bindings do.
    """
    if len(args) < 1:
        raise CompileError("loop requires bindings vector", form)
    body_forms = list(args[1:])
    analyze_tail(body_forms).raise_for_violation()
    with get_compile_context().scope():
        state = loop_state_from_bindings(args[0], fresh=True)
        return rewrite_loop(state, body_forms, form_loc)


def compile_defn(args, form_loc, form):
    """
    Compile (defn name [params] body...) or (defn name "doc" [params] body...).
    """
    if len(args) < 2 or not isinstance(args[0], Symbol):
        raise CompileError("defn requires a name and a parameter vector", form)
    name = normalize_name(args[0].name)
    rest = list(args[1:])
    doc = None
    if isinstance(rest[0], str) and len(rest) > 1:
        doc = rest.pop(0)
    fn_def = compile_function(name, rest[0], rest[1:], form_loc, form, doc)
    return [fn_def]


def compile_recur_outside(args, form_loc, form):
    raise TailPositionViolation("recur outside of loop or function", form)


STMT_FORMS = {
    "if": compile_if_stmt,
    "do": compile_do_stmt,
    "def": compile_def,
    "defn": compile_defn,
    "let": compile_let_stmt,
    "loop": compile_loop,
    "recur": compile_recur_outside,
}


# === Functions ===


def compile_params(params: VectorLiteral):
    """
    Compile a parameter vector.

    - [x y]           -> def f(x, y):
    - [x & rest]      -> def f(x, *rest):
    - [x &rest]       -> def f(x, *rest):
    - [[a b] {...}]   -> def f(__ll_arg_1, ...) plus destructuring

    Returns: (ast.arguments, variables, patterns) where variables lists the
    Python parameter names in order (the rest parameter last) and patterns
    pairs each destructuring parameter with the name it arrives in. Plain
    parameter names are bound in the current scope.
    """
    if not isinstance(params, VectorLiteral):
        raise CompileError("parameters must be a vector", params)

    names: list[str] = []
    vararg: Optional[str] = None
    patterns: list[tuple[Any, str]] = []
    items = params.items

    def param_name(target) -> str:
        pattern = parse_pattern(target)
        if isinstance(target, Symbol):
            return get_compile_context().bind(normalize_name(pattern.name.name))
        temp = gensym("arg_")
        patterns.append((target, temp))
        return temp

    i = 0
    while i < len(items):
        item = items[i]
        if is_rest_marker(item):
            if item.name == REST_MARKER:
                if i + 1 >= len(items):
                    raise CompileError("& must be followed by a parameter", item)
                target = items[i + 1]
                i += 2
            else:
                target = Symbol(item.name[1:], item.line, item.col + 1, item.end_line, item.end_col)
                i += 1
            if i < len(items):
                raise CompileError("rest parameter must be the last parameter", items[i])
            vararg = param_name(target)
            continue
        names.append(param_name(item))
        i += 1

    variables = names + ([vararg] if vararg is not None else [])
    return _arguments(names, vararg), variables, patterns


def compile_function(
    name: str,
    params,
    body_forms,
    form_loc: Optional[SourceLocation] = None,
    form=None,
    doc: Optional[str] = None,
) -> ast.FunctionDef:
    """
    Compile one function definition.

    The body is first checked by the tail analyzer. When it recurs, it is
    rewritten into a while loop over the parameters; otherwise its last
    form is returned directly. Destructuring parameters are expanded once
    on entry, and again after every recur.
    """
    ctx = get_compile_context()
    body_forms = list(body_forms)

    with ctx.scope():
        ctx.bind(name)
        args_node, variables, patterns = compile_params(params)
        verdict = analyze_tail(body_forms)
        verdict.raise_for_violation()

        mark = ctx.mark()
        entry: list[BindingPair] = []
        for pattern, var in patterns:
            expand_pattern(pattern, _load(var), entry, bind=ctx.bind)
        body = emit_bindings(entry, loc=form_loc)

        if verdict.has_self_calls:
            state = loop_state_from_params(variables, entry)
            body.extend(rewrite_loop(state, body_forms, form_loc))
            body.append(ast.Return(value=_load(state.result_var)))
        else:
            body.extend(_compile_body_with_return(body_forms))
        body = ctx.take_functions_since(mark) + body

    if doc is not None:
        body.insert(0, ast.Expr(value=ast.Constant(value=doc)))

    fn_def = ast.FunctionDef(
        name=name,
        args=args_node,
        body=body,
        decorator_list=[],
        returns=None,
    )
    return set_location(fn_def, form_loc)


def compile_fn_expr(args, form_loc, form):
    """
    Compile (fn [x y] body...) or (fn name [x y] body...).

    The function is defined in the enclosing scope, so it closes over
    variables from that scope like a Python nested function.
    """
    args = list(args)
    if args and isinstance(args[0], Symbol):
        name = normalize_name(args.pop(0).name)
    else:
        name = gensym("fn_")
    if not args:
        raise CompileError("fn requires parameter vector", form)

    fn_def = compile_function(name, args[0], args[1:], form_loc, form)
    get_compile_context().add_function(fn_def)
    return set_location(_load(name), form_loc)


# === Expressions ===


def compile_if_expr(args, form_loc, form):
    if len(args) not in (2, 3):
        raise CompileError("if requires test, then, optional else", form)
    node = ast.IfExp(
        test=compile_expr(args[0]),
        body=compile_expr(args[1]),
        orelse=compile_expr(args[2] if len(args) == 3 else None),
    )
    return set_location(node, form_loc)


def parse_cond_clauses(args, form):
    """Split cond arguments into (test, expr) clauses and a default form."""
    if len(args) % 2 != 0:
        raise CompileError("cond requires even number of forms (test expr pairs)", form)
    clauses = []
    for test_form, expr_form in zip(args[::2], args[1::2]):
        if is_else_marker(test_form):
            return clauses, expr_form
        clauses.append((test_form, expr_form))
    return clauses, None


def compile_cond_expr(args, form_loc, form):
    clauses, default = parse_cond_clauses(args, form)
    result = compile_expr(default)
    for test_form, expr_form in reversed(clauses):
        result = ast.IfExp(
            test=compile_expr(test_form), body=compile_expr(expr_form), orelse=result
        )
        set_location(result, form_loc)
    return result


def _is_case_constant(x) -> bool:
    return x is None or isinstance(x, (bool, int, float, str, Keyword))


def parse_case_clauses(args, form):
    """
    Split (case expr k1 r1 k2 r2 ... default?) into its parts.

    A key is a constant or a list of constants, any of which matches.
    """
    if not args:
        raise CompileError("case requires an expression", form)
    selector = args[0]
    rest = list(args[1:])
    default = rest.pop() if len(rest) % 2 == 1 else None
    clauses = []
    for key, expr_form in zip(rest[::2], rest[1::2]):
        keys = key if isinstance(key, list) else [key]
        if not keys or not all(_is_case_constant(k) for k in keys):
            raise CompileError("case keys must be constants", key)
        clauses.append((key, expr_form))
    return selector, clauses, default


def compile_case_test(sel: str, key) -> ast.expr:
    """sel == key, or a disjunction of equalities for a list of keys."""
    keys = key if isinstance(key, list) else [key]
    tests: list[ast.expr] = [
        ast.Compare(left=_load(sel), ops=[ast.Eq()], comparators=[compile_key(k)])
        for k in keys
    ]
    if len(tests) == 1:
        return tests[0]
    return ast.BoolOp(op=ast.Or(), values=tests)


def compile_case_expr(args, form_loc, form):
    """Hoist (case ...) into a helper taking the selector value."""
    ctx = get_compile_context()
    selector, clauses, default = parse_case_clauses(args, form)
    selector_expr = compile_expr(selector)

    sel = gensym("case_")
    mark = ctx.mark()
    result: list[ast.stmt] = [ast.Return(value=compile_expr(default))]
    for key, expr_form in reversed(clauses):
        if_node = ast.If(
            test=compile_case_test(sel, key),
            body=[ast.Return(value=compile_expr(expr_form))],
            orelse=result,
        )
        result = [set_location(if_node, form_loc)]
    body = ctx.take_functions_since(mark) + result
    return _hoist_helper("case_fn_", [sel], body, form_loc, args=[selector_expr])


def compile_do_expr(args, form_loc, form):
    """
    Compile (do e1 e2 e3) in expression context.

    A single form compiles in place; otherwise the forms are hoisted into
    a helper that returns the last.
    """
    if not args:
        return ast.Constant(value=None)
    if len(args) == 1:
        return compile_expr(args[0])
    ctx = get_compile_context()
    mark = ctx.mark()
    body = _compile_body_with_return(list(args))
    body = ctx.take_functions_since(mark) + body
    return _hoist_helper("do_", [], body, form_loc)


def compile_let_expr(args, form_loc, form):
    """
    Compile (let [x 1 y 2] body...) in expression context.

    The bindings and body are hoisted into a helper so the bound names stay
    local to it.
    """
    if len(args) < 1:
        raise CompileError("let requires bindings vector", form)
    ctx = get_compile_context()

    stmts: list[ast.stmt] = []
    steps: list[tuple[str, set[str]]] = []
    with ctx.scope():
        for pattern, helpers, pairs in _expand_let_bindings(args[0], fresh=False):
            stmts.extend(helpers)
            stmts.extend(emit_bindings(pairs, loc=get_source_location(pattern)))
            steps.extend(_binding_steps(pairs, helpers))

        mark = ctx.mark()
        body = _compile_body_with_return(list(args[1:]))
        stmts.extend(ctx.take_functions_since(mark) + body)

    return _hoist_helper("let_", _read_before_bound(steps), stmts, form_loc)


def compile_loop_expr(args, form_loc, form):
    """
    Compile (loop [bindings] body...) in expression context.

    The rewritten loop is hoisted into a helper returning the loop result.
    """
    if len(args) < 1:
        raise CompileError("loop requires bindings vector", form)
    body_forms = list(args[1:])
    analyze_tail(body_forms).raise_for_violation()

    ctx = get_compile_context()
    with ctx.scope():
        mark = ctx.mark()
        state = loop_state_from_bindings(args[0])
        init_helpers = ctx.take_functions_since(mark)
        steps = _binding_steps(state.inits, init_helpers)

        stmts = rewrite_loop(state, body_forms, form_loc)
        body = init_helpers + ctx.take_functions_since(mark) + stmts
        body.append(ast.Return(value=_load(state.result_var)))

    return _hoist_helper("loop_", _read_before_bound(steps), body, form_loc)


def compile_and_or_expr(args, form_loc, form):
    is_and = form[0].name == "and"
    if not args:
        return ast.Constant(value=True if is_and else None)
    if len(args) == 1:
        return compile_expr(args[0])
    node = ast.BoolOp(
        op=ast.And() if is_and else ast.Or(), values=[compile_expr(f) for f in args]
    )
    return set_location(node, form_loc)


def compile_not_expr(args, form_loc, form):
    if len(args) != 1:
        raise CompileError("not requires exactly 1 argument", form)
    node = ast.UnaryOp(op=ast.Not(), operand=compile_expr(args[0]))
    return set_location(node, form_loc)


def compile_quote_expr(args, form_loc, form):
    if len(args) != 1:
        raise CompileError("quote requires exactly 1 argument", form)
    return set_location(compile_quote(args[0]), form_loc)


def compile_statement_only(args, form_loc, form):
    raise CompileError(f"{form[0].name} is only allowed at statement level", form)


EXPR_FORMS = {
    "if": compile_if_expr,
    "cond": compile_cond_expr,
    "case": compile_case_expr,
    "do": compile_do_expr,
    "let": compile_let_expr,
    "loop": compile_loop_expr,
    "fn": compile_fn_expr,
    "and": compile_and_or_expr,
    "or": compile_and_or_expr,
    "not": compile_not_expr,
    "quote": compile_quote_expr,
    "recur": compile_recur_outside,
    "def": compile_statement_only,
    "defn": compile_statement_only,
}


def compile_expr(form):
    """
    Compile a form in expression context.
    Returns an ast.expr node with source location information when available.
    """
    loc = get_source_location(form)

    # literals: booleans, nil, numbers, strings
    if form is None or isinstance(form, (bool, int, float, str)):
        return set_location(ast.Constant(value=form), loc)

    if isinstance(form, Keyword):
        return copy_location(make_keyword_expr(form.name), form)

    if isinstance(form, Symbol):
        return compile_symbol_expr(form)

    if isinstance(form, VectorLiteral):
        node = ast.List(elts=[compile_expr(x) for x in form.items], ctx=ast.Load())
        return copy_location(node, form)

    if isinstance(form, MapLiteral):
        node = ast.Dict(
            keys=[compile_expr(k) for k, _ in form.pairs],
            values=[compile_expr(v) for _, v in form.pairs],
        )
        return copy_location(node, form)

    if isinstance(form, list):
        if not form:
            return ast.Constant(value=None)
        head = form[0]

        if isinstance(head, Symbol):
            handler = EXPR_FORMS.get(head.name)
            if handler is not None:
                return handler(form[1:], loc, form)

            # Binary operators: (+ a b), (- a b), etc.
            if head.name in BINARY_OPS:
                return compile_binary_op(head.name, form[1:], form)

            # Comparison operators: (= a b), (< a b), etc.
            if head.name in COMPARE_OPS:
                if len(form) < 3:
                    raise CompileError(
                        f"comparison operator {head.name} requires at least 2 arguments",
                        form,
                    )
                node = ast.Compare(
                    left=compile_expr(form[1]),
                    ops=[COMPARE_OPS[head.name] for _ in form[2:]],
                    comparators=[compile_expr(f) for f in form[2:]],
                )
                return copy_location(node, form)

        # function call
        node = ast.Call(
            func=compile_expr(head), args=[compile_expr(f) for f in form[1:]], keywords=[]
        )
        return copy_location(node, form)

    raise CompileError(f"cannot compile form: {form!r}")


def compile_binary_op(op: str, args, form):
    if not args:
        raise CompileError(f"binary operator {op} requires at least 1 argument", form)
    if len(args) == 1:
        if op == "-":
            return copy_location(ast.UnaryOp(op=ast.USub(), operand=compile_expr(args[0])), form)
        return compile_expr(args[0])
    # Multiple arguments: chain left-to-right
    # (+ 1 2 3) => ((1 + 2) + 3)
    result = compile_expr(args[0])
    for arg in args[1:]:
        result = ast.BinOp(left=result, op=BINARY_OPS[op], right=compile_expr(arg))
        copy_location(result, form)
    return result


def compile_symbol_expr(sym: Symbol):
    """Compile a symbol to a Name or Attribute access, with source location.

    Symbols containing dots are compiled to attribute chains:
        foo.bar.baz -> foo.bar.baz (Python attribute access)

    The first part is looked up in the enclosing scopes, so it names the
    binding the symbol refers to.
    """
    parts = sym.name.split(".")
    if not all(parts):
        raise CompileError("invalid symbol", sym)
    name = get_compile_context().resolve(normalize_name(parts[0]))
    node: ast.expr = ast.Name(id=name, ctx=ast.Load())
    copy_location(node, sym)
    for attr in parts[1:]:
        node = ast.Attribute(value=node, attr=normalize_name(attr), ctx=ast.Load())
        copy_location(node, sym)
    return node


# === Compilation Entry Points ===


def compile_source(
    src: str, filename: str = "<string>", config: Optional[CompilerConfig] = None
) -> ast.Module:
    """Read, macroexpand and lower source text to a Python module AST."""
    ctx = reset_compile_context(config, filename)
    # Phase 1: Read
    forms = read_str(src)
    # Phase 2: Macroexpand
    forms = macroexpand_all(forms, max_depth=ctx.config.max_expansion_depth)
    # Phase 3 & 4: Analyze & Lower
    return compile_module(forms, filename=filename, config=ctx.config)


def compile_forms_to_code(
    src: str, filename: str = "<string>", config: Optional[CompilerConfig] = None
):
    """
    Process letloop source through all compilation phases.
    Returns a code object ready for exec.
    """
    mod = compile_source(src, filename, config)
    return compile(mod, filename, "exec")


def eval_str(
    src: str,
    env: Optional[dict[str, Any]] = None,
    config: Optional[CompilerConfig] = None,
):
    """Execute letloop source string in the given environment."""
    if env is None:
        env = {}
    setup_runtime_env(env)
    code = compile_forms_to_code(src, "<string>", config)
    exec(code, env, env)
    return env


def exec_file(
    path: str,
    env: Optional[dict[str, Any]] = None,
    config: Optional[CompilerConfig] = None,
):
    """Execute a letloop source file."""
    with open(path, encoding="utf-8") as f:
        src = f.read()
    if env is None:
        env = {
            "__name__": "__main__",
            "__file__": path,
        }
    setup_runtime_env(env)
    code = compile_forms_to_code(src, path, config)
    exec(code, env, env)
    return env


def export_str(
    src: str, filename: str = "<string>", config: Optional[CompilerConfig] = None
) -> str:
    """Convert letloop source to Python source."""
    return ast.unparse(compile_source(src, filename, config))


def export_file(path: str, config: Optional[CompilerConfig] = None) -> str:
    """Convert a letloop source file to Python and output to stdout."""
    with open(path, encoding="utf-8") as f:
        src = f.read()
    python_code = export_str(src, path, config)
    print(python_code)
    return python_code


def check_str(
    src: str, filename: str = "<string>", config: Optional[CompilerConfig] = None
) -> list[SyntaxError]:
    """
    Run every compile pass over src without executing it.

    Returns the errors found: empty when src compiles. Compilation stops at
    the first error, so the list holds at most one.
    """
    try:
        compile_forms_to_code(src, filename, config)
    except SyntaxError as e:
        logger.debug("check of %s failed: %s", filename, e)
        return [e]
    return []


__all__ = [
    "BINARY_OPS",
    "COMPARE_OPS",
    "compile_quote",
    "compile_module",
    "compile_stmt",
    "compile_expr",
    "compile_params",
    "compile_function",
    "compile_let_bindings",
    "compile_case_test",
    "parse_cond_clauses",
    "parse_case_clauses",
    "compile_source",
    "compile_forms_to_code",
    "eval_str",
    "exec_file",
    "export_str",
    "export_file",
    "check_str",
]
