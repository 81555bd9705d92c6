"""
letloop.compiler - The letloop Compiler Toolchain

This package compiles letloop source code to Python.

Phases:
1. Read (reader.py): Text -> letloop Forms
2. Macroexpand (macros.py): Expand macros
3. Analyze (tail.py): Prove every recur is in tail position
4. Lower (codegen.py, destructure.py, loops.py): Forms -> Python AST
5. Compile: Python AST -> bytecode (via Python's compile())
"""

from letloop.compiler.codegen import (
    check_str,
    compile_expr,
    compile_forms_to_code,
    compile_module,
    compile_source,
    compile_stmt,
    eval_str,
    exec_file,
    export_file,
    export_str,
)
from letloop.compiler.context import (
    CompilationContext,
    get_compile_context,
    reset_compile_context,
)
from letloop.compiler.destructure import (
    BindingPair,
    compile_destructure,
    emit_bindings,
    expand_pattern,
)
from letloop.compiler.errors import (
    CompileError,
    DefaultClauseError,
    PatternSyntaxError,
    ReaderError,
    TailPositionViolation,
    UnsupportedPatternShape,
)
from letloop.compiler.loops import LoopState, rewrite_loop
from letloop.compiler.macros import MACRO_ENV, macroexpand, macroexpand_all
from letloop.compiler.patterns import (
    BindingPattern,
    SequencePattern,
    TablePattern,
    parse_pattern,
    parse_sequence_pattern,
    parse_table_pattern,
    read_pattern,
)
from letloop.compiler.reader import (
    Reader,
    SourceList,
    SourceLocation,
    get_source_location,
    read_str,
    tokenize,
)
from letloop.compiler.tail import SelfCall, TailVerdict, analyze_tail, is_recur

__all__ = [
    "check_str",
    "compile_expr",
    "compile_forms_to_code",
    "compile_module",
    "compile_source",
    "compile_stmt",
    "eval_str",
    "exec_file",
    "export_file",
    "export_str",
    "CompilationContext",
    "get_compile_context",
    "reset_compile_context",
    "BindingPair",
    "compile_destructure",
    "emit_bindings",
    "expand_pattern",
    "CompileError",
    "DefaultClauseError",
    "PatternSyntaxError",
    "ReaderError",
    "TailPositionViolation",
    "UnsupportedPatternShape",
    "LoopState",
    "rewrite_loop",
    "MACRO_ENV",
    "macroexpand",
    "macroexpand_all",
    "BindingPattern",
    "SequencePattern",
    "TablePattern",
    "parse_pattern",
    "parse_sequence_pattern",
    "parse_table_pattern",
    "read_pattern",
    "Reader",
    "SourceList",
    "SourceLocation",
    "get_source_location",
    "read_str",
    "tokenize",
    "SelfCall",
    "TailVerdict",
    "analyze_tail",
    "is_recur",
]
