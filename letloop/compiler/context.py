"""
letloop.compiler.context - Per-compilation state

One CompilationContext exists per call to compile_module. It owns the
fresh-name counter used for temporaries, the helper functions that
expression-context forms hoist out of expressions, and the stack of
lexical scopes that maps letloop names to the Python names they compile
to. All of it is discarded when the compilation ends, so temporaries are
unique within a compilation and never shared across compilations.
"""

import ast
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Optional

from letloop.project.config import CompilerConfig


@dataclass
class CompilationContext:
    """State for one compilation: fresh names and hoisted helper functions."""

    config: CompilerConfig = field(default_factory=CompilerConfig)
    nested_functions: list[ast.stmt] = field(default_factory=list)
    current_file: Optional[str] = None
    scopes: list[dict[str, str]] = field(default_factory=list)
    _counter: int = 0

    def gensym(self, stem: str = "") -> str:
        """Allocate a temporary identifier no user name can collide with."""
        self._counter += 1
        return f"{self.config.gensym_prefix}{stem}{self._counter}"

    def add_function(self, func_def: ast.stmt):
        """Add a helper definition to be injected before the current statement."""
        self.nested_functions.append(func_def)

    def mark(self) -> int:
        """Position to pass to take_functions_since."""
        return len(self.nested_functions)

    def take_functions_since(self, mark: int) -> list[ast.stmt]:
        """Remove and return the helpers added after mark."""
        funcs = self.nested_functions[mark:]
        del self.nested_functions[mark:]
        return funcs

    @contextmanager
    def scope(self):
        """Names bound inside the with block are visible only there."""
        self.scopes.append({})
        try:
            yield
        finally:
            self.scopes.pop()

    def bind(self, name: str, fresh: bool = False) -> str:
        """
        Bind name in the innermost scope and return the Python name to assign.

        A fresh binding gets a temporary of its own, so it shadows any outer
        binding of name instead of overwriting it.
        """
        target = self.gensym(f"{name}_") if fresh else name
        if self.scopes:
            self.scopes[-1][name] = target
        return target

    def resolve(self, name: str) -> str:
        """The Python name a reference to name compiles to."""
        for scope in reversed(self.scopes):
            if name in scope:
                return scope[name]
        return name


# Thread-safe compilation context using contextvars
_compile_context_var: ContextVar[Optional[CompilationContext]] = ContextVar(
    "_compile_context", default=None
)


def get_compile_context() -> CompilationContext:
    """Get the current compilation context, creating one if needed."""
    ctx = _compile_context_var.get()
    if ctx is None:
        ctx = CompilationContext()
        _compile_context_var.set(ctx)
    return ctx


def reset_compile_context(
    config: Optional[CompilerConfig] = None, filename: Optional[str] = None
) -> CompilationContext:
    """Start a fresh compilation with its own counter and helper list."""
    ctx = CompilationContext(config=config or CompilerConfig(), current_file=filename)
    _compile_context_var.set(ctx)
    return ctx


def gensym(stem: str = "") -> str:
    """Allocate a fresh temporary name in the current compilation."""
    return get_compile_context().gensym(stem)


__all__ = [
    "CompilationContext",
    "get_compile_context",
    "reset_compile_context",
    "gensym",
]
