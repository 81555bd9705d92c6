"""
Tests for pattern expansion and the assignments it compiles to.
"""

import ast
import unittest

from letloop.compiler.context import reset_compile_context
from letloop.compiler.destructure import compile_destructure, expand_pattern
from letloop.compiler.errors import PatternSyntaxError, UnsupportedPatternShape
from letloop.compiler.patterns import read_pattern
from letloop.runtime import setup_runtime_env
from letloop.runtime.types import Keyword, Symbol, VectorLiteral


def run_bindings(pattern_src, value, **names):
    """Destructure value against the pattern and return the resulting namespace."""
    reset_compile_context()
    stmts = compile_destructure(
        read_pattern(pattern_src), ast.Name(id="__value", ctx=ast.Load())
    )
    module = ast.fix_missing_locations(ast.Module(body=stmts, type_ignores=[]))
    env = {"__value": value}
    env.update(names)
    setup_runtime_env(env)
    exec(compile(module, "<test>", "exec"), env)
    return env


def targets(pattern_src):
    reset_compile_context()
    pairs = expand_pattern(read_pattern(pattern_src), ast.Name(id="v", ctx=ast.Load()))
    return [pair.target for pair in pairs]


class TestSequenceDestructuring(unittest.TestCase):
    """Test sequence patterns at run time."""

    def test_positional(self):
        """Test binding elements by position."""
        env = run_bindings("[a b c]", [1, 2, 3])
        self.assertEqual((env["a"], env["b"], env["c"]), (1, 2, 3))

    def test_rest_and_alias(self):
        """Test binding the remaining elements and the whole value."""
        value = [1, 2, 3, 4]
        env = run_bindings("[a b & rest :as whole]", value)
        self.assertEqual((env["a"], env["b"]), (1, 2))
        self.assertEqual(env["rest"], [3, 4])
        self.assertIs(env["whole"], value)

    def test_rest_keeps_sequence_type(self):
        """Test that the rest of a tuple is a tuple."""
        env = run_bindings("[a &more]", (1, 2, 3))
        self.assertEqual(env["more"], (2, 3))

    def test_short_input_binds_nil(self):
        """Test that missing positions bind None."""
        env = run_bindings("[a b c]", [1])
        self.assertEqual((env["a"], env["b"], env["c"]), (1, None, None))

    def test_empty_rest(self):
        """Test that rest is empty when nothing remains."""
        env = run_bindings("[a & more]", [1])
        self.assertEqual(env["more"], [])

    def test_nil_input(self):
        """Test that destructuring nil binds nil everywhere."""
        env = run_bindings("[a & more]", None)
        self.assertIsNone(env["a"])
        self.assertEqual(env["more"], ())

    def test_generator_input(self):
        """Test that any iterable can be destructured."""
        env = run_bindings("[a & more]", (x * 10 for x in range(3)))
        self.assertEqual(env["a"], 0)
        self.assertEqual(env["more"], (10, 20))

    def test_one_shot_iterator(self):
        """Test that every position reads the same pass over an iterator."""
        env = run_bindings("[a b & more]", iter([1, 2, 3, 4]))
        self.assertEqual((env["a"], env["b"], env["more"]), (1, 2, (3, 4)))

    def test_nested_one_shot_iterators(self):
        """Test iterators nested inside an iterator."""
        value = map(iter, [[1, 2], [3, 4]])
        env = run_bindings("[[a b] [c d] :as pairs]", value)
        self.assertEqual([env[n] for n in "abcd"], [1, 2, 3, 4])
        self.assertIsInstance(env["pairs"], tuple)
        self.assertEqual(len(env["pairs"]), 2)

    def test_nested_pair_with_alias(self):
        """Test [[a b] :as whole] against a sequence holding one pair."""
        value = [(1, 2)]
        env = run_bindings("[[a b] :as whole]", value)
        self.assertEqual((env["a"], env["b"]), (1, 2))
        self.assertIs(env["whole"], value)
        self.assertEqual(list(env["whole"]), [(1, 2)])

    def test_nested_pattern_against_flat_pair(self):
        """Test that a non-collection element misses instead of failing."""
        env = run_bindings("[[a b] :as whole]", (1, 2))
        self.assertEqual((env["a"], env["b"]), (None, None))
        self.assertEqual(env["whole"], (1, 2))

    def test_non_collection_input(self):
        """Test destructuring a value that is not a collection."""
        env = run_bindings("[a & more :as all]", 5)
        self.assertIsNone(env["a"])
        self.assertEqual(env["more"], ())
        self.assertEqual(env["all"], 5)

    def test_ignored_position(self):
        """Test that _ skips a position."""
        env = run_bindings("[_ [a]]", (1, (2, 3)))
        self.assertEqual(env["a"], 2)

    def test_nested(self):
        """Test nested sequence patterns."""
        env = run_bindings("[[a b] [c [d]]]", [[1, 2], [3, [4]]])
        self.assertEqual([env[n] for n in "abcd"], [1, 2, 3, 4])

    def test_lisp_names_are_normalized(self):
        """Test that hyphenated names bind their Python spelling."""
        env = run_bindings("[first-item & other-items]", [1, 2])
        self.assertEqual(env["first_item"], 1)
        self.assertEqual(env["other_items"], [2])


class TestTableDestructuring(unittest.TestCase):
    """Test table patterns at run time."""

    def test_keyword_keys(self):
        """Test looking up keyword keys in a dict."""
        env = run_bindings("[:: x :x y :y]", {Keyword("x"): 1, Keyword("y"): 2})
        self.assertEqual((env["x"], env["y"]), (1, 2))

    def test_association_list(self):
        """Test looking up keys in a list of pairs."""
        env = run_bindings("[:: x :x y :y]", [(Keyword("y"), 2), (Keyword("x"), 1)])
        self.assertEqual((env["x"], env["y"]), (1, 2))

    def test_association_list_first_match_wins(self):
        """Test that an association list is searched front to back."""
        env = run_bindings("[:: x :x]", [(Keyword("x"), 1), (Keyword("x"), 2)])
        self.assertEqual(env["x"], 1)

    def test_string_keys_and_missing(self):
        """Test string keys and a missing key without default."""
        env = run_bindings('[:: a "a" b "b"]', {"a": 1})
        self.assertEqual(env["a"], 1)
        self.assertIsNone(env["b"])

    def test_default_and_alias(self):
        """Test :or defaults and :as."""
        value = {Keyword("b"): 2}
        env = run_bindings("[:: a :a b :b :as m :or {:a 10}]", value)
        self.assertEqual((env["a"], env["b"]), (10, 2))
        self.assertIs(env["m"], value)

    def test_default_only_evaluated_on_miss(self):
        """Test that a default expression runs only when its key is missing."""
        calls = []

        def compute():
            calls.append(1)
            return 42

        env = run_bindings("[:: a :a :or {:a (compute)}]", {Keyword("a"): 1}, compute=compute)
        self.assertEqual(env["a"], 1)
        self.assertEqual(calls, [])

        env = run_bindings("[:: a :a :or {:a (compute)}]", {}, compute=compute)
        self.assertEqual(env["a"], 42)
        self.assertEqual(calls, [1])

    def test_string_default(self):
        """Test a string default against a present and a missing key."""
        pattern = '[:: m :middle :or {:middle "NMI"}]'
        env = run_bindings(pattern, {Keyword("middle"): "Pavlovich"})
        self.assertEqual(env["m"], "Pavlovich")
        env = run_bindings(pattern, {Keyword("first"): "Ivan"})
        self.assertEqual(env["m"], "NMI")

    def test_default_not_used_for_present_nil(self):
        """Test that a key present with value nil does not take the default."""
        env = run_bindings("[:: a :a :or {:a 5}]", {Keyword("a"): None})
        self.assertIsNone(env["a"])

    def test_table_inside_sequence(self):
        """Test a table pattern nested in a sequence pattern."""
        env = run_bindings("[n [:: v :v]]", [1, {Keyword("v"): 2}])
        self.assertEqual((env["n"], env["v"]), (1, 2))

    def test_sequence_inside_table(self):
        """Test a sequence pattern nested in a table pattern."""
        env = run_bindings("[:: [x y] :point]", {Keyword("point"): (3, 4)})
        self.assertEqual((env["x"], env["y"]), (3, 4))

    def test_non_table_misses(self):
        """Test that looking up in a non-table binds the default."""
        env = run_bindings("[:: a :a :or {:a 1}]", 17)
        self.assertEqual(env["a"], 1)


class TestExpansionOrder(unittest.TestCase):
    """Test the order and names of the emitted bindings."""

    def test_pre_order(self):
        """Test that the whole value is bound before its parts."""
        names = targets("[[a b] c :as whole]")
        self.assertEqual(names[0], "whole")
        self.assertTrue(names[1].startswith("__ll_destructure_"))
        self.assertEqual(names[2:], ["a", "b", "c"])

    def test_alias_replaces_temporary(self):
        """Test that an alias is used as the holder instead of a temporary."""
        self.assertEqual(targets("[a b :as all]"), ["all", "a", "b"])

    def test_temporaries_are_distinct(self):
        """Test that every compound binder gets its own temporary."""
        names = targets("[[a] [b]]")
        temps = [n for n in names if n.startswith("__ll_")]
        self.assertEqual(len(temps), 3)
        self.assertEqual(len(set(temps)), 3)

    def test_same_pattern_twice(self):
        """Test that expanding a pattern twice differs only in temporaries."""
        reset_compile_context()
        source = ast.Name(id="v", ctx=ast.Load())
        first = expand_pattern(read_pattern("[[a] [:: b :b]]"), source)
        second = expand_pattern(read_pattern("[[a] [:: b :b]]"), source)

        def user_names(pairs):
            return [p.target for p in pairs if not p.target.startswith("__ll_")]

        def temps(pairs):
            return {p.target for p in pairs if p.target.startswith("__ll_")}

        self.assertEqual(len(first), len(second))
        self.assertEqual(user_names(first), user_names(second))
        self.assertFalse(temps(first) & temps(second))

    def test_plain_name(self):
        """Test that a plain name is one binding."""
        reset_compile_context()
        pairs = expand_pattern(Symbol("x"), ast.Constant(value=1))
        self.assertEqual([p.target for p in pairs], ["x"])

    def test_deep_nesting(self):
        """Test that very deep patterns expand without exhausting the stack."""
        depth = 2000
        pattern = Symbol("x")
        value = 7
        for _ in range(depth):
            pattern = VectorLiteral([pattern])
            value = [value]
        reset_compile_context()
        pairs = expand_pattern(pattern, ast.Name(id="__value", ctx=ast.Load()))
        self.assertEqual(len(pairs), depth + 1)
        self.assertEqual(pairs[-1].target, "x")

        module = ast.fix_missing_locations(
            ast.Module(body=compile_destructure(pattern, ast.Name(id="__value", ctx=ast.Load())), type_ignores=[])
        )
        env = setup_runtime_env({"__value": value})
        exec(compile(module, "<test>", "exec"), env)
        self.assertEqual(env["x"], 7)


class TestExpansionErrors(unittest.TestCase):
    """Test errors raised while expanding."""

    def test_unsupported_nested_shape(self):
        """Test that a nested map pattern is rejected."""
        reset_compile_context()
        with self.assertRaises(UnsupportedPatternShape):
            expand_pattern(read_pattern("[a {:b c}]"), ast.Name(id="v", ctx=ast.Load()))

    def test_nested_parse_error_propagates(self):
        """Test that errors in a nested pattern surface unchanged."""
        reset_compile_context()
        with self.assertRaises(PatternSyntaxError) as cm:
            expand_pattern(read_pattern("[a\n [b :as]]"), ast.Name(id="v", ctx=ast.Load()))
        self.assertEqual(cm.exception.loc.line, 2)

    def test_literal_binder(self):
        """Test that a literal in binding position is unsupported."""
        reset_compile_context()
        with self.assertRaises(UnsupportedPatternShape):
            expand_pattern(5, ast.Name(id="v", ctx=ast.Load()))


if __name__ == "__main__":
    unittest.main()
