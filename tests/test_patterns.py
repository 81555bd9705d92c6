"""
Tests for the sequence and table pattern parsers.
"""

import unittest

from letloop.compiler.errors import (
    DefaultClauseError,
    PatternSyntaxError,
    UnsupportedPatternShape,
)
from letloop.compiler.patterns import (
    BindingPattern,
    SequencePattern,
    TablePattern,
    parse_pattern,
    parse_sequence_pattern,
    parse_table_pattern,
    read_pattern,
)
from letloop.runtime.types import Keyword, MapLiteral, Symbol, VectorLiteral


def names(items):
    return [item.name for item in items]


class TestSequencePatternParser(unittest.TestCase):
    """Test parse_sequence_pattern."""

    def test_positional_rest_and_alias(self):
        """Test the full [a b & rest :as whole] form."""
        pattern = parse_sequence_pattern(read_pattern("[a b & rest :as whole]"))
        self.assertEqual(names(pattern.items), ["a", "b"])
        self.assertEqual(pattern.rest.name, "rest")
        self.assertEqual(pattern.alias.name, "whole")

    def test_fused_rest(self):
        """Test that [a &rest] is shorthand for [a & rest]."""
        pattern = parse_sequence_pattern(read_pattern("[a &rest]"))
        self.assertEqual(names(pattern.items), ["a"])
        self.assertEqual(pattern.rest.name, "rest")

    def test_alias_may_come_first(self):
        """Test that :as is allowed anywhere in the pattern."""
        pattern = parse_sequence_pattern(read_pattern("[:as whole a b]"))
        self.assertEqual(names(pattern.items), ["a", "b"])
        self.assertEqual(pattern.alias.name, "whole")

    def test_nested_patterns_are_kept_raw(self):
        """Test that nested patterns are not parsed by the outer level."""
        pattern = parse_sequence_pattern(read_pattern("[[a b] [:: c :c]]"))
        self.assertEqual(len(pattern.items), 2)
        self.assertIsInstance(pattern.items[0], VectorLiteral)
        self.assertIsInstance(pattern.items[1], VectorLiteral)

    def test_empty_pattern(self):
        """Test that [] binds nothing."""
        pattern = parse_sequence_pattern(read_pattern("[]"))
        self.assertEqual(pattern.items, [])
        self.assertIsNone(pattern.rest)
        self.assertIsNone(pattern.alias)

    def test_alias_without_name(self):
        """Test that :as must be followed by a name."""
        with self.assertRaises(PatternSyntaxError):
            parse_sequence_pattern(read_pattern("[a :as]"))
        with self.assertRaises(PatternSyntaxError):
            parse_sequence_pattern(read_pattern("[a :as [b]]"))

    def test_rest_without_name(self):
        """Test that & must be followed by exactly one name."""
        with self.assertRaises(PatternSyntaxError):
            parse_sequence_pattern(read_pattern("[a &]"))
        with self.assertRaises(PatternSyntaxError):
            parse_sequence_pattern(read_pattern("[a & :as x]"))

    def test_rest_must_be_last(self):
        """Test that no positional binder may follow the rest binder."""
        with self.assertRaises(PatternSyntaxError) as cm:
            parse_sequence_pattern(read_pattern("[a & more b]"))
        self.assertIn("last", cm.exception.message)

    def test_rest_then_alias_is_allowed(self):
        """Test that :as may follow the rest binder."""
        pattern = parse_sequence_pattern(read_pattern("[a & more :as all]"))
        self.assertEqual(pattern.rest.name, "more")
        self.assertEqual(pattern.alias.name, "all")

    def test_two_rest_binders(self):
        """Test that only one rest binder is allowed."""
        with self.assertRaises(PatternSyntaxError):
            parse_sequence_pattern(read_pattern("[a & b & c]"))

    def test_duplicate_alias(self):
        """Test that a second :as is an error."""
        with self.assertRaises(PatternSyntaxError) as cm:
            parse_sequence_pattern(read_pattern("[a :as x :as y]"))
        self.assertIn("duplicate", cm.exception.message)

    def test_literal_element(self):
        """Test that literal values are not binders."""
        with self.assertRaises(PatternSyntaxError):
            parse_sequence_pattern(read_pattern("[a 1]"))

    def test_error_location(self):
        """Test that errors point at the offending item."""
        with self.assertRaises(PatternSyntaxError) as cm:
            parse_sequence_pattern(read_pattern("[a\n :as]"))
        self.assertEqual(cm.exception.loc.line, 2)
        self.assertIn("line 2", str(cm.exception))


class TestTablePatternParser(unittest.TestCase):
    """Test parse_table_pattern."""

    def test_entries_alias_and_defaults(self):
        """Test binder/key pairs with :as and :or."""
        pattern = parse_table_pattern(
            read_pattern('[:: a :a b "b" :as m :or {:a 1}]')
        )
        self.assertEqual([(b.name, k) for b, k in pattern.entries], [("a", Keyword("a")), ("b", "b")])
        self.assertEqual(pattern.alias.name, "m")
        self.assertEqual(pattern.defaults, {Keyword("a"): 1})

    def test_constant_keys(self):
        """Test that numbers, booleans and nil are valid keys."""
        pattern = parse_table_pattern(read_pattern("[:: a 0 b nil c true]"))
        self.assertEqual([k for _, k in pattern.entries], [0, None, True])

    def test_nested_binder(self):
        """Test that a binder may itself be a pattern."""
        pattern = parse_table_pattern(read_pattern("[:: [x y] :point]"))
        binder, key = pattern.entries[0]
        self.assertIsInstance(binder, VectorLiteral)
        self.assertEqual(key, Keyword("point"))

    def test_defaults_keep_unevaluated_forms(self):
        """Test that defaults are stored as forms."""
        pattern = parse_table_pattern(read_pattern("[:: a :a :or {:a (compute)}]"))
        default = pattern.defaults[Keyword("a")]
        self.assertIsInstance(default, list)
        self.assertEqual(default[0].name, "compute")

    def test_binder_without_key(self):
        """Test that an odd binder/key count is an error."""
        with self.assertRaises(PatternSyntaxError):
            parse_table_pattern(read_pattern("[:: a]"))
        with self.assertRaises(PatternSyntaxError):
            parse_table_pattern(read_pattern("[:: a :a b]"))
        with self.assertRaises(PatternSyntaxError):
            parse_table_pattern(read_pattern("[:: a :as m :b]"))

    def test_key_must_be_constant(self):
        """Test that a symbol is not a valid key."""
        with self.assertRaises(PatternSyntaxError) as cm:
            parse_table_pattern(read_pattern("[:: a k]"))
        self.assertIn("constant", cm.exception.message)

    def test_alias_without_name(self):
        """Test that :as must be followed by a name."""
        with self.assertRaises(PatternSyntaxError):
            parse_table_pattern(read_pattern("[:: a :a :as]"))

    def test_duplicate_alias(self):
        """Test that a second :as is an error."""
        with self.assertRaises(PatternSyntaxError):
            parse_table_pattern(read_pattern("[:: a :a :as m :as n]"))

    def test_defaults_must_be_map(self):
        """Test that :or must be followed by a map."""
        with self.assertRaises(DefaultClauseError):
            parse_table_pattern(read_pattern("[:: a :a :or 5]"))
        with self.assertRaises(DefaultClauseError):
            parse_table_pattern(read_pattern("[:: a :a :or]"))

    def test_default_for_unknown_key(self):
        """Test that a default must belong to a looked-up key."""
        with self.assertRaises(DefaultClauseError):
            parse_table_pattern(read_pattern("[:: a :a :or {:b 1}]"))

    def test_duplicate_defaults_clause(self):
        """Test that only one :or clause is allowed."""
        with self.assertRaises(DefaultClauseError):
            parse_table_pattern(read_pattern("[:: a :a :or {:a 1} :or {:a 2}]"))

    def test_duplicate_default_key(self):
        """Test that a key may have only one default."""
        with self.assertRaises(DefaultClauseError):
            parse_table_pattern(read_pattern("[:: a :a :or {:a 1 :a 2}]"))

    def test_default_clause_error_is_pattern_error(self):
        """Test the error hierarchy."""
        self.assertTrue(issubclass(DefaultClauseError, PatternSyntaxError))


class TestShapeDetection(unittest.TestCase):
    """Test parse_pattern dispatch on the shape of a binding form."""

    def test_name(self):
        """Test that a symbol is a plain binding."""
        pattern = parse_pattern(Symbol("x"))
        self.assertIsInstance(pattern, BindingPattern)

    def test_sequence_and_table(self):
        """Test that the table marker selects the table parser."""
        self.assertIsInstance(parse_pattern(read_pattern("[a b]")), SequencePattern)
        self.assertIsInstance(parse_pattern(read_pattern("[:: a :a]")), TablePattern)

    def test_map_pattern_is_unsupported(self):
        """Test that {...} is not a pattern shape."""
        with self.assertRaises(UnsupportedPatternShape):
            parse_pattern(MapLiteral([(Symbol("a"), Keyword("a"))]))

    def test_literal_is_unsupported(self):
        """Test that a literal cannot be bound to."""
        with self.assertRaises(UnsupportedPatternShape):
            parse_pattern(5)

    def test_bare_rest_marker(self):
        """Test that & alone is not a binding."""
        with self.assertRaises(PatternSyntaxError):
            parse_pattern(Symbol("&"))

    def test_python_keyword_name(self):
        """Test that names must be usable as Python identifiers."""
        with self.assertRaises(PatternSyntaxError):
            parse_pattern(Symbol("class"))

    def test_read_pattern_unterminated(self):
        """Test that reading an unterminated pattern is a pattern error."""
        with self.assertRaises(PatternSyntaxError) as cm:
            read_pattern("[a b")
        self.assertIn("unterminated", cm.exception.message)


if __name__ == "__main__":
    unittest.main()
