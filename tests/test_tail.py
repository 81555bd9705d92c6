"""
Tests for tail-position analysis of recur.
"""

import unittest

from letloop.compiler.errors import TailPositionViolation
from letloop.compiler.reader import read_str
from letloop.compiler.tail import analyze_tail, is_recur, verify_tail_calls
from letloop.runtime.types import Symbol


def analyze(src):
    return analyze_tail(read_str(src))


class TestTailPositions(unittest.TestCase):
    """Test which positions count as tail."""

    def test_body_last_form(self):
        """Test that the last form of a body is tail."""
        verdict = analyze("(println 1) (recur 2)")
        self.assertTrue(verdict.ok)
        self.assertEqual(len(verdict.self_calls), 1)

    def test_body_earlier_form(self):
        """Test that a non-last body form is not tail."""
        verdict = analyze("(recur 2) 3")
        self.assertFalse(verdict.ok)

    def test_if_branches(self):
        """Test that both branches of a tail if are tail."""
        verdict = analyze("(if (< i 10) (recur (inc i)) (recur 0))")
        self.assertTrue(verdict.ok)
        self.assertEqual(len(verdict.self_calls), 2)

    def test_if_test_is_not_tail(self):
        """Test that the condition of an if is not tail."""
        self.assertFalse(analyze("(if (recur 1) 2 3)").ok)

    def test_cond_results(self):
        """Test that cond results are tail and tests are not."""
        self.assertTrue(analyze("(cond (a) (recur 1) :else (recur 2))").ok)
        self.assertFalse(analyze("(cond (recur 1) 2 :else 3)").ok)

    def test_case_results(self):
        """Test that case results and default are tail, the selector is not."""
        verdict = analyze("(case x 1 (recur 2) 2 (recur 3) (recur 4))")
        self.assertTrue(verdict.ok)
        self.assertEqual(len(verdict.self_calls), 3)
        self.assertFalse(analyze("(case (recur 1) 1 2)").ok)

    def test_let_body(self):
        """Test that the let body tail is tail and initializers are not."""
        self.assertTrue(analyze("(let [x 1] (println x) (recur x))").ok)
        self.assertFalse(analyze("(let [x (recur 1)] x)").ok)
        self.assertFalse(analyze("(let [x 1] (recur x) x)").ok)

    def test_table_default_is_not_tail(self):
        """Test that an :or default is evaluated in non-tail position."""
        self.assertFalse(analyze("(let [[:: a :a :or {:a (recur 1)}] m] a)").ok)

    def test_do(self):
        """Test that only the last form of do is tail."""
        self.assertTrue(analyze("(do (println 1) (recur 1))").ok)
        self.assertFalse(analyze("(do (recur 1) 2)").ok)

    def test_and_or(self):
        """Test that only the last operand of a tail and/or is tail."""
        self.assertTrue(analyze("(and (a) (recur 1))").ok)
        self.assertTrue(analyze("(or (a) (b) (recur 2))").ok)
        self.assertFalse(analyze("(or (recur 1) b)").ok)
        self.assertFalse(analyze("(not (or (recur 1)))").ok)

    def test_call_argument(self):
        """Test that a call argument is not tail."""
        verdict = analyze("(inc (recur i))")
        self.assertFalse(verdict.ok)
        self.assertIsInstance(verdict.violation, TailPositionViolation)

    def test_collection_literals(self):
        """Test that items of vectors and maps are not tail."""
        self.assertFalse(analyze("[(recur 1)]").ok)
        self.assertFalse(analyze("{:a (recur 1)}").ok)

    def test_recur_arguments_are_not_tail(self):
        """Test that a recur nested in recur arguments is a violation."""
        self.assertFalse(analyze("(recur (recur 1))").ok)

    def test_nested_fn_is_not_descended(self):
        """Test that a nested function is its own recursion target."""
        verdict = analyze("(inc ((fn [x] (inc (recur x))) 1))")
        self.assertTrue(verdict.ok)
        self.assertFalse(verdict.has_self_calls)

    def test_nested_loop(self):
        """Test that a nested loop body belongs to the nested loop."""
        self.assertTrue(analyze("(inc (loop [i 0] (recur i)))").ok)
        self.assertFalse(analyze("(loop [i (recur 1)] i)").ok)

    def test_quote_is_not_descended(self):
        """Test that quoted data is not analyzed."""
        self.assertTrue(analyze("(inc (quote (recur 1)))").ok)

    def test_no_self_calls(self):
        """Test a body without recur."""
        verdict = analyze("(+ 1 2)")
        self.assertTrue(verdict.ok)
        self.assertFalse(verdict.has_self_calls)


class TestVerdict(unittest.TestCase):
    """Test the analysis result."""

    def test_first_violation_is_reported(self):
        """Test that the first non-tail recur in source order is reported."""
        verdict = analyze("(do\n  (inc (recur 1))\n  (inc (recur 2)))")
        self.assertEqual(verdict.violation.loc.line, 2)
        self.assertEqual(verdict.violation.form[1], 1)

    def test_self_call_arguments(self):
        """Test that self-calls record their arguments and location."""
        verdict = analyze("(recur a 2)")
        (call,) = verdict.self_calls
        self.assertEqual(call.args[1], 2)
        self.assertEqual(call.loc.line, 1)

    def test_verify_raises(self):
        """Test that verify_tail_calls raises the violation."""
        with self.assertRaises(TailPositionViolation) as cm:
            verify_tail_calls(read_str("(inc (recur 1))"))
        self.assertIn("not in tail position", str(cm.exception))

    def test_verify_returns_verdict(self):
        """Test that verify_tail_calls returns the verdict on success."""
        verdict = verify_tail_calls(read_str("(if a (recur 1) 2)"))
        self.assertEqual(len(verdict.self_calls), 1)

    def test_custom_self_call(self):
        """Test analysis with a named self-call instead of recur."""

        def calls_f(form):
            return isinstance(form, list) and form and isinstance(form[0], Symbol) and form[0].name == "f"

        self.assertTrue(analyze_tail(read_str("(if a (f 1) 2)"), calls_f).ok)
        self.assertFalse(analyze_tail(read_str("(+ 1 (f 1))"), calls_f).ok)

    def test_is_recur(self):
        """Test the self-call marker predicate."""
        self.assertTrue(is_recur(read_str("(recur 1)")[0]))
        self.assertFalse(is_recur(read_str("(recurse 1)")[0]))
        self.assertFalse(is_recur(Symbol("recur")))


if __name__ == "__main__":
    unittest.main()
