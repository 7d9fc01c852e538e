"""Tests for the restricted interpreter.

Tests for plotflow.nodes.sandbox:
    - Ordinary programs: loops, functions, closures, comprehensions
    - Forbidden constructs are rejected before anything runs
    - Runtime failures are wrapped with their line and host exception name
    - Step, depth, integer and sequence budgets

Run:
    pytest tests/test_sandbox.py -v
"""

import pytest

from plotflow.configs.loader import SandboxLimits
from plotflow.nodes.sandbox import (
    Namespace,
    SandboxLimitError,
    SandboxProgram,
    SandboxRuntimeError,
    SandboxSecurityError,
    SandboxSyntaxError,
)


def run(source, **env):
    return SandboxProgram(source).run(env)


class TestPrograms:
    """Things programs are allowed to do."""

    def test_comprehension_over_env(self):
        assert run("return [x * 2 for x in values]", values=[1, 2, 3]) == [2, 4, 6]

    def test_no_return_is_none(self):
        assert run("x = 1") is None

    def test_loops_and_control_flow(self):
        source = (
            "total = 0\n"
            "for i in range(10):\n"
            "    if i % 2:\n"
            "        continue\n"
            "    if i > 6:\n"
            "        break\n"
            "    total += i\n"
            "n = 0\n"
            "while n < 3:\n"
            "    n += 1\n"
            "return total, n\n"
        )
        assert run(source) == (0 + 2 + 4 + 6, 3)

    def test_functions_defaults_and_keywords(self):
        source = (
            "def f(a, b=2):\n"
            "    return a + b\n"
            "return f(1), f(1, b=5)\n"
        )
        assert run(source) == (3, 6)

    def test_recursion_and_closures(self):
        source = (
            "def fact(n):\n"
            "    return 1 if n <= 1 else n * fact(n - 1)\n"
            "k = 10\n"
            "add_k = lambda v: v + k\n"
            "return fact(5), add_k(1)\n"
        )
        assert run(source) == (120, 11)

    def test_host_calls_back_into_lambda(self):
        assert run("return sorted([3, 1, 2], key=lambda v: -v)") == [3, 2, 1]

    def test_generator_expression(self):
        assert run("return sum(x for x in range(4))") == 6

    def test_unpacking_and_subscripts(self):
        source = (
            "a, b = [1, 2]\n"
            "xs = [0, 0, 0]\n"
            "xs[1] = a + b\n"
            "xs[2] += 5\n"
            "return xs, xs[1:]\n"
        )
        assert run(source) == ([0, 3, 5], [3, 5])

    def test_list_and_dict_methods(self):
        source = (
            "xs = []\n"
            "xs.append(1)\n"
            "xs.extend([2, 3])\n"
            "d = {'a': 1}\n"
            "return xs, d.get('b', 7), list(d.keys())\n"
        )
        assert run(source) == ([1, 2, 3], 7, ["a"])

    def test_namespace_attributes(self):
        ns = Namespace("api", {"double": lambda v: v * 2})
        assert run("return api.double(4)", api=ns) == 8

    def test_program_is_reusable(self):
        program = SandboxProgram("return n + 1")
        assert program.run({"n": 1}) == 2
        assert program.run({"n": 10}) == 11


class TestSecurity:
    """Rejected at construction time."""

    @pytest.mark.parametrize("source", [
        "import os",
        "from os import path",
        "class A:\n    pass",
        "try:\n    pass\nexcept Exception:\n    pass",
        "with x:\n    pass",
        "raise ValueError()",
        "del x",
        "global x",
        "x = (y := 1)",
        "x = f'{1}'",
        "f(*args)",
        "f(**kw)",
        "def f(*a):\n    pass",
        "@d\ndef f():\n    pass",
        "def g():\n    yield 1",
        "x = b'bytes'",
    ])
    def test_forbidden_constructs(self, source):
        with pytest.raises(SandboxSecurityError):
            SandboxProgram(source)

    @pytest.mark.parametrize("source", [
        "return __import__('os')",
        "return x.__class__",
        "return x._private",
        "x.attr = 1",
    ])
    def test_forbidden_names_and_attributes(self, source):
        with pytest.raises(SandboxSecurityError):
            SandboxProgram(source)

    def test_break_outside_loop(self):
        with pytest.raises(SandboxSecurityError, match="'break' outside loop"):
            SandboxProgram("break")

    def test_every_violation_reported(self):
        with pytest.raises(SandboxSecurityError) as info:
            SandboxProgram("import os\nimport sys")
        assert "line 1" in str(info.value)
        assert "line 2" in str(info.value)

    def test_syntax_error(self):
        with pytest.raises(SandboxSyntaxError, match="line 1"):
            SandboxProgram("return (")


class TestRuntime:
    """Failures while running."""

    def test_division_by_zero(self):
        with pytest.raises(SandboxRuntimeError, match="ZeroDivisionError") as info:
            run("x = 1\ny = x / 0")
        assert "line 2" in str(info.value)
        assert isinstance(info.value.__cause__, ZeroDivisionError)

    def test_undefined_name(self):
        with pytest.raises(SandboxRuntimeError, match="'missing' is not defined"):
            run("return missing")

    def test_inaccessible_attribute(self):
        with pytest.raises(SandboxRuntimeError, match="no accessible attribute"):
            run("return 'abc'.upper()")

    def test_unknown_namespace_member(self):
        with pytest.raises(SandboxRuntimeError, match="api has no attribute"):
            run("return api.nothing", api=Namespace("api", {}))

    def test_bad_arity(self):
        with pytest.raises(SandboxRuntimeError, match="missing required argument"):
            run("def f(a):\n    return a\nreturn f()")


class TestLimits:
    """Budgets."""

    def test_infinite_loop_hits_step_budget(self):
        program = SandboxProgram("while True:\n    pass")
        with pytest.raises(SandboxLimitError, match="step budget"):
            program.run({}, SandboxLimits(max_steps=1000))

    def test_runaway_recursion(self):
        program = SandboxProgram("def f(n):\n    return f(n + 1)\nreturn f(0)")
        with pytest.raises(SandboxLimitError, match="call depth"):
            program.run({}, SandboxLimits(max_depth=20))

    def test_huge_integer(self):
        with pytest.raises(SandboxLimitError, match="too large"):
            run("return 2 ** 100000")
        with pytest.raises(SandboxLimitError, match="too large"):
            run("return 1 << 10000")

    def test_huge_sequence(self):
        program = SandboxProgram("return [0] * 5000")
        with pytest.raises(SandboxLimitError, match="exceeds limit"):
            program.run({}, SandboxLimits(max_sequence=1000))

    def test_huge_range_consumed(self):
        program = SandboxProgram("return list(range(5000))")
        with pytest.raises(SandboxLimitError):
            program.run({}, SandboxLimits(max_sequence=1000))

    def test_string_formatting_width_capped(self):
        program = SandboxProgram('s = "%0900000000d" % 1\nreturn len(s)')
        with pytest.raises(SandboxLimitError, match="exceeds limit"):
            program.run({})

    def test_string_formatting_star_width_capped(self):
        program = SandboxProgram('return "%*d" % (900000000, 1)')
        with pytest.raises(SandboxLimitError, match="exceeds limit"):
            program.run({})

    def test_small_string_formatting_allowed(self):
        assert run('return "%d-%s" % (3, "a")') == "3-a"
        assert run('return "%6.2f" % 1.5') == "  1.50"

    def test_bulk_builtin_calls_bill_the_step_budget(self):
        source = (
            "t = 0\n"
            "for i in range(60):\n"
            "    t = t + len(sorted(range(1000000), reverse=True))\n"
            "return t"
        )
        with pytest.raises(SandboxLimitError, match="step budget"):
            SandboxProgram(source).run({})

    def test_repeated_sequence_building_bills_the_step_budget(self):
        source = "for i in range(100):\n    x = [0] * 5000\nreturn len(x)"
        with pytest.raises(SandboxLimitError, match="step budget"):
            SandboxProgram(source).run({}, SandboxLimits(max_steps=100_000))
        assert SandboxProgram(source).run({}, SandboxLimits(max_steps=1_000_000)) == 5000

    def test_list_extend_bills_items(self):
        program = SandboxProgram("x = []\nx.extend(list(range(3000)))\nreturn len(x)")
        with pytest.raises(SandboxLimitError, match="step budget"):
            program.run({}, SandboxLimits(max_steps=5000))
