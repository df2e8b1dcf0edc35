from __future__ import annotations

from textwrap import dedent

import pytest

from tests.support.harness import make_context, run_case, run_runtime_case, verify_result
from etx_script.runner import run_script

SCENARIOS = [
    pytest.param(
        dedent(
            """\
            set a 100
            set b 200
            function add(a, b)
              return $a + $b
            endfunction
            set result add(2, 3)
            """
        ),
        ("result", "number", 5),
        None,
        id="add-returns-sum",
    ),
    pytest.param(
        dedent(
            """\
            function fact(n)
              if $n <= 1
                return 1
              endif
              return $n * fact($n - 1)
            endfunction
            set r fact(5)
            """
        ),
        ("r", "number", 120),
        None,
        id="recursion",
    ),
    pytest.param(
        dedent(
            """\
            function f(x, y)
              return $y
            endfunction
            set r f(1)
            """
        ),
        ("r", "null", None),
        None,
        id="missing-arg-is-null",
    ),
    pytest.param(
        dedent(
            """\
            function f(x)
              return $x
            endfunction
            set r f(0)
            """
        ),
        ("r", "number", 0),
        None,
        id="falsy-arg-preserved",
    ),
    pytest.param(
        dedent(
            """\
            function noop()
              set ignored 1
            endfunction
            set r noop()
            """
        ),
        ("r", "null", None),
        None,
        id="no-return-yields-null",
    ),
    pytest.param(
        dedent(
            """\
            function early()
              return
              set never 1
            endfunction
            set r early()
            """
        ),
        ("r", "null", None),
        None,
        id="bare-return",
    ),
    pytest.param(
        dedent(
            """\
            function f()
              set inner 1
            endfunction
            f()
            """
        ),
        ("inner", "undefined", None),
        None,
        id="locals-do-not-leak",
    ),
    pytest.param(
        dedent(
            """\
            set g 1
            function f()
              set g 2
            endfunction
            f()
            """
        ),
        ("g", "number", 1),
        None,
        id="global-writes-are-discarded",
    ),
    pytest.param(
        dedent(
            """\
            set g 7
            function f()
              return $g * 2
            endfunction
            set r f()
            """
        ),
        ("r", "number", 14),
        None,
        id="globals-are-readable",
    ),
    pytest.param(
        dedent(
            """\
            function twice(x)
              return $x * 2
            endfunction
            set s "n=" + twice(2)
            """
        ),
        ("s", "string", "n=4"),
        None,
        id="call-inside-expression",
    ),
    pytest.param(
        dedent(
            """\
            function v()
              return 1
            endfunction
            function v()
              return 2
            endfunction
            set r v()
            """
        ),
        ("r", "number", 2),
        None,
        id="redefinition-replaces",
    ),
    pytest.param(
        dedent(
            """\
            set n 0
            function f()
              break
            endfunction
            for i 1 3
              f()
              set n $n + 1
            endfor
            """
        ),
        ("n", "number", 3),
        None,
        id="break-does-not-escape-function",
    ),
    pytest.param(
        dedent(
            """\
            function pick(xs, i)
              return $xs[$i]
            endfunction
            set xs [5, 6, 7]
            set r pick(xs, 2)
            """
        ),
        ("r", "number", 7),
        None,
        id="array-argument-indexing",
    ),
    pytest.param(
        "nope()",
        None,
        "Function 'nope' is not defined",
        id="undefined-function-statement",
    ),
    pytest.param(
        dedent(
            """\
            function loop()
              loop()
            endfunction
            loop()
            """
        ),
        None,
        "Maximum call depth of 50 exceeded",
        id="runaway-recursion",
    ),
]

@pytest.mark.parametrize("source, expectation, expected_error", SCENARIOS)
def test_functions(source: str, expectation, expected_error) -> None:
    run_runtime_case(source, expectation, expected_error)

def test_call_statement_runs_body_commands() -> None:
    run = run_case("function greet(who)\n  echo hi $who\nendfunction\ngreet(\"Ada\")\ngreet(\"Bo\")")

    assert run.dispatcher.commands == ["echo hi Ada", "echo hi Bo"]

def test_definition_alone_runs_nothing() -> None:
    run = run_case("function f()\n  echo body\nendfunction")

    assert run.dispatcher.commands == []
    assert run.ctx.get_context()["functions"] == ["f"]

def test_call_stack_is_empty_after_failure() -> None:
    run = run_case("function f()\n  missing()\nendfunction\nf()")

    assert not run.result.success
    assert run.ctx.call_stack == []

def test_recursion_under_nested_loops_returns_a_result() -> None:
    source = dedent(
        """\
        function down(n)
          if $n <= 0
            return 0
          endif
          for k1 1 1
            for k2 1 1
              for k3 1 1
                for k4 1 1
                  for k5 1 1
                    for k6 1 1
                      set r down($n - 1)
                    endfor
                  endfor
                endfor
              endfor
            endfor
          endfor
          return $r + 1
        endfunction
        set total down(49)
        """
    )

    run = run_case(source)

    assert run.ctx.call_stack == []
    if run.result.success:
        verify_result(run.var("total"), "number", 49)
    else:
        assert "Maximum recursion depth exceeded in 'down'" in (run.result.error or "")
        assert run.reported == [f"Script execution failed: {run.result.error}"]

def test_host_stack_exhaustion_becomes_script_error() -> None:
    ctx, _, reported = make_context()
    ctx.max_call_depth = 1_000_000

    result = run_script("function loop()\n  loop()\nendfunction\nloop()", context=ctx)

    assert not result.success
    assert "Maximum recursion depth exceeded in 'loop'" in (result.error or "")
    assert reported == [f"Script execution failed: {result.error}"]
    assert ctx.call_stack == []

def test_host_stack_exhaustion_can_be_caught() -> None:
    ctx, _, _ = make_context()
    ctx.max_call_depth = 1_000_000
    source = "function loop()\n  loop()\nendfunction\ntry\n  loop()\ncatch\n  set caught $error\nendtry"

    result = run_script(source, context=ctx)

    assert result.success
    assert result.variables["caught"] == "Maximum recursion depth exceeded in 'loop'"
