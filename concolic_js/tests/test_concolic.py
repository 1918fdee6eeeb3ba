# tests/test_concolic.py
import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from ..core.concolic import ConcolicExecutor
from ..core.errors import OracleError, TraceMismatchError
from ..core.path import update_stack
from ..core.signature import Parameter
from ..coverage.records import ExecutionRecord
from ..smt.solver import SolverResponse


def _record(statements, branches, cfg, scope, result=None):
    return ExecutionRecord.from_payload(
        {
            "function": {
                "name": "f",
                "statements": [{"key": key, "instruction": text} for key, text in statements.items()],
                "branches": [
                    {"key": key, "kind": "If", "conditions": [], "outcomes": outcomes}
                    for key, outcomes in branches.items()
                ],
            },
            "scope": scope,
            "cfgStatements": cfg,
            "result": result,
        }
    )


def _oracle(params, records):
    oracle = MagicMock()
    oracle.declared_parameters = AsyncMock(return_value=[{"type": "Identifier", "name": p} for p in params])
    oracle.execute_function_with_debugger = AsyncMock(side_effect=records)
    return oracle


def _solver(*responses):
    solver = MagicMock()
    solver.name = "z3"
    solver.solve = AsyncMock(side_effect=list(responses))
    return solver


def _sat(**values):
    return SolverResponse(is_sat=True, status="sat", values=values)


SIGN = {"1": "if (x < 0) { return -1; }", "2": "return -1;", "3": "return 1;"}


def _sign_records():
    return [
        _record(SIGN, {"1": [[0, 1]]}, ["1", "3"], [{}, {}], result=1),
        _record(SIGN, {"1": [[1, 0]]}, ["1", "2"], [{}, {}], result=-1),
    ]


def test_negative_branch_is_discovered():
    oracle = _oracle(["x"], _sign_records())
    solver = _solver(_sat(x=-1))
    result = asyncio.run(ConcolicExecutor(oracle, solver).inspect("f", {"x": {"type": "Int", "value": 0}}))

    assert result.errors == []
    assert result.test_cases == [{"x": 0}, {"x": -1}]
    assert result.results == [1, -1]
    script = solver.solve.await_args_list[0][0][0]
    assert "(declare-const x Int)" in script
    assert "(assert (not (not (< x 0))))" in script
    oracle.execute_function_with_debugger.assert_any_await("f", "-1")
    solver.close.assert_called_once()


def test_boolean_parameter_takes_two_runs():
    statements = {"1": "if (b) { y = 1; }", "2": "y = 1;"}
    records = [
        _record(statements, {"1": [[0, 1]]}, ["1"], [{}]),
        _record(statements, {"1": [[1, 0]]}, ["1", "2"], [{}, {"y": 1}]),
    ]
    solver = _solver(_sat(b=True))
    result = asyncio.run(ConcolicExecutor(_oracle(["b"], records), solver).inspect("f", {"b": {"type": "Boolean"}}))
    assert result.test_cases == [{"b": False}, {"b": True}]
    assert "(declare-const b Bool)" in solver.solve.await_args_list[0][0][0]


def test_unsat_falls_back_to_earlier_decision():
    statements = {
        "1": "if (x > 0) { y = 1; }",
        "2": "y = 1;",
        "3": "if (x > 5) { y = 2; }",
        "4": "y = 2;",
    }
    records = [
        _record(statements, {"1": [[0, 1]], "3": [[0, 1]]}, ["1", "3"], [{}, {}]),
        _record(statements, {"1": [[1, 0]], "3": [[0, 1]]}, ["1", "2", "3"], [{}, {"y": 1}, {}]),
        _record(statements, {"1": [[1, 0]], "3": [[1, 0]]}, ["1", "2", "3", "4"], [{}, {"y": 1}, {}, {"y": 2}]),
    ]
    unsat = SolverResponse(is_sat=False, status="unsat")
    solver = _solver(unsat, _sat(x=1), _sat(x=6))
    result = asyncio.run(
        ConcolicExecutor(_oracle(["x"], records), solver).inspect("f", {"x": {"type": "Int", "value": 0}})
    )

    assert result.errors == []
    assert result.test_cases == [{"x": 0}, {"x": 1}, {"x": 6}]
    scripts = [call[0][0] for call in solver.solve.await_args_list]
    assert "(assert (not (> x 0)))" in scripts[0]
    assert "(assert (not (not (> x 5))))" in scripts[0]
    assert "(assert (> x 5))" not in scripts[1]
    assert "(assert (not (not (> x 0))))" in scripts[1]


def test_search_is_deterministic():
    def run():
        solver = _solver(_sat(x=-1))
        return asyncio.run(
            ConcolicExecutor(_oracle(["x"], _sign_records()), solver).inspect("f", {"x": {"type": "Int", "value": 0}})
        ).to_dict()

    assert run() == run()


def test_signature_errors_are_reported_without_running():
    oracle = _oracle(["x"], [])
    result = asyncio.run(ConcolicExecutor(oracle, _solver()).inspect("f", {"y": {"type": "Int"}}))
    assert result.errors == ['Error while parsing signature of function "f": parameter "x" is not specified']
    assert result.test_cases == []
    oracle.execute_function_with_debugger.assert_not_awaited()


def test_oracle_failure_is_reported_with_phase():
    oracle = _oracle(["x"], [OracleError("connection lost")])
    solver = _solver()
    result = asyncio.run(ConcolicExecutor(oracle, solver).inspect("f", {"x": {"type": "Int"}}))
    assert result.errors == ['Oracle communication failed for function "f": connection lost']
    assert result.test_cases == [{"x": 0}]
    solver.close.assert_called_once()


def test_unrecorded_branch_adds_no_decision():
    records = [_record(SIGN, {}, ["1", "3"], [{}, {}])]
    executor = ConcolicExecutor(_oracle(["x"], records), _solver())
    result = asyncio.run(executor.inspect("f", {"x": {"type": "Int"}}))
    assert result.errors == []
    assert result.test_cases == [{"x": 0}]


def test_loop_guard_constraints_follow_the_induction_variable():
    statements = {
        "1": "var s = 0;",
        "2": "for (i = 0; i < 3; i++) { if (i < n) { s = s + 1; } }",
        "3": "if (i < n) { s = s + 1; }",
        "4": "s = s + 1;",
        "5": "return s;",
    }
    record = _record(
        statements,
        {"3": [[1, 0], [0, 1], [0, 1]]},
        ["1", "2", "3", "4", "3", "3", "5"],
        [
            {"s": 0},
            {"s": 0, "i": 0},
            {"s": 0, "i": 0},
            {"s": 1, "i": 0},
            {"s": 1, "i": 1},
            {"s": 1, "i": 2},
            {"s": 1, "i": 3},
        ],
        result=1,
    )
    executor = ConcolicExecutor(MagicMock(), _solver())
    path = executor.analyze_statements(record, [Parameter("n", "Int", 1)])
    assert path.conditions == ["0<n", "!(((0)+(1))<n)", "!((((0)+(1))+(1))<n)"]
    assert [decision.branch for decision in path] == [1, 0, 0]


def test_missing_scope_entry():
    record = _record(SIGN, {"1": [[0, 1]]}, ["1", "3"], [{}])
    executor = ConcolicExecutor(MagicMock(), _solver())
    with pytest.raises(TraceMismatchError, match="No concrete scope"):
        executor.analyze_statements(record, [Parameter("x", "Int", 0)])


COUNTER = {
    "1": "var i = 0;",
    "2": "while (true) { if (n <= i) { break; } i = i + 1; }",
    "3": "if (n <= i) { break; }",
    "4": "break;",
    "5": "i = i + 1;",
    "6": "return i;",
}


def _counter_record():
    return _record(
        COUNTER,
        {"3": [[0, 1], [0, 1], [0, 1], [1, 0]]},
        ["1", "2", "3", "5", "3", "5", "3", "5", "3", "4", "6"],
        [
            {"i": 0},
            {"i": 0},
            {"i": 0},
            {"i": 1},
            {"i": 1},
            {"i": 2},
            {"i": 2},
            {"i": 3},
            {"i": 3},
            {"i": 3},
            {"i": 3},
        ],
        result=3,
    )


def test_loop_summary_replaces_unrolled_guards():
    executor = ConcolicExecutor(MagicMock(), _solver())
    path = executor.analyze_statements(_counter_record(), [Parameter("n", "Int", 3)])

    assert path.conditions == [
        "!(n<=0)",
        "((n-(0+1))>0)",
        "(((n-(0+1)-(n-0)))<0)",
        "!(n<=(0+1))",
        "!(n<=((-1)+n))",
        "n<=(((-1)+n)+1)",
    ]
    assert [d.ignore for d in path] == [True, False, False, True, True, False]
    assert [d.pre_or_post_condition for d in path] == [False, True, True, False, False, False]

    stack = update_stack([], path)
    assert [k for k, frame in enumerate(stack) if not frame.done and not frame.ignore] == [5]


def test_loop_summary_constraints_reach_the_solver():
    solver = _solver(SolverResponse(is_sat=False, status="unsat"))
    executor = ConcolicExecutor(MagicMock(), solver)
    parameters = [Parameter("n", "Int", 3)]
    path = executor.analyze_statements(_counter_record(), parameters)
    stack = update_stack([], path)

    assert asyncio.run(executor.solve_path_constraint(path, stack, parameters)) is None
    solver.solve.assert_awaited_once()
    script = solver.solve.await_args[0][0]
    assert "(assert (not (<= n (+ (+ (- 1) n) 1))))" in script
    assert "(<= n 0)" not in script
    assert script.count("(assert") == 3
