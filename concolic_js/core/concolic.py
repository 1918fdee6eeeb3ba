# core/concolic.py
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

import structlog

from ..coverage.records import ExecutionRecord
from ..coverage.utils import is_branch_node, is_loop_node
from ..oracle.client import ExecutionOracle
from ..smt.solver import SMTSolver
from ..smt.translator import ConstraintFragment, SMTTranslator
from ..summarization.loop_record import LoopRecord
from .errors import ConcolicError, SignatureError, TraceMismatchError
from .evaluator import (
    ConcreteEvaluator,
    SymbolicEvaluator,
    apply_scope,
    condition_is_symbolic,
)
from .js_ast import Node, parse_statement
from .memory import ConcreteMemory, SymbolicMemory
from .path import PathConstraint, StackBranchFrame, update_stack
from .signature import (
    Parameter,
    get_actual_parameters,
    get_test_case,
    next_parameters,
    parse_function_signature,
)

if TYPE_CHECKING:
    from ..config import EngineConfig

logger = structlog.get_logger()


@dataclass
class InspectResult:
    errors: List[str] = field(default_factory=list)
    test_cases: List[Dict[str, Any]] = field(default_factory=list)
    results: List[Any] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"errors": self.errors, "testCases": self.test_cases, "results": self.results}


class ConcolicExecutor:
    """Directed search over the paths of one JavaScript function."""

    def __init__(self, oracle: ExecutionOracle, solver: SMTSolver):
        self.oracle = oracle
        self.solver = solver

    async def inspect(self, function_name: str, user_parameters: Dict[str, Any]) -> InspectResult:
        """Generate test cases for `function_name` starting from `user_parameters`."""
        result = InspectResult()
        logger.info("Starting concolic inspection", function=function_name, parameters=user_parameters)

        try:
            declared = await self.oracle.declared_parameters(function_name)
            errors, parameters = parse_function_signature(function_name, declared, user_parameters)
            if errors:
                raise SignatureError(errors)
        except SignatureError as e:
            logger.error("Invalid function signature", function=function_name, errors=e.messages)
            result.errors.extend(e.messages)
            return result
        except ConcolicError as e:
            self._record_error(result, function_name, e)
            return result

        stack: List[StackBranchFrame] = []
        iteration = 0
        try:
            while True:
                iteration += 1
                test_case = get_test_case(parameters)
                logger.info("Concolic iteration", function=function_name, iteration=iteration, test_case=test_case)
                result.test_cases.append(test_case)
                record = await self.oracle.execute_function_with_debugger(
                    function_name, get_actual_parameters(parameters)
                )
                result.results.append(record.result)

                path = self.analyze_statements(record, parameters)
                update_stack(stack, path)
                step = await self.solve_path_constraint(path, stack, parameters)
                if step is None:
                    logger.info(
                        "No branch left to explore",
                        function=function_name,
                        iterations=iteration,
                        test_cases=len(result.test_cases),
                    )
                    break
                parameters, stack = step
        except ConcolicError as e:
            self._record_error(result, function_name, e)
        finally:
            self.solver.close()
        return result

    def _record_error(self, result: InspectResult, function_name: str, error: ConcolicError) -> None:
        message = f'{error.phase} failed for function "{function_name}": {error}'
        logger.error("Concolic inspection aborted", function=function_name, phase=error.phase, error=str(error))
        result.errors.append(message)

    def analyze_statements(self, record: ExecutionRecord, parameters: List[Parameter]) -> PathConstraint:
        """Replay the executed statements and collect the path constraint of the run."""
        concrete = ConcreteMemory()
        symbolic = SymbolicMemory()
        for parameter in parameters:
            concrete.add(parameter.name, parameter.value)
            symbolic.add(parameter.name, parameter.name)
        names = [parameter.name for parameter in parameters]

        loops = LoopRecord()
        evaluator = SymbolicEvaluator(concrete, symbolic, loops)
        branches = record.function.executed_branches()
        statement_table: Dict[str, int] = {}
        next_branch = 0
        path = PathConstraint()
        cfg = record.cfg_statements

        for index, key in enumerate(cfg):
            statement = record.function.statement(key)
            node = parse_statement(statement.instruction)
            next_key = cfg[index + 1] if index + 1 < len(cfg) else None

            if is_loop_node(node):
                while loops.is_active() and (
                    not loops.is_statement_inside(key) or loops.current.loop_key == key
                ):
                    loops.delete_loop()
                self._replay_for_init(node, concrete, symbolic)
                loops.add_loop(key, node)
                loops.increment_iteration()
            else:
                while loops.is_active() and not loops.is_statement_inside(key):
                    loops.delete_loop()

            start = statement_table.get(key, next_branch)
            evaluation = evaluator.evaluate(node, branches, start)
            if key not in statement_table and evaluation.cursor > start:
                statement_table[key] = start
                next_branch = max(next_branch, evaluation.cursor)

            if index >= len(record.scope):
                raise TraceMismatchError(
                    f"No concrete scope recorded for statement {key} (position {index})"
                )
            apply_scope(record.scope[index], concrete)

            symbolic_entries = []
            for entry in evaluation.entries:
                if condition_is_symbolic(entry.ast, symbolic, names):
                    symbolic_entries.append((entry, path.append(entry, concrete, symbolic)))

            if loops.is_active() and loops.is_statement_inside(key):
                if is_branch_node(node) and symbolic_entries:
                    entry, location = symbolic_entries[0]
                    loops.update_gt(key, entry.ast, entry.outcome, location, path, concrete, symbolic)
                self._close_iteration(loops, key, next_key, evaluator, concrete, symbolic)

        logger.debug("Statements analyzed", statements=len(cfg), constraints=path.conditions)
        return path

    def _close_iteration(
        self,
        loops: LoopRecord,
        key: str,
        next_key: Optional[str],
        evaluator: SymbolicEvaluator,
        concrete: ConcreteMemory,
        symbolic: SymbolicMemory,
    ) -> None:
        while loops.is_active() and loops.is_statement_inside(key):
            if loops.is_last_statement_inside(key, next_key):
                self._replay_for_update(loops.current.node, evaluator, concrete)
                loops.increment_iteration()
                loops.update_ivt(concrete, symbolic)
                loops.guess_postconditions(symbolic)
                loops.log_tables()
                return
            if next_key is not None and loops.is_last_iteration(next_key):
                loops.delete_loop()
                continue
            return

    def _replay_for_init(self, node: Node, concrete: ConcreteMemory, symbolic: SymbolicMemory) -> None:
        init = node.get("init") if node["type"] == "ForStatement" else None
        if init is not None:
            SymbolicEvaluator(concrete, symbolic).evaluate(init)

    def _replay_for_update(self, node: Node, evaluator: SymbolicEvaluator, concrete: ConcreteMemory) -> None:
        update = node.get("update") if node["type"] == "ForStatement" else None
        if update is not None:
            evaluator.evaluate(update)
            ConcreteEvaluator(concrete).evaluate(update)

    async def solve_path_constraint(
        self, path: PathConstraint, stack: List[StackBranchFrame], parameters: List[Parameter]
    ) -> Optional[Tuple[List[Parameter], List[StackBranchFrame]]]:
        """Negate the last unexplored decision and ask the solver for new inputs."""
        conditions = path.conditions
        k_try = min(len(conditions), len(stack))
        while True:
            j = next(
                (k for k in range(k_try - 1, -1, -1) if not stack[k].done and not stack[k].ignore),
                None,
            )
            if j is None:
                return None

            conditions[j] = f"!({conditions[j]})"
            stack[j].branch = 1 - stack[j].branch
            fragments = [
                ConstraintFragment(conditions[k], stack[k].concrete, stack[k].symbolic)
                for k in range(j + 1)
                if not stack[k].ignore
            ]
            translator = SMTTranslator(self.solver.name, parameters, self.oracle)
            script = await translator.translate(fragments)
            response = await self.solver.solve(script)
            if response.is_sat:
                logger.debug("Negated decision is feasible", position=j, values=response.values)
                return next_parameters(parameters, response.values), stack[: j + 1]
            logger.debug("Negated decision is infeasible", position=j, status=response.status)
            k_try = j


async def inspect_function(
    config: "EngineConfig", function_name: str, user_parameters: Dict[str, Any]
) -> InspectResult:
    """Build the oracle client and solver from configuration and run `inspect`."""
    oracle = ExecutionOracle(config.oracle.host, config.oracle.port)
    solver = SMTSolver(
        config.solver.name,
        path=config.solver.path,
        scratch_dir=config.solver.scratch_dir,
        interpreter=config.solver.interpreter,
    )
    return await ConcolicExecutor(oracle, solver).inspect(function_name, user_parameters)
