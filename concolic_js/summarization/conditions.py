# summarization/conditions.py
"""Pre- and postcondition guessing for summarized loops."""
from typing import TYPE_CHECKING, List, Optional

import structlog

from ..core.errors import LoopSummaryError
from ..core.evaluator import ConcreteEvaluator
from ..core.js_ast import parse_expression
from ..core.memory import ConcreteMemory, SymbolicMemory
from ..core.path import PathConstraint
from .algebra import simplify_expression
from .induction_table import InductionVariableTable

if TYPE_CHECKING:
    from .guard_table import GuardEntry, GuardTable

logger = structlog.get_logger()


def _pc_order(pc: str):
    return int(pc) if pc.isdigit() else pc


def min_predicate(
    firing: Optional["GuardEntry"], candidates: List["GuardEntry"], concrete: ConcreteMemory
) -> List[str]:
    """Relations stating that the firing guard predicts the earliest exit."""
    if firing is None or not firing.has_closed_form:
        return []
    relations = []
    evaluator = ConcreteEvaluator(concrete)
    for other in candidates:
        if other is firing:
            continue
        operator = "<=" if _pc_order(firing.pc) < _pc_order(other.pc) else "<"
        relation = f"({firing.EC_S}){operator}({other.EC_S})"
        if evaluator.evaluate(parse_expression(relation)):
            relations.append(relation)
    return relations


def guess_preconditions(
    pc: str,
    gt: "GuardTable",
    path: PathConstraint,
    concrete: ConcreteMemory,
    symbolic: SymbolicMemory,
) -> None:
    """Fold the per-iteration guard constraints of a loop into its summary."""
    if not gt.entries:
        raise LoopSummaryError("Unable to guess preconditions: location of guard G1 undefined")
    g1 = gt.entries[0]
    if g1.loc >= len(path):
        raise LoopSummaryError("Unable to guess preconditions: location of guard G1 out of range")

    summarized = [entry for entry in gt.entries if entry.has_closed_form]
    summary: List[str] = []
    for entry in summarized:
        for position in entry.pclocs:
            path.mark_ignored(position)
        summary.extend([entry.Dcond_S, entry.dDcond_S])
    summary.extend(min_predicate(gt.entry(pc), summarized, concrete))

    for offset, condition in enumerate(summary):
        path.insert_condition(g1.loc + 1 + offset, condition, concrete, symbolic)
    logger.info("Loop preconditions inserted", pc=pc, location=g1.loc, conditions=summary)


def guess_postconditions(
    iteration: int, ivt: InductionVariableTable, gt: "GuardTable", symbolic: SymbolicMemory
) -> None:
    """Back-substitute closed forms once the predicted last iteration starts."""
    if any(entry.pending for entry in gt.entries):
        return
    for entry in gt.entries:
        if entry.EC is None or entry.EC != iteration:
            continue
        for variable in ivt.entries:
            if not symbolic.has(variable.name):
                raise LoopSummaryError(
                    f"Unable to guess postconditions: {variable.name!r} missing from the symbolic memory"
                )
            closed_form = simplify_expression(
                f"({variable.V_S})+({variable.dV_S})*(({entry.EC_S})-1)"
            )
            symbolic.add(variable.name, closed_form)
            logger.debug("Postcondition", name=variable.name, value=closed_form)
        entry.pending = True
        break
