# summarization/guard_table.py
from dataclasses import dataclass, field
from typing import Any, List, Optional

import structlog

from ..core.errors import EvaluationError
from ..core.evaluator import ConcreteEvaluator, SymbolicEvaluator
from ..core.js_ast import Node, generate, group, parse_expression
from ..core.memory import ConcreteMemory, SymbolicMemory
from ..core.path import PathConstraint
from .conditions import guess_preconditions
from .induction_table import is_number

logger = structlog.get_logger()

SUPPORTED_OPERATORS = {"<", "<=", ">", ">=", "!=", "="}


@dataclass
class GuardEntry:
    pc: str
    B: bool
    D: Any
    D_S: Optional[str]
    loc: int
    hit: int = 0
    dD: Any = None
    dD_S: Optional[str] = None
    EC: Any = None
    EC_S: Optional[str] = None
    Dcond_S: Optional[str] = None
    dDcond_S: Optional[str] = None
    pending: bool = False
    pclocs: List[int] = field(default_factory=list)

    @property
    def has_closed_form(self) -> bool:
        return self.EC is not None


class GuardTable:
    """Loop guard candidates indexed by the key of their statement."""

    def __init__(self):
        self.entries: List[GuardEntry] = []

    def entry(self, pc: str) -> Optional[GuardEntry]:
        return next((entry for entry in self.entries if entry.pc == pc), None)

    def accepts(self, pc: str, condition: Node, iteration: int) -> bool:
        if condition.get("type") != "BinaryExpression":
            return False
        if condition["operator"] not in SUPPORTED_OPERATORS:
            return False
        return not (iteration > 1 and self.entry(pc) is None)

    def update(
        self,
        pc: str,
        condition: Node,
        outcome: bool,
        iteration: int,
        location: int,
        path: PathConstraint,
        concrete: ConcreteMemory,
        symbolic: SymbolicMemory,
    ) -> bool:
        """Record one evaluation of a guard; True when its loop summary fired."""
        if not self.accepts(pc, condition, iteration):
            return False

        distance = parse_expression(
            f"{group(generate(condition['left']))}-{group(generate(condition['right']))}"
        )
        try:
            D = ConcreteEvaluator(concrete).evaluate(distance)
        except EvaluationError as e:
            logger.debug("Guard distance is not computable", pc=pc, reason=str(e))
            D = None
        if not is_number(D):
            existing = self.entry(pc)
            if existing is not None:
                self.entries.remove(existing)
            return False
        D_S = SymbolicEvaluator(concrete, symbolic).render(distance)

        if iteration == 1:
            entry = GuardEntry(pc=pc, B=outcome, D=D, D_S=D_S, loc=max(location, 0))
            self.entries.append(entry)
        else:
            entry = self.entry(pc)
            if iteration == 2:
                self._derive_closed_form(entry, condition["operator"], D, D_S)

        entry.hit += 1
        if entry.hit != iteration:
            self.entries.remove(entry)
            return False

        fired = entry.B != outcome and entry.pending and entry.EC + 1 == iteration
        if fired:
            guess_preconditions(pc, self, path, concrete, symbolic)

        if entry.B != outcome or (entry.dD is not None and entry.dD != D - entry.D):
            self.entries.remove(entry)
        else:
            entry.D = D
            entry.pclocs.append(location)
        logger.debug(
            "Guard table updated",
            pc=pc,
            iteration=iteration,
            B=outcome,
            D=D,
            EC=entry.EC,
            fired=fired,
        )
        return fired

    def _derive_closed_form(self, entry: GuardEntry, operator: str, D: Any, D_S: str) -> None:
        entry.dD = D - entry.D
        entry.dD_S = f"({D_S}-({entry.D_S}))"
        # Only "<=" has a closed form, other operators stay unrolled
        if operator == "<=" and D > 0 and entry.dD < 0:
            entry.Dcond_S = f"(({D_S})>0)"
            entry.dDcond_S = f"(({entry.dD_S})<0)"
            entry.EC = (entry.D - entry.dD - 1) / -entry.dD
            entry.EC_S = f"(({entry.D_S})-({entry.dD_S})-1)/(-({entry.dD_S}))"
