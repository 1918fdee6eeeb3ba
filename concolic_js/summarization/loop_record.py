# summarization/loop_record.py
from dataclasses import dataclass, field
from typing import List, Optional, Set

import structlog

from ..core.errors import LoopSummaryError
from ..core.js_ast import Node
from ..core.memory import ConcreteMemory, SymbolicMemory
from ..core.path import PathConstraint
from ..coverage.utils import loop_statement_keys
from .conditions import guess_postconditions
from .guard_table import GuardTable
from .induction_table import InductionVariableTable
from .modified_table import ModifiedVariableTable

logger = structlog.get_logger()


@dataclass
class LoopFrame:
    loop_key: str
    node: Node
    statement_keys: Set[str]
    iteration: int = 0
    ivt: InductionVariableTable = field(default_factory=InductionVariableTable)
    gt: GuardTable = field(default_factory=GuardTable)
    mod: ModifiedVariableTable = field(default_factory=ModifiedVariableTable)


class LoopRecord:
    """Stack of active loops; the innermost frame is the one updated."""

    def __init__(self):
        self.active_loops: List[LoopFrame] = []

    def add_loop(self, loop_key: str, node: Node) -> LoopFrame:
        frame = LoopFrame(loop_key=loop_key, node=node, statement_keys=loop_statement_keys(loop_key, node))
        self.active_loops.append(frame)
        logger.debug("Loop entered", loop=loop_key, depth=len(self.active_loops))
        return frame

    def delete_loop(self) -> LoopFrame:
        frame = self.current
        self.active_loops.pop()
        logger.debug("Loop left", loop=frame.loop_key, iterations=frame.iteration)
        return frame

    def is_active(self) -> bool:
        return bool(self.active_loops)

    @property
    def current(self) -> LoopFrame:
        if not self.active_loops:
            raise LoopSummaryError("No active loop")
        return self.active_loops[-1]

    @property
    def iteration(self) -> int:
        return self.current.iteration

    def increment_iteration(self) -> int:
        frame = self.current
        frame.iteration += 1
        return frame.iteration

    def is_statement_inside(self, key: Optional[str]) -> bool:
        return key is not None and key in self.current.statement_keys

    def is_last_statement_inside(self, key: str, next_key: Optional[str]) -> bool:
        """True when `key` closes an iteration and `next_key` starts another one."""
        if not self.is_statement_inside(next_key):
            return False
        return int(key) >= int(next_key)

    def is_last_iteration(self, next_key: Optional[str]) -> bool:
        return not self.is_statement_inside(next_key)

    def track_assignment(self, name: str, concrete: ConcreteMemory, symbolic: SymbolicMemory) -> None:
        """Seed MOD (and IVT on the first iteration) for a variable assigned in a loop."""
        if not self.active_loops:
            return
        frame = self.current
        if frame.mod.has_property(name):
            return
        frame.mod.add_entry(name, concrete, symbolic)
        if frame.iteration == 1:
            frame.ivt.add_entry(name, concrete, symbolic)

    def update_gt(
        self,
        pc: str,
        condition: Node,
        outcome: bool,
        location: int,
        path: PathConstraint,
        concrete: ConcreteMemory,
        symbolic: SymbolicMemory,
    ) -> bool:
        frame = self.current
        return frame.gt.update(pc, condition, outcome, frame.iteration, location, path, concrete, symbolic)

    def update_ivt(self, concrete: ConcreteMemory, symbolic: SymbolicMemory) -> None:
        frame = self.current
        frame.ivt.update(frame.iteration, concrete, symbolic)

    def guess_postconditions(self, symbolic: SymbolicMemory) -> None:
        frame = self.current
        guess_postconditions(frame.iteration, frame.ivt, frame.gt, symbolic)

    def log_tables(self) -> None:
        frame = self.current
        logger.debug(
            "Loop tables",
            loop=frame.loop_key,
            iteration=frame.iteration,
            ivt=[vars(entry) for entry in frame.ivt.entries],
            gt=[vars(entry) for entry in frame.gt.entries],
            mod=[entry.name for entry in frame.mod.entries],
        )
