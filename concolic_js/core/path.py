# core/path.py
from dataclasses import dataclass
from typing import Iterator, List, Optional

import structlog

from .errors import LoopSummaryError, PathDivergenceError
from .evaluator import PathConstraintEntry
from .js_ast import Node
from .memory import ConcreteMemory, SymbolicMemory

logger = structlog.get_logger()


@dataclass
class PathDecision:
    """One conjunct of the path constraint collected during a concrete run."""

    condition: str
    branch: int
    concrete: ConcreteMemory
    symbolic: SymbolicMemory
    ast: Optional[Node] = None
    pre_or_post_condition: bool = False
    ignore: bool = False


@dataclass
class StackBranchFrame:
    branch: int
    done: bool
    concrete: ConcreteMemory
    symbolic: SymbolicMemory
    pre_or_post_condition: bool = False
    ignore: bool = False


class PathConstraint:
    """Ordered decisions of one run, with memory snapshots taken at creation."""

    def __init__(self):
        self.decisions: List[PathDecision] = []

    def append(
        self, entry: PathConstraintEntry, concrete: ConcreteMemory, symbolic: SymbolicMemory
    ) -> int:
        self.decisions.append(
            PathDecision(
                condition=entry.condition,
                branch=1 if entry.outcome else 0,
                concrete=concrete.clone(),
                symbolic=symbolic.clone(),
                ast=entry.ast,
            )
        )
        return len(self.decisions) - 1

    def insert_condition(
        self, position: int, condition: str, concrete: ConcreteMemory, symbolic: SymbolicMemory
    ) -> None:
        """Insert a summarized loop fact; it is assumed, never flipped."""
        if position < 0 or position > len(self.decisions):
            raise LoopSummaryError(f"Path constraint position {position} out of range")
        self.decisions.insert(
            position,
            PathDecision(
                condition=condition,
                branch=1,
                concrete=concrete.clone(),
                symbolic=symbolic.clone(),
                pre_or_post_condition=True,
            ),
        )

    def mark_ignored(self, position: int) -> None:
        if position < 0 or position >= len(self.decisions):
            raise LoopSummaryError(f"Path constraint position {position} out of range")
        self.decisions[position].ignore = True

    @property
    def conditions(self) -> List[str]:
        return [decision.condition for decision in self.decisions]

    def __len__(self) -> int:
        return len(self.decisions)

    def __iter__(self) -> Iterator[PathDecision]:
        return iter(self.decisions)


def update_stack(stack: List[StackBranchFrame], path: PathConstraint) -> List[StackBranchFrame]:
    """Merge the decisions of a run into the branch stack carried from the last solve.

    Positions covered by the carried prefix must agree on the branch taken; the
    last carried frame is the one that was flipped, so reaching it again marks
    its alternative as explored. Further decisions are appended.
    """
    for index, decision in enumerate(path):
        if index < len(stack):
            frame = stack[index]
            if frame.branch != decision.branch:
                raise PathDivergenceError(
                    f"Unable to update the stack: branch {decision.branch} at position "
                    f"{index} differs from the expected branch {frame.branch}"
                )
            frame.ignore = decision.ignore
            if index == len(stack) - 1:
                frame.done = True
        else:
            stack.append(
                StackBranchFrame(
                    branch=decision.branch,
                    done=decision.pre_or_post_condition,
                    concrete=decision.concrete,
                    symbolic=decision.symbolic,
                    pre_or_post_condition=decision.pre_or_post_condition,
                    ignore=decision.ignore,
                )
            )
    logger.debug("Branch stack updated", depth=len(stack), decisions=len(path))
    return stack
