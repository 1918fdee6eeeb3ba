# summarization/induction_table.py
from dataclasses import dataclass
from numbers import Number
from typing import Any, List, Optional

import structlog

from ..core.errors import LoopSummaryError
from ..core.memory import ConcreteMemory, SymbolicMemory

logger = structlog.get_logger()


@dataclass
class InductionVariable:
    name: str
    V: Any
    V_S: Optional[str]
    dV: Any = None
    dV_S: Optional[str] = None


def is_number(value: Any) -> bool:
    return isinstance(value, Number) and not isinstance(value, bool)


class InductionVariableTable:
    """Induction variable candidates; only constant deltas survive."""

    def __init__(self):
        self.entries: List[InductionVariable] = []

    def add_entry(self, name: str, concrete: ConcreteMemory, symbolic: SymbolicMemory) -> None:
        value = concrete.lookup(name)
        symbolic_value = symbolic.lookup(name)
        if not value.found or not symbolic_value.found:
            raise LoopSummaryError(
                f"[IVT] unable to add {name!r}: missing from the "
                f"{'concrete' if not value.found else 'symbolic'} memory"
            )
        self.entries.append(InductionVariable(name, value.content, symbolic_value.content))

    def has_property(self, name: str) -> bool:
        return any(entry.name == name for entry in self.entries)

    def update(self, iteration: int, concrete: ConcreteMemory, symbolic: SymbolicMemory) -> None:
        if iteration < 2:
            return
        surviving = []
        for entry in self.entries:
            current = concrete.lookup(entry.name)
            if not current.found:
                raise LoopSummaryError(f"[IVT] variable {entry.name!r} missing from the concrete memory")
            if not (is_number(current.content) and is_number(entry.V)):
                logger.debug("Dropping non-numeric induction candidate", name=entry.name)
                continue
            delta = current.content - entry.V
            if iteration == 2:
                symbolic_value = symbolic.lookup(entry.name)
                if not symbolic_value.found:
                    raise LoopSummaryError(
                        f"[IVT] variable {entry.name!r} missing from the symbolic memory"
                    )
                entry.dV = delta
                entry.dV_S = f"({symbolic_value.content})-({entry.V_S})"
            elif delta != entry.dV:
                logger.debug("Dropping induction candidate", name=entry.name, delta=delta, expected=entry.dV)
                continue
            entry.V = current.content
            surviving.append(entry)
        self.entries = surviving
