# summarization/modified_table.py
from dataclasses import dataclass
from typing import Any, List, Optional

from ..core.errors import LoopSummaryError
from ..core.memory import ConcreteMemory, SymbolicMemory


@dataclass
class ModifiedVariable:
    name: str
    V: Any
    V_S: Optional[str]


class ModifiedVariableTable:
    """Variables assigned inside the loop body, as first seen."""

    def __init__(self):
        self.entries: List[ModifiedVariable] = []

    def add_entry(self, name: str, concrete: ConcreteMemory, symbolic: SymbolicMemory) -> None:
        value = concrete.lookup(name)
        symbolic_value = symbolic.lookup(name)
        if not value.found and not symbolic_value.found:
            raise LoopSummaryError(f"[MOD] unable to find variable {name!r} in memory")
        self.entries.append(ModifiedVariable(name, value.content, symbolic_value.content))

    def has_property(self, name: str) -> bool:
        return any(entry.name == name for entry in self.entries)
