# core/memory.py
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Union

ConcreteValue = Union[int, float, str, bool, None]


@dataclass(frozen=True)
class Binding:
    name: str
    content: Any


@dataclass(frozen=True)
class Lookup:
    found: bool
    content: Any = None
    index: int = -1


class MemoryStore:
    """Ordered name -> content bindings where the latest write wins."""

    kind = "memory"

    def __init__(self, bindings: Optional[List[Binding]] = None):
        self._bindings: List[Binding] = list(bindings or [])

    def add(self, name: str, content: Any) -> None:
        found = self.lookup(name)
        if found.found:
            self._bindings[found.index] = Binding(name, content)
        else:
            self._bindings.append(Binding(name, content))

    def lookup(self, name: str) -> Lookup:
        # Most recent binding first
        for index in range(len(self._bindings) - 1, -1, -1):
            if self._bindings[index].name == name:
                return Lookup(True, self._bindings[index].content, index)
        return Lookup(False)

    def has(self, name: str) -> bool:
        return self.lookup(name).found

    def clone(self) -> "MemoryStore":
        return type(self)(self._bindings)

    def as_dict(self) -> Dict[str, Any]:
        return {binding.name: binding.content for binding in self._bindings}

    def __iter__(self) -> Iterator[Binding]:
        return iter(list(self._bindings))

    def __len__(self) -> int:
        return len(self._bindings)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.as_dict()!r})"


class ConcreteMemory(MemoryStore):
    """Values observed in the running program (numbers, strings, booleans)."""

    kind = "concrete"

    def add(self, name: str, content: ConcreteValue) -> None:
        super().add(name, content)


class SymbolicMemory(MemoryStore):
    """Expression text for each variable, in terms of the symbolic parameters."""

    kind = "symbolic"

    def add(self, name: str, content: Optional[str]) -> None:
        super().add(name, content)
