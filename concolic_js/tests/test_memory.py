# tests/test_memory.py
from hypothesis import given
from hypothesis import strategies as st

from ..core.memory import ConcreteMemory, SymbolicMemory


def test_lookup_missing_name():
    memory = ConcreteMemory()
    result = memory.lookup("x")
    assert result.found is False
    assert result.content is None


def test_add_overwrites_in_place():
    memory = ConcreteMemory()
    memory.add("x", 1)
    memory.add("y", 2)
    memory.add("x", 3)
    assert len(memory) == 2
    assert memory.lookup("x").content == 3
    assert memory.lookup("x").index == 0
    assert memory.as_dict() == {"x": 3, "y": 2}


def test_clone_is_independent():
    memory = SymbolicMemory()
    memory.add("x", "x")
    copy = memory.clone()
    memory.add("x", "(x)+(1)")
    memory.add("y", "x")
    assert isinstance(copy, SymbolicMemory)
    assert copy.as_dict() == {"x": "x"}


def test_none_is_a_valid_binding():
    memory = SymbolicMemory()
    memory.add("x", None)
    assert memory.has("x")
    assert memory.lookup("x").content is None


@given(st.lists(st.tuples(st.sampled_from(["a", "b", "c"]), st.integers())))
def test_latest_write_wins(writes):
    memory = ConcreteMemory()
    expected = {}
    for name, value in writes:
        memory.add(name, value)
        expected[name] = value
    assert memory.as_dict() == expected
    for name, value in expected.items():
        assert memory.lookup(name).content == value
