# tests/test_signature.py
import pytest

from ..core.signature import (
    Parameter,
    get_actual_parameters,
    get_test_case,
    next_parameters,
    parse_function_signature,
)

PREFIX = 'Error while parsing signature of function "f": '


def _declared(*names):
    return [{"type": "Identifier", "name": name} for name in names]


def test_valid_signature():
    errors, parameters = parse_function_signature(
        "f",
        _declared("x", "s"),
        {"x": {"type": "Int", "value": 3}, "s": {"type": "String"}},
    )
    assert errors == []
    assert parameters == [Parameter("x", "Int", 3), Parameter("s", "String", "")]
    assert parameters[1].sort == "String"


def test_real_values_are_floats():
    _, parameters = parse_function_signature("f", _declared("r"), {"r": {"type": "Real", "value": 2}})
    assert parameters[0].value == 2.0
    assert isinstance(parameters[0].value, float)


def test_boolean_sort():
    _, parameters = parse_function_signature("f", _declared("b"), {"b": {"type": "Boolean"}})
    assert parameters[0].value is False
    assert parameters[0].sort == "Bool"


def test_different_arity():
    errors, parameters = parse_function_signature("f", _declared("x", "y"), {"x": {"type": "Int"}})
    assert errors == [PREFIX + "different signatures of the function"]
    assert parameters == []


@pytest.mark.parametrize(
    "declared, user, message",
    [
        ([{"type": "AssignmentPattern", "name": "x"}], {"x": {"type": "Int"}}, 'parameter "x" must be an "Identifier"'),
        (_declared("x"), {"y": {"type": "Int"}}, 'parameter "x" is not specified'),
        (_declared("x"), {"x": {"value": 1}}, 'parameter "x" has no type property'),
        (_declared("x"), {"x": {"type": "Array"}}, 'parameter "x" has a type not supported'),
        (_declared("x"), {"x": {"type": "Int", "value": "1"}}, 'parameter "x" has different type from its value'),
        (_declared("x"), {"x": {"type": "Boolean", "value": 1}}, 'parameter "x" has different type from its value'),
    ],
)
def test_signature_errors(declared, user, message):
    errors, _ = parse_function_signature("f", declared, user)
    assert errors == [PREFIX + message]


def test_actual_parameters_text():
    parameters = [
        Parameter("x", "Int", -1),
        Parameter("r", "Real", 1.5),
        Parameter("b", "Boolean", True),
        Parameter("s", "String", 'a"b'),
    ]
    assert get_actual_parameters(parameters) == '-1, 1.5, true, "a\\"b"'
    assert get_test_case(parameters) == {"x": -1, "r": 1.5, "b": True, "s": 'a"b'}


def test_next_parameters_prefers_model_values():
    parameters = [Parameter("x", "Int", 0), Parameter("y", "Real", 2.5), Parameter("b", "Boolean", False)]
    updated = next_parameters(parameters, {"x": -1, "b": True})
    assert [p.value for p in updated] == [-1, 2.5, True]
    assert [p.value for p in parameters] == [0, 2.5, False]


def test_next_parameters_coerces_model_types():
    updated = next_parameters([Parameter("x", "Int", 0), Parameter("r", "Real", 0.0)], {"x": 4.0, "r": 1})
    assert updated[0].value == 4 and isinstance(updated[0].value, int)
    assert isinstance(updated[1].value, float)
