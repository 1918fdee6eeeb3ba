# core/signature.py
from dataclasses import dataclass
from typing import Any, Dict, List, Tuple

from .js_ast import js_literal

# Supported parameter types and their default values
SUPPORTED_TYPES: Dict[str, Any] = {
    "Int": 0,
    "Real": 0.0,
    "Boolean": False,
    "String": "",
}

SMT_SORTS = {"Int": "Int", "Real": "Real", "Boolean": "Bool", "String": "String"}


@dataclass
class Parameter:
    name: str
    type: str
    value: Any

    @property
    def sort(self) -> str:
        return SMT_SORTS[self.type]


def default_value(type_name: str) -> Any:
    return SUPPORTED_TYPES.get(type_name)


def value_matches_type(value: Any, type_name: str) -> bool:
    if type_name in ("Int", "Real"):
        return isinstance(value, (int, float)) and not isinstance(value, bool)
    if type_name == "Boolean":
        return isinstance(value, bool)
    if type_name == "String":
        return isinstance(value, str)
    return False


def coerce_value(value: Any, type_name: str) -> Any:
    """Convert a solver model value to the declared parameter type."""
    if type_name == "Int":
        return int(value)
    if type_name == "Real":
        return float(value)
    if type_name == "Boolean":
        return bool(value)
    if type_name == "String":
        return str(value)
    return value


def parse_function_signature(
    function_name: str, declared: List[Dict[str, Any]], user_parameters: Dict[str, Any]
) -> Tuple[List[str], List[Parameter]]:
    """Validate user parameters against the declared signature of a function."""
    prefix = f'Error while parsing signature of function "{function_name}": '
    errors: List[str] = []
    parameters: List[Parameter] = []

    if len(declared) != len(user_parameters):
        return [prefix + "different signatures of the function"], parameters

    for formal in declared:
        name = formal.get("name", "unknown")
        if formal.get("type") != "Identifier":
            errors.append(prefix + f'parameter "{name}" must be an "Identifier"')
            continue
        spec = user_parameters.get(name)
        if spec is None:
            errors.append(prefix + f'parameter "{name}" is not specified')
            continue
        if "type" not in spec:
            errors.append(prefix + f'parameter "{name}" has no type property')
            continue
        if spec["type"] not in SUPPORTED_TYPES:
            errors.append(prefix + f'parameter "{name}" has a type not supported')
            continue
        if "value" in spec and not value_matches_type(spec["value"], spec["type"]):
            errors.append(prefix + f'parameter "{name}" has different type from its value')
            continue
        value = spec["value"] if "value" in spec else default_value(spec["type"])
        if spec["type"] == "Real":
            value = float(value)
        parameters.append(Parameter(name=name, type=spec["type"], value=value))
    return errors, parameters


def get_test_case(parameters: List[Parameter]) -> Dict[str, Any]:
    return {parameter.name: parameter.value for parameter in parameters}


def get_actual_parameters(parameters: List[Parameter]) -> str:
    """Argument list text used to call the function in the runtime."""
    return ", ".join(js_literal(parameter.value) for parameter in parameters)


def next_parameters(parameters: List[Parameter], model: Dict[str, Any]) -> List[Parameter]:
    """Parameters for the next run: model value, else last value, else default."""
    result = []
    for parameter in parameters:
        if parameter.name in model:
            value = coerce_value(model[parameter.name], parameter.type)
        elif parameter.value is not None:
            value = parameter.value
        else:
            value = default_value(parameter.type)
        result.append(Parameter(parameter.name, parameter.type, value))
    return result
