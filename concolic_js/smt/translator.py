# smt/translator.py
"""Compiles collected path-constraint fragments into one SMT-LIB script."""
import copy
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Tuple

import structlog

from ..core.errors import EvaluationError, TranslationError
from ..core.js_ast import Node, generate, js_literal, parse_js, walk
from ..core.memory import ConcreteMemory, SymbolicMemory
from ..core.signature import Parameter

if TYPE_CHECKING:
    from ..oracle.client import ExecutionOracle

logger = structlog.get_logger()

UNARY_OPERATORS = {"!": "not"}
BINARY_OPERATORS = {"==": "=", "===": "="}
NEGATED_OPERATORS = {"!=", "!=="}
LOGICAL_OPERATORS = {"&&": "and", "||": "or"}

# Theory-of-strings function names per solver
_Z3_STRING_METHODS = {
    "charAt": "CharAt",
    "concat": "Concat",
    "contains": "Contains",
    "endsWith": "EndsWith",
    "indexOf": "Indexof",
    "lastIndexOf": "LastIndexof",
    "length": "Length",
    "replace": "Replace",
    "startsWith": "StartsWith",
    "substring": "Substring",
}
STRING_METHODS: Dict[str, Dict[str, str]] = {
    "z3": _Z3_STRING_METHODS,
    "z3-str": _Z3_STRING_METHODS,
    "cvc4": {
        "charAt": "str.at",
        "length": "str.len",
        "substring": "str.substr",
    },
}

SOLVER_OPTIONS = {
    "z3": [],
    "z3-str": [],
    "cvc4": ["(set-option :produce-models true)", "(set-logic QF_S)"],
}


@dataclass
class ConstraintFragment:
    condition: str
    concrete: ConcreteMemory
    symbolic: SymbolicMemory


@dataclass
class FunctionCall:
    placeholder: str
    name: str
    arguments: str


def smt_literal(value: Any) -> str:
    """Render a concrete value as an SMT-LIB constant."""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, str):
        return '"' + value.replace('"', '""') + '"'
    if isinstance(value, (int, float)):
        text = js_literal(abs(value))
        return f"(- {text})" if value < 0 else text
    raise TranslationError(f"Cannot use {value!r} as an SMT constant")


class SMTTranslator:
    def __init__(
        self,
        solver_name: str,
        parameters: List[Parameter],
        oracle: Optional["ExecutionOracle"] = None,
    ):
        if solver_name not in SOLVER_OPTIONS:
            raise TranslationError(f"Unknown SMT solver {solver_name!r}")
        self.solver_name = solver_name
        self.parameters = parameters
        self.oracle = oracle
        self._string_parameters = {p.name for p in parameters if p.type == "String"}
        self._identifiers: List[str] = []
        self._calls: List[FunctionCall] = []
        self._fragment: Optional[ConstraintFragment] = None

        self._handlers: Dict[str, Callable[[Node], str]] = {
            "Identifier": self._compile_identifier,
            "Literal": self._compile_literal,
            "UnaryExpression": self._compile_unary,
            "BinaryExpression": self._compile_binary,
            "LogicalExpression": self._compile_logical,
            "CallExpression": self._compile_call,
            "MemberExpression": self._compile_member,
        }

    async def translate(self, fragments: List[ConstraintFragment]) -> str:
        self._identifiers = []
        assertions = []
        for fragment in fragments:
            expression = self._parse_constraint(fragment.condition)
            self._collect_identifiers(expression)
            self._fragment = fragment
            self._calls = []
            text = self._compile(expression)
            text = await self._resolve_calls(text)
            assertions.append(f"(assert {text})")

        declared = [
            p for p in self.parameters if p.name in self._identifiers
        ]
        lines = list(SOLVER_OPTIONS[self.solver_name])
        lines.extend(f"(declare-const {p.name} {p.sort})" for p in declared)
        lines.extend(assertions)
        lines.append("(check-sat)")
        if self.solver_name == "z3-str":
            lines.append("(get-model)")
        elif declared:
            lines.append(f"(get-value ({' '.join(p.name for p in declared)}))")
        script = "\n".join(lines) + "\n"
        logger.debug("SMT script generated", solver=self.solver_name, constraints=len(fragments))
        return script

    def _parse_constraint(self, condition: str) -> Node:
        try:
            program = parse_js(condition)
        except EvaluationError as e:
            raise TranslationError(str(e)) from e
        body = program["body"]
        if len(body) != 1 or body[0]["type"] != "ExpressionStatement":
            raise TranslationError(
                f"Constraint {condition!r} must contain exactly one expression statement"
            )
        return body[0]["expression"]

    def _collect_identifiers(self, node: Node) -> None:
        """Names the compiled constraint refers to symbolically."""
        kind = node["type"]
        if kind == "Identifier":
            if node["name"] not in self._identifiers:
                self._identifiers.append(node["name"])
        elif kind == "CallExpression" and node["callee"]["type"] == "Identifier":
            # helper calls are replaced by their concrete value
            return
        elif kind == "MemberExpression":
            self._collect_identifiers(node["object"])
            if node.get("computed"):
                self._collect_identifiers(node["property"])
        else:
            for child in node.values():
                for item in child if isinstance(child, list) else [child]:
                    if isinstance(item, dict) and "type" in item:
                        self._collect_identifiers(item)

    def _compile(self, node: Node) -> str:
        handler = self._handlers.get(node["type"])
        if handler is None:
            raise TranslationError(f"Unsupported expression {node['type']} in constraint")
        return handler(node)

    def _compile_identifier(self, node: Node) -> str:
        return node["name"]

    def _compile_literal(self, node: Node) -> str:
        value = node.get("value")
        if isinstance(value, (bool, str)):
            return smt_literal(value)
        return node.get("raw") or js_literal(value)

    def _compile_unary(self, node: Node) -> str:
        operator = UNARY_OPERATORS.get(node["operator"], node["operator"])
        return f"({operator} {self._compile(node['argument'])})"

    def _compile_binary(self, node: Node) -> str:
        left = self._compile(node["left"])
        right = self._compile(node["right"])
        operator = node["operator"]
        if operator in NEGATED_OPERATORS:
            return f"(not (= {left} {right}))"
        return f"({BINARY_OPERATORS.get(operator, operator)} {left} {right})"

    def _compile_logical(self, node: Node) -> str:
        left = self._compile(node["left"])
        right = self._compile(node["right"])
        return f"({LOGICAL_OPERATORS.get(node['operator'], node['operator'])} {left} {right})"

    def _compile_call(self, node: Node) -> str:
        callee = node["callee"]
        if callee["type"] == "Identifier":
            placeholder = f"<exec={callee['name']}#{len(self._calls)}>"
            arguments = ", ".join(self._concrete_argument(arg) for arg in node["arguments"])
            self._calls.append(FunctionCall(placeholder, callee["name"], arguments))
            return placeholder
        if callee["type"] == "MemberExpression":
            function, target = self._string_method(callee)
            arguments = [self._compile(argument) for argument in node["arguments"]]
            return "(" + " ".join([function, target] + arguments) + ")"
        raise TranslationError(f"Unsupported callee {callee['type']}")

    def _compile_member(self, node: Node) -> str:
        function, target = self._string_method(node)
        return f"({function} {target})"

    def _string_method(self, node: Node) -> Tuple[str, str]:
        target = node["object"]
        prop = node["property"]
        if node.get("computed") or prop["type"] != "Identifier":
            raise TranslationError("Computed member access is not supported")
        if target["type"] != "Identifier" or target["name"] not in self._string_parameters:
            raise TranslationError(
                f"Member access .{prop['name']} is only supported on String parameters"
            )
        function = STRING_METHODS[self.solver_name].get(prop["name"])
        if function is None:
            raise TranslationError(
                f"String method {prop['name']!r} is not supported by {self.solver_name}"
            )
        return function, target["name"]

    def _concrete_argument(self, argument: Node) -> str:
        """Render a call argument with identifiers replaced by concrete values."""
        substituted = copy.deepcopy(argument)
        for node, _ in walk(substituted):
            if node["type"] != "Identifier":
                continue
            found = self._fragment.concrete.lookup(node["name"])
            if not found.found:
                raise TranslationError(f"No concrete value known for argument {node['name']!r}")
            raw = js_literal(found.content)
            node.clear()
            node.update({"type": "Literal", "value": found.content, "raw": raw})
        return generate(substituted)

    async def _resolve_calls(self, text: str) -> str:
        for call in self._calls:
            if self.oracle is None:
                raise TranslationError(f"Cannot resolve call to {call.name}: no execution oracle")
            value = await self.oracle.execute_function(call.name, call.arguments)
            logger.debug("Resolved call in constraint", function=call.name, arguments=call.arguments, value=value)
            text = text.replace(call.placeholder, smt_literal(value), 1)
        return text
