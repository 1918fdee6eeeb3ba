# core/evaluator.py
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, List, Optional, Sequence

import structlog

from ..coverage.records import BranchKind, CoverageBranch
from ..coverage.utils import LOOP_NODES, switch_guards
from .errors import EvaluationError, TraceMismatchError
from .js_ast import Node, group, js_literal, parse_expression, walk
from .memory import ConcreteMemory, SymbolicMemory

if TYPE_CHECKING:
    from ..summarization.loop_record import LoopRecord

logger = structlog.get_logger()

_GLOBAL_CONSTANTS = {"undefined", "NaN", "Infinity"}


@dataclass
class PathConstraintEntry:
    """A branch test crossed during evaluation, paired with its observed outcome."""

    ast: Node
    outcome: bool
    condition: str
    index_branch: int


@dataclass
class Evaluation:
    expression: Optional[str]
    entries: List[PathConstraintEntry] = field(default_factory=list)
    cursor: int = 0


class SymbolicEvaluator:
    """Renders one statement symbolically and collects the branch tests it crosses."""

    def __init__(
        self,
        concrete: ConcreteMemory,
        symbolic: SymbolicMemory,
        loop_record: Optional["LoopRecord"] = None,
    ):
        self.concrete = concrete
        self.symbolic = symbolic
        self.loop_record = loop_record
        self._branches: Sequence[CoverageBranch] = ()
        self._cursor = 0
        self._entries: List[PathConstraintEntry] = []

        self._handlers: Dict[str, Callable[[Node], Optional[str]]] = {
            "ExpressionStatement": self._handle_expression_statement,
            "IfStatement": self._handle_if,
            "ConditionalExpression": self._handle_conditional,
            "SwitchStatement": self._handle_switch,
            "AssignmentExpression": self._handle_assignment,
            "UpdateExpression": self._handle_update,
            "SequenceExpression": self._handle_sequence,
            "UnaryExpression": self._handle_unary,
            "BinaryExpression": self._handle_binary,
            "LogicalExpression": self._handle_binary,
            "VariableDeclaration": self._handle_variable_declaration,
            "VariableDeclarator": self._handle_variable_declarator,
            "Identifier": self._handle_identifier,
            "Literal": self._handle_literal,
            "CallExpression": self._handle_call,
            "MemberExpression": self._handle_member,
            "ReturnStatement": self._handle_return,
            "BreakStatement": self._handle_pass,
            "ContinueStatement": self._handle_pass,
            "EmptyStatement": self._handle_pass,
        }
        for loop_kind in LOOP_NODES:
            self._handlers[loop_kind] = self._handle_pass

    def evaluate(
        self, node: Node, branches: Sequence[CoverageBranch] = (), cursor: int = 0
    ) -> Evaluation:
        """Evaluate a statement starting at branch record `cursor`."""
        self._branches = branches
        self._cursor = cursor
        self._entries = []
        expression = self._eval(node)
        return Evaluation(expression=expression, entries=self._entries, cursor=self._cursor)

    def render(self, node: Node) -> Optional[str]:
        """Symbolic text of an expression without consuming branch outcomes."""
        return self.evaluate(node).expression

    def _eval(self, node: Node) -> Optional[str]:
        handler = self._handlers.get(node["type"])
        if handler is None:
            raise EvaluationError(f"Unsupported node type {node['type']}")
        return handler(node)

    def _next_branch(self, kind: BranchKind) -> Optional[CoverageBranch]:
        if self._cursor >= len(self._branches):
            return None
        branch = self._branches[self._cursor]
        if branch.kind != kind:
            raise TraceMismatchError(
                f"Expected a {kind.value} branch record at index {self._cursor}, "
                f"found {branch.kind.value} (key {branch.key})"
            )
        return branch

    def _cross(self, test: Node, rendered: str, kind: BranchKind) -> Optional[bool]:
        branch = self._next_branch(kind)
        if branch is None:
            return None
        vector = branch.consume()
        if len(vector) < 2:
            raise TraceMismatchError(f"Outcome vector {vector} of branch {branch.key} is not binary")
        outcome = vector[0] == 1
        self._entries.append(
            PathConstraintEntry(
                ast=test,
                outcome=outcome,
                condition=rendered if outcome else f"!({rendered})",
                index_branch=self._cursor,
            )
        )
        self._cursor += 1
        return outcome

    # --- Statements ---

    def _handle_expression_statement(self, node: Node) -> Optional[str]:
        return self._eval(node["expression"])

    def _handle_if(self, node: Node) -> Optional[str]:
        rendered = self._eval(node["test"])
        self._cross(node["test"], rendered, BranchKind.IF)
        return rendered

    def _handle_conditional(self, node: Node) -> Optional[str]:
        rendered = self._eval(node["test"])
        outcome = self._cross(node["test"], rendered, BranchKind.TERNARY)
        if outcome is None:
            consequent = self._eval(node["consequent"])
            alternate = self._eval(node["alternate"])
            return f"{group(rendered)}?{group(consequent)}:{group(alternate)}"
        return self._eval(node["consequent"] if outcome else node["alternate"])

    def _handle_switch(self, node: Node) -> Optional[str]:
        discriminant = self._eval(node["discriminant"])
        branch = self._next_branch(BranchKind.SWITCH)
        if branch is None:
            return discriminant
        vector = branch.consume()
        taken = next((index for index, hit in enumerate(vector) if hit == 1), None)
        index_branch = self._cursor
        for guard in switch_guards(node):
            test = parse_expression(guard.condition)
            rendered = self._eval(test)
            outcome = taken is not None and taken in guard.cases
            self._entries.append(
                PathConstraintEntry(
                    ast=test,
                    outcome=outcome,
                    condition=rendered if outcome else f"!({rendered})",
                    index_branch=index_branch,
                )
            )
            if outcome:
                break
        self._cursor += 1
        return discriminant

    def _handle_variable_declaration(self, node: Node) -> Optional[str]:
        result = None
        for declarator in node["declarations"]:
            result = self._eval(declarator)
        return result

    def _handle_variable_declarator(self, node: Node) -> Optional[str]:
        init = node.get("init")
        value = self._eval(init) if init is not None else None
        self.symbolic.add(node["id"]["name"], value)
        return value

    def _handle_return(self, node: Node) -> Optional[str]:
        argument = node.get("argument")
        return self._eval(argument) if argument is not None else None

    def _handle_pass(self, node: Node) -> Optional[str]:
        return None

    # --- Expressions ---

    def _assign(self, name: str, value: str) -> str:
        if self.loop_record is not None:
            self.loop_record.track_assignment(name, self.concrete, self.symbolic)
        self.symbolic.add(name, value)
        return value

    def _target_name(self, target: Node) -> str:
        if target["type"] != "Identifier":
            raise EvaluationError(f"Unsupported assignment target {target['type']}")
        return target["name"]

    def _handle_assignment(self, node: Node) -> Optional[str]:
        name = self._target_name(node["left"])
        right = self._eval(node["right"])
        operator = node["operator"]
        if operator == "=":
            return self._assign(name, right)
        current = self._handle_identifier(node["left"])
        return self._assign(name, f"({current}){operator[:-1]}({right})")

    def _handle_sequence(self, node: Node) -> Optional[str]:
        result = None
        for expression in node["expressions"]:
            result = self._eval(expression)
        return result

    def _handle_update(self, node: Node) -> Optional[str]:
        name = self._target_name(node["argument"])
        current = self._handle_identifier(node["argument"])
        value = self._assign(name, f"({current}){node['operator'][0]}(1)")
        return value if node.get("prefix") else current

    def _handle_unary(self, node: Node) -> Optional[str]:
        operator = node["operator"]
        separator = " " if operator[-1].isalpha() else ""
        return f"{operator}{separator}{group(self._eval(node['argument']))}"

    def _handle_binary(self, node: Node) -> Optional[str]:
        left = self._eval(node["left"])
        right = self._eval(node["right"])
        return f"{group(left)}{node['operator']}{group(right)}"

    def _handle_identifier(self, node: Node) -> Optional[str]:
        name = node["name"]
        symbolic = self.symbolic.lookup(name)
        if symbolic.found:
            return "undefined" if symbolic.content is None else symbolic.content
        concrete = self.concrete.lookup(name)
        if concrete.found:
            return js_literal(concrete.content)
        if name in _GLOBAL_CONSTANTS:
            return name
        raise EvaluationError(f"Unknown identifier {name}")

    def _handle_literal(self, node: Node) -> Optional[str]:
        value = node.get("value")
        if isinstance(value, str):
            return js_literal(value)
        raw = node.get("raw")
        return raw if raw is not None else js_literal(value)

    def _handle_call(self, node: Node) -> Optional[str]:
        callee = node["callee"]
        name = callee["name"] if callee["type"] == "Identifier" else self._eval(callee)
        arguments = ",".join(self._eval(argument) for argument in node["arguments"])
        return f"{name}({arguments})"

    def _handle_member(self, node: Node) -> Optional[str]:
        target = group(self._eval(node["object"]))
        if node.get("computed"):
            return f"{target}[{self._eval(node['property'])}]"
        return f"{target}.{node['property']['name']}"


class ConcreteEvaluator:
    """Evaluates arithmetic and comparisons over the concrete store."""

    _BINARY = {
        "<": lambda a, b: a < b,
        "<=": lambda a, b: a <= b,
        ">": lambda a, b: a > b,
        ">=": lambda a, b: a >= b,
        "==": lambda a, b: a == b,
        "===": lambda a, b: a == b,
        "!=": lambda a, b: a != b,
        "!==": lambda a, b: a != b,
        "+": lambda a, b: a + b,
        "-": lambda a, b: a - b,
        "*": lambda a, b: a * b,
        "/": lambda a, b: a / b,
        "%": lambda a, b: a % b,
    }

    def __init__(self, concrete: ConcreteMemory):
        self.concrete = concrete

    def evaluate(self, node: Node) -> Any:
        kind = node["type"]
        if kind == "Literal":
            return node.get("value")
        if kind == "Identifier":
            found = self.concrete.lookup(node["name"])
            if not found.found:
                raise EvaluationError(f"No concrete value for {node['name']}")
            return found.content
        if kind == "ExpressionStatement":
            return self.evaluate(node["expression"])
        if kind in ("BinaryExpression", "LogicalExpression"):
            return self._binary(node)
        if kind == "UnaryExpression":
            value = self.evaluate(node["argument"])
            if node["operator"] == "-":
                return -value
            if node["operator"] == "+":
                return +value
            if node["operator"] == "!":
                return not value
        if kind == "AssignmentExpression":
            name = node["left"]["name"]
            value = self.evaluate(node["right"])
            if node["operator"] != "=":
                value = self._apply(node["operator"][:-1], self.evaluate(node["left"]), value)
            self.concrete.add(name, value)
            return value
        if kind == "UpdateExpression":
            name = node["argument"]["name"]
            current = self.evaluate(node["argument"])
            value = self._apply(node["operator"][0], current, 1)
            self.concrete.add(name, value)
            return value if node.get("prefix") else current
        if kind == "SequenceExpression":
            result = None
            for expression in node["expressions"]:
                result = self.evaluate(expression)
            return result
        raise EvaluationError(f"Cannot evaluate {kind} concretely")

    def _binary(self, node: Node) -> Any:
        operator = node["operator"]
        left = self.evaluate(node["left"])
        if operator == "&&":
            return self.evaluate(node["right"]) if left else left
        if operator == "||":
            return left if left else self.evaluate(node["right"])
        return self._apply(operator, left, self.evaluate(node["right"]))

    def _apply(self, operator: str, left: Any, right: Any) -> Any:
        if operator not in self._BINARY:
            raise EvaluationError(f"Unsupported concrete operator {operator}")
        if operator == "+" and (isinstance(left, str) or isinstance(right, str)):
            return _to_js_string(left) + _to_js_string(right)
        try:
            return self._BINARY[operator](left, right)
        except (TypeError, ZeroDivisionError) as e:
            raise EvaluationError(f"Cannot apply {operator} to {left!r} and {right!r}: {e}") from e


def _to_js_string(value: Any) -> str:
    return value if isinstance(value, str) else js_literal(value)


def apply_scope(snapshot: Dict[str, Any], concrete: ConcreteMemory) -> None:
    """Record every binding the runtime reported for the executed statement."""
    for name, value in snapshot.items():
        concrete.add(name, value)


def condition_is_symbolic(
    condition: Node, symbolic: SymbolicMemory, parameters: Iterable[str]
) -> bool:
    """True when a condition depends on at least one input parameter."""
    names = set(parameters)
    for node, parent in walk(condition):
        if node["type"] != "Identifier":
            continue
        if parent is not None and parent["type"] == "CallExpression":
            continue
        if node["name"] in names:
            return True
        found = symbolic.lookup(node["name"])
        if found.found and isinstance(found.content, str):
            for inner, inner_parent in walk(parse_expression(found.content)):
                if inner["type"] != "Identifier":
                    continue
                if inner_parent is not None and inner_parent["type"] == "CallExpression":
                    continue
                if inner["name"] in names:
                    return True
    return False
