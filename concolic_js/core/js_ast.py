# core/js_ast.py
"""Thin helpers over esprima's ESTree dictionaries.

Nodes are plain dicts produced by ``esprima.parseScript(...).toDict()`` so the
rest of the engine can dispatch on ``node["type"]`` without caring about
esprima's node classes.
"""
import json
import math
import re
from typing import Any, Dict, Iterator, Optional, Tuple

import esprima
from esprima.error_handler import Error as EsprimaError

from .errors import EvaluationError

Node = Dict[str, Any]

# Wraps statements that only parse inside a function body and a loop
STATEMENT_WRAPPER = "function __statement__(){{for(;;){{{}}}}}"

_SIMPLE_TOKEN = re.compile(
    r'^(?:[A-Za-z_$][\w$]*|-?\d+(?:\.\d+)?(?:[eE][-+]?\d+)?|"(?:[^"\\]|\\.)*"|\'(?:[^\'\\]|\\.)*\')$'
)
_COMPOUND_NODES = {
    "BinaryExpression",
    "LogicalExpression",
    "ConditionalExpression",
    "AssignmentExpression",
    "SequenceExpression",
}


def parse_js(code: str) -> Node:
    """Parse a script and return its Program node as a dict."""
    try:
        return esprima.parseScript(code).toDict()
    except EsprimaError as e:
        raise EvaluationError(f"Unable to parse {code!r}: {e}") from e


def parse_statement(instruction: str) -> Node:
    """Return the AST of a single statement taken from a coverage record."""
    try:
        program = esprima.parseScript(instruction).toDict()
    except EsprimaError:
        # return/break/continue need an enclosing function and loop
        program = parse_js(STATEMENT_WRAPPER.format(instruction))
        loop = program["body"][0]["body"]["body"][0]
        body = loop["body"]["body"]
        if not body:
            raise EvaluationError(f"Statement {instruction!r} has no body")
        return body[0]
    if not program["body"]:
        raise EvaluationError(f"Statement {instruction!r} is empty")
    return program["body"][0]


def parse_expression(text: str) -> Node:
    """Parse text that must be exactly one expression statement."""
    program = parse_js(text)
    body = program["body"]
    if len(body) != 1 or body[0]["type"] != "ExpressionStatement":
        raise EvaluationError(f"{text!r} is not a single expression")
    return body[0]["expression"]


def walk(node: Any, parent: Optional[Node] = None) -> Iterator[Tuple[Node, Optional[Node]]]:
    """Pre-order traversal yielding (node, parent) pairs."""
    if isinstance(node, list):
        for item in node:
            yield from walk(item, parent)
        return
    if not isinstance(node, dict) or "type" not in node:
        return
    yield node, parent
    for key, child in node.items():
        if key == "type":
            continue
        if isinstance(child, (dict, list)):
            yield from walk(child, node)


def js_literal(value: Any) -> str:
    """Render a concrete Python value as JS source text."""
    if value is None:
        return "undefined"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        return str(int(value)) if value.is_integer() else repr(value)
    if isinstance(value, str):
        return json.dumps(value)
    return json.dumps(value)


def group(text: str) -> str:
    """Parenthesize expression text unless it is a single token."""
    if _SIMPLE_TOKEN.match(text):
        return text
    return f"({text})"


def generate(node: Node) -> str:
    """Render the expression subset the engine handles back to JS."""
    kind = node["type"]
    if kind == "Identifier":
        return node["name"]
    if kind == "Literal":
        raw = node.get("raw")
        return raw if raw is not None else js_literal(node.get("value"))
    if kind in ("BinaryExpression", "LogicalExpression"):
        return f"{_child(node['left'])}{node['operator']}{_child(node['right'])}"
    if kind == "UnaryExpression":
        operator = node["operator"]
        separator = " " if operator[-1].isalpha() else ""
        return f"{operator}{separator}{_child(node['argument'])}"
    if kind == "UpdateExpression":
        argument = generate(node["argument"])
        if node.get("prefix"):
            return f"{node['operator']}{argument}"
        return f"{argument}{node['operator']}"
    if kind == "AssignmentExpression":
        return f"{generate(node['left'])}{node['operator']}{generate(node['right'])}"
    if kind == "ConditionalExpression":
        return f"{_child(node['test'])}?{_child(node['consequent'])}:{_child(node['alternate'])}"
    if kind == "CallExpression":
        arguments = ",".join(generate(argument) for argument in node["arguments"])
        return f"{_child(node['callee'])}({arguments})"
    if kind == "MemberExpression":
        if node.get("computed"):
            return f"{_child(node['object'])}[{generate(node['property'])}]"
        return f"{_child(node['object'])}.{generate(node['property'])}"
    raise EvaluationError(f"Cannot render node of type {kind}")


def _child(node: Node) -> str:
    text = generate(node)
    if node["type"] in _COMPOUND_NODES:
        return f"({text})"
    return text
