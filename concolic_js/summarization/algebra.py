# summarization/algebra.py
"""Algebraic simplification of loop summaries with z3.

Expressions are parsed from JS, rebuilt as z3 real arithmetic, simplified and
printed back as JS infix so they can be stored in the symbolic memory again.
"""
from fractions import Fraction
from typing import Dict

import structlog
import z3

from ..core.errors import EvaluationError, SimplificationError
from ..core.js_ast import Node, parse_expression

logger = structlog.get_logger()


class Z3Algebra:
    def __init__(self):
        self.variables: Dict[str, z3.ArithRef] = {}

    def get_or_create_var(self, name: str) -> z3.ArithRef:
        if name not in self.variables:
            self.variables[name] = z3.Real(name)
        return self.variables[name]

    def to_z3(self, node: Node) -> z3.ArithRef:
        kind = node["type"]
        if kind == "Identifier":
            return self.get_or_create_var(node["name"])
        if kind == "Literal":
            value = node.get("value")
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise SimplificationError(f"Non-numeric literal {node.get('raw')}")
            return z3.RealVal(str(Fraction(str(value))))
        if kind == "UnaryExpression":
            argument = self.to_z3(node["argument"])
            if node["operator"] == "-":
                return -argument
            if node["operator"] == "+":
                return argument
        if kind == "BinaryExpression":
            left = self.to_z3(node["left"])
            right = self.to_z3(node["right"])
            operator = node["operator"]
            if operator == "+":
                return left + right
            if operator == "-":
                return left - right
            if operator == "*":
                return left * right
            if operator == "/":
                return left / right
        raise SimplificationError(f"Cannot simplify node {kind}")

    def to_js(self, expr: z3.ExprRef) -> str:
        if z3.is_rational_value(expr):
            value = Fraction(expr.numerator_as_long(), expr.denominator_as_long())
            return _number(value)
        if z3.is_int_value(expr):
            return _number(Fraction(expr.as_long()))
        if z3.is_const(expr):
            return str(expr)
        if z3.is_to_real(expr):
            return self.to_js(expr.arg(0))
        if z3.is_app_of(expr, z3.Z3_OP_UMINUS):
            return f"(-{self.to_js(expr.arg(0))})"
        operators = (
            (z3.is_add, "+"),
            (z3.is_sub, "-"),
            (z3.is_mul, "*"),
            (z3.is_div, "/"),
            (z3.is_idiv, "/"),
        )
        for predicate, operator in operators:
            if predicate(expr):
                operands = [self.to_js(expr.arg(i)) for i in range(expr.num_args())]
                return "(" + operator.join(operands) + ")"
        raise SimplificationError(f"Cannot print z3 expression {expr}")

    def simplify(self, text: str) -> str:
        try:
            node = parse_expression(text)
        except EvaluationError as e:
            raise SimplificationError(str(e)) from e
        simplified = z3.simplify(self.to_z3(node))
        rendered = self.to_js(simplified)
        # Drop the outermost parentheses of a compound result
        if rendered.startswith("(") and rendered.endswith(")") and _balanced(rendered[1:-1]):
            rendered = rendered[1:-1]
        return rendered


def _number(value: Fraction) -> str:
    if value.denominator == 1:
        text = str(value.numerator)
    else:
        text = f"{value.numerator}/{value.denominator}"
    return f"({text})" if value < 0 or value.denominator != 1 else text


def _balanced(text: str) -> bool:
    depth = 0
    for char in text:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth < 0:
                return False
    return depth == 0


def simplify_expression(text: str) -> str:
    """Simplify arithmetic JS text, keeping the original text when z3 cannot."""
    try:
        return Z3Algebra().simplify(text)
    except SimplificationError as e:
        logger.warning("Keeping unsimplified expression", expression=text, reason=str(e))
        return text
