# coverage/utils.py
from dataclasses import dataclass
from typing import List, Set

from ..core.js_ast import Node, generate, group, walk

BRANCH_NODES = {"IfStatement", "SwitchStatement", "ConditionalExpression"}
LOOP_NODES = {"DoWhileStatement", "WhileStatement", "ForStatement"}

_STATEMENT_PARENTS = {"BlockStatement", "Program", "SwitchCase"}


def is_branch_node(node: Node) -> bool:
    return node.get("type") in BRANCH_NODES


def is_loop_node(node: Node) -> bool:
    return node.get("type") in LOOP_NODES


def count_loop_statements(loop: Node) -> int:
    """Number of coverage statements lexically inside a loop body."""
    count = 0
    for node, parent in walk(loop.get("body"), loop):
        kind = node["type"]
        if kind == "BlockStatement":
            continue
        if kind.endswith("Statement"):
            count += 1
        elif kind == "VariableDeclaration" and parent is not None and (
            parent["type"] in _STATEMENT_PARENTS or parent is loop
        ):
            count += 1
    return count


def loop_statement_keys(loop_key: str, loop: Node) -> Set[str]:
    first = int(loop_key)
    return {str(first + offset) for offset in range(count_loop_statements(loop) + 1)}


def break_in_last_node(case: Node) -> bool:
    consequent = case.get("consequent") or []
    return bool(consequent) and consequent[-1]["type"] == "BreakStatement"


@dataclass
class SwitchGuard:
    condition: str
    cases: List[int]


def switch_guards(node: Node) -> List[SwitchGuard]:
    """Fold switch cases into one guard per fall-through group."""
    discriminant = group(generate(node["discriminant"]))
    cases = node.get("cases", [])
    groups = []
    tests: List[str] = []
    members: List[int] = []
    has_default = False
    all_tests: List[str] = []
    for index, case in enumerate(cases):
        members.append(index)
        if case.get("test") is None:
            has_default = True
        else:
            test = f"{discriminant}==={group(generate(case['test']))}"
            tests.append(test)
            all_tests.append(test)
        if break_in_last_node(case) or index == len(cases) - 1:
            groups.append((tests, members, has_default))
            tests, members, has_default = [], [], False

    guards = []
    for group_tests, group_members, group_default in groups:
        condition = "||".join(group_tests)
        if group_default:
            negation = f"!({'||'.join(all_tests)})" if all_tests else "true"
            condition = f"{condition}||{negation}" if condition else negation
        guards.append(SwitchGuard(condition=condition, cases=group_members))
    return guards
