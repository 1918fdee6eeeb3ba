# coverage/records.py
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

import structlog

from ..core.errors import OracleError, TraceMismatchError

logger = structlog.get_logger()


class BranchKind(Enum):
    IF = "If"
    SWITCH = "Switch"
    TERNARY = "Ternary"

    @classmethod
    def parse(cls, value: str) -> "BranchKind":
        aliases = {
            "if": cls.IF,
            "switch": cls.SWITCH,
            "ternary": cls.TERNARY,
            "ternaryoperator": cls.TERNARY,
            "cond-expr": cls.TERNARY,
        }
        try:
            return aliases[str(value).lower()]
        except KeyError:
            raise OracleError(f"Unknown branch kind {value!r}") from None


@dataclass
class CoverageStatement:
    key: str
    instruction: str
    start: Dict[str, int] = field(default_factory=dict)
    end: Dict[str, int] = field(default_factory=dict)
    executions: int = 0
    total_executions: int = 0

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "CoverageStatement":
        return cls(
            key=str(payload["key"]),
            instruction=payload["instruction"],
            start=payload.get("start", {}),
            end=payload.get("end", {}),
            executions=payload.get("executions", payload.get("nExecutions", 0)),
            total_executions=payload.get("totalExecutions", 0),
        )


@dataclass
class CoverageBranch:
    key: str
    kind: BranchKind
    conditions: List[str]
    outcomes: List[List[int]]
    start: Dict[str, int] = field(default_factory=dict)
    end: Dict[str, int] = field(default_factory=dict)

    @property
    def executions(self) -> int:
        return len(self.outcomes)

    def consume(self) -> List[int]:
        """Pop the oldest recorded outcome vector."""
        if not self.outcomes:
            raise TraceMismatchError(
                f"Branch {self.key} has no recorded outcome left to consume"
            )
        return self.outcomes.pop(0)

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "CoverageBranch":
        return cls(
            key=str(payload["key"]),
            kind=BranchKind.parse(payload["kind"]),
            conditions=list(payload.get("conditions", [])),
            outcomes=[list(vector) for vector in payload.get("outcomes", [])],
            start=payload.get("start", {}),
            end=payload.get("end", {}),
        )


def _key_order(key: str):
    return (0, int(key)) if key.isdigit() else (1, key)


@dataclass
class CoverageFunction:
    name: str
    statements: Dict[str, CoverageStatement]
    branches: List[CoverageBranch]

    def statement(self, key: str) -> CoverageStatement:
        try:
            return self.statements[key]
        except KeyError:
            raise TraceMismatchError(
                f"Statement {key} of function {self.name} not found in coverage"
            ) from None

    def executed_branches(self) -> List[CoverageBranch]:
        executed = [branch for branch in self.branches if branch.executions > 0]
        return sorted(executed, key=lambda branch: _key_order(branch.key))

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "CoverageFunction":
        statements = [CoverageStatement.from_payload(s) for s in payload.get("statements", [])]
        branches = [CoverageBranch.from_payload(b) for b in payload.get("branches", [])]
        return cls(
            name=payload.get("name", ""),
            statements={statement.key: statement for statement in statements},
            branches=branches,
        )


@dataclass
class ExecutionRecord:
    """One instrumented run reported by the execution oracle."""

    function: CoverageFunction
    scope: List[Dict[str, Any]]
    cfg_statements: List[str]
    result: Any = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "ExecutionRecord":
        try:
            function = CoverageFunction.from_payload(payload["function"])
            scope = list(payload.get("scope", []))
            cfg = [str(key) for key in payload.get("cfgStatements", [])]
        except (KeyError, TypeError) as e:
            logger.error("Malformed execution payload", error=str(e))
            raise OracleError(f"Malformed execution payload: {e}") from e
        return cls(function=function, scope=scope, cfg_statements=cfg, result=payload.get("result"))
