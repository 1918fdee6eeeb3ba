# smt/solver.py
import asyncio
import os
import re
import tempfile
import uuid
from dataclasses import dataclass, field
from fractions import Fraction
from typing import Any, Dict, List, Optional, Tuple

import structlog

from ..core.errors import SolverError

logger = structlog.get_logger()

AVAILABLE_SOLVERS = ("z3", "z3-str", "cvc4")
SATISFIABILITY_TOKENS = ("sat", "unsat", "unknown")
MAX_FILENAME_ATTEMPTS = 100

_TOKEN = re.compile(r'"(?:[^"]|"")*"|\S+')
_IDENTIFIER = re.compile(r"^[A-Za-z_$][\w$]*$")
_NUMBER = re.compile(r"^\d+(?:\.\d+)?$")
_MISSING = object()


@dataclass
class SolverResponse:
    is_sat: bool
    status: str
    values: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"isSAT": self.is_sat, "values": self.values}


class SMTSolver:
    """Runs an external SMT solver on a script and parses its answer."""

    def __init__(
        self,
        name: str,
        path: Optional[str] = None,
        scratch_dir: Optional[str] = None,
        interpreter: str = "python",
    ):
        if name not in AVAILABLE_SOLVERS:
            raise SolverError(f'Unknown solver "{name}"')
        self.name = name
        self.path = path or name
        self.interpreter = interpreter
        self.scratch_dir = scratch_dir or tempfile.gettempdir()
        self.script_path = self._choose_script_path()

    def _choose_script_path(self) -> str:
        for _ in range(MAX_FILENAME_ATTEMPTS):
            candidate = os.path.join(self.scratch_dir, f"{uuid.uuid4().hex[:10]}.smt2")
            if not os.path.exists(candidate):
                return candidate
        raise SolverError("Unable to choose a file name for the SMT script")

    def command(self) -> Tuple[str, List[str]]:
        if self.name == "cvc4":
            return self.path, ["-L", "smt2", self.script_path]
        if self.name == "z3":
            return self.path, ["-smt2", self.script_path]
        return self.interpreter, [self.path, "-f", self.script_path]

    async def run(self, script: str) -> str:
        """Write the script to the scratch file and return the solver's stdout."""
        with open(self.script_path, "w") as handle:
            handle.write(script)
        program, args = self.command()
        logger.debug("Running SMT solver", solver=self.name, program=program, script=self.script_path)
        try:
            process = await asyncio.create_subprocess_exec(
                program,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            logger.error("Unable to start SMT solver", solver=self.name, program=program, error=str(e))
            raise SolverError(f"Unable to start {self.name} ({program}): {e}") from e
        stdout, stderr = await process.communicate()
        output = stdout.decode("utf-8", errors="replace")
        if process.returncode != 0 and _status(_TOKEN.findall(output))[0] in ("unsat", "unknown"):
            # get-value has no model to report after unsat/unknown
            logger.debug("SMT solver answered without a model", solver=self.name, exit_code=process.returncode)
            return output
        if process.returncode != 0:
            logger.error(
                "SMT solver failed",
                solver=self.name,
                exit_code=process.returncode,
                stderr=stderr.decode("utf-8", errors="replace"),
            )
            raise SolverError(
                f"{self.name} exited with code {process.returncode}: {output.strip()[:200]}"
            )
        return output

    async def solve(self, script: str) -> SolverResponse:
        response = self.parse_response(await self.run(script))
        logger.info("SMT solver answered", solver=self.name, status=response.status, values=response.values)
        return response

    def close(self) -> None:
        if os.path.exists(self.script_path):
            os.remove(self.script_path)

    def parse_response(self, response: str) -> SolverResponse:
        tokens = _TOKEN.findall(response)
        status, index = _status(tokens)
        if status is None:
            raise SolverError(f"Unparsable response from {self.name}: {response.strip()[:200]!r}")
        if status != "sat":
            return SolverResponse(is_sat=False, status=status)
        rest = tokens[index + 1:]
        if self.name == "z3-str":
            values = self._z3str_values(rest)
        else:
            values = self._smtlib_values(rest)
        return SolverResponse(is_sat=True, status=status, values=values)

    def _smtlib_values(self, tokens: List[str]) -> Dict[str, Any]:
        cleaned = []
        for token in tokens:
            if not token.startswith('"'):
                token = token.replace("(", "").replace(")", "")
            if token:
                cleaned.append(token)
        values: Dict[str, Any] = {}
        index = 0
        while index < len(cleaned):
            token = cleaned[index]
            if _IDENTIFIER.match(token) and token not in ("true", "false"):
                value, index = _read_value(cleaned, index + 1)
                if value is not _MISSING:
                    values[token] = value
            else:
                index += 1
        return values

    def _z3str_values(self, tokens: List[str]) -> Dict[str, Any]:
        # name : type -> value
        values: Dict[str, Any] = {}
        index = 0
        while index < len(tokens):
            if tokens[index] == ":" and index >= 1 and index + 3 < len(tokens):
                value, _ = _read_value(tokens, index + 3)
                if value is not _MISSING:
                    values[tokens[index - 1]] = value
                index += 4
            else:
                index += 1
        return values


def _status(tokens: List[str]) -> Tuple[Optional[str], int]:
    """First satisfiability token and its position."""
    for index, token in enumerate(tokens):
        if token.lower() in SATISFIABILITY_TOKENS:
            return token.lower(), index
    return None, -1


def _read_value(tokens: List[str], index: int) -> Tuple[Any, int]:
    if index >= len(tokens):
        return _MISSING, index
    token = tokens[index]
    if token.startswith('"') and token.endswith('"') and len(token) >= 2:
        return token[1:-1].replace('""', '"'), index + 1
    if token in ("true", "false"):
        return token == "true", index + 1
    if token == "-":
        value, following = _read_value(tokens, index + 1)
        if value is _MISSING or isinstance(value, (str, bool)):
            return _MISSING, following
        return -value, following
    if token == "/":
        numerator, following = _read_value(tokens, index + 1)
        denominator, following = _read_value(tokens, following)
        if numerator is _MISSING or denominator is _MISSING or not denominator:
            return _MISSING, following
        return float(Fraction(numerator) / Fraction(denominator)), following
    if token.startswith("-") and _NUMBER.match(token[1:]):
        return -_number(token[1:]), index + 1
    if _NUMBER.match(token):
        return _number(token), index + 1
    return _MISSING, index


def _number(text: str):
    return float(text) if "." in text else int(text)
