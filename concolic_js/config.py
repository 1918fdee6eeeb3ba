# config.py
import os
import tempfile
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import structlog
import yaml

from .core.errors import ConfigError
from .smt.solver import AVAILABLE_SOLVERS

logger = structlog.get_logger()


@dataclass
class SolverConfig:
    name: str = "z3"
    path: Optional[str] = None
    interpreter: str = "python"
    scratch_dir: str = field(default_factory=tempfile.gettempdir)


@dataclass
class OracleConfig:
    host: str = "localhost"
    port: int = 8888


@dataclass
class EngineConfig:
    solver: SolverConfig = field(default_factory=SolverConfig)
    oracle: OracleConfig = field(default_factory=OracleConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EngineConfig":
        errors: List[str] = []
        solver_data = data.get("solver") or {}
        oracle_data = data.get("oracle") or {}

        solver = SolverConfig()
        solver.name = solver_data.get("name", solver.name)
        if solver.name not in AVAILABLE_SOLVERS:
            errors.append(f"solver.name must be one of {', '.join(AVAILABLE_SOLVERS)}, got {solver.name!r}")
        solver.path = solver_data.get("path", solver.path)
        solver.interpreter = solver_data.get("interpreter", solver.interpreter)
        solver.scratch_dir = solver_data.get("scratch_dir", solver.scratch_dir)
        if not os.path.isdir(solver.scratch_dir):
            errors.append(f"solver.scratch_dir {solver.scratch_dir!r} is not a directory")

        oracle = OracleConfig()
        oracle.host = oracle_data.get("host", oracle.host)
        try:
            oracle.port = int(oracle_data.get("port", oracle.port))
        except (TypeError, ValueError):
            errors.append(f"oracle.port must be an integer, got {oracle_data.get('port')!r}")

        if errors:
            raise ConfigError(errors)
        return cls(solver=solver, oracle=oracle)


def load_config(path: Optional[str] = None) -> EngineConfig:
    """Load the engine configuration from a YAML file (defaults when absent)."""
    if path is None:
        return EngineConfig()
    try:
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        raise ConfigError([f"Configuration file {path} not found"]) from None
    except yaml.YAMLError as e:
        raise ConfigError([f"Invalid YAML in {path}: {e}"]) from e
    if not isinstance(data, dict):
        raise ConfigError([f"Configuration file {path} must contain a mapping"])
    config = EngineConfig.from_dict(data)
    logger.info("Configuration loaded", path=path, solver=config.solver.name, oracle_port=config.oracle.port)
    return config
