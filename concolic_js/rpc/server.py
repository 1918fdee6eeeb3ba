# rpc/server.py
import asyncio
from typing import Any, Dict, Optional

import structlog
from jsonrpcserver import Error, Result, Success, method, serve

from ..config import EngineConfig
from ..core.concolic import inspect_function

logger = structlog.get_logger()

# Engine configuration shared by every RPC call
engine_config: Optional[EngineConfig] = None


def init_engine(config: EngineConfig) -> None:
    """Install the configuration used by the RPC methods."""
    global engine_config
    if engine_config is not None:
        logger.warning("Engine configuration replaced")
    engine_config = config
    logger.info(
        "Engine configured for RPC server",
        solver=config.solver.name,
        oracle_host=config.oracle.host,
        oracle_port=config.oracle.port,
    )


@method
def inspect(function_name: str, parameters: Optional[Dict[str, Any]] = None) -> Result:
    """Run a concolic inspection and return {errors, testCases, results}."""
    logger.info("RPC call received: inspect", function=function_name)
    if engine_config is None:
        logger.error("RPC Error: engine not configured")
        return Error(code=-32001, message="Concolic engine not configured")
    if not isinstance(function_name, str) or not function_name:
        return Error(code=-32602, message="function_name must be a non-empty string")

    result = asyncio.run(inspect_function(engine_config, function_name, parameters or {}))
    logger.debug("RPC call finished: inspect", function=function_name, errors=len(result.errors))
    return Success(result.to_dict())


def start_rpc_server(config: EngineConfig, host: str = "0.0.0.0", port: int = 5000) -> None:
    """Configures the engine and starts the JSON-RPC server (blocking)."""
    init_engine(config)
    logger.info("Starting JSON-RPC server", host=host, port=port)
    serve(host, port)
