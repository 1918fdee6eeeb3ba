# oracle/client.py
import asyncio
import json
from typing import Any, Dict, List

import structlog

from ..core.errors import OracleError
from ..coverage.records import ExecutionRecord

logger = structlog.get_logger()

READ_CHUNK = 65536


class ExecutionOracle:
    """Client for the instrumented runtime that executes the function under test.

    Every request opens a TCP connection, sends one JSON object
    ``{"method": ..., "parameters": ...}`` and reads back one JSON object
    ``{"error": bool, "value": ...}``.
    """

    def __init__(self, host: str = "localhost", port: int = 8888):
        self.host = host
        self.port = port

    async def call(self, method: str, parameters: Any) -> Any:
        logger.debug("Calling execution oracle", method=method, host=self.host, port=self.port)
        try:
            reader, writer = await asyncio.open_connection(self.host, self.port)
        except OSError as e:
            logger.error("Unable to reach execution oracle", host=self.host, port=self.port, error=str(e))
            raise OracleError(f"Unable to connect to {self.host}:{self.port}: {e}") from e

        try:
            writer.write(json.dumps({"method": method, "parameters": parameters}).encode("utf-8"))
            await writer.drain()
            response = await self._read_response(reader)
        except OSError as e:
            raise OracleError(f"Connection to execution oracle lost during {method}: {e}") from e
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except OSError as e:
                logger.debug("Oracle connection closed with an error", method=method, error=str(e))

        if not isinstance(response, dict) or "error" not in response:
            raise OracleError(f"Malformed response to {method}: {response!r}")
        if response["error"]:
            logger.error("Execution oracle reported an error", method=method, error=response.get("value"))
            raise OracleError(f"{method} failed: {response.get('value')}")
        return response.get("value")

    async def _read_response(self, reader: asyncio.StreamReader) -> Dict[str, Any]:
        buffer = b""
        while True:
            chunk = await reader.read(READ_CHUNK)
            if chunk:
                buffer += chunk
            try:
                return json.loads(buffer.decode("utf-8"))
            except ValueError:
                if not chunk:
                    raise OracleError(f"Incomplete response from execution oracle: {buffer[:200]!r}")

    async def get_function_instance(self, function_name: str) -> Dict[str, Any]:
        return await self.call("getFunctionInstance", function_name)

    async def execute_function_with_debugger(
        self, function_name: str, arguments: str
    ) -> ExecutionRecord:
        payload = await self.call("executeFunctionWithDebugger", [function_name, arguments])
        if not isinstance(payload, dict):
            raise OracleError(f"Unexpected execution payload for {function_name}: {payload!r}")
        return ExecutionRecord.from_payload(payload)

    async def execute_function(self, function_name: str, arguments: str) -> Any:
        """Run a helper function concretely and return its value."""
        payload = await self.call("executeFunction", [function_name, arguments])
        result = payload.get("result") if isinstance(payload, dict) else payload
        if isinstance(result, dict) and "value" in result:
            return result["value"]
        return result

    async def declared_parameters(self, function_name: str) -> List[Dict[str, Any]]:
        instance = await self.get_function_instance(function_name)
        if not isinstance(instance, dict):
            raise OracleError(f"Unexpected function instance for {function_name}: {instance!r}")
        return list(instance.get("params", []))
