# tests/test_oracle.py
import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from ..core.errors import OracleError, TraceMismatchError
from ..coverage.records import BranchKind, ExecutionRecord
from ..oracle.client import ExecutionOracle


def _connection(*chunks):
    reader = MagicMock()
    reader.read = AsyncMock(side_effect=list(chunks) + [b""])
    writer = MagicMock()
    writer.drain = AsyncMock()
    writer.wait_closed = AsyncMock()
    return reader, writer


def test_call_sends_request_and_reads_split_response():
    reader, writer = _connection(b'{"error": false, ', b'"value": {"name": "f", "params": []}}')
    with patch("asyncio.open_connection", AsyncMock(return_value=(reader, writer))) as connect:
        oracle = ExecutionOracle("runtime", 9999)
        value = asyncio.run(oracle.get_function_instance("f"))
    connect.assert_awaited_once_with("runtime", 9999)
    sent = json.loads(writer.write.call_args[0][0].decode("utf-8"))
    assert sent == {"method": "getFunctionInstance", "parameters": "f"}
    assert value == {"name": "f", "params": []}
    writer.close.assert_called_once()
    writer.wait_closed.assert_awaited_once()


def test_error_response_raises():
    reader, writer = _connection(b'{"error": true, "value": "function g not found"}')
    with patch("asyncio.open_connection", AsyncMock(return_value=(reader, writer))):
        with pytest.raises(OracleError, match="function g not found"):
            asyncio.run(ExecutionOracle().get_function_instance("g"))


def test_incomplete_response_raises():
    reader, writer = _connection(b'{"error": false, "val')
    with patch("asyncio.open_connection", AsyncMock(return_value=(reader, writer))):
        with pytest.raises(OracleError, match="Incomplete response"):
            asyncio.run(ExecutionOracle().call("executeFunction", ["f", "1"]))


def test_connection_refused():
    with patch("asyncio.open_connection", AsyncMock(side_effect=ConnectionRefusedError("refused"))):
        with pytest.raises(OracleError, match="Unable to connect"):
            asyncio.run(ExecutionOracle().call("getFunctionInstance", "f"))


def test_execute_function_unwraps_result_value():
    oracle = ExecutionOracle()
    oracle.call = AsyncMock(return_value={"result": {"type": "number", "value": 4}})
    assert asyncio.run(oracle.execute_function("helper", "2")) == 4
    oracle.call.assert_awaited_once_with("executeFunction", ["helper", "2"])


def test_declared_parameters():
    oracle = ExecutionOracle()
    oracle.call = AsyncMock(return_value={"name": "f", "params": [{"type": "Identifier", "name": "x"}]})
    assert asyncio.run(oracle.declared_parameters("f")) == [{"type": "Identifier", "name": "x"}]


PAYLOAD = {
    "function": {
        "name": "f",
        "statements": [
            {"key": 1, "instruction": "if (x < 0) { y = 1; }"},
            {"key": 2, "instruction": "y = 1;"},
        ],
        "branches": [
            {"key": 1, "kind": "If", "conditions": ["x < 0"], "outcomes": [[1, 0]]},
            {"key": 7, "kind": "ternary", "conditions": ["x"], "outcomes": []},
        ],
    },
    "scope": [{}, {"y": 1}],
    "cfgStatements": [1, 2],
    "result": 1,
}


def test_execution_record_from_payload():
    record = ExecutionRecord.from_payload(json.loads(json.dumps(PAYLOAD)))
    assert record.cfg_statements == ["1", "2"]
    assert record.function.statement("2").instruction == "y = 1;"
    executed = record.function.executed_branches()
    assert [branch.key for branch in executed] == ["1"]
    assert executed[0].kind is BranchKind.IF
    assert record.result == 1
    with pytest.raises(TraceMismatchError):
        record.function.statement("9")


def test_malformed_execution_payload():
    with pytest.raises(OracleError):
        ExecutionRecord.from_payload({"scope": []})
    with pytest.raises(OracleError):
        ExecutionRecord.from_payload({"function": {"branches": [{"key": 1, "kind": "Loop"}]}})


def test_reset_on_close_keeps_the_response():
    reader, writer = _connection(b'{"error": false, "value": 3}')
    writer.wait_closed = AsyncMock(side_effect=ConnectionResetError("reset"))
    with patch("asyncio.open_connection", AsyncMock(return_value=(reader, writer))):
        assert asyncio.run(ExecutionOracle().call("executeFunction", ["g", "1"])) == 3
