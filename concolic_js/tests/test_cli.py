# tests/test_cli.py
import json
from unittest.mock import AsyncMock, patch

from .. import cli
from ..core.concolic import InspectResult


def test_inspect_prints_json(capsys):
    result = InspectResult(test_cases=[{"x": 0}], results=[1])
    with patch.object(cli, "inspect_function", AsyncMock(return_value=result)) as inspect:
        code = cli.main(["inspect", "f", "--params", '{"x": {"type": "Int"}}', "--oracle-port", "9001"])
    assert code == 0
    config, name, parameters = inspect.await_args[0]
    assert name == "f"
    assert parameters == {"x": {"type": "Int"}}
    assert config.oracle.port == 9001
    assert json.loads(capsys.readouterr().out) == {"errors": [], "testCases": [{"x": 0}], "results": [1]}


def test_errors_set_exit_code(tmp_path):
    result = InspectResult(errors=["Signature parsing failed"])
    target = tmp_path / "out.json"
    with patch.object(cli, "inspect_function", AsyncMock(return_value=result)):
        code = cli.main(["inspect", "f", "--output", str(target)])
    assert code == 1
    assert json.loads(target.read_text())["errors"] == ["Signature parsing failed"]


def test_invalid_params(capsys):
    assert cli.main(["inspect", "f", "--params", "{not json"]) == 2
    assert "not valid JSON" in capsys.readouterr().err
    assert cli.main(["inspect", "f", "--params", "[1]"]) == 2
