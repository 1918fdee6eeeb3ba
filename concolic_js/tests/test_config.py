# tests/test_config.py
import pytest

from ..config import EngineConfig, load_config
from ..core.errors import ConfigError
from ..deployment.deploy import build_config, parse_args


def test_defaults_without_file():
    config = load_config()
    assert config.solver.name == "z3"
    assert config.oracle.host == "localhost"
    assert config.oracle.port == 8888


def test_load_yaml(tmp_path):
    path = tmp_path / "engine.yaml"
    path.write_text(
        "solver:\n"
        "  name: cvc4\n"
        "  path: /usr/local/bin/cvc4\n"
        f"  scratch_dir: {tmp_path}\n"
        "oracle:\n"
        "  host: runtime\n"
        "  port: '9000'\n"
    )
    config = load_config(str(path))
    assert config.solver.name == "cvc4"
    assert config.solver.path == "/usr/local/bin/cvc4"
    assert config.solver.scratch_dir == str(tmp_path)
    assert config.oracle.host == "runtime"
    assert config.oracle.port == 9000


def test_invalid_values_are_collected(tmp_path):
    with pytest.raises(ConfigError) as excinfo:
        EngineConfig.from_dict(
            {"solver": {"name": "yices", "scratch_dir": str(tmp_path / "missing")}, "oracle": {"port": "x"}}
        )
    assert len(excinfo.value.messages) == 3


def test_missing_file(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_config(str(tmp_path / "nope.yaml"))


def test_file_must_hold_a_mapping(tmp_path):
    path = tmp_path / "engine.yaml"
    path.write_text("- z3\n")
    with pytest.raises(ConfigError):
        load_config(str(path))


def test_environment_defaults(monkeypatch):
    monkeypatch.setenv("PORT", "6001")
    monkeypatch.setenv("CONCOLIC_SOLVER", "cvc4")
    monkeypatch.setenv("ORACLE_PORT", "7000")
    args = parse_args([])
    assert args.port == 6001
    config = build_config(args)
    assert config.solver.name == "cvc4"
    assert config.oracle.port == 7000


def test_command_line_overrides(monkeypatch):
    monkeypatch.delenv("CONCOLIC_SOLVER", raising=False)
    monkeypatch.delenv("ORACLE_HOST", raising=False)
    args = parse_args(["--solver", "z3-str", "--solver-path", "Z3-str.py", "--oracle-host", "10.0.0.2"])
    config = build_config(args)
    assert config.solver.name == "z3-str"
    assert config.solver.path == "Z3-str.py"
    assert config.oracle.host == "10.0.0.2"
