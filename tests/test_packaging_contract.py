import tomllib
from pathlib import Path


def _pyproject():
    pyproject_path = Path(__file__).resolve().parents[1] / "pyproject.toml"
    return tomllib.loads(pyproject_path.read_text(encoding="utf-8"))


def test_pyproject_declares_pytest_as_test_extra():
    payload = _pyproject()

    pytest_dep = payload["tool"]["poetry"]["dependencies"]["pytest"]
    assert isinstance(pytest_dep, dict)
    assert pytest_dep["optional"] is True
    assert "pytest" in payload["tool"]["poetry"]["extras"]["test"]


def test_pyproject_exposes_cli_entry_point():
    payload = _pyproject()

    assert payload["tool"]["poetry"]["scripts"]["vibe-usage-agent"] == "vibe_usage_agent.cli.main:app"
