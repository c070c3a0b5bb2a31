import json
from pathlib import Path

from typer.testing import CliRunner

from conftest import posix_only, write_executable
from vibe_usage_agent.cli.main import app
from vibe_usage_agent.runtime.contracts import SyncFailure, SyncFailureKind, SyncSuccess
from vibe_usage_agent.utils.diagnostics import CLIBridgeError

runner = CliRunner()

VIBE_COMMAND = "npx @vibe-cafe/vibe-usage sync"


def _combined_output(result) -> str:
    return f"{result.stdout}{getattr(result, 'stderr', '')}"


def _seed_claude(home: Path) -> Path:
    path = home / ".claude" / "settings.json"
    path.parent.mkdir(parents=True)
    path.write_text(
        json.dumps(
            {
                "hooks": {
                    "SessionEnd": [
                        {"hooks": [{"type": "command", "command": VIBE_COMMAND}]},
                        {"hooks": [{"type": "command", "command": "echo bye"}]},
                    ]
                }
            }
        )
    )
    return path


def test_help_lists_commands():
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for command in ("run", "sync", "detect", "configure", "status", "hooks", "config"):
        assert command in result.stdout


def test_hooks_remove_show_restore(home_dir: Path):
    claude = _seed_claude(home_dir)

    result = runner.invoke(app, ["--home", str(home_dir), "hooks", "remove"])
    assert result.exit_code == 0
    assert "Removed hooks for: claude" in _combined_output(result)
    assert VIBE_COMMAND not in claude.read_text()

    result = runner.invoke(app, ["--home", str(home_dir), "hooks", "show"])
    assert result.exit_code == 0
    backup = json.loads(result.stdout)
    assert backup["claude"][0]["hooks"][0]["command"] == VIBE_COMMAND

    result = runner.invoke(app, ["--home", str(home_dir), "hooks", "restore"])
    assert result.exit_code == 0
    assert "backup removed: yes" in _combined_output(result)
    assert not (home_dir / ".vibe-usage" / "hooks-backup.json").exists()


def test_hooks_remove_with_nothing_to_do(home_dir: Path):
    result = runner.invoke(app, ["--home", str(home_dir), "hooks", "remove"])
    assert result.exit_code == 0
    assert "No vibe-usage hooks found." in _combined_output(result)


def test_configure_writes_config(home_dir: Path):
    result = runner.invoke(app, ["--home", str(home_dir), "configure", "--api-key", " vbu_abc "])
    assert result.exit_code == 0

    payload = json.loads((home_dir / ".vibe-usage" / "config.json").read_text())
    assert payload["apiKey"] == "vbu_abc"
    assert payload["apiUrl"] == "https://vibecafe.ai"


def test_configure_dev_writes_dev_config(home_dir: Path):
    result = runner.invoke(app, ["--home", str(home_dir), "--dev", "configure", "--api-key", "k"])
    assert result.exit_code == 0

    payload = json.loads((home_dir / ".vibe-usage" / "config.dev.json").read_text())
    assert payload["apiUrl"] == "http://localhost:3000"


def test_status_reports_unconfigured(home_dir: Path):
    result = runner.invoke(app, ["--home", str(home_dir), "status"])
    assert result.exit_code == 0
    output = _combined_output(result)
    assert "Configured" in output
    assert "absent" in output


@posix_only
def test_detect_prefers_bun(home_dir: Path, tmp_path: Path, monkeypatch):
    bin_dir = tmp_path / "bin"
    write_executable(bin_dir, "npx")
    bun = write_executable(bin_dir, "bun")
    monkeypatch.setenv("PATH", str(bin_dir))

    result = runner.invoke(app, ["--home", str(home_dir), "detect"])

    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["kind"] == "bun"
    assert payload["executable_path"] == str(bun)


def test_sync_success_prints_message(home_dir: Path, monkeypatch):
    class FakeCoordinator:
        def __init__(self, settings=None, locate=None, dev_mode=False):
            self.dev_mode = dev_mode

        def run_sync(self):
            return SyncSuccess(message="Synced 3 records")

    monkeypatch.setattr("vibe_usage_agent.cli.main.SyncCoordinator", FakeCoordinator)

    result = runner.invoke(app, ["--home", str(home_dir), "sync"])

    assert result.exit_code == 0
    assert "Synced 3 records" in result.stdout


def test_sync_failure_exits_nonzero(home_dir: Path, monkeypatch):
    class FakeCoordinator:
        def __init__(self, settings=None, locate=None, dev_mode=False):
            pass

        def run_sync(self):
            return SyncFailure(kind=SyncFailureKind.UNAUTHORIZED, detail="Invalid API key")

    monkeypatch.setattr("vibe_usage_agent.cli.main.SyncCoordinator", FakeCoordinator)

    result = runner.invoke(app, ["--home", str(home_dir), "sync"])

    assert result.exit_code == 1
    assert "API key is invalid" in _combined_output(result)


def test_config_get_reports_bridge_errors(home_dir: Path, monkeypatch):
    class FakeBridge:
        def __init__(self, **kwargs):
            pass

        def config_get(self, key):
            raise CLIBridgeError("Neither Bun nor Node.js (npx) was found")

    monkeypatch.setattr("vibe_usage_agent.cli.main.CLIBridge", FakeBridge)

    result = runner.invoke(app, ["--home", str(home_dir), "config", "get", "apiUrl"])

    assert result.exit_code == 1
    assert "Neither Bun nor Node.js" in _combined_output(result)


def test_config_set_passes_through(home_dir: Path, monkeypatch):
    calls = []

    class FakeBridge:
        def __init__(self, **kwargs):
            pass

        def config_set(self, key, value):
            calls.append((key, value))

    monkeypatch.setattr("vibe_usage_agent.cli.main.CLIBridge", FakeBridge)

    result = runner.invoke(app, ["--home", str(home_dir), "config", "set", "apiKey", "vbu_1"])

    assert result.exit_code == 0
    assert calls == [("apiKey", "vbu_1")]


@posix_only
def test_sync_and_config_use_runtime_under_home(home_dir: Path, tmp_path: Path, monkeypatch):
    bun = write_executable(home_dir / ".bun" / "bin", "bun")
    empty_path = tmp_path / "empty-path"
    empty_path.mkdir()
    monkeypatch.setenv("PATH", str(empty_path))
    located = []

    class FakeCoordinator:
        def __init__(self, settings=None, locate=None, dev_mode=False):
            self.locate = locate

        def run_sync(self):
            located.append(self.locate())
            return SyncSuccess(message="Synced 1 records")

    class FakeBridge:
        def __init__(self, locate=None, **kwargs):
            self.locate = locate

        def config_get(self, key):
            located.append(self.locate())
            return "https://vibecafe.ai"

    monkeypatch.setattr("vibe_usage_agent.cli.main.SyncCoordinator", FakeCoordinator)
    monkeypatch.setattr("vibe_usage_agent.cli.main.CLIBridge", FakeBridge)

    assert runner.invoke(app, ["--home", str(home_dir), "sync"]).exit_code == 0
    assert runner.invoke(app, ["--home", str(home_dir), "config", "get", "apiUrl"]).exit_code == 0

    assert [runtime.executable_path for runtime in located] == [str(bun), str(bun)]
