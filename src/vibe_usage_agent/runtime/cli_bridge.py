from __future__ import annotations

from typing import List, Mapping, Optional, Sequence

from vibe_usage_agent.core.models import DEFAULT_PACKAGE
from vibe_usage_agent.runtime.coordinator import Execute, Locate
from vibe_usage_agent.runtime.executor import build_child_env, run_process
from vibe_usage_agent.runtime.locator import RuntimeLocator
from vibe_usage_agent.utils.diagnostics import CLIBridgeError, ProcessSpawnError, ProcessTimeoutError

CONFIG_COMMAND_TIMEOUT_SECONDS = 30.0


class CLIBridge:
    """Passes config reads and writes through to the `vibe-usage` CLI.

    The agent only ever reads the CLI's config.json directly; writes go through
    the CLI so its validation and file format stay authoritative.
    """

    def __init__(
        self,
        locate: Optional[Locate] = None,
        execute: Optional[Execute] = None,
        package: str = DEFAULT_PACKAGE,
        dev_mode: bool = False,
        base_env: Optional[Mapping[str, str]] = None,
        timeout_seconds: float = CONFIG_COMMAND_TIMEOUT_SECONDS,
    ) -> None:
        self.locate = locate or RuntimeLocator(package=package).detect
        self.execute = execute or run_process
        self.dev_mode = dev_mode
        self.base_env = base_env
        self.timeout_seconds = timeout_seconds

    def config_set(self, key: str, value: str) -> None:
        self.run(["config", "set", key, value])

    def config_get(self, key: str) -> Optional[str]:
        output = self.run(["config", "get", key]).strip()
        return output or None

    def run(self, args: Sequence[str]) -> str:
        """Run `vibe-usage <args>` and return stdout; raises CLIBridgeError on any failure."""
        runtime = self.locate()
        if runtime is None:
            raise CLIBridgeError("Neither Bun nor Node.js (npx) was found")

        command: List[str] = runtime.invocation_args(args)
        env = build_child_env(runtime.executable_path, base_env=self.base_env, dev_mode=self.dev_mode)
        try:
            result = self.execute(
                runtime.executable_path,
                command,
                env=env,
                timeout_seconds=self.timeout_seconds,
            )
        except ProcessTimeoutError as exc:
            raise CLIBridgeError("CLI command timed out") from exc
        except ProcessSpawnError as exc:
            raise CLIBridgeError(str(exc)) from exc

        if result.exit_code != 0:
            stderr = result.stderr.strip()
            raise CLIBridgeError(stderr or f"Exit code {result.exit_code}")

        return result.stdout
