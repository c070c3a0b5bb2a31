from __future__ import annotations

import threading
from typing import Callable, Mapping, Optional, Sequence

from vibe_usage_agent.core.models import SyncSettings
from vibe_usage_agent.runtime.contracts import (
    SyncFailure,
    SyncFailureKind,
    SyncOutcome,
    SyncSuccess,
)
from vibe_usage_agent.runtime.executor import ProcessResult, build_child_env, run_process
from vibe_usage_agent.runtime.locator import RuntimeDescriptor, RuntimeLocator
from vibe_usage_agent.utils.diagnostics import ProcessSpawnError, ProcessTimeoutError

# Output phrases printed by `vibe-usage sync`. They are the contract between the
# agent and the CLI; change them on both sides together.
SYNC_SUCCESS_MARKERS = ("Synced", "No new usage data")
UNAUTHORIZED_MARKERS = ("Invalid API key", "UNAUTHORIZED")

ALREADY_RUNNING_MESSAGE = "A sync is already running"
DEFAULT_COMPLETION_MESSAGE = "Sync completed"

SYNC_COMMAND = ["sync"]

Locate = Callable[[], Optional[RuntimeDescriptor]]
Execute = Callable[..., ProcessResult]


def classify_sync_result(result: ProcessResult) -> SyncOutcome:
    """Map the CLI's exit status and output onto a SyncOutcome."""
    stdout = result.stdout.strip()
    stderr = result.stderr.strip()

    if result.exit_code == 0:
        if any(marker in stdout for marker in SYNC_SUCCESS_MARKERS):
            return SyncSuccess(message=stdout)
        return SyncSuccess(message=stdout or DEFAULT_COMPLETION_MESSAGE)

    combined = f"{stdout}\n{stderr}"
    if any(marker in combined for marker in UNAUTHORIZED_MARKERS):
        return SyncFailure(kind=SyncFailureKind.UNAUTHORIZED, detail=stderr or stdout or None)

    detail = stderr or stdout or f"Exit code {result.exit_code}"
    return SyncFailure(kind=SyncFailureKind.PROCESS_FAILURE, detail=detail)


class SyncCoordinator:
    """Runs `vibe-usage sync` with single-flight semantics.

    Each instance owns its own in-flight lock, so several coordinators (for
    example under test) never block each other.
    """

    def __init__(
        self,
        settings: Optional[SyncSettings] = None,
        locate: Optional[Locate] = None,
        execute: Optional[Execute] = None,
        dev_mode: bool = False,
        base_env: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.settings = settings or SyncSettings()
        self.locate = locate or RuntimeLocator(package=self.settings.package).detect
        self.execute = execute or run_process
        self.dev_mode = dev_mode
        self.base_env = base_env
        self._in_flight = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._in_flight.locked()

    def run_sync(self) -> SyncOutcome:
        """Run one sync, or coalesce onto the sync already in flight."""
        if not self._in_flight.acquire(blocking=False):
            return SyncSuccess(message=ALREADY_RUNNING_MESSAGE)

        try:
            return self._run_command(SYNC_COMMAND)
        finally:
            self._in_flight.release()

    def _run_command(self, command: Sequence[str]) -> SyncOutcome:
        runtime = self.locate()
        if runtime is None:
            return SyncFailure(kind=SyncFailureKind.NO_RUNTIME)

        env = build_child_env(runtime.executable_path, base_env=self.base_env, dev_mode=self.dev_mode)
        try:
            result = self.execute(
                runtime.executable_path,
                runtime.invocation_args(command),
                env=env,
                timeout_seconds=self.settings.timeout_seconds,
                terminate_grace_seconds=self.settings.terminate_grace_seconds,
            )
        except ProcessTimeoutError:
            return SyncFailure(kind=SyncFailureKind.TIMEOUT)
        except ProcessSpawnError as exc:
            return SyncFailure(kind=SyncFailureKind.PROCESS_FAILURE, detail=str(exc))

        return classify_sync_result(result)
