from __future__ import annotations

import os
import signal
import subprocess
import time
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Sequence

from vibe_usage_agent.utils.diagnostics import ProcessSpawnError, ProcessTimeoutError

DEV_MODE_ENV_VAR = "VIBE_USAGE_DEV"


@dataclass(frozen=True)
class ProcessResult:
    """Captured result of one child process that exited on its own."""

    exit_code: int
    stdout: str
    stderr: str
    duration_seconds: float


def build_child_env(
    executable_path: str,
    base_env: Optional[Mapping[str, str]] = None,
    dev_mode: bool = False,
) -> Dict[str, str]:
    """Return the child environment with the runtime's directory prepended to PATH."""
    env = dict(os.environ if base_env is None else base_env)
    runtime_dir = os.path.dirname(executable_path)
    existing_path = env.get("PATH")
    env["PATH"] = f"{runtime_dir}{os.pathsep}{existing_path}" if existing_path else runtime_dir

    if dev_mode:
        # Tells the CLI to read config.dev.json.
        env[DEV_MODE_ENV_VAR] = "1"

    return env


def _signal_process_group(process: subprocess.Popen, sig: int) -> None:
    """Signal the child and anything it spawned (npx runs node underneath)."""
    if os.name != "posix":
        if sig == signal.SIGTERM:
            process.terminate()
        else:
            process.kill()
        return

    try:
        os.killpg(process.pid, sig)
    except ProcessLookupError:
        pass


def _decode(data: Optional[bytes]) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")


def run_process(
    executable_path: str,
    args: Sequence[str],
    env: Optional[Mapping[str, str]] = None,
    timeout_seconds: float = 120.0,
    terminate_grace_seconds: float = 5.0,
) -> ProcessResult:
    """Run one child process to completion under a hard wall-clock timeout.

    stdout and stderr are captured in full. When the timeout elapses the child
    process group is sent SIGTERM, then SIGKILL if still alive after
    ``terminate_grace_seconds``, and ProcessTimeoutError is raised with any
    output captured so far. Failure to start raises ProcessSpawnError.
    """
    command = [executable_path, *args]
    started = time.monotonic()

    try:
        process = subprocess.Popen(
            command,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            env=dict(env) if env is not None else None,
            start_new_session=os.name == "posix",
        )
    except OSError as exc:
        raise ProcessSpawnError(executable_path, str(exc)) from exc

    with process:
        try:
            stdout_data, stderr_data = process.communicate(timeout=timeout_seconds)
        except subprocess.TimeoutExpired:
            _signal_process_group(process, signal.SIGTERM)
            try:
                stdout_data, stderr_data = process.communicate(timeout=terminate_grace_seconds)
            except subprocess.TimeoutExpired:
                _signal_process_group(process, getattr(signal, "SIGKILL", signal.SIGTERM))
                stdout_data, stderr_data = process.communicate()
            raise ProcessTimeoutError(
                executable_path,
                timeout_seconds,
                stdout=_decode(stdout_data),
                stderr=_decode(stderr_data),
            )

    return ProcessResult(
        exit_code=process.returncode,
        stdout=_decode(stdout_data),
        stderr=_decode(stderr_data),
        duration_seconds=time.monotonic() - started,
    )
