import threading

import pytest

from conftest import posix_only, write_executable
from vibe_usage_agent.core.models import SyncSettings
from vibe_usage_agent.runtime.contracts import SyncFailure, SyncFailureKind, SyncSuccess
from vibe_usage_agent.runtime.coordinator import (
    ALREADY_RUNNING_MESSAGE,
    DEFAULT_COMPLETION_MESSAGE,
    SyncCoordinator,
    classify_sync_result,
)
from vibe_usage_agent.runtime.executor import ProcessResult
from vibe_usage_agent.runtime.locator import RuntimeDescriptor, RuntimeKind, RuntimeLocator
from vibe_usage_agent.utils.diagnostics import ProcessSpawnError, ProcessTimeoutError

BUN = RuntimeDescriptor(executable_path="/fake/bin/bun", kind=RuntimeKind.FAST)


def _result(exit_code: int = 0, stdout: str = "", stderr: str = "") -> ProcessResult:
    return ProcessResult(exit_code=exit_code, stdout=stdout, stderr=stderr, duration_seconds=0.1)


class RecordingExecutor:
    def __init__(self, result=None, error=None):
        self.result = result or _result(stdout="Synced 1 records")
        self.error = error
        self.calls = []

    def __call__(self, executable_path, args, env=None, timeout_seconds=None, terminate_grace_seconds=None):
        self.calls.append(
            {"executable_path": executable_path, "args": list(args), "env": env, "timeout": timeout_seconds}
        )
        if self.error is not None:
            raise self.error
        return self.result


def test_classify_synced_output_is_success():
    outcome = classify_sync_result(_result(stdout="Synced 42 records\n"))

    assert outcome == SyncSuccess(message="Synced 42 records")


def test_classify_no_new_data_is_success():
    outcome = classify_sync_result(_result(stdout="No new usage data."))

    assert isinstance(outcome, SyncSuccess)
    assert outcome.message == "No new usage data."


def test_classify_empty_stdout_uses_generic_message():
    outcome = classify_sync_result(_result(stdout="  \n"))

    assert outcome == SyncSuccess(message=DEFAULT_COMPLETION_MESSAGE)


def test_classify_other_stdout_is_still_success():
    assert classify_sync_result(_result(stdout="done")) == SyncSuccess(message="done")


def test_classify_unauthorized_from_stderr():
    outcome = classify_sync_result(_result(exit_code=1, stderr="UNAUTHORIZED: bad key"))

    assert isinstance(outcome, SyncFailure)
    assert outcome.kind == SyncFailureKind.UNAUTHORIZED


def test_classify_invalid_key_from_stdout():
    outcome = classify_sync_result(_result(exit_code=2, stdout="Error: Invalid API key"))

    assert outcome.kind == SyncFailureKind.UNAUTHORIZED


def test_classify_marker_phrase_ignored_on_success_exit():
    # Exit status wins: a zero exit is never an auth failure.
    outcome = classify_sync_result(_result(exit_code=0, stdout="UNAUTHORIZED mentioned in a log"))

    assert isinstance(outcome, SyncSuccess)


@pytest.mark.parametrize(
    "stdout, stderr, expected",
    [
        ("partial", "network down", "network down"),
        ("partial", "", "partial"),
        ("", "", "Exit code 7"),
    ],
)
def test_classify_process_failure_detail_priority(stdout, stderr, expected):
    outcome = classify_sync_result(_result(exit_code=7, stdout=stdout, stderr=stderr))

    assert outcome == SyncFailure(kind=SyncFailureKind.PROCESS_FAILURE, detail=expected)


def test_run_sync_without_runtime_spawns_nothing():
    executor = RecordingExecutor()
    coordinator = SyncCoordinator(locate=lambda: None, execute=executor)

    outcome = coordinator.run_sync()

    assert outcome == SyncFailure(kind=SyncFailureKind.NO_RUNTIME)
    assert executor.calls == []


def test_run_sync_invokes_runtime_with_sync_args_and_env():
    executor = RecordingExecutor()
    coordinator = SyncCoordinator(
        settings=SyncSettings(timeout_seconds=42),
        locate=lambda: BUN,
        execute=executor,
        dev_mode=True,
        base_env={"PATH": "/usr/bin"},
    )

    outcome = coordinator.run_sync()

    assert outcome == SyncSuccess(message="Synced 1 records")
    assert len(executor.calls) == 1
    call = executor.calls[0]
    assert call["executable_path"] == "/fake/bin/bun"
    assert call["args"] == ["x", "@vibe-cafe/vibe-usage", "sync"]
    assert call["timeout"] == 42
    assert call["env"]["PATH"].startswith("/fake/bin")
    assert call["env"]["VIBE_USAGE_DEV"] == "1"


def test_run_sync_maps_timeout():
    executor = RecordingExecutor(error=ProcessTimeoutError("/fake/bin/bun", 120))
    coordinator = SyncCoordinator(locate=lambda: BUN, execute=executor)

    assert coordinator.run_sync() == SyncFailure(kind=SyncFailureKind.TIMEOUT)


def test_run_sync_maps_spawn_error_to_process_failure():
    executor = RecordingExecutor(error=ProcessSpawnError("/fake/bin/bun", "No such file"))
    coordinator = SyncCoordinator(locate=lambda: BUN, execute=executor)

    outcome = coordinator.run_sync()

    assert outcome.kind == SyncFailureKind.PROCESS_FAILURE
    assert "No such file" in outcome.detail


def test_run_sync_re_resolves_runtime_each_call():
    lookups = []

    def locate():
        lookups.append(1)
        return BUN

    coordinator = SyncCoordinator(locate=locate, execute=RecordingExecutor())
    coordinator.run_sync()
    coordinator.run_sync()

    assert len(lookups) == 2


def test_concurrent_calls_spawn_exactly_one_process():
    entered = threading.Event()
    release = threading.Event()
    spawned = []

    def blocking_execute(executable_path, args, **kwargs):
        spawned.append(args)
        entered.set()
        release.wait(5)
        return _result(stdout="Synced 3 records")

    coordinator = SyncCoordinator(locate=lambda: BUN, execute=blocking_execute)
    first_outcome = []
    first = threading.Thread(target=lambda: first_outcome.append(coordinator.run_sync()))
    first.start()
    assert entered.wait(5)

    extra_outcomes = []
    extras = [threading.Thread(target=lambda: extra_outcomes.append(coordinator.run_sync())) for _ in range(5)]
    for thread in extras:
        thread.start()
    for thread in extras:
        thread.join(5)

    assert coordinator.is_running is True
    release.set()
    first.join(5)

    assert len(spawned) == 1
    assert extra_outcomes == [SyncSuccess(message=ALREADY_RUNNING_MESSAGE)] * 5
    assert first_outcome == [SyncSuccess(message="Synced 3 records")]
    assert coordinator.is_running is False


def test_in_flight_flag_cleared_after_exception():
    def exploding_execute(*args, **kwargs):
        raise RuntimeError("boom")

    coordinator = SyncCoordinator(locate=lambda: BUN, execute=exploding_execute)

    with pytest.raises(RuntimeError):
        coordinator.run_sync()

    assert coordinator.is_running is False


def test_coordinators_do_not_share_in_flight_state():
    release = threading.Event()
    entered = threading.Event()

    def blocking_execute(*args, **kwargs):
        entered.set()
        release.wait(5)
        return _result(stdout="Synced 1 records")

    busy = SyncCoordinator(locate=lambda: BUN, execute=blocking_execute)
    idle = SyncCoordinator(locate=lambda: BUN, execute=RecordingExecutor(result=_result(stdout="Synced 9 records")))

    worker = threading.Thread(target=busy.run_sync)
    worker.start()
    assert entered.wait(5)

    assert idle.run_sync() == SyncSuccess(message="Synced 9 records")

    release.set()
    worker.join(5)


@posix_only
def test_run_sync_end_to_end_with_fake_runtime(tmp_path):
    bin_dir = tmp_path / "bin"
    write_executable(bin_dir, "npx", '#!/bin/sh\necho "Synced 42 records"\n')
    locator = RuntimeLocator(path_env=str(bin_dir), extra_dirs=[])

    coordinator = SyncCoordinator(locate=locator.detect)

    assert coordinator.run_sync() == SyncSuccess(message="Synced 42 records")


@posix_only
def test_run_sync_end_to_end_unauthorized(tmp_path):
    bin_dir = tmp_path / "bin"
    write_executable(bin_dir, "bun", '#!/bin/sh\necho "UNAUTHORIZED: bad key" >&2\nexit 1\n')
    locator = RuntimeLocator(path_env=str(bin_dir), extra_dirs=[])

    outcome = SyncCoordinator(locate=locator.detect).run_sync()

    assert outcome.kind == SyncFailureKind.UNAUTHORIZED


@posix_only
def test_run_sync_end_to_end_timeout(tmp_path):
    bin_dir = tmp_path / "bin"
    write_executable(bin_dir, "bun", "#!/bin/sh\nsleep 30\n")
    locator = RuntimeLocator(path_env=str(bin_dir), extra_dirs=[])
    settings = SyncSettings(timeout_seconds=0.5, terminate_grace_seconds=1.0)

    outcome = SyncCoordinator(settings=settings, locate=locator.detect).run_sync()

    assert outcome == SyncFailure(kind=SyncFailureKind.TIMEOUT)
