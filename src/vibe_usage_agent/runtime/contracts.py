from __future__ import annotations

from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict


class SchedulerState(str, Enum):
    """Lifecycle states for the recurring sync scheduler."""

    STOPPED = "stopped"
    RUNNING = "running"


class SchedulerEvent(str, Enum):
    """Events that drive scheduler state transitions."""

    START = "start"
    STOP = "stop"


class HookState(str, Enum):
    """Per-integration lifecycle of third-party hook suppression."""

    NOT_PATCHED = "not_patched"
    PATCHED = "patched"
    RESTORED = "restored"


class HookEvent(str, Enum):
    """Events that drive hook state transitions."""

    PATCH = "patch"
    RESTORE = "restore"


class SyncStatus(str, Enum):
    """Host-facing status of the most recent sync, used for status display."""

    IDLE = "idle"
    SYNCING = "syncing"
    SUCCESS = "success"
    ERROR = "error"


class SyncFailureKind(str, Enum):
    """Closed set of sync failure classes."""

    NO_RUNTIME = "no_runtime"
    UNAUTHORIZED = "unauthorized"
    PROCESS_FAILURE = "process_failure"
    TIMEOUT = "timeout"


class SyncSuccess(BaseModel):
    """Sync finished, or was coalesced onto an in-flight sync."""

    model_config = ConfigDict(frozen=True)

    status: Literal["success"] = "success"
    message: str

    @property
    def ok(self) -> bool:
        return True

    @property
    def description(self) -> str:
        return self.message


class SyncFailure(BaseModel):
    """Sync failed; the next scheduled tick is the only retry."""

    model_config = ConfigDict(frozen=True)

    status: Literal["failure"] = "failure"
    kind: SyncFailureKind
    detail: Optional[str] = None

    @property
    def ok(self) -> bool:
        return False

    @property
    def description(self) -> str:
        if self.kind == SyncFailureKind.NO_RUNTIME:
            return "Neither Bun nor Node.js (npx) was found; install one to enable syncing"
        if self.kind == SyncFailureKind.UNAUTHORIZED:
            return "API key is invalid; reconfigure it"
        if self.kind == SyncFailureKind.TIMEOUT:
            return "Sync timed out"
        return f"Sync failed: {self.detail}" if self.detail else "Sync failed"


SyncOutcome = Union[SyncSuccess, SyncFailure]


def transition_scheduler_state(current: SchedulerState, event: SchedulerEvent) -> SchedulerState:
    """Compute the next scheduler state.

    START while running and STOP while stopped are rejected; the scheduler
    checks its state first so that its public start/stop stay idempotent.
    """

    if current == SchedulerState.STOPPED:
        if event == SchedulerEvent.START:
            return SchedulerState.RUNNING
        raise ValueError(f"Invalid scheduler transition: {current} -> {event}")

    if current == SchedulerState.RUNNING:
        if event == SchedulerEvent.STOP:
            return SchedulerState.STOPPED
        raise ValueError(f"Invalid scheduler transition: {current} -> {event}")

    raise ValueError(f"Unknown scheduler state: {current}")


def transition_hook_state(current: HookState, event: HookEvent) -> HookState:
    """Compute the next hook state for one integration.

    A fresh PATCH is allowed after RESTORED so a long-lived manager can be
    reused across agent restarts within one process.
    """

    if event == HookEvent.PATCH:
        if current in {HookState.NOT_PATCHED, HookState.RESTORED}:
            return HookState.PATCHED
        raise ValueError(f"Invalid hook transition: {current} -> {event}")

    if event == HookEvent.RESTORE:
        if current == HookState.PATCHED:
            return HookState.RESTORED
        raise ValueError(f"Invalid hook transition: {current} -> {event}")

    raise ValueError(f"Unknown hook event: {event}")
