"""Runtime orchestration: runtime lookup, process execution, sync and scheduling."""

from vibe_usage_agent.runtime.contracts import (
	SchedulerState,
	SyncFailure,
	SyncFailureKind,
	SyncOutcome,
	SyncStatus,
	SyncSuccess,
)
from vibe_usage_agent.runtime.controller import AgentController, AgentStartReport, SyncLifecycleEvent
from vibe_usage_agent.runtime.coordinator import SyncCoordinator, classify_sync_result
from vibe_usage_agent.runtime.executor import ProcessResult, build_child_env, run_process
from vibe_usage_agent.runtime.locator import RuntimeDescriptor, RuntimeKind, RuntimeLocator
from vibe_usage_agent.runtime.scheduler import SyncScheduler

__all__ = [
	"AgentController",
	"AgentStartReport",
	"ProcessResult",
	"RuntimeDescriptor",
	"RuntimeKind",
	"RuntimeLocator",
	"SchedulerState",
	"SyncCoordinator",
	"SyncFailure",
	"SyncFailureKind",
	"SyncLifecycleEvent",
	"SyncOutcome",
	"SyncScheduler",
	"SyncStatus",
	"SyncSuccess",
	"build_child_env",
	"classify_sync_result",
	"run_process",
]
