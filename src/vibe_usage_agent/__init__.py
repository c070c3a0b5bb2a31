"""Background agent that keeps vibe-usage in sync and silences its duplicate session hooks."""

from vibe_usage_agent.core.models import AgentConfig, HookSettings, SyncSettings
from vibe_usage_agent.runtime import (
	AgentController,
	RuntimeDescriptor,
	RuntimeKind,
	RuntimeLocator,
	SyncCoordinator,
	SyncFailure,
	SyncFailureKind,
	SyncScheduler,
	SyncSuccess,
)
from vibe_usage_agent.hooks import HookLifecycleManager

__version__ = "0.1.0"

__all__ = [
	"AgentConfig",
	"AgentController",
	"HookLifecycleManager",
	"HookSettings",
	"RuntimeDescriptor",
	"RuntimeKind",
	"RuntimeLocator",
	"SyncCoordinator",
	"SyncFailure",
	"SyncFailureKind",
	"SyncScheduler",
	"SyncSettings",
	"SyncSuccess",
]
