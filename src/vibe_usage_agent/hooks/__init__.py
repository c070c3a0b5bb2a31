"""Third-party hook suppression and the agent-active marker."""

from vibe_usage_agent.hooks.editors import HookEdit, edit_flat_hook_list, edit_nested_hook_list, edit_section_lines
from vibe_usage_agent.hooks.manager import (
	DEFAULT_INTEGRATIONS,
	HookLifecycleManager,
	HookRemovalReport,
	HookRestoreReport,
	ToolIntegration,
)
from vibe_usage_agent.hooks.marker import MarkerRecord, MarkerState, probe_marker

__all__ = [
	"DEFAULT_INTEGRATIONS",
	"HookEdit",
	"HookLifecycleManager",
	"HookRemovalReport",
	"HookRestoreReport",
	"MarkerRecord",
	"MarkerState",
	"ToolIntegration",
	"edit_flat_hook_list",
	"edit_nested_hook_list",
	"edit_section_lines",
	"probe_marker",
]
