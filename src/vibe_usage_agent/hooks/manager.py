from __future__ import annotations

import json
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field

from vibe_usage_agent.core.models import HookSettings
from vibe_usage_agent.hooks.editors import (
    HookEdit,
    edit_flat_hook_list,
    edit_nested_hook_list,
    edit_section_lines,
)
from vibe_usage_agent.hooks.marker import app_dir, remove_marker
from vibe_usage_agent.runtime.contracts import HookEvent, HookState, transition_hook_state
from vibe_usage_agent.utils.diagnostics import AgentDiagnostic, HookEditError

HookEditor = Callable[[str, str], Optional[HookEdit]]


@dataclass(frozen=True)
class ToolIntegration:
    """A third-party tool whose config may carry a `vibe-usage` hook."""

    tool_id: str
    relative_path: str
    editor: HookEditor

    def config_path(self, home_dir: Path) -> Path:
        return home_dir / self.relative_path


DEFAULT_INTEGRATIONS: List[ToolIntegration] = [
    ToolIntegration("claude", ".claude/settings.json", edit_nested_hook_list),
    ToolIntegration("codex", ".codex/config.toml", edit_section_lines),
    ToolIntegration("gemini", ".gemini/settings.json", edit_flat_hook_list),
]


class HookRemovalReport(BaseModel):
    """Outcome of one remove_all() pass."""

    backup: Dict[str, Any] = Field(default_factory=dict)
    backup_path: Optional[str] = None
    diagnostics: List[AgentDiagnostic] = Field(default_factory=list)

    @property
    def patched_tools(self) -> List[str]:
        return sorted(self.backup.keys())


class HookRestoreReport(BaseModel):
    """Outcome of one restore_all() pass."""

    restored_tools: List[str] = Field(default_factory=list)
    marker_removed: bool = False
    backup_removed: bool = False
    diagnostics: List[AgentDiagnostic] = Field(default_factory=list)


def atomic_write_text(path: Path, content: str) -> None:
    """Replace ``path`` with ``content`` in one step, keeping its permission bits.

    A symlinked ``path`` is followed so the link itself survives and its target
    receives the new content.
    """
    path = path.resolve()
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=str(path.parent))
    tmp_path = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(content)
        if path.exists():
            os.chmod(tmp_path, path.stat().st_mode & 0o7777)
        os.replace(tmp_path, path)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


class HookLifecycleManager:
    """Removes `vibe-usage` hooks from other tools at startup and hands them back at shutdown.

    Every integration is handled independently: a missing, unparseable or
    unwritable config only produces a diagnostic for that tool. Restoration does
    not replay the backup; it removes the marker so the CLI re-injects its
    current hook definition on its next run.
    """

    def __init__(
        self,
        home_dir: Optional[Path] = None,
        integrations: Optional[List[ToolIntegration]] = None,
        settings: Optional[HookSettings] = None,
        app_dir_name: str = ".vibe-usage",
    ) -> None:
        self.home_dir = home_dir or Path.home()
        self.integrations = list(integrations) if integrations is not None else list(DEFAULT_INTEGRATIONS)
        self.settings = settings or HookSettings()
        self.app_dir = app_dir(self.home_dir, app_dir_name)
        self.states: Dict[str, HookState] = {
            integration.tool_id: HookState.NOT_PATCHED for integration in self.integrations
        }

    @property
    def backup_path(self) -> Path:
        return self.app_dir / self.settings.backup_file

    @property
    def marker_path(self) -> Path:
        return self.app_dir / self.settings.marker_file

    def state_of(self, tool_id: str) -> HookState:
        return self.states[tool_id]

    def remove_all(self) -> HookRemovalReport:
        report = HookRemovalReport()

        for integration in self.integrations:
            backup_value = self._remove_one(integration, report.diagnostics)
            if backup_value is None:
                continue
            report.backup[integration.tool_id] = backup_value
            if self.states[integration.tool_id] != HookState.PATCHED:
                self.states[integration.tool_id] = transition_hook_state(
                    self.states[integration.tool_id], HookEvent.PATCH
                )

        if report.backup:
            try:
                self.app_dir.mkdir(parents=True, exist_ok=True)
                atomic_write_text(self.backup_path, json.dumps(report.backup, indent=2, ensure_ascii=False))
                report.backup_path = str(self.backup_path)
            except OSError as exc:
                report.diagnostics.append(
                    AgentDiagnostic(
                        source="hooks",
                        error_code="BACKUP_WRITE_FAILED",
                        message=str(exc),
                        severity="error",
                        file_path=str(self.backup_path),
                    )
                )

        return report

    def restore_all(self) -> HookRestoreReport:
        report = HookRestoreReport()

        try:
            report.marker_removed = remove_marker(self.marker_path)
        except OSError as exc:
            report.diagnostics.append(self._io_diagnostic("MARKER_REMOVE_FAILED", exc, self.marker_path))

        try:
            self.backup_path.unlink()
            report.backup_removed = True
        except FileNotFoundError:
            pass
        except OSError as exc:
            report.diagnostics.append(self._io_diagnostic("BACKUP_REMOVE_FAILED", exc, self.backup_path))

        for tool_id, state in self.states.items():
            if state == HookState.PATCHED:
                self.states[tool_id] = transition_hook_state(state, HookEvent.RESTORE)
                report.restored_tools.append(tool_id)

        return report

    def load_backup(self) -> Dict[str, Any]:
        """Return the persisted backup, or an empty dict when absent or unreadable."""
        if not self.backup_path.exists():
            return {}
        try:
            payload = json.loads(self.backup_path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return {}
        return payload if isinstance(payload, dict) else {}

    def _remove_one(self, integration: ToolIntegration, diagnostics: List[AgentDiagnostic]) -> Any:
        config_path = integration.config_path(self.home_dir)
        if not config_path.is_file():
            return None

        try:
            # Bytes in, so line endings reach the editor untouched.
            content = config_path.read_bytes().decode("utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            diagnostics.append(self._tool_diagnostic(integration, "CONFIG_READ_FAILED", str(exc), config_path))
            return None

        try:
            edit = integration.editor(content, self.settings.marker)
        except HookEditError as exc:
            diagnostics.append(self._tool_diagnostic(integration, "CONFIG_PARSE_FAILED", str(exc), config_path))
            return None

        if edit is None:
            return None

        try:
            atomic_write_text(config_path, edit.new_content)
        except OSError as exc:
            diagnostics.append(self._tool_diagnostic(integration, "CONFIG_WRITE_FAILED", str(exc), config_path))
            return None

        return edit.backup_value

    @staticmethod
    def _tool_diagnostic(integration: ToolIntegration, code: str, message: str, path: Path) -> AgentDiagnostic:
        return AgentDiagnostic(
            source=integration.tool_id,
            error_code=code,
            message=message,
            severity="warning",
            suggestion="The file was left unchanged.",
            file_path=str(path),
        )

    @staticmethod
    def _io_diagnostic(code: str, exc: OSError, path: Path) -> AgentDiagnostic:
        return AgentDiagnostic(source="hooks", error_code=code, message=str(exc), severity="error", file_path=str(path))
