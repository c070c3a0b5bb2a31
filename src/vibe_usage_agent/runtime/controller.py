from __future__ import annotations

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Mapping, Optional

from pydantic import BaseModel

from vibe_usage_agent.config.loader import agent_settings_path, load_config
from vibe_usage_agent.config.store import ConfigStore, VibeUsageConfig
from vibe_usage_agent.core.models import AgentConfig
from vibe_usage_agent.hooks.manager import HookLifecycleManager, HookRemovalReport, HookRestoreReport
from vibe_usage_agent.hooks.marker import MarkerProbeResult, probe_marker, write_marker
from vibe_usage_agent.runtime.contracts import SyncOutcome, SyncStatus
from vibe_usage_agent.runtime.coordinator import Execute, Locate, SyncCoordinator
from vibe_usage_agent.runtime.locator import RuntimeLocator
from vibe_usage_agent.runtime.scheduler import SyncScheduler


@dataclass(frozen=True)
class SyncLifecycleEvent:
    """Host-facing sync lifecycle event payload."""

    outcome: SyncOutcome
    finished_at: datetime


class AgentStartReport(BaseModel):
    """What happened during AgentController.start()."""

    marker_probe: MarkerProbeResult
    hook_report: Optional[HookRemovalReport] = None
    configured: bool = False
    syncing: bool = False


class AgentController:
    """Host-agnostic composition of hook suppression and recurring sync.

    ``start()`` writes the marker, strips third-party hooks and, when an API key
    is configured, runs one sync immediately and then on every interval.
    ``shutdown()`` undoes all of it.
    """

    def __init__(
        self,
        home_dir: Optional[Path] = None,
        config: Optional[AgentConfig] = None,
        on_sync_success: Optional[Callable[[SyncLifecycleEvent], None]] = None,
        on_sync_failure: Optional[Callable[[SyncLifecycleEvent], None]] = None,
        locate: Optional[Locate] = None,
        execute: Optional[Execute] = None,
        base_env: Optional[Mapping[str, str]] = None,
    ) -> None:
        self.home_dir = home_dir or Path.home()
        if config is None:
            config = AgentConfig.from_config_dict(load_config(agent_settings_path(self.home_dir)))
        self.config = config
        self.on_sync_success = on_sync_success
        self.on_sync_failure = on_sync_failure

        app_dir_name = config.agent.app_dir_name
        self.store = ConfigStore(self.home_dir, app_dir_name=app_dir_name, dev=config.agent.dev)
        self.coordinator = SyncCoordinator(
            settings=config.sync,
            locate=locate or RuntimeLocator(home_dir=self.home_dir, package=config.sync.package).detect,
            execute=execute,
            dev_mode=config.agent.dev,
            base_env=base_env,
        )
        self.hooks = HookLifecycleManager(self.home_dir, settings=config.hooks, app_dir_name=app_dir_name)
        self.scheduler: Optional[SyncScheduler] = None

        self.sync_status: SyncStatus = SyncStatus.IDLE
        self.last_sync_time: Optional[datetime] = None
        self.last_sync_message: Optional[str] = None
        self.last_outcome: Optional[SyncOutcome] = None
        self._status_lock = threading.Lock()
        self._stop_event = threading.Event()

    @property
    def is_configured(self) -> bool:
        return self.store.is_configured()

    def start(self, run_initial_sync: bool = True, background: bool = True) -> AgentStartReport:
        """Bring the agent up: marker, hook removal, then syncing when configured."""
        self._stop_event.clear()
        marker_file = self.hooks.marker_path
        report = AgentStartReport(marker_probe=probe_marker(marker_file))

        if self.config.hooks.enabled:
            write_marker(marker_file)
            report.hook_report = self.hooks.remove_all()

        report.configured = self.is_configured
        if report.configured and self.config.sync.enabled:
            self.start_syncing(run_initial_sync=run_initial_sync, background=background)
            report.syncing = True

        return report

    def start_syncing(self, run_initial_sync: bool = True, background: bool = True) -> None:
        if self.scheduler is None:
            self.scheduler = SyncScheduler(
                action=self.trigger_sync,
                interval_seconds=self.config.sync.interval_seconds,
                leeway_seconds=self.config.sync.leeway_seconds,
            )
        self.scheduler.start()

        if not run_initial_sync:
            return
        if background:
            threading.Thread(target=self.trigger_sync, name="sync-initial", daemon=True).start()
        else:
            self.trigger_sync()

    def configure(self, api_key: str, api_url: Optional[str] = None) -> VibeUsageConfig:
        """Persist credentials and begin syncing with them."""
        config = self.store.update_credentials(api_key, api_url)
        if self.config.sync.enabled:
            self.start_syncing()
        return config

    def trigger_sync(self) -> Optional[SyncOutcome]:
        """Run one sync and record its status; returns None when one is already in progress."""
        with self._status_lock:
            if self.sync_status == SyncStatus.SYNCING:
                return None
            self.sync_status = SyncStatus.SYNCING

        try:
            outcome = self.coordinator.run_sync()
        except Exception:
            with self._status_lock:
                self.sync_status = SyncStatus.ERROR
            raise

        finished_at = datetime.now(timezone.utc)
        with self._status_lock:
            self.last_outcome = outcome
            self.last_sync_message = outcome.description
            if outcome.ok:
                self.sync_status = SyncStatus.SUCCESS
                self.last_sync_time = finished_at
            else:
                self.sync_status = SyncStatus.ERROR

        event = SyncLifecycleEvent(outcome=outcome, finished_at=finished_at)
        if outcome.ok and self.on_sync_success is not None:
            self.on_sync_success(event)
        elif not outcome.ok and self.on_sync_failure is not None:
            self.on_sync_failure(event)

        return outcome

    def run_forever(self, poll_seconds: float = 0.5) -> None:
        """Block the calling thread until request_stop() is called."""
        while not self._stop_event.wait(poll_seconds):
            pass

    def request_stop(self) -> None:
        self._stop_event.set()

    def shutdown(self) -> Optional[HookRestoreReport]:
        """Stop syncing and hand hooks back to the CLI."""
        self._stop_event.set()
        if self.scheduler is not None:
            self.scheduler.stop()

        if not self.config.hooks.enabled:
            return None

        return self.hooks.restore_all()
