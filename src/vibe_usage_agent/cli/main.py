import signal
import typer
from pathlib import Path
from typing import Optional

from vibe_usage_agent.cli.formatter import OutputFormatter
from vibe_usage_agent.config.loader import agent_settings_path, load_config
from vibe_usage_agent.config.store import ConfigStore
from vibe_usage_agent.core.models import AgentConfig
from vibe_usage_agent.hooks.manager import HookLifecycleManager
from vibe_usage_agent.hooks.marker import MarkerState, probe_marker
from vibe_usage_agent.runtime.cli_bridge import CLIBridge
from vibe_usage_agent.runtime.controller import AgentController, SyncLifecycleEvent
from vibe_usage_agent.runtime.coordinator import SyncCoordinator
from vibe_usage_agent.runtime.locator import RuntimeLocator
from vibe_usage_agent.utils.diagnostics import CLIBridgeError

app = typer.Typer(name="vibe-usage-agent", help="vibe-usage background sync agent", rich_markup_mode=None)
hooks_app = typer.Typer(help="Inspect and manage third-party vibe-usage hooks.")
config_app = typer.Typer(help="Read and write vibe-usage CLI config through the CLI.")
app.add_typer(hooks_app, name="hooks")
app.add_typer(config_app, name="config")


def _load_agent_config(home_dir: Path, dev: bool) -> AgentConfig:
    config = AgentConfig.from_config_dict(load_config(agent_settings_path(home_dir)))
    if dev and not config.agent.dev:
        config = config.model_copy(update={"agent": config.agent.model_copy(update={"dev": True})})
    return config


def _home(ctx: typer.Context) -> Path:
    return ctx.obj["home"]


def _config(ctx: typer.Context) -> AgentConfig:
    return ctx.obj["config"]


def _hook_manager(ctx: typer.Context) -> HookLifecycleManager:
    config = _config(ctx)
    return HookLifecycleManager(_home(ctx), settings=config.hooks, app_dir_name=config.agent.app_dir_name)


def _locator(ctx: typer.Context) -> RuntimeLocator:
    return RuntimeLocator(home_dir=_home(ctx), package=_config(ctx).sync.package)


@app.callback()
def main(
    ctx: typer.Context,
    home: Optional[Path] = typer.Option(None, "--home", help="Home directory holding tool configs (defaults to ~)."),
    dev: bool = typer.Option(False, "--dev", help="Use config.dev.json and tell the CLI to do the same."),
):
    """
    Keep vibe-usage usage data in sync while suppressing its per-session hooks.
    """
    home_dir = (home or Path.home()).expanduser()
    ctx.obj = {"home": home_dir, "config": _load_agent_config(home_dir, dev)}


@app.command()
def run(
    ctx: typer.Context,
    interval: Optional[float] = typer.Option(None, "--interval", min=1.0, help="Seconds between syncs."),
    no_hooks: bool = typer.Option(False, "--no-hooks", help="Leave third-party hooks untouched."),
):
    """
    Run the agent in the foreground until interrupted.
    """
    config = _config(ctx)
    if interval is not None:
        config = config.model_copy(update={"sync": config.sync.model_copy(update={"interval_seconds": interval})})
    if no_hooks:
        config = config.model_copy(update={"hooks": config.hooks.model_copy(update={"enabled": False})})

    def on_success(event: SyncLifecycleEvent) -> None:
        OutputFormatter.log_outcome(event.outcome)

    def on_failure(event: SyncLifecycleEvent) -> None:
        OutputFormatter.log_outcome(event.outcome)

    controller = AgentController(
        _home(ctx),
        config=config,
        on_sync_success=on_success,
        on_sync_failure=on_failure,
    )

    signal.signal(signal.SIGTERM, lambda signum, frame: controller.request_stop())

    try:
        report = controller.start()
        if report.marker_probe.state == MarkerState.STALE:
            OutputFormatter.log(f"Replaced stale marker: {report.marker_probe.reason}", severity="warning")
        if report.hook_report is not None:
            if report.hook_report.patched_tools:
                OutputFormatter.log(
                    f"Suppressed vibe-usage hooks for: {', '.join(report.hook_report.patched_tools)}",
                    severity="info",
                )
            OutputFormatter.print_diagnostics(report.hook_report.diagnostics)

        if not report.configured:
            OutputFormatter.log(
                "No API key configured; run 'vibe-usage-agent configure --api-key ...' to start syncing.",
                severity="warning",
            )
        else:
            OutputFormatter.log(
                f"Syncing every {config.sync.interval_seconds:g}s. Press Ctrl+C to stop.",
                severity="info",
            )

        controller.run_forever()
    except KeyboardInterrupt:
        pass
    finally:
        restore_report = controller.shutdown()
        if restore_report is not None:
            OutputFormatter.print_diagnostics(restore_report.diagnostics)
        OutputFormatter.log("Agent stopped; vibe-usage hooks will be re-injected by the CLI.", severity="info")


@app.command()
def sync(ctx: typer.Context):
    """
    Run a single sync now and report the outcome.
    """
    config = _config(ctx)
    coordinator = SyncCoordinator(settings=config.sync, locate=_locator(ctx).detect, dev_mode=config.agent.dev)
    outcome = coordinator.run_sync()

    if outcome.ok:
        OutputFormatter.print_data(outcome.description)
        return

    OutputFormatter.log_outcome(outcome)
    raise typer.Exit(code=1)


@app.command()
def detect(ctx: typer.Context):
    """
    Show which JavaScript runtime would be used for syncing.
    """
    runtime = _locator(ctx).detect()
    if runtime is None:
        OutputFormatter.log("Neither Bun nor Node.js (npx) was found. Install one of them first.", severity="error")
        raise typer.Exit(code=1)

    OutputFormatter.print_data(runtime)


@app.command()
def configure(
    ctx: typer.Context,
    api_key: str = typer.Option(..., "--api-key", help="vibecafe.ai API key."),
    api_url: Optional[str] = typer.Option(None, "--api-url", help="Override the API base URL."),
):
    """
    Store the API key (and optional API URL) in the vibe-usage config file.
    """
    config = _config(ctx)
    store = ConfigStore(_home(ctx), app_dir_name=config.agent.app_dir_name, dev=config.agent.dev)
    saved = store.update_credentials(api_key.strip(), api_url)
    OutputFormatter.log(f"Saved credentials for {saved.api_url} to {store.config_file}", severity="success")


@app.command()
def status(ctx: typer.Context):
    """
    Show agent, config and hook status.
    """
    config = _config(ctx)
    manager = _hook_manager(ctx)
    store = ConfigStore(_home(ctx), app_dir_name=config.agent.app_dir_name, dev=config.agent.dev)
    runtime = _locator(ctx).detect()
    marker = probe_marker(manager.marker_path)
    loaded = store.load()
    backup = manager.load_backup()

    OutputFormatter.print_status(
        {
            "Agent": f"{marker.state.value} ({marker.reason})",
            "Configured": "yes" if store.is_configured() else "no",
            "API URL": (loaded.api_url if loaded and loaded.api_url else "-"),
            "Last sync": (loaded.last_sync if loaded and loaded.last_sync else "-"),
            "Runtime": f"{runtime.kind.value} at {runtime.executable_path}" if runtime else "not found",
            "Suppressed hooks": ", ".join(sorted(backup)) or "-",
        }
    )


@hooks_app.command("remove")
def hooks_remove(ctx: typer.Context):
    """
    Remove vibe-usage hooks from Claude Code, Codex and Gemini configs.
    """
    report = _hook_manager(ctx).remove_all()
    OutputFormatter.print_diagnostics(report.diagnostics)
    if report.patched_tools:
        OutputFormatter.log(f"Removed hooks for: {', '.join(report.patched_tools)}", severity="success")
    else:
        OutputFormatter.log("No vibe-usage hooks found.", severity="info")


@hooks_app.command("restore")
def hooks_restore(ctx: typer.Context):
    """
    Remove the marker and backup so the CLI re-injects its hooks on next run.
    """
    report = _hook_manager(ctx).restore_all()
    OutputFormatter.print_diagnostics(report.diagnostics)
    OutputFormatter.log(
        f"Marker removed: {'yes' if report.marker_removed else 'no'}; "
        f"backup removed: {'yes' if report.backup_removed else 'no'}.",
        severity="info",
    )


@hooks_app.command("show")
def hooks_show(ctx: typer.Context):
    """
    Print the backup of hooks removed at the last startup.
    """
    OutputFormatter.print_data(_hook_manager(ctx).load_backup())


@config_app.command("get")
def config_get(ctx: typer.Context, key: str = typer.Argument(..., help="Config key, e.g. apiUrl.")):
    """
    Read a value with `vibe-usage config get`.
    """
    bridge = CLIBridge(locate=_locator(ctx).detect, package=_config(ctx).sync.package, dev_mode=_config(ctx).agent.dev)
    try:
        value = bridge.config_get(key)
    except CLIBridgeError as exc:
        OutputFormatter.log(str(exc), severity="error")
        raise typer.Exit(code=1)

    if value is None:
        raise typer.Exit(code=1)
    OutputFormatter.print_data(value)


@config_app.command("set")
def config_set(
    ctx: typer.Context,
    key: str = typer.Argument(..., help="Config key, e.g. apiKey."),
    value: str = typer.Argument(..., help="New value."),
):
    """
    Write a value with `vibe-usage config set`.
    """
    bridge = CLIBridge(locate=_locator(ctx).detect, package=_config(ctx).sync.package, dev_mode=_config(ctx).agent.dev)
    try:
        bridge.config_set(key, value)
    except CLIBridgeError as exc:
        OutputFormatter.log(str(exc), severity="error")
        raise typer.Exit(code=1)
    OutputFormatter.log(f"Set {key}.", severity="success")


if __name__ == "__main__":
    app()
