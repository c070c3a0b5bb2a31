from __future__ import annotations

import json
import os
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError


class MarkerState(str, Enum):
    """Classification of the agent-active marker file."""

    ABSENT = "absent"
    ACTIVE = "active"
    STALE = "stale"


class MarkerRecord(BaseModel):
    """Tells the `vibe-usage` CLI that this agent is polling, so it must not re-inject hooks."""

    pid: int = Field(gt=0)
    since: str


class MarkerProbeResult(BaseModel):
    """Result payload from probing the marker file."""

    state: MarkerState
    record: MarkerRecord | None = None
    marker_path: str
    reason: str


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def app_dir(home_dir: Path, app_dir_name: str = ".vibe-usage") -> Path:
    return home_dir / app_dir_name


def marker_path(home_dir: Path, app_dir_name: str = ".vibe-usage", file_name: str = "mac-app-active") -> Path:
    """Return the marker path the CLI checks before re-injecting hooks."""
    return app_dir(home_dir, app_dir_name) / file_name


def write_marker(path: Path, record: MarkerRecord | None = None) -> MarkerRecord:
    """Write the marker unconditionally, replacing any stale one left by a crash."""
    record = record or MarkerRecord(pid=os.getpid(), since=utc_now_iso())
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(record.model_dump_json(indent=2), encoding="utf-8")
    return record


def read_marker(path: Path) -> MarkerRecord | None:
    if not path.exists():
        return None
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
        return MarkerRecord.model_validate(payload)
    except (OSError, json.JSONDecodeError, ValidationError):
        return None


def remove_marker(path: Path) -> bool:
    """Delete the marker; returns whether a file was removed."""
    try:
        path.unlink()
    except FileNotFoundError:
        return False
    return True


def is_process_alive(pid: int) -> bool:
    """Return True when a process id appears to be alive on this host."""
    if pid <= 0:
        return False

    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    except OSError:
        return False

    return True


def probe_marker(path: Path) -> MarkerProbeResult:
    """Classify the marker as absent, active, or stale (left behind by a dead agent)."""
    if not path.exists():
        return MarkerProbeResult(
            state=MarkerState.ABSENT,
            marker_path=str(path),
            reason="Marker file not found.",
        )

    record = read_marker(path)
    if record is None:
        return MarkerProbeResult(
            state=MarkerState.STALE,
            marker_path=str(path),
            reason="Marker file is not a valid marker record.",
        )

    if not is_process_alive(record.pid):
        return MarkerProbeResult(
            state=MarkerState.STALE,
            record=record,
            marker_path=str(path),
            reason=f"Agent process pid={record.pid} is not alive.",
        )

    return MarkerProbeResult(
        state=MarkerState.ACTIVE,
        record=record,
        marker_path=str(path),
        reason="Agent process is alive.",
    )
