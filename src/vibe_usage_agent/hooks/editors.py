"""Pure editors that strip `vibe-usage` hooks out of third-party tool configs.

Each editor takes the full text of a config file and returns a ``HookEdit`` with
the rewritten text and the value to back up, or ``None`` when there is nothing
to remove. Text that cannot be interpreted raises ``HookEditError``. No editor
touches the filesystem.
"""

from __future__ import annotations

import copy
import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from vibe_usage_agent.utils.diagnostics import HookEditError

SESSION_END_EVENT = "SessionEnd"
NOTIFY_SECTION = "notify"

_SECTION_HEADER_PATTERN = re.compile(r"""^\s*\[\[?\s*([A-Za-z0-9_.\-"' ]+?)\s*\]\]?\s*(?:#.*)?$""")


@dataclass(frozen=True)
class HookEdit:
    """Rewritten config text plus the original sub-structure it replaced."""

    new_content: str
    backup_value: Any


def _load_settings(content: str) -> Dict[str, Any]:
    try:
        settings = json.loads(content)
    except json.JSONDecodeError as exc:
        raise HookEditError(f"Invalid JSON settings: {exc}") from exc

    if not isinstance(settings, dict):
        raise HookEditError("Settings document is not a JSON object")
    return settings


def _event_entries(settings: Dict[str, Any], event: str) -> Optional[List[Any]]:
    hooks = settings.get("hooks")
    if not isinstance(hooks, dict):
        return None
    entries = hooks.get(event)
    if not isinstance(entries, list):
        return None
    return entries


def _command_matches(item: Any, marker: str) -> bool:
    if not isinstance(item, dict):
        return False
    command = item.get("command")
    return isinstance(command, str) and marker in command


def line_ending(content: str) -> str:
    return "\r\n" if "\r\n" in content else "\n"


def dump_settings(settings: Dict[str, Any], newline: str = "\n") -> str:
    """Serialize a settings document with sorted keys so rewrites diff cleanly."""
    text = json.dumps(settings, indent=2, sort_keys=True, ensure_ascii=False) + "\n"
    return text if newline == "\n" else text.replace("\n", newline)


def _rewrite_event(content: str, settings: Dict[str, Any], event: str, entries: List[Any]) -> str:
    updated = dict(settings)
    hooks = dict(updated["hooks"])
    hooks[event] = entries
    updated["hooks"] = hooks
    return dump_settings(updated, newline=line_ending(content))


def edit_nested_hook_list(content: str, marker: str, event: str = SESSION_END_EVENT) -> Optional[HookEdit]:
    """Claude Code style: ``hooks.<event>`` entries each holding a ``hooks`` command list.

    Matching commands are dropped from each nested list and an entry whose list
    becomes empty is dropped. Entries in the older flat ``{type, command}`` shape
    are dropped whole when their command matches.
    """
    settings = _load_settings(content)
    entries = _event_entries(settings, event)
    if not entries:
        return None

    original = copy.deepcopy(entries)
    filtered: List[Any] = []
    changed = False

    for entry in entries:
        if isinstance(entry, dict) and isinstance(entry.get("hooks"), list):
            commands = entry["hooks"]
            kept = [command for command in commands if not _command_matches(command, marker)]
            if len(kept) == len(commands):
                filtered.append(entry)
                continue
            changed = True
            if kept:
                filtered.append({**entry, "hooks": kept})
            continue

        if _command_matches(entry, marker):
            changed = True
            continue

        filtered.append(entry)

    if not changed:
        return None

    return HookEdit(new_content=_rewrite_event(content, settings, event, filtered), backup_value=original)


def edit_flat_hook_list(content: str, marker: str, event: str = SESSION_END_EVENT) -> Optional[HookEdit]:
    """Gemini CLI style: ``hooks.<event>`` is a flat list of ``{command}`` objects."""
    settings = _load_settings(content)
    entries = _event_entries(settings, event)
    if not entries:
        return None

    filtered = [entry for entry in entries if not _command_matches(entry, marker)]
    if len(filtered) == len(entries):
        return None

    return HookEdit(new_content=_rewrite_event(content, settings, event, filtered), backup_value=copy.deepcopy(entries))


def section_header_name(line: str) -> Optional[str]:
    """Return the table name when ``line`` is a ``[name]`` or ``[[name]]`` header."""
    match = _SECTION_HEADER_PATTERN.match(line)
    if match is None:
        return None
    return match.group(1)


def edit_section_lines(content: str, marker: str, section: str = NOTIFY_SECTION) -> Optional[HookEdit]:
    """Codex CLI style: drop marker lines inside one bracketed section of a TOML-like file.

    Lines outside the section, including blank lines, keep their exact text
    and order. The backup is the whole original text.
    """
    if marker not in content:
        return None

    result: List[str] = []
    in_section = False
    removed = 0

    for line in content.split("\n"):
        header = section_header_name(line)
        if header is not None:
            in_section = header == section
            result.append(line)
            continue

        if in_section and marker in line:
            removed += 1
            continue

        result.append(line)

    if removed == 0:
        return None

    return HookEdit(new_content="\n".join(result), backup_value=content)
