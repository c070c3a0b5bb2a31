import os
import re
import yaml
from pathlib import Path
from typing import Any, Dict

ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::([^}]+))?\}")

ALLOWED_SECTIONS = {"agent", "sync", "hooks"}

def interpolate_env_vars(content: str) -> str:
    """Replace ${VAR} or ${VAR:default} with environment variables."""
    def replace_match(match: re.Match) -> str:
        var_name = match.group(1)
        default_value = match.group(2) if match.group(2) is not None else ""
        return os.environ.get(var_name, default_value)

    return ENV_VAR_PATTERN.sub(replace_match, content)

def agent_settings_path(home_dir: Path, app_dir_name: str = ".vibe-usage") -> Path:
    """Return the agent's own settings file under the application directory."""
    return home_dir / app_dir_name / "agent.yaml"

def load_config(path: Path) -> Dict[str, Any]:
    """
    Load agent.yaml with environment variable interpolation.

    Only the sections agent, sync and hooks are kept. A missing or unreadable
    file yields an empty dict so the agent always starts on defaults.
    """
    if not path.exists():
        return {}

    try:
        content = path.read_text(encoding="utf-8")
        interpolated_content = interpolate_env_vars(content)
        full_config = yaml.safe_load(interpolated_content) or {}
    except (OSError, UnicodeDecodeError, yaml.YAMLError):
        return {}

    if not isinstance(full_config, dict):
        return {}

    return {k: v for k, v in full_config.items() if k in ALLOWED_SECTIONS and isinstance(v, dict)}
