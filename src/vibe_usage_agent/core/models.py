from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_PACKAGE = "@vibe-cafe/vibe-usage"
DEFAULT_HOOK_MARKER = "vibe-usage"


class AgentSettings(BaseSettings):
    """
    Agent-level settings (the 'agent' section in agent.yaml).
    """
    model_config = SettingsConfigDict(env_prefix='VIBE_USAGE_AGENT_', extra='ignore')

    dev: bool = False
    app_dir_name: str = ".vibe-usage"


class SyncSettings(BaseModel):
    """
    Recurring sync settings (the 'sync' section in agent.yaml).
    """
    model_config = ConfigDict(extra='ignore')

    enabled: bool = True
    interval_seconds: float = Field(default=300.0, gt=0)
    leeway_seconds: float = Field(default=10.0, ge=0)
    timeout_seconds: float = Field(default=120.0, gt=0)
    terminate_grace_seconds: float = Field(default=5.0, ge=0)
    package: str = DEFAULT_PACKAGE


class HookSettings(BaseModel):
    """
    Third-party hook suppression settings (the 'hooks' section in agent.yaml).
    """
    model_config = ConfigDict(extra='ignore')

    enabled: bool = True
    marker: str = DEFAULT_HOOK_MARKER
    marker_file: str = "mac-app-active"
    backup_file: str = "hooks-backup.json"


class AgentConfig(BaseModel):
    """Aggregated agent configuration seeded from a loaded agent.yaml dict."""

    agent: AgentSettings = Field(default_factory=AgentSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    hooks: HookSettings = Field(default_factory=HookSettings)

    @classmethod
    def from_config_dict(cls, config_dict: Optional[Dict[str, Any]] = None, **overrides: Any) -> "AgentConfig":
        config_dict = config_dict or {}
        data: Dict[str, Any] = {
            'agent': AgentSettings(**config_dict.get('agent', {})),
            'sync': SyncSettings(**config_dict.get('sync', {})),
            'hooks': HookSettings(**config_dict.get('hooks', {})),
        }
        data.update(overrides)
        return cls(**data)
