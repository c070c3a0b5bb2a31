from __future__ import annotations

import json
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

PRODUCTION_API_URL = "https://vibecafe.ai"
DEVELOPMENT_API_URL = "http://localhost:3000"


class VibeUsageConfig(BaseModel):
    """Mirrors the `vibe-usage` CLI's own config.json."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    api_key: Optional[str] = Field(default=None, alias="apiKey")
    api_url: Optional[str] = Field(default=None, alias="apiUrl")
    last_sync: Optional[str] = Field(default=None, alias="lastSync")


def default_api_url(dev: bool = False) -> str:
    return DEVELOPMENT_API_URL if dev else PRODUCTION_API_URL


class ConfigStore:
    """Reads and writes the shared `~/.vibe-usage/config.json` (or config.dev.json)."""

    def __init__(self, home_dir: Path, app_dir_name: str = ".vibe-usage", dev: bool = False) -> None:
        self.config_dir = home_dir / app_dir_name
        self.dev = dev

    @property
    def config_file(self) -> Path:
        file_name = "config.dev.json" if self.dev else "config.json"
        return self.config_dir / file_name

    def load(self) -> Optional[VibeUsageConfig]:
        """Return the parsed config, or None when absent or unreadable."""
        if not self.config_file.exists():
            return None

        try:
            payload = json.loads(self.config_file.read_text(encoding="utf-8"))
            return VibeUsageConfig.model_validate(payload)
        except (OSError, json.JSONDecodeError, ValidationError):
            return None

    def save(self, config: VibeUsageConfig) -> Path:
        self.config_dir.mkdir(parents=True, exist_ok=True)
        payload = config.model_dump(by_alias=True, exclude_none=True)
        self.config_file.write_text(json.dumps(payload, indent=2, sort_keys=True) + "\n", encoding="utf-8")
        return self.config_file

    def update_credentials(self, api_key: str, api_url: Optional[str] = None) -> VibeUsageConfig:
        """Write the only externally-writable fields, preserving everything else."""
        config = self.load() or VibeUsageConfig()
        config = config.model_copy(update={
            "api_key": api_key,
            "api_url": api_url or default_api_url(self.dev),
        })
        self.save(config)
        return config

    def is_configured(self) -> bool:
        config = self.load()
        return config is not None and bool(config.api_key)
