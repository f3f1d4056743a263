"""ReportVault Settings Configuration Model.

Main Settings class that consolidates all configuration domains.
"""

from __future__ import annotations

from pathlib import Path

import toml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from reportvault.config.models.app_settings import AppSettings, LoggingSettings
from reportvault.config.models.cache_settings import CacheSettings
from reportvault.config.models.scheduling_settings import (
    PollingSettings,
    RateLimitSettings,
    SchedulerSettings,
)
from reportvault.config.models.upstream_settings import UpstreamSettings


class Settings(BaseSettings):
    """Unified configuration access.

    Every field can be overridden from the environment, e.g.
    ``REPORTVAULT_UPSTREAM__API_KEY`` or ``REPORTVAULT_CACHE__TTL_SECONDS``.
    """

    model_config = SettingsConfigDict(
        env_prefix="REPORTVAULT_",
        env_nested_delimiter="__",
        env_ignore_empty=True,
        extra="ignore",
    )

    app: AppSettings = Field(default_factory=AppSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    upstream: UpstreamSettings = Field(default_factory=UpstreamSettings)
    scheduler: SchedulerSettings = Field(default_factory=SchedulerSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)
    polling: PollingSettings = Field(default_factory=PollingSettings)

    @classmethod
    def from_toml_file(cls, file_path: str | Path) -> Settings:
        """Load settings from a TOML file; keys the file omits come from the environment."""
        file_path = Path(file_path)
        if not file_path.exists():
            msg = f"Configuration file not found: {file_path}"
            raise FileNotFoundError(msg)

        raw_config = toml.load(file_path)
        return cls(**raw_config)

    def to_toml_file(self, file_path: str | Path) -> None:
        """Save settings to TOML file.

        API keys are written; the file relies on OS permissions.
        """
        file_path = Path(file_path)
        file_path.parent.mkdir(parents=True, exist_ok=True)

        config_dict = self.model_dump(mode="json", exclude_none=True)

        with open(file_path, "w", encoding="utf-8") as f:
            toml.dump(config_dict, f)
