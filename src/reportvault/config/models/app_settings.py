"""Application and logging configuration models."""

from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from reportvault.shared.constants import CLIDefaults

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


class AppSettings(BaseModel):
    """Application-level settings."""

    name: str = Field(default=CLIDefaults.APP_NAME, description="Application name")
    version: str = Field(default=CLIDefaults.VERSION, description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")


class LoggingSettings(BaseModel):
    """Logging configuration.

    Console output goes through rich; ``file`` receives JSON lines.
    """

    level: str = Field(default="INFO", description="Logging level")
    file: str | None = Field(default=None, description="JSON log file path")
    console_output: bool = Field(default=True, description="Use rich console logging")

    @field_validator("level")
    @classmethod
    def _normalize_level(cls, value: str) -> str:
        level = value.upper()
        if level not in _LOG_LEVELS:
            msg = f"level must be one of {', '.join(_LOG_LEVELS)}, got {value!r}"
            raise ValueError(msg)
        return level


__all__ = ["AppSettings", "LoggingSettings"]
