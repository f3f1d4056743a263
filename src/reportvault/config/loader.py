"""Settings loader and singleton manager.

This module handles:
- Environment variable loading from .env files
- Configuration file loading from TOML
- Thread-safe singleton pattern for Settings instance
"""

from __future__ import annotations

import logging
import threading
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

from reportvault.config.models.settings import Settings
from reportvault.shared.constants import ReportCacheConfig
from reportvault.shared.errors import ApplicationError, ErrorCode, ErrorContext

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATHS: tuple[Path, ...] = (
    Path("config/config.toml"),
    Path("config.toml"),
    Path.home() / ReportCacheConfig.DEFAULT_DB_DIR / "config.toml",
)


class SettingsLoader:
    """Thread-safe singleton manager for Settings.

    Uses double-checked locking to keep the common path lock-free.
    """

    _instance: Settings | None = None
    _lock: threading.RLock = threading.RLock()

    def get_config(self) -> Settings:
        """Get the global settings instance, loading it on first use."""
        if self._instance is None:
            with self._lock:
                if self._instance is None:
                    self._instance = load_settings()

        return self._instance

    def reload_config(self, config_path: str | Path | None = None) -> Settings:
        """Reload the global settings instance from disk and environment."""
        with self._lock:
            self._instance = load_settings(config_path)

        return self._instance

    def set_config(self, settings: Settings | None) -> None:
        """Replace the cached instance; ``None`` forces a reload on next access."""
        with self._lock:
            self._instance = settings


def _load_env_file(env_file: Path = Path(".env")) -> None:
    """Load a .env file into the process environment if one exists.

    Existing environment variables win over the file.
    """
    if env_file.exists():
        load_dotenv(env_file, override=False)
        logger.debug("Loaded environment from %s", env_file)


def load_settings(config_path: str | Path | None = None) -> Settings:
    """Load settings from TOML configuration file or environment.

    Args:
        config_path: Optional path to a TOML file. If None, the default
            locations are tried and the environment is used when none exists.

    Returns:
        Settings instance

    Raises:
        ApplicationError: If the file is missing or the values are invalid
    """
    _load_env_file()

    try:
        if config_path:
            return Settings.from_toml_file(config_path)

        for candidate in DEFAULT_CONFIG_PATHS:
            if candidate.exists():
                logger.debug("Loading configuration from %s", candidate)
                return Settings.from_toml_file(candidate)

        return Settings()
    except FileNotFoundError as e:
        raise ApplicationError(
            code=ErrorCode.CONFIG_MISSING,
            message=str(e),
            context=ErrorContext(
                operation="load_settings",
                additional_data={"config_path": str(config_path)},
            ),
            original_error=e,
        ) from e
    except ValidationError as e:
        raise ApplicationError(
            code=ErrorCode.CONFIG_INVALID,
            message=f"Invalid configuration: {e.error_count()} error(s)",
            context=ErrorContext(
                operation="load_settings",
                additional_data={"config_path": str(config_path)},
            ),
            original_error=e,
        ) from e


_loader = SettingsLoader()


def get_config() -> Settings:
    """Get the global settings instance (thread-safe)."""
    return _loader.get_config()


def reload_config(config_path: str | Path | None = None) -> Settings:
    """Reload the global settings instance."""
    return _loader.reload_config(config_path)


def set_config(settings: Settings | None) -> None:
    """Install a settings instance, mainly for tests and the CLI --config option."""
    _loader.set_config(settings)


__all__ = [
    "SettingsLoader",
    "get_config",
    "load_settings",
    "reload_config",
    "set_config",
]
