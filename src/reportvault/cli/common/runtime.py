"""Per-command setup shared by every CLI command."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

from rich.console import Console

from reportvault.cli.common.context import CliContext
from reportvault.config import get_config, reload_config
from reportvault.config.models.settings import Settings
from reportvault.services.orchestrator import FetchOrchestrator, build_orchestrator
from reportvault.shared.logging import setup_structured_logger

console = Console()


def configure(context: CliContext) -> Settings:
    """Load settings for this invocation and set up logging."""
    settings = reload_config(context.config_path) if context.config_path else get_config()
    setup_structured_logger(
        "reportvault",
        level=context.get_effective_log_level(settings.logging.level),
        log_file=settings.logging.file,
        use_rich_console=settings.logging.console_output,
    )
    return settings


@contextmanager
def open_orchestrator(settings: Settings) -> Iterator[FetchOrchestrator]:
    """Yield an orchestrator for one command and close it afterwards."""
    orchestrator = build_orchestrator(settings)
    try:
        yield orchestrator
    finally:
        orchestrator.close()


__all__ = ["configure", "console", "open_orchestrator"]
