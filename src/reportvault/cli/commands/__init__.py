"""CLI command handlers."""

from .cache import (
    cache_clear_command,
    cache_list_command,
    cache_stats_command,
    cache_timeframes_command,
)
from .fetch import fetch_command
from .poll import poll_command
from .rate_limits import rate_limits_clear_command, rate_limits_show_command

__all__ = [
    "cache_clear_command",
    "cache_list_command",
    "cache_stats_command",
    "cache_timeframes_command",
    "fetch_command",
    "poll_command",
    "rate_limits_clear_command",
    "rate_limits_show_command",
]
