"""
CLI Configuration Constants

Default values, exit codes and message templates for the command-line
interface.
"""


class CLIDefaults:
    """CLI default values."""

    VERSION = "0.1.0"
    APP_NAME = "reportvault"

    DEFAULT_JSON = False
    DEFAULT_VERBOSE = 0

    EXIT_SUCCESS = 0
    EXIT_ERROR = 1
    EXIT_INVALID_ARGUMENTS = 2
    EXIT_INTERRUPTED = 130


class CLIMessages:
    """CLI message templates."""

    class Error:
        """Error message templates."""

        VALIDATION_ERROR = "Validation error: "
        APPLICATION_ERROR = "Application error: "
        INFRASTRUCTURE_ERROR = "Infrastructure error: "
        UNEXPECTED_ERROR = "Unexpected error: "
        NO_ITEMS = "No items given. Use kind:id, e.g. campaign:abc123"

    class Success:
        """Success message templates."""

        CACHE_CLEARED = "[green]Cache cleared[/green]"
        CACHE_CLEARED_TIMEFRAME = "[green]Cache cleared for timeframe '{timeframe}'[/green]"
        RATE_LIMITS_CLEARED = "[green]Rate limits cleared[/green]"

    class Info:
        """Info message templates."""

        NO_CACHED_REPORTS = "No cached reports"
        NO_RATE_LIMITS = "No active rate limits"
        WATCHING = "[blue]Waiting for {count} pending items...[/blue]"
        APPLICATION_INTERRUPTED = "Interrupted by user"
