"""ReportVault Error Handling Module

This module defines the error handling system for ReportVault, providing
structured error classes with context information.

The error hierarchy follows these principles:
- One Source of Truth: All error codes are defined in ErrorCode enum
- Structured Context: ErrorContext carries primitive-only debugging data
- Partial Progress: upstream errors carry the records fetched before failing
- Proper Exception Chaining: Original exceptions are preserved
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Union

if TYPE_CHECKING:
    from reportvault.core.models import ReportRecord

# Type alias for primitive context values (str, int, float, bool only)
PrimitiveContextValue = Union[str, int, float, bool]

# Default keys to mask in safe_dict
SAFE_DICT_MASK_KEYS: tuple[str, ...] = ("api_key",)


class ErrorCode(str, Enum):
    """Error codes for ReportVault.

    This enum serves as the single source of truth for all error codes
    used throughout the application.
    """

    # Upstream API Errors
    NETWORK_ERROR = "NETWORK_ERROR"
    API_RATE_LIMIT = "API_RATE_LIMIT"
    API_AUTHENTICATION_FAILED = "API_AUTHENTICATION_FAILED"
    API_REQUEST_FAILED = "API_REQUEST_FAILED"
    API_TIMEOUT = "API_TIMEOUT"
    API_SERVER_ERROR = "API_SERVER_ERROR"
    API_INVALID_RESPONSE = "API_INVALID_RESPONSE"

    # Item Errors
    INVALID_ITEM = "INVALID_ITEM"

    # Validation Errors
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Cache Errors
    CACHE_UNAVAILABLE = "CACHE_UNAVAILABLE"
    CACHE_READ_FAILED = "CACHE_READ_FAILED"
    CACHE_WRITE_FAILED = "CACHE_WRITE_FAILED"
    CACHE_CORRUPTED = "CACHE_CORRUPTED"

    # Configuration Errors
    CONFIG_MISSING = "CONFIG_MISSING"
    CONFIG_INVALID = "CONFIG_INVALID"

    # Orchestration Errors
    ORCHESTRATOR_FAILED = "ORCHESTRATOR_FAILED"
    SCHEDULER_FAILED = "SCHEDULER_FAILED"

    # CLI Errors
    CLI_INVALID_ARGUMENTS = "CLI_INVALID_ARGUMENTS"
    CLI_UNEXPECTED_ERROR = "CLI_UNEXPECTED_ERROR"


def _coerce_primitives(value: Any | None) -> dict[str, PrimitiveContextValue] | None:
    """Coerce additional_data values to primitives.

    Converts Path, Enum, Decimal to primitive types.

    Args:
        value: Input dictionary or None

    Returns:
        Dictionary with primitive values only, or None

    Raises:
        TypeError: If value is not a dict or contains unconvertible types
    """
    if value is None:
        return None

    if not isinstance(value, dict):
        error_msg = f"additional_data must be dict, got {type(value).__name__}"
        raise TypeError(error_msg)

    coerced: dict[str, PrimitiveContextValue] = {}
    for key, val in value.items():
        if isinstance(val, (str, int, float, bool)):
            coerced[key] = val
        elif isinstance(val, Path):
            coerced[key] = str(val)
        elif isinstance(val, Enum):
            coerced[key] = val.value
        elif isinstance(val, Decimal):
            coerced[key] = float(val)
        else:
            error_msg = (
                f"Cannot coerce {type(val).__name__} to primitive type. "
                f"Only str, int, float, bool, Path, Enum, Decimal are allowed."
            )
            raise TypeError(error_msg)

    return coerced


@dataclass(frozen=True)
class ErrorContextModel:
    """Context information for errors.

    Only primitive types (str, int, float, bool) are allowed in
    additional_data so contexts serialize safely into structured logs.

    Attributes:
        operation: Optional operation name that caused the error
        item_id: Optional item identifier the error relates to
        timeframe: Optional timeframe the error relates to
        additional_data: Optional dict with primitive values only
    """

    operation: str | None = None
    item_id: str | None = None
    timeframe: str | None = None
    additional_data: dict[str, PrimitiveContextValue] | None = None

    def __post_init__(self) -> None:
        """Post-initialization validation and coercion."""
        if self.additional_data is not None:
            coerced = _coerce_primitives(self.additional_data)
            object.__setattr__(self, "additional_data", coerced)

    def safe_dict(self, *, mask_keys: tuple[str, ...] | None = None) -> dict[str, Any]:
        """Export context as dict with sensitive keys removed.

        Args:
            mask_keys: additional_data keys to exclude. Defaults to SAFE_DICT_MASK_KEYS.

        Returns:
            Dictionary with a guaranteed additional_data key.

        Example:
            >>> context = ErrorContextModel(operation="fetch", additional_data={"api_key": "x"})
            >>> context.safe_dict()
            {'operation': 'fetch', 'additional_data': {}}
        """
        if mask_keys is None:
            mask_keys = SAFE_DICT_MASK_KEYS

        data: dict[str, Any] = {}
        if self.operation is not None:
            data["operation"] = self.operation
        if self.item_id is not None:
            data["item_id"] = self.item_id
        if self.timeframe is not None:
            data["timeframe"] = self.timeframe

        additional = self.additional_data or {}
        data["additional_data"] = {
            key: val for key, val in additional.items() if key not in mask_keys
        }
        return data


ErrorContext = ErrorContextModel


class ReportVaultError(Exception):
    """Base exception class for all ReportVault errors."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
    ) -> None:
        """Initialize ReportVaultError.

        Args:
            code: Error code from ErrorCode enum
            message: Human-readable error message
            context: Additional context information
            original_error: Original exception that caused this error
        """
        self.code = code
        self.message = message
        self.context = context or ErrorContext()
        self.original_error = original_error
        super().__init__(f"{code.value}: {message}")

    def __str__(self) -> str:
        """Return string representation of the error."""
        return f"{self.code.value}: {self.message}"

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging.

        Returns:
            Dictionary with code, message, masked context and original_error
        """
        return {
            "code": self.code.value,
            "message": self.message,
            "context": self.context.safe_dict(),
            "original_error": str(self.original_error) if self.original_error else None,
        }


class DomainError(ReportVaultError):
    """Domain-specific errors.

    These errors occur when business rules are violated, such as a
    malformed item identifier or an unknown item kind.
    """


class InfrastructureError(ReportVaultError):
    """Infrastructure-related errors.

    These errors occur when interacting with external systems
    like the cache database or the upstream reporting API.
    """


class ApplicationError(ReportVaultError):
    """Application-level errors.

    These errors occur at the application layer, typically
    related to configuration, command handling, or application flow.
    """


class UpstreamError(InfrastructureError):
    """Base class for failures reported by the upstream reporting API.

    Upstream calls are batched, so a failure can happen after some items in
    the batch were already fetched. Those records travel with the error in
    ``partial_records`` so the caller never loses completed work.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
        partial_records: Iterable[ReportRecord] | None = None,
    ) -> None:
        super().__init__(code, message, context, original_error)
        self.partial_records: list[ReportRecord] = list(partial_records or [])


class RateLimitError(UpstreamError):
    """Upstream answered 429 Too Many Requests.

    Attributes:
        retry_after: Seconds the upstream asked us to wait, if it said so
    """

    def __init__(
        self,
        message: str = "Upstream rate limit exceeded",
        retry_after: float | None = None,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
        partial_records: Iterable[ReportRecord] | None = None,
    ) -> None:
        super().__init__(
            ErrorCode.API_RATE_LIMIT,
            message,
            context,
            original_error,
            partial_records,
        )
        self.retry_after = retry_after


class TransientError(UpstreamError):
    """Timeout, connection failure or 5xx; safe to retry later."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.API_REQUEST_FAILED,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
        partial_records: Iterable[ReportRecord] | None = None,
    ) -> None:
        super().__init__(code, message, context, original_error, partial_records)


class InvalidItemError(DomainError):
    """One or more items are malformed or unknown to the upstream.

    Invalid items are dropped with a warning and never retried.

    Attributes:
        item_ids: Identifiers rejected
        partial_records: Records fetched for the other items of the batch
    """

    def __init__(
        self,
        message: str,
        item_ids: Iterable[str] = (),
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
        partial_records: Iterable[ReportRecord] | None = None,
    ) -> None:
        super().__init__(ErrorCode.INVALID_ITEM, message, context, original_error)
        self.item_ids: list[str] = list(item_ids)
        self.partial_records: list[ReportRecord] = list(partial_records or [])


class CacheUnavailableError(InfrastructureError):
    """The report cache could not be read or written."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.CACHE_UNAVAILABLE,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(code, message, context, original_error)


class OrchestratorError(ApplicationError):
    """The fetch orchestrator itself could not run.

    This is the only error a fetch surfaces to its caller; per-item faults
    are reported through the result's id lists instead.
    """

    def __init__(
        self,
        message: str,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
    ) -> None:
        super().__init__(ErrorCode.ORCHESTRATOR_FAILED, message, context, original_error)


class CliError(ApplicationError):
    """CLI-specific error with an exit code."""

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        context: ErrorContext | None = None,
        original_error: Exception | None = None,
        command: str | None = None,
        exit_code: int = 1,
    ):
        super().__init__(code, message, context, original_error)
        self.command = command
        self.exit_code = exit_code


def create_cli_error(
    message: str,
    command: str | None = None,
    operation: str | None = None,
    original_error: Exception | None = None,
    exit_code: int = 1,
) -> CliError:
    """Create a CLI error with context."""
    additional_data: dict[str, PrimitiveContextValue] | None = (
        {"command": command} if command else None
    )
    context = ErrorContext(
        operation=operation,
        additional_data=additional_data,
    )
    return CliError(
        ErrorCode.CLI_UNEXPECTED_ERROR,
        message,
        context,
        original_error,
        command,
        exit_code,
    )
