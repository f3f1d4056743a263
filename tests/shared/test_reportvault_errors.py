"""Tests for the error hierarchy and structured logging helpers."""

from __future__ import annotations

import json
import logging
from decimal import Decimal
from pathlib import Path

import pytest

from reportvault.shared.errors import (
    ApplicationError,
    CacheUnavailableError,
    CliError,
    DomainError,
    ErrorCode,
    ErrorContext,
    InfrastructureError,
    InvalidItemError,
    OrchestratorError,
    RateLimitError,
    ReportVaultError,
    TransientError,
    UpstreamError,
    create_cli_error,
)
from reportvault.shared.logging import (
    StructuredFormatter,
    log_api_call,
    log_operation_error,
    setup_structured_logger,
)


class TestErrorContext:
    """ErrorContext validation and masking."""

    def test_coerces_path_enum_and_decimal(self):
        """Non-primitive but safe values are converted."""
        context = ErrorContext(
            additional_data={"path": Path("/tmp/cache.db"), "code": ErrorCode.NETWORK_ERROR, "rate": Decimal("1.5")}
        )

        assert context.additional_data == {"path": str(Path("/tmp/cache.db")), "code": "NETWORK_ERROR", "rate": 1.5}

    @pytest.mark.parametrize("value", [None, [1, 2], {"nested": 1}])
    def test_rejects_other_values(self, value):
        """Only primitives may travel into logs."""
        with pytest.raises(TypeError):
            ErrorContext(additional_data={"bad": value})

    def test_safe_dict_masks_api_key(self):
        """The API key never reaches a log record."""
        context = ErrorContext(operation="fetch", item_id="a1", additional_data={"api_key": "secret", "batch": 2})

        assert context.safe_dict() == {
            "operation": "fetch",
            "item_id": "a1",
            "additional_data": {"batch": 2},
        }


class TestErrorHierarchy:
    """Error classes and their codes."""

    @pytest.mark.parametrize(
        ("error", "base", "code"),
        [
            (RateLimitError(), UpstreamError, ErrorCode.API_RATE_LIMIT),
            (TransientError("down"), InfrastructureError, ErrorCode.API_REQUEST_FAILED),
            (InvalidItemError("bad"), DomainError, ErrorCode.INVALID_ITEM),
            (CacheUnavailableError("locked"), InfrastructureError, ErrorCode.CACHE_UNAVAILABLE),
            (OrchestratorError("broken"), ApplicationError, ErrorCode.ORCHESTRATOR_FAILED),
        ],
    )
    def test_codes_and_bases(self, error, base, code):
        assert isinstance(error, base)
        assert isinstance(error, ReportVaultError)
        assert error.code == code

    def test_str_includes_code(self):
        assert str(TransientError("upstream 503", code=ErrorCode.API_SERVER_ERROR)) == "API_SERVER_ERROR: upstream 503"

    def test_partial_records_default_empty(self):
        """Upstream errors always carry a list of partial records."""
        assert RateLimitError().partial_records == []
        assert InvalidItemError("bad", item_ids=("a",)).item_ids == ["a"]

    def test_to_dict(self):
        """to_dict is log-safe."""
        original = ValueError("boom")
        error = CacheUnavailableError(
            "write failed",
            code=ErrorCode.CACHE_WRITE_FAILED,
            context=ErrorContext(operation="put_many", additional_data={"api_key": "x"}),
            original_error=original,
        )

        assert error.to_dict() == {
            "code": "CACHE_WRITE_FAILED",
            "message": "write failed",
            "context": {"operation": "put_many", "additional_data": {}},
            "original_error": "boom",
        }

    def test_create_cli_error(self):
        error = create_cli_error("Unexpected", command="fetch", exit_code=3)

        assert isinstance(error, CliError)
        assert error.code == ErrorCode.CLI_UNEXPECTED_ERROR
        assert error.exit_code == 3
        assert error.context.additional_data == {"command": "fetch"}


class TestStructuredLogging:
    """Logging helpers."""

    def test_log_operation_error_adds_structured_fields(self, caplog):
        logger = logging.getLogger("tests.structured")
        error = CacheUnavailableError("locked", context=ErrorContext(operation="get_many", timeframe="all-time"))

        with caplog.at_level(logging.WARNING, logger="tests.structured"):
            log_operation_error(logger, error, additional_context={"fallback": "uncached"}, level=logging.WARNING)

        record = caplog.records[-1]
        assert record.levelno == logging.WARNING
        assert record.error_code == "CACHE_UNAVAILABLE"
        assert record.operation == "get_many"
        assert record.context["timeframe"] == "all-time"
        assert record.context["fallback"] == "uncached"

    @pytest.mark.parametrize(("status", "level"), [(200, logging.DEBUG), (429, logging.WARNING)])
    def test_log_api_call_level(self, caplog, status, level):
        """Failed calls are warnings, successful ones debug."""
        logger = logging.getLogger("tests.api")

        with caplog.at_level(logging.DEBUG, logger="tests.api"):
            log_api_call(logger, "/v1/campaign/reports/get", method="POST", status_code=status)

        assert caplog.records[-1].levelno == level
        assert caplog.records[-1].context["status_code"] == status

    def test_structured_formatter_emits_json(self):
        record = logging.LogRecord("tests", logging.INFO, __file__, 1, "hello %s", ("world",), None)
        record.operation = "fetch"

        entry = json.loads(StructuredFormatter().format(record))

        assert entry["message"] == "hello world"
        assert entry["operation"] == "fetch"
        assert entry["level"] == "INFO"

    def test_setup_writes_json_file(self, tmp_path):
        """A configured log file receives JSON lines."""
        log_file = tmp_path / "reportvault.log"
        logger = setup_structured_logger("tests.file", level="INFO", log_file=str(log_file), use_rich_console=False)
        try:
            logger.info("cache cleared", extra={"operation": "clear_cache"})
            for handler in logger.handlers:
                handler.flush()
        finally:
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)

        entry = json.loads(log_file.read_text(encoding="utf-8").splitlines()[0])
        assert entry["operation"] == "clear_cache"
        assert logger.level == logging.INFO
