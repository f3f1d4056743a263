"""JSON-in, JSON-out facade over the FetchOrchestrator.

Every handler takes and returns plain dicts with camelCase keys, so it can
sit behind any transport. Request validation failures and orchestrator
failures come back as ``{"error": ..., ...}`` dicts instead of raising.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import ValidationError

from reportvault.api.models import FetchRequest, PollRequest
from reportvault.services.orchestrator import FetchOrchestrator
from reportvault.shared.errors import OrchestratorError
from reportvault.shared.logging import log_operation_error

logger = logging.getLogger(__name__)


def _validation_error(error: ValidationError) -> dict[str, Any]:
    return {
        "error": "Invalid request",
        "details": [
            {
                "loc": ".".join(str(part) for part in detail["loc"]),
                "msg": detail["msg"],
                "type": detail["type"],
            }
            for detail in error.errors()
        ],
    }


def _orchestrator_error(error: OrchestratorError) -> dict[str, Any]:
    return {"error": error.message, "code": error.code.value}


class ReportService:
    """Request handlers for fetch, poll and cache administration.

    Example:
        >>> service = ReportService(build_orchestrator(get_config()))
        >>> service.handle_fetch({"items": ["campaign:abc"], "timeframe": "last-7-days"})
        {'reports': [...], 'pending': [], 'rateLimited': [], ...}
    """

    def __init__(self, orchestrator: FetchOrchestrator) -> None:
        self.orchestrator = orchestrator

    def handle_fetch(self, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            request = FetchRequest.model_validate(payload)
        except ValidationError as e:
            logger.warning("Rejected fetch request: %d validation error(s)", e.error_count())
            return _validation_error(e)

        try:
            result = self.orchestrator.fetch(
                request.items,
                request.timeframe,
                force_refresh=request.force_refresh,
            )
        except OrchestratorError as e:
            log_operation_error(logger=logger, error=e, operation="handle_fetch")
            return _orchestrator_error(e)
        return result.to_wire()

    def handle_poll(self, payload: dict[str, Any]) -> dict[str, Any]:
        try:
            request = PollRequest.model_validate(payload)
        except ValidationError as e:
            logger.warning("Rejected poll request: %d validation error(s)", e.error_count())
            return _validation_error(e)

        result = self.orchestrator.poll(request.timeframe, request.last_count, request.ids)
        return result.to_wire()

    def handle_clear_cache(self, timeframe: str | None = None) -> dict[str, Any]:
        success = self.orchestrator.clear_cache(timeframe)
        response: dict[str, Any] = {
            "success": success,
            "message": "Cache cleared" if success else "Failed to clear cache",
        }
        if timeframe:
            response["timeframe"] = timeframe
        return response

    def handle_clear_rate_limits(self, upstream: str | None = None) -> dict[str, Any]:
        success = self.orchestrator.clear_rate_limits(upstream)
        response: dict[str, Any] = {
            "success": success,
            "message": "Rate limits cleared" if success else "Failed to clear rate limits",
        }
        if upstream:
            response["upstream"] = upstream
        return response


__all__ = ["ReportService"]
