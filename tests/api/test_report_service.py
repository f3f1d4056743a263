"""Tests for the JSON request facade."""

from __future__ import annotations

import pytest

from reportvault.api import ReportService
from reportvault.shared.errors import OrchestratorError, RateLimitError


@pytest.fixture
def service(orchestrator) -> ReportService:
    return ReportService(orchestrator)


class TestHandleFetch:
    """POST-style fetch requests."""

    def test_camel_case_response(self, service):
        """Responses use camelCase keys."""
        response = service.handle_fetch(
            {"items": ["campaign:a", {"id": "j", "type": "journey"}], "timeframe": "last-30-days"}
        )

        assert [report["id"] for report in response["reports"]] == ["a", "j"]
        assert response["reports"][1]["kind"] == "secondary"
        assert response["rateLimited"] == []
        assert response["summary"]["source"] == "live"
        assert response["summary"]["lastUpdated"]
        assert "fetchedAt" in response["reports"][0]

    def test_force_refresh_alias(self, service, store, make_record, upstream):
        """forceRefresh is accepted in camelCase."""
        store.put("a", "last-7-days", make_record("a"))

        response = service.handle_fetch({"items": ["a"], "forceRefresh": True})

        assert response["summary"]["source"] == "cache_refreshing"
        assert upstream.calls == [["a"]]

    def test_rate_limited_response(self, service, upstream):
        """retryAfter and the wait message are included."""
        upstream.queue(RateLimitError(retry_after=120))

        response = service.handle_fetch({"items": ["a", "b"]})

        assert response["rateLimited"] == ["a", "b"]
        assert response["partial"] is True
        assert response["retryAfter"] == 120
        assert "~2 minutes" in response["message"]

    @pytest.mark.parametrize(
        "payload",
        [{}, {"items": []}, {"items": [42]}, {"items": ["a"], "timeframe": ""}],
    )
    def test_invalid_request(self, service, upstream, payload):
        """Malformed requests are rejected before any work."""
        response = service.handle_fetch(payload)

        assert response["error"] == "Invalid request"
        assert response["details"]
        assert upstream.calls == []

    def test_invalid_items_are_not_request_errors(self, service):
        """A bad item is reported, the rest is fetched."""
        response = service.handle_fetch({"items": ["a", "widget:b"]})

        assert "error" not in response
        assert response["invalid"] == ["b"]

    def test_orchestrator_failure(self, service, orchestrator, mocker):
        """A failing orchestrator becomes an error response."""
        mocker.patch.object(orchestrator, "fetch", side_effect=OrchestratorError("Report cache is unavailable"))

        response = service.handle_fetch({"items": ["a"]})

        assert response == {"error": "Report cache is unavailable", "code": "ORCHESTRATOR_FAILED"}


class TestHandlePoll:
    def test_poll(self, service):
        service.handle_fetch({"items": ["a", "b"]})

        response = service.handle_poll({"lastCount": 1})

        assert response["hasUpdates"] is True
        assert response["count"] == 2

    def test_poll_ids(self, service):
        service.handle_fetch({"items": ["a", "b"]})

        response = service.handle_poll({"ids": ["b"], "timeframe": "last-7-days"})

        assert [report["id"] for report in response["reports"]] == ["b"]

    def test_negative_last_count_rejected(self, service):
        assert service.handle_poll({"lastCount": -1})["error"] == "Invalid request"


class TestAdministration:
    def test_clear_cache(self, service, store):
        service.handle_fetch({"items": ["a"]})

        response = service.handle_clear_cache("last-7-days")

        assert response == {"success": True, "message": "Cache cleared", "timeframe": "last-7-days"}
        assert store.count(fresh_only=False) == 0

    def test_clear_cache_failure(self, service, orchestrator, mocker):
        mocker.patch.object(orchestrator, "clear_cache", return_value=False)

        assert service.handle_clear_cache()["success"] is False

    def test_clear_rate_limits(self, service, upstream, tracker):
        upstream.queue(RateLimitError())
        service.handle_fetch({"items": ["a"]})

        response = service.handle_clear_rate_limits("reporting")

        assert response == {"success": True, "message": "Rate limits cleared", "upstream": "reporting"}
        assert tracker.is_limited("reporting") is False
