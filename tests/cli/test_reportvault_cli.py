"""End-to-end tests for the Typer CLI.

The HTTP client is replaced by the scriptable FakeUpstream; everything else,
including the SQLite cache, is real.
"""

from __future__ import annotations

import json
import logging

import pytest
from typer.testing import CliRunner

from reportvault.cli.typer_app import app
from reportvault.config import Settings, set_config
from reportvault.services.orchestrator import build_orchestrator
from reportvault.shared.constants import CLIDefaults
from reportvault.shared.errors import CacheUnavailableError, RateLimitError, TransientError

runner = CliRunner()

QUIET = ["--json", "--log-level", "ERROR"]


@pytest.fixture
def cli_settings(tmp_path):
    """Settings with fast polling so --watch finishes in milliseconds."""
    settings = Settings(
        cache={"db_path": tmp_path / "cache.db", "default_timeframe": "last-7-days"},
        upstream={"api_key": "test-key", "request_delay": 0},
        logging={"level": "WARNING", "console_output": False},
        polling={"interval": 0.01, "timeout": 5, "max_retries": 1, "rate_limit_backoff": 0.01, "refetch_after": 0.01},
    )
    set_config(settings)
    yield settings
    set_config(None)


@pytest.fixture(autouse=True)
def fake_orchestrator(mocker, cli_settings, upstream, clock):
    """Route every command's orchestrator to the fake upstream."""
    return mocker.patch(
        "reportvault.cli.common.runtime.build_orchestrator",
        side_effect=lambda settings: build_orchestrator(settings, client=upstream, clock=clock, sleep=clock.sleep),
    )


@pytest.fixture(autouse=True)
def reset_logging():
    """Commands reconfigure the package logger; undo that after each test."""
    yield
    logger = logging.getLogger("reportvault")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True


def invoke_json(*args: str) -> tuple[int, dict]:
    result = runner.invoke(app, [*QUIET, *args])
    return result.exit_code, json.loads(result.stdout)


class TestGlobalOptions:
    def test_version(self):
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert CLIDefaults.VERSION in result.stdout

    def test_help_lists_commands(self):
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        for command in ("fetch", "poll", "cache", "rate-limits"):
            assert command in result.stdout


class TestFetchCommand:
    """reportvault fetch."""

    def test_fetch_json(self, upstream):
        """The JSON envelope wraps the camelCase result."""
        exit_code, output = invoke_json("fetch", "campaign:a", "journey:j")

        assert exit_code == 0
        assert output["success"] is True
        assert output["command"] == "fetch"
        assert [report["id"] for report in output["data"]["reports"]] == ["a", "j"]
        assert upstream.calls == [["a", "j"]]

    def test_second_fetch_uses_cache(self, upstream):
        """Fresh entries are served without a second upstream call."""
        invoke_json("fetch", "a", "b")

        exit_code, output = invoke_json("fetch", "a", "b")

        assert exit_code == 0
        assert output["data"]["summary"]["source"] == "cache"
        assert len(upstream.calls) == 1

    def test_partial_fetch(self):
        """More items than one batch leaves the rest pending."""
        items = [f"c{i}" for i in range(12)]

        exit_code, output = invoke_json("fetch", *items)

        assert exit_code == 0
        assert output["data"]["partial"] is True
        assert output["data"]["pending"] == ["c10", "c11"]

    def test_rate_limited_fetch(self, upstream):
        upstream.queue(RateLimitError(retry_after=300))

        exit_code, output = invoke_json("fetch", "a")

        assert exit_code == 0
        assert output["data"]["rateLimited"] == ["a"]
        assert output["data"]["retryAfter"] == 300

    def test_timeframe_option(self, upstream):
        invoke_json("fetch", "a", "--timeframe", "last-30-days")

        assert upstream.timeframes == ["last-30-days"]

    def test_force_refresh(self, upstream):
        invoke_json("fetch", "a")

        _, output = invoke_json("fetch", "a", "--force-refresh")

        assert output["data"]["summary"]["source"] == "cache_refreshing"
        assert len(upstream.calls) == 2

    def test_watch_until_resolved(self, upstream):
        """--watch keeps going until every item is cached."""
        items = [f"c{i}" for i in range(15)]

        exit_code, output = invoke_json("fetch", *items, "--watch")

        assert exit_code == 0
        assert output["data"]["watchState"] == "resolved"
        assert len(output["data"]["reports"]) == 15
        assert output["data"]["partial"] is False

    def test_watch_times_out(self, upstream):
        """A watch that cannot complete exits with an error code."""
        upstream.queue(*[TransientError("down") for _ in range(5)])

        exit_code, output = invoke_json("fetch", "a", "--watch")

        assert exit_code == CLIDefaults.EXIT_ERROR
        assert output["data"]["watchState"] == "timed_out"
        assert output["data"]["pending"] == ["a"]

    def test_human_output(self):
        result = runner.invoke(app, ["--log-level", "ERROR", "fetch", "a"])

        assert result.exit_code == 0
        assert "Loaded 1 reports." in result.stdout

    def test_orchestrator_failure_exit_code(self, fake_orchestrator):
        """A cache that cannot be opened fails the command."""
        fake_orchestrator.side_effect = CacheUnavailableError("locked")

        result = runner.invoke(app, [*QUIET, "fetch", "a"])

        assert result.exit_code == CLIDefaults.EXIT_ERROR
        output = json.loads(result.stdout)
        assert output["success"] is False
        assert output["data"]["error_type"] == "CacheUnavailableError"
        assert output["data"]["context"]["error_code"] == "CACHE_UNAVAILABLE"


class TestPollCommand:
    def test_poll_counts_fresh_reports(self):
        invoke_json("fetch", "a", "b")

        exit_code, output = invoke_json("poll", "--last-count", "1")

        assert exit_code == 0
        assert output["data"]["hasUpdates"] is True
        assert output["data"]["count"] == 2

    def test_poll_ids(self):
        invoke_json("fetch", "a", "b")

        _, output = invoke_json("poll", "--id", "b", "--id", "zzz")

        assert output["data"]["count"] == 1


class TestCacheCommands:
    def test_stats(self):
        invoke_json("fetch", "a", "b")

        exit_code, output = invoke_json("cache", "stats")

        assert exit_code == 0
        assert output["data"]["total_entries"] == 2
        assert output["data"]["fresh_entries"] == 2

    def test_list_and_timeframes(self):
        invoke_json("fetch", "a", "--timeframe", "all-time")

        _, listed = invoke_json("cache", "list", "--timeframe", "all-time")
        _, timeframes = invoke_json("cache", "timeframes")

        assert listed["data"]["count"] == 1
        assert [row["timeframe"] for row in timeframes["data"]["timeframes"]] == ["all-time"]

    def test_clear(self):
        invoke_json("fetch", "a")

        exit_code, _ = invoke_json("cache", "clear")
        _, stats = invoke_json("cache", "stats")

        assert exit_code == 0
        assert stats["data"]["total_entries"] == 0

    def test_list_empty_human_output(self):
        result = runner.invoke(app, ["cache", "list"])

        assert result.exit_code == 0
        assert "No cached reports" in result.stdout


class TestRateLimitCommands:
    def test_show_and_clear(self, upstream):
        """A recorded window is listed and then cleared."""
        upstream.queue(RateLimitError(retry_after=300))
        invoke_json("fetch", "a")

        _, shown = invoke_json("rate-limits", "show")
        assert shown["data"]["active"] == 1
        assert shown["data"]["windows"][0]["upstream"] == "reporting"

        exit_code, _ = invoke_json("rate-limits", "clear")
        _, after = invoke_json("rate-limits", "show")

        assert exit_code == 0
        assert after["data"]["active"] == 0

    def test_cleared_window_allows_fetch(self, upstream):
        upstream.queue(RateLimitError(retry_after=300))
        invoke_json("fetch", "a")
        invoke_json("rate-limits", "clear", "--upstream", "reporting")

        _, output = invoke_json("fetch", "a")

        assert [report["id"] for report in output["data"]["reports"]] == ["a"]
