"""HTTP client for the upstream reporting API.

Reports are fetched one item at a time with a small proactive delay between
requests. Failures are translated into the upstream error taxonomy:
429 becomes RateLimitError, timeouts, connection failures and 5xx become
TransientError, and 400/404 mark the item invalid.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable, Sequence
from datetime import datetime, timezone

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from reportvault.config.models.upstream_settings import UpstreamSettings
from reportvault.core.models import Item, ReportRecord
from reportvault.services.upstream.mapping import map_report
from reportvault.shared.clock import Clock, SystemClock
from reportvault.shared.constants import (
    HTTPStatusCodes,
    NetworkConfig,
    RateLimitConfig,
    UpstreamConfig,
)
from reportvault.shared.errors import (
    ErrorCode,
    ErrorContext,
    InvalidItemError,
    RateLimitError,
    TransientError,
    UpstreamError,
)
from reportvault.shared.logging import log_api_call

log = logging.getLogger(__name__)

_INVALID_ITEM_STATUSES = (HTTPStatusCodes.BAD_REQUEST, HTTPStatusCodes.NOT_FOUND)
_AUTH_STATUSES = (HTTPStatusCodes.UNAUTHORIZED, HTTPStatusCodes.FORBIDDEN)


def create_session(settings: UpstreamSettings) -> requests.Session:
    """Create a session that retries connection failures only.

    429 and 5xx are never retried here; the batch scheduler and rate-limit
    tracker own that policy.
    """
    session = requests.Session()

    retry_strategy = Retry(
        total=settings.max_connection_retries,
        connect=settings.max_connection_retries,
        read=0,
        status=0,
        other=0,
        backoff_factor=NetworkConfig.RETRY_BACKOFF_FACTOR,
        allowed_methods=frozenset({"POST"}),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry_strategy)

    session.headers["User-Agent"] = NetworkConfig.USER_AGENT
    session.headers["Content-Type"] = NetworkConfig.CONTENT_TYPE_JSON
    if settings.api_key:
        session.headers[NetworkConfig.API_KEY_HEADER] = settings.api_key

    session.mount("https://", adapter)
    session.mount("http://", adapter)

    return session


def parse_retry_after(retry_after: str | None, now: datetime | None = None) -> float | None:
    """
    Parse a Retry-After header, which can be seconds or an HTTP-date.

    Args:
        retry_after: The Retry-After header value
        now: Reference time for HTTP-dates

    Returns:
        Seconds to wait, or None when the header is absent
    """
    if not retry_after:
        return None

    value = retry_after.strip()
    try:
        seconds: float | None = float(value)
    except ValueError:
        seconds = None
    if seconds is not None and math.isfinite(seconds):
        return max(0.0, seconds)

    try:
        retry_date = datetime.strptime(value, "%a, %d %b %Y %H:%M:%S GMT")
        retry_date = retry_date.replace(tzinfo=timezone.utc)
        delta = (retry_date - (now or datetime.now(timezone.utc))).total_seconds()
        return max(0.0, delta)
    except ValueError:
        log.warning(
            "Could not parse Retry-After value: %s. Defaulting to %ds.",
            retry_after,
            RateLimitConfig.DEFAULT_RETRY_AFTER,
        )
        return float(RateLimitConfig.DEFAULT_RETRY_AFTER)


class HttpReportingClient:
    """Reporting API client implementing ``ReportingClientProtocol``.

    Example:
        >>> client = HttpReportingClient(settings.upstream)
        >>> records = client.fetch_batch([Item("abc", ItemKind.PRIMARY)], "last-7-days")
    """

    def __init__(
        self,
        settings: UpstreamSettings,
        session: requests.Session | None = None,
        clock: Clock | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.settings = settings
        self.session = session or create_session(settings)
        self.clock: Clock = clock or SystemClock()
        self._sleep = sleep
        self.url = settings.base_url.rstrip("/") + UpstreamConfig.REPORT_ENDPOINT

    def fetch_batch(self, items: Sequence[Item], timeframe: str) -> list[ReportRecord]:
        """Fetch every item of a batch.

        Items rejected with 400/404 are collected and raised together as an
        InvalidItemError after the rest of the batch is fetched. Any other
        failure stops the batch and carries the records fetched so far.

        Raises:
            RateLimitError: On 429
            TransientError: On timeouts, connection failures, 5xx or bad payloads
            InvalidItemError: If any item was rejected
        """
        records: list[ReportRecord] = []
        rejected: list[str] = []

        for position, item in enumerate(items):
            if position and self.settings.request_delay > 0:
                self._sleep(self.settings.request_delay)
            try:
                records.append(self.fetch_one(item, timeframe))
            except InvalidItemError as e:
                rejected.extend(e.item_ids)
            except UpstreamError as e:
                e.partial_records = records + e.partial_records
                raise

        if rejected:
            raise InvalidItemError(
                f"Reporting API rejected {len(rejected)} item(s)",
                item_ids=rejected,
                context=ErrorContext(operation="fetch_batch", timeframe=timeframe),
                partial_records=records,
            )
        return records

    def fetch_one(self, item: Item, timeframe: str) -> ReportRecord:
        """Fetch the report for a single item."""
        body: dict[str, str] = {"campaign_id": item.id}
        if timeframe != UpstreamConfig.ALL_TIME_TIMEFRAME:
            body["timeframe"] = timeframe

        context = ErrorContext(operation="fetch_report", item_id=item.id, timeframe=timeframe)
        start = time.perf_counter()

        try:
            response = self.session.post(self.url, json=body, timeout=self.settings.timeout)
        except requests.exceptions.Timeout as e:
            raise TransientError(
                f"Timed out fetching report for {item.id}",
                code=ErrorCode.API_TIMEOUT,
                context=context,
                original_error=e,
            ) from e
        except requests.exceptions.ConnectionError as e:
            raise TransientError(
                f"Connection failed fetching report for {item.id}",
                code=ErrorCode.NETWORK_ERROR,
                context=context,
                original_error=e,
            ) from e
        except requests.exceptions.RequestException as e:
            raise TransientError(
                f"Request failed fetching report for {item.id}: {e!s}",
                context=context,
                original_error=e,
            ) from e

        log_api_call(
            log,
            endpoint=UpstreamConfig.REPORT_ENDPOINT,
            method="POST",
            status_code=response.status_code,
            duration_ms=(time.perf_counter() - start) * 1000,
            context={"item_id": item.id, "timeframe": timeframe},
        )
        self._raise_for_status(response, item, context)

        try:
            payload = response.json()
        except ValueError as e:
            raise TransientError(
                f"Reporting API returned invalid JSON for {item.id}",
                code=ErrorCode.API_INVALID_RESPONSE,
                context=context,
                original_error=e,
            ) from e

        return map_report(item, payload, fetched_at=self.clock.now())

    def _raise_for_status(self, response: requests.Response, item: Item, context: ErrorContext) -> None:
        status = response.status_code
        if HTTPStatusCodes.is_success(status):
            return

        if status == HTTPStatusCodes.TOO_MANY_REQUESTS:
            raise RateLimitError(
                f"Reporting API rate limit hit while fetching {item.id}",
                retry_after=parse_retry_after(response.headers.get("Retry-After"), self.clock.now()),
                context=context,
            )
        if status in _INVALID_ITEM_STATUSES:
            raise InvalidItemError(
                f"Reporting API rejected item {item.id} with status {status}",
                item_ids=[item.id],
                context=context,
            )
        if status in _AUTH_STATUSES:
            raise TransientError(
                f"Reporting API authentication failed with status {status}",
                code=ErrorCode.API_AUTHENTICATION_FAILED,
                context=context,
            )
        code = ErrorCode.API_SERVER_ERROR if HTTPStatusCodes.is_server_error(status) else ErrorCode.API_REQUEST_FAILED
        raise TransientError(
            f"Reporting API returned status {status} for {item.id}",
            code=code,
            context=context,
        )

    def close(self) -> None:
        self.session.close()


__all__ = ["HttpReportingClient", "create_session", "parse_retry_after"]
