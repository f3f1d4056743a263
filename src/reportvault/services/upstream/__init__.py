"""Upstream reporting API clients."""

from reportvault.services.upstream.http_client import (
    HttpReportingClient,
    create_session,
    parse_retry_after,
)
from reportvault.services.upstream.mapping import map_report

__all__ = ["HttpReportingClient", "create_session", "map_report", "parse_retry_after"]
