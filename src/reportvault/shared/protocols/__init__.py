"""Protocol definitions for dependency inversion."""

from __future__ import annotations

from .services import RateLimitWindowStore, ReportingClientProtocol

__all__ = ["RateLimitWindowStore", "ReportingClientProtocol"]
