"""Upstream reporting API configuration model."""

from __future__ import annotations

from pydantic import BaseModel, Field

from reportvault.shared.constants import NetworkConfig, UpstreamConfig


class UpstreamSettings(BaseModel):
    """Reporting API configuration.

    Security: api_key is hidden from repr so settings can be logged.
    """

    name: str = Field(
        default=UpstreamConfig.DEFAULT_NAME,
        min_length=1,
        description="Upstream name used to key rate-limit windows",
    )
    base_url: str = Field(
        default=UpstreamConfig.DEFAULT_BASE_URL,
        description="Base URL of the reporting API",
    )
    api_key: str = Field(
        default="",
        repr=False,
        description="API key sent in the X-API-Key header",
    )
    timeout: float = Field(
        default=NetworkConfig.DEFAULT_TIMEOUT,
        gt=0,
        description="Request timeout in seconds",
    )
    request_delay: float = Field(
        default=NetworkConfig.DEFAULT_REQUEST_DELAY,
        ge=0,
        description="Pause between per-item requests in seconds",
    )
    max_connection_retries: int = Field(
        default=NetworkConfig.DEFAULT_CONNECTION_RETRIES,
        ge=0,
        description="Transport-level retries for connection failures",
    )

    def __repr__(self) -> str:
        masked_key = "****" if self.api_key else "[empty]"
        return (
            f"UpstreamSettings("
            f"name={self.name!r}, "
            f"base_url={self.base_url!r}, "
            f"api_key={masked_key}, "
            f"timeout={self.timeout})"
        )


__all__ = ["UpstreamSettings"]
