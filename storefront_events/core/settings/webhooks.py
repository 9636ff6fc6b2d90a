"""Webhook delivery configuration settings.

Provides settings for webhook HTTP delivery, retry logic, worker concurrency,
and subscription validation.
"""

from __future__ import annotations

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class WebhookSettings(BaseSettings):
    """Configuration for webhook delivery system.

    Controls HTTP timeouts, retry behavior, and delivery guarantees
    for outbound webhook notifications.
    """

    # HTTP delivery settings
    timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Total timeout for a single webhook HTTP request (seconds)",
    )
    connect_timeout_seconds: float = Field(
        default=10.0,
        ge=1.0,
        le=60.0,
        description="Connection timeout for webhook HTTP requests (seconds)",
    )
    user_agent: str = Field(
        default="Storefront-Webhook/1.0",
        min_length=1,
        description="User-Agent header sent with every delivery",
    )
    max_connections: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Connection pool size of the shared delivery HTTP client",
    )

    # Retry configuration
    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Total delivery attempts before a delivery is marked failed",
    )
    retry_base_delay_seconds: float = Field(
        default=5.0,
        ge=0.0,
        description="Delay before the first retry (seconds)",
    )
    retry_backoff_multiplier: float = Field(
        default=5.0,
        ge=1.0,
        le=10.0,
        description="Exponential backoff multiplier for retries",
    )
    retry_max_delay_seconds: float = Field(
        default=3600.0,
        ge=1.0,
        description="Maximum delay between retries (1 hour default)",
    )

    # Response capture
    response_body_max_chars: int = Field(
        default=5000,
        ge=0,
        le=1_000_000,
        description="Stored response bodies are truncated to this many characters",
    )

    # Subscription validation
    secret_prefix: str = Field(
        default="whsec_",
        description="Prefix of generated signing secrets",
    )
    allow_private_urls: bool = Field(
        default=False,
        description="Allow subscriptions that point at private, loopback or link-local addresses",
    )

    # Worker
    poll_interval_seconds: float = Field(
        default=1.0,
        gt=0.0,
        le=60.0,
        description="Idle sleep between worker polls (seconds)",
    )
    batch_size: int = Field(
        default=100,
        ge=1,
        le=10_000,
        description="Maximum deliveries claimed per worker pass",
    )
    max_concurrency: int = Field(
        default=20,
        ge=1,
        le=1000,
        description="Maximum in-flight HTTP deliveries per worker",
    )
    lease_seconds: float = Field(
        default=120.0,
        ge=1.0,
        description="How long a claimed delivery stays invisible to other workers",
    )

    @model_validator(mode="after")
    def validate_lease_outlives_request(self) -> WebhookSettings:
        """A renewed lease must still hold when the request times out."""
        if self.lease_seconds <= self.timeout_seconds:
            msg = (
                f"lease_seconds ({self.lease_seconds}) must be greater than "
                f"timeout_seconds ({self.timeout_seconds})"
            )
            raise ValueError(msg)
        return self

    model_config = SettingsConfigDict(
        env_prefix="WEBHOOK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )


__all__ = ["WebhookSettings"]
