"""Configuration management for HookRelay."""

from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """HookRelay configuration loaded from environment variables.

    All settings can be overridden via environment variables with
    the HOOKRELAY_ prefix. For example:
        HOOKRELAY_QDRANT_URL=http://localhost:6333
        HOOKRELAY_RETRY_MODE=scheduled
    """

    # Environment
    env: Literal["development", "production", "test"] = Field(
        default="development",
        description="Environment: development, production, or test",
    )

    # Storage
    qdrant_url: str = Field(
        default="http://localhost:6333",
        description="Qdrant connection URL (or ':memory:' for local mode)",
    )
    qdrant_api_key: str | None = Field(
        default=None,
        description="Qdrant API key (for cloud)",
    )
    collection_prefix: str = Field(
        default="hookrelay",
        description="Prefix for Qdrant collection names",
    )

    # Delivery
    delivery_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        le=300,
        description="Per-attempt HTTP timeout for outbound deliveries",
    )
    default_retry_count: int = Field(
        default=3,
        ge=1,
        le=5,
        description="Delivery attempts for webhooks created without a retry_count",
    )
    max_retry_count: int = Field(
        default=5,
        ge=1,
        le=10,
        description="Upper bound applied to a webhook's retry_count",
    )
    max_response_body_length: int = Field(
        default=1000,
        ge=0,
        description="Response bodies are truncated to this many characters",
    )
    user_agent: str = Field(
        default="HookRelay-WebhookRelay/1.0",
        description="User-Agent header sent with every delivery",
    )
    retry_mode: Literal["inline", "scheduled"] = Field(
        default="inline",
        description=(
            "'inline' sleeps between attempts inside the delivery call; "
            "'scheduled' records next_retry_at and leaves the attempt to the retry worker"
        ),
    )
    retry_poll_interval_seconds: float = Field(
        default=1.0,
        gt=0,
        description="How often the retry worker looks for due deliveries",
    )
    retry_batch_size: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Maximum due deliveries processed per worker pass",
    )
    secret_rotation_grace_seconds: int = Field(
        default=86400,
        ge=0,
        description="How long a rotated-out secret is still accepted for verification",
    )

    # Logging
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["json", "text"] = Field(
        default="json",
        description="Log output format",
    )

    # CORS Configuration
    cors_enabled: bool = Field(
        default=True,
        description="Enable CORS middleware",
    )
    cors_allow_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="List of allowed CORS origins. Use ['*'] for permissive mode (dev only).",
    )
    cors_allow_methods: list[str] = Field(
        default_factory=lambda: ["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        description="Allowed HTTP methods for CORS requests",
    )
    cors_allow_headers: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Allowed headers for CORS requests",
    )
    cors_allow_credentials: bool = Field(
        default=False,
        description="Allow credentials in CORS requests. Cannot be True with ['*'] origins.",
    )

    model_config = {
        "env_prefix": "HOOKRELAY_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "env_nested_delimiter": "__",
    }

    @model_validator(mode="after")
    def _check_retry_bounds(self) -> "Settings":
        """The default retry count must fit under the configured maximum."""
        if self.default_retry_count > self.max_retry_count:
            raise ValueError(
                f"default_retry_count ({self.default_retry_count}) exceeds "
                f"max_retry_count ({self.max_retry_count})"
            )
        if self.cors_allow_credentials and "*" in self.cors_allow_origins:
            raise ValueError("cors_allow_credentials cannot be used with wildcard origins")
        return self


# Global settings instance
settings = Settings()
