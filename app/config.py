"""Application configuration settings."""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = ".env"
ENV_FILE_ENCODING = "utf-8"


class Settings(BaseSettings):
    """Application configuration values loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=ENV_FILE, env_file_encoding=ENV_FILE_ENCODING, extra="ignore"
    )

    database_url: str = Field(
        default="sqlite:///./notifications.db",
        description="Database connection URL used by SQLAlchemy to connect to the DB",
        min_length=1,
    )
    app_timezone: str = Field(
        default="UTC",
        description="Timezone used to store and present notification timestamps",
    )
    cors_origins: str = Field(
        default="*",
        description="Comma separated list of origins allowed to call the API",
    )
    identity_service_url: str | None = Field(
        default=None,
        description="Base URL of the identity service used to resolve recipient contact data",
    )
    identity_service_timeout: float = Field(
        default=5.0,
        description="Seconds to wait for the identity service before giving up",
        gt=0,
    )
    sendgrid_api_key: str | None = Field(
        default=None,
        description="SendGrid API key used for sending transactional emails via the REST API",
    )
    sendgrid_sender: str | None = Field(
        default=None,
        description="Email address that will appear as the sender of transactional messages",
        min_length=3,
    )
    sms_gateway_url: str | None = Field(
        default=None,
        description="Endpoint of the SMS gateway that accepts outbound messages",
    )
    sms_gateway_token: str | None = Field(
        default=None,
        description="Bearer token presented to the SMS gateway",
    )
    sms_sender: str | None = Field(
        default=None,
        description="Phone number or sender id used for outbound SMS",
    )
    push_gateway_url: str | None = Field(
        default=None,
        description="Endpoint of the push gateway that fans out to device tokens",
    )
    push_gateway_token: str | None = Field(
        default=None,
        description="Bearer token presented to the push gateway",
    )
    channel_timeout_seconds: float = Field(
        default=10.0,
        description="Upper bound for a single channel delivery attempt",
        gt=0,
    )
    dispatch_sweep_interval_seconds: float = Field(
        default=60.0,
        description="Seconds between background due/retry/expiry sweeps (0 disables it)",
        ge=0,
    )
    retry_max_attempts: int = Field(
        default=3,
        description="Maximum delivery attempts recorded per channel before giving up",
        ge=1,
    )
    retry_backoff_seconds: float = Field(
        default=60.0,
        description="Base delay before a failed channel becomes eligible for retry",
        ge=0,
    )

    @model_validator(mode="after")
    def _validate_sendgrid_pair(self) -> "Settings":
        if bool(self.sendgrid_api_key) ^ bool(self.sendgrid_sender):
            raise ValueError(
                "SENDGRID_API_KEY and SENDGRID_SENDER must both be provided to enable email"
            )
        if self.sendgrid_sender and "@" not in self.sendgrid_sender:
            raise ValueError("SENDGRID_SENDER must be a valid email address")
        return self

    @property
    def cors_origin_list(self) -> list[str]:
        if not self.cors_origins:
            return []
        if self.cors_origins == "*":
            return ["*"]
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Return cached application settings instance."""

    return Settings()


def reset_settings_cache() -> None:
    """Clear the settings cache to force reloading from the environment."""

    get_settings.cache_clear()


__all__ = ["Settings", "get_settings", "reset_settings_cache"]
