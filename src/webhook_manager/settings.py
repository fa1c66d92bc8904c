"""Application settings."""
from __future__ import annotations

from functools import lru_cache
from typing import Literal, cast

from pydantic import AnyHttpUrl, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Core configuration for the Webhook Manager."""

    model_config = SettingsConfigDict(env_file=(".env", "env.example"), env_file_encoding="utf-8")

    env: Literal["development", "staging", "production"] = "development"
    app_name: str = "webhook-manager"
    host: str = "0.0.0.0"
    port: int = 8010

    # Management API (remote mode is used only when both key and environment are known)
    management_api_url: AnyHttpUrl = Field(
        default=cast(AnyHttpUrl, "https://manage.kontent.ai")
    )
    management_api_key: str | None = None
    environment_id: str | None = None
    management_api_timeout_seconds: float = 10.0

    # Probe
    probe_timeout_seconds: float = 30.0
    probe_user_agent: str = "Kontent-Webhook-Manager/1.0"

    # Local simulation
    simulated_latency_seconds: float = 0.5

    # Console preferences
    auto_test_on_create: bool = False
    recent_results_limit: int = 5

    # Host platform context
    host_context_url: AnyHttpUrl | None = None
    host_environment_id: str | None = None
    host_user_id: str | None = None
    host_user_email: str | None = None

    otel_exporter_endpoint: AnyHttpUrl | None = None

    # Use a string field to avoid JSON parsing by pydantic-settings
    cors_allowed_origins_str: str = Field(
        default="http://localhost:3000,http://localhost:8080",
        alias="CORS_ALLOWED_ORIGINS",
    )

    # This field is populated by the validator, not from env vars
    cors_allowed_origins: list[str] = Field(
        default=["http://localhost:3000", "http://localhost:8080"],
        validation_alias="__cors_allowed_origins_internal__",
    )

    @model_validator(mode="after")
    def parse_cors_origins(self) -> "Settings":
        """Parse CORS origins from comma-separated string after model initialization."""
        value = self.cors_allowed_origins_str
        if value:
            self.cors_allowed_origins = [
                origin.strip() for origin in value.split(",") if origin.strip()
            ]
        return self


@lru_cache
def get_settings() -> Settings:
    """Cached settings instance."""
    return Settings()
