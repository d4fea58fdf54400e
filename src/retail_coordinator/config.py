"""Application configuration."""

import os

from pydantic_settings import BaseSettings, SettingsConfigDict

_ENVIRONMENT = os.getenv("ENVIRONMENT", "local")


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    admin_token: str
    environment: str = _ENVIRONMENT
    log_level: str = "INFO"
    session_ttl_seconds: int = 3600
    reservation_hold_seconds: float = 900
    handoff_expiry_seconds: float = 600
    event_log_capacity: int = 10_000
    saga_backoff_seconds: float = 1.0
    payment_max_retries: int = 3
    payment_backoff_seconds: float = 1.0
    supabase_url: str | None = None
    supabase_service_key: str | None = None
    payment_gateway_url: str | None = None
    payment_gateway_api_key: str | None = None
    simulated_payment_success_rate: float = 0.85

    model_config = SettingsConfigDict(
        env_file=(f".env.{_ENVIRONMENT}", ".env"),
        extra="ignore",
    )

    @property
    def uses_supabase(self) -> bool:
        """Return true when a Supabase catalog backend is configured."""
        return bool(self.supabase_url and self.supabase_service_key)
