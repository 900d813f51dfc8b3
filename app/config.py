"""Runtime settings for the booking service."""

from __future__ import annotations

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="BOOKING_", extra="ignore")

    min_booking_minutes: int = 15
    # Default end of an open series, and the furthest any series end may reach,
    # counted in days from the first occurrence
    default_series_horizon_days: int = 365
    log_level: str = "INFO"
    seed_demo_data: bool = True


settings = Settings()
