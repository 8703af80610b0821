from functools import lru_cache
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import model_validator
from typing import Optional


class Settings(BaseSettings):
    """
    Main configuration for CloudLedger.
    Uses Pydantic-Settings for environment variable parsing from .env.
    """
    APP_NAME: str = "CloudLedger"
    VERSION: str = "0.1.0"
    DEBUG: bool = False
    TESTING: bool = False

    # AWS
    AWS_DEFAULT_REGION: str = "us-east-1"
    AWS_PROFILES: list[str] = ["default"]  # Profiles summed by the daily cost fetch

    # Azure service principal (ambient credential source)
    AZURE_TENANT_ID: Optional[str] = None
    AZURE_CLIENT_ID: Optional[str] = None
    AZURE_CLIENT_SECRET: Optional[str] = None
    AZURE_SUBSCRIPTION_ID: Optional[str] = None
    AZURE_DEFAULT_REGION: str = "eastus"
    AZURE_PROFILES: list[str] = ["default"]

    # GCP
    GCP_PROJECT_ID: Optional[str] = None
    GCP_DEFAULT_REGION: str = "us-central1"
    GCP_MONTHLY_INSTANCE_COST: float = 50.0  # Flat estimate per running VM

    # Saved profiles (read-only JSON document, see services/connections/profiles.py)
    SAVED_PROFILES_PATH: Optional[str] = None

    # Forecasting
    FORECAST_HISTORICAL_DAYS: int = 14
    FORECAST_DEFAULT_DAYS: int = 30
    FORECAST_MAX_DAYS: int = 365
    FORECAST_MAX_HISTORY_DAYS: int = 366
    FORECAST_FETCH_CONCURRENCY: int = 8  # Historical days fetched at once

    # Timeouts
    PROVIDER_TIMEOUT_SECONDS: float = 30
    REGION_SCAN_TIMEOUT_SECONDS: float = 60
    REQUEST_TIMEOUT_SECONDS: int = 300

    # Cost Explorer pagination guard
    COST_QUERY_MAX_PAGES: int = 50

    # Security
    CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://localhost:3000"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_ignore_empty=True
    )

    @model_validator(mode='after')
    def validate_limits(self) -> 'Settings':
        """Fail-closed: a zero timeout or concurrency limit would stall every fan-out."""
        for key in ("PROVIDER_TIMEOUT_SECONDS", "REGION_SCAN_TIMEOUT_SECONDS", "REQUEST_TIMEOUT_SECONDS"):
            if getattr(self, key) <= 0:
                raise ValueError(f"{key} must be positive")
        if self.FORECAST_FETCH_CONCURRENCY < 1:
            raise ValueError("FORECAST_FETCH_CONCURRENCY must be at least 1")
        if self.GCP_MONTHLY_INSTANCE_COST < 0:
            raise ValueError("GCP_MONTHLY_INSTANCE_COST cannot be negative")
        return self


@lru_cache
def get_settings() -> Settings:
    """Returns a cached instance of the settings."""
    return Settings()
