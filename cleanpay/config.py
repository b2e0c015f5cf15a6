from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    app_name: str = "CleanPay Payroll"
    app_version: str = "0.1.0"
    debug: bool = False
    environment: Literal["development", "staging", "production"] = "development"
    database_url: str = "postgresql+asyncpg://cleanpay:cleanpay@db:5432/cleanpay"
    cors_origins: list[str] = ["http://localhost:5173", "http://localhost:8000"]
    log_level: str = "INFO"

    # Payroll behaviour
    payroll_timezone: str = "UTC"
    finance_roles: list[str] = ["admin", "owner", "super_admin"]
    payroll_job_statuses: list[str] = ["completed"]
    exclude_owner_assignments: bool = True
    min_expected_rates: dict[str, float] = {"hourly": 5.0, "per_visit": 5.0, "monthly": 100.0}
    recalc_max_attempts: int = 3


_settings: Settings | None = None


def get_settings() -> Settings:
    """Return cached settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
