"""
Configuration management using Pydantic Settings.
Reads from environment variables.
"""

from pydantic import ConfigDict, Field
from pydantic_settings import BaseSettings


def _default_grade_sheets() -> dict[str, str]:
    return {"國中": "", "先修": "", "兒美": ""}


class Settings(BaseSettings):
    """Application settings."""

    model_config = ConfigDict(env_file=".env", case_sensitive=False)

    # LINE Messaging API
    line_channel_secret: str = Field(default="", alias="LINE_CHANNEL_SECRET")
    line_channel_access_token: str = Field(default="", alias="LINE_CHANNEL_ACCESS_TOKEN")
    line_api_base_url: str = Field(default="https://api.line.me", alias="LINE_API_BASE_URL")

    # Google Sheets: one spreadsheet per grade, one worksheet per class
    google_service_account: str | None = Field(default=None, alias="GOOGLE_SERVICE_ACCOUNT")
    google_credentials_file: str | None = Field(default=None, alias="GOOGLE_CREDENTIALS_FILE")
    grade_sheets: dict[str, str] = Field(
        default_factory=_default_grade_sheets, alias="GRADE_SHEETS"
    )

    # Dialogue behaviour
    timezone: str = Field(default="Asia/Taipei", alias="TIMEZONE")
    session_idle_timeout_seconds: int = Field(default=600, alias="SESSION_IDLE_TIMEOUT_SECONDS")
    session_sweep_interval_seconds: int = Field(
        default=60, alias="SESSION_SWEEP_INTERVAL_SECONDS"
    )

    # Application Configuration
    environment: str = Field(default="development", alias="ENVIRONMENT")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    port: int = Field(default=3000, alias="PORT")

    # Circuit Breaker Configuration
    circuit_breaker_failure_threshold: int = Field(
        default=5, alias="CIRCUIT_BREAKER_FAILURE_THRESHOLD"
    )
    circuit_breaker_timeout: int = Field(default=60, alias="CIRCUIT_BREAKER_TIMEOUT")

    @property
    def has_google_credentials(self) -> bool:
        return bool(self.google_service_account or self.google_credentials_file)


# Global settings instance
settings = Settings()
