"""
Configuration Management for the Finance Tracker

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
Retry bounds, simulation caps and horizon limits are tunables rather than
constants scattered through the engines.
"""

from functools import lru_cache

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProcessorSettings(BaseSettings):
    """Recurring processor configuration."""

    model_config = SettingsConfigDict(
        env_prefix="RECURRING_",
        extra="ignore"
    )

    max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="Attempts per materialization unit before giving up"
    )
    backoff_initial_seconds: float = Field(
        default=0.15,
        ge=0.0,
        description="First retry delay (doubles on each further attempt)"
    )
    backoff_max_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="Upper bound for the exponential part of the delay"
    )
    backoff_jitter_seconds: float = Field(
        default=0.1,
        ge=0.0,
        description="Random extra delay added to every retry"
    )


class ProjectionSettings(BaseSettings):
    """Cash-flow projection configuration."""

    model_config = SettingsConfigDict(
        env_prefix="PROJECTION_",
        extra="ignore"
    )

    default_duration_months: int = Field(
        default=3,
        ge=1,
        description="Horizon used when the client does not ask for one"
    )
    allowed_durations: str = Field(
        default="1,3,6,12",
        description="Comma-separated horizons offered by the HTTP surface"
    )

    @field_validator('allowed_durations')
    @classmethod
    def validate_allowed_durations(cls, v: str) -> str:
        for part in v.split(","):
            if not part.strip().isdigit() or int(part) < 1:
                raise ValueError(f"Invalid projection duration: {part!r}")
        return v

    @property
    def allowed_durations_list(self) -> list[int]:
        """Get allowed durations as a sorted list."""
        return sorted(int(part) for part in self.allowed_durations.split(","))


class DebtSettings(BaseSettings):
    """Debt payoff simulator configuration."""

    model_config = SettingsConfigDict(
        env_prefix="DEBT_",
        extra="ignore"
    )

    max_months: int = Field(
        default=600,
        ge=1,
        description="Simulation cap (600 months = 50 years)"
    )
    payoff_epsilon: float = Field(
        default=0.01,
        ge=0.0,
        le=1.0,
        description="Balances at or below this are treated as paid off"
    )


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum level for the structured log"
    )

    @model_validator(mode='after')
    def normalize_log_level(self) -> 'AppSettings':
        self.log_level = self.log_level.upper()
        if self.log_level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {self.log_level}")
        return self


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @property
    def processor(self) -> ProcessorSettings:
        return ProcessorSettings()

    @property
    def projection(self) -> ProjectionSettings:
        return ProjectionSettings()

    @property
    def debt(self) -> DebtSettings:
        return DebtSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus
    ``<setting_name>_error`` entries for the groups that failed.
    """
    results = {}
    settings = get_settings()

    for name in ("processor", "projection", "debt", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except ValueError as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
