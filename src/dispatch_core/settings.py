from datetime import timedelta
from typing import Literal

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from dispatch_core.core.exceptions import ConfigurationError


class CalendarSettings(BaseSettings):
    """Business civil timezone, expressed as a fixed UTC offset."""

    utc_offset_minutes: int = Field(
        default=-7 * 60,
        ge=-12 * 60,
        le=14 * 60,
        description="Fixed offset of the business timezone; Phoenix observes no DST",
    )
    timezone_label: str = "America/Phoenix"

    model_config = SettingsConfigDict(env_prefix="CALENDAR_")

    @property
    def offset(self) -> timedelta:
        return timedelta(minutes=self.utc_offset_minutes)


class PricingSettings(BaseSettings):
    extra_stop_fee_cents: int = Field(
        default=1500,
        ge=0,
        description="Flat surcharge added per extra stop on a trip",
    )

    model_config = SettingsConfigDict(env_prefix="PRICING_")


class LifecycleSettings(BaseSettings):
    no_show_wait_minutes: int = Field(
        default=15,
        ge=0,
        le=240,
        description="Minutes a driver must wait after arriving before marking a no-show",
    )
    require_payment_before_dispatch: bool = Field(
        default=True,
        description="Block ASSIGNED -> EN_ROUTE until payment has been captured",
    )

    model_config = SettingsConfigDict(env_prefix="LIFECYCLE_")

    @property
    def no_show_wait(self) -> timedelta:
        return timedelta(minutes=self.no_show_wait_minutes)


class ReportSettings(BaseSettings):
    currency: str = "USD"
    max_chart_buckets: int = Field(
        default=36,
        ge=1,
        description="Monthly series longer than this roll up to quarters, then years",
    )
    trailing_months: int = Field(default=12, ge=1, le=120)

    model_config = SettingsConfigDict(env_prefix="REPORT_")

    @field_validator("currency")
    @classmethod
    def validate_currency(cls, v: str) -> str:
        if len(v) != 3 or not v.isalpha():
            raise ValueError("Currency must be a three-letter ISO 4217 code")
        return v.upper()


class LogSettings(BaseSettings):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["text", "json"] = "text"
    environment: str = "development"

    model_config = SettingsConfigDict(env_prefix="LOG_")


class Settings(BaseSettings):
    calendar: CalendarSettings = Field(default_factory=CalendarSettings)
    pricing: PricingSettings = Field(default_factory=PricingSettings)
    lifecycle: LifecycleSettings = Field(default_factory=LifecycleSettings)
    report: ReportSettings = Field(default_factory=ReportSettings)
    log: LogSettings = Field(default_factory=LogSettings)

    model_config = SettingsConfigDict(
        env_nested_delimiter="__",
        case_sensitive=False,
    )


def get_settings() -> Settings:
    """Load and validate settings from environment variables."""
    try:
        return Settings()
    except ValidationError as e:
        raise ConfigurationError(f"Invalid settings: {e}", details={"errors": e.errors()}) from e
