"""Application settings and configuration."""

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="COSMICBEATS_",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    env: str = "development"
    allowed_origins: str = "http://localhost:5173"

    # Database
    database_url: str = Field(
        default="sqlite:///./cosmicbeats.db",
        description="Database connection URL",
    )

    # Referral program
    weekly_referral_limit: int = Field(
        default=5,
        gt=0,
        description="Maximum referrals a referrer may create per calendar week",
    )
    referral_expiration_days: int = Field(
        default=7,
        gt=0,
        description="Days a pending referral stays open before it is invalidated",
    )
    auto_validation_policy: Literal["manual_only", "profile_plus_interaction"] = Field(
        default="manual_only",
        description="Predicate that promotes a pending referral to valid after an action",
    )
    share_base_url: str = Field(
        default="https://cosmicbeats.app",
        description="Base URL used to build referral share links",
    )

    # Wallet
    wallet_credit_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts per wallet credit before it is marked failed",
    )
    wallet_credit_backoff_seconds: float = Field(
        default=0.5,
        ge=0,
        description="Initial backoff between wallet credit attempts (exponential)",
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_format: Literal["console", "json"] = Field(
        default="console",
        description="Log output format",
    )


# Global settings instance
settings = Settings()
