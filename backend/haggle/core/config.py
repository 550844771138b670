"""
Application configuration using pydantic-settings.

WHAT: Centralized config from environment variables
WHY: Type-safe, validated config with sensible defaults
HOW: Pydantic BaseSettings reads from .env and environment
"""

from decimal import Decimal
from pathlib import Path
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # App metadata
    APP_NAME: str = "Haggle Marketplace"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = False

    # Database
    DATABASE_URL: str = "sqlite:///./data/haggle.db"

    # Payment provider selection
    PAYMENT_PROVIDER: Literal["stripe"] = "stripe"

    # Stripe configuration
    STRIPE_SECRET_KEY: str = ""
    STRIPE_WEBHOOK_SECRET: str = ""
    STRIPE_API_BASE: str = "https://api.stripe.com/v1"
    STRIPE_TIMEOUT: float = 10.0  # seconds
    STRIPE_WEBHOOK_TOLERANCE_SECONDS: int = 300

    # Payment request configuration
    PAYMENT_CURRENCY: str = "usd"
    PAYMENT_MAX_RETRIES: int = 3
    PAYMENT_RETRY_DELAY: float = 1.0  # seconds, base for exponential backoff

    # Redirect targets for checkout success/cancel pages
    PUBLIC_BASE_URL: str = "http://localhost:3000"

    # Negotiation rules
    OFFER_MIN_RATIO: Decimal = Decimal("0.8")

    # Notifications
    NOTIFICATION_PAGE_SIZE: int = 50

    # CORS - accepts comma-separated string or list
    CORS_ORIGINS: str = "http://localhost:3000"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        """Parse CORS_ORIGINS from comma-separated string or list."""
        if isinstance(v, list):
            return ",".join(v)
        return v

    @field_validator("OFFER_MIN_RATIO")
    @classmethod
    def validate_min_ratio(cls, v: Decimal) -> Decimal:
        """Ratio must leave a non-empty band below the listing price."""
        if v <= 0 or v > 1:
            raise ValueError(f"OFFER_MIN_RATIO must be in (0, 1], got {v}")
        return v

    def get_cors_origins_list(self) -> list[str]:
        """Get CORS origins as a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_FILE: str = "./data/logs/app.log"

    class Config:
        # Project root .env first, then backend/.env
        env_file = [
            str(Path(__file__).parent.parent.parent.parent / ".env"),
            str(Path(__file__).parent.parent.parent / ".env"),
        ]
        env_file_encoding = "utf-8"
        case_sensitive = True


# Singleton instance
settings = Settings()
