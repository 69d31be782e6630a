# app/core/config.py

import os
from functools import lru_cache
from typing import Optional
from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """
    Application settings.
    Loads values from environment variables (.env file)
    """
    # Database settings
    DATABASE_URL: str = ""

    # Security
    BASIC_AUTH_USERNAME: str = "admin"
    BASIC_AUTH_PASSWORD: Optional[str] = None

    # Environment ("production" switches carriers off their sandbox endpoints)
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Stripe
    STRIPE_SECRET_KEY: str = ""
    STRIPE_CURRENCY: str = "usd"
    STRIPE_TIMEOUT: float = 30.0          # Seconds per Stripe HTTP request
    STRIPE_MAX_NETWORK_RETRIES: int = 2

    # UPS
    UPS_CLIENT_ID: str = ""
    UPS_CLIENT_SECRET: str = ""
    UPS_ACCOUNT_NUMBER: str = ""
    UPS_API_BASE_URL: Optional[str] = None  # Overrides the sandbox/production default
    DEFAULT_CARRIER: str = "ups"
    CARRIER_TIMEOUT: float = 30.0

    # Money
    TAX_RATE: float = 0.0109               # Applied to item subtotal only
    PROCESSOR_FEE_PERCENT: float = 0.25    # Connect payout fee, % of gross payout
    PROCESSOR_FEE_FLAT: float = 0.25       # Connect payout fee, flat per transfer

    # Scheduled tracking refresh
    ENABLE_SCHEDULER: bool = False
    TRACKING_REFRESH_MINUTES: int = 60

    model_config = ConfigDict(
        env_file=os.environ.get('ENV_FILE', '.env') if os.path.exists('.env') else None,
        case_sensitive=True,
        extra="ignore",
    )

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


@lru_cache()
def get_settings():
    """Cached settings to avoid loading .env file for every request"""
    return Settings()
