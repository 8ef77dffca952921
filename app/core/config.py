from pydantic_settings import BaseSettings
from functools import lru_cache
from typing import Optional


class Settings(BaseSettings):
    # App Config
    APP_NAME: str = "Finance Tracker API"
    DEBUG: bool = False
    CORS_ORIGINS: list[str] = ["*"]

    # Database
    DB_URL: Optional[str] = None

    # Security
    JWT_SECRET_KEY: str = "change-me"
    JWT_ALGORITHM: str = "HS256"
    RATE_LIMIT_ENABLED: bool = True

    # Free tier ceilings
    FREE_TIER_TRANSACTIONS_LIMIT: int = 50      # per month
    FREE_TIER_VOICE_INPUTS_LIMIT: int = 10      # per month
    FREE_TIER_ACTIVE_DEBTS_LIMIT: int = 5       # concurrent, not monthly

    # Subscriptions
    TRIAL_DURATION_DAYS: int = 14
    PREMIUM_DURATION_DAYS: int = 30

    # Debts
    DEFAULT_CURRENCY: str = "UZS"
    DEBT_TRANSACTION_CATEGORY: str = "debt"
    PAYMENT_RETRY_ATTEMPTS: int = 3

    class Config:
        env_file = ".env"
        case_sensitive = True
        extra = "ignore"


@lru_cache()
def get_settings():
    return Settings()
