from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def clean_price_id(value: str) -> str:
    # tolerate a pasted "STRIPE_X_PRICE_ID=price_..." env line
    value = (value or "").strip()
    eq = value.find("=")
    if eq != -1 and not value.startswith("price_"):
        return value[eq + 1:].strip()
    return value


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    environment: str = "development"
    log_level: str = "INFO"

    database_url: str = "sqlite+aiosqlite:///./creator_billing.db"

    # signing secret of the hosted auth provider's access tokens
    jwt_secret: str = ""
    jwt_audience: Optional[str] = None

    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_webhook_tolerance: int = 300
    stripe_monthly_price_id: str = "price_1SfM5cKjrStn4RhpDmL1KYxa"
    stripe_annual_price_id: str = "price_1Sj20nKjrStn4RhptVBDGbQV"

    trial_period_days: int = 14
    app_url: str = "http://localhost:8080"
    status_refresh_seconds: int = 60

    @field_validator("stripe_monthly_price_id", "stripe_annual_price_id")
    @classmethod
    def _strip_env_prefix(cls, v: str) -> str:
        return clean_price_id(v)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"


@lru_cache
def get_settings() -> Settings:
    return Settings()
