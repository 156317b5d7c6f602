from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import Optional
from functools import lru_cache
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./attireburg.db"

    # Database Connection Pool Settings
    DB_POOL_SIZE: int = 10  # Base number of connections in pool
    DB_MAX_OVERFLOW: int = 20  # Extra connections allowed beyond pool_size
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for connection from pool
    DB_POOL_RECYCLE: int = 1800  # Recycle connections after 30 minutes

    # JWT Settings
    SECRET_KEY: str = "dev-secret-key"
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 24
    UNSUBSCRIBE_TOKEN_MAX_AGE_DAYS: int = 90

    # App Settings
    APP_NAME: str = "Attireburg Backorder Service"
    APP_VERSION: str = "1.0.0"
    ENVIRONMENT: str = "development"  # development, staging, production
    DEBUG: bool = False

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "https://attireburg.de",
    ]

    # Storefront URL for email links (product pages, unsubscribe, cancellation)
    BASE_URL: str = "http://localhost:3000"
    # Public URL of this API for unsubscribe/tracking links (defaults to BASE_URL)
    API_BASE_URL: str = ""

    # Email/SMTP Settings
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: str = ""
    SMTP_PASSWORD: str = ""
    SMTP_FROM_EMAIL: str = ""  # Sender email (defaults to SMTP_USER)
    SMTP_FROM_NAME: str = "Attireburg"

    # PayPal
    PAYPAL_CLIENT_ID: str = ""
    PAYPAL_CLIENT_SECRET: str = ""
    PAYPAL_ENVIRONMENT: str = "sandbox"  # sandbox or live

    # Google Pay
    GOOGLE_PAY_MERCHANT_ID: Optional[str] = None
    GOOGLE_PAY_ENVIRONMENT: str = "TEST"

    # Feature flags
    ENABLE_BACKORDERS: bool = True
    ENABLE_WAITLIST: bool = True
    ENABLE_VARIANTS: bool = True
    ENABLE_ANALYTICS: bool = False

    # Inventory
    LOW_STOCK_THRESHOLD: int = 5
    DEFAULT_CURRENCY: str = "EUR"

    # Calendar dates in emails and storefront messages are shown in this zone
    DISPLAY_TIMEZONE: str = "Europe/Berlin"

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(',')]
        return v

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"

    @property
    def api_base_url(self) -> str:
        return (self.API_BASE_URL or self.BASE_URL).rstrip("/")

    @property
    def email_configured(self) -> bool:
        return bool(self.SMTP_USER and self.SMTP_PASSWORD)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
