from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import Optional
from functools import lru_cache
import json


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str

    # Database Connection Pool Settings
    DB_POOL_SIZE: int = 10  # Base number of connections in pool
    DB_MAX_OVERFLOW: int = 20  # Extra connections allowed beyond pool_size
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for connection from pool
    DB_POOL_RECYCLE: int = 1800  # Recycle connections after 30 minutes

    # JWT Settings
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60 * 12

    # App Settings
    APP_NAME: str = "Talents.MY Campaign Ops"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://localhost:3000",
    ]

    # Frontend URL for tracking links in emails
    FRONTEND_URL: str = "http://localhost:5173"

    # Email (Resend)
    RESEND_API_KEY: str = ""
    RESEND_API_URL: str = "https://api.resend.com/emails"
    FROM_EMAIL: str = "onboarding@resend.dev"
    FROM_NAME: str = "Talents.MY"

    # Login OTP
    OTP_LENGTH: int = 6
    OTP_EXPIRY_MINUTES: int = 5
    OTP_CLEANUP_INTERVAL_SECONDS: int = 60

    # Order workflow
    PAYMENT_AUTO_VERIFY_HOURS: int = 24  # Supplier payment auto-verifies after this long
    PAYMENT_AUTO_VERIFY_INTERVAL_MINUTES: int = 15  # How often the sweep runs
    PROJECT_WORKING_DAYS: int = 14  # Business days from samples received to deadline
    URGENT_DAYS_THRESHOLD: int = 3
    TRACKING_CODE_MAX_ATTEMPTS: int = 5
    AFFILIATE_SHEET_HOST_PATTERN: str = "docs.google.com/spreadsheets"

    # Scheduler
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_TIMEZONE: str = "Asia/Kuala_Lumpur"

    # Initial owner account (seeded into role_assignments on startup when set)
    OWNER_EMAIL: Optional[str] = None
    OWNER_NAME: str = "Agency Owner"

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(',')]
        return v

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
