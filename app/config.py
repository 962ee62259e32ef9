"""
Application configuration loaded from environment variables and .env
"""

from typing import Optional

from pydantic import Field, validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime settings, read once at import time"""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url: str = "sqlite:///./labs.db"

    # Security
    secret_key: str = "your-secret-key-change-in-production"
    algorithm: str = Field("HS256", validation_alias="JWT_ALGORITHM")
    access_token_expire_minutes: int = 30

    # Links and contact details embedded in notifications
    base_url: str = "http://localhost:3000"
    support_phone: str = "+91-9999999999"

    # Outbound email transport
    email_api_url: str = "https://api.resend.com/emails"
    email_api_key: Optional[str] = None
    email_from: str = "Lynk Labs <noreply@lynklabs.com>"
    email_timeout_seconds: float = 10.0
    notification_channel: str = "email"

    order_number_prefix: str = "LL"
    rate_limit_enabled: bool = True

    @validator("base_url")
    def strip_trailing_slash(cls, v):
        return v.rstrip("/")


settings = Settings()
