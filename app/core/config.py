"""
Application configuration management
"""
from functools import lru_cache
from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings"""

    # Supabase
    SUPABASE_URL: str
    SUPABASE_PUBLISHABLE_KEY: str
    SUPABASE_SECRET_KEY: str

    # Application
    APP_ENV: str = "development"
    APP_NAME: str = "AgriCure API"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = True

    # CORS
    CORS_ORIGINS: str = "http://localhost:5173,http://localhost:3000"

    # Auth Redirects
    SITE_URL: str = "http://localhost:5173"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # Rate Limiting
    RATE_LIMIT_PER_MINUTE: int = 60
    OTP_RATE_LIMIT_PER_MINUTE: int = 5  # Stricter limit for endpoints that send SMS/email

    # Phone numbers
    DEFAULT_COUNTRY_CODE: str = "91"

    # OTP delivery
    OTP_MAX_ATTEMPTS: int = 3
    OTP_RETRY_BASE_DELAY_SECONDS: float = 1.0
    OTP_RESEND_COOLDOWN_SECONDS: int = 60

    # Profile reconciliation
    PROFILE_RECONCILE_ATTEMPTS: int = 3
    PROFILE_RECONCILE_DELAY_SECONDS: float = 1.0

    # Redis (signup staging shared by all workers)
    REDIS_URL: str = "redis://localhost:6379/0"
    SIGNUP_STAGING_TTL_MINUTES: int = 30

    # Error tracking
    SENTRY_DSN: Optional[str] = None

    # Uvicorn Workers (0 = auto-calculate based on CPU cores)
    UVICORN_WORKERS: int = 0

    # Logging
    LOG_LEVEL: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True
    )

    @property
    def cors_origins_list(self) -> List[str]:
        """Parse CORS origins from comma-separated string"""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",")]

    @property
    def is_production(self) -> bool:
        """Check if running in production"""
        return self.APP_ENV == "production"


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
