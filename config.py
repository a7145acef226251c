"""
Centralized configuration for the Diagnosis Service
All environment variables and settings are defined here
"""

from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Provides centralized configuration with validation and defaults.
    """

    # ======================
    # API Configuration
    # ======================
    API_PREFIX: str = Field(
        default="/api",
        description="Stable path prefix for all diagnosis routes"
    )
    API_URL: str = Field(
        default="",
        description="Client-visible API base URL served via /runtime-config.js"
    )
    APP_VERSION: str = Field(
        default="stable-v2-p-entry",
        description="Version string reported by /api/version"
    )
    PORT: int = Field(default=8080, description="HTTP port for uvicorn")
    API_WORKERS: int = Field(
        default=2,
        description="Number of Uvicorn workers for API"
    )
    FORWARDED_ALLOW_IPS: str = Field(
        default="127.0.0.1",
        description="Proxy addresses whose X-Forwarded-For uvicorn trusts for the client IP"
    )

    # ======================
    # Redis Configuration
    # ======================
    REDIS_URL: str = Field(
        default="redis://localhost:6379/0",
        description="Redis connection URL"
    )

    # ======================
    # Cache Configuration
    # ======================
    CACHE_TTL: int = Field(
        default=43200,  # 12 hours
        description="Diagnosis cache time-to-live in seconds"
    )
    CACHE_KEY_PREFIX: str = Field(
        default="cache:diagnosis",
        description="Prefix for diagnosis cache keys"
    )

    # ======================
    # Rate Limit Configuration
    # ======================
    PROFILE_RATE_LIMIT: int = Field(
        default=30,
        description="Profile diagnosis requests allowed per client per window"
    )
    LISTING_RATE_LIMIT: int = Field(
        default=10,
        description="Listing diagnosis requests allowed per client per window"
    )
    RATE_LIMIT_WINDOW: int = Field(
        default=900,  # 15 minutes
        description="Rate limit window in seconds"
    )

    # ======================
    # Browser Pool Configuration
    # ======================
    BROWSER_POOL_SIZE: int = Field(
        default=2,
        description="Number of browser instances in pool"
    )
    BROWSER_MAX_PAGES: int = Field(
        default=20,
        description="Max pages per browser before recycling"
    )
    BROWSER_TIMEOUT: int = Field(
        default=600,
        description="Max browser age in seconds before recycling"
    )
    BROWSER_LOCALE: str = Field(default="ko-KR", description="Browser context locale")
    BROWSER_TIMEZONE: str = Field(
        default="Asia/Seoul",
        description="Browser context timezone id"
    )

    # ======================
    # Scraping Configuration
    # ======================
    NAVIGATION_TIMEOUT: int = Field(
        default=30,
        description="Page navigation timeout in seconds"
    )
    SETTLE_DELAY: float = Field(
        default=1.5,
        description="Seconds to wait after DOM content loaded for client-side rendering"
    )
    ELEMENT_TIMEOUT: int = Field(
        default=3,
        description="Default timeout for page operations in seconds"
    )
    SCRAPE_TIMEOUT: float = Field(
        default=55,
        description="Wall-clock budget for a whole scrape in seconds"
    )
    BODY_TEXT_LIMIT: int = Field(
        default=20000,
        description="Max characters of body text collected from a listing page"
    )
    STORE_INFO_LIMIT: int = Field(
        default=4000,
        description="Max characters of store info text retained"
    )
    FULL_TEXT_LIMIT: int = Field(
        default=5000,
        description="Max characters of text retained for keyword extraction"
    )

    # ======================
    # URL Resolution Configuration
    # ======================
    RESOLVE_TIMEOUT: float = Field(
        default=8,
        description="Timeout for redirect resolution in seconds"
    )
    RESOLVE_MAX_REDIRECTS: int = Field(
        default=10,
        description="Max redirect hops followed when resolving a listing link"
    )
    LISTING_URL_MARKERS: List[str] = Field(
        default=["naver.me", "naver.com"],
        description="Domain markers a listing URL must contain"
    )
    LISTING_CANONICAL_HOST: Optional[str] = Field(
        default=None,
        description="Host used for canonical listing URLs (defaults to the final URL host)"
    )

    # ======================
    # Profile Configuration
    # ======================
    PROFILE_URL_TEMPLATE: str = Field(
        default="https://www.instagram.com/{handle}/",
        description="Public profile page URL template"
    )
    PROFILE_REQUEST_TIMEOUT: float = Field(
        default=10,
        description="Timeout for profile page fetch in seconds"
    )

    # ======================
    # Logging Configuration
    # ======================
    LOG_LEVEL: str = Field(
        default="INFO",
        description="Logging level"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Allow extra env vars in .env file
    )


# Global settings instance
settings = Settings()


# ======================
# Convenience Functions
# ======================

def get_redis_url() -> str:
    """Get Redis connection URL"""
    return settings.REDIS_URL


def get_cache_ttl() -> int:
    """Get diagnosis cache TTL in seconds"""
    return settings.CACHE_TTL


def get_scrape_timeout() -> float:
    """Get wall-clock scrape budget in seconds"""
    return settings.SCRAPE_TIMEOUT
