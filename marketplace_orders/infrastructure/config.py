"""Application configuration.

Loads settings from environment variables with sensible defaults.
Every variable is prefixed with ``MARKETPLACE_`` (e.g. ``MARKETPLACE_DATABASE_URL``).
"""

from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API
    api_version: str = "0.1.0"
    debug: bool = False

    # Logging
    log_level: str = "INFO"
    log_format: Literal["json", "console"] = "json"

    # Storage
    database_url: str = "postgresql+asyncpg://marketplace:marketplace_dev_password@db:5432/marketplace"
    storage_backend: Literal["sql", "memory"] = "sql"

    # Order numbers
    order_number_timezone: str = "UTC"
    order_number_max_attempts: int = Field(default=25, ge=1)

    # Optimistic concurrency
    concurrent_update_max_attempts: int = Field(default=5, ge=1)

    # Search and reviews
    search_result_limit: int = Field(default=50, ge=1)
    review_max_length: int = Field(default=1000, ge=1)

    # Checkout fee defaults
    default_shipping_fee: Decimal = Decimal("10")
    marketplace_fee_rate: Decimal = Decimal("0.10")
    tax_rate: Decimal = Decimal("0.08")

    class Config:
        """Pydantic configuration."""

        env_prefix = "MARKETPLACE_"
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
