"""Configuration management using pydantic-settings."""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Kroger API configuration (client-credentials grant)
    kroger_client_id: Optional[str] = None
    kroger_client_secret: Optional[str] = None
    kroger_token_url: str = "https://api-ce.kroger.com/v1/connect/oauth2/token"
    kroger_api_base_url: str = "https://api-ce.kroger.com/v1"
    kroger_scope: str = "product.compact"
    request_timeout_seconds: int = 30

    # Product search
    search_result_limit: int = 8
    search_fulfillment_filter: str = "ais"  # available in store
    search_retry_attempts: int = 3
    search_retry_base_delay_seconds: float = 1.0

    # Cache warming
    delay_between_requests_seconds: float = 2.0
    essential_delay_seconds: float = 1.5
    max_locations_per_run: int = 5
    max_items_per_location: int = 50
    location_scan_limit: int = 100
    warm_cooldown_hours: float = 6
    on_demand_cooldown_hours: float = 6

    # Eviction
    sweep_batch_size: int = 500
    image_cache_retention_days: int = 30

    # Scheduling
    warm_schedule: str = "every 12 hours"
    sweep_schedule: str = "every 24 hours"
    schedule_timezone: str = "America/New_York"

    # Operations
    # No default: manual endpoints reject every call until a secret is set
    cleanup_secret: Optional[str] = None
    database_url: str = "sqlite:///./grocery_cache.db"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
