from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Loading priority (highest to lowest):
    1. Environment variables
    2. .env file
    3. Default values below
    """

    # Environment
    environment: str = "development"
    debug: bool = False

    # Application
    app_name: str = "Short Link Analytics"
    app_version: str = "1.0.0"

    # Server
    host: str = "127.0.0.1"
    port: int = 8000

    # Database (any SQLAlchemy async URL)
    database_url: str = "sqlite+aiosqlite:///./shortlinks.db"
    database_echo: bool = False

    # Short link specific
    base_url: str = "http://127.0.0.1:8000"
    short_code_length: int = 7
    max_code_retries: int = 3  # Total insert attempts for generated codes

    # Cache settings
    cache_backend: str = "redis"  # Options: "redis", "memory", "null"
    redis_url: str = "redis://localhost:6379/0"
    redis_socket_timeout: float = 0.5
    redis_connect_timeout: float = 1.0
    cache_ttl: int = 3600  # Short link cache TTL in seconds (1 hour)
    analytics_cache_ttl: int = 300  # Summary/stats cache TTL (5 minutes)
    click_counter_ttl: int = 86400  # Day-scoped click counters (24 hours)

    # Redirect cache policy: "confirm" re-reads the store on every cache hit,
    # "embedded" trusts the cached activity state until the TTL lapses.
    resolver_cache_policy: str = "confirm"

    # Click recording (background worker pool)
    click_workers: int = 4
    click_queue_size: int = 10000

    # Click retention
    click_retention_days: int = 90
    retention_sweep_interval_seconds: int = 3600
    retention_enabled: bool = True

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    # Pydantic v2 configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Create settings instance
settings = Settings()
