from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Routekit settings loaded from the environment or a local .env file."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    # Service Configuration
    APP_NAME: str = "routekit"
    APP_VERSION: str = "0.1.0"
    HOST: str = "0.0.0.0"
    PORT: int = 8080
    DEBUG: bool = False

    # Logging Configuration
    LOG_LEVEL: str = "INFO"

    # Security Configuration
    JWT_SECRET: str = ""
    JWT_LEEWAY_SECONDS: int = 0

    # Rate Limiting Configuration
    RATE_LIMIT_DEFAULT: int = 60
    RATE_LIMIT_WINDOW_SECONDS: int = 60

    # Write Safety / Caching
    CACHE_TTL_SECONDS: int = 60
    IDEMPOTENCY_TTL_SECONDS: int = 300
    STORE_PREFIX: str = "routekit"

    # Pagination
    DEFAULT_PER_PAGE: int = 20
    MAX_PER_PAGE: int = 100
    MAX_OFFSET: int = 10000

    # Observability
    METRICS_PREFIX: str = "routekit_"

    # OpenAPI Configuration
    OPENAPI_TITLE: str = "routekit API"
    OPENAPI_VERSION: str = "v1"
    OPENAPI_SERVER_URL: str = "/api"


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
