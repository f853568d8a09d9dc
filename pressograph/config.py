"""Pressograph configuration — loaded from .env via pydantic-settings."""

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings

_DEV_COOKIE_SECRET = "pressograph-dev-cookie-secret"


class PressographSettings(BaseSettings):
    """All Pressograph configuration. Reads from .env file and environment variables."""

    environment: str = Field(
        default="development",
        description="Deployment environment: development|test|production",
    )

    # --- Tier 2: Redis / Valkey ---
    redis_url: str = Field(
        default="redis://localhost:6379/0",
        description="Redis URL for the preference cache. 'memory://' keeps it in-process",
    )
    cache_key_prefix: str = Field(
        default="pressograph:",
        description="Deployment-wide prefix prepended to every cache key",
    )
    preference_cache_ttl: int = Field(default=3600, description="Cache entry TTL in seconds")

    # --- Tier 3: PostgreSQL ---
    postgres_url: str = Field(
        default="postgresql://localhost:5432/pressograph",
        description="PostgreSQL connection string",
    )

    # --- Tier 1: cookies ---
    cookie_secret: str = Field(
        default=_DEV_COOKIE_SECRET,
        description="HMAC secret used to sign preference cookies",
    )
    cookie_max_age: int = Field(default=365 * 24 * 60 * 60, description="Cookie lifetime (1 year)")

    # --- Tier call policy ---
    tier_timeout: float = Field(default=2.0, description="Seconds before a cache/db call is abandoned")
    tier_retries: int = Field(default=1, description="Extra attempts after a failed cache/db call")

    # --- HTTP ---
    api_host: str = Field(default="127.0.0.1")
    api_port: int = Field(default=8000)
    user_id_header: str = Field(
        default="X-User-Id",
        description="Header carrying the authenticated user id from the upstream proxy",
    )

    # --- Logging ---
    log_level: str = Field(default="INFO", description="Log level")
    log_format: str = Field(
        default="console",
        description="Log format: 'console' for dev, 'json' for production",
    )

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

    @field_validator("log_level", mode="before")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize log_level to an uppercase level name."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if not isinstance(v, str) or v.upper() not in valid:
            raise ValueError(f"log_level must be one of {sorted(valid)}, got {v!r}")
        return v.upper()

    @field_validator("tier_retries")
    @classmethod
    def validate_tier_retries(cls, v: int) -> int:
        if v < 0:
            raise ValueError("tier_retries must be >= 0")
        return v

    @model_validator(mode="after")
    def require_cookie_secret_in_production(self) -> "PressographSettings":
        if self.is_production and self.cookie_secret == _DEV_COOKIE_SECRET:
            raise ValueError("cookie_secret must be set in production")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


# Module-level singleton
settings = PressographSettings()
