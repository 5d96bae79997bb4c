"""Configuration settings for the telemetry cache service."""

import logging
from functools import lru_cache
from typing import Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from telemetry_cache.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Store keys (one global "latest value" per metric)
HEART_RATE_KEY = "heart_rate"
LOCATION_KEY = "location"
METRIC_KEYS = (HEART_RATE_KEY, LOCATION_KEY)

# Heart rate validation bounds (exclusive)
MIN_HEART_RATE = 0
MAX_HEART_RATE = 200

# Location validation bounds (inclusive)
MIN_LATITUDE = -90
MAX_LATITUDE = 90
MIN_LONGITUDE = -180
MAX_LONGITUDE = 180

# CORS
ALLOWED_REQUEST_HEADERS = "Content-Type, Authorization, X-API-Token"
TOKEN_HEADER = "X-API-Token"

# Verbs routed to both endpoints; each handler gates to its own
ROUTED_METHODS = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "TRACE"]

UPDATE_TIME_FORMAT = "%H:%M:%S"

SERVICE_NAME = "telemetry-cache"


class Settings(BaseSettings):
    """Environment-provided configuration."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    redis_url: str = Field(..., min_length=1, description="Key-value store address")
    api_token: str = Field(..., min_length=1, description="Shared secret for both endpoints")
    cache_ttl_seconds: Optional[int] = Field(None, gt=0, description="Expiry applied to ingest writes")
    redis_connect_timeout: float = Field(5.0, gt=0)
    display_timezone: str = "UTC"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 8000

    @field_validator("display_timezone")
    @classmethod
    def validate_display_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"Unknown timezone: {v}")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        if not isinstance(logging.getLevelName(v.upper()), int):
            raise ValueError(f"Unknown log level: {v}")
        return v.upper()


@lru_cache
def get_settings() -> Settings:
    """Load settings once, turning missing or invalid values into a ConfigurationError."""
    try:
        return Settings()
    except ValidationError as e:
        missing = ", ".join(str(err["loc"][0]).upper() for err in e.errors() if err["loc"])
        logger.critical("Invalid configuration: %s", missing)
        raise ConfigurationError(f"Missing or invalid configuration: {missing}") from e


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger().setLevel(level.upper())


def describe_settings(settings: Settings) -> Dict[str, object]:
    """Loggable view of the settings without credentials."""
    return {
        "redis_host": settings.redis_url.rsplit("@", 1)[-1],
        "cache_ttl_seconds": settings.cache_ttl_seconds,
        "redis_connect_timeout": settings.redis_connect_timeout,
        "display_timezone": settings.display_timezone,
    }
